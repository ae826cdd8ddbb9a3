"""Diffing for docvault.

Two concerns live here:

* The storage codec (:class:`LineDiffCodec`, :func:`encode`, :func:`decode`)
  that incremental versions are written with.
* Presentation diffs (:func:`diff_chars`, :func:`diff_words`,
  :func:`diff_lines`) for showing changes to a person.

Example:
    >>> from docvault.diffing import encode, decode
    >>> patch = encode("one\\ntwo\\n", "one\\n2\\n")
    >>> decode("one\\ntwo\\n", patch.to_text())
    'one\\n2\\n'
"""

from docvault.diffing.base import (
    ChangeKind,
    DiffSpan,
    Hunk,
    LineOp,
    Patch,
    PatchLine,
    split_lines,
)
from docvault.diffing.codec import LineDiffCodec, decode, encode
from docvault.diffing.legacy import apply_changes, is_legacy_diff
from docvault.diffing.presentation import (
    DiffSummary,
    Granularity,
    compare_text,
    count_changes,
    diff_chars,
    diff_lines,
    diff_words,
    summarize,
)

__all__ = [
    # Patch model
    "Patch",
    "Hunk",
    "PatchLine",
    "LineOp",
    "split_lines",
    # Codec
    "LineDiffCodec",
    "encode",
    "decode",
    # Legacy
    "apply_changes",
    "is_legacy_diff",
    # Presentation
    "ChangeKind",
    "DiffSpan",
    "DiffSummary",
    "Granularity",
    "compare_text",
    "count_changes",
    "diff_chars",
    "diff_lines",
    "diff_words",
    "summarize",
]
