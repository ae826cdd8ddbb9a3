"""Line-oriented patch codec used for incremental version storage.

Storage always uses this encoding, regardless of which granularity a user
picks for display. The patch format is a unified diff without file headers:

    @@ -1,3 +1,3 @@
     first
    -second
    +changed
     third

Lines are split on ``\\n`` only. A body line that has no terminator (the last
line of a document not ending in a newline) is followed by
``\\ No newline at end of file``, so any text round-trips byte for byte.
"""

from __future__ import annotations

import logging
from difflib import SequenceMatcher

from docvault.diffing.base import Hunk, LineOp, Patch, PatchLine, split_lines
from docvault.diffing.legacy import apply_changes, is_legacy_diff
from docvault.errors import PatchApplyError

logger = logging.getLogger(__name__)


DEFAULT_CONTEXT_LINES = 3


class LineDiffCodec:
    """Produces and applies line patches.

    Args:
        context_lines: Unchanged lines kept around each change. More context
            makes a patch easier to read and stricter to apply.

    Example:
        >>> codec = LineDiffCodec()
        >>> patch = codec.encode("a\\nb\\n", "a\\nc\\n")
        >>> codec.decode("a\\nb\\n", patch)
        'a\\nc\\n'
    """

    def __init__(self, context_lines: int = DEFAULT_CONTEXT_LINES) -> None:
        if context_lines < 0:
            raise ValueError("context_lines must be >= 0")
        self.context_lines = context_lines

    def encode(self, base: str, revised: str) -> Patch:
        """Build the patch that turns ``base`` into ``revised``.

        Identical inputs produce the empty patch.
        """
        old = split_lines(base)
        new = split_lines(revised)
        matcher = SequenceMatcher(None, old, new, autojunk=False)

        hunks: list[Hunk] = []
        for group in matcher.get_grouped_opcodes(self.context_lines):
            first, last = group[0], group[-1]
            hunk = Hunk(
                old_start=first[1],
                old_len=last[2] - first[1],
                new_start=first[3],
                new_len=last[4] - first[3],
            )
            for tag, i1, i2, j1, j2 in group:
                if tag == "equal":
                    hunk.lines.extend(PatchLine(LineOp.CONTEXT, t) for t in old[i1:i2])
                    continue
                if tag in ("replace", "delete"):
                    hunk.lines.extend(PatchLine(LineOp.REMOVE, t) for t in old[i1:i2])
                if tag in ("replace", "insert"):
                    hunk.lines.extend(PatchLine(LineOp.ADD, t) for t in new[j1:j2])
            hunks.append(hunk)

        return Patch(hunks=hunks)

    def decode(self, base: str, patch: Patch | str) -> str:
        """Apply a patch to ``base``.

        ``patch`` may be a :class:`Patch` or its serialized text. Serialized
        diffs written by earlier releases (a JSON list of change objects) are
        recognized and applied on a best-effort basis.

        Raises:
            PatchApplyError: If the patch is malformed, its hunks overlap, or
                its context and removed lines do not match ``base``.
        """
        if isinstance(patch, str):
            if is_legacy_diff(patch):
                logger.debug("Applying legacy change-list diff")
                return apply_changes(patch)
            patch = Patch.parse(patch)

        old = split_lines(base)
        out: list[str] = []
        cursor = 0

        for hunk in patch.hunks:
            if hunk.old_start < cursor:
                raise PatchApplyError("Overlapping hunks", line=hunk.old_start + 1)
            if hunk.old_start + hunk.old_len > len(old):
                raise PatchApplyError(
                    "Hunk extends past the end of the base text",
                    line=hunk.old_start + 1,
                )

            out.extend(old[cursor:hunk.old_start])
            position = hunk.old_start
            for line in hunk.lines:
                if line.op == LineOp.ADD:
                    out.append(line.text)
                    continue
                if position >= len(old) or old[position] != line.text:
                    raise PatchApplyError(
                        "Base text does not match the patch", line=position + 1
                    )
                if line.op == LineOp.CONTEXT:
                    out.append(line.text)
                position += 1
            cursor = position

        out.extend(old[cursor:])
        return "".join(out)


_default_codec = LineDiffCodec()


def encode(base: str, revised: str) -> Patch:
    """Encode ``revised`` as a patch against ``base`` with the default codec."""
    return _default_codec.encode(base, revised)


def decode(base: str, patch: Patch | str) -> str:
    """Apply ``patch`` to ``base`` with the default codec."""
    return _default_codec.decode(base, patch)
