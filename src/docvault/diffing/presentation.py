"""Display diffs at character, word and line granularity.

These functions feed history viewers and the ``docvault diff`` command. They
have no role in storage: stored versions always use the line patch codec.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum
from typing import Any, Callable

from docvault.diffing.base import ChangeKind, DiffSpan, split_lines


class Granularity(str, Enum):
    """Token size used by :func:`compare_text`."""

    CHARS = "chars"
    WORDS = "words"
    LINES = "lines"


_WORD_TOKEN = re.compile(r"\w+|\s+|[^\w\s]+", re.UNICODE)


def _tokenize_words(text: str) -> list[str]:
    return _WORD_TOKEN.findall(text)


def _diff_tokens(old: list[str], new: list[str]) -> list[DiffSpan]:
    matcher = SequenceMatcher(None, old, new, autojunk=False)
    spans: list[DiffSpan] = []

    def emit(tokens: list[str], kind: ChangeKind) -> None:
        if not tokens:
            return
        text = "".join(tokens)
        if spans and spans[-1].kind == kind:
            spans[-1] = DiffSpan(spans[-1].text + text, kind)
        else:
            spans.append(DiffSpan(text, kind))

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            emit(old[i1:i2], ChangeKind.UNCHANGED)
        else:
            emit(old[i1:i2], ChangeKind.REMOVED)
            emit(new[j1:j2], ChangeKind.ADDED)
    return spans


def diff_chars(old: str, new: str) -> list[DiffSpan]:
    """Character-level spans."""
    return _diff_tokens(list(old), list(new))


def diff_words(old: str, new: str) -> list[DiffSpan]:
    """Word-level spans. Whitespace and punctuation runs are their own tokens."""
    return _diff_tokens(_tokenize_words(old), _tokenize_words(new))


def diff_lines(old: str, new: str) -> list[DiffSpan]:
    """Line-level spans."""
    return _diff_tokens(split_lines(old), split_lines(new))


_DIFFERS: dict[Granularity, Callable[[str, str], list[DiffSpan]]] = {
    Granularity.CHARS: diff_chars,
    Granularity.WORDS: diff_words,
    Granularity.LINES: diff_lines,
}


@dataclass
class DiffSummary:
    """Counts of changed text in a comparison.

    Attributes:
        added_chars: Characters in added spans.
        removed_chars: Characters in removed spans.
        added_spans: Number of added spans.
        removed_spans: Number of removed spans.
    """

    added_chars: int = 0
    removed_chars: int = 0
    added_spans: int = 0
    removed_spans: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.added_spans or self.removed_spans)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "added_chars": self.added_chars,
            "removed_chars": self.removed_chars,
            "added_spans": self.added_spans,
            "removed_spans": self.removed_spans,
        }


def summarize(spans: list[DiffSpan]) -> DiffSummary:
    """Summarize a list of spans."""
    summary = DiffSummary()
    for span in spans:
        if span.kind == ChangeKind.ADDED:
            summary.added_chars += len(span.text)
            summary.added_spans += 1
        elif span.kind == ChangeKind.REMOVED:
            summary.removed_chars += len(span.text)
            summary.removed_spans += 1
    return summary


def compare_text(
    old: str,
    new: str,
    granularity: Granularity | str = Granularity.LINES,
) -> list[DiffSpan]:
    """Diff two texts at the requested granularity."""
    return _DIFFERS[Granularity(granularity)](old, new)


def count_changes(old: str, new: str) -> int:
    """Count positions at which two texts differ.

    Positions past the end of the shorter text count as differences, so the
    length delta is included.

    Example:
        >>> count_changes("abc", "abd")
        1
        >>> count_changes("abc", "abcde")
        2
    """
    common = sum(1 for a, b in zip(old, new) if a != b)
    return common + abs(len(old) - len(new))
