"""Types shared by the diff codec and the presentation diffs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from docvault.errors import PatchApplyError


NO_NEWLINE_MARKER = "\\ No newline at end of file"

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


# =============================================================================
# Enums
# =============================================================================


class ChangeKind(str, Enum):
    """Kind of a presentation span."""

    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


class LineOp(str, Enum):
    """Operation of one line inside a hunk, keyed by its unified-diff prefix."""

    CONTEXT = " "
    REMOVE = "-"
    ADD = "+"


# =============================================================================
# Line splitting
# =============================================================================


def split_lines(text: str) -> list[str]:
    """Split text into lines, keeping the ``\\n`` terminators.

    Only ``\\n`` separates lines; other characters that :meth:`str.splitlines`
    treats as breaks (``\\r``, form feeds, unicode separators) stay inside the
    line, so joining the result always reproduces ``text`` exactly.
    """
    if not text:
        return []
    pieces = text.split("\n")
    lines = [piece + "\n" for piece in pieces[:-1]]
    if pieces[-1]:
        lines.append(pieces[-1])
    return lines


# =============================================================================
# Patch model
# =============================================================================


@dataclass(frozen=True)
class PatchLine:
    """One line of a hunk.

    Attributes:
        op: Whether the line is context, removed, or added.
        text: Line text including its terminator, if it has one.
    """

    op: LineOp
    text: str


@dataclass
class Hunk:
    """A contiguous block of changes with surrounding context.

    Attributes:
        old_start: Zero-based index of the first base line covered.
        old_len: Number of base lines covered (context + removed).
        new_start: Zero-based index of the first revised line covered.
        new_len: Number of revised lines covered (context + added).
        lines: The hunk body.
    """

    old_start: int
    old_len: int
    new_start: int
    new_len: int
    lines: list[PatchLine] = field(default_factory=list)

    def header(self) -> str:
        """Render the ``@@ -a,b +c,d @@`` header in unified-diff convention."""
        return (
            f"@@ -{_format_range(self.old_start, self.old_len)} "
            f"+{_format_range(self.new_start, self.new_len)} @@"
        )


def _format_range(start: int, length: int) -> str:
    beginning = start + 1
    if length == 1:
        return f"{beginning}"
    if not length:
        beginning -= 1
    return f"{beginning},{length}"


def _parse_range(start: str, length: str | None) -> tuple[int, int]:
    count = 1 if length is None else int(length)
    beginning = int(start)
    return (beginning if count == 0 else beginning - 1), count


@dataclass
class Patch:
    """A line-oriented patch that turns a base text into a revised text.

    A patch with no hunks is the no-op patch.
    """

    hunks: list[Hunk] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Whether the patch describes no change."""
        return not self.hunks

    @property
    def added_count(self) -> int:
        """Number of added lines."""
        return sum(1 for h in self.hunks for line in h.lines if line.op == LineOp.ADD)

    @property
    def removed_count(self) -> int:
        """Number of removed lines."""
        return sum(
            1 for h in self.hunks for line in h.lines if line.op == LineOp.REMOVE
        )

    def to_text(self) -> str:
        """Serialize the patch.

        Every emitted line ends with ``\\n``. A body line whose text has no
        terminator (the last line of a file) is followed by the
        ``\\ No newline at end of file`` marker.
        """
        out: list[str] = []
        for hunk in self.hunks:
            out.append(hunk.header() + "\n")
            for line in hunk.lines:
                if line.text.endswith("\n"):
                    out.append(line.op.value + line.text)
                else:
                    out.append(line.op.value + line.text + "\n")
                    out.append(NO_NEWLINE_MARKER + "\n")
        return "".join(out)

    @classmethod
    def parse(cls, text: str) -> "Patch":
        """Parse a serialized patch.

        Raises:
            PatchApplyError: If the text is not a well-formed patch.
        """
        rows = split_lines(text)
        hunks: list[Hunk] = []
        i = 0

        # File headers are only allowed before the first hunk.
        while i < len(rows) and rows[i].startswith(("--- ", "+++ ")):
            i += 1

        while i < len(rows):
            match = _HUNK_HEADER.match(rows[i])
            if match is None:
                raise PatchApplyError(f"Malformed hunk header: {rows[i].rstrip()!r}")
            old_start, old_len = _parse_range(match.group(1), match.group(2))
            new_start, new_len = _parse_range(match.group(3), match.group(4))
            hunk = Hunk(old_start, old_len, new_start, new_len)
            i += 1

            old_seen = new_seen = 0
            while old_seen < old_len or new_seen < new_len:
                if i >= len(rows):
                    raise PatchApplyError("Truncated hunk body")
                row = rows[i]
                if row.startswith("\\"):
                    _strip_last_newline(hunk)
                    i += 1
                    continue
                try:
                    op = LineOp(row[0])
                except ValueError:
                    raise PatchApplyError(f"Unexpected hunk line: {row.rstrip()!r}")
                hunk.lines.append(PatchLine(op, row[1:]))
                if op != LineOp.ADD:
                    old_seen += 1
                if op != LineOp.REMOVE:
                    new_seen += 1
                i += 1

            if old_seen != old_len or new_seen != new_len:
                raise PatchApplyError("Hunk body does not match its header")
            if i < len(rows) and rows[i].startswith("\\"):
                _strip_last_newline(hunk)
                i += 1
            hunks.append(hunk)

        return cls(hunks=hunks)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hunks": len(self.hunks),
            "added": self.added_count,
            "removed": self.removed_count,
        }


def _strip_last_newline(hunk: Hunk) -> None:
    if not hunk.lines:
        raise PatchApplyError("No-newline marker without a preceding line")
    last = hunk.lines[-1]
    if not last.text.endswith("\n"):
        raise PatchApplyError("Repeated no-newline marker")
    hunk.lines[-1] = PatchLine(last.op, last.text[:-1])


# =============================================================================
# Presentation spans
# =============================================================================


@dataclass(frozen=True)
class DiffSpan:
    """A run of text with its change kind, for display."""

    text: str
    kind: ChangeKind

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"text": self.text, "kind": self.kind.value}
