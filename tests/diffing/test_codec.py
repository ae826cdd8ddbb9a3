"""Tests for the line patch codec."""

from __future__ import annotations

import pytest

from docvault.diffing import (
    Hunk,
    LineDiffCodec,
    LineOp,
    Patch,
    PatchLine,
    decode,
    encode,
    split_lines,
)
from docvault.errors import PatchApplyError


class TestSplitLines:
    """Tests for split_lines."""

    def test_keeps_terminators(self) -> None:
        """Test that every line keeps its newline."""
        assert split_lines("a\nb\n") == ["a\n", "b\n"]

    def test_unterminated_last_line(self) -> None:
        """Test a text that does not end in a newline."""
        assert split_lines("a\nb") == ["a\n", "b"]

    def test_empty_text(self) -> None:
        """Test that empty text has no lines."""
        assert split_lines("") == []

    def test_only_newline_splits(self) -> None:
        """Test that carriage returns and form feeds stay inside lines."""
        text = "a\r\nb\x0cc d"
        assert split_lines(text) == ["a\r\n", "b\x0cc d"]
        assert "".join(split_lines(text)) == text


class TestEncode:
    """Tests for LineDiffCodec.encode."""

    def test_identical_texts_give_empty_patch(self) -> None:
        """Test that no change gives a patch with no hunks."""
        patch = encode("same\ntext\n", "same\ntext\n")

        assert patch.is_empty
        assert patch.to_text() == ""

    def test_single_line_change(self) -> None:
        """Test the serialized form of a one-line replacement."""
        patch = encode("one\ntwo\n", "one\n2\n")

        assert patch.to_text() == "@@ -1,2 +1,2 @@\n one\n-two\n+2\n"
        assert patch.added_count == 1
        assert patch.removed_count == 1

    def test_missing_final_newline_is_marked(self) -> None:
        """Test the no-newline marker after unterminated lines."""
        patch = encode("a\nb", "a\nc")

        assert patch.to_text() == (
            "@@ -1,2 +1,2 @@\n"
            " a\n"
            "-b\n"
            "\\ No newline at end of file\n"
            "+c\n"
            "\\ No newline at end of file\n"
        )

    def test_insert_into_empty_text(self) -> None:
        """Test the range header when the base is empty."""
        patch = encode("", "hello\n")

        assert patch.to_text() == "@@ -0,0 +1 @@\n+hello\n"

    def test_context_lines(self) -> None:
        """Test that the context size bounds the hunk."""
        base = "".join(f"line {i}\n" for i in range(20))
        revised = base.replace("line 10\n", "line ten\n")

        wide = LineDiffCodec(context_lines=3).encode(base, revised)
        narrow = LineDiffCodec(context_lines=0).encode(base, revised)

        assert len(wide.hunks[0].lines) == 8
        assert len(narrow.hunks[0].lines) == 2

    def test_distant_changes_make_separate_hunks(self) -> None:
        """Test that changes far apart are not merged."""
        base = "".join(f"line {i}\n" for i in range(30))
        revised = base.replace("line 2\n", "x\n").replace("line 25\n", "y\n")

        assert len(encode(base, revised).hunks) == 2

    def test_negative_context_rejected(self) -> None:
        """Test that context_lines must be non-negative."""
        with pytest.raises(ValueError):
            LineDiffCodec(context_lines=-1)


class TestDecode:
    """Tests for LineDiffCodec.decode."""

    @pytest.mark.parametrize(
        ("base", "revised"),
        [
            ("", ""),
            ("", "new file\n"),
            ("whole text\n", ""),
            ("a\nb\nc\n", "a\nc\n"),
            ("a\nb", "a\nb\n"),
            ("a\nb\n", "a\nb"),
            ("no newline", "still none"),
            ("\n\n\n", "\n"),
            ("x\r\ny\r\n", "x\r\nz\r\n"),
            ("héllo\nwörld\n", "hello\nworld\n😀\n"),
        ],
    )
    def test_round_trip(self, base: str, revised: str) -> None:
        """Test that decoding the serialized patch restores the revised text."""
        patch_text = encode(base, revised).to_text()

        assert decode(base, patch_text) == revised

    def test_accepts_patch_object(self) -> None:
        """Test decoding a Patch without serializing it."""
        patch = encode("a\nb\n", "a\nB\n")

        assert decode("a\nb\n", patch) == "a\nB\n"

    def test_empty_patch_returns_base(self) -> None:
        """Test that the empty patch is the identity."""
        assert decode("unchanged\n", "") == "unchanged\n"

    def test_mismatched_base_raises(self) -> None:
        """Test applying a patch to a text it was not made from."""
        patch = encode("a\nx\n", "a\ny\n")

        with pytest.raises(PatchApplyError) as exc_info:
            decode("a\nb\n", patch)

        assert exc_info.value.line == 2

    def test_hunk_past_end_raises(self) -> None:
        """Test a hunk that reaches beyond the base text."""
        patch = encode("1\n2\n3\n4\n", "1\n2\n3\nfour\n")

        with pytest.raises(PatchApplyError):
            decode("1\n", patch)

    def test_overlapping_hunks_raise(self) -> None:
        """Test that hunks must be ordered and disjoint."""
        hunk = Hunk(0, 1, 0, 1, [PatchLine(LineOp.REMOVE, "a\n"), PatchLine(LineOp.ADD, "b\n")])
        patch = Patch(hunks=[hunk, hunk])

        with pytest.raises(PatchApplyError, match="Overlapping"):
            decode("a\n", patch)

    def test_legacy_change_list(self) -> None:
        """Test that a JSON change list is applied without the base."""
        diff = '[{"value": "a"}, {"value": "b", "removed": true}, {"value": "c", "added": true}]'

        assert decode("ignored", diff) == "ac"


class TestPatchParse:
    """Tests for Patch.parse."""

    def test_skips_file_headers(self) -> None:
        """Test that leading --- / +++ headers are ignored."""
        text = "--- a/doc.md\n+++ b/doc.md\n@@ -1 +1 @@\n-old\n+new\n"

        patch = Patch.parse(text)

        assert decode("old\n", patch) == "new\n"

    def test_header_without_lengths(self) -> None:
        """Test that omitted lengths default to one."""
        patch = Patch.parse("@@ -2 +2 @@\n-b\n+B\n")

        assert patch.hunks[0].old_start == 1
        assert patch.hunks[0].old_len == 1

    @pytest.mark.parametrize(
        "text",
        [
            "garbage\n",
            "@@ -1,2 +1,2 @@\n a\n",
            "@@ -1 +1 @@\n?what\n+x\n",
            "@@ -1 +1 @@\n\\ No newline at end of file\n-a\n+b\n",
        ],
    )
    def test_malformed_patch_raises(self, text: str) -> None:
        """Test that malformed patches are rejected."""
        with pytest.raises(PatchApplyError):
            Patch.parse(text)

    def test_to_dict(self) -> None:
        """Test the patch summary."""
        patch = encode("a\nb\n", "a\nc\nd\n")

        assert patch.to_dict() == {"hunks": 1, "added": 2, "removed": 1}
