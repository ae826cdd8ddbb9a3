"""Support for the change-list diffs stored by earlier releases.

Those diffs were a JSON array of ``{"value": str, "added"?: bool,
"removed"?: bool}`` objects covering the whole revised document, so they can
be applied without looking at the base text at all.
"""

from __future__ import annotations

import json
from typing import Any

from docvault.errors import PatchApplyError


def is_legacy_diff(diff: str) -> bool:
    """Whether a stored diff string is a legacy JSON change list."""
    return diff.lstrip().startswith("[")


def _load_changes(diff: str) -> list[dict[str, Any]]:
    try:
        changes = json.loads(diff)
    except json.JSONDecodeError as e:
        raise PatchApplyError(f"Invalid legacy diff: {e.msg}") from e
    if not isinstance(changes, list):
        raise PatchApplyError("Legacy diff is not a list of changes")
    for change in changes:
        if not isinstance(change, dict) or not isinstance(change.get("value"), str):
            raise PatchApplyError("Legacy diff entry has no text value")
    return changes


def apply_changes(diff: str) -> str:
    """Rebuild the revised text from a legacy change list.

    Raises:
        PatchApplyError: If the diff is not a valid change list.
    """
    return "".join(c["value"] for c in _load_changes(diff) if not c.get("removed"))

