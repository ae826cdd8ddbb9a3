"""Reconstruction of a version's full text.

A record either stores its text directly or stores a patch. A patch is
applied to the full record named by its ``base_ref_id`` when that record is
still in the series, since that is the text it was encoded against, and to
the series base snapshot otherwise. Series written before the base snapshot
existed have no base; their patches are applied to the record named by
``base_ref_id``, resolved recursively.
"""

from __future__ import annotations

import logging

from docvault.diffing.codec import LineDiffCodec
from docvault.errors import PatchApplyError, UnreconstructableError
from docvault.stores.versioning.base import (
    FullPayload,
    Reconstruction,
    ReconstructionOutcome,
    VersionRecord,
    VersionSeries,
)

logger = logging.getLogger(__name__)


class ReconstructionResolver:
    """Materializes full text for records of a series.

    Resolution is stateless: every call walks the record again and nothing is
    memoized between calls.

    Args:
        codec: Patch codec used for incremental records.
        max_depth: Longest ``base_ref_id`` chain followed on the legacy path.
    """

    def __init__(self, codec: LineDiffCodec | None = None, max_depth: int = 64) -> None:
        self.codec = codec or LineDiffCodec()
        self.max_depth = max_depth

    def resolve(self, series: VersionSeries, record: VersionRecord) -> Reconstruction:
        """Reconstruct the text of ``record``.

        Raises:
            UnreconstructableError: If the record has no usable base, or its
                ancestor chain is broken or cyclic.
        """
        return self._resolve(series, record, seen=set())

    def _resolve(
        self,
        series: VersionSeries,
        record: VersionRecord,
        seen: set[str],
    ) -> Reconstruction:
        payload = record.payload
        if isinstance(payload, FullPayload):
            return Reconstruction(payload.content)

        ancestor_id = payload.base_ref_id
        referenced = series.find(ancestor_id) if ancestor_id else None
        if referenced is not None and referenced.content is not None:
            # The patch was encoded against this record's text. The series
            # base may have been rebuilt since, so it is only the fallback.
            if series.base_snapshot in (None, referenced.content):
                return self._apply(series, record, referenced.content)
            try:
                return Reconstruction(self.codec.decode(referenced.content, payload.diff))
            except PatchApplyError as e:
                logger.debug(
                    "Patch for version %s does not apply to version %s: %s",
                    record.id,
                    ancestor_id,
                    e,
                )

        if series.base_snapshot is not None:
            return self._apply(series, record, series.base_snapshot)

        if ancestor_id is None:
            raise UnreconstructableError(
                series.document_path, record.id, "no base snapshot and no base reference"
            )
        if ancestor_id == record.id or ancestor_id in seen:
            raise UnreconstructableError(
                series.document_path, record.id, "cyclic base reference"
            )
        if len(seen) >= self.max_depth:
            raise UnreconstructableError(
                series.document_path, record.id, "base reference chain too deep"
            )
        ancestor = referenced
        if ancestor is None:
            raise UnreconstructableError(
                series.document_path,
                record.id,
                f"base reference {ancestor_id} is not in the series",
            )

        seen.add(record.id)
        base = self._resolve(series, ancestor, seen)
        result = self._apply(series, record, base.text)
        if not base.is_exact:
            return Reconstruction(result.text, ReconstructionOutcome.DEGRADED_TO_BASE)
        return result

    def _apply(
        self, series: VersionSeries, record: VersionRecord, base: str
    ) -> Reconstruction:
        try:
            return Reconstruction(self.codec.decode(base, record.diff or ""))
        except PatchApplyError as e:
            logger.warning(
                "Patch for version %s of %s does not apply, returning base text: %s",
                record.id,
                series.document_path,
                e,
            )
            return Reconstruction(base, ReconstructionOutcome.DEGRADED_TO_BASE)
