from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel

from .track_meta_data import TrackMetaData

Fingerprint = tuple[int, ...]


class TrackRecord(BaseModel):
    id: int
    file_path: Path
    fingerprint: Fingerprint
    metadata: TrackMetaData
    # Reconciled view across the duplicate cluster; only set on canonical records.
    merged_metadata: TrackMetaData | None = None
    canonical_id: int | None = None

    file_size: int | None = None
    file_mtime: float | None = None
    scanned_at: int = 0
    indexed_generation: int = 0

    @property
    def is_canonical(self) -> bool:
        return self.canonical_id is None

    def effective_metadata(self) -> TrackMetaData:
        return self.merged_metadata if self.merged_metadata is not None else self.metadata

    def same_content(self, other: TrackRecord) -> bool:
        return self.model_dump(exclude={"scanned_at"}) == other.model_dump(exclude={"scanned_at"})
