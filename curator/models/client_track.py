from __future__ import annotations

from pydantic import BaseModel

from .track import TrackRecord
from .track_meta_data import TrackMetaData


class ClientTrack(BaseModel):
    id: int
    file_path: str
    metadata: TrackMetaData
    canonical_id: int | None = None
    duplicate_ids: list[int] = []
    indexed_generation: int
    scanned_at: int

    @classmethod
    def from_record(cls, record: TrackRecord, duplicate_ids: list[int] | None = None) -> ClientTrack:
        return cls(
            id=record.id,
            file_path=str(record.file_path),
            metadata=record.effective_metadata(),
            canonical_id=record.canonical_id,
            duplicate_ids=duplicate_ids or [],
            indexed_generation=record.indexed_generation,
            scanned_at=record.scanned_at,
        )
