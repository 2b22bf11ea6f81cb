from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from curator.models.track import TrackRecord


class LibraryIndex:
    """
    Committed library state: every TrackRecord by id, a path lookup and the
    generation counter.

    Instances are treated as immutable snapshots. A scan pass builds the next
    snapshot with ``with_changes`` and swaps it in on commit, so readers never
    see a half-applied pass.
    """

    def __init__(
        self,
        generation: int = 0,
        records: Iterable[TrackRecord] = (),
        next_id: int | None = None,
    ):
        if generation < 0:
            raise ValueError(f"generation must be >= 0, got {generation}")
        self.generation = generation
        self._records: dict[int, TrackRecord] = {}
        self._paths: dict[Path, int] = {}
        for record in records:
            if record.id in self._records:
                raise ValueError(f"duplicate track id {record.id}")
            if record.file_path in self._paths:
                raise ValueError(f"duplicate track path {record.file_path}")
            self._records[record.id] = record
            self._paths[record.file_path] = record.id
        # Ids are never handed out twice, even after the highest one is removed.
        self._next_id = max(max(self._records, default=0) + 1, next_id or 1)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._records

    def __iter__(self) -> Iterator[TrackRecord]:
        return iter(self.records())

    def get(self, track_id: int) -> TrackRecord | None:
        return self._records.get(track_id)

    def id_for_path(self, path: Path) -> int | None:
        return self._paths.get(Path(path))

    def record_for_path(self, path: Path) -> TrackRecord | None:
        track_id = self.id_for_path(path)
        return self._records[track_id] if track_id is not None else None

    def records(self) -> list[TrackRecord]:
        return [self._records[track_id] for track_id in sorted(self._records)]

    def records_by_id(self) -> dict[int, TrackRecord]:
        return dict(self._records)

    def canonical_records(self) -> list[TrackRecord]:
        return [record for record in self.records() if record.is_canonical]

    def duplicates_of(self, canonical_id: int) -> list[TrackRecord]:
        return [record for record in self.records() if record.canonical_id == canonical_id]

    def paths(self) -> list[Path]:
        return sorted(self._paths)

    @property
    def next_id(self) -> int:
        return self._next_id

    def with_changes(
        self,
        generation: int,
        upserts: Iterable[TrackRecord],
        removed_ids: Iterable[int] = (),
        next_id: int | None = None,
    ) -> LibraryIndex:
        if generation < self.generation:
            raise ValueError(f"generation cannot go backwards ({self.generation} -> {generation})")
        records = dict(self._records)
        for track_id in removed_ids:
            records.pop(track_id, None)
        for record in upserts:
            records[record.id] = record
        return LibraryIndex(
            generation=generation,
            records=records.values(),
            next_id=max(self._next_id, next_id or 1),
        )
