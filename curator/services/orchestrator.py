"""Scan passes over batches of file-system events.

A pass moves through ``Idle -> Scanning -> Resolving -> Reconciling ->
Committed`` and back to ``Idle``. Per-file extraction and fingerprinting run on a
bounded thread pool; clustering and merging run on the calling thread over the
aggregated results. The committed LibraryIndex is only replaced at the very end
of a pass, so a failed or cancelled pass leaves it (and its generation) as it
was.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from curator.core.errors import (
    CuratorError,
    FingerprintUnavailable,
    ScanCancelled,
    ScanFailed,
    ScanInProgress,
    UnreadableMetadata,
)
from curator.database.database import Database
from curator.models.scan_event import ScanEvent, ScanEventKind
from curator.models.scan_summary import ScanState, ScanSummary
from curator.models.track import Fingerprint, TrackRecord
from curator.models.track_meta_data import TrackMetaData
from curator.services.decoder import DecodedAudio
from curator.services.fingerprint import (
    DEFAULT_MIN_FINGERPRINT_SECONDS,
    DEFAULT_SIMILARITY_THRESHOLD,
    fingerprint_audio,
)
from curator.services.library_index import LibraryIndex
from curator.services.library_scanner import diff_directory, file_stats
from curator.services.reconciler import reconcile_cluster
from curator.services.resolver import find_clusters, mark_duplicates

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(time.time())


@dataclass(frozen=True)
class OrchestratorContext:
    read_metadata: Callable[[Path], TrackMetaData]
    decode: Callable[[Path], DecodedAudio | None]
    database: Database | None = None
    similarity_threshold: int = DEFAULT_SIMILARITY_THRESHOLD
    min_fingerprint_seconds: float = DEFAULT_MIN_FINGERPRINT_SECONDS
    max_workers: int = 4
    clock: Callable[[], int] = field(default=_now)
    on_transition: Callable[[ScanState], None] | None = None

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.similarity_threshold < 0:
            raise ValueError(f"similarity_threshold must be >= 0, got {self.similarity_threshold}")


@dataclass(frozen=True)
class FileScan:
    path: Path
    metadata: TrackMetaData
    fingerprint: Fingerprint
    file_size: int | None = None
    file_mtime: float | None = None

    def record_update(self) -> dict:
        return {
            "file_path": self.path,
            "metadata": self.metadata,
            "fingerprint": self.fingerprint,
            "file_size": self.file_size,
            "file_mtime": self.file_mtime,
        }


def scan_file(path: Path, ctx: OrchestratorContext) -> FileScan:
    metadata = ctx.read_metadata(path)
    fingerprint = fingerprint_audio(ctx.decode(path), path=path, min_seconds=ctx.min_fingerprint_seconds)
    stats = file_stats(path)
    file_size, file_mtime = stats if stats is not None else (None, None)
    return FileScan(
        path=path,
        metadata=metadata,
        fingerprint=fingerprint,
        file_size=file_size,
        file_mtime=file_mtime,
    )


def collapse_events(events: Iterable[ScanEvent]) -> dict[Path, ScanEventKind]:
    """The last event seen for a path wins."""
    batch: dict[Path, ScanEventKind] = {}
    for event in events:
        batch[Path(event.path)] = event.kind
    return batch


def pair_moves(
    removed: list[TrackRecord],
    new_scans: list[FileScan],
) -> list[tuple[TrackRecord, FileScan]]:
    """
    Match removed records to new files with an identical fingerprint.

    Both sides are walked in path order and each new file is claimed at most
    once, so renames, swaps and chains pair up the same way on every run.
    """
    pairs = []
    claimed: set[Path] = set()
    for record in sorted(removed, key=lambda r: str(r.file_path)):
        for scan in sorted(new_scans, key=lambda s: str(s.path)):
            if scan.path in claimed:
                continue
            if scan.fingerprint == record.fingerprint:
                claimed.add(scan.path)
                pairs.append((record, scan))
                break
    return pairs


class ScanOrchestrator:
    def __init__(self, ctx: OrchestratorContext, index: LibraryIndex | None = None):
        self.ctx = ctx
        self._index = index if index is not None else LibraryIndex()
        self._pass_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._state = ScanState.IDLE
        self._cancel_requested = threading.Event()

    @property
    def index(self) -> LibraryIndex:
        with self._state_lock:
            return self._index

    @property
    def state(self) -> ScanState:
        with self._state_lock:
            return self._state

    def cancel(self) -> bool:
        """Ask the running pass to stop before it commits. Returns False when idle."""
        with self._state_lock:
            if self._state in (ScanState.IDLE, ScanState.COMMITTED):
                return False
            self._cancel_requested.set()
            return True

    def scan_directory(self, root: Path) -> ScanSummary:
        return self.run_scan(diff_directory(root, self.index))

    def run_scan(self, events: Iterable[ScanEvent]) -> ScanSummary:
        if not self._pass_lock.acquire(blocking=False):
            raise ScanInProgress()
        try:
            self._cancel_requested.clear()
            return self._run_pass(list(events))
        finally:
            self._set_state(ScanState.IDLE)
            self._pass_lock.release()

    def reset(self) -> None:
        if not self._pass_lock.acquire(blocking=False):
            raise ScanInProgress()
        try:
            database = self.ctx.database
            if database is not None and not database.reset():
                raise CuratorError("failed to reset the library database")
            with self._state_lock:
                self._index = LibraryIndex()
            logger.info("Library index reset")
        finally:
            self._pass_lock.release()

    def _set_state(self, state: ScanState) -> None:
        with self._state_lock:
            if self._state == state:
                return
            self._state = state
        logger.debug(f"Scan state -> {state.value}")
        if self.ctx.on_transition is not None:
            self.ctx.on_transition(state)

    def _check_cancelled(self, summary: ScanSummary) -> None:
        if self._cancel_requested.is_set():
            logger.info("Scan pass cancelled, discarding partial results")
            raise ScanCancelled(summary)

    def _run_pass(self, events: list[ScanEvent]) -> ScanSummary:
        index = self.index
        summary = ScanSummary(generation=index.generation)
        self._set_state(ScanState.SCANNING)

        batch = collapse_events(events)
        to_scan = sorted(path for path, kind in batch.items() if kind != ScanEventKind.REMOVED)
        removed_paths = sorted(
            path
            for path, kind in batch.items()
            if kind == ScanEventKind.REMOVED and index.id_for_path(path) is not None
        )
        logger.info(f"Scan pass started: {len(to_scan)} files to scan, {len(removed_paths)} removals")

        scans = self._scan_files(to_scan, summary)
        self._check_cancelled(summary)

        considered = len(to_scan) + len(removed_paths)
        if summary.failed and len(summary.failed) == considered:
            logger.error(f"Scan pass failed: all {considered} files in the batch failed")
            raise ScanFailed("every file in the batch failed", summary)

        self._set_state(ScanState.RESOLVING)
        next_generation = index.generation + 1
        now = self.ctx.clock()

        working = index.records_by_id()
        removed_ids = {index.id_for_path(path) for path in removed_paths}
        new_scans = [scans[path] for path in sorted(scans) if index.id_for_path(path) is None]
        updated_scans = [scans[path] for path in sorted(scans) if index.id_for_path(path) is not None]

        touched_ids: set[int] = set()
        moved_ids: set[int] = set()
        moves = pair_moves([index.get(track_id) for track_id in removed_ids], new_scans)
        moved_paths = set()
        for record, scan in moves:
            removed_ids.discard(record.id)
            working[record.id] = record.model_copy(update=scan.record_update())
            touched_ids.add(record.id)
            moved_ids.add(record.id)
            moved_paths.add(scan.path)
            summary.moves.append((str(record.file_path), str(scan.path)))

        for track_id in removed_ids:
            del working[track_id]

        updated_ids = set()
        for scan in updated_scans:
            track_id = index.id_for_path(scan.path)
            working[track_id] = working[track_id].model_copy(update=scan.record_update())
            touched_ids.add(track_id)
            updated_ids.add(track_id)

        next_id = index.next_id
        added_ids = set()
        for scan in new_scans:
            if scan.path in moved_paths:
                continue
            working[next_id] = TrackRecord(
                id=next_id,
                file_path=scan.path,
                fingerprint=scan.fingerprint,
                metadata=scan.metadata,
                file_size=scan.file_size,
                file_mtime=scan.file_mtime,
                scanned_at=now,
                indexed_generation=next_generation,
            )
            touched_ids.add(next_id)
            added_ids.add(next_id)
            next_id += 1

        candidates = [working[track_id] for track_id in sorted(working)]
        clusters = find_clusters(candidates, self.ctx.similarity_threshold)
        marked = mark_duplicates(clusters, working)
        self._check_cancelled(summary)

        self._set_state(ScanState.RECONCILING)
        reconciled: dict[int, TrackRecord] = {}
        for cluster in clusters:
            reconciled.update(reconcile_cluster(cluster, marked))

        changed = []
        for track_id in sorted(reconciled):
            record = reconciled[track_id]
            previous = index.get(track_id)
            if previous is not None and previous.same_content(record):
                continue
            changed.append(record.model_copy(update={"scanned_at": now}))
        changed_ids = {record.id for record in changed}

        summary.added = len(added_ids)
        summary.moved = len(moved_ids)
        summary.updated = len(updated_ids & changed_ids)
        summary.removed = len(removed_ids)
        summary.duplicates_merged = sum(
            1 for track_id in touched_ids if not reconciled[track_id].is_canonical
        )

        if not changed and not removed_ids:
            logger.info(f"Scan pass found no changes, generation stays {index.generation}")
            return summary

        self._check_cancelled(summary)
        new_index = index.with_changes(next_generation, changed, removed_ids, next_id=next_id)

        database = self.ctx.database
        if database is not None and not database.commit(new_index, changed_ids, removed_ids):
            raise ScanFailed("failed to persist the library index", summary)

        with self._state_lock:
            self._index = new_index
        summary.generation = next_generation
        summary.committed = True
        self._set_state(ScanState.COMMITTED)

        logger.info(
            f"Committed generation {next_generation}: {summary.added} added, {summary.updated} updated, "
            f"{summary.moved} moved, {summary.removed} removed, {summary.duplicates_merged} duplicates, "
            f"{summary.failed_count} failed"
        )
        return summary

    def _scan_files(self, paths: list[Path], summary: ScanSummary) -> dict[Path, FileScan]:
        results: dict[Path, FileScan] = {}
        if not paths:
            return results

        executor = ThreadPoolExecutor(max_workers=min(self.ctx.max_workers, len(paths)))
        try:
            future_to_path = {executor.submit(scan_file, path, self.ctx): path for path in paths}
            for future in as_completed(future_to_path):
                if self._cancel_requested.is_set():
                    break
                path = future_to_path[future]
                try:
                    results[path] = future.result()
                except (UnreadableMetadata, FingerprintUnavailable) as e:
                    logger.warning(f"Skipping {path}: {e}")
                    summary.failed[str(path)] = e.reason
                except Exception as e:
                    logger.exception(f"Unexpected error scanning {path}")
                    summary.failed[str(path)] = f"{type(e).__name__}: {e}"
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
        return results
