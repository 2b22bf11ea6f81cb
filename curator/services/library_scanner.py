"""Turn the current state of a music directory into scan events.

Walks the tree, compares what is on disk with the committed index and reports
only the differences, so an unchanged directory produces an empty batch.
"""

import logging
import os
from pathlib import Path

from curator.core.media_types import is_music_file
from curator.models.scan_event import ScanEvent
from curator.services.library_index import LibraryIndex

logger = logging.getLogger(__name__)


def list_audio_files(root: Path) -> list[Path]:
    audio_files = []
    for directory, _, filenames in os.walk(root):
        for filename in filenames:
            file_path = Path(directory) / filename
            if is_music_file(file_path):
                audio_files.append(file_path)
    return sorted(audio_files)


def file_stats(path: Path) -> tuple[int, float] | None:
    try:
        stat = path.stat()
    except OSError:
        return None
    return stat.st_size, stat.st_mtime


def diff_directory(root: Path, index: LibraryIndex) -> list[ScanEvent]:
    root = Path(root)
    if not root.is_dir():
        logger.warning(f"Library directory {root} does not exist")
        return []

    events: list[ScanEvent] = []
    on_disk = set()
    for path in list_audio_files(root):
        on_disk.add(path)
        record = index.record_for_path(path)
        if record is None:
            events.append(ScanEvent.added(path))
            continue
        stats = file_stats(path)
        if stats is None:
            continue
        if (record.file_size, record.file_mtime) != stats:
            events.append(ScanEvent.modified(path))

    for path in index.paths():
        if path in on_disk:
            continue
        if not path.is_relative_to(root):
            continue
        events.append(ScanEvent.removed(path))

    events.sort(key=lambda event: str(event.path))
    logger.debug(f"Directory diff of {root}: {len(events)} events")
    return events
