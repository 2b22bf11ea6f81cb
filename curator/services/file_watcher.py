from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
from pathlib import Path
import logging
import os
import threading
import time
from typing import Callable

from curator.core.errors import CuratorError, ScanInProgress
from curator.core.media_types import is_music_file
from curator.models.scan_event import ScanEvent, ScanEventKind

logger = logging.getLogger(__name__)


class FileWatcher(FileSystemEventHandler):
    """
    Watches the library directory and hands batches of ScanEvents to ``on_events``.

    Events are buffered and flushed together once no new event arrived for
    ``debounce_delay`` seconds, so copying an album produces one scan pass.
    """

    def __init__(
        self,
        library_dir: Path,
        on_events: Callable[[list[ScanEvent]], object],
        debounce_delay: float = 5.0,
    ):
        self.library_dir = library_dir
        self.on_events = on_events
        self.debounce_delay = debounce_delay
        self.observer = None
        self.pending: list[ScanEvent] = []
        self.lock = threading.Lock()
        self.debounce_timer: threading.Timer | None = None

    def on_created(self, event):
        self._queue(event, ScanEventKind.ADDED)

    def on_modified(self, event):
        self._queue(event, ScanEventKind.MODIFIED)

    def on_deleted(self, event):
        self._queue(event, ScanEventKind.REMOVED)

    def on_moved(self, event):
        if event.is_directory:
            return
        self._queue_path(Path(event.src_path), ScanEventKind.REMOVED)
        self._queue_path(Path(event.dest_path), ScanEventKind.ADDED)

    def _queue(self, event, kind: ScanEventKind):
        if event.is_directory:
            return
        self._queue_path(Path(event.src_path), kind)

    def _queue_path(self, path: Path, kind: ScanEventKind):
        if not is_music_file(path):
            return
        with self.lock:
            self.pending.append(ScanEvent(kind, path))
        self._arm_timer()

    def _arm_timer(self):
        with self.lock:
            if self.debounce_timer is not None:
                self.debounce_timer.cancel()
            self.debounce_timer = threading.Timer(self.debounce_delay, self.flush)
            self.debounce_timer.daemon = True
            self.debounce_timer.start()

    def start_file_watcher(self):
        if self.observer is None or not self.observer.is_alive():
            self.observer = Observer()
            self.observer.schedule(self, str(self.library_dir), recursive=True)
            self.observer.start()
            logger.info(f"File watcher started for {self.library_dir}")

    def stop_file_watcher(self):
        with self.lock:
            if self.debounce_timer is not None:
                self.debounce_timer.cancel()
                self.debounce_timer = None
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None
            logger.info("File watcher stopped")

    def take_ready_events(self) -> tuple[list[ScanEvent], list[ScanEvent]]:
        """Split the buffer into events that can be scanned now and ones still being written."""
        with self.lock:
            events = self.pending
            self.pending = []

        ready, waiting = [], []
        for event in events:
            if event.kind == ScanEventKind.REMOVED or wait_until_ready(event.path):
                ready.append(event)
            elif os.path.exists(event.path):
                waiting.append(event)
            else:
                logger.debug(f"Dropping event for vanished file {event.path}")
        return ready, waiting

    def flush(self) -> bool:
        ready, waiting = self.take_ready_events()
        if not ready:
            self._requeue(waiting)
            return False

        try:
            self.on_events(ready)
        except ScanInProgress:
            logger.info("Scan already in progress, retrying watcher batch later")
            self._requeue(ready + waiting)
            return False
        except CuratorError as e:
            logger.warning(f"Watcher scan pass did not commit: {e}")
            self._requeue(waiting)
            return False

        self._requeue(waiting)
        return True

    def _requeue(self, events: list[ScanEvent]):
        if not events:
            return
        with self.lock:
            self.pending = events + self.pending
        self._arm_timer()


def wait_until_ready(path: Path) -> bool:
    if not wait_until_stable(path):
        return False
    return can_open_for_read(path)


def wait_until_stable(path: str | Path, timeout: float = 60, interval: float = 0.2) -> bool:
    start_time = time.time()

    logger.debug(f"Starting stable check for {path}")

    if os.path.isdir(path):
        return False

    last_size = -1
    last_mtime = -1
    while time.time() - start_time < timeout:
        if not os.path.exists(path):
            return False
        try:
            current_size = os.path.getsize(path)
            current_mtime = os.path.getmtime(path)
        except FileNotFoundError:
            return False
        except OSError:
            # Permission errors / transient filesystem issues should be treated as "not stable yet".
            return False

        if current_size == last_size and current_mtime == last_mtime:
            logger.debug(f"File {path} is stable")
            return True

        last_size = current_size
        last_mtime = current_mtime
        time.sleep(interval)

    return False


def can_open_for_read(path: Path):
    if os.path.isdir(path):
        return False
    if not os.path.exists(path):
        return False
    try:
        with open(path, "rb"):
            return True
    except OSError:
        return False
