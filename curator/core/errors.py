from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from curator.models.scan_summary import ScanSummary


class CuratorError(Exception):
    pass


class UnreadableMetadata(CuratorError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class FingerprintUnavailable(CuratorError):
    def __init__(self, path: Path | None, reason: str):
        super().__init__(f"{path}: {reason}" if path is not None else reason)
        self.path = path
        self.reason = reason


class ReconciliationConflict(CuratorError):
    def __init__(self, canonical_id: int):
        super().__init__(f"cluster for canonical id {canonical_id} has no remaining members")
        self.canonical_id = canonical_id


class ScanInProgress(CuratorError):
    def __init__(self):
        super().__init__("a scan pass is already in progress")


class ScanFailed(CuratorError):
    def __init__(self, reason: str, summary: ScanSummary):
        super().__init__(reason)
        self.reason = reason
        self.summary = summary


class ScanCancelled(CuratorError):
    def __init__(self, summary: ScanSummary):
        super().__init__("scan pass cancelled before commit")
        self.summary = summary
