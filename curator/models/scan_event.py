from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ScanEventKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass(frozen=True)
class ScanEvent:
    kind: ScanEventKind
    path: Path

    @classmethod
    def added(cls, path: Path) -> "ScanEvent":
        return cls(ScanEventKind.ADDED, Path(path))

    @classmethod
    def removed(cls, path: Path) -> "ScanEvent":
        return cls(ScanEventKind.REMOVED, Path(path))

    @classmethod
    def modified(cls, path: Path) -> "ScanEvent":
        return cls(ScanEventKind.MODIFIED, Path(path))
