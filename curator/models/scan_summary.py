from enum import Enum

from pydantic import BaseModel, Field


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    RESOLVING = "resolving"
    RECONCILING = "reconciling"
    COMMITTED = "committed"


class ScanSummary(BaseModel):
    generation: int
    committed: bool = False
    added: int = 0
    updated: int = 0
    moved: int = 0
    removed: int = 0
    duplicates_merged: int = 0
    failed: dict[str, str] = Field(default_factory=dict)
    # (old path, new path) pairs, for tools that keep their own path lists.
    moves: list[tuple[str, str]] = Field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed)
