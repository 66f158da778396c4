"""Core comparison and synchronization data types."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional


class AnalysisMode(str, Enum):
    FULL = "full"
    QUICK = "quick"
    GIT = "git"


class Recommendation(str, Enum):
    UNKNOWN = "unknown"
    IN_SYNC = "in_sync"
    SYNC_TO_REMOTE = "sync_to_remote"
    SYNC_TO_LOCAL = "sync_to_local"


class Direction(str, Enum):
    TO_REMOTE = "to-remote"
    TO_LOCAL = "to-local"


class Purpose(str, Enum):
    ANALYSIS = "analysis"
    SYNC = "sync"


class EntryKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"


@dataclass(frozen=True)
class FileEntry:
    """Metadata of one tracked file, relative to its tree root."""

    path: str
    size: int
    mtime: float

    def __post_init__(self) -> None:
        normalized = normalize_relative_path(self.path)
        object.__setattr__(self, "path", normalized)
        if self.size < 0:
            raise ValueError(f"File size must not be negative: {self.path}")


@dataclass(frozen=True)
class CommitInfo:
    """Latest commit of a repository."""

    hash: str
    timestamp: float

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


@dataclass
class ComparisonResult:
    """Outcome of one analysis pass."""

    recommendation: Recommendation = Recommendation.UNKNOWN
    newer_local: List[str] = field(default_factory=list)
    newer_remote: List[str] = field(default_factory=list)
    local_only: List[str] = field(default_factory=list)
    remote_only: List[str] = field(default_factory=list)
    error: Optional[str] = None
    early_decision: bool = False
    local_case_map: Dict[str, str] = field(default_factory=dict)
    remote_case_map: Dict[str, str] = field(default_factory=dict)
    local_example: str = ""
    remote_example: str = ""
    local_commit: Optional[CommitInfo] = None
    remote_commit: Optional[CommitInfo] = None

    @classmethod
    def failed(cls, message: str) -> "ComparisonResult":
        return cls(recommendation=Recommendation.UNKNOWN, error=message)

    @property
    def newer_local_count(self) -> int:
        return len(self.newer_local)

    @property
    def newer_remote_count(self) -> int:
        return len(self.newer_remote)

    @property
    def local_only_count(self) -> int:
        return len(self.local_only)

    @property
    def remote_only_count(self) -> int:
        return len(self.remote_only)

    @property
    def total_local_needs_sync(self) -> int:
        return self.newer_local_count + self.local_only_count

    @property
    def total_remote_needs_sync(self) -> int:
        return self.newer_remote_count + self.remote_only_count


@dataclass
class SyncPlan:
    """Paths to transfer and delete so the destination mirrors the source."""

    direction: Direction
    transfers: List[FileEntry] = field(default_factory=list)
    to_delete: List[str] = field(default_factory=list)

    @property
    def to_transfer(self) -> List[str]:
        return [entry.path for entry in self.transfers]

    @property
    def is_empty(self) -> bool:
        return not self.transfers and not self.to_delete


def normalize_relative_path(path: str | Path) -> str:
    """Normalize a path relative to the tree root."""
    normalized_input = str(path).replace("\\", "/")
    if re.match(r"^[A-Za-z]:", normalized_input):
        raise ValueError(f"Absolute paths are not allowed: {path}")
    candidate = PurePosixPath(normalized_input)
    if candidate.is_absolute():
        raise ValueError(f"Absolute paths are not allowed: {path}")
    parts = []
    for part in candidate.parts:
        if part in ("", "."):
            continue
        if part == "..":
            raise ValueError(f"Path escapes root: {path}")
        parts.append(part)
    if not parts:
        raise ValueError(f"Path does not name a file: {path!r}")
    return "/".join(parts)


def is_portable_name(name: str) -> bool:
    """True when ``name`` can appear in a relative path that maps back to the same file."""
    return "\\" not in name and not re.match(r"^[A-Za-z]:", name)


def fold_case_map(paths) -> Dict[str, str]:
    """Map lower-cased paths to their original spelling (first one wins)."""
    folded: Dict[str, str] = {}
    for path in paths:
        folded.setdefault(path.lower(), path)
    return folded


__all__ = [
    "AnalysisMode",
    "CommitInfo",
    "ComparisonResult",
    "Direction",
    "EntryKind",
    "FileEntry",
    "Purpose",
    "Recommendation",
    "SyncPlan",
    "fold_case_map",
    "is_portable_name",
    "normalize_relative_path",
]
