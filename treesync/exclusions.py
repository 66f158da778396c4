"""Exclusion rules deciding which files and folders are scanned or synced."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

from treesync import types

# Never synced, and therefore never analyzed either.
DEFAULT_FOLDERS_FROM_SYNC: tuple[str, ...] = (
    ".DS_Store",
    ".angular",
    ".github",
    ".idea",
    ".npmrc",
    ".pytest_cache",
    ".svn",
    ".vs",
    ".vscode",
    "Thumbs.db",
    "__pycache__",
    "bin",
    "build",
    "dist",
    "env",
    "node_modules",
    "non-code",
    "obj",
    "packages",
    "playwright-report",
    "test-results",
    "venv",
)
# Synced but hidden from analysis; repositories are compared in git mode instead.
DEFAULT_FOLDERS_FROM_ANALYSIS: tuple[str, ...] = (".git",)
DEFAULT_EXTENSIONS_FROM_SYNC: tuple[str, ...] = ("npmrc", "lock", "log", "sql", "sqlite", "sqlite3")
DEFAULT_EXTENSIONS_FROM_ANALYSIS: tuple[str, ...] = ()
DEFAULT_FILES_FROM_SYNC: tuple[str, ...] = ()
DEFAULT_FILES_FROM_ANALYSIS: tuple[str, ...] = ("readme.txt", ".ds_store", "thumbs.db", ".npmrc")


def _fold(values: Iterable[str], defaults: Iterable[str] = ()) -> FrozenSet[str]:
    folded = set()
    for value in [*defaults, *values]:
        cleaned = value.strip().lower()
        if cleaned:
            folded.add(cleaned)
    return frozenset(folded)


def _fold_extensions(values: Iterable[str], defaults: Iterable[str] = ()) -> FrozenSet[str]:
    return frozenset(ext.lstrip(".") for ext in _fold(values, defaults) if ext.lstrip("."))


@dataclass(frozen=True)
class ExclusionRules:
    """Case-insensitive exclusion sets with the built-in defaults merged in.

    Anything excluded from sync is also excluded from analysis, so a file that
    will never be transferred cannot show up as needing a sync.
    """

    extensions_from_sync: FrozenSet[str] = field(default_factory=frozenset)
    extensions_from_analysis: FrozenSet[str] = field(default_factory=frozenset)
    folders_from_sync: FrozenSet[str] = field(default_factory=frozenset)
    folders_from_analysis: FrozenSet[str] = field(default_factory=frozenset)
    files_from_sync: FrozenSet[str] = field(default_factory=frozenset)
    files_from_analysis: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        *,
        extensions_from_sync: Iterable[str] = (),
        extensions_from_analysis: Iterable[str] = (),
        folders_from_sync: Iterable[str] = (),
        folders_from_analysis: Iterable[str] = (),
        files_from_sync: Iterable[str] = (),
        files_from_analysis: Iterable[str] = (),
    ) -> "ExclusionRules":
        """Merge user supplied lists with the built-in defaults."""
        return cls(
            extensions_from_sync=_fold_extensions(extensions_from_sync, DEFAULT_EXTENSIONS_FROM_SYNC),
            extensions_from_analysis=_fold_extensions(extensions_from_analysis, DEFAULT_EXTENSIONS_FROM_ANALYSIS),
            folders_from_sync=_fold(folders_from_sync, DEFAULT_FOLDERS_FROM_SYNC),
            folders_from_analysis=_fold(folders_from_analysis, DEFAULT_FOLDERS_FROM_ANALYSIS),
            files_from_sync=_fold(files_from_sync, DEFAULT_FILES_FROM_SYNC),
            files_from_analysis=_fold(files_from_analysis, DEFAULT_FILES_FROM_ANALYSIS),
        )

    def folders_for(self, purpose: types.Purpose) -> FrozenSet[str]:
        if purpose == types.Purpose.SYNC:
            return self.folders_from_sync
        return self.folders_from_sync | self.folders_from_analysis

    def extensions_for(self, purpose: types.Purpose) -> FrozenSet[str]:
        if purpose == types.Purpose.SYNC:
            return self.extensions_from_sync
        return self.extensions_from_sync | self.extensions_from_analysis

    def files_for(self, purpose: types.Purpose) -> FrozenSet[str]:
        if purpose == types.Purpose.SYNC:
            return self.files_from_sync
        return self.files_from_sync | self.files_from_analysis

    def should_exclude(self, name: str, kind: types.EntryKind, purpose: types.Purpose) -> bool:
        """Return True when ``name`` is out of scope for ``purpose``."""
        lowered = name.lower()
        if kind == types.EntryKind.FOLDER:
            return lowered in self.folders_for(purpose)
        if lowered in self.files_for(purpose):
            return True
        extension = _extension_of(lowered)
        return bool(extension) and extension in self.extensions_for(purpose)


def _extension_of(name: str) -> str:
    # ".npmrc" has extension "npmrc".
    _, dot, suffix = name.rpartition(".")
    return suffix if dot else ""


__all__ = [
    "DEFAULT_EXTENSIONS_FROM_ANALYSIS",
    "DEFAULT_EXTENSIONS_FROM_SYNC",
    "DEFAULT_FILES_FROM_ANALYSIS",
    "DEFAULT_FILES_FROM_SYNC",
    "DEFAULT_FOLDERS_FROM_ANALYSIS",
    "DEFAULT_FOLDERS_FROM_SYNC",
    "ExclusionRules",
]
