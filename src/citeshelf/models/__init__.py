"""Shared data types for citeshelf.

Format-specific entry implementations live in :mod:`citeshelf.adapters`.
"""

from citeshelf.models.entry import Author, DatabaseFormat, Entry
from citeshelf.models.library import (
    Library,
    LibraryState,
    LoadingStatus,
    LoadProgress,
    MergeStrategy,
)

__all__ = [
    "Author",
    "DatabaseFormat",
    "Entry",
    "Library",
    "LibraryState",
    "LoadingStatus",
    "LoadProgress",
    "MergeStrategy",
]
