"""Data sources feeding the library.

- LocalFileSource: database file on the local filesystem
- VaultFileSource: database file inside a vault (see VaultStorage)
"""

from citeshelf.sources.base import DEFAULT_DEBOUNCE_DELAY, DataSource, FileSource
from citeshelf.sources.local_file import LocalFileSource
from citeshelf.sources.vault import (
    DirectoryVault,
    VaultFileSource,
    VaultStorage,
    normalize_vault_path,
)

__all__ = [
    "DEFAULT_DEBOUNCE_DELAY",
    "DataSource",
    "DirectoryVault",
    "FileSource",
    "LocalFileSource",
    "VaultFileSource",
    "VaultStorage",
    "normalize_vault_path",
]
