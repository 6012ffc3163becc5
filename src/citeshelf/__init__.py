"""Citation library ingestion and reconciliation.

This package provides:
- Data models (citeshelf.models): entries, library and load state
- Adapters (citeshelf.adapters): CSL-JSON and BibLaTeX normalization
- Parsing (citeshelf.parse): raw database parsers and the parse worker
- Sources (citeshelf.sources): local and vault database files with watching
- Merge (citeshelf.merge): cross-source citekey reconciliation
- Search (citeshelf.search): in-memory full-text index
- Engine (citeshelf.engine): library orchestration, events and configuration
- Audit (citeshelf.audit): structured JSONL event logging
- CLI (citeshelf.cli): command-line interface
"""

__version__ = "0.1.0"

from citeshelf.engine import (
    DatabaseConfig,
    EventChannel,
    LibraryConfig,
    LibraryService,
    load_config,
)
from citeshelf.errors import (
    AllSourcesFailedError,
    CancellationError,
    ConfigurationError,
    IntegrityError,
    LibraryError,
    LoadTimeoutError,
    ParseError,
)
from citeshelf.merge import merge_sources
from citeshelf.models import (
    DatabaseFormat,
    Entry,
    Library,
    LibraryState,
    LoadingStatus,
    MergeStrategy,
)
from citeshelf.search import SearchService

__all__ = [
    "__version__",
    "AllSourcesFailedError",
    "CancellationError",
    "ConfigurationError",
    "DatabaseConfig",
    "DatabaseFormat",
    "Entry",
    "EventChannel",
    "IntegrityError",
    "Library",
    "LibraryConfig",
    "LibraryError",
    "LibraryService",
    "LibraryState",
    "LoadTimeoutError",
    "LoadingStatus",
    "MergeStrategy",
    "ParseError",
    "SearchService",
    "load_config",
    "merge_sources",
]
