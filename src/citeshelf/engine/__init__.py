"""Library orchestration engine.

This package provides the library service that loads, merges, indexes and
watches the configured databases, together with its configuration and event
channel.
"""

from citeshelf.engine.config import (
    CONFIG_SCHEMA,
    DatabaseConfig,
    LibraryConfig,
    SourceKind,
    load_config,
)
from citeshelf.engine.events import (
    LOAD_COMPLETE,
    LOAD_START,
    STATE_CHANGED,
    EventChannel,
    Subscription,
)
from citeshelf.engine.library import LibraryService, SourceOutcome

__all__ = [
    "CONFIG_SCHEMA",
    "LOAD_COMPLETE",
    "LOAD_START",
    "STATE_CHANGED",
    "DatabaseConfig",
    "EventChannel",
    "LibraryConfig",
    "LibraryService",
    "SourceKind",
    "SourceOutcome",
    "Subscription",
    "load_config",
]
