"""Library configuration.

A library is configured with an ordered list of databases plus loading
policy. Configuration can be built in code or read from a JSON settings
file validated against :data:`CONFIG_SCHEMA`::

    {
      "databases": [
        {"name": "Main", "path": "library.json", "format": "csl-json"},
        {"name": "Thesis", "path": "thesis.bib", "format": "biblatex"}
      ],
      "merge_strategy": "last-wins",
      "load_timeout": 30
    }
"""

import json
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

import jsonschema

from citeshelf.errors import ConfigurationError
from citeshelf.models import DatabaseFormat, MergeStrategy

__all__ = [
    "CONFIG_SCHEMA",
    "MAX_DATABASES",
    "DatabaseConfig",
    "LibraryConfig",
    "SourceKind",
    "load_config",
]

MAX_DATABASES = 20


class SourceKind(StrEnum):
    """How a database file is accessed."""

    LOCAL_FILE = "local-file"
    VAULT_FILE = "vault-file"


CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "citeshelf library configuration",
    "type": "object",
    "additionalProperties": False,
    "required": ["databases"],
    "properties": {
        "databases": {
            "type": "array",
            "maxItems": MAX_DATABASES,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["name", "path", "format"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "path": {"type": "string", "minLength": 1},
                    "format": {"enum": [f.value for f in DatabaseFormat]},
                    "source": {"enum": [k.value for k in SourceKind]},
                },
            },
        },
        "merge_strategy": {"enum": [s.value for s in MergeStrategy]},
        "base_dir": {"type": ["string", "null"]},
        "load_timeout": {"type": "number", "exclusiveMinimum": 0},
        "retry_base_delay": {"type": "number", "minimum": 0},
        "retry_max_delay": {"type": "number", "minimum": 0},
        "max_retries": {"type": "integer", "minimum": 0},
        "debounce_delay": {"type": "number", "minimum": 0},
    },
}


@dataclass(frozen=True)
class DatabaseConfig:
    """One configured database.

    Attributes
    ----------
    name : str
        Display name; also the suffix of composite keys.
    path : str
        File path (local) or vault-relative path.
    format : DatabaseFormat
        Database format.
    source : SourceKind
        How the file is accessed.
    """

    name: str
    path: str
    format: DatabaseFormat
    source: SourceKind = SourceKind.LOCAL_FILE

    def __post_init__(self) -> None:
        """Coerce enums and validate."""
        if not self.name.strip():
            raise ConfigurationError("Database name must not be empty")
        if not str(self.path).strip():
            raise ConfigurationError(f"Database {self.name!r} has an empty path")
        try:
            object.__setattr__(self, "format", DatabaseFormat(self.format))
        except ValueError:
            raise ConfigurationError(
                f"Database {self.name!r} has unsupported format: {self.format}"
            ) from None
        try:
            object.__setattr__(self, "source", SourceKind(self.source))
        except ValueError:
            raise ConfigurationError(
                f"Database {self.name!r} has unsupported source: {self.source}"
            ) from None
        object.__setattr__(self, "path", str(self.path))


@dataclass
class LibraryConfig:
    """Configuration for a library and its load cycles.

    Attributes
    ----------
    databases : list[DatabaseConfig]
        Databases in load order (at most ``MAX_DATABASES``).
    merge_strategy : MergeStrategy
        Policy for residual key collisions (default: last-wins).
    base_dir : Path | None
        Directory relative local paths resolve against.
    load_timeout : float
        Seconds a load cycle may take before it fails (default: 30).
    retry_base_delay : float
        Delay before the first automatic retry, in seconds (default: 1).
    retry_max_delay : float
        Upper bound of the retry delay, in seconds (default: 60).
    max_retries : int
        Automatic retries after consecutive failures (default: 5).
    debounce_delay : float
        Quiet period before a file change triggers a reload (default: 1).
    """

    databases: list[DatabaseConfig] = field(default_factory=list)
    merge_strategy: MergeStrategy = MergeStrategy.LAST_WINS
    base_dir: Path | None = None
    load_timeout: float = 30.0
    retry_base_delay: float = 1.0
    retry_max_delay: float = 60.0
    max_retries: int = 5
    debounce_delay: float = 1.0

    def __post_init__(self) -> None:
        """Coerce values and validate."""
        self.databases = [
            db if isinstance(db, DatabaseConfig) else DatabaseConfig(**db) for db in self.databases
        ]
        try:
            self.merge_strategy = MergeStrategy(self.merge_strategy)
        except ValueError:
            raise ConfigurationError(f"Unknown merge strategy: {self.merge_strategy}") from None
        if self.base_dir is not None:
            self.base_dir = Path(self.base_dir)

        if len(self.databases) > MAX_DATABASES:
            raise ConfigurationError(
                f"At most {MAX_DATABASES} databases are supported, got {len(self.databases)}"
            )

        names = [db.name for db in self.databases]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate database names: {', '.join(duplicates)}")

        if self.load_timeout <= 0:
            raise ConfigurationError(f"load_timeout must be > 0, got {self.load_timeout}")

        if self.retry_base_delay < 0:
            raise ConfigurationError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")

        if self.retry_max_delay < self.retry_base_delay:
            raise ConfigurationError(
                f"retry_max_delay ({self.retry_max_delay}) must be >= "
                f"retry_base_delay ({self.retry_base_delay})"
            )

        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")

        if self.debounce_delay < 0:
            raise ConfigurationError(f"debounce_delay must be >= 0, got {self.debounce_delay}")

    def retry_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based), capped."""
        return min(self.retry_base_delay * 2 ** (attempt - 1), self.retry_max_delay)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["databases"] = [
            {**asdict(db), "format": str(db.format), "source": str(db.source)}
            for db in self.databases
        ]
        data["merge_strategy"] = str(self.merge_strategy)
        data["base_dir"] = str(self.base_dir) if self.base_dir is not None else None
        return data


def load_config(path: str | Path) -> LibraryConfig:
    """Read and validate a JSON settings file.

    Parameters
    ----------
    path : str | Path
        Settings file. When it sets no ``base_dir``, relative database
        paths resolve against the file's directory.

    Returns
    -------
    LibraryConfig
        Validated configuration.

    Raises
    ------
    ConfigurationError
        If the file cannot be read, is not JSON, or fails validation.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration {path} is not valid JSON: {e}") from e

    try:
        jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigurationError(f"Invalid configuration {path} at {location}: {e.message}") from e

    base_dir = data.get("base_dir")
    if base_dir is None:
        data["base_dir"] = path.parent.absolute()
    elif not Path(base_dir).is_absolute():
        data["base_dir"] = (path.parent / base_dir).absolute()
    return LibraryConfig(**data)
