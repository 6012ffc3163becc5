"""Error taxonomy for library loading.

Per-source failures (``IntegrityError``, ``ParseError``) are converted into
values at the source boundary by the orchestrator. Only
``AllSourcesFailedError`` and ``LoadTimeoutError`` end up in the published
library state.
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "LibraryError",
    "IntegrityError",
    "ParseError",
    "LoadTimeoutError",
    "AllSourcesFailedError",
    "CancellationError",
    "ConfigurationError",
]


class LibraryError(Exception):
    """Base class for all citeshelf errors."""


class IntegrityError(LibraryError):
    """Raised when a source file is missing or empty."""

    def __init__(self, message: str, source: str | None = None) -> None:
        """Initialize integrity error.

        Parameters
        ----------
        message : str
            Error message.
        source : str | None, optional
            Path of the offending file.
        """
        super().__init__(message)
        self.source = source


class ParseError(LibraryError):
    """Raised when a database cannot be parsed as a whole.

    Non-fatal per-record problems never raise; they are reported as
    warnings alongside the parsed records.
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        errors: Sequence[str] = (),
        warnings: Sequence[str] = (),
    ) -> None:
        """Initialize parse error.

        Parameters
        ----------
        message : str
            Error message.
        source : str | None, optional
            Path of the file being parsed.
        errors : Sequence[str], optional
            Fatal parser messages.
        warnings : Sequence[str], optional
            Non-fatal parser messages collected before the failure.
        """
        super().__init__(message)
        self.source = source
        self.errors = tuple(errors)
        self.warnings = tuple(warnings)


class LoadTimeoutError(LibraryError, TimeoutError):
    """Raised when a load cycle exceeds its time limit."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Loading the library timed out after {timeout:g} seconds")
        self.timeout = timeout


class AllSourcesFailedError(LibraryError):
    """Raised when every configured source failed to load.

    The message is taken from the first failing source, in configuration
    order.
    """

    def __init__(self, errors: Sequence[tuple[str, BaseException]]) -> None:
        """Initialize aggregate failure.

        Parameters
        ----------
        errors : Sequence[tuple[str, BaseException]]
            ``(source name, exception)`` pairs, in configuration order.
        """
        self.errors = tuple(errors)
        if self.errors:
            name, first = self.errors[0]
            message = f"All sources failed to load ({name}: {first})"
        else:
            message = "No sources configured"
        super().__init__(message)


class CancellationError(LibraryError):
    """Raised when an operation was superseded or disposed."""

    def __init__(self, reason: str = "Operation cancelled") -> None:
        super().__init__(reason)
        self.reason = reason


class ConfigurationError(LibraryError, ValueError):
    """Raised when the library configuration is invalid."""
