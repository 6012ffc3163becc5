"""Structured audit logger for JSONL event logging.

Every load cycle, source outcome and retry decision of a running library is
appended to a JSONL file, one event per line, flushed after each write.
"""

import json
from collections.abc import Sequence
from dataclasses import asdict
from pathlib import Path
from typing import Any

from citeshelf.audit.helpers import generate_run_id
from citeshelf.audit.models import LogEvent
from citeshelf.utils import get_iso_timestamp

__all__ = ["AuditLogger"]

# Warning lists are truncated in events to keep lines bounded
MAX_LOGGED_WARNINGS = 20


class AuditLogger:
    """JSONL audit logger with persistent file handle.

    Attributes
    ----------
    run_id : str
        Unique run identifier.
    log_path : Path
        Path to JSONL log file.
    cycle : int | None
        Current load cycle number for context.
    """

    def __init__(self, run_id: str | None, log_path: Path) -> None:
        """Initialize audit logger and open file handle.

        Parameters
        ----------
        run_id : str | None
            Unique run identifier, generated when None.
        log_path : Path
            Path to JSONL log file. Parent directories are created.
        """
        self.run_id = run_id or generate_run_id()
        self.log_path = Path(log_path)
        self.cycle: int | None = None

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.log_path.open("a", encoding="utf-8")

    def __enter__(self) -> "AuditLogger":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager and close file."""
        self.close()

    @property
    def closed(self) -> bool:
        return self._file.closed

    def close(self) -> None:
        """Flush and close the log file handle."""
        if not self._file.closed:
            self._file.flush()
            self._file.close()

    def event(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        level: str = "INFO",
        source: str | None = None,
    ) -> None:
        """Write structured event to log.

        Parameters
        ----------
        event_type : str
            Event type identifier (e.g., "load_started").
        data : dict[str, Any] | None, optional
            Event-specific data payload.
        level : str, optional
            Log level ("DEBUG", "INFO", "WARN", "ERROR").
        source : str | None, optional
            Data source name if the event is source-specific.
        """
        if self._file.closed:
            return

        log_event = LogEvent(
            ts=get_iso_timestamp(),
            run_id=self.run_id,
            level=level,
            event=event_type,
            data=data or {},
            source=source,
            cycle=self.cycle,
        )
        self._write_event(log_event)

    def _write_event(self, event: LogEvent) -> None:
        json.dump(asdict(event), self._file, ensure_ascii=False, separators=(",", ":"), default=str)
        self._file.write("\n")
        self._file.flush()

    def load_started(self, cycle: int, sources: Sequence[str]) -> None:
        """Log load_started event and enter the cycle context.

        Parameters
        ----------
        cycle : int
            Load cycle number.
        sources : Sequence[str]
            Names of the sources about to load.
        """
        self.cycle = cycle
        self.event("load_started", data={"sources": list(sources)})

    def source_loaded(
        self,
        source: str,
        entries: int,
        duration_seconds: float,
        sha256: str | None = None,
    ) -> None:
        """Log source_loaded event.

        Parameters
        ----------
        source : str
            Source name.
        entries : int
            Number of entries produced.
        duration_seconds : float
            Time spent loading the source.
        sha256 : str | None, optional
            Digest of the file content that was parsed.
        """
        data: dict[str, Any] = {"entries": entries, "duration_seconds": duration_seconds}
        if sha256 is not None:
            data["sha256"] = sha256
        self.event("source_loaded", data=data, source=source)

    def source_failed(self, source: str, exc: BaseException) -> None:
        """Log source_failed event for a source excluded from the cycle."""
        self.event(
            "source_failed",
            data={"exception_class": type(exc).__name__, "message": str(exc)},
            level="WARN",
            source=source,
        )

    def parse_warnings(self, source: str, warnings: Sequence[str]) -> None:
        """Log non-fatal parser warnings of one source.

        Parameters
        ----------
        source : str
            Source name.
        warnings : Sequence[str]
            Parser warnings; at most ``MAX_LOGGED_WARNINGS`` are written.
        """
        if not warnings:
            return
        self.event(
            "parse_warnings",
            data={"count": len(warnings), "warnings": list(warnings[:MAX_LOGGED_WARNINGS])},
            level="WARN",
            source=source,
        )

    def load_finished(
        self,
        status: str,
        duration_seconds: float,
        entries: int | None = None,
        failed_sources: Sequence[str] = (),
        collisions: int | None = None,
    ) -> None:
        """Log load_finished event.

        Parameters
        ----------
        status : str
            Cycle status ("success", "error").
        duration_seconds : float
            Total cycle time in seconds.
        entries : int | None, optional
            Size of the merged library.
        failed_sources : Sequence[str], optional
            Sources that failed in a partially successful cycle.
        collisions : int | None, optional
            Number of citekeys re-keyed with their source name.
        """
        data: dict[str, Any] = {"status": status, "duration_seconds": duration_seconds}
        if entries is not None:
            data["entries"] = entries
        if failed_sources:
            data["failed_sources"] = list(failed_sources)
        if collisions is not None:
            data["collisions"] = collisions
        self.event("load_finished", data=data, level="INFO" if status == "success" else "ERROR")

    def retry_scheduled(self, attempt: int, delay_seconds: float) -> None:
        """Log retry_scheduled event."""
        self.event("retry_scheduled", data={"attempt": attempt, "delay_seconds": delay_seconds})

    def error(
        self,
        exception_class: str,
        message: str,
        source: str | None = None,
        traceback: str | None = None,
    ) -> None:
        """Log error event.

        Parameters
        ----------
        exception_class : str
            Exception class name.
        message : str
            Error message.
        source : str | None, optional
            Source where the error occurred.
        traceback : str | None, optional
            Stack trace (only in debug mode).
        """
        data: dict[str, Any] = {"exception_class": exception_class, "message": message}
        if traceback is not None:
            data["traceback"] = traceback
        self.event("error", data=data, source=source, level="ERROR")
