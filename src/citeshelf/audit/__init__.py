"""Audit logging subsystem for citeshelf.

Main Components
---------------
- AuditLogger: JSONL event logger
- LogEvent: structured event record
"""

from citeshelf.audit.helpers import generate_run_id
from citeshelf.audit.logger import AuditLogger
from citeshelf.audit.models import LogEvent

__all__ = [
    "AuditLogger",
    "LogEvent",
    "generate_run_id",
]
