"""Common utility functions for citeshelf.

Timestamps, content digests, cancellation tokens and debouncing shared
across the codebase.
"""

from citeshelf.utils.cancellation import CancellationToken
from citeshelf.utils.debounce import Debouncer
from citeshelf.utils.hashing import calculate_digest, format_sha256
from citeshelf.utils.timestamps import get_iso_timestamp, utc_now

__all__ = [
    "CancellationToken",
    "Debouncer",
    "calculate_digest",
    "format_sha256",
    "get_iso_timestamp",
    "utc_now",
]
