"""Content digests for loaded source files."""

import hashlib

__all__ = ["format_sha256", "calculate_digest"]


def format_sha256(hex_digest: str) -> str:
    """Format SHA256 hash with standard prefix."""
    return f"sha256:{hex_digest}"


def calculate_digest(file_bytes: bytes) -> str:
    """Calculate SHA-256 digest of file bytes.

    Parameters
    ----------
    file_bytes : bytes
        Complete file content as bytes.

    Returns
    -------
    str
        SHA256 hash with "sha256:" prefix.
    """
    return format_sha256(hashlib.sha256(file_bytes).hexdigest())
