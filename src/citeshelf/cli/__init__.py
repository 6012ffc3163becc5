"""Command-line interface for citeshelf."""

from citeshelf.cli.main import cli

__all__ = ["cli"]
