"""Reconciliation of entries loaded from several sources."""

from citeshelf.merge.models import KeyCollision, MergeReport
from citeshelf.merge.reconcile import composite_key, merge_sources, reconcile

__all__ = [
    "KeyCollision",
    "MergeReport",
    "composite_key",
    "merge_sources",
    "reconcile",
]
