"""Scheduler module for view reconciliation."""

from scheduler.reconcile import (
    RecomputeReason,
    ReconciliationScheduler,
    latest_archived_at,
)

__all__ = [
    "RecomputeReason",
    "ReconciliationScheduler",
    "latest_archived_at",
]
