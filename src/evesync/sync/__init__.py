"""
Synchronization & freshness-reconciliation engine.

Usage:
    from evesync.sync import SyncOrchestrator

    sync = SyncOrchestrator(remote, store, credentials=provider)
    key = await sync.update_key(key)
"""

from .freshness import FetchOptions, FreshnessPolicy, needs_refetch
from .metrics import MarketMetricsCalculator, MarketSummary, calculate_summary
from .normalizer import Shape, classify, flatten_content
from .orchestrator import (
    CharacterUpdateResult,
    KeySyncResult,
    SyncOrchestrator,
    gather_all,
)
from .reconciler import ReconcileStrategy, RelationReconciler

__all__ = [
    # Normalizer
    "Shape",
    "classify",
    "flatten_content",
    # Freshness
    "FetchOptions",
    "FreshnessPolicy",
    "needs_refetch",
    # Metrics
    "MarketMetricsCalculator",
    "MarketSummary",
    "calculate_summary",
    # Reconciler
    "ReconcileStrategy",
    "RelationReconciler",
    # Orchestrator
    "CharacterUpdateResult",
    "KeySyncResult",
    "SyncOrchestrator",
    "gather_all",
]
