"""Inoreader sync: server pull, reconciliation, conflicts and local push."""

from .bidirectional import BiDirectionalSyncService, PushResult, push_service
from .conflict_detector import SyncConflictDetector, local_changes_win
from .reconciliation import ReconciliationResult, reconcile_batch
from .server_sync import perform_server_sync

__all__ = [
    "BiDirectionalSyncService",
    "PushResult",
    "ReconciliationResult",
    "SyncConflictDetector",
    "local_changes_win",
    "perform_server_sync",
    "push_service",
    "reconcile_batch",
]
