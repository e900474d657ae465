"""
Ledger Package

The canonical in-memory ledger and its sync bookkeeping.
"""

from fluxcash.ledger.reconciliation import IdReconciler, OperationLog
from fluxcash.ledger.store import DEFAULT_CATEGORIES, LedgerStore

__all__ = [
    "DEFAULT_CATEGORIES",
    "IdReconciler",
    "LedgerStore",
    "OperationLog",
]
