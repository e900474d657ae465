"""
FluxCash - Ledger Core Package

The client-resident ledger engine of the FluxCash personal-finance tracker.

DESIGN PRINCIPLES:
1. Show the user's intent immediately, reconcile with the remote later
2. The in-memory ledger is the source of truth once warm
3. Remote failures never block local edits, but are never hidden
4. Everything derived (aggregates, missions) is recomputed, never stored
5. Cache and remote backends are swappable
"""

__version__ = "1.0.0"
__author__ = "FluxCash Team"
