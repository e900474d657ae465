"""
Remote Sync Package

Provides the abstract remote contract and its concrete implementations.
Google Sheets is the production backend; the in-memory adapter serves
demo mode and tests.
"""

from fluxcash.services.remote.interface import (
    Record,
    RecordNotFoundError,
    RemoteConnectionError,
    RemoteSyncAdapter,
    RemoteSyncError,
    SessionInvalidError,
)
from fluxcash.services.remote.memory import InMemoryRemoteAdapter
from fluxcash.services.remote.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteAdapter,
)

__all__ = [
    # Interface
    "Record",
    "RemoteSyncAdapter",
    # Exceptions
    "RecordNotFoundError",
    "RemoteConnectionError",
    "RemoteSyncError",
    "SessionInvalidError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRemoteAdapter",
    "InMemoryRemoteAdapter",
]
