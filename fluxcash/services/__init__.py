"""Services package."""

from fluxcash.services.cache import (
    CacheError,
    FileCache,
    InMemoryCache,
    LocalCacheInterface,
)
from fluxcash.services.remote import (
    GoogleSheetsClient,
    GoogleSheetsRemoteAdapter,
    InMemoryRemoteAdapter,
    RecordNotFoundError,
    RemoteConnectionError,
    RemoteSyncAdapter,
    RemoteSyncError,
    SessionInvalidError,
)

__all__ = [
    # Cache services
    "CacheError",
    "FileCache",
    "InMemoryCache",
    "LocalCacheInterface",
    # Remote services
    "GoogleSheetsClient",
    "GoogleSheetsRemoteAdapter",
    "InMemoryRemoteAdapter",
    "RecordNotFoundError",
    "RemoteConnectionError",
    "RemoteSyncAdapter",
    "RemoteSyncError",
    "SessionInvalidError",
]
