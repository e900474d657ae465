"""
Local Cache Package

Provides the abstract cache interface and the file and in-memory backends.
"""

from fluxcash.services.cache.interface import (
    CacheError,
    LocalCacheInterface,
    day_key,
    entity_key,
)
from fluxcash.services.cache.file_cache import FileCache
from fluxcash.services.cache.memory import InMemoryCache

__all__ = [
    "CacheError",
    "FileCache",
    "InMemoryCache",
    "LocalCacheInterface",
    "day_key",
    "entity_key",
]
