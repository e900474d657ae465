"""
Abstract Local Cache Interface

DESIGN DECISION: The cache is a dumb namespaced key-value store of
serialized snapshots. It knows nothing about ledger entities; the ledger
store decides what to write and how to parse it back.

Keys are partitioned by user so two identities never share an entry:
- "<entity-kind>_<user_id>" for ledger snapshots
- "<user_id>_<YYYY-MM-DD>" for day-scoped mission completions
"""

import re
from abc import ABC, abstractmethod
from typing import Iterable, Optional


def entity_key(kind: str, user_id: str) -> str:
    """Cache key of a ledger snapshot."""
    return f"{kind}_{user_id}"


def day_key(user_id: str, day: str) -> str:
    """Cache key of a day-scoped record."""
    return f"{user_id}_{day}"


class LocalCacheInterface(ABC):
    """
    Abstract interface for local durable cache operations.

    Any cache implementation (files, in-memory, sqlite...) must
    implement these methods.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """
        Read a serialized blob.

        Returns:
            The blob, or None if the key is absent

        Raises:
            CacheError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def write(self, key: str, blob: str) -> None:
        """
        Write (overwrite) a serialized blob.

        Raises:
            CacheError: If the backend cannot be written
        """
        pass

    @abstractmethod
    def clear(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """All keys currently stored."""
        pass

    def purge_user(self, user_id: str, namespaces: Iterable[str]) -> int:
        """
        Remove every entry scoped to a user.

        Only exact keys are removed: the entity key of each namespace and
        the user's day keys. Kinds and user ids may both contain "_", so
        prefix or suffix matching would reach into other users' entries.

        Args:
            user_id: Owner of the entries
            namespaces: Entity-key prefixes the caller writes

        Returns:
            Number of keys removed
        """
        targets = {entity_key(namespace, user_id) for namespace in namespaces}
        day_pattern = re.compile(rf"{re.escape(user_id)}_\d{{4}}-\d{{2}}-\d{{2}}")
        removed = 0
        for key in self.keys():
            if key in targets or day_pattern.fullmatch(key):
                self.clear(key)
                removed += 1
        return removed


class CacheError(Exception):
    """Base exception for cache operations."""
    pass
