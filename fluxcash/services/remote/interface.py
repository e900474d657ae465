"""
Abstract Remote Sync Interface

DESIGN DECISION: The ledger core depends only on this contract, never on
a specific backend. This allows us to:
1. Run against Google Sheets in production
2. Use an in-memory remote for demo mode and tests
3. Swap in any other service without touching the ledger store

The interface is intentionally small: per entity kind, insert / update /
delete / list. Records are plain dicts in the remote's snake_case shape.
The remote is the authority for identifiers: `insert` returns the record
with its server-assigned `id`.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from fluxcash.models.ledger import EntityKind


Record = dict[str, Any]


class RemoteSyncAdapter(ABC):
    """
    Abstract interface for remote persistence.

    Any backend (Google Sheets, REST service, database) must implement
    these methods. All of them are coroutines.
    """

    @abstractmethod
    async def insert(self, kind: EntityKind, record: Record) -> Record:
        """
        Insert a record.

        Args:
            kind: Target collection
            record: Payload without an id (must carry user_id)

        Returns:
            The stored record including its server-assigned id

        Raises:
            RemoteSyncError: If the write was rejected
            SessionInvalidError: If the session is no longer valid
        """
        pass

    @abstractmethod
    async def update(self, kind: EntityKind, record_id: str, patch: Record) -> None:
        """
        Apply a partial update to a record.

        Raises:
            RecordNotFoundError: If the record doesn't exist
            RemoteSyncError: If the write was rejected
            SessionInvalidError: If the session is no longer valid
        """
        pass

    @abstractmethod
    async def delete(self, kind: EntityKind, record_id: str) -> None:
        """
        Delete a record. Deleting an absent record is not an error.

        Raises:
            RemoteSyncError: If the delete was rejected
            SessionInvalidError: If the session is no longer valid
        """
        pass

    @abstractmethod
    async def list_by_user(
        self,
        kind: EntityKind,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[Record]:
        """
        List a user's records, newest first.

        For PROFILES the record id is the user id and at most one
        record is returned.

        Args:
            kind: Collection to read
            user_id: Owner
            limit: Maximum number of records; None means all

        Raises:
            RemoteSyncError: If the read failed
            SessionInvalidError: If the session is no longer valid
        """
        pass


class RemoteSyncError(Exception):
    """Base exception for remote operations."""
    pass


class RecordNotFoundError(RemoteSyncError):
    """Record not found in the remote collection."""
    pass


class RemoteConnectionError(RemoteSyncError):
    """Could not reach the remote backend."""
    pass


class SessionInvalidError(RemoteSyncError):
    """
    The remote rejected our credentials or session.

    Unlike the other remote errors this one voids the whole sync
    contract, so it is propagated instead of being absorbed.
    """
    pass
