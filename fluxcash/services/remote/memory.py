"""
In-memory Remote

Backs demo mode (nothing leaves the process) and the test suite.
Failures can be injected per (kind, action) to exercise the ledger
store's error paths.
"""

import asyncio
from typing import Optional
from uuid import uuid4

from fluxcash.models.ledger import EntityKind
from fluxcash.services.remote.interface import (
    Record,
    RecordNotFoundError,
    RemoteSyncAdapter,
    RemoteSyncError,
    SessionInvalidError,
)


class InMemoryRemoteAdapter(RemoteSyncAdapter):

    def __init__(self):
        self._tables: dict[EntityKind, dict[str, Record]] = {kind: {} for kind in EntityKind}
        self._failures: dict[tuple[EntityKind, str], Exception] = {}
        self.session_valid = True
        self.calls: list[tuple[str, EntityKind, Optional[str]]] = []

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def fail(
        self,
        kind: EntityKind,
        action: str,
        error: Optional[Exception] = None,
    ) -> None:
        """Make every `action` ('insert', 'update', 'delete', 'list') on `kind` fail."""
        self._failures[(kind, action)] = error or RemoteSyncError(f"{action} on {kind.value} rejected")

    def heal(self, kind: Optional[EntityKind] = None) -> None:
        """Remove injected failures (for one kind, or all)."""
        if kind is None:
            self._failures.clear()
        else:
            self._failures = {k: v for k, v in self._failures.items() if k[0] != kind}

    def seed(self, kind: EntityKind, record: Record) -> Record:
        """Store a record directly, assigning an id if it has none."""
        stored = dict(record)
        stored.setdefault("id", str(uuid4()))
        self._tables[kind][str(stored["id"])] = stored
        return stored

    def records(self, kind: EntityKind) -> list[Record]:
        return [dict(r) for r in self._tables[kind].values()]

    async def _enter(self, action: str, kind: EntityKind, record_id: Optional[str] = None) -> None:
        self.calls.append((action, kind, record_id))
        await asyncio.sleep(0)
        if not self.session_valid:
            raise SessionInvalidError("Session expired. Please sign in again.")
        error = self._failures.get((kind, action))
        if error is not None:
            raise error

    # -------------------------------------------------------------------------
    # RemoteSyncAdapter
    # -------------------------------------------------------------------------

    async def insert(self, kind: EntityKind, record: Record) -> Record:
        await self._enter("insert", kind)
        stored = dict(record)
        stored["id"] = str(uuid4())
        self._tables[kind][stored["id"]] = stored
        return dict(stored)

    async def update(self, kind: EntityKind, record_id: str, patch: Record) -> None:
        await self._enter("update", kind, record_id)
        table = self._tables[kind]
        if record_id not in table:
            if kind != EntityKind.PROFILES:
                raise RecordNotFoundError(f"{kind.value} record not found: {record_id}")
            # Profiles are upserted, keyed by user id
            table[record_id] = {"id": record_id, "user_id": record_id}
        table[record_id].update(patch)

    async def delete(self, kind: EntityKind, record_id: str) -> None:
        await self._enter("delete", kind, record_id)
        self._tables[kind].pop(record_id, None)

    async def list_by_user(
        self,
        kind: EntityKind,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[Record]:
        await self._enter("list", kind)
        rows = [
            dict(r) for r in self._tables[kind].values()
            if str(r.get("user_id")) == user_id
        ]
        if kind == EntityKind.TRANSACTIONS:
            rows.sort(key=lambda r: r.get("date_iso") or "", reverse=True)
        return rows[:limit] if limit is not None else rows
