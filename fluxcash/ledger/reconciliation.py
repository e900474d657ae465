"""
Id Reconciliation and Operation Tracking

DESIGN DECISION: Optimistic adds get a temporary id that is later replaced
by the server-assigned one. Instead of matching confirmations by position,
every temporary id is registered here with its own future:
1. The in-memory substitution looks records up by temporary id
2. Remote updates/deletes issued before the insert returns await the future
3. A caller still holding a temporary id is transparently redirected

Every remote write is also recorded as a PendingOperation so failed syncs
stay visible instead of being silently trusted.
"""

import asyncio
from datetime import datetime
from typing import Optional
from uuid import uuid4

from fluxcash.clock import Clock
from fluxcash.models.ledger import (
    EntityKind,
    OperationAction,
    OperationStatus,
    PendingOperation,
)


TEMP_PREFIX = "temp-"


class IdReconciler:
    """Mapping table from temporary ids to server-assigned ids."""

    def __init__(self):
        self._futures: dict[str, asyncio.Future] = {}
        self._mapping: dict[str, str] = {}
        self._failed: set[str] = set()

    @staticmethod
    def new_temp_id() -> str:
        return f"{TEMP_PREFIX}{uuid4()}"

    @staticmethod
    def is_temporary(entity_id: str) -> bool:
        return entity_id.startswith(TEMP_PREFIX)

    def register(self, temp_id: str) -> asyncio.Future:
        """Open a slot for an insert in flight. Must run inside the event loop."""
        future = asyncio.get_running_loop().create_future()
        self._futures[temp_id] = future
        return future

    def resolve(self, temp_id: str, server_id: str) -> None:
        self._mapping[temp_id] = server_id
        future = self._futures.pop(temp_id, None)
        if future is not None and not future.done():
            future.set_result(server_id)

    def fail(self, temp_id: str) -> None:
        """The insert was rejected; waiters receive None."""
        self._failed.add(temp_id)
        future = self._futures.pop(temp_id, None)
        if future is not None and not future.done():
            future.set_result(None)

    def lookup(self, entity_id: str) -> str:
        """Current in-memory id for any id a caller may hold."""
        return self._mapping.get(entity_id, entity_id)

    def is_pending(self, entity_id: str) -> bool:
        return entity_id in self._futures

    def never_reached_remote(self, entity_id: str) -> bool:
        """Rejected insert, or a temporary id no insert in this session owns."""
        if entity_id in self._failed:
            return True
        return self.is_temporary(entity_id) and entity_id not in self._futures

    async def server_id(self, entity_id: str) -> Optional[str]:
        """
        Server id for a reference, waiting for the insert if needed.

        Returns None when the record never reached the remote.
        """
        if entity_id in self._mapping:
            return self._mapping[entity_id]
        if entity_id in self._failed:
            return None
        future = self._futures.get(entity_id)
        if future is None:
            return None if self.is_temporary(entity_id) else entity_id
        return await asyncio.shield(future)

    def clear(self) -> None:
        """Forget everything. Waiters still in flight receive None."""
        for future in self._futures.values():
            if not future.done():
                future.set_result(None)
        self._futures.clear()
        self._mapping.clear()
        self._failed.clear()


class OperationLog:
    """
    Record of the remote writes issued by the ledger store.

    Operations are indexed by (kind, entity id). Once an entity has no open
    operation left, its confirmed operations are dropped and only failures
    are kept, so the log stays proportional to unsettled work.
    """

    def __init__(self, clock: Clock):
        self._clock = clock
        self._operations: dict[str, PendingOperation] = {}
        self._by_entity: dict[tuple[EntityKind, str], list[PendingOperation]] = {}

    def open(
        self,
        kind: EntityKind,
        action: OperationAction,
        entity_id: str,
    ) -> PendingOperation:
        operation = PendingOperation(
            op_id=str(uuid4()),
            kind=kind,
            action=action,
            entity_id=entity_id,
            created_at=self._clock.now(),
        )
        self._operations[operation.op_id] = operation
        self._by_entity.setdefault((kind, entity_id), []).append(operation)
        return operation

    def confirm(self, operation: PendingOperation) -> None:
        operation.status = OperationStatus.CONFIRMED
        operation.resolved_at = self._now()
        self._settle(operation.kind, operation.entity_id)

    def fail(self, operation: PendingOperation, error: str) -> None:
        operation.status = OperationStatus.FAILED
        operation.error = error
        operation.resolved_at = self._now()
        self._settle(operation.kind, operation.entity_id)

    def retarget(self, old_id: str, new_id: str) -> None:
        """Point operations recorded against a temporary id at its server id."""
        for kind in EntityKind:
            moved = self._by_entity.pop((kind, old_id), None)
            if not moved:
                continue
            for operation in moved:
                operation.entity_id = new_id
            self._by_entity.setdefault((kind, new_id), []).extend(moved)

    def for_entity(self, kind: EntityKind, entity_id: str) -> list[PendingOperation]:
        return list(self._by_entity.get((kind, entity_id), []))

    @property
    def operations(self) -> list[PendingOperation]:
        return list(self._operations.values())

    @property
    def open_operations(self) -> list[PendingOperation]:
        return [op for op in self._operations.values() if op.is_open]

    @property
    def failed_operations(self) -> list[PendingOperation]:
        return [
            op for op in self._operations.values()
            if op.status == OperationStatus.FAILED
        ]

    def clear(self) -> None:
        self._operations.clear()
        self._by_entity.clear()

    def _settle(self, kind: EntityKind, entity_id: str) -> None:
        key = (kind, entity_id)
        operations = self._by_entity.get(key, [])
        if any(op.is_open for op in operations):
            return
        kept = [op for op in operations if op.status == OperationStatus.FAILED]
        for op in operations:
            if op.status == OperationStatus.CONFIRMED:
                del self._operations[op.op_id]
        if kept:
            self._by_entity[key] = kept
        else:
            self._by_entity.pop(key, None)

    def _now(self) -> datetime:
        return self._clock.now()
