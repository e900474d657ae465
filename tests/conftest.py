"""
Shared fixtures for the FluxCash test suite.

No test talks to a real backend: the remote is the in-memory adapter
(optionally gated so individual calls resolve on demand) and the cache
lives in memory.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import pytest

from fluxcash.aggregates import AggregateEngine
from fluxcash.audit import AuditLogger
from fluxcash.clock import FixedClock
from fluxcash.config.settings import InsightSettings, LedgerSettings
from fluxcash.ledger import LedgerStore
from fluxcash.missions import MissionEngine
from fluxcash.models.ledger import EntityKind
from fluxcash.notifications import NotificationCenter
from fluxcash.services.cache import InMemoryCache
from fluxcash.services.remote import InMemoryRemoteAdapter, Record


class ControllableRemote(InMemoryRemoteAdapter):
    """
    In-memory remote whose selected calls wait until released.

    Usage:
        remote.hold(EntityKind.TRANSACTIONS, "insert")
        store.add_transaction(...)
        await spin()
        remote.release(0)
    """

    def __init__(self):
        super().__init__()
        self._held: set[tuple[EntityKind, str]] = set()
        self.gates: list[asyncio.Future] = []

    def hold(self, kind: EntityKind, action: str) -> None:
        self._held.add((kind, action))

    def release(self, index: int) -> None:
        self.gates[index].set_result(None)

    def release_all(self) -> None:
        for gate in self.gates:
            if not gate.done():
                gate.set_result(None)
        self._held.clear()

    async def _gate(self, kind: EntityKind, action: str) -> None:
        if (kind, action) in self._held:
            gate = asyncio.get_running_loop().create_future()
            self.gates.append(gate)
            await gate

    async def insert(self, kind: EntityKind, record: Record) -> Record:
        await self._gate(kind, "insert")
        return await super().insert(kind, record)

    async def update(self, kind: EntityKind, record_id: str, patch: Record) -> None:
        await self._gate(kind, "update")
        await super().update(kind, record_id, patch)

    async def list_by_user(
        self,
        kind: EntityKind,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[Record]:
        await self._gate(kind, "list")
        return await super().list_by_user(kind, user_id, limit=limit)


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def remote():
    return ControllableRemote()


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def ledger_settings():
    return LedgerSettings(load_limit=500, default_category="Geral")


@pytest.fixture
def insight_settings():
    return InsightSettings()


@pytest.fixture
def store(remote, cache, notifications, audit_logger, clock, ledger_settings):
    return LedgerStore(
        remote=remote,
        cache=cache,
        notifications=notifications,
        audit_logger=audit_logger,
        clock=clock,
        settings=ledger_settings,
    )


@pytest.fixture
def aggregates(store, insight_settings, clock):
    return AggregateEngine(store, settings=insight_settings, clock=clock)


@pytest.fixture
def missions(store, aggregates, cache, audit_logger, insight_settings):
    return MissionEngine(
        store,
        aggregates,
        cache,
        audit_logger=audit_logger,
        settings=insight_settings,
    )
