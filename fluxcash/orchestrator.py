"""
Main Orchestrator for FluxCash

This module ties together all the components of the ledger core and
defines the session-level flows a UI layer drives:
1. Sign in (load the user's ledger, cache first)
2. Missions (derive, feature, complete)
3. Sign out / reset (drop local state, purge cache)
4. Export (full history as CSV or JSON backup)

DESIGN DECISION: The UI never wires components itself. It asks
create_app_components() for a LedgerSession and talks only to that.
The session keeps every component it built reachable for inspection
and tests.
"""

from pathlib import Path
from typing import Optional

import structlog

from fluxcash.aggregates import AggregateEngine
from fluxcash.audit import AuditLogger
from fluxcash.categorization import CategoryResolver
from fluxcash.clock import Clock, SystemClock
from fluxcash.config import get_settings, validate_all_settings
from fluxcash.config.settings import InsightSettings, LedgerSettings
from fluxcash.export import TransactionExporter
from fluxcash.ledger import LedgerStore
from fluxcash.missions import MissionEngine, belt_progress
from fluxcash.models.insights import LedgerAggregates
from fluxcash.models.mission import BeltProgress, Mission
from fluxcash.notifications import NotificationCenter
from fluxcash.services.cache import FileCache, InMemoryCache, LocalCacheInterface
from fluxcash.services.remote import (
    GoogleSheetsClient,
    GoogleSheetsRemoteAdapter,
    InMemoryRemoteAdapter,
    RemoteSyncAdapter,
)


logger = structlog.get_logger(__name__)


class LedgerSession:
    """
    Facade over one running ledger core.

    Flow:
    1. sign_in(user_id) loads the ledger
    2. The UI mutates through `store` and reads `dashboard()` / `missions()`
    3. sign_out() or reset() clears local state
    """

    def __init__(
        self,
        store: LedgerStore,
        aggregates: AggregateEngine,
        missions: MissionEngine,
        exporter: TransactionExporter,
        notifications: NotificationCenter,
        audit_logger: AuditLogger,
    ):
        self.store = store
        self.aggregates = aggregates
        self.mission_engine = missions
        self.exporter = exporter
        self.notifications = notifications
        self.audit_logger = audit_logger

    async def sign_in(self, user_id: str) -> None:
        self.mission_engine.forget()
        await self.store.load(user_id)

    def sign_out(self) -> None:
        self.store.sign_out()
        self.mission_engine.forget()
        self.notifications.clear()

    def reset(self) -> None:
        self.store.reset_data()
        self.mission_engine.forget()

    def dashboard(self) -> LedgerAggregates:
        return self.aggregates.snapshot()

    def missions(self) -> list[Mission]:
        return self.mission_engine.missions()

    def featured_mission(self) -> Optional[Mission]:
        return self.mission_engine.featured()

    def complete_mission(self, mission_id: str) -> bool:
        return self.mission_engine.complete(mission_id)

    def belt(self) -> Optional[BeltProgress]:
        progression = self.store.progression
        if progression is None:
            return None
        return belt_progress(progression.xp)

    async def export(self, fmt: str) -> str:
        return await self.exporter.export(fmt)

    async def drain(self) -> None:
        await self.store.drain()


def _build_remote(demo_mode: bool) -> RemoteSyncAdapter:
    if demo_mode:
        return InMemoryRemoteAdapter()

    checks = validate_all_settings()
    if not checks["google_sheets"]:
        # Remote not configured - continue in demo mode
        logger.warning(
            "remote_not_configured",
            error=checks.get("google_sheets_error"),
            fallback="in_memory",
        )
        return InMemoryRemoteAdapter()

    sheets_settings = get_settings().google_sheets
    if not Path(sheets_settings.credentials_path).is_file():
        logger.warning(
            "remote_credentials_missing",
            path=sheets_settings.credentials_path,
            fallback="in_memory",
        )
        return InMemoryRemoteAdapter()

    # The client connects lazily; rejected credentials surface on the first load
    logger.info("remote_configured", backend="google_sheets", spreadsheet=sheets_settings.spreadsheet_id)
    return GoogleSheetsRemoteAdapter(GoogleSheetsClient(sheets_settings))


def _build_cache() -> LocalCacheInterface:
    cache_settings = get_settings().cache
    if cache_settings.backend == "memory":
        return InMemoryCache()
    return FileCache(cache_settings.directory)


def create_app_components(
    demo_mode: Optional[bool] = None,
    remote: Optional[RemoteSyncAdapter] = None,
    cache: Optional[LocalCacheInterface] = None,
    clock: Optional[Clock] = None,
    ledger_settings: Optional[LedgerSettings] = None,
    insight_settings: Optional[InsightSettings] = None,
) -> LedgerSession:
    """
    Factory function to create all application components.

    Args:
        demo_mode: Use the in-memory remote. Defaults to the
                   FLUXCASH_LEDGER_DEMO_MODE setting.
        remote: Explicit remote adapter (overrides demo_mode)
        cache: Explicit cache backend (overrides FLUXCASH_CACHE_BACKEND)
        clock: Time provider; the system clock by default

    Returns:
        A LedgerSession wired to the chosen backends
    """
    settings = get_settings()
    ledger_settings = ledger_settings or settings.ledger
    insight_settings = insight_settings or settings.insights
    if demo_mode is None:
        demo_mode = ledger_settings.demo_mode

    remote = remote or _build_remote(demo_mode)
    cache = cache or _build_cache()
    clock = clock or SystemClock()

    audit_logger = AuditLogger()
    notifications = NotificationCenter()

    store = LedgerStore(
        remote=remote,
        cache=cache,
        notifications=notifications,
        audit_logger=audit_logger,
        clock=clock,
        resolver=CategoryResolver(ledger_settings.default_category),
        settings=ledger_settings,
    )
    aggregates = AggregateEngine(store, settings=insight_settings, clock=clock)
    missions = MissionEngine(
        store,
        aggregates,
        cache,
        audit_logger=audit_logger,
        settings=insight_settings,
    )
    exporter = TransactionExporter(store, remote, audit_logger=audit_logger)

    return LedgerSession(
        store=store,
        aggregates=aggregates,
        missions=missions,
        exporter=exporter,
        notifications=notifications,
        audit_logger=audit_logger,
    )
