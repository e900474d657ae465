"""
Mission Engine

Derives the day's missions from the current aggregates and records which
ones were completed.

DESIGN DECISION: Only the completion fact is persisted, as a JSON list of
mission ids in the cache under "<user_id>_<YYYY-MM-DD>". The day comes
from the injected clock, so a new day key means nothing is completed yet
and every mission becomes available again.

State machine per mission id and day: eligible-incomplete -> completed.
"""

import json
from typing import Optional, Sequence

import structlog

from fluxcash.aggregates.engine import AggregateEngine
from fluxcash.audit.logger import AuditLogger
from fluxcash.config.settings import InsightSettings
from fluxcash.ledger.store import LedgerStore
from fluxcash.missions.catalog import DEFAULT_CATALOG, MissionTemplate
from fluxcash.models.audit import AuditEventBuilder
from fluxcash.models.mission import Mission
from fluxcash.services.cache.interface import CacheError, LocalCacheInterface, day_key


logger = structlog.get_logger(__name__)


class MissionEngine:
    """
    Mission feed and completion ledger for the store's current user.

    Usage:
        engine = MissionEngine(store, aggregates, cache)
        for mission in engine.missions():
            ...
        engine.complete("review_week")
    """

    def __init__(
        self,
        store: LedgerStore,
        aggregates: AggregateEngine,
        cache: LocalCacheInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[InsightSettings] = None,
        catalog: Sequence[MissionTemplate] = DEFAULT_CATALOG,
    ):
        self._store = store
        self._aggregates = aggregates
        self._cache = cache
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or InsightSettings()
        self._catalog = tuple(catalog)

        self._completions: dict[str, list[str]] = {}
        self._memo_key = None
        self._memo: list[Mission] = []

    def completion_key(self) -> Optional[str]:
        """Cache key of today's completion record, or None when signed out."""
        user_id = self._store.user_id
        if user_id is None:
            return None
        return day_key(user_id, self._store.clock.day_key())

    def completed_today(self) -> list[str]:
        key = self.completion_key()
        if key is None:
            return []
        if key not in self._completions:
            self._completions[key] = self._read_completions(key)
        return list(self._completions[key])

    def missions(self) -> list[Mission]:
        """Eligible missions in catalog order; ineligible ones are omitted."""
        completed = self.completed_today()
        memo_key = (
            self._aggregates.key(),
            self.completion_key(),
            frozenset(completed),
        )
        if memo_key == self._memo_key:
            return list(self._memo)

        aggregates = self._aggregates.snapshot()
        self._memo = [
            template.build(aggregates, template.id in completed)
            for template in self._catalog
            if template.is_eligible(aggregates, self._settings)
        ]
        self._memo_key = memo_key
        return list(self._memo)

    def featured(self) -> Optional[Mission]:
        """First incomplete mission, or the last one when all are done."""
        missions = self.missions()
        if not missions:
            return None
        for mission in missions:
            if not mission.is_completed:
                return mission
        return missions[-1]

    def complete(self, mission_id: str) -> bool:
        """
        Mark a mission as completed today and grant its XP.

        Returns:
            True if XP was granted; False if the mission is not currently
            eligible or already completed
        """
        key = self.completion_key()
        if key is None:
            return False
        mission = next((m for m in self.missions() if m.id == mission_id), None)
        if mission is None or mission.is_completed:
            return False

        completed = self.completed_today() + [mission_id]
        self._completions[key] = completed
        self._write_completions(key, completed)

        self._audit.log(
            AuditEventBuilder.mission_completed(
                self._store.user_id,
                mission_id,
                self._store.clock.day_key(),
                mission.xp,
            )
        )
        self._store.grant_xp(mission.xp, f"Mission: {mission.title}")
        return True

    def forget(self) -> None:
        """Drop in-memory completion state (after sign-out or reset)."""
        self._completions.clear()
        self._memo_key = None
        self._memo = []

    def _read_completions(self, key: str) -> list[str]:
        try:
            blob = self._cache.read(key)
        except CacheError as e:
            logger.warning("mission_completions_unreadable", key=key, error=str(e))
            return []
        if blob is None:
            return []
        try:
            ids = json.loads(blob)
        except json.JSONDecodeError as e:
            self._audit.log(AuditEventBuilder.cache_corrupted(key, str(e)))
            return []
        if not isinstance(ids, list):
            self._audit.log(AuditEventBuilder.cache_corrupted(key, "expected a JSON list"))
            return []
        return [i for i in ids if isinstance(i, str)]

    def _write_completions(self, key: str, ids: list[str]) -> None:
        try:
            self._cache.write(key, json.dumps(ids))
        except CacheError as e:
            logger.warning("mission_completions_not_saved", key=key, error=str(e))
