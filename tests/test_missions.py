"""Tests for mission derivation, completion and day rollover."""

import json

import pytest

from fluxcash.missions import DEFAULT_CATALOG, MissionEngine, MissionTemplate
from fluxcash.models.audit import AuditEventType
from fluxcash.models.ledger import EntityKind
from fluxcash.models.mission import MissionType
from fluxcash.models.notification import NotificationCategory

USER_ID = "user-1"


def ids(missions):
    return [m.id for m in missions]


class TestMissionDerivation:
    """Tests for eligibility and ordering."""

    @pytest.mark.asyncio
    async def test_empty_ledger_missions(self, store, missions):
        """Test that guarded missions are omitted, not shown incomplete."""
        await store.load(USER_ID)
        assert ids(missions.missions()) == ["daily_log", "review_week"]
        assert not any(m.is_completed for m in missions.missions())

    @pytest.mark.asyncio
    async def test_guarded_missions_appear(self, store, missions):
        """Test that heavy spending and free capital unlock their missions."""
        await store.load(USER_ID)
        store.add_transaction({"title": "Salário", "amount": 3000, "type": "income"})
        store.add_transaction({"title": "Aluguel", "amount": 1500, "type": "expense"})

        assert ids(missions.missions()) == [
            "daily_log", "defense_mode", "invest_now", "review_week",
        ]
        await store.drain()

    @pytest.mark.asyncio
    async def test_transaction_today_completes_daily_log(self, store, missions):
        """Test the auto-completed daily check-in."""
        await store.load(USER_ID)
        store.add_transaction({"title": "Café", "amount": 8, "type": "expense"})

        daily = missions.missions()[0]
        assert daily.id == "daily_log"
        assert daily.is_completed is True
        await store.drain()

    @pytest.mark.asyncio
    async def test_featured_is_first_incomplete(self, store, missions):
        """Test featured selection."""
        await store.load(USER_ID)
        assert missions.featured().id == "daily_log"

        store.add_transaction({"title": "Café", "amount": 8, "type": "expense"})
        assert missions.featured().id == "review_week"

        missions.complete("review_week")
        # Everything done: the last mission is shown
        assert missions.featured().id == "review_week"
        await store.drain()

    @pytest.mark.asyncio
    async def test_missions_are_memoised(self, store, aggregates, missions):
        """Test that unchanged inputs return the same derivation."""
        await store.load(USER_ID)
        first = missions.missions()
        second = missions.missions()
        assert first == second
        assert aggregates.recomputations == 1

    @pytest.mark.asyncio
    async def test_custom_catalog(self, store, aggregates, cache):
        """Test an engine over a single evergreen template."""
        await store.load(USER_ID)
        catalog = [
            MissionTemplate(
                id="lock_screen",
                title="Proteja o app",
                description="Ative o bloqueio de tela.",
                category="Segurança",
                xp=20,
                type=MissionType.SECURITY,
            )
        ]
        engine = MissionEngine(store, aggregates, cache, catalog=catalog)
        assert ids(engine.missions()) == ["lock_screen"]

    def test_default_catalog_order(self):
        """Test the fixed catalog order."""
        assert [t.id for t in DEFAULT_CATALOG] == [
            "daily_log", "defense_mode", "invest_now", "review_week",
        ]


class TestMissionCompletion:
    """Tests for the per-day completion record."""

    @pytest.mark.asyncio
    async def test_complete_is_idempotent(self, store, missions, cache, remote):
        """Test that completing twice grants XP once and stores one record."""
        await store.load(USER_ID)

        assert missions.complete("review_week") is True
        assert missions.complete("review_week") is False
        await store.drain()

        assert store.progression.xp == 150
        stored = json.loads(cache.read(f"{USER_ID}_2026-01-15"))
        assert stored == ["review_week"]
        history = remote.records(EntityKind.XP_HISTORY)
        assert [h["reason"] for h in history] == ["Mission: Visão de Águia"]

    @pytest.mark.asyncio
    async def test_completed_flag_is_derived(self, store, missions):
        """Test that a completed mission reports itself completed."""
        await store.load(USER_ID)
        missions.complete("review_week")
        review = [m for m in missions.missions() if m.id == "review_week"][0]
        assert review.is_completed is True
        await store.drain()

    @pytest.mark.asyncio
    async def test_ineligible_mission_cannot_complete(self, store, missions):
        """Test that a guarded-out mission grants nothing."""
        await store.load(USER_ID)
        assert missions.complete("invest_now") is False
        assert missions.complete("unknown") is False
        assert store.progression.xp == 0

    @pytest.mark.asyncio
    async def test_auto_completed_mission_grants_nothing(self, store, missions):
        """Test that the daily check-in is already done once a transaction exists."""
        await store.load(USER_ID)
        store.add_transaction({"title": "Café", "amount": 8, "type": "expense"})
        assert missions.complete("daily_log") is False
        assert store.progression.xp == 10
        await store.drain()

    @pytest.mark.asyncio
    async def test_day_rollover_resets_missions(self, store, missions, clock):
        """Test that a mission completed today is available again tomorrow."""
        await store.load(USER_ID)
        missions.complete("review_week")

        clock.advance(days=1)
        review = [m for m in missions.missions() if m.id == "review_week"][0]
        assert review.is_completed is False
        assert missions.complete("review_week") is True
        assert store.progression.xp == 300
        await store.drain()

    @pytest.mark.asyncio
    async def test_completion_survives_restart(self, store, aggregates, cache, missions):
        """Test that a new engine reads today's completions from the cache."""
        await store.load(USER_ID)
        missions.complete("review_week")

        restarted = MissionEngine(store, aggregates, cache)
        assert restarted.completed_today() == ["review_week"]
        assert restarted.complete("review_week") is False
        await store.drain()

    @pytest.mark.asyncio
    async def test_corrupt_completion_record(self, store, missions, cache, audit_logger):
        """Test that an unreadable record counts as nothing completed."""
        await store.load(USER_ID)
        cache.write(f"{USER_ID}_2026-01-15", "not json")

        assert missions.completed_today() == []
        assert AuditEventType.CACHE_CORRUPTED in [e.event_type for e in audit_logger.recent_events()]

    @pytest.mark.asyncio
    async def test_mission_xp_can_level_up(self, store, missions, notifications):
        """Test that a mission reward crossing a level notifies."""
        await store.load(USER_ID)
        store.add_transaction({"title": "Salário", "amount": 3000, "type": "income"})

        assert missions.complete("invest_now") is True
        assert store.progression.level == 2
        assert notifications.find(category=NotificationCategory.GAMIFICATION)
        await store.drain()

    @pytest.mark.asyncio
    async def test_signed_out_completes_nothing(self, store, missions):
        """Test that completion needs a signed-in user."""
        assert missions.completion_key() is None
        assert missions.complete("review_week") is False

    @pytest.mark.asyncio
    async def test_forget_drops_memory(self, store, missions, cache):
        """Test that forget() re-reads completions from the cache."""
        await store.load(USER_ID)
        missions.complete("review_week")
        cache.clear(f"{USER_ID}_2026-01-15")

        assert missions.completed_today() == ["review_week"]
        missions.forget()
        assert missions.completed_today() == []
        await store.drain()
