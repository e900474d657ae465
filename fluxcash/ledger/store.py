"""
Ledger Store

The in-memory, canonical collection of the signed-in user's transactions,
cards, goals, debts and AI rules, plus their XP progression.

DESIGN DECISION: Optimistic mutation with visible sync state.
1. Mutators are synchronous: the in-memory change is applied immediately
2. The local cache is written through on every change
3. The remote write runs as an asyncio task and never blocks the caller
4. Every remote write is a PendingOperation; failures leave the local
   change in place, flag the entity `failed` and emit a notification
5. Temporary ids are reconciled through IdReconciler, never by position

Load protocol (stale-while-revalidate):
- Remote fetches start first; cache hydration runs one tick later and only
  fills collections the remote has not already delivered
- Transactions are the critical fetch: `ready` is set as soon as it settles
- Cards, goals, debts, rules and the profile load as an isolated batch;
  one failing kind never affects the others
- Each load bumps a generation counter; results of a superseded load are
  discarded

SessionInvalidError is the one fatal error: it propagates from `load()`,
and when raised by background persistence it is stored, re-raised by
`drain()` and by every mutator until the next `load()`.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, ValidationError

from fluxcash.aggregates.functions import month_start, shift_month
from fluxcash.audit.logger import AuditLogger
from fluxcash.categorization.resolver import CategoryResolver
from fluxcash.clock import Clock, SystemClock
from fluxcash.config.settings import LedgerSettings
from fluxcash.ledger.reconciliation import IdReconciler, OperationLog
from fluxcash.models.audit import AuditEventBuilder
from fluxcash.models.ledger import (
    AIRule,
    CreditCard,
    Debt,
    EntityKind,
    FinancialGoal,
    LedgerRecord,
    OperationAction,
    OperationStatus,
    PendingOperation,
    SyncState,
    Transaction,
    TransactionType,
    UserProgression,
)
from fluxcash.models.notification import NotificationCategory, NotificationSeverity
from fluxcash.notifications.sink import NotificationSink
from fluxcash.services.cache.interface import CacheError, LocalCacheInterface, entity_key
from fluxcash.services.remote.interface import (
    Record,
    RemoteSyncAdapter,
    RemoteSyncError,
    SessionInvalidError,
)


logger = structlog.get_logger(__name__)


DEFAULT_CATEGORIES = [
    "Alimentação",
    "Transporte",
    "Lazer",
    "Saúde",
    "Moradia",
    "Educação",
    "Receita",
    "Dívidas",
]

CUSTOM_CATEGORIES_KEY = "custom_categories"

CACHE_NAMESPACES = tuple(kind.value for kind in EntityKind) + (CUSTOM_CATEGORIES_KEY,)

ENTITY_MODELS: dict[EntityKind, type[LedgerRecord]] = {
    EntityKind.TRANSACTIONS: Transaction,
    EntityKind.CARDS: CreditCard,
    EntityKind.GOALS: FinancialGoal,
    EntityKind.DEBTS: Debt,
    EntityKind.RULES: AIRule,
}

SECONDARY_KINDS = (
    EntityKind.CARDS,
    EntityKind.GOALS,
    EntityKind.DEBTS,
    EntityKind.RULES,
    EntityKind.PROFILES,
)

NOT_SAVED_MESSAGE = "Your change may not be saved to the cloud."


class LedgerStore:
    """
    Canonical in-memory ledger with write-through cache and remote sync.

    Mutators must be called from code running inside an event loop.

    Usage:
        store = LedgerStore(remote, cache, notifications)
        await store.load("user-1")
        tx = store.add_transaction({"title": "Uber", "amount": 25, "type": "expense"})
        await store.drain()
    """

    def __init__(
        self,
        remote: RemoteSyncAdapter,
        cache: LocalCacheInterface,
        notifications: NotificationSink,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
        resolver: Optional[CategoryResolver] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or LedgerSettings()
        self._remote = remote
        self._cache = cache
        self._notifications = notifications
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or SystemClock()
        self._resolver = resolver or CategoryResolver(self._settings.default_category)

        self._reconciler = IdReconciler()
        self._operations = OperationLog(self._clock)

        self._user_id: Optional[str] = None
        self._collections: dict[EntityKind, list[LedgerRecord]] = {kind: [] for kind in ENTITY_MODELS}
        self._custom_categories: list[str] = list(DEFAULT_CATEGORIES)
        self._progression: Optional[UserProgression] = None
        self._versions: dict[EntityKind, int] = {kind: 0 for kind in EntityKind}
        self._period: date = month_start(self._clock.today())

        self._generation = 0
        self._fresh: set[EntityKind] = set()
        self._is_loading = False
        self.ready = asyncio.Event()

        self._tasks: set[asyncio.Task] = set()
        self._load_task: Optional[asyncio.Task] = None
        self._profile_lock = asyncio.Lock()
        self._fatal_error: Optional[SessionInvalidError] = None

    # =========================================================================
    # READ SIDE
    # =========================================================================

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._collections[EntityKind.TRANSACTIONS])

    @property
    def cards(self) -> list[CreditCard]:
        return list(self._collections[EntityKind.CARDS])

    @property
    def goals(self) -> list[FinancialGoal]:
        return list(self._collections[EntityKind.GOALS])

    @property
    def debts(self) -> list[Debt]:
        return list(self._collections[EntityKind.DEBTS])

    @property
    def rules(self) -> list[AIRule]:
        return list(self._collections[EntityKind.RULES])

    @property
    def custom_categories(self) -> list[str]:
        return list(self._custom_categories)

    @property
    def progression(self) -> Optional[UserProgression]:
        return self._progression

    @property
    def operations(self) -> list[PendingOperation]:
        return self._operations.operations

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def period(self) -> date:
        """First day of the active reporting month."""
        return self._period

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def fatal_error(self) -> Optional[SessionInvalidError]:
        return self._fatal_error

    def version(self, kind: EntityKind) -> int:
        """Monotonic change counter of a collection (PROFILES for progression)."""
        return self._versions[kind]

    def unsynced(self, kind: Optional[EntityKind] = None) -> list[LedgerRecord]:
        """Entities whose latest change has not been confirmed by the remote."""
        kinds = [kind] if kind is not None else list(ENTITY_MODELS)
        return [
            entity
            for k in kinds
            for entity in self._collections[k]
            if entity.sync_state != SyncState.SYNCED
        ]

    def find(self, kind: EntityKind, entity_id: str) -> LedgerRecord:
        """
        Look an entity up by any id a caller may hold.

        Raises:
            KeyError: If no entity has that id
        """
        current_id = self._reconciler.lookup(entity_id)
        index = self._index_of(kind, current_id)
        if index is None:
            raise KeyError(f"{kind.value} record not found: {entity_id}")
        return self._collections[kind][index]

    # =========================================================================
    # REPORTING PERIOD
    # =========================================================================

    def next_month(self) -> date:
        self._period = shift_month(self._period, 1)
        return self._period

    def prev_month(self) -> date:
        self._period = shift_month(self._period, -1)
        return self._period

    def set_period(self, day: date) -> date:
        self._period = month_start(day)
        return self._period

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def add_transaction(self, data: Union[Mapping[str, Any], BaseModel]) -> Transaction:
        """
        Optimistically add a transaction.

        A missing timestamp defaults to now; a missing or default category
        is resolved from the user's rules and the heuristic table. A missing
        type is inferred from the sign of the amount.
        """
        values = self._as_dict(data)
        if values.get("type") is None:
            amount = Decimal(str(values.get("amount", 0)))
            values["type"] = TransactionType.EXPENSE if amount < 0 else TransactionType.INCOME
        if values.get("timestamp") is None:
            values["timestamp"] = self._clock.now()
        values["category"] = self._resolver.resolve(
            str(values.get("title", "")),
            values.get("category"),
            self.rules,
        )
        return self._add(
            EntityKind.TRANSACTIONS,
            values,
            self._settings.xp_per_transaction,
            reason="New transaction",
        )

    def edit_transaction(self, entity_id: str, patch: Mapping[str, Any]) -> Transaction:
        return self._update(EntityKind.TRANSACTIONS, entity_id, patch)

    def remove_transaction(self, entity_id: str) -> None:
        self._remove(EntityKind.TRANSACTIONS, entity_id)

    # =========================================================================
    # CARDS / GOALS / DEBTS
    # =========================================================================

    def add_card(self, data: Union[Mapping[str, Any], BaseModel]) -> CreditCard:
        return self._add(EntityKind.CARDS, self._as_dict(data), self._settings.xp_per_card)

    def update_card(self, entity_id: str, patch: Mapping[str, Any]) -> CreditCard:
        return self._update(EntityKind.CARDS, entity_id, patch)

    def remove_card(self, entity_id: str) -> None:
        self._remove(EntityKind.CARDS, entity_id)

    def add_goal(self, data: Union[Mapping[str, Any], BaseModel]) -> FinancialGoal:
        return self._add(EntityKind.GOALS, self._as_dict(data), self._settings.xp_per_goal)

    def update_goal(self, entity_id: str, patch: Mapping[str, Any]) -> FinancialGoal:
        return self._update(EntityKind.GOALS, entity_id, patch)

    def remove_goal(self, entity_id: str) -> None:
        self._remove(EntityKind.GOALS, entity_id)

    def add_debt(self, data: Union[Mapping[str, Any], BaseModel]) -> Debt:
        return self._add(EntityKind.DEBTS, self._as_dict(data), self._settings.xp_per_debt)

    def update_debt(self, entity_id: str, patch: Mapping[str, Any]) -> Debt:
        return self._update(EntityKind.DEBTS, entity_id, patch)

    def remove_debt(self, entity_id: str) -> None:
        self._remove(EntityKind.DEBTS, entity_id)

    # =========================================================================
    # RULES / CATEGORIES
    # =========================================================================

    def add_rule(self, keyword: str, category: str) -> AIRule:
        return self._add(EntityKind.RULES, {"keyword": keyword, "category": category}, 0)

    def remove_rule(self, entity_id: str) -> None:
        self._remove(EntityKind.RULES, entity_id)

    def add_custom_category(self, name: str) -> list[str]:
        """Add a category name; duplicates and blanks are ignored."""
        self._ensure_writable()
        name = name.strip()
        if name and name not in self._custom_categories:
            self._custom_categories.append(name)
            self._write_custom_categories()
        return self.custom_categories

    # =========================================================================
    # PROGRESSION
    # =========================================================================

    def grant_xp(self, amount: int, reason: Optional[str] = None) -> UserProgression:
        """
        Add XP, re-derive the level and persist both.

        A level increase emits a level-up notification. Grants with a
        reason are also recorded in the remote XP history.

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError("XP amount cannot be negative")
        self._ensure_writable()

        before = self._progression
        if amount == 0:
            return before

        after = UserProgression.model_validate({**before.model_dump(), "xp": before.xp + amount})
        self._set_progression(after)
        self._audit.log(AuditEventBuilder.xp_granted(self._user_id, amount, after.xp, reason))

        if after.level > before.level:
            self._audit.log(AuditEventBuilder.level_up(self._user_id, before.level, after.level))
            self._notifications.notify(
                "Level Up!",
                f"You reached level {after.level}!",
                NotificationSeverity.SUCCESS,
                NotificationCategory.GAMIFICATION,
            )

        self._sync_profile()
        if reason:
            self._schedule(self._record_xp_history(self._user_id, amount, reason))
        return after

    def complete_onboarding(self) -> UserProgression:
        return self.update_profile(has_onboarding=True)

    def update_profile(self, **fields: Any) -> UserProgression:
        """
        Patch profile fields (name, profession, has_onboarding).

        XP and level only change through grant_xp.
        """
        self._ensure_writable()
        patch = {k: v for k, v in fields.items() if k not in ("user_id", "xp", "level")}
        updated = UserProgression.model_validate({**self._progression.model_dump(), **patch})
        self._set_progression(updated)
        self._sync_profile()
        return updated

    # =========================================================================
    # LOAD
    # =========================================================================

    def start_load(self, user_id: str) -> asyncio.Task:
        """Run load() in the background; returns the task."""
        self._load_task = asyncio.create_task(self.load(user_id))
        return self._load_task

    async def load(self, user_id: str) -> None:
        """
        Load a user's ledger: cache first, then the remote.

        Raises:
            SessionInvalidError: If the remote rejected the session
        """
        self._generation += 1
        generation = self._generation

        if user_id != self._user_id:
            self._clear_memory()
            self._progression = UserProgression(user_id=user_id)
        self._user_id = user_id
        self._fatal_error = None
        self._fresh = set()
        self._is_loading = True
        self.ready.clear()
        self._audit.log(AuditEventBuilder.load_started(user_id, generation))

        critical = asyncio.create_task(
            self._fetch(EntityKind.TRANSACTIONS, user_id, generation, self._settings.load_limit)
        )
        secondary = [
            asyncio.create_task(self._fetch(kind, user_id, generation))
            for kind in SECONDARY_KINDS
        ]

        # Hydrate one tick later so a remote that answers instantly wins
        await asyncio.sleep(0)
        if generation == self._generation:
            self._hydrate_from_cache(user_id)

        try:
            await critical
        except SessionInvalidError as e:
            self._finish_critical(generation)
            await asyncio.gather(*secondary, return_exceptions=True)
            self._invalidate_session(e, generation)
            raise
        except Exception as e:
            self._finish_critical(generation)
            if generation == self._generation:
                self._audit.log(AuditEventBuilder.load_failed(user_id, str(e)))
                self._notifications.notify(
                    "Could not load transactions",
                    "Showing saved data. Try again when you are back online.",
                    NotificationSeverity.ERROR,
                    NotificationCategory.SYSTEM,
                )
        else:
            self._finish_critical(generation)

        results = await asyncio.gather(*secondary, return_exceptions=True)
        fatal: Optional[SessionInvalidError] = None
        for kind, result in zip(SECONDARY_KINDS, results):
            if isinstance(result, SessionInvalidError):
                fatal = result
            elif isinstance(result, Exception) and generation == self._generation:
                self._audit.log(
                    AuditEventBuilder.secondary_fetch_failed(kind.value, user_id, str(result))
                )

        if fatal is not None:
            self._invalidate_session(fatal, generation)
            raise fatal

        if generation == self._generation:
            counts = {kind.value: len(items) for kind, items in self._collections.items()}
            self._audit.log(AuditEventBuilder.load_completed(user_id, generation, counts))

    async def _fetch(
        self,
        kind: EntityKind,
        user_id: str,
        generation: int,
        limit: Optional[int] = None,
    ) -> None:
        records = await self._remote.list_by_user(kind, user_id, limit=limit)
        if generation != self._generation:
            self._audit.log(
                AuditEventBuilder.stale_result_discarded(kind.value, generation, self._generation)
            )
            return

        if kind == EntityKind.PROFILES:
            self._apply_remote_profile(user_id, records)
        else:
            self._apply_remote_records(kind, records)
        self._fresh.add(kind)

    def _apply_remote_records(self, kind: EntityKind, records: list[Record]) -> None:
        model = ENTITY_MODELS[kind]
        loaded: list[LedgerRecord] = []
        for record in records:
            try:
                loaded.append(model.from_record(record))
            except (ValidationError, KeyError) as e:
                logger.warning(
                    "remote_record_skipped",
                    kind=kind.value,
                    record_id=record.get("id"),
                    error=str(e),
                )

        # Records that never reached the remote stay visible
        local_only = [r for r in self._collections[kind] if IdReconciler.is_temporary(r.id)]
        loaded_ids = {r.id for r in loaded}
        local_only = [r for r in local_only if r.id not in loaded_ids]

        if kind == EntityKind.TRANSACTIONS:
            self._collections[kind] = local_only + loaded
        else:
            self._collections[kind] = loaded + local_only
        self._touch(kind)

    def _apply_remote_profile(self, user_id: str, records: list[Record]) -> None:
        if not records:
            return
        try:
            remote = UserProgression.from_record(user_id, records[0])
        except ValidationError as e:
            logger.warning("remote_profile_skipped", user_id=user_id, error=str(e))
            return

        local = self._progression
        if local is not None:
            # XP never goes backwards, even if a grant has not reached the remote yet
            remote = UserProgression.model_validate({
                **remote.model_dump(),
                "xp": max(remote.xp, local.xp),
                "has_onboarding": remote.has_onboarding or local.has_onboarding,
            })
        self._progression = remote
        self._touch(EntityKind.PROFILES)

    def _finish_critical(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._is_loading = False
        self.ready.set()

    def _hydrate_from_cache(self, user_id: str) -> None:
        hydrated: list[str] = []

        for kind, model in ENTITY_MODELS.items():
            if kind in self._fresh:
                continue
            items = self._read_cached_list(entity_key(kind.value, user_id))
            if items is None:
                continue
            try:
                entities = [model.model_validate(item) for item in items]
            except (ValidationError, TypeError) as e:
                self._audit.log(
                    AuditEventBuilder.cache_corrupted(entity_key(kind.value, user_id), str(e))
                )
                continue
            # A pending entry no insert of this session owns was never confirmed
            self._collections[kind] = [
                e.model_copy(update={"sync_state": SyncState.FAILED})
                if e.sync_state == SyncState.PENDING and not self._reconciler.is_pending(e.id)
                else e
                for e in entities
            ]
            self._touch(kind)
            hydrated.append(kind.value)

        if EntityKind.PROFILES not in self._fresh:
            key = entity_key(EntityKind.PROFILES.value, user_id)
            blob = self._read_cache(key)
            if blob is not None:
                try:
                    self._progression = UserProgression.model_validate_json(blob)
                    self._touch(EntityKind.PROFILES)
                    hydrated.append(EntityKind.PROFILES.value)
                except ValidationError as e:
                    self._audit.log(AuditEventBuilder.cache_corrupted(key, str(e)))

        categories = self._read_cached_list(entity_key(CUSTOM_CATEGORIES_KEY, user_id))
        if categories is not None:
            self._custom_categories = [c for c in categories if isinstance(c, str)]
            hydrated.append(CUSTOM_CATEGORIES_KEY)

        if hydrated:
            self._audit.log(AuditEventBuilder.cache_hydrated(user_id, hydrated))

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def drain(self) -> None:
        """
        Wait for every in-flight persistence task.

        Raises:
            SessionInvalidError: If background persistence hit one
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._fatal_error is not None:
            raise self._fatal_error

    def sign_out(self) -> None:
        """Drop the user's in-memory state and purge their cache entries."""
        user_id = self._user_id
        self._generation += 1
        self._clear_memory()
        self._user_id = None
        self._progression = None
        self._fatal_error = None
        self._is_loading = False
        self.ready.clear()

        if user_id is not None:
            self._purge_cache(user_id)
            self._audit.log(AuditEventBuilder.signed_out(user_id))

    def reset_data(self) -> None:
        """
        Wipe the user's ledger locally and remotely.

        Progression is kept. Remote deletes run in the background,
        after any insert still in flight has landed.
        """
        self._ensure_writable()
        user_id = self._user_id
        in_flight = [
            r.id
            for items in self._collections.values()
            for r in items
            if self._reconciler.is_pending(r.id)
        ]

        for kind in ENTITY_MODELS:
            self._collections[kind] = []
            self._touch(kind)
        self._custom_categories = list(DEFAULT_CATEGORIES)

        self._purge_cache(user_id)
        self._write_cache(EntityKind.PROFILES)
        self._schedule(self._sync_reset(user_id, in_flight))

    # =========================================================================
    # MUTATION PROTOCOL
    # =========================================================================

    def _add(
        self,
        kind: EntityKind,
        values: dict[str, Any],
        xp: int,
        reason: Optional[str] = None,
    ) -> LedgerRecord:
        self._ensure_writable()
        temp_id = self._reconciler.new_temp_id()
        entity = ENTITY_MODELS[kind].model_validate(
            {**values, "id": temp_id, "sync_state": SyncState.PENDING}
        )

        if kind == EntityKind.TRANSACTIONS:
            self._collections[kind].insert(0, entity)
        else:
            self._collections[kind].append(entity)
        self._touch(kind)
        self._write_cache(kind)

        self._reconciler.register(temp_id)
        operation = self._operations.open(kind, OperationAction.INSERT, temp_id)
        self._audit.log(AuditEventBuilder.entity_added(kind.value, temp_id, operation.op_id))
        self._schedule(self._sync_insert(kind, entity.to_record(self._user_id), operation))

        if xp:
            self.grant_xp(xp, reason)
        return entity

    def _update(self, kind: EntityKind, entity_id: str, patch: Mapping[str, Any]) -> LedgerRecord:
        self._ensure_writable()
        model = ENTITY_MODELS[kind]
        current = self.find(kind, entity_id)

        clean = {k: v for k, v in patch.items() if k not in model.LOCAL_ONLY}
        updated = model.model_validate({**current.model_dump(), **clean, "id": current.id})

        changed = {
            name for name in model.model_fields
            if name not in model.LOCAL_ONLY and getattr(updated, name) != getattr(current, name)
        }
        if not changed:
            return current

        operation = self._operations.open(kind, OperationAction.UPDATE, current.id)
        updated = updated.model_copy(update={"sync_state": SyncState.PENDING})
        self._replace(kind, current.id, updated)
        self._write_cache(kind)

        self._audit.log(
            AuditEventBuilder.entity_updated(kind.value, current.id, sorted(changed), operation.op_id)
        )
        payload = model.remote_patch(updated.model_dump(mode="json", include=changed))
        self._schedule(self._sync_update(kind, current.id, payload, operation))
        return updated

    def _remove(self, kind: EntityKind, entity_id: str) -> None:
        self._ensure_writable()
        current = self.find(kind, entity_id)

        self._collections[kind] = [r for r in self._collections[kind] if r.id != current.id]
        self._touch(kind)
        self._write_cache(kind)

        operation = self._operations.open(kind, OperationAction.DELETE, current.id)
        self._audit.log(AuditEventBuilder.entity_removed(kind.value, current.id, operation.op_id))

        if self._reconciler.never_reached_remote(current.id):
            self._operations.confirm(operation)
            return
        self._schedule(self._sync_delete(kind, current.id, operation))

    # =========================================================================
    # BACKGROUND PERSISTENCE
    # =========================================================================

    async def _sync_insert(
        self,
        kind: EntityKind,
        record: Record,
        operation: PendingOperation,
    ) -> None:
        temp_id = operation.entity_id
        try:
            stored = await self._remote.insert(kind, record)
        except SessionInvalidError as e:
            self._reconciler.fail(temp_id)
            self._write_failed(operation, e, notify=False)
            self._invalidate_session(e)
            return
        except Exception as e:
            self._reconciler.fail(temp_id)
            self._write_failed(operation, e)
            return

        server_id = str(stored["id"])
        self._reconciler.resolve(temp_id, server_id)
        self._operations.retarget(temp_id, server_id)
        self._substitute(kind, temp_id, server_id, operation.op_id)
        self._write_confirmed(operation)

    async def _sync_update(
        self,
        kind: EntityKind,
        entity_id: str,
        payload: Record,
        operation: PendingOperation,
    ) -> None:
        try:
            server_id = await self._reconciler.server_id(entity_id)
            if server_id is None:
                raise RemoteSyncError("record never reached the remote")
            await self._remote.update(kind, server_id, payload)
        except SessionInvalidError as e:
            self._write_failed(operation, e, notify=False)
            self._invalidate_session(e)
            return
        except Exception as e:
            self._write_failed(operation, e)
            return
        self._write_confirmed(operation)

    async def _sync_delete(
        self,
        kind: EntityKind,
        entity_id: str,
        operation: PendingOperation,
    ) -> None:
        try:
            server_id = await self._reconciler.server_id(entity_id)
            if server_id is not None:
                await self._remote.delete(kind, server_id)
        except SessionInvalidError as e:
            self._write_failed(operation, e, notify=False)
            self._invalidate_session(e)
            return
        except Exception as e:
            self._write_failed(operation, e)
            return
        self._write_confirmed(operation)

    def _sync_profile(self) -> None:
        operation = self._operations.open(
            EntityKind.PROFILES, OperationAction.UPDATE, self._user_id
        )
        self._schedule(self._push_profile(self._user_id, operation))

    async def _push_profile(self, user_id: str, operation: PendingOperation) -> None:
        # Serialized so a stale snapshot never overwrites a newer one
        async with self._profile_lock:
            if self._progression is None or self._progression.user_id != user_id:
                self._operations.fail(operation, "signed out before sync")
                return
            try:
                await self._remote.update(
                    EntityKind.PROFILES, user_id, self._progression.to_record()
                )
            except SessionInvalidError as e:
                self._write_failed(operation, e, notify=False)
                self._invalidate_session(e)
                return
            except Exception as e:
                self._write_failed(operation, e)
                return
        self._write_confirmed(operation)

    async def _record_xp_history(self, user_id: str, amount: int, reason: str) -> None:
        record = {
            "user_id": user_id,
            "amount": amount,
            "reason": reason,
            "created_at": self._clock.now().isoformat(),
        }
        try:
            await self._remote.insert(EntityKind.XP_HISTORY, record)
        except Exception as e:
            logger.warning("xp_history_write_failed", user_id=user_id, error=str(e))

    async def _sync_reset(self, user_id: str, in_flight: list[str]) -> None:
        deleted = 0
        try:
            for temp_id in in_flight:
                await self._reconciler.server_id(temp_id)
            for kind in (*ENTITY_MODELS, EntityKind.XP_HISTORY):
                for record in await self._remote.list_by_user(kind, user_id):
                    await self._remote.delete(kind, str(record["id"]))
                    deleted += 1
        except SessionInvalidError as e:
            self._invalidate_session(e)
            return
        except Exception as e:
            self._audit.log(
                AuditEventBuilder.system_error(
                    type(e).__name__, str(e), {"action": "reset_data", "deleted": deleted}
                )
            )
            self._notifications.notify(
                "Reset incomplete",
                "Some records could not be deleted from the cloud.",
                NotificationSeverity.ERROR,
                NotificationCategory.SYSTEM,
            )
            return
        self._audit.log(AuditEventBuilder.data_reset(user_id, deleted))

    def _write_confirmed(self, operation: PendingOperation) -> None:
        self._operations.confirm(operation)
        self._audit.log(
            AuditEventBuilder.remote_write_confirmed(
                operation.kind.value, operation.entity_id, operation.action.value, operation.op_id
            )
        )
        self._refresh_sync_state(operation.kind, operation.entity_id)

    def _write_failed(self, operation: PendingOperation, error: Exception, notify: bool = True) -> None:
        self._operations.fail(operation, str(error))
        self._audit.log(
            AuditEventBuilder.remote_write_failed(
                operation.kind.value,
                operation.entity_id,
                operation.action.value,
                str(error),
                operation.op_id,
            )
        )
        self._refresh_sync_state(operation.kind, operation.entity_id)
        if notify:
            self._notifications.notify(
                "Sync failed",
                NOT_SAVED_MESSAGE,
                NotificationSeverity.ERROR,
                NotificationCategory.SYSTEM,
            )

    def _invalidate_session(self, error: SessionInvalidError, generation: Optional[int] = None) -> None:
        if generation is not None and generation != self._generation:
            return
        if self._fatal_error is not None:
            return
        self._fatal_error = error
        self._audit.log(AuditEventBuilder.session_invalidated(self._user_id, str(error)))
        self._notifications.notify(
            "Session expired",
            "Sign in again to keep your data in sync.",
            NotificationSeverity.ERROR,
            NotificationCategory.SECURITY,
        )

    # =========================================================================
    # IN-MEMORY HELPERS
    # =========================================================================

    def _ensure_writable(self) -> None:
        if self._fatal_error is not None:
            raise self._fatal_error
        if self._user_id is None or self._progression is None:
            raise RuntimeError("No user loaded; call load() first")

    def _schedule(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _touch(self, kind: EntityKind) -> None:
        self._versions[kind] += 1

    def _index_of(self, kind: EntityKind, entity_id: str) -> Optional[int]:
        for index, entity in enumerate(self._collections.get(kind, [])):
            if entity.id == entity_id:
                return index
        return None

    def _replace(self, kind: EntityKind, entity_id: str, entity: LedgerRecord) -> None:
        index = self._index_of(kind, entity_id)
        if index is None:
            return
        self._collections[kind][index] = entity
        self._touch(kind)

    def _substitute(self, kind: EntityKind, temp_id: str, server_id: str, op_id: str) -> None:
        if self._index_of(kind, temp_id) is None:
            return
        # A load may already have delivered the confirmed record
        self._collections[kind] = [r for r in self._collections[kind] if r.id != server_id]
        index = self._index_of(kind, temp_id)
        entity = self._collections[kind][index]
        self._collections[kind][index] = entity.model_copy(update={"id": server_id})
        self._touch(kind)
        self._write_cache(kind)
        self._audit.log(AuditEventBuilder.id_reconciled(kind.value, temp_id, server_id, op_id))

    def _refresh_sync_state(self, kind: EntityKind, entity_id: str) -> None:
        if kind not in ENTITY_MODELS:
            return
        index = self._index_of(kind, entity_id)
        if index is None:
            return

        operations = self._operations.for_entity(kind, entity_id)
        if any(op.is_open for op in operations):
            state = SyncState.PENDING
        elif any(op.status == OperationStatus.FAILED for op in operations):
            state = SyncState.FAILED
        else:
            state = SyncState.SYNCED

        entity = self._collections[kind][index]
        if entity.sync_state != state:
            self._collections[kind][index] = entity.model_copy(update={"sync_state": state})
            self._touch(kind)
            self._write_cache(kind)

    def _set_progression(self, progression: UserProgression) -> None:
        self._progression = progression
        self._touch(EntityKind.PROFILES)
        self._write_cache(EntityKind.PROFILES)

    def _clear_memory(self) -> None:
        for kind in ENTITY_MODELS:
            self._collections[kind] = []
            self._touch(kind)
        self._custom_categories = list(DEFAULT_CATEGORIES)
        self._touch(EntityKind.PROFILES)
        self._reconciler.clear()
        self._operations.clear()
        self._fresh = set()

    @staticmethod
    def _as_dict(data: Union[Mapping[str, Any], BaseModel]) -> dict[str, Any]:
        if isinstance(data, BaseModel):
            return data.model_dump(exclude={"id", "sync_state"})
        return {k: v for k, v in data.items() if k not in ("id", "sync_state")}

    # =========================================================================
    # CACHE HELPERS
    # =========================================================================

    def _write_cache(self, kind: EntityKind) -> None:
        if self._user_id is None:
            return
        if kind == EntityKind.PROFILES:
            if self._progression is None:
                return
            blob = self._progression.model_dump_json()
        else:
            blob = json.dumps([r.model_dump(mode="json") for r in self._collections[kind]])
        self._write_blob(entity_key(kind.value, self._user_id), blob)

    def _write_custom_categories(self) -> None:
        if self._user_id is None:
            return
        key = entity_key(CUSTOM_CATEGORIES_KEY, self._user_id)
        self._write_blob(key, json.dumps(self._custom_categories, ensure_ascii=False))

    def _write_blob(self, key: str, blob: str) -> None:
        try:
            self._cache.write(key, blob)
        except CacheError as e:
            logger.warning("cache_write_failed", key=key, error=str(e))

    def _read_cache(self, key: str) -> Optional[str]:
        try:
            return self._cache.read(key)
        except CacheError as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

    def _read_cached_list(self, key: str) -> Optional[list[Any]]:
        blob = self._read_cache(key)
        if blob is None:
            return None
        try:
            items = json.loads(blob)
        except json.JSONDecodeError as e:
            self._audit.log(AuditEventBuilder.cache_corrupted(key, str(e)))
            return None
        if not isinstance(items, list):
            self._audit.log(AuditEventBuilder.cache_corrupted(key, "expected a JSON list"))
            return None
        return items

    def _purge_cache(self, user_id: str) -> None:
        try:
            self._cache.purge_user(user_id, CACHE_NAMESPACES)
        except CacheError as e:
            logger.warning("cache_purge_failed", user_id=user_id, error=str(e))
