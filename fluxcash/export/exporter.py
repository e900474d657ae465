"""
Transaction Export

Serializes the user's complete transaction history, not just the page a
normal load keeps in memory.

DESIGN DECISION: The export reads the remote without the load limit, then
overlays the in-memory ledger by id. Local edits the remote has not
confirmed win over the remote copy, and local deletes the remote has not
confirmed drop the row.
"""

import csv
import io
import json
from typing import Optional

import structlog
from pydantic import ValidationError

from fluxcash import __version__
from fluxcash.audit.logger import AuditLogger
from fluxcash.ledger.store import LedgerStore
from fluxcash.models.audit import AuditEventBuilder
from fluxcash.models.ledger import (
    EntityKind,
    OperationAction,
    OperationStatus,
    SyncState,
    Transaction,
)
from fluxcash.services.remote.interface import (
    RemoteSyncAdapter,
    RemoteSyncError,
    SessionInvalidError,
)


logger = structlog.get_logger(__name__)

CSV_COLUMNS = [
    "id",
    "date",
    "title",
    "type",
    "amount",
    "category",
    "account",
    "installment",
    "is_recurring",
    "synced",
]

SUPPORTED_FORMATS = ("csv", "json")


class TransactionExporter:
    """
    Exports the signed-in user's data as CSV or as a JSON backup document.

    Usage:
        exporter = TransactionExporter(store, remote)
        content = await exporter.export("csv")
    """

    def __init__(
        self,
        store: LedgerStore,
        remote: RemoteSyncAdapter,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._remote = remote
        self._audit = audit_logger or AuditLogger()

    async def fetch_all_transactions(self) -> list[Transaction]:
        """
        Full transaction history, newest first.

        Raises:
            ExportError: If the remote could not be read
            SessionInvalidError: If the remote rejected the session
        """
        user_id = self._require_user()
        try:
            records = await self._remote.list_by_user(EntityKind.TRANSACTIONS, user_id, limit=None)
        except SessionInvalidError:
            raise
        except RemoteSyncError as e:
            raise ExportError(f"Could not read transactions: {e}") from e

        transactions: list[Transaction] = []
        for record in records:
            try:
                transactions.append(Transaction.from_record(record))
            except (ValidationError, KeyError) as e:
                logger.warning("export_record_skipped", record_id=record.get("id"), error=str(e))

        # Local deletes that have not reached the remote
        removed = {
            op.entity_id
            for op in self._store.operations
            if op.kind == EntityKind.TRANSACTIONS
            and op.action == OperationAction.DELETE
            and op.status != OperationStatus.CONFIRMED
        }
        merged = {t.id: t for t in transactions if t.id not in removed}
        # The in-memory ledger wins for every id it holds
        for t in self._store.transactions:
            merged[t.id] = t

        result = list(merged.values())
        result.sort(key=_sort_key, reverse=True)
        return result

    async def to_csv(self) -> str:
        transactions = await self.fetch_all_transactions()
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for t in transactions:
            writer.writerow([
                t.id,
                t.timestamp.isoformat() if t.timestamp else "",
                t.title,
                t.type.value,
                str(t.amount),
                t.category,
                t.account,
                t.installment or "",
                "true" if t.is_recurring else "false",
                "true" if t.sync_state == SyncState.SYNCED else "false",
            ])
        self._log_export("csv", len(transactions))
        return buffer.getvalue()

    async def to_json(self) -> str:
        """Backup document: version, export time and every collection."""
        transactions = await self.fetch_all_transactions()
        store = self._store
        progression = store.progression

        document = {
            "version": __version__,
            "exported_at": store.clock.now().isoformat(),
            "data": {
                "transactions": [t.model_dump(mode="json") for t in transactions],
                "cards": [c.model_dump(mode="json") for c in store.cards],
                "goals": [g.model_dump(mode="json") for g in store.goals],
                "debts": [d.model_dump(mode="json") for d in store.debts],
                "ai_rules": [r.model_dump(mode="json") for r in store.rules],
                "custom_categories": store.custom_categories,
                "user_profile": progression.model_dump(mode="json") if progression else None,
            },
        }
        self._log_export("json", len(transactions))
        return json.dumps(document, ensure_ascii=False, indent=2)

    async def export(self, fmt: str) -> str:
        """
        Export in the given format ('csv' or 'json').

        Raises:
            ExportError: If the format is unsupported or the remote failed
        """
        fmt = fmt.lower().strip()
        if fmt == "csv":
            return await self.to_csv()
        if fmt == "json":
            return await self.to_json()
        raise ExportError(f"Unsupported export format: {fmt}. Use one of {SUPPORTED_FORMATS}")

    def _require_user(self) -> str:
        user_id = self._store.user_id
        if user_id is None:
            raise ExportError("No user loaded")
        return user_id

    def _log_export(self, fmt: str, count: int) -> None:
        self._audit.log(AuditEventBuilder.export_completed(self._store.user_id, fmt, count))


def _sort_key(transaction: Transaction) -> float:
    if transaction.timestamp is None:
        return float("-inf")
    return transaction.timestamp.timestamp()


class ExportError(Exception):
    """Export could not be produced."""
    pass
