from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any, Optional

from ..errors import ValidationError
from ..ids import next_id
from ..money import TRANSACTION_TYPES, format_amount, parse_amount
from ..ownership import find_owned_index, owned_by
from ..schemas import Pagination, TransactionCreate, TransactionFilters, TransactionUpdate
from ..store import CATEGORIES, TRANSACTIONS, Record, RecordStore, timestamp

logger = logging.getLogger(__name__)

_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


def parse_date(value: Any, field: str = "transaction_date") -> date:
    """Accept a date, a datetime, ``YYYY-MM-DD`` or an ISO datetime string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not _ISO_DATE_PREFIX.match(raw):
        raise ValidationError(f"{field} must be an ISO date", field=field)
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date", field=field) from None


def parse_category_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("category_id must be a positive integer", field="category_id")
    try:
        category_id = int(str(value).strip())
    except ValueError:
        raise ValidationError("category_id must be a positive integer", field="category_id") from None
    if category_id <= 0:
        raise ValidationError("category_id must be a positive integer", field="category_id")
    return category_id


def parse_type(value: Any) -> str:
    tx_type = str(value).strip().lower()
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError("type must be income or expense", field="type")
    return tx_type


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class TransactionService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _require_category(self, user_id: int, category_id: int) -> None:
        categories = self.store.load_all(CATEGORIES)
        find_owned_index(categories, category_id, user_id, "category")

    def list(
        self,
        user_id: int,
        filters: Optional[TransactionFilters] = None,
        pagination: Optional[Pagination] = None,
    ) -> list[Record]:
        filters = filters or TransactionFilters()
        pagination = pagination or Pagination()
        rows = owned_by(self.store.load_all(TRANSACTIONS), user_id)

        if filters.category_id is not None:
            rows = [t for t in rows if t.get("category_id") == filters.category_id]
        if filters.type is not None:
            rows = [t for t in rows if t.get("type") == filters.type.value]
        if filters.start_date:
            start = parse_date(filters.start_date, "start_date")
            rows = [t for t in rows if parse_date(t["transaction_date"]) >= start]
        if filters.end_date:
            end = parse_date(filters.end_date, "end_date")
            rows = [t for t in rows if parse_date(t["transaction_date"]) <= end]

        # sorted() is stable, so same-day rows stay in insertion order.
        rows = sorted(rows, key=lambda t: parse_date(t["transaction_date"]), reverse=True)
        offset = pagination.offset
        limit = pagination.limit or len(rows)
        return [dict(t) for t in rows[offset:offset + limit]]

    def create(self, user_id: int, payload: TransactionCreate) -> Record:
        missing = [
            name
            for name in ("category_id", "type", "amount", "transaction_date")
            if _is_missing(getattr(payload, name))
        ]
        if missing:
            raise ValidationError(
                "category_id, type, amount and transaction_date are required",
                field=",".join(missing),
            )
        amount = parse_amount(payload.amount)
        category_id = parse_category_id(payload.category_id)
        tx_type = parse_type(payload.type)
        tx_date = parse_date(payload.transaction_date)
        self._require_category(user_id, category_id)

        with self.store.locked(TRANSACTIONS):
            transactions = self.store.load_all(TRANSACTIONS)
            now = timestamp()
            row = {
                "id": next_id(transactions),
                "user_id": user_id,
                "category_id": category_id,
                "type": tx_type,
                "amount": format_amount(amount),
                "transaction_date": tx_date.isoformat(),
                "comment": payload.comment or None,
                "created_at": now,
                "updated_at": now,
            }
            transactions.append(row)
            self.store.save_all(TRANSACTIONS, transactions)
        logger.info("transaction %s created for user %s", row["id"], user_id)
        return row

    def update(self, user_id: int, transaction_id: int, payload: TransactionUpdate) -> Record:
        updates = payload.model_dump(exclude_unset=True)
        changes: dict[str, Any] = {}
        if not _is_missing(updates.get("category_id")):
            changes["category_id"] = parse_category_id(updates["category_id"])
        if not _is_missing(updates.get("type")):
            changes["type"] = parse_type(updates["type"])
        if "amount" in updates:
            changes["amount"] = format_amount(parse_amount(updates["amount"]))
        if not _is_missing(updates.get("transaction_date")):
            changes["transaction_date"] = parse_date(updates["transaction_date"]).isoformat()
        if "comment" in updates:
            changes["comment"] = updates["comment"] or None

        with self.store.locked(TRANSACTIONS):
            transactions = self.store.load_all(TRANSACTIONS)
            index = find_owned_index(transactions, transaction_id, user_id, "transaction")
            if "category_id" in changes and changes["category_id"] != transactions[index]["category_id"]:
                self._require_category(user_id, changes["category_id"])
            row = {**transactions[index], **changes, "updated_at": timestamp()}
            transactions[index] = row
            self.store.save_all(TRANSACTIONS, transactions)
        logger.info("transaction %s updated for user %s", transaction_id, user_id)
        return row

    def delete(self, user_id: int, transaction_id: int) -> int:
        with self.store.locked(TRANSACTIONS):
            transactions = self.store.load_all(TRANSACTIONS)
            index = find_owned_index(transactions, transaction_id, user_id, "transaction")
            del transactions[index]
            self.store.save_all(TRANSACTIONS, transactions)
        logger.info("transaction %s deleted for user %s", transaction_id, user_id)
        return transaction_id

    def get(self, user_id: int, transaction_id: int) -> Record:
        transactions = self.store.load_all(TRANSACTIONS)
        index = find_owned_index(transactions, transaction_id, user_id, "transaction")
        return transactions[index]

