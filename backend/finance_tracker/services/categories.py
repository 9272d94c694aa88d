from __future__ import annotations

import logging
from decimal import Decimal

from ..errors import ValidationError
from ..ids import next_id
from ..money import ZERO, format_amount, signed_amount
from ..ownership import find_owned_index, owned_by
from ..schemas import CategoryCreate, CategoryUpdate
from ..store import CATEGORIES, TRANSACTIONS, Record, RecordStore, timestamp

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def list(self, user_id: int) -> list[Record]:
        return [dict(c) for c in owned_by(self.store.load_all(CATEGORIES), user_id)]

    def get(self, user_id: int, category_id: int) -> Record:
        categories = self.store.load_all(CATEGORIES)
        return categories[find_owned_index(categories, category_id, user_id, "category")]

    def summaries(self, user_id: int) -> list[Record]:
        """Each of the user's categories with the signed sum of its transactions."""
        categories = owned_by(self.store.load_all(CATEGORIES), user_id)
        transactions = owned_by(self.store.load_all(TRANSACTIONS), user_id)
        totals: dict[int, Decimal] = {}
        for tx in transactions:
            category_id = tx.get("category_id")
            totals[category_id] = totals.get(category_id, ZERO) + signed_amount(tx)
        return [{**category, "balance": format_amount(totals.get(category["id"], ZERO))} for category in categories]

    def create(self, user_id: int, payload: CategoryCreate) -> Record:
        name = (payload.name or "").strip()
        if not name:
            raise ValidationError("name is required", field="name")
        with self.store.locked(CATEGORIES):
            categories = self.store.load_all(CATEGORIES)
            now = timestamp()
            row = {
                "id": next_id(categories),
                "user_id": user_id,
                "name": name,
                "icon": payload.icon,
                "color": payload.color,
                "created_at": now,
                "updated_at": now,
            }
            categories.append(row)
            self.store.save_all(CATEGORIES, categories)
        logger.info("category %s created for user %s", row["id"], user_id)
        return row

    def update(self, user_id: int, category_id: int, payload: CategoryUpdate) -> Record:
        changes = {}
        for key, value in payload.model_dump(exclude_unset=True).items():
            if isinstance(value, str):
                value = value.strip()
            if value:
                changes[key] = value
        with self.store.locked(CATEGORIES):
            categories = self.store.load_all(CATEGORIES)
            index = find_owned_index(categories, category_id, user_id, "category")
            row = {**categories[index], **changes, "updated_at": timestamp()}
            categories[index] = row
            self.store.save_all(CATEGORIES, categories)
        logger.info("category %s updated for user %s", category_id, user_id)
        return row

    def delete(self, user_id: int, category_id: int) -> int:
        # Transactions filed under the category are left in place.
        with self.store.locked(CATEGORIES):
            categories = self.store.load_all(CATEGORIES)
            index = find_owned_index(categories, category_id, user_id, "category")
            del categories[index]
            self.store.save_all(CATEGORIES, categories)
        logger.info("category %s deleted for user %s", category_id, user_id)
        return category_id
