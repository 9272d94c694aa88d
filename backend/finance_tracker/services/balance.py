from decimal import Decimal

from ..money import signed_total
from ..ownership import owned_by
from ..store import TRANSACTIONS, RecordStore


class BalanceService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def total_balance(self, user_id: int) -> Decimal:
        """Income minus expenses over all of the user's transactions, to the cent."""
        return signed_total(owned_by(self.store.load_all(TRANSACTIONS), user_id))
