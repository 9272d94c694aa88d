import os

os.environ["STORAGE_BACKEND"] = "memory"

import pytest

from finance_tracker.schemas import CategoryCreate, TransactionCreate
from finance_tracker.services.balance import BalanceService
from finance_tracker.services.categories import CategoryService
from finance_tracker.services.transactions import TransactionService
from finance_tracker.services.users import UserService
from finance_tracker.store import InMemoryRecordStore, JsonFileRecordStore, SqlRecordStore


@pytest.fixture(params=["memory", "file", "database"])
def any_store(request, tmp_path):
    if request.param == "file":
        return JsonFileRecordStore(tmp_path / "data")
    if request.param == "database":
        return SqlRecordStore(f"sqlite:///{tmp_path / 'tracker.db'}")
    return InMemoryRecordStore()


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def transaction_service(store):
    return TransactionService(store)


@pytest.fixture
def category_service(store):
    return CategoryService(store)


@pytest.fixture
def balance_service(store):
    return BalanceService(store)


@pytest.fixture
def user_service(store):
    return UserService(store)


@pytest.fixture
def make_category(category_service):
    def _make(user_id: int, name: str = "Food", **fields):
        return category_service.create(user_id, CategoryCreate(name=name, **fields))

    return _make


@pytest.fixture
def make_transaction(transaction_service):
    def _make(user_id: int, category_id: int, tx_type: str = "expense", amount="10", tx_date="2024-01-01", **fields):
        payload = TransactionCreate(
            category_id=category_id, type=tx_type, amount=amount, transaction_date=tx_date, **fields
        )
        return transaction_service.create(user_id, payload)

    return _make
