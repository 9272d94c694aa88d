from datetime import date

import pytest

from finance_tracker.errors import NotFoundError, ValidationError
from finance_tracker.schemas import Pagination, TransactionCreate, TransactionFilters, TransactionUpdate
from finance_tracker.store import TRANSACTIONS


def test_create_then_list_returns_the_transaction(transaction_service, make_category, make_transaction) -> None:
    food = make_category(1)
    created = make_transaction(1, food["id"], "expense", -12.5, "2024-03-04", comment="lunch")

    assert created["amount"] == "12.50"
    assert created["user_id"] == 1
    assert created["transaction_date"] == "2024-03-04"
    assert created["created_at"] == created["updated_at"]
    assert transaction_service.list(1) == [created]


def test_ids_are_allocated_over_the_whole_partition(make_category, make_transaction) -> None:
    a_cat = make_category(1)
    b_cat = make_category(2)
    first = make_transaction(1, a_cat["id"])
    second = make_transaction(2, b_cat["id"])
    third = make_transaction(1, a_cat["id"])
    assert [first["id"], second["id"], third["id"]] == [1, 2, 3]


@pytest.mark.parametrize("missing", ["category_id", "type", "amount", "transaction_date"])
def test_create_requires_all_fields(transaction_service, make_category, missing: str) -> None:
    food = make_category(1)
    fields = {"category_id": food["id"], "type": "income", "amount": "5", "transaction_date": "2024-01-01"}
    fields[missing] = None
    with pytest.raises(ValidationError) as exc:
        transaction_service.create(1, TransactionCreate(**fields))
    assert missing in exc.value.field


@pytest.mark.parametrize(
    "field, value",
    [
        ("amount", "0"),
        ("amount", "-0"),
        ("amount", "ten"),
        ("amount", "1e30"),
        ("amount", "12345678901234567890123456789"),
        ("type", "transfer"),
        ("transaction_date", "yesterday"),
        ("transaction_date", "20240101"),
        ("category_id", "abc"),
    ],
)
def test_create_rejects_malformed_fields(transaction_service, store, make_category, field: str, value: str) -> None:
    food = make_category(1)
    fields = {"category_id": food["id"], "type": "income", "amount": "5", "transaction_date": "2024-01-01", field: value}
    with pytest.raises(ValidationError):
        transaction_service.create(1, TransactionCreate(**fields))
    assert store.load_all(TRANSACTIONS) == []


def test_create_requires_an_owned_category(transaction_service, make_category) -> None:
    foreign = make_category(2)
    payload = TransactionCreate(category_id=foreign["id"], type="income", amount="1", transaction_date="2024-01-01")
    with pytest.raises(NotFoundError):
        transaction_service.create(1, payload)
    with pytest.raises(NotFoundError):
        transaction_service.create(1, payload.model_copy(update={"category_id": 999}))


def test_create_accepts_datetime_strings_and_date_objects(make_category, make_transaction) -> None:
    food = make_category(1)
    assert make_transaction(1, food["id"], tx_date="2024-05-06T18:30:00Z")["transaction_date"] == "2024-05-06"
    assert make_transaction(1, food["id"], tx_date=date(2024, 5, 7))["transaction_date"] == "2024-05-07"


def test_list_filters_are_conjunctive_and_scoped_to_user(transaction_service, make_category, make_transaction) -> None:
    food = make_category(1, "Food")
    salary = make_category(1, "Salary")
    other = make_category(2, "Food")
    wanted = make_transaction(1, food["id"], "expense", "3")
    make_transaction(1, food["id"], "income", "4")
    make_transaction(1, salary["id"], "expense", "5")
    make_transaction(2, other["id"], "expense", "6")

    filters = TransactionFilters(type="expense", category_id=food["id"])
    assert transaction_service.list(1, filters) == [wanted]
    assert transaction_service.list(2, filters) == []


def test_list_date_bounds_are_inclusive(transaction_service, make_category, make_transaction) -> None:
    food = make_category(1)
    for day in ("2024-01-01", "2024-01-15", "2024-01-31", "2024-02-01"):
        make_transaction(1, food["id"], tx_date=day)

    rows = transaction_service.list(1, TransactionFilters(start_date="2024-01-15", end_date="2024-01-31"))
    assert [r["transaction_date"] for r in rows] == ["2024-01-31", "2024-01-15"]

    with pytest.raises(ValidationError):
        transaction_service.list(1, TransactionFilters(start_date="not-a-date"))


def test_list_orders_newest_first_with_insertion_tiebreak(transaction_service, make_category, make_transaction) -> None:
    food = make_category(1)
    old = make_transaction(1, food["id"], tx_date="2023-12-31")
    same_a = make_transaction(1, food["id"], tx_date="2024-01-10")
    newest = make_transaction(1, food["id"], tx_date="2024-02-01")
    same_b = make_transaction(1, food["id"], tx_date="2024-01-10")

    ids = [r["id"] for r in transaction_service.list(1)]
    assert ids == [newest["id"], same_a["id"], same_b["id"], old["id"]]


def test_list_paginates_after_sorting(transaction_service, make_category, make_transaction) -> None:
    food = make_category(1)
    for day in range(1, 6):
        make_transaction(1, food["id"], tx_date=f"2024-01-0{day}")

    page = transaction_service.list(1, pagination=Pagination(offset=1, limit=2))
    assert [r["transaction_date"] for r in page] == ["2024-01-04", "2024-01-03"]
    rest = transaction_service.list(1, pagination=Pagination(offset=3))
    assert [r["transaction_date"] for r in rest] == ["2024-01-02", "2024-01-01"]
    assert transaction_service.list(1, pagination=Pagination(offset=10)) == []


def test_update_overwrites_only_given_fields(transaction_service, make_category, make_transaction) -> None:
    food = make_category(1)
    rent = make_category(1, "Rent")
    tx = make_transaction(1, food["id"], "expense", "10", comment="keep me")

    updated = transaction_service.update(1, tx["id"], TransactionUpdate(amount="-99.999", category_id=rent["id"]))
    assert updated["amount"] == "100.00"
    assert updated["category_id"] == rent["id"]
    assert updated["type"] == "expense"
    assert updated["comment"] == "keep me"
    assert updated["created_at"] == tx["created_at"]
    assert transaction_service.get(1, tx["id"]) == updated


def test_update_can_clear_comment(transaction_service, make_category, make_transaction) -> None:
    food = make_category(1)
    tx = make_transaction(1, food["id"], comment="note")

    untouched = transaction_service.update(1, tx["id"], TransactionUpdate(type="income"))
    assert untouched["comment"] == "note"
    cleared = transaction_service.update(1, tx["id"], TransactionUpdate(comment=None))
    assert cleared["comment"] is None

    transaction_service.update(1, tx["id"], TransactionUpdate(comment="again"))
    kept = transaction_service.update(1, tx["id"], TransactionUpdate(amount="3"))
    assert kept["comment"] == "again"
    emptied = transaction_service.update(1, tx["id"], TransactionUpdate(comment=""))
    assert emptied["comment"] is None
    assert transaction_service.get(1, tx["id"])["comment"] is None


def test_update_revalidates_amount(transaction_service, make_category, make_transaction) -> None:
    food = make_category(1)
    tx = make_transaction(1, food["id"])
    with pytest.raises(ValidationError):
        transaction_service.update(1, tx["id"], TransactionUpdate(amount="0"))
    with pytest.raises(ValidationError):
        transaction_service.update(1, tx["id"], TransactionUpdate(amount="1e30"))
    assert transaction_service.get(1, tx["id"])["amount"] == "10.00"


def test_foreign_transactions_cannot_be_touched(transaction_service, store, make_category, make_transaction) -> None:
    food = make_category(1)
    tx = make_transaction(1, food["id"])
    before = store.load_all(TRANSACTIONS)

    with pytest.raises(NotFoundError):
        transaction_service.get(2, tx["id"])
    with pytest.raises(NotFoundError):
        transaction_service.update(2, tx["id"], TransactionUpdate(amount="1"))
    with pytest.raises(NotFoundError):
        transaction_service.delete(2, tx["id"])
    assert store.load_all(TRANSACTIONS) == before


def test_delete_removes_the_transaction(transaction_service, store, make_category, make_transaction) -> None:
    food = make_category(1)
    keep = make_transaction(1, food["id"])
    gone = make_transaction(1, food["id"])

    assert transaction_service.delete(1, gone["id"]) == gone["id"]
    assert transaction_service.list(1) == [keep]

    before = store.load_all(TRANSACTIONS)
    with pytest.raises(NotFoundError):
        transaction_service.delete(1, gone["id"])
    assert store.load_all(TRANSACTIONS) == before


def test_update_requires_an_owned_category(transaction_service, store, make_category, make_transaction) -> None:
    food = make_category(1)
    foreign = make_category(2, "Travel")
    tx = make_transaction(1, food["id"])
    before = store.load_all(TRANSACTIONS)

    with pytest.raises(NotFoundError):
        transaction_service.update(1, tx["id"], TransactionUpdate(category_id=foreign["id"]))
    with pytest.raises(NotFoundError):
        transaction_service.update(1, tx["id"], TransactionUpdate(category_id=999))
    assert store.load_all(TRANSACTIONS) == before
