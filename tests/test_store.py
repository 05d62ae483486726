"""Mini README: Tests for record stores, the record codec and calendar helpers.

Structure:
    * Codec - camelCase records with epoch-millisecond dates.
    * InMemoryLedgerStore - copies on read, month filtering, id allocation.
    * JsonFileLedgerStore - state survives reopening the file.
    * Dates - month arithmetic clamps to the month length.
"""

from __future__ import annotations

import json
from datetime import datetime

import pytest

from budgetledger.ledger import (
    CreditCard,
    ExpenseType,
    Goal,
    InMemoryLedgerStore,
    JsonFileLedgerStore,
    Transaction,
    TransactionType,
)
from budgetledger.ledger.dates import add_months, from_epoch_ms, month_key, to_epoch_ms
from budgetledger.ledger.models import Contribution, export_dataclass

from conftest import USER


def _expense(amount: float, when: datetime) -> Transaction:
    return Transaction(
        transaction_id="",
        transaction_type=TransactionType.EXPENSE,
        amount=amount,
        description="Coffee",
        category_id="food",
        date=when,
        account_id="acc_0001",
        is_paid=True,
        expense_type=ExpenseType.CASH,
    )


def test_transaction_record_uses_camel_case_and_epoch_millis() -> None:
    """Records follow the store layout and decode back to the same entry."""

    transaction = _expense(12.5, datetime(2024, 5, 3, 8, 15))
    transaction.value_history = [12.0, 12.5]
    record = transaction.to_record()

    assert record["type"] == "expense"
    assert record["categoryId"] == "food"
    assert record["isPaid"] is True
    assert record["expenseType"] == "cash"
    assert record["date"] == to_epoch_ms(datetime(2024, 5, 3, 8, 15))
    assert "cardId" not in record
    decoded = Transaction.from_record("txn_0009", record)
    assert decoded.transaction_id == "txn_0009"
    assert decoded.date == datetime(2024, 5, 3, 8, 15)
    assert decoded.value_history == [12.0, 12.5]


def test_card_record_accepts_legacy_limit_key() -> None:
    """Older card records store the limit under ``limit``."""

    card = CreditCard.from_record("card_1", {"cardBrand": "Visa", "closingDay": 5, "dueDay": 12, "limit": 2500})

    assert card.credit_limit == 2500
    assert card.closing_day == 5


def test_goal_contributions_survive_keyed_storage() -> None:
    """Contributions stored as a keyed mapping decode into a list."""

    record = {
        "name": "Trip",
        "targetAmount": 1000.0,
        "currentAmount": 100.0,
        "contributions": {"a": {"id": "c1", "amount": 100.0, "date": to_epoch_ms(datetime(2024, 5, 1))}},
    }

    goal = Goal.from_record("goal_1", record)

    assert [item.contribution_id for item in goal.contributions] == ["c1"]
    assert goal.progress == pytest.approx(10.0)
    assert goal.remaining == pytest.approx(900.0)


def test_export_is_json_friendly() -> None:
    """Exports convert enums and dates to plain values."""

    goal = Goal(
        goal_id="goal_1",
        name="Trip",
        target_amount=200.0,
        current_amount=50.0,
        contributions=[Contribution("c1", 50.0, datetime(2024, 5, 1), "first")],
    )

    exported = export_dataclass(goal)

    assert exported["status"] == "active"
    assert exported["contributions"][0]["date"] == "2024-05-01T00:00:00"
    assert exported["progress"] == pytest.approx(25.0)
    json.dumps(exported)


def test_in_memory_store_returns_copies_and_filters_by_month() -> None:
    """Mutating a returned record does not leak into the store."""

    store = InMemoryLedgerStore()
    saved = store.save_transaction(USER, _expense(5.0, datetime(2024, 4, 30)))
    store.save_transaction(USER, _expense(7.0, datetime(2024, 5, 1)))
    store.save_transaction(USER, _expense(9.0, datetime(2024, 5, 31, 23, 59)))

    assert saved.transaction_id == "txn_0001"
    record = store.read_record(USER, "transactions", saved.transaction_id)
    record["amount"] = 999.0
    assert store.get_transaction(USER, saved.transaction_id).amount == 5.0

    may = store.list_transactions(USER, month=5, year=2024)
    assert [item.amount for item in may] == [9.0, 7.0]
    assert len(store.list_transactions(USER)) == 3
    assert store.list_transactions("someone_else") == []


def test_json_store_persists_between_instances(tmp_path) -> None:
    """A reopened JSON store sees the same records and keeps allocating fresh ids."""

    path = tmp_path / "ledger.json"
    first = JsonFileLedgerStore(path)
    saved = first.save_transaction(USER, _expense(3.0, datetime(2024, 5, 2)))

    second = JsonFileLedgerStore(path)
    assert second.get_transaction(USER, saved.transaction_id).amount == 3.0
    another = second.save_transaction(USER, _expense(4.0, datetime(2024, 5, 3)))
    assert another.transaction_id != saved.transaction_id

    second.delete_transactions(USER, [saved.transaction_id])
    assert JsonFileLedgerStore(path).get_transaction(USER, saved.transaction_id) is None


def test_json_store_rejects_corrupt_files(tmp_path) -> None:
    """Invalid JSON is reported instead of silently discarded."""

    path = tmp_path / "ledger.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ValueError):
        JsonFileLedgerStore(path)


def test_add_months_clamps_day_of_month() -> None:
    """Month arithmetic keeps the day where possible and clamps otherwise."""

    assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
    assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)
    assert add_months(datetime(2024, 12, 15, 9, 30), 1) == datetime(2025, 1, 15, 9, 30)
    assert add_months(datetime(2024, 3, 31), -1) == datetime(2024, 2, 29)
    assert month_key(datetime(2024, 3, 1)) == "2024-03"


def test_from_epoch_ms_accepts_several_inputs() -> None:
    """Epoch millis, ISO strings and datetimes all parse."""

    moment = datetime(2024, 5, 20, 12, 0)
    assert from_epoch_ms(to_epoch_ms(moment)) == moment
    assert from_epoch_ms("2024-05-20T12:00:00") == moment
    assert from_epoch_ms(moment) is moment
    assert from_epoch_ms(None) is None
    assert from_epoch_ms("") is None
