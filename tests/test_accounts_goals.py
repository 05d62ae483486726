"""Mini README: Tests for account, card and goal management.

Structure:
    * Accounts - creation, initial-balance edits, activation and seeding.
    * Cards - closing and due days are validated.
    * Goals - creation rules, cancel/reactivate, emergency reserve lookup.
    * Settings - environment variables override defaults.
"""

from __future__ import annotations

import pytest

from budgetledger.configuration import BudgetLedgerSettings
from budgetledger.ledger import AccountNotFoundError, AccountType, GoalStatus, ValidationError
from budgetledger.ledger.accounts import DEFAULT_ACCOUNT_NAME

from conftest import NOW, USER


def test_new_account_starts_at_initial_balance(accounts) -> None:
    """Current balance mirrors the initial balance on creation."""

    account = accounts.create_account(USER, "  Checking ", "Checking", 250.0)

    assert account.name == "Checking"
    assert account.account_type is AccountType.CHECKING
    assert account.current_balance == pytest.approx(250.0)
    assert account.created_at == NOW


def test_invalid_account_payloads_are_rejected(accounts) -> None:
    """Blank names and unknown types raise validation errors."""

    with pytest.raises(ValidationError):
        accounts.create_account(USER, "  ")
    with pytest.raises(ValidationError):
        accounts.create_account(USER, "Crypto", "blockchain")


def test_initial_balance_edit_replays_the_account(accounts, transactions, store) -> None:
    """Changing the initial balance keeps settled history applied."""

    account = accounts.create_account(USER, "Checking", "checking", 100.0)
    transactions.create(
        USER,
        {"amount": 30.0, "category_id": "food", "account_id": account.account_id, "expense_type": "cash", "date": NOW},
    )

    updated = accounts.update_account(USER, account.account_id, {"initial_balance": 200.0, "color": "#00aa00"})

    assert updated.current_balance == pytest.approx(170.0)
    assert store.get_account(USER, account.account_id).color == "#00aa00"


def test_unknown_account_fields_are_rejected(accounts) -> None:
    """Only editable account fields may be changed."""

    account = accounts.create_account(USER, "Checking")
    with pytest.raises(ValidationError):
        accounts.update_account(USER, account.account_id, {"current_balance": 1_000_000.0})


def test_activation_toggles_and_totals(accounts) -> None:
    """Inactive accounts drop out of the total balance."""

    first = accounts.create_account(USER, "Checking", "checking", 100.0)
    accounts.create_account(USER, "Savings", "savings", 50.0)

    accounts.deactivate(USER, first.account_id)
    assert accounts.total_balance(USER) == pytest.approx(50.0)
    assert [item.name for item in accounts.list_accounts(USER, active_only=True)] == ["Savings"]

    accounts.activate(USER, first.account_id)
    assert accounts.total_balance(USER) == pytest.approx(150.0)


def test_seed_default_account_runs_once(accounts) -> None:
    """New users get a single cash wallet."""

    wallet = accounts.seed_default_account(USER)
    again = accounts.seed_default_account(USER)

    assert wallet.name == DEFAULT_ACCOUNT_NAME
    assert wallet.account_type is AccountType.CASH
    assert wallet.current_balance == 0.0
    assert again.account_id == wallet.account_id
    assert len(accounts.list_accounts(USER)) == 1


def test_deleting_unknown_account_raises(accounts) -> None:
    """Deletes of unknown accounts are reported."""

    with pytest.raises(AccountNotFoundError):
        accounts.delete_account(USER, "acc_missing")


@pytest.mark.parametrize(("closing_day", "due_day"), [(0, 10), (32, 10), (10, 0), ("x", 10)])
def test_card_days_must_be_days_of_month(accounts, closing_day: object, due_day: object) -> None:
    """Closing and due days must fall within 1-31."""

    with pytest.raises(ValidationError):
        accounts.register_card(USER, "Visa", closing_day, due_day)


def test_goal_creation_and_status_changes(goals) -> None:
    """Goals start active and can be cancelled and reactivated."""

    goal = goals.create_goal(USER, "Trip", 1500.0, category="travel")
    assert goal.status is GoalStatus.ACTIVE
    assert goal.current_amount == 0.0

    assert goals.cancel_goal(USER, goal.goal_id).status is GoalStatus.CANCELLED
    assert goals.list_goals(USER, active_only=True) == []
    assert goals.reactivate_goal(USER, goal.goal_id).status is GoalStatus.ACTIVE

    with pytest.raises(ValidationError):
        goals.create_goal(USER, "Nothing", 0.0)


def test_emergency_goal_is_created_once(goals) -> None:
    """The reserve goal is reused once it exists."""

    created = goals.create_emergency_goal(USER, 6000.0)
    again = goals.create_emergency_goal(USER, 9000.0)

    assert created.is_emergency_fund
    assert again.goal_id == created.goal_id
    assert goals.find_emergency_goal(USER).target_amount == pytest.approx(6000.0)


def test_settings_read_prefixed_environment(monkeypatch, tmp_path) -> None:
    """BUDGETLEDGER_ variables override the defaults."""

    monkeypatch.setenv("BUDGETLEDGER_VALUE_HISTORY_LIMIT", "7")
    monkeypatch.setenv("BUDGETLEDGER_FIXED_EXPENSE_PAID_ON_CREATE", "false")
    monkeypatch.setenv("BUDGETLEDGER_DATA_DIRECTORY", str(tmp_path / "data"))

    settings = BudgetLedgerSettings()

    assert settings.value_history_limit == 7
    assert settings.fixed_expense_paid_on_create is False
    assert settings.store_path == tmp_path / "data" / "ledger.json"
    assert (tmp_path / "data").is_dir()
