"""Mini README: Shared fixtures for the budgetledger test-suite.

Every fixture works against a fresh in-memory store and a fixed clock
(20 May 2024, midday) so date-dependent rules are deterministic.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from budgetledger.ledger import (
    AccountManager,
    BalanceEngine,
    GoalManager,
    InMemoryLedgerStore,
    TransactionManager,
)

USER = "user_1"
NOW = datetime(2024, 5, 20, 12, 0)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def balances(store: InMemoryLedgerStore) -> BalanceEngine:
    return BalanceEngine(store, clock=fixed_clock)


@pytest.fixture
def transactions(store: InMemoryLedgerStore, balances: BalanceEngine) -> TransactionManager:
    return TransactionManager(store, balances, clock=fixed_clock)


@pytest.fixture
def accounts(store: InMemoryLedgerStore, balances: BalanceEngine) -> AccountManager:
    return AccountManager(store, balances, clock=fixed_clock)


@pytest.fixture
def goals(store: InMemoryLedgerStore) -> GoalManager:
    return GoalManager(store, clock=fixed_clock)
