"""Mini README: Ledger core for budgetledger.

The package keeps account balances consistent with the transaction history.
``store`` abstracts the per-user record tree, ``balances`` owns every balance
mutation, ``transactions`` expands user commands into ledger rows and
``accounts``/``goals`` manage the records those rows reference.
"""

from .accounts import AccountManager
from .balances import BalanceEngine
from .errors import (
    AccountNotFoundError,
    CardNotFoundError,
    GoalNotFoundError,
    InsufficientBalanceError,
    InsufficientFundsError,
    InsufficientReserveError,
    LedgerError,
    NotFoundError,
    TransactionNotFoundError,
    ValidationError,
)
from .goals import GoalManager
from .models import (
    Account,
    AccountType,
    Contribution,
    CreditCard,
    ExpenseType,
    Goal,
    GoalCategory,
    GoalStatus,
    Transaction,
    TransactionType,
)
from .store import InMemoryLedgerStore, JsonFileLedgerStore, LedgerStore
from .transactions import LedgerStats, TransactionManager, calculate_probable_value, calculate_stats

__all__ = [
    "Account",
    "AccountManager",
    "AccountNotFoundError",
    "AccountType",
    "BalanceEngine",
    "CardNotFoundError",
    "Contribution",
    "CreditCard",
    "ExpenseType",
    "Goal",
    "GoalCategory",
    "GoalManager",
    "GoalNotFoundError",
    "GoalStatus",
    "InMemoryLedgerStore",
    "InsufficientBalanceError",
    "InsufficientFundsError",
    "InsufficientReserveError",
    "JsonFileLedgerStore",
    "LedgerError",
    "LedgerStats",
    "LedgerStore",
    "NotFoundError",
    "Transaction",
    "TransactionManager",
    "TransactionNotFoundError",
    "TransactionType",
    "ValidationError",
    "calculate_probable_value",
    "calculate_stats",
]
