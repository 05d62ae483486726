"""Mini README: Balance consistency engine.

Structure:
    * BalanceEngine - keeps each account's cached ``current_balance`` equal to
      its initial balance plus the signed effect of every settled, card-less
      transaction referencing it.

Every balance mutation goes through ``apply_settlement``, which compares the
effect of a transaction before and after a change and adjusts only the
accounts whose share moved. Goal transfers and withdrawals persist a settled
transaction and rely on that same path to move money, so the account is
debited or credited exactly once. ``recalculate_balance`` replays the whole
ledger and is the repair primitive for drift left by partially failed
multi-step operations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from ..logging_utils import get_logger
from .errors import (
    AccountNotFoundError,
    GoalNotFoundError,
    InsufficientBalanceError,
    InsufficientReserveError,
    ValidationError,
)
from .models import (
    GOAL_TRANSFER_CATEGORY,
    GOAL_WITHDRAWAL_CATEGORY,
    Account,
    Contribution,
    Goal,
    GoalStatus,
    Transaction,
    TransactionType,
)
from .store import LedgerStore

LOGGER = get_logger(__name__)

ADD = "add"
SUBTRACT = "subtract"

# Float noise threshold for money comparisons.
_EPSILON = 1e-9


def _net_changes(before: Optional[Transaction], after: Optional[Transaction]) -> Dict[str, float]:
    """Per-account delta moving balances from the ``before`` to the ``after`` state."""

    changes: Dict[str, float] = {}
    if before is not None:
        for account_id, delta in before.balance_effects().items():
            changes[account_id] = changes.get(account_id, 0.0) - delta
    if after is not None:
        for account_id, delta in after.balance_effects().items():
            changes[account_id] = changes.get(account_id, 0.0) + delta
    return {account_id: delta for account_id, delta in changes.items() if abs(delta) > _EPSILON}


class BalanceEngine:
    """Apply, reverse and replay the balance effects of ledger entries."""

    def __init__(self, store: LedgerStore, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self.store = store
        self.clock = clock

    def _require_account(self, user_id: str, account_id: str) -> Account:
        account = self.store.get_account(user_id, account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account

    def _require_goal(self, user_id: str, goal_id: str) -> Goal:
        goal = self.store.get_goal(user_id, goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal {goal_id} not found")
        return goal

    def adjust_balance(self, user_id: str, account_id: str, amount: float, direction: str) -> Account:
        """Add or subtract ``amount`` from an account's cached balance."""

        if direction not in (ADD, SUBTRACT):
            raise ValidationError(f"Unsupported balance direction: {direction}")
        account = self._require_account(user_id, account_id)
        previous = account.current_balance
        account.current_balance = previous + amount if direction == ADD else previous - amount
        self.store.save_account(user_id, account)
        LOGGER.debug(
            "Adjusted account %s: %s %.2f (%.2f -> %.2f)",
            account_id,
            direction,
            amount,
            previous,
            account.current_balance,
        )
        return account

    def apply_settlement(
        self,
        user_id: str,
        before: Optional[Transaction],
        after: Optional[Transaction],
    ) -> Dict[str, float]:
        """Move balances from the ``before`` to the ``after`` state of an entry.

        Pass ``before=None`` for a newly created entry and ``after=None`` for
        a deleted one. Adjustments on missing accounts are logged and skipped
        so the primary operation can complete; the next recalculation repairs
        the ledger. Returns the adjustments that were applied.
        """

        applied: Dict[str, float] = {}
        for account_id, delta in _net_changes(before, after).items():
            direction = ADD if delta > 0 else SUBTRACT
            try:
                self.adjust_balance(user_id, account_id, abs(delta), direction)
            except AccountNotFoundError as error:
                LOGGER.warning("Could not adjust balance (account may have been deleted): %s", error)
                continue
            applied[account_id] = delta
        return applied

    def transfer_to_goal(self, user_id: str, account_id: str, goal_id: str, amount: float) -> Transaction:
        """Move money from an account into a goal through a settled expense."""

        if amount is None or amount <= 0:
            raise ValidationError("Transfer amount must be positive")
        account = self._require_account(user_id, account_id)
        if amount > account.current_balance + _EPSILON:
            raise InsufficientBalanceError(
                f"Account {account.name or account_id} holds {account.current_balance:.2f}, "
                f"cannot transfer {amount:.2f}"
            )
        goal = self._require_goal(user_id, goal_id)

        now = self.clock()
        transaction = Transaction(
            transaction_id="",
            transaction_type=TransactionType.EXPENSE,
            amount=amount,
            description=f"Transfer to {goal.name or 'emergency reserve'}",
            category_id=GOAL_TRANSFER_CATEGORY,
            date=now,
            account_id=account_id,
            is_paid=True,
            notes="Goal contribution",
            created_at=now,
        )
        self.store.save_transaction(user_id, transaction)
        self.apply_settlement(user_id, None, transaction)

        self._append_contribution(user_id, goal, amount, f"Transfer from {account.name}", now)
        LOGGER.info("Transferred %.2f from account %s to goal %s", amount, account_id, goal_id)
        return transaction

    def withdraw_from_goal(self, user_id: str, account_id: str, goal_id: str, amount: float) -> Transaction:
        """Return money from a goal to an account through a settled income."""

        if amount is None or amount <= 0:
            raise ValidationError("Withdrawal amount must be positive")
        account = self._require_account(user_id, account_id)
        goal = self._require_goal(user_id, goal_id)
        if amount > goal.current_amount + _EPSILON:
            raise InsufficientReserveError(
                f"Goal {goal.name or goal_id} holds {goal.current_amount:.2f}, "
                f"cannot withdraw {amount:.2f}"
            )

        now = self.clock()
        transaction = Transaction(
            transaction_id="",
            transaction_type=TransactionType.INCOME,
            amount=amount,
            description=f"Withdrawal from {goal.name or 'emergency reserve'}",
            category_id=GOAL_WITHDRAWAL_CATEGORY,
            date=now,
            account_id=account_id,
            is_paid=True,
            notes="Goal withdrawal",
            created_at=now,
        )
        self.store.save_transaction(user_id, transaction)
        self.apply_settlement(user_id, None, transaction)

        self._append_contribution(user_id, goal, -amount, f"Withdrawal to {account.name}", now)
        LOGGER.info("Withdrew %.2f from goal %s to account %s", amount, goal_id, account_id)
        return transaction

    def _append_contribution(self, user_id: str, goal: Goal, amount: float, note: str, when: datetime) -> None:
        goal.current_amount = goal.current_amount + amount
        goal.contributions.append(
            Contribution(
                contribution_id=f"contrib_{len(goal.contributions) + 1:04d}",
                amount=amount,
                date=when,
                note=note,
            )
        )
        if goal.target_amount > 0 and goal.current_amount >= goal.target_amount - _EPSILON:
            if goal.status is GoalStatus.ACTIVE:
                goal.status = GoalStatus.COMPLETED
        elif goal.status is GoalStatus.COMPLETED:
            goal.status = GoalStatus.ACTIVE
        goal.updated_at = when
        self.store.save_goal(user_id, goal)

    def replay_balance(self, account: Account, transactions: Iterable[Transaction]) -> float:
        """Initial balance plus the effect of every settled entry on the account."""

        balance = account.initial_balance
        for transaction in transactions:
            balance += transaction.balance_effects().get(account.account_id, 0.0)
        return balance

    def recalculate_balance(self, user_id: str, account_id: str) -> Account:
        """Overwrite an account's cached balance with a full ledger replay."""

        account = self._require_account(user_id, account_id)
        transactions = self.store.list_transactions(user_id)
        previous = account.current_balance
        account.current_balance = self.replay_balance(account, transactions)
        self.store.save_account(user_id, account)
        if abs(previous - account.current_balance) > _EPSILON:
            LOGGER.warning(
                "Account %s drifted: cached %.2f, replayed %.2f",
                account_id,
                previous,
                account.current_balance,
            )
        return account

    def recalculate_all(self, user_id: str) -> List[Account]:
        """Replay balances for every account the user owns."""

        accounts = [
            self.recalculate_balance(user_id, account.account_id)
            for account in self.store.list_accounts(user_id)
        ]
        LOGGER.info("Recalculated %s account balances for user %s", len(accounts), user_id)
        return accounts
