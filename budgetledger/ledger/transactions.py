"""Mini README: Transaction lifecycle manager.

Structure:
    * LedgerStats - settled income/expense totals for a set of entries.
    * calculate_probable_value - forecast of the next recurring amount.
    * TransactionManager - create, update, delete and confirm ledger entries.

Creating an entry may persist several rows: installment purchases expand
into an optional settled down payment plus one pending row per installment,
and fixed expenses or recurring incomes get their next month's pending
occurrence straight away. Credit-card purchases made after the card's
closing day roll into the next month's bill. Every balance effect is routed
through ``BalanceEngine.apply_settlement``; a failure to adjust a missing
account is logged and never blocks the primary write.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..configuration import get_settings
from ..logging_utils import get_logger
from .balances import BalanceEngine
from .dates import add_months
from .errors import TransactionNotFoundError, ValidationError
from .models import ExpenseType, Transaction, TransactionType
from .store import INSTALLMENT_GROUPS, LedgerStore

LOGGER = get_logger(__name__)

DOWN_PAYMENT_SUFFIX = " - Down payment"


@dataclass(slots=True)
class LedgerStats:
    """Settled totals; card rows count toward income/expense but not balance."""

    income: float = 0.0
    expense: float = 0.0
    balance: float = 0.0


def calculate_probable_value(value_history: Optional[Sequence[float]]) -> Optional[float]:
    """Forecast the next amount from the average period-over-period change.

    Returns ``None`` when fewer than two points exist. Steps starting from
    zero carry no percentage and are skipped.
    """

    if not value_history or len(value_history) < 2:
        return None
    variations = [
        (current - previous) / previous * 100
        for previous, current in zip(value_history, value_history[1:])
        if previous
    ]
    if not variations:
        return None
    average_variation = sum(variations) / len(variations)
    next_value = value_history[-1] * (1 + average_variation / 100)
    return math.floor(next_value * 100 + 0.5) / 100


def calculate_stats(transactions: Iterable[Transaction]) -> LedgerStats:
    """Aggregate settled income, expense and the resulting balance effect."""

    stats = LedgerStats()
    for transaction in transactions:
        if not transaction.is_paid:
            continue
        if transaction.transaction_type is TransactionType.INCOME:
            stats.income += transaction.amount
            if not transaction.has_card:
                stats.balance += transaction.amount
        elif transaction.transaction_type is TransactionType.EXPENSE:
            stats.expense += transaction.amount
            if not transaction.has_card:
                stats.balance -= transaction.amount
    return stats


class TransactionManager:
    """Orchestrate multi-row ledger writes and their balance effects."""

    def __init__(
        self,
        store: LedgerStore,
        balances: Optional[BalanceEngine] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        fixed_expense_paid_on_create: Optional[bool] = None,
        value_history_limit: Optional[int] = None,
        pending_window_days: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.store = store
        self.clock = clock
        self.balances = balances or BalanceEngine(store, clock=clock)
        self.fixed_expense_paid_on_create = (
            settings.fixed_expense_paid_on_create
            if fixed_expense_paid_on_create is None
            else fixed_expense_paid_on_create
        )
        self.value_history_limit = value_history_limit or settings.value_history_limit
        self.pending_window_days = (
            settings.pending_window_days if pending_window_days is None else pending_window_days
        )

    # Queries ------------------------------------------------------------

    def list_transactions(
        self, user_id: str, *, month: Optional[int] = None, year: Optional[int] = None
    ) -> List[Transaction]:
        return self.store.list_transactions(user_id, month=month, year=year)

    def get_transaction(self, user_id: str, transaction_id: str) -> Transaction:
        transaction = self.store.get_transaction(user_id, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    def pending_confirmations(self, user_id: str) -> Dict[str, List[Transaction]]:
        """Unsettled items due within the confirmation window (or overdue).

        Expenses cover fixed expenses (by due date) and card-less installment
        rows (by ledger date); incomes cover recurring incomes (by due date).
        """

        today = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        horizon = today + timedelta(days=self.pending_window_days + 1)
        expenses: List[Transaction] = []
        incomes: List[Transaction] = []
        for transaction in self.store.list_transactions(user_id):
            if transaction.is_paid:
                continue
            if transaction.transaction_type is TransactionType.EXPENSE:
                if transaction.expense_type is ExpenseType.FIXED and transaction.due_date:
                    if transaction.due_date < horizon:
                        expenses.append(transaction)
                elif transaction.expense_type is ExpenseType.INSTALLMENT and not transaction.has_card:
                    if transaction.date < horizon:
                        expenses.append(transaction)
            elif transaction.transaction_type is TransactionType.INCOME:
                if transaction.is_recurring and transaction.due_date and transaction.due_date < horizon:
                    incomes.append(transaction)
        expenses.sort(key=lambda item: item.settlement_date)
        incomes.sort(key=lambda item: item.settlement_date)
        LOGGER.debug(
            "Pending confirmations for %s: %s expenses, %s incomes",
            user_id,
            len(expenses),
            len(incomes),
        )
        return {"expenses": expenses, "incomes": incomes}

    # Creation -----------------------------------------------------------

    def create(self, user_id: str, draft: Union[Transaction, Dict[str, object]]) -> List[Transaction]:
        """Persist a user-entered transaction, expanding it where required.

        Returns every row written, in creation order.
        """

        if isinstance(draft, dict):
            draft = Transaction.from_payload(draft)
        self._validate(draft)

        now = self.clock()
        transaction = draft.duplicate(transaction_id="", overrides={"created_at": now})
        self._apply_creation_defaults(transaction)

        if (
            transaction.expense_type is ExpenseType.INSTALLMENT
            and transaction.installments
            and transaction.installments > 1
        ):
            rows = self._expand_installments(user_id, transaction, now)
        else:
            self._shift_for_card_cycle(user_id, transaction)
            rows = [transaction]
            if self._continues_monthly(transaction):
                rows.append(self._next_occurrence(transaction, transaction.amount, now))

        saved = self.store.save_transactions(user_id, rows)
        for row in saved:
            self.balances.apply_settlement(user_id, None, row)
        LOGGER.info(
            "Created %s ledger rows for '%s' (%s %.2f)",
            len(saved),
            transaction.description,
            transaction.transaction_type.value,
            transaction.amount,
        )
        return saved

    def _validate(self, transaction: Transaction) -> None:
        if transaction.amount is None:
            raise ValidationError("Transaction amount is required")
        if transaction.amount <= 0:
            raise ValidationError("Transaction amount must be positive")
        if not transaction.category_id:
            raise ValidationError("Transaction category is required")
        if transaction.date is None:
            raise ValidationError("Transaction date is required")

    def _apply_creation_defaults(self, transaction: Transaction) -> None:
        """Settlement flags and recurrence metadata implied by the entry kind."""

        if transaction.transaction_type is TransactionType.EXPENSE:
            if transaction.expense_type is ExpenseType.CASH:
                # Card purchases settle with the bill, not now.
                transaction.is_paid = not transaction.has_card
            elif transaction.expense_type is ExpenseType.FIXED:
                transaction.is_paid = self.fixed_expense_paid_on_create
                transaction.is_recurring = True
                transaction.recurrence_type = transaction.recurrence_type or "monthly"
                transaction.recurrence_day = transaction.settlement_date.day
            elif transaction.expense_type is ExpenseType.INSTALLMENT:
                transaction.is_paid = False
        elif transaction.transaction_type is TransactionType.INCOME:
            # Entered incomes are received; only the generated next occurrence waits.
            transaction.is_paid = True
            if transaction.is_recurring:
                transaction.due_date = transaction.due_date or transaction.date
                transaction.recurrence_type = transaction.recurrence_type or "monthly"
                transaction.recurrence_day = transaction.due_date.day
        elif transaction.transaction_type is TransactionType.TRANSFER:
            transaction.is_paid = True

        if self._continues_monthly(transaction) and not transaction.value_history:
            transaction.value_history = [transaction.amount]

    @staticmethod
    def _continues_monthly(transaction: Transaction) -> bool:
        if transaction.transaction_type is TransactionType.EXPENSE:
            return transaction.expense_type is ExpenseType.FIXED
        return transaction.transaction_type is TransactionType.INCOME and transaction.is_recurring

    def _card_cycle_offset(self, user_id: str, transaction: Transaction, purchase: datetime) -> int:
        """One month when the purchase falls after the card's closing day."""

        if not transaction.has_card:
            return 0
        card = self.store.get_card(user_id, transaction.card_id)
        if card is None:
            LOGGER.warning("Card %s not found; billing cycle not shifted", transaction.card_id)
            return 0
        return 1 if purchase.day > card.closing_day else 0

    def _shift_for_card_cycle(self, user_id: str, transaction: Transaction) -> None:
        if self._card_cycle_offset(user_id, transaction, transaction.date) == 0:
            return
        if transaction.expense_type is ExpenseType.FIXED and transaction.due_date:
            transaction.due_date = add_months(transaction.due_date, 1)
            transaction.recurrence_day = transaction.due_date.day
        else:
            transaction.date = add_months(transaction.date, 1)
        LOGGER.debug("Purchase '%s' rolled into next billing cycle", transaction.description)

    def _expand_installments(self, user_id: str, transaction: Transaction, now: datetime) -> List[Transaction]:
        """Down payment row (when any) plus one pending row per installment."""

        count = int(transaction.installments)
        purchase_date = transaction.date
        down_payment = transaction.down_payment_amount or 0.0
        if down_payment < 0 or down_payment >= transaction.amount:
            raise ValidationError("Down payment must be non-negative and below the purchase amount")

        if transaction.has_card:
            offset = self._card_cycle_offset(user_id, transaction, purchase_date)
            first_payment = add_months(purchase_date, offset)
        else:
            first_payment = transaction.first_due_date or purchase_date

        installment_amount = round((transaction.amount - down_payment) / count, 2)
        installment_id = self.store.new_id(INSTALLMENT_GROUPS)
        rows: List[Transaction] = []

        if down_payment > 0:
            rows.append(
                transaction.duplicate(
                    transaction_id="",
                    overrides={
                        "amount": down_payment,
                        "description": f"{transaction.description}{DOWN_PAYMENT_SUFFIX}",
                        "date": now,
                        "is_paid": True,
                        "expense_type": ExpenseType.CASH,
                    },
                )
            )
            # The down payment is an ordinary settled purchase.
            rows[-1].installments = None
            rows[-1].due_date = None

        for index in range(count):
            due = add_months(first_payment, index)
            rows.append(
                transaction.duplicate(
                    transaction_id="",
                    overrides={
                        "amount": installment_amount,
                        "current_installment": index + 1,
                        "installment_id": installment_id,
                        "date": due,
                        "due_date": due,
                        "purchase_date": purchase_date,
                        "is_paid": False,
                    },
                )
            )
        LOGGER.debug(
            "Expanded '%s' into %s installments of %.2f (down payment %.2f)",
            transaction.description,
            count,
            installment_amount,
            down_payment,
        )
        return rows

    def _next_occurrence(self, transaction: Transaction, amount: float, now: datetime) -> Transaction:
        return transaction.duplicate(
            transaction_id="",
            overrides={
                "date": add_months(transaction.date, 1),
                "due_date": add_months(transaction.settlement_date, 1),
                "is_paid": False,
                "amount": amount,
                "created_at": now,
            },
        )

    # Update and delete --------------------------------------------------

    def update(self, user_id: str, transaction_id: str, changes: Dict[str, object]) -> Transaction:
        """Apply field changes and move balances from the old to the new state."""

        original = self.get_transaction(user_id, transaction_id)
        clean = {key: value for key, value in changes.items() if value is not None}
        clean.pop("transaction_id", None)
        updated = original.duplicate(transaction_id=transaction_id, overrides=clean)
        self._validate(updated)

        self.store.save_transaction(user_id, updated)
        adjustments = self.balances.apply_settlement(user_id, original, updated)
        LOGGER.info(
            "Updated transaction %s fields=%s balance adjustments=%s",
            transaction_id,
            sorted(clean),
            adjustments,
        )
        return updated

    def delete(self, user_id: str, transaction_id: str) -> List[str]:
        """Delete an entry, or its whole installment cohort. Returns removed ids."""

        transaction = self.get_transaction(user_id, transaction_id)
        if transaction.installment_id:
            cohort = [
                item
                for item in self.store.list_transactions(user_id)
                if item.installment_id == transaction.installment_id
            ]
        else:
            cohort = [transaction]

        for member in cohort:
            self.balances.apply_settlement(user_id, member, None)
        removed = [member.transaction_id for member in cohort]
        self.store.delete_transactions(user_id, removed)
        LOGGER.info("Deleted %s ledger rows starting from %s", len(removed), transaction_id)
        return removed

    # Confirmation -------------------------------------------------------

    def confirm_transaction(
        self,
        user_id: str,
        transaction_id: str,
        confirmed_amount: float,
        lock_future: bool = False,
    ) -> Tuple[Transaction, Optional[Transaction]]:
        """Settle a pending entry and forecast its successor when recurring.

        The next occurrence created alongside a recurring entry is re-priced
        with the forecast; otherwise a new pending occurrence is written.
        Returns the confirmed row and that successor (``None`` when the entry
        does not recur).
        """

        if confirmed_amount is None or confirmed_amount <= 0:
            raise ValidationError("Confirmed amount must be positive")
        transaction = self.get_transaction(user_id, transaction_id)
        history = (list(transaction.value_history) + [float(confirmed_amount)])[-self.value_history_limit:]

        confirmed = transaction.duplicate(
            transaction_id=transaction_id,
            overrides={"is_paid": True, "amount": confirmed_amount, "value_history": history},
        )
        self.store.save_transaction(user_id, confirmed)
        self.balances.apply_settlement(user_id, transaction, confirmed)

        successor: Optional[Transaction] = None
        if transaction.is_recurring or transaction.expense_type is ExpenseType.FIXED:
            if lock_future:
                next_amount = float(confirmed_amount)
            else:
                probable = calculate_probable_value(history)
                next_amount = probable if probable is not None else float(confirmed_amount)
            candidate = self._next_occurrence(confirmed, next_amount, self.clock())
            existing = self._find_successor(user_id, candidate)
            if existing is not None:
                candidate = existing.duplicate(
                    transaction_id=existing.transaction_id,
                    overrides={"amount": next_amount, "value_history": history},
                )
                LOGGER.debug("Re-priced pending occurrence %s at %.2f", existing.transaction_id, next_amount)
            successor = self.store.save_transaction(user_id, candidate)
        LOGGER.info(
            "Confirmed transaction %s at %.2f (successor=%s)",
            transaction_id,
            confirmed_amount,
            successor.transaction_id if successor else None,
        )
        return confirmed, successor

    def _find_successor(self, user_id: str, candidate: Transaction) -> Optional[Transaction]:
        """The pending twin already occupying the candidate's slot, if any."""

        for item in self.store.list_transactions(user_id):
            if (
                item.transaction_type is candidate.transaction_type
                and item.description == candidate.description
                and item.category_id == candidate.category_id
                and item.account_id == candidate.account_id
                and item.date == candidate.date
                and not item.is_paid
            ):
                return item
        return None
