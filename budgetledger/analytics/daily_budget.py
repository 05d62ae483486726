"""Mini README: Daily "safe to spend" calculator.

Structure:
    * BudgetStatus - four health bands shown next to the daily allowance.
    * DailyBudgetData - allowance figures with ``health_percentage`` and
      ``status`` helpers.
    * DailyBudgetCalculator - derives the figures for the current month.

The monthly budget is this month's income minus settled fixed expenses.
Recurring incomes count only once received; one-off incomes always count.
Each elapsed day contributes its unspent (or overspent) share of the
average daily budget to an accumulated balance, and the pattern buffer
trims what is considered safe to spend today.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

from ..logging_utils import get_logger
from ..ledger.dates import days_in_month, same_month
from ..ledger.models import ExpenseType, TransactionType
from ..ledger.store import LedgerStore
from .patterns import PatternAnalyzer

LOGGER = get_logger(__name__)


class BudgetStatus(str, Enum):
    IN_CONTROL = "in_control"
    WATCH_SPENDING = "watch_spending"
    TIGHT = "tight"
    EXCEEDED = "exceeded"


_STATUS_SEVERITY = {
    BudgetStatus.IN_CONTROL: "success",
    BudgetStatus.WATCH_SPENDING: "warning",
    BudgetStatus.TIGHT: "danger",
    BudgetStatus.EXCEEDED: "danger",
}


@dataclass(slots=True)
class DailyBudgetData:
    can_spend_today: float = 0.0
    safe_to_spend_today: float = 0.0
    spent_today: float = 0.0
    remaining_today: float = 0.0
    safe_budget_remaining: float = 0.0
    monthly_budget: float = 0.0
    average_daily_budget: float = 0.0
    days_in_month: int = 0
    days_remaining: int = 0
    accumulated_balance: float = 0.0
    buffer_percentage: float = 0.0
    projected_end_of_month: float = 0.0

    def health_percentage(self) -> float:
        """Share of today's safe allowance still unspent, within [0, 100]."""

        if self.safe_to_spend_today <= 0:
            return 0.0
        percent = self.safe_budget_remaining / self.safe_to_spend_today * 100
        return min(100.0, max(0.0, percent))

    def status(self) -> BudgetStatus:
        health = self.health_percentage()
        if health >= 80:
            return BudgetStatus.IN_CONTROL
        if health >= 50:
            return BudgetStatus.WATCH_SPENDING
        if health > 0:
            return BudgetStatus.TIGHT
        return BudgetStatus.EXCEEDED

    def severity(self) -> str:
        return _STATUS_SEVERITY[self.status()]


class DailyBudgetCalculator:
    """Compute today's allowance from this month's ledger."""

    def __init__(
        self,
        store: LedgerStore,
        patterns: Optional[PatternAnalyzer] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.clock = clock
        self.patterns = patterns or PatternAnalyzer(store, clock=clock)

    def calculate(self, user_id: str) -> DailyBudgetData:
        today = self.clock()
        year, month, day_of_month = today.year, today.month, today.day
        month_length = days_in_month(year, month)
        buffer_percentage = self.patterns.analyze(user_id).buffer_percentage

        monthly_income = 0.0
        fixed_expenses = 0.0
        spent_today = 0.0
        spent_by_day: Dict[int, float] = {}
        for transaction in self.store.list_transactions(user_id, month=month, year=year):
            if not same_month(transaction.date, year, month):
                continue
            if transaction.transaction_type is TransactionType.INCOME:
                if not transaction.is_recurring or transaction.is_paid:
                    monthly_income += transaction.amount
            elif transaction.transaction_type is TransactionType.EXPENSE:
                if transaction.expense_type is ExpenseType.FIXED:
                    if transaction.is_paid:
                        fixed_expenses += transaction.amount
                else:
                    day = transaction.date.day
                    spent_by_day[day] = spent_by_day.get(day, 0.0) + transaction.amount
                    if day == day_of_month:
                        spent_today += transaction.amount

        monthly_budget = monthly_income - fixed_expenses
        average_daily = monthly_budget / month_length
        accumulated = 0.0
        for day in range(1, day_of_month):
            accumulated += average_daily - spent_by_day.get(day, 0.0)

        can_spend = max(0.0, average_daily + accumulated)
        safe_to_spend = can_spend * (1 - buffer_percentage / 100)
        safe_remaining = max(0.0, safe_to_spend - spent_today)
        days_remaining = month_length - day_of_month + 1

        data = DailyBudgetData(
            can_spend_today=can_spend,
            safe_to_spend_today=max(0.0, safe_to_spend),
            spent_today=spent_today,
            remaining_today=can_spend - spent_today,
            safe_budget_remaining=safe_remaining,
            monthly_budget=monthly_budget,
            average_daily_budget=average_daily,
            days_in_month=month_length,
            days_remaining=days_remaining,
            accumulated_balance=accumulated,
            buffer_percentage=buffer_percentage,
            projected_end_of_month=safe_remaining * days_remaining,
        )
        LOGGER.debug(
            "Daily budget for %s: safe %.2f of %.2f (status %s)",
            user_id,
            data.safe_budget_remaining,
            data.safe_to_spend_today,
            data.status().value,
        )
        return data
