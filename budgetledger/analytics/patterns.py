"""Mini README: Spending pattern analysis.

Structure:
    * Trend - direction of monthly variable spending.
    * PatternAnalysis - averages, volatility, surprise rate and the safety
      buffer derived from them.
    * recommended_buffer - buffer percentage rule, always within [10, 20].
    * PatternAnalyzer - reads the trailing three months of variable
      (non-fixed) expenses and produces a ``PatternAnalysis``.

Volatility is the population standard deviation of the monthly totals. An
expense is "unexpected" when it exceeds twice the mean individual expense in
the window. Sparse history (fewer than three months) earns a more cautious
buffer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List

import numpy as np

from ..logging_utils import get_logger
from ..ledger.dates import add_months, month_key
from ..ledger.models import ExpenseType, Transaction, TransactionType
from ..ledger.store import LedgerStore

LOGGER = get_logger(__name__)

WINDOW_MONTHS = 3
BUFFER_FLOOR = 10.0
BUFFER_CEILING = 20.0
TREND_DEAD_ZONE = 10.0


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(slots=True)
class PatternAnalysis:
    """Variable spending profile over the trailing window."""

    average_monthly_expenses: float = 0.0
    unexpected_expenses_rate: float = 0.0
    volatility: float = 0.0
    trend: Trend = Trend.STABLE
    buffer_percentage: float = BUFFER_FLOOR + 5
    monthly_totals: Dict[str, float] = field(default_factory=dict)
    expenses_analyzed: int = 0


def recommended_buffer(unexpected_rate: float, volatility: float, months_of_data: int) -> float:
    buffer = BUFFER_FLOOR
    if unexpected_rate > 0.3:
        buffer += 5
    if unexpected_rate > 0.5:
        buffer += 5
    if volatility > 500:
        buffer += 3
    if volatility > 1000:
        buffer += 2
    if months_of_data < WINDOW_MONTHS:
        buffer += 5
    return min(BUFFER_CEILING, max(BUFFER_FLOOR, buffer))


def classify_trend(monthly_values: List[float]) -> Trend:
    """Compare the first and last monthly totals with a +/-10% dead zone."""

    if len(monthly_values) < 2:
        return Trend.STABLE
    first, last = monthly_values[0], monthly_values[-1]
    if first == 0:
        return Trend.INCREASING if last > 0 else Trend.STABLE
    change = (last - first) / first * 100
    if change > TREND_DEAD_ZONE:
        return Trend.INCREASING
    if change < -TREND_DEAD_ZONE:
        return Trend.DECREASING
    return Trend.STABLE


def is_variable_expense(transaction: Transaction) -> bool:
    return (
        transaction.transaction_type is TransactionType.EXPENSE
        and transaction.expense_type is not ExpenseType.FIXED
    )


class PatternAnalyzer:
    """Derive spending patterns from a user's recent variable expenses."""

    def __init__(self, store: LedgerStore, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self.store = store
        self.clock = clock

    def window_expenses(self, user_id: str) -> List[Transaction]:
        """Variable expenses dated within the last three months up to today."""

        now = self.clock()
        start = add_months(now, -WINDOW_MONTHS)
        end = now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
        return [
            transaction
            for transaction in self.store.list_transactions(user_id)
            if is_variable_expense(transaction) and start <= transaction.date < end
        ]

    def analyze(self, user_id: str) -> PatternAnalysis:
        expenses = self.window_expenses(user_id)
        if not expenses:
            LOGGER.debug("No variable expenses for %s; using default pattern", user_id)
            return PatternAnalysis(buffer_percentage=recommended_buffer(0.0, 0.0, 0))

        monthly: Dict[str, float] = {}
        for transaction in expenses:
            key = month_key(transaction.date)
            monthly[key] = monthly.get(key, 0.0) + transaction.amount
        ordered_keys = sorted(monthly)
        monthly_values = np.array([monthly[key] for key in ordered_keys], dtype=float)
        amounts = np.array([transaction.amount for transaction in expenses], dtype=float)

        average_monthly = float(monthly_values.mean())
        volatility = float(monthly_values.std())
        unexpected_rate = float(np.count_nonzero(amounts > amounts.mean() * 2) / amounts.size)

        analysis = PatternAnalysis(
            average_monthly_expenses=average_monthly,
            unexpected_expenses_rate=unexpected_rate,
            volatility=volatility,
            trend=classify_trend(monthly_values.tolist()),
            buffer_percentage=recommended_buffer(unexpected_rate, volatility, len(ordered_keys)),
            monthly_totals={key: monthly[key] for key in ordered_keys},
            expenses_analyzed=int(amounts.size),
        )
        LOGGER.debug(
            "Pattern for %s: avg=%.2f vol=%.2f unexpected=%.2f buffer=%.0f",
            user_id,
            analysis.average_monthly_expenses,
            analysis.volatility,
            analysis.unexpected_expenses_rate,
            analysis.buffer_percentage,
        )
        return analysis
