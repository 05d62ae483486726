"""Mini README: Prioritised smart insights.

Structure:
    * InsightAction - optional call to action (transfer, create goal, ...).
    * SmartInsight - a tip, warning, opportunity or achievement with a
      1-5 priority (5 is most important).
    * InsightGenerator - runs five independent analyzers, merges their
      output, drops dismissed insights and keeps the top ones.

Analyzers: emergency reserve, month-over-month category spending, goals
close to completion, monthly surplus, and unexpected-expense rate. Sorting
is stable, so insights of equal priority keep analyzer order. Insights never
change ledger state; dismissing one only records a marker in the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from ..configuration import get_settings
from ..logging_utils import get_logger
from ..ledger.dates import add_months, same_month
from ..ledger.errors import ValidationError
from ..ledger.goals import select_emergency_goal
from ..ledger.models import Goal, GoalStatus, Transaction, TransactionType
from ..ledger.store import LedgerStore
from .patterns import PatternAnalyzer

LOGGER = get_logger(__name__)

SPIKE_THRESHOLD = 30.0
REDUCTION_THRESHOLD = -15.0
SURPLUS_THRESHOLD = 100.0
UNEXPECTED_RATE_THRESHOLD = 0.2
LOW_RESERVE_PROGRESS = 30.0
NEAR_COMPLETION_PROGRESS = 85.0
MAX_SPENDING_INSIGHTS = 2


@dataclass(slots=True)
class InsightAction:
    label: str
    value: float
    kind: str
    data: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class SmartInsight:
    insight_id: str
    kind: str
    category: str
    priority: int
    title: str
    message: str
    pattern: str
    confidence: int
    based_on: int
    created_at: datetime
    action: Optional[InsightAction] = None
    expires_at: Optional[datetime] = None


class InsightGenerator:
    """Merge and rank insights from independent analyzers."""

    def __init__(
        self,
        store: LedgerStore,
        patterns: Optional[PatternAnalyzer] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        limit: Optional[int] = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.patterns = patterns or PatternAnalyzer(store, clock=clock)
        self.limit = limit or get_settings().insight_limit

    def generate(self, user_id: str) -> List[SmartInsight]:
        transactions = self.store.list_transactions(user_id)
        goals = self.store.list_goals(user_id)
        candidates: List[SmartInsight] = []
        candidates.extend(self._emergency_fund(transactions, goals))
        candidates.extend(self._spending_behaviour(transactions))
        candidates.extend(self._goals_near_completion(goals))
        candidates.extend(self._monthly_surplus(transactions))
        candidates.extend(self._unexpected_expenses(user_id))

        dismissed = set(self.store.dismissed_insight_ids(user_id))
        visible = [insight for insight in candidates if insight.insight_id not in dismissed]
        ranked = sorted(visible, key=lambda insight: -insight.priority)[: self.limit]
        LOGGER.debug(
            "Generated %s insights for %s (%s candidates, %s dismissed)",
            len(ranked),
            user_id,
            len(candidates),
            len(dismissed),
        )
        return ranked

    def dismiss(self, user_id: str, insight_id: str) -> None:
        if not insight_id:
            raise ValidationError("Insight id is required")
        self.store.dismiss_insight(user_id, insight_id, self.clock())
        LOGGER.info("Dismissed insight %s for user %s", insight_id, user_id)

    # Analyzers ----------------------------------------------------------

    def _monthly_surplus_amount(self, transactions: List[Transaction]) -> float:
        """Settled income minus settled expense this month, never negative."""

        now = self.clock()
        income = 0.0
        expenses = 0.0
        for transaction in transactions:
            if not transaction.is_paid or not same_month(transaction.date, now.year, now.month):
                continue
            if transaction.transaction_type is TransactionType.INCOME:
                income += transaction.amount
            elif transaction.transaction_type is TransactionType.EXPENSE:
                expenses += transaction.amount
        return max(0.0, income - expenses)

    def _emergency_fund(self, transactions: List[Transaction], goals: List[Goal]) -> List[SmartInsight]:
        now = self.clock()
        emergency = select_emergency_goal(goals)
        if emergency is None:
            message = (
                "You have no emergency reserve yet. Experts recommend keeping three to six"
                " months of expenses for the unexpected."
                if not goals
                else "You have goals, but none is an emergency reserve. That is the most important one!"
            )
            return [
                SmartInsight(
                    insight_id="create-emergency-fund",
                    kind="warning",
                    category="emergency_fund",
                    priority=5,
                    title="Create your emergency reserve",
                    message=message,
                    pattern="no_emergency_fund" if not goals else "no_emergency_goal",
                    confidence=100,
                    based_on=len(goals),
                    created_at=now,
                    action=InsightAction("Create emergency goal", 0.0, "create_goal"),
                )
            ]

        progress = emergency.progress
        if progress < LOW_RESERVE_PROGRESS:
            surplus = self._monthly_surplus_amount(transactions)
            if surplus > 0:
                suggested = min(surplus * 0.6, emergency.target_amount - emergency.current_amount)
                return [
                    SmartInsight(
                        insight_id="boost-emergency-fund",
                        kind="opportunity",
                        category="emergency_fund",
                        priority=4,
                        title="Strengthen your reserve",
                        message=(
                            f"You saved {surplus:.2f} this month and your emergency reserve is at"
                            f" {progress:.1f}%. How about transferring {suggested:.2f}?"
                        ),
                        pattern="monthly_surplus_opportunity",
                        confidence=85,
                        based_on=1,
                        created_at=now,
                        action=InsightAction(
                            f"Transfer {suggested:.2f}",
                            suggested,
                            "transfer",
                            {"goal_id": emergency.goal_id},
                        ),
                        expires_at=now + timedelta(days=7),
                    )
                ]
            return [
                SmartInsight(
                    insight_id="emergency-fund-low",
                    kind="tip",
                    category="emergency_fund",
                    priority=3,
                    title="Grow your emergency reserve",
                    message=(
                        f"Your reserve is at {progress:.1f}% of its target. Setting aside a fixed"
                        " amount every month adds up quickly."
                    ),
                    pattern="low_emergency_fund",
                    confidence=90,
                    based_on=1,
                    created_at=now,
                )
            ]
        if progress >= 100:
            return [
                SmartInsight(
                    insight_id="emergency-complete",
                    kind="achievement",
                    category="emergency_fund",
                    priority=2,
                    title="Reserve complete",
                    message=(
                        f"Your emergency reserve is complete ({emergency.current_amount:.2f})."
                        " Consider redirecting contributions to other goals."
                    ),
                    pattern="emergency_fund_complete",
                    confidence=100,
                    based_on=1,
                    created_at=now,
                )
            ]
        return []

    def _spending_behaviour(self, transactions: List[Transaction]) -> List[SmartInsight]:
        now = self.clock()
        previous_month = add_months(now.replace(day=1), -1)
        current: Dict[str, List[float]] = {}
        previous: Dict[str, float] = {}
        for transaction in transactions:
            if transaction.transaction_type is not TransactionType.EXPENSE:
                continue
            category = transaction.category_id or "other"
            if same_month(transaction.date, now.year, now.month):
                current.setdefault(category, []).append(transaction.amount)
            elif same_month(transaction.date, previous_month.year, previous_month.month):
                previous[category] = previous.get(category, 0.0) + transaction.amount

        insights: List[SmartInsight] = []
        for category in sorted(current):
            total = sum(current[category])
            before = previous.get(category, 0.0)
            if before <= 0:
                continue
            change = (total - before) / before * 100
            if change > SPIKE_THRESHOLD:
                insights.append(
                    SmartInsight(
                        insight_id=f"category-spike-{category}",
                        kind="warning",
                        category="spending",
                        priority=4,
                        title="Spending spike",
                        message=(
                            f"Spending on {category} rose {change:.0f}% this month."
                            f" Last month: {before:.2f}. This month: {total:.2f}."
                        ),
                        pattern="category_spending_spike",
                        confidence=80,
                        based_on=len(current[category]),
                        created_at=now,
                    )
                )
            elif change < REDUCTION_THRESHOLD:
                insights.append(
                    SmartInsight(
                        insight_id=f"category-reduction-{category}",
                        kind="achievement",
                        category="spending",
                        priority=2,
                        title="Savings detected",
                        message=(
                            f"You spent {abs(change):.0f}% less on {category}. Keep it up and save"
                            f" {(before - total) * 6:.2f} over six months."
                        ),
                        pattern="category_spending_reduction",
                        confidence=85,
                        based_on=len(current[category]),
                        created_at=now,
                    )
                )
        return insights[:MAX_SPENDING_INSIGHTS]

    def _goals_near_completion(self, goals: List[Goal]) -> List[SmartInsight]:
        now = self.clock()
        insights: List[SmartInsight] = []
        for goal in goals:
            if goal.status is not GoalStatus.ACTIVE:
                continue
            if NEAR_COMPLETION_PROGRESS <= goal.progress < 100:
                insights.append(
                    SmartInsight(
                        insight_id=f"goal-near-{goal.goal_id}",
                        kind="opportunity",
                        category="goals",
                        priority=3,
                        title="Goal almost complete",
                        message=f"Only {goal.remaining:.2f} left for your goal \"{goal.name}\"!",
                        pattern="goal_near_completion",
                        confidence=95,
                        based_on=1,
                        created_at=now,
                    )
                )
        return insights

    def _monthly_surplus(self, transactions: List[Transaction]) -> List[SmartInsight]:
        surplus = self._monthly_surplus_amount(transactions)
        if surplus <= SURPLUS_THRESHOLD:
            return []
        return [
            SmartInsight(
                insight_id="monthly-surplus",
                kind="opportunity",
                category="savings",
                priority=3,
                title="Monthly surplus",
                message=f"You have {surplus:.2f} left over this month. Put it towards a goal or your reserve.",
                pattern="monthly_surplus",
                confidence=90,
                based_on=1,
                created_at=self.clock(),
                action=InsightAction("See options", surplus, "transfer"),
            )
        ]

    def _unexpected_expenses(self, user_id: str) -> List[SmartInsight]:
        patterns = self.patterns.analyze(user_id)
        if patterns.unexpected_expenses_rate <= UNEXPECTED_RATE_THRESHOLD:
            return []
        return [
            SmartInsight(
                insight_id="high-unexpected-expenses",
                kind="tip",
                category="patterns",
                priority=2,
                title="Many unexpected expenses",
                message=(
                    f"{patterns.unexpected_expenses_rate * 100:.0f}% of your expenses were unexpected."
                    " Try planning the month ahead."
                ),
                pattern="high_unexpected_rate",
                confidence=75,
                based_on=patterns.expenses_analyzed,
                created_at=self.clock(),
            )
        ]
