"""Mini README: Composite financial health score.

Structure:
    * HealthBreakdown - the five sub-scores (0-100 each).
    * Recommendation / HealthAlert - advice attached to a score.
    * FinancialHealthScore - weighted overall score, classification, advice.
    * spending_control_score - expense/income ratio breakpoint table.
    * FinancialHealthScorer - computes the score for a user.

Weights: emergency fund 30%, spending control 25%, consistency 20%, goals
progress 15%, debt ratio 10%. There is no debt model yet, so the debt ratio
sub-score is the constant ``DEBT_RATIO_SCORE``. Recommendations keep the
order in which their rules are evaluated and are capped at three.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..logging_utils import get_logger
from ..ledger.goals import select_emergency_goal
from ..ledger.models import GoalStatus, TransactionType
from ..ledger.store import LedgerStore
from .patterns import PatternAnalysis, PatternAnalyzer

LOGGER = get_logger(__name__)

WEIGHTS = {
    "emergency_fund": 0.30,
    "spending_control": 0.25,
    "consistency": 0.20,
    "goals_progress": 0.15,
    "debt_ratio": 0.10,
}
DEBT_RATIO_SCORE = 100.0
NEUTRAL_SCORE = 50.0
MAX_RECOMMENDATIONS = 3


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(slots=True)
class HealthBreakdown:
    emergency_fund: float = 0.0
    spending_control: float = 0.0
    consistency: float = 0.0
    goals_progress: float = 0.0
    debt_ratio: float = DEBT_RATIO_SCORE

    def weighted_total(self) -> float:
        return sum(getattr(self, name) * weight for name, weight in WEIGHTS.items())


@dataclass(slots=True)
class Recommendation:
    recommendation_id: str
    kind: str
    priority: str
    title: str
    description: str
    action: Optional[str] = None


@dataclass(slots=True)
class HealthAlert:
    alert_id: str
    kind: str
    title: str
    message: str


@dataclass(slots=True)
class FinancialHealthScore:
    overall: int
    breakdown: HealthBreakdown
    classification: str
    recommendations: List[Recommendation] = field(default_factory=list)
    alerts: List[HealthAlert] = field(default_factory=list)


def classify(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "regular"
    return "critical"


def spending_control_score(income: float, expenses: float) -> float:
    """Map the expense/income ratio onto 0-100; no income is neutral."""

    if income <= 0:
        return NEUTRAL_SCORE
    ratio = expenses / income
    if ratio <= 0.70:
        return 100.0
    if ratio <= 0.85:
        return 80.0
    if ratio <= 0.95:
        return 60.0
    if ratio <= 1.0:
        return 40.0
    return max(0.0, 40 - (ratio - 1) * 100)


def consistency_score(patterns: PatternAnalysis) -> float:
    volatility_score = max(0.0, 100 - patterns.volatility / 20)
    unexpected_score = max(0.0, 100 - patterns.unexpected_expenses_rate * 100)
    return (volatility_score + unexpected_score) / 2


def build_recommendations(breakdown: HealthBreakdown) -> List[Recommendation]:
    recommendations: List[Recommendation] = []
    if breakdown.emergency_fund < 50:
        recommendations.append(
            Recommendation(
                "emergency-fund",
                "emergency",
                "high",
                "Build your emergency reserve",
                "Experts recommend keeping six months of expenses set aside.",
                "Create an emergency goal",
            )
        )
    if breakdown.spending_control < 60:
        recommendations.append(
            Recommendation(
                "spending-control",
                "spending",
                "high",
                "Reduce your monthly spending",
                "You are spending more than 85% of your income.",
                "Review the categories you spend most on",
            )
        )
    if breakdown.goals_progress < 50:
        recommendations.append(
            Recommendation(
                "goals-progress",
                "goals",
                "medium",
                "Increase your goal contributions",
                "Your goals are progressing slowly.",
                "Adjust contributions",
            )
        )
    if breakdown.consistency < 50:
        recommendations.append(
            Recommendation(
                "spending-consistency",
                "spending",
                "medium",
                "Plan for irregular expenses",
                "Your monthly spending swings widely or has many surprises.",
            )
        )
    return recommendations[:MAX_RECOMMENDATIONS]


def build_alerts(overall: float) -> List[HealthAlert]:
    if overall < 50:
        return [
            HealthAlert(
                "critical-health",
                "danger",
                "Critical financial health",
                "Your finances need urgent adjustments.",
            )
        ]
    if overall < 70:
        return [
            HealthAlert(
                "regular-health",
                "warning",
                "Watch your spending",
                "Some indicators need attention.",
            )
        ]
    return []


class FinancialHealthScorer:
    """Weigh five independent sub-scores into one health figure."""

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

    def emergency_fund_score(self, user_id: str) -> float:
        goal = select_emergency_goal(self.store.list_goals(user_id))
        if goal is None:
            return 0.0
        return min(100.0, goal.progress)

    def month_totals(self, user_id: str) -> Tuple[float, float]:
        """Income and expense recorded in the current month."""

        now = self.clock()
        income = 0.0
        expenses = 0.0
        for transaction in self.store.list_transactions(user_id, month=now.month, year=now.year):
            if transaction.transaction_type is TransactionType.INCOME:
                income += transaction.amount
            elif transaction.transaction_type is TransactionType.EXPENSE:
                expenses += transaction.amount
        return income, expenses

    def goals_progress_score(self, user_id: str) -> float:
        active = [goal for goal in self.store.list_goals(user_id) if goal.status is GoalStatus.ACTIVE]
        if not active:
            return NEUTRAL_SCORE
        average = sum(goal.progress for goal in active) / len(active)
        return min(100.0, average)

    def score(self, user_id: str) -> FinancialHealthScore:
        income, expenses = self.month_totals(user_id)
        breakdown = HealthBreakdown(
            emergency_fund=self.emergency_fund_score(user_id),
            spending_control=spending_control_score(income, expenses),
            consistency=consistency_score(self.patterns.analyze(user_id)),
            goals_progress=self.goals_progress_score(user_id),
            debt_ratio=DEBT_RATIO_SCORE,
        )
        overall = max(0.0, breakdown.weighted_total())
        result = FinancialHealthScore(
            overall=_round_half_up(overall),
            breakdown=breakdown,
            classification=classify(overall),
            recommendations=build_recommendations(breakdown),
            alerts=build_alerts(overall),
        )
        LOGGER.debug("Health score for %s: %s (%s)", user_id, result.overall, result.classification)
        return result
