"""Mini README: Tests for the read-side analytics.

Structure:
    * Pattern analysis - monthly statistics, trend and buffer bounds.
    * Daily budget - allowance arithmetic and status bands.
    * Health score - breakpoint table, weights and advice ordering.
    * Insights and emergency fund - analyzer output, ranking and dismissal.
"""

from __future__ import annotations

from datetime import datetime
from itertools import product

import pytest

from budgetledger.analytics import (
    BudgetStatus,
    DailyBudgetCalculator,
    DailyBudgetData,
    EmergencyFundAnalyzer,
    FinancialHealthScorer,
    FundStatus,
    InsightGenerator,
    PatternAnalyzer,
    Trend,
    recommended_buffer,
)
from budgetledger.analytics.health import HealthBreakdown, build_recommendations, spending_control_score
from budgetledger.analytics.patterns import classify_trend
from budgetledger.ledger import ExpenseType, Goal, GoalCategory, GoalStatus, Transaction, TransactionType

from conftest import USER, fixed_clock


def _add(store, amount: float, when: datetime, **extra: object) -> Transaction:
    transaction_type = extra.pop("transaction_type", TransactionType.EXPENSE)
    default_subtype = ExpenseType.CASH if transaction_type is TransactionType.EXPENSE else None
    transaction = Transaction(
        transaction_id="",
        transaction_type=transaction_type,
        amount=amount,
        description=str(extra.pop("description", "")),
        category_id=str(extra.pop("category_id", "food")),
        date=when,
        account_id="acc_main",
        is_paid=bool(extra.pop("is_paid", True)),
        expense_type=extra.pop("expense_type", default_subtype),
        **extra,
    )
    return store.save_transaction(USER, transaction)


def _goal(store, name: str, target: float, current: float, **extra: object) -> Goal:
    return store.save_goal(
        USER,
        Goal(goal_id="", name=name, target_amount=target, current_amount=current, created_at=fixed_clock(), **extra),
    )


def test_patterns_for_new_user_are_zero_valued(store) -> None:
    """No history yields zeros, a stable trend and the sparse-data buffer."""

    analysis = PatternAnalyzer(store, clock=fixed_clock).analyze(USER)

    assert analysis.average_monthly_expenses == 0.0
    assert analysis.volatility == 0.0
    assert analysis.unexpected_expenses_rate == 0.0
    assert analysis.trend is Trend.STABLE
    assert analysis.buffer_percentage == 15.0


def test_patterns_summarise_variable_spending(store) -> None:
    """Monthly totals drive mean, population deviation and trend."""

    _add(store, 100.0, datetime(2024, 3, 5))
    _add(store, 200.0, datetime(2024, 4, 5))
    _add(store, 300.0, datetime(2024, 5, 5))
    _add(store, 5000.0, datetime(2024, 4, 1), expense_type=ExpenseType.FIXED)
    _add(store, 999.0, datetime(2024, 1, 10))
    _add(store, 50.0, datetime(2024, 5, 5), transaction_type=TransactionType.INCOME)

    analysis = PatternAnalyzer(store, clock=fixed_clock).analyze(USER)

    assert analysis.monthly_totals == {"2024-03": 100.0, "2024-04": 200.0, "2024-05": 300.0}
    assert analysis.average_monthly_expenses == pytest.approx(200.0)
    assert analysis.volatility == pytest.approx(81.6496580927726)
    assert analysis.trend is Trend.INCREASING
    assert analysis.unexpected_expenses_rate == 0.0
    assert analysis.buffer_percentage == 10.0


def test_unexpected_rate_counts_outliers(store) -> None:
    """Expenses above twice the mean count as unexpected."""

    for amount in (10.0, 10.0, 10.0, 100.0):
        _add(store, amount, datetime(2024, 5, 2))

    analysis = PatternAnalyzer(store, clock=fixed_clock).analyze(USER)

    assert analysis.unexpected_expenses_rate == pytest.approx(0.25)


def test_trend_dead_zone_and_zero_start() -> None:
    """Changes within 10% are stable; a zero first month cannot decrease."""

    assert classify_trend([100.0, 105.0]) is Trend.STABLE
    assert classify_trend([100.0, 80.0]) is Trend.DECREASING
    assert classify_trend([0.0, 50.0]) is Trend.INCREASING
    assert classify_trend([0.0, 0.0]) is Trend.STABLE
    assert classify_trend([70.0]) is Trend.STABLE


def test_buffer_always_within_bounds() -> None:
    """Every combination of inputs stays inside [10, 20]."""

    rates = (0.0, 0.31, 0.51, 1.0)
    volatilities = (0.0, 501.0, 1001.0, 10_000.0)
    months = (0, 1, 2, 3)
    for rate, volatility, month_count in product(rates, volatilities, months):
        assert 10.0 <= recommended_buffer(rate, volatility, month_count) <= 20.0
    assert recommended_buffer(1.0, 10_000.0, 0) == 20.0
    assert recommended_buffer(0.0, 0.0, 3) == 10.0


def test_daily_budget_accumulates_unspent_days(store) -> None:
    """Unspent daily allowance carries over; the buffer trims the safe figure."""

    _add(store, 3100.0, datetime(2024, 5, 1), transaction_type=TransactionType.INCOME)
    _add(store, 310.0, datetime(2024, 5, 5), expense_type=ExpenseType.FIXED)
    _add(store, 999.0, datetime(2024, 5, 6), expense_type=ExpenseType.FIXED, is_paid=False)
    _add(store, 500.0, datetime(2024, 5, 7), transaction_type=TransactionType.INCOME, is_recurring=True, is_paid=False)
    _add(store, 50.0, datetime(2024, 5, 2))
    _add(store, 20.0, datetime(2024, 5, 20, 9, 30))

    data = DailyBudgetCalculator(store, clock=fixed_clock).calculate(USER)

    assert data.monthly_budget == pytest.approx(2790.0)
    assert data.average_daily_budget == pytest.approx(90.0)
    assert data.accumulated_balance == pytest.approx(19 * 90.0 - 50.0)
    assert data.can_spend_today == pytest.approx(1750.0)
    assert data.buffer_percentage == 15.0
    assert data.safe_to_spend_today == pytest.approx(1487.5)
    assert data.spent_today == pytest.approx(20.0)
    assert data.remaining_today == pytest.approx(1730.0)
    assert data.safe_budget_remaining == pytest.approx(1467.5)
    assert data.days_in_month == 31
    assert data.days_remaining == 12
    assert data.projected_end_of_month == pytest.approx(1467.5 * 12)
    assert data.status() is BudgetStatus.IN_CONTROL


def test_daily_budget_for_new_user_is_exceeded_not_an_error(store) -> None:
    """Empty ledgers produce a zero budget."""

    data = DailyBudgetCalculator(store, clock=fixed_clock).calculate(USER)

    assert data.monthly_budget == 0.0
    assert data.safe_to_spend_today == 0.0
    assert data.health_percentage() == 0.0
    assert data.status() is BudgetStatus.EXCEEDED


@pytest.mark.parametrize(
    ("remaining", "expected"),
    [
        (100.0, BudgetStatus.IN_CONTROL),
        (80.0, BudgetStatus.IN_CONTROL),
        (50.0, BudgetStatus.WATCH_SPENDING),
        (10.0, BudgetStatus.TIGHT),
        (0.0, BudgetStatus.EXCEEDED),
    ],
)
def test_daily_budget_status_bands(remaining: float, expected: BudgetStatus) -> None:
    """Health percentage maps onto four bands."""

    data = DailyBudgetData(safe_to_spend_today=100.0, safe_budget_remaining=remaining)
    assert data.status() is expected


@pytest.mark.parametrize(
    ("income", "expenses", "expected"),
    [
        (0.0, 500.0, 50.0),
        (1000.0, 700.0, 100.0),
        (1000.0, 850.0, 80.0),
        (1000.0, 950.0, 60.0),
        (1000.0, 1000.0, 40.0),
        (1000.0, 1200.0, 20.0),
        (1000.0, 2000.0, 0.0),
    ],
)
def test_spending_control_breakpoints(income: float, expenses: float, expected: float) -> None:
    """Expense/income ratios map onto the breakpoint table."""

    assert spending_control_score(income, expenses) == pytest.approx(expected)


def test_health_score_for_new_user(store) -> None:
    """A user without history scores a neutral 50 with two recommendations."""

    score = FinancialHealthScorer(store, clock=fixed_clock).score(USER)

    assert score.breakdown.emergency_fund == 0.0
    assert score.breakdown.spending_control == 50.0
    assert score.breakdown.consistency == 100.0
    assert score.breakdown.goals_progress == 50.0
    assert score.breakdown.debt_ratio == 100.0
    assert score.overall == 50
    assert score.classification == "regular"
    assert [item.recommendation_id for item in score.recommendations] == ["emergency-fund", "spending-control"]
    assert [alert.kind for alert in score.alerts] == ["warning"]


def test_health_score_rewards_reserve_and_goals(store) -> None:
    """A funded reserve and healthy spending push the score up."""

    _goal(store, "Emergency reserve", 1000.0, 1000.0, category=GoalCategory.EMERGENCY)
    _add(store, 1000.0, datetime(2024, 5, 1), transaction_type=TransactionType.INCOME)
    _add(store, 500.0, datetime(2024, 5, 3))

    score = FinancialHealthScorer(store, clock=fixed_clock).score(USER)

    assert score.breakdown.emergency_fund == 100.0
    assert score.breakdown.spending_control == 100.0
    assert score.breakdown.goals_progress == 100.0
    assert score.overall >= 90
    assert score.classification == "excellent"
    assert score.recommendations == []
    assert score.alerts == []


def test_reserve_funded_by_transfers_still_counts_once_completed(store, accounts, goals, balances) -> None:
    """Reaching the reserve target completes the goal without hiding it from analytics."""

    account = accounts.create_account(USER, "Checking", "checking", 1000.0)
    reserve = goals.create_emergency_goal(USER, 500.0)
    balances.transfer_to_goal(USER, account.account_id, reserve.goal_id, 500.0)
    assert store.get_goal(USER, reserve.goal_id).status is GoalStatus.COMPLETED

    score = FinancialHealthScorer(store, clock=fixed_clock).score(USER)
    fund = EmergencyFundAnalyzer(store, clock=fixed_clock).status(USER)
    insight_ids = [item.insight_id for item in InsightGenerator(store, clock=fixed_clock, limit=5).generate(USER)]

    assert score.breakdown.emergency_fund == 100.0
    assert "emergency-fund" not in [item.recommendation_id for item in score.recommendations]
    assert fund.has_goal
    assert fund.goal_id == reserve.goal_id
    assert "create-emergency-fund" not in insight_ids
    assert goals.find_emergency_goal(USER).goal_id == reserve.goal_id


def test_cancelled_reserve_is_ignored(store, goals) -> None:
    """Cancelling the reserve goal removes it from every reserve lookup."""

    reserve = goals.create_emergency_goal(USER, 500.0)
    goals.cancel_goal(USER, reserve.goal_id)

    assert goals.find_emergency_goal(USER) is None
    assert FinancialHealthScorer(store, clock=fixed_clock).emergency_fund_score(USER) == 0.0
    assert not EmergencyFundAnalyzer(store, clock=fixed_clock).status(USER).has_goal


def test_recommendations_keep_rule_order_and_cap() -> None:
    """All rules firing still yields three items in evaluation order."""

    breakdown = HealthBreakdown(emergency_fund=0.0, spending_control=0.0, consistency=0.0, goals_progress=0.0)
    recommendations = build_recommendations(breakdown)

    assert [item.recommendation_id for item in recommendations] == [
        "emergency-fund",
        "spending-control",
        "goals-progress",
    ]


def test_insights_for_new_user_suggest_a_reserve(store) -> None:
    """With no goals the top insight is to create an emergency reserve."""

    insights = InsightGenerator(store, clock=fixed_clock, limit=5).generate(USER)

    assert [item.insight_id for item in insights] == ["create-emergency-fund"]
    assert insights[0].priority == 5
    assert insights[0].pattern == "no_emergency_fund"


def test_insights_are_ranked_and_truncated(store) -> None:
    """Multiple analyzers merge, sort by priority and keep the top five."""

    _goal(store, "Emergency reserve", 10_000.0, 100.0, category=GoalCategory.EMERGENCY)
    _goal(store, "New bike", 1000.0, 900.0)
    _add(store, 3000.0, datetime(2024, 5, 1), transaction_type=TransactionType.INCOME)
    _add(store, 100.0, datetime(2024, 4, 3), category_id="food")
    _add(store, 250.0, datetime(2024, 5, 3), category_id="food")
    _add(store, 200.0, datetime(2024, 4, 4), category_id="fuel")
    _add(store, 100.0, datetime(2024, 5, 4), category_id="fuel")
    _add(store, 100.0, datetime(2024, 4, 5), category_id="games")
    _add(store, 10.0, datetime(2024, 5, 5), category_id="games")

    insights = InsightGenerator(store, clock=fixed_clock, limit=5).generate(USER)
    ids = [item.insight_id for item in insights]

    assert len(insights) == 5
    priorities = [item.priority for item in insights]
    assert priorities == sorted(priorities, reverse=True)
    assert ids[:2] == ["boost-emergency-fund", "category-spike-food"]
    assert "category-reduction-fuel" in ids
    assert "category-reduction-games" not in ids
    boost = insights[0]
    assert boost.action.value == pytest.approx(min((3000.0 - 360.0) * 0.6, 9900.0))


def test_goal_near_completion_insight(store) -> None:
    """Active goals between 85% and 100% are highlighted."""

    _goal(store, "Emergency reserve", 1000.0, 500.0, category=GoalCategory.EMERGENCY)
    bike = _goal(store, "Bike", 1000.0, 900.0)

    ids = [item.insight_id for item in InsightGenerator(store, clock=fixed_clock, limit=5).generate(USER)]

    assert f"goal-near-{bike.goal_id}" in ids


def test_dismissed_insights_are_hidden(store) -> None:
    """Dismissal records a marker and filters the insight out."""

    generator = InsightGenerator(store, clock=fixed_clock, limit=5)
    generator.dismiss(USER, "create-emergency-fund")

    assert generator.generate(USER) == []
    assert store.dismissed_insight_ids(USER) == ["create-emergency-fund"]


def test_emergency_fund_status_bands(store) -> None:
    """Coverage is measured in months of average expenses."""

    analyzer = EmergencyFundAnalyzer(store, clock=fixed_clock)
    empty = analyzer.status(USER)
    assert not empty.has_goal
    assert empty.status is FundStatus.NONE
    assert empty.target_amount == 0.0

    _add(store, 600.0, datetime(2024, 4, 10))
    _add(store, 600.0, datetime(2024, 5, 10), expense_type=ExpenseType.FIXED)
    _goal(store, "Emergency reserve", 3600.0, 1800.0, category=GoalCategory.EMERGENCY)

    status = analyzer.status(USER)

    assert status.has_goal
    assert status.monthly_expenses == pytest.approx(600.0)
    assert status.recommended_target == pytest.approx(3600.0)
    assert status.months_covered == pytest.approx(3.0)
    assert status.progress == pytest.approx(50.0)
    assert status.status is FundStatus.ADEQUATE
