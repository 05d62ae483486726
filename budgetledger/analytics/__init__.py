"""Mini README: Read-side analytics for budgetledger.

Every analyzer takes a ledger store and an injectable clock, recomputes its
result on demand and returns zero-valued results for users without history.
Only ``InsightGenerator.dismiss`` writes to the store.
"""

from .daily_budget import BudgetStatus, DailyBudgetCalculator, DailyBudgetData
from .emergency_fund import EmergencyFundAnalyzer, EmergencyFundStatus, FundStatus
from .health import FinancialHealthScore, FinancialHealthScorer, HealthAlert, HealthBreakdown, Recommendation
from .insights import InsightAction, InsightGenerator, SmartInsight
from .patterns import PatternAnalysis, PatternAnalyzer, Trend, recommended_buffer

__all__ = [
    "BudgetStatus",
    "DailyBudgetCalculator",
    "DailyBudgetData",
    "EmergencyFundAnalyzer",
    "EmergencyFundStatus",
    "FinancialHealthScore",
    "FinancialHealthScorer",
    "FundStatus",
    "HealthAlert",
    "HealthBreakdown",
    "InsightAction",
    "InsightGenerator",
    "PatternAnalysis",
    "PatternAnalyzer",
    "Recommendation",
    "SmartInsight",
    "Trend",
    "recommended_buffer",
]
