"""Mini README: Emergency reserve coverage.

Structure:
    * FundStatus - none | building | adequate | excellent.
    * EmergencyFundStatus - reserve balance, recommended target and months
      of expenses covered.
    * EmergencyFundAnalyzer - read-only view over the user's reserve goal.

The recommended reserve is six times the average monthly expenses of the
trailing three months (every expense counts, fixed or not).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Optional

from ..logging_utils import get_logger
from ..ledger.dates import add_months, month_key
from ..ledger.goals import select_emergency_goal
from ..ledger.models import TransactionType
from ..ledger.store import LedgerStore

LOGGER = get_logger(__name__)

TARGET_MONTHS = 6
ADEQUATE_MONTHS = 3


class FundStatus(str, Enum):
    NONE = "none"
    BUILDING = "building"
    ADEQUATE = "adequate"
    EXCELLENT = "excellent"


@dataclass(slots=True)
class EmergencyFundStatus:
    has_goal: bool = False
    goal_id: Optional[str] = None
    current_amount: float = 0.0
    target_amount: float = 0.0
    recommended_target: float = 0.0
    monthly_expenses: float = 0.0
    months_covered: float = 0.0
    progress: float = 0.0
    status: FundStatus = FundStatus.NONE


class EmergencyFundAnalyzer:
    def __init__(self, store: LedgerStore, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self.store = store
        self.clock = clock

    def average_monthly_expenses(self, user_id: str) -> float:
        now = self.clock()
        start = add_months(now, -3)
        end = now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
        totals: Dict[str, float] = {}
        for transaction in self.store.list_transactions(user_id):
            if transaction.transaction_type is not TransactionType.EXPENSE:
                continue
            if start <= transaction.date < end:
                key = month_key(transaction.date)
                totals[key] = totals.get(key, 0.0) + transaction.amount
        if not totals:
            return 0.0
        return sum(totals.values()) / len(totals)

    def status(self, user_id: str) -> EmergencyFundStatus:
        monthly = self.average_monthly_expenses(user_id)
        recommended = monthly * TARGET_MONTHS
        goal = select_emergency_goal(self.store.list_goals(user_id))
        if goal is None:
            return EmergencyFundStatus(
                target_amount=recommended,
                recommended_target=recommended,
                monthly_expenses=monthly,
            )

        months_covered = goal.current_amount / monthly if monthly > 0 else 0.0
        if months_covered >= TARGET_MONTHS:
            band = FundStatus.EXCELLENT
        elif months_covered >= ADEQUATE_MONTHS:
            band = FundStatus.ADEQUATE
        elif months_covered > 0:
            band = FundStatus.BUILDING
        else:
            band = FundStatus.NONE
        LOGGER.debug("Emergency reserve for %s covers %.1f months", user_id, months_covered)
        return EmergencyFundStatus(
            has_goal=True,
            goal_id=goal.goal_id,
            current_amount=goal.current_amount,
            target_amount=goal.target_amount,
            recommended_target=recommended,
            monthly_expenses=monthly,
            months_covered=months_covered,
            progress=goal.progress,
            status=band,
        )
