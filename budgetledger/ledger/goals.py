"""Mini README: Savings goal registry.

Structure:
    * EMERGENCY_GOAL_NAME - default name for the auto-created reserve goal.
    * select_emergency_goal - reserve lookup shared with the analytics.
    * GoalManager - create, list, cancel, reactivate and delete goals.

Money moves in and out of goals only through ``BalanceEngine`` transfers and
withdrawals, so this module never touches ``current_amount`` or the
contribution list.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from ..logging_utils import get_logger
from .errors import GoalNotFoundError, ValidationError
from .models import Goal, GoalCategory, GoalStatus
from .store import LedgerStore

LOGGER = get_logger(__name__)

EMERGENCY_GOAL_NAME = "Emergency reserve"


def select_emergency_goal(goals: Iterable[Goal]) -> Optional[Goal]:
    """First non-cancelled goal that reads as an emergency reserve.

    Completed reserves still count; reaching the target does not remove the
    cushion.
    """

    for goal in goals:
        if goal.status is not GoalStatus.CANCELLED and goal.looks_like_emergency_fund():
            return goal
    return None


class GoalManager:
    """Lifecycle operations for savings goals."""

    def __init__(self, store: LedgerStore, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self.store = store
        self.clock = clock

    def list_goals(self, user_id: str, *, active_only: bool = False) -> List[Goal]:
        goals = self.store.list_goals(user_id)
        if active_only:
            goals = [goal for goal in goals if goal.status is GoalStatus.ACTIVE]
        return goals

    def get_goal(self, user_id: str, goal_id: str) -> Goal:
        goal = self.store.get_goal(user_id, goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal {goal_id} not found")
        return goal

    def find_emergency_goal(self, user_id: str) -> Optional[Goal]:
        return select_emergency_goal(self.store.list_goals(user_id))

    def create_goal(
        self,
        user_id: str,
        name: str,
        target_amount: float,
        *,
        category: object = GoalCategory.OTHER,
        deadline: Optional[datetime] = None,
        description: Optional[str] = None,
        is_emergency_fund: bool = False,
    ) -> Goal:
        if not name or not str(name).strip():
            raise ValidationError("Goal name is required")
        if target_amount is None or target_amount <= 0:
            raise ValidationError("Goal target amount must be positive")
        try:
            resolved_category = GoalCategory.from_str(category)
        except ValueError as error:
            raise ValidationError(str(error)) from error
        now = self.clock()
        goal = Goal(
            goal_id="",
            name=str(name).strip(),
            target_amount=float(target_amount),
            category=resolved_category,
            deadline=deadline,
            description=description,
            is_emergency_fund=is_emergency_fund or resolved_category is GoalCategory.EMERGENCY,
            created_at=now,
            updated_at=now,
        )
        self.store.save_goal(user_id, goal)
        LOGGER.info("Created goal %s (%s, target %.2f)", goal.goal_id, goal.name, goal.target_amount)
        return goal

    def create_emergency_goal(self, user_id: str, target_amount: float) -> Goal:
        """Return the active reserve goal, creating a one-year one when absent."""

        existing = self.find_emergency_goal(user_id)
        if existing is not None:
            return existing
        return self.create_goal(
            user_id,
            EMERGENCY_GOAL_NAME,
            target_amount,
            category=GoalCategory.EMERGENCY,
            deadline=self.clock() + timedelta(days=365),
            description="Six months of expenses for the unexpected",
            is_emergency_fund=True,
        )

    def _set_status(self, user_id: str, goal_id: str, status: GoalStatus) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        goal.status = status
        goal.updated_at = self.clock()
        self.store.save_goal(user_id, goal)
        LOGGER.info("Goal %s is now %s", goal_id, status.value)
        return goal

    def cancel_goal(self, user_id: str, goal_id: str) -> Goal:
        return self._set_status(user_id, goal_id, GoalStatus.CANCELLED)

    def reactivate_goal(self, user_id: str, goal_id: str) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        if goal.target_amount > 0 and goal.current_amount >= goal.target_amount:
            return self._set_status(user_id, goal_id, GoalStatus.COMPLETED)
        return self._set_status(user_id, goal_id, GoalStatus.ACTIVE)

    def delete_goal(self, user_id: str, goal_id: str) -> None:
        self.get_goal(user_id, goal_id)
        self.store.delete_goal(user_id, goal_id)
        LOGGER.info("Deleted goal %s for user %s", goal_id, user_id)
