"""Mini README: FastAPI JSON service for budgetledger.

Structure:
    * Request models - pydantic bodies for account, card, transaction, goal
      and confirmation commands.
    * create_application - application factory wiring the ledger managers
      and analytics to routes under ``/users/{user_id}``.

The user identifier is taken from the path; authentication is expected to
happen in front of this service. Domain failures map onto HTTP statuses:
missing records answer 404, insufficient funds 409 and invalid commands 400.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..analytics import (
    DailyBudgetCalculator,
    EmergencyFundAnalyzer,
    FinancialHealthScorer,
    InsightGenerator,
    PatternAnalyzer,
)
from ..configuration import get_settings
from ..ledger import (
    AccountManager,
    BalanceEngine,
    GoalManager,
    InsufficientFundsError,
    JsonFileLedgerStore,
    LedgerStore,
    NotFoundError,
    TransactionManager,
    calculate_stats,
)
from ..ledger.models import export_dataclass
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)


class AccountCreate(BaseModel):
    name: str
    account_type: str = "checking"
    initial_balance: float = 0.0
    include_in_total: bool = True
    color: Optional[str] = None
    icon: Optional[str] = None


class AccountUpdate(BaseModel):
    name: Optional[str] = None
    account_type: Optional[str] = None
    initial_balance: Optional[float] = None
    include_in_total: Optional[bool] = None
    color: Optional[str] = None
    icon: Optional[str] = None


class CardCreate(BaseModel):
    card_brand: str
    closing_day: int
    due_day: int
    credit_limit: float = 0.0
    nickname: Optional[str] = None


class CardUpdate(BaseModel):
    card_brand: Optional[str] = None
    closing_day: Optional[int] = None
    due_day: Optional[int] = None
    credit_limit: Optional[float] = None
    nickname: Optional[str] = None
    is_active: Optional[bool] = None


class TransactionCreate(BaseModel):
    transaction_type: str = "expense"
    amount: Optional[float] = None
    description: str = ""
    category_id: Optional[str] = None
    date: Optional[datetime] = None
    account_id: str = ""
    card_id: Optional[str] = None
    due_date: Optional[datetime] = None
    is_paid: bool = False
    expense_type: Optional[str] = None
    is_recurring: bool = False
    recurrence_type: Optional[str] = None
    installments: Optional[int] = None
    first_due_date: Optional[datetime] = None
    down_payment_amount: Optional[float] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    to_account_id: Optional[str] = None


class TransactionUpdate(BaseModel):
    transaction_type: Optional[str] = None
    amount: Optional[float] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    date: Optional[datetime] = None
    account_id: Optional[str] = None
    card_id: Optional[str] = None
    due_date: Optional[datetime] = None
    is_paid: Optional[bool] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None
    to_account_id: Optional[str] = None


class ConfirmRequest(BaseModel):
    amount: float
    lock_future: bool = False


class GoalCreate(BaseModel):
    name: str
    target_amount: float
    category: str = "other"
    deadline: Optional[datetime] = None
    description: Optional[str] = None
    is_emergency_fund: bool = False


class EmergencyGoalCreate(BaseModel):
    target_amount: Optional[float] = Field(
        None, description="Defaults to six months of average expenses."
    )


class GoalMovement(BaseModel):
    account_id: str
    amount: float = Field(..., description="Amount moved between the account and the goal.")


@contextmanager
def _domain_errors() -> Iterator[None]:
    """Translate ledger exceptions into HTTP errors."""

    try:
        yield
    except NotFoundError as error:
        raise HTTPException(status_code=404, detail=str(error)) from error
    except InsufficientFundsError as error:
        raise HTTPException(status_code=409, detail=str(error)) from error
    except ValueError as error:
        raise HTTPException(status_code=400, detail=str(error)) from error


def _records(items: List[object]) -> List[Dict[str, object]]:
    return [export_dataclass(item) for item in items]


def create_application(
    store: Optional[LedgerStore] = None,
    *,
    clock: Callable[[], datetime] = datetime.now,
) -> FastAPI:
    """Create the FastAPI application with ledger routes and analytics."""

    settings = get_settings()
    app = FastAPI(title="budgetledger", version="0.1.0")
    if store is None:
        store = JsonFileLedgerStore(settings.store_path)

    balances = BalanceEngine(store, clock=clock)
    accounts = AccountManager(store, balances, clock=clock)
    transactions = TransactionManager(store, balances, clock=clock)
    goals = GoalManager(store, clock=clock)
    patterns = PatternAnalyzer(store, clock=clock)
    daily_budget = DailyBudgetCalculator(store, patterns, clock=clock)
    health = FinancialHealthScorer(store, patterns, clock=clock)
    insights = InsightGenerator(store, patterns, clock=clock, limit=settings.insight_limit)
    emergency_fund = EmergencyFundAnalyzer(store, clock=clock)
    app.state.store = store
    LOGGER.info("budgetledger service ready (environment=%s)", settings.environment)

    @app.get("/health")
    async def service_health() -> JSONResponse:
        return JSONResponse({"status": "ok", "environment": settings.environment})

    # Accounts -----------------------------------------------------------

    @app.get("/users/{user_id}/accounts")
    async def list_accounts(user_id: str, active_only: bool = False) -> JSONResponse:
        items = accounts.list_accounts(user_id, active_only=active_only)
        return JSONResponse({"accounts": _records(items), "total_balance": accounts.total_balance(user_id)})

    @app.post("/users/{user_id}/accounts", status_code=201)
    async def create_account(user_id: str, body: AccountCreate) -> JSONResponse:
        with _domain_errors():
            account = accounts.create_account(
                user_id,
                body.name,
                body.account_type,
                body.initial_balance,
                include_in_total=body.include_in_total,
                color=body.color,
                icon=body.icon,
            )
        return JSONResponse(export_dataclass(account), status_code=201)

    @app.post("/users/{user_id}/accounts/seed")
    async def seed_account(user_id: str) -> JSONResponse:
        return JSONResponse(export_dataclass(accounts.seed_default_account(user_id)))

    @app.patch("/users/{user_id}/accounts/{account_id}")
    async def update_account(user_id: str, account_id: str, body: AccountUpdate) -> JSONResponse:
        with _domain_errors():
            account = accounts.update_account(user_id, account_id, body.model_dump(exclude_none=True))
        return JSONResponse(export_dataclass(account))

    @app.post("/users/{user_id}/accounts/{account_id}/activate")
    async def activate_account(user_id: str, account_id: str) -> JSONResponse:
        with _domain_errors():
            account = accounts.activate(user_id, account_id)
        return JSONResponse(export_dataclass(account))

    @app.post("/users/{user_id}/accounts/{account_id}/deactivate")
    async def deactivate_account(user_id: str, account_id: str) -> JSONResponse:
        with _domain_errors():
            account = accounts.deactivate(user_id, account_id)
        return JSONResponse(export_dataclass(account))

    @app.delete("/users/{user_id}/accounts/{account_id}")
    async def delete_account(user_id: str, account_id: str) -> JSONResponse:
        with _domain_errors():
            accounts.delete_account(user_id, account_id)
        return JSONResponse({"deleted": account_id})

    @app.post("/users/{user_id}/recalculate")
    async def recalculate(user_id: str) -> JSONResponse:
        return JSONResponse({"accounts": _records(balances.recalculate_all(user_id))})

    # Credit cards -------------------------------------------------------

    @app.get("/users/{user_id}/cards")
    async def list_cards(user_id: str) -> JSONResponse:
        return JSONResponse({"cards": _records(accounts.list_cards(user_id))})

    @app.post("/users/{user_id}/cards", status_code=201)
    async def register_card(user_id: str, body: CardCreate) -> JSONResponse:
        with _domain_errors():
            card = accounts.register_card(
                user_id,
                body.card_brand,
                body.closing_day,
                body.due_day,
                credit_limit=body.credit_limit,
                nickname=body.nickname,
            )
        return JSONResponse(export_dataclass(card), status_code=201)

    @app.get("/users/{user_id}/cards/{card_id}")
    async def get_card(user_id: str, card_id: str) -> JSONResponse:
        with _domain_errors():
            card = accounts.get_card(user_id, card_id)
        return JSONResponse(export_dataclass(card))

    @app.patch("/users/{user_id}/cards/{card_id}")
    async def update_card(user_id: str, card_id: str, body: CardUpdate) -> JSONResponse:
        with _domain_errors():
            card = accounts.update_card(user_id, card_id, body.model_dump(exclude_none=True))
        return JSONResponse(export_dataclass(card))

    # Transactions -------------------------------------------------------

    @app.get("/users/{user_id}/transactions")
    async def list_transactions(
        user_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> JSONResponse:
        items = transactions.list_transactions(user_id, month=month, year=year)
        stats = calculate_stats(items)
        return JSONResponse({"transactions": _records(items), "stats": jsonable_encoder(stats)})

    @app.post("/users/{user_id}/transactions", status_code=201)
    async def create_transaction(user_id: str, body: TransactionCreate) -> JSONResponse:
        payload = body.model_dump(exclude_none=True)
        payload.setdefault("date", clock())
        with _domain_errors():
            rows = transactions.create(user_id, payload)
        return JSONResponse({"transactions": _records(rows)}, status_code=201)

    @app.get("/users/{user_id}/transactions/pending")
    async def pending_confirmations(user_id: str) -> JSONResponse:
        pending = transactions.pending_confirmations(user_id)
        return JSONResponse({key: _records(items) for key, items in pending.items()})

    @app.patch("/users/{user_id}/transactions/{transaction_id}")
    async def update_transaction(user_id: str, transaction_id: str, body: TransactionUpdate) -> JSONResponse:
        with _domain_errors():
            updated = transactions.update(user_id, transaction_id, body.model_dump(exclude_none=True))
        return JSONResponse(export_dataclass(updated))

    @app.delete("/users/{user_id}/transactions/{transaction_id}")
    async def delete_transaction(user_id: str, transaction_id: str) -> JSONResponse:
        with _domain_errors():
            removed = transactions.delete(user_id, transaction_id)
        return JSONResponse({"deleted": removed})

    @app.post("/users/{user_id}/transactions/{transaction_id}/confirm")
    async def confirm_transaction(user_id: str, transaction_id: str, body: ConfirmRequest) -> JSONResponse:
        with _domain_errors():
            confirmed, successor = transactions.confirm_transaction(
                user_id, transaction_id, body.amount, lock_future=body.lock_future
            )
        return JSONResponse(
            {
                "confirmed": export_dataclass(confirmed),
                "next_occurrence": export_dataclass(successor) if successor else None,
            }
        )

    # Goals --------------------------------------------------------------

    @app.get("/users/{user_id}/goals")
    async def list_goals(user_id: str, active_only: bool = False) -> JSONResponse:
        return JSONResponse({"goals": _records(goals.list_goals(user_id, active_only=active_only))})

    @app.post("/users/{user_id}/goals", status_code=201)
    async def create_goal(user_id: str, body: GoalCreate) -> JSONResponse:
        with _domain_errors():
            goal = goals.create_goal(
                user_id,
                body.name,
                body.target_amount,
                category=body.category,
                deadline=body.deadline,
                description=body.description,
                is_emergency_fund=body.is_emergency_fund,
            )
        return JSONResponse(export_dataclass(goal), status_code=201)

    @app.post("/users/{user_id}/goals/emergency")
    async def create_emergency_goal(user_id: str, body: EmergencyGoalCreate) -> JSONResponse:
        target = body.target_amount
        if target is None:
            target = emergency_fund.status(user_id).recommended_target
        with _domain_errors():
            goal = goals.create_emergency_goal(user_id, target)
        return JSONResponse(export_dataclass(goal))

    @app.post("/users/{user_id}/goals/{goal_id}/cancel")
    async def cancel_goal(user_id: str, goal_id: str) -> JSONResponse:
        with _domain_errors():
            goal = goals.cancel_goal(user_id, goal_id)
        return JSONResponse(export_dataclass(goal))

    @app.post("/users/{user_id}/goals/{goal_id}/reactivate")
    async def reactivate_goal(user_id: str, goal_id: str) -> JSONResponse:
        with _domain_errors():
            goal = goals.reactivate_goal(user_id, goal_id)
        return JSONResponse(export_dataclass(goal))

    @app.delete("/users/{user_id}/goals/{goal_id}")
    async def delete_goal(user_id: str, goal_id: str) -> JSONResponse:
        with _domain_errors():
            goals.delete_goal(user_id, goal_id)
        return JSONResponse({"deleted": goal_id})

    @app.post("/users/{user_id}/goals/{goal_id}/transfer")
    async def transfer_to_goal(user_id: str, goal_id: str, body: GoalMovement) -> JSONResponse:
        with _domain_errors():
            transaction = balances.transfer_to_goal(user_id, body.account_id, goal_id, body.amount)
        return JSONResponse(
            {
                "transaction": export_dataclass(transaction),
                "goal": export_dataclass(goals.get_goal(user_id, goal_id)),
            }
        )

    @app.post("/users/{user_id}/goals/{goal_id}/withdraw")
    async def withdraw_from_goal(user_id: str, goal_id: str, body: GoalMovement) -> JSONResponse:
        with _domain_errors():
            transaction = balances.withdraw_from_goal(user_id, body.account_id, goal_id, body.amount)
        return JSONResponse(
            {
                "transaction": export_dataclass(transaction),
                "goal": export_dataclass(goals.get_goal(user_id, goal_id)),
            }
        )

    # Analytics ----------------------------------------------------------

    @app.get("/users/{user_id}/daily-budget")
    async def get_daily_budget(user_id: str) -> JSONResponse:
        data = daily_budget.calculate(user_id)
        payload = jsonable_encoder(data)
        payload["health_percentage"] = data.health_percentage()
        payload["status"] = data.status().value
        payload["severity"] = data.severity()
        return JSONResponse(payload)

    @app.get("/users/{user_id}/patterns")
    async def get_patterns(user_id: str) -> JSONResponse:
        return JSONResponse(jsonable_encoder(patterns.analyze(user_id)))

    @app.get("/users/{user_id}/health-score")
    async def get_health_score(user_id: str) -> JSONResponse:
        return JSONResponse(jsonable_encoder(health.score(user_id)))

    @app.get("/users/{user_id}/emergency-fund")
    async def get_emergency_fund(user_id: str) -> JSONResponse:
        return JSONResponse(jsonable_encoder(emergency_fund.status(user_id)))

    @app.get("/users/{user_id}/insights")
    async def get_insights(user_id: str) -> JSONResponse:
        return JSONResponse({"insights": jsonable_encoder(insights.generate(user_id))})

    @app.post("/users/{user_id}/insights/{insight_id}/dismiss")
    async def dismiss_insight(user_id: str, insight_id: str) -> JSONResponse:
        with _domain_errors():
            insights.dismiss(user_id, insight_id)
        return JSONResponse({"dismissed": insight_id})

    return app
