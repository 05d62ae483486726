"""Mini README: Ledger records and their store codec.

Structure:
    * TransactionType / ExpenseType / AccountType / GoalStatus / GoalCategory -
      enums with forgiving ``from_str`` coercion.
    * Account, CreditCard, Transaction, Contribution, Goal - slotted
      dataclasses holding ledger state.
    * ``to_record`` / ``from_record`` - translate between dataclasses and the
      flat camelCase records kept by the store (dates as epoch milliseconds).
    * ``Transaction.from_payload`` / ``Transaction.duplicate`` - build or copy
      transactions from snake_case command payloads with validation.
    * export_dataclass - JSON-friendly view used by the web interface.

A transaction's balance effect is derived here (``balance_effects``) so the
incremental settlement path and the full replay share one definition.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from .dates import from_epoch_ms, to_epoch_ms
from .errors import ValidationError

GOAL_TRANSFER_CATEGORY = "reserva-emergencia"
GOAL_WITHDRAWAL_CATEGORY = "saque-reserva"


class _CoercibleEnum(str, Enum):
    """String enum accepting arbitrary casing and surrounding whitespace."""

    @classmethod
    def from_str(cls, value: object):
        if isinstance(value, cls):
            return value
        try:
            normalised = str(value).strip().lower()
            return cls(normalised)
        except (ValueError, AttributeError) as error:
            raise ValueError(f"Unsupported {cls.__name__}: {value}") from error


class TransactionType(_CoercibleEnum):
    """Direction of a ledger entry."""

    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class ExpenseType(_CoercibleEnum):
    """Expense subtype controlling settlement and expansion rules."""

    CASH = "cash"
    FIXED = "fixed"
    INSTALLMENT = "installment"


class AccountType(_CoercibleEnum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CASH = "cash"
    INVESTMENT = "investment"


class GoalStatus(_CoercibleEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GoalCategory(_CoercibleEnum):
    EMERGENCY = "emergency"
    TRAVEL = "travel"
    HOUSE = "house"
    CAR = "car"
    EDUCATION = "education"
    RETIREMENT = "retirement"
    OTHER = "other"


# (attribute, record key, kind) triples; kind drives encoding of dates/enums.
FieldSpec = Tuple[Tuple[str, str, Optional[object]], ...]
_DATE = "date"

T = TypeVar("T")


def _encode(instance: object, spec: FieldSpec) -> Dict[str, object]:
    record: Dict[str, object] = {}
    for attribute, key, kind in spec:
        value = getattr(instance, attribute)
        if value is None:
            continue
        if kind == _DATE:
            value = to_epoch_ms(value)
        elif isinstance(value, Enum):
            value = value.value
        elif isinstance(value, list):
            value = list(value)
        record[key] = value
    return record


def _decode(record: Dict[str, Any], spec: FieldSpec) -> Dict[str, object]:
    values: Dict[str, object] = {}
    for attribute, key, kind in spec:
        if key not in record or record[key] is None:
            continue
        value = record[key]
        if kind == _DATE:
            value = from_epoch_ms(value)
        elif isinstance(kind, type) and issubclass(kind, _CoercibleEnum):
            value = kind.from_str(value)
        values[attribute] = value
    return values


@dataclass(slots=True)
class Account:
    """Money container whose current balance is derived from settled entries."""

    account_id: str
    name: str
    account_type: AccountType = AccountType.CHECKING
    initial_balance: float = 0.0
    current_balance: float = 0.0
    is_active: bool = True
    include_in_total: bool = True
    color: Optional[str] = None
    icon: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_record(self) -> Dict[str, object]:
        return _encode(self, _ACCOUNT_SPEC)

    @classmethod
    def from_record(cls, account_id: str, record: Dict[str, Any]) -> "Account":
        values = _decode(record, _ACCOUNT_SPEC)
        values.setdefault("name", "")
        return cls(account_id=account_id, **values)


_ACCOUNT_SPEC: FieldSpec = (
    ("name", "name", None),
    ("account_type", "type", AccountType),
    ("initial_balance", "initialBalance", None),
    ("current_balance", "currentBalance", None),
    ("is_active", "isActive", None),
    ("include_in_total", "includeInTotal", None),
    ("color", "color", None),
    ("icon", "icon", None),
    ("created_at", "createdAt", _DATE),
)


@dataclass(slots=True)
class CreditCard:
    """Card metadata consulted when shifting purchases across billing cycles."""

    card_id: str
    card_brand: str
    closing_day: int
    due_day: int
    credit_limit: float = 0.0
    nickname: Optional[str] = None
    is_active: bool = True

    def to_record(self) -> Dict[str, object]:
        return _encode(self, _CARD_SPEC)

    @classmethod
    def from_record(cls, card_id: str, record: Dict[str, Any]) -> "CreditCard":
        values = _decode(record, _CARD_SPEC)
        # Older records carry ``limit`` rather than ``creditLimit``.
        if "credit_limit" not in values and "limit" in record:
            values["credit_limit"] = record["limit"]
        values.setdefault("card_brand", "")
        values["closing_day"] = int(values.get("closing_day", 31))
        values["due_day"] = int(values.get("due_day", 1))
        return cls(card_id=card_id, **values)


_CARD_SPEC: FieldSpec = (
    ("card_brand", "cardBrand", None),
    ("nickname", "nickname", None),
    ("closing_day", "closingDay", None),
    ("due_day", "dueDay", None),
    ("credit_limit", "creditLimit", None),
    ("is_active", "isActive", None),
)


@dataclass(slots=True)
class Transaction:
    """A ledger entry; settled, card-less entries move account balances."""

    transaction_id: str
    transaction_type: TransactionType
    amount: float
    description: str
    category_id: str
    date: datetime
    account_id: str = ""
    card_id: Optional[str] = None
    due_date: Optional[datetime] = None
    is_paid: bool = False
    expense_type: Optional[ExpenseType] = None
    is_recurring: bool = False
    recurrence_day: Optional[int] = None
    recurrence_type: Optional[str] = None
    installments: Optional[int] = None
    current_installment: Optional[int] = None
    installment_id: Optional[str] = None
    purchase_date: Optional[datetime] = None
    first_due_date: Optional[datetime] = None
    down_payment_amount: Optional[float] = None
    assigned_to: Optional[str] = None
    value_history: List[float] = field(default_factory=list)
    notes: Optional[str] = None
    to_account_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def has_card(self) -> bool:
        return bool(self.card_id)

    @property
    def is_unexpanded_installment(self) -> bool:
        """An installment principal that has not been split into rows."""

        return bool(self.installments and self.installments > 1 and not self.installment_id)

    @property
    def settlement_date(self) -> datetime:
        """Date the entry is expected to be paid or received."""

        return self.due_date or self.date

    def balance_effects(self) -> Dict[str, float]:
        """Signed per-account deltas this entry contributes to balances."""

        effects: Dict[str, float] = {}
        if not self.is_paid or self.has_card or self.is_unexpanded_installment:
            return effects
        if self.transaction_type is TransactionType.INCOME:
            if self.account_id:
                effects[self.account_id] = self.amount
        elif self.transaction_type is TransactionType.EXPENSE:
            if self.account_id:
                effects[self.account_id] = -self.amount
        elif self.transaction_type is TransactionType.TRANSFER:
            if self.account_id:
                effects[self.account_id] = -self.amount
            if self.to_account_id:
                effects[self.to_account_id] = effects.get(self.to_account_id, 0.0) + self.amount
        return effects

    def duplicate(
        self,
        *,
        transaction_id: str,
        overrides: Optional[Dict[str, object]] = None,
    ) -> "Transaction":
        """Return a copy applying optional overrides for editable fields."""

        coerced = coerce_transaction_fields(overrides or {})
        duplicated = replace(self, transaction_id=transaction_id, **coerced)
        duplicated.value_history = list(duplicated.value_history)
        return duplicated

    @classmethod
    def from_payload(cls, payload: Dict[str, object], *, transaction_id: str = "") -> "Transaction":
        """Build a transaction from a snake_case command payload."""

        coerced = coerce_transaction_fields(payload)
        missing = [name for name in ("amount", "category_id") if coerced.get(name) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required transaction fields: {', '.join(missing)}")
        coerced.setdefault("transaction_type", TransactionType.EXPENSE)
        coerced.setdefault("description", "")
        coerced.setdefault("date", datetime.now())
        coerced.pop("transaction_id", None)
        return cls(transaction_id=transaction_id, **coerced)

    def to_record(self) -> Dict[str, object]:
        return _encode(self, _TRANSACTION_SPEC)

    @classmethod
    def from_record(cls, transaction_id: str, record: Dict[str, Any]) -> "Transaction":
        values = _decode(record, _TRANSACTION_SPEC)
        values.setdefault("transaction_type", TransactionType.EXPENSE)
        values.setdefault("amount", 0.0)
        values.setdefault("description", "")
        values.setdefault("category_id", "")
        values.setdefault("date", datetime.fromtimestamp(0))
        values["amount"] = float(values["amount"])
        values["value_history"] = [float(item) for item in values.get("value_history", [])]
        return cls(transaction_id=transaction_id, **values)


_TRANSACTION_SPEC: FieldSpec = (
    ("transaction_type", "type", TransactionType),
    ("amount", "amount", None),
    ("description", "description", None),
    ("category_id", "categoryId", None),
    ("account_id", "accountId", None),
    ("card_id", "cardId", None),
    ("date", "date", _DATE),
    ("due_date", "dueDate", _DATE),
    ("is_paid", "isPaid", None),
    ("expense_type", "expenseType", ExpenseType),
    ("is_recurring", "isRecurring", None),
    ("recurrence_day", "recurrenceDay", None),
    ("recurrence_type", "recurrenceType", None),
    ("installments", "installments", None),
    ("current_installment", "currentInstallment", None),
    ("installment_id", "installmentId", None),
    ("purchase_date", "purchaseDate", _DATE),
    ("first_due_date", "firstDueDate", _DATE),
    ("down_payment_amount", "downPaymentAmount", None),
    ("assigned_to", "assignedTo", None),
    ("value_history", "valueHistory", None),
    ("notes", "notes", None),
    ("to_account_id", "toAccountId", None),
    ("created_at", "createdAt", _DATE),
)


def _parse_datetime(value: object) -> datetime:
    parsed = from_epoch_ms(value)
    if parsed is None:
        raise ValueError("Dates must be epoch milliseconds, ISO strings or datetimes.")
    return parsed


def _optional(coercer: Callable[[object], T]) -> Callable[[object], Optional[T]]:
    def _wrapped(value: object) -> Optional[T]:
        if value is None or value == "":
            return None
        return coercer(value)

    return _wrapped


_TRANSACTION_COERCERS: Dict[str, Callable[[object], object]] = {
    "transaction_id": str,
    "transaction_type": TransactionType.from_str,
    "amount": float,
    "description": str,
    "category_id": str,
    "date": _parse_datetime,
    "account_id": lambda value: "" if value is None else str(value),
    "card_id": _optional(str),
    "due_date": _optional(_parse_datetime),
    "is_paid": bool,
    "expense_type": _optional(ExpenseType.from_str),
    "is_recurring": bool,
    "recurrence_day": _optional(int),
    "recurrence_type": _optional(str),
    "installments": _optional(int),
    "current_installment": _optional(int),
    "installment_id": _optional(str),
    "purchase_date": _optional(_parse_datetime),
    "first_due_date": _optional(_parse_datetime),
    "down_payment_amount": _optional(float),
    "assigned_to": _optional(str),
    "value_history": lambda value: [float(item) for item in value],
    "notes": _optional(str),
    "to_account_id": _optional(str),
    "created_at": _optional(_parse_datetime),
}


def coerce_transaction_fields(payload: Dict[str, object]) -> Dict[str, object]:
    """Validate and coerce snake_case transaction fields from a payload."""

    coerced: Dict[str, object] = {}
    for key, value in payload.items():
        coercer = _TRANSACTION_COERCERS.get(key)
        if coercer is None:
            raise ValidationError(f"Override of field '{key}' is not supported.")
        if value is None and key in {"amount", "transaction_type", "date", "category_id"}:
            coerced[key] = None
            continue
        try:
            coerced[key] = coercer(value)
        except (TypeError, ValueError) as error:
            raise ValidationError(f"Invalid value for '{key}': {value!r}") from error
    return coerced


@dataclass(slots=True)
class Contribution:
    """Signed movement into (positive) or out of (negative) a goal."""

    contribution_id: str
    amount: float
    date: datetime
    note: Optional[str] = None

    def to_record(self) -> Dict[str, object]:
        return _encode(self, _CONTRIBUTION_SPEC)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Contribution":
        values = _decode(record, _CONTRIBUTION_SPEC)
        values.setdefault("contribution_id", "")
        values.setdefault("amount", 0.0)
        values.setdefault("date", datetime.fromtimestamp(0))
        return cls(**values)


_CONTRIBUTION_SPEC: FieldSpec = (
    ("contribution_id", "id", None),
    ("amount", "amount", None),
    ("date", "date", _DATE),
    ("note", "note", None),
)


@dataclass(slots=True)
class Goal:
    """Savings target funded through goal transfers."""

    goal_id: str
    name: str
    target_amount: float
    current_amount: float = 0.0
    category: GoalCategory = GoalCategory.OTHER
    status: GoalStatus = GoalStatus.ACTIVE
    contributions: List[Contribution] = field(default_factory=list)
    deadline: Optional[datetime] = None
    description: Optional[str] = None
    is_emergency_fund: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def progress(self) -> float:
        """Completion percentage, uncapped; zero-target goals report 0."""

        if self.target_amount <= 0:
            return 0.0
        return self.current_amount / self.target_amount * 100

    @property
    def remaining(self) -> float:
        return max(0.0, self.target_amount - self.current_amount)

    def looks_like_emergency_fund(self) -> bool:
        """Emergency reserves are flagged, categorised, or named as such."""

        if self.is_emergency_fund or self.category is GoalCategory.EMERGENCY:
            return True
        lowered = self.name.lower()
        return any(marker in lowered for marker in ("emergência", "emergencia", "emergency", "reserva", "reserve"))

    def to_record(self) -> Dict[str, object]:
        record = _encode(self, _GOAL_SPEC)
        record["contributions"] = [contribution.to_record() for contribution in self.contributions]
        return record

    @classmethod
    def from_record(cls, goal_id: str, record: Dict[str, Any]) -> "Goal":
        values = _decode(record, _GOAL_SPEC)
        values.setdefault("name", "")
        values.setdefault("target_amount", 0.0)
        raw_contributions = record.get("contributions") or []
        # Sparse stores may hand back contributions keyed by id.
        if isinstance(raw_contributions, dict):
            raw_contributions = list(raw_contributions.values())
        values["contributions"] = [Contribution.from_record(item) for item in raw_contributions]
        return cls(goal_id=goal_id, **values)


_GOAL_SPEC: FieldSpec = (
    ("name", "name", None),
    ("target_amount", "targetAmount", None),
    ("current_amount", "currentAmount", None),
    ("category", "category", GoalCategory),
    ("status", "status", GoalStatus),
    ("deadline", "deadline", _DATE),
    ("description", "description", None),
    ("is_emergency_fund", "isEmergencyFund", None),
    ("created_at", "createdAt", _DATE),
    ("updated_at", "updatedAt", _DATE),
)



def _export_value(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_export_value(item) for item in value]
    if hasattr(value, "__dataclass_fields__"):
        return export_dataclass(value)
    return value


def export_dataclass(instance: object) -> Dict[str, object]:
    """Serialisable snake_case view of a ledger dataclass (ISO dates)."""

    exported = {item.name: _export_value(getattr(instance, item.name)) for item in fields(instance)}
    if isinstance(instance, Goal):
        exported["progress"] = instance.progress
        exported["remaining"] = instance.remaining
    return exported
