"""Mini README: Per-user record store used by the ledger engine.

Structure:
    * LedgerStore - abstract adapter over a path-addressable record tree
      (``users/{user_id}/{collection}/{record_id}``) with typed helpers for
      accounts, transactions, credit cards, goals and dismissed insights.
    * InMemoryLedgerStore - dictionary-backed store for tests and demos.
    * JsonFileLedgerStore - persists the record tree to a single JSON file so
      the CLI and the web service can share state.

Records are flat camelCase dictionaries (dates as epoch milliseconds); the
dataclasses in ``models`` convert to and from them. Stores never enforce
ledger invariants; they only read and write what they are given.
"""

from __future__ import annotations

import copy
import json
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..logging_utils import get_logger
from .dates import add_months, to_epoch_ms
from .models import Account, CreditCard, Goal, Transaction

LOGGER = get_logger(__name__)

ACCOUNTS = "accounts"
TRANSACTIONS = "transactions"
CREDIT_CARDS = "creditCards"
GOALS = "goals"
DISMISSED_INSIGHTS = "dismissedInsights"
INSTALLMENT_GROUPS = "installmentGroups"

Record = Dict[str, object]

_ID_PREFIXES = {
    ACCOUNTS: "acc",
    TRANSACTIONS: "txn",
    CREDIT_CARDS: "card",
    GOALS: "goal",
    INSTALLMENT_GROUPS: "inst",
}


class LedgerStore(ABC):
    """Base interface for record stores keyed by user."""

    @abstractmethod
    def read_collection(self, user_id: str, collection: str) -> Dict[str, Record]:
        """Return a copy of every record in a user's collection keyed by id."""

    @abstractmethod
    def read_record(self, user_id: str, collection: str, record_id: str) -> Optional[Record]:
        """Return a copy of one record or ``None`` when absent."""

    @abstractmethod
    def write_records(self, user_id: str, collection: str, records: Dict[str, Record]) -> None:
        """Create or replace several records in one call."""

    @abstractmethod
    def delete_records(self, user_id: str, collection: str, record_ids: Iterable[str]) -> None:
        """Remove records; unknown ids are ignored."""

    @abstractmethod
    def new_id(self, collection: str) -> str:
        """Allocate a fresh, unique record identifier."""

    # Accounts -----------------------------------------------------------

    def get_account(self, user_id: str, account_id: str) -> Optional[Account]:
        record = self.read_record(user_id, ACCOUNTS, account_id)
        return Account.from_record(account_id, record) if record is not None else None

    def list_accounts(self, user_id: str) -> List[Account]:
        return [
            Account.from_record(account_id, record)
            for account_id, record in self.read_collection(user_id, ACCOUNTS).items()
        ]

    def save_account(self, user_id: str, account: Account) -> Account:
        if not account.account_id:
            account.account_id = self.new_id(ACCOUNTS)
        self.write_records(user_id, ACCOUNTS, {account.account_id: account.to_record()})
        return account

    def delete_account(self, user_id: str, account_id: str) -> None:
        self.delete_records(user_id, ACCOUNTS, [account_id])

    # Transactions -------------------------------------------------------

    def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        record = self.read_record(user_id, TRANSACTIONS, transaction_id)
        return Transaction.from_record(transaction_id, record) if record is not None else None

    def list_transactions(
        self,
        user_id: str,
        *,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> List[Transaction]:
        """Return transactions by ledger date descending, optionally for one month.

        ``month`` is 1-based. The month filter is applied only when both
        ``month`` and ``year`` are provided.
        """

        transactions = [
            Transaction.from_record(transaction_id, record)
            for transaction_id, record in self.read_collection(user_id, TRANSACTIONS).items()
        ]
        if month is not None and year is not None:
            start = datetime(year, month, 1)
            end = add_months(start, 1)
            transactions = [item for item in transactions if start <= item.date < end]
        return sorted(
            transactions,
            key=lambda item: (item.date, item.transaction_id),
            reverse=True,
        )

    def save_transactions(self, user_id: str, transactions: Iterable[Transaction]) -> List[Transaction]:
        """Persist a batch of transactions, allocating ids where missing."""

        batch: Dict[str, Record] = {}
        saved: List[Transaction] = []
        for transaction in transactions:
            if not transaction.transaction_id:
                transaction.transaction_id = self.new_id(TRANSACTIONS)
            batch[transaction.transaction_id] = transaction.to_record()
            saved.append(transaction)
        if batch:
            self.write_records(user_id, TRANSACTIONS, batch)
        return saved

    def save_transaction(self, user_id: str, transaction: Transaction) -> Transaction:
        return self.save_transactions(user_id, [transaction])[0]

    def delete_transactions(self, user_id: str, transaction_ids: Iterable[str]) -> None:
        self.delete_records(user_id, TRANSACTIONS, transaction_ids)

    # Credit cards -------------------------------------------------------

    def get_card(self, user_id: str, card_id: str) -> Optional[CreditCard]:
        record = self.read_record(user_id, CREDIT_CARDS, card_id)
        return CreditCard.from_record(card_id, record) if record is not None else None

    def list_cards(self, user_id: str) -> List[CreditCard]:
        return [
            CreditCard.from_record(card_id, record)
            for card_id, record in self.read_collection(user_id, CREDIT_CARDS).items()
        ]

    def save_card(self, user_id: str, card: CreditCard) -> CreditCard:
        if not card.card_id:
            card.card_id = self.new_id(CREDIT_CARDS)
        self.write_records(user_id, CREDIT_CARDS, {card.card_id: card.to_record()})
        return card

    # Goals --------------------------------------------------------------

    def get_goal(self, user_id: str, goal_id: str) -> Optional[Goal]:
        record = self.read_record(user_id, GOALS, goal_id)
        return Goal.from_record(goal_id, record) if record is not None else None

    def list_goals(self, user_id: str) -> List[Goal]:
        goals = [
            Goal.from_record(goal_id, record)
            for goal_id, record in self.read_collection(user_id, GOALS).items()
        ]
        return sorted(goals, key=lambda goal: (goal.created_at or datetime.min, goal.goal_id), reverse=True)

    def save_goal(self, user_id: str, goal: Goal) -> Goal:
        if not goal.goal_id:
            goal.goal_id = self.new_id(GOALS)
        self.write_records(user_id, GOALS, {goal.goal_id: goal.to_record()})
        return goal

    def delete_goal(self, user_id: str, goal_id: str) -> None:
        self.delete_records(user_id, GOALS, [goal_id])

    # Insight markers ----------------------------------------------------

    def dismissed_insight_ids(self, user_id: str) -> List[str]:
        return sorted(self.read_collection(user_id, DISMISSED_INSIGHTS))

    def dismiss_insight(self, user_id: str, insight_id: str, dismissed_at: datetime) -> None:
        self.write_records(
            user_id,
            DISMISSED_INSIGHTS,
            {insight_id: {"dismissedAt": to_epoch_ms(dismissed_at)}},
        )


class InMemoryLedgerStore(LedgerStore):
    """Dictionary-backed record tree; copies on read and write."""

    def __init__(self, tree: Optional[Dict[str, Dict[str, Dict[str, Record]]]] = None) -> None:
        self._users: Dict[str, Dict[str, Dict[str, Record]]] = copy.deepcopy(tree) if tree else {}
        self._sequence = 0
        LOGGER.debug("In-memory ledger store initialised with %s users", len(self._users))

    def _collection(self, user_id: str, collection: str) -> Dict[str, Record]:
        return self._users.setdefault(user_id, {}).setdefault(collection, {})

    def read_collection(self, user_id: str, collection: str) -> Dict[str, Record]:
        return copy.deepcopy(self._users.get(user_id, {}).get(collection, {}))

    def read_record(self, user_id: str, collection: str, record_id: str) -> Optional[Record]:
        record = self._users.get(user_id, {}).get(collection, {}).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def write_records(self, user_id: str, collection: str, records: Dict[str, Record]) -> None:
        target = self._collection(user_id, collection)
        for record_id, record in records.items():
            target[record_id] = copy.deepcopy(record)
        LOGGER.debug("Wrote %s records to users/%s/%s", len(records), user_id, collection)
        self._changed()

    def delete_records(self, user_id: str, collection: str, record_ids: Iterable[str]) -> None:
        target = self._collection(user_id, collection)
        removed = 0
        for record_id in list(record_ids):
            if target.pop(record_id, None) is not None:
                removed += 1
        LOGGER.debug("Removed %s records from users/%s/%s", removed, user_id, collection)
        self._changed()

    def new_id(self, collection: str) -> str:
        self._sequence += 1
        prefix = _ID_PREFIXES.get(collection, "rec")
        return f"{prefix}_{self._sequence:04d}"

    def _changed(self) -> None:
        """Hook invoked after every mutation."""


class JsonFileLedgerStore(InMemoryLedgerStore):
    """Record tree persisted to one JSON document after each mutation."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        document: Dict[str, object] = {}
        if self.path.exists():
            try:
                document = json.loads(self.path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as error:
                raise ValueError(f"Ledger store {self.path} is not valid JSON") from error
        super().__init__(document.get("users") or {})
        self._sequence = int(document.get("sequence", 0))
        LOGGER.info("Loaded ledger store from %s", self.path)

    def _changed(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temporary = self.path.with_suffix(self.path.suffix + ".tmp")
        temporary.write_text(
            json.dumps({"sequence": self._sequence, "users": self._users}, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        os.replace(temporary, self.path)
