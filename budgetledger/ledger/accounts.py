"""Mini README: Account and credit-card registry.

Structure:
    * DEFAULT_ACCOUNT_NAME - name of the wallet seeded for new users.
    * AccountManager - create, update, (de)activate and delete accounts and
      register the credit cards consulted by billing-cycle shifting.

An account's ``current_balance`` starts equal to its initial balance and is
afterwards moved only by the balance engine. Editing the initial balance
therefore triggers a replay of that account so the cached figure stays in
step with the ledger.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..logging_utils import get_logger
from .balances import BalanceEngine
from .errors import AccountNotFoundError, CardNotFoundError, ValidationError
from .models import Account, AccountType, CreditCard
from .store import LedgerStore

LOGGER = get_logger(__name__)

DEFAULT_ACCOUNT_NAME = "Wallet"

_ACCOUNT_FIELDS = {"name", "account_type", "initial_balance", "is_active", "include_in_total", "color", "icon"}
_CARD_FIELDS = {"card_brand", "nickname", "closing_day", "due_day", "credit_limit", "is_active"}


def _validate_day(label: str, value: object) -> int:
    try:
        day = int(value)
    except (TypeError, ValueError) as error:
        raise ValidationError(f"{label} must be a day of month: {value!r}") from error
    if not 1 <= day <= 31:
        raise ValidationError(f"{label} must be between 1 and 31, got {day}")
    return day


class AccountManager:
    """Lifecycle operations for accounts and credit cards."""

    def __init__(
        self,
        store: LedgerStore,
        balances: Optional[BalanceEngine] = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.clock = clock
        self.balances = balances or BalanceEngine(store, clock=clock)

    # Accounts -----------------------------------------------------------

    def list_accounts(self, user_id: str, *, active_only: bool = False) -> List[Account]:
        accounts = self.store.list_accounts(user_id)
        if active_only:
            accounts = [account for account in accounts if account.is_active]
        return sorted(accounts, key=lambda account: (account.created_at or datetime.min, account.account_id))

    def get_account(self, user_id: str, account_id: str) -> Account:
        account = self.store.get_account(user_id, account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account

    def total_balance(self, user_id: str) -> float:
        """Sum of active accounts flagged for inclusion in the total."""

        return sum(
            account.current_balance
            for account in self.store.list_accounts(user_id)
            if account.is_active and account.include_in_total
        )

    def create_account(
        self,
        user_id: str,
        name: str,
        account_type: object = AccountType.CHECKING,
        initial_balance: float = 0.0,
        *,
        include_in_total: bool = True,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Account:
        if not name or not str(name).strip():
            raise ValidationError("Account name is required")
        try:
            resolved_type = AccountType.from_str(account_type)
        except ValueError as error:
            raise ValidationError(str(error)) from error
        account = Account(
            account_id="",
            name=str(name).strip(),
            account_type=resolved_type,
            initial_balance=float(initial_balance),
            current_balance=float(initial_balance),
            include_in_total=include_in_total,
            color=color,
            icon=icon,
            created_at=self.clock(),
        )
        self.store.save_account(user_id, account)
        LOGGER.info("Created account %s (%s) for user %s", account.account_id, account.name, user_id)
        return account

    def seed_default_account(self, user_id: str) -> Account:
        """Give a new user a cash wallet so entries have somewhere to land.

        Returns the existing first account when the user already has one.
        """

        existing = self.list_accounts(user_id)
        if existing:
            return existing[0]
        return self.create_account(user_id, DEFAULT_ACCOUNT_NAME, AccountType.CASH, 0.0)

    def update_account(self, user_id: str, account_id: str, changes: Dict[str, object]) -> Account:
        account = self.get_account(user_id, account_id)
        unknown = set(changes) - _ACCOUNT_FIELDS
        if unknown:
            raise ValidationError(f"Unsupported account fields: {', '.join(sorted(unknown))}")
        previous_initial = account.initial_balance
        for key, value in changes.items():
            if value is None:
                continue
            if key == "account_type":
                value = AccountType.from_str(value)
            elif key == "initial_balance":
                value = float(value)
            setattr(account, key, value)
        self.store.save_account(user_id, account)
        if account.initial_balance != previous_initial:
            account = self.balances.recalculate_balance(user_id, account_id)
        LOGGER.info("Updated account %s fields=%s", account_id, sorted(changes))
        return account

    def set_active(self, user_id: str, account_id: str, active: bool) -> Account:
        account = self.get_account(user_id, account_id)
        account.is_active = active
        self.store.save_account(user_id, account)
        LOGGER.info("Account %s %s", account_id, "activated" if active else "deactivated")
        return account

    def activate(self, user_id: str, account_id: str) -> Account:
        return self.set_active(user_id, account_id, True)

    def deactivate(self, user_id: str, account_id: str) -> Account:
        return self.set_active(user_id, account_id, False)

    def delete_account(self, user_id: str, account_id: str) -> None:
        """Remove an account; its transactions stay and later adjustments are skipped."""

        self.get_account(user_id, account_id)
        self.store.delete_account(user_id, account_id)
        LOGGER.info("Deleted account %s for user %s", account_id, user_id)

    # Credit cards -------------------------------------------------------

    def list_cards(self, user_id: str) -> List[CreditCard]:
        return sorted(self.store.list_cards(user_id), key=lambda card: card.card_id)

    def get_card(self, user_id: str, card_id: str) -> CreditCard:
        card = self.store.get_card(user_id, card_id)
        if card is None:
            raise CardNotFoundError(f"Card {card_id} not found")
        return card

    def register_card(
        self,
        user_id: str,
        card_brand: str,
        closing_day: int,
        due_day: int,
        *,
        credit_limit: float = 0.0,
        nickname: Optional[str] = None,
    ) -> CreditCard:
        card = CreditCard(
            card_id="",
            card_brand=card_brand,
            closing_day=_validate_day("Closing day", closing_day),
            due_day=_validate_day("Due day", due_day),
            credit_limit=float(credit_limit),
            nickname=nickname,
        )
        self.store.save_card(user_id, card)
        LOGGER.info("Registered card %s closing on day %s", card.card_id, card.closing_day)
        return card

    def update_card(self, user_id: str, card_id: str, changes: Dict[str, object]) -> CreditCard:
        card = self.get_card(user_id, card_id)
        unknown = set(changes) - _CARD_FIELDS
        if unknown:
            raise ValidationError(f"Unsupported card fields: {', '.join(sorted(unknown))}")
        for key, value in changes.items():
            if value is None:
                continue
            if key in ("closing_day", "due_day"):
                value = _validate_day(key.replace("_", " ").capitalize(), value)
            setattr(card, key, value)
        self.store.save_card(user_id, card)
        LOGGER.info("Updated card %s fields=%s", card_id, sorted(changes))
        return card
