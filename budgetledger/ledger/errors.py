"""Mini README: Exception taxonomy for ledger operations.

Structure:
    * LedgerError - common base so surfaces can catch every domain failure.
    * ValidationError - a command is missing required fields; raised before
      anything is written.
    * NotFoundError - an account, goal, card or transaction record is absent.
    * InsufficientFundsError - a goal transfer or withdrawal exceeds what is
      available; always raised before any write.

Not-found errors derive from ``KeyError`` and the others from ``ValueError``
so callers written against the builtin exceptions keep working.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every ledger domain failure."""


class ValidationError(LedgerError, ValueError):
    """A command payload is missing a required field or holds a bad value."""


class NotFoundError(LedgerError, KeyError):
    """A referenced record does not exist in the store."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages human readable.
        return str(self.args[0]) if self.args else ""


class AccountNotFoundError(NotFoundError):
    """The referenced account record is absent."""


class GoalNotFoundError(NotFoundError):
    """The referenced goal record is absent."""


class TransactionNotFoundError(NotFoundError):
    """The referenced transaction record is absent."""


class CardNotFoundError(NotFoundError):
    """The referenced credit card record is absent."""


class InsufficientFundsError(LedgerError, ValueError):
    """Requested amount exceeds what the source holds."""


class InsufficientBalanceError(InsufficientFundsError):
    """An account does not hold enough to fund a goal transfer."""


class InsufficientReserveError(InsufficientFundsError):
    """A goal does not hold enough to fund a withdrawal."""
