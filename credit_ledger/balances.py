"""
Account balance arithmetic.

These helpers only touch the in-memory `Account` of the snapshot that the
service is working on. Nothing reaches the store until the service commits
the whole snapshot, so a debit followed by a credit inside one wager is
persisted together or not at all.
"""

from .errors import InsufficientFundsError, InvalidAmountError
from .models import Account


def _check_amount(amount) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be a whole number of credits, got {amount!r}")
    if amount < 0:
        raise InvalidAmountError(f"Amount must not be negative, got {amount}")


def ensure_funds(account: Account, amount: int) -> None:
    if amount > account.balance:
        raise InsufficientFundsError(
            f"Account {account.id} has {account.balance} credits, {amount} required"
        )


def debit(account: Account, amount: int) -> int:
    _check_amount(amount)
    ensure_funds(account, amount)
    account.balance -= amount
    return account.balance


def credit(account: Account, amount: int) -> int:
    _check_amount(amount)
    account.balance += amount
    return account.balance
