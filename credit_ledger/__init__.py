"""
Virtual Credit Ledger

This module provides:
- Atomic balance mutation for user accounts
- Wager settlement from configurable odds and payout tables
- Proportional platform fees with an append-only fee trail
- Withdrawal approval lifecycle: pending → approved / rejected
- Paid photo votes with an append-only vote trail
"""

from .errors import (
    LedgerServiceError,
    NotFoundError,
    GameNotFoundError,
    ForbiddenError,
    InvalidAmountError,
    InsufficientFundsError,
    GameDisabledError,
    InvalidStateTransitionError,
    ConfigInconsistentError,
    DuplicateAccountError,
    StoreUnavailableError,
)
from .models import (
    Role,
    WithdrawStatus,
    WithdrawalDecision,
    Account,
    GameConfig,
    GameConfigPatch,
    PublicGameConfig,
    PlayRecord,
    FeeRecord,
    WithdrawRequest,
    Photo,
    VoteRecord,
    LedgerSnapshot,
)
from .service import LedgerService
from .store import LedgerStore, InMemoryStore, JsonFileStore

__all__ = [
    "LedgerServiceError",
    "NotFoundError",
    "GameNotFoundError",
    "ForbiddenError",
    "InvalidAmountError",
    "InsufficientFundsError",
    "GameDisabledError",
    "InvalidStateTransitionError",
    "ConfigInconsistentError",
    "DuplicateAccountError",
    "StoreUnavailableError",
    "Role",
    "WithdrawStatus",
    "WithdrawalDecision",
    "Account",
    "GameConfig",
    "GameConfigPatch",
    "PublicGameConfig",
    "PlayRecord",
    "FeeRecord",
    "WithdrawRequest",
    "Photo",
    "VoteRecord",
    "LedgerSnapshot",
    "LedgerService",
    "LedgerStore",
    "InMemoryStore",
    "JsonFileStore",
]
