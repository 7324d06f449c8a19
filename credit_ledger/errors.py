class LedgerServiceError(Exception):
    code = "LEDGER_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(LedgerServiceError):
    code = "NOT_FOUND"


class GameNotFoundError(NotFoundError):
    code = "GAME_NOT_FOUND"


class ForbiddenError(LedgerServiceError):
    code = "FORBIDDEN"


class InvalidAmountError(LedgerServiceError):
    code = "INVALID_AMOUNT"


class InsufficientFundsError(LedgerServiceError):
    code = "INSUFFICIENT_FUNDS"


class GameDisabledError(LedgerServiceError):
    code = "GAME_DISABLED"


class InvalidStateTransitionError(LedgerServiceError):
    code = "INVALID_TRANSITION"


class ConfigInconsistentError(LedgerServiceError):
    code = "CONFIG_INCONSISTENT"


class DuplicateAccountError(LedgerServiceError):
    code = "DUPLICATE_ACCOUNT"


class StoreUnavailableError(LedgerServiceError):
    """Raised when the backing store or the write lock cannot be used.

    Kept apart from the business errors above so callers can tell an
    infrastructure failure from a rejected request.
    """

    code = "STORE_UNAVAILABLE"
