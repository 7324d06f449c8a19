import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import (
    ConfigInconsistentError,
    DuplicateAccountError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidStateTransitionError,
    LedgerServiceError,
    NotFoundError,
    StoreUnavailableError,
)
from .models import (
    Account,
    CreateWithdrawalRequest,
    DepositRequest,
    FeeReconciliation,
    GameConfig,
    GameConfigPatch,
    OpenAccountRequest,
    PlayRequest,
    PlayResponse,
    PublicGameConfig,
    VoteRequest,
    VoteResponse,
    WalletResponse,
    WithdrawalDecision,
    WithdrawRequest,
    WithdrawStatus,
)
from .service import LedgerService
from .settings import settings

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

STATUS_BY_ERROR = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (DuplicateAccountError, status.HTTP_409_CONFLICT),
    (ConfigInconsistentError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InsufficientFundsError, status.HTTP_400_BAD_REQUEST),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]

app = FastAPI(
    title="Credit Ledger API",
    description="Virtual credit ledger: wagers, fees, photo votes and withdrawal approvals",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ledger_service = LedgerService()


def get_service() -> LedgerService:
    return ledger_service


def current_user(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    return x_user_id


def current_admin(
    user_id: str = Depends(current_user),
    service: LedgerService = Depends(get_service),
) -> str:
    service.require_admin(user_id)
    return user_id


@app.exception_handler(LedgerServiceError)
async def ledger_error_handler(request: Request, exc: LedgerServiceError) -> JSONResponse:
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break

    if isinstance(exc, StoreUnavailableError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.code} - {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": exc.code, "message": exc.message}},
    )


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "credit-ledger"}


@app.post("/accounts", response_model=Account, status_code=status.HTTP_201_CREATED, tags=["Accounts"])
def open_account(request: OpenAccountRequest, service: LedgerService = Depends(get_service)) -> Account:
    return service.open_account(
        name=request.name,
        initial_balance=request.initial_balance,
        account_id=request.account_id,
    )


@app.get("/wallet", response_model=WalletResponse, tags=["Wallet"])
def get_wallet(user_id: str = Depends(current_user), service: LedgerService = Depends(get_service)) -> WalletResponse:
    return service.get_balance(user_id)


@app.post("/wallet/deposit", response_model=WalletResponse, tags=["Wallet"])
def deposit(
    request: DepositRequest,
    user_id: str = Depends(current_user),
    service: LedgerService = Depends(get_service),
) -> WalletResponse:
    return service.deposit(user_id, request.amount)


@app.post("/wallet/withdraw", response_model=WithdrawRequest, status_code=status.HTTP_201_CREATED, tags=["Wallet"])
def request_withdrawal(
    request: CreateWithdrawalRequest,
    user_id: str = Depends(current_user),
    service: LedgerService = Depends(get_service),
) -> WithdrawRequest:
    return service.request_withdrawal(user_id, request.amount, request.destination, request.external_ref)


@app.get("/admin/withdraws", response_model=list[WithdrawRequest], tags=["Admin"])
def list_withdrawals(
    status_filter: Optional[WithdrawStatus] = Query(default=None, alias="status"),
    admin_id: str = Depends(current_admin),
    service: LedgerService = Depends(get_service),
) -> list[WithdrawRequest]:
    return service.list_withdrawals(status_filter)


@app.post("/admin/withdraws/{request_id}/{action}", response_model=WithdrawRequest, tags=["Admin"])
def decide_withdrawal(
    request_id: str,
    action: WithdrawalDecision,
    admin_id: str = Depends(current_admin),
    service: LedgerService = Depends(get_service),
) -> WithdrawRequest:
    return service.decide_withdrawal(request_id, action)


@app.post("/play", response_model=PlayResponse, tags=["Games"])
def play(
    request: PlayRequest,
    user_id: str = Depends(current_user),
    service: LedgerService = Depends(get_service),
) -> PlayResponse:
    return service.play(user_id, request.game_id)


@app.get("/games", response_model=list[PublicGameConfig], tags=["Games"])
def list_games(service: LedgerService = Depends(get_service)) -> list[PublicGameConfig]:
    return service.list_public_games()


@app.get("/gameconfig/{game_id}", response_model=PublicGameConfig, tags=["Games"])
def get_game_config(game_id: str, service: LedgerService = Depends(get_service)) -> PublicGameConfig:
    return service.get_game_config(game_id)


@app.get("/admin/games", response_model=list[GameConfig], tags=["Admin"])
def list_game_configs(
    admin_id: str = Depends(current_admin),
    service: LedgerService = Depends(get_service),
) -> list[GameConfig]:
    return service.list_game_configs()


@app.post("/admin/games", response_model=GameConfig, status_code=status.HTTP_201_CREATED, tags=["Admin"])
def create_game_config(
    config: GameConfig,
    admin_id: str = Depends(current_admin),
    service: LedgerService = Depends(get_service),
) -> GameConfig:
    return service.create_game_config(config)


@app.put("/admin/games/{game_id}", response_model=GameConfig, tags=["Admin"])
def update_game_config(
    game_id: str,
    patch: GameConfigPatch,
    admin_id: str = Depends(current_admin),
    service: LedgerService = Depends(get_service),
) -> GameConfig:
    return service.update_game_config(game_id, patch)


@app.post("/challenges/{challenge_id}/photos/{photo_id}/vote", response_model=VoteResponse, tags=["Voting"])
def vote(
    challenge_id: str,
    photo_id: str,
    request: Optional[VoteRequest] = None,
    user_id: str = Depends(current_user),
    service: LedgerService = Depends(get_service),
) -> VoteResponse:
    return service.vote(user_id, photo_id, request.count if request else None, challenge_id=challenge_id)


@app.get("/admin/fees/reconciliation", response_model=FeeReconciliation, tags=["Admin"])
def fee_reconciliation(
    game_id: Optional[str] = None,
    admin_id: str = Depends(current_admin),
    service: LedgerService = Depends(get_service),
) -> FeeReconciliation:
    return service.fee_reconciliation(game_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
