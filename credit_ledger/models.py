from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4
from pydantic import BaseModel, Field, ConfigDict, StrictBool, StrictFloat, StrictInt, computed_field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class WithdrawStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WithdrawalDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class Account(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = "Player"
    role: Role = Role.USER
    balance: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class PublicGameConfig(BaseModel):
    """What players may see of a game: no odds, no fee."""

    game_id: str
    cost: int
    payout_multipliers: list[float]
    enabled: bool


class GameConfig(BaseModel):
    game_id: str
    title: str = ""
    enabled: bool = True
    cost: int = 0
    fee_percent: float = 0
    odds: list[float] = Field(default_factory=list)
    payout_multipliers: list[float] = Field(default_factory=list)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "game_id": "game-1",
            "title": "Lucky Wheel",
            "enabled": True,
            "cost": 100,
            "fee_percent": 10,
            "odds": [0.1, 0.2, 0.7],
            "payout_multipliers": [5, 2, 0]
        }
    })

    def public(self) -> PublicGameConfig:
        return PublicGameConfig(
            game_id=self.game_id,
            cost=self.cost,
            payout_multipliers=list(self.payout_multipliers),
            enabled=self.enabled,
        )


class GameConfigPatch(BaseModel):
    title: Optional[str] = None
    enabled: Optional[StrictBool] = None
    cost: Optional[StrictInt] = None
    fee_percent: Optional[StrictFloat] = None
    odds: Optional[list[StrictFloat]] = None
    payout_multipliers: Optional[list[StrictFloat]] = None


class PlayRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    game_id: str
    cost: int
    fee: int
    effective_stake: int
    outcome_index: Optional[int] = None
    multiplier: float
    award: int
    balance_after: int
    created_at: datetime = Field(default_factory=utcnow)


class FeeRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    game_id: str
    play_id: Optional[str] = None
    fee: int
    collected_at: datetime = Field(default_factory=utcnow)


class WithdrawRequest(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    amount: int
    destination: str = ""
    external_ref: Optional[str] = None
    status: WithdrawStatus = WithdrawStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    processed_at: Optional[datetime] = None

    def can_transition(self) -> bool:
        return self.status == WithdrawStatus.PENDING


class Photo(BaseModel):
    id: str = Field(default_factory=new_id)
    challenge_id: str
    owner_id: Optional[str] = None
    title: str = ""
    votes: int = 0


class VoteRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    photo_id: str
    count: int
    unit_cost: int
    total_cost: int
    created_at: datetime = Field(default_factory=utcnow)


class LedgerSnapshot(BaseModel):
    """Everything the ledger persists, read and written as one document."""

    accounts: dict[str, Account] = Field(default_factory=dict)
    game_configs: dict[str, GameConfig] = Field(default_factory=dict)
    photos: dict[str, Photo] = Field(default_factory=dict)
    plays: list[PlayRecord] = Field(default_factory=list)
    fees: list[FeeRecord] = Field(default_factory=list)
    withdrawals: list[WithdrawRequest] = Field(default_factory=list)
    votes: list[VoteRecord] = Field(default_factory=list)

    def find_withdrawal(self, request_id: str) -> Optional[WithdrawRequest]:
        for request in self.withdrawals:
            if request.id == request_id:
                return request
        return None


class OpenAccountRequest(BaseModel):
    name: str = "Player"
    initial_balance: Optional[StrictInt] = None
    account_id: Optional[str] = None


class DepositRequest(BaseModel):
    amount: StrictInt = Field(..., description="Credits to add, must be positive")


class CreateWithdrawalRequest(BaseModel):
    amount: StrictInt = Field(..., description="Credits to withdraw, must be positive")
    destination: str = Field(default="", description="Payout address or handle")
    external_ref: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"amount": 50, "destination": "player@upi", "external_ref": None}
    })


class PlayRequest(BaseModel):
    game_id: str


class VoteRequest(BaseModel):
    count: Optional[StrictInt] = Field(default=None, description="Votes to buy, defaults to 1")


class WalletResponse(BaseModel):
    user_id: str
    balance: int


class PlayResponse(BaseModel):
    balance: int
    play: PlayRecord


class VoteResponse(BaseModel):
    balance: int
    votes: int
    vote: VoteRecord


class FeeReconciliation(BaseModel):
    game_id: Optional[str] = None
    fee_records_total: int
    play_fees_total: int
    play_count: int

    @computed_field
    @property
    def balanced(self) -> bool:
        return self.fee_records_total == self.play_fees_total
