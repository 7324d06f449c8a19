import logging
import random
from contextlib import contextmanager
from threading import Lock
from typing import Callable, Iterator, Optional, Union

from pydantic import ValidationError

from . import balances
from .errors import (
    ConfigInconsistentError,
    DuplicateAccountError,
    ForbiddenError,
    GameDisabledError,
    GameNotFoundError,
    InvalidAmountError,
    InvalidStateTransitionError,
    NotFoundError,
    StoreUnavailableError,
)
from .fees import reconcile, record_fee
from .models import (
    Account,
    FeeReconciliation,
    GameConfig,
    GameConfigPatch,
    LedgerSnapshot,
    PlayRecord,
    PlayResponse,
    PublicGameConfig,
    Role,
    VoteRecord,
    VoteResponse,
    WalletResponse,
    WithdrawalDecision,
    WithdrawRequest,
    WithdrawStatus,
    utcnow,
)
from .outcome import settle_wager, validate_game_config
from .settings import settings
from .store import LedgerStore, create_store

logger = logging.getLogger(__name__)

_system_random = random.SystemRandom()

_TABLE_FIELDS = {"odds", "payout_multipliers"}


def _validate_positive_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be a whole number of credits, got {amount!r}")
    if amount <= 0:
        raise InvalidAmountError("Amount must be greater than zero.")
    return amount


def _normalize_vote_count(count) -> int:
    if count is None:
        return 1
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidAmountError(f"Vote count must be a whole number, got {count!r}")
    return count if count > 0 else 1


def _parse_config_patch(data: dict) -> GameConfigPatch:
    try:
        return GameConfigPatch.model_validate(data)
    except ValidationError as e:
        fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        message = f"Invalid game config patch: {sorted(fields)}"
        if fields & _TABLE_FIELDS:
            raise ConfigInconsistentError(message) from e
        raise InvalidAmountError(message) from e


class LedgerService:
    """
    Every operation that touches balances goes through here.

    Mutations run as one read-validate-compute-write cycle under a single
    write lock: load a snapshot, change it in memory, save it once. Any error
    raised inside the cycle skips the save, so callers never observe a
    half-applied operation.
    """

    def __init__(
        self,
        store: Optional[LedgerStore] = None,
        rng: Optional[Callable[[], float]] = None,
        vote_unit_cost: Optional[int] = None,
        signup_credits: Optional[int] = None,
        lock_timeout: Optional[float] = None,
    ):
        self.store = store or create_store(settings.store_path, seed=settings.seed_demo_data)
        self.rng = rng or _system_random.random
        self.vote_unit_cost = settings.vote_unit_cost if vote_unit_cost is None else vote_unit_cost
        self.signup_credits = settings.signup_credits if signup_credits is None else signup_credits
        self.lock_timeout = settings.lock_timeout_seconds if lock_timeout is None else lock_timeout
        self._write_lock = Lock()

    @contextmanager
    def _transaction(self) -> Iterator[LedgerSnapshot]:
        if not self._write_lock.acquire(timeout=self.lock_timeout):
            logger.error("Timed out waiting for the ledger write lock")
            raise StoreUnavailableError("Ledger is busy, timed out waiting for the write lock")
        try:
            snapshot = self.store.load()
            yield snapshot
            self.store.save(snapshot)
        finally:
            self._write_lock.release()

    def _read(self) -> LedgerSnapshot:
        return self.store.load()

    @staticmethod
    def _get_account(snapshot: LedgerSnapshot, user_id: str) -> Account:
        account = snapshot.accounts.get(user_id)
        if account is None:
            raise NotFoundError(f"Account {user_id} not found")
        return account

    # Accounts

    def open_account(
        self,
        name: str = "Player",
        role: Role = Role.USER,
        initial_balance: Optional[int] = None,
        account_id: Optional[str] = None,
    ) -> Account:
        balance = self.signup_credits if initial_balance is None else initial_balance
        if isinstance(balance, bool) or not isinstance(balance, int) or balance < 0:
            raise InvalidAmountError(f"Initial balance must be a non-negative whole number, got {balance!r}")

        account = Account(name=name, role=Role(role), balance=balance)
        if account_id:
            account.id = account_id

        with self._transaction() as snapshot:
            if account.id in snapshot.accounts:
                raise DuplicateAccountError(f"Account {account.id} already exists")
            snapshot.accounts[account.id] = account

        logger.info(f"Opened {account.role.value} account {account.id} with {balance} credits")
        return account

    def get_account(self, user_id: str) -> Account:
        return self._get_account(self._read(), user_id)

    def require_admin(self, user_id: str) -> Account:
        account = self.get_account(user_id)
        if not account.is_admin:
            raise ForbiddenError(f"Account {user_id} is not an admin")
        return account

    def get_balance(self, user_id: str) -> WalletResponse:
        account = self.get_account(user_id)
        return WalletResponse(user_id=account.id, balance=account.balance)

    def deposit(self, user_id: str, amount: int) -> WalletResponse:
        _validate_positive_amount(amount)
        with self._transaction() as snapshot:
            account = self._get_account(snapshot, user_id)
            new_balance = balances.credit(account, amount)

        logger.info(f"Deposited {amount} credits to {user_id}, balance {new_balance}")
        return WalletResponse(user_id=user_id, balance=new_balance)

    # Wagers

    def play(self, user_id: str, game_id: str) -> PlayResponse:
        """
        Stake a game's cost on one draw from its odds table.

        Every call is a new wager; retrying a successful call plays again.
        """
        with self._transaction() as snapshot:
            config = snapshot.game_configs.get(game_id)
            if config is None:
                raise GameNotFoundError(f"Game {game_id} not found")
            if not config.enabled:
                raise GameDisabledError(f"Game {game_id} is disabled")

            account = self._get_account(snapshot, user_id)
            balances.ensure_funds(account, config.cost)

            outcome = settle_wager(config, self.rng())
            balances.debit(account, outcome.cost)
            if outcome.award > 0:
                balances.credit(account, outcome.award)

            play = PlayRecord(
                user_id=user_id,
                game_id=game_id,
                cost=outcome.cost,
                fee=outcome.fee,
                effective_stake=outcome.effective_stake,
                outcome_index=outcome.outcome_index,
                multiplier=outcome.multiplier,
                award=outcome.award,
                balance_after=account.balance,
            )
            snapshot.plays.append(play)
            record_fee(snapshot, game_id, outcome.fee, play_id=play.id)

        logger.info(
            f"Play {play.id}: user {user_id} game {game_id} cost {play.cost} "
            f"fee {play.fee} multiplier {play.multiplier} award {play.award}"
        )
        return PlayResponse(balance=play.balance_after, play=play)

    def list_plays(self, user_id: Optional[str] = None, game_id: Optional[str] = None) -> list[PlayRecord]:
        return [
            p for p in self._read().plays
            if (user_id is None or p.user_id == user_id) and (game_id is None or p.game_id == game_id)
        ]

    def fee_reconciliation(self, game_id: Optional[str] = None) -> FeeReconciliation:
        return reconcile(self._read(), game_id)

    # Game configuration

    def get_game_config(self, game_id: str) -> PublicGameConfig:
        config = self._read().game_configs.get(game_id)
        if config is None:
            raise GameNotFoundError(f"Game {game_id} not found")
        return config.public()

    def list_public_games(self) -> list[PublicGameConfig]:
        return [config.public() for config in self._read().game_configs.values()]

    def list_game_configs(self) -> list[GameConfig]:
        return list(self._read().game_configs.values())

    def create_game_config(self, config: GameConfig) -> GameConfig:
        validate_game_config(config)
        with self._transaction() as snapshot:
            if config.game_id in snapshot.game_configs:
                raise ConfigInconsistentError(f"Game {config.game_id} already exists")
            snapshot.game_configs[config.game_id] = config

        logger.info(f"Created game config {config.game_id}")
        return config

    def update_game_config(self, game_id: str, patch: Union[GameConfigPatch, dict]) -> GameConfig:
        if isinstance(patch, dict):
            patch = _parse_config_patch(patch)
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)

        with self._transaction() as snapshot:
            current = snapshot.game_configs.get(game_id)
            if current is None:
                raise GameNotFoundError(f"Game {game_id} not found")

            updated = current.model_copy(update=changes, deep=True)
            validate_game_config(updated)
            snapshot.game_configs[game_id] = updated

        logger.info(f"Updated game config {game_id}: {sorted(changes)}")
        return updated

    # Withdrawals

    def request_withdrawal(
        self,
        user_id: str,
        amount: int,
        destination: str = "",
        external_ref: Optional[str] = None,
    ) -> WithdrawRequest:
        """
        File a pending withdrawal. The balance is only checked here, not held:
        credits stay spendable until an admin approves.
        """
        _validate_positive_amount(amount)
        with self._transaction() as snapshot:
            account = self._get_account(snapshot, user_id)
            balances.ensure_funds(account, amount)

            request = WithdrawRequest(
                user_id=user_id,
                amount=amount,
                destination=destination or "",
                external_ref=external_ref,
            )
            snapshot.withdrawals.append(request)

        logger.info(f"Withdrawal {request.id} of {amount} requested by {user_id}")
        return request

    def decide_withdrawal(self, request_id: str, decision: Union[WithdrawalDecision, str]) -> WithdrawRequest:
        try:
            decision = WithdrawalDecision(decision)
        except ValueError:
            raise InvalidStateTransitionError(f"Unknown withdrawal decision {decision!r}")

        with self._transaction() as snapshot:
            request = snapshot.find_withdrawal(request_id)
            if request is None:
                raise NotFoundError(f"Withdrawal request {request_id} not found")
            if not request.can_transition():
                raise InvalidStateTransitionError(
                    f"Cannot {decision.value} withdrawal in {request.status.value} state"
                )

            if decision == WithdrawalDecision.APPROVE:
                account = self._get_account(snapshot, request.user_id)
                balances.debit(account, request.amount)
                request.status = WithdrawStatus.APPROVED
            else:
                request.status = WithdrawStatus.REJECTED
            request.processed_at = utcnow()

        logger.info(f"Withdrawal {request_id} {request.status.value}")
        return request

    def get_withdrawal(self, request_id: str) -> WithdrawRequest:
        request = self._read().find_withdrawal(request_id)
        if request is None:
            raise NotFoundError(f"Withdrawal request {request_id} not found")
        return request

    def list_withdrawals(self, status: Optional[WithdrawStatus] = None) -> list[WithdrawRequest]:
        return [w for w in self._read().withdrawals if status is None or w.status == status]

    # Voting

    def vote(
        self,
        user_id: str,
        photo_id: str,
        count: Optional[int] = None,
        challenge_id: Optional[str] = None,
    ) -> VoteResponse:
        """
        Buy `count` votes for a photo at the unit price.

        When `challenge_id` is given the photo must be entered in that challenge.
        """
        count = _normalize_vote_count(count)
        with self._transaction() as snapshot:
            photo = snapshot.photos.get(photo_id)
            if photo is None or (challenge_id is not None and photo.challenge_id != challenge_id):
                raise NotFoundError(f"Photo {photo_id} not found")
            account = self._get_account(snapshot, user_id)

            total_cost = count * self.vote_unit_cost
            balances.debit(account, total_cost)
            photo.votes += count

            vote = VoteRecord(
                user_id=user_id,
                photo_id=photo_id,
                count=count,
                unit_cost=self.vote_unit_cost,
                total_cost=total_cost,
            )
            snapshot.votes.append(vote)

        logger.info(f"User {user_id} bought {count} votes for photo {photo_id} ({total_cost} credits)")
        return VoteResponse(balance=account.balance, votes=photo.votes, vote=vote)
