"""
Wager settlement from a game's odds table.

A game pairs `odds[i]` with `payout_multipliers[i]`. One uniform sample in
[0, 1) walks the running sum of the odds; the first index whose running sum
reaches the sample wins. When the odds add up to less than 1 the remainder is
the house edge: a sample past the total fires nothing and pays a multiplier
of 0.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from .errors import ConfigInconsistentError, InvalidAmountError
from .fees import compute_fee
from .models import GameConfig

ODDS_TOLERANCE = 1e-9


@dataclass(frozen=True)
class WagerOutcome:
    cost: int
    fee: int
    effective_stake: int
    outcome_index: Optional[int]
    multiplier: float
    award: int

    @property
    def balance_change(self) -> int:
        return self.award - self.cost


def validate_game_config(config: GameConfig) -> None:
    if isinstance(config.cost, bool) or config.cost < 0:
        raise InvalidAmountError(f"Game {config.game_id}: cost must be >= 0, got {config.cost}")
    if not 0 <= config.fee_percent <= 100:
        raise InvalidAmountError(
            f"Game {config.game_id}: fee_percent must be within 0-100, got {config.fee_percent}"
        )

    if len(config.odds) != len(config.payout_multipliers):
        raise ConfigInconsistentError(
            f"Game {config.game_id}: {len(config.odds)} odds but "
            f"{len(config.payout_multipliers)} payout multipliers"
        )
    if any(p < 0 or p > 1 for p in config.odds):
        raise ConfigInconsistentError(f"Game {config.game_id}: every odd must be within 0-1")
    if sum(config.odds) > 1 + ODDS_TOLERANCE:
        raise ConfigInconsistentError(
            f"Game {config.game_id}: odds sum to {sum(config.odds):.6f}, more than 1"
        )
    if any(m < 0 for m in config.payout_multipliers):
        raise ConfigInconsistentError(f"Game {config.game_id}: payout multipliers must be >= 0")


def choose_outcome(odds: Sequence[float], multipliers: Sequence[float], sample: float) -> tuple[Optional[int], float]:
    cumulative = 0.0
    for index, probability in enumerate(odds):
        cumulative += probability
        if sample <= cumulative:
            return index, multipliers[index]
    return None, 0


def settle_wager(config: GameConfig, sample: float) -> WagerOutcome:
    cost = config.cost
    fee = compute_fee(cost, config.fee_percent)
    effective_stake = cost - fee

    index, multiplier = choose_outcome(config.odds, config.payout_multipliers, sample)
    award = math.floor(effective_stake * multiplier)

    return WagerOutcome(
        cost=cost,
        fee=fee,
        effective_stake=effective_stake,
        outcome_index=index,
        multiplier=multiplier,
        award=award,
    )
