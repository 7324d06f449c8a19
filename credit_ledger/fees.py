"""Platform fee computation and the append-only fee trail."""

import math
from typing import Optional

from .models import FeeRecord, FeeReconciliation, LedgerSnapshot


def compute_fee(cost: int, fee_percent: float) -> int:
    """Whole credits withheld from a stake; always rounded down."""
    return math.floor(cost * fee_percent / 100)


def record_fee(snapshot: LedgerSnapshot, game_id: str, fee: int, play_id: Optional[str] = None) -> FeeRecord:
    record = FeeRecord(game_id=game_id, play_id=play_id, fee=fee)
    snapshot.fees.append(record)
    return record


def reconcile(snapshot: LedgerSnapshot, game_id: Optional[str] = None) -> FeeReconciliation:
    fees = [f for f in snapshot.fees if game_id is None or f.game_id == game_id]
    plays = [p for p in snapshot.plays if game_id is None or p.game_id == game_id]

    return FeeReconciliation(
        game_id=game_id,
        fee_records_total=sum(f.fee for f in fees),
        play_fees_total=sum(p.fee for p in plays),
        play_count=len(plays),
    )
