import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Optional, Union

from pydantic import ValidationError

from .errors import StoreUnavailableError
from .models import Account, GameConfig, LedgerSnapshot, Photo, Role

logger = logging.getLogger(__name__)

ADMIN_ID = "admin"
DEMO_USER_ID = "550e8400-e29b-41d4-a716-446655440000"
DEMO_CHALLENGE_ID = "challenge-1"
DEMO_PHOTO_ID = "660e8400-e29b-41d4-a716-446655440001"


class LedgerStore(ABC):
    """Durable home of the ledger. Reads and writes the whole snapshot at once."""

    @abstractmethod
    def load(self) -> LedgerSnapshot:
        """Return a private copy of the current state."""
        pass

    @abstractmethod
    def save(self, snapshot: LedgerSnapshot) -> None:
        """Replace the stored state with `snapshot`."""
        pass


def demo_snapshot() -> LedgerSnapshot:
    snapshot = LedgerSnapshot()

    snapshot.accounts[ADMIN_ID] = Account(id=ADMIN_ID, name="Administrator", role=Role.ADMIN, balance=0)
    snapshot.accounts[DEMO_USER_ID] = Account(id=DEMO_USER_ID, name="Demo User", balance=1000)

    snapshot.game_configs["game-1"] = GameConfig(
        game_id="game-1", title="Lucky Wheel", cost=100, fee_percent=5,
        odds=[0.1, 0.2, 0.3], payout_multipliers=[5, 2, 1]
    )
    snapshot.game_configs["game-2"] = GameConfig(
        game_id="game-2", title="Coin Flip", cost=20, fee_percent=5,
        odds=[0.5], payout_multipliers=[2], enabled=False
    )

    snapshot.photos[DEMO_PHOTO_ID] = Photo(
        id=DEMO_PHOTO_ID, challenge_id=DEMO_CHALLENGE_ID,
        owner_id=DEMO_USER_ID, title="Demo Photo"
    )
    return snapshot


class InMemoryStore(LedgerStore):
    def __init__(self, snapshot: Optional[LedgerSnapshot] = None, seed: bool = False):
        if snapshot is None:
            snapshot = demo_snapshot() if seed else LedgerSnapshot()
        self._snapshot = snapshot.model_copy(deep=True)
        self._lock = Lock()

    def load(self) -> LedgerSnapshot:
        with self._lock:
            return self._snapshot.model_copy(deep=True)

    def save(self, snapshot: LedgerSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot.model_copy(deep=True)


class JsonFileStore(LedgerStore):
    """
    Keeps the ledger as one JSON document on disk.

    Saves go to a temporary file in the same directory and are then renamed
    over the original, so a crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: Union[str, Path], seed: bool = False):
        self.path = Path(path)
        self._lock = Lock()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot create store directory {self.path.parent}: {e}") from e
        if seed and not self.path.exists():
            self.save(demo_snapshot())

    def load(self) -> LedgerSnapshot:
        with self._lock:
            if not self.path.exists():
                return LedgerSnapshot()
            try:
                return LedgerSnapshot.model_validate_json(self.path.read_text(encoding="utf-8"))
            except OSError as e:
                logger.error(f"Failed to read ledger store {self.path}: {e}")
                raise StoreUnavailableError(f"Cannot read ledger store: {e}") from e
            except (ValidationError, UnicodeDecodeError) as e:
                logger.error(f"Ledger store {self.path} is corrupt: {e}")
                raise StoreUnavailableError(f"Ledger store is corrupt: {self.path}") from e

    def save(self, snapshot: LedgerSnapshot) -> None:
        payload = snapshot.model_dump_json(indent=2)
        with self._lock:
            tmp_name = None
            try:
                fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".ledger-", suffix=".json")
                with os.fdopen(fd, "w", encoding="utf-8") as fp:
                    fp.write(payload)
                os.replace(tmp_name, self.path)
            except OSError as e:
                logger.error(f"Failed to write ledger store {self.path}: {e}")
                if tmp_name and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise StoreUnavailableError(f"Cannot write ledger store: {e}") from e


def create_store(store_path: Optional[str] = None, seed: bool = False) -> LedgerStore:
    if store_path:
        logger.info(f"Using JSON ledger store at {store_path}")
        return JsonFileStore(store_path, seed=seed)
    return InMemoryStore(seed=seed)
