"""
HTTP tests for the ledger API

Tests cover:
1. Caller identity and admin gating
2. Play, vote and wallet routes
3. Withdrawal approval routes
4. Error code to status mapping
"""

import pytest
from fastapi.testclient import TestClient

from credit_ledger.api import app, get_service
from credit_ledger.errors import StoreUnavailableError
from credit_ledger.service import LedgerService
from credit_ledger.store import ADMIN_ID, DEMO_CHALLENGE_ID, DEMO_PHOTO_ID, DEMO_USER_ID, InMemoryStore

USER = {"X-User-Id": DEMO_USER_ID}
ADMIN = {"X-User-Id": ADMIN_ID}
VOTE_URL = f"/challenges/{DEMO_CHALLENGE_ID}/photos/{DEMO_PHOTO_ID}/vote"


class UnreadableStore(InMemoryStore):
    def load(self):
        raise StoreUnavailableError("store offline")


@pytest.fixture
def client():
    service = LedgerService(store=InMemoryStore(seed=True), rng=lambda: 0.05)
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestWalletRoutes:
    """Tests for accounts and wallet routes."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_wallet_requires_user_header(self, client):
        assert client.get("/wallet").status_code == 422

    def test_wallet_balance(self, client):
        response = client.get("/wallet", headers=USER)

        assert response.status_code == 200
        assert response.json() == {"user_id": DEMO_USER_ID, "balance": 1000}

    def test_open_account_and_deposit(self, client):
        created = client.post("/accounts", json={"name": "Newbie", "account_id": "newbie"})
        assert created.status_code == 201
        assert created.json()["role"] == "user"

        response = client.post("/wallet/deposit", json={"amount": 40}, headers={"X-User-Id": "newbie"})

        assert response.status_code == 200
        assert response.json()["balance"] == created.json()["balance"] + 40

    def test_deposit_non_positive(self, client):
        response = client.post("/wallet/deposit", json={"amount": 0}, headers=USER)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_AMOUNT"

    def test_deposit_non_numeric(self, client):
        response = client.post("/wallet/deposit", json={"amount": "lots"}, headers=USER)

        assert response.status_code == 422

    @pytest.mark.parametrize("amount", ["40", True, 40.5])
    def test_deposit_amount_must_be_json_integer(self, client, amount):
        """Numeric strings and booleans are not coerced into credits."""
        response = client.post("/wallet/deposit", json={"amount": amount}, headers=USER)

        assert response.status_code == 422
        assert client.get("/wallet", headers=USER).json()["balance"] == 1000


class TestPlayRoutes:
    """Tests for play and game config routes."""

    def test_play(self, client):
        response = client.post("/play", json={"game_id": "game-1"}, headers=USER)

        assert response.status_code == 200
        body = response.json()
        assert body["balance"] == 1375
        assert body["play"]["award"] == 475
        assert body["play"]["fee"] == 5

    def test_play_disabled_game(self, client):
        response = client.post("/play", json={"game_id": "game-2"}, headers=USER)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "GAME_DISABLED"

    def test_play_unknown_game(self, client):
        response = client.post("/play", json={"game_id": "nope"}, headers=USER)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "GAME_NOT_FOUND"

    def test_list_games_hides_odds_and_fee(self, client):
        response = client.get("/games")

        assert response.status_code == 200
        games = response.json()
        assert sorted(g["game_id"] for g in games) == ["game-1", "game-2"]
        for game in games:
            assert "odds" not in game
            assert "fee_percent" not in game

    def test_public_game_config(self, client):
        response = client.get("/gameconfig/game-1")

        assert response.status_code == 200
        assert set(response.json()) == {"game_id", "cost", "payout_multipliers", "enabled"}

    def test_update_config_requires_admin(self, client):
        response = client.put("/admin/games/game-1", json={"cost": 10}, headers=USER)

        assert response.status_code == 403

    def test_admin_updates_config(self, client):
        response = client.put("/admin/games/game-1", json={"cost": 10}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["cost"] == 10
        assert response.json()["odds"] == [0.1, 0.2, 0.3]

    @pytest.mark.parametrize("patch", [{"cost": "7"}, {"enabled": "yes"}, {"cost": True}])
    def test_config_update_rejects_loose_types(self, client, patch):
        response = client.put("/admin/games/game-1", json=patch, headers=ADMIN)

        assert response.status_code == 422
        assert client.get("/gameconfig/game-1").json()["cost"] == 100

    def test_inconsistent_config_update(self, client):
        response = client.put("/admin/games/game-1", json={"payout_multipliers": [1]}, headers=ADMIN)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "CONFIG_INCONSISTENT"

    def test_admin_creates_and_lists_games(self, client):
        created = client.post(
            "/admin/games",
            json={"game_id": "dice", "cost": 10, "odds": [0.5], "payout_multipliers": [2]},
            headers=ADMIN,
        )
        assert created.status_code == 201

        listed = client.get("/admin/games", headers=ADMIN)
        assert "dice" in [g["game_id"] for g in listed.json()]

    def test_fee_reconciliation(self, client):
        client.post("/play", json={"game_id": "game-1"}, headers=USER)

        response = client.get("/admin/fees/reconciliation", params={"game_id": "game-1"}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["fee_records_total"] == 5
        assert response.json()["balanced"] is True


class TestWithdrawalRoutes:
    """Tests for the withdrawal routes."""

    def test_request_and_approve(self, client):
        created = client.post("/wallet/withdraw", json={"amount": 50, "destination": "player@upi"}, headers=USER)
        assert created.status_code == 201
        request_id = created.json()["id"]
        assert created.json()["status"] == "pending"

        approved = client.post(f"/admin/withdraws/{request_id}/approve", headers=ADMIN)
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert client.get("/wallet", headers=USER).json()["balance"] == 950

        again = client.post(f"/admin/withdraws/{request_id}/reject", headers=ADMIN)
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "INVALID_TRANSITION"

    @pytest.mark.parametrize("amount", [True, "50"])
    def test_withdraw_amount_must_be_json_integer(self, client, amount):
        response = client.post("/wallet/withdraw", json={"amount": amount}, headers=USER)

        assert response.status_code == 422
        assert client.get("/admin/withdraws", headers=ADMIN).json() == []

    def test_unknown_action(self, client):
        created = client.post("/wallet/withdraw", json={"amount": 50}, headers=USER)

        response = client.post(f"/admin/withdraws/{created.json()['id']}/cancel", headers=ADMIN)

        assert response.status_code == 422

    def test_list_pending(self, client):
        client.post("/wallet/withdraw", json={"amount": 10}, headers=USER)

        response = client.get("/admin/withdraws", params={"status": "pending"}, headers=ADMIN)

        assert response.status_code == 200
        assert [w["amount"] for w in response.json()] == [10]

    def test_non_admin_cannot_list(self, client):
        assert client.get("/admin/withdraws", headers=USER).status_code == 403


class TestVoteRoutes:
    """Tests for the vote route."""

    def test_vote_with_count(self, client):
        response = client.post(VOTE_URL, json={"count": 2}, headers=USER)

        assert response.status_code == 200
        assert response.json()["votes"] == 2
        assert response.json()["balance"] == 980

    def test_vote_without_body(self, client):
        response = client.post(VOTE_URL, headers=USER)

        assert response.status_code == 200
        assert response.json()["votes"] == 1

    def test_vote_unknown_photo(self, client):
        response = client.post(f"/challenges/{DEMO_CHALLENGE_ID}/photos/missing/vote", json={"count": 1}, headers=USER)

        assert response.status_code == 404

    def test_vote_in_wrong_challenge(self, client):
        """A photo is only votable under the challenge it was entered in."""
        response = client.post(f"/challenges/other-challenge/photos/{DEMO_PHOTO_ID}/vote", headers=USER)

        assert response.status_code == 404
        assert client.get("/wallet", headers=USER).json()["balance"] == 1000

    def test_vote_count_must_be_json_integer(self, client):
        response = client.post(VOTE_URL, json={"count": True}, headers=USER)

        assert response.status_code == 422


def test_store_outage_is_503():
    service = LedgerService(store=UnreadableStore())
    app.dependency_overrides[get_service] = lambda: service
    try:
        response = TestClient(app).get("/gameconfig/game-1")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "STORE_UNAVAILABLE"


def test_serverless_entry_leaves_app_root_path():
    """The Lambda handler strips the /api prefix without touching the shared app."""
    from api.index import handler

    assert handler.app is app
    assert app.root_path == ""
