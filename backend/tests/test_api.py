"""
API Error Mapping Tests
=======================

Every failure reaches the HTTP caller with a specific status:

- 400  bad amount / zap precondition
- 404  no address registered
- 409  partial zap, response carries the swap hash
- 502  transaction failed
- 503  chain identity or indexer unavailable

Run: python -m pytest tests/test_api.py -v --tb=short
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient

from integrations.tx_submitter import UnconfiguredSubmitter
from main import app
from protocols.errors import (
    ChainUnavailableError,
    PartialZapError,
    ResolutionError,
    SourceUnavailableError,
    TransactionFailedError,
    ZapPreconditionError,
)
from protocols.models import AggregatedSnapshot, TxResult, ZapPlan, ZapResult


SWAP_HASH = "0x" + "ab" * 32


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def mock_aggregator():
    aggregator = MagicMock()
    aggregator.get_snapshot = AsyncMock(return_value=AggregatedSnapshot(
        network={"name": "Movement", "chain_id": 126},
        protocols={"canopy": None, "echelon": None, "meridian": None},
        all_protocols=[],
        prices={},
    ))
    aggregator.get_prices = AsyncMock(return_value={"MOVE": {"usd": 0.5}})
    aggregator.get_user_positions = AsyncMock(return_value=None)
    aggregator.get_canopy_vault = AsyncMock(return_value=None)
    with patch("api.defi_router.get_aggregator", return_value=aggregator):
        yield aggregator


@pytest.fixture
def mock_router():
    router = MagicMock()
    router.deposit = AsyncMock(return_value=TxResult(success=True, hash="0xfeed", step="deposit", protocol="Echelon"))
    router.withdraw = AsyncMock(return_value=TxResult(success=True, hash="0xbeef", step="withdraw", protocol="Echelon"))
    with patch("api.protocol_router.get_protocol_router", return_value=router):
        yield router


@pytest.fixture
def mock_zap():
    plan = ZapPlan("MOVE", "USDC.e", 1_000_000, 498_000, 502_000, 240_000, 238_800)
    service = MagicMock()
    service.zap_in = AsyncMock(return_value=ZapResult(swap_hash=SWAP_HASH, liquidity_hash="0xcd", plan=plan))
    with patch("api.protocol_router.get_zap_service", return_value=service):
        yield service


# =============================================================================
# TEST: READ ENDPOINTS
# =============================================================================

class TestReadEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["network"] == "Movement"

    def test_health_reports_disabled_writes(self, client):
        with patch("main.get_submitter", return_value=UnconfiguredSubmitter()):
            data = client.get("/health").json()

        assert data["writes_enabled"] is False
        assert data["simulation_mode"] is False

    def test_snapshot(self, client, mock_aggregator):
        response = client.get("/api/defi/snapshot", params={"wallet": "0x1"})

        assert response.status_code == 200
        assert response.json()["network"]["chain_id"] == 126
        mock_aggregator.get_snapshot.assert_awaited_once_with("0x1")

    def test_snapshot_chain_down(self, client, mock_aggregator):
        mock_aggregator.get_snapshot.side_effect = ChainUnavailableError("fullnode down")

        response = client.get("/api/defi/snapshot")
        assert response.status_code == 503

    def test_user_positions_indexer_down(self, client, mock_aggregator):
        assert client.get("/api/defi/user/0x1").status_code == 503

    def test_prices(self, client, mock_aggregator):
        data = client.get("/api/prices").json()
        assert data["count"] == 1
        assert data["prices"]["MOVE"]["usd"] == 0.5

    def test_missing_vault(self, client, mock_aggregator):
        assert client.get("/api/canopy/vaults/DOGE").status_code == 404

    def test_echelon_position(self, client, mock_aggregator):
        mock_aggregator.get_echelon_position = AsyncMock(return_value={
            "user": "0x1", "asset": "USDC", "market": "0xmarket", "supplied": "5000000", "borrowed": "0",
        })

        response = client.get("/api/echelon/position/0x1", params={"asset": "USDC"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["supplied"] == "5000000"
        assert data["market"] == "0xmarket"
        mock_aggregator.get_echelon_position.assert_awaited_once_with("0x1", "USDC")

    def test_echelon_position_default_asset(self, client, mock_aggregator):
        mock_aggregator.get_echelon_position = AsyncMock(return_value={
            "user": "0x1", "asset": None, "market": "0xmove", "supplied": "0", "borrowed": "0",
        })

        assert client.get("/api/echelon/position/0x1").status_code == 200
        mock_aggregator.get_echelon_position.assert_awaited_once_with("0x1", None)

    def test_metrics(self, client):
        data = client.get("/api/metrics").json()
        assert "services" in data
        assert "recent_errors" in data


# =============================================================================
# TEST: WRITE ENDPOINTS
# =============================================================================

class TestWriteEndpoints:

    def test_deposit(self, client, mock_router):
        response = client.post("/api/protocol/deposit", json={
            "protocol": "echelon", "asset": "USDC", "amount": "1000000", "user_address": "0x1",
        })

        assert response.status_code == 200
        assert response.json()["hash"] == "0xfeed"
        mock_router.deposit.assert_awaited_once_with("echelon", "USDC", "1000000", "0x1")

    @pytest.mark.parametrize("amount", ["abc", "0", "-5", "1.5"])
    def test_bad_amount(self, client, mock_router, amount):
        response = client.post("/api/protocol/deposit", json={"protocol": "echelon", "asset": "USDC", "amount": amount})

        assert response.status_code == 400
        mock_router.deposit.assert_not_awaited()

    def test_resolution_error(self, client, mock_router):
        mock_router.deposit.side_effect = ResolutionError("moveposition", "USDC")

        response = client.post("/api/protocol/deposit", json={"protocol": "moveposition", "asset": "USDC", "amount": "10"})
        assert response.status_code == 404

    def test_transaction_failed(self, client, mock_router):
        mock_router.withdraw.side_effect = TransactionFailedError("withdraw", "EINSUFFICIENT_BALANCE", tx_hash="0xbad")

        response = client.post("/api/protocol/withdraw", json={"protocol": "echelon", "asset": "USDC", "amount": "10"})

        assert response.status_code == 502
        assert response.json()["detail"]["tx_hash"] == "0xbad"

    def test_upstream_unavailable(self, client, mock_router):
        mock_router.deposit.side_effect = SourceUnavailableError("movement-rpc", "timeout")

        response = client.post("/api/protocol/deposit", json={"protocol": "echelon", "asset": "USDC", "amount": "10"})
        assert response.status_code == 503

    def test_dex_deposit_runs_zap(self, client, mock_router, mock_zap):
        response = client.post("/api/protocol/deposit", json={"protocol": "meridian", "asset": "MOVE", "amount": "1000000"})

        assert response.status_code == 200
        assert response.json()["action"] == "zap_in"
        mock_router.deposit.assert_not_awaited()

    def test_partial_zap(self, client, mock_zap):
        mock_zap.zap_in.side_effect = PartialZapError("E_SLIPPAGE", swap_hash=SWAP_HASH, protocol="Meridian")

        response = client.post("/api/protocol/zap", json={"token_in": "MOVE", "amount": "1000000"})

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["swap_hash"] == SWAP_HASH, "❌ Caller needs the swap hash to recover"
        assert detail["step"] == "add_liquidity"

    def test_zap_too_small(self, client, mock_zap):
        mock_zap.zap_in.side_effect = ZapPreconditionError("Amount too small to zap")

        response = client.post("/api/protocol/zap", json={"token_in": "MOVE", "amount": "1"})

        assert response.status_code == 400
        assert "too small" in response.json()["detail"]

    def test_list(self, client):
        data = client.get("/api/protocol/list").json()
        assert {p["slug"] for p in data["protocols"]} >= {"echelon", "canopy", "meridian"}
