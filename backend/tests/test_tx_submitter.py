"""
Transaction Submitter Tests
===========================

Which submitter a deployment gets, and what the relayer path reports:
- Simulated hashes only when SIMULATION_MODE is on
- Live mode without a relayer fails every write
- Relayer bodies that are not transactions come back as success=False

Run: python -m pytest tests/test_tx_submitter.py -v --tb=short
"""

import httpx
import pytest
from unittest.mock import MagicMock, patch

from config import settings
from data_sources.movement_rpc import MovementRPCClient
from integrations.tx_submitter import (
    RelayerSubmitter,
    SimulatedSubmitter,
    UnconfiguredSubmitter,
    get_submitter,
)
from protocols.errors import TransactionFailedError
from protocols.models import CallDescriptor
from protocols.router import ProtocolRouter


USER = "0x" + "22" * 32
TX_HASH = "0x" + "ab" * 32
RELAYER_URL = "https://relayer.test"
RPC_URL = "https://rpc.test/v1"

CALL = CallDescriptor(
    function="0x1::lending::supply",
    arguments=("1000000",),
)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def fresh_submitter():
    """get_submitter() caches; start every test from an empty slot"""
    with patch("integrations.tx_submitter._submitter", None):
        yield


def relayer(committed):
    """Relayer that accepts the call, fullnode that answers wait_by_hash with `committed`"""
    def relay(request):
        return httpx.Response(200, json={"hash": TX_HASH})

    def fullnode(request):
        assert request.url.path.endswith(f"/transactions/wait_by_hash/{TX_HASH}")
        return httpx.Response(200, json=committed)

    rpc = MovementRPCClient(base_url=RPC_URL, client=mock_client(fullnode))
    return RelayerSubmitter(rpc=rpc, base_url=RELAYER_URL, client=mock_client(relay))


# =============================================================================
# TEST: SELECTION
# =============================================================================

class TestGetSubmitter:
    """Mode selection from SIMULATION_MODE / TX_RELAYER_URL"""

    def test_simulation_mode(self, fresh_submitter):
        with patch.object(settings, "SIMULATION_MODE", True), patch.object(settings, "TX_RELAYER_URL", ""):
            assert isinstance(get_submitter(), SimulatedSubmitter)

    def test_missing_relayer_is_not_simulated(self, fresh_submitter):
        with patch.object(settings, "SIMULATION_MODE", False), patch.object(settings, "TX_RELAYER_URL", ""):
            submitter = get_submitter()

        assert isinstance(submitter, UnconfiguredSubmitter), \
            f"❌ Live mode without a relayer got {type(submitter).__name__}"
        assert not isinstance(submitter, SimulatedSubmitter)

    def test_relayer_configured(self, fresh_submitter):
        with patch.object(settings, "SIMULATION_MODE", False), \
                patch.object(settings, "TX_RELAYER_URL", RELAYER_URL):
            assert isinstance(get_submitter(), RelayerSubmitter)

    def test_cached(self, fresh_submitter):
        with patch.object(settings, "SIMULATION_MODE", True):
            assert get_submitter() is get_submitter()


# =============================================================================
# TEST: UNCONFIGURED
# =============================================================================

class TestUnconfiguredSubmitter:

    @pytest.mark.asyncio
    async def test_submit_fails(self):
        result = await UnconfiguredSubmitter().submit(CALL, USER)

        assert result.success is False
        assert result.hash is None
        assert result.error == "transaction relayer not configured"

    @pytest.mark.asyncio
    async def test_deposit_raises(self, fresh_submitter):
        """A misconfigured deployment must not report a deposit that never happened"""
        with patch.object(settings, "SIMULATION_MODE", False), patch.object(settings, "TX_RELAYER_URL", ""):
            router = ProtocolRouter(submitter=get_submitter(), rpc=MagicMock(), canopy=MagicMock())

        with pytest.raises(TransactionFailedError) as exc:
            await router.deposit("echelon", "USDC", "1000000", USER)

        assert exc.value.step == "deposit"
        assert "relayer not configured" in exc.value.reason
        assert exc.value.tx_hash is None


# =============================================================================
# TEST: RELAYER
# =============================================================================

class TestRelayerSubmitter:

    @pytest.mark.asyncio
    async def test_committed(self):
        result = await relayer({"success": True, "vm_status": "Executed successfully"}).submit(CALL, USER)

        assert result.success is True
        assert result.hash == TX_HASH
        assert result.vm_status == "Executed successfully"

    @pytest.mark.asyncio
    async def test_aborted_on_chain(self):
        result = await relayer({"success": False, "vm_status": "Move abort: EINSUFFICIENT_BALANCE"}).submit(CALL, USER)

        assert result.success is False
        assert result.hash == TX_HASH
        assert "EINSUFFICIENT_BALANCE" in result.error

    @pytest.mark.asyncio
    async def test_confirmation_not_a_transaction(self):
        """wait_by_hash answering with a list is a failure, not an exception"""
        result = await relayer([]).submit(CALL, USER)

        assert result.success is False, "❌ Malformed confirmation reported as success"
        assert result.hash == TX_HASH
        assert "malformed" in result.error

    @pytest.mark.asyncio
    async def test_relayer_without_hash(self):
        def relay(request):
            return httpx.Response(200, json={"error": "sequence number too old"})

        submitter = RelayerSubmitter(rpc=MagicMock(), base_url=RELAYER_URL, client=mock_client(relay))
        result = await submitter.submit(CALL, USER)

        assert result.success is False
        assert result.error == "sequence number too old"
