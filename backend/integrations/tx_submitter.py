"""
Transaction Submitter
Hands a built entry-function call to whatever signs and submits it.

The backend never holds keys. In production a signing relayer owns the
server key; RelayerSubmitter posts the call there and then waits for the
fullnode to report the transaction committed. SimulatedSubmitter returns
deterministic fake hashes for local runs (SIMULATION_MODE=true).
With neither, UnconfiguredSubmitter fails every write.
"""

import hashlib
import logging
from typing import Optional

from config import settings
from data_sources.http_source import HTTPSource
from data_sources.movement_rpc import MovementRPCClient
from protocols.errors import SourceUnavailableError
from protocols.models import CallDescriptor, TxResult

logger = logging.getLogger("TxSubmitter")


class TransactionSubmitter:
    """Contract: submit(call, sender) -> TxResult. Implementations never retry."""

    async def submit(self, call: CallDescriptor, sender: str) -> TxResult:
        raise NotImplementedError


class RelayerSubmitter(HTTPSource, TransactionSubmitter):
    SERVICE = "tx-relayer"
    BASE_URL = settings.TX_RELAYER_URL

    def __init__(self, rpc: Optional[MovementRPCClient] = None, **kwargs):
        super().__init__(**kwargs)
        self.rpc = rpc or MovementRPCClient()

    async def submit(self, call: CallDescriptor, sender: str) -> TxResult:
        payload = {
            "sender": sender,
            "payload": {"type": "entry_function_payload", **call.to_payload()},
        }

        try:
            submitted = await self._post_json("/transactions", payload)
        except SourceUnavailableError as e:
            logger.error(f"❌ Relayer rejected {call.function}: {e}")
            return TxResult(success=False, error=e.reason)

        tx_hash = submitted.get("hash") if isinstance(submitted, dict) else None
        if not tx_hash:
            error = submitted.get("error") if isinstance(submitted, dict) else None
            return TxResult(success=False, error=error or "relayer returned no transaction hash")

        logger.info(f"📤 Submitted {call.function}: {tx_hash}")

        try:
            committed = await self.rpc.wait_for_transaction(tx_hash)
        except SourceUnavailableError as e:
            return TxResult(success=False, hash=tx_hash, error=f"confirmation failed: {e.reason}")

        if not isinstance(committed, dict):
            logger.error(f"❌ {tx_hash} confirmation returned {type(committed).__name__}, not a transaction")
            return TxResult(success=False, hash=tx_hash, error="confirmation returned malformed transaction")

        vm_status = committed.get("vm_status")
        if not committed.get("success"):
            logger.error(f"❌ {tx_hash} failed on-chain: {vm_status}")
            return TxResult(success=False, hash=tx_hash, vm_status=vm_status, error=vm_status)

        logger.info(f"✅ {tx_hash} committed ({vm_status})")
        return TxResult(success=True, hash=tx_hash, vm_status=vm_status)


class SimulatedSubmitter(TransactionSubmitter):
    """Deterministic fake hashes; same call + sender + sequence -> same hash"""

    def __init__(self):
        self.sequence = 0

    async def submit(self, call: CallDescriptor, sender: str) -> TxResult:
        self.sequence += 1
        seed = f"{sender}:{call.function}:{call.type_arguments}:{call.arguments}:{self.sequence}"
        tx_hash = "0x" + hashlib.sha256(seed.encode()).hexdigest()
        logger.info(f"🧪 [SIMULATION] {call.function} -> {tx_hash[:18]}...")
        return TxResult(success=True, hash=tx_hash, vm_status="Executed successfully (simulated)")


class UnconfiguredSubmitter(TransactionSubmitter):
    """Live mode without a relayer: every write fails instead of pretending"""

    ERROR = "transaction relayer not configured"

    async def submit(self, call: CallDescriptor, sender: str) -> TxResult:
        logger.error(f"❌ Cannot submit {call.function}: TX_RELAYER_URL is not set")
        return TxResult(success=False, error=self.ERROR)


_submitter: Optional[TransactionSubmitter] = None


def get_submitter() -> TransactionSubmitter:
    """Simulated only when SIMULATION_MODE is on; never a silent fallback"""
    global _submitter
    if _submitter is None:
        if settings.SIMULATION_MODE:
            _submitter = SimulatedSubmitter()
        elif not settings.TX_RELAYER_URL:
            logger.error("TX_RELAYER_URL not set and SIMULATION_MODE is off, writes will fail")
            _submitter = UnconfiguredSubmitter()
        else:
            _submitter = RelayerSubmitter()
    return _submitter
