"""
Movement fullnode REST client

Chain identity, view functions, account resources and transaction waits.
View results come back as an ordered list, one entry per Move return value.
"""
from typing import Optional, Dict, Any, List
import logging

from config import settings
from data_sources.http_source import HTTPSource
from protocols.errors import ChainUnavailableError, SourceUnavailableError
from protocols.models import CallDescriptor

logger = logging.getLogger("MovementRPC")


class MovementRPCClient(HTTPSource):
    SERVICE = "movement-rpc"
    BASE_URL = settings.MOVEMENT_RPC_URL

    async def get_chain_info(self) -> Dict[str, Any]:
        """
        Ledger info from GET /.
        This is the one mandatory read: without it a snapshot cannot be
        labelled, so failure raises ChainUnavailableError instead of degrading.
        """
        try:
            data = await self._get_json("")
        except SourceUnavailableError as e:
            logger.error(f"❌ Chain info unavailable: {e}")
            raise ChainUnavailableError(str(e)) from e

        if not isinstance(data, dict) or data.get("chain_id") is None:
            raise ChainUnavailableError("ledger info missing chain_id")

        return {
            "chain_id": int(data["chain_id"]),
            "block_height": int(data.get("block_height") or 0),
            "ledger_version": int(data.get("ledger_version") or 0),
        }

    async def view(self, call: CallDescriptor) -> List[Any]:
        """Run a view function. Raises SourceUnavailableError."""
        result = await self._post_json("/view", call.to_payload())
        if not isinstance(result, list):
            raise SourceUnavailableError(self.SERVICE, f"unexpected view result for {call.function}")
        return result

    async def call_view(self, function: str, type_arguments=(), arguments=()) -> Optional[List[Any]]:
        """view() for callers that prefer None over an exception"""
        try:
            return await self.view(CallDescriptor(function, tuple(type_arguments), tuple(arguments)))
        except SourceUnavailableError as e:
            logger.warning(f"View {function} failed: {e}")
            return None

    async def get_account_resources(self, address: str) -> List[Dict[str, Any]]:
        try:
            return await self._get_json(f"/accounts/{address}/resources") or []
        except SourceUnavailableError as e:
            logger.error(f"Account resources failed for {address}: {e}")
            return []

    async def get_staking_info(self, pool_address: str, delegator_address: str) -> Optional[Dict[str, str]]:
        """Delegation pool stake split (active, inactive, pending_inactive)"""
        result = await self.call_view(
            "0x1::delegation_pool::get_stake",
            arguments=(pool_address, delegator_address),
        )
        if not result or len(result) != 3:
            return None
        return {"active": result[0], "inactive": result[1], "pending_inactive": result[2]}

    async def wait_for_transaction(self, tx_hash: str) -> Dict[str, Any]:
        """Block until the fullnode reports the transaction committed. Raises SourceUnavailableError."""
        return await self._get_json(f"/transactions/wait_by_hash/{tx_hash}")
