"""
Meridian DEX Fetcher
Static pair list, on-chain pool lookups and the DEX summary used in snapshots.
"""
import asyncio
from typing import Optional, Dict, Any, List
import logging

from config.contracts import MERIDIAN, MERIDIAN_PAIRS
from data_sources.defillama import DefiLlamaClient
from data_sources.movement_rpc import MovementRPCClient
from protocols.errors import SourceUnavailableError
from protocols.models import CallDescriptor
from protocols import registry

logger = logging.getLogger("Meridian")


class MeridianFetcher:
    def __init__(
        self,
        rpc: Optional[MovementRPCClient] = None,
        defillama: Optional[DefiLlamaClient] = None,
        router: str = MERIDIAN["router"],
    ):
        self.rpc = rpc or MovementRPCClient()
        self.defillama = defillama
        self.router = router

    def supported_pairs(self) -> List[Dict[str, str]]:
        return [dict(pair) for pair in MERIDIAN_PAIRS]

    async def get_pool_info(self, token_a: str, token_b: str) -> Optional[Dict[str, Any]]:
        """Raw pool record; the router does not always expose get_pool"""
        call = CallDescriptor(
            function=f"{self.router}::router::get_pool",
            arguments=(token_a, token_b),
        )
        try:
            result = await self.rpc.view(call)
        except SourceUnavailableError as e:
            logger.debug(f"Meridian get_pool unavailable for {token_a}/{token_b}: {e}")
            return None

        if not result:
            return None
        return {"token_a": token_a, "token_b": token_b, "data": result[0]}

    async def get_dex_summary(self) -> Dict[str, Any]:
        """
        Pair list plus whatever pool state and volume could be read.
        Never raises: get_pool_info and get_dex_volume degrade on their own,
        so a snapshot always carries a Meridian entry ("static" when no pool
        view answered).
        """
        pairs = self.supported_pairs()
        pool_infos = await asyncio.gather(*(
            self.get_pool_info(
                registry.token_address(pair["token_a"]) or pair["token_a"],
                registry.token_address(pair["token_b"]) or pair["token_b"],
            )
            for pair in pairs
        ))
        pools = [
            {"pool": pair["pool"], "data": info["data"]}
            for pair, info in zip(pairs, pool_infos)
            if info is not None
        ]

        summary = {
            "name": "Meridian",
            "type": "dex",
            "router": self.router,
            "pairs": pairs,
            "pools": pools,
            "status": "live" if pools else "static",
            "category": "Dexs",
        }
        if self.defillama is not None:
            summary.update(await self.defillama.get_dex_volume("meridian"))
        return summary
