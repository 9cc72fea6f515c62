"""
DefiLlama Yields Client
Pool-level APY/TVL from yields.llama.fi, filtered to Movement.

The bulk /pools listing is large and only refreshes hourly upstream, so it
goes through a ResponseCache (5 min TTL by default).
"""
from typing import Optional, Dict, Any, List, Tuple
import logging

from config import settings
from data_sources.http_source import HTTPSource
from infrastructure.api_cache import ResponseCache
from protocols.errors import SourceUnavailableError

logger = logging.getLogger("DefiLlamaYields")


class DefiLlamaYieldsClient(HTTPSource):
    SERVICE = "defillama-yields"
    BASE_URL = settings.DEFILLAMA_YIELDS_URL

    def __init__(
        self,
        chain: str = settings.NETWORK_NAME,
        cache: Optional[ResponseCache] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.chain = chain
        self.cache = cache or ResponseCache(ttl_seconds=settings.YIELDS_CACHE_TTL_SECONDS)

    async def _fetch_all_pools(self) -> Tuple[Dict[str, Any], ...]:
        body = await self._get_json("/pools")
        if not isinstance(body, dict) or body.get("status") != "success":
            raise SourceUnavailableError(self.SERVICE, "non-success status from /pools")
        return tuple(body.get("data") or [])

    async def get_all_pools(self) -> Tuple[Dict[str, Any], ...]:
        """Every pool DefiLlama tracks. Raises SourceUnavailableError."""
        key = ResponseCache.make_key(self.SERVICE, "pools")
        return await self.cache.get_or_fetch(key, self._fetch_all_pools)

    async def get_chain_pools(self) -> List[Dict[str, Any]]:
        """Pools on this chain (case-insensitive match), [] on failure"""
        key = ResponseCache.make_key(self.SERVICE, f"pools?chain={self.chain.lower()}")

        async def fetch():
            pools = await self.get_all_pools()
            chain_pools = tuple(p for p in pools if (p.get("chain") or "").lower() == self.chain.lower())
            logger.info(f"Found {len(chain_pools)} {self.chain} pools on DefiLlama")
            return chain_pools

        try:
            return list(await self.cache.get_or_fetch(key, fetch))
        except SourceUnavailableError as e:
            logger.error(f"Failed to fetch {self.chain} pools: {e}")
            return []

    async def get_protocol_pools(self, project: str) -> List[Dict[str, Any]]:
        pools = await self.get_chain_pools()
        return [p for p in pools if (p.get("project") or "").lower() == project.lower()]

    async def get_pools_by_symbol(self, symbol: str) -> List[Dict[str, Any]]:
        pools = await self.get_chain_pools()
        return [p for p in pools if symbol.upper() in (p.get("symbol") or "").upper()]

    async def get_pool(self, pool_id: str) -> Optional[Dict[str, Any]]:
        """Normalized APY data for one pool id"""
        try:
            pools = await self.get_all_pools()
        except SourceUnavailableError as e:
            logger.error(f"Failed to get APY for pool {pool_id}: {e}")
            return None

        for pool in pools:
            if pool.get("pool") == pool_id:
                return {
                    "pool": pool_id,
                    "apy": pool.get("apy"),
                    "apy_base": pool.get("apyBase"),
                    "apy_reward": pool.get("apyReward"),
                    "tvl_usd": pool.get("tvlUsd"),
                    "symbol": pool.get("symbol"),
                    "project": pool.get("project"),
                    "chain": pool.get("chain"),
                    "source": "defillama",
                }
        return None

    async def get_pool_history(self, pool_id: str) -> List[Dict[str, Any]]:
        """Historical APY/TVL points for one pool"""
        key = ResponseCache.make_key(self.SERVICE, f"chart/{pool_id}")

        async def fetch():
            body = await self._get_json(f"/chart/{pool_id}")
            if not isinstance(body, dict) or body.get("status") != "success":
                return None
            return tuple(body.get("data") or [])

        try:
            history = await self.cache.get_or_fetch(key, fetch)
        except SourceUnavailableError as e:
            logger.error(f"Failed to get history for pool {pool_id}: {e}")
            return []
        return list(history or [])
