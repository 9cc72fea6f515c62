"""
DefiLlama API Client
Protocol TVL, Movement chain TVL, the protocol directory and DEX volumes.
"""
from typing import Optional, Dict, Any, List
import logging

from config import settings
from data_sources.http_source import HTTPSource
from protocols.errors import SourceUnavailableError

logger = logging.getLogger("DefiLlama")


class DefiLlamaClient(HTTPSource):
    """Client for api.llama.fi (free, no API key needed)"""

    SERVICE = "defillama"
    BASE_URL = settings.DEFILLAMA_API_URL

    def __init__(self, chain: str = settings.NETWORK_NAME, **kwargs):
        super().__init__(**kwargs)
        self.chain = chain

    async def get_protocol_tvl(self, slug: str) -> Optional[Dict[str, Any]]:
        """
        Fetch one protocol's TVL breakdown.

        Returns:
            {name, tvl, chain_tvl, tokens, category} or None if unavailable
        """
        try:
            data = await self._get_json(f"/protocol/{slug}")
        except SourceUnavailableError as e:
            logger.error(f"DefiLlama protocol {slug} failed: {e}")
            return None

        chain_data = (data.get("chainTvls") or {}).get(self.chain) or {}
        chain_tvl = (data.get("currentChainTvls") or {}).get(self.chain)
        if chain_tvl is None:
            history = chain_data.get("tvl") or []
            chain_tvl = history[-1].get("totalLiquidityUSD", 0) if history else 0

        # /protocol/{slug} returns tvl as a daily history
        tvl = data.get("tvl")
        if isinstance(tvl, list):
            tvl = tvl[-1].get("totalLiquidityUSD", 0) if tvl else 0

        token_history = chain_data.get("tokens") or []
        tokens = token_history[-1].get("tokens", {}) if token_history else {}

        return {
            "name": data.get("name", slug),
            "tvl": tvl or 0,
            "chain_tvl": chain_tvl or 0,
            "tokens": tokens,
            "category": data.get("category"),
        }

    async def get_chain_tvl(self) -> Optional[Dict[str, Any]]:
        """Movement's entry from /v2/chains: {tvl, token_symbol}"""
        try:
            chains = await self._get_json("/v2/chains")
        except SourceUnavailableError as e:
            logger.error(f"DefiLlama chains failed: {e}")
            return None

        for chain in chains or []:
            if chain.get("name") == self.chain:
                return {"tvl": chain.get("tvl", 0), "token_symbol": chain.get("tokenSymbol")}

        logger.warning(f"{self.chain} not listed in DefiLlama chains")
        return None

    async def get_chain_protocols(self) -> List[Dict[str, Any]]:
        """All protocols deployed on the chain, [] on failure"""
        try:
            protocols = await self._get_json("/protocols")
        except SourceUnavailableError as e:
            logger.error(f"DefiLlama protocols failed: {e}")
            return []

        result = []
        for protocol in protocols or []:
            if self.chain not in (protocol.get("chains") or []):
                continue
            result.append({
                "name": protocol.get("name"),
                "slug": protocol.get("slug"),
                "tvl": protocol.get("tvl") or 0,
                "category": protocol.get("category"),
                "change_1d": protocol.get("change_1d"),
                "change_7d": protocol.get("change_7d"),
                "mcap": protocol.get("mcap"),
            })

        logger.info(f"📊 DefiLlama: {len(result)} protocols on {self.chain}")
        return result

    async def get_dex_volume(self, slug: str) -> Dict[str, float]:
        """24h DEX volume. Not every protocol has one, zeros when missing."""
        try:
            data = await self._get_json(f"/summary/dexs/{slug}")
        except SourceUnavailableError as e:
            logger.debug(f"No DEX volume for {slug}: {e}")
            return {"volume_24h": 0, "change_24h": 0}

        if not isinstance(data, dict):
            return {"volume_24h": 0, "change_24h": 0}

        return {
            "volume_24h": data.get("total24h") or 0,
            "change_24h": data.get("change_1d") or data.get("change_24h") or 0,
        }
