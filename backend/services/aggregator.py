"""
Movement DeFi Aggregator

Data Sources:
1. Movement fullnode   - chain identity (mandatory), view functions
2. DefiLlama           - network TVL, protocol directory, 7d changes
3. DefiLlama Yields    - pool-level APY/TVL
4. Canopy controller   - on-chain vaults, profit-based APY
5. Echelon             - on-chain lending markets
6. Meridian            - DEX pairs and volume
7. GraphQL indexer     - user balances
8. Price oracle        - Pyth with CoinGecko fallback

Every read fans out concurrently and settles all branches; a failed branch
degrades to None/[]/{} and never cancels its siblings. Only the chain
identity call can fail a snapshot.
"""

import asyncio
import logging
from typing import Optional, Dict, Any, List, Tuple

from data_sources.canopy import CanopyFetcher
from data_sources.defillama import DefiLlamaClient
from data_sources.defillama_yields import DefiLlamaYieldsClient
from data_sources.echelon import EchelonFetcher
from data_sources.indexer import IndexerClient
from data_sources.meridian import MeridianFetcher
from data_sources.movement_rpc import MovementRPCClient
from data_sources.price_oracle import PriceOracle
from config import settings
from protocols import registry
from protocols.errors import ChainUnavailableError
from protocols.models import (
    AggregatedSnapshot,
    APYEstimate,
    Balance,
    Market,
    ProtocolCategory,
    UserPosition,
    Vault,
    utc_now_iso,
)
from services.apy_engine import APYContext, APYEngine, get_apy_engine, weighted_average_apy

logger = logging.getLogger("Aggregator")

# Display labels for wallet positions: slug -> (protocol, strategy)
POSITION_LABELS = {
    "canopy": ("Canopy", "Yield Strategy"),
    "echelon": ("Echelon Market", "Lending"),
    "meridian": ("Meridian", "Liquidity Pool"),
}

DEFAULT_DECIMALS = 8


def _settled(name: str, result: Any, default: Any) -> Any:
    """Unwrap one gather(return_exceptions=True) result"""
    if isinstance(result, Exception):
        logger.error(f"⚠️ {name} failed, using default: {type(result).__name__}: {result}")
        return default
    return default if result is None else result


def _pools_for(slug: str, pools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    slug = slug.lower()
    return [
        p for p in pools
        if (p.get("project") or "").lower() == slug or (p.get("project") or "").lower().startswith(f"{slug}-")
    ]


def _find_listing(name: str, listings: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for listing in listings:
        key = (listing.get("name") or "").lower().replace(" ", "")
        if key.startswith(name.lower()):
            return listing
    return None


class DefiAggregator:
    """
    Usage:
        aggregator = get_aggregator()
        snapshot = await aggregator.get_snapshot(wallet_address="0x...")
    """

    def __init__(
        self,
        rpc: Optional[MovementRPCClient] = None,
        defillama: Optional[DefiLlamaClient] = None,
        yields: Optional[DefiLlamaYieldsClient] = None,
        indexer: Optional[IndexerClient] = None,
        price_oracle: Optional[PriceOracle] = None,
        canopy: Optional[CanopyFetcher] = None,
        echelon: Optional[EchelonFetcher] = None,
        meridian: Optional[MeridianFetcher] = None,
        apy_engine: Optional[APYEngine] = None,
    ):
        self.rpc = rpc or MovementRPCClient()
        self.defillama = defillama or DefiLlamaClient()
        self.yields = yields or DefiLlamaYieldsClient()
        self.indexer = indexer or IndexerClient()
        self.price_oracle = price_oracle or PriceOracle()
        self.canopy = canopy or CanopyFetcher(rpc=self.rpc)
        self.echelon = echelon or EchelonFetcher(rpc=self.rpc)
        self.meridian = meridian or MeridianFetcher(rpc=self.rpc, defillama=self.defillama)
        self.apy_engine = apy_engine or get_apy_engine()

    # ============================================
    # SNAPSHOT
    # ============================================

    async def get_snapshot(self, wallet_address: Optional[str] = None) -> AggregatedSnapshot:
        """
        One merged view of the network, protocols and prices.

        Raises:
            ChainUnavailableError: chain identity could not be read
        """
        results = await asyncio.gather(
            self.rpc.get_chain_info(),
            self.defillama.get_chain_tvl(),
            self.defillama.get_chain_protocols(),
            self.yields.get_chain_pools(),
            self.price_oracle.get_all_prices(),
            self.canopy.fetch_vaults(),
            self.echelon.get_all_markets(),
            self.meridian.get_dex_summary(),
            return_exceptions=True,
        )
        chain_info = results[0]
        if isinstance(chain_info, Exception):
            if isinstance(chain_info, ChainUnavailableError):
                raise chain_info
            raise ChainUnavailableError(str(chain_info)) from chain_info

        network_tvl = _settled("network TVL", results[1], {})
        listings = _settled("protocol directory", results[2], [])
        pools = _settled("yield pools", results[3], [])
        prices = _settled("prices", results[4], {})
        vaults = _settled("canopy", results[5], None)
        markets = _settled("echelon", results[6], None)
        dex = _settled("meridian", results[7], None)

        snapshot = AggregatedSnapshot(
            network={
                "name": settings.NETWORK_NAME,
                "chain_id": chain_info["chain_id"],
                "block_height": chain_info["block_height"],
                "ledger_version": chain_info["ledger_version"],
                "total_tvl": network_tvl.get("tvl", 0),
                "native_token": network_tvl.get("token_symbol") or "MOVE",
            },
            protocols={
                "canopy": self._canopy_entry(vaults, pools, listings) if vaults is not None else None,
                "echelon": self._echelon_entry(markets, pools, listings) if markets is not None else None,
                "meridian": self._meridian_entry(dex, pools, listings) if dex is not None else None,
            },
            all_protocols=[self._listing_entry(listing, pools) for listing in listings],
            prices={symbol: quote.to_dict() for symbol, quote in prices.items()},
        )

        if wallet_address:
            try:
                position = await self.get_user_positions(wallet_address)
            except Exception as e:
                logger.error(f"⚠️ Positions for {wallet_address} failed: {e}")
                position = None
            if position is not None:
                self._value_position(position, snapshot.prices)
            snapshot.user_position = position

        logger.info(
            f"📸 Snapshot: block {snapshot.network['block_height']}, "
            f"{sum(1 for p in snapshot.protocols.values() if p is not None)}/{len(snapshot.protocols)} protocols, "
            f"{len(snapshot.all_protocols)} listings, {len(snapshot.prices)} prices"
        )
        return snapshot

    # ============================================
    # APY
    # ============================================

    def vault_apy(self, vault: Vault) -> APYEstimate:
        return self.apy_engine.estimate(APYContext(
            slug=f"canopy-{vault.asset.lower()}",
            category=ProtocolCategory.YIELD_AGGREGATOR,
            strategies=vault.strategies,
        ))

    def _protocol_apy(
        self,
        slug: str,
        category: Any,
        pools: List[Dict[str, Any]],
        listing: Optional[Dict[str, Any]],
    ) -> APYEstimate:
        return self.apy_engine.estimate(APYContext(
            slug=slug,
            category=category,
            pools=_pools_for(slug, pools),
            change_7d=(listing or {}).get("change_7d"),
        ))

    # ============================================
    # PROTOCOL ENTRIES
    # ============================================

    def _canopy_entry(self, vaults: List[Vault], pools: List[Dict[str, Any]], listings: List[Dict[str, Any]]) -> Dict[str, Any]:
        for vault in vaults:
            vault.apy = self.vault_apy(vault)

        apy = self.apy_engine.combine([(v.apy, v.tvl) for v in vaults])
        if apy is None:
            apy = self._protocol_apy("canopy", ProtocolCategory.YIELD_AGGREGATOR, pools, _find_listing("canopy", listings))

        return {
            "name": "Canopy",
            "slug": "canopy",
            "category": ProtocolCategory.YIELD_AGGREGATOR.value,
            "controller": registry.resolve("canopy"),
            "total_tvl": sum(v.tvl for v in vaults),
            "vault_count": len(vaults),
            "active_vault_count": sum(1 for v in vaults if v.tvl > 0),
            "vaults": [v.to_dict() for v in vaults],
            "apy": apy.to_dict(),
        }

    def _echelon_entry(self, markets: List[Market], pools: List[Dict[str, Any]], listings: List[Dict[str, Any]]) -> Dict[str, Any]:
        listing = _find_listing("echelon", listings)
        return {
            "name": "Echelon",
            "slug": "echelon",
            "category": ProtocolCategory.LENDING.value,
            "tvl": (listing or {}).get("tvl"),
            "market_count": len(markets),
            "live_market_count": sum(1 for m in markets if m.status == "live"),
            "markets": [m.to_dict() for m in markets],
            "apy": self._protocol_apy("echelon", ProtocolCategory.LENDING, pools, listing).to_dict(),
        }

    def _meridian_entry(self, dex: Dict[str, Any], pools: List[Dict[str, Any]], listings: List[Dict[str, Any]]) -> Dict[str, Any]:
        listing = _find_listing("meridian", listings)
        entry = dict(dex)
        entry["slug"] = "meridian"
        entry["tvl"] = (listing or {}).get("tvl")
        entry["apy"] = self._protocol_apy("meridian", ProtocolCategory.DEX, pools, listing).to_dict()
        return entry

    def _listing_entry(self, listing: Dict[str, Any], pools: List[Dict[str, Any]]) -> Dict[str, Any]:
        slug = listing.get("slug") or (listing.get("name") or "").lower()
        entry = dict(listing)
        entry["apy"] = self._protocol_apy(slug, listing.get("category"), pools, listing).to_dict()
        entry["data_source"] = "defillama"
        return entry

    # ============================================
    # USER DATA
    # ============================================

    async def get_user_positions(self, wallet_address: str) -> Optional[UserPosition]:
        """Wallet balances with protocol attribution, None if the indexer is down"""
        raw_balances = await self.indexer.get_user_balances(wallet_address)
        if raw_balances is None:
            return None

        balances = []
        for raw in raw_balances:
            metadata = raw.get("metadata") or {}
            try:
                amount = int(str(raw.get("amount") or 0))
            except ValueError:
                logger.warning(f"Unparseable balance {raw.get('amount')!r} for {raw.get('asset_type')}")
                amount = 0
            balances.append(Balance(
                asset=metadata.get("symbol") or "Unknown",
                amount=amount,
                decimals=int(metadata.get("decimals") or DEFAULT_DECIMALS),
                asset_type=raw.get("asset_type") or "",
                protocol=registry.classify(raw.get("asset_type")),
            ))

        return UserPosition(wallet=wallet_address, balances=balances)

    @staticmethod
    def _value_position(position: UserPosition, prices: Dict[str, Dict[str, Any]]):
        for balance in position.balances:
            balance.price_usd = (prices.get(balance.asset) or {}).get("usd") or 0.0
            balance.value_usd = balance.normalized_amount * balance.price_usd
        position.total_value_usd = sum(b.value_usd for b in position.balances)

    async def get_prices(self) -> Dict[str, Dict[str, Any]]:
        """Every price that could be fetched; {} when none could"""
        try:
            quotes = await self.price_oracle.get_all_prices()
        except Exception as e:
            logger.error(f"Get prices error: {e}")
            return {}
        return {symbol: quote.to_dict() for symbol, quote in quotes.items()}

    async def get_portfolio(self, wallet_address: str) -> Optional[Dict[str, Any]]:
        """Positions valued in USD with display labels"""
        position, prices = await asyncio.gather(
            self.get_user_positions(wallet_address),
            self.get_prices(),
        )
        if position is None:
            return None

        self._value_position(position, prices)

        positions = []
        for index, balance in enumerate(position.balances):
            protocol, strategy = POSITION_LABELS.get(balance.protocol, ("Wallet", "Holding"))
            positions.append({
                "id": f"pos-{index}",
                "name": "Movement Token" if balance.asset == "MOVE" else f"{balance.asset} Position",
                "protocol": protocol,
                "strategy": strategy,
                "token_symbol": balance.asset,
                "value_usd": round(balance.value_usd, 2),
            })

        return {
            "wallet": wallet_address,
            "total_value_usd": position.total_value_usd,
            "positions": positions,
            "balances": position.to_dict()["balances"],
            "total_assets": len(position.balances),
            "prices": prices,
            "timestamp": utc_now_iso(),
        }

    # ============================================
    # PROTOCOL METRICS
    # ============================================

    async def get_protocol_metrics(self) -> Dict[str, Any]:
        """
        DefiLlama protocols merged with on-chain Canopy vaults, by TVL desc.
        Canopy (ex-Satay) DefiLlama rows are replaced by per-vault rows.
        """
        results = await asyncio.gather(
            self.defillama.get_chain_protocols(),
            self.canopy.get_all_vaults(),
            self.yields.get_chain_pools(),
            self.get_prices(),
            return_exceptions=True,
        )
        listings = _settled("protocol directory", results[0], [])
        vaults = _settled("canopy", results[1], [])
        pools = _settled("yield pools", results[2], [])
        prices = _settled("prices", results[3], {})

        merged: Dict[str, Dict[str, Any]] = {}
        for listing in listings:
            key = (listing.get("name") or "").lower().replace(" ", "")
            if "satay" in key or "canopy" in key:
                continue
            merged[key] = self._listing_entry(listing, pools)

        for vault in vaults:
            if vault.tvl <= 0:
                continue
            vault.apy = self.vault_apy(vault)
            merged[f"canopy-{vault.asset.lower()}"] = {
                "name": vault.name,
                "slug": vault.address,
                "tvl": vault.tvl,
                "category": "Yield Aggregator",
                "change_7d": None,
                "apy": vault.apy.to_dict(),
                "data_source": "on-chain",
                "vault_address": vault.address,
                "strategies": vault.to_dict()["strategies"],
            }

        protocols = sorted(merged.values(), key=lambda p: p.get("tvl") or 0, reverse=True)
        return {
            "protocols": protocols,
            "prices": prices,
            "total_protocols": len(protocols),
            "canopy_stats": self._vault_stats(vaults),
            "note": "APY from on-chain data where available, otherwise pool averages, TVL trend or category ranges",
            "timestamp": utc_now_iso(),
        }

    # ============================================
    # PASS-THROUGHS
    # ============================================

    async def get_canopy_vaults(self) -> List[Vault]:
        vaults = await self.canopy.get_all_vaults()
        for vault in vaults:
            vault.apy = self.vault_apy(vault)
        return vaults

    async def get_canopy_vault(self, asset: str) -> Optional[Vault]:
        return registry.resolve_vault(asset, await self.get_canopy_vaults())

    async def get_canopy_stats(self) -> Dict[str, Any]:
        vaults = await self.get_canopy_vaults()
        stats = self._vault_stats(vaults)
        stats["vaults"] = [v.to_dict() for v in vaults]
        return stats

    def _vault_stats(self, vaults: List[Vault]) -> Dict[str, Any]:
        estimates: List[Tuple[Optional[APYEstimate], float]] = []
        for vault in vaults:
            if vault.apy is None:
                vault.apy = self.vault_apy(vault)
            estimates.append((vault.apy, vault.tvl))
        return {
            "total_tvl": sum(v.tvl for v in vaults),
            "vault_count": len(vaults),
            "active_vault_count": sum(1 for v in vaults if v.tvl > 0),
            "average_apy": weighted_average_apy(estimates),
        }

    async def get_echelon_markets(self) -> List[Market]:
        return await self.echelon.get_all_markets()

    async def get_echelon_market(self, asset: str) -> Optional[Market]:
        return await self.echelon.get_market(asset)

    async def get_echelon_position(self, wallet: str, asset: Optional[str] = None) -> Dict[str, Any]:
        return await self.echelon.get_user_position(wallet, asset)


_aggregator: Optional[DefiAggregator] = None


def get_aggregator() -> DefiAggregator:
    global _aggregator
    if _aggregator is None:
        _aggregator = DefiAggregator()
    return _aggregator
