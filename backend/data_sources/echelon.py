"""
Echelon Market Fetcher
Per-market supply/borrow state from lending_pool::get_market_state.
Markets whose view call fails are still listed with status "static".
User positions come from lending_pool::get_user_position.
"""
import asyncio
from typing import Optional, Dict, Any, List
import logging

from data_sources.movement_rpc import MovementRPCClient
from protocols.errors import SourceUnavailableError
from protocols.models import CallDescriptor, Market
from protocols import registry

logger = logging.getLogger("Echelon")

ECHELON_DECIMALS = 8


def parse_rate(raw: Any) -> Optional[float]:
    """Basis points -> percent"""
    if raw in (None, ""):
        return None
    try:
        return round(float(raw) / 10000 * 100, 2)
    except (TypeError, ValueError):
        return None


def calculate_utilization(total_supply: float, total_borrow: float) -> float:
    if not total_supply:
        return 0.0
    return round(total_borrow / total_supply * 100, 2)


class EchelonFetcher:
    def __init__(self, rpc: Optional[MovementRPCClient] = None):
        self.rpc = rpc or MovementRPCClient()
        self.markets = registry.echelon_markets()

    def supported_assets(self) -> List[Dict[str, str]]:
        return [{"asset": asset, "address": address} for asset, address in self.markets.items()]

    async def get_market(self, asset: str) -> Optional[Market]:
        address = self.markets.get(asset)
        if not address:
            return None

        call = CallDescriptor(function=f"{address}::lending_pool::get_market_state")
        try:
            result = await self.rpc.view(call)
            state = result[0]
            total_supply = float(state.get("total_supply") or 0) / 10 ** ECHELON_DECIMALS
            total_borrow = float(state.get("total_borrow") or 0) / 10 ** ECHELON_DECIMALS
        except (SourceUnavailableError, IndexError, AttributeError, TypeError, ValueError) as e:
            logger.debug(f"Echelon {asset} market state unavailable, static entry: {e}")
            return Market(asset=asset, address=address, status="static")

        return Market(
            asset=asset,
            address=address,
            total_supply=total_supply,
            total_borrow=total_borrow,
            supply_rate=parse_rate(state.get("supply_rate")),
            borrow_rate=parse_rate(state.get("borrow_rate")),
            utilization=calculate_utilization(total_supply, total_borrow),
        )

    async def get_all_markets(self) -> List[Market]:
        markets = await asyncio.gather(*(self.get_market(asset) for asset in self.markets))
        live = [m for m in markets if m is not None]
        logger.info(f"🏦 Echelon: {len(live)} markets ({sum(1 for m in live if m.status == 'live')} live)")
        return live

    async def get_user_position(self, user: str, asset: Optional[str] = None) -> Dict[str, Any]:
        """
        Raw supplied/borrowed amounts for one user in one market.
        Unknown assets resolve to the default market. A failed or malformed
        view reads as an empty position.
        """
        address = registry.resolve("echelon", asset)
        position = {"user": user, "asset": asset, "market": address, "supplied": "0", "borrowed": "0"}

        call = CallDescriptor(
            function=f"{address}::lending_pool::get_user_position",
            arguments=(user,),
        )
        try:
            result = await self.rpc.view(call)
        except SourceUnavailableError as e:
            logger.debug(f"Echelon position for {user} unavailable, reporting empty: {e}")
            return position

        for index, key in enumerate(("supplied", "borrowed")):
            value = result[index] if len(result) > index else None
            if isinstance(value, (str, int)) and str(value):
                position[key] = str(value)
        return position
