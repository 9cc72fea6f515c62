"""
DeFi Read API
Snapshot, user positions, portfolio, protocol metrics, prices and
per-protocol pass-throughs. Reads degrade instead of failing; only a
missing chain identity is an error.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from protocols.errors import ChainUnavailableError
from services.aggregator import get_aggregator

logger = logging.getLogger("DefiAPI")
router = APIRouter(prefix="/api", tags=["defi"])


@router.get("/defi/snapshot")
async def get_snapshot(wallet: Optional[str] = Query(None, description="Optional wallet to merge positions for")):
    """
    Full DeFi snapshot: network, Canopy/Echelon/Meridian details, every
    DefiLlama-listed Movement protocol with APY provenance, and prices.
    """
    try:
        snapshot = await get_aggregator().get_snapshot(wallet)
    except ChainUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return snapshot.to_dict()


@router.get("/defi/user/{address}")
async def get_user_positions(address: str):
    position = await get_aggregator().get_user_positions(address)
    if position is None:
        raise HTTPException(status_code=503, detail="Indexer unavailable")
    return position.to_dict()


@router.get("/defi/portfolio/{address}")
async def get_portfolio(address: str):
    """Positions valued in USD"""
    portfolio = await get_aggregator().get_portfolio(address)
    if portfolio is None:
        raise HTTPException(status_code=503, detail="Indexer unavailable")
    return portfolio


@router.get("/defi/metrics")
async def get_protocol_metrics():
    return await get_aggregator().get_protocol_metrics()


@router.get("/prices")
async def get_prices():
    prices = await get_aggregator().get_prices()
    return {"success": True, "count": len(prices), "prices": prices}


# ============================================
# CANOPY
# ============================================

@router.get("/canopy/vaults")
async def get_canopy_vaults():
    vaults = await get_aggregator().get_canopy_vaults()
    return {"success": True, "count": len(vaults), "vaults": [v.to_dict() for v in vaults]}


@router.get("/canopy/stats")
async def get_canopy_stats():
    return await get_aggregator().get_canopy_stats()


@router.get("/canopy/vaults/{asset}")
async def get_canopy_vault(asset: str):
    vault = await get_aggregator().get_canopy_vault(asset)
    if vault is None:
        raise HTTPException(status_code=404, detail=f"No Canopy vault for {asset}")
    return vault.to_dict()


# ============================================
# ECHELON
# ============================================

@router.get("/echelon/markets")
async def get_echelon_markets():
    markets = await get_aggregator().get_echelon_markets()
    return {"success": True, "count": len(markets), "markets": [m.to_dict() for m in markets]}


@router.get("/echelon/markets/{asset}")
async def get_echelon_market(asset: str):
    market = await get_aggregator().get_echelon_market(asset)
    if market is None:
        raise HTTPException(status_code=404, detail=f"No Echelon market for {asset}")
    return market.to_dict()


@router.get("/echelon/position/{address}")
async def get_echelon_position(address: str, asset: Optional[str] = Query(None, description="Market asset, defaults to MOVE")):
    """Raw supplied/borrowed for one wallet; an unreadable market reads as zero"""
    position = await get_aggregator().get_echelon_position(address, asset)
    return {"success": True, **position}
