"""
Protocol Write API
Deposit, withdraw and zap commands. Failures are loud and specific:

    400  precondition (bad amount, zap too small)
    404  no address registered for protocol/asset
    409  partial zap (swap landed, add_liquidity failed)
    502  transaction rejected or failed on-chain
    503  upstream read needed for the command is unavailable
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from protocols.errors import (
    AggregatorError,
    ChainUnavailableError,
    PartialZapError,
    ResolutionError,
    SourceUnavailableError,
    TransactionFailedError,
)
from protocols.router import get_protocol, get_protocol_router
from services.zap import get_zap_service

logger = logging.getLogger("ProtocolAPI")
router = APIRouter(prefix="/api/protocol", tags=["protocol"])


class ProtocolActionRequest(BaseModel):
    """Deposit/withdraw intent. Amount is in base units, as a string."""
    protocol: str
    asset: str
    amount: str
    user_address: Optional[str] = None


class ZapRequest(BaseModel):
    protocol: str = "meridian"
    token_in: str
    amount: str
    user_address: Optional[str] = None


def to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, PartialZapError):
        return HTTPException(status_code=409, detail={
            "error": str(e),
            "step": e.step,
            "swap_hash": e.swap_hash,
            "recovery": "Swapped tokens are in the wallet; add liquidity or swap back manually",
        })
    if isinstance(e, TransactionFailedError):
        return HTTPException(status_code=502, detail={"error": e.reason, "step": e.step, "tx_hash": e.tx_hash})
    if isinstance(e, ResolutionError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (SourceUnavailableError, ChainUnavailableError)):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _validate_amount(amount: str) -> str:
    if not amount.isdigit() or int(amount) <= 0:
        raise HTTPException(status_code=400, detail=f"Amount must be a positive integer in base units, got '{amount}'")
    return amount


@router.get("/list")
async def list_protocols():
    protocols = get_protocol_router().get_supported_protocols()
    return {"success": True, "count": len(protocols), "protocols": protocols}


@router.post("/deposit")
async def deposit(request: ProtocolActionRequest):
    """
    Deposit into a protocol. DEX deposits are single-sided, so they run as a zap.
    """
    amount = _validate_amount(request.amount)
    try:
        if get_protocol(request.protocol).type == "dex":
            result = await get_zap_service().zap_in(request.protocol, request.asset, amount, request.user_address)
            return result.to_dict()

        result = await get_protocol_router().deposit(request.protocol, request.asset, amount, request.user_address)
    except (AggregatorError, ValueError) as e:
        raise to_http_error(e)
    return {"success": True, **result.to_dict()}


@router.post("/withdraw")
async def withdraw(request: ProtocolActionRequest):
    amount = _validate_amount(request.amount)
    try:
        result = await get_protocol_router().withdraw(request.protocol, request.asset, amount, request.user_address)
    except (AggregatorError, ValueError) as e:
        raise to_http_error(e)
    return {"success": True, **result.to_dict()}


@router.post("/zap")
async def zap(request: ZapRequest):
    amount = _validate_amount(request.amount)
    try:
        result = await get_zap_service().zap_in(request.protocol, request.token_in, amount, request.user_address)
    except (AggregatorError, ValueError) as e:
        raise to_http_error(e)
    return result.to_dict()


@router.get("/zap/quote")
async def zap_quote(
    token_in: str = Query(..., description="Input token symbol, e.g. MOVE"),
    amount: str = Query(..., description="Amount in base units"),
):
    """Plan a zap without executing it"""
    _validate_amount(amount)
    try:
        plan, reserves = await get_zap_service().quote(token_in, amount)
    except (AggregatorError, ValueError) as e:
        raise to_http_error(e)
    return {"success": True, "plan": plan.to_dict(), "reserves": [str(r) for r in reserves]}
