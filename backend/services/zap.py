"""
Zap Service - single-sided liquidity for constant-product pools

Turns one token into an LP position: swap just enough of it that the
remainder matches the pool ratio after the swap's own price impact, then
add liquidity with both sides.

All amounts are raw on-chain integers. No floats anywhere in this module,
rounding errors here are paid by the user.

For a 0.3% fee pool (997/1000), the optimal swap s for deposit a into
reserve r is the positive root of

    997*s^2 + 1997*r*s - 1000*a*r = 0

    s = (isqrt(r * (3988009*r + 3988000*a)) - 1997*r) // 1994

This is the standard Uniswap-v2 single-sided zap root. The constants come
straight from the quadratic: 1997^2 = 3988009 and 4*997*1000 = 3988000,
with 2*997 as the divisor. A shortened "9*r" term in place of 3988009*r
makes the discriminant too small and the swap negative for ordinary
deposits.
"""

import logging
from typing import Any, Optional, Tuple

from config import settings
from config.contracts import NATIVE_COIN_TYPE
from protocols.errors import (
    PartialZapError,
    TransactionFailedError,
    ZapPreconditionError,
)
from protocols.models import ZapPlan, ZapResult
from protocols.router import ProtocolRouter, get_protocol, get_protocol_router

logger = logging.getLogger("Zap")

FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000
BPS = 10_000


def isqrt(value: int) -> int:
    """floor(sqrt(value)) by Newton's method, exact for any non-negative int"""
    if value < 0:
        raise ValueError("square root of negative number")
    if value < 2:
        return value

    x = value
    y = (x + 1) // 2
    while y < x:
        x = y
        y = (value // x + x) // 2
    return x


def calculate_optimal_swap(amount_in: int, reserve_in: int) -> int:
    """Amount of the input token to swap before adding liquidity"""
    if amount_in == 0:
        return 0

    a = 3988009 * reserve_in + 3988000 * amount_in
    b = isqrt(reserve_in * a)
    return (b - 1997 * reserve_in) // 1994


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """Constant-product output after the 0.3% fee"""
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    amount_in_with_fee = amount_in * FEE_NUMERATOR
    return (amount_in_with_fee * reserve_out) // (reserve_in * FEE_DENOMINATOR + amount_in_with_fee)


def plan_zap(
    token_in: str,
    token_out: str,
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    slippage_bps: int = settings.ZAP_SLIPPAGE_BPS,
) -> ZapPlan:
    """
    Raises:
        ZapPreconditionError: non-positive inputs, or an amount too small
            (or too large) to produce a usable swap
    """
    if amount_in <= 0:
        raise ZapPreconditionError("Zap amount must be positive")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ZapPreconditionError(f"Pool {token_in}/{token_out} has no liquidity")
    if not 0 <= slippage_bps < BPS:
        raise ZapPreconditionError(f"Slippage must be within [0, {BPS}) bps, got {slippage_bps}")

    swap_amount = calculate_optimal_swap(amount_in, reserve_in)
    if swap_amount <= 0:
        raise ZapPreconditionError("Amount too small to zap")
    if swap_amount >= amount_in:
        raise ZapPreconditionError(f"Swap amount {swap_amount} leaves nothing to deposit")

    expected_out = get_amount_out(swap_amount, reserve_in, reserve_out)
    if expected_out <= 0:
        raise ZapPreconditionError("Amount too small to zap")

    return ZapPlan(
        token_in=token_in,
        token_out=token_out,
        total_amount_in=amount_in,
        swap_amount=swap_amount,
        remaining_amount=amount_in - swap_amount,
        expected_out=expected_out,
        min_amount_out=expected_out * (BPS - slippage_bps) // BPS,
    )


async def execute_zap(plan: ZapPlan, router: ProtocolRouter, user: Optional[str] = None) -> ZapResult:
    """
    Swap, then add liquidity. The steps are separate transactions.

    Raises:
        TransactionFailedError: step "swap" failed, nothing changed on-chain
        PartialZapError: swap landed but add_liquidity failed; the user now
            holds the swapped tokens
    """
    logger.info(
        f"⚡ Zapping {plan.total_amount_in} {plan.token_in} -> "
        f"[{plan.token_in}-{plan.token_out}], swapping {plan.swap_amount}"
    )

    swap = await router.swap(plan.token_in, plan.token_out, plan.swap_amount, plan.min_amount_out, user)
    if not swap.success or not swap.hash:
        raise TransactionFailedError("swap", swap.error or "swap not confirmed", protocol="Meridian", tx_hash=swap.hash)

    # min_amount_out is what the swap guaranteed, so it is always available
    try:
        liquidity = await router.add_liquidity(
            plan.token_in,
            plan.token_out,
            plan.remaining_amount,
            plan.min_amount_out,
            user,
        )
    except Exception as e:
        logger.error(f"❌ Partial zap: swap {swap.hash} done, add_liquidity failed: {e}")
        raise PartialZapError(getattr(e, "reason", str(e)), swap_hash=swap.hash, protocol="Meridian") from e

    if not liquidity.success or not liquidity.hash:
        raise PartialZapError(liquidity.error or "add_liquidity not confirmed", swap_hash=swap.hash, protocol="Meridian")

    logger.info(f"✅ Zap complete: swap {swap.hash}, liquidity {liquidity.hash}")
    return ZapResult(swap_hash=swap.hash, liquidity_hash=liquidity.hash, plan=plan)


def counter_token(token_in: str) -> str:
    """MOVE pairs with USDC.e, everything else pairs with MOVE"""
    if token_in in ("MOVE", NATIVE_COIN_TYPE):
        return "USDC.e"
    return "MOVE"


class ZapService:
    def __init__(self, router: Optional[ProtocolRouter] = None, slippage_bps: int = settings.ZAP_SLIPPAGE_BPS):
        self.router = router or get_protocol_router()
        self.slippage_bps = slippage_bps

    async def quote(self, token_in: str, amount_in: Any) -> Tuple[ZapPlan, Tuple[int, int]]:
        amount = _parse_amount(amount_in)
        token_out = counter_token(token_in)
        reserves = await self.router.get_reserves(token_in, token_out)
        plan = plan_zap(token_in, token_out, amount, reserves[0], reserves[1], self.slippage_bps)
        return plan, reserves

    async def zap_in(self, protocol: str, token_in: str, amount_in: Any, user: Optional[str] = None) -> ZapResult:
        descriptor = get_protocol(protocol)
        if descriptor.type != "dex":
            raise ZapPreconditionError(f"Zap only supported for DEX protocols, not {descriptor.name}")

        plan, _ = await self.quote(token_in, amount_in)
        return await execute_zap(plan, self.router, user)


def _parse_amount(amount: Any) -> int:
    try:
        value = int(str(amount))
    except (TypeError, ValueError):
        raise ZapPreconditionError(f"Zap amount must be an integer in base units, got {amount!r}")
    return value


_zap_service: Optional[ZapService] = None


def get_zap_service() -> ZapService:
    global _zap_service
    if _zap_service is None:
        _zap_service = ZapService()
    return _zap_service
