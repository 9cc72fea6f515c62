"""
APY Estimation Engine
Produces one yield number per protocol/vault from whatever data exists.

Methods, in strict preference order (first with enough data wins):
1. On-chain profit      - vault strategy profit/loss, annualized and clamped
2. Pool average         - TVL-weighted over DefiLlama yield pools
                          (simple mean when total TVL is zero)
3. 7d TVL extrapolation - compounded: ((1 + c/100)^(365/7) - 1) * 100
4. Category baseline    - a typical range, never a single number

Every estimate carries its method so consumers can show provenance.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Iterable, Tuple

import numpy as np

from config import settings
from protocols.models import APYEstimate, APYMethod, ProtocolCategory, Strategy

logger = logging.getLogger("APYEngine")


# ============================================
# CATEGORY BASELINES
# ============================================

CATEGORY_BASELINES: Dict[ProtocolCategory, Tuple[str, str]] = {
    ProtocolCategory.YIELD_AGGREGATOR: ("8-15%", "Typical for yield aggregators"),
    ProtocolCategory.DEX: ("5-25%", "Varies by pool activity"),
    ProtocolCategory.LENDING: ("3-12%", "Supply APY varies by utilization"),
    ProtocolCategory.LIQUID_STAKING: ("5-10%", "Based on staking rewards"),
    ProtocolCategory.STABLECOIN: ("2-8%", "Stability pool and CDP rewards"),
}

# DefiLlama categories with no counterpart in ProtocolCategory
LABEL_BASELINES: Dict[str, Tuple[str, str]] = {
    "derivatives": ("5-20%", "Funding and LP fees, highly variable"),
    "nft lending": ("10-30%", "Illiquid collateral premium"),
    "rwa": ("5-15%", "Tracks off-chain yields"),
}


NUMERIC_METHODS = (
    APYMethod.ON_CHAIN_PROFIT,
    APYMethod.TVL_WEIGHTED_POOL_AVERAGE,
    APYMethod.SIMPLE_POOL_AVERAGE,
    APYMethod.EXTRAPOLATED_7D_CHANGE,
)


@dataclass
class APYContext:
    """Everything known about one protocol or vault at estimation time"""
    slug: str
    category: Optional[str] = None
    strategies: List[Strategy] = field(default_factory=list)
    pools: List[Dict[str, Any]] = field(default_factory=list)
    change_7d: Optional[float] = None


class APYEngine:
    """
    Usage:
        engine = APYEngine()
        estimate = engine.estimate(APYContext(slug="meridian", pools=pools))
        estimate.method  # APYMethod.TVL_WEIGHTED_POOL_AVERAGE
    """

    def __init__(
        self,
        max_apy: float = settings.APY_MAX_PERCENT,
        strategy_age_days: float = settings.STRATEGY_AGE_DAYS,
        min_apy: float = 0.0,
    ):
        if strategy_age_days <= 0:
            raise ValueError("strategy_age_days must be positive")
        self.max_apy = max_apy
        self.min_apy = min_apy
        self.strategy_age_days = strategy_age_days

    def estimate(self, context: APYContext) -> APYEstimate:
        for method in (self._from_profit, self._from_pools, self._from_tvl_change, self._from_category):
            estimate = method(context)
            if estimate is not None:
                return estimate
        return APYEstimate.unavailable()

    def combine(self, items: List[Tuple[APYEstimate, float]]) -> Optional[APYEstimate]:
        """
        Roll per-vault/per-market estimates up to one protocol estimate.
        Only estimates sharing the most preferred method present are averaged.
        """
        numeric = [(e, w) for e, w in items if e is not None and e.value is not None]
        for method in NUMERIC_METHODS:
            same = [(e, w) for e, w in numeric if e.method == method]
            if not same:
                continue
            value = weighted_average_apy(same)
            if value is None:
                value = round(float(np.mean([e.value for e, _ in same])), 2)
            return APYEstimate(
                value=value,
                method=method,
                confidence=same[0][0].confidence,
                note=f"TVL-weighted across {len(same)} of {len(items)} entries",
            )
        return None

    # ============================================
    # 1. ON-CHAIN PROFIT
    # ============================================

    def _from_profit(self, context: APYContext) -> Optional[APYEstimate]:
        if not context.strategies:
            return None
        strategy = context.strategies[0]
        if strategy.total_asset <= 0:
            return None

        net_profit = strategy.net_profit
        simple_return = net_profit / strategy.total_asset
        note = f"Real yield from {strategy.name} strategy"

        # Zero/negative periods are reported as-is, annualizing a loss means nothing
        if net_profit <= 0:
            return APYEstimate(
                value=round(simple_return * 100, 2),
                method=APYMethod.ON_CHAIN_PROFIT,
                confidence="high",
                note=f"{note} (no net profit yet)",
            )

        annualized = simple_return * (365 / self.strategy_age_days) * 100
        clamped = min(max(annualized, self.min_apy), self.max_apy)
        if annualized > self.max_apy:
            logger.warning(
                f"High APY detected: {strategy.name} {annualized:.2f}% (capped to {clamped:.2f}%)"
            )
            note = f"{note}, capped at {self.max_apy:g}%"

        return APYEstimate(
            value=round(clamped, 2),
            method=APYMethod.ON_CHAIN_PROFIT,
            confidence="high",
            note=note,
        )

    # ============================================
    # 2. POOL AVERAGE
    # ============================================

    def _from_pools(self, context: APYContext) -> Optional[APYEstimate]:
        pools = [p for p in context.pools if p.get("apy") is not None]
        if not pools:
            return None

        apys = np.array([float(p["apy"]) for p in pools])
        tvls = np.array([float(p.get("tvlUsd") or 0) for p in pools])
        total_tvl = float(tvls.sum())

        if total_tvl > 0:
            return APYEstimate(
                value=round(float(np.average(apys, weights=tvls)), 2),
                method=APYMethod.TVL_WEIGHTED_POOL_AVERAGE,
                confidence="high",
                note=f"TVL-weighted over {len(pools)} pools (${total_tvl:,.0f})",
            )

        return APYEstimate(
            value=round(float(apys.mean()), 2),
            method=APYMethod.SIMPLE_POOL_AVERAGE,
            confidence="medium",
            note=f"Simple average over {len(pools)} pools, no TVL data",
        )

    # ============================================
    # 3. 7D TVL EXTRAPOLATION
    # ============================================

    def _from_tvl_change(self, context: APYContext) -> Optional[APYEstimate]:
        if context.change_7d is None:
            return None

        # A week can lose at most everything
        weekly_return = max(float(context.change_7d) / 100, -1.0)
        try:
            apy = ((1 + weekly_return) ** (365 / 7) - 1) * 100
        except OverflowError:
            logger.debug(f"{context.slug}: 7d change {context.change_7d}% overflows extrapolation")
            return None

        return APYEstimate(
            value=round(apy, 2),
            method=APYMethod.EXTRAPOLATED_7D_CHANGE,
            confidence="medium",
            note=f"Extrapolated from 7d TVL change ({float(context.change_7d):.2f}%)",
        )

    # ============================================
    # 4. CATEGORY BASELINE
    # ============================================

    def _from_category(self, context: APYContext) -> Optional[APYEstimate]:
        baseline = baseline_for(context.category)
        if baseline is None:
            return None

        range_, note = baseline
        return APYEstimate(
            value=None,
            method=APYMethod.CATEGORY_BASELINE,
            confidence="low",
            note=note,
            range=range_,
        )


def baseline_for(category: Optional[str]) -> Optional[Tuple[str, str]]:
    if not category:
        return None
    if isinstance(category, ProtocolCategory):
        return CATEGORY_BASELINES.get(category)
    mapped = ProtocolCategory.from_label(category)
    if mapped is not None:
        return CATEGORY_BASELINES.get(mapped)
    return LABEL_BASELINES.get(category.strip().lower())


def weighted_average_apy(items: Iterable[Tuple[Optional[APYEstimate], float]]) -> Optional[float]:
    """TVL-weighted mean of numeric estimates; None when nothing has a value and weight."""
    values, weights = [], []
    for estimate, weight in items:
        if estimate is None or estimate.value is None or not weight or weight <= 0:
            continue
        values.append(estimate.value)
        weights.append(weight)

    if not weights:
        return None
    return round(float(np.average(values, weights=weights)), 2)


_engine: Optional[APYEngine] = None


def get_apy_engine() -> APYEngine:
    global _engine
    if _engine is None:
        _engine = APYEngine()
    return _engine
