"""
Aggregation, APY estimation and zap services
"""

from .apy_engine import APYEngine, APYContext, get_apy_engine, weighted_average_apy
from .aggregator import DefiAggregator, get_aggregator
from .zap import ZapService, get_zap_service, isqrt, calculate_optimal_swap, plan_zap, execute_zap

__all__ = [
    # APY
    "APYEngine",
    "APYContext",
    "get_apy_engine",
    "weighted_average_apy",

    # Aggregation
    "DefiAggregator",
    "get_aggregator",

    # Zap
    "ZapService",
    "get_zap_service",
    "isqrt",
    "calculate_optimal_swap",
    "plan_zap",
    "execute_zap",
]
