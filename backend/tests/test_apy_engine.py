"""
APY Engine Tests
================

- Method preference: on-chain profit > pool average > 7d extrapolation > baseline
- Clamping and the no-annualized-losses rule
- Every result carries its method

Run: python -m pytest tests/test_apy_engine.py -v --tb=short
"""

import logging

import pytest

from protocols.models import APYEstimate, APYMethod, ProtocolCategory, Strategy
from services.apy_engine import APYContext, APYEngine, baseline_for, weighted_average_apy


def make_strategy(total_asset=1000.0, profit=0.0, loss=0.0):
    return Strategy(
        address="0xstrategy",
        concrete_address="0xconcrete",
        name="Avalon",
        total_asset=total_asset,
        total_profit=profit,
        total_loss=loss,
    )


@pytest.fixture
def engine():
    return APYEngine(max_apy=150, strategy_age_days=75)


# =============================================================================
# TEST: ON-CHAIN PROFIT
# =============================================================================

class TestOnChainProfit:

    def test_annualized(self, engine):
        estimate = engine.estimate(APYContext(slug="canopy", strategies=[make_strategy(profit=10)]))

        assert estimate.method == APYMethod.ON_CHAIN_PROFIT
        assert estimate.confidence == "high"
        # 1% over 75 days
        assert estimate.value == pytest.approx(round(0.01 * 365 / 75 * 100, 2))

    def test_clamped_at_max(self, engine, caplog):
        with caplog.at_level(logging.WARNING, logger="APYEngine"):
            estimate = engine.estimate(APYContext(slug="canopy", strategies=[make_strategy(profit=500)]))

        assert estimate.value == 150.0, "❌ APY must never exceed the cap"
        assert "High APY" in caplog.text
        assert "capped" in estimate.note

    def test_loss_not_annualized(self, engine):
        estimate = engine.estimate(APYContext(slug="canopy", strategies=[make_strategy(profit=0, loss=20)]))

        assert estimate.value == -2.0
        assert estimate.method == APYMethod.ON_CHAIN_PROFIT

    def test_zero_profit(self, engine):
        estimate = engine.estimate(APYContext(slug="canopy", strategies=[make_strategy()]))
        assert estimate.value == 0.0

    def test_empty_strategy_falls_through(self, engine):
        context = APYContext(
            slug="canopy",
            strategies=[make_strategy(total_asset=0, profit=10)],
            pools=[{"apy": 7.0, "tvlUsd": 100}],
        )
        assert engine.estimate(context).method == APYMethod.TVL_WEIGHTED_POOL_AVERAGE

    def test_strategy_age_is_configurable(self):
        engine = APYEngine(strategy_age_days=365)
        estimate = engine.estimate(APYContext(slug="canopy", strategies=[make_strategy(profit=10)]))
        assert estimate.value == 1.0

    def test_invalid_age(self):
        with pytest.raises(ValueError):
            APYEngine(strategy_age_days=0)


# =============================================================================
# TEST: POOL AVERAGE
# =============================================================================

class TestPoolAverage:

    def test_tvl_weighted(self, engine):
        pools = [{"apy": 10.0, "tvlUsd": 100}, {"apy": 20.0, "tvlUsd": 300}]
        estimate = engine.estimate(APYContext(slug="meridian", pools=pools))

        assert estimate.value == 17.5
        assert estimate.method == APYMethod.TVL_WEIGHTED_POOL_AVERAGE

    def test_simple_mean_without_tvl(self, engine):
        pools = [{"apy": 10.0, "tvlUsd": 0}, {"apy": 20.0}]
        estimate = engine.estimate(APYContext(slug="meridian", pools=pools))

        assert estimate.value == 15.0
        assert estimate.method == APYMethod.SIMPLE_POOL_AVERAGE
        assert estimate.confidence == "medium"

    def test_pools_without_apy_ignored(self, engine):
        pools = [{"apy": None, "tvlUsd": 1_000_000}, {"apy": 4.0, "tvlUsd": 10}]
        assert engine.estimate(APYContext(slug="x", pools=pools)).value == 4.0


# =============================================================================
# TEST: 7D EXTRAPOLATION
# =============================================================================

class TestTvlExtrapolation:

    def test_flat_week(self, engine):
        estimate = engine.estimate(APYContext(slug="x", change_7d=0))
        assert estimate.value == 0.0
        assert estimate.method == APYMethod.EXTRAPOLATED_7D_CHANGE

    def test_total_loss(self, engine):
        assert engine.estimate(APYContext(slug="x", change_7d=-100)).value == -100.0

    def test_worse_than_total_loss_is_floored(self, engine):
        assert engine.estimate(APYContext(slug="x", change_7d=-250)).value == -100.0

    def test_compounded_not_linear(self, engine):
        estimate = engine.estimate(APYContext(slug="x", change_7d=1.0))
        expected = ((1.01) ** (365 / 7) - 1) * 100
        assert estimate.value == pytest.approx(expected, abs=0.01)
        assert estimate.value > 52.0

    def test_overflow_falls_through_to_baseline(self, engine):
        estimate = engine.estimate(APYContext(slug="x", category="Lending", change_7d=1e12))
        assert estimate.method == APYMethod.CATEGORY_BASELINE


# =============================================================================
# TEST: BASELINE / UNAVAILABLE
# =============================================================================

class TestBaseline:

    def test_range_not_number(self, engine):
        estimate = engine.estimate(APYContext(slug="echelon", category="Lending"))

        assert estimate.value is None, "❌ Baselines must never look like measurements"
        assert estimate.range == "3-12%"
        assert estimate.confidence == "low"
        assert estimate.display() == "3-12%"

    def test_defillama_label(self, engine):
        estimate = engine.estimate(APYContext(slug="x", category="Dexs"))
        assert estimate.range == "5-25%"

    def test_extra_labels(self):
        assert baseline_for("RWA")[0] == "5-15%"
        assert baseline_for(ProtocolCategory.LIQUID_STAKING)[0] == "5-10%"
        assert baseline_for("Gaming") is None

    def test_unavailable(self, engine):
        estimate = engine.estimate(APYContext(slug="mystery", category="Gaming"))

        assert estimate.method == APYMethod.UNAVAILABLE
        assert estimate.confidence == "none"
        assert estimate.display() == "N/A"

    def test_preference_order(self, engine):
        context = APYContext(
            slug="canopy",
            category="Yield Aggregator",
            strategies=[make_strategy(profit=10)],
            pools=[{"apy": 99.0, "tvlUsd": 1}],
            change_7d=5.0,
        )
        assert engine.estimate(context).method == APYMethod.ON_CHAIN_PROFIT


# =============================================================================
# TEST: COMBINE
# =============================================================================

class TestCombine:

    def test_weighted_average_helper(self):
        items = [
            (APYEstimate(5.0, APYMethod.ON_CHAIN_PROFIT, "high"), 100.0),
            (APYEstimate(15.0, APYMethod.ON_CHAIN_PROFIT, "high"), 300.0),
            (APYEstimate(None, APYMethod.CATEGORY_BASELINE, "low", range="8-15%"), 1000.0),
            (None, 50.0),
        ]
        assert weighted_average_apy(items) == 12.5

    def test_weighted_average_nothing_usable(self):
        assert weighted_average_apy([(APYEstimate.unavailable(), 100.0)]) is None

    def test_combine_uses_most_preferred_method(self, engine):
        items = [
            (APYEstimate(4.0, APYMethod.ON_CHAIN_PROFIT, "high"), 100.0),
            (APYEstimate(50.0, APYMethod.EXTRAPOLATED_7D_CHANGE, "medium"), 1000.0),
        ]
        combined = engine.combine(items)

        assert combined.method == APYMethod.ON_CHAIN_PROFIT
        assert combined.value == 4.0

    def test_combine_without_weights(self, engine):
        items = [
            (APYEstimate(4.0, APYMethod.ON_CHAIN_PROFIT, "high"), 0.0),
            (APYEstimate(6.0, APYMethod.ON_CHAIN_PROFIT, "high"), 0.0),
        ]
        assert engine.combine(items).value == 5.0

    def test_combine_nothing_numeric(self, engine):
        assert engine.combine([(APYEstimate.unavailable(), 10.0)]) is None
