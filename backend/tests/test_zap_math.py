"""
Zap Optimizer Math Tests
========================

- Integer square root is an exact floor for any size of input
- Optimal swap amount solves the fee-adjusted constant-product quadratic
- Zap plans refuse amounts too small to produce a swap

Run: python -m pytest tests/test_zap_math.py -v --tb=short
"""

import random

import pytest

from protocols.errors import ZapPreconditionError
from services.zap import isqrt, calculate_optimal_swap, get_amount_out, plan_zap


def zap_quadratic(s: int, a: int, r: int) -> int:
    """997*s^2 + 1997*r*s - 1000*a*r, zero at the optimal swap"""
    return 997 * s * s + 1997 * r * s - 1000 * a * r


# =============================================================================
# TEST: ISQRT
# =============================================================================

class TestIsqrt:
    """Newton's method integer square root"""

    def test_small_values(self):
        assert [isqrt(x) for x in range(10)] == [0, 1, 1, 1, 2, 2, 2, 2, 2, 3]

    def test_zero(self):
        assert isqrt(0) == 0

    def test_floor_property_exhaustive_small(self):
        for x in range(5000):
            root = isqrt(x)
            assert root * root <= x < (root + 1) ** 2, f"❌ isqrt({x}) = {root}"

    def test_floor_property_large_random(self):
        rng = random.Random(1337)
        for bits in (53, 64, 128, 256, 512, 1024):
            for _ in range(50):
                x = rng.getrandbits(bits)
                root = isqrt(x)
                assert root * root <= x < (root + 1) ** 2, f"❌ isqrt failed for {bits}-bit value"

    def test_perfect_squares_and_neighbours(self):
        for n in (1, 2, 10, 99_999, 10 ** 18, 2 ** 64 - 1, 10 ** 40 + 7):
            square = n * n
            assert isqrt(square) == n
            assert isqrt(square - 1) == n - 1
            assert isqrt(square + 1) == n

    def test_negative_raises(self):
        with pytest.raises(ValueError):
            isqrt(-1)


# =============================================================================
# TEST: OPTIMAL SWAP
# =============================================================================

class TestOptimalSwap:
    """Closed-form optimal swap for single-sided liquidity"""

    def test_reference_scenario(self):
        amount_in, reserve_in = 1_000_000, 50_000_000
        s = calculate_optimal_swap(amount_in, reserve_in)

        assert 0 < s < amount_in, f"❌ swap amount {s} out of range"
        # s is the floor of the real root, so the root lies in (s - 1, s + 2)
        assert zap_quadratic(s, amount_in, reserve_in) <= 0
        assert zap_quadratic(s + 2, amount_in, reserve_in) > 0

    def test_small_deposit_swaps_about_half(self):
        s = calculate_optimal_swap(1_000_000, 50_000_000)
        assert 490_000 < s < 510_000

    def test_quadratic_holds_across_pool_sizes(self):
        rng = random.Random(42)
        for _ in range(300):
            reserve = rng.randint(10 ** 3, 10 ** 24)
            amount = rng.randint(1, 10 ** 22)
            s = calculate_optimal_swap(amount, reserve)
            if s <= 0:
                continue
            assert zap_quadratic(s, amount, reserve) <= 0, f"❌ overshoot a={amount} r={reserve}"
            assert zap_quadratic(s + 2, amount, reserve) > 0, f"❌ undershoot a={amount} r={reserve}"
            assert s < amount

    def test_matches_quadratic_formula(self):
        """Same result as the textbook root with the fee written out"""
        rng = random.Random(7)
        for _ in range(100):
            a = rng.randint(1, 10 ** 20)
            r = rng.randint(1, 10 ** 24)
            discriminant = (1997 * r) ** 2 + 4 * 997 * 1000 * a * r
            expected = (isqrt(discriminant) - 1997 * r) // (2 * 997)
            assert calculate_optimal_swap(a, r) == expected, f"❌ a={a} r={r}"

    def test_remainder_matches_post_swap_ratio(self):
        a, r = 10 ** 12, 10 ** 15
        s = calculate_optimal_swap(a, r)
        # (a - s) / (r + s) == 997s / 1000r at the optimum
        lhs = (a - s) * 1000 * r
        rhs = 997 * s * (r + s)
        assert abs(lhs - rhs) / rhs < 1e-6

    def test_zero_amount(self):
        assert calculate_optimal_swap(0, 50_000_000) == 0

    def test_dust_amount_yields_zero(self):
        assert calculate_optimal_swap(1, 10 ** 12) == 0


# =============================================================================
# TEST: AMOUNT OUT
# =============================================================================

class TestAmountOut:

    def test_fee_applied(self):
        assert get_amount_out(1000, 1_000_000, 1_000_000) == 996

    def test_empty_pool(self):
        assert get_amount_out(1000, 0, 1_000_000) == 0


# =============================================================================
# TEST: PLAN
# =============================================================================

class TestPlanZap:

    def test_plan_fields(self):
        plan = plan_zap("MOVE", "USDC.e", 1_000_000, 50_000_000, 25_000_000, slippage_bps=50)

        assert plan.swap_amount == calculate_optimal_swap(1_000_000, 50_000_000)
        assert plan.remaining_amount == 1_000_000 - plan.swap_amount
        assert plan.expected_out == get_amount_out(plan.swap_amount, 50_000_000, 25_000_000)
        assert plan.min_amount_out == plan.expected_out * 9950 // 10000
        assert plan.min_amount_out <= plan.expected_out

    def test_plan_serializes_amounts_as_strings(self):
        plan = plan_zap("MOVE", "USDC.e", 1_000_000, 50_000_000, 25_000_000)
        data = plan.to_dict()
        assert data["total_amount_in"] == "1000000"
        assert data["token_in"] == "MOVE"

    def test_amount_too_small(self):
        with pytest.raises(ZapPreconditionError, match="too small"):
            plan_zap("MOVE", "USDC.e", 1, 10 ** 12, 10 ** 12)

    @pytest.mark.parametrize("amount,reserve_in,reserve_out", [
        (0, 50_000_000, 50_000_000),
        (-5, 50_000_000, 50_000_000),
        (1_000_000, 0, 50_000_000),
        (1_000_000, 50_000_000, 0),
    ])
    def test_non_positive_inputs(self, amount, reserve_in, reserve_out):
        with pytest.raises(ZapPreconditionError):
            plan_zap("MOVE", "USDC.e", amount, reserve_in, reserve_out)

    def test_bad_slippage(self):
        with pytest.raises(ZapPreconditionError):
            plan_zap("MOVE", "USDC.e", 1_000_000, 50_000_000, 50_000_000, slippage_bps=10_000)

    def test_precondition_is_value_error(self):
        with pytest.raises(ValueError):
            plan_zap("MOVE", "USDC.e", 0, 1, 1)
