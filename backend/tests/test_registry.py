"""
Registry & Classifier Tests
===========================

- resolve(): per-asset Echelon markets, MOVE default, loud failure when nothing is registered
- resolve_vault(): exact match only
- classify(): fixed precedence, case-insensitive, 'unknown' as the catch-all
- Address uniqueness is checked when the registry loads

Run: python -m pytest tests/test_registry.py -v --tb=short
"""

import pytest

from config.contracts import CANOPY, ECHELON, MERIDIAN, NATIVE_COIN_TYPE
from protocols import registry
from protocols.errors import ResolutionError
from protocols.models import Vault


# =============================================================================
# TEST: RESOLVE
# =============================================================================

class TestResolve:

    def test_echelon_market_per_asset(self):
        assert registry.resolve("echelon", "USDC") == ECHELON["markets"]["USDC"]

    def test_echelon_asset_case_insensitive(self):
        assert registry.resolve("echelon", "weth") == ECHELON["markets"]["wETH"]

    def test_echelon_unknown_asset_defaults_to_move(self):
        assert registry.resolve("echelon", "DOGE") == ECHELON["markets"]["MOVE"]
        assert registry.resolve("echelon") == ECHELON["markets"]["MOVE"]

    def test_module_addresses(self):
        assert registry.resolve("canopy") == CANOPY["controller"]
        assert registry.resolve("meridian") == MERIDIAN["router"]
        assert registry.resolve("usdm") == MERIDIAN["stability_pool"]

    def test_slug_normalized(self):
        assert registry.resolve("  Canopy! ") == CANOPY["controller"]

    def test_unregistered_protocol_raises(self):
        with pytest.raises(ResolutionError) as exc_info:
            registry.resolve("moveposition", "USDC")

        assert exc_info.value.protocol == "moveposition"
        assert exc_info.value.asset == "USDC"

    def test_unknown_protocol_raises(self):
        """Unknown protocols never silently get an address"""
        with pytest.raises(ResolutionError):
            registry.resolve("notaprotocol")


class TestResolveVault:

    def test_exact_match(self):
        vaults = [
            Vault(asset="USDCx", address="0xa", decimals=6, tvl=1.0),
            Vault(asset="USDC", address="0xb", decimals=6, tvl=2.0),
        ]
        assert registry.resolve_vault("USDC", vaults).address == "0xb"

    def test_no_partial_or_default(self):
        vaults = [Vault(asset="USDC", address="0xb", decimals=6, tvl=2.0)]
        assert registry.resolve_vault("usd", vaults) is None
        assert registry.resolve_vault("MOVE", vaults) is None
        assert registry.resolve_vault("USDC", []) is None


# =============================================================================
# TEST: CLASSIFY
# =============================================================================

class TestClassify:

    def test_echelon_market_address(self):
        asset_type = f"{ECHELON['markets']['USDC']}::lending::Share"
        assert registry.classify(asset_type) == "echelon"

    def test_case_insensitive(self):
        asset_type = f"{ECHELON['markets']['USDC'].upper()}::LENDING::SHARE"
        assert registry.classify(asset_type) == "echelon"

    def test_canopy(self):
        assert registry.classify(f"{CANOPY['controller']}::vault::Share") == "canopy"

    def test_meridian(self):
        assert registry.classify(f"{MERIDIAN['router']}::pool::LP") == "meridian"

    def test_native(self):
        assert registry.classify(NATIVE_COIN_TYPE) == "native"

    def test_native_requires_equality(self):
        assert registry.classify(f"{NATIVE_COIN_TYPE}Wrapper") == "unknown"

    def test_unknown(self):
        assert registry.classify("0xdeadbeef::coin::Coin") == "unknown"

    @pytest.mark.parametrize("value", ["", None, "   "])
    def test_empty(self, value):
        assert registry.classify(value) == "unknown"

    def test_first_match_wins(self):
        """Types naming both a Canopy and an Echelon address go to Canopy"""
        asset_type = f"{CANOPY['controller']}::vault::Share<{ECHELON['markets']['MOVE']}::lending::Share>"
        assert registry.classify(asset_type) == "canopy"

    def test_order_is_fixed(self):
        assert registry.CLASSIFICATION_ORDER == ("canopy", "echelon", "meridian", "native", "unknown")


# =============================================================================
# TEST: ADDRESS UNIQUENESS
# =============================================================================

class TestValidateAddresses:

    def test_conflicting_owner_rejected(self):
        entries = [
            ("echelon", "USDC", "0xabc"),
            ("echelon", "USDT", "0xABC"),
        ]
        with pytest.raises(ValueError, match="registered for both"):
            registry.validate_addresses(entries)

    def test_repeated_identical_entry_allowed(self):
        entries = [("canopy", None, "0x1"), ("canopy", None, "0x1")]
        assert registry.validate_addresses(entries) == {"0x1": ("canopy", None)}

    def test_loaded_index(self):
        address = ECHELON["markets"]["sUSDe"].lower()
        assert registry.ADDRESS_INDEX[address] == ("echelon", "sUSDe")


class TestStrategyName:

    def test_known(self):
        assert registry.strategy_name(CANOPY["strategies"]["Avalon"].upper()) == "Avalon"

    def test_unknown(self):
        assert registry.strategy_name("0x0") == "Unknown Strategy"
        assert registry.strategy_name(None) == "Unknown Strategy"
