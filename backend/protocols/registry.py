"""
Protocol/Address Registry + asset classifier

Single source of truth for protocol module addresses on Movement.
Everything that needs an address (router, fetchers, position attribution)
goes through here instead of reading config tables directly.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from config.contracts import (
    NATIVE_COIN_TYPE,
    CANOPY,
    ECHELON,
    MERIDIAN,
    TOKENS,
)
from protocols.errors import ResolutionError
from protocols.models import Protocol, ProtocolCategory, Vault

logger = logging.getLogger("Registry")


# ============================================
# PROTOCOL IDENTITIES
# ============================================

PROTOCOLS: Dict[str, Protocol] = {
    "canopy": Protocol(
        slug="canopy",
        display_name="Canopy",
        category=ProtocolCategory.YIELD_AGGREGATOR,
        module_addresses=(CANOPY["controller"], CANOPY["router"]),
    ),
    "echelon": Protocol(
        slug="echelon",
        display_name="Echelon",
        category=ProtocolCategory.LENDING,
        module_addresses=(ECHELON["core"],) + tuple(ECHELON["markets"].values()),
    ),
    "meridian": Protocol(
        slug="meridian",
        display_name="Meridian",
        category=ProtocolCategory.DEX,
        module_addresses=(MERIDIAN["router"],),
    ),
    "mst": Protocol(
        slug="mst",
        display_name="Meridian MST Staking",
        category=ProtocolCategory.LIQUID_STAKING,
        module_addresses=(MERIDIAN["mst_staking"],),
    ),
    "usdm": Protocol(
        slug="usdm",
        display_name="Meridian USDM",
        category=ProtocolCategory.STABLECOIN,
        module_addresses=(MERIDIAN["usdm"], MERIDIAN["stability_pool"]),
    ),
    "moveposition": Protocol(
        slug="moveposition",
        display_name="MovePosition",
        category=ProtocolCategory.LENDING,
    ),
}

# Slug -> module address for protocols addressed by a single module
_MODULE_ADDRESSES = {
    "canopy": CANOPY["controller"],
    "meridian": MERIDIAN["router"],
    "mst": MERIDIAN["mst_staking"],
    "usdm": MERIDIAN["stability_pool"],
}


# ============================================
# INVARIANT: one address per (protocol, asset)
# ============================================

def validate_addresses(entries: Iterable[Tuple[str, Optional[str], str]]) -> Dict[str, Tuple[str, Optional[str]]]:
    """
    Build an address -> (protocol, asset) index.
    Raises ValueError if one address is registered for two different owners.
    """
    owners: Dict[str, Tuple[str, Optional[str]]] = {}
    for protocol, asset, address in entries:
        key = address.lower()
        owner = (protocol, asset)
        existing = owners.get(key)
        if existing is not None and existing != owner:
            raise ValueError(
                f"Address {address} registered for both {existing[0]}/{existing[1]} and {protocol}/{asset}"
            )
        owners[key] = owner
    return owners


def _registry_entries() -> List[Tuple[str, Optional[str], str]]:
    entries: List[Tuple[str, Optional[str], str]] = [
        ("canopy", None, CANOPY["controller"]),
        ("canopy", "router", CANOPY["router"]),
        ("echelon", None, ECHELON["core"]),
        # Meridian modules all live under one account
        ("meridian", None, MERIDIAN["router"]),
    ]
    for name, address in CANOPY["strategies"].items():
        entries.append(("canopy", f"strategy:{name}", address))
    for asset, address in ECHELON["markets"].items():
        entries.append(("echelon", asset, address))
    return entries


ADDRESS_INDEX = validate_addresses(_registry_entries())


# ============================================
# RESOLUTION
# ============================================

def normalize_slug(slug: Optional[str]) -> str:
    return "".join(c for c in (slug or "").lower() if c.isalpha())


def echelon_markets() -> Dict[str, str]:
    return dict(ECHELON["markets"])


def _echelon_market(asset: Optional[str]) -> str:
    markets = ECHELON["markets"]
    if asset:
        for symbol, address in markets.items():
            if symbol.lower() == asset.lower():
                return address

    default = ECHELON["default_asset"]
    logger.info(f"Echelon has no market for '{asset}', using default {default} market")
    return markets[default]


def resolve(protocol_slug: str, asset: Optional[str] = None) -> str:
    """
    Resolve the on-chain address a call for (protocol, asset) should target.

    Echelon picks the per-asset market and falls back to the MOVE market for
    unknown assets. Other protocols are addressed by a single module address.
    Raises ResolutionError when nothing is registered.
    """
    slug = normalize_slug(protocol_slug)

    if slug == "echelon":
        return _echelon_market(asset)

    address = _MODULE_ADDRESSES.get(slug)
    if not address:
        raise ResolutionError(protocol_slug, asset)
    return address


def resolve_vault(asset: str, vaults: List[Vault]) -> Optional[Vault]:
    """Vault lookup needs an exact asset match; no default vault exists."""
    for vault in vaults:
        if vault.asset == asset:
            return vault
    return None


def token_address(symbol: str) -> Optional[str]:
    return TOKENS.get(symbol)


def strategy_name(address: Optional[str]) -> str:
    if address:
        for name, known in CANOPY["strategies"].items():
            if known.lower() == address.lower():
                return name
    return "Unknown Strategy"


# ============================================
# CLASSIFICATION
# ============================================

# First match wins; reordering changes results
CLASSIFICATION_ORDER = ("canopy", "echelon", "meridian", "native", "unknown")


def _matches(slug: str, asset_type: str) -> bool:
    if slug == "canopy":
        return CANOPY["controller"].lower() in asset_type
    if slug == "echelon":
        return any(address.lower() in asset_type for address in ECHELON["markets"].values())
    if slug == "meridian":
        return MERIDIAN["router"].lower() in asset_type
    if slug == "native":
        return asset_type == NATIVE_COIN_TYPE.lower()
    return True


def classify(asset_type: Optional[str]) -> str:
    """Attribute an asset-type string to a protocol slug, 'unknown' if nothing matches."""
    normalized = (asset_type or "").strip().lower()
    if not normalized:
        return "unknown"

    for slug in CLASSIFICATION_ORDER:
        if _matches(slug, normalized):
            return slug
    return "unknown"
