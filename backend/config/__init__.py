# Config package
from config.contracts import (
    NATIVE_COIN_TYPE,
    CANOPY,
    ECHELON,
    MERIDIAN,
    MERIDIAN_PAIRS,
    TOKENS,
    PYTH_FEEDS,
    COINGECKO_IDS,
    PRICE_ALIASES,
    TRACKED_SYMBOLS,
)
from config import settings
