"""
Runtime settings loaded from the environment (.env supported).
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ============================================
# NETWORK ENDPOINTS
# ============================================

NETWORK_NAME = "Movement"
DEFAULT_CHAIN_ID = 126

MOVEMENT_RPC_URL = os.getenv("MOVEMENT_RPC_URL", "https://full.mainnet.movementinfra.xyz/v1")
MOVEMENT_GRAPHQL_URL = os.getenv(
    "MOVEMENT_GRAPHQL_URL",
    "https://indexer.mainnet.movementnetwork.xyz/v1/graphql"
)

DEFILLAMA_API_URL = os.getenv("DEFILLAMA_API_URL", "https://api.llama.fi")
DEFILLAMA_YIELDS_URL = os.getenv("DEFILLAMA_YIELDS_URL", "https://yields.llama.fi")
PYTH_HERMES_URL = os.getenv("PYTH_HERMES_URL", "https://hermes.pyth.network/api/latest_price_feeds")
COINGECKO_PRICE_URL = os.getenv("COINGECKO_PRICE_URL", "https://api.coingecko.com/api/v3/simple/price")

# ============================================
# TRANSACTIONS
# ============================================

# Signing relayer that holds the server key; this backend never sees it
TX_RELAYER_URL = os.getenv("TX_RELAYER_URL", "")
SERVER_ADDRESS = os.getenv("SERVER_ADDRESS", "")
SIMULATION_MODE = _env_bool("SIMULATION_MODE")

# ============================================
# TUNING
# ============================================

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "8"))
YIELDS_CACHE_TTL_SECONDS = float(os.getenv("YIELDS_CACHE_TTL_SECONDS", "300"))

# Profit-based APY is clamped to [0, APY_MAX_PERCENT]
APY_MAX_PERCENT = float(os.getenv("APY_MAX_PERCENT", "150"))
# Assumed strategy age when the real deployment date is unknown
STRATEGY_AGE_DAYS = float(os.getenv("STRATEGY_AGE_DAYS", "75"))

ZAP_SLIPPAGE_BPS = int(os.getenv("ZAP_SLIPPAGE_BPS", "50"))

PORT = int(os.getenv("PORT", "8000"))
