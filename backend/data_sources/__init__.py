"""
Data Sources Package
Upstream readers for Movement protocol, TVL, yield and price data
"""

from .defillama import DefiLlamaClient
from .defillama_yields import DefiLlamaYieldsClient
from .movement_rpc import MovementRPCClient
from .indexer import IndexerClient
from .price_oracle import PriceOracle, PythClient, CoinGeckoClient
from .canopy import CanopyFetcher, parse_vaults
from .echelon import EchelonFetcher
from .meridian import MeridianFetcher

__all__ = [
    "DefiLlamaClient",
    "DefiLlamaYieldsClient",
    "MovementRPCClient",
    "IndexerClient",
    "PriceOracle",
    "PythClient",
    "CoinGeckoClient",
    "CanopyFetcher",
    "parse_vaults",
    "EchelonFetcher",
    "MeridianFetcher",
]
