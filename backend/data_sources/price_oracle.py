"""
Price Oracle
Real-time USD prices: Pyth Hermes first, CoinGecko as fallback.

Features:
- Pyth confidence intervals (scaled by the feed exponent)
- Bridged token aliases (USDC.e -> USDC, ...)
- Partial results: one failing symbol never empties the whole price map
- No caching, a quote is only valid for the request that fetched it
"""

import asyncio
import logging
import time
from typing import Optional, Dict, Any, List

from config import settings
from config.contracts import PYTH_FEEDS, COINGECKO_IDS, PRICE_ALIASES, TRACKED_SYMBOLS
from data_sources.http_source import HTTPSource
from protocols.errors import SourceUnavailableError
from protocols.models import PriceQuote

logger = logging.getLogger("PriceOracle")


class PythClient(HTTPSource):
    SERVICE = "pyth"
    BASE_URL = settings.PYTH_HERMES_URL

    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        feed_id = PYTH_FEEDS.get(symbol)
        if not feed_id:
            return None

        try:
            data = await self._get_json("", params={"ids[]": feed_id})
            price_data = data[0]["price"]
            expo = int(price_data["expo"])
            scale = 10 ** expo
            return PriceQuote(
                symbol=symbol,
                usd=float(price_data["price"]) * scale,
                confidence=float(price_data.get("conf", 0)) * scale,
                observed_at=int(price_data["publish_time"]),
                source="pyth",
            )
        except SourceUnavailableError as e:
            logger.debug(f"Pyth unavailable for {symbol}: {e}")
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"Pyth returned malformed data for {symbol}: {e}")
        return None


class CoinGeckoClient(HTTPSource):
    SERVICE = "coingecko"
    BASE_URL = settings.COINGECKO_PRICE_URL

    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        coin_id = COINGECKO_IDS.get(symbol)
        if not coin_id:
            return None

        try:
            data = await self._get_json("", params={"ids": coin_id, "vs_currencies": "usd"})
            usd = (data.get(coin_id) or {}).get("usd")
        except SourceUnavailableError as e:
            logger.debug(f"CoinGecko unavailable for {symbol}: {e}")
            return None
        except AttributeError as e:
            logger.warning(f"CoinGecko returned malformed data for {symbol}: {e}")
            return None

        if not usd:
            return None

        return PriceQuote(
            symbol=symbol,
            usd=float(usd),
            confidence=0.0,
            observed_at=int(time.time()),
            source="coingecko",
        )


class PriceOracle:
    """
    Usage:
        oracle = PriceOracle()
        prices = await oracle.get_all_prices()   # {"BTC": PriceQuote, ...}
    """

    def __init__(self, pyth: Optional[PythClient] = None, coingecko: Optional[CoinGeckoClient] = None):
        self.pyth = pyth or PythClient()
        self.coingecko = coingecko or CoinGeckoClient()

    async def get_price(self, symbol: str) -> Optional[PriceQuote]:
        canonical = PRICE_ALIASES.get(symbol, symbol)

        quote = await self.pyth.get_price(canonical)
        if quote is None:
            quote = await self.coingecko.get_price(canonical)

        if quote is None:
            logger.warning(f"⚠️ No price for {symbol} from any source")
        return quote

    async def get_all_prices(self, symbols: Optional[List[str]] = None) -> Dict[str, PriceQuote]:
        """
        Prices for every tracked symbol plus bridged aliases.
        Symbols that fail (or raise) are left out; the rest are returned.
        """
        symbols = symbols or TRACKED_SYMBOLS
        results = await asyncio.gather(
            *(self.get_price(symbol) for symbol in symbols),
            return_exceptions=True
        )

        prices: Dict[str, PriceQuote] = {}
        for symbol, result in zip(symbols, results):
            if isinstance(result, Exception):
                logger.error(f"Price fetch for {symbol} raised: {result}")
                continue
            if result is not None:
                prices[symbol] = result

        for alias, canonical in PRICE_ALIASES.items():
            if canonical in prices:
                prices[alias] = prices[canonical]

        logger.info(f"💲 Prices: {len(prices)} symbols ({', '.join(sorted(prices))})")
        return prices

    async def get_usd_value(self, symbol: str, amount: float) -> Optional[Dict[str, Any]]:
        quote = await self.get_price(symbol)
        if quote is None:
            return None
        return {
            "amount": amount,
            "token": symbol,
            "price_usd": quote.usd,
            "value_usd": amount * quote.usd,
            "source": quote.source,
        }
