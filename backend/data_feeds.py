"""
Price snapshot feed for the token basket.
Polls the CoinGecko simple price endpoint once per tick.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Any

import aiohttp

from config import CoinGeckoAPI, TOKEN_IDS

logger = logging.getLogger(__name__)

# Per-request timeout; a slow provider costs one tick, not the loop
REQUEST_TIMEOUT_SEC = 10.0


# ============================================================================
# DATA MODELS
# ============================================================================

@dataclass
class PriceQuote:
    """Provider quote for one symbol"""
    symbol: str
    price: float       # USD
    change_24h: float  # % change over 24h


class PriceFeedError(Exception):
    """Price snapshot could not be fetched or parsed"""


# ============================================================================
# PARSING
# ============================================================================

def _to_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def parse_simple_price(data: Any, token_ids: dict[str, str]) -> dict[str, PriceQuote]:
    """
    Convert a simple/price payload into symbol -> PriceQuote.

    Missing ids or fields become 0 so the rest of the basket still trades.
    Raises PriceFeedError if the payload is not an object.
    """
    if not isinstance(data, dict):
        raise PriceFeedError(f"Unexpected payload type: {type(data).__name__}")

    vs = CoinGeckoAPI.VS_CURRENCY
    snapshot = {}
    for token_id, symbol in token_ids.items():
        entry = data.get(token_id)
        if not isinstance(entry, dict):
            entry = {}
        snapshot[symbol] = PriceQuote(
            symbol=symbol,
            price=_to_float(entry.get(vs)),
            change_24h=_to_float(entry.get(f"{vs}_24h_change")),
        )
    return snapshot


# ============================================================================
# COINGECKO FEED
# ============================================================================

class CoinGeckoFeed:
    """
    Best-effort price snapshot provider.

    One attempt per call, no retries: the scheduler skips the tick on failure.
    """

    def __init__(
        self,
        token_ids: Optional[dict[str, str]] = None,
        url: str = CoinGeckoAPI.SIMPLE_PRICE,
        timeout_sec: float = REQUEST_TIMEOUT_SEC,
    ):
        self.token_ids = dict(token_ids or TOKEN_IDS)  # CoinGecko id -> symbol
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self._session: Optional[aiohttp.ClientSession] = None

    def _build_params(self) -> dict:
        return {
            "ids": ",".join(self.token_ids.keys()),
            "vs_currencies": CoinGeckoAPI.VS_CURRENCY,
            "include_24hr_change": "true",
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def fetch_snapshot(self) -> dict[str, PriceQuote]:
        """Fetch the latest price and 24h change for every token"""
        session = await self._get_session()
        async with session.get(self.url, params=self._build_params()) as resp:
            if resp.status != 200:
                raise PriceFeedError(f"HTTP {resp.status} from price provider")
            try:
                data = await resp.json(content_type=None)
            except ValueError as e:
                raise PriceFeedError(f"Invalid JSON from price provider: {e}") from e

        snapshot = parse_simple_price(data, self.token_ids)
        missing = [s for s, q in snapshot.items() if q.price <= 0]
        if missing:
            logger.warning(f"No price for: {', '.join(missing)}")
        return snapshot

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


# Errors a tick tolerates from the feed
FETCH_ERRORS = (PriceFeedError, aiohttp.ClientError, asyncio.TimeoutError)
