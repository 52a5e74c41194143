"""
Quote service.

Thin async client over the public price APIs:
- spot price for one symbol (CryptoCompare style: {"USD": 123.45})
- the asset list the lobby picks from (CoinGecko markets style)

Every failure mode (transport error, timeout, non-2xx, bad JSON, missing
or non-numeric price) surfaces as QuoteFetchError so the race lifecycle
only has one thing to catch.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from core.exceptions import QuoteFetchError
from database import get_settings
from schemas import CryptoAsset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    symbol: str
    price: float
    timestamp: datetime


class QuoteSource:
    def __init__(
        self,
        quote_url: Optional[str] = None,
        assets_url: Optional[str] = None,
        price_field: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.quote_url = quote_url or settings.quote_api_url
        self.assets_url = assets_url or settings.assets_api_url
        self.price_field = price_field or settings.quote_price_field
        self.timeout = timeout if timeout is not None else settings.quote_timeout_seconds
        self.assets_limit = settings.assets_limit
        # tests inject httpx.MockTransport here
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def fetch_price(self, symbol: str) -> Quote:
        """Fetch the current USD spot price for `symbol`."""
        if not symbol:
            raise QuoteFetchError(symbol, "no symbol selected")
        symbol = symbol.upper()

        try:
            async with self._client() as client:
                resp = await client.get(
                    self.quote_url,
                    params={"fsym": symbol, "tsyms": self.price_field},
                )
        except httpx.TimeoutException:
            raise QuoteFetchError(symbol, f"timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            raise QuoteFetchError(symbol, f"transport error: {e}")

        if resp.status_code < 200 or resp.status_code >= 300:
            raise QuoteFetchError(symbol, f"HTTP error status {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            raise QuoteFetchError(symbol, "response is not JSON")

        price = data.get(self.price_field) if isinstance(data, dict) else None
        if price is None:
            raise QuoteFetchError(symbol, "price data not available")
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise QuoteFetchError(symbol, f"price {price!r} is not a number")

        quote = Quote(symbol=symbol, price=float(price), timestamp=datetime.now(timezone.utc))
        logger.debug(f"Fetched price for {symbol}: ${quote.price} at {quote.timestamp.isoformat()}")
        return quote

    async def list_assets(self) -> List[CryptoAsset]:
        """Top assets by market cap for the lobby picker."""
        params = {
            "vs_currency": "usd",
            "order": "market_cap_desc",
            "per_page": self.assets_limit,
            "page": 1,
            "sparkline": "false",
        }
        try:
            async with self._client() as client:
                resp = await client.get(self.assets_url, params=params)
            resp.raise_for_status()
            rows = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise QuoteFetchError("*", f"asset list unavailable: {e}")

        if not isinstance(rows, list):
            raise QuoteFetchError("*", "asset list response is not a list")

        assets = []
        for row in rows:
            if not isinstance(row, dict) or not row.get("id") or not row.get("symbol"):
                continue
            assets.append(CryptoAsset(
                id=row["id"],
                name=row.get("name") or row["id"],
                symbol=row["symbol"].upper(),
                image=row.get("image"),
            ))
        return assets
