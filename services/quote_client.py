# services/quote_client.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Protocol
from urllib.parse import quote as urlquote

import httpx

from config.settings import DEFAULT_QUOTE_BASE_URL
from services.currency_service import infer_currency
from utils.common_helpers import safe_float, safe_json

logger = logging.getLogger(__name__)

# Yahoo rejects requests without a browser-like agent.
DEFAULT_HEADERS = {"User-Agent": "Mozilla/5.0"}


class QuoteFetchError(Exception):
    """The quote source was unreachable or returned unusable data."""


@dataclass(frozen=True)
class Quote:
    symbol: str
    price: float
    previous_close: float
    currency: str


class QuoteClient(Protocol):
    async def fetch(self, symbol: str) -> Quote: ...


def parse_chart_payload(symbol: str, data: Optional[Dict[str, Any]]) -> Quote:
    """
    Pull price / previous close / currency out of a chart v8 response:
      {"chart": {"result": [{"meta": {...}}], "error": null}}
    Raises QuoteFetchError for anything that is not a usable quote.
    """
    if not data:
        raise QuoteFetchError(f"{symbol}: empty or non-JSON payload")

    chart = data.get("chart")
    if not isinstance(chart, dict):
        raise QuoteFetchError(f"{symbol}: payload has no chart object")
    if chart.get("error"):
        raise QuoteFetchError(f"{symbol}: chart error {chart['error']!r}")

    results = chart.get("result")
    if not isinstance(results, list) or not results:
        raise QuoteFetchError(f"{symbol}: no results")

    first = results[0] if isinstance(results[0], dict) else {}
    meta = first.get("meta")
    if not isinstance(meta, dict):
        raise QuoteFetchError(f"{symbol}: result has no meta")

    price = safe_float(meta.get("regularMarketPrice"))
    if price is None or price <= 0:
        raise QuoteFetchError(f"{symbol}: price not available")

    previous_close = safe_float(meta.get("chartPreviousClose"))
    if previous_close is None:
        previous_close = safe_float(meta.get("previousClose"))
    if previous_close is None:
        previous_close = price

    currency = str(meta.get("currency") or "").strip().upper() or infer_currency(symbol)

    return Quote(symbol=symbol, price=price, previous_close=previous_close, currency=currency)


class YahooQuoteClient:
    """
    Async quote client over Yahoo's public chart endpoint.

    Pass a shared httpx.AsyncClient to reuse connections across a sweep; without
    one, each fetch opens (and closes) its own client.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        base_url: str = DEFAULT_QUOTE_BASE_URL,
        timeout: float = 5.0,
    ):
        self._shared = client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._shared is not None:
            yield self._shared
            return
        async with httpx.AsyncClient(timeout=self.timeout, headers=DEFAULT_HEADERS) as c:
            yield c

    def _url(self, symbol: str) -> str:
        return f"{self.base_url}/{urlquote(symbol, safe='.=^-')}"

    async def fetch(self, symbol: str) -> Quote:
        sym = (symbol or "").strip()
        if not sym:
            raise QuoteFetchError("Missing symbol")

        async with self._client() as c:
            try:
                r = await c.get(
                    self._url(sym),
                    params={"interval": "1d"},
                    headers=DEFAULT_HEADERS,
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                raise QuoteFetchError(f"{sym}: request failed: {e.__class__.__name__}") from e

            if r.status_code != 200:
                raise QuoteFetchError(f"{sym}: bad status {r.status_code}")

            return parse_chart_payload(sym, safe_json(r))
