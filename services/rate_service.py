# services/rate_service.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Optional, Tuple

from services.currency_service import BASE_CURRENCY
from services.quote_client import QuoteClient, QuoteFetchError

logger = logging.getLogger(__name__)

# Yahoo FX symbols: "INR=X" is one USD in INR, "SGD=X" one USD in SGD.
FX_SYMBOLS: Dict[str, str] = {"INR": "INR=X", "SGD": "SGD=X"}

DEFAULT_FALLBACKS: Dict[str, float] = {"INR": 87.0, "SGD": 1.36}


class RateProvider:
    """
    Display-only FX rates against USD. Never raises: any pair that cannot be
    fetched (or comes back as zero) is replaced by its fallback constant.
    """

    def __init__(
        self,
        quote_client: QuoteClient,
        *,
        fallbacks: Optional[Dict[str, float]] = None,
        ttl_seconds: int = 0,
    ):
        self.quote_client = quote_client
        self.fallbacks = {**DEFAULT_FALLBACKS, **(fallbacks or {})}
        self.ttl_seconds = max(0, int(ttl_seconds))
        # ccy -> (expires_at, rate); only live values are cached
        self._cache: Dict[str, Tuple[float, float]] = {}

    def _cached(self, ccy: str) -> Optional[float]:
        hit = self._cache.get(ccy)
        if not hit:
            return None
        expires_at, rate = hit
        if time.monotonic() < expires_at:
            return rate
        self._cache.pop(ccy, None)
        return None

    async def _live_rate(self, ccy: str) -> Optional[float]:
        cached = self._cached(ccy)
        if cached is not None:
            return cached

        symbol = FX_SYMBOLS[ccy]
        try:
            q = await self.quote_client.fetch(symbol)
        except QuoteFetchError as e:
            logger.warning("fx_fetch_failed symbol=%s reason=%s", symbol, e)
            return None
        except Exception:
            # e.g. the shared httpx client already closed during shutdown
            logger.error("fx_fetch_crashed symbol=%s", symbol, exc_info=True)
            return None

        if not q.price or q.price <= 0:
            logger.warning("fx_fetch_failed symbol=%s reason=zero_rate", symbol)
            return None

        if self.ttl_seconds:
            self._cache[ccy] = (time.monotonic() + self.ttl_seconds, q.price)
        return q.price

    async def rates(self) -> Dict[str, float]:
        currencies = list(FX_SYMBOLS)
        live = await asyncio.gather(*(self._live_rate(ccy) for ccy in currencies))

        out: Dict[str, float] = {BASE_CURRENCY: 1.0}
        for ccy, rate in zip(currencies, live):
            if rate is None:
                rate = self.fallbacks[ccy]
                logger.info("fx_fallback_used currency=%s rate=%s", ccy, rate)
            out[ccy] = float(rate)
        return out
