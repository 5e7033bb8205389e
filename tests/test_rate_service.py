import asyncio
import unittest
from unittest.mock import patch

import httpx

from services.quote_client import Quote, QuoteFetchError, YahooQuoteClient
from services.rate_service import RateProvider


class _FakeQuoteClient:
    def __init__(self, prices=None):
        self.prices = prices or {}
        self.calls = []

    async def fetch(self, symbol: str) -> Quote:
        self.calls.append(symbol)
        price = self.prices.get(symbol)
        if price is None:
            raise QuoteFetchError(f"{symbol}: unreachable")
        return Quote(symbol, price, price, "USD")


class TestRateProvider(unittest.TestCase):
    def test_everything_unreachable_uses_fallbacks(self):
        rates = asyncio.run(RateProvider(_FakeQuoteClient()).rates())

        self.assertEqual(rates, {"USD": 1.0, "INR": 87.0, "SGD": 1.36})
        self.assertIs(type(rates["USD"]), float)

    def test_live_values_are_used(self):
        client = _FakeQuoteClient({"INR=X": 83.25, "SGD=X": 1.34})
        rates = asyncio.run(RateProvider(client).rates())

        self.assertEqual(rates, {"USD": 1.0, "INR": 83.25, "SGD": 1.34})
        self.assertEqual(sorted(client.calls), ["INR=X", "SGD=X"])

    def test_each_pair_falls_back_independently(self):
        rates = asyncio.run(RateProvider(_FakeQuoteClient({"SGD=X": 1.31})).rates())
        self.assertEqual(rates["INR"], 87.0)
        self.assertEqual(rates["SGD"], 1.31)

    def test_zero_rate_is_treated_as_unavailable(self):
        rates = asyncio.run(RateProvider(_FakeQuoteClient({"INR=X": 0.0, "SGD=X": 1.3})).rates())
        self.assertEqual(rates["INR"], 87.0)

    def test_unexpected_client_error_uses_fallbacks(self):
        class _ClosedClient:
            async def fetch(self, symbol):
                raise RuntimeError("Cannot send a request, as the client has been closed.")

        with self.assertLogs("services.rate_service", level="ERROR"):
            rates = asyncio.run(RateProvider(_ClosedClient()).rates())

        self.assertEqual(rates, {"USD": 1.0, "INR": 87.0, "SGD": 1.36})

    def test_closed_http_client_uses_fallbacks(self):
        async def scenario():
            client = httpx.AsyncClient()
            await client.aclose()
            return await RateProvider(YahooQuoteClient(client)).rates()

        self.assertEqual(asyncio.run(scenario()), {"USD": 1.0, "INR": 87.0, "SGD": 1.36})

    def test_custom_fallbacks(self):
        provider = RateProvider(_FakeQuoteClient(), fallbacks={"INR": 90.0})
        rates = asyncio.run(provider.rates())
        self.assertEqual(rates["INR"], 90.0)
        self.assertEqual(rates["SGD"], 1.36)


class TestRateProviderCache(unittest.TestCase):
    def test_live_values_cached_within_ttl(self):
        client = _FakeQuoteClient({"INR=X": 83.0, "SGD=X": 1.35})
        provider = RateProvider(client, ttl_seconds=60)

        with patch("services.rate_service.time") as clock:
            clock.monotonic.return_value = 1000.0
            asyncio.run(provider.rates())
            client.prices = {"INR=X": 99.0, "SGD=X": 9.9}
            rates = asyncio.run(provider.rates())

        self.assertEqual(rates["INR"], 83.0)
        self.assertEqual(len(client.calls), 2)

    def test_expired_entries_are_refetched(self):
        client = _FakeQuoteClient({"INR=X": 83.0, "SGD=X": 1.35})
        provider = RateProvider(client, ttl_seconds=60)

        with patch("services.rate_service.time") as clock:
            clock.monotonic.return_value = 1000.0
            asyncio.run(provider.rates())
        client.prices = {"INR=X": 84.0, "SGD=X": 1.36}
        with patch("services.rate_service.time") as clock:
            clock.monotonic.return_value = 1061.0
            rates = asyncio.run(provider.rates())

        self.assertEqual(rates["INR"], 84.0)
        self.assertEqual(len(client.calls), 4)

    def test_fallbacks_are_not_cached(self):
        client = _FakeQuoteClient()
        provider = RateProvider(client, ttl_seconds=60)

        self.assertEqual(asyncio.run(provider.rates())["INR"], 87.0)
        client.prices = {"INR=X": 82.0, "SGD=X": 1.3}
        self.assertEqual(asyncio.run(provider.rates())["INR"], 82.0)

    def test_no_ttl_means_no_cache(self):
        client = _FakeQuoteClient({"INR=X": 83.0, "SGD=X": 1.35})
        provider = RateProvider(client)

        asyncio.run(provider.rates())
        asyncio.run(provider.rates())

        self.assertEqual(len(client.calls), 4)


if __name__ == "__main__":
    unittest.main()
