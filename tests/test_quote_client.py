import asyncio
import unittest

import httpx

from services.quote_client import QuoteFetchError, YahooQuoteClient, parse_chart_payload

BASE_URL = "https://quotes.example/v8/finance/chart"


def _chart(meta=None, *, results=None, error=None):
    if results is None:
        results = [{"meta": meta or {}}]
    return {"chart": {"result": results, "error": error}}


def _fetch(handler, symbol):
    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as c:
            return await YahooQuoteClient(c, base_url=BASE_URL, timeout=1.0).fetch(symbol)

    return asyncio.run(_run())


class TestYahooQuoteClient(unittest.TestCase):
    def test_fetch_parses_meta(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["ua"] = request.headers.get("user-agent")
            return httpx.Response(
                200,
                json=_chart({"regularMarketPrice": 2951.5, "chartPreviousClose": 2930.0, "currency": "inr"}),
            )

        q = _fetch(handler, "RELIANCE.NS")

        self.assertEqual(q.symbol, "RELIANCE.NS")
        self.assertEqual(q.price, 2951.5)
        self.assertEqual(q.previous_close, 2930.0)
        self.assertEqual(q.currency, "INR")
        self.assertEqual(seen["url"].path, "/v8/finance/chart/RELIANCE.NS")
        self.assertEqual(seen["url"].params.get("interval"), "1d")
        self.assertEqual(seen["ua"], "Mozilla/5.0")

    def test_fx_symbol_kept_in_path(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return httpx.Response(200, json=_chart({"regularMarketPrice": 83.2, "currency": "INR"}))

        q = _fetch(handler, "INR=X")
        self.assertEqual(seen["path"], "/v8/finance/chart/INR=X")
        self.assertEqual(q.price, 83.2)

    def test_non_200_is_fetch_error(self):
        def handler(request):
            return httpx.Response(404, json={"chart": {"result": None, "error": {"code": "Not Found"}}})

        with self.assertRaises(QuoteFetchError):
            _fetch(handler, "NOPE")

    def test_network_error_is_fetch_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(QuoteFetchError):
            _fetch(handler, "AAPL")

    def test_timeout_is_fetch_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with self.assertRaises(QuoteFetchError):
            _fetch(handler, "AAPL")

    def test_malformed_body_is_fetch_error(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>rate limited</html>")

        with self.assertRaises(QuoteFetchError):
            _fetch(handler, "AAPL")

    def test_blank_symbol_rejected_without_request(self):
        def handler(request):
            raise AssertionError("should not be called")

        with self.assertRaises(QuoteFetchError):
            _fetch(handler, "  ")


class TestParseChartPayload(unittest.TestCase):
    def test_empty_result_set(self):
        with self.assertRaises(QuoteFetchError):
            parse_chart_payload("AAPL", _chart(results=[]))

    def test_chart_level_error(self):
        with self.assertRaises(QuoteFetchError):
            parse_chart_payload("AAPL", _chart({"regularMarketPrice": 1.0}, error={"code": "Bad"}))

    def test_missing_or_zero_price(self):
        for meta in ({}, {"regularMarketPrice": 0}, {"regularMarketPrice": None}, {"regularMarketPrice": "x"}):
            with self.subTest(meta=meta):
                with self.assertRaises(QuoteFetchError):
                    parse_chart_payload("AAPL", _chart(meta))

    def test_none_payload(self):
        with self.assertRaises(QuoteFetchError):
            parse_chart_payload("AAPL", None)

    def test_previous_close_fallbacks(self):
        q = parse_chart_payload("AAPL", _chart({"regularMarketPrice": 10.0, "previousClose": 9.5}))
        self.assertEqual(q.previous_close, 9.5)

        q = parse_chart_payload("AAPL", _chart({"regularMarketPrice": 10.0}))
        self.assertEqual(q.previous_close, 10.0)

    def test_missing_currency_is_inferred(self):
        q = parse_chart_payload("D05.SI", _chart({"regularMarketPrice": 35.1}))
        self.assertEqual(q.currency, "SGD")


if __name__ == "__main__":
    unittest.main()
