import unittest

from services.currency_service import infer_currency


class TestInferCurrency(unittest.TestCase):
    def test_exchange_suffixes(self):
        self.assertEqual(infer_currency("RELIANCE.NS"), "INR")
        self.assertEqual(infer_currency("TCS.BO"), "INR")
        self.assertEqual(infer_currency("DBSSGX.SI"), "SGD")
        self.assertEqual(infer_currency("AAPL"), "USD")

    def test_suffix_match_ignores_case_and_padding(self):
        self.assertEqual(infer_currency(" infy.ns "), "INR")
        self.assertEqual(infer_currency("d05.si"), "SGD")

    def test_suffix_must_be_at_the_end(self):
        self.assertEqual(infer_currency("NS.AAPL"), "USD")
        self.assertEqual(infer_currency("SI"), "USD")

    def test_total_over_odd_input(self):
        for value in ("", "   ", None, "BTC-USD", "^GSPC", "INR=X"):
            with self.subTest(value=value):
                self.assertEqual(infer_currency(value), "USD")


if __name__ == "__main__":
    unittest.main()
