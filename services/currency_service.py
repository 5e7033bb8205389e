from typing import Optional, Tuple

BASE_CURRENCY = "USD"

# (suffixes, currency); first match wins
_SUFFIX_CURRENCIES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    ((".NS", ".BO"), "INR"),  # NSE / BSE
    ((".SI",), "SGD"),        # SGX
)


def infer_currency(ticker: Optional[str]) -> str:
    """
    Seed currency for a ticker that has no live quote yet, from its exchange
    suffix. Total over any input; unknown suffixes are USD.
    """
    sym = (ticker or "").strip().upper()
    for suffixes, ccy in _SUFFIX_CURRENCIES:
        if sym.endswith(suffixes):
            return ccy
    return BASE_CURRENCY
