"""Current market prices used for the returns calculation.

There is no live feed.  ``StaticPriceSource`` answers from a fixed
table and returns a configurable fallback price for any ticker it does
not know, so one unknown symbol never breaks the portfolio total.

The table and the fallback can be overridden with the ``PRICE_TABLE``
(a JSON object) and ``PRICE_FALLBACK`` environment variables.
"""

from __future__ import annotations

import json
import logging
import math
import os
from typing import Dict, List, Mapping, Optional, Protocol

from .utils import env_float

logger = logging.getLogger(__name__)


DEFAULT_FALLBACK_PRICE: float = 100.0

# Demo prices for a handful of NSE large caps.
DEFAULT_PRICES: Dict[str, float] = {
    "TCS": 3500.0,
    "INFY": 1800.0,
    "RELIANCE": 2500.0,
    "WIPRO": 450.0,
    "HDFC": 1600.0,
}


def normalize_ticker(ticker: str) -> str:
    """Canonical form of a stock symbol: trimmed and upper case."""
    return ticker.strip().upper()


class PriceSource(Protocol):
    def current_price(self, ticker: str) -> float:
        ...


def _check_price(ticker: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"price for {ticker} must be a number, got {value!r}")
    price = float(value)
    if not math.isfinite(price) or price <= 0:
        raise ValueError(f"price for {ticker} must be positive, got {value!r}")
    return price


class StaticPriceSource:
    """Price lookup backed by an in-memory table.

    Parameters
    ----------
    prices : Mapping[str, float] | None, optional
        Ticker to price.  Tickers are normalised on the way in.  ``None``
        uses ``DEFAULT_PRICES``.
    fallback : float, optional
        Price returned for tickers missing from the table.
    """

    def __init__(
        self,
        prices: Optional[Mapping[str, float]] = None,
        fallback: float = DEFAULT_FALLBACK_PRICE,
    ) -> None:
        table = DEFAULT_PRICES if prices is None else prices
        self._prices: Dict[str, float] = {
            normalize_ticker(t): _check_price(t, p) for t, p in table.items()
        }
        self.fallback = _check_price("fallback", fallback)

    def current_price(self, ticker: str) -> float:
        price = self._prices.get(normalize_ticker(ticker))
        if price is None:
            logger.debug("no price for %s, using fallback %s", ticker, self.fallback)
            return self.fallback
        return price

    def known_tickers(self) -> List[str]:
        return list(self._prices)

    @classmethod
    def from_env(cls) -> "StaticPriceSource":
        """Build a source from ``PRICE_TABLE`` and ``PRICE_FALLBACK``."""
        fallback = env_float("PRICE_FALLBACK", DEFAULT_FALLBACK_PRICE)
        if not (math.isfinite(fallback) and fallback > 0):
            logger.warning("invalid PRICE_FALLBACK=%s, using %s", fallback, DEFAULT_FALLBACK_PRICE)
            fallback = DEFAULT_FALLBACK_PRICE
        raw = os.getenv("PRICE_TABLE")
        if not raw:
            return cls(fallback=fallback)
        try:
            table = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"PRICE_TABLE is not valid JSON: {e}") from e
        if not isinstance(table, dict):
            raise ValueError("PRICE_TABLE must be a JSON object of ticker to price")
        return cls(table, fallback=fallback)
