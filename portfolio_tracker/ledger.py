"""In-memory position ledger.

Trades are folded into one consolidated position per ticker.  Each
position keeps the number of shares currently held and the
volume‑weighted average price paid for them:

```
new_avg = (old_avg * old_shares + price * shares) / (old_shares + shares)
```

Buys recompute the average, sells only reduce the share count, and a
sell that brings the count to exactly zero removes the position.  The
fold itself (``apply_trade``) is a pure function; ``PositionLedger``
owns the mapping and serialises writes with a lock so concurrent
requests see each trade applied atomically.
"""

from __future__ import annotations

import logging
import math
import threading
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from .prices import PriceSource, normalize_ticker

logger = logging.getLogger(__name__)


class TradeSide(str, Enum):
    buy = "buy"
    sell = "sell"


class LedgerError(Exception):
    """Base class for errors reported back to the caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Missing or malformed trade input."""


class InsufficientPosition(LedgerError):
    """Selling a ticker that is not held, or more shares than are held."""


def _positive_number(value: Any) -> Optional[float]:
    # bool is an int subclass; "true" is not a share count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        return None
    return value


@dataclass(frozen=True)
class Trade:
    """A validated buy or sell request.  Never stored."""

    ticker: str
    shares: float
    price: float
    side: TradeSide

    @classmethod
    def create(cls, ticker: Any, shares: Any, price: Any, side: Any) -> "Trade":
        """Validate raw input and build a trade.

        Raises ``ValidationError`` describing the first problem found.
        """
        if ticker is None or shares is None or price is None or not side:
            raise ValidationError("Please provide stock_ticker, shares, price, and trade_type")
        symbol = normalize_ticker(ticker) if isinstance(ticker, str) else ""
        if not symbol:
            raise ValidationError("Please provide stock_ticker, shares, price, and trade_type")
        try:
            trade_side = TradeSide(str(side).strip().lower())
        except ValueError:
            raise ValidationError('trade_type must be either "buy" or "sell"') from None
        qty = _positive_number(shares)
        unit_price = _positive_number(price)
        if qty is None or unit_price is None:
            raise ValidationError("shares and price must be positive numbers")
        return cls(ticker=symbol, shares=qty, price=unit_price, side=trade_side)


@dataclass
class Position:
    """Consolidated holding for one ticker."""

    ticker: str
    shares: float
    average_cost: float
    last_side: TradeSide = TradeSide.buy
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class PositionRemoved:
    """Acknowledgment returned when a sell exits a ticker completely."""

    ticker: str

    @property
    def message(self) -> str:
        return f"All shares of {self.ticker} sold. Holding removed."


@dataclass(frozen=True)
class TradeResult:
    position: Optional[Position] = None
    removed: Optional[PositionRemoved] = None
    created: bool = False


@dataclass(frozen=True)
class HoldingReturn:
    ticker: str
    shares: float
    average_cost: float
    current_price: float
    unrealized: float


def _fmt(value: float) -> str:
    return f"{value:g}"


def apply_trade(position: Optional[Position], trade: Trade) -> Optional[Position]:
    """Fold ``trade`` into ``position`` and return the resulting state.

    ``None`` as input means the ticker is not held; ``None`` as output
    means the position was sold down to zero.  The input is never
    modified.
    """
    if trade.side is TradeSide.buy:
        if position is None:
            return Position(
                ticker=trade.ticker,
                shares=trade.shares,
                average_cost=trade.price,
                last_side=TradeSide.buy,
            )
        total_shares = position.shares + trade.shares
        total_cost = position.average_cost * position.shares + trade.price * trade.shares
        average_cost = total_cost / total_shares
        if not (math.isfinite(total_shares) and math.isfinite(average_cost) and average_cost > 0):
            raise ValidationError(
                f"Buying {_fmt(trade.shares)} more shares of {trade.ticker} would overflow the position"
            )
        return replace(
            position,
            shares=total_shares,
            average_cost=average_cost,
            last_side=TradeSide.buy,
        )

    if position is None:
        raise InsufficientPosition(
            f"You don't own any shares of {trade.ticker}. Can't sell what you don't have!"
        )
    if trade.shares > position.shares:
        raise InsufficientPosition(
            f"You only have {_fmt(position.shares)} shares of {trade.ticker}. "
            f"Can't sell {_fmt(trade.shares)}."
        )
    remaining = position.shares - trade.shares
    if remaining == 0:
        return None
    return replace(position, shares=remaining, last_side=TradeSide.sell)


class PositionLedger:
    """Owner of the ticker → position mapping.

    Create one per process and hand it to whatever serves requests.
    Every method returns copies; callers never hold a reference to
    the stored records.
    """

    def __init__(self) -> None:
        self._positions: Dict[str, Position] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)

    def apply_trade(self, ticker: Any, shares: Any, price: Any, side: Any) -> TradeResult:
        """Validate and apply a single trade atomically."""
        try:
            trade = Trade.create(ticker, shares, price, side)
        except ValidationError as exc:
            logger.warning("rejected trade for %r: %s", ticker, exc.message)
            raise
        with self._lock:
            current = self._positions.get(trade.ticker)
            try:
                updated = apply_trade(current, trade)
            except LedgerError as exc:
                logger.warning("rejected %s %s: %s", trade.side.value, trade.ticker, exc.message)
                raise
            if updated is None:
                del self._positions[trade.ticker]
                logger.info("%s fully sold, position removed", trade.ticker)
                return TradeResult(removed=PositionRemoved(ticker=trade.ticker))
            self._positions[trade.ticker] = updated
            snapshot = replace(updated)
        logger.info(
            "%s %s x %s @ %s -> %s shares, avg %s",
            trade.side.value,
            trade.ticker,
            _fmt(trade.shares),
            _fmt(trade.price),
            _fmt(snapshot.shares),
            _fmt(snapshot.average_cost),
        )
        return TradeResult(position=snapshot, created=current is None)

    def get(self, ticker: str) -> Optional[Position]:
        with self._lock:
            position = self._positions.get(normalize_ticker(ticker))
            return replace(position) if position is not None else None

    def list_holdings(self) -> List[Position]:
        """Return every stored position in order of creation."""
        with self._lock:
            return [replace(p) for p in self._positions.values()]

    def returns_breakdown(self, price_source: PriceSource) -> List[HoldingReturn]:
        """Unrealized return of each position at the source's current prices."""
        rows: List[HoldingReturn] = []
        for position in self.list_holdings():
            current = float(price_source.current_price(position.ticker))
            rows.append(
                HoldingReturn(
                    ticker=position.ticker,
                    shares=position.shares,
                    average_cost=position.average_cost,
                    current_price=current,
                    unrealized=(current - position.average_cost) * position.shares,
                )
            )
        return rows

    def compute_returns(self, price_source: PriceSource) -> float:
        """Total unrealized return across all positions."""
        total = 0.0
        for row in self.returns_breakdown(price_source):
            total += row.unrealized
        return total

    def clear(self) -> None:
        with self._lock:
            self._positions.clear()
