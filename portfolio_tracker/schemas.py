from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from typing import List, Optional, Union

from .ledger import HoldingReturn, Position, TradeSide


# === Trade models ===

class TradeRequest(BaseModel):
    """Request body for ``POST /holdings``.

    Every field is optional at the schema level so that a missing field
    is reported with the same ``{"error": ...}`` body as any other
    rejected trade.  The ledger performs the actual validation.
    """

    stock_ticker: Optional[str] = None
    shares: Optional[Union[StrictInt, StrictFloat]] = None
    price: Optional[Union[StrictInt, StrictFloat]] = None
    trade_type: Optional[str] = None


class HoldingOut(BaseModel):
    """Wire representation of a position."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    stock_ticker: str
    shares: float
    average_buy_price: float
    trade_type: TradeSide  # direction of the last applied trade, informational only

    @classmethod
    def from_position(cls, position: Position) -> "HoldingOut":
        return cls(
            id=position.id,
            stock_ticker=position.ticker,
            shares=position.shares,
            average_buy_price=position.average_cost,
            trade_type=position.last_side,
        )


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str


# === Returns models ===

class ReturnsResponse(BaseModel):
    returns: float


class HoldingReturnOut(BaseModel):
    stock_ticker: str
    shares: float
    average_buy_price: float
    current_price: float
    unrealized_return: float

    @classmethod
    def from_row(cls, row: HoldingReturn) -> "HoldingReturnOut":
        return cls(
            stock_ticker=row.ticker,
            shares=row.shares,
            average_buy_price=row.average_cost,
            current_price=row.current_price,
            unrealized_return=row.unrealized,
        )


class ReturnsBreakdownResponse(BaseModel):
    returns: float
    holdings: List[HoldingReturnOut]


class HealthResponse(BaseModel):
    status: str = "ok"
    holdings: int
    price_fallback: float
    priced_tickers: List[str]
