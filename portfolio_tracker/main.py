from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional, Union

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .utils import env_int, load_env
from .ledger import LedgerError, PositionLedger
from .prices import PriceSource, StaticPriceSource
from .schemas import (
    ErrorResponse,
    HealthResponse,
    HoldingOut,
    HoldingReturnOut,
    MessageResponse,
    ReturnsBreakdownResponse,
    ReturnsResponse,
    TradeRequest,
)

# load environment variables at startup
load_env()

logger = logging.getLogger(__name__)
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

ENDPOINTS = [
    ("POST", "/holdings", "Add a buy/sell trade"),
    ("GET", "/holdings", "View all holdings"),
    ("GET", "/holdings/returns", "Calculate portfolio returns"),
    ("GET", "/holdings/returns/breakdown", "Returns per holding"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Portfolio tracker ready")
    for method, path, summary in ENDPOINTS:
        logger.info("  %-4s %-28s - %s", method, path, summary)
    yield
    logger.info("Portfolio tracker shutting down with %d holdings", len(app.state.ledger))


def create_app(
    ledger: Optional[PositionLedger] = None,
    price_source: Optional[PriceSource] = None,
) -> FastAPI:
    """Build the API around one ledger and one price source.

    Both collaborators are created here when not supplied, so each app
    instance owns its own holdings.
    """
    app = FastAPI(title="Portfolio Tracker", lifespan=lifespan)
    app.state.ledger = ledger if ledger is not None else PositionLedger()
    app.state.prices = price_source if price_source is not None else StaticPriceSource.from_env()

    @app.exception_handler(LedgerError)
    async def ledger_error(request: Request, exc: LedgerError):
        return JSONResponse(status_code=400, content=ErrorResponse(error=exc.message).model_dump())

    @app.exception_handler(RequestValidationError)
    async def request_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            loc = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
            detail = f"{loc}: {errors[0].get('msg')}" if loc else str(errors[0].get("msg"))
        else:
            detail = "invalid request"
        logger.warning("malformed request to %s: %s", request.url.path, detail)
        return JSONResponse(status_code=400, content=ErrorResponse(error=detail).model_dump())

    @app.get("/api/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        """Basic health check with the holding count and price table summary."""
        prices = request.app.state.prices
        known = getattr(prices, "known_tickers", None)
        return HealthResponse(
            holdings=len(request.app.state.ledger),
            price_fallback=getattr(prices, "fallback", 0.0),
            priced_tickers=known() if known is not None else [],
        )

    # === Holdings APIs ===

    @app.post(
        "/holdings",
        response_model=Union[HoldingOut, MessageResponse],
        responses={400: {"model": ErrorResponse}},
    )
    async def add_trade(req: TradeRequest, request: Request, response: Response):
        """Apply a buy or sell trade.

        The first buy of a ticker creates a holding (201).  Later buys
        blend the average buy price, sells reduce the share count, and a
        sell of every remaining share removes the holding and returns a
        message instead.
        """
        ledger: PositionLedger = request.app.state.ledger
        result = ledger.apply_trade(req.stock_ticker, req.shares, req.price, req.trade_type)
        if result.removed is not None:
            return MessageResponse(message=result.removed.message)
        if result.created:
            response.status_code = 201
        return HoldingOut.from_position(result.position)

    @app.get("/holdings", response_model=List[HoldingOut])
    async def list_holdings(request: Request) -> List[HoldingOut]:
        """Return every current holding in the order it was first bought."""
        ledger: PositionLedger = request.app.state.ledger
        return [HoldingOut.from_position(p) for p in ledger.list_holdings()]

    @app.get("/holdings/returns", response_model=ReturnsResponse)
    async def holdings_returns(request: Request) -> ReturnsResponse:
        """Total unrealized profit or loss at current prices."""
        ledger: PositionLedger = request.app.state.ledger
        return ReturnsResponse(returns=ledger.compute_returns(request.app.state.prices))

    @app.get("/holdings/returns/breakdown", response_model=ReturnsBreakdownResponse)
    async def holdings_returns_breakdown(request: Request) -> ReturnsBreakdownResponse:
        ledger: PositionLedger = request.app.state.ledger
        rows = ledger.returns_breakdown(request.app.state.prices)
        total = 0.0
        for row in rows:
            total += row.unrealized
        return ReturnsBreakdownResponse(
            returns=total,
            holdings=[HoldingReturnOut.from_row(row) for row in rows],
        )

    return app


app = create_app()


def run() -> None:
    """Serve ``app`` with uvicorn on ``HOST``/``PORT``."""
    import uvicorn

    host = os.getenv("HOST", "127.0.0.1")
    port = env_int("PORT", 3000)
    logger.info("Portfolio tracker running on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=os.getenv("LOG_LEVEL", "INFO").lower())


if __name__ == "__main__":
    run()
