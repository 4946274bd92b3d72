"""FastAPI backend: aggregated markets and simulated orders."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import structlog
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from oddgrid.api.schemas import ErrorResponse, HealthResponse, MarketsListResponse, OrderRequest
from oddgrid.config import Settings, get_settings
from oddgrid.ledger import Ledger, LedgerError
from oddgrid.models import VENUES, Balance, NormalizedMarket, Order, OrderResult, Position, Venue
from oddgrid.storage.db import get_connection, init_schema
from oddgrid.storage.markets import get_market, list_venues, upsert_venue
from oddgrid.venues import build_aggregation_service
from oddgrid.venues.local import local_market_id, market_from_row

log = structlog.get_logger(__name__)

ERROR_STATUS = {
    "validation_error": 400,
    "not_found": 404,
    "state_error": 409,
    "insufficient_balance": 422,
    "internal_error": 500,
}

_ERROR_RESPONSES = {
    400: {"description": "Invalid order request", "model": ErrorResponse},
    401: {"description": "Missing x-account-id header", "model": ErrorResponse},
    404: {"description": "Market or account not found", "model": ErrorResponse},
    409: {"description": "Market not tradeable", "model": ErrorResponse},
    422: {"description": "Insufficient balance", "model": ErrorResponse},
    500: {"description": "Order could not be applied", "model": ErrorResponse},
}


class AuthError(Exception):
    pass


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the app. Connection, aggregation service and ledger are created at startup."""
    s = settings if settings is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        conn = get_connection(s.db_path)
        init_schema(conn)
        for venue in VENUES.values():
            upsert_venue(conn, venue)
        app.state.settings = s
        app.state.conn = conn
        app.state.aggregator = build_aggregation_service(s, conn, transport=transport)
        app.state.ledger = Ledger(conn, currency=s.currency, starting_balance=s.starting_balance)
        log.info("api_started", db_path=s.db_path, venues=app.state.aggregator.venues)
        try:
            yield
        finally:
            conn.close()

    app = FastAPI(title="OddGrid API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=s.cors_origins, allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed bodies share the ledger's 400 validation_error shape."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "invalid request")
        return _error_json("validation_error", f"{where}: {message}" if where else message, status_code=400)

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        return JSONResponse(status_code=ERROR_STATUS.get(exc.code, 500), content=exc.to_dict())

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        return _error_json("unauthorized", str(exc), status_code=401)

    def get_ledger(request: Request) -> Ledger:
        return request.app.state.ledger

    def current_account(
        ledger: Ledger = Depends(get_ledger),
        x_account_id: str | None = Header(None),
    ) -> str:
        """Dev auth: trust the x-account-id header; first sight of an account opens it."""
        account_id = (x_account_id or "").strip()
        if not account_id:
            raise AuthError("x-account-id header is required")
        ledger.open_account(account_id)
        return account_id

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/venues", response_model=list[Venue])
    def venues_list(request: Request) -> list[Venue]:
        cur = request.app.state.conn.cursor()
        try:
            return list_venues(cur)
        finally:
            cur.close()

    @app.get("/markets", response_model=MarketsListResponse)
    async def markets_list(
        request: Request,
        venue: str | None = Query(None, description="Only markets from this venue (e.g. kalshi)"),
    ) -> MarketsListResponse:
        """Aggregated markets from every configured venue."""
        markets = await request.app.state.aggregator.list_all_markets()
        if venue:
            markets = [m for m in markets if m.venue == venue]
        return MarketsListResponse(markets=markets, total=len(markets))

    @app.get(
        "/markets/{market_id}",
        response_model=NormalizedMarket,
        responses={404: {"description": "Market not found", "model": ErrorResponse}},
    )
    def market_detail(market_id: str, request: Request):
        """One stored OddGrid market (bare id or "oddgrid:<id>")."""
        cur = request.app.state.conn.cursor()
        try:
            row = get_market(cur, local_market_id(market_id))
        finally:
            cur.close()
        if row is None:
            return _error_json("not_found", f"Market not found: {market_id}")
        return market_from_row(row)

    @app.post("/orders", response_model=OrderResult, responses=_ERROR_RESPONSES)
    def place_order(
        body: OrderRequest,
        account_id: str = Depends(current_account),
        ledger: Ledger = Depends(get_ledger),
    ) -> OrderResult:
        return ledger.place_order(account_id, body.market_id, body.probability, body.stake_amount)

    @app.get("/orders", response_model=list[Order])
    def orders_list(
        limit: int = Query(100, ge=1, le=500),
        account_id: str = Depends(current_account),
        ledger: Ledger = Depends(get_ledger),
    ) -> list[Order]:
        return ledger.list_orders(account_id, limit=limit)

    @app.get("/positions", response_model=list[Position])
    def positions_list(
        account_id: str = Depends(current_account),
        ledger: Ledger = Depends(get_ledger),
    ) -> list[Position]:
        return ledger.list_positions(account_id)

    @app.get("/balance", response_model=Balance)
    def balance(
        account_id: str = Depends(current_account),
        ledger: Ledger = Depends(get_ledger),
    ) -> Balance:
        return ledger.get_balance(account_id)

    return app


app = create_app()


def run_api(
    host: str = "127.0.0.1",
    port: int = 4000,
    profile: str | None = None,
    config_dir: Path | None = None,
) -> None:
    """Serve an app built from the chosen profile (CORS origins included)."""
    import uvicorn

    uvicorn.run(create_app(get_settings(profile, config_dir)), host=host, port=port, reload=False)
