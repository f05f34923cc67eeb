from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.orm import Session

from . import schemas
from .core.config import settings
from .core.logging import configure_logging
from .db import get_db, init_db
from .domain import MarketNotFoundError
from .models import EVENT_MODELS_BY_NAME
from .repositories import EventRepository, event_to_dict
from .services.analytics_service import AnalyticsService
from .services.cache import ResponseCache
from .services.contract_client import ContractClient, get_contract_client
from .services.distribution_service import DistributionPreviewer
from .services.price_service import PriceService
from .services.withdrawal_scanner import WithdrawalScanner, build_discover_response

app = FastAPI(title="Policast API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Configure logging and create tables when the API boots."""

    configure_logging(settings.log_level)
    init_db()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed client input is reported as 400 rather than FastAPI's 422.
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


# ----------------------------------------------------------------------
# Dependency providers


@lru_cache(maxsize=1)
def analytics_cache() -> ResponseCache[schemas.MarketAnalytics]:
    return ResponseCache(
        ttl_seconds=settings.analytics_cache_ttl_seconds,
        maxsize=settings.cache_max_entries,
    )


@lru_cache(maxsize=1)
def price_cache() -> ResponseCache[schemas.CurrentPrice]:
    return ResponseCache(
        ttl_seconds=settings.price_cache_ttl_seconds,
        maxsize=settings.cache_max_entries,
    )


def _contract_client() -> ContractClient:
    """Provide the shared read-only contract client."""

    return get_contract_client()


def _analytics_service(client: ContractClient = Depends(_contract_client)) -> AnalyticsService:
    return AnalyticsService(client, analytics_cache())


def _price_service(client: ContractClient = Depends(_contract_client)) -> PriceService:
    return PriceService(client, price_cache())


def _withdrawal_scanner(client: ContractClient = Depends(_contract_client)) -> WithdrawalScanner:
    return WithdrawalScanner.from_settings(client, settings)


def _distribution_previewer(
    client: ContractClient = Depends(_contract_client),
) -> DistributionPreviewer:
    return DistributionPreviewer(client, token_decimals=settings.token_decimals)


def _event_repository(db: Session = Depends(get_db)) -> EventRepository:
    return EventRepository(db)


def _require_market_id(market_id: int | None) -> int:
    # 0 is a valid market id, only a missing value is rejected.
    if market_id is None:
        raise HTTPException(status_code=400, detail="Market ID is required")
    return market_id


MarketIdQuery = Annotated[
    int | None,
    Query(alias="marketId", ge=0, description="On-chain market identifier"),
]


# ----------------------------------------------------------------------
# Routes


@app.post(
    "/api/admin-auto-discover",
    response_model=schemas.AdminDiscoverResponse,
    tags=["admin"],
)
def admin_auto_discover(
    payload: Annotated[schemas.AdminDiscoverRequest, Body()],
    scanner: WithdrawalScanner = Depends(_withdrawal_scanner),
):
    """List every unclaimed amount the caller could withdraw."""

    if not payload.user_address:
        raise HTTPException(status_code=400, detail="User address is required")
    try:
        withdrawals = scanner.scan(payload.user_address)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Admin withdrawal discovery failed for {}", payload.user_address)
        raise HTTPException(
            status_code=500, detail=f"Failed to auto-discover admin withdrawals: {exc}"
        ) from exc
    return build_discover_response(withdrawals)


@app.get("/api/market/analytics", response_model=schemas.MarketAnalytics, tags=["markets"])
def get_market_analytics(
    market_id: MarketIdQuery = None,
    time_range: Annotated[
        Literal["24h", "7d", "30d", "all"],
        Query(alias="timeRange", description="History window"),
    ] = "7d",
    service: AnalyticsService = Depends(_analytics_service),
):
    """Daily price and volume history for one market."""

    return service.get_analytics(_require_market_id(market_id), time_range)


@app.post("/api/market/analytics", response_model=schemas.CacheCleared, tags=["markets"])
def clear_market_analytics(
    payload: Annotated[schemas.MarketIdRequest, Body()],
    service: AnalyticsService = Depends(_analytics_service),
):
    """Drop cached analytics for a market after it traded."""

    service.invalidate(_require_market_id(payload.market_id))
    return schemas.CacheCleared(success=True, message="Cache cleared")


@app.get("/api/market/current-price", response_model=schemas.CurrentPrice, tags=["markets"])
def get_current_price(
    market_id: MarketIdQuery = None,
    service: PriceService = Depends(_price_service),
):
    return service.get_current_price(_require_market_id(market_id))


@app.post(
    "/api/auto-preview-batch-distribution",
    response_model=schemas.DistributionPreview,
    response_model_exclude_none=True,
    tags=["admin"],
)
def auto_preview_batch_distribution(
    payload: Annotated[schemas.MarketIdRequest, Body()],
    previewer: DistributionPreviewer = Depends(_distribution_previewer),
):
    """Compute the winners and payouts a batch distribution would send."""

    market_id = _require_market_id(payload.market_id)
    try:
        return previewer.preview(market_id)
    except MarketNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Market not found") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Distribution preview failed for market {}", market_id)
        raise HTTPException(
            status_code=500, detail=f"Failed to auto-preview distribution: {exc}"
        ) from exc


@app.get("/indexed/{event_type}", response_model=schemas.IndexedEventList, tags=["indexed"])
def list_indexed_events(
    event_type: str,
    market_id: MarketIdQuery = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    repository: EventRepository = Depends(_event_repository),
):
    """Page through stored rows of one event type, newest block first."""

    model = EVENT_MODELS_BY_NAME.get(event_type)
    if model is None:
        raise HTTPException(status_code=404, detail=f"Unknown event type: {event_type}")
    if market_id is not None and not hasattr(model, "market_id"):
        raise HTTPException(status_code=400, detail=f"{event_type} events are not scoped to a market")

    total, rows = repository.list_events(model, market_id=market_id, limit=limit, offset=offset)
    return schemas.IndexedEventList(total=total, items=[event_to_dict(row) for row in rows])
