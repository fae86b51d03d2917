"""Live inventory routes.

- GET  /live-inventory           per-product daily ledger for one outlet
- GET  /live-inventory/window    dates covered by a range
- POST /live-inventory/override  manual current-stock edit
"""

import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from outlet_ledger.core.config import settings
from outlet_ledger.core.rate_limit import limiter
from outlet_ledger.core.responses import list_response
from outlet_ledger.schemas.ledger import (
    LiveInventoryResponse,
    OverrideRequest,
    OverrideResponse,
    WindowResponse,
)
from outlet_ledger.services.errors import NotFoundError, ServiceError, ValidationError
from outlet_ledger.services.ledger.window import build_window
from outlet_ledger.services.recompute_coordinator import RecomputeCoordinator

logger = logging.getLogger(__name__)

router = APIRouter()

RangeMode = Literal["week", "month"]


def get_coordinator(request: Request) -> RecomputeCoordinator:
    """Coordinator created at application startup."""
    return request.app.state.coordinator


def _raise_http(exc: ServiceError):
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=404, detail=exc.message)
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=422, detail=exc.message)
    raise HTTPException(status_code=400, detail=exc.message)


@router.get("", response_model=LiveInventoryResponse)
@limiter.limit("60/minute")
async def get_live_inventory(
    request: Request,
    outlet: str = Query(..., min_length=1),
    anchor: Optional[date] = Query(None, alias="date"),
    range_mode: Optional[RangeMode] = Query(None, alias="range"),
    viewer_id: Optional[str] = Header(None, alias="X-Viewer-Id"),
    coordinator: RecomputeCoordinator = Depends(get_coordinator),
):
    """Daily opening/received/wastage/sold/current per product, ending at ``date``."""
    anchor = anchor or date.today()
    mode = range_mode or settings.default_range
    viewer = viewer_id or (request.client.host if request.client else "default")

    try:
        histories = await coordinator.recompute(outlet, anchor, mode, viewer=viewer)
    except ServiceError as exc:
        _raise_http(exc)

    if histories is None:
        raise HTTPException(
            status_code=409,
            detail="A newer live inventory request replaced this one",
        )

    return list_response(
        histories,
        outlet=outlet,
        dates=build_window(anchor, mode),
    )


@router.get("/window", response_model=WindowResponse)
@limiter.limit("120/minute")
def get_window(
    request: Request,
    anchor: Optional[date] = Query(None, alias="date"),
    range_mode: Optional[RangeMode] = Query(None, alias="range"),
):
    """Dates covered by a week or month range ending at ``date``."""
    mode = range_mode or settings.default_range
    return {"dates": build_window(anchor or date.today(), mode), "range": mode}


@router.post("/override", response_model=OverrideResponse)
@limiter.limit("30/minute")
async def override_current_stock(
    request: Request,
    data: OverrideRequest,
    coordinator: RecomputeCoordinator = Depends(get_coordinator),
):
    """Set a product's current stock on one date; the next date opens with it."""
    try:
        return await coordinator.apply_override(
            data.outlet, data.product_id, data.date, data.whole, data.sub
        )
    except ServiceError as exc:
        _raise_http(exc)
