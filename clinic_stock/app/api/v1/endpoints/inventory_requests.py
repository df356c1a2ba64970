from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from clinic_stock.app.api.deps import get_inventory_client, get_stock_source
from clinic_stock.app.api.errors import blocked_to_http, upstream_to_http
from clinic_stock.app.schemas.forms import FormRead, FormState
from clinic_stock.services.forms import SubmissionBlocked, compute_aggregates
from clinic_stock.services.reconciliation import load_request_form, submit_request_approval
from clinic_stock.services.sources import StockSource
from clinic_stock.services.upstream import InventoryApiClient, UpstreamError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests")


@router.get("/{request_id}/form", response_model=FormRead)
def get_request_form(
    request_id: str,
    client: InventoryApiClient = Depends(get_inventory_client),
    source: StockSource = Depends(get_stock_source),
):
    try:
        state = load_request_form(client, source, request_id)
    except UpstreamError as exc:
        raise upstream_to_http(exc)
    return FormRead(state=state, aggregates=compute_aggregates(state))


@router.post("/{request_id}/approve")
def approve_request(
    request_id: str,
    state: FormState,
    client: InventoryApiClient = Depends(get_inventory_client),
    source: StockSource = Depends(get_stock_source),
):
    try:
        state, result = submit_request_approval(client, source, request_id, state)
    except SubmissionBlocked as exc:
        logger.info("Request %s approval blocked: %s", request_id, exc.message)
        raise blocked_to_http(exc)
    except UpstreamError as exc:
        raise upstream_to_http(exc)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return {
        "message": "Inventory request updated successfully",
        "aggregates": compute_aggregates(state),
        "result": result,
    }
