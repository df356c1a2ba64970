from __future__ import annotations

from fastapi import APIRouter, HTTPException

from clinic_stock.app.api.errors import blocked_to_http
from clinic_stock.app.schemas.forms import FormAggregates, FormRead, FormState, ReduceRequest
from clinic_stock.services.forms import SubmissionBlocked, compute_aggregates, plan_submit, reduce_all

router = APIRouter(prefix="/forms")


@router.post("/reduce", response_model=FormRead)
def reduce_form(payload: ReduceRequest):
    """
    Applique une suite d'actions à un état de formulaire (sans I/O).
    Les lookups restants sont visibles via les champs *_loaded des lignes.
    """
    try:
        state = reduce_all(payload.state, payload.actions)
    except (IndexError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return FormRead(state=state, aggregates=compute_aggregates(state))


@router.post("/aggregates", response_model=FormAggregates)
def form_aggregates(state: FormState):
    return compute_aggregates(state)


@router.post("/validate")
def validate_form(state: FormState):
    """Payload qui serait envoyé en amont, ou 400 avec les erreurs par ligne."""
    try:
        plan = plan_submit(state)
    except SubmissionBlocked as exc:
        raise blocked_to_http(exc)
    return {"flow": plan.flow.value, "document_id": plan.document_id, "payload": plan.payload}
