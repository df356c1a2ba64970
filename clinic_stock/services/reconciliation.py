"""
Workflows complets : chargement d'un document amont, réconciliation
(unités + stock), puis soumission.

Le stock et les unités sont TOUJOURS relus juste avant une soumission :
l'état envoyé par le client ne sert qu'à porter les saisies.
"""
from __future__ import annotations

import logging
from typing import Any

from clinic_stock.app.db.models.core_types import ApprovalStatus, FlowKind, WithdrawalStatus
from clinic_stock.app.schemas.forms import (
    BatchStockLoaded,
    FormItem,
    FormState,
    StockLoadFailed,
    StockLoaded,
    UnitLoadFailed,
    UnitsLoaded,
)
from clinic_stock.services.forms import (
    LookupCommand,
    SubmissionBlocked,
    evaluate_form,
    pending_lookups,
    plan_submit,
    reduce,
)
from clinic_stock.services.sources import StockSource
from clinic_stock.services.upstream import InventoryApiClient, UpstreamError, extract_id

logger = logging.getLogger(__name__)

MAX_LOOKUP_ROUNDS = 5

EDITABLE_WITHDRAWAL_STATUSES = {WithdrawalStatus.draft.value, WithdrawalStatus.pending.value}
NOT_EDITABLE_MESSAGE = "Only pending withdrawals can be edited"


# ---------- Lookups ----------
def execute_lookup(command: LookupCommand, source: StockSource):
    """Exécute un lookup et renvoie l'action résultat (succès ou échec)."""
    if command.kind == "location_stock":
        try:
            return StockLoaded(entries=source.list_location_stock())
        except UpstreamError as exc:
            return StockLoadFailed(reason=f"Failed to load location stock: {exc.message}")

    if command.kind == "units":
        try:
            units = source.list_units(command.key)
            # unité enregistrée mais absente de la liste produit : lecture directe
            if command.unit_id and not any(u.id == command.unit_id for u in units):
                unit = source.get_unit(command.unit_id)
                if unit is not None:
                    units = [*units, unit]
        except UpstreamError as exc:
            return UnitLoadFailed(
                index=command.index,
                generation=command.generation,
                reason=f"Failed to load product units: {exc.message}",
            )
        return UnitsLoaded(index=command.index, generation=command.generation, units=units)

    if command.kind == "batch_stock":
        try:
            quantity = source.batch_available(command.key)
        except UpstreamError as exc:
            logger.warning("Available stock lookup failed for batch %s: %s", command.key, exc.message)
            return BatchStockLoaded(
                index=command.index,
                generation=command.generation,
                quantity=0,
                error="Failed to fetch available stock",
            )
        return BatchStockLoaded(index=command.index, generation=command.generation, quantity=quantity)

    raise ValueError(f"Unknown lookup kind: {command.kind}")


def run_lookups(state: FormState, source: StockSource) -> FormState:
    for _ in range(MAX_LOOKUP_ROUNDS):
        commands = pending_lookups(state)
        if not commands:
            break
        for command in commands:
            state = reduce(state, execute_lookup(command, source))
    return state


def reset_lookups(state: FormState) -> FormState:
    """Oublie unités et stock connus (relecture complète)."""
    items = [
        item.model_copy(
            update={
                "units": [],
                "units_loaded": False,
                "unit_error": "",
                "batch_available_base": None,
                "batch_stock_error": "",
                "generation": 0,
            }
        )
        for item in state.items
    ]
    state = state.model_copy(
        update={"items": items, "location_stock": [], "stock_loaded": False, "stock_error": ""}
    )
    return evaluate_form(state)


# ---------- Chargement ----------
def _display(ref: Any, key: str) -> str | None:
    return ref.get(key) if isinstance(ref, dict) else None


def _item_from_payload(data: dict) -> FormItem:
    unit_ref = data.get("productUnitId")
    return FormItem(
        id=extract_id(data.get("_id")) or None,
        product_id=extract_id(data.get("productId")),
        batch_id=extract_id(data.get("batchId")),
        product_unit_id=extract_id(unit_ref),
        from_location_id=extract_id(data.get("fromLocationId")),
        to_location_id=extract_id(data.get("toLocationId")),
        requested_quantity=float(data.get("requestedQuantity") or 0),
        approved_quantity=float(data.get("approvedQuantity") or 0),
        product_name=_display(data.get("productId"), "name"),
        batch_number=_display(data.get("batchId"), "batchNumber"),
        unit_name=_display(unit_ref, "name"),
    )


def load_request_form(client: InventoryApiClient, source: StockSource, request_id: str) -> FormState:
    data = client.get_request(request_id) or {}
    items = [_item_from_payload(it) for it in data.get("items") or []]
    state = FormState(
        flow=FlowKind.approval,
        document_id=request_id,
        document_no=data.get("requestNo"),
        approval_status=ApprovalStatus(data.get("approvalStatus") or ApprovalStatus.pending.value),
        notes=data.get("notes") or "",
        items=items or [FormItem()],
    )
    return run_lookups(evaluate_form(state), source)


def load_withdrawal_form(client: InventoryApiClient, source: StockSource, withdrawal_id: str) -> FormState:
    data = client.get_withdrawal(withdrawal_id) or {}
    items = [_item_from_payload(it) for it in data.get("items") or []]
    state = FormState(
        flow=FlowKind.withdrawal,
        document_id=withdrawal_id,
        status=data.get("status"),
        notes=data.get("notes") or "",
        items=items or [FormItem()],
    )
    return run_lookups(evaluate_form(state), source)


# ---------- Soumission ----------
def _prepare_submit(state: FormState, flow: FlowKind, document_id: str, source: StockSource) -> FormState:
    if state.flow != flow:
        raise ValueError(f"Expected a {flow.value} form, got {state.flow.value}")
    state = state.model_copy(update={"document_id": document_id})
    return run_lookups(reset_lookups(state), source)


def submit_request_approval(
    client: InventoryApiClient,
    source: StockSource,
    request_id: str,
    state: FormState,
) -> tuple[FormState, Any]:
    """
    Re-valide puis envoie l'approbation.
    SubmissionBlocked => aucun appel amont.
    """
    state = _prepare_submit(state, FlowKind.approval, request_id, source)
    plan = plan_submit(state)
    logger.info(
        "Submitting request %s approval (%s, %d items)",
        request_id,
        state.approval_status.value,
        len(plan.payload["items"]),
    )
    return state, client.approve_request(request_id, plan.payload)


def submit_withdrawal(
    client: InventoryApiClient,
    source: StockSource,
    withdrawal_id: str,
    state: FormState,
) -> tuple[FormState, Any]:
    # statut relu en amont : celui du client ne fait pas foi
    current = client.get_withdrawal(withdrawal_id) or {}
    status = str(current.get("status") or "").upper()
    if status not in EDITABLE_WITHDRAWAL_STATUSES:
        logger.info("Withdrawal %s is %s, update refused", withdrawal_id, status or "without status")
        raise SubmissionBlocked(NOT_EDITABLE_MESSAGE)

    state = _prepare_submit(state, FlowKind.withdrawal, withdrawal_id, source)
    plan = plan_submit(state)
    logger.info("Updating withdrawal %s (%d items)", withdrawal_id, len(plan.payload["items"]))
    return state, client.update_withdrawal(withdrawal_id, plan.payload)
