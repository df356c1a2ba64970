"""
Orchestration d'un formulaire de demande / de retrait.

L'état (FormState) est immuable : chaque action produit une nouvelle révision
via reduce(state, action), puis toutes les lignes sont ré-évaluées.

Les lookups (unités, stock) ne sont jamais faits ici : pending_lookups()
décrit ce qu'il reste à charger, l'appelant exécute et renvoie le résultat
sous forme d'action. Chaque commande porte la generation de sa ligne ; une
réponse dont la generation ne correspond plus est ignorée.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from clinic_stock.app.db.models.core_types import ApprovalStatus, AvailabilityStatus, FlowKind
from clinic_stock.app.schemas.forms import (
    AddItem,
    BatchStockLoaded,
    FormAggregates,
    FormItem,
    FormState,
    RefreshStock,
    RemoveItem,
    SetApprovalStatus,
    SetApprovedToRequested,
    SetField,
    SetNotes,
    StockLoadFailed,
    StockLoaded,
    UnitLoadFailed,
    UnitsLoaded,
)
from clinic_stock.services.location_stock import available_base_quantity, find_entry
from clinic_stock.services.units import auto_select_unit
from clinic_stock.services.validation import (
    STOCK_LOADING_MESSAGE,
    StockContext,
    apply_field_change,
    validate_item,
)

logger = logging.getLogger(__name__)

REMOVE_LAST_MESSAGE = "At least one item is required"
INSUFFICIENT_STOCK_MESSAGE = "Some items have insufficient stock. Please adjust quantities."
NOTHING_AVAILABLE_MESSAGE = "None of the requested items is available in stock"


class SubmissionBlocked(ValueError):
    """Soumission refusée côté service : rien n'est envoyé à l'API amont."""

    def __init__(self, message: str, errors: dict[int, str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


@dataclass(frozen=True)
class LookupCommand:
    kind: str  # "units" | "batch_stock" | "location_stock"
    index: int | None = None
    generation: int = 0
    key: str = ""  # product_id (units) / batch_id (batch_stock)
    unit_id: str = ""


@dataclass(frozen=True)
class SubmitPlan:
    flow: FlowKind
    document_id: str | None
    payload: dict = field(default_factory=dict)


# ---------- Helpers ----------
def _replace_item(state: FormState, index: int, item: FormItem) -> list[FormItem]:
    items = list(state.items)
    items[index] = item
    return items


def _stamp(state: FormState) -> FormState:
    """Donne un numéro de generation unique à chaque ligne qui n'en a pas."""
    next_gen = state.next_generation
    items = []
    changed = False
    for item in state.items:
        if item.generation == 0:
            item = item.model_copy(update={"generation": next_gen})
            next_gen += 1
            changed = True
        items.append(item)
    if not changed:
        return state
    return state.model_copy(update={"items": items, "next_generation": next_gen})


def _expire_stock(state: FormState) -> FormState:
    """Invalide le stock connu : il sera rechargé avant toute validation."""
    if state.flow == FlowKind.withdrawal:
        return state.model_copy(update={"location_stock": [], "stock_loaded": False, "stock_error": ""})

    items = [
        item.model_copy(update={"batch_available_base": None, "batch_stock_error": "", "generation": 0})
        if item.batch_id
        else item
        for item in state.items
    ]
    return _stamp(state.model_copy(update={"items": items}))


def _is_current(state: FormState, index: int, generation: int) -> bool:
    if index < 0 or index >= len(state.items):
        return False
    return state.items[index].generation == generation


def stock_context(state: FormState, item: FormItem) -> StockContext:
    if state.flow == FlowKind.withdrawal:
        if not state.stock_loaded:
            return StockContext(loaded=False, pending_message=state.stock_error or STOCK_LOADING_MESSAGE)
        return StockContext(
            available_base_quantity=available_base_quantity(
                state.location_stock, item.batch_id, item.from_location_id
            ),
            entry=find_entry(state.location_stock, item.batch_id, item.from_location_id),
        )

    if not item.batch_id:
        return StockContext(available_base_quantity=0.0)
    if item.batch_stock_error:
        return StockContext(loaded=False, pending_message=item.batch_stock_error)
    if item.batch_available_base is None:
        return StockContext(loaded=False)
    return StockContext(available_base_quantity=max(item.batch_available_base, 0.0))


def evaluate_form(state: FormState) -> FormState:
    """Ré-évalue toutes les lignes (disponibilité, bornes, erreurs)."""
    state = _stamp(state)
    enforce_stock = state.flow == FlowKind.withdrawal or state.approval_status == ApprovalStatus.approved
    items = [
        validate_item(
            item,
            flow=state.flow,
            stock=stock_context(state, item),
            enforce_stock=enforce_stock,
        ).item
        for item in state.items
    ]
    return state.model_copy(update={"items": items})


# ---------- Reducer ----------
def _apply(state: FormState, action) -> FormState:
    if isinstance(action, AddItem):
        return state.model_copy(update={"items": [*state.items, FormItem()]})

    if isinstance(action, RemoveItem):
        if len(state.items) <= 1:
            return state.model_copy(update={"message": REMOVE_LAST_MESSAGE})
        if action.index < 0 or action.index >= len(state.items):
            raise IndexError(f"No item at index {action.index}")
        items = [it for i, it in enumerate(state.items) if i != action.index]
        return state.model_copy(update={"items": items})

    if isinstance(action, SetField):
        if action.index < 0 or action.index >= len(state.items):
            raise IndexError(f"No item at index {action.index}")
        item = apply_field_change(state.items[action.index], action.field, action.value)
        return state.model_copy(update={"items": _replace_item(state, action.index, item)})

    if isinstance(action, SetNotes):
        return state.model_copy(update={"notes": action.notes})

    if isinstance(action, SetApprovalStatus):
        previous = state.approval_status
        state = state.model_copy(update={"approval_status": action.status})
        # passage à APPROVED : le stock a pu bouger depuis la création de la demande
        if action.status == ApprovalStatus.approved and previous != ApprovalStatus.approved:
            state = _expire_stock(state)
        return state

    if isinstance(action, SetApprovedToRequested):
        items = [
            item.model_copy(
                update={
                    "approved_quantity": item.requested_quantity
                    if item.is_available and item.available_quantity > 0
                    else 0.0
                }
            )
            for item in state.items
        ]
        return state.model_copy(update={"items": items})

    if isinstance(action, RefreshStock):
        return _expire_stock(state)

    if isinstance(action, UnitsLoaded):
        if not _is_current(state, action.index, action.generation):
            logger.debug("Discarding stale units for item %s (gen %s)", action.index, action.generation)
            return state
        item = state.items[action.index]
        item = item.model_copy(
            update={
                "units": action.units,
                "units_loaded": True,
                "unit_error": "",
                "product_unit_id": auto_select_unit(action.units, item.product_unit_id),
            }
        )
        return state.model_copy(update={"items": _replace_item(state, action.index, item)})

    if isinstance(action, UnitLoadFailed):
        if not _is_current(state, action.index, action.generation):
            return state
        item = state.items[action.index].model_copy(update={"unit_error": action.reason})
        return state.model_copy(
            update={"items": _replace_item(state, action.index, item), "message": action.reason}
        )

    if isinstance(action, BatchStockLoaded):
        if not _is_current(state, action.index, action.generation):
            logger.debug("Discarding stale batch stock for item %s (gen %s)", action.index, action.generation)
            return state
        if action.error:
            # stock inconnu : la quantité saisie est conservée, la soumission bloquée
            item = state.items[action.index].model_copy(
                update={"batch_available_base": None, "batch_stock_error": action.error}
            )
            return state.model_copy(
                update={"items": _replace_item(state, action.index, item), "message": action.error}
            )
        item = state.items[action.index].model_copy(
            update={"batch_available_base": float(action.quantity), "batch_stock_error": ""}
        )
        return state.model_copy(update={"items": _replace_item(state, action.index, item)})

    if isinstance(action, StockLoaded):
        return state.model_copy(
            update={"location_stock": action.entries, "stock_loaded": True, "stock_error": ""}
        )

    if isinstance(action, StockLoadFailed):
        return state.model_copy(
            update={"stock_loaded": False, "stock_error": action.reason, "message": action.reason}
        )

    raise ValueError(f"Unsupported form action: {action!r}")


def reduce(state: FormState, action) -> FormState:
    """reduce(state, action) -> nouvelle révision, lignes ré-évaluées."""
    cleared = state.model_copy(update={"message": ""})
    new_state = _apply(cleared, action)
    new_state = evaluate_form(new_state)
    return new_state.model_copy(update={"revision": state.revision + 1})


def reduce_all(state: FormState, actions) -> FormState:
    for action in actions:
        state = reduce(state, action)
    return state


# ---------- Lookups ----------
def pending_lookups(state: FormState) -> list[LookupCommand]:
    commands: list[LookupCommand] = []

    if state.flow == FlowKind.withdrawal and not state.stock_loaded and not state.stock_error:
        commands.append(LookupCommand(kind="location_stock"))

    for index, item in enumerate(state.items):
        if item.product_id and not item.units_loaded and not item.unit_error:
            commands.append(
                LookupCommand(
                    kind="units",
                    index=index,
                    generation=item.generation,
                    key=item.product_id,
                    unit_id=item.product_unit_id,
                )
            )
        if (
            state.flow == FlowKind.approval
            and item.batch_id
            and item.batch_available_base is None
            and not item.batch_stock_error
        ):
            commands.append(
                LookupCommand(
                    kind="batch_stock",
                    index=index,
                    generation=item.generation,
                    key=item.batch_id,
                )
            )

    return commands


# ---------- Agrégats ----------
def compute_aggregates(state: FormState) -> FormAggregates:
    items = state.items
    ok = [item.is_available and item.available_quantity > 0 for item in items]

    if all(ok):
        status = AvailabilityStatus.all_available
    elif any(ok):
        status = AvailabilityStatus.partially_available
    else:
        status = AvailabilityStatus.not_available

    return FormAggregates(
        total_products=len(items),
        total_requested_quantity=sum(item.requested_quantity or 0 for item in items),
        total_approved_quantity=sum(item.approved_quantity or 0 for item in items),
        availability_status=status,
    )


# ---------- Soumission ----------
def plan_submit(state: FormState) -> SubmitPlan:
    """
    Re-valide tout le formulaire et construit le payload amont.

    Lève SubmissionBlocked si une ligne est invalide :
    - retrait : toute erreur bloque (même location, stock insuffisant, ...)
    - approbation : seulement en statut APPROVED (les quantités approuvées
      ne comptent pas pour un refus / une demande laissée en attente)
    """
    state = evaluate_form(state)
    errors = {i: item.error for i, item in enumerate(state.items) if item.error}

    if state.flow == FlowKind.withdrawal:
        if errors:
            first = errors[min(errors)]
            raise SubmissionBlocked(first, errors)
        return SubmitPlan(
            flow=state.flow,
            document_id=state.document_id,
            payload={
                "notes": state.notes,
                "items": [
                    {
                        "productId": item.product_id,
                        "batchId": item.batch_id,
                        "productUnitId": item.product_unit_id,
                        "requestedQuantity": item.requested_quantity,
                        "fromLocationId": item.from_location_id,
                        "toLocationId": item.to_location_id,
                    }
                    for item in state.items
                ],
            },
        )

    if state.approval_status == ApprovalStatus.approved:
        # stock connu seulement : un lookup en cours / en échec remonte son propre message
        unavailable = [
            i
            for i, item in enumerate(state.items)
            if item.batch_available_base is not None and item.approved_quantity > 0 and not item.is_available
        ]
        if unavailable:
            raise SubmissionBlocked(INSUFFICIENT_STOCK_MESSAGE, errors)
        if errors:
            raise SubmissionBlocked(errors[min(errors)], errors)
        if compute_aggregates(state).availability_status == AvailabilityStatus.not_available:
            raise SubmissionBlocked(NOTHING_AVAILABLE_MESSAGE)

    return SubmitPlan(
        flow=state.flow,
        document_id=state.document_id,
        payload={
            "approvalStatus": state.approval_status.value,
            "items": [{"_id": item.id, "approvedQuantity": item.approved_quantity} for item in state.items],
        },
    )
