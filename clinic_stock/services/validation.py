"""
Validation d'une ligne de demande / de retrait.

Règles, dans l'ordre :
    1. même location source/destination (retrait)
    2. cascade des champs dépendants (apply_field_change)
    3. stock nul => quantité forcée à 0, saisie désactivée
    4. borne max = stock disponible converti dans l'unité choisie
    5. borne min

La première erreur rencontrée est celle affichée sur la ligne.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from clinic_stock.app.db.models.core_types import FlowKind, UnitState
from clinic_stock.app.schemas.forms import FormItem
from clinic_stock.app.schemas.stock import LocationStockEntry
from clinic_stock.services.availability import evaluate
from clinic_stock.services.units import resolve_unit

SAME_LOCATION_MESSAGE = "From and To locations cannot be the same"
NO_STOCK_MESSAGE = "No stock found for the selected batch in the from location"
STOCK_LOADING_MESSAGE = "Stock availability is still loading"
UNIT_PENDING_MESSAGE = "Unit conversion not resolved"

MIN_QUANTITY = 0.01

_TEXT_FIELDS = {"product_id", "batch_id", "product_unit_id", "from_location_id", "to_location_id"}
_QUANTITY_FIELDS = {"requested_quantity", "approved_quantity"}


@dataclass(frozen=True)
class StockContext:
    available_base_quantity: float = 0.0
    loaded: bool = True
    entry: LocationStockEntry | None = None
    pending_message: str = STOCK_LOADING_MESSAGE


@dataclass(frozen=True)
class ItemValidation:
    item: FormItem
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def error(self) -> str:
        return self.errors[0] if self.errors else ""

    @property
    def valid(self) -> bool:
        return not self.errors


def _coerce_quantity(value) -> float:
    if value is None or value == "":
        return 0.0
    return float(value)


def apply_field_change(item: FormItem, field_name: str, value) -> FormItem:
    """
    Applique une saisie sur une ligne et vide les champs qui en dépendent.

    - produit changé : lot, locations, unité et unités chargées sont vidés
    - lot changé : location source vidée (le stock dépend du couple lot/location)

    Un changement qui relance un lookup remet generation à 0 : la ligne reçoit
    un nouveau numéro au prochain passage, les réponses en vol pour l'ancienne
    sélection seront ignorées.
    """
    if field_name in _QUANTITY_FIELDS:
        return item.model_copy(update={field_name: _coerce_quantity(value)})

    if field_name not in _TEXT_FIELDS:
        raise ValueError(f"Unknown item field: {field_name}")

    value = "" if value is None else str(value)
    if value == getattr(item, field_name):
        return item

    updates: dict = {field_name: value}

    if field_name == "product_id":
        updates.update(
            batch_id="",
            from_location_id="",
            to_location_id="",
            product_unit_id="",
            units=[],
            units_loaded=False,
            unit_error="",
            batch_available_base=None,
            batch_stock_error="",
            product_name=None,
            batch_number=None,
            unit_name=None,
            generation=0,
        )
    elif field_name == "batch_id":
        updates.update(
            from_location_id="",
            batch_available_base=None,
            batch_stock_error="",
            batch_number=None,
            generation=0,
        )
    elif field_name == "product_unit_id":
        unit = next((u for u in item.units if u.id == value), None)
        updates["unit_name"] = unit.name if unit else None

    return item.model_copy(update=updates)


def _fmt(value: float) -> str:
    return f"{value:g}"


def validate_item(
    item: FormItem,
    *,
    flow: FlowKind,
    stock: StockContext,
    enforce_stock: bool = True,
) -> ItemValidation:
    """
    Valide et normalise une ligne; renvoie la ligne avec ses champs dérivés
    (available_quantity, is_available, quantity_disabled, error) recalculés.
    """
    withdrawal = flow == FlowKind.withdrawal
    quantity_field = "requested_quantity" if withdrawal else "approved_quantity"
    quantity = float(getattr(item, quantity_field) or 0)

    resolution = resolve_unit(
        item.units,
        item.product_unit_id,
        loaded=item.units_loaded,
        load_error=item.unit_error,
    )
    errors: list[str] = []

    # 1) même location
    if withdrawal and item.from_location_id and item.from_location_id == item.to_location_id:
        errors.append(SAME_LOCATION_MESSAGE)

    # champs requis
    if not item.product_id:
        errors.append("Product is required")
    if withdrawal and not item.batch_id:
        errors.append("Batch is required")
    if item.product_id and item.units_loaded and not item.product_unit_id:
        errors.append("Unit is required")
    if withdrawal and not item.from_location_id:
        errors.append("From location is required")
    if withdrawal and not item.to_location_id:
        errors.append("To location is required")

    # unité : non résolue = bloquant
    if resolution.state == UnitState.failed:
        errors.append(f"Unit conversion could not be resolved: {resolution.error}")
    elif item.product_id and not item.units_loaded:
        errors.append(UNIT_PENDING_MESSAGE)

    if not stock.loaded:
        errors.append(stock.pending_message)

    available_base = stock.available_base_quantity if stock.loaded else 0.0

    # 3) stock nul : remise à zéro forcée
    if stock.loaded and available_base == 0:
        quantity = 0.0
        if withdrawal and item.batch_id and item.from_location_id:
            errors.append(NO_STOCK_MESSAGE)

    availability = evaluate(quantity, resolution.conversion_to_base, available_base)

    # 4) borne max
    if enforce_stock and resolution.resolved and stock.loaded and not availability.is_available:
        label = "Requested" if withdrawal else "Approved"
        msg = (
            f"{label} amount ({availability.required_base_quantity:.2f} base units) "
            f"exceeds available stock ({_fmt(available_base)} base units)"
        )
        if stock.entry is not None and stock.entry.location_name:
            msg += f" in {stock.entry.location_name}"
        errors.append(msg)

    if not withdrawal and quantity > item.requested_quantity:
        errors.append(
            f"Approved quantity cannot exceed requested quantity ({_fmt(item.requested_quantity)})"
        )

    # 5) borne min
    if withdrawal:
        if quantity < MIN_QUANTITY:
            errors.append("Requested quantity must be greater than 0")
    elif quantity < 0:
        errors.append("Approved quantity cannot be negative")
    elif 0 < quantity < MIN_QUANTITY:
        errors.append(f"Approved quantity must be at least {MIN_QUANTITY}")

    disabled = available_base == 0 or not resolution.resolved or not stock.loaded

    normalized = item.model_copy(
        update={
            quantity_field: quantity,
            "unit_state": resolution.state,
            "conversion_to_base": resolution.conversion_to_base,
            "unit_name": resolution.unit.name if resolution.unit else item.unit_name,
            "available_quantity": availability.available_quantity,
            "is_available": availability.is_available,
            "quantity_disabled": disabled,
            "error": errors[0] if errors else "",
        }
    )
    return ItemValidation(item=normalized, errors=tuple(errors))
