"""
Résolution des unités produit.

Une unité se convertit vers l'unité de base du produit via conversion_to_base.
Une unité non résolue n'est PAS traitée comme 1:1 : c'est un état bloquant
(saisie de quantité désactivée) jusqu'à résolution ou échec explicite.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from clinic_stock.app.db.models.core_types import UnitState
from clinic_stock.app.schemas.units import ProductUnitRead


@dataclass(frozen=True)
class UnitResolution:
    state: UnitState
    conversion_to_base: float | None = None
    is_default: bool = False
    unit: ProductUnitRead | None = None
    error: str = ""

    @property
    def resolved(self) -> bool:
        return self.state == UnitState.resolved

    @property
    def effective_conversion(self) -> float:
        # facteur d'affichage seulement, jamais utilisé pour valider
        if self.conversion_to_base and self.conversion_to_base > 0:
            return self.conversion_to_base
        return 1.0


def pick_default_unit(units: Sequence[ProductUnitRead]) -> ProductUnitRead | None:
    """Unité marquée par défaut, sinon la première de la liste."""
    for u in units:
        if u.is_default:
            return u
    return units[0] if units else None


def resolve_unit(
    units: Sequence[ProductUnitRead],
    product_unit_id: str,
    *,
    loaded: bool = True,
    load_error: str = "",
) -> UnitResolution:
    if load_error:
        return UnitResolution(state=UnitState.failed, error=load_error)

    if not product_unit_id:
        return UnitResolution(state=UnitState.unselected)

    if not loaded:
        return UnitResolution(state=UnitState.unresolved)

    unit = next((u for u in units if u.id == product_unit_id), None)
    if unit is None:
        return UnitResolution(state=UnitState.failed, error="Unit not found for this product")

    if not unit.conversion_to_base or unit.conversion_to_base <= 0:
        return UnitResolution(
            state=UnitState.failed,
            unit=unit,
            error=f"Invalid conversion factor for unit {unit.name}",
        )

    return UnitResolution(
        state=UnitState.resolved,
        conversion_to_base=float(unit.conversion_to_base),
        is_default=unit.is_default,
        unit=unit,
    )


def auto_select_unit(units: Sequence[ProductUnitRead], product_unit_id: str) -> str:
    """Garde l'unité choisie; sinon sélectionne l'unité par défaut du produit."""
    if product_unit_id:
        return product_unit_id
    default = pick_default_unit(units)
    return default.id if default else ""
