from __future__ import annotations

from typing import Iterable

from clinic_stock.app.schemas.stock import LocationStockEntry


def find_entry(
    entries: Iterable[LocationStockEntry],
    batch_id: str,
    location_id: str,
) -> LocationStockEntry | None:
    """
    Première entrée (lot, location) trouvée.
    Un lot/une location vide ne matche jamais.
    """
    if not batch_id or not location_id:
        return None
    for e in entries:
        if e.batch_id == batch_id and e.location_id == location_id:
            return e
    return None


def available_base_quantity(
    entries: Iterable[LocationStockEntry],
    batch_id: str,
    location_id: str,
) -> float:
    """
    Quantité en unités de base pour (lot, location).
    Absence de match = 0 (pas de stock / pas encore sélectionné), jamais une erreur.
    """
    entry = find_entry(entries, batch_id, location_id)
    if entry is None:
        return 0.0
    return max(float(entry.quantity or 0), 0.0)
