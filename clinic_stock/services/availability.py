from __future__ import annotations

from dataclasses import dataclass

# Tolérance sur les comparaisons en unités de base (aller-retour division/multiplication)
ABS_TOLERANCE = 1e-4
REL_TOLERANCE = 1e-6


@dataclass(frozen=True)
class Availability:
    available_quantity: float  # unités d'affichage
    is_available: bool
    required_base_quantity: float
    must_reset: bool  # stock nul + quantité non nulle: l'appelant remet à 0


def tolerance(available_base_quantity: float) -> float:
    return max(ABS_TOLERANCE, REL_TOLERANCE * abs(available_base_quantity))


def evaluate(
    quantity: float,
    conversion_to_base: float | None,
    available_base_quantity: float,
) -> Availability:
    """
    Convertit la quantité saisie en unités de base et la compare au stock.

    Fonction pure: mêmes entrées, même résultat.
    """
    conversion = conversion_to_base if conversion_to_base and conversion_to_base > 0 else 1.0
    available_base = max(float(available_base_quantity or 0), 0.0)
    qty = float(quantity or 0)

    required = qty * conversion
    return Availability(
        available_quantity=available_base / conversion,
        is_available=required <= available_base + tolerance(available_base),
        required_base_quantity=required,
        must_reset=available_base == 0 and qty != 0,
    )
