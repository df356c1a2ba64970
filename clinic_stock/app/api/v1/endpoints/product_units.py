from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinic_stock.app.api.deps import get_db
from clinic_stock.app.schemas.units import ProductUnitRead, UnitResolutionRead
from clinic_stock.services.sources import SnapshotStockSource
from clinic_stock.services.units import auto_select_unit, resolve_unit

router = APIRouter(prefix="/product-units")


@router.get("", response_model=list[ProductUnitRead])
def list_product_units(product_id: str, db: Session = Depends(get_db)):
    return SnapshotStockSource(db).list_units(product_id)


@router.get("/resolve", response_model=UnitResolutionRead)
def resolve_product_unit(
    product_id: str,
    product_unit_id: str = "",
    db: Session = Depends(get_db),
):
    """
    Facteur de conversion de l'unité choisie.
    Sans unité : unité par défaut du produit (sinon la première).
    """
    units = SnapshotStockSource(db).list_units(product_id)
    unit_id = auto_select_unit(units, product_unit_id)
    if not unit_id:
        raise HTTPException(status_code=404, detail="No unit configured for this product")

    resolution = resolve_unit(units, unit_id)
    return UnitResolutionRead(
        product_unit_id=unit_id,
        state=resolution.state.value,
        conversion_to_base=resolution.conversion_to_base,
        is_default=resolution.is_default,
        error=resolution.error,
    )
