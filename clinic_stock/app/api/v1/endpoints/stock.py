from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_stock.app.api.deps import get_db
from clinic_stock.app.db.models.core_types import LocationStockStatus
from clinic_stock.app.db.models.snapshot import LocationStock
from clinic_stock.app.schemas.stock import LocationQuantityRead, LocationStockRead
from clinic_stock.services.location_stock import available_base_quantity, find_entry
from clinic_stock.services.sources import SnapshotStockSource, entry_read

router = APIRouter(prefix="/stock")


@router.get(
    "",
    response_model=list[LocationStockRead],
)
def get_stock(
    batch_id: str | None = None,
    location_id: str | None = None,
    product_id: str | None = None,
    db: Session = Depends(get_db),
):
    """
    Stock par location (READ ONLY)
    - copie locale, alimentée par clinic_stock.app.db.sync
    - quantités en unités de base
    """

    stmt = select(LocationStock).order_by(LocationStock.batch_id, LocationStock.location_id, LocationStock.id)

    if batch_id is not None:
        stmt = stmt.where(LocationStock.batch_id == batch_id)

    if location_id is not None:
        stmt = stmt.where(LocationStock.location_id == location_id)

    if product_id is not None:
        stmt = stmt.where(LocationStock.product_id == product_id)

    rows = db.execute(stmt).scalars().all()
    return [LocationStockRead(**entry_read(r).model_dump(), status=r.status.value) for r in rows]


@router.get("/location", response_model=LocationQuantityRead)
def get_location_quantity(
    batch_id: str = "",
    location_id: str = "",
    db: Session = Depends(get_db),
):
    """Quantité d'un lot dans une location; 0 si rien (pas une erreur)."""
    entries = SnapshotStockSource(db).list_location_stock()
    return LocationQuantityRead(
        batch_id=batch_id,
        location_id=location_id,
        quantity=available_base_quantity(entries, batch_id, location_id),
        entry=find_entry(entries, batch_id, location_id),
    )


@router.get("/batch/{batch_id}")
def get_batch_available(batch_id: str, db: Session = Depends(get_db)):
    return {
        "batch_id": batch_id,
        "available_quantity": SnapshotStockSource(db).batch_available(batch_id),
        "status": LocationStockStatus.active.value,
    }
