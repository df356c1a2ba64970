from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from clinic_stock.app.core.logging_config import configure_logging
from clinic_stock.app.db.base import Base
from clinic_stock.app.db.models.core_types import LocationStockStatus
from clinic_stock.app.db.models.snapshot import LocationStock, ProductUnit
from clinic_stock.app.db.session import SessionLocal, engine
from clinic_stock.services.upstream import InventoryApiClient

logger = logging.getLogger(__name__)


def _stock_row_id(batch_id: str, location_id: str, location_stock_id: str | None) -> str:
    return location_stock_id or f"{batch_id}:{location_id}"


def sync_location_stock(db: Session, client: InventoryApiClient) -> int:
    """
    Remplace la copie locale du stock par location (ACTIVE uniquement,
    comme la route amont). Les lignes disparues en amont sont supprimées.
    """
    now = datetime.utcnow()
    entries = client.list_location_stock()
    seen: set[str] = set()

    for e in entries:
        row_id = _stock_row_id(e.batch_id, e.location_id, e.location_stock_id)
        if row_id in seen:
            # même (lot, location) deux fois : on garde la première
            continue
        seen.add(row_id)

        row = db.get(LocationStock, row_id)
        if not row:
            row = LocationStock(id=row_id, batch_id=e.batch_id, location_id=e.location_id)
            db.add(row)

        row.batch_id = e.batch_id
        row.location_id = e.location_id
        row.product_id = e.product_id
        row.quantity = max(e.quantity, 0)
        row.status = LocationStockStatus.active
        row.product_name = e.product_name
        row.batch_number = e.batch_number
        row.location_name = e.location_name
        row.synced_at = now

    stmt = delete(LocationStock)
    if seen:
        stmt = stmt.where(LocationStock.id.not_in(list(seen)))
    db.execute(stmt)
    db.flush()
    return len(seen)


def sync_product_units(db: Session, client: InventoryApiClient, product_ids: Iterable[str]) -> int:
    now = datetime.utcnow()
    count = 0
    for pid in sorted({p for p in product_ids if p}):
        units = client.list_product_units(pid)
        keep = []
        for position, u in enumerate(units):
            if u.conversion_to_base <= 0:
                logger.warning("Skipping unit %s of product %s: invalid conversion %s", u.id, pid, u.conversion_to_base)
                continue
            row = db.get(ProductUnit, u.id)
            if not row:
                row = ProductUnit(id=u.id, product_id=pid)
                db.add(row)
            row.product_id = pid
            row.name = u.name
            row.abbreviation = u.abbreviation
            row.conversion_to_base = u.conversion_to_base
            row.is_default = u.is_default
            row.position = position
            row.synced_at = now
            keep.append(u.id)
            count += 1

        stmt = delete(ProductUnit).where(ProductUnit.product_id == pid)
        if keep:
            stmt = stmt.where(ProductUnit.id.not_in(keep))
        db.execute(stmt)

    db.flush()
    return count


def sync_snapshot(
    db: Session,
    client: InventoryApiClient,
    product_ids: Iterable[str] | None = None,
) -> dict[str, int]:
    """
    Synchronise stock par location + unités produit.
    Sans product_ids : produits présents dans le stock local.
    """
    stock_rows = sync_location_stock(db, client)
    if product_ids is None:
        product_ids = db.execute(
            select(LocationStock.product_id).where(LocationStock.product_id.is_not(None)).distinct()
        ).scalars().all()
    unit_rows = sync_product_units(db, client, product_ids)
    return {"location_stock": stock_rows, "product_units": unit_rows}


def run_sync():
    configure_logging()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        counts = sync_snapshot(db, InventoryApiClient())
        db.commit()
        print(f"SYNC OK: location_stock={counts['location_stock']}, product_units={counts['product_units']}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    run_sync()
