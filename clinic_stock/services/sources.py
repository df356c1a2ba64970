"""
Sources de stock / d'unités pour la réconciliation.

- UpstreamStockSource : API inventaire en direct
- SnapshotStockSource : copie locale synchronisée (clinic_stock.app.db.sync)
"""
from __future__ import annotations

from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clinic_stock.app.db.models.core_types import LocationStockStatus
from clinic_stock.app.db.models.snapshot import LocationStock, ProductUnit
from clinic_stock.app.schemas.stock import LocationStockEntry
from clinic_stock.app.schemas.units import ProductUnitRead
from clinic_stock.services.upstream import InventoryApiClient


class StockSource(Protocol):
    def list_units(self, product_id: str) -> list[ProductUnitRead]: ...

    def get_unit(self, unit_id: str) -> ProductUnitRead | None: ...

    def list_location_stock(self) -> list[LocationStockEntry]: ...

    def batch_available(self, batch_id: str) -> float: ...


class UpstreamStockSource:
    def __init__(self, client: InventoryApiClient):
        self.client = client

    def list_units(self, product_id: str) -> list[ProductUnitRead]:
        return self.client.list_product_units(product_id)

    def get_unit(self, unit_id: str) -> ProductUnitRead | None:
        return self.client.get_product_unit(unit_id)

    def list_location_stock(self) -> list[LocationStockEntry]:
        return self.client.list_location_stock()

    def batch_available(self, batch_id: str) -> float:
        return self.client.get_batch_available(batch_id)


def unit_read(row: ProductUnit) -> ProductUnitRead:
    return ProductUnitRead(
        id=row.id,
        product_id=row.product_id,
        name=row.name,
        abbreviation=row.abbreviation,
        conversion_to_base=row.conversion_to_base,
        is_default=row.is_default,
    )


def entry_read(row: LocationStock) -> LocationStockEntry:
    return LocationStockEntry(
        batch_id=row.batch_id,
        location_id=row.location_id,
        quantity=row.quantity,
        location_stock_id=row.id,
        product_id=row.product_id,
        product_name=row.product_name,
        batch_number=row.batch_number,
        location_name=row.location_name,
    )


class SnapshotStockSource:
    def __init__(self, db: Session):
        self.db = db

    def list_units(self, product_id: str) -> list[ProductUnitRead]:
        rows = (
            self.db.execute(
                select(ProductUnit)
                .where(ProductUnit.product_id == product_id)
                .order_by(ProductUnit.position.asc(), ProductUnit.id.asc())
            )
            .scalars()
            .all()
        )
        return [unit_read(r) for r in rows]

    def get_unit(self, unit_id: str) -> ProductUnitRead | None:
        row = self.db.get(ProductUnit, unit_id)
        return unit_read(row) if row else None

    def list_location_stock(self) -> list[LocationStockEntry]:
        rows = (
            self.db.execute(
                select(LocationStock)
                .where(LocationStock.status == LocationStockStatus.active)
                .order_by(LocationStock.batch_id, LocationStock.location_id, LocationStock.id)
            )
            .scalars()
            .all()
        )
        return [entry_read(r) for r in rows]

    def batch_available(self, batch_id: str) -> float:
        total = self.db.execute(
            select(func.coalesce(func.sum(LocationStock.quantity), 0))
            .where(LocationStock.batch_id == batch_id)
            .where(LocationStock.status == LocationStockStatus.active)
        ).scalar_one()
        return float(total)
