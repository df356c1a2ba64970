from __future__ import annotations

import os
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from clinic_stock.app.db.session import SessionLocal
from clinic_stock.services.sources import SnapshotStockSource, StockSource, UpstreamStockSource
from clinic_stock.services.upstream import InventoryApiClient

# "upstream" : API inventaire en direct / "snapshot" : copie locale
STOCK_SOURCE = os.getenv("STOCK_SOURCE", "upstream")


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_inventory_client() -> InventoryApiClient:
    return InventoryApiClient()


def get_stock_source(
    db: Session = Depends(get_db),
    client: InventoryApiClient = Depends(get_inventory_client),
) -> StockSource:
    if STOCK_SOURCE == "snapshot":
        return SnapshotStockSource(db)
    return UpstreamStockSource(client)
