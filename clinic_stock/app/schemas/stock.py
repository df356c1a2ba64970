from pydantic import BaseModel, ConfigDict


class LocationStockEntry(BaseModel):
    """Stock d'un lot dans une location, en unités de base (lecture seule)."""

    batch_id: str
    location_id: str
    quantity: float = 0

    location_stock_id: str | None = None
    product_id: str | None = None
    product_name: str | None = None
    batch_number: str | None = None
    location_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class LocationStockRead(LocationStockEntry):
    status: str


class LocationQuantityRead(BaseModel):
    batch_id: str
    location_id: str
    quantity: float
    entry: LocationStockEntry | None = None
