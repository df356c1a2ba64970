from pydantic import BaseModel, ConfigDict, Field


class ProductUnitRead(BaseModel):
    id: str
    product_id: str | None = None
    name: str = "Unit"
    abbreviation: str | None = None
    conversion_to_base: float = Field(default=1.0)
    is_default: bool = False

    model_config = ConfigDict(from_attributes=True)


class UnitResolutionRead(BaseModel):
    product_unit_id: str
    state: str
    conversion_to_base: float | None
    is_default: bool
    error: str = ""
