from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from clinic_stock.app.db.models.core_types import (
    ApprovalStatus,
    AvailabilityStatus,
    FlowKind,
    UnitState,
)
from clinic_stock.app.schemas.stock import LocationStockEntry
from clinic_stock.app.schemas.units import ProductUnitRead


# ---------- State ----------
class FormItem(BaseModel):
    """
    Ligne d'une demande / d'un retrait.

    Les champs "dérivés" (available_quantity, is_available, error, ...) sont
    recalculés à chaque réduction, jamais saisis.
    """

    id: str | None = None  # _id amont (flux approbation)

    product_id: str = ""
    batch_id: str = ""
    product_unit_id: str = ""
    from_location_id: str = ""
    to_location_id: str = ""

    requested_quantity: float = 0
    approved_quantity: float = 0

    # affichage
    product_name: str | None = None
    batch_number: str | None = None
    unit_name: str | None = None

    # résultats de lookups
    units: list[ProductUnitRead] = Field(default_factory=list)
    units_loaded: bool = False
    unit_error: str = ""
    batch_available_base: float | None = None  # flux approbation uniquement
    batch_stock_error: str = ""  # échec du lookup : stock inconnu, pas nul
    generation: int = 0

    # dérivés
    unit_state: UnitState = UnitState.unselected
    conversion_to_base: float | None = None
    available_quantity: float = 0
    is_available: bool = False
    quantity_disabled: bool = True
    error: str = ""

    model_config = ConfigDict(frozen=True)


class FormState(BaseModel):
    flow: FlowKind
    document_id: str | None = None
    document_no: str | None = None
    status: str | None = None  # statut retrait (affichage)
    approval_status: ApprovalStatus = ApprovalStatus.pending
    notes: str = ""

    items: list[FormItem] = Field(default_factory=lambda: [FormItem()])

    location_stock: list[LocationStockEntry] = Field(default_factory=list)
    stock_loaded: bool = False
    stock_error: str = ""

    message: str = ""
    revision: int = 0
    next_generation: int = 1  # compteur unique au formulaire

    model_config = ConfigDict(frozen=True)


class FormAggregates(BaseModel):
    total_products: int
    total_requested_quantity: float
    total_approved_quantity: float
    availability_status: AvailabilityStatus


# ---------- Actions ----------
ItemField = Literal[
    "product_id",
    "batch_id",
    "product_unit_id",
    "from_location_id",
    "to_location_id",
    "requested_quantity",
    "approved_quantity",
]


class AddItem(BaseModel):
    type: Literal["add_item"] = "add_item"


class RemoveItem(BaseModel):
    type: Literal["remove_item"] = "remove_item"
    index: int


class SetField(BaseModel):
    type: Literal["set_field"] = "set_field"
    index: int
    field: ItemField
    value: str | float | None = None


class SetNotes(BaseModel):
    type: Literal["set_notes"] = "set_notes"
    notes: str = ""


class SetApprovalStatus(BaseModel):
    type: Literal["set_approval_status"] = "set_approval_status"
    status: ApprovalStatus


class SetApprovedToRequested(BaseModel):
    type: Literal["set_approved_to_requested"] = "set_approved_to_requested"


class UnitsLoaded(BaseModel):
    type: Literal["units_loaded"] = "units_loaded"
    index: int
    generation: int
    units: list[ProductUnitRead]


class UnitLoadFailed(BaseModel):
    type: Literal["unit_load_failed"] = "unit_load_failed"
    index: int
    generation: int
    reason: str = "Failed to load product units"


class StockLoaded(BaseModel):
    type: Literal["stock_loaded"] = "stock_loaded"
    entries: list[LocationStockEntry]


class StockLoadFailed(BaseModel):
    type: Literal["stock_load_failed"] = "stock_load_failed"
    reason: str = "Failed to load location stock"


class BatchStockLoaded(BaseModel):
    type: Literal["batch_stock_loaded"] = "batch_stock_loaded"
    index: int
    generation: int
    quantity: float
    error: str = ""


class RefreshStock(BaseModel):
    type: Literal["refresh_stock"] = "refresh_stock"


FormAction = Annotated[
    Union[
        AddItem,
        RemoveItem,
        SetField,
        SetNotes,
        SetApprovalStatus,
        SetApprovedToRequested,
        UnitsLoaded,
        UnitLoadFailed,
        StockLoaded,
        StockLoadFailed,
        BatchStockLoaded,
        RefreshStock,
    ],
    Field(discriminator="type"),
]


class ReduceRequest(BaseModel):
    state: FormState
    actions: list[FormAction] = Field(default_factory=list)


class FormRead(BaseModel):
    state: FormState
    aggregates: FormAggregates
