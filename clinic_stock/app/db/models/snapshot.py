from __future__ import annotations

from datetime import datetime, date

from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    Date,
    Float,
    Enum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from clinic_stock.app.db.base import Base
from clinic_stock.app.db.models.core_types import LocationStockStatus


# ---------- UNITÉS ----------
class ProductUnit(Base):
    """
    Copie locale (lecture seule) des unités produit de l'API inventaire.
    Les ids sont les ObjectId amont, stockés en texte.
    """

    __tablename__ = "product_units"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), default="Unit", nullable=False)
    abbreviation: Mapped[str | None] = mapped_column(String(32))
    conversion_to_base: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # ordre de la liste amont: sert au repli "premier = défaut"
    position: Mapped[int] = mapped_column(default=0, nullable=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("conversion_to_base > 0", name="ck_product_unit_conversion_pos"),
    )


# ---------- STOCK PAR LOCATION ----------
class LocationStock(Base):
    __tablename__ = "location_stock"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # locationStockId amont
    batch_id: Mapped[str] = mapped_column(String(64), nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_id: Mapped[str | None] = mapped_column(String(64), index=True)

    quantity: Mapped[float] = mapped_column(Float, default=0, nullable=False)  # unités de base
    status: Mapped[LocationStockStatus] = mapped_column(
        Enum(LocationStockStatus, name="location_stock_status"),
        default=LocationStockStatus.active,
        nullable=False,
    )

    # champs dénormalisés pour l'affichage / les messages
    product_name: Mapped[str | None] = mapped_column(String(255))
    batch_number: Mapped[str | None] = mapped_column(String(64))
    location_name: Mapped[str | None] = mapped_column(String(200))
    expiry_date: Mapped[date | None] = mapped_column(Date)

    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_location_stock_qty_nonneg"),
        Index("ix_location_stock_batch_location", "batch_id", "location_id"),
    )
