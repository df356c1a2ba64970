"""create product_units / location_stock snapshot tables

Revision ID: 3f2a9c41d7e0
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c41d7e0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LOCATION_STOCK_STATUS = sa.Enum("ACTIVE", "RESERVED", "FINISHED", "DAMAGED", name="location_stock_status")


def upgrade() -> None:
    op.create_table(
        "product_units",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("abbreviation", sa.String(32)),
        sa.Column("conversion_to_base", sa.Float(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("conversion_to_base > 0", name="ck_product_unit_conversion_pos"),
    )
    op.create_index("ix_product_units_product_id", "product_units", ["product_id"])

    op.create_table(
        "location_stock",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("batch_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=False),
        sa.Column("product_id", sa.String(64)),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("status", LOCATION_STOCK_STATUS, nullable=False),
        sa.Column("product_name", sa.String(255)),
        sa.Column("batch_number", sa.String(64)),
        sa.Column("location_name", sa.String(200)),
        sa.Column("expiry_date", sa.Date()),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_location_stock_qty_nonneg"),
    )
    op.create_index("ix_location_stock_product_id", "location_stock", ["product_id"])
    op.create_index("ix_location_stock_batch_location", "location_stock", ["batch_id", "location_id"])


def downgrade() -> None:
    op.drop_index("ix_location_stock_batch_location", table_name="location_stock")
    op.drop_index("ix_location_stock_product_id", table_name="location_stock")
    op.drop_table("location_stock")
    op.drop_index("ix_product_units_product_id", table_name="product_units")
    op.drop_table("product_units")
    # Postgres: le type enum survit au drop_table
    LOCATION_STOCK_STATUS.drop(op.get_bind(), checkfirst=True)
