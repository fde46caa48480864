"""Products, orders, shipping log and quote cache.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("title", sa.String(500)),
        sa.Column("sku", sa.String(255)),
        sa.Column("product_type", sa.String(50)),
        sa.Column("shipping_config", sa.JSON),
        sa.Column("shipping_weight", sa.Float),
        sa.Column("box_dimensions", sa.String(100)),
        sa.Column("ships_alone", sa.Boolean, default=False),
        sa.Column("shipping_class", sa.String(100)),
        sa.Column("created_at", sa.DateTime, default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index("ix_products_sku", "products", ["sku"])
    op.create_index("ix_products_title", "products", ["title"])

    op.create_table(
        "orders",
        sa.Column("id", sa.CHAR(32), primary_key=True),
        sa.Column("order_number", sa.String(100)),
        sa.Column("customer_name", sa.String(255)),
        sa.Column("customer_email", sa.String(255)),
        sa.Column("status", sa.String(50)),
        sa.Column("shipping_address", sa.JSON),
        sa.Column("cart", sa.JSON),
        sa.Column("package_weight_lbs", sa.Float),
        sa.Column("package_dimensions", sa.JSON),
        sa.Column("label_purchased", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("shipment_id", sa.String(255)),
        sa.Column("tracker_id", sa.String(255)),
        sa.Column("selected_rate_id", sa.String(255)),
        sa.Column("tracking_number", sa.String(255)),
        sa.Column("tracking_url", sa.Text),
        sa.Column("label_url", sa.Text),
        sa.Column("carrier", sa.String(100)),
        sa.Column("service", sa.String(100)),
        sa.Column("label_cost", sa.Float),
        sa.Column("label_currency", sa.String(3)),
        sa.Column("label_purchased_at", sa.DateTime),
        sa.Column("fulfillment_status", sa.String(50)),
        sa.Column("fulfillment_error", sa.Text),
        sa.Column("fulfillment_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("packing_slip_url", sa.Text),
        sa.Column("qr_code_url", sa.Text),
        sa.Column("label_archive_url", sa.Text),
        sa.Column("created_at", sa.DateTime, default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"])

    op.create_table(
        "shipping_log_entries",
        sa.Column("id", sa.CHAR(32), primary_key=True),
        sa.Column("order_id", sa.CHAR(32), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(100), nullable=False),
        sa.Column("message", sa.Text),
        sa.Column("tracking_number", sa.String(255)),
        sa.Column("label_url", sa.Text),
        sa.Column("created_at", sa.DateTime, default=sa.func.now()),
    )
    op.create_index("ix_shipping_log_entries_order_id", "shipping_log_entries", ["order_id"])

    op.create_table(
        "shipping_quotes",
        sa.Column("id", sa.CHAR(32), primary_key=True),
        sa.Column("quote_key", sa.String(64), nullable=False, unique=True),
        sa.Column("destination_fingerprint", sa.String(64)),
        sa.Column("cart_fingerprint", sa.String(64)),
        sa.Column("rates", sa.JSON),
        sa.Column("packages", sa.JSON),
        sa.Column("provider_shipment_id", sa.String(255)),
        sa.Column("created_at", sa.DateTime, default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime),
    )


def downgrade() -> None:
    op.drop_table("shipping_quotes")
    op.drop_index("ix_shipping_log_entries_order_id", table_name="shipping_log_entries")
    op.drop_table("shipping_log_entries")
    op.drop_index("ix_orders_order_number", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_products_title", table_name="products")
    op.drop_index("ix_products_sku", table_name="products")
    op.drop_table("products")
