"""
Table metadata for the order lifecycle store.

Tables are declared with SQLAlchemy Core so the same statements run on
PostgreSQL (asyncpg) in production and SQLite (aiosqlite) in tests.
"""

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from app.domain.enums import OrderStatus, PaymentMethod, PaymentStatus

metadata = sa.MetaData()

MONEY = sa.Numeric(10, 2, asdecimal=True)
PAYLOAD = sa.JSON().with_variant(JSONB(), "postgresql")


def _enum(enum_cls, name: str) -> sa.Enum:
    return sa.Enum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])


ORDER_STATUS = _enum(OrderStatus, "order_status")
PAYMENT_STATUS = _enum(PaymentStatus, "payment_status")
PAYMENT_METHOD = _enum(PaymentMethod, "payment_method")


# ------------------------- Catalog (read-only reference data) -------------------------

services = sa.Table(
    "services",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
)

service_tiers = sa.Table(
    "service_tiers",
    metadata,
    sa.Column("id", sa.String(64), primary_key=True),
    sa.Column("service_id", sa.Integer, sa.ForeignKey("services.id"), nullable=False),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("price", MONEY, nullable=False),
    sa.Column("delivery_days", sa.Integer, nullable=False),
    sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
)

# ------------------------- Customers -------------------------

customers = sa.Table(
    "customers",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("email", sa.String(255), nullable=False, unique=True),
    sa.Column("website", sa.String(500), nullable=False, server_default=""),
    sa.Column("phone", sa.String(50), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

# ------------------------- Orders -------------------------

orders = sa.Table(
    "orders",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("tracking_code", sa.String(64), nullable=False),
    sa.Column("customer_id", sa.Integer, sa.ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False),
    sa.Column("service_tier_id", sa.String(64), nullable=False),
    sa.Column("service_name", sa.String(255), nullable=False),
    sa.Column("service_tier_name", sa.String(255), nullable=False),
    sa.Column("service_price", MONEY, nullable=False),
    sa.Column("delivery_days", sa.Integer, nullable=False),
    sa.Column("requirements", sa.Text, nullable=False, server_default=""),
    sa.Column("quantity", sa.Integer, nullable=False),
    sa.Column("total_amount", MONEY, nullable=False),
    sa.Column("currency", sa.String(3), nullable=False),
    sa.Column("status", ORDER_STATUS, nullable=False),
    sa.Column("payment_status", PAYMENT_STATUS, nullable=False),
    sa.Column("notes", sa.Text, nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("tracking_code", name="uq_orders_tracking_code"),
    sa.CheckConstraint("quantity >= 1", name="ck_orders_quantity_positive"),
)

sa.Index("ix_orders_customer_id", orders.c.customer_id)
sa.Index("ix_orders_status", orders.c.status)

# ------------------------- Payments -------------------------

payments = sa.Table(
    "payments",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
    sa.Column("payment_method", PAYMENT_METHOD, nullable=False),
    sa.Column("gateway_reference", sa.String(255), nullable=True),
    sa.Column("payer_id", sa.String(255), nullable=True),
    sa.Column("amount", MONEY, nullable=False),
    sa.Column("currency", sa.String(3), nullable=False),
    sa.Column("status", PAYMENT_STATUS, nullable=False),
    sa.Column("gateway_response", PAYLOAD, nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

sa.Index("ix_payments_order_reference", payments.c.order_id, payments.c.gateway_reference)

# ------------------------- Status history (append-only) -------------------------

order_status_history = sa.Table(
    "order_status_history",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
    sa.Column("status", ORDER_STATUS, nullable=False),
    sa.Column("notes", sa.Text, nullable=True),
    sa.Column("changed_by", sa.String(255), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

sa.Index("ix_order_status_history_order_id", order_status_history.c.order_id)

# ------------------------- Deliverables -------------------------

deliverables = sa.Table(
    "deliverables",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
    sa.Column("file_name", sa.String(255), nullable=False),
    sa.Column("file_path", sa.String(1024), nullable=False),
    sa.Column("file_type", sa.String(255), nullable=False),
    sa.Column("file_size", sa.Integer, nullable=False),
    sa.Column("uploaded_by", sa.String(255), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)
