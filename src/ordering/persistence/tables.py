"""SQLAlchemy table mapping for orders.

Money is stored as an amount column plus a currency column. Items and
addresses are stored as JSON documents in single columns; see ``codec`` for
their shape. ``order_products`` is a lookup index from product to order,
rewritten in the same transaction as the order row.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, returns aware UTC, on every dialect."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    pass


_Amount = Numeric(14, 2)


class OrderRecord(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    order_sn: Mapped[str] = mapped_column(String(40), unique=True)
    status: Mapped[str] = mapped_column(String(16), index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)

    total_amount: Mapped[Decimal] = mapped_column(_Amount)
    total_amount_currency: Mapped[str] = mapped_column(String(3))
    pay_amount: Mapped[Decimal] = mapped_column(_Amount)
    pay_amount_currency: Mapped[str] = mapped_column(String(3))
    freight_amount: Mapped[Decimal] = mapped_column(_Amount)
    freight_amount_currency: Mapped[str] = mapped_column(String(3))
    discount_amount: Mapped[Decimal] = mapped_column(_Amount)
    discount_amount_currency: Mapped[str] = mapped_column(String(3))
    coupon_amount: Mapped[Decimal] = mapped_column(_Amount)
    coupon_amount_currency: Mapped[str] = mapped_column(String(3))
    point_amount: Mapped[Decimal] = mapped_column(_Amount)
    point_amount_currency: Mapped[str] = mapped_column(String(3))

    payment_method: Mapped[str | None] = mapped_column(String(16))
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    delivery_method: Mapped[str] = mapped_column(String(16))
    carrier: Mapped[str] = mapped_column(String(100), default="")
    tracking_number: Mapped[str] = mapped_column(String(100), default="")
    shipped_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    received_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    commented_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    shipping_address: Mapped[dict | None] = mapped_column(JSON)
    billing_address: Mapped[dict | None] = mapped_column(JSON)
    note: Mapped[str] = mapped_column(Text, default="")
    order_items: Mapped[list] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, index=True)


class OrderProductRecord(Base):
    __tablename__ = "order_products"

    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True)
    product_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    __table_args__ = (Index("ix_order_products_product_id", "product_id"),)
