"""Domain events for the Order aggregate.

Events are immutable facts describing a business-significant state change.
The aggregate raises them as it transitions; the domain service hands them
to an external publisher after the change is persisted. Delivery is not
handled here.

Amounts travel as decimal strings so the payload stays JSON-ready and exact.
"""

from datetime import UTC, datetime
from uuid import uuid4

from protean.fields import DateTime, Identifier, List, String, Text

from ordering.domain import ordering


def _new_event_id() -> str:
    return str(uuid4())


@ordering.event(part_of="Order")
class OrderCreated:
    """A new order was placed."""

    __version__ = 1

    event_type = String(max_length=50, default="order.created")
    event_id = Identifier(default=_new_event_id)
    order_id = Identifier(required=True)
    order_sn = String(max_length=32)
    user_id = Identifier(required=True)
    items = List(content_type=dict)
    total_amount = String(max_length=32, required=True)
    pay_amount = String(max_length=32, required=True)
    currency = String(max_length=3, required=True)
    occurred_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaid:
    __version__ = 1

    event_type = String(max_length=50, default="order.paid")
    event_id = Identifier(default=_new_event_id)
    order_id = Identifier(required=True)
    order_sn = String(max_length=32)
    user_id = Identifier(required=True)
    payment_method = String(max_length=20, required=True)
    pay_amount = String(max_length=32, required=True)
    currency = String(max_length=3, required=True)
    transaction_id = String(max_length=100)
    occurred_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    event_type = String(max_length=50, default="order.shipped")
    event_id = Identifier(default=_new_event_id)
    order_id = Identifier(required=True)
    order_sn = String(max_length=32)
    user_id = Identifier(required=True)
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)
    occurred_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    event_type = String(max_length=50, default="order.delivered")
    event_id = Identifier(default=_new_event_id)
    order_id = Identifier(required=True)
    order_sn = String(max_length=32)
    user_id = Identifier(required=True)
    occurred_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCompleted:
    __version__ = 1

    event_type = String(max_length=50, default="order.completed")
    event_id = Identifier(default=_new_event_id)
    order_id = Identifier(required=True)
    order_sn = String(max_length=32)
    user_id = Identifier(required=True)
    occurred_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    event_type = String(max_length=50, default="order.cancelled")
    event_id = Identifier(default=_new_event_id)
    order_id = Identifier(required=True)
    order_sn = String(max_length=32)
    user_id = Identifier(required=True)
    reason = Text()
    occurred_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefunding:
    """A refund was requested; money has not moved yet."""

    __version__ = 1

    event_type = String(max_length=50, default="order.refunding")
    event_id = Identifier(default=_new_event_id)
    order_id = Identifier(required=True)
    order_sn = String(max_length=32)
    user_id = Identifier(required=True)
    reason = Text()
    occurred_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefunded:
    __version__ = 1

    event_type = String(max_length=50, default="order.refunded")
    event_id = Identifier(default=_new_event_id)
    order_id = Identifier(required=True)
    order_sn = String(max_length=32)
    user_id = Identifier(required=True)
    refund_amount = String(max_length=32, required=True)
    currency = String(max_length=3, required=True)
    occurred_at = DateTime(required=True)


ORDER_EVENTS = (
    OrderCreated,
    OrderPaid,
    OrderShipped,
    OrderDelivered,
    OrderCompleted,
    OrderCancelled,
    OrderRefunding,
    OrderRefunded,
)


# ---------------------------------------------------------------------------
# Builders used by the aggregate
# ---------------------------------------------------------------------------
def _header(order, occurred_at: datetime | None) -> dict:
    return {
        "order_id": order.id,
        "order_sn": order.order_sn,
        "user_id": order.user_id,
        "occurred_at": occurred_at or datetime.now(UTC),
    }


def order_created(order) -> OrderCreated:
    return OrderCreated(
        **_header(order, order.created_at),
        items=[
            {
                "product_id": item.product_id,
                "product_sku": item.product_sku,
                "quantity": item.quantity,
                "unit_price": str(item.unit_price.amount),
                "total_price": str(item.total_price.amount),
            }
            for item in order.items
        ],
        total_amount=str(order.total_amount.amount),
        pay_amount=str(order.pay_amount.amount),
        currency=order.pay_amount.currency,
    )


def order_paid(order, transaction_id: str | None = None) -> OrderPaid:
    return OrderPaid(
        **_header(order, order.paid_at),
        payment_method=order.payment_method,
        pay_amount=str(order.pay_amount.amount),
        currency=order.pay_amount.currency,
        transaction_id=transaction_id,
    )


def order_shipped(order) -> OrderShipped:
    return OrderShipped(
        **_header(order, order.shipped_at),
        carrier=order.carrier,
        tracking_number=order.tracking_number,
    )


def order_delivered(order) -> OrderDelivered:
    return OrderDelivered(**_header(order, order.received_at))


def order_completed(order) -> OrderCompleted:
    return OrderCompleted(**_header(order, order.updated_at))


def order_cancelled(order, reason: str | None = None) -> OrderCancelled:
    return OrderCancelled(**_header(order, order.updated_at), reason=reason)


def order_refunding(order, reason: str | None = None) -> OrderRefunding:
    return OrderRefunding(**_header(order, order.updated_at), reason=reason)


def order_refunded(order) -> OrderRefunded:
    return OrderRefunded(
        **_header(order, order.updated_at),
        refund_amount=str(order.pay_amount.amount),
        currency=order.pay_amount.currency,
    )
