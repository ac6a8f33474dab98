"""Encode/decode between the Order aggregate and its stored row.

This is the only module that knows the stored representation of addresses
and line items (JSON documents) and of money (amount + currency columns).
"""

from decimal import Decimal, InvalidOperation

from protean.exceptions import ValidationError

from ordering.exceptions import PersistenceError
from ordering.order.order import Address, DeliveryMethod, Order, OrderItem, OrderStatus, PaymentMethod
from ordering.persistence.tables import OrderRecord
from ordering.shared.money import Money

_MONEY_FIELDS = (
    "total_amount",
    "pay_amount",
    "freight_amount",
    "discount_amount",
    "coupon_amount",
    "point_amount",
)


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------
def encode_money(money: Money) -> dict:
    return {"amount": str(money.amount), "currency": money.currency}


def decode_money(data: dict) -> Money:
    return Money(amount=Decimal(data["amount"]), currency=data["currency"])


def encode_address(address: Address | None) -> dict | None:
    if address is None:
        return None
    return {
        "province": address.province,
        "city": address.city,
        "district": address.district,
        "detail_address": address.detail_address,
        "receiver_name": address.receiver_name,
        "receiver_phone": address.receiver_phone,
        "post_code": address.post_code,
    }


def decode_address(data: dict | None) -> Address | None:
    if not data:
        return None
    return Address(
        province=data["province"],
        city=data["city"],
        district=data["district"],
        detail_address=data["detail_address"],
        receiver_name=data["receiver_name"],
        receiver_phone=data["receiver_phone"],
        post_code=data.get("post_code"),
    )


def encode_item(item: OrderItem) -> dict:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": item.product_name,
        "product_image": item.product_image,
        "product_sku": item.product_sku,
        "quantity": item.quantity,
        "unit_price": encode_money(item.unit_price),
        "total_price": encode_money(item.total_price),
        "discount": encode_money(item.line_discount),
        "attribute_values": item.attribute_values,
    }


def decode_item(data: dict) -> OrderItem:
    # total_price is derived; the stored copy is for readers of the raw row
    return OrderItem(
        id=data["id"],
        product_id=data["product_id"],
        product_name=data["product_name"],
        product_image=data.get("product_image", ""),
        product_sku=data.get("product_sku", ""),
        quantity=int(data["quantity"]),
        unit_price=decode_money(data["unit_price"]),
        discount=decode_money(data["discount"]) if data.get("discount") else None,
        attribute_values=data.get("attribute_values", ""),
    )


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
def order_to_columns(order: Order) -> dict:
    """Column values for every mutable field of ``order``."""
    columns = {
        "user_id": order.user_id,
        "order_sn": order.order_sn,
        "status": OrderStatus(order.status).value,
        "payment_method": PaymentMethod(order.payment_method).value if order.payment_method else None,
        "paid_at": order.paid_at,
        "delivery_method": DeliveryMethod(order.delivery_method).value,
        "carrier": order.carrier,
        "tracking_number": order.tracking_number,
        "shipped_at": order.shipped_at,
        "received_at": order.received_at,
        "commented_at": order.commented_at,
        "shipping_address": encode_address(order.shipping_address),
        "billing_address": encode_address(order.billing_address),
        "note": order.note,
        "order_items": [encode_item(item) for item in order.items],
        "updated_at": order.updated_at,
    }
    for name in _MONEY_FIELDS:
        money = getattr(order, name)
        columns[name] = money.amount
        columns[f"{name}_currency"] = money.currency
    return columns


def record_from_order(order: Order) -> OrderRecord:
    return OrderRecord(
        id=order.id,
        created_at=order.created_at,
        deleted_at=order.deleted_at,
        version=order.version,
        **order_to_columns(order),
    )


def order_from_record(record: OrderRecord) -> Order:
    try:
        moneys = {
            name: Money(amount=Decimal(getattr(record, name)), currency=getattr(record, f"{name}_currency"))
            for name in _MONEY_FIELDS
        }
        return Order(
            id=record.id,
            user_id=record.user_id,
            order_sn=record.order_sn,
            status=OrderStatus(record.status).value,
            currency=record.pay_amount_currency,
            items=[decode_item(item) for item in record.order_items or []],
            payment_method=PaymentMethod(record.payment_method).value if record.payment_method else None,
            paid_at=record.paid_at,
            delivery_method=DeliveryMethod(record.delivery_method).value,
            carrier=record.carrier or "",
            tracking_number=record.tracking_number or "",
            shipped_at=record.shipped_at,
            received_at=record.received_at,
            commented_at=record.commented_at,
            shipping_address=decode_address(record.shipping_address),
            billing_address=decode_address(record.billing_address),
            note=record.note or "",
            created_at=record.created_at,
            updated_at=record.updated_at,
            deleted_at=record.deleted_at,
            version=record.version,
            **moneys,
        )
    except (KeyError, TypeError, ValueError, InvalidOperation, ValidationError) as exc:
        raise PersistenceError(f"Order {record.id} could not be decoded: {exc}") from exc


def product_ids(order: Order) -> list[str]:
    """Distinct product ids referenced by the order's items, in item order."""
    return list(dict.fromkeys(item.product_id for item in order.items))
