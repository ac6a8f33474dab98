"""Aggregate → read model mapping, and request → value object mapping."""

from ordering.application.schemas import (
    AddressRequest,
    AddressResponse,
    MoneyResponse,
    OrderBrief,
    OrderDetail,
    OrderItemResponse,
)
from ordering.order.order import Address, Order, OrderItem, allowed_transitions
from ordering.shared.money import Money


def address_from_request(request: AddressRequest | None) -> Address | None:
    if request is None:
        return None
    return Address(**request.model_dump())


def money_response(money: Money) -> MoneyResponse:
    return MoneyResponse(amount=money.amount, currency=money.currency)


def address_response(address: Address | None) -> AddressResponse | None:
    if address is None:
        return None
    return AddressResponse(
        province=address.province,
        city=address.city,
        district=address.district,
        detail_address=address.detail_address,
        receiver_name=address.receiver_name,
        receiver_phone=address.receiver_phone,
        post_code=address.post_code,
    )


def item_response(item: OrderItem) -> OrderItemResponse:
    return OrderItemResponse(
        id=item.id,
        product_id=item.product_id,
        product_name=item.product_name,
        product_image=item.product_image,
        product_sku=item.product_sku,
        quantity=item.quantity,
        unit_price=money_response(item.unit_price),
        discount=money_response(item.line_discount),
        total_price=money_response(item.total_price),
        attribute_values=item.attribute_values,
    )


def order_detail(order: Order) -> OrderDetail:
    return OrderDetail(
        id=order.id,
        order_sn=order.order_sn,
        user_id=order.user_id,
        status=order.status,
        allowed_operations=sorted(allowed_transitions(order.status)),
        items=[item_response(item) for item in order.items],
        total_amount=money_response(order.total_amount),
        pay_amount=money_response(order.pay_amount),
        freight_amount=money_response(order.freight_amount),
        discount_amount=money_response(order.discount_amount),
        coupon_amount=money_response(order.coupon_amount),
        point_amount=money_response(order.point_amount),
        payment_method=order.payment_method,
        paid_at=order.paid_at,
        delivery_method=order.delivery_method,
        carrier=order.carrier,
        tracking_number=order.tracking_number,
        shipped_at=order.shipped_at,
        received_at=order.received_at,
        commented_at=order.commented_at,
        shipping_address=address_response(order.shipping_address),
        billing_address=address_response(order.billing_address),
        note=order.note,
        created_at=order.created_at,
        updated_at=order.updated_at,
        version=order.version,
    )


def order_brief(order: Order) -> OrderBrief:
    return OrderBrief(
        id=order.id,
        order_sn=order.order_sn,
        status=order.status,
        total_amount=money_response(order.total_amount),
        pay_amount=money_response(order.pay_amount),
        payment_method=order.payment_method,
        item_count=len(order.items),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )
