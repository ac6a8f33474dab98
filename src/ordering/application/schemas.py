"""Pydantic request schemas and read models for the Ordering application service.

Requests are the external contract; they are validated here and mapped onto
the aggregate by the application service. Read models are what callers get
back, so nothing outside the service ever holds a live aggregate.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ordering.order.order import DeliveryMethod, OrderStatus, PaymentMethod


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressRequest(BaseModel):
    province: str = Field(min_length=1)
    city: str = Field(min_length=1)
    district: str = Field(min_length=1)
    detail_address: str = Field(min_length=1)
    receiver_name: str = Field(min_length=1)
    receiver_phone: str = Field(min_length=1)
    post_code: str | None = None


class OrderItemRequest(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    attribute_values: str = ""


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    user_id: str = Field(min_length=1)
    items: list[OrderItemRequest] = Field(min_length=1)
    shipping_address: AddressRequest
    billing_address: AddressRequest | None = None
    delivery_method: DeliveryMethod = DeliveryMethod.EXPRESS
    note: str = ""
    coupon_code: str | None = None
    use_points: bool = False

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "shipping_address": {
                        "province": "Zhejiang",
                        "city": "Hangzhou",
                        "district": "Xihu",
                        "detail_address": "1 Wensan Road",
                        "receiver_name": "Li Lei",
                        "receiver_phone": "13800000000",
                    },
                    "delivery_method": "express",
                }
            ]
        }
    }


class PayOrderRequest(BaseModel):
    order_id: str = Field(min_length=1)
    payment_method: PaymentMethod
    transaction_id: str | None = None
    amount: Decimal | None = Field(default=None, ge=0)


class ShipOrderRequest(BaseModel):
    order_id: str = Field(min_length=1)
    carrier: str = Field(min_length=1)
    tracking_number: str = Field(min_length=1)


class StatusUpdateRequest(BaseModel):
    order_id: str = Field(min_length=1)
    status: OrderStatus
    reason: str | None = None
    payment_method: PaymentMethod | None = None
    carrier: str | None = None
    tracking_number: str | None = None


class OrderQueryRequest(BaseModel):
    user_id: str | None = None
    status: OrderStatus | None = None
    order_sn: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    product_id: str | None = None
    keyword: str | None = None
    page: int = Field(default=1, ge=1)
    size: int = Field(default=20, ge=1, le=100)


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------
class MoneyResponse(BaseModel):
    amount: Decimal
    currency: str


class AddressResponse(BaseModel):
    province: str
    city: str
    district: str
    detail_address: str
    receiver_name: str
    receiver_phone: str
    post_code: str | None = None


class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    product_name: str
    product_image: str
    product_sku: str
    quantity: int
    unit_price: MoneyResponse
    discount: MoneyResponse
    total_price: MoneyResponse
    attribute_values: str


class OrderDetail(BaseModel):
    id: str
    order_sn: str
    user_id: str
    status: OrderStatus
    allowed_operations: list[str]
    items: list[OrderItemResponse]
    total_amount: MoneyResponse
    pay_amount: MoneyResponse
    freight_amount: MoneyResponse
    discount_amount: MoneyResponse
    coupon_amount: MoneyResponse
    point_amount: MoneyResponse
    payment_method: PaymentMethod | None = None
    paid_at: datetime | None = None
    delivery_method: DeliveryMethod
    carrier: str
    tracking_number: str
    shipped_at: datetime | None = None
    received_at: datetime | None = None
    commented_at: datetime | None = None
    shipping_address: AddressResponse | None = None
    billing_address: AddressResponse | None = None
    note: str
    created_at: datetime
    updated_at: datetime
    version: int


class OrderBrief(BaseModel):
    id: str
    order_sn: str
    status: OrderStatus
    total_amount: MoneyResponse
    pay_amount: MoneyResponse
    payment_method: PaymentMethod | None = None
    item_count: int
    created_at: datetime
    updated_at: datetime


class OrderList(BaseModel):
    orders: list[OrderBrief]
    total: int
    page: int
    size: int


class TrendPoint(BaseModel):
    day: date
    order_count: int
    pay_amount: Decimal


class OrderStatistics(BaseModel):
    currency: str
    total_orders: int
    total_amount: Decimal
    today_orders: int
    today_amount: Decimal
    week_orders: int
    week_amount: Decimal
    month_orders: int
    month_amount: Decimal
    status_counts: dict[OrderStatus, int]
    pending_orders: int
    paid_orders: int
    shipping_orders: int
    delivered_orders: int
    completed_orders: int
    cancelled_orders: int
    refunding_orders: int
    refunded_orders: int
    trend: list[TrendPoint]
    collected_at: datetime
