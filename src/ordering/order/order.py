"""Order aggregate: the core of the ordering domain.

The Order aggregate owns its line items and addresses and is the only place
where lifecycle status changes. It knows nothing about persistence; the
domain service loads it, calls one of the methods below and hands it back to
the repository.

State Machine (8 states):
    PENDING → PAID → SHIPPING → DELIVERED → COMPLETED
    PENDING → CANCELLED
    PAID / SHIPPING / DELIVERED → REFUNDING → REFUNDED
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text, ValueObject

from ordering.domain import ordering
from ordering.exceptions import InvalidTransitionError, NotFoundError
from ordering.order import events
from ordering.shared.money import DEFAULT_CURRENCY, Money


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDING = "refunding"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


class PaymentMethod(str, Enum):
    ALIPAY = "alipay"
    WECHAT = "wechat"
    CREDIT = "credit"
    DEBIT = "debit"
    CASH = "cash"


class DeliveryMethod(str, Enum):
    EXPRESS = "express"
    PICKUP = "pickup"


_TERMINAL_STATES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# Lifecycle operation → (allowed source states, target state)
_TRANSITIONS = {
    "pay": (frozenset({OrderStatus.PENDING}), OrderStatus.PAID),
    "ship": (frozenset({OrderStatus.PAID}), OrderStatus.SHIPPING),
    "receive": (frozenset({OrderStatus.SHIPPING}), OrderStatus.DELIVERED),
    "complete": (frozenset({OrderStatus.DELIVERED}), OrderStatus.COMPLETED),
    "cancel": (frozenset({OrderStatus.PENDING}), OrderStatus.CANCELLED),
    "request_refund": (
        frozenset({OrderStatus.PAID, OrderStatus.SHIPPING, OrderStatus.DELIVERED}),
        OrderStatus.REFUNDING,
    ),
    "refund": (frozenset({OrderStatus.REFUNDING}), OrderStatus.REFUNDED),
}

LIFECYCLE_OPERATIONS = tuple(_TRANSITIONS)


def allowed_transitions(status) -> dict[str, OrderStatus]:
    """Operations permitted from ``status`` and the state each leads to."""
    status = OrderStatus(status)
    return {operation: target for operation, (sources, target) in _TRANSITIONS.items() if status in sources}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """A delivery or billing address captured on the order.

    Once recorded, the address is independent of the user's address book;
    it is copied by value into the shipping and billing slots.
    """

    province = String(required=True, max_length=50)
    city = String(required=True, max_length=50)
    district = String(required=True, max_length=50)
    detail_address = String(required=True, max_length=255)
    receiver_name = String(required=True, max_length=100)
    receiver_phone = String(required=True, max_length=20)
    post_code = String(max_length=20)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line item: a product snapshot taken when the order was placed.

    Name, image, SKU and unit price are captured from the catalog at creation
    and never looked up again. ``total_price`` is derived from the other
    fields.
    """

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    unit_price = ValueObject(Money, required=True)
    quantity = Integer(required=True, min_value=1)
    product_image = String(max_length=500, default="")
    product_sku = String(max_length=64, default="")
    discount = ValueObject(Money)
    attribute_values = Text(default="")

    @property
    def line_discount(self) -> Money:
        return self.discount or Money.zero(self.unit_price.currency)

    @property
    def total_price(self) -> Money:
        return self.unit_price.times(self.quantity) - self.line_discount

    @invariant.post
    def unit_price_is_not_negative(self):
        if self.unit_price is not None and self.unit_price.is_negative:
            raise ValidationError({"unit_price": ["Unit price cannot be negative"]})

    @invariant.post
    def discount_stays_within_line_amount(self):
        if self.unit_price is None or self.discount is None:
            return
        gross = self.unit_price.times(self.quantity)
        if self.discount.currency != gross.currency or self.discount.is_negative or self.discount > gross:
            raise ValidationError({"discount": ["Line discount must be between zero and the line amount"]})


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    user_id = Identifier(required=True)
    order_sn = String(max_length=32, default="")
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    currency = String(max_length=3, default=DEFAULT_CURRENCY)
    items = HasMany(OrderItem)

    total_amount = ValueObject(Money, required=True)
    pay_amount = ValueObject(Money, required=True)
    freight_amount = ValueObject(Money, required=True)
    discount_amount = ValueObject(Money, required=True)
    coupon_amount = ValueObject(Money, required=True)
    point_amount = ValueObject(Money, required=True)

    payment_method = String(choices=PaymentMethod)
    paid_at = DateTime()
    delivery_method = String(choices=DeliveryMethod, default=DeliveryMethod.EXPRESS.value)
    carrier = String(max_length=100, default="")
    tracking_number = String(max_length=100, default="")
    shipped_at = DateTime()
    received_at = DateTime()
    commented_at = DateTime()

    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    note = Text(default="")

    created_at = DateTime(default=_now)
    updated_at = DateTime(default=_now)
    deleted_at = DateTime()
    version = Integer(default=0, min_value=0)

    @invariant.post
    def subtractions_do_not_exceed_total(self):
        if self.total_amount is None:
            return
        if self._subtractions() > self.total_amount:
            raise ValidationError(
                {"pay_amount": ["Combined discount, coupon and points exceed order total"]}
            )

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        user_id,
        items,
        shipping_address,
        billing_address=None,
        freight=None,
        delivery_method=DeliveryMethod.EXPRESS,
        note="",
        currency=DEFAULT_CURRENCY,
    ):
        """Build a new pending order from already-priced line items.

        Prices must come from the catalog; the aggregate never invents them.
        The billing address defaults to the shipping address. The serial
        number is assigned later by the domain service.
        """
        errors = {}
        if not user_id:
            errors["user_id"] = ["This field is required"]
        if not items:
            errors["items"] = ["Order must have at least one item"]
        elif any(item.unit_price.currency != currency for item in items):
            errors["items"] = [f"All items must be priced in {currency}"]
        if shipping_address is None:
            errors["shipping_address"] = ["This field is required"]
        if errors:
            raise ValidationError(errors)

        freight = freight if freight is not None else Money.zero(currency)
        if isinstance(freight, Money) and freight.currency != currency:
            raise ValidationError({"freight_amount": [f"Freight must be priced in {currency}"]})

        try:
            delivery_method = DeliveryMethod(delivery_method)
        except ValueError as exc:
            raise ValidationError(
                {"delivery_method": [f"Unknown delivery method: {delivery_method!r}"]}
            ) from exc

        now = _now()
        order = cls(
            user_id=user_id,
            currency=currency,
            items=list(items),
            total_amount=Money.zero(currency),
            pay_amount=Money.zero(currency),
            freight_amount=freight if isinstance(freight, Money) else Money.of(freight, currency),
            discount_amount=Money.zero(currency),
            coupon_amount=Money.zero(currency),
            point_amount=Money.zero(currency),
            delivery_method=delivery_method.value,
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            note=note or "",
            created_at=now,
            updated_at=now,
        )
        order.calculate_total()
        return order

    # -------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------
    def pull_events(self):
        """Return and clear the events raised since the last pull."""
        recorded = list(self._events)
        self._events.clear()
        return recorded

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _touch(self):
        self.updated_at = _now()

    def _target_of(self, operation) -> OrderStatus:
        sources, target = _TRANSITIONS[operation]
        if OrderStatus(self.status) not in sources:
            raise InvalidTransitionError(self.status, operation)
        return target

    def _transition(self, operation):
        target = self._target_of(operation)
        self.status = target.value
        self._touch()

    def _require_pending(self, operation):
        if self.status != OrderStatus.PENDING:
            raise InvalidTransitionError(self.status, operation)

    def _as_money(self, amount, field_name):
        money = amount if isinstance(amount, Money) else Money.of(amount, self.currency)
        if money.currency != self.currency:
            raise ValidationError({field_name: [f"Amount must be in {self.currency}"]})
        if money.is_negative:
            raise ValidationError({field_name: ["Amount cannot be negative"]})
        return money

    def _subtractions(self):
        return self.discount_amount + self.coupon_amount + self.point_amount

    def _set_subtraction(self, field_name, label, amount, operation):
        self._require_pending(operation)
        money = self._as_money(amount, field_name)
        if money > self.total_amount:
            raise ValidationError({field_name: [f"{label} amount exceeds order total"]})

        combined = self._subtractions() - getattr(self, field_name) + money
        if combined > self.total_amount:
            raise ValidationError({field_name: ["Combined discount, coupon and points exceed order total"]})

        setattr(self, field_name, money)
        self.calculate_total()

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def calculate_total(self):
        """Recompute total and pay amounts from items and subtractions.

        pay = total + freight - discount - coupon - points
        """
        total = Money.zero(self.currency)
        for item in self.items:
            total = total + item.total_price
        self.total_amount = total
        self.pay_amount = total + self.freight_amount - self._subtractions()
        self._touch()

    def apply_coupon(self, amount):
        self._set_subtraction("coupon_amount", "Coupon", amount, "apply_coupon")

    def use_points(self, amount):
        self._set_subtraction("point_amount", "Point", amount, "use_points")

    def apply_discount(self, amount):
        self._set_subtraction("discount_amount", "Discount", amount, "apply_discount")

    # -------------------------------------------------------------------
    # Order modification (only in PENDING state)
    # -------------------------------------------------------------------
    def add_item(self, item):
        if self.status != OrderStatus.PENDING:
            raise ValidationError({"status": ["Items can only be added to pending orders"]})
        if item.unit_price.currency != self.currency:
            raise ValidationError({"unit_price": [f"Item must be priced in {self.currency}"]})

        self.add_items(item)
        self.calculate_total()

    def remove_item(self, item_id):
        if self.status != OrderStatus.PENDING:
            raise ValidationError({"status": ["Items can only be removed from pending orders"]})

        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise NotFoundError(f"Order item {item_id} not found")
        if len(self.items) == 1:
            raise ValidationError({"items": ["Order must have at least one item"]})

        remaining_total = self.total_amount - item.total_price
        if self._subtractions() > remaining_total:
            raise ValidationError({"items": ["Removing this item would leave discounts above the order total"]})

        self.remove_items(item)
        self.calculate_total()

    def update_shipping_address(self, address):
        self._require_pending("update_shipping_address")
        if address is None:
            raise ValidationError({"shipping_address": ["This field is required"]})
        self.shipping_address = address
        self._touch()

    def update_billing_address(self, address):
        self._require_pending("update_billing_address")
        if address is None:
            raise ValidationError({"billing_address": ["This field is required"]})
        self.billing_address = address
        self._touch()

    def update_note(self, note):
        self.note = note or ""
        self._touch()

    def append_note(self, line):
        self.note = f"{self.note}\n{line}" if self.note else line
        self._touch()

    def assign_serial_number(self, order_sn):
        """Set the human-facing serial number. Only possible before the first save."""
        if self.version > 0:
            raise ValidationError({"order_sn": ["Serial number cannot change once the order is stored"]})
        self.order_sn = order_sn

    # -------------------------------------------------------------------
    # Order lifecycle transitions
    # -------------------------------------------------------------------
    def pay(self, payment_method, transaction_id=None):
        # Status first: paying a paid order is a transition error whatever the method
        self._target_of("pay")
        try:
            method = PaymentMethod(payment_method)
        except ValueError as exc:
            raise ValidationError({"payment_method": [f"Unknown payment method: {payment_method!r}"]}) from exc
        self._transition("pay")
        self.payment_method = method.value
        self.paid_at = self.updated_at
        self.raise_(events.order_paid(self, transaction_id))

    def ship(self, carrier, tracking_number):
        self._transition("ship")
        self.carrier = carrier or ""
        self.tracking_number = tracking_number or ""
        self.shipped_at = self.updated_at
        self.raise_(events.order_shipped(self))

    def receive(self):
        self._transition("receive")
        self.received_at = self.updated_at
        self.raise_(events.order_delivered(self))

    def complete(self):
        self._transition("complete")
        self.raise_(events.order_completed(self))

    def cancel(self, reason=None):
        self._transition("cancel")
        self.raise_(events.order_cancelled(self, reason))

    def request_refund(self, reason=None):
        self._transition("request_refund")
        self.raise_(events.order_refunding(self, reason))

    def refund(self):
        self._transition("refund")
        self.raise_(events.order_refunded(self))

    def record_comment(self):
        """Mark that the customer reviewed the order (completed orders only)."""
        if self.status != OrderStatus.COMPLETED:
            raise InvalidTransitionError(self.status, "record_comment")
        if self.commented_at is not None:
            raise ValidationError({"commented_at": ["Order has already been commented on"]})
        self._touch()
        self.commented_at = self.updated_at
