"""Tests for Order aggregate creation, value objects and end-to-end lifecycle scenarios."""

from decimal import Decimal

import pytest
from ordering.exceptions import InvalidTransitionError
from ordering.order.order import Address, DeliveryMethod, Order, OrderItem, OrderStatus, PaymentMethod
from ordering.shared.money import Money
from protean.exceptions import IncorrectUsageError, ValidationError


def _address(**overrides):
    fields = {
        "province": "Guangdong",
        "city": "Shenzhen",
        "district": "Nanshan",
        "detail_address": "88 Keyuan Road",
        "receiver_name": "Han Meimei",
        "receiver_phone": "13900000000",
    }
    fields.update(overrides)
    return Address(**fields)


def _items():
    return [
        OrderItem(product_id="prod-001", product_name="Green Tea", unit_price=Money.of(100), quantity=3),
        OrderItem(product_id="prod-002", product_name="Tea Cup", unit_price=Money.of(50), quantity=1),
    ]


def _make_order(**overrides):
    defaults = {
        "user_id": "user-001",
        "items": _items(),
        "shipping_address": _address(),
        "freight": Money.of(10),
    }
    defaults.update(overrides)
    return Order.create(**defaults)


class TestOrderCreation:
    def test_create_computes_totals(self):
        order = _make_order()
        assert order.total_amount == Money.of(350)
        assert order.pay_amount == Money.of(360)
        assert order.freight_amount == Money.of(10)

    def test_create_starts_pending(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING

    def test_create_is_unsaved(self):
        order = _make_order()
        assert order.version == 0
        assert order.order_sn == ""

    def test_create_copies_items(self):
        order = _make_order()
        assert [item.product_id for item in order.items] == ["prod-001", "prod-002"]

    def test_billing_defaults_to_shipping(self):
        order = _make_order()
        assert order.billing_address == order.shipping_address

    def test_explicit_billing_address(self):
        billing = _address(city="Guangzhou")
        order = _make_order(billing_address=billing)
        assert order.billing_address.city == "Guangzhou"

    def test_default_delivery_method(self):
        assert _make_order().delivery_method == DeliveryMethod.EXPRESS

    def test_freight_accepts_plain_amount(self):
        order = _make_order(freight="12.5")
        assert order.freight_amount == Money.of("12.50")

    def test_create_requires_items(self):
        with pytest.raises(ValidationError) as exc:
            _make_order(items=[])
        assert "items" in exc.value.messages

    def test_create_requires_user(self):
        with pytest.raises(ValidationError) as exc:
            _make_order(user_id="")
        assert "user_id" in exc.value.messages

    def test_create_requires_shipping_address(self):
        with pytest.raises(ValidationError) as exc:
            _make_order(shipping_address=None)
        assert "shipping_address" in exc.value.messages

    def test_create_reports_all_missing_fields(self):
        with pytest.raises(ValidationError) as exc:
            Order.create(user_id="", items=[], shipping_address=None)
        assert {"user_id", "items", "shipping_address"} <= set(exc.value.messages)

    def test_items_must_share_order_currency(self):
        usd_item = OrderItem(product_id="prod-003", product_name="Mug", unit_price=Money.of(5, "USD"), quantity=1)
        with pytest.raises(ValidationError):
            _make_order(items=[usd_item])

    def test_freight_must_share_order_currency(self):
        with pytest.raises(ValidationError):
            _make_order(freight=Money.of(10, "USD"))


class TestAddress:
    def test_required_fields(self):
        with pytest.raises(ValidationError) as exc:
            _address(receiver_phone="", city="")
        assert set(exc.value.messages) == {"receiver_phone", "city"}

    def test_post_code_is_optional(self):
        assert _address().post_code is None

    def test_equality_by_value(self):
        assert _address() == _address()


class TestOrderItem:
    def test_total_price(self):
        item = OrderItem(product_id="p", product_name="P", unit_price=Money.of("19.99"), quantity=3)
        assert item.total_price == Money.of("59.97")

    def test_line_discount_reduces_total(self):
        item = OrderItem(
            product_id="p", product_name="P", unit_price=Money.of(100), quantity=2, discount=Money.of(15)
        )
        assert item.total_price == Money.of(185)

    def test_discount_defaults_to_zero(self):
        item = OrderItem(product_id="p", product_name="P", unit_price=Money.of(1), quantity=1)
        assert item.discount is None
        assert item.line_discount == Money.zero()

    def test_discount_cannot_exceed_line(self):
        with pytest.raises(ValidationError):
            OrderItem(product_id="p", product_name="P", unit_price=Money.of(10), quantity=1, discount=Money.of(11))

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_must_be_positive(self, quantity):
        with pytest.raises(ValidationError) as exc:
            OrderItem(product_id="p", product_name="P", unit_price=Money.of(10), quantity=quantity)
        assert "quantity" in exc.value.messages

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            OrderItem(product_id="p", product_name="P", unit_price=Money.of(-1), quantity=1)

    def test_each_item_gets_an_id(self):
        first, second = _items()
        assert first.id and second.id and first.id != second.id


class TestOrderScenarios:
    def test_coupon_pay_ship_then_cancel_fails(self):
        order = _make_order()
        order.apply_coupon(Money.of(50))
        assert order.pay_amount == Money.of(310)

        order.pay(PaymentMethod.ALIPAY)
        assert order.status == OrderStatus.PAID
        assert order.paid_at is not None
        assert order.payment_method == PaymentMethod.ALIPAY

        order.ship("SF Express", "TRK1")
        assert order.status == OrderStatus.SHIPPING
        assert order.carrier == "SF Express"
        assert order.tracking_number == "TRK1"
        assert order.shipped_at is not None

        with pytest.raises(InvalidTransitionError):
            order.cancel()
        assert order.status == OrderStatus.SHIPPING

    def test_refund_path(self):
        completed = _make_order()
        completed.pay("wechat")
        completed.ship("SF Express", "TRK1")
        completed.receive()
        completed.complete()
        with pytest.raises(InvalidTransitionError):
            completed.request_refund("too late")

        order = _make_order()
        order.pay("wechat")
        order.ship("SF Express", "TRK1")
        order.request_refund("damaged")
        assert order.status == OrderStatus.REFUNDING

        order.refund()
        assert order.status == OrderStatus.REFUNDED

        with pytest.raises(InvalidTransitionError):
            order.refund()

    def test_pay_accepts_string_method(self):
        order = _make_order()
        order.pay("cash")
        assert order.payment_method == PaymentMethod.CASH

    def test_pay_rejects_unknown_method(self):
        order = _make_order()
        with pytest.raises(ValidationError) as exc:
            order.pay("bitcoin")
        assert "payment_method" in exc.value.messages
        assert order.status == OrderStatus.PENDING

    def test_receive_sets_received_at(self):
        order = _make_order()
        order.pay("alipay")
        order.ship("SF Express", "TRK1")
        order.receive()
        assert order.status == OrderStatus.DELIVERED
        assert order.received_at is not None

    def test_transitions_refresh_updated_at(self):
        order = _make_order()
        before = order.updated_at
        order.pay("alipay")
        assert order.updated_at >= before


class TestSerialNumberAssignment:
    def test_assign_before_first_save(self):
        order = _make_order()
        order.assign_serial_number("20240301142233ABCDEF")
        assert order.order_sn == "20240301142233ABCDEF"

    def test_cannot_reassign_after_save(self):
        order = _make_order()
        order.assign_serial_number("20240301142233ABCDEF")
        order.version = 1
        with pytest.raises(ValidationError):
            order.assign_serial_number("20240301142233ZZZZZZ")
        assert order.order_sn == "20240301142233ABCDEF"


class TestComment:
    def _completed(self):
        order = _make_order()
        order.pay("alipay")
        order.ship("SF Express", "TRK1")
        order.receive()
        order.complete()
        return order

    def test_record_comment_on_completed_order(self):
        order = self._completed()
        order.record_comment()
        assert order.commented_at is not None

    def test_record_comment_only_once(self):
        order = self._completed()
        order.record_comment()
        with pytest.raises(ValidationError):
            order.record_comment()

    def test_record_comment_requires_completed(self):
        order = _make_order()
        with pytest.raises(InvalidTransitionError):
            order.record_comment()
        assert order.commented_at is None

    def test_comment_does_not_change_status(self):
        order = self._completed()
        order.record_comment()
        assert order.status == OrderStatus.COMPLETED
        assert order.total_amount.amount == Decimal("350.00")


class TestAggregateCluster:
    def test_items_are_linked_to_their_order(self):
        order = _make_order()
        assert all(item.order_id == order.id for item in order.items)

    def test_addresses_are_immutable(self):
        order = _make_order()
        with pytest.raises(IncorrectUsageError):
            order.shipping_address.city = "Guangzhou"

    def test_unknown_status_value_rejected(self):
        order = _make_order()
        with pytest.raises(ValidationError) as exc:
            order.status = "lost"
        assert "status" in exc.value.messages
        assert order.status == OrderStatus.PENDING

    def test_subtractions_above_total_rejected_on_assignment(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.coupon_amount = Money.of(400)
