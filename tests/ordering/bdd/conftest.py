"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.exceptions import InvalidTransitionError
from ordering.order.events import (
    OrderCancelled,
    OrderCompleted,
    OrderDelivered,
    OrderPaid,
    OrderRefunded,
    OrderRefunding,
    OrderShipped,
)
from ordering.order.order import OrderStatus
from ordering.shared.money import Money
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

_ORDER_EVENT_CLASSES = {
    "OrderPaid": OrderPaid,
    "OrderShipped": OrderShipped,
    "OrderDelivered": OrderDelivered,
    "OrderCompleted": OrderCompleted,
    "OrderCancelled": OrderCancelled,
    "OrderRefunding": OrderRefunding,
    "OrderRefunded": OrderRefunded,
}

_OPERATIONS = {
    "pay": lambda order: order.pay("alipay", "txn-001"),
    "ship": lambda order: order.ship("SF Express", "SF1001"),
    "receive": lambda order: order.receive(),
    "complete": lambda order: order.complete(),
    "cancel": lambda order: order.cancel("changed my mind"),
    "request_refund": lambda order: order.request_refund("damaged"),
    "refund": lambda order: order.refund(),
}

# Operations that walk a fresh order to each status
_PATHS = {
    OrderStatus.PENDING: [],
    OrderStatus.PAID: ["pay"],
    OrderStatus.SHIPPING: ["pay", "ship"],
    OrderStatus.DELIVERED: ["pay", "ship", "receive"],
    OrderStatus.COMPLETED: ["pay", "ship", "receive", "complete"],
    OrderStatus.CANCELLED: ["cancel"],
    OrderStatus.REFUNDING: ["pay", "request_refund"],
    OrderStatus.REFUNDED: ["pay", "request_refund", "refund"],
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for the error raised by the last When step, if any."""
    return {"exc": None}


@pytest.fixture()
def attempt(error):
    """Run an action, keeping a rejected lifecycle or validation error for the Then steps."""

    def _attempt(action):
        try:
            action()
        except (InvalidTransitionError, ValidationError) as exc:
            error["exc"] = exc

    return _attempt


def _pending_order(make_order, make_item):
    return make_order(
        items=[make_item("prod-001", "100.00", 3), make_item("prod-002", "50.00", 1)],
        freight="10.00",
    )


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a pending order", target_fixture="order")
def _(make_order, make_item):
    return _pending_order(make_order, make_item)


@given(parsers.cfparse('an order in "{status}" status'), target_fixture="order")
def _(make_order, make_item, status):
    order = _pending_order(make_order, make_item)
    for operation in _PATHS[OrderStatus(status)]:
        _OPERATIONS[operation](order)
    order.pull_events()
    return order


@given("the order was paid", target_fixture="order")
def _(order):
    order.pay("alipay", "txn-001")
    order.pull_events()
    return order


@given("the order was shipped", target_fixture="order")
def _(order):
    order.ship("SF Express", "SF1001")
    order.pull_events()
    return order


# ---------------------------------------------------------------------------
# When steps (shared across features)
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the order is paid with "{method}"'))
def _(order, attempt, method):
    attempt(lambda: order.pay(method))


@when(parsers.cfparse('the order is shipped with "{carrier}" tracking "{tracking_number}"'))
def _(order, attempt, carrier, tracking_number):
    attempt(lambda: order.ship(carrier, tracking_number))


@when(parsers.cfparse('the order is cancelled because "{reason}"'))
def _(order, attempt, reason):
    attempt(lambda: order.cancel(reason))


@when(parsers.cfparse('a refund is requested because "{reason}"'))
def _(order, attempt, reason):
    attempt(lambda: order.request_refund(reason))


@when("the refund is completed")
def _(order, attempt):
    attempt(order.refund)


@when("the order is received")
def _(order, attempt):
    attempt(order.receive)


@when("the order is completed")
def _(order, attempt):
    attempt(order.complete)


@when(parsers.cfparse('the "{operation}" operation is attempted'))
def _(order, attempt, operation):
    attempt(lambda: _OPERATIONS[operation](order))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert order.status == status


@then("the order action fails with an invalid transition")
def _(error):
    assert error["exc"] is not None, "Expected the action to be rejected but it succeeded"
    assert isinstance(error["exc"], InvalidTransitionError)


@then("the order action fails with a validation error")
def _(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse("an {event_type} order event is raised"))
def _(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"


@then("no order event is raised")
def _(order):
    assert order._events == []


@then(parsers.cfparse("the amount due is {amount}"))
def _(order, amount):
    assert order.pay_amount == Money.of(amount)
