"""Order domain service.

Coordinates the aggregate and the repository: load, apply one aggregate
method, persist, then hand the recorded events to the publisher.

Writes are guarded by the repository's version check. When a write loses a
race the service reloads the order and applies the operation again, so the
second of two concurrent ``pay_order`` calls ends in InvalidTransitionError
instead of silently overwriting the first.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError

from ordering.domain import ordering
from ordering.exceptions import ConflictError
from ordering.order import events
from ordering.order.order import Order, OrderStatus
from ordering.order.repository import OrderRepository
from ordering.order.serial import SerialNumberGenerator
from ordering.shared.money import Money

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Event publishing port
# ---------------------------------------------------------------------------
class EventPublisher(ABC):
    """Outbound boundary for domain events. Delivery guarantees are the adapter's concern."""

    @abstractmethod
    def publish(self, events: list) -> None: ...


class LoggingEventPublisher(EventPublisher):
    """Default publisher: writes each event to the log and nothing else."""

    def publish(self, events: list) -> None:
        for event in events:
            logger.info(
                "order_event_published",
                event_type=event.event_type,
                event_id=event.event_id,
                order_id=event.order_id,
            )


# ---------------------------------------------------------------------------
# Domain service
# ---------------------------------------------------------------------------
class OrderDomainService:
    def __init__(
        self,
        repository: OrderRepository,
        serial_generator: SerialNumberGenerator | None = None,
        publisher: EventPublisher | None = None,
        max_conflict_retries: int = 3,
    ):
        self.repository = repository
        self.serial_generator = serial_generator or SerialNumberGenerator()
        self.publisher = publisher or LoggingEventPublisher()
        self.max_conflict_retries = max_conflict_retries

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def create_order(self, order: Order) -> Order:
        """Persist a new order under a freshly generated serial number."""
        now = datetime.now(UTC)
        order.status = OrderStatus.PENDING.value
        order.created_at = now
        order.updated_at = now

        with ordering.domain_context():
            for attempt in range(self.max_conflict_retries + 1):
                order.assign_serial_number(self.serial_generator())
                try:
                    self.repository.save(order)
                    break
                except ConflictError:
                    if attempt >= self.max_conflict_retries:
                        raise
                    logger.warning("order_sn_collision", order_sn=order.order_sn, attempt=attempt + 1)

            order.raise_(events.order_created(order))
            self._publish(order)
        logger.info(
            "order_created",
            order_id=order.id,
            order_sn=order.order_sn,
            user_id=order.user_id,
            pay_amount=str(order.pay_amount),
        )
        return order

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def pay_order(self, order_id, payment_method, amount=None, transaction_id=None) -> Order:
        def pay(order):
            if amount is not None:
                paid = amount if isinstance(amount, Money) else Money.of(amount, order.currency)
                if paid != order.pay_amount:
                    raise ValidationError(
                        {"amount": [f"Payment of {paid} does not match the amount due ({order.pay_amount})"]}
                    )
            order.pay(payment_method, transaction_id)

        return self._transition(order_id, "pay", pay)

    def ship_order(self, order_id, carrier, tracking_number) -> Order:
        return self._transition(order_id, "ship", lambda order: order.ship(carrier, tracking_number))

    def receive_order(self, order_id) -> Order:
        return self._transition(order_id, "receive", lambda order: order.receive())

    def complete_order(self, order_id) -> Order:
        return self._transition(order_id, "complete", lambda order: order.complete())

    def cancel_order(self, order_id, reason=None) -> Order:
        def cancel(order):
            order.cancel(reason)
            if reason:
                order.append_note(f"Cancel reason: {reason}")

        return self._transition(order_id, "cancel", cancel)

    def apply_refund(self, order_id, reason=None) -> Order:
        def request_refund(order):
            order.request_refund(reason)
            if reason:
                order.append_note(f"Refund reason: {reason}")

        return self._transition(order_id, "request_refund", request_refund)

    def refund_order(self, order_id) -> Order:
        return self._transition(order_id, "refund", lambda order: order.refund())

    # -------------------------------------------------------------------
    # Pending-order modifications
    # -------------------------------------------------------------------
    def apply_coupon(self, order_id, amount) -> Order:
        return self._mutate(order_id, "apply_coupon", lambda order: order.apply_coupon(amount))

    def use_points(self, order_id, amount) -> Order:
        return self._mutate(order_id, "use_points", lambda order: order.use_points(amount))

    def apply_discount(self, order_id, amount) -> Order:
        return self._mutate(order_id, "apply_discount", lambda order: order.apply_discount(amount))

    def add_item(self, order_id, item) -> Order:
        return self._mutate(order_id, "add_item", lambda order: order.add_item(item))

    def remove_item(self, order_id, item_id) -> Order:
        return self._mutate(order_id, "remove_item", lambda order: order.remove_item(item_id))

    def update_shipping_address(self, order_id, address) -> Order:
        return self._mutate(order_id, "update_shipping_address", lambda order: order.update_shipping_address(address))

    def update_billing_address(self, order_id, address) -> Order:
        return self._mutate(order_id, "update_billing_address", lambda order: order.update_billing_address(address))

    def update_note(self, order_id, note) -> Order:
        return self._mutate(order_id, "update_note", lambda order: order.update_note(note))

    def record_comment(self, order_id) -> Order:
        return self._mutate(order_id, "record_comment", lambda order: order.record_comment())

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _transition(self, order_id, operation, apply) -> Order:
        order = self._mutate(order_id, operation, apply)
        logger.info(
            "order_transitioned",
            order_id=order.id,
            order_sn=order.order_sn,
            operation=operation,
            status=order.status,
        )
        return order

    def _mutate(self, order_id, operation, apply) -> Order:
        """Load, apply, update; reload and reapply on a version conflict.

        Runs inside a domain context so worker threads can raise events and
        mint item identities without one of their own.
        """
        with ordering.domain_context():
            for attempt in range(self.max_conflict_retries + 1):
                order = self.repository.find_by_id(order_id)
                apply(order)
                try:
                    self.repository.update(order)
                except ConflictError:
                    if attempt >= self.max_conflict_retries:
                        raise
                    logger.warning(
                        "order_conflict_retry", order_id=order_id, operation=operation, attempt=attempt + 1
                    )
                    continue

                self._publish(order)
                return order

    def _publish(self, order: Order) -> None:
        recorded = order.pull_events()
        if recorded:
            self.publisher.publish(recorded)
