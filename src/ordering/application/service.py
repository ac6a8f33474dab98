"""Order application service.

Entry point for callers: validates request shapes, prices new orders through
the catalog and promotion ports, delegates writes to the domain service and
answers reads straight from the repository. Every method returns a read model.

Errors from lower layers pass through unchanged; only pydantic validation
errors are translated (into protean's ``ValidationError``).
"""

from datetime import UTC, date, datetime, time, timedelta

import structlog
from protean.exceptions import ValidationError
from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from ordering.application.mapping import address_from_request, order_brief, order_detail
from ordering.application.schemas import (
    AddressRequest,
    CreateOrderRequest,
    OrderDetail,
    OrderItemRequest,
    OrderList,
    OrderQueryRequest,
    OrderStatistics,
    PayOrderRequest,
    ShipOrderRequest,
    StatusUpdateRequest,
    TrendPoint,
)
from ordering.config import Settings
from ordering.domain import ordering
from ordering.exceptions import NotFoundError
from ordering.order.order import Order, OrderItem, OrderStatus
from ordering.order.repository import OrderCriteria, OrderRepository, normalize_page
from ordering.order.service import OrderDomainService
from ordering.pricing.port import ProductCatalog, PromotionPolicy
from ordering.shared.money import Money

logger = structlog.get_logger(__name__)

TREND_DAYS = 7


def _parse(schema: type[BaseModel], payload):
    """Validate ``payload`` (a dict or an instance) against ``schema``."""
    if isinstance(payload, schema):
        return payload
    try:
        return schema.model_validate(payload)
    except SchemaValidationError as exc:
        messages: dict[str, list[str]] = {}
        for error in exc.errors():
            key = ".".join(str(part) for part in error["loc"]) or "non_field_errors"
            messages.setdefault(key, []).append(error["msg"])
        raise ValidationError(messages) from exc


class OrderApplicationService:
    # Target status → handler name. Every status has an entry.
    _STATUS_HANDLERS = {
        OrderStatus.PENDING: "_reopen",
        OrderStatus.PAID: "_to_paid",
        OrderStatus.SHIPPING: "_to_shipping",
        OrderStatus.DELIVERED: "_to_delivered",
        OrderStatus.COMPLETED: "_to_completed",
        OrderStatus.CANCELLED: "_to_cancelled",
        OrderStatus.REFUNDING: "_to_refunding",
        OrderStatus.REFUNDED: "_to_refunded",
    }

    def __init__(
        self,
        domain_service: OrderDomainService,
        repository: OrderRepository,
        catalog: ProductCatalog,
        promotions: PromotionPolicy,
        settings: Settings | None = None,
        clock=None,
    ):
        self.domain_service = domain_service
        self.repository = repository
        self.catalog = catalog
        self.promotions = promotions
        self.settings = settings or Settings()
        self._clock = clock or (lambda: datetime.now(UTC))

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    def create_order(self, request) -> OrderDetail:
        request = _parse(CreateOrderRequest, request)
        currency = self.settings.currency

        with ordering.domain_context():
            order = Order.create(
                user_id=request.user_id,
                items=self._price_items(request.items),
                shipping_address=address_from_request(request.shipping_address),
                billing_address=address_from_request(request.billing_address),
                freight=Money.of(self.settings.freight[request.delivery_method.value], currency),
                delivery_method=request.delivery_method,
                note=request.note,
                currency=currency,
            )

            if request.coupon_code:
                order.apply_coupon(
                    self.promotions.coupon_value(request.coupon_code, request.user_id, order.total_amount.amount)
                )
            if request.use_points:
                remaining = order.total_amount - order.discount_amount - order.coupon_amount
                order.use_points(self.promotions.points_value(request.user_id, remaining.amount))

            return order_detail(self.domain_service.create_order(order))

    def pay_order(self, request) -> OrderDetail:
        request = _parse(PayOrderRequest, request)
        order = self.domain_service.pay_order(
            request.order_id,
            request.payment_method,
            amount=request.amount,
            transaction_id=request.transaction_id,
        )
        return order_detail(order)

    def ship_order(self, request) -> OrderDetail:
        request = _parse(ShipOrderRequest, request)
        order = self.domain_service.ship_order(request.order_id, request.carrier, request.tracking_number)
        return order_detail(order)

    def update_order_status(self, request) -> OrderDetail:
        """Move an order to ``request.status`` via the matching lifecycle operation."""
        request = _parse(StatusUpdateRequest, request)
        logger.debug("order_status_update_requested", order_id=request.order_id, target=request.status.value)
        handler = getattr(self, self._STATUS_HANDLERS[request.status])
        return order_detail(handler(request))

    def cancel_order(self, order_id: str, reason: str | None = None) -> OrderDetail:
        return order_detail(self.domain_service.cancel_order(order_id, reason))

    def update_note(self, order_id: str, note: str) -> OrderDetail:
        return order_detail(self.domain_service.update_note(order_id, note))

    def update_shipping_address(self, order_id: str, address) -> OrderDetail:
        address = address_from_request(_parse(AddressRequest, address))
        return order_detail(self.domain_service.update_shipping_address(order_id, address))

    def delete_order(self, order_id: str) -> None:
        self.repository.delete(order_id)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id: str) -> OrderDetail:
        return order_detail(self.repository.find_by_id(order_id))

    def get_order_by_sn(self, order_sn: str) -> OrderDetail:
        return order_detail(self.repository.find_by_order_sn(order_sn))

    def get_user_orders(self, user_id: str, page: int = 1, size: int | None = None) -> OrderList:
        page, size = normalize_page(page, size or self.settings.default_page_size, self.settings.max_page_size)
        orders, total = self.repository.find_by_user_id(user_id, page, size)
        return OrderList(orders=[order_brief(order) for order in orders], total=total, page=page, size=size)

    def search_orders(self, query=None) -> OrderList:
        query = _parse(OrderQueryRequest, query or {})
        criteria = OrderCriteria(
            user_id=query.user_id,
            status=query.status,
            order_sn=query.order_sn,
            start_date=query.start_date,
            end_date=query.end_date,
            product_id=query.product_id,
            keyword=query.keyword,
        )

        if query.order_sn and criteria == OrderCriteria(order_sn=query.order_sn):
            try:
                orders, total = [self.repository.find_by_order_sn(query.order_sn)], 1
            except NotFoundError:
                orders, total = [], 0
        else:
            orders, total = self.repository.find_matching(criteria, query.page, query.size)

        return OrderList(
            orders=[order_brief(order) for order in orders],
            total=total,
            page=query.page,
            size=query.size,
        )

    def get_statistics(self) -> OrderStatistics:
        """Counts and pay-amount sums over calendar windows in the local timezone."""
        now = self._clock().astimezone(self.settings.tzinfo)
        today = now.date()
        tomorrow = self._midnight(today + timedelta(days=1))

        total_orders, total_amount = self.repository.summarize()
        today_orders, today_amount = self.repository.summarize(self._midnight(today), tomorrow)
        week_start = today - timedelta(days=today.weekday())
        week_orders, week_amount = self.repository.summarize(self._midnight(week_start), tomorrow)
        month_orders, month_amount = self.repository.summarize(self._midnight(today.replace(day=1)), tomorrow)

        trend = []
        for offset in range(TREND_DAYS - 1, -1, -1):
            day = today - timedelta(days=offset)
            count, amount = self.repository.summarize(
                self._midnight(day), self._midnight(day + timedelta(days=1))
            )
            trend.append(TrendPoint(day=day, order_count=count, pay_amount=amount))

        status_counts = self.repository.count_by_status()
        counters = {f"{status.value}_orders": status_counts.get(status, 0) for status in OrderStatus}

        return OrderStatistics(
            currency=self.settings.currency,
            total_orders=total_orders,
            total_amount=total_amount,
            today_orders=today_orders,
            today_amount=today_amount,
            week_orders=week_orders,
            week_amount=week_amount,
            month_orders=month_orders,
            month_amount=month_amount,
            status_counts=status_counts,
            trend=trend,
            collected_at=now,
            **counters,
        )

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _midnight(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.settings.tzinfo)

    def _price_items(self, requested: list[OrderItemRequest]) -> list[OrderItem]:
        """Snapshot catalog data for each requested line."""
        product_ids = list(dict.fromkeys(line.product_id for line in requested))
        products = self.catalog.resolve(product_ids)

        missing = [product_id for product_id in product_ids if product_id not in products]
        if missing:
            raise NotFoundError(f"Unknown products: {', '.join(missing)}")

        items = []
        for line in requested:
            product = products[line.product_id]
            items.append(
                OrderItem(
                    product_id=product.product_id,
                    product_name=product.name,
                    product_image=product.image,
                    product_sku=product.sku,
                    unit_price=Money.of(product.unit_price, product.currency),
                    quantity=line.quantity,
                    attribute_values=line.attribute_values,
                )
            )
        return items

    # Status update handlers -------------------------------------------
    def _reopen(self, request):
        raise ValidationError({"status": ["An order cannot be moved back to pending"]})

    def _to_paid(self, request):
        if request.payment_method is None:
            raise ValidationError({"payment_method": ["Required when marking an order paid"]})
        return self.domain_service.pay_order(request.order_id, request.payment_method)

    def _to_shipping(self, request):
        missing = {
            name: ["Required when marking an order shipped"]
            for name in ("carrier", "tracking_number")
            if not getattr(request, name)
        }
        if missing:
            raise ValidationError(missing)
        return self.domain_service.ship_order(request.order_id, request.carrier, request.tracking_number)

    def _to_delivered(self, request):
        return self.domain_service.receive_order(request.order_id)

    def _to_completed(self, request):
        return self.domain_service.complete_order(request.order_id)

    def _to_cancelled(self, request):
        return self.domain_service.cancel_order(request.order_id, request.reason)

    def _to_refunding(self, request):
        return self.domain_service.apply_refund(request.order_id, request.reason)

    def _to_refunded(self, request):
        return self.domain_service.refund_order(request.order_id)
