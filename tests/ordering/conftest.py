from datetime import UTC, datetime
from decimal import Decimal

import pytest
from ordering.application.service import OrderApplicationService
from ordering.order.order import Address, Order, OrderItem
from ordering.order.serial import SerialNumberGenerator
from ordering.order.service import EventPublisher, OrderDomainService
from ordering.persistence.repository import SqlAlchemyOrderRepository
from ordering.pricing.fake_adapter import FakeCatalog, FakePromotions
from ordering.shared.money import Money
from ordering.utils.db import session_factory


class RecordingPublisher(EventPublisher):
    def __init__(self):
        self.published = []

    def publish(self, events):
        self.published.extend(events)

    @property
    def event_types(self):
        return [event.event_type for event in self.published]


def _address(**overrides):
    fields = {
        "province": "Zhejiang",
        "city": "Hangzhou",
        "district": "Xihu",
        "detail_address": "1 Wensan Road",
        "receiver_name": "Li Lei",
        "receiver_phone": "13800000000",
        "post_code": "310000",
    }
    fields.update(overrides)
    return Address(**fields)


def _item(product_id="prod-001", unit_price="100.00", quantity=1, **overrides):
    return OrderItem(
        product_id=product_id,
        product_name=overrides.pop("product_name", f"Product {product_id}"),
        unit_price=Money.of(unit_price),
        quantity=quantity,
        **overrides,
    )


def _order(user_id="user-001", items=None, freight="0.00", **overrides):
    return Order.create(
        user_id=user_id,
        items=items if items is not None else [_item()],
        shipping_address=overrides.pop("shipping_address", _address()),
        freight=Money.of(freight),
        **overrides,
    )


@pytest.fixture()
def make_address():
    return _address


@pytest.fixture()
def make_item():
    return _item


@pytest.fixture()
def make_order():
    return _order


@pytest.fixture()
def repository(engine, settings):
    return SqlAlchemyOrderRepository(session_factory(engine), tz=settings.tzinfo, max_page_size=settings.max_page_size)


@pytest.fixture()
def publisher():
    return RecordingPublisher()


@pytest.fixture()
def domain_service(repository, publisher):
    return OrderDomainService(repository, SerialNumberGenerator(), publisher=publisher, max_conflict_retries=3)


@pytest.fixture()
def catalog():
    catalog = FakeCatalog()
    catalog.add_product("prod-001", "Green Tea 250g", Decimal("100.00"), sku="TEA-250")
    catalog.add_product("prod-002", "Tea Cup", Decimal("30.00"), sku="CUP-01")
    return catalog


@pytest.fixture()
def promotions():
    promotions = FakePromotions()
    promotions.add_coupon("SAVE20", Decimal("20.00"))
    promotions.set_points("user-001", Decimal("15.00"))
    return promotions


@pytest.fixture()
def now():
    return datetime(2024, 3, 13, 10, 30, tzinfo=UTC)


@pytest.fixture()
def app_service(domain_service, repository, catalog, promotions, settings, now):
    return OrderApplicationService(domain_service, repository, catalog, promotions, settings=settings, clock=lambda: now)
