"""Tests for domain initialization, build_services() and the logging setup."""

from decimal import Decimal

import pytest
import structlog
from ordering.bootstrap import build_services, init_domain
from ordering.config import Settings
from ordering.order.events import ORDER_EVENTS
from ordering.order.order import OrderStatus
from ordering.pricing import get_catalog, get_promotions, reset_pricing, set_catalog
from ordering.pricing.fake_adapter import FakeCatalog, FakePromotions
from ordering.utils.logging import add_context, clear_context, get_log_level


@pytest.fixture()
def services(publisher):
    catalog = FakeCatalog()
    catalog.add_product("prod-001", "Green Tea 250g", Decimal("88.00"))
    services = build_services(
        Settings(env="test", database_uri="sqlite:///:memory:"),
        catalog=catalog,
        publisher=publisher,
        create_schema=True,
    )
    yield services
    services.dispose()


class TestBuildServices:
    def test_end_to_end(self, services, publisher):
        app = services.application_service
        detail = app.create_order(
            {
                "user_id": "user-001",
                "items": [{"product_id": "prod-001", "quantity": 1}],
                "shipping_address": {
                    "province": "Zhejiang",
                    "city": "Hangzhou",
                    "district": "Xihu",
                    "detail_address": "1 Wensan Road",
                    "receiver_name": "Li Lei",
                    "receiver_phone": "13800000000",
                },
            }
        )
        app.pay_order({"order_id": detail.id, "payment_method": "alipay"})

        assert services.repository.find_by_id(detail.id).status == OrderStatus.PAID
        assert publisher.event_types == ["order.created", "order.paid"]

    def test_wiring_uses_settings(self, services):
        assert services.domain_service.max_conflict_retries == services.settings.max_conflict_retries
        assert services.domain_service.serial_generator.token_length == services.settings.sn_token_length


class TestDomainInitialization:
    def test_events_are_typed_after_init(self):
        init_domain()
        assert all(event_cls.__type__ for event_cls in ORDER_EVENTS)

    def test_init_is_idempotent(self):
        init_domain()
        init_domain()


class TestPricingFactory:
    def test_defaults_to_fakes(self):
        reset_pricing()
        assert isinstance(get_catalog(), FakeCatalog)
        assert isinstance(get_promotions(), FakePromotions)

    def test_override_and_reset(self):
        custom = FakeCatalog()
        set_catalog(custom)
        assert get_catalog() is custom
        reset_pricing()
        assert get_catalog() is not custom


class TestLogging:
    def test_importing_the_domain_configures_structlog(self):
        import ordering.domain  # noqa: F401

        assert structlog.is_configured()

    def test_log_level_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("ORDERING_ENV", "production")
        assert get_log_level() == "INFO"
        monkeypatch.setenv("ORDERING_ENV", "development")
        assert get_log_level() == "DEBUG"

    def test_explicit_log_level_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert get_log_level() == "ERROR"

    def test_context_binding(self):
        add_context(request_id="req-1")
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}
