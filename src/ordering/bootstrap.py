"""Composition root: initializes the domain and wires the services together."""

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from ordering.application.service import OrderApplicationService
from ordering.config import Settings
from ordering.domain import logger, ordering
from ordering.order.repository import OrderRepository
from ordering.order.serial import SerialNumberGenerator
from ordering.order.service import EventPublisher, OrderDomainService
from ordering.persistence.repository import SqlAlchemyOrderRepository
from ordering.pricing import get_catalog, get_promotions
from ordering.pricing.port import ProductCatalog, PromotionPolicy
from ordering.utils.db import create_engine_for, session_factory, setup_db

_initialized = False


def init_domain() -> None:
    """Register the model with the domain and initialize it, once per process."""
    global _initialized
    if _initialized:
        return

    # Element modules register themselves on import
    import ordering.order.events as _events  # noqa: F401
    import ordering.order.order as _order  # noqa: F401
    import ordering.shared.money as _money  # noqa: F401

    ordering.init(traverse=False)
    _initialized = True


@dataclass
class OrderingServices:
    settings: Settings
    engine: Engine
    repository: OrderRepository
    domain_service: OrderDomainService
    application_service: OrderApplicationService

    def dispose(self) -> None:
        self.engine.dispose()


def build_services(
    settings: Settings | None = None,
    catalog: ProductCatalog | None = None,
    promotions: PromotionPolicy | None = None,
    publisher: EventPublisher | None = None,
    create_schema: bool = False,
) -> OrderingServices:
    """Build the service graph from ``settings`` (read from the environment when omitted)."""
    init_domain()
    settings = settings or Settings.from_env()
    engine = create_engine_for(settings)
    if create_schema:
        setup_db(engine)

    repository = SqlAlchemyOrderRepository(
        session_factory(engine), tz=settings.tzinfo, max_page_size=settings.max_page_size
    )
    domain_service = OrderDomainService(
        repository,
        SerialNumberGenerator(token_length=settings.sn_token_length, tz=settings.tzinfo),
        publisher=publisher,
        max_conflict_retries=settings.max_conflict_retries,
    )
    application_service = OrderApplicationService(
        domain_service,
        repository,
        catalog or get_catalog(),
        promotions or get_promotions(),
        settings=settings,
    )

    logger.info(
        "ordering_services_built",
        env=settings.env,
        database=engine.url.render_as_string(hide_password=True),
    )
    return OrderingServices(settings, engine, repository, domain_service, application_service)
