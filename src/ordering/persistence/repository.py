"""SQLAlchemy implementation of the Order repository.

Each public method runs in its own short-lived session and transaction.
Rows are decoded inside the session, so callers never see ORM records.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from decimal import Decimal

import structlog
from protean.exceptions import ValidationError
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ordering.exceptions import ConflictError, NotFoundError, PersistenceError
from ordering.order.order import Order, OrderStatus
from ordering.order.repository import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    OrderCriteria,
    OrderRepository,
    normalize_page,
    parse_day,
)
from ordering.persistence import codec
from ordering.persistence.tables import OrderProductRecord, OrderRecord

logger = structlog.get_logger(__name__)

_CENT = Decimal("0.01")


class SqlAlchemyOrderRepository(OrderRepository):
    def __init__(self, session_factory: sessionmaker, tz: tzinfo = UTC, max_page_size: int = MAX_PAGE_SIZE):
        self._session_factory = session_factory
        self._tz = tz
        self._max_page_size = max_page_size

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._session_factory.begin() as session:
                yield session
        except IntegrityError as exc:
            raise ConflictError(f"Order already exists: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def save(self, order: Order) -> None:
        record = codec.record_from_order(order)
        record.version = 1
        with self._transaction() as session:
            session.add(record)
            session.flush()
            self._write_products(session, order)
        order.version = 1
        logger.debug("order_inserted", order_id=order.id, order_sn=order.order_sn)

    def update(self, order: Order) -> None:
        next_version = order.version + 1
        with self._transaction() as session:
            result = session.execute(
                update(OrderRecord)
                .where(
                    OrderRecord.id == order.id,
                    OrderRecord.deleted_at.is_(None),
                    OrderRecord.version == order.version,
                )
                .values(version=next_version, **codec.order_to_columns(order))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                live = session.scalar(
                    select(func.count())
                    .select_from(OrderRecord)
                    .where(OrderRecord.id == order.id, OrderRecord.deleted_at.is_(None))
                )
                if live:
                    raise ConflictError(f"Order {order.id} was modified concurrently (version {order.version})")
                raise NotFoundError(f"Order {order.id} not found")

            session.execute(delete(OrderProductRecord).where(OrderProductRecord.order_id == order.id))
            self._write_products(session, order)
        order.version = next_version
        logger.debug("order_updated", order_id=order.id, version=next_version)

    def delete(self, order_id: str) -> None:
        with self._transaction() as session:
            result = session.execute(
                update(OrderRecord)
                .where(OrderRecord.id == order_id, OrderRecord.deleted_at.is_(None))
                .values(deleted_at=datetime.now(UTC))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Order {order_id} not found")
        logger.info("order_deleted", order_id=order_id)

    @staticmethod
    def _write_products(session: Session, order: Order) -> None:
        session.add_all(
            OrderProductRecord(order_id=order.id, product_id=product_id) for product_id in codec.product_ids(order)
        )

    # -------------------------------------------------------------------
    # Single-order lookups
    # -------------------------------------------------------------------
    def find_by_id(self, order_id: str) -> Order:
        return self._find_one(OrderRecord.id == order_id, f"Order {order_id} not found")

    def find_by_order_sn(self, order_sn: str) -> Order:
        return self._find_one(OrderRecord.order_sn == order_sn, f"Order with serial number {order_sn} not found")

    def _find_one(self, condition, message: str) -> Order:
        with self._transaction() as session:
            record = session.scalars(select(OrderRecord).where(condition, OrderRecord.deleted_at.is_(None))).first()
            if record is None:
                raise NotFoundError(message)
            return codec.order_from_record(record)

    # -------------------------------------------------------------------
    # Paginated finders
    # -------------------------------------------------------------------
    def find_by_user_id(self, user_id: str, page: int = 1, size: int = DEFAULT_PAGE_SIZE) -> tuple[list[Order], int]:
        return self.find_matching(OrderCriteria(user_id=user_id), page, size)

    def find_by_status(
        self, status: OrderStatus, page: int = 1, size: int = DEFAULT_PAGE_SIZE
    ) -> tuple[list[Order], int]:
        try:
            status = OrderStatus(status)
        except ValueError as exc:
            raise ValidationError({"status": [f"Unknown order status: {status!r}"]}) from exc
        return self.find_matching(OrderCriteria(status=status), page, size)

    def find_all(self, page: int = 1, size: int = DEFAULT_PAGE_SIZE) -> tuple[list[Order], int]:
        return self.find_matching(OrderCriteria(), page, size)

    def find_by_date_range(
        self, start_date: date | str, end_date: date | str, page: int = 1, size: int = DEFAULT_PAGE_SIZE
    ) -> tuple[list[Order], int]:
        criteria = OrderCriteria(
            start_date=parse_day(start_date, "start_date"),
            end_date=parse_day(end_date, "end_date"),
        )
        return self.find_matching(criteria, page, size)

    def find_by_product_id(
        self, product_id: str, page: int = 1, size: int = DEFAULT_PAGE_SIZE
    ) -> tuple[list[Order], int]:
        return self.find_matching(OrderCriteria(product_id=product_id), page, size)

    def search(self, keyword: str, page: int = 1, size: int = DEFAULT_PAGE_SIZE) -> tuple[list[Order], int]:
        return self.find_matching(OrderCriteria(keyword=keyword), page, size)

    def find_matching(
        self, criteria: OrderCriteria, page: int = 1, size: int = DEFAULT_PAGE_SIZE
    ) -> tuple[list[Order], int]:
        page, size = normalize_page(page, size, self._max_page_size)
        conditions = self._conditions(criteria)
        logger.debug("order_query", criteria=criteria, page=page, size=size)

        with self._transaction() as session:
            total = session.scalar(select(func.count()).select_from(OrderRecord).where(*conditions))
            records = session.scalars(
                select(OrderRecord)
                .where(*conditions)
                .order_by(OrderRecord.created_at.desc(), OrderRecord.order_sn.desc())
                .offset((page - 1) * size)
                .limit(size)
            ).all()
            return [codec.order_from_record(record) for record in records], total

    def _conditions(self, criteria: OrderCriteria) -> list:
        conditions = [OrderRecord.deleted_at.is_(None)]
        if criteria.user_id:
            conditions.append(OrderRecord.user_id == criteria.user_id)
        if criteria.status:
            conditions.append(OrderRecord.status == OrderStatus(criteria.status).value)
        if criteria.order_sn:
            conditions.append(OrderRecord.order_sn == criteria.order_sn)
        if criteria.start_date or criteria.end_date:
            conditions.extend(self._day_range(criteria.start_date, criteria.end_date))
        if criteria.product_id:
            conditions.append(
                OrderRecord.id.in_(
                    select(OrderProductRecord.order_id).where(OrderProductRecord.product_id == criteria.product_id)
                )
            )
        if criteria.keyword:
            conditions.append(
                or_(
                    OrderRecord.order_sn.contains(criteria.keyword, autoescape=True),
                    OrderRecord.user_id.contains(criteria.keyword, autoescape=True),
                    OrderRecord.note.contains(criteria.keyword, autoescape=True),
                )
            )
        return conditions

    def _day_range(self, start_day: date | None, end_day: date | None) -> list:
        """``[start 00:00, end + 1 day 00:00)`` in the configured local timezone."""
        if start_day and end_day and start_day > end_day:
            raise ValidationError({"start_date": ["Start date must not be after end date"]})

        conditions = []
        if start_day:
            conditions.append(OrderRecord.created_at >= self._local_midnight(start_day))
        if end_day:
            conditions.append(OrderRecord.created_at < self._local_midnight(end_day + timedelta(days=1)))
        return conditions

    def _local_midnight(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self._tz)

    # -------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------
    def count_by_status(self) -> dict[OrderStatus, int]:
        with self._transaction() as session:
            rows = session.execute(
                select(OrderRecord.status, func.count())
                .where(OrderRecord.deleted_at.is_(None))
                .group_by(OrderRecord.status)
            ).all()
        return {OrderStatus(status): count for status, count in rows}

    def summarize(self, start: datetime | None = None, end: datetime | None = None) -> tuple[int, Decimal]:
        conditions = [OrderRecord.deleted_at.is_(None)]
        if start is not None:
            conditions.append(OrderRecord.created_at >= start)
        if end is not None:
            conditions.append(OrderRecord.created_at < end)

        with self._transaction() as session:
            count, amount = session.execute(
                select(func.count(OrderRecord.id), func.coalesce(func.sum(OrderRecord.pay_amount), 0)).where(
                    *conditions
                )
            ).one()
        return count, Decimal(str(amount)).quantize(_CENT)
