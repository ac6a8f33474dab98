"""Order repository port (abstract interface).

Defines the persistence contract the domain and application services depend
on. Concrete stores (see ``ordering.persistence``) implement it; nothing above
this contract knows how an order is serialized.

Every finder excludes soft-deleted orders. Paginated finders take a 1-based
``page`` and a ``size`` and return ``(orders, total_count)`` ordered by
creation time, newest first.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from protean.exceptions import ValidationError

from ordering.order.order import Order, OrderStatus

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def normalize_page(page: int | None, size: int | None, max_size: int = MAX_PAGE_SIZE) -> tuple[int, int]:
    """Clamp pagination input: page >= 1, 1 <= size <= max_size."""
    page = max(1, page or 1)
    size = size or DEFAULT_PAGE_SIZE
    return page, min(max(1, size), max_size)


def parse_day(value: date | str, field_name: str) -> date:
    """Accept a ``date`` or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError({field_name: [f"Expected a YYYY-MM-DD date, got {value!r}"]}) from exc


@dataclass(frozen=True)
class OrderCriteria:
    """Filters for ``find_matching``. Unset filters are ignored; set ones are ANDed."""

    user_id: str | None = None
    status: OrderStatus | None = None
    order_sn: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    product_id: str | None = None
    keyword: str | None = None

    def is_empty(self) -> bool:
        return not any(
            (self.user_id, self.status, self.order_sn, self.start_date, self.end_date, self.product_id, self.keyword)
        )


class OrderRepository(ABC):
    """Abstract Order repository."""

    @abstractmethod
    def save(self, order: Order) -> None:
        """Insert a new order. Raises ConflictError on a duplicate serial number."""
        ...

    @abstractmethod
    def update(self, order: Order) -> None:
        """Replace all mutable fields of a live order.

        The write only succeeds if the stored version equals ``order.version``.
        Raises NotFoundError if the order is absent or deleted, ConflictError
        if it was changed since it was loaded.
        """
        ...

    @abstractmethod
    def find_by_id(self, order_id: str) -> Order:
        ...

    @abstractmethod
    def find_by_order_sn(self, order_sn: str) -> Order:
        ...

    @abstractmethod
    def find_by_user_id(self, user_id: str, page: int = 1, size: int = DEFAULT_PAGE_SIZE) -> tuple[list[Order], int]:
        ...

    @abstractmethod
    def find_by_status(
        self, status: OrderStatus, page: int = 1, size: int = DEFAULT_PAGE_SIZE
    ) -> tuple[list[Order], int]:
        ...

    @abstractmethod
    def find_all(self, page: int = 1, size: int = DEFAULT_PAGE_SIZE) -> tuple[list[Order], int]:
        ...

    @abstractmethod
    def find_by_date_range(
        self, start_date: date | str, end_date: date | str, page: int = 1, size: int = DEFAULT_PAGE_SIZE
    ) -> tuple[list[Order], int]:
        """Orders created between two calendar days, both inclusive, in local time."""
        ...

    @abstractmethod
    def find_by_product_id(
        self, product_id: str, page: int = 1, size: int = DEFAULT_PAGE_SIZE
    ) -> tuple[list[Order], int]:
        ...

    @abstractmethod
    def search(self, keyword: str, page: int = 1, size: int = DEFAULT_PAGE_SIZE) -> tuple[list[Order], int]:
        """Substring match against serial number, user id and note."""
        ...

    @abstractmethod
    def find_matching(
        self, criteria: OrderCriteria, page: int = 1, size: int = DEFAULT_PAGE_SIZE
    ) -> tuple[list[Order], int]:
        ...

    @abstractmethod
    def count_by_status(self) -> dict[OrderStatus, int]:
        """Live order count per status. Statuses with no orders are omitted."""
        ...

    @abstractmethod
    def summarize(self, start: datetime | None = None, end: datetime | None = None) -> tuple[int, Decimal]:
        """Count and summed pay amount of live orders created in ``[start, end)``."""
        ...

    @abstractmethod
    def delete(self, order_id: str) -> None:
        """Soft delete. Raises NotFoundError if absent or already deleted."""
        ...
