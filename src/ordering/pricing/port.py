"""Pricing ports (abstract interfaces).

The order never invents prices. Product names, images, SKUs and unit prices
come from a ``ProductCatalog``; coupon and point redemption values come from a
``PromotionPolicy``. Adapters can be swapped without touching the application
service.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ProductSnapshot:
    """Authoritative product data at the moment an order is placed."""

    product_id: str
    name: str
    unit_price: Decimal
    currency: str
    image: str = ""
    sku: str = ""


class ProductCatalog(ABC):
    """Abstract product catalog interface."""

    @abstractmethod
    def resolve(self, product_ids: list[str]) -> dict[str, ProductSnapshot]:
        """Look up products by id.

        Unknown ids are simply missing from the result; the caller decides
        whether that is an error.
        """
        ...


class PromotionPolicy(ABC):
    """Abstract promotion interface."""

    @abstractmethod
    def coupon_value(self, code: str, user_id: str, total: Decimal) -> Decimal:
        """Amount the coupon takes off an order of ``total``.

        Raises ValidationError for an unknown or inapplicable code.
        """
        ...

    @abstractmethod
    def points_value(self, user_id: str, total: Decimal) -> Decimal:
        """Amount the user's redeemable points take off an order of ``total``."""
        ...
