"""In-memory pricing adapters for development and testing.

Both fakes are configured at runtime and record every call, so tests can
assert on what the application service asked for.
"""

from decimal import Decimal

from protean.exceptions import ValidationError

from ordering.pricing.port import ProductCatalog, ProductSnapshot, PromotionPolicy
from ordering.shared.money import DEFAULT_CURRENCY


class FakeCatalog(ProductCatalog):
    """Product catalog backed by a dict."""

    def __init__(self) -> None:
        self.products: dict[str, ProductSnapshot] = {}
        self.calls: list[list[str]] = []

    def add_product(
        self,
        product_id: str,
        name: str,
        unit_price,
        currency: str = DEFAULT_CURRENCY,
        image: str = "",
        sku: str = "",
    ) -> ProductSnapshot:
        product = ProductSnapshot(
            product_id=product_id,
            name=name,
            unit_price=Decimal(str(unit_price)),
            currency=currency,
            image=image,
            sku=sku or f"SKU-{product_id}",
        )
        self.products[product_id] = product
        return product

    def resolve(self, product_ids: list[str]) -> dict[str, ProductSnapshot]:
        self.calls.append(list(product_ids))
        return {pid: self.products[pid] for pid in product_ids if pid in self.products}


class FakePromotions(PromotionPolicy):
    """Fixed-value coupons and a per-user points balance (in currency units)."""

    def __init__(self) -> None:
        self.coupons: dict[str, Decimal] = {}
        self.points: dict[str, Decimal] = {}
        self.calls: list[dict] = []

    def add_coupon(self, code: str, value) -> None:
        self.coupons[code] = Decimal(str(value))

    def set_points(self, user_id: str, value) -> None:
        self.points[user_id] = Decimal(str(value))

    def coupon_value(self, code: str, user_id: str, total: Decimal) -> Decimal:
        self.calls.append({"method": "coupon_value", "code": code, "user_id": user_id, "total": total})
        if code not in self.coupons:
            raise ValidationError({"coupon_code": [f"Unknown coupon: {code}"]})
        return self.coupons[code]

    def points_value(self, user_id: str, total: Decimal) -> Decimal:
        self.calls.append({"method": "points_value", "user_id": user_id, "total": total})
        return min(self.points.get(user_id, Decimal("0")), total)
