"""Pricing collaborator factory.

Provides get/set/reset pairs to swap the catalog and promotion adapters.
Both default to the in-memory fakes.
"""

from ordering.pricing.fake_adapter import FakeCatalog, FakePromotions
from ordering.pricing.port import ProductCatalog, PromotionPolicy

_current_catalog: ProductCatalog | None = None
_current_promotions: PromotionPolicy | None = None


def get_catalog() -> ProductCatalog:
    """Return the current product catalog. Defaults to FakeCatalog."""
    global _current_catalog
    if _current_catalog is None:
        _current_catalog = FakeCatalog()
    return _current_catalog


def set_catalog(catalog: ProductCatalog) -> None:
    """Override the active product catalog (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def get_promotions() -> PromotionPolicy:
    """Return the current promotion policy. Defaults to FakePromotions."""
    global _current_promotions
    if _current_promotions is None:
        _current_promotions = FakePromotions()
    return _current_promotions


def set_promotions(promotions: PromotionPolicy) -> None:
    """Override the active promotion policy (useful for tests)."""
    global _current_promotions
    _current_promotions = promotions


def reset_pricing() -> None:
    """Reset both collaborators to their defaults."""
    global _current_catalog, _current_promotions
    _current_catalog = None
    _current_promotions = None
