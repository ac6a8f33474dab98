"""Error taxonomy for the Ordering domain.

Input and invariant violations are ``protean.exceptions.ValidationError``,
raised by the domain model itself. The errors below cover the outcomes
protean has no direct name for; each one also derives from the nearest
protean exception so callers can catch either.

Every error is scoped to the request that produced it. None of them are
retried here; the domain service only retries version conflicts.
"""

from protean import exceptions as protean_exceptions


class OrderingError(Exception):
    """Base class for Ordering errors other than validation."""


class NotFoundError(OrderingError, protean_exceptions.ObjectNotFoundError):
    """No live order (or order item, or product) matches the lookup."""


class InvalidTransitionError(OrderingError, protean_exceptions.InvalidOperationError):
    """The requested lifecycle operation is not allowed from the current status."""

    def __init__(self, current: str, operation: str):
        self.current = current
        self.operation = operation
        super().__init__(f"Cannot {operation} an order in {current} status")


class ConflictError(OrderingError, protean_exceptions.InvalidStateError):
    """Serial number collision on insert, or a stale version on update."""


class PersistenceError(OrderingError, protean_exceptions.DatabaseError):
    """Store-layer failure not otherwise classified."""


class ConfigurationError(OrderingError, protean_exceptions.ConfigurationError):
    """Settings could not be loaded."""
