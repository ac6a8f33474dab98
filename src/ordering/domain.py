"""Ordering bounded context: order lifecycle and order storage."""

from protean.domain import Domain

from ordering.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
ordering = Domain(name="ordering")
