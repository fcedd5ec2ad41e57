"""Picking bounded context — order picking, box packing and batch traceability.

Covers the fulfillment core of a distribution business: loading an order's
lines, allocating quantities across numbered shipping boxes, checking and
weighing items, tracking shortages, and reconciling picked weight per batch
across orders. All three aggregates (PickingOrder, ShortageLedger, BatchUsage)
are plain CQRS aggregates.
"""

from protean.domain import Domain

from picking.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
picking = Domain(name="picking")
