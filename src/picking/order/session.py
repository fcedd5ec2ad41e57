"""Picking session — opening an order and saving progress.

Saving re-derives the order status. The shortage ledger is read here, at the
moment of the save, so the status always reflects the ledger as it stands.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from picking.domain import picking
from picking.order.order import PickingOrder
from picking.shortage.ledger import missing_quantities
from picking.utils.locks import order_locks

logger = structlog.get_logger(__name__)


@picking.command(part_of="PickingOrder")
class OpenPickingSession:
    order_id = Identifier(required=True)
    picker = String(required=True, max_length=100)


@picking.command(part_of="PickingOrder")
class SaveOrder:
    """Persist the working set. ``expected_revision`` enables the stale-save check."""

    order_id = Identifier(required=True)
    expected_revision = Integer()


@picking.command_handler(part_of=PickingOrder)
class PickingSessionHandler:
    @handle(OpenPickingSession)
    def open_session(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            order.open_session(command.picker)
            repo.add(order)
        logger.info("Picking session opened", order_id=str(command.order_id), picker=command.picker)

    @handle(SaveOrder)
    def save_order(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            status = order.save_progress(
                missing_quantities(command.order_id),
                expected_revision=command.expected_revision,
            )
            repo.add(order)
        logger.info("Order saved", order_id=str(command.order_id), status=status, revision=order.revision)
        return status
