"""Missing-item reporting — commands and handler.

Reports are clamped to the ordered quantity of the product's line, so the
handler reads the PickingOrder before touching the ledger. The ledger for an
order is created on its first report.
"""

import structlog
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from picking.domain import picking
from picking.order.order import OrderStatus, PickingOrder
from picking.shortage.ledger import ShortageLedger, ledger_for_order
from picking.utils.locks import order_locks

logger = structlog.get_logger(__name__)


@picking.command(part_of="ShortageLedger")
class ReportMissingItem:
    """Record how many units of a product could not be picked. Zero clears it."""

    order_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)


@picking.command(part_of="ShortageLedger")
class ResolveMissingItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)


@picking.command(part_of="ShortageLedger")
class MarkMissingItemProcessed:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)


def _existing_ledger(order_id) -> ShortageLedger:
    ledger = ledger_for_order(order_id)
    if ledger is None:
        raise ValidationError({"item_id": ["Missing item not found for this order"]})
    return ledger


@picking.command_handler(part_of=ShortageLedger)
class ShortageReportingHandler:
    @handle(ReportMissingItem)
    def report_missing_item(self, command):
        with order_locks.transaction(command.order_id):
            order = current_domain.repository_for(PickingOrder).get(command.order_id)
            if OrderStatus(order.status) == OrderStatus.COMPLETED:
                raise ValidationError({"status": ["Order is completed and can no longer be changed"]})
            line = next((li for li in order.lines if str(li.product_id) == str(command.product_id)), None)
            if line is None:
                raise ValidationError({"product_id": ["Product is not on this order"]})

            ledger = ledger_for_order(command.order_id)
            if ledger is None:
                if command.quantity == 0:
                    return None
                ledger = ShortageLedger.open(command.order_id)

            item = ledger.report(
                command.product_id,
                command.quantity,
                ordered_quantity=line.ordered_quantity,
                product_name=line.product_name,
            )
            current_domain.repository_for(ShortageLedger).add(ledger)

        logger.info(
            "Missing item reported",
            order_id=str(command.order_id),
            product_id=str(command.product_id),
            quantity=item.quantity if item else 0,
        )
        return str(item.id) if item else None

    @handle(ResolveMissingItem)
    def resolve_missing_item(self, command):
        with order_locks.transaction(command.order_id):
            ledger = _existing_ledger(command.order_id)
            ledger.resolve(command.item_id)
            current_domain.repository_for(ShortageLedger).add(ledger)
        logger.info("Missing item resolved", order_id=str(command.order_id), item_id=str(command.item_id))

    @handle(MarkMissingItemProcessed)
    def mark_missing_item_processed(self, command):
        with order_locks.transaction(command.order_id):
            ledger = _existing_ledger(command.order_id)
            ledger.mark_processed(command.item_id)
            current_domain.repository_for(ShortageLedger).add(ledger)
