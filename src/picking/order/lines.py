"""Line picking — commands and handler.

``RecordLinePick`` carries everything the picker enters against one line. When
it includes ``unavailable_quantity`` the shortage ledger is updated in the same
unit of work, and the line's picked quantity follows the ledger.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from picking.domain import picking
from picking.order.order import PickingOrder
from picking.shortage.ledger import ShortageLedger, ledger_for_order
from picking.utils.locks import order_locks

logger = structlog.get_logger(__name__)


@picking.command(part_of="PickingOrder")
class RecordLinePick:
    order_id = Identifier(required=True)
    line_id = Identifier(required=True)
    checked = Boolean()
    batch_number = String(max_length=100)
    picked_weight = Float()  # grams
    manual_weight = Float()  # grams
    blown_pouches = Integer(min_value=0)
    unavailable_quantity = Integer(min_value=0)


@picking.command(part_of="PickingOrder")
class ChangeOrderedQuantity:
    order_id = Identifier(required=True)
    line_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)


@picking.command_handler(part_of=PickingOrder)
class LinePickingHandler:
    @handle(RecordLinePick)
    def record_line_pick(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            line = order.find_line(command.line_id)

            ledger = ledger_for_order(command.order_id)
            if command.unavailable_quantity is not None:
                if ledger is None and command.unavailable_quantity > 0:
                    ledger = ShortageLedger.open(command.order_id)
                if ledger is not None:
                    ledger.report(
                        line.product_id,
                        command.unavailable_quantity,
                        ordered_quantity=line.ordered_quantity,
                        product_name=line.product_name,
                    )
                    current_domain.repository_for(ShortageLedger).add(ledger)
            missing = ledger.quantities() if ledger else {}

            order.record_line_pick(
                command.line_id,
                checked=command.checked,
                batch_number=command.batch_number,
                picked_weight=command.picked_weight,
                manual_weight=command.manual_weight,
                blown_pouches=command.blown_pouches,
                missing_quantity=missing.get(str(line.product_id), 0),
            )
            repo.add(order)

        logger.info(
            "Line pick recorded",
            order_id=str(command.order_id),
            line_id=str(command.line_id),
            checked=bool(line.checked),
            picked_quantity=line.picked_quantity,
        )

    @handle(ChangeOrderedQuantity)
    def change_ordered_quantity(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            order.change_ordered_quantity(command.line_id, command.quantity)
            repo.add(order)
