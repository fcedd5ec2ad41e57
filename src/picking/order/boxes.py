"""Box completion — recording batch and weight, saving and printing labels.

Box 0 (the unassigned part of the order) can be saved and printed like any
other box; its batch numbers and weights come from the lines.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from picking.domain import picking
from picking.order.order import PickingOrder
from picking.utils.locks import order_locks

logger = structlog.get_logger(__name__)


@picking.command(part_of="PickingOrder")
class SetBoxBatch:
    order_id = Identifier(required=True)
    box_number = Integer(required=True, min_value=1)
    batch_number = String(max_length=100)


@picking.command(part_of="PickingOrder")
class RecordBoxItem:
    """Batch number and/or weighed grams for one product in one box."""

    order_id = Identifier(required=True)
    box_number = Integer(required=True, min_value=1)
    product_id = Identifier(required=True)
    batch_number = String(max_length=100)
    weight = Float()


@picking.command(part_of="PickingOrder")
class SaveBox:
    order_id = Identifier(required=True)
    box_number = Integer(required=True, min_value=0)


@picking.command(part_of="PickingOrder")
class PrintBoxLabel:
    order_id = Identifier(required=True)
    box_number = Integer(required=True, min_value=0)


@picking.command_handler(part_of=PickingOrder)
class BoxCompletionHandler:
    @handle(SetBoxBatch)
    def set_box_batch(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            order.set_box_batch(command.box_number, command.batch_number)
            repo.add(order)

    @handle(RecordBoxItem)
    def record_box_item(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            order.record_box_item(
                command.box_number,
                command.product_id,
                batch_number=command.batch_number,
                weight=command.weight,
            )
            repo.add(order)

    @handle(SaveBox)
    def save_box(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            saved = order.save_box(command.box_number)
            repo.add(order)
        logger.info("Box saved", order_id=str(command.order_id), box_number=command.box_number, changed=saved)
        return saved

    @handle(PrintBoxLabel)
    def print_box_label(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            label = order.print_box_label(command.box_number)
            repo.add(order)
        logger.info(
            "Box label printed",
            order_id=str(command.order_id),
            box_number=command.box_number,
            total_weight=label["total_weight"],
        )
        return label
