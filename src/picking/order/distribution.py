"""Box distribution — commands and handler.

Creating and deleting boxes, and moving quantities between the unassigned
pool and boxes: whole assignment, manual split, automatic even split and
returning items to the pool.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from picking.domain import picking
from picking.order.order import PickingOrder
from picking.utils.locks import order_locks

logger = structlog.get_logger(__name__)


@picking.command(part_of="PickingOrder")
class AddBox:
    order_id = Identifier(required=True)


@picking.command(part_of="PickingOrder")
class RemoveBox:
    """Delete a box; its contents go back to the unassigned pool."""

    order_id = Identifier(required=True)
    box_number = Integer(required=True, min_value=1)


@picking.command(part_of="PickingOrder")
class AssignToBox:
    order_id = Identifier(required=True)
    box_number = Integer(required=True, min_value=1)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@picking.command(part_of="PickingOrder")
class SplitToBox:
    order_id = Identifier(required=True)
    box_number = Integer(required=True, min_value=1)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@picking.command(part_of="PickingOrder")
class AutoSplit:
    """Spread a product's unassigned quantity evenly over ``box_count`` boxes."""

    order_id = Identifier(required=True)
    product_id = Identifier(required=True)
    box_count = Integer(required=True)


@picking.command(part_of="PickingOrder")
class RemoveFromBox:
    order_id = Identifier(required=True)
    box_number = Integer(required=True, min_value=1)
    product_id = Identifier(required=True)
    quantity = Integer()  # everything in the box when empty


@picking.command_handler(part_of=PickingOrder)
class BoxDistributionHandler:
    @handle(AddBox)
    def add_box(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            box_number = order.add_box()
            repo.add(order)
        return box_number

    @handle(RemoveBox)
    def remove_box(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            order.remove_box(command.box_number)
            repo.add(order)
        logger.info("Box removed", order_id=str(command.order_id), box_number=command.box_number)

    @handle(AssignToBox)
    def assign_to_box(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            order.assign_to_box(command.product_id, command.box_number, command.quantity)
            repo.add(order)

    @handle(SplitToBox)
    def split_to_box(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            order.split_to_box(command.product_id, command.box_number, command.quantity)
            repo.add(order)

    @handle(AutoSplit)
    def auto_split(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            allocations = order.auto_split(command.product_id, command.box_count)
            repo.add(order)
        logger.info(
            "Product auto-split across boxes",
            order_id=str(command.order_id),
            product_id=str(command.product_id),
            allocations=allocations,
        )
        return allocations

    @handle(RemoveFromBox)
    def remove_from_box(self, command):
        with order_locks.transaction(command.order_id):
            repo = current_domain.repository_for(PickingOrder)
            order = repo.get(command.order_id)
            order.remove_from_box(command.box_number, command.product_id, command.quantity)
            repo.add(order)
