"""Order placement — command and handler."""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from picking.domain import picking
from picking.order.order import PickingOrder

logger = structlog.get_logger(__name__)


@picking.command(part_of="PickingOrder")
class PlaceOrder:
    """Hand a customer order to the picking floor."""

    customer_id = Identifier(required=True)
    customer_name = String(max_length=200)
    customer_order_number = String(max_length=100)
    batch_number = String(max_length=100)
    lines = Text(required=True)  # JSON list of {product_id, product_name, quantity, unit_weight, requires_weight_input}


@picking.command_handler(part_of=PickingOrder)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        lines_data = json.loads(command.lines) if isinstance(command.lines, str) else command.lines
        order = PickingOrder.place(
            customer_id=command.customer_id,
            lines_data=lines_data,
            customer_name=command.customer_name,
            customer_order_number=command.customer_order_number,
            batch_number=command.batch_number,
        )
        current_domain.repository_for(PickingOrder).add(order)
        logger.info("Order placed", order_id=str(order.id), line_count=len(lines_data))
        return str(order.id)
