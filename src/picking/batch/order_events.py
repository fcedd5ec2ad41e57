"""Batch ledger reactions to PickingOrder events.

A printed box label carries the usage of every box printed so far, and the
completed order carries the usage of the whole order. Recording is
idempotent per order, so each event simply overwrites the order's share.
"""

import json

import structlog
from protean.utils.mixins import handle

from picking.batch.batch_usage import BatchUsage
from picking.batch.recording import record_usage_rows
from picking.domain import picking
from picking.order.events import BoxLabelPrinted, PickingCompleted

logger = structlog.get_logger(__name__)


@picking.event_handler(part_of=BatchUsage, stream_category="picking::picking_order")
class BatchLedgerHandler:
    """Folds picked weight into the cross-order batch ledger."""

    @handle(BoxLabelPrinted)
    def on_box_label_printed(self, event: BoxLabelPrinted) -> None:
        written = record_usage_rows(event.order_id, json.loads(event.usage))
        logger.info(
            "Batch ledger updated from printed box",
            order_id=str(event.order_id),
            box_number=event.box_number,
            rows=written,
        )

    @handle(PickingCompleted)
    def on_picking_completed(self, event: PickingCompleted) -> None:
        written = record_usage_rows(event.order_id, json.loads(event.usage))
        logger.info("Batch ledger updated from completed order", order_id=str(event.order_id), rows=written)
