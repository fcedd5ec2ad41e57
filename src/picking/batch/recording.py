"""Batch usage recording — command, handler and the shared ledger write.

``record_usage`` is the single write path into the ledger. It loads, records
and commits under the ``(batch_number, product_id)`` lock so two orders
recording the same pair never lose an update.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from picking.batch.batch_usage import BatchUsage, usage_for
from picking.domain import picking
from picking.order.weights import UNKNOWN_BATCH
from picking.utils.locks import batch_locks

logger = structlog.get_logger(__name__)


def record_usage(order_id, batch_number, product_id, weight, product_name=None, nominal_weight=None):
    """Record one order's usage of a batch for a product. Returns the ledger row."""
    if not batch_number or batch_number == UNKNOWN_BATCH:
        return None
    with batch_locks.transaction(batch_number, product_id):
        usage = usage_for(batch_number, product_id)
        if usage is None:
            usage = BatchUsage.start(batch_number, product_id, product_name)
        usage.record(order_id, weight, nominal_weight=nominal_weight)
        current_domain.repository_for(BatchUsage).add(usage)

    logger.info(
        "Batch usage recorded",
        batch_number=batch_number,
        product_id=str(product_id),
        order_id=str(order_id),
        weight=weight,
        used_weight=usage.used_weight,
        orders_count=usage.orders_count,
    )
    return usage


def record_usage_rows(order_id, rows) -> int:
    """Record every ``batch_usage_rows`` entry of an order. Returns how many were written."""
    written = 0
    for row in rows:
        usage = record_usage(
            order_id,
            row["batch_number"],
            row["product_id"],
            row["weight"],
            product_name=row.get("product_name"),
            nominal_weight=row.get("nominal_weight"),
        )
        if usage is not None:
            written += 1
    return written


@picking.command(part_of="BatchUsage")
class RecordBatchUsage:
    """Record weight taken from a batch for one product of one order."""

    order_id = Identifier(required=True)
    batch_number = String(required=True, max_length=100)
    product_id = Identifier(required=True)
    product_name = String(max_length=200)
    weight = Float(required=True, min_value=0.0)
    nominal_weight = Float()


@picking.command_handler(part_of=BatchUsage)
class BatchUsageHandler:
    @handle(RecordBatchUsage)
    def record_batch_usage(self, command):
        usage = record_usage(
            command.order_id,
            command.batch_number,
            command.product_id,
            command.weight,
            product_name=command.product_name,
            nominal_weight=command.nominal_weight,
        )
        return str(usage.id) if usage else None
