"""BatchUsage domain events."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from picking.domain import picking


@picking.event(part_of="BatchUsage")
class BatchUsageRecorded:
    """The ledger row for a (batch, product) pair changed; carries the full row."""

    __version__ = 1

    usage_id = Identifier(required=True)
    batch_number = String(required=True)
    product_id = Identifier(required=True)
    product_name = String()
    order_id = Identifier(required=True)
    order_weight = Float(required=True)  # grams recorded for this order
    total_weight = Float(required=True)
    used_weight = Float(required=True)
    orders_count = Integer(required=True)
    first_used = DateTime()
    last_used = DateTime(required=True)
