"""ShortageLedger domain events — deltas for the cross-order missing-items dashboard."""

from protean.fields import DateTime, Identifier, Integer, String

from picking.domain import picking


@picking.event(part_of="ShortageLedger")
class MissingItemReported:
    """A shortage was recorded, or its quantity changed."""

    __version__ = 1

    ledger_id = Identifier(required=True)
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String()
    quantity = Integer(required=True)
    previous_quantity = Integer(default=0)
    status = String(required=True)
    reported_at = DateTime(required=True)


@picking.event(part_of="ShortageLedger")
class MissingItemResolved:
    """A shortage record was deleted."""

    __version__ = 1

    ledger_id = Identifier(required=True)
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    resolved_at = DateTime(required=True)


@picking.event(part_of="ShortageLedger")
class MissingItemProcessed:
    __version__ = 1

    ledger_id = Identifier(required=True)
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    processed_at = DateTime(required=True)
