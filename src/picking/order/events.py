"""PickingOrder domain events — immutable facts about picking and packing.

JSON payloads (line lists, label contents, summaries) travel as Text fields so
downstream projectors and the batch ledger can rebuild what they need without
loading the order.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from picking.domain import picking


@picking.event(part_of="PickingOrder")
class OrderPlaced:
    """An order was handed to the picking floor."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_name = String()
    lines = Text(required=True)  # JSON list of line dicts
    line_count = Integer(required=True)
    placed_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class PickingSessionOpened:
    """A picker opened the order for picking."""

    __version__ = 1

    order_id = Identifier(required=True)
    picker = String(required=True)
    status = String(required=True)
    opened_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class OrderedQuantityChanged:
    """The ordered quantity of a line was edited after placement."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    original_quantity = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    changed_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class LinePicked:
    """Pick data (check mark, batch, weight) was recorded against a line."""

    __version__ = 1

    order_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    checked = Boolean(required=True)
    picked_quantity = Integer(required=True)
    batch_number = String()
    picked_weight = Float()
    recorded_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class BoxAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    box_number = Integer(required=True)
    added_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class BoxRemoved:
    """A box was deleted and its contents went back to the unassigned pool."""

    __version__ = 1

    order_id = Identifier(required=True)
    box_number = Integer(required=True)
    returned_items = Text()  # JSON list of {product_id, quantity}
    removed_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class ItemsAllocated:
    """Units of one product moved from the unassigned pool into boxes."""

    __version__ = 1

    order_id = Identifier(required=True)
    product_id = Identifier(required=True)
    mode = String(required=True)  # whole, manual or auto
    allocations = Text(required=True)  # JSON list of {box_number, quantity}
    unassigned_quantity = Integer(required=True)
    allocated_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class ItemsReturnedToPool:
    """Units of one product were taken out of a box."""

    __version__ = 1

    order_id = Identifier(required=True)
    box_number = Integer(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    unassigned_quantity = Integer(required=True)
    returned_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class BoxContentsRecorded:
    """Batch number or weight was recorded on a box or one of its items."""

    __version__ = 1

    order_id = Identifier(required=True)
    box_number = Integer(required=True)
    product_id = Identifier()  # empty for box-level batch numbers
    batch_number = String()
    weight = Float()
    recorded_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class BoxSaved:
    __version__ = 1

    order_id = Identifier(required=True)
    box_number = Integer(required=True)
    saved_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class BoxLabelPrinted:
    """A box label was printed; the box is closed for good."""

    __version__ = 1

    order_id = Identifier(required=True)
    box_number = Integer(required=True)
    label = Text(required=True)  # JSON label payload
    usage = Text(required=True)  # JSON batch usage rows for every printed box so far
    next_box = Integer()
    printed_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class PickingProgressSaved:
    __version__ = 1

    order_id = Identifier(required=True)
    status = String(required=True)
    revision = Integer(required=True)
    checked_lines = Integer(required=True)
    total_lines = Integer(required=True)
    total_blown_pouches = Integer(default=0)
    saved_at = DateTime(required=True)


@picking.event(part_of="PickingOrder")
class PickingCompleted:
    """Every line is checked and no shortage is open — the order is picked."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    picked_by = String()
    product_summaries = Text(required=True)  # JSON list of product rows + totals row
    batch_summaries = Text(required=True)  # JSON list of {batch_number, total_weight}
    usage = Text(required=True)  # JSON batch usage rows for the whole order
    completed_at = DateTime(required=True)
