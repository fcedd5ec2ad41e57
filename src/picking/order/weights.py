"""Batch and weight aggregation for picking orders.

All weights are grams. Conversion to kilograms happens only in ``format_kg``,
which the reporting surfaces call when rendering.

Weight of a box item (or a line) is resolved in this order:

1. the box item's own recorded weight, if above zero
2. the line's manually entered weight
3. the line's picked weight
4. the product's nominal unit weight times the quantity
5. zero

A weighed product can be re-picked into another box with a different actual
weight, so the most specific recorded figure wins.
"""

import json
from collections import defaultdict

UNKNOWN_BATCH = "Unknown"


def _positive(value) -> bool:
    return value is not None and value > 0


def _json_list(value) -> list:
    if not value:
        return []
    return json.loads(value) if isinstance(value, str) else list(value)


def resolve_item_weight(line, quantity, recorded_weight=None) -> float:
    if _positive(recorded_weight):
        return float(recorded_weight)
    if line is None:
        return 0.0
    if _positive(line.manual_weight):
        return float(line.manual_weight)
    if _positive(line.picked_weight):
        return float(line.picked_weight)
    if _positive(line.unit_weight) and quantity:
        return float(line.unit_weight) * quantity
    return 0.0


def line_quantity(line) -> int:
    """Quantity a line contributes to reports: picked once checked, else ordered."""
    return line.picked_quantity if line.checked else line.ordered_quantity


def _line_index(order) -> dict:
    return {str(line.product_id): line for line in order.lines or []}


def _box_index(order) -> dict:
    return {box.box_number: box for box in order.boxes or []}


def effective_box_item_batch(item, box) -> str | None:
    return item.batch_number or (box.batch_number if box else None) or None


def effective_line_batch(order, line) -> str:
    if line.batch_number:
        return line.batch_number
    if order.batch_number:
        return order.batch_number
    batch_numbers = _json_list(order.batch_numbers)
    if batch_numbers:
        return batch_numbers[0]
    return UNKNOWN_BATCH


def box_item_weight(order, item) -> float:
    line = _line_index(order).get(str(item.product_id))
    return resolve_item_weight(line, item.quantity, item.weight)


def box_weight(order, box_number) -> float:
    return sum(box_item_weight(order, item) for item in order.box_items or [] if item.box_number == box_number)


def batch_summary(order) -> list[dict]:
    """Total weight per batch number that touched the order.

    A summary stored on the order at completion is returned as-is, so later
    views never drift from what was recorded.
    """
    stored = _json_list(order.batch_summaries)
    if stored:
        return stored

    totals: dict[str, float] = {}
    if order.box_items:
        boxes = _box_index(order)
        for item in order.box_items:
            batch = effective_box_item_batch(item, boxes.get(item.box_number)) or UNKNOWN_BATCH
            totals[batch] = totals.get(batch, 0.0) + box_item_weight(order, item)
    elif order.lines:
        for line in order.lines:
            batch = effective_line_batch(order, line)
            totals[batch] = totals.get(batch, 0.0) + resolve_item_weight(line, line_quantity(line))

    if not totals:
        for batch in _json_list(order.batch_numbers):
            totals.setdefault(batch, 0.0)

    return [{"batch_number": batch, "total_weight": weight} for batch, weight in totals.items()]


def product_summary(order) -> list[dict]:
    """One row per product with quantity and weight, followed by a totals row."""
    rows = []
    items_by_product = defaultdict(list)
    for item in order.box_items or []:
        items_by_product[str(item.product_id)].append(item)

    for line in order.lines or []:
        boxed = items_by_product.get(str(line.product_id))
        if boxed:
            weight = sum(resolve_item_weight(line, item.quantity, item.weight) for item in boxed)
        else:
            weight = resolve_item_weight(line, line_quantity(line))
        rows.append(
            {
                "product_id": str(line.product_id),
                "product_name": line.product_name,
                "quantity": line_quantity(line),
                "weight": weight,
            }
        )

    rows.append(
        {
            "product_id": None,
            "product_name": "Total",
            "quantity": sum(row["quantity"] for row in rows),
            "weight": sum(row["weight"] for row in rows),
        }
    )
    return rows


def batch_usage_rows(order, box_numbers=None) -> list[dict]:
    """Weight and quantity per (batch, product) for the batch ledger.

    With ``box_numbers`` only items in those boxes count (box 0 being the
    unboxed part of each line). Entries without a real batch number are left
    out of the ledger.
    """
    usage: dict[tuple[str, str], dict] = {}

    def _add(batch, line, quantity, weight):
        if not batch or batch == UNKNOWN_BATCH:
            return
        key = (batch, str(line.product_id))
        row = usage.setdefault(
            key,
            {
                "batch_number": batch,
                "product_id": str(line.product_id),
                "product_name": line.product_name,
                "quantity": 0,
                "weight": 0.0,
                "nominal_weight": 0.0,
            },
        )
        row["quantity"] += quantity
        row["weight"] += weight
        row["nominal_weight"] += (line.unit_weight or 0.0) * quantity

    lines = _line_index(order)
    include_pool = box_numbers is None or 0 in box_numbers
    if order.box_items:
        boxes = _box_index(order)
        for item in order.box_items:
            if box_numbers is not None and item.box_number not in box_numbers:
                continue
            line = lines.get(str(item.product_id))
            if line is None:
                continue
            batch = effective_box_item_batch(item, boxes.get(item.box_number))
            _add(batch, line, item.quantity, resolve_item_weight(line, item.quantity, item.weight))

    if include_pool:
        # Box 0: whatever part of each checked line sits in no box
        for line in order.lines or []:
            if not line.checked:
                continue
            boxed = sum(i.quantity for i in order.box_items or [] if str(i.product_id) == str(line.product_id))
            remaining = line.picked_quantity - boxed
            if remaining > 0:
                _add(effective_line_batch(order, line), line, remaining, resolve_item_weight(line, remaining))

    return list(usage.values())


def format_kg(grams) -> str:
    """Render a gram figure as kilograms for labels and reports."""
    return f"{(grams or 0) / 1000:.3f} kg"
