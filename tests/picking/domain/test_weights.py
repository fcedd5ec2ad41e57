"""Tests for batch and weight aggregation."""

import json
from types import SimpleNamespace

from picking.order.order import PickingOrder
from picking.order.weights import (
    UNKNOWN_BATCH,
    batch_summary,
    batch_usage_rows,
    box_weight,
    format_kg,
    product_summary,
    resolve_item_weight,
)


def _line(**overrides):
    values = {"manual_weight": None, "picked_weight": None, "unit_weight": 0.0}
    values.update(overrides)
    return SimpleNamespace(**values)


def _make_order(**kwargs):
    return PickingOrder.place(
        customer_id="cust-001",
        lines_data=[
            {"product_id": "prod-milk", "product_name": "Milk", "quantity": 6, "unit_weight": 100.0},
            {"product_id": "prod-eggs", "product_name": "Eggs", "quantity": 4, "unit_weight": 60.0},
        ],
        **kwargs,
    )


def _check_all(order, **kwargs):
    for line in order.lines:
        order.record_line_pick(str(line.id), checked=True, **kwargs)


def _close_box(order, box_number):
    order.save_box(box_number)
    order.print_box_label(box_number)


class TestResolveItemWeight:
    def test_recorded_weight_wins(self):
        line = _line(manual_weight=200.0, picked_weight=300.0, unit_weight=10.0)
        assert resolve_item_weight(line, 5, recorded_weight=150.0) == 150.0

    def test_manual_weight_before_picked(self):
        line = _line(manual_weight=200.0, picked_weight=300.0, unit_weight=10.0)
        assert resolve_item_weight(line, 5) == 200.0

    def test_picked_weight_before_nominal(self):
        line = _line(picked_weight=300.0, unit_weight=10.0)
        assert resolve_item_weight(line, 5) == 300.0

    def test_nominal_weight_times_quantity(self):
        assert resolve_item_weight(_line(unit_weight=10.0), 5) == 50.0

    def test_zero_when_nothing_known(self):
        assert resolve_item_weight(_line(), 5) == 0.0

    def test_zero_recorded_weight_falls_through(self):
        assert resolve_item_weight(_line(unit_weight=10.0), 2, recorded_weight=0.0) == 20.0


class TestBatchSummary:
    def test_lines_grouped_by_batch_without_boxes(self):
        order = _make_order()
        milk, eggs = order.lines
        order.record_line_pick(str(milk.id), checked=True, batch_number="B-1")
        order.record_line_pick(str(eggs.id), checked=True, batch_number="B-2", picked_weight=250.0)
        assert batch_summary(order) == [
            {"batch_number": "B-1", "total_weight": 600.0},
            {"batch_number": "B-2", "total_weight": 250.0},
        ]

    def test_order_batch_fills_in_for_lines(self):
        order = _make_order(batch_number="ORD-B")
        _check_all(order)
        assert batch_summary(order) == [{"batch_number": "ORD-B", "total_weight": 840.0}]

    def test_unknown_batch_bucket(self):
        order = _make_order()
        _check_all(order)
        assert batch_summary(order) == [{"batch_number": UNKNOWN_BATCH, "total_weight": 840.0}]

    def test_box_items_take_over_when_boxed(self):
        order = _make_order()
        order.auto_split("prod-milk", 2)
        order.assign_to_box("prod-eggs", 2, 4)
        _check_all(order)
        order.record_box_item(1, "prod-milk", batch_number="B-1", weight=310.0)
        _close_box(order, 1)
        order.set_box_batch(2, "B-2")
        summary = {row["batch_number"]: row["total_weight"] for row in batch_summary(order)}
        assert summary == {"B-1": 310.0, "B-2": 300.0 + 240.0}

    def test_stored_summary_is_returned_unchanged(self):
        order = _make_order()
        order.batch_summaries = json.dumps([{"batch_number": "X", "total_weight": 1.0}])
        assert batch_summary(order) == [{"batch_number": "X", "total_weight": 1.0}]


class TestProductSummary:
    def test_rows_and_total(self):
        order = _make_order()
        _check_all(order)
        rows = product_summary(order)
        assert rows[0] == {"product_id": "prod-milk", "product_name": "Milk", "quantity": 6, "weight": 600.0}
        assert rows[1]["weight"] == 240.0
        assert rows[-1] == {"product_id": None, "product_name": "Total", "quantity": 10, "weight": 840.0}

    def test_boxed_product_uses_box_weights(self):
        order = _make_order()
        order.auto_split("prod-milk", 2)
        _check_all(order)
        order.record_box_item(1, "prod-milk", batch_number="B-1", weight=305.0)
        _close_box(order, 1)
        order.record_box_item(2, "prod-milk", weight=290.0)
        assert product_summary(order)[0]["weight"] == 595.0

    def test_unchecked_lines_report_ordered_quantity(self):
        order = _make_order()
        assert product_summary(order)[-1]["quantity"] == 10


class TestBatchUsageRows:
    def test_rows_per_batch_and_product(self):
        order = _make_order()
        order.add_box()
        order.assign_to_box("prod-milk", 1, 6)
        order.set_box_batch(1, "B-1")
        _check_all(order, batch_number="B-2")
        rows = {(r["batch_number"], r["product_id"]): r for r in batch_usage_rows(order)}
        assert rows[("B-1", "prod-milk")]["quantity"] == 6
        assert rows[("B-1", "prod-milk")]["nominal_weight"] == 600.0
        assert rows[("B-2", "prod-eggs")]["weight"] == 240.0

    def test_unknown_batches_are_left_out(self):
        order = _make_order()
        _check_all(order)
        assert batch_usage_rows(order) == []

    def test_limited_to_given_boxes(self):
        order = _make_order()
        order.auto_split("prod-milk", 2)
        _check_all(order)
        order.set_box_batch(1, "B-1")
        _close_box(order, 1)
        order.set_box_batch(2, "B-2")
        rows = batch_usage_rows(order, box_numbers={1})
        assert [(r["batch_number"], r["quantity"]) for r in rows] == [("B-1", 3)]


class TestHelpers:
    def test_box_weight(self):
        order = _make_order()
        order.add_box()
        order.assign_to_box("prod-milk", 1, 2)
        order.assign_to_box("prod-eggs", 1, 4)
        order.record_box_item(1, "prod-eggs", weight=230.0)
        assert box_weight(order, 1) == 200.0 + 230.0

    def test_format_kg(self):
        assert format_kg(1250) == "1.250 kg"
        assert format_kg(None) == "0.000 kg"
