"""Application tests for box distribution and box completion commands."""

import json

import pytest
from picking.batch.batch_usage import usage_for
from picking.order.boxes import PrintBoxLabel, RecordBoxItem, SaveBox, SetBoxBatch
from picking.order.creation import PlaceOrder
from picking.order.distribution import AddBox, AssignToBox, AutoSplit, RemoveBox, RemoveFromBox, SplitToBox
from picking.order.lines import RecordLinePick
from picking.order.order import PickingOrder
from protean import current_domain
from protean.exceptions import ValidationError


def _place_order():
    lines = json.dumps(
        [
            {"product_id": "prod-milk", "product_name": "Milk", "quantity": 10, "unit_weight": 100.0},
            {"product_id": "prod-eggs", "product_name": "Eggs", "quantity": 4, "unit_weight": 60.0},
        ]
    )
    return current_domain.process(
        PlaceOrder(customer_id="cust-001", customer_name="Corner Shop", lines=lines),
        asynchronous=False,
    )


def _order(order_id):
    return current_domain.repository_for(PickingOrder).get(order_id)


def _check_all(order_id):
    for line in _order(order_id).lines:
        current_domain.process(
            RecordLinePick(order_id=order_id, line_id=str(line.id), checked=True),
            asynchronous=False,
        )


def _assign(order_id, box_number, product_id, quantity):
    current_domain.process(
        AssignToBox(order_id=order_id, box_number=box_number, product_id=product_id, quantity=quantity),
        asynchronous=False,
    )


class TestDistribution:
    def test_add_box_returns_number(self):
        order_id = _place_order()
        assert current_domain.process(AddBox(order_id=order_id), asynchronous=False) == 1
        assert current_domain.process(AddBox(order_id=order_id), asynchronous=False) == 2
        assert _order(order_id).box_numbers() == [1, 2]

    def test_assign_moves_units_out_of_the_pool(self):
        order_id = _place_order()
        current_domain.process(AddBox(order_id=order_id), asynchronous=False)
        _assign(order_id, 1, "prod-milk", 6)
        order = _order(order_id)
        assert order.unassigned_quantity("prod-milk") == 4
        assert order.box_contents(1)[0]["quantity"] == 6

    def test_split_to_box(self):
        order_id = _place_order()
        current_domain.process(AddBox(order_id=order_id), asynchronous=False)
        current_domain.process(AddBox(order_id=order_id), asynchronous=False)
        current_domain.process(
            SplitToBox(order_id=order_id, box_number=2, product_id="prod-milk", quantity=3),
            asynchronous=False,
        )
        assert _order(order_id).unassigned_quantity("prod-milk") == 7

    def test_assign_more_than_available_rejected(self):
        order_id = _place_order()
        current_domain.process(AddBox(order_id=order_id), asynchronous=False)
        with pytest.raises(ValidationError) as exc:
            _assign(order_id, 1, "prod-milk", 11)
        assert "between 1 and 10" in str(exc.value)

    def test_auto_split_returns_allocations(self):
        order_id = _place_order()
        allocations = current_domain.process(
            AutoSplit(order_id=order_id, product_id="prod-milk", box_count=3),
            asynchronous=False,
        )
        assert [a["quantity"] for a in allocations] == [4, 3, 3]
        assert _order(order_id).unassigned_quantity("prod-milk") == 0

    def test_remove_from_box_returns_units(self):
        order_id = _place_order()
        current_domain.process(AddBox(order_id=order_id), asynchronous=False)
        _assign(order_id, 1, "prod-milk", 6)
        current_domain.process(
            RemoveFromBox(order_id=order_id, box_number=1, product_id="prod-milk", quantity=2),
            asynchronous=False,
        )
        assert _order(order_id).unassigned_quantity("prod-milk") == 6

    def test_remove_box_returns_everything(self):
        order_id = _place_order()
        current_domain.process(AddBox(order_id=order_id), asynchronous=False)
        _assign(order_id, 1, "prod-milk", 6)
        current_domain.process(RemoveBox(order_id=order_id, box_number=1), asynchronous=False)
        order = _order(order_id)
        assert order.box_numbers() == []
        assert order.unassigned_quantity("prod-milk") == 10


class TestBoxCompletion:
    def _packed_box(self):
        order_id = _place_order()
        current_domain.process(AddBox(order_id=order_id), asynchronous=False)
        _assign(order_id, 1, "prod-milk", 10)
        _assign(order_id, 1, "prod-eggs", 4)
        _check_all(order_id)
        return order_id

    def test_save_requires_batch_numbers(self):
        order_id = self._packed_box()
        with pytest.raises(ValidationError) as exc:
            current_domain.process(SaveBox(order_id=order_id, box_number=1), asynchronous=False)
        assert "batch_numbers" in exc.value.messages

    def test_save_then_print(self):
        order_id = self._packed_box()
        current_domain.process(SetBoxBatch(order_id=order_id, box_number=1, batch_number="B-9"), asynchronous=False)
        assert current_domain.process(SaveBox(order_id=order_id, box_number=1), asynchronous=False) is True

        label = current_domain.process(PrintBoxLabel(order_id=order_id, box_number=1), asynchronous=False)

        assert label["customer_name"] == "Corner Shop"
        assert label["total_weight"] == 1000.0 + 240.0
        assert _order(order_id).is_box_printed(1) is True

    def test_recorded_item_weight_shows_on_label(self):
        order_id = self._packed_box()
        current_domain.process(
            RecordBoxItem(order_id=order_id, box_number=1, product_id="prod-milk", batch_number="M-1", weight=1015.0),
            asynchronous=False,
        )
        current_domain.process(SetBoxBatch(order_id=order_id, box_number=1, batch_number="B-9"), asynchronous=False)
        current_domain.process(SaveBox(order_id=order_id, box_number=1), asynchronous=False)
        label = current_domain.process(PrintBoxLabel(order_id=order_id, box_number=1), asynchronous=False)
        milk = next(item for item in label["items"] if item["product_id"] == "prod-milk")
        assert milk["weight"] == 1015.0
        assert milk["batch_number"] == "M-1"

    def test_printing_records_batch_usage(self):
        order_id = self._packed_box()
        current_domain.process(SetBoxBatch(order_id=order_id, box_number=1, batch_number="B-9"), asynchronous=False)
        current_domain.process(SaveBox(order_id=order_id, box_number=1), asynchronous=False)
        current_domain.process(PrintBoxLabel(order_id=order_id, box_number=1), asynchronous=False)

        usage = usage_for("B-9", "prod-milk")
        assert usage is not None
        assert usage.used_weight == 1000.0
        assert usage.orders_count == 1
