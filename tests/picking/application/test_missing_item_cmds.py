"""Application tests for missing-item reporting commands."""

import json

import pytest
from picking.order.creation import PlaceOrder
from picking.order.lines import RecordLinePick
from picking.order.order import PickingOrder
from picking.order.session import SaveOrder
from picking.shortage.ledger import MissingItemStatus, ledger_for_order, missing_quantities
from picking.shortage.reporting import MarkMissingItemProcessed, ReportMissingItem, ResolveMissingItem
from protean import current_domain
from protean.exceptions import ValidationError


def _place_order():
    lines = json.dumps([{"product_id": "prod-milk", "product_name": "Milk", "quantity": 10}])
    return current_domain.process(PlaceOrder(customer_id="cust-001", lines=lines), asynchronous=False)


def _report(order_id, quantity, product_id="prod-milk"):
    return current_domain.process(
        ReportMissingItem(order_id=order_id, product_id=product_id, quantity=quantity),
        asynchronous=False,
    )


class TestReportMissingItem:
    def test_first_report_opens_the_ledger(self):
        order_id = _place_order()
        item_id = _report(order_id, 2)
        ledger = ledger_for_order(order_id)
        assert str(ledger.items[0].id) == item_id
        assert ledger.items[0].product_name == "Milk"

    def test_second_report_updates_same_record(self):
        order_id = _place_order()
        first = _report(order_id, 2)
        second = _report(order_id, 5)
        assert first == second
        assert missing_quantities(order_id) == {"prod-milk": 5}

    def test_report_two_then_zero_leaves_nothing(self):
        order_id = _place_order()
        _report(order_id, 2)
        assert _report(order_id, 0) is None
        assert missing_quantities(order_id) == {}

    def test_zero_on_an_order_without_ledger(self):
        order_id = _place_order()
        assert _report(order_id, 0) is None
        assert ledger_for_order(order_id) is None

    def test_product_not_on_order_rejected(self):
        order_id = _place_order()
        with pytest.raises(ValidationError):
            _report(order_id, 1, product_id="prod-bread")

    def test_completed_order_rejects_reports(self):
        order_id = _place_order()
        order = current_domain.repository_for(PickingOrder).get(order_id)
        current_domain.process(
            RecordLinePick(order_id=order_id, line_id=str(order.lines[0].id), checked=True),
            asynchronous=False,
        )
        current_domain.process(SaveOrder(order_id=order_id), asynchronous=False)
        with pytest.raises(ValidationError) as exc:
            _report(order_id, 1)
        assert "completed" in str(exc.value)


class TestResolveAndProcess:
    def test_mark_processed_keeps_the_record(self):
        order_id = _place_order()
        item_id = _report(order_id, 2)
        current_domain.process(MarkMissingItemProcessed(order_id=order_id, item_id=item_id), asynchronous=False)
        ledger = ledger_for_order(order_id)
        assert ledger.items[0].status == MissingItemStatus.PROCESSED.value
        assert missing_quantities(order_id) == {"prod-milk": 2}

    def test_resolve_deletes_the_record(self):
        order_id = _place_order()
        item_id = _report(order_id, 2)
        current_domain.process(ResolveMissingItem(order_id=order_id, item_id=item_id), asynchronous=False)
        assert missing_quantities(order_id) == {}

    def test_resolve_without_ledger_rejected(self):
        order_id = _place_order()
        with pytest.raises(ValidationError) as exc:
            current_domain.process(ResolveMissingItem(order_id=order_id, item_id="nope"), asynchronous=False)
        assert "not found" in str(exc.value)

    def test_resolving_lets_the_order_complete(self):
        order_id = _place_order()
        order = current_domain.repository_for(PickingOrder).get(order_id)
        current_domain.process(
            RecordLinePick(order_id=order_id, line_id=str(order.lines[0].id), checked=True),
            asynchronous=False,
        )
        item_id = _report(order_id, 1)
        assert current_domain.process(SaveOrder(order_id=order_id), asynchronous=False) == "Missing Items"

        current_domain.process(ResolveMissingItem(order_id=order_id, item_id=item_id), asynchronous=False)
        assert current_domain.process(SaveOrder(order_id=order_id), asynchronous=False) == "Completed"
