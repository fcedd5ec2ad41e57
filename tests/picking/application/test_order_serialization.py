"""Concurrent commands against the same order or batch ledger row.

Commits are slowed down so the second command arrives while the first one's
write is still in flight.
"""

import json
import threading
import time

import pytest
from picking.batch.batch_usage import usage_for
from picking.batch.recording import record_usage
from picking.domain import picking
from picking.order.creation import PlaceOrder
from picking.order.distribution import AddBox, AssignToBox
from picking.order.order import PickingOrder
from protean import current_domain
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ValidationError


@pytest.fixture
def slow_commits(monkeypatch):
    commit = UnitOfWork.commit

    def delayed(self):
        time.sleep(0.2)
        return commit(self)

    monkeypatch.setattr(UnitOfWork, "commit", delayed)


def _run_concurrently(*jobs):
    """Start each ``(name, fn)`` job in its own thread, staggered. Returns name -> outcome."""
    outcomes = {}

    def runner(name, fn):
        with picking.domain_context():
            try:
                fn()
                outcomes[name] = "ok"
            except ValidationError:
                outcomes[name] = "rejected"

    threads = [threading.Thread(target=runner, args=job) for job in jobs]
    for thread in threads:
        thread.start()
        time.sleep(0.05)
    for thread in threads:
        thread.join(timeout=10)
    return outcomes


def _place_order_with_two_boxes():
    lines = json.dumps([{"product_id": "prod-milk", "product_name": "Milk", "quantity": 10, "unit_weight": 100.0}])
    order_id = current_domain.process(
        PlaceOrder(customer_id="cust-001", customer_name="Corner Shop", lines=lines),
        asynchronous=False,
    )
    current_domain.process(AddBox(order_id=order_id), asynchronous=False)
    current_domain.process(AddBox(order_id=order_id), asynchronous=False)
    return order_id


def _assign_all_to(order_id, box_number):
    def assign():
        current_domain.process(
            AssignToBox(order_id=order_id, box_number=box_number, product_id="prod-milk", quantity=10),
            asynchronous=False,
        )

    return assign


class TestOrderCommandsAreSerialized:
    def test_second_allocation_sees_the_first_one(self, slow_commits):
        order_id = _place_order_with_two_boxes()

        outcomes = _run_concurrently(
            ("first", _assign_all_to(order_id, 1)),
            ("second", _assign_all_to(order_id, 2)),
        )

        assert outcomes == {"first": "ok", "second": "rejected"}
        order = current_domain.repository_for(PickingOrder).get(order_id)
        boxed = {item.box_number: item.quantity for item in order.box_items}
        assert boxed == {1: 10}
        assert order.unassigned_quantity("prod-milk") == 0


class TestBatchLedgerIsSerialized:
    def test_concurrent_orders_both_count(self, slow_commits):
        def record(order_id, weight):
            return lambda: record_usage(order_id, "B-100", "prod-milk", weight, product_name="Milk")

        outcomes = _run_concurrently(
            ("first", record("order-1", 400.0)),
            ("second", record("order-2", 600.0)),
        )

        assert outcomes == {"first": "ok", "second": "ok"}
        usage = usage_for("B-100", "prod-milk")
        assert usage.orders_count == 2
        assert usage.used_weight == 1000.0
