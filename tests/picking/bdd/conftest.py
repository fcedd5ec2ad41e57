"""Shared BDD fixtures and step definitions for the Picking domain."""

import pytest
from picking.order.events import (
    BoxAdded,
    BoxLabelPrinted,
    BoxSaved,
    ItemsAllocated,
    ItemsReturnedToPool,
    LinePicked,
    OrderPlaced,
    PickingCompleted,
    PickingProgressSaved,
    PickingSessionOpened,
)
from picking.order.order import PickingOrder
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

_ORDER_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "PickingSessionOpened": PickingSessionOpened,
    "LinePicked": LinePicked,
    "BoxAdded": BoxAdded,
    "ItemsAllocated": ItemsAllocated,
    "ItemsReturnedToPool": ItemsReturnedToPool,
    "BoxSaved": BoxSaved,
    "BoxLabelPrinted": BoxLabelPrinted,
    "PickingProgressSaved": PickingProgressSaved,
    "PickingCompleted": PickingCompleted,
}

_DEFAULT_LINES = [
    {"product_id": "prod-milk", "product_name": "Milk", "quantity": 10, "unit_weight": 100.0},
    {"product_id": "prod-eggs", "product_name": "Eggs", "quantity": 4, "unit_weight": 60.0},
]


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a placed order for milk and eggs", target_fixture="order")
def placed_order():
    order = PickingOrder.place(
        customer_id="cust-bdd",
        customer_name="Corner Shop",
        lines_data=_DEFAULT_LINES,
    )
    order._events.clear()
    return order


@given(parsers.cfparse("a placed order for {quantity:d} units of milk"), target_fixture="order")
def placed_single_product_order(quantity):
    order = PickingOrder.place(
        customer_id="cust-bdd",
        customer_name="Corner Shop",
        lines_data=[{"product_id": "prod-milk", "product_name": "Milk", "quantity": quantity, "unit_weight": 100.0}],
    )
    order._events.clear()
    return order


@given(parsers.cfparse('picker "{picker}" is picking the order'), target_fixture="order")
def picking_order(order, picker):
    order.open_session(picker)
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then("the action fails with a validation error")
def action_fails(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse('the error mentions "{text}"'))
def error_mentions(error, text):
    assert text in str(error["exc"])


@then(parsers.cfparse("a {event_type} event is raised"))
def order_event_raised(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"


@then(parsers.cfparse('{quantity:d} units of "{product_id}" are unassigned'))
def unassigned_quantity_is(order, quantity, product_id):
    assert order.unassigned_quantity(product_id) == quantity


@then(parsers.cfparse('box {box_number:d} holds {quantity:d} units of "{product_id}"'))
def box_holds(order, box_number, quantity, product_id):
    contents = {c["product_id"]: c["quantity"] for c in order.box_contents(box_number)}
    assert contents.get(product_id, 0) == quantity
