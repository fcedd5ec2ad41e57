"""FastAPI routes for the Picking domain."""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from picking.api.schemas import (
    AllocateRequest,
    AllocationResponse,
    AutoSplitRequest,
    AutoSplitResponse,
    BatchSummaryResponse,
    BatchUsageListResponse,
    BatchUsageResponse,
    BoxBatchRequest,
    BoxItemRequest,
    BoxItemResponse,
    BoxNumberResponse,
    BoxResponse,
    ChangeQuantityRequest,
    LabelResponse,
    LineResponse,
    MissingItemListResponse,
    MissingItemResponse,
    OpenSessionRequest,
    OrderIdResponse,
    OrderResponse,
    OrderSummaryResponse,
    PlaceOrderRequest,
    ProductSummaryResponse,
    RecordLinePickRequest,
    RemoveFromBoxRequest,
    ReportMissingItemRequest,
    SaveBoxResponse,
    SaveOrderRequest,
    SaveOrderResponse,
    StatusResponse,
    UnassignedItemResponse,
)
from picking.batch.batch_usage import BatchUsage
from picking.order.boxes import PrintBoxLabel, RecordBoxItem, SaveBox, SetBoxBatch
from picking.order.creation import PlaceOrder
from picking.order.distribution import AddBox, AssignToBox, AutoSplit, RemoveBox, RemoveFromBox, SplitToBox
from picking.order.lines import ChangeOrderedQuantity, RecordLinePick
from picking.order.order import PickingOrder
from picking.order.session import OpenPickingSession, SaveOrder
from picking.order.weights import batch_summary, format_kg, product_summary
from picking.projections.missing_items_dashboard import MissingItemsDashboard
from picking.shortage.ledger import ledger_for_order
from picking.shortage.reporting import MarkMissingItemProcessed, ReportMissingItem, ResolveMissingItem


def _missing_item_response(order_id, item) -> MissingItemResponse:
    return MissingItemResponse(
        item_id=str(item.id),
        order_id=str(order_id),
        product_id=str(item.product_id),
        product_name=item.product_name,
        quantity=item.quantity,
        status=item.status,
        date=str(item.date) if item.date else None,
    )


def _order_response(order: PickingOrder) -> OrderResponse:
    ledger = ledger_for_order(order.id)
    return OrderResponse(
        order_id=str(order.id),
        customer_id=str(order.customer_id),
        customer_name=order.customer_name,
        status=order.status,
        picker=order.picker,
        picking_in_progress=bool(order.picking_in_progress),
        revision=order.revision or 0,
        has_changes=bool(order.has_changes),
        total_blown_pouches=order.total_blown_pouches or 0,
        lines=[
            LineResponse(
                line_id=str(line.id),
                product_id=str(line.product_id),
                product_name=line.product_name,
                ordered_quantity=line.ordered_quantity,
                original_quantity=line.original_quantity,
                picked_quantity=line.picked_quantity or 0,
                unavailable_quantity=line.unavailable_quantity or 0,
                checked=bool(line.checked),
                batch_number=line.batch_number,
                picked_weight=line.picked_weight,
                manual_weight=line.manual_weight,
                blown_pouches=line.blown_pouches or 0,
                box_number=line.box_number or 0,
            )
            for line in order.lines
        ],
        boxes=[
            BoxResponse(
                box_number=box.box_number,
                state=order.box_state(box.box_number).value,
                locked=order.is_box_locked(box.box_number),
                batch_number=box.batch_number,
                items=[
                    BoxItemResponse(
                        product_id=str(item.product_id),
                        product_name=item.product_name,
                        quantity=item.quantity,
                        weight=item.weight or 0.0,
                        batch_number=item.batch_number,
                    )
                    for item in order.box_items
                    if item.box_number == box.box_number
                ],
            )
            for box in sorted(order.boxes, key=lambda b: b.box_number)
        ],
        unassigned=[UnassignedItemResponse(**item.to_dict()) for item in order.unassigned_items()],
        missing_items=[_missing_item_response(order.id, item) for item in (ledger.items if ledger else [])],
        next_box=order.next_box(),
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest) -> OrderIdResponse:
    """Hand a customer order to the picking floor."""
    command = PlaceOrder(
        customer_id=body.customer_id,
        customer_name=body.customer_name,
        customer_order_number=body.customer_order_number,
        batch_number=body.batch_number,
        lines=json.dumps([line.model_dump() for line in body.lines]),
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def load_order(order_id: str) -> OrderResponse:
    """Snapshot of an order: lines, boxes, unassigned pool, shortages and status."""
    order = current_domain.repository_for(PickingOrder).get(order_id)
    return _order_response(order)


@order_router.put("/{order_id}/session", response_model=StatusResponse)
async def open_session(order_id: str, body: OpenSessionRequest) -> StatusResponse:
    command = OpenPickingSession(order_id=order_id, picker=body.picker)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="session_opened")


@order_router.put("/{order_id}/lines/{line_id}", response_model=StatusResponse)
async def record_line_pick(order_id: str, line_id: str, body: RecordLinePickRequest) -> StatusResponse:
    """Record check mark, batch, weights, blown pouches and shortage for a line."""
    command = RecordLinePick(order_id=order_id, line_id=line_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="line_recorded")


@order_router.put("/{order_id}/lines/{line_id}/quantity", response_model=StatusResponse)
async def change_ordered_quantity(order_id: str, line_id: str, body: ChangeQuantityRequest) -> StatusResponse:
    command = ChangeOrderedQuantity(order_id=order_id, line_id=line_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="quantity_changed")


@order_router.put("/{order_id}/save", response_model=SaveOrderResponse)
async def save_order(order_id: str, body: SaveOrderRequest) -> SaveOrderResponse:
    """Save progress and re-derive the order status."""
    command = SaveOrder(order_id=order_id, expected_revision=body.expected_revision)
    status = current_domain.process(command, asynchronous=False)
    order = current_domain.repository_for(PickingOrder).get(order_id)
    return SaveOrderResponse(order_status=status, revision=order.revision)


@order_router.get("/{order_id}/summary", response_model=OrderSummaryResponse)
async def order_summary(order_id: str) -> OrderSummaryResponse:
    """Per-product and per-batch totals for reporting and invoicing."""
    order = current_domain.repository_for(PickingOrder).get(order_id)
    return OrderSummaryResponse(
        order_id=str(order.id),
        status=order.status,
        products=[ProductSummaryResponse(**row, weight_kg=format_kg(row["weight"])) for row in product_summary(order)],
        batches=[
            BatchSummaryResponse(**row, total_weight_kg=format_kg(row["total_weight"])) for row in batch_summary(order)
        ],
    )


# ---------------------------------------------------------------------------
# Boxes
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/boxes", status_code=201, response_model=BoxNumberResponse)
async def add_box(order_id: str) -> BoxNumberResponse:
    box_number = current_domain.process(AddBox(order_id=order_id), asynchronous=False)
    return BoxNumberResponse(box_number=box_number)


@order_router.delete("/{order_id}/boxes/{box_number}", response_model=StatusResponse)
async def remove_box(order_id: str, box_number: int) -> StatusResponse:
    """Delete a box and return its contents to the unassigned pool."""
    current_domain.process(RemoveBox(order_id=order_id, box_number=box_number), asynchronous=False)
    return StatusResponse(status="box_removed")


@order_router.put("/{order_id}/boxes/{box_number}/assign", response_model=StatusResponse)
async def assign_to_box(order_id: str, box_number: int, body: AllocateRequest) -> StatusResponse:
    command = AssignToBox(
        order_id=order_id,
        box_number=box_number,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="assigned")


@order_router.put("/{order_id}/boxes/{box_number}/split", response_model=StatusResponse)
async def split_to_box(order_id: str, box_number: int, body: AllocateRequest) -> StatusResponse:
    command = SplitToBox(
        order_id=order_id,
        box_number=box_number,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="split")


@order_router.put("/{order_id}/auto-split", response_model=AutoSplitResponse)
async def auto_split(order_id: str, body: AutoSplitRequest) -> AutoSplitResponse:
    """Spread a product's unassigned quantity evenly across boxes."""
    command = AutoSplit(order_id=order_id, product_id=body.product_id, box_count=body.box_count)
    allocations = current_domain.process(command, asynchronous=False)
    return AutoSplitResponse(allocations=[AllocationResponse(**a) for a in allocations])


@order_router.put("/{order_id}/boxes/{box_number}/remove", response_model=StatusResponse)
async def remove_from_box(order_id: str, box_number: int, body: RemoveFromBoxRequest) -> StatusResponse:
    command = RemoveFromBox(
        order_id=order_id,
        box_number=box_number,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="returned_to_pool")


@order_router.put("/{order_id}/boxes/{box_number}/batch", response_model=StatusResponse)
async def set_box_batch(order_id: str, box_number: int, body: BoxBatchRequest) -> StatusResponse:
    command = SetBoxBatch(order_id=order_id, box_number=box_number, batch_number=body.batch_number)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="batch_recorded")


@order_router.put("/{order_id}/boxes/{box_number}/items/{product_id}", response_model=StatusResponse)
async def record_box_item(order_id: str, box_number: int, product_id: str, body: BoxItemRequest) -> StatusResponse:
    command = RecordBoxItem(
        order_id=order_id,
        box_number=box_number,
        product_id=product_id,
        batch_number=body.batch_number,
        weight=body.weight,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="item_recorded")


@order_router.put("/{order_id}/boxes/{box_number}/save", response_model=SaveBoxResponse)
async def save_box(order_id: str, box_number: int) -> SaveBoxResponse:
    saved = current_domain.process(SaveBox(order_id=order_id, box_number=box_number), asynchronous=False)
    return SaveBoxResponse(saved=saved)


@order_router.put("/{order_id}/boxes/{box_number}/print", response_model=LabelResponse)
async def print_box_label(order_id: str, box_number: int) -> LabelResponse:
    """Print a saved box's label. Returns the exact item list and weights to render."""
    label = current_domain.process(PrintBoxLabel(order_id=order_id, box_number=box_number), asynchronous=False)
    return LabelResponse(**label)


# ---------------------------------------------------------------------------
# Missing items
# ---------------------------------------------------------------------------
@order_router.put("/{order_id}/missing-items", response_model=StatusResponse)
async def report_missing_item(order_id: str, body: ReportMissingItemRequest) -> StatusResponse:
    """Record a shortage for a product. Quantity 0 clears it."""
    command = ReportMissingItem(order_id=order_id, product_id=body.product_id, quantity=body.quantity)
    item_id = current_domain.process(command, asynchronous=False)
    return StatusResponse(status="reported" if item_id else "resolved")


@order_router.delete("/{order_id}/missing-items/{item_id}", response_model=StatusResponse)
async def resolve_missing_item(order_id: str, item_id: str) -> StatusResponse:
    current_domain.process(ResolveMissingItem(order_id=order_id, item_id=item_id), asynchronous=False)
    return StatusResponse(status="resolved")


@order_router.put("/{order_id}/missing-items/{item_id}/processed", response_model=StatusResponse)
async def mark_missing_item_processed(order_id: str, item_id: str) -> StatusResponse:
    current_domain.process(MarkMissingItemProcessed(order_id=order_id, item_id=item_id), asynchronous=False)
    return StatusResponse(status="processed")


missing_items_router = APIRouter(prefix="/missing-items", tags=["missing-items"])


@missing_items_router.get("", response_model=MissingItemListResponse)
async def list_missing_items() -> MissingItemListResponse:
    """Every open shortage across all orders."""
    rows = current_domain.repository_for(MissingItemsDashboard)._dao.query.all().items
    return MissingItemListResponse(
        missing_items=[
            MissingItemResponse(
                item_id=str(row.item_id),
                order_id=str(row.order_id),
                product_id=str(row.product_id),
                product_name=row.product_name,
                quantity=row.quantity,
                status=row.status,
                date=str(row.reported_at) if row.reported_at else None,
            )
            for row in rows
        ]
    )


# ---------------------------------------------------------------------------
# Batch ledger
# ---------------------------------------------------------------------------
batch_router = APIRouter(prefix="/batches", tags=["batches"])


@batch_router.get("", response_model=BatchUsageListResponse)
async def list_batch_usage(batch_number: str | None = None, incomplete: bool = False) -> BatchUsageListResponse:
    """Weight drawn from each batch per product across all orders.

    ``incomplete`` keeps only batches with weight still left to draw.
    """
    dao = current_domain.repository_for(BatchUsage)._dao
    rows = dao.query.filter(batch_number=batch_number).all().items if batch_number else dao.query.all().items
    if incomplete:
        rows = [row for row in rows if row.is_incomplete()]
    return BatchUsageListResponse(
        batches=[
            BatchUsageResponse(
                batch_number=row.batch_number,
                product_id=str(row.product_id),
                product_name=row.product_name,
                total_weight=row.total_weight or 0.0,
                used_weight=row.used_weight or 0.0,
                remaining_weight=row.remaining_weight(),
                usage_percent=row.usage_percent(),
                orders_count=row.orders_count or 0,
                first_used=str(row.first_used) if row.first_used else None,
                last_used=str(row.last_used) if row.last_used else None,
            )
            for row in rows
        ]
    )
