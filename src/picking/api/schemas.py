"""Pydantic API schemas for the Picking domain.

These are the external API contracts — separate from domain commands.
Weights travel in grams in both directions.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class OrderLineRequest(BaseModel):
    product_id: str
    product_name: str | None = None
    quantity: int = Field(ge=0)
    unit_weight: float = 0.0
    requires_weight_input: bool = False


class PlaceOrderRequest(BaseModel):
    customer_id: str
    customer_name: str | None = None
    customer_order_number: str | None = None
    batch_number: str | None = None
    lines: list[OrderLineRequest]


class OpenSessionRequest(BaseModel):
    picker: str


class RecordLinePickRequest(BaseModel):
    checked: bool | None = None
    batch_number: str | None = None
    picked_weight: float | None = None
    manual_weight: float | None = None
    blown_pouches: int | None = None
    unavailable_quantity: int | None = None


class ChangeQuantityRequest(BaseModel):
    quantity: int


class SaveOrderRequest(BaseModel):
    expected_revision: int | None = None


class AllocateRequest(BaseModel):
    product_id: str
    quantity: int


class AutoSplitRequest(BaseModel):
    product_id: str
    box_count: int


class RemoveFromBoxRequest(BaseModel):
    product_id: str
    quantity: int | None = None


class BoxBatchRequest(BaseModel):
    batch_number: str | None = None


class BoxItemRequest(BaseModel):
    batch_number: str | None = None
    weight: float | None = None


class ReportMissingItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class StatusResponse(BaseModel):
    status: str = "ok"


class BoxNumberResponse(BaseModel):
    box_number: int


class SaveOrderResponse(BaseModel):
    order_status: str
    revision: int


class AllocationResponse(BaseModel):
    box_number: int
    quantity: int


class AutoSplitResponse(BaseModel):
    allocations: list[AllocationResponse]


class SaveBoxResponse(BaseModel):
    saved: bool


class LabelItemResponse(BaseModel):
    product_id: str
    product_name: str | None = None
    quantity: int
    batch_number: str | None = None
    weight: float


class LabelResponse(BaseModel):
    order_id: str
    customer_name: str | None = None
    box_number: int
    total_boxes: int
    items: list[LabelItemResponse]
    total_weight: float


class LineResponse(BaseModel):
    line_id: str
    product_id: str
    product_name: str | None = None
    ordered_quantity: int
    original_quantity: int | None = None
    picked_quantity: int
    unavailable_quantity: int = 0
    checked: bool
    batch_number: str | None = None
    picked_weight: float | None = None
    manual_weight: float | None = None
    blown_pouches: int = 0
    box_number: int = 0


class BoxItemResponse(BaseModel):
    product_id: str
    product_name: str | None = None
    quantity: int
    weight: float = 0.0
    batch_number: str | None = None


class BoxResponse(BaseModel):
    box_number: int
    state: str
    locked: bool
    batch_number: str | None = None
    items: list[BoxItemResponse]


class UnassignedItemResponse(BaseModel):
    product_id: str
    product_name: str
    quantity: int


class MissingItemResponse(BaseModel):
    item_id: str
    order_id: str
    product_id: str
    product_name: str | None = None
    quantity: int
    status: str
    date: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    customer_id: str
    customer_name: str | None = None
    status: str
    picker: str | None = None
    picking_in_progress: bool
    revision: int
    has_changes: bool
    total_blown_pouches: int
    lines: list[LineResponse]
    boxes: list[BoxResponse]
    unassigned: list[UnassignedItemResponse]
    missing_items: list[MissingItemResponse]
    next_box: int | None = None


class ProductSummaryResponse(BaseModel):
    product_id: str | None = None
    product_name: str | None = None
    quantity: int
    weight: float
    weight_kg: str


class BatchSummaryResponse(BaseModel):
    batch_number: str
    total_weight: float
    total_weight_kg: str


class OrderSummaryResponse(BaseModel):
    order_id: str
    status: str
    products: list[ProductSummaryResponse]
    batches: list[BatchSummaryResponse]


class MissingItemListResponse(BaseModel):
    missing_items: list[MissingItemResponse]


class BatchUsageResponse(BaseModel):
    batch_number: str
    product_id: str
    product_name: str | None = None
    total_weight: float
    used_weight: float
    remaining_weight: float
    usage_percent: float
    orders_count: int
    first_used: str | None = None
    last_used: str | None = None


class BatchUsageListResponse(BaseModel):
    batches: list[BatchUsageResponse]
