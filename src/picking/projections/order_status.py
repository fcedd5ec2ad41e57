"""Order status — picking floor overview, one row per order."""

from protean.core.projector import on
from protean.fields import Boolean, DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from picking.domain import picking
from picking.order.events import (
    BoxAdded,
    BoxLabelPrinted,
    BoxRemoved,
    OrderPlaced,
    PickingCompleted,
    PickingProgressSaved,
    PickingSessionOpened,
)
from picking.order.order import OrderStatus, PickingOrder


@picking.projection
class OrderStatusView:
    order_id = Identifier(identifier=True, required=True)
    customer_id = Identifier(required=True)
    customer_name = String()
    status = String(required=True)
    picker = String()
    picking_in_progress = Boolean(default=False)
    line_count = Integer(default=0)
    checked_lines = Integer(default=0)
    box_count = Integer(default=0)
    printed_boxes = Integer(default=0)
    total_blown_pouches = Integer(default=0)
    revision = Integer(default=0)
    picked_by = String()
    placed_at = DateTime()
    picked_at = DateTime()
    updated_at = DateTime()


@picking.projector(projector_for=OrderStatusView, aggregates=[PickingOrder])
class OrderStatusProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        current_domain.repository_for(OrderStatusView).add(
            OrderStatusView(
                order_id=event.order_id,
                customer_id=event.customer_id,
                customer_name=event.customer_name,
                status=OrderStatus.PENDING.value,
                line_count=event.line_count,
                placed_at=event.placed_at,
                updated_at=event.placed_at,
            )
        )

    @on(PickingSessionOpened)
    def on_picking_session_opened(self, event):
        repo = current_domain.repository_for(OrderStatusView)
        view = repo.get(event.order_id)
        view.status = event.status
        view.picker = event.picker
        view.picking_in_progress = True
        view.updated_at = event.opened_at
        repo.add(view)

    @on(BoxAdded)
    def on_box_added(self, event):
        repo = current_domain.repository_for(OrderStatusView)
        view = repo.get(event.order_id)
        view.box_count = (view.box_count or 0) + 1
        view.updated_at = event.added_at
        repo.add(view)

    @on(BoxRemoved)
    def on_box_removed(self, event):
        repo = current_domain.repository_for(OrderStatusView)
        view = repo.get(event.order_id)
        view.box_count = max((view.box_count or 0) - 1, 0)
        view.updated_at = event.removed_at
        repo.add(view)

    @on(BoxLabelPrinted)
    def on_box_label_printed(self, event):
        repo = current_domain.repository_for(OrderStatusView)
        view = repo.get(event.order_id)
        view.printed_boxes = (view.printed_boxes or 0) + 1
        view.updated_at = event.printed_at
        repo.add(view)

    @on(PickingProgressSaved)
    def on_picking_progress_saved(self, event):
        repo = current_domain.repository_for(OrderStatusView)
        view = repo.get(event.order_id)
        view.status = event.status
        view.revision = event.revision
        view.checked_lines = event.checked_lines
        view.line_count = event.total_lines
        view.total_blown_pouches = event.total_blown_pouches
        view.updated_at = event.saved_at
        repo.add(view)

    @on(PickingCompleted)
    def on_picking_completed(self, event):
        repo = current_domain.repository_for(OrderStatusView)
        view = repo.get(event.order_id)
        view.status = OrderStatus.COMPLETED.value
        view.picking_in_progress = False
        view.picked_by = event.picked_by
        view.picked_at = event.completed_at
        view.updated_at = event.completed_at
        repo.add(view)
