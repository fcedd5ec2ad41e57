"""Missing items dashboard — every open shortage across all orders."""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from picking.domain import picking
from picking.shortage.events import MissingItemProcessed, MissingItemReported, MissingItemResolved
from picking.shortage.ledger import MissingItemStatus, ShortageLedger


@picking.projection
class MissingItemsDashboard:
    item_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String()
    quantity = Integer(required=True)
    status = String(required=True)
    reported_at = DateTime()
    processed_at = DateTime()


@picking.projector(projector_for=MissingItemsDashboard, aggregates=[ShortageLedger])
class MissingItemsDashboardProjector:
    @on(MissingItemReported)
    def on_missing_item_reported(self, event):
        repo = current_domain.repository_for(MissingItemsDashboard)
        try:
            row = repo.get(event.item_id)
            row.quantity = event.quantity
            row.reported_at = event.reported_at
        except ObjectNotFoundError:
            row = MissingItemsDashboard(
                item_id=event.item_id,
                order_id=event.order_id,
                product_id=event.product_id,
                product_name=event.product_name,
                quantity=event.quantity,
                status=event.status,
                reported_at=event.reported_at,
            )
        repo.add(row)

    @on(MissingItemProcessed)
    def on_missing_item_processed(self, event):
        repo = current_domain.repository_for(MissingItemsDashboard)
        row = repo.get(event.item_id)
        row.status = MissingItemStatus.PROCESSED.value
        row.processed_at = event.processed_at
        repo.add(row)

    @on(MissingItemResolved)
    def on_missing_item_resolved(self, event):
        repo = current_domain.repository_for(MissingItemsDashboard)
        try:
            row = repo.get(event.item_id)
        except ObjectNotFoundError:
            return
        repo._dao.delete(row)
