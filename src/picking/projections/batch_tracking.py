"""Batch tracking — traceability report of weight drawn from each batch."""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from picking.batch.batch_usage import BatchUsage, remaining_weight, usage_percent
from picking.batch.events import BatchUsageRecorded
from picking.domain import picking


@picking.projection
class BatchTrackingView:
    usage_id = Identifier(identifier=True, required=True)
    batch_number = String(required=True)
    product_id = Identifier(required=True)
    product_name = String()
    total_weight = Float(default=0.0)  # grams
    used_weight = Float(default=0.0)  # grams
    remaining_weight = Float(default=0.0)  # grams
    usage_percent = Float(default=0.0)
    orders_count = Integer(default=0)
    first_used = DateTime()
    last_used = DateTime()


@picking.projector(projector_for=BatchTrackingView, aggregates=[BatchUsage])
class BatchTrackingProjector:
    @on(BatchUsageRecorded)
    def on_batch_usage_recorded(self, event):
        repo = current_domain.repository_for(BatchTrackingView)
        try:
            view = repo.get(event.usage_id)
        except ObjectNotFoundError:
            view = BatchTrackingView(
                usage_id=event.usage_id,
                batch_number=event.batch_number,
                product_id=event.product_id,
                product_name=event.product_name,
            )
        view.total_weight = event.total_weight
        view.used_weight = event.used_weight
        view.remaining_weight = remaining_weight(event.total_weight, event.used_weight)
        view.usage_percent = usage_percent(event.total_weight, event.used_weight)
        view.orders_count = event.orders_count
        view.first_used = event.first_used
        view.last_used = event.last_used
        repo.add(view)
