"""BatchUsage aggregate (CQRS) — cross-order weight ledger per batch and product.

One record per ``(batch_number, product_id)``. Each order's contribution is
kept in ``used_by`` so recording the same order again replaces its figure
instead of adding to it: printing a box and later completing the order
describe the same goods.
"""

import json
from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from picking.batch.events import BatchUsageRecorded
from picking.domain import picking


def remaining_weight(total_weight, used_weight) -> float:
    """Grams of the batch not yet drawn by any order."""
    return (total_weight or 0.0) - (used_weight or 0.0)


def usage_percent(total_weight, used_weight) -> float:
    if not total_weight:
        return 0.0
    return round((used_weight or 0.0) / total_weight * 100, 1)


@picking.aggregate
class BatchUsage:
    batch_number = String(required=True, max_length=100)
    product_id = Identifier(required=True)
    product_name = String(max_length=200)
    total_weight = Float(default=0.0)  # nominal grams of the first usage
    used_weight = Float(default=0.0)  # grams
    orders_count = Integer(default=0)
    used_by = Text()  # JSON map of order_id -> grams
    first_used = DateTime()
    last_used = DateTime()

    @invariant.post
    def orders_count_matches_contributions(self):
        if self.orders_count != len(self.contributions()):
            raise ValidationError({"orders_count": ["Orders count out of step with recorded orders"]})

    @classmethod
    def start(cls, batch_number, product_id, product_name=None):
        return cls(
            batch_number=batch_number,
            product_id=product_id,
            product_name=product_name,
            used_by=json.dumps({}),
        )

    def contributions(self) -> dict[str, float]:
        return json.loads(self.used_by) if self.used_by else {}

    def remaining_weight(self) -> float:
        return remaining_weight(self.total_weight, self.used_weight)

    def usage_percent(self) -> float:
        return usage_percent(self.total_weight, self.used_weight)

    def is_incomplete(self) -> bool:
        """True while less weight has been drawn than the batch's nominal weight."""
        return (self.used_weight or 0.0) < (self.total_weight or 0.0)

    def record(self, order_id, weight: float, nominal_weight: float | None = None) -> None:
        """Fold one order's usage into the ledger.

        A new order adds its weight and counts once. An order seen before has
        its earlier figure replaced.
        """
        if weight < 0:
            raise ValidationError({"weight": ["Weight cannot be negative"]})
        now = datetime.now(UTC)
        contributions = self.contributions()
        previous = contributions.get(str(order_id))

        if not contributions and not self.total_weight:
            self.total_weight = nominal_weight if nominal_weight else weight
        if self.first_used is None:
            self.first_used = now

        contributions[str(order_id)] = weight
        with atomic_change(self):
            self.used_by = json.dumps(contributions)
            self.orders_count = len(contributions)
        self.used_weight = (self.used_weight or 0.0) + weight - (previous or 0.0)
        self.last_used = now

        self.raise_(
            BatchUsageRecorded(
                usage_id=str(self.id),
                batch_number=self.batch_number,
                product_id=str(self.product_id),
                product_name=self.product_name,
                order_id=str(order_id),
                order_weight=weight,
                total_weight=self.total_weight,
                used_weight=self.used_weight,
                orders_count=self.orders_count,
                first_used=self.first_used,
                last_used=now,
            )
        )


def usage_for(batch_number, product_id) -> BatchUsage | None:
    repo = current_domain.repository_for(BatchUsage)
    results = repo._dao.query.filter(batch_number=batch_number, product_id=str(product_id)).all()
    if not results or not results.items:
        return None
    return results.first
