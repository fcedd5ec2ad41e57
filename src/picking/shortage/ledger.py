"""ShortageLedger aggregate (CQRS) — shortages discovered while picking one order.

One ledger per order, holding at most one ``MissingItem`` per product. Quantities
are always above zero: reporting zero deletes the record. The ledger is
independent of box allocation; the PickingOrder only consults it when deriving
its status.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String
from protean.utils.globals import current_domain

from picking.domain import picking
from picking.shortage.events import MissingItemProcessed, MissingItemReported, MissingItemResolved


class MissingItemStatus(Enum):
    PENDING = "Pending"
    PROCESSED = "Processed"


@picking.entity(part_of="ShortageLedger")
class MissingItem:
    product_id = Identifier(required=True)
    product_name = String(max_length=200)
    quantity = Integer(required=True, min_value=1)
    date = DateTime()
    status = String(choices=MissingItemStatus, default=MissingItemStatus.PENDING.value)


@picking.aggregate
class ShortageLedger:
    order_id = Identifier(required=True)
    items = HasMany(MissingItem)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def one_record_per_product(self):
        product_ids = [str(item.product_id) for item in self.items or []]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"items": ["Only one missing-item record per product is allowed"]})

    @classmethod
    def open(cls, order_id):
        now = datetime.now(UTC)
        return cls(order_id=order_id, created_at=now, updated_at=now)

    def _item(self, item_id):
        item = next((i for i in self.items or [] if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Missing item not found for this order"]})
        return item

    def item_for_product(self, product_id):
        return next((i for i in self.items or [] if str(i.product_id) == str(product_id)), None)

    def quantities(self) -> dict[str, int]:
        """Missing quantity per product id."""
        return {str(item.product_id): item.quantity for item in self.items or []}

    def report(self, product_id, quantity: int, ordered_quantity: int, product_name: str | None = None):
        """Create, update or (with zero) delete the record for a product.

        The quantity is clamped to what was ordered. Returns the record, or
        None when it was deleted or never existed.
        """
        if quantity < 0:
            raise ValidationError({"quantity": ["Missing quantity cannot be negative"]})
        quantity = min(quantity, max(ordered_quantity, 0))
        existing = self.item_for_product(product_id)
        if quantity == 0:
            if existing:
                self._delete(existing)
            return None

        now = datetime.now(UTC)
        previous = existing.quantity if existing else 0
        if existing:
            if existing.quantity == quantity:
                return existing
            existing.quantity = quantity
            existing.date = now
            item = existing
        else:
            item = MissingItem(
                product_id=product_id,
                product_name=product_name,
                quantity=quantity,
                date=now,
                status=MissingItemStatus.PENDING.value,
            )
            self.add_items(item)

        self.updated_at = now
        self.raise_(
            MissingItemReported(
                ledger_id=str(self.id),
                order_id=str(self.order_id),
                item_id=str(item.id),
                product_id=str(product_id),
                product_name=item.product_name,
                quantity=quantity,
                previous_quantity=previous,
                status=item.status,
                reported_at=now,
            )
        )
        return item

    def resolve(self, item_id) -> None:
        self._delete(self._item(item_id))

    def mark_processed(self, item_id) -> None:
        """Staff dealt with the shortage. The record stays until resolved."""
        item = self._item(item_id)
        if MissingItemStatus(item.status) == MissingItemStatus.PROCESSED:
            raise ValidationError({"status": ["Missing item is already processed"]})
        now = datetime.now(UTC)
        item.status = MissingItemStatus.PROCESSED.value
        self.updated_at = now
        self.raise_(
            MissingItemProcessed(
                ledger_id=str(self.id),
                order_id=str(self.order_id),
                item_id=str(item.id),
                product_id=str(item.product_id),
                processed_at=now,
            )
        )

    def _delete(self, item) -> None:
        now = datetime.now(UTC)
        self.remove_items(item)
        self.updated_at = now
        self.raise_(
            MissingItemResolved(
                ledger_id=str(self.id),
                order_id=str(self.order_id),
                item_id=str(item.id),
                product_id=str(item.product_id),
                quantity=item.quantity,
                resolved_at=now,
            )
        )


def ledger_for_order(order_id) -> ShortageLedger | None:
    repo = current_domain.repository_for(ShortageLedger)
    results = repo._dao.query.filter(order_id=str(order_id)).all()
    if not results or not results.items:
        return None
    return repo.get(results.first.id)


def missing_quantities(order_id) -> dict[str, int]:
    """Missing quantity per product for an order; empty when nothing is short."""
    ledger = ledger_for_order(order_id)
    return ledger.quantities() if ledger else {}
