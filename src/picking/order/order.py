"""PickingOrder aggregate (CQRS) — the core of the picking domain.

One aggregate per customer order. It owns the order's lines, its numbered
shipping boxes and the items placed in them, and drives two nested state
machines.

Order status (re-derived on every save):
    Pending → Picking → {Partially Picked | Missing Items | Completed}
    Completed is terminal; lines are frozen from then on.

Box progress:
    empty → in-progress → complete → saved → label-printed
    Boxes are worked in ascending number. A box is locked until the nearest
    lower-numbered box has its label printed. Box 0 is the implicit bucket
    for everything not placed in a box and is never locked.

Allocation:
    Every unit of every product sits either in the unassigned pool or in
    exactly one box. The pool is derived (ordered minus boxed), so each
    allocation primitive only ever adds to or subtracts from a box.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
)

from picking.domain import picking
from picking.order.allocation import (
    boxed_quantity,
    derive_unassigned,
    even_split,
    next_box_number,
    unassigned_quantity,
)
from picking.order.events import (
    BoxAdded,
    BoxContentsRecorded,
    BoxLabelPrinted,
    BoxRemoved,
    BoxSaved,
    ItemsAllocated,
    ItemsReturnedToPool,
    LinePicked,
    OrderedQuantityChanged,
    OrderPlaced,
    PickingCompleted,
    PickingProgressSaved,
    PickingSessionOpened,
)
from picking.order.weights import (
    batch_summary,
    batch_usage_rows,
    effective_box_item_batch,
    effective_line_batch,
    product_summary,
    resolve_item_weight,
)

NO_BOX = 0


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PICKING = "Picking"
    PARTIALLY_PICKED = "Partially Picked"
    MISSING_ITEMS = "Missing Items"
    COMPLETED = "Completed"


class BoxState(Enum):
    EMPTY = "empty"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"
    SAVED = "saved"
    LABEL_PRINTED = "label-printed"


class AllocationMode(Enum):
    WHOLE = "whole"
    MANUAL = "manual"
    AUTO = "auto"


def _weighed(recorded_weight, line) -> bool:
    """A box entry counts as weighed when it, or its line, carries a weight."""
    return any(w and w > 0 for w in (recorded_weight, line.manual_weight, line.picked_weight))


def derive_order_status(lines, has_missing_items: bool) -> OrderStatus:
    """Order status from line check marks and the shortage ledger."""
    checked = sum(1 for line in lines if line.checked)
    if checked == len(lines):
        return OrderStatus.MISSING_ITEMS if has_missing_items else OrderStatus.COMPLETED
    if checked > 0:
        return OrderStatus.PARTIALLY_PICKED
    return OrderStatus.PICKING


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@picking.entity(part_of="PickingOrder")
class InventoryLine:
    """One product within the order, with everything recorded while picking it."""

    product_id = Identifier(required=True)
    product_name = String(max_length=200)
    unit_weight = Float(default=0.0)  # grams per unit
    requires_weight_input = Boolean(default=False)
    ordered_quantity = Integer(required=True, min_value=0)
    original_quantity = Integer()  # set the first time ordered_quantity is edited
    picked_quantity = Integer(default=0)
    unavailable_quantity = Integer(default=0)
    checked = Boolean(default=False)
    batch_number = String(max_length=100)
    picked_weight = Float()  # grams
    manual_weight = Float()  # grams
    blown_pouches = Integer(default=0)
    box_number = Integer(default=NO_BOX)  # set when the whole line sits in one box


@picking.entity(part_of="PickingOrder")
class Box:
    """A numbered shipping container."""

    box_number = Integer(required=True, min_value=1)
    batch_number = String(max_length=100)  # default for items without their own batch


@picking.entity(part_of="PickingOrder")
class BoxItem:
    """Quantity of one product placed in one box."""

    box_number = Integer(required=True, min_value=1)
    product_id = Identifier(required=True)
    product_name = String(max_length=200)
    quantity = Integer(required=True, min_value=1)
    weight = Float(default=0.0)  # grams
    batch_number = String(max_length=100)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@picking.aggregate
class PickingOrder:
    customer_id = Identifier(required=True)
    customer_name = String(max_length=200)
    customer_order_number = String(max_length=100)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    picker = String(max_length=100)
    picking_in_progress = Boolean(default=False)
    is_picked = Boolean(default=False)
    picked_by = String(max_length=100)
    picked_at = DateTime()
    batch_number = String(max_length=100)
    batch_numbers = Text()  # JSON list of batch numbers used on the order
    lines = HasMany(InventoryLine)
    boxes = HasMany(Box)
    box_items = HasMany(BoxItem)
    last_box_number = Integer(default=0)
    saved_boxes = Text()  # JSON list of box numbers
    completed_boxes = Text()  # JSON list of box numbers whose label is printed
    batch_summaries = Text()  # JSON, frozen at completion
    total_blown_pouches = Integer(default=0)
    has_changes = Boolean(default=False)
    changes = Text()  # JSON list of ordered-quantity edits
    revision = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def boxed_quantity_cannot_exceed_ordered(self):
        for line in self.lines or []:
            if boxed_quantity(self.box_items or [], line.product_id) > line.ordered_quantity:
                raise ValidationError(
                    {"box_items": [f"More units of {line.product_name or line.product_id} boxed than ordered"]}
                )

    @invariant.post
    def box_items_must_belong_to_a_box(self):
        numbers = {box.box_number for box in self.boxes or []}
        for item in self.box_items or []:
            if item.box_number not in numbers:
                raise ValidationError({"box_items": [f"Box {item.box_number} does not exist"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id: str,
        lines_data: list[dict],
        customer_name: str | None = None,
        customer_order_number: str | None = None,
        batch_number: str | None = None,
    ):
        """Create a picking order with one line per distinct product."""
        product_ids = [str(line["product_id"]) for line in lines_data]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"lines": ["Each product may appear on only one line"]})

        now = datetime.now(UTC)
        order = cls(
            customer_id=customer_id,
            customer_name=customer_name,
            customer_order_number=customer_order_number,
            batch_number=batch_number,
            status=OrderStatus.PENDING.value,
            saved_boxes=json.dumps([]),
            completed_boxes=json.dumps([]),
            changes=json.dumps([]),
            created_at=now,
            updated_at=now,
        )
        for line_data in lines_data:
            order.add_lines(
                InventoryLine(
                    product_id=line_data["product_id"],
                    product_name=line_data.get("product_name"),
                    ordered_quantity=line_data["quantity"],
                    unit_weight=line_data.get("unit_weight") or 0.0,
                    requires_weight_input=bool(line_data.get("requires_weight_input", False)),
                )
            )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=str(customer_id),
                customer_name=customer_name or "",
                lines=json.dumps(lines_data),
                line_count=len(lines_data),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @staticmethod
    def _load(value) -> list:
        return json.loads(value) if value else []

    def _assert_not_completed(self) -> None:
        if OrderStatus(self.status) == OrderStatus.COMPLETED:
            raise ValidationError({"status": ["Order is completed and can no longer be changed"]})

    def find_line(self, line_id):
        line = next((line for line in self.lines or [] if str(line.id) == str(line_id)), None)
        if line is None:
            raise ValidationError({"line_id": ["Line not found in this order"]})
        return line

    def _line_for_product(self, product_id):
        line = next((line for line in self.lines or [] if str(line.product_id) == str(product_id)), None)
        if line is None:
            raise ValidationError({"product_id": ["Product is not on this order"]})
        return line

    def _box(self, box_number):
        box = next((box for box in self.boxes or [] if box.box_number == box_number), None)
        if box is None:
            raise ValidationError({"box_number": [f"Box {box_number} not found in this order"]})
        return box

    def _box_item(self, box_number, product_id):
        return next(
            (
                item
                for item in self.box_items or []
                if item.box_number == box_number and str(item.product_id) == str(product_id)
            ),
            None,
        )

    def _touch(self):
        self.updated_at = datetime.now(UTC)

    def _sync_line_box_numbers(self) -> None:
        """Point a line at its box when the whole line sits in exactly one box."""
        for line in self.lines or []:
            items = [i for i in self.box_items or [] if str(i.product_id) == str(line.product_id)]
            whole = len(items) == 1 and items[0].quantity == line.ordered_quantity
            box_number = items[0].box_number if whole else NO_BOX
            if line.box_number != box_number:
                line.box_number = box_number

    def _unsave_box(self, box_number) -> None:
        saved = self._load(self.saved_boxes)
        if box_number in saved:
            saved.remove(box_number)
            self.saved_boxes = json.dumps(saved)

    def _assert_box_open(self, box_number) -> None:
        if self.is_box_printed(box_number):
            raise ValidationError({"box_number": [f"Box {box_number} label is already printed"]})

    def _box_lock_problems(self, box_number) -> list[str]:
        """Reasons a box cannot be worked on right now: waiting for its predecessor, already closed."""
        problems = []
        if self.is_box_locked(box_number):
            problems.append(f"Box {self.box_predecessor(box_number)} label must be printed first")
        if self.is_box_printed(box_number):
            problems.append(f"Box {box_number} label is already printed")
        return problems

    def _assert_box_editable(self, box_number) -> None:
        problems = self._box_lock_problems(box_number)
        if problems:
            raise ValidationError({"box": problems})

    # -------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------
    def unassigned_items(self):
        return derive_unassigned(self.lines or [], self.box_items or [])

    def unassigned_quantity(self, product_id) -> int:
        return unassigned_quantity(self.lines or [], self.box_items or [], product_id)

    def box_numbers(self) -> list[int]:
        return sorted(box.box_number for box in self.boxes or [])

    def is_box_saved(self, box_number) -> bool:
        return box_number in self._load(self.saved_boxes)

    def is_box_printed(self, box_number) -> bool:
        return box_number in self._load(self.completed_boxes)

    def box_contents(self, box_number) -> list[dict]:
        """Items of one box with the line each belongs to.

        Box 0 holds the unboxed part of every line and takes batch and weight
        from the line itself.
        """
        lines = {str(line.product_id): line for line in self.lines or []}
        if box_number == NO_BOX:
            return [
                {
                    "line": lines[item.product_id],
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                    "batch_number": lines[item.product_id].batch_number,
                    "weight": lines[item.product_id].manual_weight or lines[item.product_id].picked_weight or 0.0,
                }
                for item in self.unassigned_items()
            ]

        box = self._box(box_number)
        return [
            {
                "line": lines.get(str(item.product_id)),
                "product_id": str(item.product_id),
                "product_name": item.product_name,
                "quantity": item.quantity,
                "batch_number": effective_box_item_batch(item, box),
                "weight": item.weight or 0.0,
            }
            for item in self.box_items or []
            if item.box_number == box_number
        ]

    def _box_exists(self, box_number) -> bool:
        if box_number == NO_BOX:
            return bool(self.unassigned_items())
        return box_number in self.box_numbers()

    def box_predecessor(self, box_number) -> int | None:
        lower = [number for number in self.box_numbers() if number < box_number]
        return max(lower) if lower else None

    def is_box_locked(self, box_number) -> bool:
        if box_number == NO_BOX:
            return False
        predecessor = self.box_predecessor(box_number)
        return predecessor is not None and not self.is_box_printed(predecessor)

    def box_problems(self, box_number) -> dict[str, list[str]]:
        """Every unmet completeness condition for a box, keyed by kind."""
        problems: dict[str, list[str]] = {}
        contents = self.box_contents(box_number)
        unchecked = [c["product_name"] or c["product_id"] for c in contents if not (c["line"] and c["line"].checked)]
        missing_batch = [c["product_name"] or c["product_id"] for c in contents if not c["batch_number"]]
        missing_weight = [
            c["product_name"] or c["product_id"]
            for c in contents
            if c["line"] and c["line"].requires_weight_input and not _weighed(c["weight"], c["line"])
        ]
        if unchecked:
            problems["unchecked_items"] = [f"Items not checked: {', '.join(unchecked)}"]
        if missing_batch:
            problems["batch_numbers"] = [f"Missing batch numbers: {', '.join(missing_batch)}"]
        if missing_weight:
            problems["weights"] = [f"Missing weights: {', '.join(missing_weight)}"]
        return problems

    def box_state(self, box_number) -> BoxState:
        if self.is_box_printed(box_number):
            return BoxState.LABEL_PRINTED
        if self.is_box_saved(box_number):
            return BoxState.SAVED
        contents = self.box_contents(box_number) if self._box_exists(box_number) else []
        if not contents:
            return BoxState.EMPTY
        if not self.box_problems(box_number):
            return BoxState.COMPLETE
        return BoxState.IN_PROGRESS

    def next_box(self) -> int | None:
        """Lowest-numbered box still to be printed that can be worked on now."""
        candidates = ([NO_BOX] if self._box_exists(NO_BOX) else []) + self.box_numbers()
        for number in candidates:
            if not self.is_box_printed(number) and not self.is_box_locked(number):
                return number
        return None

    def box_label(self, box_number) -> dict:
        """Exact item list and weights to print on a box label."""
        items = []
        for content in self.box_contents(box_number):
            weight = resolve_item_weight(content["line"], content["quantity"], content["weight"])
            batch = content["batch_number"]
            if box_number == NO_BOX and content["line"] is not None:
                batch = effective_line_batch(self, content["line"])
            items.append(
                {
                    "product_id": content["product_id"],
                    "product_name": content["product_name"],
                    "quantity": content["quantity"],
                    "batch_number": batch,
                    "weight": weight,
                }
            )
        return {
            "order_id": str(self.id),
            "customer_name": self.customer_name,
            "box_number": box_number,
            "total_boxes": len(self.box_numbers()),
            "items": items,
            "total_weight": sum(item["weight"] for item in items),
        }

    # -------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------
    def change_ordered_quantity(self, line_id, new_quantity: int) -> None:
        """Edit a line's ordered quantity, keeping the very first figure."""
        self._assert_not_completed()
        line = self.find_line(line_id)
        if new_quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})
        boxed = boxed_quantity(self.box_items or [], line.product_id)
        if new_quantity < boxed:
            raise ValidationError(
                {"quantity": [f"{boxed} units are already in boxes; remove them before reducing to {new_quantity}"]}
            )
        if new_quantity == line.ordered_quantity:
            return

        now = datetime.now(UTC)
        previous = line.ordered_quantity
        with atomic_change(self):
            if line.original_quantity is None:
                line.original_quantity = previous
            line.ordered_quantity = new_quantity
            if line.checked:
                line.checked = False
                line.picked_quantity = 0
            self._sync_line_box_numbers()

        changes = self._load(self.changes)
        changes.append(
            {
                "product_id": str(line.product_id),
                "product_name": line.product_name,
                "original_quantity": line.original_quantity,
                "new_quantity": new_quantity,
                "date": now.isoformat(),
            }
        )
        self.changes = json.dumps(changes)
        self.has_changes = True
        self.updated_at = now
        self.raise_(
            OrderedQuantityChanged(
                order_id=str(self.id),
                line_id=str(line.id),
                product_id=str(line.product_id),
                original_quantity=line.original_quantity,
                previous_quantity=previous,
                new_quantity=new_quantity,
                changed_at=now,
            )
        )

    def record_line_pick(
        self,
        line_id,
        checked: bool | None = None,
        batch_number: str | None = None,
        picked_weight: float | None = None,
        manual_weight: float | None = None,
        blown_pouches: int | None = None,
        missing_quantity: int = 0,
    ) -> None:
        """Record pick data against a line.

        ``missing_quantity`` is what the shortage ledger holds for the line's
        product; a checked line's picked quantity is the ordered quantity less
        that shortage, so a checked line never carries an unexplained gap.
        """
        self._assert_not_completed()
        line = self.find_line(line_id)
        for name, value in (("picked_weight", picked_weight), ("manual_weight", manual_weight)):
            if value is not None and value < 0:
                raise ValidationError({name: ["Weight cannot be negative"]})
        if blown_pouches is not None and blown_pouches < 0:
            raise ValidationError({"blown_pouches": ["Blown pouches cannot be negative"]})
        if checked and line.requires_weight_input:
            weights = (
                line.picked_weight if picked_weight is None else picked_weight,
                line.manual_weight if manual_weight is None else manual_weight,
            )
            if not any(w and w > 0 for w in weights):
                raise ValidationError({"weights": [f"{line.product_name or line.product_id} must be weighed"]})

        with atomic_change(self):
            if batch_number is not None:
                line.batch_number = batch_number or None
            if picked_weight is not None:
                line.picked_weight = picked_weight
            if manual_weight is not None:
                line.manual_weight = manual_weight
            if blown_pouches is not None:
                line.blown_pouches = blown_pouches

            if checked:
                shortage = min(max(missing_quantity, 0), line.ordered_quantity)
                line.checked = True
                line.unavailable_quantity = shortage
                line.picked_quantity = line.ordered_quantity - shortage
            elif checked is not None:
                line.checked = False
                line.picked_quantity = 0

        # A change to a line reopens any saved, unprinted box holding it
        for item in self.box_items or []:
            if str(item.product_id) == str(line.product_id) and not self.is_box_printed(item.box_number):
                self._unsave_box(item.box_number)
        if not self.is_box_printed(NO_BOX):
            self._unsave_box(NO_BOX)

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            LinePicked(
                order_id=str(self.id),
                line_id=str(line.id),
                product_id=str(line.product_id),
                checked=bool(line.checked),
                picked_quantity=line.picked_quantity,
                batch_number=line.batch_number,
                picked_weight=line.picked_weight,
                recorded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Boxes
    # -------------------------------------------------------------------
    def add_box(self) -> int:
        """Open a new box numbered one past the highest number ever issued."""
        self._assert_not_completed()
        number = next_box_number(self.box_numbers(), self.last_box_number or 0)
        now = datetime.now(UTC)
        self.add_boxes(Box(box_number=number))
        self.last_box_number = number
        self.updated_at = now
        self.raise_(BoxAdded(order_id=str(self.id), box_number=number, added_at=now))
        return number

    def remove_box(self, box_number: int) -> None:
        """Delete a box, returning everything in it to the unassigned pool."""
        self._assert_not_completed()
        box = self._box(box_number)
        self._assert_box_open(box_number)

        items = [item for item in self.box_items or [] if item.box_number == box_number]
        returned = [{"product_id": str(item.product_id), "quantity": item.quantity} for item in items]
        with atomic_change(self):
            for item in items:
                self.remove_box_items(item)
            self.remove_boxes(box)
            self._sync_line_box_numbers()
        self._unsave_box(box_number)

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            BoxRemoved(
                order_id=str(self.id),
                box_number=box_number,
                returned_items=json.dumps(returned),
                removed_at=now,
            )
        )

    def _place_in_box(self, product_id, box_number, quantity) -> None:
        line = self._line_for_product(product_id)
        existing = self._box_item(box_number, product_id)
        if existing:
            existing.quantity += quantity
        else:
            self.add_box_items(
                BoxItem(
                    box_number=box_number,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=quantity,
                    weight=0.0,
                )
            )
        self._unsave_box(box_number)

    def _allocate(self, product_id, box_number: int, quantity: int, mode: AllocationMode) -> None:
        self._assert_not_completed()
        self._line_for_product(product_id)
        self._box(box_number)
        self._assert_box_open(box_number)
        available = self.unassigned_quantity(product_id)
        if quantity < 1 or quantity > available:
            raise ValidationError({"quantity": [f"Quantity must be between 1 and {available}"]})

        with atomic_change(self):
            self._place_in_box(product_id, box_number, quantity)
            self._sync_line_box_numbers()

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            ItemsAllocated(
                order_id=str(self.id),
                product_id=str(product_id),
                mode=mode.value,
                allocations=json.dumps([{"box_number": box_number, "quantity": quantity}]),
                unassigned_quantity=self.unassigned_quantity(product_id),
                allocated_at=now,
            )
        )

    def assign_to_box(self, product_id, box_number: int, quantity: int) -> None:
        """Move units of a product from the unassigned pool into a box."""
        self._allocate(product_id, box_number, quantity, AllocationMode.WHOLE)

    def split_to_box(self, product_id, box_number: int, quantity: int) -> None:
        """Manual split: the picker chose the box, then the quantity."""
        self._allocate(product_id, box_number, quantity, AllocationMode.MANUAL)

    def auto_split(self, product_id, box_count: int) -> list[dict]:
        """Spread all unassigned units of a product evenly over ``box_count`` boxes.

        Boxes are taken lowest number first among those still open; missing
        boxes are created. The first ``quantity % box_count`` boxes get one
        extra unit. Boxes whose share is zero are left untouched.
        """
        self._assert_not_completed()
        self._line_for_product(product_id)
        if box_count < 1:
            raise ValidationError({"box_count": ["Box count must be at least 1"]})
        quantity = self.unassigned_quantity(product_id)
        if quantity == 0:
            raise ValidationError({"product_id": ["Nothing left to distribute for this product"]})

        open_boxes = [number for number in self.box_numbers() if not self.is_box_printed(number)]
        while len(open_boxes) < box_count:
            open_boxes.append(self.add_box())
        targets = sorted(open_boxes)[:box_count]

        allocations = []
        with atomic_change(self):
            for box_number, share in zip(targets, even_split(quantity, box_count), strict=True):
                if share == 0:
                    continue
                self._place_in_box(product_id, box_number, share)
                allocations.append({"box_number": box_number, "quantity": share})
            self._sync_line_box_numbers()

        remaining = self.unassigned_quantity(product_id)
        if remaining != 0:
            raise ValidationError({"product_id": [f"{remaining} units left unassigned after auto split"]})

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            ItemsAllocated(
                order_id=str(self.id),
                product_id=str(product_id),
                mode=AllocationMode.AUTO.value,
                allocations=json.dumps(allocations),
                unassigned_quantity=0,
                allocated_at=now,
            )
        )
        return allocations

    def remove_from_box(self, box_number: int, product_id, quantity: int | None = None) -> None:
        """Return units from a box to the unassigned pool (all of them by default)."""
        self._assert_not_completed()
        self._box(box_number)
        self._assert_box_open(box_number)
        item = self._box_item(box_number, product_id)
        if item is None:
            raise ValidationError({"product_id": [f"Product is not in box {box_number}"]})
        amount = item.quantity if quantity is None else quantity
        if amount < 1 or amount > item.quantity:
            raise ValidationError({"quantity": [f"Quantity must be between 1 and {item.quantity}"]})

        with atomic_change(self):
            if amount == item.quantity:
                self.remove_box_items(item)
            else:
                item.quantity -= amount
            self._sync_line_box_numbers()
        self._unsave_box(box_number)

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            ItemsReturnedToPool(
                order_id=str(self.id),
                box_number=box_number,
                product_id=str(product_id),
                quantity=amount,
                unassigned_quantity=self.unassigned_quantity(product_id),
                returned_at=now,
            )
        )

    def set_box_batch(self, box_number: int, batch_number: str) -> None:
        """Set the batch number used by items in the box that carry none of their own."""
        self._assert_not_completed()
        box = self._box(box_number)
        self._assert_box_editable(box_number)
        box.batch_number = batch_number or None
        self._unsave_box(box_number)
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            BoxContentsRecorded(
                order_id=str(self.id),
                box_number=box_number,
                batch_number=batch_number,
                recorded_at=now,
            )
        )

    def record_box_item(
        self,
        box_number: int,
        product_id,
        batch_number: str | None = None,
        weight: float | None = None,
    ) -> None:
        """Record the batch number and/or weighed grams of one item in a box."""
        self._assert_not_completed()
        self._box(box_number)
        self._assert_box_editable(box_number)
        item = self._box_item(box_number, product_id)
        if item is None:
            raise ValidationError({"product_id": [f"Product is not in box {box_number}"]})
        if weight is not None and weight < 0:
            raise ValidationError({"weight": ["Weight cannot be negative"]})

        if batch_number is not None:
            item.batch_number = batch_number or None
        if weight is not None:
            item.weight = weight
        self._unsave_box(box_number)

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            BoxContentsRecorded(
                order_id=str(self.id),
                box_number=box_number,
                product_id=str(product_id),
                batch_number=item.batch_number,
                weight=item.weight,
                recorded_at=now,
            )
        )

    def save_box(self, box_number: int) -> bool:
        """Persist a complete box. Returns False when it was already saved."""
        self._assert_not_completed()
        if not self._box_exists(box_number):
            raise ValidationError({"box_number": [f"Box {box_number} not found in this order"]})
        problems = {}
        box_problems = self._box_lock_problems(box_number)
        if box_problems:
            problems["box"] = box_problems
        problems.update(self.box_problems(box_number))
        if problems:
            raise ValidationError(problems)

        if self.is_box_saved(box_number):
            return False

        saved = self._load(self.saved_boxes)
        saved.append(box_number)
        self.saved_boxes = json.dumps(sorted(saved))
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(BoxSaved(order_id=str(self.id), box_number=box_number, saved_at=now))
        return True

    def print_box_label(self, box_number: int) -> dict:
        """Close a saved box, fold its data into batch totals and return the label."""
        self._assert_not_completed()
        if not self._box_exists(box_number):
            raise ValidationError({"box_number": [f"Box {box_number} not found in this order"]})
        problems = {}
        box_problems = self._box_lock_problems(box_number)
        if not self.is_box_printed(box_number) and not self.is_box_saved(box_number):
            box_problems.append(f"Box {box_number} must be saved before its label is printed")
        if box_problems:
            problems["box"] = box_problems
        problems.update(self.box_problems(box_number))
        if problems:
            raise ValidationError(problems)

        label = self.box_label(box_number)
        completed = self._load(self.completed_boxes)
        completed.append(box_number)
        self.completed_boxes = json.dumps(sorted(completed))

        used = set(self._load(self.batch_numbers))
        for item in label["items"]:
            if item["batch_number"] and item["batch_number"] not in used:
                used.add(item["batch_number"])
        self.batch_numbers = json.dumps(sorted(used))

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            BoxLabelPrinted(
                order_id=str(self.id),
                box_number=box_number,
                label=json.dumps(label),
                usage=json.dumps(batch_usage_rows(self, box_numbers=set(completed))),
                next_box=self.next_box(),
                printed_at=now,
            )
        )
        return label

    # -------------------------------------------------------------------
    # Picking session and progress
    # -------------------------------------------------------------------
    def open_session(self, picker: str) -> None:
        """Start (or resume) picking. The first session moves Pending to Picking."""
        self._assert_not_completed()
        if not picker:
            raise ValidationError({"picker": ["A picker must be selected"]})
        now = datetime.now(UTC)
        if OrderStatus(self.status) == OrderStatus.PENDING:
            self.status = OrderStatus.PICKING.value
        self.picker = picker
        self.picking_in_progress = True
        self.updated_at = now
        self.raise_(
            PickingSessionOpened(
                order_id=str(self.id),
                picker=picker,
                status=self.status,
                opened_at=now,
            )
        )

    def save_progress(self, missing_quantities: dict | None = None, expected_revision: int | None = None) -> str:
        """Save the working set and re-derive the order status.

        ``missing_quantities`` maps product id to the quantity the shortage
        ledger holds for this order. Returns the new status.
        """
        self._assert_not_completed()
        if expected_revision is not None and expected_revision != self.revision:
            raise ValidationError(
                {"revision": [f"Order was saved elsewhere (revision {self.revision}, expected {expected_revision})"]}
            )
        missing_quantities = {str(k): v for k, v in (missing_quantities or {}).items() if v}

        with atomic_change(self):
            for line in self.lines or []:
                if line.checked:
                    shortage = min(missing_quantities.get(str(line.product_id), 0), line.ordered_quantity)
                    line.unavailable_quantity = shortage
                    line.picked_quantity = line.ordered_quantity - shortage

        self.total_blown_pouches = sum(line.blown_pouches or 0 for line in self.lines or [])
        status = derive_order_status(self.lines or [], has_missing_items=bool(missing_quantities))
        self.status = status.value
        self.revision = (self.revision or 0) + 1
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            PickingProgressSaved(
                order_id=str(self.id),
                status=self.status,
                revision=self.revision,
                checked_lines=sum(1 for line in self.lines or [] if line.checked),
                total_lines=len(self.lines or []),
                total_blown_pouches=self.total_blown_pouches,
                saved_at=now,
            )
        )

        if status == OrderStatus.COMPLETED:
            self._complete(now)
        return self.status

    def _complete(self, now) -> None:
        used = set(self._load(self.batch_numbers))
        used.update(line.batch_number for line in self.lines or [] if line.batch_number)
        used.update(item.batch_number for item in self.box_items or [] if item.batch_number)
        if used:
            self.batch_numbers = json.dumps(sorted(used))

        summaries = batch_summary(self)
        products = product_summary(self)
        self.batch_summaries = json.dumps(summaries)
        self.is_picked = True
        self.picking_in_progress = False
        self.picked_by = self.picker
        self.picked_at = now
        self.raise_(
            PickingCompleted(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                picked_by=self.picker or "",
                product_summaries=json.dumps(products),
                batch_summaries=json.dumps(summaries),
                usage=json.dumps(batch_usage_rows(self)),
                completed_at=now,
            )
        )
