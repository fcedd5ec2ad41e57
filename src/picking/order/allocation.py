"""Box allocation arithmetic — pure functions over lines and box items.

Nothing here mutates state. The unassigned pool is never stored: it is
recomputed from the order's lines and box items every time it is needed, so
``ordered == unassigned + boxed`` holds by construction for every product.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class UnassignedItem:
    """Quantity of one product not yet placed in any box."""

    product_id: str
    product_name: str
    quantity: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
        }


def boxed_quantity(box_items, product_id, box_number=None) -> int:
    """Total quantity of a product across boxes (or inside one box)."""
    return sum(
        item.quantity
        for item in box_items
        if str(item.product_id) == str(product_id) and (box_number is None or item.box_number == box_number)
    )


def derive_unassigned(lines, box_items) -> list[UnassignedItem]:
    """Everything ordered but not yet boxed, one entry per product, in line order."""
    unassigned = []
    for line in lines:
        remaining = line.ordered_quantity - boxed_quantity(box_items, line.product_id)
        if remaining > 0:
            unassigned.append(
                UnassignedItem(
                    product_id=str(line.product_id),
                    product_name=line.product_name or "Unknown Product",
                    quantity=remaining,
                )
            )
    return unassigned


def unassigned_quantity(lines, box_items, product_id) -> int:
    for item in derive_unassigned(lines, box_items):
        if item.product_id == str(product_id):
            return item.quantity
    return 0


def even_split(quantity: int, box_count: int) -> list[int]:
    """Share ``quantity`` across ``box_count`` boxes, remainder to the first boxes.

    >>> even_split(10, 3)
    [4, 3, 3]
    """
    if box_count < 1:
        raise ValueError("box_count must be at least 1")
    base, remainder = divmod(quantity, box_count)
    return [base + 1 if index < remainder else base for index in range(box_count)]


def next_box_number(box_numbers, last_box_number: int = 0) -> int:
    """Next box number: one past the highest number ever issued for the order."""
    return max([last_box_number, *box_numbers]) + 1
