"""
Per-product selection: colour, sizes, quantities, specification, campaign.

A Selection belongs to one shopper looking at one product. Each public
method is one UI event; totals are derived on read so they always match
the stored quantities.

Stock is advisory here. Quantities above a variant's stock are kept and
reported through `over_stock`; the page shows the hint, nothing clamps.
"""

import logging
from enum import Enum

from models import PriceBreakdown
from pricing import empty_specification, parse_specification, total_price

logger = logging.getLogger(__name__)


class SelectionState(str, Enum):
    EMPTY = "empty"
    COLOR_CHOSEN = "color_chosen"
    SIZE_OR_QUANTITY_CHOSEN = "size_or_quantity_chosen"
    READY_FOR_CHECKOUT = "ready_for_checkout"


def coerce_quantity(value) -> int:
    """Non-numeric and negative input becomes 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.strip()
    try:
        quantity = int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            quantity = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 0
    return max(0, quantity)


class Selection:
    def __init__(self, product):
        self.product = product
        self.selected_color = None
        self.selected_size = None
        self.quantities = {}
        self.specification = empty_specification(product)
        self.teacher_discount = False

    # ----------------------------
    # EVENTS
    # ----------------------------
    def select_color(self, color):
        """Pick a colour. Sizes and quantities chosen so far are dropped."""
        if color not in self.product.colors:
            logger.warning("Ignoring unknown color %r for %s", color, self.product.id)
            return False
        self.selected_color = color
        self.selected_size = None
        self.quantities = {}
        return True

    def select_size(self, size):
        color = self.selected_color
        if color is None or not self.product.has_variant(color, size):
            logger.warning("Ignoring size %r for %s/%s", size, self.product.id, color)
            return False
        self.selected_size = size
        return True

    def set_quantity(self, color, size, quantity):
        if not self.product.has_variant(color, size):
            logger.warning(
                "Ignoring quantity for unknown variant %s/%s of %s", color, size, self.product.id
            )
            return False
        quantity = coerce_quantity(quantity)
        key = (color, size)
        if quantity == 0:
            self.quantities.pop(key, None)
        else:
            self.quantities[key] = quantity
        return True

    def set_specification(self, raw):
        self.specification = parse_specification(self.product, raw)

    def update_specification(self, changes):
        """Change some specification fields and keep the others."""
        merged = self.specification.to_dict()
        merged.update({k: v for k, v in (changes or {}).items() if v not in (None, "")})
        self.set_specification(merged)

    def set_teacher_discount(self, enabled):
        self.teacher_discount = bool(enabled)

    def reset(self):
        self.selected_color = None
        self.selected_size = None
        self.quantities = {}
        self.specification = empty_specification(self.product)
        self.teacher_discount = False

    # ----------------------------
    # DERIVED
    # ----------------------------
    def stock_of(self, color, size) -> int:
        return self.product.stock_of(color, size)

    def quantity_of(self, color, size) -> int:
        return self.quantities.get((color, size), 0)

    @property
    def total_quantity(self) -> int:
        return sum(self.quantities.values())

    @property
    def breakdown(self) -> PriceBreakdown:
        return total_price(
            self.product, self.specification, self.total_quantity, self.teacher_discount
        )

    @property
    def over_stock(self):
        """(color, size, requested, stock) for every line above its stock."""
        lines = []
        for (color, size), qty in self.quantities.items():
            stock = self.stock_of(color, size)
            if qty > stock:
                lines.append((color, size, qty, stock))
        return lines

    @property
    def state(self) -> SelectionState:
        if self.total_quantity > 0:
            return SelectionState.READY_FOR_CHECKOUT
        if self.selected_size is not None:
            return SelectionState.SIZE_OR_QUANTITY_CHOSEN
        if self.selected_color is not None:
            return SelectionState.COLOR_CHOSEN
        return SelectionState.EMPTY

    @property
    def is_ready(self) -> bool:
        return self.state is SelectionState.READY_FOR_CHECKOUT

    def lines(self):
        """Quantities in catalog order (colour, then size)."""
        out = []
        for variant in self.product.variants:
            qty = self.quantities.get((variant.color, variant.size))
            if qty:
                out.append((variant.color, variant.size, qty))
        return out

    # ----------------------------
    # SERIALIZATION
    # ----------------------------
    def to_dict(self):
        return {
            "product_id": self.product.id,
            "color": self.selected_color,
            "size": self.selected_size,
            "quantities": [[c, s, q] for c, s, q in self.lines()],
            "specification": self.specification.to_dict(),
            "teacher_discount": self.teacher_discount,
        }

    @classmethod
    def from_dict(cls, product, data):
        """Rebuild from to_dict() output; anything unusable is skipped."""
        selection = cls(product)
        if not isinstance(data, dict) or data.get("product_id") != product.id:
            return selection

        color = data.get("color")
        if color in product.colors:
            selection.selected_color = color
            size = data.get("size")
            if product.has_variant(color, size):
                selection.selected_size = size

        for line in data.get("quantities") or []:
            try:
                color, size, qty = line
            except (TypeError, ValueError):
                continue
            selection.set_quantity(color, size, qty)

        selection.set_specification(data.get("specification") or {})
        selection.set_teacher_discount(data.get("teacher_discount", False))
        return selection
