"""
Plain data types shared by the catalog, pricing and checkout code.

Everything here is immutable; state that changes while a shopper clicks
around lives in selection.Selection and checkout.CheckoutState.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union


# ----------------------------
# PRODUCT
# ----------------------------
class ProductGroup(str, Enum):
    CUSTOM = "custom"    # class T-shirts, polos: material / print area
    UNIFORM = "uniform"  # sports jerseys: back print


CATEGORY_GROUPS = {
    "tshirt": ProductGroup.CUSTOM,
    "polo": ProductGroup.CUSTOM,
    "soccer": ProductGroup.UNIFORM,
    "basket": ProductGroup.UNIFORM,
    "baseball": ProductGroup.UNIFORM,
    "volleyball": ProductGroup.UNIFORM,
}

SIZE_ORDER = ("XS", "S", "M", "L", "XL", "XXL")


def group_for_category(category: str) -> ProductGroup:
    try:
        return CATEGORY_GROUPS[category]
    except KeyError:
        raise ValueError(f"Unknown product category: {category!r}")


@dataclass(frozen=True)
class Variant:
    color: str
    size: str
    stock: int = 0


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    base_price: int
    category: str
    colors: Tuple[str, ...]
    sizes: Tuple[str, ...]
    variants: Tuple[Variant, ...]
    image: str = ""
    description: str = ""
    _index: Dict[Tuple[str, str], Variant] = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        index = {}
        for v in self.variants:
            key = (v.color, v.size)
            if key in index:
                raise ValueError(f"{self.id}: duplicate variant {key}")
            index[key] = v
        object.__setattr__(self, "_index", index)

    @property
    def price(self) -> int:
        """Alias kept for templates; base_price is authoritative."""
        return self.base_price

    @property
    def product_group(self) -> ProductGroup:
        return group_for_category(self.category)

    def variant(self, color, size) -> Optional[Variant]:
        try:
            return self._index.get((color, size))
        except TypeError:  # unhashable input straight from JSON
            return None

    def stock_of(self, color, size) -> int:
        """Stock for one (color, size) cell, 0 when the cell does not exist."""
        v = self.variant(color, size)
        return v.stock if v else 0

    def has_variant(self, color, size) -> bool:
        return self.variant(color, size) is not None


# ----------------------------
# SPECIFICATION
# ----------------------------
class Material(str, Enum):
    POLYESTER = "polyester"
    COTTON = "cotton"


class PrintLocation(str, Enum):
    FRONT = "front"
    BOTH = "both"


class BackPrint(str, Enum):
    NONE = "none"
    NAME_NUMBER = "nameNumber"


@dataclass(frozen=True)
class CustomSpecification:
    material: Optional[Material] = None
    print_location: Optional[PrintLocation] = None

    group = ProductGroup.CUSTOM

    def to_dict(self):
        data = {}
        if self.material is not None:
            data["material"] = self.material.value
        if self.print_location is not None:
            data["printLocation"] = self.print_location.value
        return data


@dataclass(frozen=True)
class UniformSpecification:
    back_print: Optional[BackPrint] = None

    group = ProductGroup.UNIFORM

    def to_dict(self):
        if self.back_print is None:
            return {}
        return {"backPrint": self.back_print.value}


Specification = Union[CustomSpecification, UniformSpecification]


# ----------------------------
# PRICE
# ----------------------------
@dataclass(frozen=True)
class PriceBreakdown:
    unit_price: int
    subtotal: int
    discount: int
    final_price: int

    def to_dict(self):
        return {
            "unit_price": self.unit_price,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "final_price": self.final_price,
        }
