"""
Unit price, order totals and coupons.

Nothing in here raises to the caller. A broken specification or an
unexpected failure logs a warning and falls back to the product's base
price, so the storefront always shows a usable number.
"""

import logging

from models import (
    BackPrint,
    CustomSpecification,
    Material,
    PriceBreakdown,
    PrintLocation,
    ProductGroup,
    UniformSpecification,
)

logger = logging.getLogger(__name__)


# ----------------------------
# RULES
# ----------------------------
# (group, price-bearing option) -> unit price in JPY.
# Material is recorded on the order but does not move the price.
PRICING_RULES = {
    (ProductGroup.CUSTOM, PrintLocation.FRONT): 1500,
    (ProductGroup.CUSTOM, PrintLocation.BOTH): 1800,
    (ProductGroup.UNIFORM, BackPrint.NONE): 1400,
    (ProductGroup.UNIFORM, BackPrint.NAME_NUMBER): 1800,
}

COUPON_CODES = {
    "DISCOUNT5": 5,
}

# raw key aliases accepted from forms / JSON
_FIELD_ALIASES = {
    "material": ("material",),
    "print_location": ("printLocation", "print_location", "printArea", "print_area"),
    "back_print": ("backPrint", "back_print", "backProcessing", "back_processing"),
}


# ----------------------------
# SPECIFICATION PARSING
# ----------------------------
def _raw_value(raw, name):
    for key in _FIELD_ALIASES[name]:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _enum_or_none(enum_cls, value, product_id):
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        logger.warning(
            "Ignoring invalid %s %r for product %s", enum_cls.__name__, value, product_id
        )
        return None


def empty_specification(product):
    if product.product_group is ProductGroup.CUSTOM:
        return CustomSpecification()
    return UniformSpecification()


def parse_specification(product, raw):
    """
    Build the tagged specification for `product` from a raw mapping.

    Only the fields of the product's group are read; anything else in `raw`
    is dropped. Invalid values are dropped with a warning.
    """
    if isinstance(raw, (CustomSpecification, UniformSpecification)):
        raw = raw.to_dict()
    if not isinstance(raw, dict):
        if raw is not None:
            logger.warning("Specification for %s is not a mapping: %r", product.id, raw)
        return empty_specification(product)

    if product.product_group is ProductGroup.CUSTOM:
        return CustomSpecification(
            material=_enum_or_none(Material, _raw_value(raw, "material"), product.id),
            print_location=_enum_or_none(
                PrintLocation, _raw_value(raw, "print_location"), product.id
            ),
        )
    return UniformSpecification(
        back_print=_enum_or_none(BackPrint, _raw_value(raw, "back_print"), product.id),
    )


def _rule_key(product, specification):
    group = product.product_group
    if specification is None:
        return None
    if specification.group is not group:
        logger.warning(
            "Specification group %s does not fit product %s (%s)",
            specification.group.value, product.id, group.value,
        )
        return None
    if isinstance(specification, CustomSpecification):
        option = specification.print_location
    else:
        option = specification.back_print
    if option is None:
        return None
    return (group, option)


# ----------------------------
# PRICES
# ----------------------------
def unit_price(product, specification=None) -> int:
    """Rule price for the chosen specification, else the product's base price."""
    try:
        key = _rule_key(product, specification)
        if key is not None and key in PRICING_RULES:
            return PRICING_RULES[key]
    except Exception:
        logger.warning("Unit price lookup failed for %s", getattr(product, "id", product), exc_info=True)
    return product.base_price


def _clamp_quantity(quantity) -> int:
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        return 0
    return max(0, quantity)


def total_price(product, specification, total_quantity, teacher_campaign=False) -> PriceBreakdown:
    """
    Unit price x quantity, minus one unit when the teacher campaign is on.

    The campaign waives exactly one unit per order, whatever the quantity.
    The final price never goes below zero.
    """
    quantity = _clamp_quantity(total_quantity)
    try:
        unit = unit_price(product, specification)
        subtotal = unit * quantity
        discount = unit if teacher_campaign else 0
        return PriceBreakdown(
            unit_price=unit,
            subtotal=subtotal,
            discount=discount,
            final_price=max(0, subtotal - discount),
        )
    except Exception:
        logger.warning("Total price failed for %s, using base price", product.id, exc_info=True)
        subtotal = product.base_price * quantity
        return PriceBreakdown(
            unit_price=product.base_price,
            subtotal=subtotal,
            discount=0,
            final_price=subtotal,
        )


# ----------------------------
# COUPONS
# ----------------------------
def normalize_coupon_code(code) -> str:
    if not isinstance(code, str):
        return ""
    return code.strip().upper()


def validate_coupon(code):
    """Return (is_valid, percent) for a coupon code, case-insensitive."""
    percent = COUPON_CODES.get(normalize_coupon_code(code))
    if percent is None:
        return False, 0
    return True, percent


def coupon_discount(total, percent) -> int:
    """floor(total * percent / 100), in whole yen."""
    total = max(0, int(total))
    return total * int(percent) // 100
