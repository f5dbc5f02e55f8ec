import pytest

from models import ProductGroup, SIZE_ORDER
from product_catalogs import (
    ALL_PRODUCTS, PRODUCTS, build_product, get_product, products_in_category
)


def test_every_product_has_full_variant_grid():
    for p in PRODUCTS:
        cells = {(v.color, v.size) for v in p.variants}
        assert len(cells) == len(p.variants)
        assert cells == {(c, s) for c in p.colors for s in p.sizes}


def test_sizes_are_in_canonical_order():
    for p in PRODUCTS:
        assert list(p.sizes) == sorted(p.sizes, key=SIZE_ORDER.index)


def test_product_group_follows_category():
    assert get_product("tshirt-basic").product_group is ProductGroup.CUSTOM
    assert get_product("polo-pocket").product_group is ProductGroup.CUSTOM
    assert get_product("soccer-pro").product_group is ProductGroup.UNIFORM
    assert get_product("basket-mesh").product_group is ProductGroup.UNIFORM
    assert get_product("baseball-team").product_group is ProductGroup.UNIFORM
    assert get_product("volleyball-light").product_group is ProductGroup.UNIFORM


def test_stock_overrides_and_default(tshirt):
    assert tshirt.stock_of("ブラック", "XXL") == 0
    assert tshirt.stock_of("レッド", "XS") == 3
    assert tshirt.stock_of("ホワイト", "M") == 20


def test_stock_of_missing_variant_is_zero(tshirt):
    assert tshirt.stock_of("ゴールド", "M") == 0
    assert tshirt.stock_of("ホワイト", "XXXL") == 0
    assert tshirt.stock_of(None, None) == 0
    assert tshirt.stock_of(["ホワイト"], "M") == 0


def test_price_alias_matches_base_price():
    for p in PRODUCTS:
        assert p.price == p.base_price


def test_get_product_unknown_id():
    assert get_product("no-such-shirt") is None
    assert "tshirt-basic" in ALL_PRODUCTS


def test_products_in_category():
    polos = products_in_category("polo")
    assert [p.id for p in polos] == ["polo-basic", "polo-pocket"]
    assert len(products_in_category("all")) == len(PRODUCTS)
    assert len(products_in_category(None)) == len(PRODUCTS)
    # unknown tab falls back to everything
    assert len(products_in_category("hockey")) == len(PRODUCTS)


def _item(**overrides):
    item = {
        "id": "x",
        "name": "X",
        "price": 1000,
        "category": "tshirt",
        "colors": ["ホワイト"],
        "sizes": ["L", "S"],
    }
    item.update(overrides)
    return item


def test_build_product_sorts_sizes():
    p = build_product(_item())
    assert p.sizes == ("S", "L")
    assert len(p.variants) == 2


@pytest.mark.parametrize("overrides", [
    {"colors": ["ホワイト", "ホワイト"]},
    {"sizes": ["M", "M"]},
    {"sizes": ["M", "XXXL"]},
    {"category": "hockey"},
    {"stock": {"ホワイト-S": -1}},
    {"stock": {"ブラック-S": 5}},
])
def test_build_product_rejects_bad_data(overrides):
    with pytest.raises(ValueError):
        build_product(_item(**overrides))
