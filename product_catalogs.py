"""
Static product catalog.
Loaded once at import; nothing in the app mutates it.
Every product gets the full colour x size variant grid.
"""

from models import SIZE_ORDER, Product, Variant, group_for_category

# ======================================================
# 1. CATEGORY TABS (listing page, in display order)
# ======================================================

CATEGORY_TABS = [
    ("all", "すべて"),
    ("tshirt", "Tシャツ"),
    ("polo", "ポロシャツ"),
    ("soccer", "サッカー"),
    ("basket", "バスケ"),
    ("baseball", "野球"),
    ("volleyball", "バレー"),
]

# ======================================================
# 2. SIZE CHART (cm)
# ======================================================

SIZE_CHART = {
    "XS": {"chest": "44-48", "length": "60", "shoulder": "40"},
    "S": {"chest": "48-52", "length": "63", "shoulder": "42"},
    "M": {"chest": "52-56", "length": "66", "shoulder": "44"},
    "L": {"chest": "56-60", "length": "69", "shoulder": "46"},
    "XL": {"chest": "60-64", "length": "72", "shoulder": "48"},
    "XXL": {"chest": "64-68", "length": "75", "shoulder": "50"},
}

COLOR_SWATCHES = {
    "ホワイト": "#FFFFFF",
    "ブラック": "#000000",
    "ネイビー": "#1F2937",
    "レッド": "#DC2626",
    "ブルー": "#2563EB",
}
DEFAULT_SWATCH = "#E5E7EB"

# ======================================================
# 3. METADATA PROFILES
# ======================================================

TSHIRT = dict(
    category="tshirt",
    image="/static/images/tshirt.svg",
    colors=["ホワイト", "ブラック", "ネイビー", "レッド", "ブルー"],
    sizes=["XS", "S", "M", "L", "XL", "XXL"],
)

POLO = dict(
    category="polo",
    image="/static/images/polo.svg",
    colors=["ホワイト", "ブラック", "ネイビー"],
    sizes=["S", "M", "L", "XL", "XXL"],
)

SOCCER = dict(
    category="soccer",
    image="/static/images/soccer.svg",
    colors=["ホワイト", "ネイビー", "レッド", "ブルー"],
    sizes=["XS", "S", "M", "L", "XL"],
)

BASKET = dict(
    category="basket",
    image="/static/images/basket.svg",
    colors=["ホワイト", "ブラック", "レッド"],
    sizes=["S", "M", "L", "XL", "XXL"],
)

BASEBALL = dict(
    category="baseball",
    image="/static/images/baseball.svg",
    colors=["ホワイト", "ネイビー"],
    sizes=["S", "M", "L", "XL"],
)

VOLLEYBALL = dict(
    category="volleyball",
    image="/static/images/volleyball.svg",
    colors=["ホワイト", "ブルー", "レッド"],
    sizes=["XS", "S", "M", "L", "XL"],
)

DEFAULT_STOCK = 20

# ======================================================
# 4. PRODUCTS
# "stock" overrides individual cells, keyed "<color>-<size>".
# ======================================================

PRODUCT_DATA = [
    # Tシャツ系
    {
        "id": "tshirt-basic",
        "name": "Tシャツ（ベーシック）",
        "price": 980,
        "description": "クラスTの定番",
        "stock": {"ブラック-XXL": 0, "レッド-XS": 3},
        **TSHIRT,
    },
    {
        "id": "tshirt-dry",
        "name": "Tシャツ（ドライ）",
        "price": 1180,
        "description": "速乾・軽量で快適",
        "stock": {"ブルー-XXL": 0},
        **TSHIRT,
    },
    {
        "id": "tshirt-long",
        "name": "Tシャツ（ロング）",
        "price": 1280,
        "description": "肌寒い時期に最適",
        **TSHIRT,
    },

    # ポロシャツ系
    {
        "id": "polo-basic",
        "name": "ポロシャツ（ベーシック）",
        "price": 1480,
        "description": "きれいめで涼しい",
        "stock": {"ネイビー-XXL": 2},
        **POLO,
    },
    {
        "id": "polo-pocket",
        "name": "ポロシャツ（ポケット付）",
        "price": 1580,
        "description": "ちょっと便利な胸ポケット",
        **POLO,
    },

    # サッカー系
    {
        "id": "soccer-pro",
        "name": "サッカーユニフォーム（PRO）",
        "price": 1980,
        "description": "試合向け高機能モデル",
        **SOCCER,
    },
    {
        "id": "soccer-kids",
        "name": "サッカーユニフォーム（KIDS）",
        "price": 1680,
        "description": "ジュニア向けサイズ",
        "stock": {"レッド-XL": 0, "ブルー-XL": 0},
        **SOCCER,
    },

    # バスケ系
    {
        "id": "basket-pro",
        "name": "バスケユニフォーム（PRO）",
        "price": 1980,
        "description": "動きやすい軽量モデル",
        **BASKET,
    },
    {
        "id": "basket-mesh",
        "name": "バスケユニフォーム（メッシュ）",
        "price": 1880,
        "description": "通気性に優れた生地",
        **BASKET,
    },

    # 野球・バレー
    {
        "id": "baseball-team",
        "name": "野球ユニフォーム（チーム）",
        "price": 2280,
        "description": "ボタン前開きの定番シャツ",
        **BASEBALL,
    },
    {
        "id": "volleyball-light",
        "name": "バレーユニフォーム（ライト）",
        "price": 1780,
        "description": "軽くて伸びる素材",
        **VOLLEYBALL,
    },
]


# ======================================================
# 5. BUILDERS
# ======================================================

def _ordered_sizes(product_id, sizes):
    unknown = [s for s in sizes if s not in SIZE_ORDER]
    if unknown:
        raise ValueError(f"{product_id}: unknown sizes {unknown}")
    return tuple(sorted(sizes, key=SIZE_ORDER.index))


def build_product(item) -> Product:
    """
    Turn one PRODUCT_DATA dict into a Product with the full variant grid.

    Raises ValueError for data that would break the grid (duplicate colours
    or sizes, negative stock, overrides pointing at a missing cell).
    """
    product_id = item["id"]
    group_for_category(item["category"])

    colors = list(item["colors"])
    if len(set(colors)) != len(colors):
        raise ValueError(f"{product_id}: duplicate colors")
    sizes = list(item["sizes"])
    if len(set(sizes)) != len(sizes):
        raise ValueError(f"{product_id}: duplicate sizes")
    sizes = _ordered_sizes(product_id, sizes)

    overrides = dict(item.get("stock") or {})
    default_stock = item.get("default_stock", DEFAULT_STOCK)

    variants = []
    for color in colors:
        for size in sizes:
            stock = overrides.pop(f"{color}-{size}", default_stock)
            if stock < 0:
                raise ValueError(f"{product_id}: negative stock for {color}-{size}")
            variants.append(Variant(color=color, size=size, stock=stock))

    if overrides:
        raise ValueError(f"{product_id}: stock for unknown variants {sorted(overrides)}")

    return Product(
        id=product_id,
        name=item["name"],
        base_price=int(item["price"]),
        category=item["category"],
        colors=tuple(colors),
        sizes=sizes,
        variants=tuple(variants),
        image=item.get("image", ""),
        description=item.get("description", ""),
    )


# ======================================================
# 6. REGISTRIES
# ======================================================

PRODUCTS = [build_product(item) for item in PRODUCT_DATA]

ALL_PRODUCTS = {p.id: p for p in PRODUCTS}

if len(ALL_PRODUCTS) != len(PRODUCTS):
    raise ValueError("Duplicate product ids in PRODUCT_DATA")


def get_product(product_id):
    return ALL_PRODUCTS.get(product_id)


def products_in_category(category=None):
    """Products for a listing tab; "all", empty or unknown keys list everything."""
    if not category or category == "all":
        return list(PRODUCTS)
    if category not in {key for key, _ in CATEGORY_TABS}:
        return list(PRODUCTS)
    return [p for p in PRODUCTS if p.category == category]


def color_swatch(color):
    return COLOR_SWATCHES.get(color, DEFAULT_SWATCH)
