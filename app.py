import logging
import os
from logging.config import dictConfig

from dotenv import load_dotenv
from flask import (
    Flask, render_template, request, redirect,
    url_for, flash, session, jsonify, abort
)

from address_lookup import DEFAULT_LOOKUP_URL, AddressLookupError, lookup_address
from checkout import (
    CheckoutError, CheckoutState, CheckoutStatus, InvalidOrderForm,
    OrderNotFound, OrderSummary, PaymentMethod, PAYMENT_METHOD_LABELS,
    parse_payment_method, simulate_payment, validate_order_form,
)
from models import BackPrint, Material, PrintLocation, ProductGroup
from product_catalogs import (
    CATEGORY_TABS, SIZE_CHART, color_swatch, get_product, products_in_category
)
from selection import Selection

load_dotenv()

# ----------------------------
# LOGGING
# ----------------------------
dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("LOG_LEVEL", "INFO"),
    },
})

logger = logging.getLogger(__name__)

app = Flask(__name__)

# ----------------------------
# CONFIG
# ----------------------------
app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "change-this-secret-key")
app.config["SHOP_NAME"] = os.getenv("SHOP_NAME", "Cla-T-ees")
app.config["SUPPORT_EMAIL"] = os.getenv("SUPPORT_EMAIL", "contact@la-muse.org")

# Demo payment: resolves after a fixed delay, always succeeds
app.config["PAYMENT_SIMULATION_DELAY"] = float(os.getenv("PAYMENT_SIMULATION_DELAY", "1.5"))
app.config["CONVENIENCE_PAYMENT_NUMBER"] = os.getenv("CONVENIENCE_PAYMENT_NUMBER", "1234-5678-9012")
app.config["BANK_ACCOUNT"] = {
    "bank": "ミニマル銀行 本店営業部",
    "type": "普通",
    "number": "1234567",
    "holder": "カ）クラティーズ",
}

# Postal code -> address
app.config["ADDRESS_LOOKUP_URL"] = os.getenv("ADDRESS_LOOKUP_URL", DEFAULT_LOOKUP_URL)
app.config["ADDRESS_LOOKUP_TIMEOUT"] = float(os.getenv("ADDRESS_LOOKUP_TIMEOUT", "5"))

SELECTIONS_KEY = "selections"

# Specification choices shown on the product page: (value, label, price hint)
SPEC_CHOICES = {
    "material": [
        (Material.POLYESTER.value, "ポリエステル", None),
        (Material.COTTON.value, "コットン", None),
    ],
    "printLocation": [
        (PrintLocation.FRONT.value, "前面のみ", 1500),
        (PrintLocation.BOTH.value, "両面印刷", 1800),
    ],
    "backPrint": [
        (BackPrint.NONE.value, "なし", 1400),
        (BackPrint.NAME_NUMBER.value, "名前・背番号あり", 1800),
    ],
}
SPEC_LABELS = {
    "material": "素材",
    "printLocation": "プリント箇所",
    "backPrint": "背面加工",
}
SPEC_VALUE_LABELS = {
    value: label for choices in SPEC_CHOICES.values() for value, label, _ in choices
}


# ----------------------------
# TEMPLATE HELPERS
# ----------------------------
@app.template_filter("yen")
def yen(value):
    try:
        return f"¥{int(value):,}"
    except (TypeError, ValueError):
        return "¥0"


@app.context_processor
def inject_shop_info():
    """
    Inject shop details and the checkout badge into all templates.
    cart_just_added is a one-time flag used for the badge animation.
    """
    state = CheckoutState.load(session)
    cart_quantity = 0
    if state.summary and state.status is not CheckoutStatus.COMPLETE:
        cart_quantity = state.summary.total_quantity

    # one-time flag – removed from session after first read
    cart_just_added = session.pop("cart_just_added", False)

    return dict(
        shop_name=app.config["SHOP_NAME"],
        support_email=app.config["SUPPORT_EMAIL"],
        category_tabs=CATEGORY_TABS,
        cart_quantity=int(cart_quantity),
        cart_just_added=bool(cart_just_added),
        spec_labels=SPEC_LABELS,
        spec_value_labels=SPEC_VALUE_LABELS,
    )


@app.errorhandler(404)
def not_found(e):
    return render_template("404.html"), 404


# ----------------------------
# SELECTION HELPERS
# ----------------------------
def load_selection(product):
    data = (session.get(SELECTIONS_KEY) or {}).get(product.id)
    return Selection.from_dict(product, data)


def save_selection(selection):
    selections = dict(session.get(SELECTIONS_KEY) or {})
    selections[selection.product.id] = selection.to_dict()
    session[SELECTIONS_KEY] = selections


def selection_payload(selection):
    return {
        "ok": True,
        "product_id": selection.product.id,
        "state": selection.state.value,
        "color": selection.selected_color,
        "specification": selection.specification.to_dict(),
        "quantities": [
            {"color": c, "size": s, "quantity": q} for c, s, q in selection.lines()
        ],
        "total_quantity": selection.total_quantity,
        "teacher_discount": selection.teacher_discount,
        "over_stock": [
            {"color": c, "size": s, "quantity": q, "stock": stock}
            for c, s, q, stock in selection.over_stock
        ],
        **selection.breakdown.to_dict(),
    }


def apply_selection_event(selection, form):
    """Apply one product-page event. Returns a redirect when leaving the page."""
    action = form.get("action", "")
    product = selection.product

    if action == "color":
        selection.select_color(form.get("color"))

    elif action == "size":
        selection.select_size(form.get("size"))

    elif action == "quantity":
        color = form.get("color") or selection.selected_color
        if form.get("size"):
            selection.set_quantity(color, form.get("size"), form.get("quantity"))
        else:
            # size grid: one qty-<size> input per size of the chosen colour
            for size in product.sizes:
                key = f"qty-{size}"
                if key in form:
                    selection.set_quantity(color, size, form.get(key))

    elif action == "specification":
        selection.update_specification({k: form.get(k) for k in SPEC_LABELS})

    elif action == "teacher":
        selection.set_teacher_discount(form.get("teacher_discount") in ("on", "true", "1"))

    elif action == "reset":
        selection.reset()

    elif action == "checkout":
        if not selection.is_ready:
            flash("サイズと数量を選択してください。", "error")
            return None
        state = CheckoutState.start(OrderSummary.from_selection(selection))
        state.save(session)
        session["cart_just_added"] = True
        return redirect(url_for("order"))

    else:
        logger.warning("Unknown selection action %r for %s", action, product.id)

    return None


def load_checkout_or_redirect():
    """(state, summary) for the current shopper, or (None, redirect) to the catalog."""
    state = CheckoutState.load(session)
    try:
        summary = state.require_summary()
    except OrderNotFound as e:
        CheckoutState.clear(session)
        flash(e.message, "error")
        return None, redirect(url_for("home"))
    return state, summary


# ----------------------------
# CATALOG PAGES
# ----------------------------
@app.route("/")
@app.route("/home")
def home():
    current = request.args.get("cat") or "all"
    products = products_in_category(current)
    return render_template("index.html", products=products, current_cat=current)


# Product detail endpoint (GET shows page, POST applies one selection event)
@app.route("/items/<product_id>", methods=["GET", "POST"])
def product_detail(product_id):
    product = get_product(product_id)
    if not product:
        abort(404)

    selection = load_selection(product)

    if request.method == "POST":
        resp = apply_selection_event(selection, request.form)
        save_selection(selection)
        if resp is not None:
            return resp
        if request.headers.get("X-Requested-With") == "XMLHttpRequest":
            return jsonify(selection_payload(selection))
        return redirect(url_for("product_detail", product_id=product.id))

    return render_template(
        "product_detail.html",
        product=product,
        selection=selection,
        spec=selection.specification.to_dict(),
        breakdown=selection.breakdown,
        over_stock={(c, s) for c, s, _, _ in selection.over_stock},
        is_custom=product.product_group is ProductGroup.CUSTOM,
        spec_choices=SPEC_CHOICES,
        size_chart=SIZE_CHART,
        color_swatch=color_swatch,
    )


@app.route("/api/quote", methods=["POST"])
def quote():
    """
    Price a selection without touching the session.

    JSON body: product_id, specification, quantities [{color, size, quantity}],
    teacher_discount.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    product_id = data.get("product_id")
    product = get_product(product_id) if isinstance(product_id, str) else None
    if not product:
        return jsonify({"ok": False, "error": "Product not found"}), 404

    selection = Selection(product)
    selection.set_specification(data.get("specification") or {})
    lines = data.get("quantities")
    if not isinstance(lines, list):
        lines = []
    for line in lines:
        if isinstance(line, dict):
            selection.set_quantity(line.get("color"), line.get("size"), line.get("quantity"))
    selection.set_teacher_discount(bool(data.get("teacher_discount")))
    return jsonify(selection_payload(selection))


# ----------------------------
# ORDER FORM
# ----------------------------
@app.route("/order", methods=["GET", "POST"])
def order():
    state, summary = load_checkout_or_redirect()
    if state is None:
        return summary

    if request.method == "POST":
        try:
            customer = validate_order_form(request.form)
        except InvalidOrderForm as e:
            flash(e.message, "error")
            return render_template(
                "order.html", summary=summary, form=request.form, errors=e.errors
            ), 400

        state.set_customer(customer)
        state.save(session)
        logger.info("Order %s: customer details saved", summary.order_id)
        return redirect(url_for("payment"))

    form = state.customer.to_dict() if state.customer else {}
    return render_template("order.html", summary=summary, form=form, errors={})


@app.route("/order/coupon", methods=["POST"])
def apply_coupon_code():
    state, summary = load_checkout_or_redirect()
    if state is None:
        return summary

    try:
        state.apply_coupon(request.form.get("coupon_code", ""))
    except CheckoutError as e:
        flash(e.message, "error")
        return redirect(url_for("order"))

    state.save(session)
    flash(f"クーポンを適用しました（-{yen(state.summary.discount_amount)}）", "success")
    return redirect(url_for("order"))


@app.route("/order/address")
def address_lookup():
    """Postal code -> address for the order form (called from JS)."""
    postal_code = request.args.get("postal_code", "")
    try:
        address = lookup_address(
            postal_code,
            url=app.config["ADDRESS_LOOKUP_URL"],
            timeout=app.config["ADDRESS_LOOKUP_TIMEOUT"],
        )
    except AddressLookupError:
        return jsonify({"ok": False, "error": "住所が見つかりませんでした。"}), 404
    return jsonify({"ok": True, "address": address})


# ----------------------------
# PAYMENT (DEMO)
# ----------------------------
@app.route("/payment", methods=["GET", "POST"])
def payment():
    state, summary = load_checkout_or_redirect()
    if state is None:
        return summary

    if state.customer is None:
        flash("ご注文者情報を入力してください。", "info")
        return redirect(url_for("order"))

    if request.method == "POST":
        method = parse_payment_method(request.form.get("method"))
        state.choose_payment(method)
        state.save(session)
        return redirect(url_for("payment_confirm"))

    return render_template(
        "payment.html",
        summary=summary,
        methods=PAYMENT_METHOD_LABELS,
        current=state.payment_method or PaymentMethod.CONVENIENCE,
    )


@app.route("/payment/confirm", methods=["GET", "POST"])
def payment_confirm():
    state, summary = load_checkout_or_redirect()
    if state is None:
        return summary

    if state.status is CheckoutStatus.COMPLETE:
        return redirect(url_for("complete"))

    if state.customer is None or state.payment_method is None:
        flash("お支払い方法を選択してください。", "info")
        return redirect(url_for("payment"))

    if request.method == "POST":
        try:
            simulate_payment(state, delay=app.config["PAYMENT_SIMULATION_DELAY"])
        except CheckoutError as e:
            flash(e.message, "error")
            return redirect(url_for("payment"))
        state.save(session)
        return redirect(url_for("complete"))

    return render_template(
        "payment_confirm.html",
        summary=summary,
        method=state.payment_method,
        convenience_number=app.config["CONVENIENCE_PAYMENT_NUMBER"],
        bank_account=app.config["BANK_ACCOUNT"],
    )


@app.route("/complete")
def complete():
    state = CheckoutState.load(session)
    if state.status is not CheckoutStatus.COMPLETE or state.receipt is None:
        return redirect(url_for("home"))

    # checkout is over: drop the order and every in-progress selection
    CheckoutState.clear(session)
    session.pop(SELECTIONS_KEY, None)
    return render_template("complete.html", receipt=state.receipt, summary=state.summary)


# ----------------------------
# INFO PAGES
# ----------------------------
@app.route("/tokushoho")
def tokushoho():
    return render_template("tokushoho.html")


@app.route("/privacy")
def privacy():
    return render_template("privacy.html")


@app.route("/support")
def support():
    return render_template("support.html")


@app.route("/terms")
def terms():
    return render_template("terms.html")


if __name__ == "__main__":
    app.run(debug=True)
