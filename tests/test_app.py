import pytest

import address_lookup
from address_lookup import AddressLookupError
from checkout import SESSION_KEY, CheckoutState, CheckoutStatus


def post_event(client, product_id, **data):
    return client.post(f"/items/{product_id}", data=data)


def pick_shirts(client, product_id="tshirt-basic"):
    post_event(client, product_id, action="color", color="ホワイト")
    post_event(client, product_id, action="specification", printLocation="both")
    post_event(client, product_id, action="teacher", teacher_discount="on")
    post_event(client, product_id, action="quantity", **{"qty-M": "3", "qty-L": "2"})


def start_checkout(client):
    pick_shirts(client)
    return post_event(client, "tshirt-basic", action="checkout")


def fill_order_form(client, **overrides):
    form = {
        "name": "山田 太郎",
        "email": "taro@example.com",
        "tel": "090-1234-5678",
        "postal_code": "150-0002",
        "address": "東京都渋谷区渋谷3-27-1",
    }
    form.update(overrides)
    return client.post("/order", data=form)


def checkout_state(client):
    with client.session_transaction() as sess:
        return CheckoutState.load(sess)


# ----------------------------
# catalog pages
# ----------------------------
def test_home_lists_products(client):
    resp = client.get("/")
    assert resp.status_code == 200
    html = resp.get_data(as_text=True)
    assert "Tシャツ（ベーシック）" in html
    assert "¥1,980" in html


def test_home_category_filter(client):
    html = client.get("/?cat=polo").get_data(as_text=True)
    assert "ポロシャツ（ベーシック）" in html
    assert "Tシャツ（ベーシック）" not in html


def test_product_page(client):
    resp = client.get("/items/tshirt-basic")
    assert resp.status_code == 200
    assert "カラー選択" in resp.get_data(as_text=True)


def test_unknown_product_is_404(client):
    resp = client.get("/items/nope")
    assert resp.status_code == 404
    assert "ページが見つかりませんでした" in resp.get_data(as_text=True)


def test_info_pages(client):
    for path in ("/tokushoho", "/privacy", "/support", "/terms"):
        assert client.get(path).status_code == 200


# ----------------------------
# selection events
# ----------------------------
def test_selection_events_update_summary(client):
    pick_shirts(client)
    html = client.get("/items/tshirt-basic").get_data(as_text=True)
    # 1800 x 5 = 9000, minus one unit
    assert "¥9,000" in html
    assert "¥7,200" in html


def test_selection_event_over_xhr_returns_json(client):
    post_event(client, "tshirt-basic", action="color", color="ホワイト")
    resp = client.post(
        "/items/tshirt-basic",
        data={"action": "quantity", "size": "M", "quantity": "4"},
        headers={"X-Requested-With": "XMLHttpRequest"},
    )
    data = resp.get_json()
    assert data["state"] == "ready_for_checkout"
    assert data["total_quantity"] == 4
    assert data["final_price"] == 3920


def test_color_switch_clears_quantities(client):
    pick_shirts(client)
    post_event(client, "tshirt-basic", action="color", color="ブラック")
    with client.session_transaction() as sess:
        saved = sess["selections"]["tshirt-basic"]
    assert saved["color"] == "ブラック"
    assert saved["quantities"] == []


def test_checkout_requires_quantities(client):
    post_event(client, "tshirt-basic", action="color", color="ホワイト")
    resp = post_event(client, "tshirt-basic", action="checkout")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/items/tshirt-basic")
    assert checkout_state(client).summary is None


# ----------------------------
# quote API
# ----------------------------
def test_quote_api(client):
    resp = client.post("/api/quote", json={
        "product_id": "soccer-pro",
        "specification": {"backPrint": "nameNumber"},
        "quantities": [
            {"color": "ホワイト", "size": "M", "quantity": 3},
            {"color": "レッド", "size": "L", "quantity": "2"},
            {"color": "ホワイト", "size": "XXL", "quantity": 9},
        ],
        "teacher_discount": True,
    })
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["unit_price"] == 1800
    assert data["total_quantity"] == 5
    assert data["subtotal"] == 9000
    assert data["final_price"] == 7200


def test_quote_api_unknown_product(client):
    resp = client.post("/api/quote", json={"product_id": ["x"]})
    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False


def test_quote_api_reports_over_stock(client):
    resp = client.post("/api/quote", json={
        "product_id": "tshirt-basic",
        "quantities": [{"color": "レッド", "size": "XS", "quantity": 5}],
    })
    assert resp.get_json()["over_stock"] == [
        {"color": "レッド", "size": "XS", "quantity": 5, "stock": 3}
    ]


def test_quote_api_drops_overflowing_quantity(client):
    body = (
        '{"product_id": "tshirt-basic", '
        '"quantities": [{"color": "ホワイト", "size": "M", "quantity": 1e400}]}'
    )
    resp = client.post("/api/quote", data=body, content_type="application/json")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["quantities"] == []
    assert data["total_quantity"] == 0
    assert data["final_price"] == 0


@pytest.mark.parametrize("quantities", [5, "M", {"color": "ホワイト"}, None])
def test_quote_api_ignores_malformed_quantities(client, quantities):
    resp = client.post("/api/quote", json={"product_id": "tshirt-basic", "quantities": quantities})
    assert resp.status_code == 200
    assert resp.get_json()["total_quantity"] == 0


# ----------------------------
# checkout flow
# ----------------------------
def test_full_checkout_flow(client):
    resp = start_checkout(client)
    assert resp.headers["Location"].endswith("/order")
    state = checkout_state(client)
    assert state.summary.final_price == 7200

    resp = client.post("/order/coupon", data={"coupon_code": "discount5"})
    assert resp.status_code == 302
    assert checkout_state(client).summary.checkout_total == 6840

    resp = fill_order_form(client)
    assert resp.headers["Location"].endswith("/payment")

    resp = client.post("/payment", data={"method": "bank"})
    assert resp.headers["Location"].endswith("/payment/confirm")

    html = client.get("/payment/confirm").get_data(as_text=True)
    assert "ミニマル銀行" in html
    assert "¥6,840" in html

    resp = client.post("/payment/confirm")
    assert resp.headers["Location"].endswith("/complete")
    assert checkout_state(client).status is CheckoutStatus.COMPLETE

    html = client.get("/complete").get_data(as_text=True)
    assert "ご注文ありがとうございました" in html
    assert "¥6,840" in html

    with client.session_transaction() as sess:
        assert SESSION_KEY not in sess
        assert "selections" not in sess

    # refreshing the thank-you page goes back to the catalog
    assert client.get("/complete").status_code == 302


def test_convenience_payment_shows_number(client, app):
    start_checkout(client)
    fill_order_form(client)
    client.post("/payment", data={"method": "convenience"})
    html = client.get("/payment/confirm").get_data(as_text=True)
    assert app.config["CONVENIENCE_PAYMENT_NUMBER"] in html


def test_second_coupon_is_rejected(client):
    start_checkout(client)
    client.post("/order/coupon", data={"coupon_code": "DISCOUNT5"})
    client.post("/order/coupon", data={"coupon_code": "DISCOUNT5"})
    html = client.get("/order").get_data(as_text=True)
    assert "クーポンは既に適用されています。" in html
    assert checkout_state(client).summary.discount_amount == 360


def test_wrong_coupon_is_rejected(client):
    start_checkout(client)
    client.post("/order/coupon", data={"coupon_code": "WRONG"})
    html = client.get("/order").get_data(as_text=True)
    assert "クーポンコードが正しくありません。" in html
    assert checkout_state(client).summary.coupon_applied is False


def test_invalid_order_form_is_redisplayed(client):
    start_checkout(client)
    resp = fill_order_form(client, email="not-an-email")
    assert resp.status_code == 400
    assert "メールアドレスの形式が正しくありません。" in resp.get_data(as_text=True)
    assert checkout_state(client).customer is None


def test_order_without_checkout_state_redirects_home(client):
    resp = client.get("/order")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/home")


def test_order_referencing_unknown_product_redirects_home(client):
    start_checkout(client)
    with client.session_transaction() as sess:
        sess[SESSION_KEY]["summary"]["product_id"] = "discontinued"
        sess.modified = True
    resp = client.get("/payment")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/home")
    assert checkout_state(client).summary is None


def test_payment_before_order_form_goes_back(client):
    start_checkout(client)
    resp = client.get("/payment")
    assert resp.headers["Location"].endswith("/order")


def test_confirm_before_choosing_method_goes_back(client):
    start_checkout(client)
    fill_order_form(client)
    resp = client.post("/payment/confirm")
    assert resp.headers["Location"].endswith("/payment")
    assert checkout_state(client).status is CheckoutStatus.PAYMENT


# ----------------------------
# address lookup
# ----------------------------
def test_address_lookup_route(client, monkeypatch):
    monkeypatch.setattr("app.lookup_address", lambda code, url, timeout: "東京都渋谷区渋谷")
    data = client.get("/order/address?postal_code=1500002").get_json()
    assert data == {"ok": True, "address": "東京都渋谷区渋谷"}


def test_address_lookup_route_not_found(client, monkeypatch):
    def not_found(code, url, timeout):
        raise AddressLookupError("not found")

    monkeypatch.setattr("app.lookup_address", not_found)
    resp = client.get("/order/address?postal_code=0000000")
    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False


def test_address_lookup_route_bad_code_skips_network(client, monkeypatch):
    def no_network(*args, **kwargs):
        raise AssertionError("network called")

    monkeypatch.setattr(address_lookup.requests, "get", no_network)
    resp = client.get("/order/address?postal_code=abc")
    assert resp.status_code == 404
