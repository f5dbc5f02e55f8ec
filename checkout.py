"""
Checkout: the order summary handed over from the product page, the order
form, coupons, payment method choice and the demo payment.

The summary is an immutable value. Each step builds a new one and stores it
in an explicit CheckoutState, which the web layer saves into the shopper's
session between requests.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from pricing import coupon_discount, normalize_coupon_code, validate_coupon
from product_catalogs import get_product

logger = logging.getLogger(__name__)

SESSION_KEY = "checkout"


# ----------------------------
# ERRORS
# ----------------------------
class CheckoutError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class OrderNotFound(CheckoutError):
    def __init__(self, message="ご注文情報が見つかりません。商品選択からやり直してください。"):
        super().__init__("order_not_found", message)


class CouponRejected(CheckoutError):
    def __init__(self, message="クーポンコードが正しくありません。"):
        super().__init__("coupon_rejected", message)


class CouponAlreadyApplied(CheckoutError):
    def __init__(self, message="クーポンは既に適用されています。"):
        super().__init__("coupon_already_applied", message)


class PaymentNotReady(CheckoutError):
    def __init__(self, message="お支払い手続きを開始できません。"):
        super().__init__("payment_not_ready", message)


class InvalidOrderForm(CheckoutError):
    def __init__(self, errors: Dict[str, str]) -> None:
        super().__init__("invalid_order_form", "入力内容をご確認ください。")
        self.errors = errors


# ----------------------------
# ORDER SUMMARY
# ----------------------------
def new_order_id() -> str:
    return uuid.uuid4().hex[:10].upper()


@dataclass(frozen=True)
class OrderSummary:
    order_id: str
    product_id: str
    product_name: str
    color: Optional[str]
    specification: Dict[str, str]
    quantities: Tuple[Tuple[str, str, int], ...]
    total_quantity: int
    unit_price: int
    subtotal: int
    teacher_discount: bool
    campaign_discount: int
    final_price: int
    coupon_code: Optional[str] = None
    coupon_applied: bool = False
    discount_amount: int = 0

    @classmethod
    def from_selection(cls, selection, order_id=None) -> "OrderSummary":
        breakdown = selection.breakdown
        return cls(
            order_id=order_id or new_order_id(),
            product_id=selection.product.id,
            product_name=selection.product.name,
            color=selection.selected_color,
            specification=selection.specification.to_dict(),
            quantities=tuple(selection.lines()),
            total_quantity=selection.total_quantity,
            unit_price=breakdown.unit_price,
            subtotal=breakdown.subtotal,
            teacher_discount=selection.teacher_discount,
            campaign_discount=breakdown.discount,
            final_price=breakdown.final_price,
        )

    @property
    def checkout_total(self) -> int:
        """Amount to pay: final price less the coupon, never negative."""
        return max(0, self.final_price - self.discount_amount)

    def to_dict(self):
        return {
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "color": self.color,
            "specification": dict(self.specification),
            "quantities": [list(line) for line in self.quantities],
            "total_quantity": self.total_quantity,
            "unit_price": self.unit_price,
            "subtotal": self.subtotal,
            "teacher_discount": self.teacher_discount,
            "campaign_discount": self.campaign_discount,
            "final_price": self.final_price,
            "coupon_code": self.coupon_code,
            "coupon_applied": self.coupon_applied,
            "discount_amount": self.discount_amount,
        }

    @classmethod
    def from_dict(cls, data) -> "OrderSummary":
        """Inverse of to_dict(). Raises OrderNotFound for a damaged payload."""
        try:
            return cls(
                order_id=str(data["order_id"]),
                product_id=str(data["product_id"]),
                product_name=str(data.get("product_name", "")),
                color=data.get("color"),
                specification=dict(data.get("specification") or {}),
                quantities=tuple(
                    (str(c), str(s), int(q)) for c, s, q in data.get("quantities") or []
                ),
                total_quantity=int(data["total_quantity"]),
                unit_price=int(data["unit_price"]),
                subtotal=int(data["subtotal"]),
                teacher_discount=bool(data.get("teacher_discount", False)),
                campaign_discount=int(data.get("campaign_discount", 0)),
                final_price=int(data["final_price"]),
                coupon_code=data.get("coupon_code"),
                coupon_applied=bool(data.get("coupon_applied", False)),
                discount_amount=int(data.get("discount_amount", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding damaged order summary: %s", e)
            raise OrderNotFound()


def apply_coupon(summary: OrderSummary, code) -> OrderSummary:
    """
    Apply a coupon once. The discount is computed from the final price at
    this moment and stored; it is not recomputed later.
    """
    if summary.coupon_applied:
        raise CouponAlreadyApplied()
    valid, percent = validate_coupon(code)
    if not valid:
        logger.info("Coupon rejected for order %s", summary.order_id)
        raise CouponRejected()
    amount = coupon_discount(summary.final_price, percent)
    logger.info("Coupon %s%% applied to order %s: -%d", percent, summary.order_id, amount)
    return replace(
        summary,
        coupon_code=normalize_coupon_code(code),
        coupon_applied=True,
        discount_amount=amount,
    )


def resolve_product(summary: OrderSummary):
    product = get_product(summary.product_id)
    if product is None:
        logger.warning("Order %s references unknown product %s", summary.order_id, summary.product_id)
        raise OrderNotFound()
    return product


# ----------------------------
# ORDER FORM
# ----------------------------
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
POSTAL_RE = re.compile(r"^\d{3}-?\d{4}$")


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    email: str
    tel: str
    address: str
    postal_code: str = ""

    def to_dict(self):
        return {
            "name": self.name,
            "email": self.email,
            "tel": self.tel,
            "address": self.address,
            "postal_code": self.postal_code,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data.get("name", ""),
            email=data.get("email", ""),
            tel=data.get("tel", ""),
            address=data.get("address", ""),
            postal_code=data.get("postal_code", ""),
        )


def validate_order_form(form) -> CustomerInfo:
    """Validate the order form fields; raises InvalidOrderForm with per-field messages."""
    values = {k: (form.get(k) or "").strip() for k in ("name", "email", "tel", "address", "postal_code")}
    errors = {}

    if not values["name"]:
        errors["name"] = "お名前を入力してください。"

    if not values["email"]:
        errors["email"] = "メールアドレスを入力してください。"
    elif not EMAIL_RE.match(values["email"]):
        errors["email"] = "メールアドレスの形式が正しくありません。"

    tel_digits = values["tel"].replace("-", "")
    if not values["tel"]:
        errors["tel"] = "電話番号を入力してください。"
    elif not tel_digits.isdigit() or not 10 <= len(tel_digits) <= 11:
        errors["tel"] = "電話番号は10〜11桁の数字で入力してください。"

    if values["postal_code"] and not POSTAL_RE.match(values["postal_code"]):
        errors["postal_code"] = "郵便番号は7桁で入力してください。"

    if not values["address"]:
        errors["address"] = "配送先住所を入力してください。"

    if errors:
        raise InvalidOrderForm(errors)
    return CustomerInfo(**values)


# ----------------------------
# PAYMENT
# ----------------------------
class PaymentMethod(str, Enum):
    CONVENIENCE = "convenience"
    BANK = "bank"

    @property
    def label(self):
        return PAYMENT_METHOD_LABELS[self]


PAYMENT_METHOD_LABELS = {
    PaymentMethod.CONVENIENCE: "コンビニ決済",
    PaymentMethod.BANK: "銀行振込",
}


def parse_payment_method(value, default=PaymentMethod.CONVENIENCE) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        return default


class CheckoutStatus(str, Enum):
    FORM = "form"
    PAYMENT = "payment"
    CONFIRM = "confirm"
    COMPLETE = "complete"


@dataclass(frozen=True)
class PaymentResult:
    order_id: str
    payment_method: PaymentMethod
    amount: int
    paid_at: str


@dataclass
class CheckoutState:
    """One shopper's checkout, saved to and loaded from a session mapping."""

    summary: Optional[OrderSummary] = None
    customer: Optional[CustomerInfo] = None
    payment_method: Optional[PaymentMethod] = None
    status: CheckoutStatus = CheckoutStatus.FORM
    receipt: Optional[PaymentResult] = field(default=None)

    @classmethod
    def start(cls, summary: OrderSummary) -> "CheckoutState":
        logger.info(
            "Checkout started for order %s (%s x%d, %d yen)",
            summary.order_id, summary.product_id, summary.total_quantity, summary.final_price,
        )
        return cls(summary=summary)

    def require_summary(self) -> OrderSummary:
        if self.summary is None:
            raise OrderNotFound()
        resolve_product(self.summary)
        return self.summary

    def apply_coupon(self, code):
        self.summary = apply_coupon(self.require_summary(), code)

    def set_customer(self, customer: CustomerInfo):
        self.require_summary()
        self.customer = customer
        self.status = CheckoutStatus.PAYMENT

    def choose_payment(self, method: PaymentMethod):
        self.require_summary()
        if self.customer is None:
            raise PaymentNotReady("ご注文者情報を入力してください。")
        self.payment_method = method
        self.status = CheckoutStatus.CONFIRM

    # ----------------------------
    # SESSION
    # ----------------------------
    def to_dict(self):
        return {
            "summary": self.summary.to_dict() if self.summary else None,
            "customer": self.customer.to_dict() if self.customer else None,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "status": self.status.value,
            "receipt": {
                "order_id": self.receipt.order_id,
                "payment_method": self.receipt.payment_method.value,
                "amount": self.receipt.amount,
                "paid_at": self.receipt.paid_at,
            } if self.receipt else None,
        }

    @classmethod
    def load(cls, store) -> "CheckoutState":
        data = store.get(SESSION_KEY)
        if not isinstance(data, dict):
            return cls()
        try:
            summary = OrderSummary.from_dict(data["summary"]) if data.get("summary") else None
        except OrderNotFound:
            return cls()
        customer = CustomerInfo.from_dict(data["customer"]) if data.get("customer") else None
        try:
            status = CheckoutStatus(data.get("status", CheckoutStatus.FORM.value))
        except ValueError:
            status = CheckoutStatus.FORM

        receipt = None
        if data.get("receipt"):
            raw = data["receipt"]
            try:
                receipt = PaymentResult(
                    order_id=raw["order_id"],
                    payment_method=PaymentMethod(raw["payment_method"]),
                    amount=int(raw["amount"]),
                    paid_at=raw["paid_at"],
                )
            except (KeyError, TypeError, ValueError):
                logger.warning("Discarding damaged payment receipt in session")

        return cls(
            summary=summary,
            customer=customer,
            payment_method=parse_payment_method(data.get("payment_method"), default=None),
            status=status,
            receipt=receipt,
        )

    def save(self, store):
        store[SESSION_KEY] = self.to_dict()

    @staticmethod
    def clear(store):
        store.pop(SESSION_KEY, None)


def simulate_payment(state: CheckoutState, delay=0.0, sleep=time.sleep) -> PaymentResult:
    """
    Demo payment: wait a fixed delay, then succeed.

    No provider is called, nothing can fail after the checks below, and
    there is no timeout or retry.
    """
    summary = state.require_summary()
    if state.status is CheckoutStatus.COMPLETE:
        raise PaymentNotReady("このご注文はお支払い済みです。")
    if state.customer is None or state.payment_method is None:
        raise PaymentNotReady()

    logger.info(
        "Simulating %s payment for order %s (%d yen)",
        state.payment_method.value, summary.order_id, summary.checkout_total,
    )
    if delay and delay > 0:
        sleep(delay)

    result = PaymentResult(
        order_id=summary.order_id,
        payment_method=state.payment_method,
        amount=summary.checkout_total,
        paid_at=datetime.now().isoformat(timespec="seconds"),
    )
    state.receipt = result
    state.status = CheckoutStatus.COMPLETE
    logger.info("Order %s paid", summary.order_id)
    return result
