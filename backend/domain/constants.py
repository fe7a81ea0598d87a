"""
Domain constants used across services/routers.
"""
from datetime import timedelta

from domain.enums import PaymentGateway, RiskLevel

# ── Gateway callback parameter aliases (first present key wins) ─────
VNPAY_TXN_REF_KEYS = ("vnp_TxnRef", "TxnRef", "txnRef")
VNPAY_RESPONSE_CODE_KEYS = ("vnp_ResponseCode", "ResponseCode", "responseCode")

MOMO_ORDER_ID_KEYS = ("orderId", "OrderId")
MOMO_RESULT_CODE_KEYS = ("resultCode", "ResultCode")
MOMO_REQUEST_ID_KEYS = ("requestId", "momoOrderId")
MOMO_MESSAGE_KEYS = ("message", "Message")

GATEWAY_SUCCESS_CODES = {
    PaymentGateway.VNPAY: "00",
    PaymentGateway.MOMO: "0",
}

# MoMo requestId trailing digits are only trusted inside this range
MOMO_REQUEST_ID_ORDER_RANGE = (0, 1_000_000)

# ── User-facing callback messages ───────────────────────────────────
MSG_PAYMENT_CONFIRMED = "Payment successful! Your order has been updated."
MSG_PAYMENT_PROCESSING = "Payment acknowledged by gateway, order processing."
MSG_MISSING_PARAMETERS = "Missing payment information. Please check the payment link."

# Fragments of store replies meaning "this deposit was confirmed before"
ALREADY_CONFIRMED_MARKERS = (
    "already confirmed",
    "already paid",
    "already been confirmed",
    "đã được xác nhận",
    "đã thanh toán",
)

# ── Risk scoring ────────────────────────────────────────────────────
DEFAULT_CUSTOMER_POINT = 100
CUSTOMER_ROLE = "customer"

# (upper bound exclusive, level); anything above the last bound is SAFE
RISK_THRESHOLDS = (
    (50, RiskLevel.HIGH),
    (70, RiskLevel.MEDIUM),
    (90, RiskLevel.LOW),
)
RISK_LEVEL_ORDER = {
    RiskLevel.HIGH: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.LOW: 2,
    RiskLevel.SAFE: 3,
}

QUICK_CANCEL_WINDOW = timedelta(hours=1)
QUICK_CANCEL_PENALTY = 5
LATE_CANCEL_PENALTY = 10
DEFAULT_CANCEL_REASON = "Rental order cancelled"
