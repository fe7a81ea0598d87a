"""
Payment Callback Reconciler — VNPay / MoMo browser redirects.

Turns an untrusted redirect into at most one confirmed order change:

    1. Extraction      — first present key of each alias group;
                         no reference or result code → MissingParameters
    2. Classification  — "00" (VNPay) / "0" (MoMo) continues;
                         anything else → GatewayReportedFailure, no mutation
    3. Confirmation    — ledger lookup by (gateway, txn_ref), then the
                         backend's confirm-deposit call; "already confirmed"
                         counts as success
    4. Auto-advance    — license approved → Confirmed → Renting (check-in);
                         every failure here is logged and swallowed
    5. Degradation     — confirmation failed but the gateway said success:
                         still Success, with a "processing" message

Once the gateway's success code has been seen, nothing downstream can turn
the outcome into a failure: the customer's money has already moved.
"""
import json
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional
from urllib.parse import unquote

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from domain import order_status
from domain.constants import (
    ALREADY_CONFIRMED_MARKERS,
    GATEWAY_SUCCESS_CODES,
    MOMO_MESSAGE_KEYS,
    MOMO_ORDER_ID_KEYS,
    MOMO_REQUEST_ID_KEYS,
    MOMO_REQUEST_ID_ORDER_RANGE,
    MOMO_RESULT_CODE_KEYS,
    MSG_MISSING_PARAMETERS,
    MSG_PAYMENT_CONFIRMED,
    MSG_PAYMENT_PROCESSING,
    VNPAY_RESPONSE_CODE_KEYS,
    VNPAY_TXN_REF_KEYS,
)
from domain.enums import CallbackFailureReason, PaymentGateway, RentalOrderStatus
from domain.errors import IllegalTransitionError, MissingParametersError
from models import (
    CallbackFailure,
    CallbackOutcome,
    CallbackSuccess,
    ConfirmDepositResult,
    PaymentConfirmation,
    RentalOrder,
    Session,
)
from services import callback_ledger, license_service
from services.rental_store import RentalStoreClient
from utils.normalize import pick_first

logger = logging.getLogger(__name__)

# Check-in target once a paid order's driver license is approved
AUTO_CHECKIN_STATUS = RentalOrderStatus.RENTING

_ORDER_REF_PATTERN = re.compile(r"#(\d+)")


# ════════════════════════════════════════════════════════════════════
# Step 1: Extraction
# ════════════════════════════════════════════════════════════════════


def _to_decimal(value: Optional[str], scale: int = 1) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(value) / scale
    except (InvalidOperation, ValueError):
        logger.warning(f"Ignoring non-numeric callback amount: {value!r}")
        return None


def _require(gateway: PaymentGateway, txn_ref: Optional[str], result_code: Optional[str]) -> None:
    missing = []
    if not txn_ref:
        missing.append("transactionRef")
    if not result_code:
        missing.append("resultCode")
    if missing:
        raise MissingParametersError(
            MSG_MISSING_PARAMETERS,
            details={"gateway": gateway.value, "missing": missing},
        )


def extract_rental_order_id(
    order_info: Optional[str] = None,
    extra_data: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Optional[int]:
    """
    Recover the rental order id a gateway callback refers to.

    Tried in order:
        orderInfo  — "Thanh toan coc don thue xe #6" → 6
        extraData  — JSON {"orderId"|"order_id"|"rentalOrderId": 6},
                     otherwise the first run of digits
        requestId  — trailing digits, only if 0 < n < 1,000,000
    """
    if order_info:
        match = _ORDER_REF_PATTERN.search(unquote(order_info))
        if match:
            return int(match.group(1))

    if extra_data:
        decoded = unquote(extra_data)
        try:
            parsed = json.loads(decoded)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            for key in ("orderId", "order_id", "rentalOrderId"):
                candidate = parsed.get(key)
                if candidate is not None and str(candidate).isdigit():
                    return int(candidate)
        else:
            match = re.search(r"(\d+)", decoded)
            if match:
                return int(match.group(1))

    if request_id:
        match = re.search(r"(\d+)$", request_id)
        if match:
            low, high = MOMO_REQUEST_ID_ORDER_RANGE
            candidate = int(match.group(1))
            if low < candidate < high:
                return candidate

    return None


def parse_vnpay_callback(params: Mapping[str, str]) -> PaymentConfirmation:
    """Decode a VNPay return URL. Raises MissingParametersError."""
    gateway = PaymentGateway.VNPAY
    txn_ref = pick_first(params, VNPAY_TXN_REF_KEYS)
    result_code = pick_first(params, VNPAY_RESPONSE_CODE_KEYS)
    _require(gateway, txn_ref, result_code)

    paid_at = None
    pay_date = pick_first(params, ("vnp_PayDate",))
    if pay_date:
        try:
            paid_at = datetime.strptime(pay_date, "%Y%m%d%H%M%S")
        except ValueError:
            logger.warning(f"Ignoring malformed vnp_PayDate: {pay_date!r}")

    order_info = pick_first(params, ("vnp_OrderInfo",))
    return PaymentConfirmation(
        gateway=gateway,
        gateway_transaction_ref=txn_ref,
        gateway_result_code=result_code,
        confirm_reference=txn_ref,
        # VNPay amounts are sent in minor units x100
        amount=_to_decimal(pick_first(params, ("vnp_Amount",)), scale=100),
        transaction_id=pick_first(params, ("vnp_TransactionNo",)),
        paid_at=paid_at,
        order_info=order_info,
        rental_order_hint=extract_rental_order_id(order_info=order_info),
    )


def parse_momo_callback(params: Mapping[str, str]) -> PaymentConfirmation:
    """Decode a MoMo redirect. Raises MissingParametersError."""
    gateway = PaymentGateway.MOMO
    txn_ref = pick_first(params, MOMO_ORDER_ID_KEYS)
    result_code = pick_first(params, MOMO_RESULT_CODE_KEYS)
    _require(gateway, txn_ref, result_code)

    request_id = pick_first(params, MOMO_REQUEST_ID_KEYS)
    order_info = pick_first(params, ("orderInfo",))

    paid_at = None
    response_time = pick_first(params, ("responseTime",))
    if response_time:
        try:
            paid_at = datetime.fromtimestamp(int(response_time) / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            logger.warning(f"Ignoring malformed MoMo responseTime: {response_time!r}")

    return PaymentConfirmation(
        gateway=gateway,
        gateway_transaction_ref=txn_ref,
        gateway_result_code=result_code,
        confirm_reference=request_id or txn_ref,
        amount=_to_decimal(pick_first(params, ("amount",))),
        transaction_id=pick_first(params, ("transId",)),
        paid_at=paid_at,
        gateway_message=pick_first(params, MOMO_MESSAGE_KEYS),
        order_info=order_info,
        pay_type=pick_first(params, ("payType",)),
        rental_order_hint=extract_rental_order_id(
            order_info=order_info,
            extra_data=pick_first(params, ("extraData",)),
            request_id=request_id,
        ),
    )


_PARSERS = {
    PaymentGateway.VNPAY: parse_vnpay_callback,
    PaymentGateway.MOMO: parse_momo_callback,
}


# ════════════════════════════════════════════════════════════════════
# Step 2: Classification
# ════════════════════════════════════════════════════════════════════


def is_gateway_success(confirmation: PaymentConfirmation) -> bool:
    return confirmation.gateway_result_code == GATEWAY_SUCCESS_CODES[confirmation.gateway]


def _gateway_failure_message(confirmation: PaymentConfirmation) -> str:
    code = confirmation.gateway_result_code
    if confirmation.gateway == PaymentGateway.MOMO and confirmation.gateway_message:
        return f"Payment failed. {confirmation.gateway_message}"
    return f"Payment failed. Error code: {code}"


# ════════════════════════════════════════════════════════════════════
# Steps 3-5: Confirmation, auto-advance, degradation
# ════════════════════════════════════════════════════════════════════


def is_already_confirmed(message: Optional[str]) -> bool:
    """True if a backend refusal only says the deposit was confirmed earlier."""
    if not message:
        return False
    text = message.lower()
    return any(marker in text for marker in ALREADY_CONFIRMED_MARKERS)


async def _confirm_deposit(
    store: RentalStoreClient,
    session: Session,
    confirmation: PaymentConfirmation,
) -> ConfirmDepositResult:
    if confirmation.gateway == PaymentGateway.MOMO:
        return await store.confirm_deposit_momo(
            session, confirmation.confirm_reference, confirmation.gateway_result_code
        )
    return await store.confirm_deposit(
        session, confirmation.confirm_reference, confirmation.gateway_result_code
    )


async def _fetch_order(
    store: RentalStoreClient, session: Session, order_id: Optional[int]
) -> Optional[RentalOrder]:
    if order_id is None:
        return None
    try:
        return await store.get_order(session, order_id)
    except Exception as e:
        logger.warning(f"  Could not load order #{order_id} after payment: {e}")
        return None


async def _auto_advance(
    store: RentalStoreClient,
    session: Session,
    order: Optional[RentalOrder],
) -> tuple[Optional[RentalOrder], bool]:
    """
    Check the order in when the customer's license is approved.

    Returns (order snapshot, advanced). Never raises.
    """
    if order is None or not settings.auto_checkin_enabled:
        return order, False

    try:
        verification = await license_service.verify_license(store, session, order.customer_id)
        if not verification.is_verified:
            logger.info(f"  License not verified, order #{order.id} stays {order.status.name}")
            return order, False

        order_status.require_transition(order.status, AUTO_CHECKIN_STATUS)
        result = await store.update_order_status(session, order.id, AUTO_CHECKIN_STATUS)
        if not result.success:
            logger.warning(f"  ⚠️ Check-in of order #{order.id} refused by backend: {result.error}")
            return order, False

        logger.info(f"  ✅ Order #{order.id} checked in ({order.status.name} → {AUTO_CHECKIN_STATUS.name})")
        return order.model_copy(update={"status": AUTO_CHECKIN_STATUS}), True

    except IllegalTransitionError as e:
        logger.warning(f"  Auto check-in skipped for order #{order.id}: {e.message}")
    except Exception as e:
        logger.error(f"  ❌ Auto check-in failed for order #{order.id}: {e}", exc_info=True)
    return order, False


async def _find_recorded(db: AsyncSession, confirmation: PaymentConfirmation):
    try:
        return await callback_ledger.find(db, confirmation.gateway, confirmation.gateway_transaction_ref)
    except SQLAlchemyError as e:
        logger.error(f"  Callback ledger lookup failed, continuing without dedupe: {e}")
        return None


async def _record(db: AsyncSession, confirmation: PaymentConfirmation, outcome: CallbackSuccess) -> None:
    try:
        await callback_ledger.record(
            db,
            confirmation.gateway,
            confirmation.gateway_transaction_ref,
            confirmation.gateway_result_code,
            outcome.order_id,
            outcome.message,
            auto_advanced=outcome.auto_advanced,
        )
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"  Callback ledger write failed for {confirmation.gateway_transaction_ref}: {e}")


def _acknowledged(confirmation: PaymentConfirmation, order_id: Optional[int]) -> CallbackSuccess:
    return CallbackSuccess(
        gateway=confirmation.gateway,
        transaction_ref=confirmation.gateway_transaction_ref,
        order_id=order_id,
        message=(
            confirmation.gateway_message
            if confirmation.gateway == PaymentGateway.MOMO and confirmation.gateway_message
            else MSG_PAYMENT_PROCESSING
        ),
        confirmed=False,
    )


async def reconcile(
    gateway: PaymentGateway,
    params: Mapping[str, str],
    *,
    store: RentalStoreClient,
    db: AsyncSession,
    session: Session,
) -> CallbackOutcome:
    """
    Process one gateway redirect.

    Args:
        gateway: Which gateway sent the redirect
        params: Flat query parameter map, untrusted
        store: Rental backend client
        db: Session for the callback ledger
        session: Caller context forwarded to the backend

    Returns:
        CallbackSuccess or CallbackFailure
    """
    # Step 1
    try:
        confirmation = _PARSERS[gateway](params)
    except MissingParametersError as e:
        logger.error(f"[{gateway.value}] Missing required callback params: {e.details.get('missing')}")
        return CallbackFailure(
            gateway=gateway,
            reason=CallbackFailureReason.MISSING_PARAMETERS,
            message=e.message,
            raw_gateway_message=pick_first(params, MOMO_MESSAGE_KEYS),
            result_code=pick_first(params, VNPAY_RESPONSE_CODE_KEYS + MOMO_RESULT_CODE_KEYS),
        )

    ref = confirmation.gateway_transaction_ref
    logger.info(f"[{gateway.value}] Callback received: ref={ref} code={confirmation.gateway_result_code}")

    # Step 2
    if not is_gateway_success(confirmation):
        logger.warning(f"[{gateway.value}] ⚠️ Gateway reported failure for {ref}: {confirmation.gateway_result_code}")
        return CallbackFailure(
            gateway=gateway,
            reason=CallbackFailureReason.GATEWAY_REPORTED_FAILURE,
            message=_gateway_failure_message(confirmation),
            raw_gateway_message=confirmation.gateway_message,
            result_code=confirmation.gateway_result_code,
        )

    # Step 3: replay a recorded confirmation
    recorded = await _find_recorded(db, confirmation)
    if recorded is not None:
        logger.info(f"[{gateway.value}] Duplicate callback for {ref}, replaying order #{recorded.order_id}")
        return CallbackSuccess(
            gateway=gateway,
            transaction_ref=ref,
            order_id=recorded.order_id,
            message=recorded.message or MSG_PAYMENT_CONFIRMED,
            order_snapshot=await _fetch_order(store, session, recorded.order_id),
            confirmed=True,
            auto_advanced=recorded.auto_advanced,
            duplicate=True,
        )

    try:
        result = await _confirm_deposit(store, session, confirmation)
    except Exception as e:
        # Step 5
        logger.error(f"[{gateway.value}] ❌ Deposit confirmation call failed for {ref}: {e}")
        return _acknowledged(confirmation, confirmation.rental_order_hint)

    if not result.success and not is_already_confirmed(result.message):
        logger.warning(f"[{gateway.value}] ⚠️ Backend did not confirm {ref}: {result.message}")
        return _acknowledged(confirmation, result.order_id or confirmation.rental_order_hint)

    order_id = result.order_id or confirmation.rental_order_hint
    if result.success:
        message = result.message or confirmation.gateway_message or MSG_PAYMENT_CONFIRMED
    else:
        logger.info(f"[{gateway.value}] {ref} was already confirmed by the backend")
        message = MSG_PAYMENT_CONFIRMED

    # Step 4
    order = await _fetch_order(store, session, order_id)
    order, advanced = await _auto_advance(store, session, order)

    outcome = CallbackSuccess(
        gateway=gateway,
        transaction_ref=ref,
        order_id=order_id,
        message=message,
        order_snapshot=order,
        confirmed=True,
        auto_advanced=advanced,
    )
    await _record(db, confirmation, outcome)
    logger.info(f"[{gateway.value}] ✅ Payment confirmed for {ref}, order #{order_id}")
    return outcome
