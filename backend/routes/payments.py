"""
Payment gateway callback endpoints.

Endpoints:
    GET  /payments/vnpay/callback   — VNPay return URL
    GET  /payments/momo/callback    — MoMo redirect URL

Both accept the gateway's query string as-is. A success code always yields
a 200 envelope (possibly "order processing"); missing parameters → 400,
a gateway-reported failure → 402.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from deps import get_db, get_rental_store, get_session
from domain.enums import CallbackFailureReason, PaymentGateway
from domain.errors import GatewayReportedFailureError, MissingParametersError
from domain.responses import success_response
from middleware.rate_limit import rate_limit
from models import CallbackFailure, Session
from services import payment_callback_service
from services.rental_store import RentalStoreClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])

_callback_limit = rate_limit(settings.callback_rate_limit, settings.callback_rate_window_seconds)


async def _handle_callback(
    gateway: PaymentGateway,
    request: Request,
    store: RentalStoreClient,
    db: AsyncSession,
    session: Session,
):
    outcome = await payment_callback_service.reconcile(
        gateway,
        dict(request.query_params),
        store=store,
        db=db,
        session=session,
    )

    if isinstance(outcome, CallbackFailure):
        details = outcome.model_dump(mode="json", by_alias=True)
        if outcome.reason == CallbackFailureReason.MISSING_PARAMETERS:
            raise MissingParametersError(outcome.message, details=details)
        raise GatewayReportedFailureError(outcome.message, details=details)

    return success_response(outcome.model_dump(mode="json", by_alias=True))


# ── GET /payments/vnpay/callback ──────────────────────────────────
@router.get("/vnpay/callback", dependencies=[Depends(_callback_limit)])
async def vnpay_callback(
    request: Request,
    store: RentalStoreClient = Depends(get_rental_store),
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_session),
):
    """Confirm a VNPay deposit (vnp_TxnRef + vnp_ResponseCode)."""
    return await _handle_callback(PaymentGateway.VNPAY, request, store, db, session)


# ── GET /payments/momo/callback ───────────────────────────────────
@router.get("/momo/callback", dependencies=[Depends(_callback_limit)])
async def momo_callback(
    request: Request,
    store: RentalStoreClient = Depends(get_rental_store),
    db: AsyncSession = Depends(get_db),
    session: Session = Depends(get_session),
):
    """Confirm a MoMo deposit (orderId + resultCode, optional requestId)."""
    return await _handle_callback(PaymentGateway.MOMO, request, store, db, session)
