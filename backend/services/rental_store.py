"""
Rental Store Client — typed async access to the rental REST backend.

The backend owns orders, users and driver licenses; this service only reads
them and requests state changes. Every reply passes through
utils.normalize, so callers always get one canonical shape:

    confirm_deposit / confirm_deposit_momo → ConfirmDepositResult
    get_order                              → RentalOrder
    update_order_status                    → StoreResult
    get_customer_profile                   → CustomerProfile
    get_current_license                    → DriverLicenseRecord | None
    list_customers / list_orders           → list[Customer] / list[RentalOrder]

Transport rules:
    - The caller's Session bearer token is forwarded on every call
    - HTTPS base URL first; the fallback URL is tried only on connect errors
    - Connection failures and 5xx replies raise StoreUnavailableError
    - 4xx replies are returned as refusals with the backend's message
"""
import logging
from typing import Any, NamedTuple, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from config import settings
from domain.enums import RentalOrderStatus
from domain.errors import NotFoundError, StoreUnavailableError, UnauthorizedError
from models import (
    ConfirmDepositResult,
    Customer,
    CustomerProfile,
    DriverLicenseRecord,
    RentalOrder,
    Session,
    StoreResult,
)
from utils.normalize import get_field, normalize_collection, unwrap_envelope

logger = logging.getLogger(__name__)


class StoreReply(NamedTuple):
    ok: bool
    data: Any
    message: Optional[str]
    status_code: int


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(payload: Any, status_code: int) -> str:
    if isinstance(payload, dict):
        for key in ("error", "message", "title"):
            value = get_field(payload, key)
            if value:
                return str(value)
    if isinstance(payload, str) and payload.strip():
        return payload.strip()[:150]
    return f"HTTP error! status: {status_code}"


class RentalStoreClient:
    """Async client for the rental backend. One instance per app (pooled connections)."""

    def __init__(
        self,
        base_urls: Optional[list[str]] = None,
        timeout: Optional[float] = None,
        verify: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_urls = base_urls or settings.rental_api_urls
        self._client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.rental_api_timeout_seconds,
            verify=verify if verify is not None else settings.rental_api_verify_tls,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ════════════════════════════════════════════════════════════════
    # Transport
    # ════════════════════════════════════════════════════════════════

    async def _send(
        self,
        session: Session,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> httpx.Response:
        last = len(self._base_urls) - 1
        for index, base in enumerate(self._base_urls):
            url = f"{base}{path}"
            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=session.auth_headers(),
                )
            except httpx.ConnectError as e:
                if index < last:
                    logger.warning(f"Rental API unreachable at {base}, trying fallback: {e}")
                    continue
                raise StoreUnavailableError(
                    "Cannot connect to the rental backend",
                    details={"path": path},
                ) from e
            except httpx.HTTPError as e:
                raise StoreUnavailableError(
                    f"Rental backend request failed: {e.__class__.__name__}",
                    details={"path": path},
                ) from e

            if response.status_code >= 500:
                logger.error(f"Rental API {method} {path} → {response.status_code}")
                raise StoreUnavailableError(
                    f"Rental backend error (status {response.status_code})",
                    details={"path": path, "status": response.status_code},
                )
            return response

        raise StoreUnavailableError("No rental backend URL configured")

    async def _call(self, session: Session, method: str, path: str, **kwargs) -> StoreReply:
        response = await self._send(session, method, path, **kwargs)
        payload = _decode_body(response)
        logger.debug(f"Rental API {method} {path} → {response.status_code}")

        if response.is_error:
            return StoreReply(False, payload, _error_message(payload, response.status_code), response.status_code)

        ok, data, message = unwrap_envelope(payload)
        if not ok:
            logger.warning(f"Rental API {method} {path} refused: {message}")
        return StoreReply(ok, data, message, response.status_code)

    @staticmethod
    def _raise_refusal(reply: StoreReply, resource: str, identifier: Any) -> None:
        if reply.status_code == 404:
            raise NotFoundError(resource, str(identifier))
        if reply.status_code == 401:
            raise UnauthorizedError(reply.message or "Rental backend rejected the session")
        raise StoreUnavailableError(
            reply.message or f"{resource} request refused",
            details={"status": reply.status_code},
        )

    # ════════════════════════════════════════════════════════════════
    # Deposit confirmation
    # ════════════════════════════════════════════════════════════════

    async def _confirm(self, session: Session, path: str, params: dict) -> ConfirmDepositResult:
        reply = await self._call(session, "POST", path, params=params)
        data = reply.data if isinstance(reply.data, dict) else {}
        backend_flag = get_field(data, "success")
        return ConfirmDepositResult(
            success=reply.ok and backend_flag is not False,
            order_id=get_field(data, "orderId"),
            message=get_field(data, "message") or reply.message,
        )

    async def confirm_deposit(self, session: Session, txn_ref: str, result_code: str) -> ConfirmDepositResult:
        """Confirm a VNPay deposit. The backend treats the same TxnRef idempotently."""
        return await self._confirm(
            session,
            "/RentalOrder/ConfirmOrderDepositManual",
            {"TxnRef": txn_ref, "ResponseCode": result_code},
        )

    async def confirm_deposit_momo(self, session: Session, request_id: str, result_code: str) -> ConfirmDepositResult:
        """Confirm a MoMo deposit by its requestId."""
        return await self._confirm(
            session,
            "/RentalOrder/ConfirmOrderDepositMomoManual",
            {"requestId": request_id, "ResultCode": result_code},
        )

    # ════════════════════════════════════════════════════════════════
    # Orders
    # ════════════════════════════════════════════════════════════════

    async def get_order(self, session: Session, order_id: int) -> RentalOrder:
        reply = await self._call(session, "GET", "/RentalOrder/GetById", params={"id": order_id})
        if not reply.ok:
            self._raise_refusal(reply, "Rental order", order_id)
        if not reply.data:
            raise NotFoundError("Rental order", str(order_id))
        try:
            return RentalOrder.model_validate(reply.data)
        except PydanticValidationError as e:
            raise StoreUnavailableError(
                f"Malformed rental order payload for #{order_id}",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    async def update_order_status(
        self, session: Session, order_id: int, status: RentalOrderStatus
    ) -> StoreResult:
        reply = await self._call(
            session,
            "PUT",
            "/RentalOrder/UpdateStatus",
            json={"OrderId": order_id, "Status": int(status)},
        )
        return StoreResult(success=reply.ok, error=None if reply.ok else reply.message)

    async def list_orders(self, session: Session) -> list[RentalOrder]:
        reply = await self._call(session, "GET", "/RentalOrder/GetAll")
        if not reply.ok:
            self._raise_refusal(reply, "Rental order list", "all")
        return self._parse_records(reply.data, RentalOrder, "rental order")

    # ════════════════════════════════════════════════════════════════
    # Users & licenses
    # ════════════════════════════════════════════════════════════════

    async def get_customer_profile(self, session: Session) -> CustomerProfile:
        reply = await self._call(session, "GET", "/user/profile")
        if not reply.ok:
            self._raise_refusal(reply, "User profile", session.user_id or "current")
        return CustomerProfile.model_validate(reply.data or {})

    async def get_current_license(
        self, session: Session, customer_id: Optional[int] = None
    ) -> Optional[DriverLicenseRecord]:
        params = {"userId": customer_id} if customer_id is not None else None
        reply = await self._call(session, "GET", "/DriverLicense/GetById", params=params)
        if reply.status_code == 404 or (reply.ok and not reply.data):
            return None
        if not reply.ok:
            self._raise_refusal(reply, "Driver license", customer_id or "current")
        return DriverLicenseRecord.model_validate(reply.data)

    async def list_customers(self, session: Session) -> list[Customer]:
        reply = await self._call(session, "GET", "/User")
        if not reply.ok:
            self._raise_refusal(reply, "User list", "all")
        return self._parse_records(reply.data, Customer, "user")

    # ════════════════════════════════════════════════════════════════
    # Helpers
    # ════════════════════════════════════════════════════════════════

    @staticmethod
    def _parse_records(data: Any, model: type, label: str) -> list:
        try:
            raw_records = normalize_collection(data)
        except ValueError as e:
            raise StoreUnavailableError(f"Unexpected {label} list payload: {e}") from e

        records = []
        for raw in raw_records:
            try:
                records.append(model.model_validate(raw))
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed {label} record: {e.error_count()} error(s)")
        return records

    async def ping(self) -> bool:
        """True if the backend answers at all (used by /health)."""
        try:
            response = await self._send(Session(), "GET", "/Car")
        except StoreUnavailableError:
            return False
        return response.status_code < 500
