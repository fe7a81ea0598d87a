"""
Pydantic models for rental backend payloads, callback outcomes and API responses.

Backend payloads are validated with camelCase or PascalCase keys; responses of
this service are serialized in camelCase (model_dump(by_alias=True)).
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    AliasGenerator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from domain.enums import (
    CallbackFailureReason,
    LicenseSource,
    LicenseStatus,
    PaymentGateway,
    RentalOrderStatus,
    RiskLevel,
)
from domain.order_status import parse_status
from utils.normalize import parse_license_status


def _keys(*names: str) -> AliasChoices:
    """Accept each name in camelCase and PascalCase."""
    choices = []
    for name in names:
        choices.extend([name, name[:1].upper() + name[1:]])
    return AliasChoices(*choices)


class RentalBase(BaseModel):
    """Shared base — build by Python name or backend key, dump as camelCase."""
    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )


# ── Session ─────────────────────────────────────────────────────────

class Session(RentalBase):
    """
    Explicit caller context, threaded through every rental backend call.

    Replaces any process-wide "current user": the bearer token and the
    identity it carries travel with the request that owns them.
    """
    model_config = ConfigDict(frozen=True)

    token: Optional[str] = None
    user_id: Optional[int] = None
    role: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def auth_headers(self) -> dict:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


# ── Rental backend payloads ─────────────────────────────────────────

class RentalOrder(RentalBase):
    """A single rental transaction as stored by the rental backend."""
    id: int = Field(..., validation_alias=_keys("id", "orderId"))
    status: RentalOrderStatus = Field(..., validation_alias=_keys("status"))
    customer_id: Optional[int] = Field(None, validation_alias=_keys("userId", "customerId"))
    car_id: Optional[int] = Field(None, validation_alias=_keys("carId"))
    location_id: Optional[int] = Field(None, validation_alias=_keys("rentalLocationId", "locationId"))
    pickup_time: Optional[datetime] = Field(None, validation_alias=_keys("pickupTime"))
    expected_return_time: Optional[datetime] = Field(None, validation_alias=_keys("expectedReturnTime"))
    actual_return_time: Optional[datetime] = Field(None, validation_alias=_keys("actualReturnTime"))
    order_date: Optional[datetime] = Field(None, validation_alias=_keys("orderDate", "createdAt"))
    updated_at: Optional[datetime] = Field(None, validation_alias=_keys("updatedAt"))
    total: Optional[Decimal] = Field(None, ge=0, validation_alias=_keys("total"))
    deposit: Optional[Decimal] = Field(None, ge=0, validation_alias=_keys("deposit"))
    phone_number: Optional[str] = Field(None, validation_alias=_keys("phoneNumber"))
    with_driver: Optional[bool] = Field(None, validation_alias=_keys("withDriver"))
    report_note: Optional[str] = Field(None, validation_alias=_keys("reportNote"))

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return parse_status(value)

    @model_validator(mode="after")
    def _check_return_after_pickup(self):
        if (
            self.pickup_time is not None
            and self.expected_return_time is not None
            and self.expected_return_time < self.pickup_time
        ):
            raise ValueError("expectedReturnTime must not be before pickupTime")
        return self


class Customer(RentalBase):
    """A user record from the rental backend's user list."""
    id: int = Field(..., validation_alias=_keys("userId", "id"))
    email: str = Field("", validation_alias=_keys("email"))
    full_name: str = Field("", validation_alias=_keys("fullName", "name"))
    phone_number: str = Field("", validation_alias=_keys("phoneNumber", "phone"))
    role: str = Field("", validation_alias=_keys("role"))
    point: Optional[int] = Field(None, validation_alias=_keys("point"))
    is_active: bool = Field(True, validation_alias=_keys("isActive"))
    created_at: Optional[datetime] = Field(None, validation_alias=_keys("createdAt"))

    @field_validator("email", "full_name", "phone_number", "role", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        if value is None:
            return ""
        return value


class CustomerProfile(RentalBase):
    """The signed-in user's profile (driver license aggregate only)."""
    user_id: Optional[int] = Field(None, validation_alias=_keys("userId", "id"))
    driver_license_status: Optional[LicenseStatus] = Field(
        None, validation_alias=_keys("driverLicenseStatus")
    )

    @field_validator("driver_license_status", mode="before")
    @classmethod
    def _parse_license(cls, value):
        return parse_license_status(value)


class DriverLicenseRecord(RentalBase):
    """A dedicated driver license record."""
    id: Optional[int] = Field(None, validation_alias=_keys("id", "driverLicenseId"))
    user_id: Optional[int] = Field(None, validation_alias=_keys("userId"))
    status: Optional[LicenseStatus] = Field(None, validation_alias=_keys("status"))

    @field_validator("status", mode="before")
    @classmethod
    def _parse_license(cls, value):
        return parse_license_status(value)


class ConfirmDepositResult(RentalBase):
    """Reply of the backend's confirm-deposit operations."""
    success: bool = False
    order_id: Optional[int] = None
    message: Optional[str] = None


class StoreResult(RentalBase):
    """Reply of a backend mutation (success flag + optional error text)."""
    success: bool
    error: Optional[str] = None


# ── Payment callbacks ───────────────────────────────────────────────

class PaymentConfirmation(RentalBase):
    """Decoded gateway callback. Ephemeral: one per callback invocation."""
    gateway: PaymentGateway
    gateway_transaction_ref: str
    gateway_result_code: str
    confirm_reference: str
    amount: Optional[Decimal] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    gateway_message: Optional[str] = None
    order_info: Optional[str] = None
    pay_type: Optional[str] = None
    rental_order_hint: Optional[int] = None


class CallbackSuccess(RentalBase):
    outcome: Literal["success"] = "success"
    gateway: PaymentGateway
    transaction_ref: str
    order_id: Optional[int] = None
    message: str
    order_snapshot: Optional[RentalOrder] = None
    confirmed: bool = True
    auto_advanced: bool = False
    duplicate: bool = False


class CallbackFailure(RentalBase):
    outcome: Literal["failure"] = "failure"
    gateway: PaymentGateway
    reason: CallbackFailureReason
    message: str
    raw_gateway_message: Optional[str] = None
    result_code: Optional[str] = None


CallbackOutcome = Union[CallbackSuccess, CallbackFailure]


# ── License verification ────────────────────────────────────────────

class LicenseVerificationResult(RentalBase):
    customer_id: Optional[int] = None
    is_verified: bool
    source: LicenseSource


# ── Risk scoring ────────────────────────────────────────────────────

class PointDeduction(RentalBase):
    """One reconstructed cancellation penalty (display only)."""
    order_id: int
    order_date: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_within_1_hour: bool = Field(..., serialization_alias="cancelledWithin1Hour")
    points_deducted: int
    reason: str


class RiskProfile(RentalBase):
    customer_id: int
    email: str = ""
    full_name: str = ""
    phone_number: str = ""
    current_point: int
    risk_level: RiskLevel
    cancelled_orders: List[RentalOrder] = Field(default_factory=list)
    total_cancelled: int = 0


# ── Request models ──────────────────────────────────────────────────

class UpdateOrderStatusRequest(RentalBase):
    """Request to move an order to a new status (number or name)."""
    status: RentalOrderStatus = Field(..., validation_alias=_keys("status"))

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return parse_status(value)
