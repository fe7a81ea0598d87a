"""
Domain enums shared by services and routes.
"""

from enum import Enum, IntEnum


class RentalOrderStatus(IntEnum):
    """Rental order lifecycle; integer values match the rental backend."""
    PENDING = 0
    DOCUMENTS_SUBMITTED = 1
    DEPOSIT_PENDING = 2
    CONFIRMED = 3
    RENTING = 4
    RETURNED = 5
    AWAITING_PAYMENT = 6
    CANCELLED = 7
    COMPLETED = 8


class LicenseStatus(IntEnum):
    PENDING = 0
    APPROVED = 1
    REJECTED = 2


class LicenseSource(str, Enum):
    PROFILE = "Profile"
    LICENSE_RECORD = "LicenseRecord"
    NOT_FOUND = "NotFound"


class RiskLevel(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    SAFE = "Safe"


class PaymentGateway(str, Enum):
    VNPAY = "vnpay"
    MOMO = "momo"


class CallbackFailureReason(str, Enum):
    MISSING_PARAMETERS = "MissingParameters"
    GATEWAY_REPORTED_FAILURE = "GatewayReportedFailure"
