"""
License Verification Gate — is this customer's driver license approved?

Two sources, cheapest first:
    1. Profile       — the user profile's driverLicenseStatus aggregate
    2. LicenseRecord — the dedicated driver license record

Approval is any of 1, "1" or "Approved" (the backend emits all three).
An error on one source only means "not verified by that source"; it never
aborts the check. Results are computed fresh on every call.
"""
import logging
from typing import Optional

from domain.enums import LicenseSource
from models import LicenseVerificationResult, Session
from services.rental_store import RentalStoreClient
from utils.normalize import is_license_approved

logger = logging.getLogger(__name__)


async def _profile_approved(store: RentalStoreClient, session: Session, customer_id: Optional[int]) -> bool:
    # The profile endpoint describes the signed-in user only
    if customer_id is not None and session.user_id is not None and session.user_id != customer_id:
        return False
    try:
        profile = await store.get_customer_profile(session)
    except Exception as e:
        logger.info(f"  License check: profile unavailable for customer {customer_id}: {e}")
        return False
    return is_license_approved(profile.driver_license_status)


async def _record_approved(store: RentalStoreClient, session: Session, customer_id: Optional[int]) -> bool:
    try:
        record = await store.get_current_license(session, customer_id)
    except Exception as e:
        logger.info(f"  License check: no license record for customer {customer_id}: {e}")
        return False
    return record is not None and is_license_approved(record.status)


async def verify_license(
    store: RentalStoreClient,
    session: Session,
    customer_id: Optional[int],
) -> LicenseVerificationResult:
    """
    Check both sources and report which one (if any) confirmed approval.

    Args:
        store: Rental backend client
        session: Caller context (token forwarded to the backend)
        customer_id: Customer whose license is checked; None means the session user

    Returns:
        LicenseVerificationResult with source Profile, LicenseRecord or NotFound
    """
    if customer_id is None:
        customer_id = session.user_id

    if await _profile_approved(store, session, customer_id):
        logger.info(f"  🪪 License verified via profile (customer {customer_id})")
        return LicenseVerificationResult(
            customer_id=customer_id, is_verified=True, source=LicenseSource.PROFILE
        )

    if await _record_approved(store, session, customer_id):
        logger.info(f"  🪪 License verified via license record (customer {customer_id})")
        return LicenseVerificationResult(
            customer_id=customer_id, is_verified=True, source=LicenseSource.LICENSE_RECORD
        )

    logger.info(f"  License not verified for customer {customer_id}")
    return LicenseVerificationResult(
        customer_id=customer_id, is_verified=False, source=LicenseSource.NOT_FOUND
    )
