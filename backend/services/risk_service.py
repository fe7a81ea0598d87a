"""
Risk Scoring Engine — customer risk tiers from loyalty points.

Points drop when a customer cancels a paid rental; the current balance
alone decides the tier:

    < 50 → High     < 70 → Medium     < 90 → Low     otherwise → Safe

The cancellation history is reconstructed for display: a cancel within one
hour of ordering cost 5 points, a later one 10. Nothing here writes back.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from domain.constants import (
    CUSTOMER_ROLE,
    DEFAULT_CANCEL_REASON,
    DEFAULT_CUSTOMER_POINT,
    LATE_CANCEL_PENALTY,
    QUICK_CANCEL_PENALTY,
    QUICK_CANCEL_WINDOW,
    RISK_LEVEL_ORDER,
    RISK_THRESHOLDS,
)
from domain.enums import RentalOrderStatus, RiskLevel
from domain.errors import NotFoundError
from models import Customer, PointDeduction, RentalOrder, RiskProfile, Session
from services.rental_store import RentalStoreClient

logger = logging.getLogger(__name__)


def risk_level_for(point: int) -> RiskLevel:
    for bound, level in RISK_THRESHOLDS:
        if point < bound:
            return level
    return RiskLevel.SAFE


def _naive_utc(value: datetime) -> datetime:
    # Backend timestamps arrive both with and without an offset
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def cancellation_penalty(order: RentalOrder) -> PointDeduction:
    """Reconstruct the points a single cancelled order cost."""
    ordered_at = order.order_date
    cancelled_at = order.updated_at or ordered_at

    within_window = False
    if ordered_at is not None and cancelled_at is not None:
        within_window = _naive_utc(cancelled_at) - _naive_utc(ordered_at) <= QUICK_CANCEL_WINDOW

    return PointDeduction(
        order_id=order.id,
        order_date=ordered_at,
        cancelled_at=cancelled_at,
        cancelled_within_1_hour=within_window,
        points_deducted=QUICK_CANCEL_PENALTY if within_window else LATE_CANCEL_PENALTY,
        reason=order.report_note or DEFAULT_CANCEL_REASON,
    )


def point_deduction_history(cancelled_orders: Iterable[RentalOrder]) -> list[PointDeduction]:
    """Penalty entries for a customer's cancelled orders, newest first."""
    history = [cancellation_penalty(order) for order in cancelled_orders]
    history.sort(
        key=lambda d: _naive_utc(d.cancelled_at) if d.cancelled_at else datetime.min,
        reverse=True,
    )
    return history


def _matches(customer: Customer, term: str) -> bool:
    term = term.lower()
    return any(
        term in (value or "").lower()
        for value in (str(customer.id), customer.full_name, customer.email, customer.phone_number)
    )


def build_risk_profiles(
    customers: Iterable[Customer],
    orders: Iterable[RentalOrder],
    search: Optional[str] = None,
) -> list[RiskProfile]:
    """
    Rank every customer by risk.

    Args:
        customers: Full user list (non-customers are dropped)
        orders: Full order list
        search: Optional case-insensitive filter on name, email or phone

    Returns:
        Profiles ordered High, Medium, Low, Safe, then by ascending point
    """
    cancelled_by_customer: dict[int, list[RentalOrder]] = {}
    for order in orders:
        if order.status == RentalOrderStatus.CANCELLED and order.customer_id is not None:
            cancelled_by_customer.setdefault(order.customer_id, []).append(order)

    term = search.strip() if search else ""
    profiles = []
    for customer in customers:
        if customer.role.strip().lower() != CUSTOMER_ROLE:
            continue
        if term and not _matches(customer, term):
            continue

        point = customer.point if customer.point is not None else DEFAULT_CUSTOMER_POINT
        cancelled = cancelled_by_customer.get(customer.id, [])
        profiles.append(
            RiskProfile(
                customer_id=customer.id,
                email=customer.email,
                full_name=customer.full_name,
                phone_number=customer.phone_number,
                current_point=point,
                risk_level=risk_level_for(point),
                cancelled_orders=cancelled,
                total_cancelled=len(cancelled),
            )
        )

    profiles.sort(key=lambda p: (RISK_LEVEL_ORDER[p.risk_level], p.current_point))
    return profiles


async def load_risk_profiles(
    store: RentalStoreClient,
    session: Session,
    search: Optional[str] = None,
) -> list[RiskProfile]:
    """Fetch users and orders from the backend and rank them."""
    customers = await store.list_customers(session)
    orders = await store.list_orders(session)
    profiles = build_risk_profiles(customers, orders, search=search)
    high = sum(1 for p in profiles if p.risk_level == RiskLevel.HIGH)
    logger.info(f"📊 Risk profiles computed: {len(profiles)} customers, {high} high risk")
    return profiles


async def load_customer_history(
    store: RentalStoreClient,
    session: Session,
    customer_id: int,
) -> tuple[RiskProfile, list[PointDeduction]]:
    """One customer's risk profile with its reconstructed penalty history."""
    profiles = await load_risk_profiles(store, session)
    for profile in profiles:
        if profile.customer_id == customer_id:
            return profile, point_deduction_history(profile.cancelled_orders)
    raise NotFoundError("Customer", str(customer_id))
