"""
Order Status Service — staff-initiated status changes.

The lifecycle check runs here, before the rental backend is asked to
mutate anything. An illegal step is surfaced to the caller (409), never
silently ignored.
"""
import logging

from domain import order_status
from domain.enums import RentalOrderStatus
from domain.errors import ValidationError
from models import RentalOrder, Session
from services.rental_store import RentalStoreClient

logger = logging.getLogger(__name__)


async def get_available_transitions(
    store: RentalStoreClient, session: Session, order_id: int
) -> tuple[RentalOrder, list[RentalOrderStatus]]:
    """Current order plus the statuses it may move to next."""
    order = await store.get_order(session, order_id)
    return order, order_status.available_transitions(order.status)


async def change_order_status(
    store: RentalStoreClient,
    session: Session,
    order_id: int,
    new_status: RentalOrderStatus,
) -> RentalOrder:
    """
    Move an order to `new_status`.

    Args:
        store: Rental backend client
        session: Caller context
        order_id: Rental order to change
        new_status: Target status

    Returns:
        Order snapshot with the new status applied

    Raises:
        NotFoundError: Order does not exist
        IllegalTransitionError: Step not allowed from the current status
        ValidationError: Backend refused the change
        StoreUnavailableError: Backend unreachable
    """
    order = await store.get_order(session, order_id)
    order_status.require_transition(order.status, new_status)

    result = await store.update_order_status(session, order_id, new_status)
    if not result.success:
        logger.warning(f"Status change refused for order #{order_id}: {result.error}")
        raise ValidationError(
            result.error or "Rental backend refused the status change",
            details={"orderId": order_id, "status": new_status.name},
        )

    logger.info(f"🔄 Order #{order_id}: {order.status.name} → {new_status.name}")
    return order.model_copy(update={"status": new_status})
