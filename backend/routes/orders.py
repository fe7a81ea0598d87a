"""
Rental order status endpoints (staff).

Endpoints:
    GET  /orders/{order_id}/transitions   — Current status + legal next statuses
    PUT  /orders/{order_id}/status        — Move the order to a new status
"""
import logging

from fastapi import APIRouter, Depends

from deps import get_rental_store, require_session
from domain.responses import success_response
from models import Session, UpdateOrderStatusRequest
from services import order_service
from services.rental_store import RentalStoreClient
from utils.validators import validated_order_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


def _status_entry(status) -> dict:
    return {"value": int(status), "name": status.name}


# ── GET /orders/{order_id}/transitions ────────────────────────────
@router.get("/{order_id}/transitions")
async def get_order_transitions(
    order_id: int = Depends(validated_order_id),
    store: RentalStoreClient = Depends(get_rental_store),
    session: Session = Depends(require_session),
):
    """Statuses a staff member may pick next for this order."""
    order, targets = await order_service.get_available_transitions(store, session, order_id)
    return success_response({
        "orderId": order.id,
        "currentStatus": _status_entry(order.status),
        "availableStatuses": [_status_entry(s) for s in targets],
    })


# ── PUT /orders/{order_id}/status ─────────────────────────────────
@router.put("/{order_id}/status")
async def update_order_status(
    req: UpdateOrderStatusRequest,
    order_id: int = Depends(validated_order_id),
    store: RentalStoreClient = Depends(get_rental_store),
    session: Session = Depends(require_session),
):
    """
    Change an order's status.

    409 if the lifecycle does not allow the step, 404 if the order is unknown.
    """
    order = await order_service.change_order_status(store, session, order_id, req.status)
    return success_response(order.model_dump(mode="json", by_alias=True))
