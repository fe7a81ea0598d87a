"""
Customer risk endpoints (staff / admin).

Endpoints:
    GET  /risk/customers                          — Ranked risk list (search + pagination)
    GET  /risk/customers/{customer_id}/history    — Point deductions of one customer
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from deps import Pagination, get_rental_store, pagination_params, require_session
from domain.responses import paginated_response, success_response
from models import Session
from services import risk_service
from services.rental_store import RentalStoreClient
from utils.validators import validated_customer_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/risk", tags=["risk"])


# ── GET /risk/customers ───────────────────────────────────────────
@router.get("/customers")
async def list_risk_customers(
    search: Optional[str] = Query(None, max_length=100, description="Name, email or phone"),
    page: Pagination = Depends(pagination_params),
    store: RentalStoreClient = Depends(get_rental_store),
    session: Session = Depends(require_session),
):
    """Customers ranked High → Safe, lowest points first within a tier."""
    profiles = await risk_service.load_risk_profiles(store, session, search=search)
    limit, offset = page["limit"], page["offset"]
    window = profiles[offset:offset + limit]
    return paginated_response(
        items=[p.model_dump(mode="json", by_alias=True) for p in window],
        limit=limit,
        offset=offset,
        total=len(profiles),
    )


# ── GET /risk/customers/{customer_id}/history ─────────────────────
@router.get("/customers/{customer_id}/history")
async def get_customer_point_history(
    customer_id: int = Depends(validated_customer_id),
    store: RentalStoreClient = Depends(get_rental_store),
    session: Session = Depends(require_session),
):
    profile, history = await risk_service.load_customer_history(store, session, customer_id)
    return success_response({
        "profile": profile.model_dump(mode="json", by_alias=True),
        "deductions": [d.model_dump(mode="json", by_alias=True) for d in history],
        "totalPointsDeducted": sum(d.points_deducted for d in history),
    })
