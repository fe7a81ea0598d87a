"""
Driver license verification endpoint.

Endpoints:
    GET  /licenses/{customer_id}/verification   — Is the license approved, and by which source
"""
import logging

from fastapi import APIRouter, Depends

from deps import get_rental_store, require_session
from domain.responses import success_response
from models import Session
from services import license_service
from services.rental_store import RentalStoreClient
from utils.validators import validated_customer_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/licenses", tags=["licenses"])


@router.get("/{customer_id}/verification")
async def get_license_verification(
    customer_id: int = Depends(validated_customer_id),
    store: RentalStoreClient = Depends(get_rental_store),
    session: Session = Depends(require_session),
):
    result = await license_service.verify_license(store, session, customer_id)
    return success_response(result.model_dump(mode="json", by_alias=True))
