"""
Shared FastAPI dependencies.

Routers import from here: DB session, rental backend client, caller
session and pagination.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Query, Request

from database import get_db  # noqa: F401
from middleware.auth import get_session, require_session  # noqa: F401
from services.rental_store import RentalStoreClient


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


def get_rental_store(request: Request) -> RentalStoreClient:
    """The app-wide rental backend client created in the lifespan."""
    return request.app.state.rental_store
