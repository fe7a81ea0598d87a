"""
Standard API response envelopes.

Every endpoint answers in one of two shapes:
- Success: { "success": true, "data": <payload>, "meta": {...} }
- Error:   { "success": false, "error": { "code": "...", "message": "...", "details": {...} } }

Payment callbacks use the same envelopes, so the front end's result page
reads one format for both gateways.
"""
from typing import Any


def success_response(data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create a standardized success response.

    Args:
        data: The response payload
        meta: Optional metadata (pagination, timestamps, etc.)

    Returns:
        dict: { "success": true, "data": <data>, "meta": <meta> }
    """
    response = {"success": True, "data": data}
    if meta:
        response["meta"] = meta
    return response


def paginated_response(
    items: list[Any],
    limit: int,
    offset: int = 0,
    total: int | None = None,
) -> dict[str, Any]:
    """
    Create a standardized paginated response.

    Args:
        items: Items of this page (already sliced)
        limit: Page size
        offset: Index of the first item of this page in the full list
        total: Size of the full list (if None, uses len(items))

    Returns:
        dict: { "success": true, "data": <items>, "meta": { "limit", "offset", "total", "hasMore" } }
    """
    if total is None:
        total = len(items)

    meta = {
        "limit": limit,
        "offset": offset,
        "total": total,
        "hasMore": (offset + limit) < total,
    }
    return success_response(data=items, meta=meta)


def error_response(code: str, message: str, details: Any = None) -> dict[str, Any]:
    """
    Create a standardized error body.

    Args:
        code: Machine-readable error code (e.g. "illegaltransition")
        message: Human-readable message, safe to show to the customer
        details: Optional structured context

    Returns:
        dict: { "success": false, "error": { "code", "message", "details" } }
    """
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}
