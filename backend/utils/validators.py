"""
Input validation utilities for rental identifiers.

Order and customer ids are assigned by the rental backend and are always
positive; anything else is rejected before a backend call is made.
"""
from fastapi import Path

from domain.errors import ValidationError


def validate_entity_id(value: int, field: str) -> int:
    """
    Validate a backend-assigned identifier.

    Returns:
        The validated id (unchanged)

    Raises:
        ValidationError(400) if the id is not a positive integer
    """
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"must be a positive integer, got {value!r}", field=field)
    return value


def validated_order_id(order_id: int = Path(..., description="Rental order id")) -> int:
    """FastAPI dependency for validating order id path parameters."""
    return validate_entity_id(order_id, "order_id")


def validated_customer_id(customer_id: int = Path(..., description="Customer (user) id")) -> int:
    """FastAPI dependency for validating customer id path parameters."""
    return validate_entity_id(customer_id, "customer_id")
