"""
Callback Ledger — dedupe record for payment gateway callbacks.

Gateways redeliver the same redirect (browser retries, back button, reloads).
Each confirmed callback is written once under (gateway, txn_ref); a later
delivery with the same key replays the recorded outcome instead of calling
the rental backend again.

Only confirmations that actually reached the backend are recorded, so a
callback that degraded to "payment acknowledged, order processing" is retried
on its next delivery.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import PaymentCallbackRecord
from domain.enums import PaymentGateway

logger = logging.getLogger(__name__)


async def find(
    db: AsyncSession,
    gateway: PaymentGateway,
    txn_ref: str,
) -> Optional[PaymentCallbackRecord]:
    """Return the recorded confirmation for this callback, if any."""
    result = await db.execute(
        select(PaymentCallbackRecord).where(
            PaymentCallbackRecord.gateway == gateway.value,
            PaymentCallbackRecord.txn_ref == txn_ref,
        )
    )
    return result.scalar_one_or_none()


async def record(
    db: AsyncSession,
    gateway: PaymentGateway,
    txn_ref: str,
    result_code: str,
    order_id: Optional[int],
    message: Optional[str],
    auto_advanced: bool = False,
) -> bool:
    """
    Record a confirmed callback.

    Returns:
        True if this call wrote the row, False if the key was already present
        (a concurrent delivery got there first)
    """
    stmt = (
        sqlite_insert(PaymentCallbackRecord)
        .values(
            gateway=gateway.value,
            txn_ref=txn_ref,
            result_code=result_code,
            order_id=order_id,
            message=message,
            auto_advanced=auto_advanced,
        )
        .on_conflict_do_nothing(index_elements=["gateway", "txn_ref"])
    )
    res = await db.execute(stmt)
    await db.commit()

    inserted = getattr(res, "rowcount", 0) == 1
    if inserted:
        logger.info(f"  📒 Callback recorded: {gateway.value}:{txn_ref} → order #{order_id}")
    else:
        logger.info(f"  Callback {gateway.value}:{txn_ref} already recorded")
    return inserted
