# ========================================================
# tasks/sweeper.py
# ========================================================
"""
Sweeper task: expire stale pending payment transactions.
Runs periodically (default: hourly).
"""

import asyncio
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import PENDING_PAYMENT_TTL_HOURS, SWEEPER_INTERVAL_SECONDS
from db import get_async_session
from helpers import utcnow
from logging_setup import get_logger
from models import PaymentTransaction

logger = get_logger(__name__)


async def expire_pending_payments_loop(interval_seconds: int = SWEEPER_INTERVAL_SECONDS):
    """Runs until cancelled; one sweep every `interval_seconds`."""
    while True:
        try:
            async with get_async_session() as session:
                await expire_pending_payments(session)
        except Exception as e:
            logger.exception(f"Sweeper task error: {e}")
        await asyncio.sleep(interval_seconds)


async def expire_pending_payments(
    session: AsyncSession,
    now: Optional[datetime] = None,
    ttl_hours: int = PENDING_PAYMENT_TTL_HOURS,
) -> int:
    """Mark pending transactions as expired once they are older than `ttl_hours`."""
    now = now or utcnow()
    expiry_time = now - timedelta(hours=ttl_hours)
    result = await session.execute(
        PaymentTransaction.__table__.update()
        .where(PaymentTransaction.status == "pending")
        .where(PaymentTransaction.created_at < expiry_time)
        .values(status="expired", updated_at=now)
    )
    await session.commit()
    if result.rowcount:
        logger.info(f"⌛ Expired {result.rowcount} pending payment transactions.")
    else:
        logger.debug("No pending payment transactions to expire.")
    return result.rowcount or 0
