# ========================================================
# tasks/periodic_tasks.py
# ========================================================
"""
Repeating jobs started with the app:
- PendingPaymentSweeper: expire stale pending payment transactions
"""
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from config import SWEEPER_INTERVAL_SECONDS
from logging_setup import get_logger
from . import sweeper

logger = get_logger(__name__)

JOBS: Dict[str, Callable[[int], Awaitable[None]]] = {
    "PendingPaymentSweeper": sweeper.expire_pending_payments_loop,
}


def start_all_tasks(
    loop: Optional[asyncio.AbstractEventLoop] = None,
    interval_seconds: int = SWEEPER_INTERVAL_SECONDS,
) -> List[asyncio.Task]:
    """Schedule every job in JOBS; returns the tasks so they can be cancelled."""
    loop = loop or asyncio.get_running_loop()
    tasks = [loop.create_task(job(interval_seconds), name=name) for name, job in JOBS.items()]
    logger.info(f"🚀 Periodic jobs running: {', '.join(JOBS)} (every {interval_seconds}s)")
    return tasks
