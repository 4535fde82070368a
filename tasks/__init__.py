# ====================================================================
# tasks/__init__.py
# Lifecycle of the periodic jobs (started/stopped from app.py)
# ===================================================================
import asyncio
from typing import List

from logging_setup import get_logger
from . import periodic_tasks

__all__ = ["start_background_tasks", "stop_background_tasks", "running_task_names"]

logger = get_logger(__name__)

_running_tasks: List[asyncio.Task] = []


def running_task_names() -> List[str]:
    return [t.get_name() for t in _running_tasks if not t.done()]


async def start_background_tasks(**kwargs) -> None:
    """Idempotent: a second call while jobs are running does nothing."""
    if running_task_names():
        logger.info("ℹ️ Background tasks already running.")
        return
    _running_tasks[:] = periodic_tasks.start_all_tasks(**kwargs)


async def stop_background_tasks() -> None:
    if not _running_tasks:
        return
    logger.info(f"🛑 Stopping {len(_running_tasks)} background task(s)...")

    for task in _running_tasks:
        task.cancel()
    results = await asyncio.gather(*_running_tasks, return_exceptions=True)
    for task, result in zip(_running_tasks, results):
        if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
            logger.error(f"⚠️ Task '{task.get_name()}' ended with error: {result}")

    _running_tasks.clear()
    logger.info("✅ Background tasks stopped.")
