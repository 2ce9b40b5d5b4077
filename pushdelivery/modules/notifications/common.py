"""Shared helpers and state for the push delivery domain."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional, TypeVar

from pushdelivery.core.exceptions import PushTimeoutException

logger = logging.getLogger("pushdelivery.notifications")

T = TypeVar("T")


async def run_blocking(
    func: Callable[..., T],
    *args: Any,
    timeout: float,
    stage: str,
    cancelled: Optional[threading.Event] = None,
) -> T:
    """Run a blocking call in a worker thread, bounded by ``timeout`` seconds.

    On expiry `PushTimeoutException` is raised and ``cancelled`` is set. Sync drivers cannot
    be interrupted, so the worker keeps running until it next checks the event; callers that
    do multi-step work must check it between steps.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError as exc:
        if cancelled is not None:
            cancelled.set()
        logger.warning("%s exceeded %.2fs deadline", stage, timeout)
        raise PushTimeoutException(stage, timeout) from exc


def unique_in_order(values) -> list:
    """Drop repeated values while keeping first-seen order."""
    return list(dict.fromkeys(values))


__all__ = ["logger", "run_blocking", "unique_in_order"]
