"""Removal of permanently failed device tokens."""

from __future__ import annotations

import threading
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from pushdelivery.core.exceptions import PushTimeoutException, TokenPruneException

from .common import logger, run_blocking
from .repository import DeviceTokenStore

PRUNE_TIMEOUT_REASON = "timeout"


class TokenPruner:
    """Idempotently delete dead tokens from one recipient's registrations.

    The delete is a set difference at the storage layer, so two sends pruning different
    tokens for the same recipient at the same time both take effect.
    """

    def __init__(self, store: DeviceTokenStore, *, timeout: float):
        self.store = store
        self.timeout = timeout

    def _remove(
        self, recipient_id: str, tokens: list[str], cancelled: threading.Event
    ) -> int:
        if cancelled.is_set():
            return 0
        store = self.store.isolated()
        try:
            return store.remove_tokens(recipient_id, tokens)
        except SQLAlchemyError as exc:
            raise TokenPruneException(recipient_id, type(exc).__name__) from exc
        finally:
            store.close()

    async def prune(self, recipient_id: str, tokens: Iterable[str]) -> int:
        doomed = sorted({token for token in tokens if token})
        if not doomed:
            return 0
        cancelled = threading.Event()
        try:
            removed = await run_blocking(
                self._remove,
                recipient_id,
                doomed,
                cancelled,
                timeout=self.timeout,
                stage="prune",
                cancelled=cancelled,
            )
        except PushTimeoutException as exc:
            # The DELETE may still commit after this point; the outcome is unknown.
            raise TokenPruneException(recipient_id, PRUNE_TIMEOUT_REASON) from exc
        logger.info(
            "Pruned %d registrations (%d dead tokens) for %s",
            removed,
            len(doomed),
            recipient_id,
            extra={"pruned_count": removed},
        )
        return removed


__all__ = ["PRUNE_TIMEOUT_REASON", "TokenPruner"]
