"""Recipient resolution: map a recipient id to its current device-token snapshot."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from pushdelivery.core.exceptions import (
    DirectoryUnavailableException,
    InvalidRecipientException,
    RecipientNotFoundException,
)

from .common import logger, run_blocking
from .repository import DeviceTokenStore, TokenSnapshot


def normalize_recipient_id(recipient_id) -> str:
    """Trim surrounding whitespace; blank ids are a caller error."""
    normalized = str(recipient_id).strip() if recipient_id is not None else ""
    if not normalized:
        raise InvalidRecipientException()
    return normalized


class RecipientResolver:
    """Resolve recipients through the store's indexed point lookup.

    Distinguishes an unknown recipient (`RecipientNotFoundException`) from a known one with
    zero devices (empty snapshot), and reports backend trouble as
    `DirectoryUnavailableException` rather than falling back to scanning the directory.
    """

    def __init__(self, store: DeviceTokenStore, *, timeout: float):
        self.store = store
        self.timeout = timeout

    def _lookup(self, recipient_id: str) -> TokenSnapshot | None:
        store = self.store.isolated()
        try:
            return store.snapshot(recipient_id)
        except SQLAlchemyError as exc:
            logger.error("Directory lookup failed for %s: %s", recipient_id, exc)
            store.db.rollback()
            raise DirectoryUnavailableException(type(exc).__name__) from exc
        finally:
            store.close()

    async def resolve(self, recipient_id: str) -> TokenSnapshot:
        normalized = normalize_recipient_id(recipient_id)
        snapshot = await run_blocking(
            self._lookup, normalized, timeout=self.timeout, stage="resolution"
        )
        if snapshot is None:
            logger.info("Recipient %s is not in the directory", normalized)
            raise RecipientNotFoundException(normalized)
        logger.debug(
            "Resolved %s to %d distinct tokens", normalized, len(snapshot.tokens)
        )
        return snapshot
