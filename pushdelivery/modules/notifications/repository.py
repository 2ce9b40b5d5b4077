"""Data-access helpers for the push delivery domain.

`DeviceTokenStore` is the only component that touches the device/recipient tables. Reads are
indexed point lookups; the prune path is a single set-difference DELETE so concurrent sends
removing different dead tokens for the same recipient never overwrite each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from pushdelivery.modules.notifications import models as notification_models


@dataclass(frozen=True)
class TokenSnapshot:
    """Point-in-time view of one recipient's registrations."""

    recipient_id: str
    tokens: frozenset[str]
    muted_categories: frozenset[notification_models.PreferenceCategory] = frozenset()

    @property
    def has_devices(self) -> bool:
        return bool(self.tokens)


class DeviceTokenStore:
    """Encapsulate device-token and recipient-directory database operations."""

    def __init__(self, db: Session):
        self.db = db

    def isolated(self) -> "DeviceTokenStore":
        """A store on its own session, bound to the same engine.

        Work handed to a worker thread uses one of these, so a thread that outlives the
        request never touches the request session after `get_db` has closed it.
        """
        return DeviceTokenStore(Session(bind=self.db.get_bind()))

    def close(self) -> None:
        self.db.close()

    # ----------------------------------------------------------------- queries
    def get_recipient(self, recipient_id: str) -> Optional[notification_models.Recipient]:
        return self.db.get(notification_models.Recipient, recipient_id)

    def tokens_for(self, recipient_id: str) -> frozenset[str]:
        """Distinct, non-empty tokens registered for the recipient."""
        rows = self.db.execute(
            select(notification_models.DeviceToken.token)
            .where(notification_models.DeviceToken.recipient_id == recipient_id)
            .distinct()
        ).scalars()
        return frozenset(token for token in rows if isinstance(token, str) and token)

    def snapshot(self, recipient_id: str) -> Optional[TokenSnapshot]:
        """Return the recipient's token set, or None when the recipient is unknown."""
        recipient = self.get_recipient(recipient_id)
        if recipient is None:
            return None
        prefs = self.db.get(notification_models.NotificationPreference, recipient_id)
        return TokenSnapshot(
            recipient_id=recipient.id,
            tokens=self.tokens_for(recipient.id),
            muted_categories=prefs.muted_categories() if prefs else frozenset(),
        )

    # --------------------------------------------------------------- mutations
    def ensure_recipient(self, recipient_id: str) -> notification_models.Recipient:
        recipient = self.get_recipient(recipient_id)
        if recipient:
            return recipient
        recipient = notification_models.Recipient(id=recipient_id)
        self.db.add(recipient)
        self.db.commit()
        self.db.refresh(recipient)
        return recipient

    def register_token(
        self,
        recipient_id: str,
        token: str,
        *,
        device_id: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> notification_models.DeviceToken:
        """Upsert a device registration; the client registration flow owns this path."""
        self.ensure_recipient(recipient_id)
        device_id = device_id or token
        device = self.db.execute(
            select(notification_models.DeviceToken).where(
                notification_models.DeviceToken.recipient_id == recipient_id,
                notification_models.DeviceToken.device_id == device_id,
            )
        ).scalar_one_or_none()
        if device is None:
            device = notification_models.DeviceToken(
                recipient_id=recipient_id, device_id=device_id
            )
            self.db.add(device)
        device.token = token
        device.platform = platform
        self.db.commit()
        self.db.refresh(device)
        return device

    def remove_tokens(self, recipient_id: str, tokens: Iterable[str]) -> int:
        """Delete every registration of the given tokens for the recipient.

        Tokens that are not registered are ignored, so repeating the call is harmless.
        Returns the number of device rows removed.
        """
        doomed = sorted(set(tokens))
        if not doomed:
            return 0
        try:
            result = self.db.execute(
                delete(notification_models.DeviceToken)
                .where(notification_models.DeviceToken.recipient_id == recipient_id)
                .where(notification_models.DeviceToken.token.in_(doomed))
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result.rowcount or 0

    def set_preferences(
        self, recipient_id: str, **switches: bool
    ) -> notification_models.NotificationPreference:
        self.ensure_recipient(recipient_id)
        prefs = self.db.get(notification_models.NotificationPreference, recipient_id)
        if prefs is None:
            prefs = notification_models.NotificationPreference(recipient_id=recipient_id)
            self.db.add(prefs)
        for category in notification_models.PreferenceCategory:
            if category.value in switches:
                setattr(prefs, category.value, bool(switches[category.value]))
        self.db.commit()
        self.db.refresh(prefs)
        return prefs


__all__ = ["DeviceTokenStore", "TokenSnapshot"]
