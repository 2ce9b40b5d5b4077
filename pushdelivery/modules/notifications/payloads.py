"""Notification payload construction.

`PayloadBuilder.build` validates content into an immutable `NotificationPayload`;
`PayloadBuilder.to_message` wraps it in the FCM multicast envelope with per-platform hints:

- Android/APNs: high priority with a zero TTL. A chat or social notification that arrives
  late is worse than one that never arrives, so the gateway must deliver now or drop it.
- Web push: `Urgency: high`, zero TTL, a notification that stays visible until the user
  interacts with it, and a click-through link.

Everything here is pure; no I/O happens until the dispatch engine hands the message over.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional
from urllib.parse import urljoin, urlparse

from firebase_admin import messaging

from pushdelivery.core.exceptions import InvalidPayloadException

from .models import PreferenceCategory

MESSAGE_TYPES = frozenset({"text", "image", "audio", "video", "message"})
DEFAULT_NOTIFICATION_TYPE = "system"


def category_for_type(notification_type: Optional[str]) -> PreferenceCategory:
    """Map an event type onto the preference switch that governs it."""
    kind = (notification_type or DEFAULT_NOTIFICATION_TYPE).strip().lower()
    if kind in MESSAGE_TYPES:
        return PreferenceCategory.MESSAGES
    if kind == "reaction":
        return PreferenceCategory.REACTIONS
    if kind == "follow":
        return PreferenceCategory.FOLLOWS
    if "call" in kind:
        return PreferenceCategory.CALLS
    return PreferenceCategory.SYSTEM


def validate_content(title, body) -> tuple[str, str]:
    """Return trimmed title/body or raise `InvalidPayloadException`."""
    clean_title = title.strip() if isinstance(title, str) else ""
    if not clean_title:
        raise InvalidPayloadException("title")
    clean_body = body.strip() if isinstance(body, str) else ""
    if not clean_body:
        raise InvalidPayloadException("body")
    return clean_title, clean_body


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class NotificationPayload:
    """Platform-agnostic notification content, broadcast unchanged to every token."""

    title: str
    body: str
    url: Optional[str] = None
    icon: Optional[str] = None
    notification_type: str = DEFAULT_NOTIFICATION_TYPE
    data: dict = field(default_factory=dict, compare=False)

    @property
    def category(self) -> PreferenceCategory:
        return category_for_type(self.notification_type)


class PayloadBuilder:
    """Build payloads and their FCM envelopes from configured display defaults."""

    def __init__(
        self,
        *,
        default_url: str = "/",
        default_icon: str = "/vite.svg",
        badge_icon: str = "/vite.svg",
        android_channel_id: str = "default",
        require_interaction: bool = True,
        public_base_url: str = "",
    ):
        self.default_url = default_url
        self.default_icon = default_icon
        self.badge_icon = badge_icon
        self.android_channel_id = android_channel_id
        self.require_interaction = require_interaction
        self.public_base_url = public_base_url

    @classmethod
    def from_settings(cls, settings) -> "PayloadBuilder":
        return cls(
            default_url=settings.PUSH_DEFAULT_URL,
            default_icon=settings.PUSH_DEFAULT_ICON,
            badge_icon=settings.PUSH_BADGE_ICON,
            android_channel_id=settings.PUSH_ANDROID_CHANNEL_ID,
            require_interaction=settings.PUSH_REQUIRE_INTERACTION,
            public_base_url=settings.PUBLIC_BASE_URL,
        )

    def build(
        self,
        title: str,
        body: str,
        url: Optional[str] = None,
        icon: Optional[str] = None,
        notification_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> NotificationPayload:
        clean_title, clean_body = validate_content(title, body)
        kind = _optional(notification_type) or DEFAULT_NOTIFICATION_TYPE
        target = _optional(url)
        # FCM data values must all be strings.
        data = {"url": target or self.default_url, "type": kind}
        entity = _optional(entity_id)
        if entity:
            data["entityId"] = entity
        return NotificationPayload(
            title=clean_title,
            body=clean_body,
            url=target,
            icon=_optional(icon),
            notification_type=kind,
            data=data,
        )

    def click_through_link(self, payload: NotificationPayload) -> Optional[str]:
        """Absolute HTTPS link for `fcm_options.link`; FCM rejects anything else."""
        target = payload.url or self.default_url
        candidate = urljoin(self.public_base_url, target) if self.public_base_url else target
        parsed = urlparse(candidate)
        if parsed.scheme == "https" and parsed.netloc:
            return candidate
        return None

    def android_config(self) -> messaging.AndroidConfig:
        return messaging.AndroidConfig(
            priority="high",
            ttl=0,
            notification=messaging.AndroidNotification(
                channel_id=self.android_channel_id,
                priority="high",
            ),
        )

    def apns_config(self) -> messaging.APNSConfig:
        return messaging.APNSConfig(
            headers={
                "apns-priority": "10",
                "apns-expiration": "0",
                "apns-push-type": "alert",
            }
        )

    def webpush_config(self, payload: NotificationPayload) -> messaging.WebpushConfig:
        link = self.click_through_link(payload)
        return messaging.WebpushConfig(
            headers={"Urgency": "high", "TTL": "0"},
            notification=messaging.WebpushNotification(
                title=payload.title,
                body=payload.body,
                icon=payload.icon or self.default_icon,
                badge=self.badge_icon,
                require_interaction=self.require_interaction,
                data={"url": payload.data["url"]},
            ),
            fcm_options=messaging.WebpushFCMOptions(link=link) if link else None,
        )

    def to_message(
        self, payload: NotificationPayload, tokens: Iterable[str]
    ) -> messaging.MulticastMessage:
        return messaging.MulticastMessage(
            tokens=list(tokens),
            notification=messaging.Notification(title=payload.title, body=payload.body),
            data=dict(payload.data),
            android=self.android_config(),
            apns=self.apns_config(),
            webpush=self.webpush_config(payload),
        )


__all__ = [
    "NotificationPayload",
    "PayloadBuilder",
    "category_for_type",
    "validate_content",
]
