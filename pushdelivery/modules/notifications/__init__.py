"""Push delivery domain package."""

from .classifier import Classification, classify_results
from .dispatch import DispatchEngine, DispatchResult, DispatchStatus
from .models import (
    DevicePlatform,
    DeviceToken,
    NotificationPreference,
    PreferenceCategory,
    Recipient,
)
from .payloads import NotificationPayload, PayloadBuilder
from .pruner import TokenPruner
from .repository import DeviceTokenStore, TokenSnapshot
from .resolver import RecipientResolver
from .service import DeliveryOutcome, PushNotificationService, SendState

__all__ = [
    "Classification",
    "classify_results",
    "DeliveryOutcome",
    "DevicePlatform",
    "DeviceToken",
    "DeviceTokenStore",
    "DispatchEngine",
    "DispatchResult",
    "DispatchStatus",
    "NotificationPayload",
    "NotificationPreference",
    "PayloadBuilder",
    "PreferenceCategory",
    "PushNotificationService",
    "Recipient",
    "RecipientResolver",
    "SendState",
    "TokenPruner",
    "TokenSnapshot",
]
