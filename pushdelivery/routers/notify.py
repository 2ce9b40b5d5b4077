"""Inbound push endpoints used by chat/social event handlers."""

from fastapi import APIRouter, Depends

from pushdelivery.core.monitoring import record_outcome
from pushdelivery.modules.notifications.dependencies import get_push_service
from pushdelivery.modules.notifications.schemas import (
    NotifyManyRequest,
    NotifyManyResponse,
    NotifyRequest,
    NotifyResponse,
)
from pushdelivery.modules.notifications.service import PushNotificationService

router = APIRouter(tags=["Notifications"])


@router.post("/notify", response_model=NotifyResponse, response_model_by_alias=True)
async def notify(
    request: NotifyRequest,
    service: PushNotificationService = Depends(get_push_service),
):
    """Push one notification to every registered device of the receiver.

    Returns 200 for every attempted send, including recipients with no devices; per-device
    failures are reported in `failureCount`, never as an error status.
    """
    outcome = await service.send(
        request.receiver_id,
        request.title,
        request.body,
        url=request.url,
        icon=request.icon,
        notification_type=request.notification_type,
        entity_id=request.entity_id,
    )
    record_outcome(outcome)
    return NotifyResponse.from_outcome(outcome)


@router.post(
    "/notify/batch", response_model=NotifyManyResponse, response_model_by_alias=True
)
async def notify_many(
    request: NotifyManyRequest,
    service: PushNotificationService = Depends(get_push_service),
):
    """Push the same notification to several receivers.

    Receivers that fail individually (unknown id, gateway outage) are listed in `errors` with
    their error code; the others are still delivered.
    """
    outcome = await service.send_many(
        request.receiver_ids,
        request.title,
        request.body,
        url=request.url,
        icon=request.icon,
        notification_type=request.notification_type,
        entity_id=request.entity_id,
    )
    for delivery in outcome.outcomes:
        record_outcome(delivery)
    return NotifyManyResponse.from_outcome(outcome)
