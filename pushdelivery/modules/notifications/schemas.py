"""Pydantic schemas for the `/notify` endpoint.

Field names follow the camelCase contract used by the event producers.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .service import DeliveryOutcome, FanOutOutcome


class NotifyRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    receiver_id: str = Field(..., alias="receiverId", min_length=1)
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    url: Optional[str] = None
    icon: Optional[str] = None
    notification_type: Optional[str] = Field(default=None, alias="type")
    entity_id: Optional[str] = Field(default=None, alias="entityId")


class NotifyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    status: str
    sent_count: int = Field(..., alias="sentCount")
    failure_count: int = Field(..., alias="failureCount")
    pruned_count: int = Field(0, alias="prunedCount")
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: DeliveryOutcome) -> "NotifyResponse":
        return cls(
            status=outcome.state.value,
            sent_count=outcome.success_count,
            failure_count=outcome.failure_count,
            pruned_count=len(outcome.pruned_tokens),
            warnings=list(outcome.warnings),
        )


class NotifyManyRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    receiver_ids: List[str] = Field(..., alias="receiverIds", min_length=1)
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    url: Optional[str] = None
    icon: Optional[str] = None
    notification_type: Optional[str] = Field(default=None, alias="type")
    entity_id: Optional[str] = Field(default=None, alias="entityId")


class NotifyManyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    recipient_count: int = Field(..., alias="recipientCount")
    sent_count: int = Field(..., alias="sentCount")
    failure_count: int = Field(..., alias="failureCount")
    pruned_count: int = Field(0, alias="prunedCount")
    errors: Dict[str, str] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: FanOutOutcome) -> "NotifyManyResponse":
        return cls(
            recipient_count=outcome.recipient_count,
            sent_count=outcome.success_count,
            failure_count=outcome.failure_count,
            pruned_count=outcome.pruned_count,
            errors=dict(outcome.errors),
            warnings=list(outcome.warnings),
        )


__all__ = ["NotifyManyRequest", "NotifyManyResponse", "NotifyRequest", "NotifyResponse"]
