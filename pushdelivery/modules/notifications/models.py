"""SQLAlchemy models and enums for the push delivery domain.

`Recipient` mirrors the identity system's user directory (read-only here), `DeviceToken`
holds one row per registered client installation, and `NotificationPreference` stores the
per-category mute switches consulted before dispatch.
"""

from __future__ import annotations

import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from pushdelivery.models.base import Base

CURRENT_TIMESTAMP = text("CURRENT_TIMESTAMP")


class DevicePlatform(str, enum.Enum):
    ANDROID = "android"
    IOS = "ios"
    WEB = "web"


class PreferenceCategory(str, enum.Enum):
    MESSAGES = "messages"
    REACTIONS = "reactions"
    FOLLOWS = "follows"
    CALLS = "calls"
    SYSTEM = "system"


class Recipient(Base):
    """A user known to the identity directory."""

    __tablename__ = "recipients"

    id = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=CURRENT_TIMESTAMP)

    devices = relationship(
        "DeviceToken",
        back_populates="recipient",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    preferences = relationship(
        "NotificationPreference",
        back_populates="recipient",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class DeviceToken(Base):
    """A push token issued to one installed client instance."""

    __tablename__ = "device_tokens"
    __table_args__ = (
        UniqueConstraint("recipient_id", "device_id", name="uq_device_tokens_recipient_device"),
        Index("ix_device_tokens_recipient_token", "recipient_id", "token"),
    )

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(
        String, ForeignKey("recipients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    device_id = Column(String, nullable=False)
    token = Column(String, nullable=False)
    platform = Column(String, nullable=True)
    registered_at = Column(DateTime(timezone=True), server_default=CURRENT_TIMESTAMP)

    recipient = relationship("Recipient", back_populates="devices")


class NotificationPreference(Base):
    """Per-recipient category switches; a missing row allows everything."""

    __tablename__ = "notification_preferences"

    recipient_id = Column(
        String, ForeignKey("recipients.id", ondelete="CASCADE"), primary_key=True
    )
    messages = Column(Boolean, default=True, nullable=False)
    reactions = Column(Boolean, default=True, nullable=False)
    follows = Column(Boolean, default=True, nullable=False)
    calls = Column(Boolean, default=True, nullable=False)
    system = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=CURRENT_TIMESTAMP)

    recipient = relationship("Recipient", back_populates="preferences")

    def muted_categories(self) -> frozenset[PreferenceCategory]:
        return frozenset(
            category
            for category in PreferenceCategory
            if getattr(self, category.value) is False
        )


__all__ = [
    "DevicePlatform",
    "PreferenceCategory",
    "Recipient",
    "DeviceToken",
    "NotificationPreference",
]
