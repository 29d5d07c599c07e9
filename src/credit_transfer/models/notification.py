from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional

from pydantic import Field

from .base import DBSerializableModel, utcnow


class NotificationType(str, Enum):
    TRANSFER_INVITE = "transfer_invite"
    TRANSFER_ACCEPTED = "transfer_accepted"
    TRANSFER_REJECTED = "transfer_rejected"
    TRANSFER_EXPIRED = "transfer_expired"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationEvent(DBSerializableModel):
    """
    Stored representation of notifications for auditing/monitoring.

    Delivery (e-mail, push) is done by whoever consumes the queue.
    """

    collection_name: ClassVar[str] = "credit_notifications"

    id: Optional[str] = Field(default=None)
    user_id: Optional[str] = None
    recipient_email: Optional[str] = None
    notification_type: NotificationType
    payload: dict = Field(default_factory=dict)
    status: NotificationStatus = NotificationStatus.PENDING
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    sent_at: Optional[datetime] = None
