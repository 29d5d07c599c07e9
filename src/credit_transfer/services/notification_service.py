from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..db.base import BaseDBManager
from ..models.notification import (
    NotificationEvent,
    NotificationStatus,
    NotificationType,
)
from ..models.transfer import TransferRecord
from ..notifications.queue import AsyncNotificationQueue


logger = logging.getLogger(__name__)


class NotificationService:
    """
    Records transfer notifications and hands them to the delivery queue.

    Notifications never decide the outcome of a transfer: a failure to
    enqueue is stored on the event and logged, not raised.
    """

    def __init__(self, db: BaseDBManager, queue: AsyncNotificationQueue) -> None:
        self._db = db
        self._queue = queue

    async def notify_transfer_invite(
        self, transfer: TransferRecord, sender_name: Optional[str] = None
    ) -> Optional[NotificationEvent]:
        # Shareable-code transfers are handed out by the sender themselves
        if transfer.to_user_email is None:
            return None
        return await self._publish(
            NotificationType.TRANSFER_INVITE,
            user_id=transfer.to_user_id,
            recipient_email=transfer.to_user_email,
            payload={
                "transfer_id": transfer.id,
                "transfer_code": transfer.transfer_code,
                "from_user_name": sender_name or "",
                "credits_amount": transfer.credits_amount,
                "credit_type": transfer.credit_type.value,
                "message": transfer.message,
                "expires_at": transfer.expires_at.isoformat(),
            },
        )

    async def notify_transfer_resolved(
        self, transfer: TransferRecord, notification_type: NotificationType
    ) -> Optional[NotificationEvent]:
        return await self._publish(
            notification_type,
            user_id=transfer.from_user_id,
            recipient_email=None,
            payload={
                "transfer_id": transfer.id,
                "transfer_code": transfer.transfer_code,
                "credits_amount": transfer.credits_amount,
                "credit_type": transfer.credit_type.value,
                "resolved_by": transfer.to_user_id,
            },
        )

    async def _publish(
        self,
        notification_type: NotificationType,
        user_id: Optional[str],
        recipient_email: Optional[str],
        payload: Dict[str, Any],
    ) -> NotificationEvent:
        event = NotificationEvent(
            user_id=user_id,
            recipient_email=recipient_email,
            notification_type=notification_type,
            payload=payload,
            status=NotificationStatus.PENDING,
        )
        event = await self._db.add_notification_event(event)

        try:
            await self._queue.enqueue(
                {
                    "notification_id": event.id,
                    "type": event.notification_type.value,
                    "user_id": user_id,
                    "recipient_email": recipient_email,
                    "payload": event.payload,
                }
            )
        except Exception as exc:  # queue backends raise their own error types
            logger.warning(
                "Failed to enqueue %s notification: %s",
                notification_type.value,
                exc,
                extra={"notification_id": event.id},
            )
            event.status = NotificationStatus.FAILED
            event.error_message = str(exc)
            if event.id is not None:
                stored = await self._db.update_notification_status(
                    event.id, NotificationStatus.FAILED, str(exc)
                )
                if stored is not None:
                    event = stored
        return event
