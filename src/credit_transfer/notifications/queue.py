from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class AsyncNotificationQueue(ABC):
    """
    Outbound queue for transfer notifications (invite e-mails, push).
    Delivery workers consume it; this service only produces.
    """

    @abstractmethod
    async def enqueue(self, payload: Dict[str, Any]) -> None:
        ...


class InMemoryNotificationQueue(AsyncNotificationQueue):
    """
    In-memory queue used for tests and local development.
    """

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []

    async def enqueue(self, payload: Dict[str, Any]) -> None:
        self.messages.append(payload)

    def of_type(self, notification_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m.get("type") == notification_type]
