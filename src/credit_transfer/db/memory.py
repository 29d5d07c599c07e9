from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from .base import BaseDBManager, DuplicateRecordError
from ..models.credits import CreditPool
from ..models.ledger import LedgerEntry
from ..models.notification import NotificationEvent, NotificationStatus
from ..models.transfer import TransferRecord, TransferStatus


class InMemoryDBManager(BaseDBManager):
    """
    Simple in-memory implementation used for tests and local development.
    NOT suitable for production, but exercises the abstraction and services.

    Stored rows are copied on the way in and out so callers never share
    state with the store. Conditional updates run without awaiting, which
    makes them atomic under a single event loop.
    """

    def __init__(self) -> None:
        self._pools: Dict[str, CreditPool] = {}
        self._transfers: Dict[str, TransferRecord] = {}
        self._notifications: List[NotificationEvent] = []
        self._ledger: List[LedgerEntry] = []
        self._id_counter: int = 0

    def _next_id(self) -> str:
        self._id_counter += 1
        return str(self._id_counter)

    @property
    def ledger_entries(self) -> List[LedgerEntry]:
        return list(self._ledger)

    @property
    def notifications(self) -> List[NotificationEvent]:
        return [n.model_copy(deep=True) for n in self._notifications]

    # Credit pools
    async def add_credit_pool(self, pool: CreditPool) -> CreditPool:
        if pool.source_transfer_id is not None:
            for existing in self._pools.values():
                if existing.source_transfer_id == pool.source_transfer_id:
                    return existing.model_copy(deep=True)
        if pool.id is None:
            pool.id = self._next_id()
        self._pools[pool.id] = pool.model_copy(deep=True)
        return pool

    async def get_credit_pool(self, pool_id: str) -> Optional[CreditPool]:
        pool = self._pools.get(pool_id)
        return pool.model_copy(deep=True) if pool else None

    async def get_active_credit_pools(self, user_id: str) -> Iterable[CreditPool]:
        pools = [
            p.model_copy(deep=True)
            for p in self._pools.values()
            if p.user_id == user_id and p.is_active
        ]
        pools.sort(key=lambda p: p.purchased_at)
        return pools

    async def increment_used_credits(
        self, pool_id: str, amount: int
    ) -> Optional[CreditPool]:
        pool = self._pools.get(pool_id)
        if pool is None or not pool.is_active:
            return None
        if pool.used_credits + amount > pool.total_credits:
            return None
        pool.used_credits += amount
        return pool.model_copy(deep=True)

    async def decrement_used_credits(
        self, pool_id: str, amount: int
    ) -> Optional[CreditPool]:
        pool = self._pools.get(pool_id)
        if pool is None:
            return None
        pool.used_credits = max(pool.used_credits - amount, 0)
        return pool.model_copy(deep=True)

    # Transfers
    async def add_transfer(self, transfer: TransferRecord) -> TransferRecord:
        code = transfer.transfer_code.upper()
        if any(t.transfer_code == code for t in self._transfers.values()):
            raise DuplicateRecordError(f"transfer code {code} already exists")
        transfer.transfer_code = code
        if transfer.id is None:
            transfer.id = self._next_id()
        self._transfers[transfer.id] = transfer.model_copy(deep=True)
        return transfer

    async def get_transfer(self, transfer_id: str) -> Optional[TransferRecord]:
        transfer = self._transfers.get(transfer_id)
        return transfer.model_copy(deep=True) if transfer else None

    async def get_transfer_by_code(self, transfer_code: str) -> Optional[TransferRecord]:
        for transfer in self._transfers.values():
            if transfer.transfer_code == transfer_code:
                return transfer.model_copy(deep=True)
        return None

    async def update_transfer_status(
        self,
        transfer_id: str,
        expected: TransferStatus,
        new: TransferStatus,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> Optional[TransferRecord]:
        transfer = self._transfers.get(transfer_id)
        if transfer is None or transfer.status != expected:
            return None
        updated = transfer.model_copy(update={**(fields or {}), "status": new}, deep=True)
        self._transfers[transfer_id] = updated
        return updated.model_copy(deep=True)

    async def get_transfers_sent(self, user_id: str) -> Iterable[TransferRecord]:
        sent = [
            t.model_copy(deep=True)
            for t in self._transfers.values()
            if t.from_user_id == user_id
        ]
        sent.sort(key=lambda t: t.created_at, reverse=True)
        return sent

    async def get_transfers_received(
        self, user_id: str, email: Optional[str]
    ) -> Iterable[TransferRecord]:
        received = [
            t.model_copy(deep=True)
            for t in self._transfers.values()
            if t.to_user_id == user_id
            or (email is not None and t.to_user_email == email.lower())
        ]
        received.sort(key=lambda t: t.created_at, reverse=True)
        return received

    # Notifications
    async def add_notification_event(
        self, notification: NotificationEvent
    ) -> NotificationEvent:
        if notification.id is None:
            notification.id = self._next_id()
        self._notifications.append(notification.model_copy(deep=True))
        return notification

    async def update_notification_status(
        self,
        notification_id: str,
        status: NotificationStatus,
        error_message: Optional[str] = None,
    ) -> Optional[NotificationEvent]:
        for index, stored in enumerate(self._notifications):
            if stored.id == notification_id:
                updated = stored.model_copy(
                    update={"status": status, "error_message": error_message}, deep=True
                )
                self._notifications[index] = updated
                return updated.model_copy(deep=True)
        return None

    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.id is None:
            entry.id = self._next_id()
        self._ledger.append(entry)
        return entry
