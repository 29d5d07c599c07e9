from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional

from ..models.credits import CreditPool
from ..models.ledger import LedgerEntry
from ..models.notification import NotificationEvent, NotificationStatus
from ..models.transfer import TransferRecord, TransferStatus


class DuplicateRecordError(Exception):
    """Raised when an insert collides with a unique field (e.g. transfer code)."""


class BaseDBManager(ABC):
    """
    DB-agnostic async manager interface.

    Every mutation that can race with another request is expressed as a
    single-row conditional update: the backend applies it only if the row
    still satisfies the condition and returns the updated row, or None
    when the condition did not hold. No in-process locking is assumed.
    """

    # Credit pools
    @abstractmethod
    async def add_credit_pool(self, pool: CreditPool) -> CreditPool:
        """
        Insert a pool. If `pool.source_transfer_id` is set and a pool for
        that transfer already exists, return the existing pool instead.
        """
        ...

    @abstractmethod
    async def get_credit_pool(self, pool_id: str) -> Optional[CreditPool]: ...

    @abstractmethod
    async def get_active_credit_pools(self, user_id: str) -> Iterable[CreditPool]:
        """Active pools of the user, oldest first."""
        ...

    @abstractmethod
    async def increment_used_credits(
        self, pool_id: str, amount: int
    ) -> Optional[CreditPool]:
        """
        Atomically add `amount` to `used_credits` if the pool is active and
        the result stays <= `total_credits`. Returns None otherwise.
        """
        ...

    @abstractmethod
    async def decrement_used_credits(
        self, pool_id: str, amount: int
    ) -> Optional[CreditPool]:
        """
        Atomically subtract `amount` from `used_credits`, floored at 0.
        Returns None if the pool does not exist.
        """
        ...

    # Transfers
    @abstractmethod
    async def add_transfer(self, transfer: TransferRecord) -> TransferRecord:
        """Insert a transfer; raises DuplicateRecordError on a code collision."""
        ...

    @abstractmethod
    async def get_transfer(self, transfer_id: str) -> Optional[TransferRecord]: ...

    @abstractmethod
    async def get_transfer_by_code(self, transfer_code: str) -> Optional[TransferRecord]: ...

    @abstractmethod
    async def update_transfer_status(
        self,
        transfer_id: str,
        expected: TransferStatus,
        new: TransferStatus,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> Optional[TransferRecord]:
        """
        Compare-and-set on `status`: move from `expected` to `new` (also
        writing `fields`) only if the stored status is still `expected`.
        Returns the updated record, or None if another writer got there first.
        """
        ...

    @abstractmethod
    async def get_transfers_sent(self, user_id: str) -> Iterable[TransferRecord]: ...

    @abstractmethod
    async def get_transfers_received(
        self, user_id: str, email: Optional[str]
    ) -> Iterable[TransferRecord]:
        """Transfers resolved by, or addressed by e-mail to, this user. Newest first."""
        ...

    # Notifications
    @abstractmethod
    async def add_notification_event(self, notification: NotificationEvent) -> NotificationEvent: ...

    @abstractmethod
    async def update_notification_status(
        self,
        notification_id: str,
        status: NotificationStatus,
        error_message: Optional[str] = None,
    ) -> Optional[NotificationEvent]: ...

    # Ledger
    @abstractmethod
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry: ...
