from __future__ import annotations

from datetime import datetime, timezone

import pytest

from credit_transfer.cache.memory import InMemoryAsyncCache
from credit_transfer.db.memory import InMemoryDBManager
from credit_transfer.logging.ledger_logger import LedgerLogger
from credit_transfer.notifications.queue import InMemoryNotificationQueue
from credit_transfer.services.ledger_service import CreditPoolLedger
from credit_transfer.services.notification_service import NotificationService
from credit_transfer.services.transfer_service import TransferService

from .helpers import MutableClock


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def db() -> InMemoryDBManager:
    return InMemoryDBManager()


@pytest.fixture
def ledger(db, tmp_path) -> LedgerLogger:
    return LedgerLogger(db=db, file_path=tmp_path / "ledger.log")


@pytest.fixture
def credits(db, ledger) -> CreditPoolLedger:
    return CreditPoolLedger(db=db, ledger=ledger, cache=InMemoryAsyncCache())


@pytest.fixture
def queue() -> InMemoryNotificationQueue:
    return InMemoryNotificationQueue()


@pytest.fixture
def transfers(db, ledger, credits, queue, clock) -> TransferService:
    return TransferService(
        db=db,
        ledger=ledger,
        credits=credits,
        notifications=NotificationService(db=db, queue=queue),
        expiry_days=7,
        clock=clock,
    )
