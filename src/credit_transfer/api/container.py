from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..cache.memory import InMemoryAsyncCache
from ..config import Settings
from ..db.base import BaseDBManager
from ..db.memory import InMemoryDBManager
from ..logging.ledger_logger import LedgerLogger
from ..notifications.queue import AsyncNotificationQueue, InMemoryNotificationQueue
from ..services.ledger_service import CreditPoolLedger
from ..services.notification_service import NotificationService
from ..services.transfer_service import TransferService
from .auth import AuthClaimsResolver, JWTClaimsResolver


@dataclass
class ServiceContainer:
    db: BaseDBManager
    credits: CreditPoolLedger
    transfers: TransferService
    auth: AuthClaimsResolver
    queue: AsyncNotificationQueue


def create_db_manager(settings: Settings) -> BaseDBManager:
    if settings.mongo_uri:
        # Imported lazily so the in-memory backend works without motor installed
        from ..db.mongo import MongoDBManager

        return MongoDBManager.from_client_uri(settings.mongo_uri, settings.mongo_db)
    return InMemoryDBManager()


def build_container(
    settings: Settings,
    db: Optional[BaseDBManager] = None,
    auth: Optional[AuthClaimsResolver] = None,
    queue: Optional[AsyncNotificationQueue] = None,
) -> ServiceContainer:
    db = db or create_db_manager(settings)
    queue = queue or InMemoryNotificationQueue()
    ledger = LedgerLogger(db=db, file_path=settings.ledger_log_path)
    # A per-process cache goes stale once other workers write to a shared store
    cache = InMemoryAsyncCache() if isinstance(db, InMemoryDBManager) else None
    credits = CreditPoolLedger(db=db, ledger=ledger, cache=cache)
    transfers = TransferService(
        db=db,
        ledger=ledger,
        credits=credits,
        notifications=NotificationService(db=db, queue=queue),
        expiry_days=settings.transfer_expiry_days,
    )
    auth = auth or JWTClaimsResolver(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        audience=settings.jwt_audience,
    )
    return ServiceContainer(db=db, credits=credits, transfers=transfers, auth=auth, queue=queue)
