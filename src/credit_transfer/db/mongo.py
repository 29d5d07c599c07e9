from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Type, TypeVar
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .base import BaseDBManager, DuplicateRecordError
from ..models.base import DBSerializableModel
from ..models.credits import CreditPool
from ..models.ledger import LedgerEntry
from ..models.notification import NotificationEvent, NotificationStatus
from ..models.transfer import TransferRecord, TransferStatus


TModel = TypeVar("TModel", bound=DBSerializableModel)


class MongoDBManager(BaseDBManager):
    """
    MongoDB implementation of BaseDBManager using motor (async driver).

    IDs are stored as string-based `_id` fields and mirrored in the `id`
    attribute of each Pydantic model, which keeps the rest of the system
    agnostic of MongoDB specifics.

    Single-document writes are atomic in MongoDB, so every conditional
    update is a `find_one_and_update` whose filter carries the condition.
    """

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._db = database

    @classmethod
    def from_client_uri(cls, uri: str, db_name: str) -> "MongoDBManager":
        client = AsyncIOMotorClient(uri, tz_aware=True)
        return cls(client[db_name])

    async def ensure_indexes(self) -> None:
        await self._db[TransferRecord.collection_name].create_indexes(
            [
                IndexModel([("transfer_code", ASCENDING)], unique=True, name="uq_transfer_code"),
                IndexModel([("from_user_id", ASCENDING), ("created_at", DESCENDING)]),
                IndexModel([("to_user_id", ASCENDING)]),
                IndexModel([("recipient.email", ASCENDING)]),
            ]
        )
        await self._db[CreditPool.collection_name].create_indexes(
            [
                IndexModel([("user_id", ASCENDING), ("purchased_at", ASCENDING)]),
                IndexModel(
                    [("source_transfer_id", ASCENDING)],
                    unique=True,
                    name="uq_source_transfer_id",
                    partialFilterExpression={"source_transfer_id": {"$type": "string"}},
                ),
            ]
        )

    # Helper utilities
    @staticmethod
    def _prepare_insert(model: TModel) -> Dict[str, Any]:
        data = model.serialize_for_db()
        model_id = getattr(model, "id", None)
        if not model_id:
            model_id = uuid4().hex
            setattr(model, "id", model_id)
            data["id"] = model_id
        data["_id"] = model_id
        return data

    @staticmethod
    def _decode(model_cls: Type[TModel], doc: Optional[Mapping[str, Any]]) -> Optional[TModel]:
        if doc is None:
            return None
        data = dict(doc)
        if "_id" in data and "id" not in data:
            data["id"] = str(data["_id"])
        data.pop("_id", None)
        return model_cls.model_validate(data)

    # Credit pools
    async def add_credit_pool(self, pool: CreditPool) -> CreditPool:
        col = self._db[CreditPool.collection_name]
        data = self._prepare_insert(pool)
        try:
            await col.insert_one(data)
        except DuplicateKeyError:
            if pool.source_transfer_id is None:
                raise
            doc = await col.find_one({"source_transfer_id": pool.source_transfer_id})
            existing = self._decode(CreditPool, doc)
            if existing is None:
                raise
            return existing
        return pool

    async def get_credit_pool(self, pool_id: str) -> Optional[CreditPool]:
        col = self._db[CreditPool.collection_name]
        doc = await col.find_one({"_id": pool_id})
        return self._decode(CreditPool, doc)

    async def get_active_credit_pools(self, user_id: str) -> Iterable[CreditPool]:
        col = self._db[CreditPool.collection_name]
        cursor = col.find({"user_id": user_id, "is_active": True}).sort("purchased_at", 1)
        docs = await cursor.to_list(length=None)
        return [self._decode(CreditPool, d) for d in docs if d is not None]  # type: ignore[misc]

    async def increment_used_credits(
        self, pool_id: str, amount: int
    ) -> Optional[CreditPool]:
        col = self._db[CreditPool.collection_name]
        doc = await col.find_one_and_update(
            {
                "_id": pool_id,
                "is_active": True,
                "$expr": {
                    "$lte": [{"$add": ["$used_credits", amount]}, "$total_credits"]
                },
            },
            {"$inc": {"used_credits": amount}},
            return_document=ReturnDocument.AFTER,
        )
        return self._decode(CreditPool, doc)

    async def decrement_used_credits(
        self, pool_id: str, amount: int
    ) -> Optional[CreditPool]:
        col = self._db[CreditPool.collection_name]
        doc = await col.find_one_and_update(
            {"_id": pool_id},
            [
                {
                    "$set": {
                        "used_credits": {
                            "$max": [0, {"$subtract": ["$used_credits", amount]}]
                        }
                    }
                }
            ],
            return_document=ReturnDocument.AFTER,
        )
        return self._decode(CreditPool, doc)

    # Transfers
    async def add_transfer(self, transfer: TransferRecord) -> TransferRecord:
        col = self._db[TransferRecord.collection_name]
        transfer.transfer_code = transfer.transfer_code.upper()
        data = self._prepare_insert(transfer)
        try:
            await col.insert_one(data)
        except DuplicateKeyError as exc:
            raise DuplicateRecordError(str(exc)) from exc
        return transfer

    async def get_transfer(self, transfer_id: str) -> Optional[TransferRecord]:
        col = self._db[TransferRecord.collection_name]
        doc = await col.find_one({"_id": transfer_id})
        return self._decode(TransferRecord, doc)

    async def get_transfer_by_code(self, transfer_code: str) -> Optional[TransferRecord]:
        col = self._db[TransferRecord.collection_name]
        doc = await col.find_one({"transfer_code": transfer_code})
        return self._decode(TransferRecord, doc)

    async def update_transfer_status(
        self,
        transfer_id: str,
        expected: TransferStatus,
        new: TransferStatus,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> Optional[TransferRecord]:
        col = self._db[TransferRecord.collection_name]
        doc = await col.find_one_and_update(
            {"_id": transfer_id, "status": expected.value},
            {"$set": {**(fields or {}), "status": new.value}},
            return_document=ReturnDocument.AFTER,
        )
        return self._decode(TransferRecord, doc)

    async def get_transfers_sent(self, user_id: str) -> Iterable[TransferRecord]:
        col = self._db[TransferRecord.collection_name]
        cursor = col.find({"from_user_id": user_id}).sort("created_at", -1)
        docs = await cursor.to_list(length=None)
        return [self._decode(TransferRecord, d) for d in docs if d is not None]  # type: ignore[misc]

    async def get_transfers_received(
        self, user_id: str, email: Optional[str]
    ) -> Iterable[TransferRecord]:
        col = self._db[TransferRecord.collection_name]
        clauses: list[Dict[str, Any]] = [{"to_user_id": user_id}]
        if email:
            clauses.append({"recipient.kind": "email", "recipient.email": email.lower()})
        cursor = col.find({"$or": clauses}).sort("created_at", -1)
        docs = await cursor.to_list(length=None)
        return [self._decode(TransferRecord, d) for d in docs if d is not None]  # type: ignore[misc]

    # Notifications
    async def add_notification_event(
        self, notification: NotificationEvent
    ) -> NotificationEvent:
        col = self._db[NotificationEvent.collection_name]
        data = self._prepare_insert(notification)
        await col.insert_one(data)
        return notification

    async def update_notification_status(
        self,
        notification_id: str,
        status: NotificationStatus,
        error_message: Optional[str] = None,
    ) -> Optional[NotificationEvent]:
        col = self._db[NotificationEvent.collection_name]
        doc = await col.find_one_and_update(
            {"_id": notification_id},
            {"$set": {"status": status.value, "error_message": error_message}},
            return_document=ReturnDocument.AFTER,
        )
        return self._decode(NotificationEvent, doc)

    # Ledger
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        col = self._db[LedgerEntry.collection_name]
        data = self._prepare_insert(entry)
        await col.insert_one(data)
        return entry
