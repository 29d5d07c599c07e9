from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..db.base import BaseDBManager
from ..models.credits import CreditPool
from ..models.ledger import LedgerEntry, LedgerEventType
from ..models.transfer import TransferRecord


logger = logging.getLogger(__name__)


class LedgerLogger:
    """
    Audit trail for credit movements and transfer state changes.

    Entries are stored through the DB manager first. When `file_path` is
    set each entry is also appended as one JSON line; that mirror feeds
    log shipping and is allowed to miss lines.
    """

    def __init__(self, db: BaseDBManager, file_path: Optional[Path] = None) -> None:
        self._db = db
        self._file_path = file_path
        if self._file_path is not None:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)

    async def log_movement(
        self,
        event_type: LedgerEventType,
        pool: CreditPool,
        amount: int,
        message: str,
        correlation_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> LedgerEntry:
        """Record credits leaving or returning to `pool` (state after the write)."""
        return await self._write(
            LedgerEntry(
                event_type=event_type,
                user_id=pool.user_id,
                pool_id=pool.id,
                amount=amount,
                message=message,
                details={
                    "plan_id": pool.plan_id,
                    "used_credits": pool.used_credits,
                    "total_credits": pool.total_credits,
                    **(details or {}),
                },
                correlation_id=correlation_id,
            )
        )

    async def log_transfer(
        self,
        transfer: TransferRecord,
        message: str,
        user_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> LedgerEntry:
        return await self._write(
            LedgerEntry(
                event_type=LedgerEventType.TRANSFER,
                user_id=user_id or transfer.from_user_id,
                amount=transfer.credits_amount,
                message=message,
                details={
                    "transfer_code": transfer.transfer_code,
                    "status": transfer.status.value,
                    "credit_type": transfer.credit_type.value,
                    "from_user_id": transfer.from_user_id,
                    "recipient": transfer.recipient.kind,
                    **(details or {}),
                },
                correlation_id=transfer.id,
            )
        )

    async def log_error(
        self,
        message: str,
        details: dict[str, Any],
        user_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> LedgerEntry:
        logger.error(
            "%s: %s", message, details, extra={"user_id": user_id, "correlation_id": correlation_id}
        )
        return await self._write(
            LedgerEntry(
                event_type=LedgerEventType.ERROR,
                user_id=user_id,
                pool_id=details.get("pool_id"),
                message=message,
                details=details,
                correlation_id=correlation_id,
            )
        )

    async def _write(self, entry: LedgerEntry) -> LedgerEntry:
        entry = await self._db.add_ledger_entry(entry)
        if self._file_path is None:
            return entry
        try:
            with self._file_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry.serialize_for_db(), default=str) + "\n")
        except OSError as exc:
            logger.warning("Could not append to ledger file %s: %s", self._file_path, exc)
        return entry
