from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import Field

from .base import DBSerializableModel, utcnow


class LedgerEventType(str, Enum):
    RESERVE = "reserve"
    RELEASE = "release"
    GRANT = "grant"
    CONSUME = "consume"
    TRANSFER = "transfer"
    ERROR = "error"


class LedgerEntry(DBSerializableModel):
    """
    One line of the audit trail: a credit movement on a pool, a transfer
    state change, or a failure that left something to reconcile.
    """

    collection_name: ClassVar[str] = "credit_ledger"

    id: Optional[str] = Field(default=None)
    event_type: LedgerEventType
    user_id: Optional[str] = None
    pool_id: Optional[str] = None
    amount: Optional[int] = None
    correlation_id: Optional[str] = Field(
        default=None,
        description="Transfer id when the entry belongs to a transfer.",
    )
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
