from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, ClassVar, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field

from .base import DBSerializableModel, utcnow
from .credits import CreditType, PoolAllocation


class TransferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class TransferAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class EmailRecipient(BaseModel):
    kind: Literal["email"] = "email"
    email: EmailStr

    def matches(self, email: Optional[str]) -> bool:
        return email is not None and self.email.lower() == email.strip().lower()


class AnyoneWithCode(BaseModel):
    kind: Literal["anyone_with_code"] = "anyone_with_code"

    def matches(self, email: Optional[str]) -> bool:
        return True


class TransferLookup(BaseModel):
    """How a caller names a transfer: by record id or by its shareable code."""

    transfer_id: Optional[str] = None
    transfer_code: Optional[str] = None

    @classmethod
    def by_id(cls, transfer_id: str) -> "TransferLookup":
        return cls(transfer_id=transfer_id)

    @classmethod
    def by_code(cls, transfer_code: str) -> "TransferLookup":
        return cls(transfer_code=transfer_code.strip().upper())


TransferRecipient = Annotated[
    Union[EmailRecipient, AnyoneWithCode], Field(discriminator="kind")
]


class TransferRecord(DBSerializableModel):
    """
    A pending offer to move credits from a sender to a recipient.

    The sender's credits are reserved (``used_credits`` incremented on the
    pools listed in ``source_allocations``) before the record is stored.
    """

    collection_name: ClassVar[str] = "credit_transfers"
    unique_fields: ClassVar[tuple[str, ...]] = ("transfer_code",)

    id: Optional[str] = Field(default=None)
    transfer_code: str
    from_user_id: str
    recipient: TransferRecipient
    to_user_id: Optional[str] = None
    credits_amount: int = Field(gt=0)
    credit_type: CreditType
    status: TransferStatus = TransferStatus.PENDING
    source_credit_id: str = Field(description="First pool the reserved credits came from.")
    source_allocations: List[PoolAllocation] = Field(default_factory=list)
    message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_shareable_code(self) -> bool:
        return isinstance(self.recipient, AnyoneWithCode)

    @property
    def to_user_email(self) -> Optional[str]:
        if isinstance(self.recipient, EmailRecipient):
            return self.recipient.email
        return None

    def allocations(self) -> List[PoolAllocation]:
        # Records written before multi-pool reservations only carry the source pool
        if self.source_allocations:
            return list(self.source_allocations)
        return [PoolAllocation(pool_id=self.source_credit_id, amount=self.credits_amount)]

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
