from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional

from pydantic import BaseModel, Field

from .base import DBSerializableModel, utcnow


class CreditType(str, Enum):
    VOCAL = "vocal"
    INSTRUMENTAL = "instrumental"


class OrderType(str, Enum):
    VOCAL = "vocal"
    INSTRUMENTAL = "instrumental"
    CUSTOM_LYRIC = "custom_lyric"


# Plan ids used for pools created by accepting a transfer
TRANSFER_PLAN_IDS: dict[CreditType, str] = {
    CreditType.VOCAL: "single_transfer",
    CreditType.INSTRUMENTAL: "single_instrumental_transfer",
}


def credit_type_for_plan(plan_id: str) -> CreditType:
    if "instrumental" in plan_id:
        return CreditType.INSTRUMENTAL
    return CreditType.VOCAL


def transfer_plan_id(credit_type: CreditType) -> str:
    return TRANSFER_PLAN_IDS[CreditType(credit_type)]


def credit_type_for_order(order_type: OrderType) -> CreditType:
    """Vocal credits cover vocal and custom-lyric orders; instrumental only instrumental."""
    if OrderType(order_type) == OrderType.INSTRUMENTAL:
        return CreditType.INSTRUMENTAL
    return CreditType.VOCAL


class CreditPool(DBSerializableModel):
    """
    A batch of credits granted to a user from one origin (purchase or transfer).
    """

    collection_name: ClassVar[str] = "user_credits"
    unique_fields: ClassVar[tuple[str, ...]] = ("source_transfer_id",)

    id: Optional[str] = Field(default=None)
    user_id: str
    plan_id: str = Field(description="Origin tag; '*_transfer' for transfer-received pools.")
    total_credits: int = Field(ge=0)
    used_credits: int = Field(default=0, ge=0)
    is_active: bool = True
    source_transfer_id: Optional[str] = Field(
        default=None,
        description="Transfer whose acceptance created this pool.",
    )
    purchased_at: datetime = Field(default_factory=utcnow)

    @property
    def credit_type(self) -> CreditType:
        return credit_type_for_plan(self.plan_id)

    @property
    def available(self) -> int:
        if not self.is_active:
            return 0
        return max(self.total_credits - self.used_credits, 0)


class PoolAllocation(BaseModel):
    """Credits reserved from a single pool."""

    pool_id: str
    amount: int = Field(gt=0)


class CreditBalance(BaseModel):
    user_id: str
    vocal: int = 0
    instrumental: int = 0

    @property
    def total(self) -> int:
        return self.vocal + self.instrumental
