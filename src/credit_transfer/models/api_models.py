from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .credits import CreditType
from .transfer import TransferAction, TransferRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TransferActionRequest(CamelModel):
    transfer_id: Optional[str] = Field(default=None, alias="transferId")
    transfer_code: Optional[str] = Field(default=None, alias="transferCode")
    action: TransferAction

    @field_validator("transfer_id", "transfer_code")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def _exactly_one_lookup_key(self) -> "TransferActionRequest":
        if (self.transfer_id is None) == (self.transfer_code is None):
            raise ValueError("Provide exactly one of transferId or transferCode")
        return self

    @property
    def lookup_key(self) -> str:
        return self.transfer_id or self.transfer_code or ""

    @property
    def by_code(self) -> bool:
        return self.transfer_code is not None


class TransferActionResponse(BaseModel):
    success: bool = True
    action: TransferAction


class CreateTransferRequest(CamelModel):
    to_email: Optional[EmailStr] = Field(default=None, alias="toEmail")
    amount: int
    credit_type: CreditType = Field(default=CreditType.VOCAL, alias="creditType")
    message: Optional[str] = Field(default=None, max_length=500)

    @field_validator("to_email", mode="before")
    @classmethod
    def _blank_email_to_none(cls, value: Optional[str]) -> Optional[str]:
        # An empty address means a shareable code
        if isinstance(value, str):
            return value.strip() or None
        return value


class TransferSummary(CamelModel):
    id: str
    code: str
    amount: int
    credit_type: CreditType = Field(serialization_alias="creditType")
    to_email: Optional[str] = Field(default=None, serialization_alias="toEmail")
    status: str
    message: Optional[str] = None
    created_at: datetime = Field(serialization_alias="createdAt")
    expires_at: datetime = Field(serialization_alias="expiresAt")

    @classmethod
    def from_record(cls, record: TransferRecord) -> "TransferSummary":
        return cls(
            id=record.id or "",
            code=record.transfer_code,
            amount=record.credits_amount,
            credit_type=record.credit_type,
            to_email=record.to_user_email,
            status=record.status.value,
            message=record.message,
            created_at=record.created_at,
            expires_at=record.expires_at,
        )


class CreateTransferResponse(BaseModel):
    success: bool = True
    transfer: TransferSummary


class TransferListResponse(BaseModel):
    success: bool = True
    sent: List[TransferSummary] = Field(default_factory=list)
    received: List[TransferSummary] = Field(default_factory=list)


class CreditBalanceResponse(BaseModel):
    success: bool = True
    user_id: str = Field(serialization_alias="userId")
    vocal: int
    instrumental: int
    total: int


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
