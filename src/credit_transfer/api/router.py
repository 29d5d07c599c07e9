from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ..models.api_models import (
    CreateTransferRequest,
    CreateTransferResponse,
    CreditBalanceResponse,
    TransferActionRequest,
    TransferActionResponse,
    TransferListResponse,
    TransferSummary,
)
from ..models.transfer import TransferLookup
from .auth import AuthenticatedUser, bearer_token
from .container import ServiceContainer


logger = logging.getLogger(__name__)

router = APIRouter(tags=["credit-transfers"])


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    container: ServiceContainer = Depends(get_container),
) -> AuthenticatedUser:
    return await container.auth.resolve(bearer_token(authorization))


@router.post("/accept-credit-transfer", response_model=TransferActionResponse)
async def accept_credit_transfer(
    payload: TransferActionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> TransferActionResponse:
    lookup = (
        TransferLookup.by_code(payload.lookup_key)
        if payload.by_code
        else TransferLookup.by_id(payload.lookup_key)
    )
    logger.info(
        "Resolving transfer",
        extra={"user_id": user.user_id, "lookup": lookup.model_dump(), "action": payload.action.value},
    )
    await container.transfers.resolve_transfer(
        lookup, user_id=user.user_id, email=user.email, action=payload.action
    )
    return TransferActionResponse(action=payload.action)


@router.post("/transfer-credits", response_model=CreateTransferResponse)
async def transfer_credits(
    payload: CreateTransferRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> CreateTransferResponse:
    transfer = await container.transfers.create_transfer(
        sender_id=user.user_id,
        sender_email=user.email,
        amount=payload.amount,
        credit_type=payload.credit_type,
        to_email=payload.to_email,
        message=payload.message,
    )
    return CreateTransferResponse(transfer=TransferSummary.from_record(transfer))


@router.get("/credit-transfers", response_model=TransferListResponse)
async def list_credit_transfers(
    user: AuthenticatedUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> TransferListResponse:
    sent = await container.transfers.list_sent(user.user_id)
    received = await container.transfers.list_received(user.user_id, user.email)
    return TransferListResponse(
        sent=[TransferSummary.from_record(t) for t in sent],
        received=[TransferSummary.from_record(t) for t in received],
    )


@router.get("/check-credits", response_model=CreditBalanceResponse)
async def check_credits(
    user: AuthenticatedUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> CreditBalanceResponse:
    balance = await container.credits.get_balance(user.user_id)
    return CreditBalanceResponse(
        user_id=user.user_id,
        vocal=balance.vocal,
        instrumental=balance.instrumental,
        total=balance.total,
    )
