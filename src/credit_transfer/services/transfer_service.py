from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from pydantic import ValidationError

from ..db.base import BaseDBManager, DuplicateRecordError
from ..errors import (
    BadRequest,
    Expired,
    Forbidden,
    Internal,
    InvalidState,
    NotFound,
)
from ..logging.ledger_logger import LedgerLogger
from ..models.base import utcnow
from ..models.credits import CreditType, PoolAllocation, transfer_plan_id
from ..models.notification import NotificationType
from ..models.transfer import (
    AnyoneWithCode,
    EmailRecipient,
    TransferAction,
    TransferLookup,
    TransferRecord,
    TransferStatus,
)
from .ledger_service import CreditPoolLedger
from .notification_service import NotificationService


logger = logging.getLogger(__name__)

CODE_PREFIX = "TRF-"
CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
CODE_LENGTH = 8
CODE_ATTEMPTS = 5

_ALREADY_PROCESSED = {
    TransferStatus.ACCEPTED: "This transfer was already accepted",
    TransferStatus.REJECTED: "This transfer was already rejected",
    TransferStatus.EXPIRED: "This transfer has expired",
}


def generate_transfer_code() -> str:
    return CODE_PREFIX + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class TransferService:
    """
    Owns the TransferRecord lifecycle: creation with reservation, and the
    one-way transition out of `pending` (accept, reject or lazy expiry).

    Each transition is claimed with a compare-and-set on `status` before
    any credits move, so of N concurrent resolvers exactly one proceeds.
    """

    def __init__(
        self,
        db: BaseDBManager,
        ledger: LedgerLogger,
        credits: CreditPoolLedger,
        notifications: Optional[NotificationService] = None,
        expiry_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._ledger = ledger
        self._credits = credits
        self._notifications = notifications
        self._expiry = timedelta(days=expiry_days)
        self._clock = clock

    async def create_transfer(
        self,
        sender_id: str,
        sender_email: Optional[str],
        amount: int,
        credit_type: CreditType,
        to_email: Optional[str] = None,
        message: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> TransferRecord:
        """
        Reserve `amount` credits of `credit_type` from the sender and store a
        pending transfer. Without `to_email` the transfer is redeemable by
        anyone holding its code.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise BadRequest("Amount must be a positive integer")

        recipient: EmailRecipient | AnyoneWithCode
        if to_email is not None and to_email.strip():
            normalized = to_email.strip().lower()
            if sender_email and normalized == sender_email.strip().lower():
                raise BadRequest("You cannot transfer credits to yourself")
            try:
                recipient = EmailRecipient(email=normalized)
            except ValidationError as exc:
                raise BadRequest("Invalid email") from exc
        else:
            recipient = AnyoneWithCode()

        credit_type = CreditType(credit_type)
        allocations = await self._credits.reserve_for_transfer(
            sender_id, credit_type, amount
        )

        now = self._clock()
        try:
            transfer = await self._insert_with_unique_code(
                TransferRecord(
                    transfer_code=generate_transfer_code(),
                    from_user_id=sender_id,
                    recipient=recipient,
                    credits_amount=amount,
                    credit_type=credit_type,
                    status=TransferStatus.PENDING,
                    source_credit_id=allocations[0].pool_id,
                    source_allocations=allocations,
                    message=(message or "").strip() or None,
                    created_at=now,
                    expires_at=now + self._expiry,
                )
            )
        except Exception:
            await self._credits.release_allocations(allocations)
            raise

        await self._ledger.log_transfer(
            transfer,
            "Transfer created",
            details={"source_pools": [a.pool_id for a in allocations]},
        )
        logger.info(
            "Transfer %s created by %s (%d %s credits)",
            transfer.id,
            sender_id,
            amount,
            credit_type.value,
        )

        if self._notifications:
            await self._notifications.notify_transfer_invite(transfer, sender_name=sender_name)
        return transfer

    async def resolve_transfer(
        self,
        lookup: TransferLookup,
        user_id: str,
        email: Optional[str],
        action: TransferAction,
    ) -> TransferRecord:
        """
        Accept or reject a pending transfer on behalf of the authenticated user.

        Lookup, authorization and state failures raise without writing.
        Only lazy expiry and the accept/reject branches have side effects.
        """
        action = TransferAction(action)
        transfer = await self._lookup(lookup)

        if transfer.from_user_id == user_id:
            raise Forbidden("You cannot redeem your own transfer")

        is_recipient = transfer.to_user_id == user_id or transfer.recipient.matches(email)
        if not is_recipient:
            raise Forbidden("You do not have permission for this transfer")

        if transfer.status != TransferStatus.PENDING:
            raise InvalidState(_ALREADY_PROCESSED[transfer.status])

        now = self._clock()
        if transfer.is_expired(now):
            await self._expire(transfer, now)
            raise Expired()

        if action == TransferAction.ACCEPT:
            return await self._accept(transfer, user_id, now)
        return await self._reject(transfer, user_id, now)

    async def get_transfer(self, transfer_id: str) -> TransferRecord:
        return await self._lookup(TransferLookup.by_id(transfer_id))

    async def get_transfer_by_code(self, transfer_code: str) -> TransferRecord:
        return await self._lookup(TransferLookup.by_code(transfer_code))

    async def list_sent(self, user_id: str) -> List[TransferRecord]:
        return list(await self._db.get_transfers_sent(user_id))

    async def list_received(self, user_id: str, email: Optional[str]) -> List[TransferRecord]:
        return [
            t
            for t in await self._db.get_transfers_received(user_id, email)
            if t.from_user_id != user_id
        ]

    async def _lookup(self, lookup: TransferLookup) -> TransferRecord:
        if lookup.transfer_code:
            transfer = await self._db.get_transfer_by_code(lookup.transfer_code.strip().upper())
            if transfer is None:
                raise NotFound("Invalid transfer code")
            return transfer
        if lookup.transfer_id:
            transfer = await self._db.get_transfer(lookup.transfer_id)
            if transfer is None:
                raise NotFound("Transfer not found")
            return transfer
        raise BadRequest("Provide exactly one of transferId or transferCode")

    async def _insert_with_unique_code(self, transfer: TransferRecord) -> TransferRecord:
        for _ in range(CODE_ATTEMPTS):
            try:
                return await self._db.add_transfer(transfer)
            except DuplicateRecordError:
                transfer.transfer_code = generate_transfer_code()
        raise Internal("Could not generate a unique transfer code")

    async def _claim(
        self,
        transfer: TransferRecord,
        new_status: TransferStatus,
        fields: dict,
    ) -> TransferRecord:
        claimed = await self._db.update_transfer_status(
            transfer.id or "", TransferStatus.PENDING, new_status, fields
        )
        if claimed is None:
            current = await self._db.get_transfer(transfer.id or "")
            status = current.status if current else TransferStatus.EXPIRED
            raise InvalidState(_ALREADY_PROCESSED.get(status, InvalidState.default_message))
        return claimed

    async def _expire(self, transfer: TransferRecord, now: datetime) -> None:
        expired = await self._db.update_transfer_status(
            transfer.id or "",
            TransferStatus.PENDING,
            TransferStatus.EXPIRED,
            {"resolved_at": now},
        )
        # Another caller already moved it out of pending and owns the release
        if expired is None:
            return

        await self._return_reservation(transfer, expired)
        await self._record_outcome(expired, "Transfer expired", NotificationType.TRANSFER_EXPIRED)

    async def _accept(self, transfer: TransferRecord, user_id: str, now: datetime) -> TransferRecord:
        claimed = await self._claim(
            transfer,
            TransferStatus.ACCEPTED,
            {"to_user_id": user_id, "accepted_at": now, "resolved_at": now},
        )

        try:
            await self._credits.grant(
                user_id=user_id,
                plan_id=transfer_plan_id(claimed.credit_type),
                amount=claimed.credits_amount,
                source_transfer_id=claimed.id,
                correlation_id=claimed.id,
            )
        except Exception as exc:
            # Hand the transfer back so the recipient can retry; the grant is
            # keyed on the transfer id so a retry cannot grant twice.
            await self._unclaim(transfer, claimed)
            await self._ledger.log_error(
                message="Grant failed while accepting transfer",
                details={"transfer_id": claimed.id, "error": str(exc)},
                user_id=user_id,
                correlation_id=claimed.id,
            )
            raise Internal("Could not credit the transfer, please try again") from exc

        logger.info("Transfer %s accepted by %s", claimed.id, user_id)
        await self._record_outcome(
            claimed, "Transfer accepted", NotificationType.TRANSFER_ACCEPTED, user_id=user_id
        )
        return claimed

    async def _reject(self, transfer: TransferRecord, user_id: str, now: datetime) -> TransferRecord:
        claimed = await self._claim(
            transfer,
            TransferStatus.REJECTED,
            {"to_user_id": user_id, "resolved_at": now},
        )

        await self._return_reservation(transfer, claimed)
        logger.info("Transfer %s rejected by %s", claimed.id, user_id)
        await self._record_outcome(
            claimed, "Transfer rejected", NotificationType.TRANSFER_REJECTED, user_id=user_id
        )
        return claimed

    async def _return_reservation(self, transfer: TransferRecord, claimed: TransferRecord) -> None:
        """
        Give the sender back every reserved allocation of a claimed
        (rejected or expired) transfer.

        A source pool that no longer exists is audited and skipped. Any other
        failure undoes the releases made so far and hands the transfer back
        to `pending`, so the credits are never stranded behind a final status.
        """
        released: List[PoolAllocation] = []
        for allocation in claimed.allocations():
            try:
                await self._credits.release(
                    allocation.pool_id, allocation.amount, correlation_id=claimed.id
                )
            except Internal:
                await self._ledger.log_error(
                    message="Could not return reserved credits to sender",
                    details={
                        "transfer_id": claimed.id,
                        "pool_id": allocation.pool_id,
                        "amount": allocation.amount,
                    },
                    user_id=claimed.from_user_id,
                    correlation_id=claimed.id,
                )
                continue
            except Exception as exc:
                await self._undo_release(transfer, claimed, released, exc)
                raise Internal("Could not return the credits, please try again") from exc
            released.append(allocation)

    async def _undo_release(
        self,
        transfer: TransferRecord,
        claimed: TransferRecord,
        released: List[PoolAllocation],
        exc: Exception,
    ) -> None:
        try:
            for allocation in released:
                await self._credits.reserve(
                    allocation.pool_id, allocation.amount, correlation_id=claimed.id
                )
        except Exception:
            # The sender already spent part of what came back; the transfer
            # keeps its final status and the rest is left for reconciliation.
            await self._ledger.log_error(
                message="Reservation partially returned to sender",
                details={
                    "transfer_id": claimed.id,
                    "released": [a.model_dump() for a in released],
                    "error": str(exc),
                },
                user_id=claimed.from_user_id,
                correlation_id=claimed.id,
            )
            return

        await self._unclaim(transfer, claimed)
        await self._ledger.log_error(
            message="Release failed, transfer returned to pending",
            details={"transfer_id": claimed.id, "status": claimed.status.value, "error": str(exc)},
            user_id=claimed.from_user_id,
            correlation_id=claimed.id,
        )

    async def _unclaim(self, transfer: TransferRecord, claimed: TransferRecord) -> None:
        await self._db.update_transfer_status(
            claimed.id or "",
            claimed.status,
            TransferStatus.PENDING,
            {
                "to_user_id": transfer.to_user_id,
                "accepted_at": transfer.accepted_at,
                "resolved_at": transfer.resolved_at,
            },
        )

    async def _record_outcome(
        self,
        transfer: TransferRecord,
        message: str,
        notification_type: NotificationType,
        user_id: Optional[str] = None,
    ) -> None:
        # Credits have already moved; audit and notification failures must
        # not turn a completed transition into an error for the caller.
        try:
            await self._ledger.log_transfer(transfer, message, user_id=user_id)
        except Exception:
            logger.exception("Could not audit transfer %s (%s)", transfer.id, message)

        if not self._notifications:
            return
        try:
            await self._notifications.notify_transfer_resolved(transfer, notification_type)
        except Exception:
            logger.exception(
                "Could not record %s notification for transfer %s",
                notification_type.value,
                transfer.id,
            )
