from __future__ import annotations

from typing import List, Optional

from ..cache.base import AsyncCacheBackend
from ..db.base import BaseDBManager
from ..errors import InsufficientCredits, Internal
from ..logging.ledger_logger import LedgerLogger
from ..models.credits import (
    CreditBalance,
    CreditPool,
    CreditType,
    OrderType,
    PoolAllocation,
    credit_type_for_order,
)
from ..models.ledger import LedgerEventType


class CreditPoolLedger:
    """
    Authoritative per-user credit balance, by credit type.

    All mutations go through the storage layer's conditional updates, so
    the same primitives are safe to use from the transfer flow and from
    ordinary credit consumption running concurrently.
    """

    BALANCE_TTL_SECONDS = 30

    def __init__(
        self,
        db: BaseDBManager,
        ledger: LedgerLogger,
        cache: Optional[AsyncCacheBackend] = None,
    ) -> None:
        self._db = db
        self._ledger = ledger
        self._cache = cache

    async def reserve(
        self,
        pool_id: str,
        amount: int,
        correlation_id: str | None = None,
    ) -> CreditPool:
        return await self._take(
            pool_id, amount, LedgerEventType.RESERVE, "Credits reserved", correlation_id
        )

    async def _take(
        self,
        pool_id: str,
        amount: int,
        event_type: LedgerEventType,
        message: str,
        correlation_id: str | None,
    ) -> CreditPool:
        if amount <= 0:
            raise ValueError("amount must be positive")

        pool = await self._db.increment_used_credits(pool_id, amount)
        if pool is None:
            current = await self._db.get_credit_pool(pool_id)
            await self._ledger.log_error(
                message="Insufficient credits in pool",
                details={
                    "pool_id": pool_id,
                    "requested": amount,
                    "available": current.available if current else 0,
                },
                user_id=current.user_id if current else None,
                correlation_id=correlation_id,
            )
            raise InsufficientCredits()

        await self._ledger.log_movement(
            event_type, pool, amount, message, correlation_id=correlation_id
        )
        await self._invalidate_balance(pool.user_id)
        return pool

    async def release(
        self,
        pool_id: str,
        amount: int,
        correlation_id: str | None = None,
    ) -> CreditPool:
        """
        Give back `amount` reserved credits. `used_credits` never drops below
        zero, which tolerates a pool that was partially released already.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        pool = await self._db.decrement_used_credits(pool_id, amount)
        if pool is None:
            await self._ledger.log_error(
                message="Cannot release credits: pool not found",
                details={"pool_id": pool_id, "amount": amount},
                correlation_id=correlation_id,
            )
            raise Internal("Source credits not found")

        await self._ledger.log_movement(
            LedgerEventType.RELEASE, pool, amount, "Credits released", correlation_id=correlation_id
        )
        await self._invalidate_balance(pool.user_id)
        return pool

    async def grant(
        self,
        user_id: str,
        plan_id: str,
        amount: int,
        source_transfer_id: str | None = None,
        correlation_id: str | None = None,
    ) -> CreditPool:
        """
        Create a new active pool. With `source_transfer_id`, a second grant
        for the same transfer returns the pool created by the first one.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        pool = await self._db.add_credit_pool(
            CreditPool(
                user_id=user_id,
                plan_id=plan_id,
                total_credits=amount,
                used_credits=0,
                is_active=True,
                source_transfer_id=source_transfer_id,
            )
        )

        await self._ledger.log_movement(
            LedgerEventType.GRANT,
            pool,
            amount,
            "Credits granted",
            correlation_id=correlation_id,
            details={"source_transfer_id": source_transfer_id},
        )
        await self._invalidate_balance(user_id)
        return pool

    async def get_pools(self, user_id: str, credit_type: CreditType | None = None) -> List[CreditPool]:
        pools = list(await self._db.get_active_credit_pools(user_id))
        if credit_type is None:
            return pools
        return [p for p in pools if p.credit_type == CreditType(credit_type)]

    async def get_balance(self, user_id: str) -> CreditBalance:
        if self._cache is not None:
            cached = await self._cache.get_balance(user_id)
            if cached is not None:
                return cached

        balance = CreditBalance(user_id=user_id)
        for pool in await self.get_pools(user_id):
            if pool.credit_type == CreditType.INSTRUMENTAL:
                balance.instrumental += pool.available
            else:
                balance.vocal += pool.available

        if self._cache is not None:
            await self._cache.set_balance(balance, ttl_seconds=self.BALANCE_TTL_SECONDS)
        return balance

    async def reserve_for_transfer(
        self,
        user_id: str,
        credit_type: CreditType,
        amount: int,
        correlation_id: str | None = None,
    ) -> List[PoolAllocation]:
        """
        Reserve `amount` credits of one type, oldest pool first.

        Either the whole amount is reserved or nothing is: on failure the
        partial reservations made so far are released again.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        pools = await self.get_pools(user_id, credit_type)
        available = sum(p.available for p in pools)
        if available < amount:
            raise InsufficientCredits(
                f"Insufficient credits. You only have {available} credit(s) available."
            )

        allocations: List[PoolAllocation] = []
        remaining = amount
        try:
            for pool in pools:
                if remaining <= 0:
                    break
                take = min(pool.available, remaining)
                if take <= 0:
                    continue
                await self.reserve(pool.id or "", take, correlation_id=correlation_id)
                allocations.append(PoolAllocation(pool_id=pool.id or "", amount=take))
                remaining -= take
            if remaining > 0:
                raise InsufficientCredits()
        except InsufficientCredits:
            # A concurrent consumer got to a pool between listing and reserving
            await self.release_allocations(allocations, correlation_id=correlation_id)
            raise
        return allocations

    async def release_allocations(
        self,
        allocations: List[PoolAllocation],
        correlation_id: str | None = None,
    ) -> None:
        for allocation in allocations:
            await self.release(allocation.pool_id, allocation.amount, correlation_id=correlation_id)

    async def consume(
        self,
        user_id: str,
        order_type: OrderType,
        correlation_id: str | None = None,
    ) -> CreditPool:
        """
        Use one credit compatible with `order_type`, oldest pool first.
        """
        credit_type = credit_type_for_order(order_type)
        for pool in await self.get_pools(user_id, credit_type):
            if pool.available <= 0:
                continue
            try:
                return await self._take(
                    pool.id or "", 1, LedgerEventType.CONSUME, "Credit consumed", correlation_id
                )
            except InsufficientCredits:
                # Lost the pool to a concurrent writer; try the next one
                continue
        raise InsufficientCredits(f"No {credit_type.value} credits available")

    async def _invalidate_balance(self, user_id: str) -> None:
        if self._cache is not None:
            await self._cache.invalidate_balance(user_id)
