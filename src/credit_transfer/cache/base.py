from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..models.credits import CreditBalance


class AsyncCacheBackend(ABC):
    """
    Minimal async cache abstraction. The only cached value today is the
    per-user credit balance; it is read on display paths and dropped on
    every mutation of that user's pools, never read to decide a write.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @staticmethod
    def balance_key(user_id: str) -> str:
        return f"credit:user:{user_id}:balance"

    async def get_balance(self, user_id: str) -> Optional[CreditBalance]:
        cached = await self.get(self.balance_key(user_id))
        return cached if isinstance(cached, CreditBalance) else None

    async def set_balance(self, balance: CreditBalance, ttl_seconds: int | None = None) -> None:
        await self.set(self.balance_key(balance.user_id), balance, ttl_seconds=ttl_seconds)

    async def invalidate_balance(self, user_id: str) -> None:
        await self.delete(self.balance_key(user_id))
