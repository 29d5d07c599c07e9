from __future__ import annotations

from datetime import datetime, timedelta

from credit_transfer.db.memory import InMemoryDBManager
from credit_transfer.models.credits import CreditPool


class MutableClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


async def add_pool(
    db: InMemoryDBManager,
    user_id: str,
    plan_id: str = "package",
    total: int = 3,
    used: int = 0,
    is_active: bool = True,
    purchased_at: datetime | None = None,
) -> CreditPool:
    pool = CreditPool(
        user_id=user_id,
        plan_id=plan_id,
        total_credits=total,
        used_credits=used,
        is_active=is_active,
    )
    if purchased_at is not None:
        pool.purchased_at = purchased_at
    return await db.add_credit_pool(pool)
