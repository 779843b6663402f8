"""Billing status checks: cache lookup, schedule loading and evaluation.

Check flow:
    key = billing:{tenant_id}
    cached status -> return it
    otherwise load ACTIVE schedules, evaluate, cache, return

A failed load raises UpstreamLoadError and leaves the cache untouched.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import UpstreamLoadError
from src.models.billing_schedule import BillingSchedule, ScheduleStatus
from src.services.billing_cache import (
    BillingCache,
    billing_cache_key,
    invalidate_tenant_billing_cache,
)
from src.services.billing_evaluator import BillingStatus, ScheduleLike, evaluate

logger = logging.getLogger(__name__)

ScheduleLoader = Callable[[str], Awaitable[Sequence[ScheduleLike]]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BillingScheduleRepository:
    """Read access to tenant billing schedules."""

    def __init__(self, session: AsyncSession):
        """Initialize with database session.

        Args:
            session: AsyncSession for database operations
        """
        self.session = session

    async def load_active_schedules(self, tenant_id: str) -> list[BillingSchedule]:
        """Return ACTIVE schedules of a tenant, earliest due date first."""
        stmt = (
            select(BillingSchedule)
            .where(
                BillingSchedule.tenant_id == tenant_id,
                BillingSchedule.status == ScheduleStatus.ACTIVE,
            )
            .order_by(BillingSchedule.next_due_date.asc(), BillingSchedule.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class BillingStatusService:
    """Serve tenant billing statuses through the shared cache."""

    def __init__(
        self,
        cache: BillingCache,
        loader: ScheduleLoader,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize service.

        Args:
            cache: Shared billing status cache
            loader: Async callable returning ACTIVE schedules of a tenant,
                ordered by next_due_date ascending
            clock: Source of the evaluation instant
        """
        self.cache = cache
        self.loader = loader
        self.clock = clock

    async def check(self, tenant_id: str) -> BillingStatus:
        """Return the billing status of a tenant, computing it on a cache miss.

        Raises:
            UpstreamLoadError: If loading schedules fails
        """
        key = billing_cache_key(tenant_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Billing cache hit: %s", key)
            return cached

        logger.debug("Billing cache miss: %s", key)
        generation = self.cache.generation(key)
        try:
            schedules = await self.loader(tenant_id)
        except Exception as e:
            logger.error(f"Failed to load billing schedules for tenant {tenant_id}: {e}", exc_info=True)
            raise UpstreamLoadError() from e

        status = evaluate(schedules, self.clock())
        if not self.cache.set_if_generation(key, status, generation):
            logger.debug("Billing cache invalidated during load, not storing: %s", key)

        if status.is_overdue:
            logger.info(
                "Tenant %s overdue: days=%d schedules=%d total=%s",
                tenant_id,
                status.days_overdue,
                len(status.overdue_schedules),
                status.total_overdue_amount,
            )
        return status

    def invalidate(self, tenant_id: str) -> None:
        """Drop the tenant's cached status."""
        invalidate_tenant_billing_cache(self.cache, tenant_id)
