"""Billing schedule management with cache invalidation on every write."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import ScheduleNotFoundError, TenantNotFoundError
from src.models import BillingFrequency, BillingSchedule, ScheduleStatus, Tenant
from src.services.billing_cache import BillingCache, invalidate_tenant_billing_cache
from src.services.billing_dates import to_utc

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"label", "billing_type", "amount", "frequency", "status", "next_due_date"}
)


class ScheduleService:
    """Create, list, update and delete tenant billing schedules."""

    def __init__(self, session: AsyncSession, cache: BillingCache):
        self.session = session
        self.cache = cache

    async def create_schedule(
        self,
        tenant_id: str,
        label: str,
        amount: Decimal,
        next_due_date: datetime,
        frequency: BillingFrequency = BillingFrequency.MONTHLY,
        billing_type: str = "subscription",
        status: ScheduleStatus = ScheduleStatus.ACTIVE,
    ) -> BillingSchedule:
        if amount < Decimal(0):
            raise ValueError("Schedule amount must not be negative")
        if await self.session.get(Tenant, tenant_id) is None:
            raise TenantNotFoundError()

        schedule = BillingSchedule(
            tenant_id=tenant_id,
            label=label,
            amount=amount,
            next_due_date=to_utc(next_due_date),
            frequency=frequency,
            billing_type=billing_type,
            status=status,
        )
        self.session.add(schedule)
        await self.session.commit()
        await self.session.refresh(schedule)
        invalidate_tenant_billing_cache(self.cache, tenant_id)
        logger.info(f"Created billing schedule {schedule.id} '{label}' for tenant {tenant_id}")
        return schedule

    async def list_schedules(self, tenant_id: str) -> List[BillingSchedule]:
        """All schedules of a tenant in creation order."""
        stmt = (
            select(BillingSchedule)
            .where(BillingSchedule.tenant_id == tenant_id)
            .order_by(BillingSchedule.created_at.asc(), BillingSchedule.id.asc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def update_schedule(self, schedule_id: int, **changes: Any) -> BillingSchedule:
        """Apply field changes to a schedule.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist
            ValueError: On unknown fields or a negative amount
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if changes.get("amount") is not None and changes["amount"] < Decimal(0):
            raise ValueError("Schedule amount must not be negative")

        schedule = await self.session.get(BillingSchedule, schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError()

        if changes.get("next_due_date") is not None:
            changes["next_due_date"] = to_utc(changes["next_due_date"])

        for name, value in changes.items():
            if value is not None:
                setattr(schedule, name, value)

        await self.session.commit()
        await self.session.refresh(schedule)
        invalidate_tenant_billing_cache(self.cache, schedule.tenant_id)
        return schedule

    async def delete_schedule(self, schedule_id: int) -> None:
        schedule = await self.session.get(BillingSchedule, schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError()

        tenant_id = schedule.tenant_id
        await self.session.delete(schedule)
        await self.session.commit()
        invalidate_tenant_billing_cache(self.cache, tenant_id)
        logger.info(f"Deleted billing schedule {schedule_id} of tenant {tenant_id}")
