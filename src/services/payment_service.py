"""Payment settlement for tenant billing.

Provides methods for:
- Recording a tenant payment and rolling the paid schedule forward
- Rolling every active schedule of a tenant forward
- Moving a single schedule's due date

Every mutation commits first and then invalidates the tenant's cached billing
status before returning, so the next status check is computed from fresh data.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import DuplicatePaymentError, ScheduleNotFoundError, TenantNotFoundError
from src.models import (
    BillingFrequency,
    BillingSchedule,
    PaymentMethod,
    ScheduleStatus,
    Tenant,
    TenantPayment,
)
from src.services.billing_cache import BillingCache, invalidate_tenant_billing_cache
from src.services.billing_dates import next_due_date, to_utc

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def roll_schedule_forward(schedule: BillingSchedule, settled_at: datetime) -> None:
    """Apply a settlement to a schedule.

    ONE_TIME schedules become INACTIVE; recurring ones get a new due date
    computed from the settlement instant.
    """
    if schedule.frequency == BillingFrequency.ONE_TIME:
        schedule.status = ScheduleStatus.INACTIVE
        return
    schedule.next_due_date = next_due_date(schedule.frequency, settled_at)


class PaymentService:
    """Settle tenant payments and keep the billing cache consistent."""

    def __init__(
        self,
        session: AsyncSession,
        cache: BillingCache,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """Initialize payment service.

        Args:
            session: AsyncSession for database operations
            cache: Shared billing status cache to invalidate after writes
            clock: Source of the settlement instant
        """
        self.session = session
        self.cache = cache
        self.clock = clock

    async def settle_payment(
        self,
        tenant_id: str,
        amount: Decimal,
        trx_id: str,
        reason: Optional[str] = None,
        method: PaymentMethod = PaymentMethod.BKASH,
    ) -> TenantPayment:
        """Record a payment and settle the schedule it pays for.

        Args:
            tenant_id: Paying tenant
            amount: Paid amount
            trx_id: Gateway transaction id
            reason: Label of the ACTIVE schedule being paid; when no schedule
                matches only the payment is recorded
            method: Payment channel

        Returns:
            Created TenantPayment

        Raises:
            TenantNotFoundError: If the tenant does not exist
            ValueError: If amount is not positive
        """
        if amount <= Decimal(0):
            logger.error(f"Invalid payment amount: {amount}")
            raise ValueError("Payment amount must be positive")

        tenant = await self.session.get(Tenant, tenant_id)
        if tenant is None:
            logger.error(f"Payment for unknown tenant {tenant_id}")
            raise TenantNotFoundError()

        payment = TenantPayment(
            tenant_id=tenant_id,
            method=method,
            amount=amount,
            trx_id=trx_id,
            reason=reason,
        )

        schedule = None
        if reason:
            stmt = select(BillingSchedule).where(
                BillingSchedule.tenant_id == tenant_id,
                BillingSchedule.label == reason,
                BillingSchedule.status == ScheduleStatus.ACTIVE,
            )
            schedule = (await self.session.execute(stmt)).scalars().first()
            if schedule is not None:
                roll_schedule_forward(schedule, self.clock())
            else:
                logger.warning(f"No active schedule '{reason}' for tenant {tenant_id}")

        self.session.add(payment)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.error(f"Duplicate payment trx_id={trx_id} for tenant {tenant_id}")
            raise DuplicatePaymentError() from e
        await self.session.refresh(payment)
        invalidate_tenant_billing_cache(self.cache, tenant_id)

        logger.info(
            f"Recorded payment: tenant_id={tenant_id}, amount={amount}, trx_id={trx_id}, "
            f"schedule_id={schedule.id if schedule else None}"
        )
        return payment

    async def advance_active_schedules(self, tenant_id: str) -> List[BillingSchedule]:
        """Roll every ACTIVE schedule of a tenant forward from now.

        Returns:
            The updated schedules (ONE_TIME ones come back INACTIVE)
        """
        stmt = select(BillingSchedule).where(
            BillingSchedule.tenant_id == tenant_id,
            BillingSchedule.status == ScheduleStatus.ACTIVE,
        )
        schedules = list((await self.session.execute(stmt)).scalars().all())

        settled_at = self.clock()
        for schedule in schedules:
            roll_schedule_forward(schedule, settled_at)

        await self.session.commit()
        invalidate_tenant_billing_cache(self.cache, tenant_id)
        logger.info(f"Advanced {len(schedules)} schedules for tenant {tenant_id}")
        return schedules

    async def update_schedule_due_date(
        self,
        schedule_id: int,
        tenant_id: str,
        next_due: datetime,
    ) -> BillingSchedule:
        """Move one schedule's due date.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist for the tenant
        """
        schedule = await self.session.get(BillingSchedule, schedule_id)
        if schedule is None or schedule.tenant_id != tenant_id:
            raise ScheduleNotFoundError()

        schedule.next_due_date = to_utc(next_due)
        await self.session.commit()
        await self.session.refresh(schedule)
        invalidate_tenant_billing_cache(self.cache, tenant_id)
        return schedule
