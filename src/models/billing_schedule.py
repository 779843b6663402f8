"""BillingSchedule ORM model for a tenant's recurring or one-time obligations."""

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class BillingFrequency(str, PyEnum):
    """How often a schedule falls due."""

    ONE_TIME = "ONE_TIME"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class ScheduleStatus(str, PyEnum):
    """Schedule lifecycle state. Only ACTIVE schedules can become overdue."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class BillingSchedule(Base, BaseModel):
    """
    A single billing obligation of a tenant.

    next_due_date is moved forward by payment settlement after every successful
    payment. A ONE_TIME schedule is switched to INACTIVE once it is settled.
    """

    __tablename__ = "tenant_billing_schedules"

    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning tenant",
    )
    label: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Human readable name, also matched against payment reasons",
    )
    billing_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="subscription",
        comment="Classification (subscription, domain, setup, ...)",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Amount due per period",
    )
    frequency: Mapped[BillingFrequency] = mapped_column(
        Enum(BillingFrequency, native_enum=False),
        nullable=False,
        default=BillingFrequency.MONTHLY,
    )
    status: Mapped[ScheduleStatus] = mapped_column(
        Enum(ScheduleStatus, native_enum=False),
        nullable=False,
        default=ScheduleStatus.ACTIVE,
        index=True,
    )
    next_due_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the next payment falls due",
    )

    tenant: Mapped["Tenant"] = relationship(  # noqa: F821
        "Tenant",
        back_populates="billing_schedules",
    )

    __table_args__ = (
        Index("idx_billing_schedule_tenant_status_due", "tenant_id", "status", "next_due_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<BillingSchedule(id={self.id}, tenant_id={self.tenant_id}, "
            f"label={self.label}, status={self.status}, next_due_date={self.next_due_date})>"
        )
