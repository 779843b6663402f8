"""Tenant ORM model: one institution served under its own subdomain."""

import uuid

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class Tenant(Base, BaseModel):
    """An isolated customer (school or institution).

    Billing schedules and payments are scoped to a tenant. The primary key is
    an opaque string so that cache keys and URLs never depend on row order.
    """

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Opaque tenant identifier",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Institution name")
    domain: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        index=True,
        comment="Subdomain the institution is served from",
    )

    billing_schedules: Mapped[list["BillingSchedule"]] = relationship(  # noqa: F821
        "BillingSchedule",
        back_populates="tenant",
        cascade="all, delete-orphan",
    )
    payments: Mapped[list["TenantPayment"]] = relationship(  # noqa: F821
        "TenantPayment",
        back_populates="tenant",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, domain={self.domain})>"
