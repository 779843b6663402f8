"""TenantPayment ORM model: a settled payment towards a tenant's billing."""

from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class PaymentMethod(str, PyEnum):
    """Channel the payment arrived through."""

    BKASH = "BKASH"
    SHURJOPAY = "SHURJOPAY"
    CASH = "CASH"
    BANK = "BANK"


class TenantPayment(Base, BaseModel):
    """Payment record. reason carries the label of the schedule being paid."""

    __tablename__ = "tenant_payments"

    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, native_enum=False),
        nullable=False,
        default=PaymentMethod.BKASH,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    trx_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        comment="Gateway transaction id",
    )
    reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Schedule label this payment settles",
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="payments")  # noqa: F821

    def __repr__(self) -> str:
        return f"<TenantPayment(id={self.id}, tenant_id={self.tenant_id}, amount={self.amount})>"
