"""Payment ORM model for rent received from tenants."""

import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models import Base, BaseModel


class PaymentStatus(str, Enum):
    """Review status of a registered payment."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class Payment(Base, BaseModel):
    """Model representing one payment row.

    The registration flow writes one row per billing period allocation, so a
    single transfer covering three months produces three rows sharing the
    same reference_number.
    """

    __tablename__ = "payments"

    # Foreign keys
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
    )
    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id"),
        nullable=False,
        index=True,
    )

    # Payment details
    date: Mapped[datetime.date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment="Date the payment was received",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        comment="Amount in the payment's own currency",
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    exchange_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 4),
        nullable=True,
        comment="Local currency units per one canonical unit",
    )
    billing_period: Mapped[datetime.date | None] = mapped_column(
        Date,
        nullable=True,
        index=True,
        comment="First day of the month this payment covers",
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, native_enum=False),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    concept: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    tenant: Mapped["Tenant"] = relationship(  # noqa: F821
        "Tenant",
        back_populates="payments",
    )
    contract: Mapped["Contract"] = relationship(  # noqa: F821
        "Contract",
        back_populates="payments",
    )

    # Indexes for common queries
    __table_args__ = (
        Index("idx_payment_status_date", "status", "date"),
        Index("idx_payment_contract_period", "contract_id", "billing_period"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, contract_id={self.contract_id}, amount={self.amount}, "
            f"currency={self.currency}, billing_period={self.billing_period}, "
            f"status={self.status})>"
        )


__all__ = ["Payment", "PaymentStatus"]
