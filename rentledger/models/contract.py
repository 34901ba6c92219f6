"""Lease contract ORM model."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models import Base, BaseModel


class ContractStatus(str, Enum):
    """Status of a lease contract."""

    ACTIVE = "active"
    EXPIRED = "expired"


class Contract(Base, BaseModel):
    """Lease of a unit by a tenant.

    rent_amount is the monthly due amount expressed in the canonical currency.
    It is nullable because contracts are sometimes registered before the rent
    is agreed; payment allocation refuses to run against such a contract.
    """

    __tablename__ = "contracts"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
    )
    unit_id: Mapped[int] = mapped_column(
        ForeignKey("units.id"),
        nullable=False,
        index=True,
    )
    rent_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Monthly rent in canonical currency",
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="NULL means indefinite",
    )
    status: Mapped[ContractStatus] = mapped_column(
        SQLEnum(ContractStatus, native_enum=False),
        default=ContractStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Relationships
    tenant: Mapped["Tenant"] = relationship(  # noqa: F821
        "Tenant",
        back_populates="contracts",
    )
    unit: Mapped["Unit"] = relationship(  # noqa: F821
        "Unit",
        back_populates="contracts",
    )
    payments: Mapped[list["Payment"]] = relationship(  # noqa: F821
        "Payment",
        back_populates="contract",
    )

    __table_args__ = (Index("idx_tenant_status", "tenant_id", "status"),)

    def __repr__(self) -> str:
        return (
            f"<Contract(id={self.id}, tenant_id={self.tenant_id}, unit_id={self.unit_id}, "
            f"rent_amount={self.rent_amount}, status={self.status})>"
        )


__all__ = ["Contract", "ContractStatus"]
