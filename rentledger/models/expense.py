"""Property expense ORM model."""

import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models import Base, BaseModel


class ExpenseStatus(str, Enum):
    """Payment status of an expense."""

    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class Expense(Base, BaseModel):
    """Expense charged to a property, already expressed in canonical currency."""

    __tablename__ = "expenses"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category: Mapped[str] = mapped_column(
        String(30),
        default="other",
        nullable=False,
        comment="maintenance/utilities/tax/other",
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[ExpenseStatus] = mapped_column(
        SQLEnum(ExpenseStatus, native_enum=False),
        default=ExpenseStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Relationships
    property: Mapped["Property"] = relationship(  # noqa: F821
        "Property",
        back_populates="expenses",
    )

    def __repr__(self) -> str:
        return (
            f"<Expense(id={self.id}, property_id={self.property_id}, amount={self.amount}, "
            f"category={self.category!r}, status={self.status})>"
        )


__all__ = ["Expense", "ExpenseStatus"]
