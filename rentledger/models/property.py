"""Property, unit and ownership ORM models.

A property is split into rentable units; contracts reference a unit, so a
payment reaches its property through contract -> unit -> property. Ownership
is many-to-many through PropertyOwner, which carries each owner's percentage
of the property's net income.
"""

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models import Base, BaseModel


class Property(Base, BaseModel):
    """Model representing a building or house administered for its owners."""

    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    property_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Free-form type label (building, house, commercial)",
    )

    # Relationships
    units: Mapped[list["Unit"]] = relationship(
        "Unit",
        back_populates="property",
        cascade="all, delete-orphan",
    )
    owners: Mapped[list["PropertyOwner"]] = relationship(
        "PropertyOwner",
        back_populates="property",
        cascade="all, delete-orphan",
    )
    expenses: Mapped[list["Expense"]] = relationship(  # noqa: F821
        "Expense",
        back_populates="property",
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name={self.name!r})>"


class Unit(Base, BaseModel):
    """Rentable unit (apartment, office, local) inside a property."""

    __tablename__ = "units"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    unit_type: Mapped[str] = mapped_column(
        String(30),
        default="apartment",
        nullable=False,
        comment="apartment/office/local/storage",
    )
    status: Mapped[str] = mapped_column(
        String(30),
        default="vacant",
        nullable=False,
        comment="vacant/occupied/maintenance",
    )
    default_rent_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )

    # Relationships
    property: Mapped["Property"] = relationship("Property", back_populates="units")
    contracts: Mapped[list["Contract"]] = relationship(  # noqa: F821
        "Contract",
        back_populates="unit",
    )

    def __repr__(self) -> str:
        return f"<Unit(id={self.id}, property_id={self.property_id}, name={self.name!r})>"


class PropertyOwner(Base, BaseModel):
    """Ownership share of an owner in a property (0-100 percent)."""

    __tablename__ = "property_owners"

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id"),
        nullable=False,
        index=True,
    )
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("owners.id"),
        nullable=False,
        index=True,
    )
    percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        comment="Participation percentage in the property's net income",
    )

    # Relationships
    property: Mapped["Property"] = relationship("Property", back_populates="owners")
    owner: Mapped["Owner"] = relationship(  # noqa: F821
        "Owner",
        back_populates="ownerships",
    )

    __table_args__ = (
        UniqueConstraint("property_id", "owner_id", name="uq_property_owner"),
        Index("idx_owner_property", "owner_id", "property_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<PropertyOwner(property_id={self.property_id}, owner_id={self.owner_id}, "
            f"percentage={self.percentage})>"
        )


__all__ = ["Property", "Unit", "PropertyOwner"]
