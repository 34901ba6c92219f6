"""Owner ORM model for people who hold ownership shares in properties."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models import Base, BaseModel


class Owner(Base, BaseModel):
    """Property owner receiving a percentage of each owned property's net income."""

    __tablename__ = "owners"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    doc_id: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="National identity or tax document number",
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships
    ownerships: Mapped[list["PropertyOwner"]] = relationship(  # noqa: F821
        "PropertyOwner",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Owner(id={self.id}, name={self.name!r}, doc_id={self.doc_id!r})>"


__all__ = ["Owner"]
