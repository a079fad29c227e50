"""
Lead and LeadStatus models.

Leads are owned by the CRM's lead pipeline. The commission engine only reads
closed leads (the "deals") and their estimated value.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slabline.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from slabline.models.commission import Commission
    from slabline.models.user import User


class LeadStatus(Base):
    """Configurable pipeline status (e.g. "New", "Closed Won")."""

    __tablename__ = "lead_statuses"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<LeadStatus(id={self.id}, name='{self.name}')>"


class Lead(Base, TimestampMixin):
    """
    A sales opportunity assigned to a sales person.

    A lead counts as a closed deal when its status name is one of the
    configured closing-status aliases.
    """

    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    company: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    estimated_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 2),
        nullable=True,
    )
    status_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("lead_statuses.id"),
        nullable=True,
        index=True,
    )
    owner_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
        index=True,
        comment="Sales person the lead is assigned to",
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
        comment="When the lead moved to a closing status",
    )

    # Relationships
    status: Mapped[Optional["LeadStatus"]] = relationship("LeadStatus")
    owner: Mapped[Optional["User"]] = relationship(
        "User",
        back_populates="leads",
        foreign_keys=[owner_id],
    )
    commission: Mapped[Optional["Commission"]] = relationship(
        "Commission",
        back_populates="lead",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Lead(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"
