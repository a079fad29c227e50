"""
Commission models: slabs, manual commission records and their history.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slabline.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from slabline.models.lead import Lead
    from slabline.models.user import User


class CommissionSlab(Base):
    """
    One bracket of a sales person's progressive commission table.

    The set of slabs for a user is always replaced as a whole, never
    edited row by row (see services.slabs.replace_slabs).
    """

    __tablename__ = "commission_slabs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    min_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        comment="Inclusive lower bound of the bracket",
    )
    max_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 2),
        nullable=True,
        comment="Exclusive upper bound, NULL for the unbounded top bracket",
    )
    rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 3),
        nullable=False,
        comment="Percentage, e.g. 5 = 5%",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="commission_slabs")

    def __repr__(self) -> str:
        upper = self.max_amount if self.max_amount is not None else "inf"
        return f"<CommissionSlab(user_id={self.user_id}, [{self.min_amount}, {upper}) @ {self.rate}%)>"


class Commission(Base, TimestampMixin):
    """
    Manually recorded commission for a closed lead.

    Any positive manual amount in a reporting window switches the owner's
    whole report row from calculated to manual figures.
    """

    __tablename__ = "commissions"

    id: Mapped[int] = mapped_column(primary_key=True)
    lead_id: Mapped[int] = mapped_column(
        ForeignKey("leads.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
        comment="Sales person the commission is paid to",
    )
    commission_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
    )
    commission_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(6, 3),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    created_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    # Relationships
    lead: Mapped["Lead"] = relationship("Lead", back_populates="commission")
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    created_by: Mapped["User"] = relationship("User", foreign_keys=[created_by_id])
    history: Mapped[List["CommissionHistory"]] = relationship(
        "CommissionHistory",
        back_populates="commission",
        cascade="all, delete-orphan",
        order_by="CommissionHistory.changed_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<Commission(id={self.id}, lead_id={self.lead_id}, amount={self.commission_amount})>"


class CommissionHistory(Base):
    """Audit trail of every create/update of a manual commission."""

    __tablename__ = "commission_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    commission_id: Mapped[int] = mapped_column(
        ForeignKey("commissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 2),
        nullable=True,
    )
    new_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
    )
    previous_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(6, 3),
        nullable=True,
    )
    new_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(6, 3),
        nullable=True,
    )
    change_reason: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    changed_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    commission: Mapped["Commission"] = relationship("Commission", back_populates="history")
    changed_by: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return f"<CommissionHistory(commission_id={self.commission_id}, new_amount={self.new_amount})>"
