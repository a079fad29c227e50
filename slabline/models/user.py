"""
User model: the owner directory read by the commission engine.

Accounts are managed by the surrounding CRM; this service only reads them,
except for the slab and commission rows that hang off a user.
"""

from enum import Enum
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, String
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slabline.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from slabline.models.audit import AuditLog
    from slabline.models.commission import CommissionSlab
    from slabline.models.lead import Lead


class UserRole(str, Enum):
    """User roles for access control."""
    ADMIN = "admin"
    SALES_MANAGER = "sales_manager"
    SALES_PERSON = "sales_person"


class User(Base, TimestampMixin):
    """
    User account model.

    - admin: manages slabs, records and clears manual commissions, reads reports
    - sales_manager / sales_person: earn commission on the leads they own
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        SQLAlchemyEnum(
            UserRole,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Relationships
    leads: Mapped[List["Lead"]] = relationship(
        "Lead",
        back_populates="owner",
        foreign_keys="Lead.owner_id",
    )
    commission_slabs: Mapped[List["CommissionSlab"]] = relationship(
        "CommissionSlab",
        back_populates="user",
        order_by="CommissionSlab.min_amount",
    )
    audit_logs: Mapped[List["AuditLog"]] = relationship(
        "AuditLog",
        back_populates="user",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"
