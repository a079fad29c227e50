"""
Database models for Slabline.

All models are exported here for convenient imports:
    from slabline.models import User, Lead, CommissionSlab, etc.
"""

from slabline.models.audit import AuditAction, AuditLog
from slabline.models.base import Base, TimestampMixin
from slabline.models.commission import Commission, CommissionHistory, CommissionSlab
from slabline.models.lead import Lead, LeadStatus
from slabline.models.user import User, UserRole

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # User
    "User",
    "UserRole",
    # Lead
    "Lead",
    "LeadStatus",
    # Commission
    "CommissionSlab",
    "Commission",
    "CommissionHistory",
    # Audit
    "AuditLog",
    "AuditAction",
]
