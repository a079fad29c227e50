"""Business logic services."""

from slabline.services.calculator import CommissionMode, calculate
from slabline.services.reconciliation import (
    ReportWindow,
    aggregate,
    aggregate_all,
    clear_manual_commissions,
)
from slabline.services.reporting import ReportFormat, render
from slabline.services.slabs import replace_slabs

__all__ = [
    "CommissionMode",
    "calculate",
    "ReportWindow",
    "aggregate",
    "aggregate_all",
    "clear_manual_commissions",
    "ReportFormat",
    "render",
    "replace_slabs",
]
