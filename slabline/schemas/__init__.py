"""Pydantic schemas for request/response validation."""

from slabline.schemas.commission import (
    CalculationResponse,
    ClearCommissionsResponse,
    CommissionHistoryResponse,
    CommissionRecordResponse,
    CommissionReportRow,
    DealCommissionResponse,
    ManualCommissionRequest,
    ManualCommissionResponse,
    ManualCommissionSaved,
    OwnerCommissionDetailResponse,
    OwnerSummary,
    SlabInput,
    SlabReplaceRequest,
    SlabReplaceResponse,
    SlabResponse,
    SlabShareResponse,
)

__all__ = [
    # Slabs
    "SlabInput",
    "SlabReplaceRequest",
    "SlabReplaceResponse",
    "SlabResponse",
    "SlabShareResponse",
    "CalculationResponse",
    # Manual commissions
    "CommissionHistoryResponse",
    "ManualCommissionRequest",
    "ManualCommissionResponse",
    "ManualCommissionSaved",
    "ClearCommissionsResponse",
    # Reports
    "CommissionReportRow",
    "CommissionRecordResponse",
    "DealCommissionResponse",
    "OwnerCommissionDetailResponse",
    "OwnerSummary",
]
