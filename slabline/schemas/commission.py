"""Commission slab, report and manual commission schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field


class SlabInput(BaseModel):
    """One submitted slab. Bounds and rate are checked by services.slabs."""

    min_amount: Decimal = Field(
        ..., validation_alias=AliasChoices("min_amount", "minAmount")
    )
    max_amount: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("max_amount", "maxAmount")
    )
    rate: Decimal


class SlabReplaceRequest(BaseModel):
    """Full replacement slab table for one user."""

    slabs: List[SlabInput]


class SlabResponse(BaseModel):
    """Stored slab."""

    id: int
    min_amount: Decimal
    max_amount: Optional[Decimal]
    rate: Decimal

    model_config = {"from_attributes": True}


class SlabReplaceResponse(BaseModel):
    success: bool = True
    slabs: List[SlabResponse]


class SlabShareResponse(BaseModel):
    """Commission earned by one slab on one deal."""

    slab_id: Optional[int]
    applied_amount: Decimal
    rate: Decimal
    commission: Decimal

    model_config = {"from_attributes": True}


class CalculationResponse(BaseModel):
    """Slab-based commission for one deal."""

    total_commission: Decimal
    effective_rate: Decimal
    breakdown: List[SlabShareResponse] = []


class CommissionHistoryResponse(BaseModel):
    id: int
    previous_amount: Optional[Decimal]
    new_amount: Decimal
    previous_rate: Optional[Decimal]
    new_rate: Optional[Decimal]
    change_reason: Optional[str]
    changed_at: datetime
    changed_by: Optional[str]


class ManualCommissionResponse(BaseModel):
    """Manually recorded commission on a lead."""

    id: int
    lead_id: int
    amount: Decimal
    rate: Optional[Decimal]
    notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime] = None
    history: List[CommissionHistoryResponse] = []


class ManualCommissionRequest(BaseModel):
    """Create or update the manual commission of a closed lead."""

    commission_amount: Decimal = Field(
        ..., validation_alias=AliasChoices("commission_amount", "commissionAmount")
    )
    commission_rate: Optional[Decimal] = Field(
        None, validation_alias=AliasChoices("commission_rate", "commissionRate")
    )
    notes: Optional[str] = Field(None, max_length=2000)
    change_reason: Optional[str] = Field(
        None,
        max_length=255,
        validation_alias=AliasChoices("change_reason", "changeReason"),
    )


class ManualCommissionSaved(BaseModel):
    commission: ManualCommissionResponse
    is_update: bool


class DealCommissionResponse(BaseModel):
    """Closed lead with its calculated and manual commission."""

    id: int
    name: str
    email: Optional[str]
    company: Optional[str]
    estimated_value: Decimal
    status: Optional[str]
    closed_at: Optional[datetime]
    calculated_commission: CalculationResponse
    commission: Optional[ManualCommissionResponse] = None


class OwnerSummary(BaseModel):
    id: int
    name: str
    email: str
    role: str
    commission_slabs: List[SlabResponse] = []


class OwnerCommissionDetailResponse(BaseModel):
    """Per-user drill-down of the commission report."""

    user: OwnerSummary
    leads: List[DealCommissionResponse]


class CommissionReportRow(BaseModel):
    """
    One sales person's commission totals over a report window.

    commission_source records which branch of the override rule produced
    total_commission: "manual" or "calculated", never a mix.
    """

    id: int
    name: str
    email: str
    role: str
    total_closings: Decimal = Decimal("0.00")
    total_calculated_commission: Decimal = Decimal("0.00")
    total_actual_commission: Decimal = Decimal("0.00")
    total_commission: Decimal = Decimal("0.00")
    commission_source: str = "calculated"
    effective_rate: Decimal = Decimal("0.00")
    closed_deals_count: int = 0
    manual_commissions_count: int = 0


class ClearCommissionsResponse(BaseModel):
    success: bool = True
    deleted_count: int
    message: str


class CommissionRecordResponse(BaseModel):
    """Manual commission record as exported."""

    id: int
    sales_person: Optional[str]
    sales_person_email: Optional[str]
    role: Optional[str]
    lead_name: str
    lead_email: Optional[str]
    lead_company: Optional[str]
    deal_value: Decimal
    commission_amount: Decimal
    commission_rate: Optional[Decimal]
    created_at: datetime
    created_by: Optional[str]
    notes: Optional[str]
