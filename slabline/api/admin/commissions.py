"""Admin commission API endpoints."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from slabline.auth.dependencies import require_admin
from slabline.db import get_db
from slabline.models import AuditAction, User
from slabline.schemas.commission import (
    ClearCommissionsResponse,
    CommissionReportRow,
    ManualCommissionRequest,
    ManualCommissionSaved,
    OwnerCommissionDetailResponse,
    SlabReplaceRequest,
    SlabReplaceResponse,
    SlabResponse,
)
from slabline.services.reconciliation import (
    ReportWindow,
    aggregate_all,
    clear_manual_commissions,
    delete_manual_commission,
    get_manual_commission,
    list_manual_commissions,
    manual_commission_response,
    owner_detail,
    record_manual_commission,
)
from slabline.services.reporting import (
    ReportFormat,
    export_filename,
    render,
    render_commission_records,
)
from slabline.services.slabs import replace_slabs
from slabline.utils.audit import log_action

router = APIRouter(prefix="/commissions", tags=["Commissions"])


def _csv_response(content: str, prefix: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(prefix)}"'},
    )


@router.get("", response_model=List[CommissionReportRow])
async def get_commission_report(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    format: ReportFormat = Query(ReportFormat.JSON),
):
    """
    Commission totals for every active sales person.

    format=csv returns the same rows as a CSV attachment.
    """
    window = ReportWindow(start=start_date, end=end_date)
    rows = await aggregate_all(db, window)

    if format == ReportFormat.CSV:
        return _csv_response(render(rows, ReportFormat.CSV), "commission-report")

    return rows


@router.get("/export")
async def export_commission_records(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    format: ReportFormat = Query(ReportFormat.CSV),
):
    """Export manual commission records (CSV by default)."""
    window = ReportWindow(start=start_date, end=end_date)
    records = await list_manual_commissions(db, window)

    if format == ReportFormat.CSV:
        return _csv_response(render_commission_records(records, ReportFormat.CSV), "commissions")

    return render_commission_records(records, ReportFormat.JSON)


@router.get("/{user_id}", response_model=OwnerCommissionDetailResponse)
async def get_user_commissions(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    """Slab table and closed deals of one sales person with calculated and manual commission."""
    return await owner_detail(db, user_id, ReportWindow(start=start_date, end=end_date))


@router.put("/{user_id}/slabs", response_model=SlabReplaceResponse)
async def update_commission_slabs(
    request: Request,
    user_id: int,
    data: SlabReplaceRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Replace a sales person's whole slab table."""
    slabs = await replace_slabs(db, user_id, data.slabs)

    log_action(
        db,
        current_user,
        AuditAction.REPLACE_SLABS,
        "user",
        user_id,
        request,
        slab_count=len(slabs),
    )

    await db.commit()

    return SlabReplaceResponse(
        slabs=[SlabResponse.model_validate(slab) for slab in slabs],
    )


@router.delete("/{user_id}/clear-all", response_model=ClearCommissionsResponse)
async def clear_user_commissions(
    request: Request,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Delete all manual commissions of a sales person (reports fall back to slabs)."""
    deleted = await clear_manual_commissions(db, user_id)

    log_action(
        db,
        current_user,
        AuditAction.CLEAR_COMMISSIONS,
        "user",
        user_id,
        request,
        deleted_count=deleted,
    )

    await db.commit()

    return ClearCommissionsResponse(
        deleted_count=deleted,
        message=(
            f"Cleared {deleted} manual commission(s). "
            "All deals will now use slab-based calculations."
        ),
    )


@router.post("/{user_id}/leads/{lead_id}", response_model=ManualCommissionSaved)
async def save_lead_commission(
    request: Request,
    user_id: int,
    lead_id: int,
    data: ManualCommissionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Create or update the manual commission of a closed lead."""
    commission, is_update = await record_manual_commission(
        db,
        owner_id=user_id,
        lead_id=lead_id,
        amount=data.commission_amount,
        changed_by_id=current_user.id,
        rate=data.commission_rate,
        notes=data.notes,
        change_reason=data.change_reason,
    )

    log_action(
        db,
        current_user,
        AuditAction.RECORD_COMMISSION,
        "lead",
        lead_id,
        request,
        owner_id=user_id,
        amount=str(data.commission_amount),
        is_update=is_update,
    )

    await db.commit()

    commission = await get_manual_commission(db, commission.id)
    return ManualCommissionSaved(
        commission=manual_commission_response(commission),
        is_update=is_update,
    )


@router.delete("/{user_id}/leads/{lead_id}")
async def delete_lead_commission(
    request: Request,
    user_id: int,
    lead_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Remove the manual commission of a lead."""
    await delete_manual_commission(db, lead_id, owner_id=user_id)

    log_action(
        db,
        current_user,
        AuditAction.DELETE_COMMISSION,
        "lead",
        lead_id,
        request,
        owner_id=user_id,
    )

    await db.commit()
    return {"success": True, "message": "Commission deleted successfully"}
