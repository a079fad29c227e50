"""
Commission reconciliation: calculated vs. manually recorded commission.

Rules:
- Closed deals are leads whose status name is a configured closing alias
  (compared case-insensitively, with "_" treated as a space)
- Every closed deal is run through the owner's slab table on its own
- If the owner has any positive manual commission on closed deals in the
  window, the manual total replaces the calculated total for the whole row
- Effective rate = total commission / total closings * 100, 2 decimals
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from slabline.config import settings
from slabline.models import (
    Commission,
    CommissionHistory,
    CommissionSlab,
    Lead,
    LeadStatus,
    User,
    UserRole,
)
from slabline.schemas.commission import (
    CalculationResponse,
    CommissionHistoryResponse,
    CommissionRecordResponse,
    CommissionReportRow,
    DealCommissionResponse,
    ManualCommissionResponse,
    OwnerCommissionDetailResponse,
    OwnerSummary,
    SlabResponse,
    SlabShareResponse,
)
from slabline.services.calculator import (
    CENT,
    HUNDRED,
    ZERO,
    CommissionCalculation,
    CommissionMode,
    calculate,
    round_money,
    to_decimal,
)
from slabline.services.exceptions import NotFoundError, ValidationError
from slabline.services.slabs import get_slabs

logger = logging.getLogger(__name__)

MANUAL = "manual"
CALCULATED = "calculated"


# ── Closing statuses ─────────────────────────────────────


def normalize_status_name(name: str) -> str:
    """'Closed_Won ' -> 'CLOSED WON'."""
    return re.sub(r"\s+", " ", name.replace("_", " ")).strip().upper()


def closing_status_keys(aliases: Optional[Iterable[str]] = None) -> Set[str]:
    """Normalized closing-status names; defaults to the configured aliases."""
    if aliases is None:
        aliases = settings.closing_status_aliases
    return {normalize_status_name(alias) for alias in aliases}


def is_closing_status(name: Optional[str]) -> bool:
    return bool(name) and normalize_status_name(name) in closing_status_keys()


async def closing_status_ids(db: AsyncSession) -> List[int]:
    """Ids of the pipeline statuses that count as closed, matched by is_closing_status."""
    result = await db.execute(select(LeadStatus.id, LeadStatus.name))
    return [status_id for status_id, name in result.all() if is_closing_status(name)]


def commission_roles() -> List[UserRole]:
    return [UserRole(role) for role in settings.commission_roles]


def current_mode() -> CommissionMode:
    return CommissionMode(settings.commission_mode)


# ── Report window ────────────────────────────────────────


@dataclass(frozen=True)
class ReportWindow:
    """
    Closing-date window, both ends optional and inclusive.

    Deals are placed by closed_at, or created_at when closed_at was never set.
    """

    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self):
        if self.start and self.end and self.start > self.end:
            raise ValidationError("start_date must not be after end_date", "start_date")

    def bounds(self) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Half-open [start 00:00, day after end 00:00) in UTC."""
        lower = upper = None
        if self.start:
            lower = datetime.combine(self.start, time.min, tzinfo=timezone.utc)
        if self.end:
            upper = datetime.combine(self.end + timedelta(days=1), time.min, tzinfo=timezone.utc)
        return lower, upper

    def apply(self, query):
        closing_at = func.coalesce(Lead.closed_at, Lead.created_at)
        lower, upper = self.bounds()
        if lower:
            query = query.where(closing_at >= lower)
        if upper:
            query = query.where(closing_at < upper)
        return query


# ── Reduction (pure) ─────────────────────────────────────


def effective_rate(total_commission: Decimal, total_closings: Decimal) -> Decimal:
    if total_closings <= 0:
        return Decimal("0.00")
    return (total_commission / total_closings * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def reconcile(
    owner: User,
    deals: Sequence[Tuple[Lead, Optional[Commission]]],
    slabs: Sequence[Any],
    mode: CommissionMode = CommissionMode.PROGRESSIVE,
) -> CommissionReportRow:
    """Build one owner's report row from already-loaded data.

    Args:
        owner: The sales person
        deals: Closed deals in the window, each with its manual commission or None
        slabs: The owner's slab table (any order)
        mode: Slab evaluation policy

    Returns:
        CommissionReportRow whose total_commission is either fully manual or
        fully calculated
    """
    total_closings = ZERO
    total_calculated = ZERO
    total_actual = ZERO
    manual_count = 0

    for lead, manual in deals:
        deal_value = to_decimal(lead.estimated_value)
        total_closings += deal_value
        total_calculated += calculate(deal_value, slabs, mode).total_commission

        if manual is not None:
            manual_count += 1
            total_actual += to_decimal(manual.commission_amount)

    if total_actual > 0:
        source = MANUAL
        total_commission = total_actual
    else:
        source = CALCULATED
        total_commission = total_calculated

    return CommissionReportRow(
        id=owner.id,
        name=owner.name,
        email=owner.email,
        role=UserRole(owner.role).value,
        total_closings=round_money(total_closings),
        total_calculated_commission=round_money(total_calculated),
        total_actual_commission=round_money(total_actual),
        total_commission=round_money(total_commission),
        commission_source=source,
        effective_rate=effective_rate(total_commission, total_closings),
        closed_deals_count=len(deals),
        manual_commissions_count=manual_count,
    )


# ── Loading ──────────────────────────────────────────────


async def _load_closed_deals(
    db: AsyncSession,
    owner_ids: Sequence[int],
    window: ReportWindow,
) -> Dict[int, List[Tuple[Lead, Optional[Commission]]]]:
    closing_ids = await closing_status_ids(db)

    # One statement for deals and their manual records keeps both in the same snapshot
    query = (
        select(Lead, Commission)
        .outerjoin(Commission, Commission.lead_id == Lead.id)
        .where(Lead.owner_id.in_(owner_ids), Lead.status_id.in_(closing_ids))
    )
    query = window.apply(query).order_by(Lead.owner_id, Lead.id)

    result = await db.execute(query)

    grouped: Dict[int, List[Tuple[Lead, Optional[Commission]]]] = defaultdict(list)
    for lead, manual in result.all():
        grouped[lead.owner_id].append((lead, manual))
    return grouped


async def _load_slabs(
    db: AsyncSession,
    owner_ids: Sequence[int],
) -> Dict[int, List[CommissionSlab]]:
    result = await db.execute(
        select(CommissionSlab)
        .where(CommissionSlab.user_id.in_(owner_ids))
        .order_by(CommissionSlab.user_id, CommissionSlab.min_amount, CommissionSlab.id)
    )

    grouped: Dict[int, List[CommissionSlab]] = defaultdict(list)
    for slab in result.scalars().all():
        grouped[slab.user_id].append(slab)
    return grouped


async def _reconcile_owners(
    db: AsyncSession,
    owners: Sequence[User],
    window: ReportWindow,
    mode: CommissionMode,
) -> List[CommissionReportRow]:
    if not owners:
        return []

    owner_ids = [owner.id for owner in owners]
    deals = await _load_closed_deals(db, owner_ids, window)
    slabs = await _load_slabs(db, owner_ids)

    return [
        reconcile(owner, deals.get(owner.id, []), slabs.get(owner.id, []), mode)
        for owner in owners
    ]


# ── Public API ───────────────────────────────────────────


async def aggregate(
    db: AsyncSession,
    owner_id: int,
    window: Optional[ReportWindow] = None,
    mode: Optional[CommissionMode] = None,
) -> CommissionReportRow:
    """
    Commission report row for one user.

    Raises:
        NotFoundError: the user does not exist
    """
    owner = await db.get(User, owner_id)
    if not owner:
        raise NotFoundError("User not found")

    rows = await _reconcile_owners(db, [owner], window or ReportWindow(), mode or current_mode())
    return rows[0]


async def aggregate_all(
    db: AsyncSession,
    window: Optional[ReportWindow] = None,
    mode: Optional[CommissionMode] = None,
) -> List[CommissionReportRow]:
    """
    Commission report rows for every active commission-earning user,
    ordered by name (then id). Users without closed deals get a zero row.
    """
    result = await db.execute(
        select(User)
        .where(User.is_active.is_(True), User.role.in_(commission_roles()))
        .order_by(User.name, User.id)
    )
    owners = result.scalars().all()

    rows = await _reconcile_owners(db, owners, window or ReportWindow(), mode or current_mode())
    logger.debug(f"Aggregated commission for {len(rows)} user(s)")
    return rows


async def clear_manual_commissions(db: AsyncSession, owner_id: int) -> int:
    """
    Delete every manual commission of a user, reverting their reports to
    slab-based figures. Runs in the caller's transaction.

    Returns:
        Number of commission records deleted

    Raises:
        NotFoundError: the user does not exist
    """
    owner = await db.get(User, owner_id)
    if not owner:
        raise NotFoundError("User not found")

    owned_leads = select(Lead.id).where(Lead.owner_id == owner_id)
    belongs_to_owner = or_(
        Commission.user_id == owner_id,
        Commission.lead_id.in_(owned_leads),
    )

    result = await db.execute(select(Commission.id).where(belongs_to_owner))
    commission_ids = list(result.scalars().all())

    if commission_ids:
        await db.execute(
            delete(CommissionHistory)
            .where(CommissionHistory.commission_id.in_(commission_ids))
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(
            delete(Commission)
            .where(Commission.id.in_(commission_ids))
            .execution_options(synchronize_session="fetch")
        )

    logger.info(f"Cleared {len(commission_ids)} manual commission(s) for user {owner_id}")
    return len(commission_ids)


async def record_manual_commission(
    db: AsyncSession,
    owner_id: int,
    lead_id: int,
    amount: Any,
    changed_by_id: int,
    rate: Any = None,
    notes: Optional[str] = None,
    change_reason: Optional[str] = None,
) -> Tuple[Commission, bool]:
    """Create or update the manual commission on one of a user's closed leads.

    Every call appends a CommissionHistory row.

    Returns:
        (commission, is_update)

    Raises:
        ValidationError: amount is missing or not positive
        NotFoundError: lead missing, owned by someone else or not closed
    """
    if amount is None or to_decimal(amount) <= 0:
        raise ValidationError(
            "Commission amount is required and must be greater than 0",
            "commission_amount",
        )
    amount = to_decimal(amount)
    rate = None if rate is None else to_decimal(rate)

    closing_ids = await closing_status_ids(db)
    result = await db.execute(
        select(Lead)
        .where(
            Lead.id == lead_id,
            Lead.owner_id == owner_id,
            Lead.status_id.in_(closing_ids),
        )
        .options(selectinload(Lead.commission).selectinload(Commission.history))
        .execution_options(populate_existing=True)
    )
    lead = result.scalar_one_or_none()
    if not lead:
        raise NotFoundError("Lead not found or not closed won")

    commission = lead.commission
    is_update = commission is not None

    if is_update:
        history = CommissionHistory(
            previous_amount=commission.commission_amount,
            new_amount=amount,
            previous_rate=commission.commission_rate,
            new_rate=rate,
            change_reason=change_reason or "Commission updated",
            changed_by_id=changed_by_id,
        )
        commission.commission_amount = amount
        commission.commission_rate = rate
        commission.notes = notes or None
        commission.updated_at = datetime.now(timezone.utc)
    else:
        commission = Commission(
            lead=lead,
            user_id=owner_id,
            commission_amount=amount,
            commission_rate=rate,
            notes=notes or None,
            created_by_id=changed_by_id,
        )
        history = CommissionHistory(
            previous_amount=None,
            new_amount=amount,
            previous_rate=None,
            new_rate=rate,
            change_reason=change_reason or "Commission created",
            changed_by_id=changed_by_id,
        )
        commission.history = []
        db.add(commission)

    commission.history.append(history)
    await db.flush()

    action = "Updated" if is_update else "Recorded"
    logger.info(f"{action} manual commission {amount} on lead {lead_id} for user {owner_id}")
    return commission, is_update


async def get_manual_commission(db: AsyncSession, commission_id: int) -> Commission:
    """Reload a commission with its history and authors, overwriting stale state."""
    result = await db.execute(
        select(Commission)
        .where(Commission.id == commission_id)
        .options(selectinload(Commission.history).selectinload(CommissionHistory.changed_by))
        .execution_options(populate_existing=True)
    )
    commission = result.scalar_one_or_none()
    if not commission:
        raise NotFoundError("Commission not found")
    return commission


async def list_manual_commissions(
    db: AsyncSession,
    window: Optional[ReportWindow] = None,
) -> List[CommissionRecordResponse]:
    """Every manual commission whose lead closed in the window, newest first."""
    query = (
        select(Commission)
        .join(Lead, Commission.lead_id == Lead.id)
        .options(
            selectinload(Commission.lead),
            selectinload(Commission.user),
            selectinload(Commission.created_by),
        )
    )
    query = (window or ReportWindow()).apply(query)
    query = query.order_by(Commission.created_at.desc(), Commission.id.desc())

    result = await db.execute(query)

    return [
        CommissionRecordResponse(
            id=commission.id,
            sales_person=commission.user.name if commission.user else None,
            sales_person_email=commission.user.email if commission.user else None,
            role=UserRole(commission.user.role).value if commission.user else None,
            lead_name=commission.lead.name,
            lead_email=commission.lead.email,
            lead_company=commission.lead.company,
            deal_value=to_decimal(commission.lead.estimated_value),
            commission_amount=commission.commission_amount,
            commission_rate=commission.commission_rate,
            created_at=commission.created_at,
            created_by=commission.created_by.name if commission.created_by else None,
            notes=commission.notes,
        )
        for commission in result.scalars().all()
    ]


async def delete_manual_commission(
    db: AsyncSession,
    lead_id: int,
    owner_id: Optional[int] = None,
) -> None:
    """
    Delete the manual commission of a lead together with its history.

    When owner_id is given the commission must belong to that user.

    Raises:
        NotFoundError: the lead has no (matching) manual commission
    """
    query = (
        select(Commission)
        .join(Lead, Commission.lead_id == Lead.id)
        .where(Commission.lead_id == lead_id)
        .options(selectinload(Commission.history))
    )
    if owner_id is not None:
        query = query.where(or_(Commission.user_id == owner_id, Lead.owner_id == owner_id))

    result = await db.execute(query)
    commission = result.scalar_one_or_none()
    if not commission:
        raise NotFoundError("Commission not found")

    await db.delete(commission)
    await db.flush()
    logger.info(f"Deleted manual commission on lead {lead_id}")


# ── Drill-down ───────────────────────────────────────────


def calculation_response(calculation: CommissionCalculation) -> CalculationResponse:
    return CalculationResponse(
        total_commission=calculation.total_commission,
        effective_rate=calculation.effective_rate,
        breakdown=[SlabShareResponse.model_validate(share) for share in calculation.breakdown],
    )


def manual_commission_response(commission: Commission) -> ManualCommissionResponse:
    """Serialize a Commission with its history already loaded."""
    return ManualCommissionResponse(
        id=commission.id,
        lead_id=commission.lead_id,
        amount=commission.commission_amount,
        rate=commission.commission_rate,
        notes=commission.notes,
        created_at=commission.created_at,
        updated_at=commission.updated_at,
        history=[
            CommissionHistoryResponse(
                id=entry.id,
                previous_amount=entry.previous_amount,
                new_amount=entry.new_amount,
                previous_rate=entry.previous_rate,
                new_rate=entry.new_rate,
                change_reason=entry.change_reason,
                changed_at=entry.changed_at,
                changed_by=entry.changed_by.name if entry.changed_by else None,
            )
            for entry in commission.history
        ],
    )


async def owner_detail(
    db: AsyncSession,
    owner_id: int,
    window: Optional[ReportWindow] = None,
    mode: Optional[CommissionMode] = None,
) -> OwnerCommissionDetailResponse:
    """
    A user's slab table and closed deals, each with its slab breakdown and
    manual commission (newest closing first).

    Raises:
        NotFoundError: the user does not exist
    """
    owner = await db.get(User, owner_id)
    if not owner:
        raise NotFoundError("User not found")

    window = window or ReportWindow()
    mode = mode or current_mode()
    slabs = await get_slabs(db, owner_id)
    closing_ids = await closing_status_ids(db)

    query = (
        select(Lead)
        .where(Lead.owner_id == owner_id, Lead.status_id.in_(closing_ids))
        .options(
            selectinload(Lead.status),
            selectinload(Lead.commission)
            .selectinload(Commission.history)
            .selectinload(CommissionHistory.changed_by),
        )
    )
    query = window.apply(query).order_by(
        func.coalesce(Lead.closed_at, Lead.created_at).desc(), Lead.id.desc()
    ).execution_options(populate_existing=True)
    result = await db.execute(query)
    leads = result.scalars().all()

    return OwnerCommissionDetailResponse(
        user=OwnerSummary(
            id=owner.id,
            name=owner.name,
            email=owner.email,
            role=UserRole(owner.role).value,
            commission_slabs=[SlabResponse.model_validate(slab) for slab in slabs],
        ),
        leads=[
            DealCommissionResponse(
                id=lead.id,
                name=lead.name,
                email=lead.email,
                company=lead.company,
                estimated_value=to_decimal(lead.estimated_value),
                status=lead.status.name if lead.status else None,
                closed_at=lead.closed_at,
                calculated_commission=calculation_response(
                    calculate(lead.estimated_value, slabs, mode)
                ),
                commission=manual_commission_response(lead.commission) if lead.commission else None,
            )
            for lead in leads
        ],
    )
