"""
Tests for commission reconciliation.

Covers:
- Closing-status alias matching
- Calculated totals and effective rate per owner
- Manual override (all-or-nothing) and clearing it
- Report window filtering
- Manual commission create / update / delete with history
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from slabline.models import Commission, CommissionHistory, Lead, LeadStatus, User, UserRole
from slabline.services.calculator import CommissionMode
from slabline.services.exceptions import NotFoundError, ValidationError
from slabline.services.reconciliation import (
    ReportWindow,
    aggregate,
    aggregate_all,
    clear_manual_commissions,
    closing_status_keys,
    delete_manual_commission,
    effective_rate,
    get_manual_commission,
    is_closing_status,
    list_manual_commissions,
    normalize_status_name,
    owner_detail,
    reconcile,
    record_manual_commission,
)


# ── Closing statuses ─────────────────────────────────────


class TestClosingStatus:
    def test_normalize(self):
        assert normalize_status_name("closed_won") == "CLOSED WON"
        assert normalize_status_name("  Closed   Won ") == "CLOSED WON"

    def test_aliases_collapse(self):
        keys = closing_status_keys(["Closed Won", "CLOSED_WON", "closed won"])
        assert keys == {"CLOSED WON"}

    @pytest.mark.parametrize("name", ["Closed Won", "CLOSED_WON", "won", "Completed"])
    def test_closing(self, name):
        assert is_closing_status(name)

    @pytest.mark.parametrize("name", ["New", "Lost", "", None])
    def test_not_closing(self, name):
        assert not is_closing_status(name)


# ── Report window ────────────────────────────────────────


class TestReportWindow:
    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            ReportWindow(start=date(2026, 3, 10), end=date(2026, 3, 1))
        assert exc_info.value.field == "start_date"

    def test_end_is_inclusive(self):
        lower, upper = ReportWindow(start=date(2026, 3, 1), end=date(2026, 3, 31)).bounds()
        assert lower.isoformat() == "2026-03-01T00:00:00+00:00"
        assert upper.isoformat() == "2026-04-01T00:00:00+00:00"

    def test_open_window(self):
        assert ReportWindow().bounds() == (None, None)


# ── reconcile (pure) ─────────────────────────────────────


def _owner():
    return SimpleNamespace(id=1, name="Sam", email="sam@example.com", role=UserRole.SALES_PERSON)


def _deal(value):
    return SimpleNamespace(estimated_value=Decimal(value))


def _manual(amount):
    return SimpleNamespace(commission_amount=Decimal(amount))


def _slabs():
    return [
        SimpleNamespace(id=1, min_amount=Decimal("0"), max_amount=Decimal("5000"), rate=Decimal("5")),
        SimpleNamespace(id=2, min_amount=Decimal("5000"), max_amount=None, rate=Decimal("8")),
    ]


class TestReconcile:
    def test_calculated_row(self):
        row = reconcile(_owner(), [(_deal("3000"), None), (_deal("8000"), None)], _slabs())
        assert row.total_closings == Decimal("11000.00")
        assert row.total_calculated_commission == Decimal("640.00")
        assert row.total_commission == Decimal("640.00")
        assert row.commission_source == "calculated"
        assert row.effective_rate == Decimal("5.82")
        assert row.closed_deals_count == 2
        assert row.manual_commissions_count == 0

    def test_manual_overrides_whole_row(self):
        row = reconcile(_owner(), [(_deal("3000"), None), (_deal("8000"), _manual("500"))], _slabs())
        assert row.total_commission == Decimal("500.00")
        assert row.total_calculated_commission == Decimal("640.00")
        assert row.total_actual_commission == Decimal("500.00")
        assert row.commission_source == "manual"
        assert row.manual_commissions_count == 1
        assert row.effective_rate == Decimal("4.55")

    def test_zero_manual_does_not_override(self):
        row = reconcile(_owner(), [(_deal("8000"), _manual("0"))], _slabs())
        assert row.commission_source == "calculated"
        assert row.total_commission == Decimal("490.00")

    def test_no_deals(self):
        row = reconcile(_owner(), [], _slabs())
        assert row.total_closings == Decimal("0.00")
        assert row.total_commission == Decimal("0.00")
        assert row.effective_rate == Decimal("0.00")

    def test_flat_mode(self):
        row = reconcile(_owner(), [(_deal("8000"), None)], _slabs(), CommissionMode.FLAT)
        assert row.total_commission == Decimal("640.00")

    def test_effective_rate_zero_closings(self):
        assert effective_rate(Decimal("10"), Decimal("0")) == Decimal("0.00")


# ── aggregate ────────────────────────────────────────────


class TestAggregate:
    @pytest.mark.asyncio
    async def test_example_owner(self, db_session, seller, seller_slabs, seller_deals):
        row = await aggregate(db_session, seller.id, mode=CommissionMode.PROGRESSIVE)

        assert row.total_closings == Decimal("11000.00")
        assert row.total_commission == Decimal("640.00")
        assert row.effective_rate == Decimal("5.82")
        assert row.closed_deals_count == 2

    @pytest.mark.asyncio
    async def test_unknown_owner(self, db_session):
        with pytest.raises(NotFoundError):
            await aggregate(db_session, 9999)

    @pytest.mark.asyncio
    async def test_window_filters_deals(self, db_session, seller, seller_slabs, seller_deals):
        window = ReportWindow(start=date(2026, 3, 10), end=date(2026, 3, 20))
        row = await aggregate(db_session, seller.id, window, CommissionMode.PROGRESSIVE)

        assert row.closed_deals_count == 1
        assert row.total_closings == Decimal("8000.00")
        assert row.total_commission == Decimal("490.00")

    @pytest.mark.asyncio
    async def test_window_open_start(self, db_session, seller, seller_slabs, seller_deals):
        row = await aggregate(db_session, seller.id, ReportWindow(end=date(2026, 3, 5)))
        assert row.closed_deals_count == 1
        assert row.total_closings == Decimal("3000.00")

    @pytest.mark.asyncio
    async def test_all_includes_zero_rows(self, db_session, admin, seller, seller_slabs, seller_deals):
        idle = User(name="Ivy Idle", email="ivy@example.com", role=UserRole.SALES_MANAGER)
        gone = User(name="Gil Gone", email="gil@example.com", role=UserRole.SALES_PERSON, is_active=False)
        db_session.add_all([idle, gone])
        await db_session.flush()

        rows = await aggregate_all(db_session, mode=CommissionMode.PROGRESSIVE)

        # Admins and inactive users are left out; ordered by name
        assert [row.name for row in rows] == ["Ivy Idle", "Sam Seller"]
        assert rows[0].total_commission == Decimal("0.00")
        assert rows[0].closed_deals_count == 0
        assert rows[1].total_commission == Decimal("640.00")

    @pytest.mark.asyncio
    async def test_irregular_status_spacing_counts_as_closed(self, db_session, seller, seller_slabs):
        status = LeadStatus(name="Closed  Won")
        db_session.add(status)
        await db_session.flush()
        db_session.add(
            Lead(name="Spaced deal", estimated_value=Decimal("3000"), status_id=status.id, owner_id=seller.id)
        )
        await db_session.flush()

        assert is_closing_status(status.name)
        row = await aggregate(db_session, seller.id, mode=CommissionMode.PROGRESSIVE)
        assert row.closed_deals_count == 1
        assert row.total_commission == Decimal("150.00")

    @pytest.mark.asyncio
    async def test_no_slabs_means_zero(self, db_session, seller, seller_deals):
        row = await aggregate(db_session, seller.id)
        assert row.total_closings == Decimal("11000.00")
        assert row.total_commission == Decimal("0.00")


# ── Manual commissions ───────────────────────────────────


class TestManualCommission:
    @pytest.mark.asyncio
    async def test_override_then_clear(self, db_session, admin, seller, seller_slabs, seller_deals):
        await record_manual_commission(
            db_session, seller.id, seller_deals["large"].id, Decimal("500"), admin.id
        )

        row = await aggregate(db_session, seller.id, mode=CommissionMode.PROGRESSIVE)
        assert row.total_commission == Decimal("500.00")
        assert row.commission_source == "manual"

        deleted = await clear_manual_commissions(db_session, seller.id)
        assert deleted == 1

        row = await aggregate(db_session, seller.id, mode=CommissionMode.PROGRESSIVE)
        assert row.total_commission == Decimal("640.00")
        assert row.commission_source == "calculated"

        history = await db_session.execute(select(CommissionHistory))
        assert history.scalars().all() == []

    @pytest.mark.asyncio
    async def test_clear_with_nothing_to_clear(self, db_session, seller):
        assert await clear_manual_commissions(db_session, seller.id) == 0

    @pytest.mark.asyncio
    async def test_clear_unknown_owner(self, db_session):
        with pytest.raises(NotFoundError):
            await clear_manual_commissions(db_session, 9999)

    @pytest.mark.asyncio
    async def test_create_then_update_keeps_history(self, db_session, admin, seller, seller_deals):
        lead_id = seller_deals["small"].id

        created, is_update = await record_manual_commission(
            db_session, seller.id, lead_id, Decimal("100"), admin.id, rate=Decimal("3.5")
        )
        assert is_update is False

        updated, is_update = await record_manual_commission(
            db_session, seller.id, lead_id, Decimal("120"), admin.id, change_reason="Bonus agreed"
        )
        assert is_update is True
        assert updated.id == created.id

        commission = await get_manual_commission(db_session, created.id)
        assert commission.commission_amount == Decimal("120.00")
        assert commission.commission_rate is None
        assert len(commission.history) == 2
        reasons = {entry.change_reason for entry in commission.history}
        assert reasons == {"Commission created", "Bonus agreed"}
        previous = {entry.previous_amount for entry in commission.history}
        assert previous == {None, Decimal("100.00")}

        count = await db_session.execute(select(Commission))
        assert len(count.scalars().all()) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), None])
    async def test_amount_must_be_positive(self, db_session, admin, seller, seller_deals, amount):
        with pytest.raises(ValidationError) as exc_info:
            await record_manual_commission(
                db_session, seller.id, seller_deals["small"].id, amount, admin.id
            )
        assert exc_info.value.field == "commission_amount"

    @pytest.mark.asyncio
    async def test_open_lead_rejected(self, db_session, admin, seller, seller_deals):
        with pytest.raises(NotFoundError):
            await record_manual_commission(
                db_session, seller.id, seller_deals["pending"].id, Decimal("10"), admin.id
            )

    @pytest.mark.asyncio
    async def test_other_owners_lead_rejected(self, db_session, admin, seller_deals):
        with pytest.raises(NotFoundError):
            await record_manual_commission(
                db_session, admin.id, seller_deals["small"].id, Decimal("10"), admin.id
            )

    @pytest.mark.asyncio
    async def test_delete(self, db_session, admin, seller, seller_deals):
        lead_id = seller_deals["large"].id
        await record_manual_commission(db_session, seller.id, lead_id, Decimal("75"), admin.id)

        await delete_manual_commission(db_session, lead_id, owner_id=seller.id)

        result = await db_session.execute(select(Commission))
        assert result.scalars().all() == []

        with pytest.raises(NotFoundError):
            await delete_manual_commission(db_session, lead_id)

    @pytest.mark.asyncio
    async def test_record_again_after_delete(self, db_session, admin, seller, seller_deals):
        lead_id = seller_deals["large"].id
        await record_manual_commission(db_session, seller.id, lead_id, Decimal("75"), admin.id)
        await delete_manual_commission(db_session, lead_id)

        _, is_update = await record_manual_commission(db_session, seller.id, lead_id, Decimal("80"), admin.id)
        assert is_update is False

    @pytest.mark.asyncio
    async def test_list_records(self, db_session, admin, seller, seller_deals):
        await record_manual_commission(
            db_session, seller.id, seller_deals["large"].id, Decimal("500"), admin.id, notes="Q1 deal"
        )

        records = await list_manual_commissions(db_session)

        assert len(records) == 1
        record = records[0]
        assert record.sales_person == "Sam Seller"
        assert record.lead_company == "Large Co"
        assert record.deal_value == Decimal("8000.00")
        assert record.commission_amount == Decimal("500.00")
        assert record.created_by == "Ada Admin"
        assert record.notes == "Q1 deal"

    @pytest.mark.asyncio
    async def test_list_records_window(self, db_session, admin, seller, seller_deals):
        await record_manual_commission(db_session, seller.id, seller_deals["large"].id, Decimal("500"), admin.id)

        records = await list_manual_commissions(db_session, ReportWindow(end=date(2026, 3, 10)))
        assert records == []


# ── Drill-down ───────────────────────────────────────────


class TestOwnerDetail:
    @pytest.mark.asyncio
    async def test_detail(self, db_session, admin, seller, seller_slabs, seller_deals):
        await record_manual_commission(db_session, seller.id, seller_deals["small"].id, Decimal("99"), admin.id)

        detail = await owner_detail(db_session, seller.id, mode=CommissionMode.PROGRESSIVE)

        assert detail.user.name == "Sam Seller"
        assert len(detail.user.commission_slabs) == 2
        # Newest closing first
        assert [lead.name for lead in detail.leads] == ["Large Co deal", "Small Co deal"]
        large, small = detail.leads
        assert large.calculated_commission.total_commission == Decimal("490.00")
        assert len(large.calculated_commission.breakdown) == 2
        assert large.commission is None
        assert small.commission.amount == Decimal("99.00")
        assert len(small.commission.history) == 1

    @pytest.mark.asyncio
    async def test_unknown_owner(self, db_session):
        with pytest.raises(NotFoundError):
            await owner_detail(db_session, 9999)

    @pytest.mark.asyncio
    async def test_lead_without_closed_at_uses_created_at(self, db_session, seller, statuses):
        lead = Lead(
            name="Legacy deal",
            estimated_value=Decimal("1000"),
            status_id=statuses["won"].id,
            owner_id=seller.id,
        )
        db_session.add(lead)
        await db_session.flush()

        detail = await owner_detail(db_session, seller.id)
        assert [item.name for item in detail.leads] == ["Legacy deal"]
