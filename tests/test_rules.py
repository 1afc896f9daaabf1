"""Pure rules: role policy, money, invoice arithmetic, billing periods, dates and lifecycle"""

from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from portal import permissions
from portal.domain.approvals.hashing import compute_approval_hash
from portal.domain.invoices.billing_periods import (
    current_period,
    label_for_range,
    next_period,
    period_for_date,
)
from portal.domain.invoices.calculations import (
    InvoiceAmountError,
    amount_due,
    apply_payment,
    compute_totals,
    line_amount,
)
from portal.domain.payments.dodo_service import normalize_dodo_environment
from portal.domain.work_orders.lifecycle import (
    append_completion_notes,
    approved_change_order_rollup,
    can_transition,
    estimate_display,
    is_editable,
)
from portal.shared.money import from_cents, quantize_money, to_cents
from portal.utils.timezone import (
    format_short_date,
    parse_org_datetime,
    to_org_date_string,
    to_org_time_string,
)


# =============================================================================
# ROLE POLICY
# =============================================================================


class TestPermissions:
    def test_only_vendor_admin_edits_and_invoices(self):
        assert permissions.can_edit_work_orders("vendor_admin")
        assert not permissions.can_edit_work_orders("vendor_staff")
        assert permissions.can_create_invoices("vendor_admin")
        assert not permissions.can_create_invoices("client_admin")

    def test_approver_cannot_see_invoices(self):
        assert not permissions.can_view_invoices("client_approver")
        assert permissions.can_view_invoices("client_viewer")
        assert permissions.can_view_invoices("vendor_staff")

    def test_paying_needs_flag_and_client_admin(self):
        assert permissions.can_pay("client_admin", True)
        assert not permissions.can_pay("client_admin", False)
        assert not permissions.can_pay("vendor_admin", True)

    def test_bulk_sign(self):
        assert permissions.can_bulk_sign("vendor_staff", False)
        assert permissions.can_bulk_sign("client_viewer", True)
        assert not permissions.can_bulk_sign("client_viewer", False)

    def test_client_admin_assigns_client_roles_only(self):
        assert permissions.can_assign_role("client_admin", "client_approver")
        assert not permissions.can_assign_role("client_admin", "vendor_staff")
        assert permissions.can_assign_role("vendor_admin", "vendor_staff")
        assert not permissions.can_assign_role("vendor_staff", "client_viewer")

    def test_vendor_accounts_edited_by_vendor_admin_only(self):
        assert not permissions.can_edit_user("client_admin", "vendor_admin")
        assert permissions.can_edit_user("client_admin", "client_viewer")
        assert permissions.can_edit_user("vendor_admin", "vendor_staff")

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            permissions.is_vendor("superuser")


# =============================================================================
# MONEY AND INVOICE ARITHMETIC
# =============================================================================


class TestMoney:
    def test_half_up_rounding(self):
        assert quantize_money("2.675") == Decimal("2.68")
        assert quantize_money(None) == Decimal("0.00")

    def test_cents(self):
        assert to_cents(Decimal("262.50")) == 26250
        assert from_cents(26250) == Decimal("262.50")


class TestInvoiceTotals:
    def test_line_amount(self):
        assert line_amount(Decimal("3.5"), Decimal("75")) == Decimal("262.50")

    def test_percentage_discount(self):
        totals = compute_totals([Decimal("500.00"), Decimal("262.50")], "percentage", Decimal("10"))
        assert totals == {
            "subtotal": Decimal("762.50"),
            "discount_amount": Decimal("76.25"),
            "total": Decimal("686.25"),
        }

    def test_flat_discount(self):
        totals = compute_totals([Decimal("300.00")], "flat", Decimal("50"))
        assert totals["total"] == Decimal("250.00")

    def test_no_discount(self):
        assert compute_totals([])["total"] == Decimal("0.00")

    @pytest.mark.parametrize(
        "discount_type,value",
        [("percentage", Decimal("101")), ("flat", Decimal("400")), ("flat", Decimal("-1"))],
    )
    def test_invalid_discounts(self, discount_type, value):
        with pytest.raises(InvoiceAmountError):
            compute_totals([Decimal("300.00")], discount_type, value)

    def test_payment_never_drives_balance_negative(self):
        assert amount_due(Decimal("100.00"), Decimal("120.00")) == Decimal("0.00")
        assert apply_payment(Decimal("100.00"), Decimal("40.00"), Decimal("25.00")) == (
            Decimal("65.00"),
            Decimal("35.00"),
        )


# =============================================================================
# BILLING PERIODS
# =============================================================================


class TestBillingPeriods:
    def test_first_half(self):
        period = period_for_date(date(2026, 1, 9))
        assert (period.start, period.end) == (date(2026, 1, 1), date(2026, 1, 15))
        assert period.label == "Jan 1-15, 2026"

    def test_second_half_ends_on_month_end(self):
        period = period_for_date(date(2028, 2, 20))
        assert (period.start, period.end) == (date(2028, 2, 16), date(2028, 2, 29))

    def test_next_period_rolls_over_year(self):
        assert next_period(date(2025, 12, 20)).start == date(2026, 1, 1)
        assert current_period(date(2026, 3, 15)).start == date(2026, 3, 1)

    def test_label_across_months(self):
        assert label_for_range(date(2026, 1, 20), date(2026, 2, 5)) == "Jan 20, 2026 - Feb 5, 2026"

    def test_utc_bounds_cover_local_days(self):
        lower, upper = period_for_date(date(2026, 1, 3)).utc_bounds()
        assert lower == datetime(2026, 1, 1, 5, 0)
        assert upper == datetime(2026, 1, 16, 5, 0)


# =============================================================================
# DATES
# =============================================================================


class TestOrganizationDates:
    @pytest.mark.parametrize("day", ["2026-01-01", "2026-03-08", "2026-07-04", "2026-11-01"])
    def test_date_round_trip(self, day):
        assert to_org_date_string(parse_org_datetime(day)) == day

    def test_date_anchored_at_local_noon(self):
        assert parse_org_datetime("2026-02-06") == datetime(2026, 2, 6, 17, 0)

    def test_clock_time_round_trip_across_dst(self):
        stored = parse_org_datetime("2026-07-04", "19:30")
        assert stored == datetime(2026, 7, 4, 23, 30)
        assert to_org_time_string(stored) == "19:30"

    def test_late_evening_stays_on_local_day(self):
        stored = parse_org_datetime("2026-02-06", "22:00")
        assert stored.day == 7
        assert to_org_date_string(stored) == "2026-02-06"
        assert format_short_date(stored) == "Feb 6"

    def test_bad_input(self):
        with pytest.raises(ValueError):
            parse_org_datetime("02/06/2026")


# =============================================================================
# WORK ORDER LIFECYCLE
# =============================================================================


class TestLifecycle:
    def test_transitions(self):
        assert can_transition("draft", "pending_approval")
        assert can_transition("invoiced", "completed")
        assert not can_transition("draft", "approved")
        assert not can_transition("paid", "completed")

    def test_edit_lock(self):
        assert is_editable("pending_approval")
        assert not is_editable("approved")

    def test_estimate_display(self):
        assert estimate_display("range", Decimal("75"), hours_min=2, hours_max=4)["label"] == (
            "$150.00 - $300.00"
        )
        assert estimate_display("not_to_exceed", Decimal("75"), hours_nte=6)["label"] == "up to $450.00"
        assert estimate_display(None, Decimal("75")) is None

    def test_rollup_counts_approved_only(self):
        change_orders = [
            SimpleNamespace(additional_hours=Decimal("2.00"), is_approved=True),
            SimpleNamespace(additional_hours=Decimal("1.50"), is_approved=False),
            SimpleNamespace(additional_hours=Decimal("0.50"), is_approved=True),
        ]
        assert approved_change_order_rollup(change_orders, Decimal("80.00")) == (
            Decimal("2.50"),
            Decimal("200.00"),
        )

    def test_completion_notes_appended(self):
        assert append_completion_notes("Bring wireless mics", " Ran long ") == (
            "Bring wireless mics\n\nCompletion notes: Ran long"
        )
        assert append_completion_notes("Existing", "   ") == "Existing"


class TestApprovalHash:
    def _work_order(self, **overrides):
        fields = dict(
            event_name="Spring Concert",
            event_date=parse_org_datetime("2026-04-18"),
            venue="church",
            event_type="concert",
            scope_service_ids=[2, 1],
            custom_scope="Two handheld mics",
            estimate_type="fixed",
            estimated_hours_min=None,
            estimated_hours_max=None,
            estimated_hours_fixed=Decimal("4.00"),
            estimated_hours_nte=None,
            hourly_rate_snapshot=Decimal("75.00"),
        )
        fields.update(overrides)
        return SimpleNamespace(**fields)

    def test_stable_and_order_insensitive(self):
        first = compute_approval_hash(self._work_order())
        second = compute_approval_hash(self._work_order(scope_service_ids=[1, 2]))
        assert first == second
        assert len(first) == 64

    def test_signed_content_changes_hash(self):
        assert compute_approval_hash(self._work_order()) != compute_approval_hash(
            self._work_order(estimated_hours_fixed=Decimal("5.00"))
        )

    def test_change_order_included(self):
        change_order = SimpleNamespace(
            id=7, additional_hours=Decimal("2.00"), reason="client_request", reason_other=None
        )
        assert compute_approval_hash(self._work_order()) != compute_approval_hash(
            self._work_order(), change_order
        )


class TestDodoEnvironment:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, "test_mode"),
            ("sandbox", "test_mode"),
            (" Production ", "live_mode"),
            ("live_mode", "live_mode"),
            ("qa", "test_mode"),
        ],
    )
    def test_aliases(self, raw, expected):
        assert normalize_dodo_environment(raw) == expected
