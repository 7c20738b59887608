# Overview: Pytest coverage for shift closing, cash reconciliation and approval gating.

"""
Shift Closing Tests

Verifies:
- expected = opening + cash sales - expenses; discrepancy = actual - expected
- The shift window starts at clock-in; earlier sales do not count
- Evening shifts inherit the morning closing's actual cash as opening balance
- Early close (cashier) and discrepancy (actual > 0) need an approver
- A failed approval writes nothing
- One closing per staff, outlet and day; a closed cashier is locked out of
  production and transfers for the rest of the day
"""

import pytest

from app.errors import ApprovalRequiredError, AuthorizationFailedError, InvalidStateError
from app.models import DailyClosing, SyncOutboxEntry
from app.services import (
    closing_service, production_service, purchase_service, sales_service, timekeeping_service,
    transfer_service,
)


@pytest.fixture
def paket(db_session):
    """A 50,000 Rupiah product without stock consumption."""
    product = sales_service.create_product("Paket Nasi", 50000)
    db_session.commit()
    return product


@pytest.fixture
def operasional(db_session):
    expense_type = purchase_service.create_expense_type("Operasional")
    db_session.commit()
    return expense_type


@pytest.fixture
def morning_cashier(make_staff, outlet):
    """Cashier at `outlet` working 08:00-14:00."""
    return make_staff("rina", "CASHIER", [outlet], shift_start="08:00", shift_end="14:00")


def _sell(outlet, staff, product, quantity, method, now):
    return sales_service.record_sale(
        outlet.id, staff.id, [{"product_id": product.id, "quantity": quantity}], method, now=now,
    )


# =============================================================================
# SUMMARY ARITHMETIC
# =============================================================================


class TestShiftSummary:

    def test_reconciled_morning_shift_closes_without_approval(
        self, db_session, outlet, morning_cashier, paket, operasional, caller_for, at
    ):
        timekeeping_service.clock_in(staff_id=morning_cashier.id, outlet_id=outlet.id, now=at(8))
        _sell(outlet, morning_cashier, paket, 10, "CASH", at(9))
        _sell(outlet, morning_cashier, paket, 1, "QRIS", at(10))
        purchase_service.record_expense(
            outlet.id, morning_cashier.id, operasional.id, 50000, "Gas", now=at(11),
        )
        db_session.commit()

        caller = caller_for(morning_cashier, outlet)
        summary = closing_service.compute_summary(caller, at(14, 30))

        assert summary.shift_name == "SHIFT PAGI"
        assert summary.opening_balance == 0
        assert summary.total_sales_cash == 500000
        assert summary.total_sales_qris == 50000
        assert summary.total_expenses == 50000
        assert summary.expected_cash == 450000
        assert summary.window_start == at(8)
        assert summary.transaction_count == 2
        assert summary.expense_breakdown == {"OPERASIONAL": 50000}

        closing = closing_service.close_shift(caller, 450000, now=at(14, 30))
        db_session.commit()

        assert closing.discrepancy == 0
        assert closing.expected_cash == 450000
        assert closing.approved_by_staff_id is None
        assert closing.approval_reasons == []
        assert closing.business_date.isoformat() == "2026-03-02"
        assert timekeeping_service.current_attendance(morning_cashier.id) is None
        assert db_session.query(SyncOutboxEntry).filter_by(entity_type="daily_closing").count() == 1

    def test_discrepancy_is_actual_minus_expected(
        self, db_session, outlet, morning_cashier, manager, paket, operasional, caller_for, at
    ):
        timekeeping_service.clock_in(staff_id=morning_cashier.id, outlet_id=outlet.id, now=at(8))
        _sell(outlet, morning_cashier, paket, 3, "CASH", at(9))
        purchase_service.record_expense(outlet.id, morning_cashier.id, operasional.id, 12500, now=at(9, 30))
        db_session.commit()

        closing = closing_service.close_shift(
            caller_for(morning_cashier, outlet), 140000,
            approver_username=manager.username, approver_password="rahasia1",
            now=at(14, 30),
        )

        assert closing.expected_cash == 137500
        assert closing.discrepancy == 2500
        assert closing.approval_reasons == ["DISCREPANCY"]

    def test_sales_before_clock_in_are_outside_window(
        self, db_session, outlet, morning_cashier, paket, caller_for, at
    ):
        _sell(outlet, morning_cashier, paket, 1, "CASH", at(7))
        timekeeping_service.clock_in(staff_id=morning_cashier.id, outlet_id=outlet.id, now=at(8))
        _sell(outlet, morning_cashier, paket, 2, "CASH", at(9))
        db_session.commit()

        summary = closing_service.compute_summary(caller_for(morning_cashier, outlet), at(14, 30))

        assert summary.total_sales_cash == 100000

    def test_night_shift_window_reaches_back_past_midnight(
        self, db_session, outlet, make_staff, paket, caller_for, at
    ):
        night = make_staff("joko", "CASHIER", [outlet], shift_start="20:00", shift_end="04:00")
        timekeeping_service.clock_in(staff_id=night.id, outlet_id=outlet.id, now=at(20))
        _sell(outlet, night, paket, 1, "CASH", at(21))
        timekeeping_service.clock_out(staff_id=night.id, now=at(0, 30, days=1))
        db_session.commit()

        summary = closing_service.compute_summary(caller_for(night, outlet), at(0, 45, days=1))

        assert summary.window_start == at(20)
        assert summary.total_sales_cash == 50000
        assert summary.expected_cash == 50000

    def test_window_ignores_clock_in_at_other_outlet(
        self, db_session, outlet, second_outlet, manager, caller_for, at
    ):
        timekeeping_service.clock_in(staff_id=manager.id, outlet_id=outlet.id, now=at(8))
        timekeeping_service.clock_out(staff_id=manager.id, now=at(12))
        timekeeping_service.clock_in(staff_id=manager.id, outlet_id=second_outlet.id, now=at(13))
        db_session.commit()

        summary = closing_service.compute_summary(caller_for(manager, outlet), at(14))

        assert summary.window_start == at(8)

    def test_window_defaults_to_local_midnight(self, db_session, outlet, morning_cashier, paket, caller_for, at):
        _sell(outlet, morning_cashier, paket, 1, "CASH", at(0, 30))
        _sell(outlet, morning_cashier, paket, 1, "CASH", at(23, 30, days=-1))
        db_session.commit()

        summary = closing_service.compute_summary(caller_for(morning_cashier, outlet), at(14, 30))

        assert summary.window_start == at(0)
        assert summary.total_sales_cash == 50000

    def test_only_own_sales_and_expenses_count(
        self, db_session, outlet, morning_cashier, cashier, paket, caller_for, at
    ):
        timekeeping_service.clock_in(staff_id=morning_cashier.id, outlet_id=outlet.id, now=at(8))
        _sell(outlet, morning_cashier, paket, 1, "CASH", at(9))
        _sell(outlet, cashier, paket, 4, "CASH", at(9))
        db_session.commit()

        summary = closing_service.compute_summary(caller_for(morning_cashier, outlet), at(14, 30))

        assert summary.total_sales_cash == 50000

    def test_voided_sales_are_excluded(self, db_session, outlet, morning_cashier, manager, paket, caller_for, at):
        timekeeping_service.clock_in(staff_id=morning_cashier.id, outlet_id=outlet.id, now=at(8))
        tx = _sell(outlet, morning_cashier, paket, 2, "CASH", at(9))
        _sell(outlet, morning_cashier, paket, 1, "CASH", at(10))
        sales_service.void_sale(tx.id, outlet.id, manager.id, now=at(9, 10))
        db_session.commit()

        summary = closing_service.compute_summary(caller_for(morning_cashier, outlet), at(14, 30))

        assert summary.total_sales_cash == 50000

    def test_stock_purchases_count_as_expenses(
        self, db_session, outlet, morning_cashier, make_item, caller_for, at
    ):
        syrup = make_item(outlet, "Syrup", quantity=0, unit="ml", can_cashier_purchase=True)
        timekeeping_service.clock_in(staff_id=morning_cashier.id, outlet_id=outlet.id, now=at(8))
        purchase_service.record_purchase(
            outlet.id, morning_cashier.id, morning_cashier.role, syrup.id, 1000, 35000, now=at(9),
        )
        db_session.commit()

        summary = closing_service.compute_summary(caller_for(morning_cashier, outlet), at(14, 30))

        assert summary.total_expenses == 35000
        assert summary.expense_breakdown == {"BELANJA STOK": 35000}
        assert summary.expected_cash == -35000
        assert [row.item_name for row in summary.stock_audit] == ["Syrup"]


# =============================================================================
# OPENING BALANCE CARRY-OVER
# =============================================================================


class TestOpeningBalance:

    def test_evening_inherits_morning_actual_cash(
        self, db_session, outlet, morning_cashier, make_staff, paket, caller_for, at
    ):
        evening = make_staff("agus", "CASHIER", [outlet], shift_start="15:00", shift_end="22:00")

        timekeeping_service.clock_in(staff_id=morning_cashier.id, outlet_id=outlet.id, now=at(8))
        _sell(outlet, morning_cashier, paket, 9, "CASH", at(9))
        closing_service.close_shift(caller_for(morning_cashier, outlet), 450000, now=at(14, 30))
        db_session.commit()

        timekeeping_service.clock_in(staff_id=evening.id, outlet_id=outlet.id, now=at(15))
        _sell(outlet, evening, paket, 2, "CASH", at(18))
        db_session.commit()

        closing = closing_service.close_shift(caller_for(evening, outlet), 550000, now=at(22))

        assert closing.shift_name == "SHIFT SORE/MALAM"
        assert closing.opening_balance == 450000
        assert closing.expected_cash == 550000
        assert closing.discrepancy == 0

    def test_evening_without_morning_closing_starts_at_zero(
        self, db_session, outlet, make_staff, caller_for, at
    ):
        evening = make_staff("agus", "CASHIER", [outlet], shift_start="15:00", shift_end="22:00")
        timekeeping_service.clock_in(staff_id=evening.id, outlet_id=outlet.id, now=at(15))
        db_session.commit()

        summary = closing_service.compute_summary(caller_for(evening, outlet), at(22))

        assert summary.shift_name == "SHIFT SORE/MALAM"
        assert summary.opening_balance == 0

    def test_morning_closing_of_previous_day_is_not_inherited(
        self, db_session, outlet, morning_cashier, make_staff, caller_for, at
    ):
        evening = make_staff("agus", "CASHIER", [outlet], shift_start="15:00", shift_end="22:00")
        closing_service.close_shift(caller_for(morning_cashier, outlet), 0, now=at(14, 30, days=-1))
        db_session.commit()

        summary = closing_service.compute_summary(caller_for(evening, outlet), at(22))

        assert summary.opening_balance == 0

    def test_shift_name_follows_local_cutoff(self, app, outlet, at):
        assert closing_service.shift_name_for(at(14, 59), "Asia/Jakarta") == "SHIFT PAGI"
        assert closing_service.shift_name_for(at(15), "Asia/Jakarta") == "SHIFT SORE/MALAM"


# =============================================================================
# APPROVAL GATING
# =============================================================================


class TestApprovalGating:

    def test_early_close_requires_approval(self, db_session, outlet, make_staff, caller_for, at):
        """Cashier with shift end 18:00 closing at 14:00, cash balanced."""
        staff = make_staff("rina", "CASHIER", [outlet], shift_start="08:00", shift_end="18:00")
        timekeeping_service.clock_in(staff_id=staff.id, outlet_id=outlet.id, now=at(8))
        db_session.commit()

        with pytest.raises(ApprovalRequiredError) as exc:
            closing_service.close_shift(caller_for(staff, outlet), 0, now=at(14))

        assert exc.value.reasons == ["EARLY_CLOSE"]
        assert exc.value.to_dict()["code"] == "AUTHORIZATION_FAILED"
        db_session.rollback()
        assert db_session.query(DailyClosing).count() == 0
        assert timekeeping_service.current_attendance(staff.id) is not None

    def test_early_close_with_manager_credentials(
        self, db_session, outlet, make_staff, manager, caller_for, at
    ):
        staff = make_staff("rina", "CASHIER", [outlet], shift_start="08:00", shift_end="18:00")

        closing = closing_service.close_shift(
            caller_for(staff, outlet), 0,
            notes="Pulang cepat",
            approver_username=manager.username,
            approver_password="rahasia1",
            now=at(14),
        )

        assert closing.approved_by_staff_id == manager.id
        assert closing.notes == "Pulang cepat (Approved by: Budi)"
        assert closing.approval_reasons == ["EARLY_CLOSE"]

    def test_wrong_approver_password_writes_nothing(
        self, db_session, outlet, make_staff, manager, caller_for, at
    ):
        staff = make_staff("rina", "CASHIER", [outlet], shift_start="08:00", shift_end="18:00")

        with pytest.raises(AuthorizationFailedError):
            closing_service.close_shift(
                caller_for(staff, outlet), 0,
                approver_username=manager.username, approver_password="salah123",
                now=at(14),
            )
        db_session.rollback()
        assert db_session.query(DailyClosing).count() == 0

    def test_cashier_cannot_approve(self, db_session, outlet, make_staff, cashier, caller_for, at):
        staff = make_staff("rina", "CASHIER", [outlet], shift_start="08:00", shift_end="18:00")

        with pytest.raises(AuthorizationFailedError):
            closing_service.close_shift(
                caller_for(staff, outlet), 0,
                approver_username=cashier.username, approver_password="rahasia1",
                now=at(14),
            )

    def test_discrepancy_requires_approval(
        self, db_session, outlet, morning_cashier, paket, caller_for, at
    ):
        _sell(outlet, morning_cashier, paket, 1, "CASH", at(9))
        db_session.commit()

        with pytest.raises(ApprovalRequiredError) as exc:
            closing_service.close_shift(caller_for(morning_cashier, outlet), 45000, now=at(14, 30))

        assert exc.value.reasons == ["DISCREPANCY"]

    def test_zero_count_skips_discrepancy_approval(
        self, db_session, outlet, morning_cashier, paket, caller_for, at
    ):
        _sell(outlet, morning_cashier, paket, 1, "CASH", at(9))
        db_session.commit()

        closing = closing_service.close_shift(caller_for(morning_cashier, outlet), 0, now=at(14, 30))

        assert closing.discrepancy == -50000
        assert closing.approval_reasons == []

    def test_manager_self_approves(self, db_session, outlet, manager, paket, caller_for, at):
        _sell(outlet, manager, paket, 1, "CASH", at(9))
        db_session.commit()

        closing = closing_service.close_shift(caller_for(manager, outlet), 40000, now=at(10))

        assert closing.approved_by_staff_id == manager.id
        assert closing.approval_reasons == ["DISCREPANCY"]
        assert closing.notes == "(Approved by: Budi)"

    def test_manager_is_never_early(self, db_session, outlet, manager, caller_for, at):
        closing = closing_service.close_shift(caller_for(manager, outlet), 0, now=at(9))

        assert closing.approval_reasons == []

    @pytest.mark.parametrize("actual_cash", [-1, "450000", 1.5, True])
    def test_actual_cash_must_be_non_negative_int(
        self, db_session, outlet, morning_cashier, caller_for, actual_cash, at
    ):
        with pytest.raises(ValueError):
            closing_service.close_shift(caller_for(morning_cashier, outlet), actual_cash, now=at(14, 30))


# =============================================================================
# TERMINAL STATE
# =============================================================================


class TestClosedShift:

    def test_second_closing_same_day_is_invalid_state(
        self, db_session, outlet, morning_cashier, caller_for, at
    ):
        closing_service.close_shift(caller_for(morning_cashier, outlet), 0, now=at(14, 30))
        db_session.commit()

        with pytest.raises(InvalidStateError):
            closing_service.close_shift(caller_for(morning_cashier, outlet), 0, now=at(20))

        db_session.rollback()
        assert db_session.query(DailyClosing).count() == 1

    def test_next_day_can_close_again(self, db_session, outlet, morning_cashier, caller_for, at):
        closing_service.close_shift(caller_for(morning_cashier, outlet), 0, now=at(14, 30))
        closing_service.close_shift(caller_for(morning_cashier, outlet), 0, now=at(14, 30, days=1))
        db_session.commit()

        assert db_session.query(DailyClosing).count() == 2

    def test_closing_for_day(self, db_session, outlet, morning_cashier, caller_for, at):
        assert closing_service.closing_for_day(morning_cashier.id, outlet.id, at(14, 30)) is None

        closing = closing_service.close_shift(caller_for(morning_cashier, outlet), 0, now=at(14, 30))
        db_session.commit()

        assert closing_service.closing_for_day(morning_cashier.id, outlet.id, at(23)).id == closing.id
        assert closing_service.closing_for_day(morning_cashier.id, outlet.id, at(8, days=1)) is None

    def test_closed_cashier_cannot_produce_or_transfer(
        self, db_session, outlet, second_outlet, morning_cashier, make_item, caller_for, at
    ):
        sugar = make_item(outlet, "Gula", quantity=100)
        syrup = make_item(outlet, "Syrup", quantity=0, unit="ml", type="WIP")
        closing_service.close_shift(caller_for(morning_cashier, outlet), 0, now=at(14, 30))
        db_session.commit()

        with pytest.raises(InvalidStateError):
            production_service.execute_production(
                outlet.id, morning_cashier.id, syrup.id, 10,
                [{"inventory_item_id": sugar.id, "quantity": 10}],
                now=at(15),
            )
        with pytest.raises(InvalidStateError):
            transfer_service.initiate_transfer(
                outlet.id, second_outlet.id, "Gula", 10, morning_cashier.id, now=at(15),
            )
        db_session.rollback()
        assert sugar.quantity == 100

    def test_closing_leaves_attendance_at_other_outlet_open(
        self, db_session, outlet, second_outlet, manager, caller_for, at
    ):
        entry = timekeeping_service.clock_in(staff_id=manager.id, outlet_id=second_outlet.id, now=at(8))
        db_session.commit()

        closing_service.close_shift(caller_for(manager, outlet), 0, now=at(14, 30))
        db_session.commit()

        assert timekeeping_service.current_attendance(manager.id).id == entry.id
        assert entry.clock_out_at is None
        assert timekeeping_service.current_attendance(manager.id, outlet_id=outlet.id) is None

    def test_closing_does_not_touch_inventory(
        self, db_session, outlet, morning_cashier, make_item, caller_for, at
    ):
        sugar = make_item(outlet, "Gula", quantity=100)

        closing_service.close_shift(caller_for(morning_cashier, outlet), 0, now=at(14, 30))
        db_session.commit()

        assert sugar.quantity == 100
