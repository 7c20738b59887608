# Overview: Shift closing calculator; cash reconciliation, approval gating and the closing record.

"""
Shift Closing Calculator

State machine per staff + outlet + local calendar day:

    OPEN_SHIFT -> (EARLY_CLOSE / DISCREPANCY approval)? -> CLOSED

CLOSED is terminal. Once a DailyClosing exists for the staff, outlet and day,
no further closing is accepted and a CASHIER may no longer run production
or transfers at that outlet that day.

Summary arithmetic (integer Rupiah):
    expected    = opening_balance + cash sales - expenses
    discrepancy = actual_cash - expected

- Window: clock-in of the open attendance record at the outlet, else the
  latest clock-in there today, else local midnight; up to now.
- Shift name: local hour < MORNING_SHIFT_CUTOFF_HOUR -> "SHIFT PAGI",
  otherwise "SHIFT SORE/MALAM".
- Opening balance: 0 in the morning. The evening shift inherits actual_cash
  of the outlet's latest morning closing of the same day, else 0.
- Sales: CLOSED transactions of this cashier at this outlet in the window.
- Expenses: this staff member's expenses at this outlet in the window
  (MANUAL and AUTO_PURCHASE).

The calculator never touches inventory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from flask import current_app

from ..extensions import db
from ..models import DailyClosing, Staff
from ..models.staff import ROLE_CASHIER
from ..errors import InvalidStateError, ApprovalRequiredError, NotFoundError
from . import event_store, sync_service, timekeeping_service
from .auth_service import verify_approver
from .movement_service import MovementRow, stock_ledger
from .outlet_service import outlet_timezone
from .session_service import CallerContext
from app.time_utils import (
    utcnow, to_local, to_utc_z, local_date, local_midnight_utc, local_time_today_utc,
)


SHIFT_MORNING = "SHIFT PAGI"
SHIFT_EVENING = "SHIFT SORE/MALAM"

APPROVAL_EARLY_CLOSE = "EARLY_CLOSE"
APPROVAL_DISCREPANCY = "DISCREPANCY"

PAYMENT_CASH = "CASH"
PAYMENT_QRIS = "QRIS"


@dataclass
class ShiftSummary:
    staff_id: int
    outlet_id: int
    shift_name: str
    business_date: date
    window_start: datetime
    window_end: datetime
    opening_balance: int = 0
    total_sales_cash: int = 0
    total_sales_qris: int = 0
    total_expenses: int = 0
    transaction_count: int = 0
    expense_breakdown: dict[str, int] = field(default_factory=dict)
    stock_audit: list[MovementRow] = field(default_factory=list)

    @property
    def expected_cash(self) -> int:
        return self.opening_balance + self.total_sales_cash - self.total_expenses

    def discrepancy(self, actual_cash: int) -> int:
        return actual_cash - self.expected_cash

    def to_dict(self) -> dict:
        return {
            "staff_id": self.staff_id,
            "outlet_id": self.outlet_id,
            "shift_name": self.shift_name,
            "business_date": self.business_date.isoformat(),
            "window_start": to_utc_z(self.window_start),
            "window_end": to_utc_z(self.window_end),
            "opening_balance": self.opening_balance,
            "total_sales_cash": self.total_sales_cash,
            "total_sales_qris": self.total_sales_qris,
            "total_expenses": self.total_expenses,
            "expected_cash": self.expected_cash,
            "transaction_count": self.transaction_count,
            "expense_breakdown": self.expense_breakdown,
            "stock_audit": [row.to_dict() for row in self.stock_audit],
        }


def shift_name_for(now: datetime, tz_name: str) -> str:
    cutoff = current_app.config["MORNING_SHIFT_CUTOFF_HOUR"]
    return SHIFT_MORNING if to_local(now, tz_name).hour < cutoff else SHIFT_EVENING


def shift_window_start(staff_id: int, outlet_id: int, now: datetime, tz_name: str) -> datetime:
    open_entries = event_store.list_attendance(
        outlet_id=outlet_id, staff_id=staff_id, end=now, open_only=True
    )
    if open_entries:
        return open_entries[-1].clock_in_at

    # No open entry: the latest clock-in at this outlet, however many days back.
    entries = event_store.list_attendance(outlet_id=outlet_id, staff_id=staff_id, end=now)
    if entries:
        return entries[-1].clock_in_at

    return local_midnight_utc(now, tz_name)


def opening_balance_for(outlet_id: int, shift_name: str, business_date: date) -> int:
    if shift_name != SHIFT_EVENING:
        return 0
    mornings = event_store.list_daily_closings(
        outlet_id=outlet_id, business_date=business_date, shift_name=SHIFT_MORNING
    )
    return mornings[-1].actual_cash if mornings else 0


def compute_summary(caller: CallerContext, now: datetime | None = None) -> ShiftSummary:
    """Shift figures for the caller at caller.outlet_id, as of now."""
    now = now or utcnow()
    tz_name = outlet_timezone(caller.outlet_id)
    start = shift_window_start(caller.staff_id, caller.outlet_id, now, tz_name)
    shift_name = shift_name_for(now, tz_name)
    business_date = local_date(now, tz_name)

    summary = ShiftSummary(
        staff_id=caller.staff_id,
        outlet_id=caller.outlet_id,
        shift_name=shift_name,
        business_date=business_date,
        window_start=start,
        window_end=now,
        opening_balance=opening_balance_for(caller.outlet_id, shift_name, business_date),
    )

    for tx in event_store.list_transactions(
        outlet_id=caller.outlet_id, cashier_id=caller.staff_id, start=start, end=now, status="CLOSED"
    ):
        summary.transaction_count += 1
        if tx.payment_method == PAYMENT_CASH:
            summary.total_sales_cash += tx.total
        elif tx.payment_method == PAYMENT_QRIS:
            summary.total_sales_qris += tx.total

    for expense in event_store.list_expenses(
        outlet_id=caller.outlet_id, staff_id=caller.staff_id, start=start, end=now
    ):
        summary.total_expenses += expense.amount
        summary.expense_breakdown[expense.category] = (
            summary.expense_breakdown.get(expense.category, 0) + expense.amount
        )

    summary.stock_audit = stock_ledger(caller.outlet_id, start, now, staff_id=caller.staff_id)
    return summary


def approval_reasons(
    caller: CallerContext,
    summary: ShiftSummary,
    actual_cash: int,
    now: datetime,
) -> list[str]:
    reasons = []
    if caller.role == ROLE_CASHIER:
        shift_end = caller.shift_end_time or current_app.config["DEFAULT_SHIFT_END"]
        end_at = local_time_today_utc(now, shift_end, outlet_timezone(caller.outlet_id))
        if now < end_at:
            reasons.append(APPROVAL_EARLY_CLOSE)
    if summary.discrepancy(actual_cash) != 0 and actual_cash > 0:
        reasons.append(APPROVAL_DISCREPANCY)
    return reasons


def closing_for_day(staff_id: int, outlet_id: int, now: datetime | None = None) -> DailyClosing | None:
    now = now or utcnow()
    business_date = local_date(now, outlet_timezone(outlet_id))
    closings = event_store.list_daily_closings(
        outlet_id=outlet_id, staff_id=staff_id, business_date=business_date
    )
    return closings[-1] if closings else None


def ensure_shift_open(staff_id: int, outlet_id: int, now: datetime | None = None) -> None:
    """Refuse stock actions by a cashier who already closed today at this outlet."""
    staff = db.session.get(Staff, staff_id)
    if not staff:
        raise NotFoundError(f"Staff {staff_id} not found")
    if staff.role != ROLE_CASHIER:
        return
    if closing_for_day(staff_id, outlet_id, now):
        raise InvalidStateError("Shift already closed for today")


def close_shift(
    caller: CallerContext,
    actual_cash: int,
    *,
    notes: str | None = None,
    approver_username: str | None = None,
    approver_password: str | None = None,
    now: datetime | None = None,
) -> DailyClosing:
    """
    Close the caller's shift at caller.outlet_id.

    Raises:
        ValueError: actual_cash is not a non-negative integer
        InvalidStateError: already closed today
        ApprovalRequiredError: gating applies and no approver was given
        AuthorizationFailedError: approver credentials rejected

    Nothing is written unless every check passes.
    """
    if isinstance(actual_cash, bool) or not isinstance(actual_cash, int):
        raise ValueError("actual_cash must be an integer amount in Rupiah")
    if actual_cash < 0:
        raise ValueError("actual_cash cannot be negative")

    now = now or utcnow()
    if closing_for_day(caller.staff_id, caller.outlet_id, now):
        raise InvalidStateError("Shift already closed for today")

    summary = compute_summary(caller, now)
    reasons = approval_reasons(caller, summary, actual_cash, now)

    approver = None
    if reasons:
        if caller.is_approver:
            approver = db.session.get(Staff, caller.staff_id)
        elif approver_username and approver_password:
            approver = verify_approver(approver_username, approver_password)
        else:
            raise ApprovalRequiredError(reasons)

    final_notes = (notes or "").strip()
    if approver is not None:
        final_notes = f"{final_notes} (Approved by: {approver.name})".strip()

    closing = DailyClosing(
        staff_id=caller.staff_id,
        outlet_id=caller.outlet_id,
        shift_name=summary.shift_name,
        business_date=summary.business_date,
        window_start=summary.window_start,
        closed_at=now,
        opening_balance=summary.opening_balance,
        total_sales_cash=summary.total_sales_cash,
        total_sales_qris=summary.total_sales_qris,
        total_expenses=summary.total_expenses,
        expected_cash=summary.expected_cash,
        actual_cash=actual_cash,
        discrepancy=summary.discrepancy(actual_cash),
        notes=final_notes or None,
        approved_by_staff_id=approver.id if approver is not None else None,
        approval_reasons=reasons,
    )
    db.session.add(closing)
    db.session.flush()

    if timekeeping_service.current_attendance(caller.staff_id, outlet_id=caller.outlet_id) is not None:
        timekeeping_service.clock_out(staff_id=caller.staff_id, outlet_id=caller.outlet_id, now=now)

    sync_service.enqueue("daily_closing", closing.id, closing.to_dict(), outlet_id=caller.outlet_id)
    current_app.logger.info(
        "Shift closed staff=%s outlet=%s shift=%s expected=%s actual=%s discrepancy=%s",
        caller.staff_id, caller.outlet_id, closing.shift_name,
        closing.expected_cash, closing.actual_cash, closing.discrepancy,
    )
    return closing
