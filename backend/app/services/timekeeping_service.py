# Overview: Service-layer operations for attendance; clock in/out and the active shift.

"""
Timekeeping Service

WHY: The open attendance record of a staff member is the active shift, and
its clock-in time is where the shift closing window starts.

- One open record per staff member at a time (across all outlets).
- Clock-in status is ON_TIME or LATE against the staff shift start
  (DEFAULT_SHIFT_START when the staff has none), in outlet-local time.
- Closing a shift clocks the staff member out.
"""

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Attendance, Staff
from ..errors import InvalidStateError, NotFoundError
from .outlet_service import outlet_timezone
from . import sync_service
from app.time_utils import utcnow, to_local, local_date, parse_hhmm


ATTENDANCE_ON_TIME = "ON_TIME"
ATTENDANCE_LATE = "LATE"


def _get_open_entry(staff_id: int, outlet_id: int | None = None) -> Attendance | None:
    q = db.session.query(Attendance).filter(
        Attendance.staff_id == staff_id, Attendance.clock_out_at.is_(None)
    )
    if outlet_id is not None:
        q = q.filter(Attendance.outlet_id == outlet_id)
    return q.order_by(Attendance.clock_in_at.desc()).first()


def shift_start_for(staff: Staff) -> str:
    return staff.shift_start_time or current_app.config["DEFAULT_SHIFT_START"]


def shift_end_for(staff: Staff) -> str:
    return staff.shift_end_time or current_app.config["DEFAULT_SHIFT_END"]


def attendance_status(clock_in_at: datetime, shift_start: str, tz_name: str) -> str:
    """LATE when the local clock-in time is after the shift start."""
    local = to_local(clock_in_at, tz_name)
    if local.time().replace(second=0, microsecond=0) > parse_hhmm(shift_start):
        return ATTENDANCE_LATE
    return ATTENDANCE_ON_TIME


def clock_in(*, staff_id: int, outlet_id: int, now: datetime | None = None) -> Attendance:
    staff = db.session.get(Staff, staff_id)
    if not staff:
        raise NotFoundError(f"Staff {staff_id} not found")
    if _get_open_entry(staff_id):
        raise InvalidStateError("Staff is already clocked in")

    now = now or utcnow()
    tz_name = outlet_timezone(outlet_id)

    entry = Attendance(
        staff_id=staff_id,
        outlet_id=outlet_id,
        clock_in_at=now,
        status=attendance_status(now, shift_start_for(staff), tz_name),
        business_date=local_date(now, tz_name),
    )
    db.session.add(entry)
    db.session.flush()

    sync_service.enqueue("attendance", entry.id, entry.to_dict(), outlet_id=outlet_id)
    current_app.logger.info("Clock in staff=%s outlet=%s status=%s", staff_id, outlet_id, entry.status)
    return entry


def clock_out(*, staff_id: int, outlet_id: int | None = None, now: datetime | None = None) -> Attendance:
    """Close the open entry; with outlet_id, only an entry at that outlet."""
    entry = _get_open_entry(staff_id, outlet_id)
    if not entry:
        raise InvalidStateError("Staff is not clocked in")

    entry.clock_out_at = now or utcnow()
    db.session.flush()

    sync_service.enqueue("attendance", entry.id, entry.to_dict(), outlet_id=entry.outlet_id)
    current_app.logger.info("Clock out staff=%s outlet=%s", staff_id, entry.outlet_id)
    return entry


def current_attendance(staff_id: int, outlet_id: int | None = None) -> Attendance | None:
    return _get_open_entry(staff_id, outlet_id)

