# Overview: Pytest coverage for attendance clock in/out.

import pytest

from app.errors import InvalidStateError
from app.services import timekeeping_service


class TestClockInOut:

    def test_on_time_and_late(self, db_session, outlet, cashier, make_staff, at):
        on_time = timekeeping_service.clock_in(staff_id=cashier.id, outlet_id=outlet.id, now=at(8))
        late_staff = make_staff("rina", "CASHIER", [outlet], shift_start="08:00")
        late = timekeeping_service.clock_in(staff_id=late_staff.id, outlet_id=outlet.id, now=at(8, 1))

        assert on_time.status == "ON_TIME"
        assert late.status == "LATE"
        assert on_time.business_date.isoformat() == "2026-03-02"

    def test_default_shift_start_applies(self, db_session, outlet, make_staff, at):
        staff = make_staff("rina", "CASHIER", [outlet])

        entry = timekeeping_service.clock_in(staff_id=staff.id, outlet_id=outlet.id, now=at(8, 30))

        assert entry.status == "LATE"

    def test_cannot_clock_in_twice(self, db_session, outlet, second_outlet, cashier, at):
        timekeeping_service.clock_in(staff_id=cashier.id, outlet_id=outlet.id, now=at(8))

        with pytest.raises(InvalidStateError):
            timekeeping_service.clock_in(staff_id=cashier.id, outlet_id=second_outlet.id, now=at(9))

    def test_clock_out_closes_open_entry(self, db_session, outlet, cashier, at):
        timekeeping_service.clock_in(staff_id=cashier.id, outlet_id=outlet.id, now=at(8))

        entry = timekeeping_service.clock_out(staff_id=cashier.id, now=at(16))
        db_session.commit()

        assert entry.clock_out_at == at(16)
        assert not entry.is_open
        assert timekeeping_service.current_attendance(cashier.id) is None

    def test_clock_out_without_clock_in(self, db_session, cashier, at):
        with pytest.raises(InvalidStateError):
            timekeeping_service.clock_out(staff_id=cashier.id, now=at(16))

    def test_clock_out_at_other_outlet_is_refused(self, db_session, outlet, second_outlet, manager, at):
        entry = timekeeping_service.clock_in(staff_id=manager.id, outlet_id=second_outlet.id, now=at(8))

        with pytest.raises(InvalidStateError):
            timekeeping_service.clock_out(staff_id=manager.id, outlet_id=outlet.id, now=at(16))

        assert entry.is_open
        assert timekeeping_service.current_attendance(manager.id, outlet_id=outlet.id) is None
        assert timekeeping_service.current_attendance(manager.id, outlet_id=second_outlet.id).id == entry.id

    def test_business_date_uses_outlet_timezone(self, db_session, make_outlet, make_staff, at):
        makassar = make_outlet("Outlet Makassar", timezone="Asia/Makassar")
        staff = make_staff("rina", "CASHIER", [makassar], shift_start="08:00")

        # 23:30 in Jakarta is 00:30 the next day in Makassar (UTC+8)
        entry = timekeeping_service.clock_in(staff_id=staff.id, outlet_id=makassar.id, now=at(23, 30))

        assert entry.business_date.isoformat() == "2026-03-03"
        assert entry.status == "ON_TIME"
