from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app

from app.extensions import db
from app.models import Outlet
from app.errors import NotFoundError
from app.services.concurrency import run_with_retry


def _validate_timezone(tz_name: str) -> None:
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {tz_name!r}") from exc


def create_outlet(
    name: str,
    code: str | None = None,
    address: str | None = None,
    timezone: str | None = None,
) -> Outlet:
    def _op():
        if not name:
            raise ValueError("Outlet name is required")
        if db.session.query(Outlet).filter_by(name=name).first():
            raise ValueError(f"Outlet {name!r} already exists")
        if timezone:
            _validate_timezone(timezone)

        outlet = Outlet(name=name, code=code, address=address, timezone=timezone)
        db.session.add(outlet)
        db.session.flush()
        return outlet

    return run_with_retry(_op)


def get_outlet(outlet_id: int) -> Outlet:
    outlet = db.session.get(Outlet, outlet_id)
    if not outlet:
        raise NotFoundError(f"Outlet {outlet_id} not found")
    return outlet


def list_outlets(active_only: bool = True) -> list[Outlet]:
    q = db.session.query(Outlet)
    if active_only:
        q = q.filter(Outlet.is_active.is_(True))
    return q.order_by(Outlet.name.asc()).all()


def outlet_timezone(outlet_id: int) -> str:
    """IANA timezone of an outlet, falling back to BUSINESS_TIMEZONE."""
    outlet = db.session.get(Outlet, outlet_id)
    if outlet is not None and outlet.timezone:
        return outlet.timezone
    return current_app.config["BUSINESS_TIMEZONE"]
