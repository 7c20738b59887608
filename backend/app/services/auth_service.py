# Overview: Service-layer operations for auth; staff accounts, password hashing and approver checks.

"""
Staff Authentication Service

WHY: Every sale, production run, transfer and closing must be attributable
to one staff member. Manager/owner credentials are also re-entered to
approve an early or unbalanced shift closing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 6 characters (till PINs are short words, not passphrases)
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from ..extensions import db
from ..models import Staff, StaffOutletAccess, Outlet
from ..models.staff import ROLES, APPROVER_ROLES
from ..errors import AuthorizationFailedError
from app.time_utils import utcnow, parse_hhmm


MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_staff(
    name: str,
    username: str,
    password: str,
    role: str,
    outlet_ids: list[int] | None = None,
    shift_start_time: str | None = None,
    shift_end_time: str | None = None,
) -> Staff:
    """
    Create a staff account and assign it to outlets.

    Raises PasswordValidationError for weak passwords and ValueError for
    duplicate usernames, unknown roles, unknown outlets or bad shift times.
    """
    role = (role or "").upper()
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role!r}")

    for hhmm in (shift_start_time, shift_end_time):
        if hhmm is not None:
            parse_hhmm(hhmm)

    if db.session.query(Staff).filter_by(username=username).first():
        raise ValueError(f"Username {username!r} already exists")

    staff = Staff(
        name=name,
        username=username,
        password_hash=hash_password(password),
        role=role,
        shift_start_time=shift_start_time,
        shift_end_time=shift_end_time,
        is_active=True,
    )
    db.session.add(staff)
    db.session.flush()

    for outlet_id in outlet_ids or []:
        if not db.session.get(Outlet, outlet_id):
            raise ValueError(f"Outlet {outlet_id} not found")
        db.session.add(StaffOutletAccess(staff_id=staff.id, outlet_id=outlet_id))

    db.session.flush()
    return staff


def authenticate(username: str, password: str) -> Staff | None:
    """
    Return the active staff member for these credentials, or None.

    Updates last_login_at on success.
    """
    staff = db.session.query(Staff).filter_by(username=username).first()
    if not staff or not staff.is_active:
        return None
    if not verify_password(password, staff.password_hash):
        return None

    staff.last_login_at = utcnow()
    db.session.flush()
    return staff


def verify_approver(username: str, password: str) -> Staff:
    """
    Re-authenticate a manager/owner for a one-off approval.

    Raises AuthorizationFailedError when the credentials are wrong or the
    account is not allowed to approve. Does not touch last_login_at.
    """
    staff = db.session.query(Staff).filter_by(username=username).first()
    if not staff or not staff.is_active or not verify_password(password, staff.password_hash):
        raise AuthorizationFailedError("Invalid approver credentials")
    if staff.role not in APPROVER_ROLES:
        raise AuthorizationFailedError(f"{staff.name} is not allowed to approve")
    return staff


def can_access_outlet(staff: Staff, outlet_id: int) -> bool:
    """Owners act in every outlet; everyone else only in assigned ones."""
    if staff.role == "OWNER":
        return True
    return outlet_id in staff.outlet_ids
