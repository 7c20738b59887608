# Overview: Service-layer operations for session; bearer tokens and the caller context.

"""
Session Token Management Service

WHY: Till devices stay logged in for a whole shift, but tokens must still
expire and be revocable.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 8-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout

The caller context (who is acting, in which outlet, with which shift hours)
is built per request from the session and the selected outlet. Services
receive it explicitly; nothing reads a "current outlet" from global state.
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, Staff
from app.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=8)


@dataclass(frozen=True)
class CallerContext:
    """Identity of the actor for one operation."""
    staff_id: int
    name: str
    role: str
    outlet_id: int
    shift_start_time: str | None = None
    shift_end_time: str | None = None

    @classmethod
    def for_staff(cls, staff: Staff, outlet_id: int) -> "CallerContext":
        return cls(
            staff_id=staff.id,
            name=staff.name,
            role=staff.role,
            outlet_id=outlet_id,
            shift_start_time=staff.shift_start_time,
            shift_end_time=staff.shift_end_time,
        )

    @property
    def is_approver(self) -> bool:
        return self.role in ("OWNER", "MANAGER")


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(staff_id: int) -> tuple[SessionToken, str]:
    """
    Create new session token for a staff member.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    staff = db.session.get(Staff, staff_id)
    if not staff:
        raise ValueError("Staff not found")
    if not staff.is_active:
        raise ValueError("Staff account is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        staff_id=staff_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> Staff | None:
    """
    Validate session token and return the staff member if valid.

    Returns None if the token is unknown, expired, idle too long or revoked,
    or if the staff account was deactivated. Updates last_used_at.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        session.is_revoked = True
        session.revoked_at = now
        db.session.commit()
        return None

    staff = session.staff
    if not staff or not staff.is_active:
        session.is_revoked = True
        session.revoked_at = now
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return staff


def revoke_session(token: str) -> bool:
    """Revoke session token. Returns False if no active session matched."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
