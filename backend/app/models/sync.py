from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class SyncOutboxEntry(db.Model):
    """
    Outbox row for the remote durability stage.

    WHY: Local state commits first. The outbox row is written in the same
    commit, so a remote failure can never lose a mutation or roll it back.

    LIFECYCLE:
    - PENDING: waiting for dispatch
    - SENT: remote accepted the payload
    - FAILED: remote refused or was unreachable (no automatic retry)
    """
    __tablename__ = "sync_outbox"
    __table_args__ = (
        db.Index("ix_sync_outbox_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)

    payload = db.Column(db.JSON, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    failed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "outlet_id": self.outlet_id,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "created_at": to_utc_z(self.created_at),
            "sent_at": to_utc_z(self.sent_at) if self.sent_at else None,
            "failed_at": to_utc_z(self.failed_at) if self.failed_at else None,
        }
