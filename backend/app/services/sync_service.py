# Overview: Remote durability stage; outbox enqueue and dispatch over HTTP.

"""
Two-stage durability.

Stage 1 (local): the mutating service appends a SyncOutboxEntry in the same
session as the mutation itself, so the caller's commit makes both durable
together.

Stage 2 (remote): dispatch_pending() posts each PENDING entry to
REMOTE_SYNC_URL/<entity_type>. A failed post marks the entry FAILED, keeps
the error text and logs a SYNC_FAILURE warning. Local state is never rolled
back and FAILED entries are not retried automatically; retry_failed() puts
them back to PENDING on operator request.

Routes call schedule_dispatch() after a successful commit. It runs stage 2
in a background thread and never reports back to the request.
"""

from __future__ import annotations

import threading

import httpx
from flask import current_app

from ..extensions import db
from ..models import SyncOutboxEntry
from ..errors import SyncFailureError
from app.time_utils import utcnow


OUTBOX_PENDING = "PENDING"
OUTBOX_SENT = "SENT"
OUTBOX_FAILED = "FAILED"
OUTBOX_STATUSES = (OUTBOX_PENDING, OUTBOX_SENT, OUTBOX_FAILED)


def enqueue(entity_type: str, entity_id: int, payload: dict, outlet_id: int | None = None) -> SyncOutboxEntry:
    """Append an outbox entry to the current session (flushed, not committed)."""
    entry = SyncOutboxEntry(
        entity_type=entity_type,
        entity_id=entity_id,
        outlet_id=outlet_id,
        payload=payload,
        status=OUTBOX_PENDING,
        attempts=0,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def _build_client() -> httpx.Client:
    headers = {}
    token = current_app.config.get("REMOTE_SYNC_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(
        headers=headers,
        timeout=current_app.config.get("SYNC_TIMEOUT_SECONDS", 10.0),
    )


def _push(client: httpx.Client, base_url: str, entry: SyncOutboxEntry) -> None:
    url = f"{base_url.rstrip('/')}/{entry.entity_type}"
    try:
        response = client.post(url, json={
            "entity_type": entry.entity_type,
            "entity_id": entry.entity_id,
            "outlet_id": entry.outlet_id,
            "payload": entry.payload,
        })
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise SyncFailureError(f"{entry.entity_type} {entry.entity_id}: {exc}") from exc


def dispatch_pending(client: httpx.Client | None = None, limit: int = 100) -> dict:
    """
    Push PENDING outbox entries to the remote store, oldest first.

    Returns {"sent": n, "failed": n, "skipped": n}. skipped counts entries
    left PENDING because REMOTE_SYNC_URL is not configured.
    """
    base_url = current_app.config.get("REMOTE_SYNC_URL")
    entries = (
        db.session.query(SyncOutboxEntry)
        .filter(SyncOutboxEntry.status == OUTBOX_PENDING)
        .order_by(SyncOutboxEntry.id.asc())
        .limit(limit)
        .all()
    )

    if not base_url:
        return {"sent": 0, "failed": 0, "skipped": len(entries)}

    own_client = client is None
    if own_client:
        client = _build_client()

    sent = failed = 0
    try:
        for entry in entries:
            entry.attempts = (entry.attempts or 0) + 1
            try:
                _push(client, base_url, entry)
            except SyncFailureError as exc:
                entry.status = OUTBOX_FAILED
                entry.last_error = str(exc)
                entry.failed_at = utcnow()
                failed += 1
                current_app.logger.warning(
                    "SYNC_FAILURE entry=%s %s %s: %s",
                    entry.id, entry.entity_type, entry.entity_id, exc,
                )
            else:
                entry.status = OUTBOX_SENT
                entry.sent_at = utcnow()
                entry.last_error = None
                sent += 1
            db.session.commit()
    finally:
        if own_client:
            client.close()

    if sent or failed:
        current_app.logger.info("Sync dispatch finished: sent=%s failed=%s", sent, failed)
    return {"sent": sent, "failed": failed, "skipped": 0}


def retry_failed() -> int:
    """Move every FAILED entry back to PENDING. Returns how many moved."""
    entries = db.session.query(SyncOutboxEntry).filter_by(status=OUTBOX_FAILED).all()
    for entry in entries:
        entry.status = OUTBOX_PENDING
        entry.failed_at = None
    db.session.commit()
    return len(entries)


def status_counts() -> dict:
    rows = (
        db.session.query(SyncOutboxEntry.status, db.func.count(SyncOutboxEntry.id))
        .group_by(SyncOutboxEntry.status)
        .all()
    )
    counts = {status: 0 for status in OUTBOX_STATUSES}
    counts.update({status: count for status, count in rows})
    return counts


def list_failed(limit: int = 50) -> list[SyncOutboxEntry]:
    return (
        db.session.query(SyncOutboxEntry)
        .filter_by(status=OUTBOX_FAILED)
        .order_by(SyncOutboxEntry.failed_at.desc())
        .limit(limit)
        .all()
    )


def schedule_dispatch() -> threading.Thread | None:
    """
    Fire-and-forget stage 2 after a request committed its local changes.

    Runs inline when SYNC_IN_BACKGROUND is false. Returns the started thread,
    or None when sync is disabled or ran inline.
    """
    app = current_app._get_current_object()
    if not app.config.get("REMOTE_SYNC_URL"):
        return None

    if not app.config.get("SYNC_IN_BACKGROUND", True):
        dispatch_pending()
        return None

    def _run():
        with app.app_context():
            try:
                dispatch_pending()
            except Exception:
                app.logger.exception("Background sync dispatch crashed")
            finally:
                db.session.remove()

    thread = threading.Thread(target=_run, name="outbox-dispatch", daemon=True)
    thread.start()
    return thread
