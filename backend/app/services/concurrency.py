# Overview: Service-layer concurrency helpers; DB retries and the in-flight action guard.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ActionInProgressError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locked database) and StaleDataError.
    Domain errors raised by func propagate immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit current session with retry handling."""
    def _op():
        db.session.commit()
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)


class ActionGuard:
    """
    In-memory "already running" guard keyed by (action, actor).

    WHY: A double tap on the till must not run production or a transfer
    twice. The core operations are not idempotent, so the second request is
    refused while the first is in flight. The key is released whether the
    action succeeds or fails.

    Process-local; one till talks to one backend process.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: set[tuple[str, int]] = set()

    def is_held(self, action: str, actor_id: int) -> bool:
        with self._lock:
            return (action, actor_id) in self._in_flight

    @contextmanager
    def hold(self, action: str, actor_id: int):
        key = (action, actor_id)
        with self._lock:
            if key in self._in_flight:
                raise ActionInProgressError(f"{action} is already in progress")
            self._in_flight.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(key)


action_guard = ActionGuard()
