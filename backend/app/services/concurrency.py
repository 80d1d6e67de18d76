# Overview: Retry helper for store writes that hit transient database lock contention.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError

from ..extensions import db


def run_with_retry(func, *, label: str, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on transient lock failures.

    Retries on OperationalError ("database is locked", deadlocks, serialization
    failures). Conditional UPDATEs are safe to replay: a replay either matches
    the predicate again or becomes a no-op.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning("Retrying %s after database contention (attempt %d)", label, attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
