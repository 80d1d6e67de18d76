# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import and_, or_

from ..extensions import db
from ..models import AdminSession
from app.time_utils import utcnow


def cleanup_admin_sessions(*, retention_days: int = 30) -> int:
    """
    Delete admin sessions that expired or were revoked before the cutoff.

    Live sessions are never touched, whatever their age.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(AdminSession).filter(
        or_(
            AdminSession.expires_at < cutoff,
            and_(AdminSession.is_revoked.is_(True), AdminSession.revoked_at < cutoff),
        )
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
