# Overview: Service-layer operations for admin sessions; encapsulates business logic and database work.

"""
Admin Session Token Service

WHY: Dashboard logins get an opaque bearer token that can be revoked.
Tokens are cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- Revocable on logout
"""

import hashlib
import secrets
from datetime import timedelta

from ..extensions import db
from ..models import AdminSession, AdminUser
from app.time_utils import as_utc_naive, utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(admin_user_id: int) -> tuple[AdminSession, str]:
    """
    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = AdminSession(
        admin_user_id=admin_user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> AdminUser | None:
    """
    Return the AdminUser for a live token.

    Returns None if the token is unknown, expired, or revoked.
    """
    if not token:
        return None

    session = db.session.query(AdminSession).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return None

    now = utcnow()
    if as_utc_naive(session.expires_at) <= now:
        return None

    session.last_used_at = now
    db.session.commit()
    return session.admin_user


def revoke_session(token: str) -> bool:
    """Revoke a session on logout. Returns False if the token is unknown."""
    session = db.session.query(AdminSession).filter_by(token_hash=hash_token(token)).first()
    if session is None:
        return False
    if not session.is_revoked:
        session.is_revoked = True
        session.revoked_at = utcnow()
        db.session.commit()
    return True
