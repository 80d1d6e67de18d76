# Overview: Service-layer operations for admin auth; encapsulates business logic and database work.

"""
Admin Authentication Service

WHY: Creating and listing proposals is internal. Staff sign in with an
email/password; the very first account is created through a one-time setup
call that locks itself once any admin exists.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 10 characters required
- Unknown emails still pay the bcrypt cost (no user-enumeration timing)
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from sqlalchemy import func

from ..extensions import db
from ..models import AdminUser
from ..validation import ConflictError, ValidationError, is_valid_email
from app.time_utils import utcnow


MIN_PASSWORD_LENGTH = 10
BCRYPT_ROUNDS = 12

# Compared against on unknown emails so misses cost the same as hits
_DUMMY_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=BCRYPT_ROUNDS))


class AdminSetupClosedError(Exception):
    """Raised when setup is attempted after an admin already exists."""


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            {"password": f"must be at least {MIN_PASSWORD_LENGTH} characters"},
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Returns True if password matches hash, False otherwise."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email) -> str:
    return email.strip().lower() if isinstance(email, str) else ""


def admin_count() -> int:
    return db.session.query(func.count(AdminUser.id)).scalar() or 0


def create_first_admin(email, password) -> AdminUser:
    """
    One-time bootstrap of the first admin account.

    Raises:
        AdminSetupClosedError: An admin already exists
        ValidationError: Bad email or weak password
        ConflictError: Email already registered
    """
    if admin_count() > 0:
        raise AdminSetupClosedError("Admin already configured. Use /api/admin/login.")
    return create_admin(email, password)


def create_admin(email, password) -> AdminUser:
    email = normalize_email(email)
    if not email or not password:
        raise ValidationError("Email and password are required")
    if not is_valid_email(email):
        raise ValidationError("Invalid email address", {"email": "is not a valid email address"})

    if db.session.query(AdminUser).filter_by(email=email).first():
        raise ConflictError("An admin with this email already exists")

    admin = AdminUser(email=email, password_hash=hash_password(password), created_at=utcnow())
    db.session.add(admin)
    db.session.commit()
    return admin


def authenticate(email, password) -> AdminUser | None:
    """
    Check credentials.

    Returns the AdminUser on success, None on any mismatch.
    """
    if not email or not isinstance(password, str) or not password:
        return None

    admin = db.session.query(AdminUser).filter_by(email=normalize_email(email)).first()
    if admin is None:
        bcrypt.checkpw(password.encode('utf-8'), _DUMMY_HASH)
        return None

    if not verify_password(password, admin.password_hash):
        return None

    admin.last_login_at = utcnow()
    db.session.commit()
    return admin
