from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class AdminUser(db.Model):
    """
    Internal staff account for the proposal dashboard.

    WHY: Sending proposals and listing them are internal operations; clients
    only ever hold a proposal id.
    """
    __tablename__ = "admin_users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }


class AdminSession(db.Model):
    """
    Session tokens for admin authentication.

    SECURITY: Only the SHA-256 hash of the token is stored. The plaintext
    token is returned once at login and never persisted.
    """
    __tablename__ = "admin_sessions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    admin_user_id = db.Column(db.Integer, db.ForeignKey("admin_users.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    admin_user = db.relationship("AdminUser", backref=db.backref("sessions", lazy=True))
