# backend/app/config.py
from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Any, Mapping


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/proposals.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (Postgres in production)
        "sqlite:///proposals.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Signature images arrive as base64 data URLs
    MAX_CONTENT_LENGTH = 1024 * 1024

    # Client-facing proposal links are <PROPOSAL_BASE_URL>/p/<id>
    PROPOSAL_BASE_URL = os.environ.get("PROPOSAL_BASE_URL", "https://roof-mri.com")

    # Stripe
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    PAYMENT_CURRENCY = os.environ.get("PAYMENT_CURRENCY", "usd")

    # SendGrid
    SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY")
    FROM_EMAIL = os.environ.get("FROM_EMAIL", "proposals@roof-mri.com")
    FROM_NAME = os.environ.get("FROM_NAME", "Roof MRI")
    REPLY_TO_EMAIL = os.environ.get("REPLY_TO_EMAIL", "adam@re-dry.com")
    REPLY_TO_NAME = os.environ.get("REPLY_TO_NAME", "Adam Capps")
    INTERNAL_NOTIFY_EMAIL = os.environ.get("INTERNAL_NOTIFY_EMAIL", "adam@re-dry.com")

    # Legacy static bearer key for the internal dashboard (optional)
    ADMIN_API_KEY = os.environ.get("ADMIN_API_KEY")


@dataclass(frozen=True)
class ProposalSettings:
    """
    Runtime settings handed to the store-facing collaborators.

    Built once in create_app() from the Flask config and passed explicitly to
    the notification dispatcher, the payment gateway and the auth decorator.
    """
    proposal_base_url: str
    stripe_secret_key: str | None
    stripe_webhook_secret: str | None
    payment_currency: str
    sendgrid_api_key: str | None
    from_email: str
    from_name: str
    reply_to_email: str | None
    reply_to_name: str | None
    internal_notify_email: str
    admin_api_key: str | None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ProposalSettings":
        return cls(
            proposal_base_url=(config.get("PROPOSAL_BASE_URL") or "").rstrip("/"),
            stripe_secret_key=config.get("STRIPE_SECRET_KEY") or None,
            stripe_webhook_secret=config.get("STRIPE_WEBHOOK_SECRET") or None,
            payment_currency=(config.get("PAYMENT_CURRENCY") or "usd").lower(),
            sendgrid_api_key=config.get("SENDGRID_API_KEY") or None,
            from_email=config.get("FROM_EMAIL") or "",
            from_name=config.get("FROM_NAME") or "",
            reply_to_email=config.get("REPLY_TO_EMAIL") or None,
            reply_to_name=config.get("REPLY_TO_NAME") or None,
            internal_notify_email=config.get("INTERNAL_NOTIFY_EMAIL") or "",
            admin_api_key=config.get("ADMIN_API_KEY") or None,
        )

    def proposal_url(self, proposal_id: str) -> str:
        return f"{self.proposal_base_url}/p/{proposal_id}"
