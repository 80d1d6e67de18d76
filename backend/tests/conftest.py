"""
Pytest fixtures for proposal service tests.

Provides an in-memory app per test, recording stand-ins for the email and
Stripe collaborators, and helpers for seeding proposals.
"""

import hashlib
import hmac
import time
from decimal import Decimal

import pytest

from app import create_app
from app.extensions import db
from app.models import Proposal
from app.services import proposal_store
from app.services.identifier_service import generate_proposal_id
from app.services.notification_service import NotificationDispatcher, NotificationError
from app.services.payment_gateway import CheckoutSession, PaymentGatewayError, StripeGateway


WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_API_KEY = "test-admin-key"
SIGNATURE_DATA = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk"

TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test",
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "PROPOSAL_BASE_URL": "https://proposals.test/",
    "STRIPE_SECRET_KEY": "sk_test_dummy",
    "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
    "SENDGRID_API_KEY": None,
    "FROM_EMAIL": "proposals@proposals.test",
    "FROM_NAME": "Proposals",
    "REPLY_TO_EMAIL": "owner@proposals.test",
    "REPLY_TO_NAME": "Pat Owner",
    "INTERNAL_NOTIFY_EMAIL": "sales@proposals.test",
    "ADMIN_API_KEY": ADMIN_API_KEY,
}


class RecordingNotifier(NotificationDispatcher):
    """Real message rendering; send() records instead of calling SendGrid."""

    def __init__(self, settings):
        super().__init__(settings)
        self.sent = []
        self.fail = False

    def send(self, message):
        if self.fail:
            raise NotificationError(f"SendGrid returned 503 for {message.subject!r}")
        self.sent.append(message)

    def subjects(self):
        return [m.subject for m in self.sent]


class RecordingGateway(StripeGateway):
    """Real webhook verification; checkout creation is recorded, never sent to Stripe."""

    def __init__(self, settings):
        super().__init__(settings)
        self.created = []
        self.error = None

    def create_checkout_session(self, proposal):
        if self.error:
            raise PaymentGatewayError(self.error)
        self.created.append(proposal.id)
        session_id = f"cs_test_{len(self.created)}"
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/{session_id}")


def build_app(overrides=None):
    config = dict(TEST_CONFIG)
    config.update(overrides or {})
    app = create_app(config)
    settings = app.extensions["proposal_settings"]
    app.extensions["proposal_notifier"] = RecordingNotifier(settings)
    app.extensions["payment_gateway"] = RecordingGateway(settings)
    return app


@pytest.fixture(scope='function')
def app():
    """Create application for testing with a fresh in-memory database."""
    app = build_app()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def settings(app):
    return app.extensions["proposal_settings"]


@pytest.fixture(scope='function')
def notifier(app):
    return app.extensions["proposal_notifier"]


@pytest.fixture(scope='function')
def gateway(app):
    return app.extensions["payment_gateway"]


@pytest.fixture(scope='function')
def admin_headers():
    return {'Authorization': f'Bearer {ADMIN_API_KEY}'}


@pytest.fixture(scope='function')
def make_proposal(app):
    """Insert a proposal directly through the store."""
    def _make(**overrides):
        values = {
            "id": generate_proposal_id(),
            "contact_name": "Jane Doe",
            "company": "Acme Roofing",
            "email": "jane@acme.test",
            "tier": "professional",
            "tier_price": Decimal("9500.00"),
            "extra_trainees": 0,
            "extra_kits": 0,
            "tracks": ["Commercial"],
            "total_price": Decimal("12500.00"),
        }
        values.update(overrides)
        return proposal_store.insert(Proposal(**values))
    return _make


def proposal_payload(**overrides) -> dict:
    payload = {
        "contactName": "Jane Doe",
        "company": "Acme Roofing",
        "email": "Jane@Acme.test",
        "tier": "professional",
        "tierPrice": 9500,
        "extraTrainees": 2,
        "extraKits": 1,
        "tracks": ["Commercial", "Residential"],
        "videography": True,
        "onRoofDay": False,
        "totalPrice": "12500.00",
        "vimeoUrl": "https://vimeo.com/123456",
    }
    payload.update(overrides)
    return payload


def stripe_signature(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhook bodies."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_event(proposal_id, *, event_type="checkout.session.completed", session_id="cs_test_1",
                   payment_status="paid", event_id="evt_test_1") -> dict:
    metadata = {"proposal_id": proposal_id} if proposal_id is not None else {}
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "payment_status": payment_status,
                "metadata": metadata,
            }
        },
    }
