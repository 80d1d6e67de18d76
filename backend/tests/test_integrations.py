"""
Stripe and SendGrid adapter tests.

No network: stripe.checkout.Session.create and the SendGrid client are
replaced with recorders. Webhook verification uses the real stripe library.
"""

import json
import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe
from python_http_client.exceptions import HTTPError

from app.config import ProposalSettings
from app.services.notification_service import (
    NotificationDispatcher,
    NotificationError,
    OutboundMessage,
    format_money,
    vimeo_id,
)
from app.services.payment_gateway import (
    PaymentGatewayError,
    StripeGateway,
    WebhookVerificationError,
    to_minor_units,
)

from conftest import TEST_CONFIG, WEBHOOK_SECRET, stripe_signature


def _settings(**overrides) -> ProposalSettings:
    config = dict(TEST_CONFIG)
    config.update(overrides)
    return ProposalSettings.from_config(config)


# =============================================================================
# STRIPE
# =============================================================================


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (Decimal("12500.00"), 1250000),
            (Decimal("19.99"), 1999),
            (Decimal("19.995"), 2000),
            (Decimal("0.005"), 1),
            (Decimal("0.004"), 0),
        ],
    )
    def test_rounds_half_up_to_cents(self, amount, expected):
        assert to_minor_units(amount) == expected


class TestCheckoutSession:
    def test_session_parameters(self, make_proposal, monkeypatch):
        calls = []

        def fake_create(**kwargs):
            calls.append(kwargs)
            return SimpleNamespace(id="cs_test_abc", url="https://checkout.stripe.com/c/pay/cs_test_abc")

        monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
        proposal = make_proposal(status="signed", total_price=Decimal("12500.50"))

        session = StripeGateway(_settings()).create_checkout_session(proposal)

        assert session.id == "cs_test_abc"
        assert session.url.endswith("cs_test_abc")
        params = calls[0]
        assert params["api_key"] == "sk_test_dummy"
        assert params["mode"] == "payment"
        assert params["metadata"] == {"proposal_id": proposal.id}
        assert params["client_reference_id"] == proposal.id
        assert params["customer_email"] == "jane@acme.test"
        assert params["line_items"][0]["price_data"]["unit_amount"] == 1250050
        assert params["line_items"][0]["price_data"]["currency"] == "usd"
        assert params["success_url"] == f"https://proposals.test/p/{proposal.id}?payment=success"
        assert params["cancel_url"] == f"https://proposals.test/p/{proposal.id}?payment=cancelled"

    def test_stripe_error_is_wrapped(self, make_proposal, monkeypatch):
        def fake_create(**kwargs):
            raise stripe.APIConnectionError("Network down")

        monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
        proposal = make_proposal(status="signed")
        with pytest.raises(PaymentGatewayError):
            StripeGateway(_settings()).create_checkout_session(proposal)

    def test_missing_secret_key(self, make_proposal):
        proposal = make_proposal(status="signed")
        with pytest.raises(PaymentGatewayError):
            StripeGateway(_settings(STRIPE_SECRET_KEY=None)).create_checkout_session(proposal)


class TestWebhookVerification:
    def _payload(self):
        return json.dumps({"id": "evt_1", "type": "checkout.session.completed", "data": {"object": {}}})

    def test_valid_signature(self):
        payload = self._payload()
        event = StripeGateway(_settings()).verify_event(payload.encode("utf-8"), stripe_signature(payload))
        assert event["id"] == "evt_1"

    def test_wrong_secret(self):
        payload = self._payload()
        header = stripe_signature(payload, secret="whsec_someone_else")
        with pytest.raises(WebhookVerificationError):
            StripeGateway(_settings()).verify_event(payload.encode("utf-8"), header)

    def test_tampered_body(self):
        payload = self._payload()
        header = stripe_signature(payload)
        with pytest.raises(WebhookVerificationError):
            StripeGateway(_settings()).verify_event(payload.replace("evt_1", "evt_2").encode("utf-8"), header)

    def test_stale_timestamp(self):
        payload = self._payload()
        header = stripe_signature(payload, timestamp=int(time.time()) - 3600)
        with pytest.raises(WebhookVerificationError):
            StripeGateway(_settings()).verify_event(payload.encode("utf-8"), header)

    @pytest.mark.parametrize("header", [None, "", "garbage"])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(WebhookVerificationError):
            StripeGateway(_settings()).verify_event(self._payload().encode("utf-8"), header)

    def test_unconfigured_secret(self):
        payload = self._payload()
        gateway = StripeGateway(_settings(STRIPE_WEBHOOK_SECRET=None))
        with pytest.raises(WebhookVerificationError):
            gateway.verify_event(payload.encode("utf-8"), stripe_signature(payload, secret=WEBHOOK_SECRET))


# =============================================================================
# SENDGRID
# =============================================================================


class FakeSendGrid:
    def __init__(self, status_code=202, error=None):
        self.status_code = status_code
        self.error = error
        self.messages = []

    def send(self, mail):
        if self.error:
            raise self.error
        self.messages.append(mail)
        return SimpleNamespace(status_code=self.status_code)


class TestNotificationDispatcher:
    def _message(self):
        return OutboundMessage(to="jane@acme.test", subject="Hello", html="<p>Hi</p>", reply_to=True)

    def test_without_api_key_skips(self, app):
        dispatcher = NotificationDispatcher(_settings())
        assert dispatcher._client is None
        dispatcher.send(self._message())

    def test_sends_through_client(self, app):
        dispatcher = NotificationDispatcher(_settings(SENDGRID_API_KEY="SG.test"))
        dispatcher._client = FakeSendGrid()
        dispatcher.send(self._message())

        mail = dispatcher._client.messages[0].get()
        assert mail["subject"] == "Hello"
        assert mail["from"]["email"] == "proposals@proposals.test"
        assert mail["reply_to"]["email"] == "owner@proposals.test"

    def test_rejected_status_raises(self, app):
        dispatcher = NotificationDispatcher(_settings(SENDGRID_API_KEY="SG.test"))
        dispatcher._client = FakeSendGrid(status_code=500)
        with pytest.raises(NotificationError):
            dispatcher.send(self._message())

    def test_http_error_raises(self, app):
        dispatcher = NotificationDispatcher(_settings(SENDGRID_API_KEY="SG.test"))
        dispatcher._client = FakeSendGrid(error=HTTPError(401, "Unauthorized", b"{}", {}))
        with pytest.raises(NotificationError):
            dispatcher.send(self._message())

    def test_client_email_escapes_user_text(self, make_proposal):
        proposal = make_proposal(company='Acme & Sons "Roofing"')
        client_mail, staff_mail = NotificationDispatcher(_settings()).proposal_sent(proposal)
        assert "Acme &amp; Sons" in client_mail.html
        assert client_mail.subject == 'Roof MRI Training Proposal for Acme & Sons "Roofing"'
        assert staff_mail.to == "sales@proposals.test"

    def test_client_choice_hides_package_details(self, make_proposal):
        proposal = make_proposal(tier=None, let_client_choose=True)
        client_mail, _ = NotificationDispatcher(_settings()).proposal_sent(proposal)
        assert "Your choice of training tier" in client_mail.html
        assert "Your Investment" not in client_mail.html


class TestFormatting:
    def test_format_money(self):
        assert format_money(Decimal("12500")) == "$12,500.00"
        assert format_money(None) == "TBD"
        assert format_money(Decimal("0"), default="") == ""

    def test_vimeo_id(self):
        assert vimeo_id("https://vimeo.com/123456789") == "123456789"
        assert vimeo_id("https://youtube.com/watch?v=x") is None
        assert vimeo_id(None) is None
