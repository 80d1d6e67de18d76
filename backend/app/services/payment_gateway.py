# Overview: Stripe adapter; hosted checkout sessions and webhook signature verification.

"""
Payment Gateway Adapter (Stripe Checkout)

WHY: Clients pay a signed proposal on a Stripe-hosted page. This system never
sees card data and never marks anything paid from a request it initiated:
payment is confirmed only by Stripe's signed webhook.

CORRELATION: The proposal id travels in the session metadata as
"proposal_id" and comes back in the checkout.session.* event.

MONEY: total_price is a Decimal in major units. Stripe wants an integer
count of minor units, rounded to the nearest cent (half up).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import stripe

from ..config import ProposalSettings
from ..models import Proposal
from .package_service import tier_label


METADATA_KEY = "proposal_id"

# Seconds of clock skew tolerated on the Stripe-Signature timestamp
SIGNATURE_TOLERANCE = 300


class PaymentGatewayError(Exception):
    """Raised when Stripe cannot create a session (network, auth, API errors)."""


class WebhookVerificationError(Exception):
    """Raised when a webhook payload cannot be authenticated."""


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


def to_minor_units(amount: Decimal) -> int:
    """Dollars -> cents, rounded to the nearest whole cent."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeGateway:
    def __init__(self, settings: ProposalSettings):
        self.settings = settings

    def create_checkout_session(self, proposal: Proposal) -> CheckoutSession:
        """
        Create a hosted checkout session for a signed proposal.

        Raises:
            PaymentGatewayError: If Stripe is not configured or the API call fails
        """
        if not self.settings.stripe_secret_key:
            raise PaymentGatewayError("STRIPE_SECRET_KEY is not configured")

        proposal_url = self.settings.proposal_url(proposal.id)
        package = "Custom" if not proposal.tier else tier_label(proposal.tier)
        try:
            session = stripe.checkout.Session.create(
                api_key=self.settings.stripe_secret_key,
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": self.settings.payment_currency,
                        "product_data": {
                            "name": f"Roof MRI Training - {package} Package",
                            "description": f"Training proposal for {proposal.company}",
                        },
                        "unit_amount": to_minor_units(proposal.total_price),
                    },
                    "quantity": 1,
                }],
                mode="payment",
                customer_email=proposal.email,
                client_reference_id=proposal.id,
                metadata={METADATA_KEY: proposal.id},
                success_url=f"{proposal_url}?payment=success",
                cancel_url=f"{proposal_url}?payment=cancelled",
            )
        except stripe.StripeError as exc:
            raise PaymentGatewayError(f"Stripe checkout failed: {exc.user_message or exc}") from exc

        return CheckoutSession(id=session.id, url=session.url)

    def verify_event(self, payload: bytes, signature_header: str | None) -> dict:
        """
        Authenticate a webhook body against the Stripe-Signature header.

        Returns:
            The event as a plain dict

        Raises:
            WebhookVerificationError: Missing secret/header, bad signature, or bad JSON
        """
        if not self.settings.stripe_webhook_secret:
            raise WebhookVerificationError("STRIPE_WEBHOOK_SECRET is not configured")
        if not signature_header:
            raise WebhookVerificationError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as exc:
            raise WebhookVerificationError("Webhook body is not UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature_header,
                self.settings.stripe_webhook_secret,
                SIGNATURE_TOLERANCE,
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookVerificationError(str(exc)) from exc

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise WebhookVerificationError("Webhook body is not valid JSON") from exc
        if not isinstance(event, dict):
            raise WebhookVerificationError("Webhook body is not a JSON object")
        return event
