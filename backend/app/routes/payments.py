# Overview: Flask API route for Stripe payment webhooks; verifies and reconciles events.

# backend/app/routes/payments.py
"""
Payment Webhook Route

WHY: Payment is confirmed asynchronously. Stripe POSTs a signed event once
the checkout completes; this route authenticates it and hands it to the
lifecycle service.

RESPONSES:
- 400: Signature verification failed - NOT acknowledged, so Stripe re-delivers
- 200: Everything else that was processed, including events this system
       cannot resolve (unknown/missing proposal id). Retrying would not help.
- 500: Store failure while applying the event - Stripe retries later

SECURITY:
- The raw request body is verified before it is parsed
- Nothing in an unverified payload is trusted
"""

from flask import Blueprint, current_app, jsonify, request

from ..extensions import get_notifier, get_payment_gateway
from ..services import lifecycle_service
from ..services.payment_gateway import WebhookVerificationError


payments_bp = Blueprint("payments", __name__, url_prefix="/api")


@payments_bp.post("/stripe-webhook")
def stripe_webhook_route():
    payload = request.get_data(cache=False)
    signature = request.headers.get("Stripe-Signature")

    try:
        event = get_payment_gateway().verify_event(payload, signature)
    except WebhookVerificationError as e:
        current_app.logger.warning("Stripe webhook signature failed: %s", e)
        return jsonify({"error": f"Webhook Error: {e}"}), 400

    try:
        confirmation = lifecycle_service.confirm_payment(event, notifier=get_notifier())
    except Exception:
        current_app.logger.exception("Webhook processing error")
        return jsonify({"error": "Webhook processing failed"}), 500

    return jsonify({"received": True, "outcome": confirmation.outcome}), 200
