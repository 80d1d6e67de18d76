# Overview: Service-layer operations for the proposal lifecycle; encapsulates business logic and database work.

"""
Proposal Lifecycle Service

================================================================================
PURPOSE: Enforce Sent -> Signed -> Paid for proposals, safely under concurrency
================================================================================

STATE MACHINE:
    SENT (status=sent, payment_status=unpaid)
      -> SIGNED (status=signed)
      -> PAID   (payment_status=paid)

    SENT:   Created and emailed. Client may view (tracked) and sign.
    SIGNED: Signature stored. Client may start a checkout session.
    PAID:   Stripe confirmed payment via webhook. Terminal.

RULES (NON-NEGOTIABLE):
1. status only moves sent -> signed; payment_status only unpaid -> paid
2. Sign and payment writes are conditional UPDATEs; first writer wins
3. A lost sign race is reported as ConflictError, never as success
4. Checkout is refused before signing and after payment
5. Re-delivered payment events are no-ops (no second notification)
6. Notifications go out AFTER commit; their failure is a warning, not a rollback

ERRORS:
- ValidationError:          malformed input (400)
- NotFoundError:            unknown proposal id (404)
- ConflictError:            already signed / already paid (409)
- PreconditionFailedError:  payment before signing (412)
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flask import current_app

from ..config import ProposalSettings
from ..models import Proposal
from ..models.proposals import PAYMENT_PAID, PAYMENT_UNPAID, STATUS_SIGNED
from ..validation import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
    strip_markup,
)
from app.time_utils import utcnow
from . import proposal_store
from .identifier_service import generate_proposal_id
from .notification_service import NotificationDispatcher, NotificationError, OutboundMessage
from .payment_gateway import METADATA_KEY, CheckoutSession, StripeGateway
from .proposal_input import normalize_proposal_payload
from .proposal_store import DuplicateKeyError, ProposalPage


# Base64 canvas exports get large quickly; cap what a single signature may store
MAX_SIGNATURE_DATA_LENGTH = 500_000
MAX_SIGNATURE_NAME_LENGTH = 255

INSERT_ATTEMPTS = 3

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

EVENT_CHECKOUT_COMPLETED = "checkout.session.completed"
EVENT_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
HANDLED_EVENTS = {EVENT_CHECKOUT_COMPLETED, EVENT_ASYNC_PAYMENT_SUCCEEDED}

# Payment confirmation outcomes (all acknowledged to Stripe)
OUTCOME_PAID = "paid"
OUTCOME_ALREADY_PAID = "already_paid"
OUTCOME_UNKNOWN_PROPOSAL = "unknown_proposal"
OUTCOME_MISSING_CORRELATION = "missing_correlation"
OUTCOME_NOT_SIGNED = "not_signed"
OUTCOME_IGNORED = "ignored"


@dataclass
class LifecycleResult:
    proposal: Proposal
    warnings: list[str] = field(default_factory=list)


@dataclass
class PaymentConfirmation:
    outcome: str
    proposal_id: str | None = None
    proposal: Proposal | None = None


def _dispatch(notifier: NotificationDispatcher, messages: list[OutboundMessage], warnings: list[str]) -> None:
    """Send each message; record failures as warnings on the result."""
    for message in messages:
        try:
            notifier.send(message)
        except NotificationError as exc:
            current_app.logger.warning("Notification failed (%s): %s", message.subject, exc)
            warnings.append(f"Notification to {message.to} failed: {message.subject}")


# =============================================================================
# CREATE
# =============================================================================

def create_proposal(payload: Any, *, settings: ProposalSettings, notifier: NotificationDispatcher) -> LifecycleResult:
    """
    Create a proposal in SENT state and email it.

    WHY the ordering: the row is committed before any email is attempted, so a
    mail outage leaves "proposal exists without confirmation email" rather
    than "client got a link that 404s".

    Raises:
        ValidationError: Missing/malformed fields (with field-level detail)
    """
    data = normalize_proposal_payload(payload)

    proposal = None
    for attempt in range(INSERT_ATTEMPTS):
        candidate = Proposal(id=generate_proposal_id(), **data.to_columns())
        try:
            proposal = proposal_store.insert(candidate)
            break
        except DuplicateKeyError:
            current_app.logger.warning("Proposal id collision on attempt %d; regenerating", attempt + 1)
    if proposal is None:
        raise RuntimeError("Could not allocate a unique proposal id")

    current_app.logger.info("Proposal %s created for %s: %s", proposal.id, proposal.company,
                            settings.proposal_url(proposal.id))

    result = LifecycleResult(proposal=proposal)
    _dispatch(notifier, notifier.proposal_sent(proposal), result.warnings)
    return result


# =============================================================================
# VIEW
# =============================================================================

def view_proposal(proposal_id: str, *, track_open: bool = True) -> Proposal:
    """
    Fetch a proposal for the client page.

    track_open=False is used by polling (payment status refreshes) so automated
    refetches do not inflate open_count.

    Raises:
        NotFoundError: Unknown id
    """
    if track_open:
        if not proposal_store.increment_open_count(proposal_id):
            raise NotFoundError("Proposal not found")
    return proposal_store.get_by_id(proposal_id)


def get_payment_status(proposal_id: str) -> str:
    return proposal_store.get_payment_status(proposal_id)


# =============================================================================
# SIGN
# =============================================================================

def _validate_signature(signature_name: Any, signature_data: Any) -> tuple[str, str]:
    errors: dict[str, str] = {}

    name = strip_markup(signature_name) if isinstance(signature_name, str) else None
    if not name:
        errors["signatureName"] = "is required"
    elif len(name) > MAX_SIGNATURE_NAME_LENGTH:
        errors["signatureName"] = f"exceeds max length {MAX_SIGNATURE_NAME_LENGTH}"

    if not isinstance(signature_data, str) or not signature_data:
        errors["signatureData"] = "is required"
    elif len(signature_data) > MAX_SIGNATURE_DATA_LENGTH:
        errors["signatureData"] = "is too large"
    elif not signature_data.startswith("data:image/"):
        errors["signatureData"] = "must be an encoded image (data:image/...)"

    if errors:
        if errors.get("signatureData") == "is too large":
            raise ValidationError("Signature data too large", errors)
        raise ValidationError("Missing signature data", errors)
    return name, signature_data


def sign_proposal(proposal_id: str, signature_name: Any, signature_data: Any, *,
                  notifier: NotificationDispatcher) -> LifecycleResult:
    """
    Transition SENT -> SIGNED exactly once.

    Two racing requests both issue the conditional UPDATE; only one can see
    status != signed. The loser re-reads to decide between 404 and 409.

    Raises:
        ValidationError: Missing name/data or data over the size cap
        NotFoundError: Unknown id
        ConflictError: Proposal already signed
    """
    name, data = _validate_signature(signature_name, signature_data)

    updated = proposal_store.conditional_update(
        proposal_id,
        [Proposal.status != STATUS_SIGNED],
        {
            "status": STATUS_SIGNED,
            "signature_name": name,
            "signature_data": data,
            "signed_at": utcnow(),
        },
    )

    if updated is None:
        if proposal_store.find_by_id(proposal_id) is None:
            raise NotFoundError("Proposal not found")
        raise ConflictError("This proposal has already been signed")

    current_app.logger.info("Proposal %s signed by %s", proposal_id, name)

    result = LifecycleResult(proposal=updated)
    _dispatch(notifier, [notifier.proposal_signed(updated)], result.warnings)
    return result


# =============================================================================
# PAYMENT
# =============================================================================

def create_payment_session(proposal_id: str, *, gateway: StripeGateway) -> CheckoutSession:
    """
    Start a hosted checkout for a signed, unpaid, priced proposal.

    Does NOT mark anything paid - only the verified webhook does that.
    Multiple outstanding sessions are allowed (abandoned checkouts); the
    first one Stripe confirms wins.

    Raises:
        NotFoundError: Unknown id
        PreconditionFailedError: Not signed yet (no gateway call is made)
        ConflictError: Already paid
        ValidationError: No positive total_price
        PaymentGatewayError: Stripe failure
    """
    proposal = proposal_store.get_by_id(proposal_id)

    if not proposal.is_signed:
        raise PreconditionFailedError("Proposal must be signed before payment")
    if proposal.is_paid:
        raise ConflictError("This proposal has already been paid")
    if proposal.total_price is None or proposal.total_price <= 0:
        raise ValidationError("No price set for this proposal", {"total_price": "must be greater than 0"})

    session = gateway.create_checkout_session(proposal)
    current_app.logger.info("Checkout session %s created for proposal %s", session.id, proposal_id)
    return session


def confirm_payment(event: dict, *, notifier: NotificationDispatcher) -> PaymentConfirmation:
    """
    Apply a VERIFIED Stripe event to the proposal it references.

    Every outcome is acknowledged to Stripe; conditions this system cannot
    resolve (missing/unknown correlation id, session without an id) are
    logged, not retried.

    Idempotent: the UPDATE requires payment_status = unpaid, so a re-delivered
    event changes nothing and sends no second notification.
    """
    event_type = event.get("type")
    if event_type not in HANDLED_EVENTS:
        return PaymentConfirmation(OUTCOME_IGNORED)

    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    session = data.get("object") if isinstance(data.get("object"), dict) else {}

    # Delayed payment methods complete the session before the money arrives
    if event_type == EVENT_CHECKOUT_COMPLETED and session.get("payment_status") == PAYMENT_UNPAID:
        current_app.logger.info("Checkout session %s completed but unpaid; awaiting async payment", session.get("id"))
        return PaymentConfirmation(OUTCOME_IGNORED)

    metadata = session.get("metadata") if isinstance(session.get("metadata"), dict) else {}
    proposal_id = metadata.get(METADATA_KEY)
    if not proposal_id or not isinstance(proposal_id, str):
        current_app.logger.warning("Stripe event %s has no %s metadata; ignoring", event.get("id"), METADATA_KEY)
        return PaymentConfirmation(OUTCOME_MISSING_CORRELATION)

    session_id = session.get("id")
    if not session_id or not isinstance(session_id, str):
        current_app.logger.warning("Stripe event %s for proposal %s has no session id; ignoring",
                                   event.get("id"), proposal_id)
        return PaymentConfirmation(OUTCOME_MISSING_CORRELATION, proposal_id)

    updated = proposal_store.conditional_update(
        proposal_id,
        [Proposal.payment_status == PAYMENT_UNPAID, Proposal.status == STATUS_SIGNED],
        {"payment_status": PAYMENT_PAID, "stripe_session_id": session_id},
    )

    if updated is None:
        current = proposal_store.find_by_id(proposal_id)
        if current is None:
            current_app.logger.warning("Stripe event %s references unknown proposal %s", event.get("id"), proposal_id)
            return PaymentConfirmation(OUTCOME_UNKNOWN_PROPOSAL, proposal_id)
        if current.is_paid:
            if current.stripe_session_id and session_id and current.stripe_session_id != session_id:
                current_app.logger.warning(
                    "Proposal %s already paid via %s; second payment in session %s needs manual review",
                    proposal_id, current.stripe_session_id, session_id,
                )
            else:
                current_app.logger.info("Duplicate payment event for proposal %s ignored", proposal_id)
            return PaymentConfirmation(OUTCOME_ALREADY_PAID, proposal_id, current)
        current_app.logger.warning("Payment event for unsigned proposal %s ignored", proposal_id)
        return PaymentConfirmation(OUTCOME_NOT_SIGNED, proposal_id, current)

    current_app.logger.info("Proposal %s paid (session %s)", proposal_id, session_id)

    warnings: list[str] = []
    _dispatch(notifier, [notifier.proposal_paid(updated)], warnings)
    return PaymentConfirmation(OUTCOME_PAID, proposal_id, updated)


# =============================================================================
# LISTING
# =============================================================================

def clamp_page(limit: Any, offset: Any) -> tuple[int, int]:
    """Parse dashboard paging params; bad values fall back to defaults."""
    try:
        limit = int(limit) if limit not in (None, "") else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_SIZE
    try:
        offset = int(offset) if offset not in (None, "") else 0
    except (TypeError, ValueError):
        offset = 0
    if limit == 0:
        limit = DEFAULT_PAGE_SIZE
    return min(max(limit, 1), MAX_PAGE_SIZE), max(offset, 0)


def list_proposals(limit: Any = None, offset: Any = None) -> ProposalPage:
    limit, offset = clamp_page(limit, offset)
    return proposal_store.list_summaries(limit, offset)
