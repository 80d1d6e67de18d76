# Overview: Outbound email for proposal lifecycle events (SendGrid).

"""
Proposal Notification Dispatcher

WHY: Each lifecycle transition tells someone about it:
- created: the client gets the proposal link, staff get a "sent" notice
- signed:  staff get a "signed" notice
- paid:    staff get a "paid" notice

DESIGN PRINCIPLES:
- The persisted state change is the source of truth. Dispatch happens after
  commit; a failure raises NotificationError and the lifecycle service turns
  it into a warning, never a rollback.
- Without SENDGRID_API_KEY (local development) messages are logged and skipped.
- Bodies are small autoescaped Jinja templates; all interpolated user text is
  escaped on top of the markup stripping done at input time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app, render_template_string
from python_http_client.exceptions import HTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import From, Mail, ReplyTo

from ..config import ProposalSettings
from ..models import Proposal
from .package_service import derive_package, tier_label


class NotificationError(Exception):
    """Raised when the email provider rejects or fails a send."""


@dataclass(frozen=True)
class OutboundMessage:
    to: str
    subject: str
    html: str
    reply_to: bool = False


def format_money(amount: Decimal | None, *, default: str = "TBD") -> str:
    if amount is None or amount <= 0:
        return default
    return f"${amount:,.2f}"


def vimeo_id(url: str | None) -> str | None:
    if not url:
        return None
    match = re.search(r"vimeo\.com/(\d+)", url)
    return match.group(1) if match else None


CLIENT_PROPOSAL_TEMPLATE = """<!DOCTYPE html>
<html><head><meta charset="utf-8"></head>
<body style="margin:0;padding:0;background:#f1f5f9;font-family:Arial,Helvetica,sans-serif;">
<div style="max-width:600px;margin:0 auto;background:#ffffff;">
  <div style="background:#1B2A4A;padding:20px 28px;text-align:center;color:#ffffff;font-size:22px;font-weight:700;">
    ROOF <span style="color:#00bd70;">MRI</span>
  </div>
  <div style="padding:28px;color:#475569;font-size:15px;line-height:1.6;">
    <p style="color:#1B2A4A;">Hi {{ first_name }},</p>
    <p>Thanks for taking the time to talk with us about Roof MRI training for
      <strong style="color:#1B2A4A;">{{ p.company }}</strong>. We've put together a custom
      training proposal based on our conversation. Everything you need is in the link below.</p>
    <table width="100%" cellpadding="8" cellspacing="0" style="border:1px solid #e2e8f0;font-size:14px;">
      {% if p.let_client_choose or not package %}
      <tr><td>Package</td><td><strong>Your choice of training tier</strong></td></tr>
      <tr><td>Company</td><td>{{ p.company }}</td></tr>
      {% else %}
      <tr><td>Package</td><td><strong>{{ package.label }}</strong></td></tr>
      <tr><td>Company</td><td>{{ p.company }}</td></tr>
      <tr><td>Trainees</td><td>{{ package.total_trainees }}</td></tr>
      <tr><td>Recon Kits</td><td>{{ package.total_kits }}</td></tr>
      {% if p.tracks %}<tr><td>Training Tracks</td><td>{{ p.tracks | join(", ") }}</td></tr>{% endif %}
      {% if p.videography %}<tr><td>Videography</td><td>Included</td></tr>{% endif %}
      {% if p.on_roof_day %}<tr><td>On-Roof Training Day</td><td>Included</td></tr>{% endif %}
      {% endif %}
    </table>
    {% if not p.let_client_choose and total %}
    <p style="font-size:18px;color:#1B2A4A;font-weight:700;">Your Investment:
      <span style="color:#00bd70;">{{ total }}</span></p>
    {% endif %}
    {% if video_id %}
    <p><a href="{{ p.vimeo_url }}"><img src="https://vumbnail.com/{{ video_id }}.jpg" width="540"
      style="width:100%;max-width:540px;border-radius:8px;" alt="Watch intro video"></a></p>
    {% endif %}
    <p style="text-align:center;"><a href="{{ proposal_url }}"
      style="background:#00bd70;color:#ffffff;padding:16px 48px;border-radius:8px;font-weight:700;text-decoration:none;display:inline-block;">Get Started Here</a></p>
    <p>If you have any questions, just hit reply. We're here to help.</p>
    <p style="color:#1B2A4A;font-weight:600;margin-bottom:0;">{{ signature }}</p>
    <p style="margin-top:0;">Roof MRI</p>
  </div>
</div>
</body></html>"""

INTERNAL_NOTICE_TEMPLATE = """<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;color:#1B2A4A">
  <div style="background:{{ banner_color }};padding:16px 20px;text-align:center;color:#fff;font-size:16px;font-weight:700">
    {{ banner }}
  </div>
  <div style="padding:20px;background:#fff;border:1px solid #e2e8f0">
    <p style="font-size:14px;color:#374151">{{ headline }}</p>
    <p style="font-size:13px;color:#64748b">{{ p.company }} | {{ tier }} | {{ total }}</p>
    {% if detail %}<p style="font-size:13px;color:#64748b">{{ detail }}</p>{% endif %}
    <p style="font-size:13px"><a href="{{ proposal_url }}" style="color:#00bd70;">View proposal</a></p>
  </div>
</div>"""


class NotificationDispatcher:
    """Builds and sends lifecycle emails through SendGrid."""

    def __init__(self, settings: ProposalSettings):
        self.settings = settings
        self._client = SendGridAPIClient(settings.sendgrid_api_key) if settings.sendgrid_api_key else None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def send(self, message: OutboundMessage) -> None:
        """
        Deliver one message.

        Raises:
            NotificationError: If SendGrid rejects the message or is unreachable
        """
        if self._client is None:
            current_app.logger.info("SendGrid not configured; skipping email %r -> %s", message.subject, message.to)
            return

        mail = Mail(
            from_email=From(self.settings.from_email, self.settings.from_name),
            to_emails=message.to,
            subject=message.subject,
            html_content=message.html,
        )
        if message.reply_to and self.settings.reply_to_email:
            mail.reply_to = ReplyTo(self.settings.reply_to_email, self.settings.reply_to_name)

        try:
            response = self._client.send(mail)
        except HTTPError as exc:
            raise NotificationError(f"SendGrid rejected {message.subject!r}: {exc.status_code}") from exc
        except OSError as exc:
            raise NotificationError(f"SendGrid unreachable for {message.subject!r}: {exc}") from exc

        if response.status_code >= 300:
            raise NotificationError(f"SendGrid returned {response.status_code} for {message.subject!r}")
        current_app.logger.info("Email sent (%s): %r -> %s", response.status_code, message.subject, message.to)

    # ------------------------------------------------------------------
    # Lifecycle messages
    # ------------------------------------------------------------------

    def proposal_sent(self, proposal: Proposal) -> list[OutboundMessage]:
        """Client proposal email plus the internal 'sent' notice."""
        proposal_url = self.settings.proposal_url(proposal.id)
        client_html = render_template_string(
            CLIENT_PROPOSAL_TEMPLATE,
            p=proposal,
            first_name=proposal.contact_name.split(" ")[0],
            package=derive_package(proposal.tier, proposal.extra_trainees, proposal.extra_kits),
            total=format_money(proposal.total_price, default=""),
            video_id=vimeo_id(proposal.vimeo_url),
            proposal_url=proposal_url,
            signature=self.settings.reply_to_name or self.settings.from_name,
        )
        return [
            OutboundMessage(
                to=proposal.email,
                subject=f"Roof MRI Training Proposal for {proposal.company}",
                html=client_html,
                reply_to=True,
            ),
            self._internal(
                proposal,
                subject=f"Proposal Sent: {proposal.company} - {proposal.contact_name}",
                banner="PROPOSAL SENT",
                banner_color="#1B2A4A",
                headline=f"Proposal sent to {proposal.email}",
            ),
        ]

    def proposal_signed(self, proposal: Proposal) -> OutboundMessage:
        return self._internal(
            proposal,
            subject=f"SIGNED: {proposal.company} - {proposal.contact_name}",
            banner="PROPOSAL SIGNED",
            banner_color="#00bd70",
            headline=f"{proposal.contact_name} at {proposal.company} just signed their proposal.",
            detail=f"Signed by: {proposal.signature_name}",
        )

    def proposal_paid(self, proposal: Proposal) -> OutboundMessage:
        return self._internal(
            proposal,
            subject=f"PAID: {proposal.company} - {proposal.contact_name}",
            banner="PAYMENT RECEIVED",
            banner_color="#00bd70",
            headline=f"Payment received from {proposal.contact_name} at {proposal.company}",
            detail=f"Stripe session: {proposal.stripe_session_id}",
        )

    def _internal(self, proposal: Proposal, *, subject: str, banner: str, banner_color: str,
                  headline: str, detail: str | None = None) -> OutboundMessage:
        html = render_template_string(
            INTERNAL_NOTICE_TEMPLATE,
            p=proposal,
            banner=banner,
            banner_color=banner_color,
            headline=headline,
            detail=detail,
            tier=tier_label(proposal.tier),
            total=format_money(proposal.total_price),
            proposal_url=self.settings.proposal_url(proposal.id),
        )
        return OutboundMessage(to=self.settings.internal_notify_email, subject=subject, html=html)
