from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


STATUS_SENT = "sent"
STATUS_SIGNED = "signed"

PAYMENT_UNPAID = "unpaid"
PAYMENT_PAID = "paid"

TIERS = ("professional", "regional", "enterprise")


def _price(value):
    return str(value) if value is not None else None


class Proposal(db.Model):
    """
    A training proposal sent to a prospective client.

    WHY: The opaque id doubles as the client's capability - whoever holds the
    link may view, sign and pay. Lifecycle columns only move forward
    (sent -> signed, unpaid -> paid) and are written through predicate-guarded
    UPDATEs in proposal_store, never by read-modify-write.
    """
    __tablename__ = "proposals"
    __table_args__ = (
        db.CheckConstraint("status IN ('sent', 'signed')", name="ck_proposals_status"),
        db.CheckConstraint("payment_status IN ('unpaid', 'paid')", name="ck_proposals_payment_status"),
        db.CheckConstraint("open_count >= 0", name="ck_proposals_open_count"),
        db.Index("ix_proposals_created_at", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True)
    proposal_num = db.Column(db.String(64), nullable=True)

    # Client
    contact_name = db.Column(db.Text, nullable=False)
    company = db.Column(db.Text, nullable=False)
    email = db.Column(db.String(255), nullable=False)

    # Offered package
    tier = db.Column(db.String(32), nullable=True)  # None when the client chooses
    tier_price = db.Column(db.Numeric(12, 2), nullable=True)
    extra_trainees = db.Column(db.Integer, nullable=False, default=0)
    extra_kits = db.Column(db.Integer, nullable=False, default=0)
    tracks = db.Column(db.JSON, nullable=False, default=list)
    videography = db.Column(db.Boolean, nullable=False, default=False)
    on_roof_day = db.Column(db.Boolean, nullable=False, default=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=True)
    let_client_choose = db.Column(db.Boolean, nullable=False, default=False)
    vimeo_url = db.Column(db.Text, nullable=True)

    # Lifecycle
    status = db.Column(db.String(16), nullable=False, default=STATUS_SENT)
    signature_name = db.Column(db.Text, nullable=True)
    signature_data = db.Column(db.Text, nullable=True)
    signed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    opened_at = db.Column(db.DateTime(timezone=True), nullable=True)
    open_count = db.Column(db.Integer, nullable=False, default=0)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_UNPAID)
    stripe_session_id = db.Column(db.String(255), nullable=True)

    @property
    def is_signed(self) -> bool:
        return self.status == STATUS_SIGNED

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAYMENT_PAID

    def to_dict(self) -> dict:
        from ..services.package_service import derive_package

        package = derive_package(self.tier, self.extra_trainees, self.extra_kits)
        return {
            "id": self.id,
            "proposal_num": self.proposal_num,
            "contact_name": self.contact_name,
            "company": self.company,
            "email": self.email,
            "tier": self.tier,
            "tier_price": _price(self.tier_price),
            "extra_trainees": self.extra_trainees,
            "extra_kits": self.extra_kits,
            "tracks": list(self.tracks or []),
            "videography": self.videography,
            "on_roof_day": self.on_roof_day,
            "total_price": _price(self.total_price),
            "let_client_choose": self.let_client_choose,
            "vimeo_url": self.vimeo_url,
            "total_trainees": package.total_trainees if package else None,
            "total_kits": package.total_kits if package else None,
            "status": self.status,
            "signature_name": self.signature_name,
            "signature_data": self.signature_data,
            "signed_at": to_utc_z(self.signed_at),
            "created_at": to_utc_z(self.created_at),
            "opened_at": to_utc_z(self.opened_at),
            "open_count": self.open_count,
            "payment_status": self.payment_status,
            "stripe_session_id": self.stripe_session_id,
        }

    def to_summary(self) -> dict:
        """Dashboard projection - no signature payload."""
        return {
            "id": self.id,
            "proposal_num": self.proposal_num,
            "contact_name": self.contact_name,
            "company": self.company,
            "email": self.email,
            "tier": self.tier,
            "total_price": _price(self.total_price),
            "status": self.status,
            "payment_status": self.payment_status,
            "created_at": to_utc_z(self.created_at),
            "opened_at": to_utc_z(self.opened_at),
            "open_count": self.open_count,
            "signed_at": to_utc_z(self.signed_at),
        }
