# Overview: Normalizes and validates proposal creation payloads into one canonical shape.

"""
Proposal Input Normalization

WHY: The dashboard and older integrations post the same proposal with two
naming conventions (camelCase and snake_case, plus a couple of legacy names
such as company_name / contact_email). All alias handling happens here, once,
producing a ProposalInput; nothing downstream looks at raw request keys.

RULES:
- For each canonical field, the first alias with a non-null value wins
  (so 0 and False are preserved)
- Free text is stripped of markup before it is stored or emailed
- All problems are collected and reported together, keyed by canonical field
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ..models.proposals import TIERS
from ..validation import (
    ValidationError,
    coerce_bool,
    coerce_int,
    coerce_price,
    is_valid_email,
    strip_markup,
)


# canonical name -> accepted request keys, in precedence order
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "contact_name": ("contactName", "contact_name"),
    "company": ("company", "company_name", "companyName"),
    "email": ("email", "contact_email", "contactEmail"),
    "proposal_num": ("proposalNum", "proposal_num"),
    "tier": ("tier",),
    "tier_price": ("tierPrice", "tier_price"),
    "extra_trainees": ("extraTrainees", "extra_trainees"),
    "extra_kits": ("extraKits", "extra_kits"),
    "tracks": ("tracks",),
    "videography": ("videography",),
    "on_roof_day": ("onRoofDay", "on_roof_day"),
    "total_price": ("totalPrice", "total_price"),
    "let_client_choose": ("letClientChoose", "let_client_choose"),
    "vimeo_url": ("vimeoUrl", "vimeo_url"),
}

MAX_TEXT_LENGTH = 255
MAX_TRACKS = 50


@dataclass
class ProposalInput:
    contact_name: str
    company: str
    email: str
    proposal_num: str | None = None
    tier: str | None = None
    tier_price: Decimal | None = None
    extra_trainees: int = 0
    extra_kits: int = 0
    tracks: list[str] = field(default_factory=list)
    videography: bool = False
    on_roof_day: bool = False
    total_price: Decimal | None = None
    let_client_choose: bool = False
    vimeo_url: str | None = None

    def to_columns(self) -> dict:
        return {
            "contact_name": self.contact_name,
            "company": self.company,
            "email": self.email,
            "proposal_num": self.proposal_num,
            "tier": self.tier,
            "tier_price": self.tier_price,
            "extra_trainees": self.extra_trainees,
            "extra_kits": self.extra_kits,
            "tracks": list(self.tracks),
            "videography": self.videography,
            "on_roof_day": self.on_roof_day,
            "total_price": self.total_price,
            "let_client_choose": self.let_client_choose,
            "vimeo_url": self.vimeo_url,
        }


def pick_aliases(payload: dict) -> dict[str, Any]:
    """Collapse alias spellings to canonical keys (first non-null value wins)."""
    picked: dict[str, Any] = {}
    for canonical, aliases in FIELD_ALIASES.items():
        for key in aliases:
            value = payload.get(key)
            if value is not None:
                picked[canonical] = value
                break
    return picked


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise TypeError
    cleaned = strip_markup(str(value))
    return cleaned or None


def _tracks(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise ValidationError("tracks must be a list of strings", {"tracks": "must be a list of strings"})
    seen: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValidationError("tracks must be a list of strings", {"tracks": "must be a list of strings"})
        cleaned = strip_markup(item)
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    if len(seen) > MAX_TRACKS:
        raise ValidationError(f"tracks cannot exceed {MAX_TRACKS} entries", {"tracks": f"at most {MAX_TRACKS} entries"})
    return seen


def normalize_proposal_payload(payload: Any) -> ProposalInput:
    """
    Validate + normalize an incoming creation payload.

    Raises ValidationError carrying every field-level problem found.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    raw = pick_aliases(payload)
    errors: dict[str, str] = {}
    values: dict[str, Any] = {}

    # Required text
    for key in ("contact_name", "company", "email"):
        try:
            text = _text(raw.get(key))
        except TypeError:
            errors[key] = "must be a string"
            continue
        if not text:
            errors[key] = "is required"
        elif len(text) > MAX_TEXT_LENGTH:
            errors[key] = f"exceeds max length {MAX_TEXT_LENGTH}"
        else:
            values[key] = text

    if "email" in values:
        values["email"] = values["email"].lower()
        if not is_valid_email(values["email"]):
            errors["email"] = "is not a valid email address"
            values.pop("email")

    try:
        values["proposal_num"] = _text(raw.get("proposal_num"))
    except TypeError:
        errors["proposal_num"] = "must be a string"

    tier = raw.get("tier")
    if isinstance(tier, str) and tier.strip():
        tier = tier.strip().lower()
        if tier not in TIERS:
            errors["tier"] = f"must be one of {', '.join(TIERS)}"
        else:
            values["tier"] = tier
    elif tier not in (None, ""):
        errors["tier"] = f"must be one of {', '.join(TIERS)}"

    for key in ("tier_price", "total_price"):
        if raw.get(key) in (None, ""):
            continue
        try:
            values[key] = coerce_price(key, raw[key])
        except ValidationError as e:
            errors.update(e.fields)

    for key in ("extra_trainees", "extra_kits"):
        if key not in raw:
            continue
        try:
            values[key] = coerce_int(key, raw[key])
        except ValidationError as e:
            errors.update(e.fields)

    for key in ("videography", "on_roof_day", "let_client_choose"):
        if key not in raw:
            continue
        try:
            values[key] = coerce_bool(key, raw[key])
        except ValidationError as e:
            errors.update(e.fields)

    if "tracks" in raw:
        try:
            values["tracks"] = _tracks(raw["tracks"])
        except ValidationError as e:
            errors.update(e.fields)

    vimeo_url = raw.get("vimeo_url")
    if isinstance(vimeo_url, str) and vimeo_url.strip():
        cleaned = strip_markup(vimeo_url)
        if not cleaned.startswith(("https://", "http://")):
            errors["vimeo_url"] = "must be an http(s) URL"
        else:
            values["vimeo_url"] = cleaned
    elif vimeo_url not in (None, ""):
        errors["vimeo_url"] = "must be an http(s) URL"

    if errors:
        if any(errors.get(k) == "is required" for k in ("contact_name", "company", "email")):
            message = "Missing required fields: email, contactName, and company are required"
        else:
            message = "Invalid proposal: " + ", ".join(sorted(errors))
        raise ValidationError(message, errors)

    return ProposalInput(**values)
