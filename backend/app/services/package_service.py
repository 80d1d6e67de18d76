# Overview: Service-layer helpers for training packages; derives headcounts from a tier.

from __future__ import annotations

from dataclasses import dataclass


TIER_LABELS = {
    "professional": "Professional",
    "regional": "Regional",
    "enterprise": "Enterprise",
}

# (included trainees, included recon kits) per tier
TIER_INCLUSIONS = {
    "professional": (3, 1),
    "regional": (10, 2),
    "enterprise": (25, 4),
}


@dataclass(frozen=True)
class PackageSummary:
    tier: str
    label: str
    total_trainees: int
    total_kits: int


def tier_label(tier: str | None) -> str:
    if not tier:
        return "Client Choice"
    return TIER_LABELS.get(tier, tier.capitalize())


def derive_package(tier: str | None, extra_trainees: int | None, extra_kits: int | None) -> PackageSummary | None:
    """
    Headcounts a proposal actually buys: tier inclusions plus extras.

    Returns None when no tier is fixed (the client chooses on the page).
    """
    if tier not in TIER_INCLUSIONS:
        return None
    base_trainees, base_kits = TIER_INCLUSIONS[tier]
    return PackageSummary(
        tier=tier,
        label=TIER_LABELS[tier],
        total_trainees=base_trainees + (extra_trainees or 0),
        total_kits=base_kits + (extra_kits or 0),
    )
