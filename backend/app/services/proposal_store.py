# Overview: Persistence for proposals; conditional updates are the lifecycle's concurrency primitive.

"""
Proposal Store

WHY: Sign and payment transitions must be race-free without assuming a
single writer. Every lifecycle write is one SQL statement of the form

    UPDATE proposals SET ... WHERE id = :id AND <predicate>

and success is decided by the affected row count. Two racing writers can
both issue the statement, but only one can observe the predicate as true.

DESIGN PRINCIPLES:
- No read-modify-write for sign/payment: the predicate lives in the UPDATE
- Open tracking is a plain atomic increment (losing no increments is its
  only requirement)
- Each public function commits its own transaction
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import FlushError

from ..extensions import db
from ..models import Proposal
from ..validation import NotFoundError
from app.time_utils import utcnow
from .concurrency import run_with_retry
from .identifier_service import is_well_formed


class DuplicateKeyError(Exception):
    """Raised when an insert collides with an existing proposal id."""


@dataclass
class ProposalPage:
    proposals: list[Proposal]
    total: int
    limit: int
    offset: int


def insert(proposal: Proposal) -> Proposal:
    """
    Persist a new proposal.

    Raises:
        DuplicateKeyError: If the id already exists (caller retries with a fresh id)
    """
    if proposal.created_at is None:
        proposal.created_at = utcnow()

    db.session.add(proposal)
    try:
        db.session.commit()
    except (IntegrityError, FlushError) as exc:
        db.session.rollback()
        if db.session.get(Proposal, proposal.id) is not None:
            raise DuplicateKeyError(f"Proposal id {proposal.id} already exists") from exc
        raise
    return proposal


def find_by_id(proposal_id: str) -> Proposal | None:
    if not is_well_formed(proposal_id):
        return None
    return db.session.get(Proposal, proposal_id, populate_existing=True)


def get_by_id(proposal_id: str) -> Proposal:
    """
    Fetch a proposal by id.

    Raises:
        NotFoundError: If no proposal has this id
    """
    proposal = find_by_id(proposal_id)
    if proposal is None:
        raise NotFoundError("Proposal not found")
    return proposal


def conditional_update(proposal_id: str, conditions: Iterable[Any], patch: dict) -> Proposal | None:
    """
    Apply patch only if the stored row currently satisfies every condition.

    Args:
        proposal_id: Proposal to update
        conditions: SQLAlchemy column expressions, e.g. Proposal.status != "signed"
        patch: Column values to set

    Returns:
        The refreshed proposal when exactly one row changed, otherwise None
        (row missing or predicate false - callers re-read to tell which).
    """
    if not is_well_formed(proposal_id):
        return None

    conditions = list(conditions)

    def _op():
        stmt = (
            update(Proposal)
            .where(Proposal.id == proposal_id, *conditions)
            .values(**patch)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            db.session.rollback()
            return None
        db.session.commit()
        return db.session.get(Proposal, proposal_id, populate_existing=True)

    return run_with_retry(_op, label=f"conditional update of proposal {proposal_id}")


def increment_open_count(proposal_id: str, now: datetime | None = None) -> bool:
    """
    Record a tracked client read.

    Sets opened_at on the first call only; increments open_count on every call.
    Both happen in one UPDATE, so duplicate page loads cannot lose increments.

    Returns:
        False if the proposal does not exist
    """
    if not is_well_formed(proposal_id):
        return False

    opened = now or utcnow()

    def _op():
        stmt = (
            update(Proposal)
            .where(Proposal.id == proposal_id)
            .values(
                opened_at=func.coalesce(Proposal.opened_at, opened),
                open_count=Proposal.open_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        db.session.commit()
        return result.rowcount == 1

    return run_with_retry(_op, label=f"open tracking of proposal {proposal_id}")


def get_payment_status(proposal_id: str) -> str:
    """Lightweight single-column read for payment polling."""
    if not is_well_formed(proposal_id):
        raise NotFoundError("Proposal not found")
    status = db.session.execute(
        select(Proposal.payment_status).where(Proposal.id == proposal_id)
    ).scalar_one_or_none()
    if status is None:
        raise NotFoundError("Proposal not found")
    return status


def list_summaries(limit: int, offset: int) -> ProposalPage:
    """Newest proposals first, plus the total count for pagination."""
    proposals = (
        db.session.query(Proposal)
        .order_by(Proposal.created_at.desc(), Proposal.id)
        .limit(limit)
        .offset(offset)
        .all()
    )
    total = db.session.query(func.count(Proposal.id)).scalar() or 0
    return ProposalPage(proposals=proposals, total=int(total), limit=limit, offset=offset)
