"""
Concurrency tests for lifecycle transitions.

Uses a file-backed SQLite database so each thread gets its own connection
and transaction. In-memory SQLite shares one connection and cannot race.

Verifies:
- Two simultaneous signers: exactly one succeeds, the other gets ConflictError
- Simultaneous duplicate webhook deliveries mark paid once and notify once
- Concurrent opens lose no increments
"""

import threading
from decimal import Decimal

import pytest

from app.extensions import db
from app.models import Proposal
from app.services import lifecycle_service, proposal_store
from app.services.identifier_service import generate_proposal_id
from app.validation import ConflictError

from conftest import SIGNATURE_DATA, build_app, checkout_event


@pytest.fixture
def file_app(tmp_path):
    app = build_app({"SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'race.sqlite3'}"})
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed(app, **overrides) -> str:
    with app.app_context():
        values = {
            "id": generate_proposal_id(),
            "contact_name": "Jane Doe",
            "company": "Acme Roofing",
            "email": "jane@acme.test",
            "total_price": Decimal("12500.00"),
        }
        values.update(overrides)
        proposal = proposal_store.insert(Proposal(**values))
        proposal_id = proposal.id
        db.session.remove()
    return proposal_id


def _run_concurrently(app, worker, count):
    """Start `count` threads that each call worker(index) inside their own app context."""
    barrier = threading.Barrier(count)
    errors = []

    def _target(index):
        with app.app_context():
            try:
                barrier.wait(timeout=5)
                worker(index)
            except Exception as exc:  # surfaced to the test below
                errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=_target, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return errors


def test_concurrent_sign_has_one_winner(file_app):
    proposal_id = _seed(file_app)
    notifier = file_app.extensions["proposal_notifier"]
    outcomes = []

    def worker(index):
        try:
            lifecycle_service.sign_proposal(proposal_id, f"Signer {index}", SIGNATURE_DATA, notifier=notifier)
            outcomes.append(("signed", f"Signer {index}"))
        except ConflictError:
            outcomes.append(("conflict", None))

    errors = _run_concurrently(file_app, worker, 2)
    assert errors == []

    results = sorted(kind for kind, _ in outcomes)
    assert results == ["conflict", "signed"]
    winner = next(name for kind, name in outcomes if kind == "signed")

    with file_app.app_context():
        stored = proposal_store.get_by_id(proposal_id)
        assert stored.status == "signed"
        assert stored.signature_name == winner
    assert notifier.subjects().count("SIGNED: Acme Roofing - Jane Doe") == 1


def test_duplicate_webhook_deliveries_notify_once(file_app):
    proposal_id = _seed(file_app, status="signed")
    notifier = file_app.extensions["proposal_notifier"]
    outcomes = []

    def worker(index):
        confirmation = lifecycle_service.confirm_payment(checkout_event(proposal_id), notifier=notifier)
        outcomes.append(confirmation.outcome)

    errors = _run_concurrently(file_app, worker, 3)
    assert errors == []
    assert sorted(outcomes) == ["already_paid", "already_paid", "paid"]
    assert notifier.subjects().count("PAID: Acme Roofing - Jane Doe") == 1


def test_concurrent_opens_are_all_counted(file_app):
    proposal_id = _seed(file_app)

    def worker(index):
        assert proposal_store.increment_open_count(proposal_id)

    errors = _run_concurrently(file_app, worker, 5)
    assert errors == []

    with file_app.app_context():
        assert proposal_store.get_by_id(proposal_id).open_count == 5
