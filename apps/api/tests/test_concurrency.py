"""Concurrent admission against a file-backed SQLite database."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import tote_engine.db.models  # noqa: F401
from tote_engine.core.exceptions import DuplicateClaimError, OutOfStockError
from tote_engine.db.base import Base
from tote_engine.db.enums import ClaimChannel
from tote_engine.services import cause_service, claim_service, inventory_service, sponsorship_service

WORKERS = 8


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"timeout": 30, "check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _stocked_cause(factory, totes):
    with factory() as db:
        cause = cause_service.create_cause(db, title="Clean Beaches")
        sponsorship = sponsorship_service.submit_sponsorship(
            db, cause.id, "Acme Outfitters", "Dana Reyes", "sponsor@acme.org", totes
        )
        sponsorship_service.approve(db, sponsorship.id)
        return cause.id


def _attempt(factory, cause_id, email):
    with factory() as db:
        try:
            claim_service.submit(db, cause_id, email, ClaimChannel.QR)
            return "claimed"
        except OutOfStockError:
            return "out_of_stock"
        except DuplicateClaimError:
            return "duplicate"


def test_parallel_claims_never_oversell(session_factory):
    cause_id = _stocked_cause(session_factory, totes=3)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        outcomes = list(
            pool.map(
                lambda i: _attempt(session_factory, cause_id, f"user{i}@gmail.com"),
                range(WORKERS),
            )
        )

    assert outcomes.count("claimed") == 3
    assert outcomes.count("out_of_stock") == WORKERS - 3
    with session_factory() as db:
        cause = inventory_service.get_availability(db, cause_id)
        inventory_service.check_invariant(cause)
        assert (cause.available_totes, cause.reserved_totes, cause.claimed_totes) == (0, 0, 3)


def test_parallel_claims_for_one_email_admit_one(session_factory):
    cause_id = _stocked_cause(session_factory, totes=5)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        outcomes = list(
            pool.map(lambda _: _attempt(session_factory, cause_id, "ana@gmail.com"), range(WORKERS))
        )

    assert outcomes.count("claimed") == 1
    assert outcomes.count("duplicate") == WORKERS - 1
    with session_factory() as db:
        cause = inventory_service.get_availability(db, cause_id)
        assert (cause.available_totes, cause.reserved_totes, cause.claimed_totes) == (4, 0, 1)


def test_five_approved_totes_six_concurrent_claimants(session_factory):
    cause_id = _stocked_cause(session_factory, totes=5)

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(
            pool.map(lambda i: _attempt(session_factory, cause_id, f"user{i}@gmail.com"), range(6))
        )

    assert sorted(outcomes) == ["claimed"] * 5 + ["out_of_stock"]
    with session_factory() as db:
        cause = inventory_service.get_availability(db, cause_id)
        assert (cause.total_totes, cause.available_totes, cause.claimed_totes) == (5, 0, 5)
