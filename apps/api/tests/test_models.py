"""Schema naming checks for the ledger models."""

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

from tote_engine.db.models import Claim, WaitlistEntry


def _ddl(model) -> str:
    return str(CreateTable(model.__table__).compile(dialect=postgresql.dialect()))


@pytest.mark.parametrize(
    "model, expected",
    [
        (Claim, "CONSTRAINT claims_pkey PRIMARY KEY"),
        (Claim, "CONSTRAINT claims_cause_id_fkey FOREIGN KEY"),
        (Claim, "CONSTRAINT claims_reservation_id_fkey FOREIGN KEY"),
        (WaitlistEntry, "CONSTRAINT uq_waitlist_position UNIQUE"),
    ],
)
def test_constraint_names_match_baseline(model, expected):
    assert expected in _ddl(model)


def test_timestamps_are_timezone_aware():
    assert Claim.__table__.c.created_at.type.timezone is True
