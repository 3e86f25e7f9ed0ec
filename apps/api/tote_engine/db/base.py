"""Declarative base shared by the tote ledger models."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, MetaData, Uuid
from sqlalchemy.orm import DeclarativeBase

# Matches PostgreSQL's implicit names so autogenerate agrees with the raw-SQL baseline.
# Check, unique and index names are always given explicitly on the models.
NAMING_CONVENTION = {
    "pk": "%(table_name)s_pkey",
    "fk": "%(table_name)s_%(column_0_name)s_fkey",
}


class Base(DeclarativeBase):
    """Ledger tables store timezone-aware UTC timestamps and UUID keys."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
    type_annotation_map = {
        datetime: DateTime(timezone=True),
        uuid.UUID: Uuid,
    }
