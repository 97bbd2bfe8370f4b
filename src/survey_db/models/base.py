"""Declarative base for the survey tables.

Constraints and indexes created without an explicit name get a
deterministic one from ``naming_convention`` so that ``create_tables()``
and hand-written migrations agree on what to drop or alter.
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Shared metadata for surveys, survey_responses and field_questions."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
