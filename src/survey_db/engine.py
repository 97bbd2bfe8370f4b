"""Process-wide async engine for the survey database.

One engine (and one session factory bound to it) is built on first use from
``survey_db.config`` and shared by every request.  ``dispose_engine()``
drops both so the next call starts over with fresh settings.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from survey_db.config import get_async_url, get_max_overflow, get_pool_size
from survey_db.models.base import Base
from survey_db.models.enums import SurveyVisibility
from survey_db.models.survey import SurveyRow

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            get_async_url(),
            pool_size=get_pool_size(),
            max_overflow=get_max_overflow(),
            # Connections idle behind a proxy get cut; check before reuse
            pool_pre_ping=True,
        )
        logger.info("Survey database engine created (pool_size=%d)", get_pool_size())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows usable after commit so services can return them."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


async def create_tables() -> None:
    """Create the surveys, survey_responses and field_questions tables if missing."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Survey tables ensured: %s", ", ".join(sorted(Base.metadata.tables)))


async def survey_counts() -> dict[str, int]:
    """Total and public survey counts; raises if the database is unreachable."""
    stmt = select(
        func.count(SurveyRow.id),
        func.count(SurveyRow.id).filter(
            SurveyRow.visibility == SurveyVisibility.PUBLIC.value
        ),
    )
    async with get_engine().connect() as conn:
        total, public = (await conn.execute(stmt)).one()
    return {"surveys": int(total), "public_surveys": int(public)}


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Survey database engine disposed")
