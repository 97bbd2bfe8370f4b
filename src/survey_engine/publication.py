"""PublicationService — administrator side of the survey lifecycle.

Stateless service pattern: each call loads rows through the repository,
applies the transition, and returns a record model.  The caller owns the
``AsyncSession`` and therefore the transaction boundary.

Lifecycle::

    draft ──save_draft()──> saved_private ──publish()──> public
                                  ▲                          │
                                  └──────unpublish()─────────┘

Invariants kept here:
  - A survey's slug is assigned on its first publish and never changes;
    re-publishing reuses both the slug and the original ``published_at``.
  - Slug, visibility and publish timestamp are written together.
  - Every stored definition passed the validator first.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.models.survey import SurveyRow
from survey_db.repository import SurveyRepository

from survey_engine.models.records import Principal, SurveyRecord
from survey_engine.models.survey import Survey
from survey_engine.slugs import pick_unique_slug, slugify_title
from survey_engine.validator import validate_survey

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Shared helpers (also used by ResponseService)
# ------------------------------------------------------------------

def require_admin(principal: Principal) -> None:
    """Raise ``PermissionError`` unless the caller is an administrator."""
    if not principal.is_admin:
        raise PermissionError(f"Administrator access required: user_id={principal.user_id}")


def parse_id(value: str, what: str) -> uuid.UUID:
    """Parse a UUID path value; malformed ids are reported as not found."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValueError(f"{what} not found: {value}") from None


def to_survey_record(
    row: SurveyRow,
    *,
    include_definition: bool = False,
    response_count: int | None = None,
    open_question_count: int | None = None,
) -> SurveyRecord:
    """Convert an ORM row to a public SurveyRecord."""
    definition = Survey.model_validate(row.definition) if include_definition else None
    return SurveyRecord(
        survey_id=str(row.id),
        title=row.title,
        description=row.description,
        visibility=str(getattr(row.visibility, "value", row.visibility)),
        slug=row.slug,
        published_at=row.published_at,
        updated_at=row.updated_at,
        definition=definition,
        response_count=response_count,
        open_question_count=open_question_count,
    )


class PublicationService:
    """Save, publish and unpublish surveys on behalf of administrators."""

    def __init__(self) -> None:
        self._repo = SurveyRepository()

    # ==================================================================
    # Save
    # ==================================================================

    async def save_draft(
        self,
        db: AsyncSession,
        principal: Principal,
        *,
        survey_id: str | None,
        title: str,
        description: str,
        definition: Any,
    ) -> str:
        """Insert or update a survey; returns its id.

        Inserted surveys are private and have no slug.  Updating a public
        survey changes its content but not its publication state.
        """
        require_admin(principal)

        title = (title or "").strip()
        if not title:
            raise ValueError("Title is required")
        result = validate_survey(definition)
        if not result.ok:
            raise ValueError(f"Invalid survey definition: {result.message}")
        document = result.survey.model_dump(mode="json")
        description = (description or "").strip()

        if survey_id is None:
            row = await self._repo.create_survey(
                db,
                owner_id=principal.user_id,
                title=title,
                description=description,
                definition=document,
            )
            logger.info("Survey created: id=%s owner=%s", row.id, principal.user_id)
            return str(row.id)

        row = await self._load(db, survey_id)
        await self._repo.update_survey(
            db, row, title=title, description=description, definition=document,
        )
        logger.info("Survey saved: id=%s", row.id)
        return str(row.id)

    # ==================================================================
    # Publish / unpublish
    # ==================================================================

    async def publish(
        self, db: AsyncSession, principal: Principal, survey_id: str
    ) -> tuple[str, str]:
        """Make a survey public; returns ``(survey_id, slug)``.

        Idempotent: publishing an already public survey returns the same
        slug and leaves ``published_at`` unchanged.
        """
        require_admin(principal)
        row = await self._load(db, survey_id)

        if row.slug:
            slug = row.slug
        else:
            base = slugify_title(row.title)
            taken = await self._repo.slugs_taken(db, base)
            slug = pick_unique_slug(base, taken)

        published_at = row.published_at or datetime.now(timezone.utc)
        await self._repo.set_published(db, row, slug=slug, published_at=published_at)
        logger.info("Survey published: id=%s slug=%s", row.id, slug)
        return str(row.id), slug

    async def unpublish(self, db: AsyncSession, principal: Principal, survey_id: str) -> None:
        """Make a survey private; the slug is kept for the next publish."""
        require_admin(principal)
        row = await self._load(db, survey_id)
        await self._repo.set_private(db, row)
        logger.info("Survey unpublished: id=%s", row.id)

    # ==================================================================
    # Read
    # ==================================================================

    async def get_survey(
        self, db: AsyncSession, principal: Principal, survey_id: str
    ) -> SurveyRecord:
        """Load a survey with its definition for editing."""
        require_admin(principal)
        row = await self._load(db, survey_id)
        return to_survey_record(row, include_definition=True)

    async def list_surveys(
        self,
        db: AsyncSession,
        principal: Principal,
        *,
        mine_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SurveyRecord]:
        """List surveys with response and open-question counts."""
        require_admin(principal)
        rows = await self._repo.list_surveys(
            db,
            owner_id=principal.user_id if mine_only else None,
            limit=limit,
            offset=offset,
        )
        ids = [r.id for r in rows]
        responses = await self._repo.count_responses(db, ids)
        questions = await self._repo.count_open_questions(db, ids)
        return [
            to_survey_record(
                r,
                response_count=responses.get(r.id, 0),
                open_question_count=questions.get(r.id, 0),
            )
            for r in rows
        ]

    # ==================================================================
    # Internal helpers
    # ==================================================================

    async def _load(self, db: AsyncSession, survey_id: str) -> SurveyRow:
        """Load a survey row or raise ValueError if not found."""
        row = await self._repo.get_survey(db, parse_id(survey_id, "Survey"))
        if row is None:
            raise ValueError(f"Survey not found: survey_id={survey_id}")
        return row
