"""Async CRUD repository for surveys, responses and field questions.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries (useful for composing multiple writes in the SDK).

The repository deliberately avoids business-logic validation — that belongs
in the SDK layer.  It *does* enforce structural invariants (one response per
respondent and survey, unique slugs) via DB constraints.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.models.enums import ResponseStatus, SurveyVisibility
from survey_db.models.survey import FieldQuestionRow, SurveyResponseRow, SurveyRow

logger = logging.getLogger(__name__)


class SurveyRepository:
    """Async read/write operations on the survey tables."""

    # ------------------------------------------------------------------
    # Surveys: create / update
    # ------------------------------------------------------------------

    async def create_survey(
        self,
        db: AsyncSession,
        *,
        owner_id: str,
        title: str,
        description: str,
        definition: dict[str, Any],
    ) -> SurveyRow:
        """Insert a new private survey without a slug.

        The caller must ``await db.commit()`` to persist.
        """
        survey = SurveyRow(
            owner_id=owner_id,
            title=title,
            description=description,
            definition=definition,
            visibility=SurveyVisibility.PRIVATE.value,
        )
        db.add(survey)
        await db.flush()  # Populate defaults (id, timestamps)
        return survey

    async def update_survey(
        self,
        db: AsyncSession,
        survey: SurveyRow,
        *,
        title: str,
        description: str,
        definition: dict[str, Any],
    ) -> SurveyRow:
        """Replace a survey's content; publication state is untouched."""
        survey.title = title
        survey.description = description
        survey.definition = definition
        survey.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return survey

    async def set_published(
        self,
        db: AsyncSession,
        survey: SurveyRow,
        *,
        slug: str,
        published_at: datetime,
    ) -> SurveyRow:
        """Set slug, visibility and publish timestamp in one write."""
        survey.slug = slug
        survey.visibility = SurveyVisibility.PUBLIC.value
        survey.published_at = published_at
        survey.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return survey

    async def set_private(self, db: AsyncSession, survey: SurveyRow) -> SurveyRow:
        """Hide a survey; slug and published_at are kept."""
        survey.visibility = SurveyVisibility.PRIVATE.value
        survey.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return survey

    # ------------------------------------------------------------------
    # Surveys: read
    # ------------------------------------------------------------------

    async def get_survey(self, db: AsyncSession, survey_id: uuid.UUID) -> SurveyRow | None:
        return await db.get(SurveyRow, survey_id)

    async def get_public_survey(self, db: AsyncSession, slug: str) -> SurveyRow | None:
        """Fetch a survey by slug, only while it is public."""
        stmt = select(SurveyRow).where(
            SurveyRow.slug == slug,
            SurveyRow.visibility == SurveyVisibility.PUBLIC.value,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_surveys(
        self,
        db: AsyncSession,
        *,
        owner_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SurveyRow]:
        """List surveys, most recently updated first.

        ``owner_id=None`` lists every survey (platform administrators).
        """
        stmt = select(SurveyRow)
        if owner_id is not None:
            stmt = stmt.where(SurveyRow.owner_id == owner_id)
        stmt = stmt.order_by(SurveyRow.updated_at.desc()).limit(limit).offset(offset)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def slugs_taken(self, db: AsyncSession, base: str) -> set[str]:
        """Existing slugs equal to ``base`` or of the form ``base-<suffix>``."""
        stmt = select(SurveyRow.slug).where(
            or_(SurveyRow.slug == base, SurveyRow.slug.like(f"{base}-%")),
        )
        result = await db.execute(stmt)
        return {s for s in result.scalars().all() if s}

    async def count_responses(
        self, db: AsyncSession, survey_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, int]:
        if not survey_ids:
            return {}
        stmt = (
            select(SurveyResponseRow.survey_id, func.count())
            .where(SurveyResponseRow.survey_id.in_(survey_ids))
            .group_by(SurveyResponseRow.survey_id)
        )
        result = await db.execute(stmt)
        return {sid: n for sid, n in result.all()}

    async def count_open_questions(
        self, db: AsyncSession, survey_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, int]:
        """Unanswered field questions per survey."""
        if not survey_ids:
            return {}
        stmt = (
            select(FieldQuestionRow.survey_id, func.count())
            .where(
                FieldQuestionRow.survey_id.in_(survey_ids),
                FieldQuestionRow.answer.is_(None),
            )
            .group_by(FieldQuestionRow.survey_id)
        )
        result = await db.execute(stmt)
        return {sid: n for sid, n in result.all()}

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    async def get_response(
        self, db: AsyncSession, survey_id: uuid.UUID, respondent_token: str
    ) -> SurveyResponseRow | None:
        """Fetch a response by the unique (survey_id, respondent_token) pair."""
        stmt = select(SurveyResponseRow).where(
            SurveyResponseRow.survey_id == survey_id,
            SurveyResponseRow.respondent_token == respondent_token,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_response_by_id(
        self, db: AsyncSession, response_id: uuid.UUID
    ) -> SurveyResponseRow | None:
        return await db.get(SurveyResponseRow, response_id)

    async def get_or_create_response(
        self, db: AsyncSession, survey_id: uuid.UUID, respondent_token: str
    ) -> SurveyResponseRow:
        """Return the respondent's response row, inserting it if missing.

        A concurrent insert for the same pair trips ``uq_survey_respondent``;
        the savepoint is rolled back and the winner's row is returned.
        """
        existing = await self.get_response(db, survey_id, respondent_token)
        if existing is not None:
            return existing

        row = SurveyResponseRow(
            survey_id=survey_id,
            respondent_token=respondent_token,
            answers={},
            status=ResponseStatus.IN_PROGRESS.value,
        )
        try:
            async with db.begin_nested():
                db.add(row)
                await db.flush()
        except IntegrityError:
            logger.info("Concurrent response insert for survey %s, reusing row", survey_id)
            existing = await self.get_response(db, survey_id, respondent_token)
            if existing is None:
                raise
            return existing
        return row

    async def save_answers(
        self,
        db: AsyncSession,
        response: SurveyResponseRow,
        answers: dict[str, Any],
        *,
        mark_completed: bool,
    ) -> SurveyResponseRow:
        """Replace the stored answers; optionally mark the response completed."""
        now = datetime.now(timezone.utc)
        # New dict so SQLAlchemy detects the mutation
        response.answers = dict(answers)
        if mark_completed:
            response.status = ResponseStatus.COMPLETED.value
            response.completed_at = now
        response.updated_at = now
        await db.flush()
        return response

    async def list_responses(
        self,
        db: AsyncSession,
        survey_id: uuid.UUID,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SurveyResponseRow]:
        """List a survey's responses, most recently updated first."""
        stmt = (
            select(SurveyResponseRow)
            .where(SurveyResponseRow.survey_id == survey_id)
            .order_by(SurveyResponseRow.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Field questions
    # ------------------------------------------------------------------

    async def create_question(
        self,
        db: AsyncSession,
        *,
        survey_id: uuid.UUID,
        response_id: uuid.UUID,
        field_id: str,
        question: str,
    ) -> FieldQuestionRow:
        row = FieldQuestionRow(
            survey_id=survey_id,
            response_id=response_id,
            field_id=field_id,
            question=question,
        )
        db.add(row)
        await db.flush()
        return row

    async def get_question(
        self, db: AsyncSession, question_id: uuid.UUID
    ) -> FieldQuestionRow | None:
        return await db.get(FieldQuestionRow, question_id)

    async def list_questions(
        self,
        db: AsyncSession,
        response_id: uuid.UUID,
        *,
        field_id: str | None = None,
    ) -> list[FieldQuestionRow]:
        """Questions posted under one response, oldest first."""
        stmt = select(FieldQuestionRow).where(FieldQuestionRow.response_id == response_id)
        if field_id is not None:
            stmt = stmt.where(FieldQuestionRow.field_id == field_id)
        stmt = stmt.order_by(FieldQuestionRow.asked_at.asc())
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def answer_question(
        self,
        db: AsyncSession,
        question: FieldQuestionRow,
        *,
        answer: str,
        answered_by_user_id: str,
    ) -> FieldQuestionRow:
        """Record the administrator answer; overwrites an earlier answer."""
        question.answer = answer
        question.answered_at = datetime.now(timezone.utc)
        question.answered_by_user_id = answered_by_user_id
        await db.flush()
        return question

    async def list_open_questions(
        self,
        db: AsyncSession,
        *,
        owner_id: str | None = None,
        limit: int = 50,
    ) -> list[tuple[FieldQuestionRow, SurveyRow]]:
        """Unanswered questions with their survey, oldest first."""
        stmt = (
            select(FieldQuestionRow, SurveyRow)
            .join(SurveyRow, SurveyRow.id == FieldQuestionRow.survey_id)
            .where(FieldQuestionRow.answer.is_(None))
        )
        if owner_id is not None:
            stmt = stmt.where(SurveyRow.owner_id == owner_id)
        stmt = stmt.order_by(FieldQuestionRow.asked_at.asc()).limit(limit)
        result = await db.execute(stmt)
        return [(q, s) for q, s in result.all()]
