"""ResponseService — respondent side of a published survey, plus admin views.

Respondents are identified by an opaque token kept in their local storage;
each (survey, token) pair owns exactly one response row.  Every public
operation is addressed by slug and only works while the survey is public.

Administrator operations (listing responses, answering field questions)
require an admin :class:`Principal`.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.models.enums import ResponseStatus
from survey_db.models.survey import FieldQuestionRow, SurveyResponseRow, SurveyRow
from survey_db.repository import SurveyRepository

from survey_engine.fields import format_answer
from survey_engine.models.records import (
    FieldQuestionInfo,
    OpenQuestion,
    Principal,
    PublicSurvey,
    ResponseState,
    ResponseSummary,
)
from survey_engine.models.survey import Survey
from survey_engine.publication import parse_id, require_admin

logger = logging.getLogger(__name__)


def _status_value(status: Any) -> str:
    return str(getattr(status, "value", status))


class ResponseService:
    """Public survey access, answer storage and field Q&A."""

    def __init__(self) -> None:
        self._repo = SurveyRepository()

    # ==================================================================
    # Public survey
    # ==================================================================

    async def get_public_survey(self, db: AsyncSession, slug: str) -> PublicSurvey:
        """Fetch a public survey by slug.  Private surveys are not found."""
        row, survey = await self._load_public(db, slug)
        return PublicSurvey(
            slug=row.slug,
            title=row.title,
            description=row.description,
            survey=survey,
        )

    # ==================================================================
    # Responses (respondent)
    # ==================================================================

    async def ensure_response(self, db: AsyncSession, slug: str, respondent_token: str) -> str:
        """Return the respondent's response id, creating the row once."""
        row, _ = await self._load_public(db, slug)
        response = await self._repo.get_or_create_response(db, row.id, respondent_token)
        return str(response.id)

    async def get_response(
        self, db: AsyncSession, slug: str, respondent_token: str
    ) -> ResponseState | None:
        """The respondent's saved answers, or None before the first save."""
        row, _ = await self._load_public(db, slug)
        response = await self._repo.get_response(db, row.id, respondent_token)
        if response is None:
            return None
        return self._to_state(response)

    async def save_response(
        self,
        db: AsyncSession,
        slug: str,
        respondent_token: str,
        answers: dict[str, Any],
        *,
        mark_completed: bool,
    ) -> ResponseState:
        """Replace the saved answers; ``mark_completed`` finalises the response.

        A completed response is immutable: further saves are rejected.
        """
        row, _ = await self._load_public(db, slug)
        response = await self._repo.get_or_create_response(db, row.id, respondent_token)
        if _status_value(response.status) == ResponseStatus.COMPLETED.value:
            raise ValueError(f"Response already completed: response_id={response.id}")

        await self._repo.save_answers(db, response, answers, mark_completed=mark_completed)
        if mark_completed:
            logger.info("Response completed: survey=%s response=%s", row.id, response.id)
        return self._to_state(response)

    # ==================================================================
    # Field questions (respondent)
    # ==================================================================

    async def ask_question(
        self,
        db: AsyncSession,
        slug: str,
        respondent_token: str,
        field_id: str,
        question: str,
    ) -> str:
        """Post a question about one field; returns the question id."""
        text = (question or "").strip()
        if not text:
            raise ValueError("Question must not be empty")
        row, survey = await self._load_public(db, slug)
        if survey.find_field(field_id) is None:
            raise ValueError(f"Field not found: field_id={field_id}")

        response = await self._repo.get_or_create_response(db, row.id, respondent_token)
        q = await self._repo.create_question(
            db,
            survey_id=row.id,
            response_id=response.id,
            field_id=field_id,
            question=text,
        )
        logger.info("Field question asked: survey=%s field=%s id=%s", row.id, field_id, q.id)
        return str(q.id)

    async def list_questions(
        self,
        db: AsyncSession,
        slug: str,
        respondent_token: str,
        field_id: str,
    ) -> list[FieldQuestionInfo]:
        """The respondent's own questions about one field, oldest first."""
        row, _ = await self._load_public(db, slug)
        response = await self._repo.get_response(db, row.id, respondent_token)
        if response is None:
            return []
        rows = await self._repo.list_questions(db, response.id, field_id=field_id)
        return [self._to_question(q) for q in rows]

    # ==================================================================
    # Administrator views
    # ==================================================================

    async def answer_question(
        self,
        db: AsyncSession,
        principal: Principal,
        question_id: str,
        answer: str,
    ) -> FieldQuestionInfo:
        require_admin(principal)
        text = (answer or "").strip()
        if not text:
            raise ValueError("Answer must not be empty")
        q = await self._repo.get_question(db, parse_id(question_id, "Question"))
        if q is None:
            raise ValueError(f"Question not found: question_id={question_id}")
        await self._repo.answer_question(db, q, answer=text, answered_by_user_id=principal.user_id)
        logger.info("Field question answered: id=%s by=%s", q.id, principal.user_id)
        return self._to_question(q)

    async def list_responses(
        self,
        db: AsyncSession,
        principal: Principal,
        survey_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ResponseSummary]:
        """A survey's responses, most recently updated first."""
        require_admin(principal)
        sid = await self._require_survey(db, survey_id)
        rows = await self._repo.list_responses(db, sid, limit=limit, offset=offset)
        return [self._to_summary(r) for r in rows]

    async def get_response_detail(
        self,
        db: AsyncSession,
        principal: Principal,
        survey_id: str,
        response_id: str,
    ) -> ResponseSummary:
        """One response with every field question asked under it.

        ``answer_text`` renders each answer of the survey's current
        definition as plain text.
        """
        require_admin(principal)
        sid = parse_id(survey_id, "Survey")
        row = await self._repo.get_survey(db, sid)
        if row is None:
            raise ValueError(f"Survey not found: survey_id={survey_id}")
        response = await self._repo.get_response_by_id(db, parse_id(response_id, "Response"))
        if response is None or response.survey_id != sid:
            raise ValueError(f"Response not found: response_id={response_id}")

        questions = await self._repo.list_questions(db, response.id)
        summary = self._to_summary(response, questions=[self._to_question(q) for q in questions])
        survey = self._definition(row)
        summary.answer_text = {
            f.id: format_answer(f, summary.answers.get(f.id)) for f in survey.iter_fields()
        }
        return summary

    async def list_open_questions(
        self,
        db: AsyncSession,
        principal: Principal,
        *,
        mine_only: bool = False,
        limit: int = 50,
    ) -> list[OpenQuestion]:
        """Unanswered field questions across surveys, oldest first."""
        require_admin(principal)
        pairs = await self._repo.list_open_questions(
            db,
            owner_id=principal.user_id if mine_only else None,
            limit=limit,
        )
        return [
            OpenQuestion(
                **self._to_question(q).model_dump(),
                survey_id=str(s.id),
                survey_title=s.title,
                response_id=str(q.response_id),
            )
            for q, s in pairs
        ]

    # ==================================================================
    # Internal helpers
    # ==================================================================

    async def _load_public(self, db: AsyncSession, slug: str) -> tuple[SurveyRow, Survey]:
        """Load a public survey row and its definition or raise ValueError."""
        row = await self._repo.get_public_survey(db, slug)
        if row is None:
            raise ValueError(f"Survey not found: slug={slug}")
        return row, self._definition(row)

    @staticmethod
    def _definition(row: SurveyRow) -> Survey:
        try:
            return Survey.model_validate(row.definition)
        except ValidationError as exc:
            # Stored definitions are validated on save; this is a data fault
            logger.error("Stored definition failed validation: survey=%s", row.id)
            raise RuntimeError(f"Stored survey definition is invalid: survey={row.id}") from exc

    async def _require_survey(self, db: AsyncSession, survey_id: str):
        sid = parse_id(survey_id, "Survey")
        if await self._repo.get_survey(db, sid) is None:
            raise ValueError(f"Survey not found: survey_id={survey_id}")
        return sid

    @staticmethod
    def _to_state(row: SurveyResponseRow) -> ResponseState:
        return ResponseState(
            response_id=str(row.id),
            answers=dict(row.answers or {}),
            status=_status_value(row.status),
            updated_at=row.updated_at,
            completed_at=row.completed_at,
        )

    @staticmethod
    def _to_question(row: FieldQuestionRow) -> FieldQuestionInfo:
        return FieldQuestionInfo(
            id=str(row.id),
            field_id=row.field_id,
            question=row.question,
            asked_at=row.asked_at,
            answer=row.answer,
            answered_at=row.answered_at,
        )

    @staticmethod
    def _to_summary(
        row: SurveyResponseRow,
        *,
        questions: list[FieldQuestionInfo] | None = None,
    ) -> ResponseSummary:
        return ResponseSummary(
            response_id=str(row.id),
            survey_id=str(row.survey_id),
            status=_status_value(row.status),
            answers=dict(row.answers or {}),
            created_at=row.created_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
            questions=questions,
        )
