"""Record models — the contract between the services, the HTTP API and clients.

These models describe what callers see of persisted surveys, responses and
field questions.  They are intentionally decoupled from the ORM models in
``survey_db`` so that API consumers never see database internals.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

from survey_engine.models.survey import Survey


class StatusMessage(BaseModel):
    """Transient, user-facing outcome of the last operation."""

    kind: Literal["idle", "loading", "ok", "error"]
    message: str = ""


class PublicationState(str, enum.Enum):
    """Where a survey document sits in its publication lifecycle.

    Transitions:
        draft -> saved_private         (first save assigns a durable id)
        saved_private -> public        (publish assigns the slug once)
        public -> saved_private        (unpublish keeps the slug)
    """

    DRAFT = "draft"
    SAVED_PRIVATE = "saved_private"
    PUBLIC = "public"


class Principal(BaseModel):
    """Caller identity as supplied by the identity provider."""

    user_id: str
    is_admin: bool = False


class SurveyRecord(BaseModel):
    """A persisted survey as seen by administrators.

    ``survey_id`` is None while the document only exists locally (draft).
    """

    survey_id: str | None = None
    title: str = ""
    description: str = ""
    visibility: str = "private"
    slug: str | None = None
    published_at: datetime | None = None
    updated_at: datetime | None = None
    definition: Survey | None = None
    # Counts for dashboard listings; None when not computed
    response_count: int | None = None
    open_question_count: int | None = None

    @property
    def state(self) -> PublicationState:
        if self.survey_id is None:
            return PublicationState.DRAFT
        if self.visibility == "public":
            return PublicationState.PUBLIC
        return PublicationState.SAVED_PRIVATE


class PublicSurvey(BaseModel):
    """A published survey as served to respondents."""

    slug: str
    title: str
    description: str
    survey: Survey


class ResponseState(BaseModel):
    """A respondent's saved answers and completion status."""

    response_id: str
    answers: dict[str, Any]
    status: str
    updated_at: datetime | None = None
    completed_at: datetime | None = None


class FieldQuestionInfo(BaseModel):
    """One question posed by a respondent against a field."""

    id: str
    field_id: str
    question: str
    asked_at: datetime
    answer: str | None = None
    answered_at: datetime | None = None


class OpenQuestion(FieldQuestionInfo):
    """An unanswered field question, with the survey it belongs to."""

    survey_id: str
    survey_title: str
    response_id: str


class ResponseSummary(BaseModel):
    """Administrator view of one response."""

    response_id: str
    survey_id: str
    status: str
    answers: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    questions: list[FieldQuestionInfo] | None = None
    # Detail view only: field id -> answer rendered as text, in document order
    answer_text: dict[str, str] | None = None
