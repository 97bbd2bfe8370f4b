"""Abstract interface for the persistence/RPC backend.

The builder and the response session never talk to a database directly.
They call these operations, each assumed atomic at the row level.  The SDK
ships :class:`survey_engine.client.HttpSurveyBackend`, which implements the
interface against ``survey_server``; tests use in-memory fakes.

Typical respondent flow::

    backend: SurveyBackend = HttpSurveyBackend(base_url, respondent_token=token)
    public = await backend.get_public_survey(slug)
    response_id = await backend.ensure_public_response(slug)   # idempotent
    state = await backend.get_public_response(slug)
    await backend.save_public_response(slug, answers, mark_completed=False)
    ...
    await backend.save_public_response(slug, answers, mark_completed=True)

Every method raises :class:`survey_engine.errors.BackendError` on failure.
"""

from abc import ABC, abstractmethod
from typing import Any

from survey_engine.models.records import (
    FieldQuestionInfo,
    PublicSurvey,
    ResponseState,
    SurveyRecord,
)
from survey_engine.models.survey import Survey


class SurveyBackend(ABC):
    """Remote operations the survey core depends on."""

    # ------------------------------------------------------------------
    # Administrator operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def upsert_survey_draft(
        self,
        *,
        survey_id: str | None,
        title: str,
        description: str,
        definition: Survey,
    ) -> str:
        """Save a survey; insert when ``survey_id`` is None.

        Returns
        -------
        str
            The durable survey id (newly assigned on insert).
        """
        ...

    @abstractmethod
    async def get_survey(self, survey_id: str) -> SurveyRecord:
        """Load a saved survey, including its definition, for editing."""
        ...

    @abstractmethod
    async def publish_survey(self, survey_id: str) -> str:
        """Make a survey public.  Returns its slug (reused if already set)."""
        ...

    @abstractmethod
    async def unpublish_survey(self, survey_id: str) -> None:
        """Make a survey private again; the slug is kept."""
        ...

    @abstractmethod
    async def answer_field_question(self, question_id: str, answer: str) -> None:
        """Record an administrator's answer to a field question."""
        ...

    # ------------------------------------------------------------------
    # Respondent operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_public_survey(self, slug: str) -> PublicSurvey:
        """Fetch a published survey by slug."""
        ...

    @abstractmethod
    async def ensure_public_response(self, slug: str) -> str:
        """Return this respondent's response id for ``slug``, creating it once.

        Safe to call any number of times: the same respondent always gets
        the same id back.
        """
        ...

    @abstractmethod
    async def get_public_response(self, slug: str) -> ResponseState | None:
        """Fetch this respondent's saved answers and status, if any."""
        ...

    @abstractmethod
    async def save_public_response(
        self,
        slug: str,
        answers: dict[str, Any],
        *,
        mark_completed: bool,
    ) -> None:
        """Replace the saved answers; ``mark_completed`` finalises the response."""
        ...

    @abstractmethod
    async def ask_field_question(self, slug: str, field_id: str, question: str) -> str:
        """Post a question about one field.  Returns the question id."""
        ...

    @abstractmethod
    async def list_field_questions(self, slug: str, field_id: str) -> list[FieldQuestionInfo]:
        """List this respondent's questions about one field, oldest first."""
        ...
