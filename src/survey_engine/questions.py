"""Per-field help threads for respondents.

A respondent can ask a free-text question about any field while filling a
survey.  Administrators answer from the dashboard; the respondent sees the
answer the next time the thread is refreshed.

Failures never raise: they are recorded in ``error`` so the UI can show
them next to the thread.
"""

from __future__ import annotations

import logging
from typing import Callable

from survey_engine.errors import BackendError
from survey_engine.interfaces import SurveyBackend
from survey_engine.models.records import FieldQuestionInfo

logger = logging.getLogger(__name__)


def latest_reply(items: list[FieldQuestionInfo]) -> FieldQuestionInfo | None:
    """The answered question with the newest ``answered_at``, if any."""
    answered = [q for q in items if q.answer and q.answered_at is not None]
    if not answered:
        return None
    return max(answered, key=lambda q: q.answered_at)


class FieldHelpThread:
    """Question thread for one (slug, field) pair of the current respondent.

    Args:
        backend: remote operations
        slug: public survey slug
        field_id: field the questions are about
        is_closed: returns True once the owning session is torn down; results
            arriving after that are dropped
    """

    def __init__(
        self,
        backend: SurveyBackend,
        slug: str,
        field_id: str,
        *,
        is_closed: Callable[[], bool] = lambda: False,
    ) -> None:
        self._backend = backend
        self._is_closed = is_closed
        self.slug = slug
        self.field_id = field_id
        self.items: list[FieldQuestionInfo] = []
        self.draft = ""
        self.busy = False
        self.error: str | None = None

    async def open(self) -> None:
        """Load the thread when it is first shown."""
        await self.refresh()

    async def refresh(self) -> None:
        try:
            items = await self._backend.list_field_questions(self.slug, self.field_id)
        except BackendError as exc:
            logger.warning("Could not load questions for %s/%s: %s", self.slug, self.field_id, exc)
            if not self._is_closed():
                self.error = "Questions could not be loaded."
            return
        if self._is_closed():
            return
        self.items = sorted(items, key=lambda q: q.asked_at)
        self.error = None

    async def ask(self, text: str | None = None) -> bool:
        """Post ``text`` (or the current draft) as a new question.

        Blank input is ignored.  On success the draft is cleared and the
        thread reloaded.
        """
        question = (self.draft if text is None else text).strip()
        if not question:
            return False

        self.busy = True
        try:
            await self._backend.ask_field_question(self.slug, self.field_id, question)
        except BackendError as exc:
            logger.warning("Could not post question for %s/%s: %s", self.slug, self.field_id, exc)
            if not self._is_closed():
                self.error = "Your question could not be sent."
            return False
        finally:
            self.busy = False

        if self._is_closed():
            return True
        self.draft = ""
        self.error = None
        await self.refresh()
        return True

    @property
    def latest_reply(self) -> FieldQuestionInfo | None:
        return latest_reply(self.items)
