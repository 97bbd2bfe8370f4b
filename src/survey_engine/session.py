"""ResponseSession — one respondent filling one published survey.

Lifecycle::

    initializing ──start() ok──> active ──submit() ok──> submitted
         │                         │  ▲
         └──── failure ──> error ──┘  └── next successful save

``submitted`` is terminal: later edits are ignored and no autosave is
issued.  ``error`` keeps the answers; the next edit (or ``retry()``)
schedules another save and returns the session to ``active`` when it
lands.  When the error came from startup, ``retry()`` runs ``start()``
again.

Answers are mirrored to the local :class:`ResponseCache` as soon as the
session is hydrated, so a reload restores progress before the server
answers.  Saved server answers take precedence over the cache once they
arrive.

Autosaves are debounced (default 700 ms) and serialized with a lock so
that writes reach the server in the order they were issued.

Usage::

    session = ResponseSession(slug, public.survey, backend, ResponseCache(storage))
    await session.start()
    session.set_answer(field.id, "Yes")
    ...
    if await session.submit():
        ...
    session.close()
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any

from survey_engine.constants import (
    ANSWER_AUTOSAVE_DELAY,
    AUTOSAVE_MAX_WAIT,
    MISSING_FIELDS_DISPLAY_CAP,
)
from survey_engine.debounce import Debouncer
from survey_engine.errors import BackendError
from survey_engine.fields import is_filled
from survey_engine.interfaces import SurveyBackend
from survey_engine.models.records import FieldQuestionInfo, StatusMessage
from survey_engine.models.survey import BaseField, CheckboxField, Step, Survey
from survey_engine.questions import FieldHelpThread, latest_reply
from survey_engine.storage import ResponseCache

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    SUBMITTED = "submitted"
    ERROR = "error"


def missing_fields_message(fields: list[BaseField], *, cap: int = MISSING_FIELDS_DISPLAY_CAP) -> str:
    """Consolidated "please fill in" message for unfilled required fields."""
    titles = [f.title.strip() or "Required field" for f in fields]
    shown = ", ".join(titles[:cap])
    rest = len(titles) - cap
    if rest > 0:
        shown = f"{shown} +{rest} more"
    return f"Please fill in all required fields: {shown}"


class ResponseSession:
    """Client-side state for filling one survey identified by ``slug``.

    Args:
        slug: public survey slug
        survey: the published definition (already validated)
        backend: remote operations
        cache: local cache for answers and session identity
        autosave_delay: debounce window (seconds) for answer saves
        max_wait: cap (seconds) on how long typing postpones a save
    """

    def __init__(
        self,
        slug: str,
        survey: Survey,
        backend: SurveyBackend,
        cache: ResponseCache | None = None,
        *,
        autosave_delay: float = ANSWER_AUTOSAVE_DELAY,
        max_wait: float | None = AUTOSAVE_MAX_WAIT,
    ) -> None:
        self.slug = slug
        self.survey = survey
        self._backend = backend
        self._cache = cache or ResponseCache(None)

        self.state = SessionState.INITIALIZING
        self.status: StatusMessage | None = None
        self.response_id: str | None = None
        self.answers: dict[str, Any] = {}
        self.hydrated = False
        self.step_index = 0
        # field_id -> newest answered question for fields of the current step
        self.latest_replies: dict[str, FieldQuestionInfo] = {}

        self._closed = False
        self._threads: dict[str, FieldHelpThread] = {}
        self._save_lock = asyncio.Lock()
        self._autosave = Debouncer(self._autosave_now, autosave_delay, max_wait=max_wait)

    # ==================================================================
    # Startup
    # ==================================================================

    async def start(self) -> None:
        """Hydrate answers, obtain the response id and load saved progress.

        Never raises.  A failure to obtain the response id moves the
        session to ``error``; a failure to load saved answers is logged and
        the cached answers are kept.
        """
        cached = self._cache.load_answers(self.slug)
        if cached is not None:
            # Edits made while a previous start was failing win over the cache
            self.answers = {**cached, **self.answers}
        if self.response_id is None:
            self.response_id = self._cache.load_response_id(self.slug)
        self.state = SessionState.INITIALIZING

        try:
            response_id = await self._backend.ensure_public_response(self.slug)
        except BackendError as exc:
            logger.warning("Could not start response for %s: %s", self.slug, exc)
            if not self._closed:
                self.state = SessionState.ERROR
                self._set_status("error", "Could not start your response. Please try again.")
            return
        if self._closed:
            return
        self.response_id = response_id
        self._cache.save_response_id(self.slug, response_id)

        try:
            saved = await self._backend.get_public_response(self.slug)
        except BackendError as exc:
            logger.warning("Could not load saved answers for %s: %s", self.slug, exc)
            saved = None
        if self._closed:
            return

        if saved is not None:
            self.answers = dict(saved.answers)

        self.hydrated = True
        self._cache.save_answers(self.slug, self.answers)

        if saved is not None and saved.status == "completed":
            self.state = SessionState.SUBMITTED
            self._set_status("ok", "Already submitted.")
        else:
            self.state = SessionState.ACTIVE
            self.status = None

        await self._refresh_latest_replies()

    # ==================================================================
    # Editing
    # ==================================================================

    def set_answer(self, field_id: str, value: Any) -> None:
        """Record an answer; ignored once submitted."""
        if self.state == SessionState.SUBMITTED or self._closed:
            return
        self.answers[field_id] = value
        if not self.hydrated:
            return
        self._cache.save_answers(self.slug, self.answers)
        self._autosave.schedule()

    def toggle_option(self, field_id: str, label: str) -> None:
        """Add or remove ``label`` from a checkbox answer, keeping option order."""
        field = self.survey.find_field(field_id)
        if not isinstance(field, CheckboxField):
            raise ValueError(f"Not a checkbox field: {field_id}")
        chosen = set(self.answers.get(field_id) or [])
        if label in chosen:
            chosen.discard(label)
        else:
            chosen.add(label)
        self.set_answer(field_id, [o.label for o in field.options if o.label in chosen])

    async def retry(self) -> None:
        """Recover from ``error``.

        A session that never started runs :meth:`start` again; otherwise
        another save of the current answers is scheduled.
        """
        if self._closed or self.state != SessionState.ERROR:
            return
        if not self.hydrated:
            await self.start()
        else:
            self._autosave.schedule()

    async def _autosave_now(self) -> None:
        await self._save(mark_completed=False)

    async def _save(self, *, mark_completed: bool) -> bool:
        async with self._save_lock:
            if self._closed and not mark_completed:
                return False
            if self.state == SessionState.SUBMITTED:
                return False
            answers = dict(self.answers)
            try:
                await self._backend.save_public_response(
                    self.slug, answers, mark_completed=mark_completed,
                )
            except BackendError as exc:
                logger.warning("Saving answers for %s failed: %s", self.slug, exc)
                if self._closed:
                    return False
                if mark_completed:
                    self._set_status("error", "Your response could not be submitted. Please try again.")
                else:
                    self.state = SessionState.ERROR
                    self._set_status("error", "Your answers could not be saved.")
                return False

            if self._closed:
                return True
            if mark_completed:
                self.state = SessionState.SUBMITTED
                self._set_status("ok", "Thank you! Your response has been submitted.")
            elif self.state == SessionState.ERROR:
                self.state = SessionState.ACTIVE
                self.status = None
            return True

    # ==================================================================
    # Required gate / submission
    # ==================================================================

    def missing_required(self) -> list[BaseField]:
        """Required fields whose answer does not satisfy the fill predicate."""
        return [
            f for f in self.survey.iter_fields()
            if f.required and not is_filled(f, self.answers.get(f.id))
        ]

    async def submit(self) -> bool:
        """Finalize the response after the required-field gate.

        Missing required fields produce one consolidated message and leave
        the session ``active``.
        """
        if self.state == SessionState.SUBMITTED:
            return True
        if self.response_id is None:
            self._set_status("error", "Your response has not started yet.")
            return False

        missing = self.missing_required()
        if missing:
            self._set_status("error", missing_fields_message(missing))
            return False

        # Answers are sent in full, so a pending autosave is redundant
        self._autosave.cancel()
        self._set_status("loading", "Submitting...")
        ok = await self._save(mark_completed=True)
        if ok and self.state == SessionState.SUBMITTED:
            self._cache.save_answers(self.slug, self.answers)
        return ok

    # ==================================================================
    # Navigation
    # ==================================================================

    @property
    def current_step(self) -> Step:
        return self.survey.steps[self.step_index]

    @property
    def is_last_step(self) -> bool:
        return self.step_index >= len(self.survey.steps) - 1

    def progress_percent(self) -> int:
        """Answered fields over all fields, as an integer percentage (max 100)."""
        total = max(self.survey.field_count, 1)
        return min(100, round(self.answered_count() / total * 100))

    def answered_count(self) -> int:
        """Number of answers held, whether or not they satisfy the fill predicate."""
        return len(self.answers)

    async def go_to_step(self, index: int) -> None:
        target = min(max(index, 0), len(self.survey.steps) - 1)
        if target == self.step_index:
            return
        self.step_index = target
        await self._refresh_latest_replies()

    async def next_step(self) -> None:
        await self.go_to_step(self.step_index + 1)

    async def previous_step(self) -> None:
        await self.go_to_step(self.step_index - 1)

    async def _refresh_latest_replies(self) -> None:
        """Load the newest administrator reply for each field on this step."""
        step = self.current_step
        if not step.fields:
            self.latest_replies = {}
            return

        results = await asyncio.gather(
            *(self._backend.list_field_questions(self.slug, f.id) for f in step.fields),
            return_exceptions=True,
        )
        if self._closed or self.current_step is not step:
            return

        replies: dict[str, FieldQuestionInfo] = {}
        for field, result in zip(step.fields, results):
            if isinstance(result, BackendError):
                logger.debug("Reply refresh failed for %s: %s", field.id, result)
                continue
            if isinstance(result, BaseException):
                raise result
            reply = latest_reply(result)
            if reply is not None:
                replies[field.id] = reply
        self.latest_replies = replies

    # ==================================================================
    # Help threads
    # ==================================================================

    def help_thread(self, field_id: str) -> FieldHelpThread:
        """The question thread for ``field_id`` (one instance per field)."""
        if self.survey.find_field(field_id) is None:
            raise KeyError(f"Unknown field: {field_id}")
        thread = self._threads.get(field_id)
        if thread is None:
            thread = FieldHelpThread(
                self._backend, self.slug, field_id, is_closed=lambda: self._closed,
            )
            self._threads[field_id] = thread
        return thread

    # ==================================================================
    # Teardown
    # ==================================================================

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def autosave_pending(self) -> bool:
        return self._autosave.pending

    async def wait_for_saves(self) -> None:
        """Wait for autosaves that have already been issued."""
        await self._autosave.wait()

    def close(self) -> None:
        """Cancel pending autosaves; later results are not applied."""
        self._closed = True
        self._autosave.close()

    def _set_status(self, kind: str, message: str) -> None:
        self.status = StatusMessage(kind=kind, message=message)
