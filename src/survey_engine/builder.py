"""SurveyBuilder — in-memory authoring model for one survey document.

The builder owns a single :class:`Survey` plus two cursors
(``current_step_index`` for editing, ``preview_step_index`` for preview)
and exposes the structural edits the authoring UI needs.

Rules every mutation follows:
  - Edits are applied in place, so steps and fields that an edit does not
    touch keep their identity.
  - Removing the last step or the last option of a field, or moving past
    either end of a list, is a silent no-op.
  - After a structural change to the step list both cursors are clamped
    into ``[0, len(steps) - 1]``.
  - Each mutation schedules a debounced write to the :class:`DraftStore`.
    The write is fire-and-forget; a burst of edits produces one write.

Import/export use the JSON interchange format from
:mod:`survey_engine.validator`; a rejected import leaves the document
untouched and reports the first validation issue in ``status``.

Publication (save/publish/unpublish) goes through a
:class:`SurveyBackend`.  ``record`` only changes when the remote call
succeeds.

Usage::

    builder = SurveyBuilder(DraftStore(FileStorage(".drafts")))
    step = builder.survey.steps[0]
    field = builder.add_field(step.id, "radio")
    builder.add_option(step.id, field.id)
    text = builder.export_text()
    ...
    builder.close()
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from pydantic import ValidationError

from survey_engine.constants import (
    AUTOSAVE_MAX_WAIT,
    DEFAULT_OPTION_LABEL,
    DEFAULT_STEP_TITLE,
    DRAFT_AUTOSAVE_DELAY,
)
from survey_engine.debounce import Debouncer
from survey_engine.errors import BackendError
from survey_engine.fields import create_default_field, has_options
from survey_engine.ids import new_id
from survey_engine.interfaces import SurveyBackend
from survey_engine.models.records import PublicationState, StatusMessage, SurveyRecord
from survey_engine.models.survey import BaseField, Option, Step, Survey
from survey_engine.storage import DraftStore
from survey_engine.validator import (
    ValidationResult,
    format_path,
    parse_survey_json,
    read_survey_file,
    serialize_survey,
    validate_survey,
)

logger = logging.getLogger(__name__)

# Field attributes a patch may never touch.
_IMMUTABLE_FIELD_KEYS = frozenset({"id", "type"})


def create_default_survey() -> Survey:
    """A fresh untitled survey with one empty step."""
    return Survey(
        id=new_id(),
        title="",
        description="",
        steps=[_new_step(1)],
    )


def _new_step(n: int) -> Step:
    return Step(id=new_id(), title=DEFAULT_STEP_TITLE.format(n=n), description="", fields=[])


def _move_item(items: list, src: int, dst: int) -> None:
    """Move ``items[src]`` to position ``dst`` in place."""
    if src == dst:
        return
    item = items.pop(src)
    items.insert(dst, item)


def _clamp(index: int, length: int) -> int:
    return min(max(index, 0), max(length - 1, 0))


class SurveyBuilder:
    """Authoring session for one survey document.

    Args:
        draft_store: local cache for autosave; ``None`` disables caching
        autosave_delay: debounce window (seconds) for draft writes
        max_wait: cap (seconds) on how long continuous edits postpone a write
    """

    def __init__(
        self,
        draft_store: DraftStore | None = None,
        *,
        autosave_delay: float = DRAFT_AUTOSAVE_DELAY,
        max_wait: float | None = AUTOSAVE_MAX_WAIT,
    ) -> None:
        self._drafts = draft_store or DraftStore(None)
        self._autosave = Debouncer(self._save_draft, autosave_delay, max_wait=max_wait)

        self.survey: Survey = create_default_survey()
        self.mode: Literal["edit", "preview"] = "edit"
        self.current_step_index = 0
        self.preview_step_index = 0
        self.preview_answers: dict[str, Any] = {}
        self.status: StatusMessage | None = None
        self.record = SurveyRecord()

        draft = self._drafts.load()
        if draft is not None:
            self.survey = draft
            self._set_status("ok", "Draft loaded from local storage.")

    # ==================================================================
    # Cursor helpers
    # ==================================================================

    @property
    def current_step(self) -> Step:
        return self.survey.steps[_clamp(self.current_step_index, len(self.survey.steps))]

    @property
    def preview_step(self) -> Step:
        return self.survey.steps[_clamp(self.preview_step_index, len(self.survey.steps))]

    @property
    def publication_state(self) -> PublicationState:
        return self.record.state

    def select_step(self, index: int) -> None:
        self.current_step_index = _clamp(index, len(self.survey.steps))

    def _clamp_indices(self) -> None:
        n = len(self.survey.steps)
        self.current_step_index = _clamp(self.current_step_index, n)
        self.preview_step_index = _clamp(self.preview_step_index, n)

    def _set_status(self, kind: str, message: str) -> None:
        self.status = StatusMessage(kind=kind, message=message)

    def _changed(self) -> None:
        """Bookkeeping after every document mutation."""
        self._clamp_indices()
        self._autosave.schedule()

    # ==================================================================
    # Lookups
    # ==================================================================

    def _step(self, step_id: str) -> Step | None:
        return self.survey.find_step(step_id)

    def _field_index(self, step: Step, field_id: str) -> int | None:
        for i, f in enumerate(step.fields):
            if f.id == field_id:
                return i
        return None

    def _option_field(self, step_id: str, field_id: str) -> BaseField | None:
        step = self._step(step_id)
        if step is None:
            return None
        idx = self._field_index(step, field_id)
        if idx is None:
            return None
        field = step.fields[idx]
        return field if has_options(field) else None

    # ==================================================================
    # Survey / step edits
    # ==================================================================

    def update_survey(self, *, title: str | None = None, description: str | None = None) -> None:
        """Set the survey title and/or description."""
        if title is not None:
            self.survey.title = str(title)
        if description is not None:
            self.survey.description = str(description)
        self._changed()

    def update_step(
        self,
        step_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> None:
        step = self._step(step_id)
        if step is None:
            return
        if title is not None:
            step.title = str(title)
        if description is not None:
            step.description = str(description)
        self._changed()

    def add_step(self) -> Step:
        """Append a step titled "Step N" and select it."""
        step = _new_step(len(self.survey.steps) + 1)
        self.survey.steps.append(step)
        self.current_step_index = len(self.survey.steps) - 1
        self.status = None
        self._changed()
        return step

    def remove_step(self, step_id: str) -> None:
        """Remove a step; no-op when it is the only step or unknown."""
        steps = self.survey.steps
        if len(steps) <= 1:
            return
        for i, step in enumerate(steps):
            if step.id == step_id:
                del steps[i]
                self.status = None
                self._changed()
                return

    def move_step(self, index: int, direction: int) -> None:
        """Move the step at ``index`` by ``direction`` (-1 up, +1 down).

        No-op when either position falls outside the list.  The edit cursor
        follows the step it was on.
        """
        steps = self.survey.steps
        to = index + direction
        if not (0 <= index < len(steps)) or not (0 <= to < len(steps)):
            return
        _move_item(steps, index, to)

        if self.current_step_index == index:
            self.current_step_index = to
        elif self.current_step_index == to:
            self.current_step_index = index
        self._changed()

    # ==================================================================
    # Field edits
    # ==================================================================

    def add_field(self, step_id: str, field_type: str) -> BaseField | None:
        """Append a default field of ``field_type`` to a step.

        Raises ``ValueError`` for an unknown field type.  Returns None if
        the step does not exist.
        """
        step = self._step(step_id)
        if step is None:
            return None
        field = create_default_field(field_type)
        step.fields.append(field)
        self.status = None
        self._changed()
        return field

    def remove_field(self, step_id: str, field_id: str) -> None:
        step = self._step(step_id)
        if step is None:
            return
        idx = self._field_index(step, field_id)
        if idx is None:
            return
        del step.fields[idx]
        self._changed()

    def move_field(self, step_id: str, index: int, direction: int) -> None:
        """Move a field within its step; bounded like :meth:`move_step`."""
        step = self._step(step_id)
        if step is None:
            return
        to = index + direction
        if not (0 <= index < len(step.fields)) or not (0 <= to < len(step.fields)):
            return
        _move_item(step.fields, index, to)
        self._changed()

    def update_field(self, step_id: str, field_id: str, patch: dict[str, Any]) -> bool:
        """Apply a partial update restricted to the field's own variant shape.

        The patch may not change ``type`` or ``id`` and may not introduce
        attributes of another variant.  The patched field is re-validated
        as a whole.  On rejection the field is unchanged, ``status`` holds
        the reason and False is returned.
        """
        step = self._step(step_id)
        if step is None:
            return False
        idx = self._field_index(step, field_id)
        if idx is None:
            return False
        field = step.fields[idx]
        cls = type(field)

        for key in _IMMUTABLE_FIELD_KEYS & patch.keys():
            if patch[key] != getattr(field, key):
                self._set_status(
                    "error",
                    f"A field's {key} cannot be changed; remove the field and add a new one.",
                )
                return False

        unknown = set(patch) - set(cls.model_fields)
        if unknown:
            self._set_status(
                "error",
                f"Not a {field.type} field attribute: {', '.join(sorted(unknown))}",
            )
            return False

        merged = {**field.model_dump(), **patch}
        try:
            updated = cls.model_validate(merged)
        except ValidationError as exc:
            err = exc.errors()[0]
            loc = format_path(tuple(err["loc"]))
            self._set_status("error", f"{loc}: {err['msg']}" if loc else err["msg"])
            return False

        step.fields[idx] = updated
        self._changed()
        return True

    # ==================================================================
    # Option edits (radio / checkbox only)
    # ==================================================================

    def add_option(self, step_id: str, field_id: str) -> Option | None:
        """Append "Option N" to a radio/checkbox field."""
        field = self._option_field(step_id, field_id)
        if field is None:
            return None
        option = Option(
            id=new_id(),
            label=DEFAULT_OPTION_LABEL.format(n=len(field.options) + 1),
        )
        field.options.append(option)
        self._changed()
        return option

    def remove_option(self, step_id: str, field_id: str, option_id: str) -> None:
        """Remove an option; no-op when it is the field's last option."""
        field = self._option_field(step_id, field_id)
        if field is None or len(field.options) <= 1:
            return
        for i, opt in enumerate(field.options):
            if opt.id == option_id:
                del field.options[i]
                self._changed()
                return

    def update_option(self, step_id: str, field_id: str, option_id: str, *, label: str) -> bool:
        """Relabel an option.  A non-text label is rejected with an error status."""
        field = self._option_field(step_id, field_id)
        if field is None:
            return False
        for i, opt in enumerate(field.options):
            if opt.id == option_id:
                try:
                    field.options[i] = Option(id=opt.id, label=label)
                except ValidationError:
                    self._set_status("error", "An option label must be text.")
                    return False
                self._changed()
                return True
        return False

    # ==================================================================
    # Import / export / reset
    # ==================================================================

    def import_text(self, text: str) -> bool:
        """Replace the document with validated JSON text.

        On success the edit cursor returns to the first step and preview
        answers are discarded.  On failure nothing changes except
        ``status``.
        """
        if not text.strip():
            self._set_status("error", "Paste JSON in the import box first.")
            return False
        return self._apply_import(parse_survey_json(text), "Imported survey JSON.")

    def import_file(self, path: str | Path) -> bool:
        """Replace the document with a validated JSON file."""
        return self._apply_import(read_survey_file(path), "Imported survey file.")

    def _apply_import(self, result: ValidationResult, success_message: str) -> bool:
        if not result.ok:
            logger.debug("Import rejected: %s", result.message)
            self._set_status("error", result.message or "Invalid survey JSON.")
            return False
        self.survey = result.survey
        self.current_step_index = 0
        self.preview_answers = {}
        self._set_status("ok", success_message)
        self._changed()
        return True

    def export_text(self) -> str:
        """Serialize the current document to pretty-printed JSON."""
        text = serialize_survey(self.survey)
        self._set_status("ok", "Export prepared.")
        return text

    def reset_draft(self) -> None:
        """Discard the cached draft and start a fresh default survey."""
        self._drafts.clear()
        self.survey = create_default_survey()
        self.current_step_index = 0
        self.preview_step_index = 0
        self.preview_answers = {}
        self.record = SurveyRecord()
        self._set_status("ok", "Draft reset.")
        self._changed()

    def load_record(self, record: SurveyRecord) -> None:
        """Open a saved survey for editing.

        The record's definition replaces the document and becomes the local
        draft; ``record`` then tracks its publication metadata.
        """
        if record.definition is None:
            raise ValueError(f"Survey record has no definition: survey_id={record.survey_id}")
        self.survey = record.definition.model_copy(deep=True)
        self.record = record.model_copy(update={"definition": None})
        self.current_step_index = 0
        self.preview_step_index = 0
        self.preview_answers = {}
        self._drafts.save(self.survey)
        self.status = None

    # ==================================================================
    # Preview
    # ==================================================================

    def enter_preview(self) -> None:
        self.mode = "preview"
        self.preview_step_index = self.current_step_index
        self.status = None

    def exit_preview(self) -> None:
        self.mode = "edit"
        self.current_step_index = _clamp(self.preview_step_index, len(self.survey.steps))
        self.status = None

    def set_preview_answer(self, field_id: str, value: Any) -> None:
        self.preview_answers[field_id] = value

    def preview_next(self) -> None:
        self.preview_step_index = _clamp(self.preview_step_index + 1, len(self.survey.steps))

    def preview_back(self) -> None:
        self.preview_step_index = _clamp(self.preview_step_index - 1, len(self.survey.steps))

    # ==================================================================
    # Publication lifecycle
    # ==================================================================

    async def save(self, backend: SurveyBackend) -> bool:
        """Persist the document (draft → saved_private, or in-place edit).

        The first successful save assigns ``record.survey_id``; callers
        should address the survey by that id from then on.
        """
        if not self.survey.title.strip():
            self._set_status("error", "Title is required.")
            return False
        result = validate_survey(self.survey)
        if not result.ok:
            self._set_status("error", result.message or "Invalid survey.")
            return False

        try:
            survey_id = await backend.upsert_survey_draft(
                survey_id=self.record.survey_id,
                title=self.survey.title.strip(),
                description=self.survey.description.strip(),
                definition=result.survey,
            )
        except BackendError as exc:
            logger.warning("Draft save failed: %s", exc)
            self._set_status("error", "Draft could not be saved.")
            return False

        created = self.record.survey_id is None
        self.record = self.record.model_copy(update={
            "survey_id": survey_id,
            "title": self.survey.title.strip(),
            "description": self.survey.description.strip(),
            "updated_at": datetime.now(timezone.utc),
        })
        self._set_status("ok", "Draft created." if created else "Draft saved.")
        return True

    async def publish(self, backend: SurveyBackend) -> bool:
        """Make the saved survey public; the slug is assigned once."""
        if self.record.survey_id is None:
            self._set_status("error", "Save the survey before publishing.")
            return False
        try:
            slug = await backend.publish_survey(self.record.survey_id)
        except BackendError as exc:
            logger.warning("Publish failed for %s: %s", self.record.survey_id, exc)
            self._set_status("error", "Survey could not be published.")
            return False

        self.record = self.record.model_copy(update={
            "visibility": "public",
            "slug": slug,
            "published_at": self.record.published_at or datetime.now(timezone.utc),
        })
        self._set_status("ok", "Survey published.")
        return True

    async def unpublish(self, backend: SurveyBackend) -> bool:
        """Make the survey private again; the slug is kept for re-publishing."""
        if self.record.survey_id is None:
            return False
        try:
            await backend.unpublish_survey(self.record.survey_id)
        except BackendError as exc:
            logger.warning("Unpublish failed for %s: %s", self.record.survey_id, exc)
            self._set_status("error", "Survey could not be made private.")
            return False

        self.record = self.record.model_copy(update={"visibility": "private"})
        self._set_status("ok", "Survey is now private.")
        return True

    # ==================================================================
    # Autosave / teardown
    # ==================================================================

    def _save_draft(self) -> None:
        self._drafts.save(self.survey)

    @property
    def autosave_pending(self) -> bool:
        return self._autosave.pending

    def flush_draft(self) -> None:
        """Write a pending draft save immediately."""
        self._autosave.flush()

    def close(self) -> None:
        """Cancel the pending draft write; the builder accepts no more autosaves."""
        self._autosave.close()
