"""SurveyBuilder tests — structural edits, import/export, autosave, publication.

Most tests run without an event loop, where the draft autosave stays
pending until ``flush_draft()``; the autosave timing tests run inside one.
"""

import asyncio
import json

import pytest

from helpers.fakes import FakeBackend, sample_survey
from survey_engine.builder import SurveyBuilder
from survey_engine.constants import DRAFT_STORAGE_KEY
from survey_engine.models.records import PublicationState
from survey_engine.storage import DraftStore, MemoryStorage


class CountingStorage(MemoryStorage):
    """MemoryStorage that counts writes."""

    def __init__(self):
        super().__init__()
        self.writes = 0

    def set_item(self, key, value):
        self.writes += 1
        super().set_item(key, value)


@pytest.fixture
def builder(storage):
    b = SurveyBuilder(DraftStore(storage))
    yield b
    b.close()


def _step_ids(b):
    return [s.id for s in b.survey.steps]


# =====================================================================
# Initial state
# =====================================================================


class TestInitialState:

    def test_fresh_builder(self, builder):
        assert len(builder.survey.steps) == 1
        assert builder.survey.steps[0].title == "Step 1"
        assert builder.survey.version == 1
        assert builder.mode == "edit"
        assert builder.status is None
        assert builder.publication_state == PublicationState.DRAFT

    def test_cached_draft_is_restored(self, storage):
        DraftStore(storage).save(sample_survey(title="Cached"))
        b = SurveyBuilder(DraftStore(storage))
        assert b.survey.title == "Cached"
        assert b.status.kind == "ok"
        assert b.status.message == "Draft loaded from local storage."
        assert not b.autosave_pending, "Restoring must not schedule a save"

    def test_invalid_cached_draft_is_ignored(self, storage):
        storage.set_item(DRAFT_STORAGE_KEY, '{"version": 9}')
        b = SurveyBuilder(DraftStore(storage))
        assert b.survey.title == ""
        assert b.status is None


# =====================================================================
# Steps
# =====================================================================


class TestSteps:

    def test_add_step_selects_it(self, builder):
        step = builder.add_step()
        assert step.title == "Step 2"
        assert builder.current_step_index == 1
        assert builder.current_step is step

    def test_remove_last_step_is_a_no_op(self, builder):
        only = builder.survey.steps[0]
        before = builder.survey.model_copy(deep=True)
        builder.remove_step(only.id)
        assert builder.survey == before
        assert builder.survey.steps[0] is only
        assert not builder.autosave_pending
        assert builder.status is None

    def test_remove_selected_second_of_two_steps(self, builder):
        first = builder.survey.steps[0]
        second = builder.add_step()
        assert builder.current_step_index == 1
        builder.enter_preview()
        builder.preview_next()
        assert builder.preview_step_index == 1

        builder.remove_step(second.id)
        assert _step_ids(builder) == [first.id]
        assert builder.current_step_index == 0
        assert builder.preview_step_index == 0
        assert builder.current_step is first

    def test_remove_unknown_step_is_a_no_op(self, builder):
        builder.add_step()
        before = _step_ids(builder)
        builder.remove_step("nope")
        assert _step_ids(builder) == before

    def test_remove_selected_last_step_clamps_indices(self, builder):
        builder.add_step()
        last = builder.add_step()
        builder.enter_preview()
        builder.preview_next()
        builder.remove_step(last.id)
        assert builder.current_step_index == 1
        assert builder.preview_step_index == 1
        assert 0 <= builder.current_step_index < len(builder.survey.steps)

    def test_move_step_follows_selection(self, builder):
        first = builder.survey.steps[0]
        builder.add_step()
        builder.select_step(0)
        builder.move_step(0, +1)
        assert builder.survey.steps[1] is first
        assert builder.current_step_index == 1

    @pytest.mark.parametrize("index,direction", [(0, -1), (1, +1), (5, -1)])
    def test_move_step_out_of_bounds_is_a_no_op(self, builder, index, direction):
        builder.add_step()
        before = _step_ids(builder)
        builder.move_step(index, direction)
        assert _step_ids(builder) == before

    def test_update_step_keeps_other_steps_identical(self, builder):
        other = builder.survey.steps[0]
        step = builder.add_step()
        builder.update_step(step.id, title="Details")
        assert builder.survey.steps[1].title == "Details"
        assert builder.survey.steps[0] is other


# =====================================================================
# Fields
# =====================================================================


class TestFields:

    def test_add_field_defaults(self, builder):
        step_id = builder.survey.steps[0].id
        radio = builder.add_field(step_id, "radio")
        rating = builder.add_field(step_id, "rating")
        assert [o.label for o in radio.options] == ["Option 1"]
        assert (rating.scale.min, rating.scale.max) == (1, 5)
        assert [f.id for f in builder.survey.steps[0].fields] == [radio.id, rating.id]

    def test_add_field_unknown_type(self, builder):
        with pytest.raises(ValueError):
            builder.add_field(builder.survey.steps[0].id, "slider")

    def test_move_and_remove_field(self, builder):
        step_id = builder.survey.steps[0].id
        a = builder.add_field(step_id, "text")
        b = builder.add_field(step_id, "text")
        builder.move_field(step_id, 1, -1)
        assert [f.id for f in builder.survey.steps[0].fields] == [b.id, a.id]
        builder.move_field(step_id, 1, +1)
        assert [f.id for f in builder.survey.steps[0].fields] == [b.id, a.id]
        builder.remove_field(step_id, b.id)
        assert [f.id for f in builder.survey.steps[0].fields] == [a.id]

    def test_update_field_applies_patch(self, builder):
        step_id = builder.survey.steps[0].id
        field = builder.add_field(step_id, "text")
        ok = builder.update_field(step_id, field.id, {"title": "Name", "required": True})
        assert ok
        updated = builder.survey.steps[0].fields[0]
        assert (updated.title, updated.required, updated.type) == ("Name", True, "text")

    def test_update_field_rejects_type_change(self, builder):
        step_id = builder.survey.steps[0].id
        field = builder.add_field(step_id, "text")
        assert not builder.update_field(step_id, field.id, {"type": "rating"})
        assert builder.survey.steps[0].fields[0].type == "text"
        assert builder.status.kind == "error"

    def test_update_field_rejects_foreign_attribute(self, builder):
        step_id = builder.survey.steps[0].id
        field = builder.add_field(step_id, "text")
        assert not builder.update_field(step_id, field.id, {"options": []})
        assert "options" in builder.status.message
        assert not hasattr(builder.survey.steps[0].fields[0], "options")

    def test_update_field_rejects_invalid_result(self, builder):
        step_id = builder.survey.steps[0].id
        field = builder.add_field(step_id, "rating")
        assert not builder.update_field(step_id, field.id, {"scale": {"min": 5, "max": 1}})
        kept = builder.survey.steps[0].fields[0]
        assert (kept.scale.min, kept.scale.max) == (1, 5)

    def test_update_unknown_field(self, builder):
        assert not builder.update_field(builder.survey.steps[0].id, "nope", {"title": "x"})


# =====================================================================
# Options
# =====================================================================


class TestOptions:

    def test_add_update_remove(self, builder):
        step_id = builder.survey.steps[0].id
        field = builder.add_field(step_id, "checkbox")
        second = builder.add_option(step_id, field.id)
        assert second.label == "Option 2"
        builder.update_option(step_id, field.id, second.id, label="Maybe")
        current = builder.survey.steps[0].fields[0]
        assert [o.label for o in current.options] == ["Option 1", "Maybe"]
        builder.remove_option(step_id, field.id, current.options[0].id)
        assert [o.label for o in current.options] == ["Maybe"]

    def test_remove_last_option_is_a_no_op(self, builder):
        step_id = builder.survey.steps[0].id
        field = builder.add_field(step_id, "radio")
        builder.remove_option(step_id, field.id, field.options[0].id)
        assert len(builder.survey.steps[0].fields[0].options) == 1

    def test_non_text_label_rejected(self, builder):
        step_id = builder.survey.steps[0].id
        field = builder.add_field(step_id, "radio")
        option_id = field.options[0].id
        builder.flush_draft()
        before = builder.survey.model_copy(deep=True)

        assert builder.update_option(step_id, field.id, option_id, label=42) is False
        assert builder.survey == before
        assert builder.status.kind == "error"
        assert not builder.autosave_pending

        assert builder.update_option(step_id, field.id, option_id, label="") is True
        assert builder.survey.steps[0].fields[0].options[0].label == ""

    def test_options_ignored_on_text_field(self, builder):
        step_id = builder.survey.steps[0].id
        field = builder.add_field(step_id, "text")
        assert builder.add_option(step_id, field.id) is None


# =====================================================================
# Import / export / reset
# =====================================================================


class TestImportExport:

    def test_invalid_import_keeps_document(self, builder):
        before = builder.survey.model_copy(deep=True)
        assert not builder.import_text('{"version": 1, "steps": []}')
        assert builder.survey == before
        assert builder.status.message == "Survey must have at least one step."

    def test_blank_import(self, builder):
        assert not builder.import_text("   ")
        assert builder.status.kind == "error"

    def test_valid_import_resets_cursor(self, builder):
        builder.add_step()
        builder.set_preview_answer("x", "y")
        assert builder.import_text(json.dumps(sample_survey(title="Imported").model_dump()))
        assert builder.survey.title == "Imported"
        assert builder.current_step_index == 0
        assert builder.preview_answers == {}
        assert builder.status.message == "Imported survey JSON."

    def test_export_clear_import_round_trip(self, storage):
        """Build → export → reset → re-import gives the same document."""
        b = SurveyBuilder(DraftStore(storage))
        b.update_survey(title="Onboarding")
        s1 = b.survey.steps[0].id
        b.add_field(s1, "text")
        s2 = b.add_step().id
        radio = b.add_field(s2, "radio")
        b.add_option(s2, radio.id)
        b.add_field(s2, "rating")
        b.flush_draft()
        exported = b.export_text()
        original = b.survey.model_copy(deep=True)

        b.reset_draft()
        assert storage.get_item(DRAFT_STORAGE_KEY) is None, "Reset must clear the cached draft"
        assert b.survey.title == ""
        assert b.status.message == "Draft reset."

        assert b.import_text(exported)
        assert b.survey == original
        b.close()

    def test_import_file(self, builder, tmp_path):
        path = tmp_path / "s.json"
        path.write_text(json.dumps(sample_survey().model_dump()), encoding="utf-8")
        assert builder.import_file(path)
        assert builder.status.message == "Imported survey file."


# =====================================================================
# Autosave
# =====================================================================


class TestAutosave:

    def test_flush_writes_draft(self, storage, builder):
        builder.update_survey(title="Saved locally")
        assert builder.autosave_pending
        builder.flush_draft()
        assert DraftStore(storage).load().title == "Saved locally"

    def test_close_drops_pending_write(self, storage):
        b = SurveyBuilder(DraftStore(storage))
        b.update_survey(title="Never written")
        b.close()
        b.flush_draft()
        assert storage.get_item(DRAFT_STORAGE_KEY) is None

    @pytest.mark.asyncio
    async def test_burst_of_edits_writes_once(self):
        storage = CountingStorage()
        b = SurveyBuilder(DraftStore(storage), autosave_delay=0.05, max_wait=None)
        for i in range(10):
            b.update_survey(title=f"Title {i}")
        await asyncio.sleep(0.15)
        assert storage.writes == 1, f"Expected one write, got {storage.writes}"
        assert DraftStore(storage).load().title == "Title 9"
        b.close()

    def test_no_ops_do_not_schedule(self, builder):
        builder.remove_step(builder.survey.steps[0].id)
        builder.move_step(0, -1)
        assert not builder.autosave_pending


# =====================================================================
# Preview
# =====================================================================


class TestPreview:

    def test_navigation_is_clamped(self, builder):
        builder.add_step()
        builder.select_step(0)
        builder.enter_preview()
        builder.preview_back()
        assert builder.preview_step_index == 0
        builder.preview_next()
        builder.preview_next()
        assert builder.preview_step_index == 1
        builder.exit_preview()
        assert builder.mode == "edit"
        assert builder.current_step_index == 1


# =====================================================================
# Publication lifecycle
# =====================================================================


class TestPublication:

    @pytest.mark.asyncio
    async def test_save_requires_title(self, builder):
        backend = FakeBackend()
        assert not await builder.save(backend)
        assert builder.status.message == "Title is required."
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_publish_requires_save(self, builder):
        assert not await builder.publish(FakeBackend())
        assert builder.status.message == "Save the survey before publishing."

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, builder):
        backend = FakeBackend()
        builder.update_survey(title="Team Pulse")

        assert await builder.save(backend)
        assert builder.publication_state == PublicationState.SAVED_PRIVATE
        survey_id = builder.record.survey_id

        assert await builder.save(backend)
        assert builder.record.survey_id == survey_id, "Second save must update in place"
        assert builder.status.message == "Draft saved."

        assert await builder.publish(backend)
        assert builder.publication_state == PublicationState.PUBLIC
        slug = builder.record.slug
        published_at = builder.record.published_at

        assert await builder.unpublish(backend)
        assert builder.publication_state == PublicationState.SAVED_PRIVATE
        assert builder.record.slug == slug

        assert await builder.publish(backend)
        assert builder.record.slug == slug
        assert builder.record.published_at == published_at

    @pytest.mark.asyncio
    async def test_failed_publish_keeps_record(self, builder):
        backend = FakeBackend()
        builder.update_survey(title="Team Pulse")
        await builder.save(backend)
        before = builder.record
        backend.fail.add("publish_survey")
        assert not await builder.publish(backend)
        assert builder.record == before
        assert builder.status.kind == "error"

    @pytest.mark.asyncio
    async def test_load_record_for_editing(self, storage, builder):
        backend = FakeBackend()
        sid = await backend.upsert_survey_draft(
            survey_id=None, title="Remote", description="", definition=sample_survey(),
        )
        record = await backend.get_survey(sid)
        builder.load_record(record)
        assert builder.survey == sample_survey()
        assert builder.record.survey_id == sid
        assert builder.record.definition is None
        assert DraftStore(storage).load() == sample_survey()
