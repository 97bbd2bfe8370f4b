"""ResponseService tests with mocked DB layer.

Verifies that:
  - Only public surveys are reachable by slug
  - ensure_response is idempotent per (survey, respondent token)
  - Completed responses reject further writes
  - Field questions are scoped to the asking respondent
  - Administrator views list responses, details and open questions
"""

import uuid

import pytest
import pytest_asyncio

from helpers.fakes import sample_survey_dict
from survey_engine.models.records import Principal
from survey_engine.publication import PublicationService
from survey_engine.responses import ResponseService

ADMIN = Principal(user_id="admin-1", is_admin=True)
MEMBER = Principal(user_id="member-1")


# =====================================================================
# Fixtures
# =====================================================================


@pytest.fixture
def publication(mock_repo):
    svc = PublicationService()
    svc._repo = mock_repo
    return svc


@pytest.fixture
def service(mock_repo):
    """ResponseService with mocked repository."""
    svc = ResponseService()
    svc._repo = mock_repo
    return svc


@pytest_asyncio.fixture
async def published(publication, mock_db):
    """(survey_id, slug) of a freshly published sample survey."""
    survey_id = await publication.save_draft(
        mock_db, ADMIN,
        survey_id=None, title="Team feedback", description="", definition=sample_survey_dict(),
    )
    _, slug = await publication.publish(mock_db, ADMIN, survey_id)
    return survey_id, slug


# =====================================================================
# Public survey access
# =====================================================================


class TestPublicSurvey:

    @pytest.mark.asyncio
    async def test_fetch_by_slug(self, service, mock_db, published):
        _, slug = published
        public = await service.get_public_survey(mock_db, slug)
        assert public.slug == slug == "team-feedback"
        assert public.survey.field_count == 4

    @pytest.mark.asyncio
    async def test_private_survey_not_found(self, service, publication, mock_db, published):
        survey_id, slug = published
        await publication.unpublish(mock_db, ADMIN, survey_id)
        with pytest.raises(ValueError, match="not found"):
            await service.get_public_survey(mock_db, slug)

    @pytest.mark.asyncio
    async def test_unknown_slug(self, service, mock_db):
        with pytest.raises(ValueError, match="not found"):
            await service.get_public_survey(mock_db, "nope")


# =====================================================================
# Responses
# =====================================================================


class TestResponses:

    @pytest.mark.asyncio
    async def test_ensure_is_idempotent(self, service, mock_db, mock_repo, published):
        _, slug = published
        first = await service.ensure_response(mock_db, slug, "tok-a")
        second = await service.ensure_response(mock_db, slug, "tok-a")
        other = await service.ensure_response(mock_db, slug, "tok-b")
        assert first == second
        assert other != first
        assert len(mock_repo.responses) == 2

    @pytest.mark.asyncio
    async def test_get_before_ensure_is_none(self, service, mock_db, published):
        _, slug = published
        assert await service.get_response(mock_db, slug, "tok-a") is None

    @pytest.mark.asyncio
    async def test_save_and_complete(self, service, mock_db, published):
        _, slug = published
        await service.ensure_response(mock_db, slug, "tok-a")
        state = await service.save_response(
            mock_db, slug, "tok-a", {"f_name": "Ada"}, mark_completed=False,
        )
        assert state.status == "in_progress"
        assert state.completed_at is None

        state = await service.save_response(
            mock_db, slug, "tok-a", {"f_name": "Ada", "f_score": 5}, mark_completed=True,
        )
        assert state.status == "completed"
        assert state.completed_at is not None

        fetched = await service.get_response(mock_db, slug, "tok-a")
        assert fetched.answers == {"f_name": "Ada", "f_score": 5}

    @pytest.mark.asyncio
    async def test_completed_response_is_immutable(self, service, mock_db, published):
        _, slug = published
        await service.save_response(mock_db, slug, "tok-a", {}, mark_completed=True)
        with pytest.raises(ValueError, match="already completed"):
            await service.save_response(mock_db, slug, "tok-a", {"x": 1}, mark_completed=False)


# =====================================================================
# Field questions
# =====================================================================


class TestFieldQuestions:

    @pytest.mark.asyncio
    async def test_ask_and_list_own_questions(self, service, mock_db, published):
        _, slug = published
        await service.ask_question(mock_db, slug, "tok-a", "f_team", "First?")
        await service.ask_question(mock_db, slug, "tok-a", "f_team", "  Second?  ")
        await service.ask_question(mock_db, slug, "tok-b", "f_team", "Someone else")
        await service.ask_question(mock_db, slug, "tok-a", "f_name", "Other field")

        items = await service.list_questions(mock_db, slug, "tok-a", "f_team")
        assert [q.question for q in items] == ["First?", "Second?"]

    @pytest.mark.asyncio
    async def test_list_without_response_is_empty(self, service, mock_db, published):
        _, slug = published
        assert await service.list_questions(mock_db, slug, "tok-new", "f_team") == []

    @pytest.mark.asyncio
    async def test_blank_question_rejected(self, service, mock_db, published):
        _, slug = published
        with pytest.raises(ValueError, match="must not be empty"):
            await service.ask_question(mock_db, slug, "tok-a", "f_team", "  ")

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, service, mock_db, published):
        _, slug = published
        with pytest.raises(ValueError, match="Field not found"):
            await service.ask_question(mock_db, slug, "tok-a", "f_missing", "Hello?")

    @pytest.mark.asyncio
    async def test_admin_answer_and_open_inbox(self, service, mock_db, published):
        _, slug = published
        q1 = await service.ask_question(mock_db, slug, "tok-a", "f_team", "One?")
        await service.ask_question(mock_db, slug, "tok-a", "f_score", "Two?")

        open_before = await service.list_open_questions(mock_db, ADMIN)
        assert [q.question for q in open_before] == ["One?", "Two?"]
        assert open_before[0].survey_title == "Team feedback"

        answered = await service.answer_question(mock_db, ADMIN, q1, "  Pick your squad  ")
        assert answered.answer == "Pick your squad"
        assert answered.answered_at is not None

        open_after = await service.list_open_questions(mock_db, ADMIN)
        assert [q.question for q in open_after] == ["Two?"]

        items = await service.list_questions(mock_db, slug, "tok-a", "f_team")
        assert items[0].answer == "Pick your squad"

    @pytest.mark.asyncio
    async def test_member_cannot_answer(self, service, mock_db, published):
        _, slug = published
        qid = await service.ask_question(mock_db, slug, "tok-a", "f_team", "One?")
        with pytest.raises(PermissionError):
            await service.answer_question(mock_db, MEMBER, qid, "No")

    @pytest.mark.asyncio
    async def test_unknown_question(self, service, mock_db):
        with pytest.raises(ValueError, match="not found"):
            await service.answer_question(mock_db, ADMIN, str(uuid.uuid4()), "Hi")


# =====================================================================
# Administrator response views
# =====================================================================


class TestAdminViews:

    @pytest.mark.asyncio
    async def test_list_and_detail(self, service, mock_db, published):
        survey_id, slug = published
        await service.save_response(mock_db, slug, "tok-a", {"f_name": "Ada"}, mark_completed=False)
        await service.save_response(mock_db, slug, "tok-b", {"f_name": "Bo"}, mark_completed=True)
        await service.ask_question(mock_db, slug, "tok-a", "f_team", "Why?")

        summaries = await service.list_responses(mock_db, ADMIN, survey_id)
        assert [s.answers["f_name"] for s in summaries] == ["Bo", "Ada"], (
            "Most recently updated first"
        )

        ada = summaries[1]
        detail = await service.get_response_detail(mock_db, ADMIN, survey_id, ada.response_id)
        assert [q.question for q in detail.questions] == ["Why?"]

    @pytest.mark.asyncio
    async def test_detail_renders_answer_text(self, service, mock_db, published):
        survey_id, slug = published
        state = await service.save_response(
            mock_db, slug, "tok-a",
            {"f_name": "Ada", "f_tools": ["Git", "CI"], "f_score": 4},
            mark_completed=False,
        )
        detail = await service.get_response_detail(mock_db, ADMIN, survey_id, state.response_id)
        assert detail.answer_text == {
            "f_name": "Ada",
            "f_team": "",
            "f_tools": "Git, CI",
            "f_score": "4 / 5",
        }
        assert list(detail.answer_text) == ["f_name", "f_team", "f_tools", "f_score"]

    @pytest.mark.asyncio
    async def test_detail_of_other_survey_not_found(self, service, publication, mock_db, published):
        survey_id, slug = published
        other_id = await publication.save_draft(
            mock_db, ADMIN,
            survey_id=None, title="Other", description="", definition=sample_survey_dict(),
        )
        response_id = await service.ensure_response(mock_db, slug, "tok-a")
        with pytest.raises(ValueError, match="not found"):
            await service.get_response_detail(mock_db, ADMIN, other_id, response_id)

    @pytest.mark.asyncio
    async def test_unknown_survey(self, service, mock_db):
        with pytest.raises(ValueError, match="not found"):
            await service.list_responses(mock_db, ADMIN, str(uuid.uuid4()))
