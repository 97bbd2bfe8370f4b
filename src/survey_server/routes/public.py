"""Public respondent endpoints — addressed by survey slug.

Only surveys whose visibility is ``public`` are reachable; a private or
unknown slug is 404.  Response endpoints require ``X-Respondent-Token``.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.models.records import FieldQuestionInfo, PublicSurvey, ResponseState
from survey_engine.responses import ResponseService

from survey_server.dependencies import get_db, get_respondent_token, get_responses

router = APIRouter(prefix="/public", tags=["public"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class SaveResponseRequest(BaseModel):
    """Body for PUT /public/{slug}/response."""
    answers: dict[str, Any]
    mark_completed: bool = False


class EnsureResponseResponse(BaseModel):
    response_id: str


class AskQuestionRequest(BaseModel):
    question: str


class AskQuestionResponse(BaseModel):
    question_id: str


# ------------------------------------------------------------------
# Survey
# ------------------------------------------------------------------

@router.get("/{slug}")
async def get_public_survey(
    slug: str,
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
) -> PublicSurvey:
    """Fetch a published survey definition."""
    return await responses.get_public_survey(db, slug)


# ------------------------------------------------------------------
# Response
# ------------------------------------------------------------------

@router.post("/{slug}/response")
async def ensure_response(
    slug: str,
    token: str = Depends(get_respondent_token),
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
) -> EnsureResponseResponse:
    """Get or create this respondent's response (idempotent)."""
    response_id = await responses.ensure_response(db, slug, token)
    return EnsureResponseResponse(response_id=response_id)


@router.get("/{slug}/response")
async def get_response(
    slug: str,
    token: str = Depends(get_respondent_token),
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
) -> ResponseState | None:
    """Saved answers and status, or ``null`` before the first save."""
    return await responses.get_response(db, slug, token)


@router.put("/{slug}/response")
async def save_response(
    slug: str,
    body: SaveResponseRequest,
    token: str = Depends(get_respondent_token),
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
) -> ResponseState:
    """Replace the saved answers.  409 once the response is completed."""
    return await responses.save_response(
        db, slug, token, body.answers, mark_completed=body.mark_completed,
    )


# ------------------------------------------------------------------
# Field questions
# ------------------------------------------------------------------

@router.post("/{slug}/fields/{field_id}/questions", status_code=201)
async def ask_question(
    slug: str,
    field_id: str,
    body: AskQuestionRequest,
    token: str = Depends(get_respondent_token),
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
) -> AskQuestionResponse:
    """Post a question about one field."""
    question_id = await responses.ask_question(db, slug, token, field_id, body.question)
    return AskQuestionResponse(question_id=question_id)


@router.get("/{slug}/fields/{field_id}/questions")
async def list_questions(
    slug: str,
    field_id: str,
    token: str = Depends(get_respondent_token),
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
) -> list[FieldQuestionInfo]:
    """This respondent's questions about one field, oldest first."""
    return await responses.list_questions(db, slug, token, field_id)
