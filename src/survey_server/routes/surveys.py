"""Survey administration endpoints — save, publish, unpublish, responses.

All endpoints require the ``X-User-ID`` header; the services reject
callers without ``X-User-Role: admin`` with 403.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.models.records import Principal, ResponseSummary, SurveyRecord
from survey_engine.publication import PublicationService
from survey_engine.responses import ResponseService

from survey_server.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from survey_server.dependencies import get_db, get_principal, get_publication, get_responses

router = APIRouter(tags=["surveys"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class SaveSurveyRequest(BaseModel):
    """Body for POST /surveys.  ``survey_id`` is null for a new survey."""
    survey_id: str | None = None
    title: str
    description: str = ""
    # Validated by the service so errors carry the validator's message
    definition: Any


class SaveSurveyResponse(BaseModel):
    survey_id: str


class PublishResponse(BaseModel):
    survey_id: str
    slug: str


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/surveys")
async def save_survey(
    body: SaveSurveyRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    publication: PublicationService = Depends(get_publication),
) -> SaveSurveyResponse:
    """Insert (no ``survey_id``) or update a survey definition."""
    survey_id = await publication.save_draft(
        db,
        principal,
        survey_id=body.survey_id,
        title=body.title,
        description=body.description,
        definition=body.definition,
    )
    return SaveSurveyResponse(survey_id=survey_id)


@router.get("/surveys")
async def list_surveys(
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    publication: PublicationService = Depends(get_publication),
    mine_only: bool = Query(False),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
) -> list[SurveyRecord]:
    """List surveys with response and open-question counts."""
    return await publication.list_surveys(
        db, principal, mine_only=mine_only, limit=limit, offset=offset,
    )


@router.get("/surveys/{survey_id}")
async def get_survey(
    survey_id: str,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    publication: PublicationService = Depends(get_publication),
) -> SurveyRecord:
    """Load one survey including its definition.  404 if unknown."""
    return await publication.get_survey(db, principal, survey_id)


@router.post("/surveys/{survey_id}/publish")
async def publish_survey(
    survey_id: str,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    publication: PublicationService = Depends(get_publication),
) -> PublishResponse:
    """Make a survey public.  Re-publishing returns the same slug."""
    sid, slug = await publication.publish(db, principal, survey_id)
    return PublishResponse(survey_id=sid, slug=slug)


@router.post("/surveys/{survey_id}/unpublish", status_code=204)
async def unpublish_survey(
    survey_id: str,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    publication: PublicationService = Depends(get_publication),
) -> None:
    """Make a survey private; its slug is kept."""
    await publication.unpublish(db, principal, survey_id)


@router.get("/surveys/{survey_id}/responses")
async def list_responses(
    survey_id: str,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
) -> list[ResponseSummary]:
    """List a survey's responses, most recently updated first."""
    return await responses.list_responses(
        db, principal, survey_id, limit=limit, offset=offset,
    )


@router.get("/surveys/{survey_id}/responses/{response_id}")
async def get_response_detail(
    survey_id: str,
    response_id: str,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
) -> ResponseSummary:
    """One response with the field questions asked under it."""
    return await responses.get_response_detail(db, principal, survey_id, response_id)
