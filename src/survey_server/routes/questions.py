"""Field question inbox — administrators list and answer respondent questions."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.models.records import FieldQuestionInfo, OpenQuestion, Principal
from survey_engine.responses import ResponseService

from survey_server.config import MAX_PAGE_LIMIT
from survey_server.dependencies import get_db, get_principal, get_responses

router = APIRouter(prefix="/questions", tags=["questions"])


class AnswerRequest(BaseModel):
    """Body for POST /questions/{question_id}/answer."""
    answer: str


@router.get("/open")
async def list_open_questions(
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
    mine_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=MAX_PAGE_LIMIT),
) -> list[OpenQuestion]:
    """Unanswered questions across surveys, oldest first."""
    return await responses.list_open_questions(
        db, principal, mine_only=mine_only, limit=limit,
    )


@router.post("/{question_id}/answer")
async def answer_question(
    question_id: str,
    body: AnswerRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    responses: ResponseService = Depends(get_responses),
) -> FieldQuestionInfo:
    """Record (or replace) the administrator answer to a question."""
    return await responses.answer_question(db, principal, question_id, body.answer)
