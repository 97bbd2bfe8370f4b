"""survey_db — PostgreSQL persistence layer for surveys and responses.

This package provides the ORM models, async engine factory, and repository
for saving survey definitions, publishing them, and storing respondent
answers and field questions.  It is consumed by the services in
``survey_engine`` and by the FastAPI server.
"""

from survey_db.engine import get_engine, get_session_factory
from survey_db.models.enums import ResponseStatus, SurveyVisibility
from survey_db.models.survey import FieldQuestionRow, SurveyResponseRow, SurveyRow
from survey_db.repository import SurveyRepository

__all__ = [
    "FieldQuestionRow",
    "ResponseStatus",
    "SurveyRepository",
    "SurveyResponseRow",
    "SurveyRow",
    "SurveyVisibility",
    "get_engine",
    "get_session_factory",
]
