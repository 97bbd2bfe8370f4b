"""ORM models for survey_db."""

from survey_db.models.base import Base
from survey_db.models.enums import ResponseStatus, SurveyVisibility
from survey_db.models.survey import FieldQuestionRow, SurveyResponseRow, SurveyRow

__all__ = [
    "Base",
    "FieldQuestionRow",
    "ResponseStatus",
    "SurveyResponseRow",
    "SurveyRow",
    "SurveyVisibility",
]
