"""Public model re-exports for survey_engine.

Consumers should import from ``survey_engine.models`` rather than
reaching into sub-modules directly.
"""

# --- Survey document ---
from survey_engine.models.survey import (
    FIELD_TYPES,
    SURVEY_VERSION,
    BaseField,
    CheckboxField,
    Field,
    Option,
    OptionField,
    RadioField,
    RatingField,
    Scale,
    Step,
    Survey,
    TextField,
    field_mapper,
)

# --- Records ---
from survey_engine.models.records import (
    FieldQuestionInfo,
    OpenQuestion,
    Principal,
    PublicationState,
    PublicSurvey,
    ResponseState,
    ResponseSummary,
    StatusMessage,
    SurveyRecord,
)

__all__ = [
    # Survey document
    "FIELD_TYPES",
    "SURVEY_VERSION",
    "BaseField",
    "CheckboxField",
    "Field",
    "Option",
    "OptionField",
    "RadioField",
    "RatingField",
    "Scale",
    "Step",
    "Survey",
    "TextField",
    "field_mapper",
    # Records
    "FieldQuestionInfo",
    "OpenQuestion",
    "Principal",
    "PublicationState",
    "PublicSurvey",
    "ResponseState",
    "ResponseSummary",
    "StatusMessage",
    "SurveyRecord",
]
