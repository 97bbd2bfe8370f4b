"""survey_engine — survey definition and response SDK.

Public API:
    Survey            — versioned survey document (steps → typed fields)
    validate_survey   — schema check returning the first, highest-priority issue
    parse_survey_json — parse + validate JSON interchange text
    serialize_survey  — pretty-printed JSON export
    SurveyBuilder     — in-memory authoring model with debounced draft autosave
    DraftStore        — local draft cache over a key-value storage
    ResponseSession   — one respondent filling one published survey
    FieldHelpThread   — per-field question thread for respondents

Backend:
    SurveyBackend     — ABC for the remote operations
    HttpSurveyBackend — httpx implementation against ``survey_server``
    BackendError      — raised by every backend operation on failure

Server-side services (used by ``survey_server``):
    PublicationService — save / publish / unpublish surveys
    ResponseService    — public responses, field questions, admin views
"""

from survey_engine.builder import SurveyBuilder, create_default_survey
from survey_engine.client import HttpSurveyBackend
from survey_engine.debounce import Debouncer
from survey_engine.errors import BackendError
from survey_engine.interfaces import SurveyBackend
from survey_engine.models import (
    FieldQuestionInfo,
    OpenQuestion,
    Principal,
    PublicationState,
    PublicSurvey,
    ResponseState,
    ResponseSummary,
    StatusMessage,
    Survey,
    SurveyRecord,
)
from survey_engine.publication import PublicationService
from survey_engine.questions import FieldHelpThread
from survey_engine.responses import ResponseService
from survey_engine.session import ResponseSession, SessionState
from survey_engine.slugs import pick_unique_slug, slugify_title
from survey_engine.storage import DraftStore, FileStorage, MemoryStorage, ResponseCache
from survey_engine.validator import (
    ValidationResult,
    parse_survey_json,
    serialize_survey,
    validate_survey,
)

__all__ = [
    # Document & validation
    "Survey",
    "ValidationResult",
    "parse_survey_json",
    "serialize_survey",
    "validate_survey",
    # Authoring
    "SurveyBuilder",
    "create_default_survey",
    "DraftStore",
    "FileStorage",
    "MemoryStorage",
    "Debouncer",
    # Publication
    "PublicationService",
    "PublicationState",
    "SurveyRecord",
    "pick_unique_slug",
    "slugify_title",
    # Responses
    "ResponseService",
    "ResponseSession",
    "ResponseCache",
    "SessionState",
    "FieldHelpThread",
    "FieldQuestionInfo",
    "OpenQuestion",
    "PublicSurvey",
    "ResponseState",
    "ResponseSummary",
    # Backend
    "SurveyBackend",
    "HttpSurveyBackend",
    "BackendError",
    "Principal",
    "StatusMessage",
]
