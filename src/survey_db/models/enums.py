"""Database-level enumerations for surveys and responses."""

import enum


class SurveyVisibility(str, enum.Enum):
    """Whether a survey can be reached through its public slug.

    Transitions:
        private -> public   (publish; assigns the slug on first publish)
        public -> private   (unpublish; the slug is kept)
    """

    PRIVATE = "private"
    PUBLIC = "public"


class ResponseStatus(str, enum.Enum):
    """Lifecycle states for a survey response.

    Transitions:
        in_progress -> completed  (respondent submits; terminal)
    """

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
