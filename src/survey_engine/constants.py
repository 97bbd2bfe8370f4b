"""Survey engine constants shared across the SDK.

These values are referenced by the builder, the response session, the
draft store and the publication service.

Timing constants can be overridden via environment variables so that
deployments can tune autosave behaviour without code changes.
"""

import os

# Debounce delays (seconds) for the two autosave loops.  Rapid edits inside
# the window collapse into one trailing write.
# Overridable via SURVEY_DRAFT_AUTOSAVE_MS / SURVEY_ANSWER_AUTOSAVE_MS.
DRAFT_AUTOSAVE_DELAY = int(os.getenv("SURVEY_DRAFT_AUTOSAVE_MS", "400")) / 1000
ANSWER_AUTOSAVE_DELAY = int(os.getenv("SURVEY_ANSWER_AUTOSAVE_MS", "700")) / 1000

# Upper bound on how long continuous editing may postpone a save.
# 0 disables the cap (pure trailing-edge debounce).
AUTOSAVE_MAX_WAIT = int(os.getenv("SURVEY_AUTOSAVE_MAX_WAIT_MS", "5000")) / 1000 or None

# Local storage keys.  Per-slug keys are "<prefix>:<slug>".
DRAFT_STORAGE_KEY = "survey_draft_v1"
RESPONSE_SESSION_KEY_PREFIX = "survey_response_v1"
RESPONSE_ANSWERS_KEY_PREFIX = "survey_answers_v1"
RESPONDENT_TOKEN_KEY = "survey_respondent_v1"

# Slug generation for public links.
SLUG_MAX_LENGTH = int(os.getenv("SURVEY_SLUG_MAX_LENGTH", "64"))
SLUG_FALLBACK_BASE = "survey"
# Suffixes -2 .. -(SLUG_SEARCH_WINDOW - 1) are tried before the timestamp fallback.
SLUG_SEARCH_WINDOW = 10_000

# How many missing required-field titles the submit gate lists before "+K more".
MISSING_FIELDS_DISPLAY_CAP = 8

# Defaults for fields created in the builder.
DEFAULT_RATING_SCALE: dict[str, int] = {"min": 1, "max": 5}
DEFAULT_STEP_TITLE = "Step {n}"
DEFAULT_OPTION_LABEL = "Option {n}"
