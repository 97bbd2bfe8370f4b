"""Survey document validation — the gate every untrusted document passes.

``validate_survey`` turns an arbitrary parsed value into either a typed
:class:`Survey` or a single :class:`ValidationIssue` naming the first
violated rule.  Pydantic reports every error it finds; this module picks the
one to show using a fixed priority:

    1. the value is an object and ``version`` equals 1
    2. ``steps`` has at least one entry
    3. every field ``type`` is a known tag
    4. radio/checkbox fields have at least one option
    5. rating scales satisfy min < max
    6. anything else (missing keys, wrong types), in document order

The version is checked before Pydantic runs so that a document from a newer
format version is rejected as such, not as a pile of shape errors.

Validation is pure and never raises for bad input.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from survey_engine.models.survey import FIELD_TYPES, SURVEY_VERSION, Survey


@dataclass(frozen=True)
class ValidationIssue:
    """The first violated rule: a human-readable message and where it is."""

    message: str
    path: str = ""


@dataclass(frozen=True)
class ValidationResult:
    """Either ``survey`` (valid) or ``issue`` (invalid) is set."""

    survey: Survey | None = None
    issue: ValidationIssue | None = None

    @property
    def ok(self) -> bool:
        return self.survey is not None

    @property
    def message(self) -> str | None:
        return self.issue.message if self.issue else None


def _fail(message: str, path: str = "") -> ValidationResult:
    return ValidationResult(issue=ValidationIssue(message=message, path=path))


# ---------------------------------------------------------------------------
# Error ranking
# ---------------------------------------------------------------------------

def _rank(err: dict) -> int:
    """Priority bucket of a Pydantic error dict (lower is reported first)."""
    loc = err["loc"]
    etype = err["type"]
    if loc and loc[0] == "version":
        return 0
    if tuple(loc) == ("steps",) and etype == "too_short":
        return 1
    if etype in ("union_tag_invalid", "union_tag_not_found"):
        return 2
    if loc and loc[-1] == "options" and etype == "too_short":
        return 3
    if loc and loc[-1] == "scale" and etype == "value_error":
        return 4
    return 5


def format_path(loc: tuple) -> str:
    """Render a Pydantic ``loc`` tuple as ``steps[0].fields[1].options``.

    The discriminated union inserts the variant tag after a field index
    (``fields, 1, "radio", options``); that segment is dropped.
    """
    parts: list[str] = []
    prev: Any = None
    for i, seg in enumerate(loc):
        if isinstance(seg, int):
            parts.append(f"[{seg}]")
        elif (
            isinstance(prev, int)
            and i >= 2
            and loc[i - 2] == "fields"
            and seg in FIELD_TYPES
        ):
            pass
        else:
            parts.append(f".{seg}" if parts else str(seg))
        prev = seg
    return "".join(parts)


def _message_for(err: dict) -> ValidationIssue:
    """Build the user-facing issue for one Pydantic error."""
    loc = tuple(err["loc"])
    path = format_path(loc)
    rank = _rank(err)

    if rank == 0:
        return ValidationIssue(
            f"Unsupported survey version (expected {SURVEY_VERSION}).", path,
        )
    if rank == 1:
        return ValidationIssue("Survey must have at least one step.", path)
    if rank == 2:
        if err["type"] == "union_tag_not_found":
            return ValidationIssue(f"Field at {path} is missing its type.", path)
        tag = (err.get("ctx") or {}).get("tag", err.get("input"))
        return ValidationIssue(f"Unknown field type {tag!r} at {path}.", path)
    if rank == 3:
        field_path = format_path(loc[:-1])
        return ValidationIssue(
            f"Field at {field_path} must have at least one option.", path,
        )
    if rank == 4:
        return ValidationIssue("scale.min must be < scale.max", path)
    return ValidationIssue(f"{path}: {err['msg']}" if path else err["msg"], path)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_survey(value: Any) -> ValidationResult:
    """Validate an arbitrary parsed value as a survey document.

    Returns a result carrying either the typed survey or the first issue.
    Never raises for malformed input.
    """
    if isinstance(value, Survey):
        value = value.model_dump(mode="json")

    if not isinstance(value, dict):
        return _fail("Survey must be a JSON object.")

    version = value.get("version")
    if "version" not in value:
        return _fail(
            f"Survey version is missing (expected {SURVEY_VERSION}).", "version",
        )
    if isinstance(version, bool) or version != SURVEY_VERSION:
        return _fail(
            f"Unsupported survey version {version!r} (expected {SURVEY_VERSION}).",
            "version",
        )

    try:
        survey = Survey.model_validate(value)
    except ValidationError as exc:
        errors = exc.errors()
        # min() keeps the first error within a bucket, i.e. document order
        first = min(errors, key=_rank)
        return ValidationResult(issue=_message_for(first))
    return ValidationResult(survey=survey)


def parse_survey_json(text: str) -> ValidationResult:
    """Parse JSON text and validate it; parse errors become an issue."""
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return _fail("Invalid JSON (parse error).")
    return validate_survey(parsed)


def read_survey_file(path: str | Path) -> ValidationResult:
    """Read and validate a survey JSON file.

    A missing or unreadable file is reported as an issue like any other
    import failure.
    """
    if isinstance(path, str):
        path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return _fail(f"Could not read file: {path.name}")
    return parse_survey_json(text)


def serialize_survey(survey: Survey) -> str:
    """Serialize a survey to the pretty-printed JSON interchange format."""
    return json.dumps(survey.model_dump(mode="json"), indent=2, ensure_ascii=False)
