"""Per-variant field behaviour.

Every function here dispatches over the four field tags and raises
``ValueError`` for anything else, so adding a fifth variant without
handling it fails loudly (``tests/test_fields.py`` checks each dispatcher
against ``FIELD_TYPES``).

Answer shapes by variant:
  - text:     str
  - radio:    str  (the chosen option's label)
  - checkbox: list[str]  (chosen option labels)
  - rating:   int  (within the field's scale)
"""

from __future__ import annotations

import json
import math
from typing import Any

from survey_engine.constants import DEFAULT_OPTION_LABEL, DEFAULT_RATING_SCALE
from survey_engine.ids import new_id
from survey_engine.models.survey import (
    BaseField,
    CheckboxField,
    Option,
    RadioField,
    RatingField,
    Scale,
    TextField,
)


def create_default_field(field_type: str) -> BaseField:
    """Build a new, variant-correct field with builder defaults.

    text → empty placeholder; rating → scale 1..5; radio/checkbox → a
    single option labelled "Option 1".
    """
    base = {"id": new_id(), "title": "", "description": "", "required": False}
    if field_type == "text":
        return TextField(**base, placeholder="")
    elif field_type == "rating":
        return RatingField(**base, scale=Scale(**DEFAULT_RATING_SCALE))
    elif field_type == "radio":
        return RadioField(**base, options=[default_option(1)])
    elif field_type == "checkbox":
        return CheckboxField(**base, options=[default_option(1)])
    else:
        raise ValueError(f"Unknown field type: {field_type!r}")


def default_option(n: int) -> Option:
    """Option with a fresh id and the label "Option <n>"."""
    return Option(id=new_id(), label=DEFAULT_OPTION_LABEL.format(n=n))


def has_options(field: BaseField) -> bool:
    """True for variants that carry an ``options`` list."""
    return isinstance(field, (RadioField, CheckboxField))


def is_filled(field: BaseField, value: Any) -> bool:
    """Whether ``value`` counts as an answer for ``field``.

    text/radio need a non-blank string, checkbox a non-empty list, rating a
    finite number inside the field's scale.
    """
    ftype = field.type
    if ftype in ("text", "radio"):
        return isinstance(value, str) and value.strip() != ""
    elif ftype == "checkbox":
        return isinstance(value, list) and len(value) > 0
    elif ftype == "rating":
        # bool is an int subclass and never a rating
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
        return field.scale.min <= value <= field.scale.max
    else:
        raise ValueError(f"Unknown field type: {ftype!r}")


def format_answer(field: BaseField, value: Any) -> str:
    """Render an answer as plain text for administrator views."""
    if value is None:
        return ""
    ftype = field.type
    if ftype in ("text", "radio"):
        return value if isinstance(value, str) else json.dumps(value)
    elif ftype == "checkbox":
        if isinstance(value, list):
            return ", ".join(v if isinstance(v, str) else json.dumps(v) for v in value)
        return json.dumps(value)
    elif ftype == "rating":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"{value} / {field.scale.max}"
        return json.dumps(value)
    else:
        raise ValueError(f"Unknown field type: {ftype!r}")
