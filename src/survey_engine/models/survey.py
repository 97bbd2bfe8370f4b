"""Survey document models — the versioned tree authored in the builder.

Shape::

    Survey (version 1)
      └── steps: list[Step]            (at least one)
            └── fields: list[Field]    (may be empty)
                  ├── text      — placeholder
                  ├── radio     — options (at least one)
                  ├── checkbox  — options (at least one)
                  └── rating    — scale {min, max}, min < max

The discriminated ``Field`` union uses ``type`` as its discriminator, so an
unknown tag fails validation instead of being coerced into a known variant.
``field_mapper`` maps tag strings to their Pydantic classes.

Leaf values use strict types: the JSON export is a compatibility surface and
``"5"`` is not an integer, ``"true"`` is not a boolean.
"""

from __future__ import annotations

from typing import Annotated, List, Literal, Union

from pydantic import (
    BaseModel,
    Field as PydanticField,
    StrictBool,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)

SURVEY_VERSION = 1

Identifier = Annotated[StrictStr, PydanticField(min_length=1)]


# --- Shared option/scale models ---

class Option(BaseModel):
    """A selectable option; ``label`` may be any text, including empty."""

    id: Identifier
    label: StrictStr


class Scale(BaseModel):
    """Inclusive integer range for rating fields."""

    min: StrictInt
    max: StrictInt

    @model_validator(mode="after")
    def _chk(self):
        if self.min >= self.max:
            raise ValueError("scale.min must be < scale.max")
        return self


# --- Base field type ---

class BaseField(BaseModel):
    """Attributes shared by every field variant."""

    id: Identifier
    title: StrictStr
    description: StrictStr
    required: StrictBool


# --- Field variants ---

class TextField(BaseField):
    """Free-text answer."""

    type: Literal["text"] = "text"
    placeholder: StrictStr


class RadioField(BaseField):
    """Pick exactly one option."""

    type: Literal["radio"] = "radio"
    options: List[Option] = PydanticField(min_length=1)


class CheckboxField(BaseField):
    """Pick any number of options."""

    type: Literal["checkbox"] = "checkbox"
    options: List[Option] = PydanticField(min_length=1)


class RatingField(BaseField):
    """Pick one integer on a scale."""

    type: Literal["rating"] = "rating"
    scale: Scale


# --- Discriminated union of all field types ---

Field = Annotated[
    Union[TextField, RadioField, CheckboxField, RatingField],
    PydanticField(discriminator="type"),
]

# Variants that carry an ``options`` list.
OptionField = Union[RadioField, CheckboxField]

# Maps field type string → Pydantic class.
field_mapper: dict[str, type[BaseField]] = {
    "text": TextField,
    "radio": RadioField,
    "checkbox": CheckboxField,
    "rating": RatingField,
}

FIELD_TYPES: tuple[str, ...] = tuple(field_mapper)


# --- Steps and the root document ---

class Step(BaseModel):
    """One page of the survey."""

    id: Identifier
    title: StrictStr
    description: StrictStr
    fields: List[Field]


class Survey(BaseModel):
    """Root survey document.

    ``steps`` is never empty; the builder refuses to remove the last step
    and the validator rejects documents without one.
    """

    version: Literal[1] = SURVEY_VERSION
    id: Identifier
    title: StrictStr
    description: StrictStr
    steps: List[Step] = PydanticField(min_length=1)

    @field_validator("version", mode="before")
    @classmethod
    def _exact_version(cls, v):
        # bool is an int subclass; True must not pass as version 1
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"Unsupported survey version: {v!r}")
        return v

    def find_step(self, step_id: str) -> Step | None:
        """Return the step with ``step_id``, or None."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def find_field(self, field_id: str) -> BaseField | None:
        """Return the field with ``field_id`` from any step, or None."""
        for step in self.steps:
            for f in step.fields:
                if f.id == field_id:
                    return f
        return None

    def iter_fields(self):
        """Yield every field in document order."""
        for step in self.steps:
            yield from step.fields

    @property
    def field_count(self) -> int:
        return sum(len(step.fields) for step in self.steps)
