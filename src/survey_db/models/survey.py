"""Survey ORM models — surveys, their responses, and per-field questions.

The survey definition is stored whole in a JSONB column: the document is
always loaded and saved as a unit, and its shape is validated by the SDK
before it reaches the database.

Responses are keyed by (survey_id, respondent_token).  The unique
constraint is what makes "get or create my response" idempotent under
concurrent calls.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from survey_db.models.base import Base
from survey_db.models.enums import ResponseStatus, SurveyVisibility


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SurveyRow(Base):
    """One row per saved survey."""

    __tablename__ = "surveys"

    # --- Primary key ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Ownership ---
    # External user id of the administrator who created the survey
    owner_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    # --- Content ---
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Full survey document (version 1 JSON)
    definition: Mapped[dict] = mapped_column(JSONB, nullable=False)

    # --- Publication ---
    visibility: Mapped[str] = mapped_column(
        # Store as the lowercase string value, not the Python name
        String(20),
        nullable=False,
        default=SurveyVisibility.PRIVATE,
    )
    # Assigned on first publish, never changed afterwards
    slug: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    published_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now, onupdate=_now,
    )

    __table_args__ = (
        CheckConstraint(
            "visibility IN ('private', 'public')",
            name="ck_survey_visibility",
        ),
        # A public survey is always reachable by slug
        CheckConstraint(
            "visibility != 'public' OR slug IS NOT NULL",
            name="ck_public_has_slug",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<SurveyRow(id={self.id!s}, title={self.title!r}, "
            f"visibility={self.visibility!r}, slug={self.slug!r})>"
        )


class SurveyResponseRow(Base):
    """One respondent's answers to one survey."""

    __tablename__ = "survey_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    survey_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("surveys.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Opaque respondent identity kept in the respondent's local storage
    respondent_token: Mapped[str] = mapped_column(Text, nullable=False)

    # Answers keyed by field id; values hold option labels, not option ids
    answers: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
        default=dict,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ResponseStatus.IN_PROGRESS,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now, onupdate=_now,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("survey_id", "respondent_token", name="uq_survey_respondent"),
        CheckConstraint(
            "status != 'completed' OR completed_at IS NOT NULL",
            name="ck_completed_has_timestamp",
        ),
        Index("ix_responses_survey_updated", "survey_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SurveyResponseRow(id={self.id!s}, survey={self.survey_id!s}, "
            f"status={self.status!r})>"
        )


class FieldQuestionRow(Base):
    """A respondent's question about one field, and the administrator answer."""

    __tablename__ = "field_questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    survey_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("surveys.id", ondelete="CASCADE"),
        nullable=False,
    )
    response_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("survey_responses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_id: Mapped[str] = mapped_column(Text, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    asked_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_now,
    )

    # --- Administrator answer (all three set together) ---
    answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    answered_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    answered_by_user_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        # Dashboard inbox: unanswered questions per survey
        Index(
            "ix_field_questions_open",
            "survey_id",
            "asked_at",
            postgresql_where=text("answer IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<FieldQuestionRow(id={self.id!s}, field={self.field_id!r}, "
            f"answered={self.answer is not None})>"
        )
