"""SQLAlchemy models for the per-variant submission tables.

Each form variant keeps its records in its own table.  The variant-specific
fields live in the ``data`` JSON column; attachment roles in ``data`` hold
blob ids (a single id or an ordered list of ids), never file contents.
"""

import uuid
from typing import Any

from sqlalchemy import JSON, Index, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from formportal.models.db.base import Base, TimestampMixin

JsonData = JSON().with_variant(JSONB(), "postgresql")


class SubmissionRecordMixin(TimestampMixin):
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="pending", server_default="pending"
    )
    data: Mapped[dict[str, Any]] = mapped_column(JsonData, nullable=False, default=dict)

    @declared_attr.directive
    def __table_args__(cls):
        return (
            Index(f"idx_{cls.__tablename__}_status_created", "status", "created_at"),
        )


class UG1Submission(SubmissionRecordMixin, Base):
    __tablename__ = "ug1_submissions"


class UG2Submission(SubmissionRecordMixin, Base):
    __tablename__ = "ug2_submissions"


class UG3ASubmission(SubmissionRecordMixin, Base):
    __tablename__ = "ug3a_submissions"


class UG3BSubmission(SubmissionRecordMixin, Base):
    __tablename__ = "ug3b_submissions"


class PG1Submission(SubmissionRecordMixin, Base):
    __tablename__ = "pg1_submissions"


class PG2ASubmission(SubmissionRecordMixin, Base):
    __tablename__ = "pg2a_submissions"


class PG2BSubmission(SubmissionRecordMixin, Base):
    __tablename__ = "pg2b_submissions"


class R1Submission(SubmissionRecordMixin, Base):
    __tablename__ = "r1_submissions"


SUBMISSION_MODELS: dict[str, type[SubmissionRecordMixin]] = {
    model.__tablename__: model
    for model in (
        UG1Submission,
        UG2Submission,
        UG3ASubmission,
        UG3BSubmission,
        PG1Submission,
        PG2ASubmission,
        PG2BSubmission,
        R1Submission,
    )
}
