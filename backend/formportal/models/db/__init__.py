"""SQLAlchemy 2.0 ORM models.

Import all models here so Alembic's ``env.py`` can discover them via::

    from formportal.models.db import Base  # noqa: F401
"""

from formportal.models.db.base import Base, TimestampMixin  # noqa: F401
from formportal.models.db.submission import (  # noqa: F401
    SUBMISSION_MODELS,
    PG1Submission,
    PG2ASubmission,
    PG2BSubmission,
    R1Submission,
    SubmissionRecordMixin,
    UG1Submission,
    UG2Submission,
    UG3ASubmission,
    UG3BSubmission,
)
