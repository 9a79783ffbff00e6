"""Business logic for submitting and reviewing form applications."""

import asyncio
import logging
import uuid
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from formportal import config
from formportal.errors import InvalidStatusTransition, InvalidSubmissionId
from formportal.forms import FormRegistry, default_registry
from formportal.forms.base import FormType, SubmissionStatus
from formportal.models.db.submission import SUBMISSION_MODELS
from formportal.models.submission_models import NormalizedView
from formportal.record_store import RecordStore, SqlRecordStore
from formportal.services.attachment_validator import (
    IncomingFile,
    validate_attachments,
    validate_fields,
)
from formportal.services.normalizer import Normalizer
from formportal.services.submission_reader import SubmissionReader
from formportal.services.submission_writer import SubmissionWriter
from formportal.storage import BlobStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Allowed status transitions
# ---------------------------------------------------------------------------
ALLOWED_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["approved", "rejected"],
    # Terminal states -- no outgoing transitions
    "approved": [],
    "rejected": [],
}


def parse_submission_id(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvalidSubmissionId() from None


class SubmissionService:
    """Facade over validation, writing, reading and normalization."""

    def __init__(
        self,
        registry: FormRegistry,
        blob_store: BlobStore,
        record_stores: Mapping[FormType, RecordStore],
        public_base_url: str = config.PUBLIC_BASE_URL,
    ) -> None:
        self.registry = registry
        self.blob_store = blob_store
        self.readers = [
            SubmissionReader(definition.form_type, record_stores[definition.form_type])
            for definition in registry
        ]
        self.writer = SubmissionWriter(blob_store, record_stores)
        self.normalizer = Normalizer(registry, blob_store, public_base_url)

    @classmethod
    def build(
        cls,
        blob_store: BlobStore,
        session_factory: async_sessionmaker[AsyncSession],
        registry: Optional[FormRegistry] = None,
    ) -> "SubmissionService":
        """Wire one SQL record store per registered variant."""
        registry = registry or default_registry()
        record_stores = {
            definition.form_type: SqlRecordStore(
                session_factory, SUBMISSION_MODELS[definition.collection]
            )
            for definition in registry
        }
        return cls(registry, blob_store, record_stores)

    # ------------------------------------------------------------------
    # submit
    # ------------------------------------------------------------------

    async def submit(
        self,
        form_type: "str | FormType",
        fields: Mapping[str, Any],
        files: Mapping[str, list[IncomingFile]],
    ) -> uuid.UUID:
        """Validate and store one submission.

        Args:
            form_type: Variant tag (``UG1``, ``pg2b``...).
            fields: Raw scalar fields keyed by multipart name.
            files: Uploaded files grouped by multipart field name.

        Returns:
            The new submission id.

        Raises:
            UnknownFormType: If the variant is not registered.
            ValidationError: If a field or attachment is rejected; nothing
                has been stored.
            UploadError / PersistError: If storing failed; nothing remains.
        """
        definition = self.registry.get(form_type)
        validated = validate_fields(definition.fields_model, fields)
        accepted = validate_attachments(definition.rules, files)
        return await self.writer.create(definition.form_type, validated, accepted)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_one(self, submission_id: Any) -> Optional[NormalizedView]:
        """Find a submission in any variant, searching in registry order."""
        record_id = parse_submission_id(submission_id)
        for reader in self.readers:
            record = await reader.get(record_id)
            if record is not None:
                return await self.normalizer.normalize(record, reader.form_type)
        return None

    async def _views_for(self, reader: SubmissionReader, fetch) -> list[NormalizedView]:
        records = await fetch(reader)
        views = await asyncio.gather(
            *(self.normalizer.normalize(record, reader.form_type) for record in records)
        )
        return list(views)

    async def _collect(self, fetch) -> list[NormalizedView]:
        """Run ``fetch(reader)`` for every variant and normalize the records.

        Variants are read concurrently and concatenated as they complete;
        within a variant the newest submission comes first.  Any failure
        fails the whole call and cancels the remaining reads.
        """
        tasks = [asyncio.ensure_future(self._views_for(reader, fetch)) for reader in self.readers]
        views: list[NormalizedView] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                views.extend(await next_done)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        return views

    async def list_by_status(self, status: "str | SubmissionStatus") -> list[NormalizedView]:
        """Submissions of every variant with ``status`` (case-insensitive)."""
        value = status.value if isinstance(status, SubmissionStatus) else str(status)
        return await self._collect(lambda reader: reader.list_by_status(value))

    async def list_pending(self) -> list[NormalizedView]:
        return await self.list_by_status(SubmissionStatus.PENDING)

    async def list_by_applicant(self, svv_net_id: str) -> list[NormalizedView]:
        """Every submission filed under an applicant's SVV Net ID, any status."""
        return await self._collect(lambda reader: reader.list_by_applicant(svv_net_id))

    # ------------------------------------------------------------------
    # review
    # ------------------------------------------------------------------

    async def review(
        self,
        submission_id: Any,
        decision: str,
        remarks: Optional[str] = None,
    ) -> Optional[NormalizedView]:
        """Record a reviewer decision on a pending submission.

        Returns:
            The updated view, or None if no variant holds the id.

        Raises:
            InvalidStatusTransition: If the submission is not pending or the
                decision is not approved/rejected.
        """
        record_id = parse_submission_id(submission_id)
        requested = (decision or "").strip().lower()
        for reader in self.readers:
            record = await reader.get(record_id)
            if record is None:
                continue
            current = str(record.get("status") or SubmissionStatus.PENDING.value).lower()
            if requested not in ALLOWED_TRANSITIONS.get(current, []):
                raise InvalidStatusTransition(current, requested)
            extra = {"review_remarks": remarks} if remarks else None
            updated = await reader.store.update_status(
                record_id, requested, extra, expected_status=current
            )
            if updated is None:
                # Another decision landed between the read and the write.
                latest = await reader.get(record_id)
                if latest is None:
                    return None
                raise InvalidStatusTransition(
                    str(latest.get("status") or "").lower(), requested
                )
            logger.info(
                "%s submission %s moved from %s to %s",
                reader.form_type.value,
                record_id,
                current,
                requested,
            )
            return await self.normalizer.normalize(updated, reader.form_type)
        return None
