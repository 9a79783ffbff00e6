"""
Submission writer.

Stores a validated submission: every attachment goes to the blob store
first, then one record referencing the blob ids is inserted.  If any upload
or the insert fails, or the caller is cancelled part way, every blob issued
during the call is deleted again so no orphaned files remain.
"""

import asyncio
import logging
import uuid
from typing import Any, Mapping, Optional

from formportal.errors import PersistError, UnknownFormType, UploadError
from formportal.forms.base import FormType, SubmissionStatus
from formportal.record_store import RecordStore
from formportal.services.attachment_validator import IncomingFile
from formportal.storage import BlobStore

logger = logging.getLogger(__name__)

AcceptedFiles = Mapping[str, IncomingFile | list[IncomingFile] | None]


class SubmissionWriter:
    """Writes submissions with all-or-nothing attachment semantics."""

    def __init__(
        self,
        blob_store: BlobStore,
        record_stores: Mapping[FormType, RecordStore],
    ) -> None:
        self._blob_store = blob_store
        self._record_stores = dict(record_stores)

    async def create(
        self,
        form_type: "str | FormType",
        fields: Mapping[str, Any],
        files: AcceptedFiles,
    ) -> uuid.UUID:
        """Upload the accepted files, then insert the record.

        Args:
            form_type: Variant the submission belongs to.
            fields: Validated scalar fields (snake_case keys).
            files: Role-keyed accepted files as returned by the validator.

        Returns:
            The id of the new record.

        Raises:
            UploadError: An upload failed; all issued blobs were deleted.
            PersistError: The insert failed; all issued blobs were deleted.
        """
        form_type = FormType.parse(form_type)
        store = self._record_stores.get(form_type)
        if store is None:
            raise UnknownFormType(form_type.value)

        # Ids issued during this call only; compensation never touches others.
        issued: list[str] = []
        blob_ids = await self._upload_all(files, issued)

        record: dict[str, Any] = {
            **fields,
            **self._attachment_refs(files, blob_ids),
            "id": uuid.uuid4(),
            "status": SubmissionStatus.PENDING.value,
        }
        try:
            record_id = await store.insert(record)
        except asyncio.CancelledError:
            await self._rollback(issued)
            raise
        except Exception as exc:
            logger.error("Failed to insert %s submission: %s", form_type.value, exc)
            await self._rollback(issued)
            raise PersistError() from exc

        logger.info(
            "Stored %s submission %s with %d attachment(s)",
            form_type.value,
            record_id,
            len(issued),
        )
        return record_id

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _put(self, upload: IncomingFile, issued: list[str]) -> str:
        blob_id = await self._blob_store.put(upload.stream, upload.content_type, upload.filename)
        issued.append(blob_id)
        logger.info("Stored blob %s (%s, %d bytes)", blob_id, upload.filename, upload.size)
        return blob_id

    async def _upload_all(self, files: AcceptedFiles, issued: list[str]) -> list[str]:
        uploads = _flatten(files)
        if not uploads:
            return []

        tasks = [asyncio.ensure_future(self._put(upload, issued)) for upload in uploads]
        try:
            await asyncio.wait(tasks)
        except asyncio.CancelledError:
            await self._rollback(issued, tasks)
            raise

        failures = [
            task.exception() for task in tasks if not task.cancelled() and task.exception()
        ]
        if failures or any(task.cancelled() for task in tasks):
            for failure in failures:
                logger.error("Attachment upload failed: %s", failure)
            await self._rollback(issued)
            if failures:
                raise UploadError() from failures[0]
            raise UploadError()
        return [task.result() for task in tasks]

    async def _rollback(self, issued: list[str], pending=()) -> None:
        """Run compensation to completion even if the caller is cancelled meanwhile.

        A cancellation received while the deletes are in flight is re-raised
        once they have finished.
        """
        cleanup = asyncio.ensure_future(self._settle_and_compensate(pending, issued))
        cancelled: Optional[asyncio.CancelledError] = None
        while not cleanup.done():
            try:
                await asyncio.shield(cleanup)
            except asyncio.CancelledError as exc:
                cancelled = exc
        if cancelled is not None:
            raise cancelled

    async def _settle_and_compensate(self, tasks, issued: list[str]) -> None:
        if tasks:
            await asyncio.wait(tasks)
        await self._compensate(issued)

    async def _compensate(self, issued: list[str]) -> None:
        """Best-effort delete of every issued blob; failures are only logged."""
        if not issued:
            return
        blob_ids = list(issued)
        results = await asyncio.gather(
            *(self._blob_store.delete(blob_id) for blob_id in blob_ids),
            return_exceptions=True,
        )
        for blob_id, result in zip(blob_ids, results):
            if isinstance(result, BaseException):
                logger.error("Rollback could not delete blob %s: %s", blob_id, result)
            else:
                logger.info("Rolled back blob %s", blob_id)

    @staticmethod
    def _attachment_refs(files: AcceptedFiles, blob_ids: list[str]) -> dict[str, Any]:
        """Replace each accepted file with its blob id, keeping the role's shape."""
        remaining = iter(blob_ids)
        refs: dict[str, Optional[str] | list[str]] = {}
        for role, value in files.items():
            if isinstance(value, list):
                refs[role] = [next(remaining) for _ in value]
            elif value is None:
                refs[role] = None
            else:
                refs[role] = next(remaining)
        return refs


def _flatten(files: AcceptedFiles) -> list[IncomingFile]:
    flat: list[IncomingFile] = []
    for value in files.values():
        if isinstance(value, list):
            flat.extend(value)
        elif value is not None:
            flat.append(value)
    return flat
