"""
Normalizer.

Projects a stored record of any variant onto the common reviewer view:
reconciled topic / name / branch / submitted fields, the remaining scalar
fields, and every attachment role resolved to a descriptor.  Attachment
problems never fail the view; an unresolvable slot is reported as None.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

from formportal import config
from formportal.forms import FormRegistry
from formportal.forms.base import FormType
from formportal.models.submission_models import AttachmentDescriptor, NormalizedView
from formportal.record_store import RECORD_COLUMNS
from formportal.storage import BlobStore

logger = logging.getLogger(__name__)


def _blob_ref(value: Any) -> Optional[str]:
    # Older records kept a small dict ({"id": ..., "filename": ...}) per file.
    if isinstance(value, Mapping):
        value = value.get("id")
    if value is None or value == "":
        return None
    return str(value)


class Normalizer:
    def __init__(
        self,
        registry: FormRegistry,
        blob_store: BlobStore,
        public_base_url: str = config.PUBLIC_BASE_URL,
    ) -> None:
        self._registry = registry
        self._blob_store = blob_store
        self._public_base_url = public_base_url.rstrip("/")

    def file_url(self, blob_id: str) -> str:
        return f"{self._public_base_url}/file/{blob_id}"

    async def normalize(
        self, record: Mapping[str, Any], form_type: "str | FormType"
    ) -> NormalizedView:
        """Build the reviewer view of ``record``.

        Args:
            record: Flat record as returned by a record store.
            form_type: Variant the record was read from.

        Returns:
            The normalized view; attachment slots that cannot be resolved
            are None.
        """
        definition = self._registry.get(form_type)
        common = definition.reconciler.reconcile(record)
        roles = set(definition.roles)
        form_data = {
            key: value
            for key, value in record.items()
            if key not in roles and key not in RECORD_COLUMNS
        }
        attachments = await self._resolve_attachments(definition, record)

        return NormalizedView(
            id=str(record["id"]),
            form_type=definition.form_type.value,
            form_label=definition.label,
            topic=common.topic,
            name=common.name,
            branch=common.branch,
            submitted=common.submitted,
            status=common.status,
            form_data=form_data,
            attachments=attachments,
        )

    async def _resolve_attachments(self, definition, record: Mapping[str, Any]) -> dict[str, Any]:
        # Shape per role: single roles -> one ref, multi roles -> list of refs.
        layout: list[tuple[str, bool, list[Any]]] = []
        for rule in definition.attachment_rules:
            value = record.get(rule.role)
            if rule.multiple:
                refs = value if isinstance(value, list) else ([] if value is None else [value])
            else:
                if isinstance(value, list):
                    value = value[0] if value else None
                if value is None and rule.required:
                    logger.warning(
                        "Record %s has no attachment for required role %s",
                        record.get("id"),
                        rule.role,
                    )
                refs = [value]
            layout.append((rule.role, rule.multiple, refs))

        flat = [ref for _, _, refs in layout for ref in refs]
        described = await asyncio.gather(*(self._describe(ref) for ref in flat))

        attachments: dict[str, Any] = {}
        position = 0
        for role, multiple, refs in layout:
            slot = list(described[position : position + len(refs)])
            position += len(refs)
            attachments[role] = slot if multiple else slot[0]
        return attachments

    async def _describe(self, value: Any) -> Optional[AttachmentDescriptor]:
        blob_id = _blob_ref(value)
        if blob_id is None:
            return None
        try:
            info = await self._blob_store.stat(blob_id)
        except Exception as e:
            logger.warning("Could not resolve attachment %s: %s", blob_id, e)
            return None
        return AttachmentDescriptor(
            id=info.id,
            name=info.name,
            content_type=info.content_type,
            size=info.size,
            url=self.file_url(info.id),
        )
