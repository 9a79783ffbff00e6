"""Read access to one variant's records."""

import logging
import uuid
from typing import Any, Optional

from formportal.forms.base import FormType
from formportal.record_store import RecordStore

logger = logging.getLogger(__name__)


class SubmissionReader:
    def __init__(self, form_type: FormType, store: RecordStore) -> None:
        self.form_type = form_type
        self.store = store

    async def get(self, record_id: uuid.UUID) -> Optional[dict[str, Any]]:
        return await self.store.find_by_id(record_id)

    async def list_by_status(self, status: str) -> list[dict[str, Any]]:
        """Records with ``status`` (case-insensitive), newest first."""
        return await self.store.find(status=status, newest_first=True)

    async def list_by_applicant(self, svv_net_id: str) -> list[dict[str, Any]]:
        """Records submitted under ``svv_net_id``, newest first."""
        return await self.store.find_by_field("svv_net_id", svv_net_id, newest_first=True)
