"""Per-variant record stores.

A record store owns one collection (table) and hands records back as flat
dicts: the stored ``data`` fields merged with ``id``, ``status``,
``created_at`` and ``updated_at``.
"""

import abc
import logging
import uuid
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from formportal.models.db.submission import SubmissionRecordMixin

logger = logging.getLogger(__name__)

RECORD_COLUMNS = ("id", "status", "created_at", "updated_at")


class RecordStore(abc.ABC):
    """Storage for the records of one form variant."""

    @abc.abstractmethod
    async def insert(self, record: dict[str, Any]) -> uuid.UUID:
        """Persist ``record``; its ``id`` and ``status`` keys become columns."""

    @abc.abstractmethod
    async def find_by_id(self, record_id: uuid.UUID) -> Optional[dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def find(
        self, status: Optional[str] = None, newest_first: bool = True
    ) -> list[dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def update_status(
        self,
        record_id: uuid.UUID,
        status: str,
        extra: Optional[dict[str, Any]] = None,
        expected_status: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """Set the status (and merge ``extra`` into the data).

        With ``expected_status`` the change only applies while the stored
        status still matches it (case-insensitive), as one atomic step.
        Returns None if the record is absent or its status did not match.
        """

    @abc.abstractmethod
    async def find_by_field(
        self, key: str, value: str, newest_first: bool = True
    ) -> list[dict[str, Any]]:
        """Records whose stored field ``key`` equals ``value``."""


def flatten(row: SubmissionRecordMixin) -> dict[str, Any]:
    return {
        **(row.data or {}),
        "id": str(row.id),
        "status": row.status,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


class SqlRecordStore(RecordStore):
    """Record store backed by one SQLAlchemy model."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[SubmissionRecordMixin],
    ) -> None:
        self._session_factory = session_factory
        self._model = model

    @property
    def collection(self) -> str:
        return self._model.__tablename__

    async def insert(self, record: dict[str, Any]) -> uuid.UUID:
        data = {k: v for k, v in record.items() if k not in RECORD_COLUMNS}
        record_id = record.get("id") or uuid.uuid4()
        row = self._model(
            id=uuid.UUID(str(record_id)),
            status=record.get("status", "pending"),
            data=data,
        )
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
        logger.info("Inserted %s record %s", self.collection, row.id)
        return row.id

    async def find_by_id(self, record_id: uuid.UUID) -> Optional[dict[str, Any]]:
        async with self._session_factory() as session:
            row = await session.get(self._model, record_id)
            return flatten(row) if row is not None else None

    async def find(
        self, status: Optional[str] = None, newest_first: bool = True
    ) -> list[dict[str, Any]]:
        stmt = select(self._model)
        if status is not None:
            stmt = stmt.where(func.lower(self._model.status) == status.lower())
        order = self._model.created_at.desc() if newest_first else self._model.created_at.asc()
        stmt = stmt.order_by(order)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [flatten(row) for row in result.scalars().all()]

    async def update_status(
        self,
        record_id: uuid.UUID,
        status: str,
        extra: Optional[dict[str, Any]] = None,
        expected_status: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        stmt = update(self._model).where(self._model.id == record_id)
        if expected_status is not None:
            stmt = stmt.where(func.lower(self._model.status) == expected_status.lower())
        stmt = stmt.values(status=status).execution_options(synchronize_session=False)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                return None
            row = await session.get(self._model, record_id, populate_existing=True)
            if extra:
                # Reassign so the JSON column is flagged as modified.
                row.data = {**(row.data or {}), **extra}
            await session.commit()
            await session.refresh(row)
            logger.info("Updated %s record %s to %s", self.collection, record_id, status)
            return flatten(row)

    async def find_by_field(
        self, key: str, value: str, newest_first: bool = True
    ) -> list[dict[str, Any]]:
        order = self._model.created_at.desc() if newest_first else self._model.created_at.asc()
        stmt = (
            select(self._model)
            .where(self._model.data[key].as_string() == value)
            .order_by(order)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [flatten(row) for row in result.scalars().all()]
