"""Blob storage for submission attachments.

Attachments are stored by a generated id together with their original file
name and content type.  Two backends share the :class:`BlobStore` contract:

- :class:`AzureBlobStore` keeps blobs in an Azure Blob Storage container
  (production).
- :class:`LocalBlobStore` keeps blobs on the local filesystem (development).

A store is constructed unopened and must be opened once its backing
connection is confirmed::

    store = create_blob_store()
    await store.open()

    blob_id = await store.put(stream, "application/pdf", "report.pdf")
    info = await store.stat(blob_id)
    await store.delete(blob_id)

Any call made before :meth:`BlobStore.open` completes raises
:class:`~formportal.errors.BlobStoreNotReady`.
"""

import asyncio
import io
import json
import logging
import os
import re
import tempfile
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote, unquote

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient, ContainerClient

from formportal import config
from formportal.errors import (
    BlobNotFoundError,
    BlobStoreNotReady,
    InvalidBlobId,
    StorageError,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"
_BLOB_ID_RE = re.compile(r"[0-9a-f]{32}")


@dataclass(frozen=True)
class BlobInfo:
    """Metadata stored alongside a blob's payload."""

    id: str
    name: str
    content_type: str
    size: int


@dataclass
class BlobDownload:
    """A blob opened for reading: its metadata plus a chunk iterator."""

    info: BlobInfo
    chunks: AsyncIterator[bytes]


def new_blob_id() -> str:
    return uuid.uuid4().hex


def validate_blob_id(blob_id: object) -> str:
    """Return ``blob_id`` if it is a well-formed id, else raise InvalidBlobId."""
    if not isinstance(blob_id, str) or not _BLOB_ID_RE.fullmatch(blob_id):
        raise InvalidBlobId(blob_id)
    return blob_id


class BlobStore(ABC):
    """Content store keyed by generated ids.

    Subclasses implement the ``_``-prefixed hooks; the public methods add the
    readiness and id checks every backend shares.
    """

    def __init__(self) -> None:
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    async def open(self) -> None:
        await self._connect()
        self._ready = True
        logger.info("%s ready", type(self).__name__)

    async def close(self) -> None:
        self._ready = False
        await self._disconnect()

    def _require_ready(self) -> None:
        if not self._ready:
            raise BlobStoreNotReady()

    async def put(
        self,
        stream: BinaryIO | bytes,
        content_type: str,
        original_name: str,
    ) -> str:
        """Store a payload and return its new id.

        Either the whole blob is retrievable afterwards or the call raises
        and nothing is.
        """
        self._require_ready()
        if isinstance(stream, (bytes, bytearray)):
            stream = io.BytesIO(stream)
        return await self._put(
            stream, content_type or DEFAULT_CONTENT_TYPE, original_name or "unnamed_file"
        )

    async def get(self, blob_id: str) -> BlobDownload:
        """Open a blob for streaming. Raises BlobNotFoundError if unknown."""
        self._require_ready()
        return await self._get(validate_blob_id(blob_id))

    async def stat(self, blob_id: str) -> BlobInfo:
        """Return a blob's metadata. Raises BlobNotFoundError if unknown."""
        self._require_ready()
        return await self._stat(validate_blob_id(blob_id))

    async def delete(self, blob_id: str) -> None:
        """Delete a blob. Deleting an unknown id is not an error."""
        self._require_ready()
        await self._delete(validate_blob_id(blob_id))

    async def _connect(self) -> None:
        pass

    async def _disconnect(self) -> None:
        pass

    @abstractmethod
    async def _put(self, stream: BinaryIO, content_type: str, original_name: str) -> str:
        ...

    @abstractmethod
    async def _get(self, blob_id: str) -> BlobDownload:
        ...

    @abstractmethod
    async def _stat(self, blob_id: str) -> BlobInfo:
        ...

    @abstractmethod
    async def _delete(self, blob_id: str) -> None:
        ...


# ---------------------------------------------------------------------------
# Azure Blob Storage
# ---------------------------------------------------------------------------


class AzureBlobStore(BlobStore):
    """Async wrapper around an Azure Blob Storage container.

    The original file name is kept in blob metadata (percent-encoded, since
    Azure metadata values must be ASCII) and the content type in the blob's
    content settings.
    """

    def __init__(
        self,
        connection_string: str | None,
        container: str = config.BLOB_CONTAINER,
        prefix: str = "submissions",
    ) -> None:
        super().__init__()
        self.connection_string = connection_string
        self.container = container
        self.prefix = prefix
        self._service: BlobServiceClient | None = None
        self._container: ContainerClient | None = None

    async def _connect(self) -> None:
        if not self.connection_string:
            raise StorageError(
                "AZURE_STORAGE_CONNECTION_STRING is not set. "
                "File upload/download requires Azure Blob Storage configuration."
            )
        self._service = BlobServiceClient.from_connection_string(self.connection_string)
        self._container = self._service.get_container_client(self.container)
        try:
            await self._container.create_container()
            logger.info("Created blob container %s", self.container)
        except ResourceExistsError:
            pass

    async def _disconnect(self) -> None:
        if self._service is not None:
            await self._service.close()
        self._service = None
        self._container = None

    def _blob_client(self, blob_id: str):
        return self._container.get_blob_client(f"{self.prefix}/{blob_id}")

    @staticmethod
    def _info(blob_id: str, properties) -> BlobInfo:
        metadata = properties.metadata or {}
        return BlobInfo(
            id=blob_id,
            name=unquote(metadata.get("original_name", blob_id)),
            content_type=properties.content_settings.content_type or DEFAULT_CONTENT_TYPE,
            size=properties.size,
        )

    async def _put(self, stream: BinaryIO, content_type: str, original_name: str) -> str:
        blob_id = new_blob_id()
        await self._blob_client(blob_id).upload_blob(
            stream,
            overwrite=False,
            content_settings=ContentSettings(content_type=content_type),
            metadata={"original_name": quote(original_name)},
        )
        logger.info("Uploaded %s (%s) as blob %s", original_name, content_type, blob_id)
        return blob_id

    async def _get(self, blob_id: str) -> BlobDownload:
        try:
            downloader = await self._blob_client(blob_id).download_blob()
        except ResourceNotFoundError as exc:
            raise BlobNotFoundError(blob_id) from exc
        return BlobDownload(
            info=self._info(blob_id, downloader.properties),
            chunks=downloader.chunks(),
        )

    async def _stat(self, blob_id: str) -> BlobInfo:
        try:
            properties = await self._blob_client(blob_id).get_blob_properties()
        except ResourceNotFoundError as exc:
            raise BlobNotFoundError(blob_id) from exc
        return self._info(blob_id, properties)

    async def _delete(self, blob_id: str) -> None:
        try:
            await self._blob_client(blob_id).delete_blob(delete_snapshots="include")
        except ResourceNotFoundError:
            logger.debug("Blob %s already absent", blob_id)
            return
        logger.info("Deleted blob %s", blob_id)


# ---------------------------------------------------------------------------
# Local filesystem
# ---------------------------------------------------------------------------


class LocalBlobStore(BlobStore):
    """Filesystem-backed store: ``<root>/<id[:2]>/<id>`` plus a JSON sidecar.

    Payloads are written to a temporary file and renamed into place, so a
    blob is visible only once it is complete.  Blocking I/O runs in worker
    threads.
    """

    def __init__(self, root: str | Path = config.LOCAL_BLOB_DIR) -> None:
        super().__init__()
        self.root = Path(root)

    async def _connect(self) -> None:
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)

    def _paths(self, blob_id: str) -> tuple[Path, Path]:
        data_path = self.root / blob_id[:2] / blob_id
        return data_path, data_path.with_suffix(".json")

    def _write(self, blob_id: str, stream: BinaryIO, content_type: str, original_name: str) -> None:
        data_path, meta_path = self._paths(blob_id)
        data_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_data = tempfile.mkstemp(dir=data_path.parent, prefix=".upload-")
        tmp_meta = f"{tmp_data}.json"
        try:
            size = 0
            with os.fdopen(fd, "wb") as out:
                while chunk := stream.read(CHUNK_SIZE):
                    out.write(chunk)
                    size += len(chunk)
            with open(tmp_meta, "w", encoding="utf-8") as meta:
                json.dump(
                    {"name": original_name, "content_type": content_type, "size": size},
                    meta,
                )
            os.replace(tmp_meta, meta_path)
            os.replace(tmp_data, data_path)
        except BaseException:
            for leftover in (tmp_data, tmp_meta):
                try:
                    os.unlink(leftover)
                except FileNotFoundError:
                    pass
            raise

    def _read_info(self, blob_id: str) -> BlobInfo:
        data_path, meta_path = self._paths(blob_id)
        if not data_path.is_file():
            raise BlobNotFoundError(blob_id)
        meta = json.loads(meta_path.read_text(encoding="utf-8"))
        return BlobInfo(
            id=blob_id,
            name=meta.get("name") or blob_id,
            content_type=meta.get("content_type") or DEFAULT_CONTENT_TYPE,
            size=meta.get("size", data_path.stat().st_size),
        )

    def _remove(self, blob_id: str) -> bool:
        data_path, meta_path = self._paths(blob_id)
        existed = data_path.exists()
        data_path.unlink(missing_ok=True)
        meta_path.unlink(missing_ok=True)
        return existed

    async def _put(self, stream: BinaryIO, content_type: str, original_name: str) -> str:
        blob_id = new_blob_id()
        await asyncio.to_thread(self._write, blob_id, stream, content_type, original_name)
        logger.info("Stored %s (%s) as blob %s", original_name, content_type, blob_id)
        return blob_id

    async def _get(self, blob_id: str) -> BlobDownload:
        info = await asyncio.to_thread(self._read_info, blob_id)
        data_path, _ = self._paths(blob_id)
        return BlobDownload(info=info, chunks=self._iter_chunks(data_path))

    async def _iter_chunks(self, path: Path) -> AsyncIterator[bytes]:
        handle = await asyncio.to_thread(open, path, "rb")
        try:
            while chunk := await asyncio.to_thread(handle.read, CHUNK_SIZE):
                yield chunk
        finally:
            handle.close()

    async def _stat(self, blob_id: str) -> BlobInfo:
        return await asyncio.to_thread(self._read_info, blob_id)

    async def _delete(self, blob_id: str) -> None:
        if await asyncio.to_thread(self._remove, blob_id):
            logger.info("Deleted blob %s", blob_id)


def create_blob_store(backend: str = config.BLOB_BACKEND) -> BlobStore:
    """Build the configured (unopened) store."""
    if backend == "local":
        return LocalBlobStore(config.LOCAL_BLOB_DIR)
    if backend == "azure":
        return AzureBlobStore(config.AZURE_STORAGE_CONNECTION_STRING)
    raise ValueError(f"Unknown BLOB_BACKEND '{backend}' (expected 'azure' or 'local')")
