"""Attachment retrieval: streams a stored blob by id."""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from formportal.deps import get_blob_store
from formportal.storage import BlobStore

logger = logging.getLogger(__name__)
router = APIRouter(tags=["files"])


@router.get("/file/{blob_id}")
async def download_file(blob_id: str, store: BlobStore = Depends(get_blob_store)):
    """Stream a blob inline with its stored content type and original name.

    Unknown ids give 404, malformed ids 400 and an unopened store 503.
    """
    download = await store.get(blob_id)
    info = download.info
    return StreamingResponse(
        download.chunks,
        media_type=info.content_type,
        headers={
            "Content-Disposition": f"inline; filename*=UTF-8''{quote(info.name)}",
            "Content-Length": str(info.size),
        },
    )
