"""Shared dependencies for the Form Portal API routers.

The blob store and submission service are created by the application
lifespan and kept on ``app.state``; routers reach them only through the
dependencies below.
"""

import logging

from fastapi import HTTPException, Request, status

from formportal.errors import BlobStoreNotReady
from formportal.services.submission_service import SubmissionService
from formportal.storage import BlobStore

logger = logging.getLogger(__name__)


def get_service(request: Request) -> SubmissionService:
    service = getattr(request.app.state, "submission_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up. Please retry shortly.",
        )
    return service


def get_blob_store(request: Request) -> BlobStore:
    store = getattr(request.app.state, "blob_store", None)
    if store is None:
        raise BlobStoreNotReady()
    return store


def _safe_error(operation: str, e: Exception) -> str:
    """Log the full exception but return a safe message without internal details."""
    logger.exception("Error during %s", operation)
    return f"{operation} failed. Please try again or contact support."
