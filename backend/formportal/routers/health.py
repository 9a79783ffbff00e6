"""Health-check router."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from formportal import config

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Health check"""
    return {"status": "ok", "message": "Form Portal API is running"}


@router.get("/api/v1/health")
async def health_check(request: Request):
    """Storage readiness, database configuration and registered form types."""
    store = getattr(request.app.state, "blob_store", None)
    service = getattr(request.app.state, "submission_service", None)

    degraded = []
    storage_ready = store is not None and store.ready
    if not storage_ready:
        degraded.append("storage")
    if service is None:
        degraded.append("database")

    return {
        "status": "healthy" if not degraded else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "storage": {
                "backend": type(store).__name__ if store is not None else None,
                "ready": storage_ready,
            },
            "database": "configured" if service is not None else "unavailable",
        },
        "form_types": (
            [definition.form_type.value for definition in service.registry]
            if service is not None
            else []
        ),
        "environment": config.ENVIRONMENT,
        "degraded": degraded or None,
    }
