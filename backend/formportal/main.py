"""
Form Portal API - FastAPI backend for student form submissions and review
"""

import logging
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formportal import config
from formportal.database import create_all, create_engine_from_url, create_session_factory
from formportal.forms import FormType, default_registry
from formportal.record_store import RecordStore
from formportal.routers import applications, files, health, submissions
from formportal.security import setup_security
from formportal.services.submission_service import SubmissionService
from formportal.storage import BlobStore, create_blob_store

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    *,
    blob_store: Optional[BlobStore] = None,
    record_stores: Optional[Mapping[FormType, RecordStore]] = None,
) -> FastAPI:
    """Build the application.

    Without arguments the blob store comes from ``BLOB_BACKEND`` and the
    record stores from ``DATABASE_URL``.  Tests pass in-memory stores.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = blob_store or create_blob_store()
        await store.open()
        app.state.blob_store = store

        engine = None
        if record_stores is not None:
            app.state.submission_service = SubmissionService(
                default_registry(), store, record_stores
            )
        elif config.DATABASE_URL:
            engine = create_engine_from_url(config.DATABASE_URL)
            if config.DB_AUTO_CREATE:
                await create_all(engine)
            app.state.submission_service = SubmissionService.build(
                store, create_session_factory(engine)
            )
        else:
            logger.warning("DATABASE_URL is not set; submission endpoints are unavailable")
            app.state.submission_service = None

        try:
            yield
        finally:
            await store.close()
            if engine is not None:
                await engine.dispose()
            logger.info("Form Portal API shut down")

    app = FastAPI(
        title="Form Portal API",
        description="Submission and review of student funding and reimbursement forms",
        version="1.0.0",
        lifespan=lifespan,
    )

    # =========================================================================
    # Middleware
    # =========================================================================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )
    setup_security(app, config.ALLOWED_ORIGINS)

    # =========================================================================
    # Routers
    # =========================================================================
    app.include_router(health.router)
    app.include_router(submissions.router)
    app.include_router(applications.router)
    app.include_router(files.router)

    return app


app = create_app()
