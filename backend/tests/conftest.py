"""Shared fixtures for the Form Portal test suite."""

import os
import sys

import pytest
import pytest_asyncio

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from factories import MemoryBlobStore, make_record_stores  # noqa: E402
from formportal.forms import default_registry  # noqa: E402
from formportal.security import limiter  # noqa: E402
from formportal.services.submission_service import SubmissionService  # noqa: E402

# Rate limits are exercised by slowapi itself; keep them out of API tests.
limiter.enabled = False


@pytest.fixture
def registry():
    return default_registry()


@pytest_asyncio.fixture
async def blob_store():
    store = MemoryBlobStore()
    await store.open()
    yield store
    await store.close()


@pytest.fixture
def record_stores():
    return make_record_stores()


@pytest.fixture
def service(registry, blob_store, record_stores):
    return SubmissionService(registry, blob_store, record_stores, public_base_url="http://testserver")
