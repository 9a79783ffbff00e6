"""Reviewer-facing application endpoints."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from formportal.deps import _safe_error, get_service
from formportal.errors import PortalError, SubmissionNotFound
from formportal.forms.base import SubmissionStatus
from formportal.models.submission_models import NormalizedView, StatusUpdateRequest
from formportal.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/applications", tags=["applications"])


@router.get("/pending", response_model=List[NormalizedView])
async def list_pending_applications(
    service: SubmissionService = Depends(get_service),
):
    """Pending applications of every form type."""
    try:
        return await service.list_pending()
    except PortalError:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=_safe_error("Listing applications", e)) from e


async def _list_by_status(service: SubmissionService, status: SubmissionStatus):
    try:
        return await service.list_by_status(status)
    except PortalError:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=_safe_error("Listing applications", e)) from e


@router.get("/accepted", response_model=List[NormalizedView])
async def list_accepted_applications(
    service: SubmissionService = Depends(get_service),
):
    """Approved applications of every form type."""
    return await _list_by_status(service, SubmissionStatus.APPROVED)


@router.get("/rejected", response_model=List[NormalizedView])
async def list_rejected_applications(
    service: SubmissionService = Depends(get_service),
):
    return await _list_by_status(service, SubmissionStatus.REJECTED)


@router.get("/all-by-svvnetid", response_model=List[NormalizedView])
async def list_applicant_applications(
    svv_net_id: str = Query(..., alias="svvNetId", min_length=1),
    service: SubmissionService = Depends(get_service),
):
    """Every application an applicant filed, whatever its status or form type."""
    try:
        return await service.list_by_applicant(svv_net_id)
    except PortalError:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=_safe_error("Listing applications", e)) from e


@router.get("/{application_id}", response_model=NormalizedView)
async def get_application(
    application_id: str,
    service: SubmissionService = Depends(get_service),
):
    """One application by id, whatever its form type."""
    try:
        view = await service.get_one(application_id)
    except PortalError:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=_safe_error("Fetching application", e)) from e
    if view is None:
        raise SubmissionNotFound()
    return view


@router.patch("/{application_id}/status", response_model=NormalizedView)
async def update_application_status(
    application_id: str,
    body: StatusUpdateRequest,
    service: SubmissionService = Depends(get_service),
):
    """Approve or reject a pending application."""
    try:
        view = await service.review(application_id, body.status, body.remarks)
    except PortalError:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=_safe_error("Updating application", e)) from e
    if view is None:
        raise SubmissionNotFound()
    return view
