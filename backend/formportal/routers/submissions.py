"""Submission router: one multipart submit endpoint per form variant.

File parts are grouped by field name and scalar parts passed through as
strings; validation and storage happen in the submission service.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.datastructures import FormData, UploadFile

from formportal.deps import _safe_error, get_service
from formportal.errors import PortalError
from formportal.models.submission_models import SubmitResponse
from formportal.security import rate_limit_submit
from formportal.services.attachment_validator import IncomingFile
from formportal.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["submissions"])


def split_multipart(form: FormData) -> tuple[dict[str, Any], dict[str, list[IncomingFile]]]:
    """Separate scalar fields from files; file parts without a name are skipped."""
    fields: dict[str, Any] = {}
    files: dict[str, list[IncomingFile]] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if not value.filename:
                continue
            files.setdefault(key, []).append(IncomingFile.from_upload(value))
        else:
            fields[key] = value
    return fields, files


@router.post(
    "/forms/{form_type}/submit",
    response_model=SubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
@rate_limit_submit()
async def submit_form(
    request: Request,
    form_type: str,
    service: SubmissionService = Depends(get_service),
):
    """Accept one multipart submission for ``form_type``.

    Returns 201 with the new id, 400 naming the rejected field or role,
    404 for an unknown form type and 500 if storing failed.
    """
    definition = service.registry.get(form_type)
    form = await request.form()
    try:
        fields, files = split_multipart(form)
        form_id = await service.submit(definition.form_type, fields, files)
    except PortalError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500, detail=_safe_error(f"{definition.form_type.value} submission", e)
        ) from e
    finally:
        await form.close()

    return SubmitResponse(
        message=f"{definition.label} submitted successfully!",
        form_id=str(form_id),
    )
