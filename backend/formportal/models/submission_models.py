"""Pydantic request/response models for the submission API."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AttachmentDescriptor(BaseModel):
    """A stored attachment resolved to something a reviewer can open."""

    id: str
    name: str
    content_type: str
    size: int
    url: str


# A single-file role resolves to a descriptor or None; a multi-file role to a
# list whose entries are descriptors or None.  None marks an unavailable file.
AttachmentSlot = Union[
    Optional[AttachmentDescriptor], List[Optional[AttachmentDescriptor]]
]


class NormalizedView(BaseModel):
    """Reviewer-facing projection of one submission of any form type."""

    id: str
    form_type: str
    form_label: str
    topic: str
    name: str
    branch: str
    submitted: Optional[datetime] = None
    status: str = "pending"
    form_data: Dict[str, Any] = Field(default_factory=dict)
    attachments: Dict[str, AttachmentSlot] = Field(default_factory=dict)


class SubmitResponse(BaseModel):
    """Response returned after a submission is stored."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    form_id: str = Field(..., alias="formId")


class StatusUpdateRequest(BaseModel):
    """Request body for a reviewer decision."""

    status: str = Field(..., description="Target status: approved or rejected")
    remarks: Optional[str] = Field(None, max_length=2000)
