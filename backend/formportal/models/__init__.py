"""
Form Portal Models

Pydantic models for request/response serialization.
"""

from .submission_models import (
    AttachmentDescriptor,
    AttachmentSlot,
    NormalizedView,
    StatusUpdateRequest,
    SubmitResponse,
)

__all__ = [
    "AttachmentDescriptor",
    "AttachmentSlot",
    "NormalizedView",
    "StatusUpdateRequest",
    "SubmitResponse",
]
