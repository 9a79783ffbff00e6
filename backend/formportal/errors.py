"""Exception hierarchy shared by the storage, service and HTTP layers.

Every error carries the HTTP status it maps to and a message that is safe
to show to API consumers.  Internal causes are attached with ``raise ... from``
and logged, never echoed.
"""


class PortalError(Exception):
    """Base class for all expected portal failures."""

    status_code: int = 500
    default_message: str = "The request could not be completed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Submission errors
# ---------------------------------------------------------------------------


class ValidationError(PortalError):
    """A submitted field or attachment violates its variant's rules.

    ``role`` names the offending attachment role or scalar field and
    ``reason`` is the human-readable explanation.
    """

    status_code = 400

    def __init__(self, role: str, reason: str) -> None:
        self.role = role
        self.reason = reason
        super().__init__(reason)


class UploadError(PortalError):
    """Writing one of the submission's attachments to the blob store failed."""

    default_message = "Uploading the attached files failed. Please try again."


class PersistError(PortalError):
    """Saving the submission record failed after its attachments were stored."""

    default_message = "Saving the submission failed. Please try again."


class UnknownFormType(PortalError):
    status_code = 404

    def __init__(self, form_type: str) -> None:
        self.form_type = form_type
        super().__init__(f"Unknown form type '{form_type}'.")


class InvalidSubmissionId(PortalError):
    status_code = 400
    default_message = "Invalid application ID."


class SubmissionNotFound(PortalError):
    status_code = 404
    default_message = "Application not found."


class InvalidStatusTransition(PortalError):
    status_code = 409

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move an application from '{current}' to '{requested}'."
        )


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------


class StorageError(PortalError):
    default_message = "File storage is unavailable."


class BlobNotFoundError(StorageError):
    status_code = 404

    def __init__(self, blob_id: str) -> None:
        self.blob_id = blob_id
        super().__init__("File not found.")


class InvalidBlobId(StorageError):
    status_code = 400

    def __init__(self, blob_id: object) -> None:
        self.blob_id = blob_id
        super().__init__("Invalid file ID.")


class BlobStoreNotReady(StorageError):
    """Raised when a store is used before its connection has been confirmed."""

    status_code = 503
    default_message = "File storage is not initialized yet. Please retry shortly."
