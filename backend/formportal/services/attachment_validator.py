"""Acceptance rules for submission attachments and scalar fields.

Each form variant declares an ordered tuple of rules, one per attachment
role.  :func:`validate_attachments` applies them in declaration order and
raises :class:`~formportal.errors.ValidationError` for the first violation,
so the submitter gets a single actionable message.  Nothing here touches
storage.

Rule kinds:

- :class:`SingleFileRule`: one file of a given class under a size ceiling.
- :class:`MultiFileRule`: a bounded list of files of one class.
- :class:`QuotaRule`: up to N PDFs *or* exactly one ZIP archive.
- :class:`AnyOfRule`: at least one of several roles must carry a file.
"""

import io
import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, BinaryIO, ClassVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from formportal.errors import ValidationError

logger = logging.getLogger(__name__)

MiB = 1024 * 1024

# ---------------------------------------------------------------------------
# Incoming files
# ---------------------------------------------------------------------------


@dataclass
class IncomingFile:
    """One uploaded file as received from the multipart request."""

    filename: str
    content_type: str
    size: int
    stream: BinaryIO

    @classmethod
    def from_upload(cls, upload) -> "IncomingFile":
        """Wrap a Starlette/FastAPI ``UploadFile``."""
        stream = upload.file
        size = upload.size
        if size is None:
            stream.seek(0, io.SEEK_END)
            size = stream.tell()
        stream.seek(0)
        return cls(
            filename=upload.filename or "unnamed_file",
            content_type=upload.content_type or "",
            size=size,
            stream=stream,
        )

    @classmethod
    def from_bytes(cls, filename: str, content_type: str, data: bytes) -> "IncomingFile":
        return cls(filename, content_type, len(data), io.BytesIO(data))

    @property
    def extension(self) -> str:
        return self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else ""

    @property
    def normalized_type(self) -> str:
        return normalize_content_type(self.content_type)


_MIME_TYPE_ALIASES: dict[str, str] = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
}


def normalize_content_type(value: str | None) -> str:
    """Lowercase, drop parameters (``; charset=...``) and resolve aliases."""
    base = (value or "").split(";", 1)[0].strip().lower()
    return _MIME_TYPE_ALIASES.get(base, base)


# ---------------------------------------------------------------------------
# File classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileClass:
    """A named set of accepted MIME types and file extensions."""

    name: str
    mime_types: frozenset[str]
    extensions: frozenset[str]

    def matches(self, upload: IncomingFile) -> bool:
        if upload.normalized_type not in self.mime_types:
            return False
        return not upload.extension or upload.extension in self.extensions

    def union(self, other: "FileClass", name: str) -> "FileClass":
        return FileClass(
            name, self.mime_types | other.mime_types, self.extensions | other.extensions
        )


JPEG = FileClass("JPEG image", frozenset({"image/jpeg"}), frozenset({"jpg", "jpeg"}))
PNG = FileClass("PNG image", frozenset({"image/png"}), frozenset({"png"}))
IMAGE = JPEG.union(PNG, "JPEG or PNG image")
PDF = FileClass("PDF", frozenset({"application/pdf"}), frozenset({"pdf"}))
ZIP = FileClass(
    "ZIP archive",
    frozenset({"application/zip", "application/x-zip-compressed", "application/x-zip"}),
    frozenset({"zip"}),
)
DOCUMENT = PDF.union(IMAGE, "PDF or image")


def format_size(num_bytes: int) -> str:
    if num_bytes % MiB == 0:
        return f"{num_bytes // MiB}MB"
    return f"{num_bytes / MiB:.1f}MB"


def _canonical_order(files: list[IncomingFile]) -> list[IncomingFile]:
    # Checking in a fixed order keeps the outcome, and the file named in the
    # error, independent of the order the client sent the parts in.
    return sorted(files, key=lambda f: (f.filename, f.size, f.normalized_type))


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class AttachmentRule:
    """Base for rules bound to one attachment role.

    ``field`` is the multipart field name (camelCase of ``role`` unless
    given) and ``label`` the name used in error messages.
    """

    multiple: ClassVar[bool] = False

    role: str
    field: str = ""
    label: str = ""
    required: bool = True

    def __post_init__(self) -> None:
        if not self.field:
            object.__setattr__(self, "field", to_camel(self.role))
        if not self.label:
            object.__setattr__(self, "label", self.role.replace("_", " ").title())

    def fail(self, reason: str) -> ValidationError:
        return ValidationError(role=self.role, reason=f"{self.label}: {reason}")

    def check_file(self, upload: IncomingFile, accept: FileClass, max_bytes: int) -> None:
        if upload.size <= 0:
            raise self.fail(f"'{upload.filename}' is empty.")
        if not accept.matches(upload):
            raise self.fail(
                f"'{upload.filename}' must be a {accept.name} "
                f"(got {upload.normalized_type or 'unknown type'})."
            )
        if upload.size > max_bytes:
            raise self.fail(
                f"'{upload.filename}' exceeds the {format_size(max_bytes)} limit."
            )

    def check(self, files: list[IncomingFile]) -> None:
        raise NotImplementedError

    def accept(self, files: list[IncomingFile]) -> IncomingFile | list[IncomingFile] | None:
        """Shape accepted files the way the record stores them."""
        if self.multiple:
            return list(files)
        return files[0] if files else None


@dataclass(frozen=True, kw_only=True)
class SingleFileRule(AttachmentRule):
    accept_class: FileClass
    max_bytes: int = 5 * MiB

    def check(self, files: list[IncomingFile]) -> None:
        if not files:
            if self.required:
                raise self.fail("a file is required.")
            return
        if len(files) > 1:
            raise self.fail(f"only one file is allowed ({len(files)} submitted).")
        self.check_file(files[0], self.accept_class, self.max_bytes)


@dataclass(frozen=True, kw_only=True)
class MultiFileRule(AttachmentRule):
    multiple: ClassVar[bool] = True

    accept_class: FileClass
    max_count: int
    max_bytes: int = 5 * MiB
    min_count: int = 0
    required: bool = False

    def check(self, files: list[IncomingFile]) -> None:
        minimum = max(self.min_count, 1 if self.required else 0)
        if len(files) < minimum:
            raise self.fail(
                "a file is required." if minimum == 1 else f"at least {minimum} files are required."
            )
        if len(files) > self.max_count:
            raise self.fail(
                f"at most {self.max_count} files are allowed ({len(files)} submitted)."
            )
        for upload in _canonical_order(files):
            self.check_file(upload, self.accept_class, self.max_bytes)


@dataclass(frozen=True, kw_only=True)
class QuotaRule(AttachmentRule):
    """Either up to ``pdf_max_count`` PDFs or a single ZIP archive."""

    multiple: ClassVar[bool] = True

    required: bool = False
    pdf_max_count: int = 5
    pdf_max_bytes: int = 5 * MiB
    zip_max_bytes: int = 25 * MiB

    def check(self, files: list[IncomingFile]) -> None:
        if not files:
            if self.required:
                raise self.fail("at least one file is required.")
            return
        if len(files) == 1 and ZIP.matches(files[0]):
            self.check_file(files[0], ZIP, self.zip_max_bytes)
            return
        if len(files) > self.pdf_max_count:
            raise self.fail(
                f"upload at most {self.pdf_max_count} PDFs or a single ZIP archive "
                f"({len(files)} files submitted)."
            )
        for upload in _canonical_order(files):
            if ZIP.matches(upload):
                raise self.fail(
                    f"a ZIP archive must be submitted on its own, not with other files "
                    f"('{upload.filename}')."
                )
            self.check_file(upload, PDF, self.pdf_max_bytes)


@dataclass(frozen=True)
class AnyOfRule:
    """Require at least one of several previously declared roles."""

    roles: tuple[str, ...]
    label: str = ""
    role: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", "|".join(self.roles))
        if not self.label:
            object.__setattr__(
                self, "label", " or ".join(r.replace("_", " ").title() for r in self.roles)
            )

    def check(self, accepted: Mapping[str, Any]) -> None:
        if not any(accepted.get(role) for role in self.roles):
            raise ValidationError(role=self.role, reason=f"{self.label}: a file is required.")


Rule = AttachmentRule | AnyOfRule


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def _field_name(key: str) -> str:
    return key[:-2] if key.endswith("[]") else key


def validate_attachments(
    rules: tuple[Rule, ...],
    files_by_field: Mapping[str, list[IncomingFile]],
) -> dict[str, IncomingFile | list[IncomingFile] | None]:
    """Apply ``rules`` to the uploaded files, grouped by multipart field.

    Returns a role-keyed map: single-file roles map to a file or None,
    multi-file roles to a (possibly empty) list.

    Raises:
        ValidationError: for the first violation in rule-declaration order.
    """
    grouped: dict[str, list[IncomingFile]] = {}
    for key, uploads in files_by_field.items():
        grouped.setdefault(_field_name(key), []).extend(uploads)

    accepted: dict[str, IncomingFile | list[IncomingFile] | None] = {}
    known_fields: set[str] = set()
    for rule in rules:
        if isinstance(rule, AnyOfRule):
            rule.check(accepted)
            continue
        known_fields.add(rule.field)
        files = grouped.get(rule.field, [])
        rule.check(files)
        accepted[rule.role] = rule.accept(files)

    unexpected = sorted(
        name for name, uploads in grouped.items() if uploads and name not in known_fields
    )
    if unexpected:
        raise ValidationError(
            role=unexpected[0],
            reason=f"Unexpected file field '{unexpected[0]}'.",
        )
    return accepted


_INDEXED_KEY_RE = re.compile(r"^(?P<name>[A-Za-z_][\w]*)\[(?P<index>\d+)\]$")


def _decode_value(value: Any) -> Any:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped[:1] in ("[", "{"):
            try:
                return json.loads(stripped)
            except ValueError:
                return value
    return value


def decode_multipart_fields(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Turn multipart scalar fields into plain Python values.

    JSON-encoded lists/objects (``students``, ``bankDetails``) are decoded and
    indexed keys (``authors[0]``, ``authors[1]``) are collected into lists.
    """
    decoded: dict[str, Any] = {}
    indexed: dict[str, list[tuple[int, Any]]] = {}
    for key, value in raw.items():
        match = _INDEXED_KEY_RE.match(key)
        if match:
            indexed.setdefault(match["name"], []).append((int(match["index"]), value))
            continue
        decoded[_field_name(key)] = _decode_value(value)
    for name, items in indexed.items():
        decoded.setdefault(name, [value for _, value in sorted(items, key=lambda item: item[0])])
    return decoded


def validate_fields(model: type[BaseModel], raw: Mapping[str, Any]) -> dict[str, Any]:
    """Validate scalar fields against a variant's model.

    Returns the JSON-ready snake_case field dict stored in the record.

    Raises:
        ValidationError: naming the first invalid field.
    """
    try:
        parsed = model.model_validate(decode_multipart_fields(raw))
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        location = ".".join(str(part) for part in error.get("loc", ())) or "fields"
        message = error.get("msg", "is invalid")
        raise ValidationError(role=location, reason=f"{location}: {message}") from None
    return parsed.model_dump(mode="json")
