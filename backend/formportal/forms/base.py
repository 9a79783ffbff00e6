"""Building blocks shared by the form variant definitions.

A variant is described by a :class:`FormDefinition`: a pydantic model for
its scalar fields, an ordered tuple of attachment rules and a
:class:`FieldReconciler` that maps its field names onto the common
reviewer fields (topic, name, branch, submitted).
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from formportal.errors import UnknownFormType
from formportal.services.attachment_validator import AttachmentRule, Rule

logger = logging.getLogger(__name__)


class FormType(str, Enum):
    UG1 = "UG1"
    UG2 = "UG2"
    UG3A = "UG3A"
    UG3B = "UG3B"
    PG1 = "PG1"
    PG2A = "PG2A"
    PG2B = "PG2B"
    R1 = "R1"

    @classmethod
    def parse(cls, value: "str | FormType") -> "FormType":
        """Accept ``UG1``, ``ug1``, ``UG_1`` and ``ug-1`` style tags."""
        if isinstance(value, cls):
            return value
        tag = str(value).strip().upper().replace("_", "").replace("-", "")
        try:
            return cls(tag)
        except ValueError:
            raise UnknownFormType(str(value)) from None


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ---------------------------------------------------------------------------
# Field models
# ---------------------------------------------------------------------------

Text = Annotated[str, Field(min_length=1, max_length=2000)]
YesNo = Literal["Yes", "No"]


class FormFields(BaseModel):
    """Base for variant field models.

    Multipart names are camelCase; stored keys are snake_case.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class BankDetails(FormFields):
    beneficiary: Text
    ifsc: Text
    bank_name: Text
    branch: Text
    account_type: Text
    account_number: Text


class Student(FormFields):
    name: Text
    branch: Text
    year: Optional[str] = None
    student_class: Optional[str] = Field(None, alias="class")
    div: Optional[str] = None
    roll_no: Optional[str] = None
    mobile_no: Optional[str] = None


class Guide(FormFields):
    name: Text
    employee_code: Text


class Expense(FormFields):
    amount: float = Field(..., gt=0)
    category: Optional[str] = None
    description: Optional[str] = None
    details: Optional[str] = None


class ReimbursementFields(FormFields):
    """Fields of the claim section shared by the reimbursement forms."""

    registration_fee: Text
    previous_claim: YesNo
    claim_date: Optional[date] = None
    amount_received: Optional[str] = None
    amount_sanctioned: Optional[str] = None

    @model_validator(mode="after")
    def _previous_claim_details(self):
        if self.previous_claim == "Yes" and (not self.claim_date or not self.amount_received):
            raise ValueError(
                "claim date and amount received are required when a previous claim was made"
            )
        return self


# ---------------------------------------------------------------------------
# Common field reconciliation
# ---------------------------------------------------------------------------

DEFAULT_TOPIC_FIELDS = ("project_title", "paper_title", "topic")
DEFAULT_NAME_FIELDS = (
    "students.0.name",
    "student_details.0.name",
    "authors.0",
    "student_name",
    "name",
)
DEFAULT_BRANCH_FIELDS = (
    "students.0.branch",
    "student_details.0.branch",
    "branch",
    "department",
)
SUBMITTED_FIELDS = ("created_at", "submitted_at", "date_of_submission")

UNTITLED = "Untitled Project"
NOT_AVAILABLE = "N/A"


def lookup(record: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path such as ``students.0.name``; None when absent."""
    value: Any = record
    for part in path.split("."):
        if isinstance(value, Mapping):
            value = value.get(part)
        elif isinstance(value, list) and part.isdigit():
            index = int(part)
            value = value[index] if index < len(value) else None
        else:
            return None
        if value is None:
            return None
    return value


def _text(value: Any) -> Optional[str]:
    if isinstance(value, bool) or isinstance(value, (Mapping, list)):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        try:
            moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass(frozen=True)
class CommonFields:
    topic: str
    name: str
    branch: str
    submitted: Optional[datetime]
    status: str


@dataclass(frozen=True)
class FieldReconciler:
    """Maps a variant's records onto the common reviewer fields.

    Each attribute holds the variant's leading candidates; the defaults
    above are always tried after them.
    """

    topic_fields: tuple[str, ...] = ()
    name_fields: tuple[str, ...] = ()
    branch_fields: tuple[str, ...] = ()

    @staticmethod
    def _first(record: Mapping[str, Any], paths: tuple[str, ...]) -> Optional[str]:
        for path in paths:
            value = _text(lookup(record, path))
            if value is not None:
                return value
        return None

    def reconcile(self, record: Mapping[str, Any]) -> CommonFields:
        submitted = None
        for path in SUBMITTED_FIELDS:
            submitted = _timestamp(record.get(path))
            if submitted is not None:
                break
        return CommonFields(
            topic=self._first(record, self.topic_fields + DEFAULT_TOPIC_FIELDS) or UNTITLED,
            name=self._first(record, self.name_fields + DEFAULT_NAME_FIELDS) or NOT_AVAILABLE,
            branch=self._first(record, self.branch_fields + DEFAULT_BRANCH_FIELDS)
            or NOT_AVAILABLE,
            submitted=submitted,
            status=_text(record.get("status")) or SubmissionStatus.PENDING.value,
        )


# ---------------------------------------------------------------------------
# Definition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FormDefinition:
    form_type: FormType
    label: str
    collection: str
    fields_model: type[FormFields]
    rules: tuple[Rule, ...]
    reconciler: FieldReconciler = FieldReconciler()

    @property
    def attachment_rules(self) -> tuple[AttachmentRule, ...]:
        return tuple(r for r in self.rules if isinstance(r, AttachmentRule))

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(r.role for r in self.attachment_rules)


__all__ = [
    "BankDetails",
    "CommonFields",
    "Expense",
    "FieldReconciler",
    "FormDefinition",
    "FormFields",
    "FormType",
    "Guide",
    "ReimbursementFields",
    "Student",
    "SubmissionStatus",
    "Text",
    "YesNo",
    "lookup",
]
