"""PG2A: postgraduate project expense claim."""

from datetime import date
from typing import List, Optional

from pydantic import Field

from formportal.forms.base import (
    BankDetails,
    Expense,
    FormDefinition,
    FormFields,
    FormType,
    Student,
    Text,
)
from formportal.services.attachment_validator import (
    DOCUMENT,
    JPEG,
    ZIP,
    MiB,
    MultiFileRule,
    SingleFileRule,
)


class PG2AFields(FormFields):
    organizing_institute: Text
    project_title: Text
    student_details: List[Student] = Field(..., min_length=1)
    expenses: List[Expense] = Field(..., min_length=1)
    bank_details: BankDetails
    amount_claimed: float = Field(..., ge=0)
    amount_recommended: Optional[float] = None
    comments: Optional[str] = None
    final_amount: Optional[float] = None
    remarks: Optional[str] = None
    submission_date: Optional[date] = Field(None, alias="date")


RULES = (
    MultiFileRule(role="bills", accept_class=DOCUMENT, max_count=5, min_count=1),
    MultiFileRule(role="zips", accept_class=ZIP, max_count=2, max_bytes=25 * MiB),
    SingleFileRule(role="student_signature", accept_class=JPEG),
    SingleFileRule(role="guide_signature", accept_class=JPEG),
    SingleFileRule(role="hod_signature", label="HOD Signature", accept_class=JPEG, required=False),
)

DEFINITION = FormDefinition(
    form_type=FormType.PG2A,
    label="PG-2A: Postgraduate Project Expenses",
    collection="pg2a_submissions",
    fields_model=PG2AFields,
    rules=RULES,
)
