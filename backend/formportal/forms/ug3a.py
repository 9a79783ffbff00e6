"""UG3A: undergraduate participation in an external event."""

from typing import List

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
from formportal.services.attachment_validator import IMAGE, PDF, QuotaRule, SingleFileRule


class UG3AFields(FormFields):
    organizing_institute: Text
    project_title: Text
    students: List[Student] = Field(..., min_length=1)
    expenses: List[Expense] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    bank_details: BankDetails


RULES = (
    SingleFileRule(role="image", accept_class=IMAGE),
    SingleFileRule(role="document", accept_class=PDF),
    QuotaRule(role="additional_documents"),
)

DEFINITION = FormDefinition(
    form_type=FormType.UG3A,
    label="UG-3A: Undergraduate Event Participation",
    collection="ug3a_submissions",
    fields_model=UG3AFields,
    rules=RULES,
)
