"""PG1: postgraduate STTP / workshop attendance reimbursement."""

from datetime import date
from typing import Optional

from pydantic import Field, model_validator

from formportal.forms.base import (
    BankDetails,
    FieldReconciler,
    FormDefinition,
    FormType,
    ReimbursementFields,
    Text,
    YesNo,
)
from formportal.services.attachment_validator import (
    DOCUMENT,
    JPEG,
    PDF,
    ZIP,
    MiB,
    MultiFileRule,
    SingleFileRule,
)


class PG1Fields(ReimbursementFields):
    student_name: Text
    year_of_admission: Text
    fees_paid: YesNo
    sttp_title: Text
    guide_name: Text
    co_guide_name: Optional[str] = None
    number_of_days: int = Field(..., ge=1)
    date_from: date
    date_to: date
    organization: Text
    reason: Text
    knowledge_utilization: Text
    bank_details: BankDetails

    @model_validator(mode="after")
    def _date_range(self):
        if self.date_to < self.date_from:
            raise ValueError("date to must not be before date from")
        return self


RULES = (
    SingleFileRule(role="receipt_copy", accept_class=DOCUMENT),
    SingleFileRule(role="guide_signature", accept_class=JPEG),
    SingleFileRule(role="additional_documents", accept_class=PDF, required=False),
    MultiFileRule(role="pdf_documents", accept_class=PDF, max_count=5),
    MultiFileRule(role="zip_files", accept_class=ZIP, max_count=2, max_bytes=25 * MiB),
)

DEFINITION = FormDefinition(
    form_type=FormType.PG1,
    label="PG-1: Postgraduate STTP Attendance",
    collection="pg1_submissions",
    fields_model=PG1Fields,
    rules=RULES,
    reconciler=FieldReconciler(topic_fields=("sttp_title",)),
)
