"""UG3B: undergraduate paper publication reimbursement."""

from datetime import date
from typing import List, Optional

from pydantic import Field

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
    JPEG,
    PDF,
    ZIP,
    MiB,
    MultiFileRule,
    SingleFileRule,
)


class UG3BFields(ReimbursementFields):
    student_name: Text
    year_of_admission: Text
    fees_paid: YesNo
    project_title: Text
    guide_name: Text
    employee_code: Text
    conference_date: date
    organization: Text
    publisher: Text
    paper_link: Optional[str] = None
    authors: List[Text] = Field(..., min_length=1)
    bank_details: BankDetails


RULES = (
    SingleFileRule(role="paper_copy", accept_class=PDF),
    SingleFileRule(role="group_leader_signature", accept_class=JPEG),
    SingleFileRule(role="guide_signature", accept_class=JPEG),
    SingleFileRule(role="additional_document", accept_class=PDF, required=False),
    MultiFileRule(role="pdf_documents", accept_class=PDF, max_count=5),
    MultiFileRule(role="zip_files", accept_class=ZIP, max_count=2, max_bytes=25 * MiB),
)

DEFINITION = FormDefinition(
    form_type=FormType.UG3B,
    label="UG-3B: Undergraduate Paper Publication",
    collection="ug3b_submissions",
    fields_model=UG3BFields,
    rules=RULES,
    reconciler=FieldReconciler(name_fields=("student_name",)),
)
