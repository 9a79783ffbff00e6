"""PG2B: postgraduate paper presentation reimbursement."""

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
from formportal.services.attachment_validator import JPEG, PDF, QuotaRule, SingleFileRule


class PG2BFields(ReimbursementFields):
    student_name: Text
    year_of_admission: Text
    fees_paid: YesNo
    project_title: Text
    guide_name: Text
    co_guide_name: Optional[str] = None
    conference_date: date
    organization: Text
    publisher: Text
    paper_link: Optional[str] = None
    # Exactly four author slots on the paper form.
    authors: List[Text] = Field(..., min_length=4, max_length=4)
    bank_details: BankDetails


RULES = (
    SingleFileRule(role="paper_copy", accept_class=PDF),
    SingleFileRule(role="group_leader_signature", accept_class=JPEG),
    SingleFileRule(role="guide_signature", accept_class=JPEG),
    QuotaRule(role="additional_documents"),
)

DEFINITION = FormDefinition(
    form_type=FormType.PG2B,
    label="PG-2B: Postgraduate Paper Presentation",
    collection="pg2b_submissions",
    fields_model=PG2BFields,
    rules=RULES,
    reconciler=FieldReconciler(name_fields=("student_name",)),
)
