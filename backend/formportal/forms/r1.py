"""R1: research paper / STTP support for research scholars."""

from datetime import date
from typing import List, Optional

from pydantic import Field, model_validator

from formportal.forms.base import (
    BankDetails,
    FieldReconciler,
    FormDefinition,
    FormFields,
    FormType,
    Text,
    YesNo,
)
from formportal.services.attachment_validator import (
    JPEG,
    PDF,
    ZIP,
    AnyOfRule,
    MiB,
    MultiFileRule,
    SingleFileRule,
)


class R1Fields(FormFields):
    guide_name: Text
    co_guide_name: Optional[str] = None
    employee_codes: Text
    student_name: Text
    year_of_admission: Text
    branch: Text
    roll_no: Text
    mobile_no: Text
    fees_paid: YesNo
    received_finance: bool = False
    finance_details: Optional[str] = None
    paper_title: Optional[str] = None
    paper_link: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    sttp_title: Optional[str] = None
    organizers: Optional[str] = None
    reason_for_attending: Optional[str] = None
    number_of_days: int = Field(0, ge=0)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    registration_fee: Optional[str] = None
    bank_details: Optional[BankDetails] = None
    amount_claimed: Optional[float] = Field(None, ge=0)
    final_amount_sanctioned: Optional[str] = None
    date_of_submission: Optional[date] = None
    remarks_by_hod: Optional[str] = None

    @model_validator(mode="after")
    def _bank_details_for_claims(self):
        if self.amount_claimed and self.bank_details is None:
            raise ValueError("bank details are required when an amount is claimed")
        return self


RULES = (
    SingleFileRule(
        role="proof_document", accept_class=PDF, max_bytes=10 * MiB, required=False
    ),
    SingleFileRule(role="student_signature", accept_class=JPEG),
    SingleFileRule(role="guide_signature", accept_class=JPEG),
    SingleFileRule(role="hod_signature", label="HOD Signature", accept_class=JPEG),
    SingleFileRule(
        role="sdc_chairperson_signature",
        label="SDC Chairperson Signature",
        accept_class=JPEG,
        required=False,
    ),
    MultiFileRule(role="pdfs", label="PDFs", accept_class=PDF, max_count=5, max_bytes=10 * MiB),
    SingleFileRule(role="zip_file", accept_class=ZIP, max_bytes=25 * MiB, required=False),
    AnyOfRule(("proof_document", "pdfs"), label="Proof Document or PDFs"),
)

DEFINITION = FormDefinition(
    form_type=FormType.R1,
    label="R-1: Research Support",
    collection="r1_submissions",
    fields_model=R1Fields,
    rules=RULES,
    reconciler=FieldReconciler(
        topic_fields=("paper_title", "sttp_title"),
        name_fields=("student_name",),
    ),
)
