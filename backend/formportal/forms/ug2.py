"""UG2: undergraduate project funding with a budget breakdown."""

from typing import List, Optional

from pydantic import Field, model_validator

from formportal.forms.base import (
    Expense,
    FormDefinition,
    FormFields,
    FormType,
    Guide,
    Student,
    Text,
)
from formportal.services.attachment_validator import JPEG, QuotaRule, SingleFileRule


class UG2Fields(FormFields):
    svv_net_id: Text
    project_title: Text
    project_description: Text
    utility: Text
    received_finance: bool
    finance_details: Optional[str] = None
    guide_details: List[Guide] = Field(..., min_length=1)
    students: List[Student] = Field(..., min_length=1)
    expenses: List[Expense] = Field(..., min_length=1)
    total_budget: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _finance_details_when_funded(self):
        if self.received_finance and not self.finance_details:
            raise ValueError("finance details are required when finance was received")
        return self


RULES = (
    SingleFileRule(role="group_leader_signature", accept_class=JPEG),
    SingleFileRule(role="guide_signature", accept_class=JPEG),
    QuotaRule(role="uploaded_files", label="Uploaded Files"),
)

DEFINITION = FormDefinition(
    form_type=FormType.UG2,
    label="UG-2: Undergraduate Project Funding",
    collection="ug2_submissions",
    fields_model=UG2Fields,
    rules=RULES,
)
