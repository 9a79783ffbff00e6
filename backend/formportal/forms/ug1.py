"""UG1: undergraduate project grant application."""

from typing import List, Optional

from pydantic import Field

from formportal.forms.base import FieldReconciler, FormDefinition, FormFields, FormType, Text
from formportal.services.attachment_validator import JPEG, MiB, QuotaRule, SingleFileRule


class UG1Student(FormFields):
    student_name: Text
    branch: Text
    year_of_study: Optional[str] = None
    roll_number: Optional[str] = None


class UG1Fields(FormFields):
    svv_net_id: Text
    project_title: Text
    project_utility: Text
    project_description: Text
    finance: Optional[str] = None
    guide_name: Text
    employee_code: Text
    student_details: List[UG1Student] = Field(..., min_length=1, max_length=4)


RULES = (
    SingleFileRule(role="group_leader_signature", accept_class=JPEG, max_bytes=5 * MiB),
    SingleFileRule(role="guide_signature", accept_class=JPEG, max_bytes=5 * MiB),
    QuotaRule(role="pdf_files", label="Project Documents"),
)

DEFINITION = FormDefinition(
    form_type=FormType.UG1,
    label="UG-1: Undergraduate Project Grant",
    collection="ug1_submissions",
    fields_model=UG1Fields,
    rules=RULES,
    reconciler=FieldReconciler(
        name_fields=("student_details.0.student_name",),
        branch_fields=("student_details.0.branch",),
    ),
)
