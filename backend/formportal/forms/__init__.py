"""
Form variant registry.

Each variant lives in its own module and exposes a ``DEFINITION``.  Adding a
variant means adding a module and one entry in ``DEFINITIONS``.
"""

from typing import Iterator

from formportal.errors import UnknownFormType
from formportal.forms import pg1, pg2a, pg2b, r1, ug1, ug2, ug3a, ug3b
from formportal.forms.base import (
    CommonFields,
    FieldReconciler,
    FormDefinition,
    FormType,
    SubmissionStatus,
)
from formportal.services.attachment_validator import Rule

DEFINITIONS: tuple[FormDefinition, ...] = (
    ug1.DEFINITION,
    ug2.DEFINITION,
    ug3a.DEFINITION,
    ug3b.DEFINITION,
    pg1.DEFINITION,
    pg2a.DEFINITION,
    pg2b.DEFINITION,
    r1.DEFINITION,
)


class FormRegistry:
    """Lookup of form definitions by type, iterated in declaration order."""

    def __init__(self, definitions: tuple[FormDefinition, ...] = DEFINITIONS) -> None:
        self._definitions: dict[FormType, FormDefinition] = {}
        for definition in definitions:
            if definition.form_type in self._definitions:
                raise ValueError(f"Duplicate form definition: {definition.form_type.value}")
            self._definitions[definition.form_type] = definition

    def get(self, form_type: "str | FormType") -> FormDefinition:
        try:
            return self._definitions[FormType.parse(form_type)]
        except KeyError:
            raise UnknownFormType(str(form_type)) from None

    def rules_for(self, form_type: "str | FormType") -> tuple[Rule, ...]:
        return self.get(form_type).rules

    def reconciler_for(self, form_type: "str | FormType") -> FieldReconciler:
        return self.get(form_type).reconciler

    def __iter__(self) -> Iterator[FormDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, form_type: object) -> bool:
        try:
            FormType.parse(form_type)  # type: ignore[arg-type]
        except UnknownFormType:
            return False
        return FormType.parse(form_type) in self._definitions  # type: ignore[arg-type]


def default_registry() -> FormRegistry:
    return FormRegistry(DEFINITIONS)


__all__ = [
    "DEFINITIONS",
    "CommonFields",
    "FieldReconciler",
    "FormDefinition",
    "FormRegistry",
    "FormType",
    "SubmissionStatus",
    "default_registry",
]
