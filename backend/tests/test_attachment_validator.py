"""
Unit Tests for Attachment and Field Validation

Tests the acceptance rules applied before anything is stored:
- SingleFileRule / MultiFileRule / QuotaRule / AnyOfRule
- validate_attachments: rule ordering, unexpected fields, aggregate quota
- validate_fields: pydantic field models and multipart decoding

Usage:
    cd backend && pytest tests/test_attachment_validator.py -v
"""

import itertools

import pytest

from factories import make_fields, make_file, make_jpeg, make_pdf, make_pdfs, make_png, make_zip
from formportal.errors import ValidationError
from formportal.forms import FormType, default_registry
from formportal.services.attachment_validator import (
    JPEG,
    PDF,
    ZIP,
    AnyOfRule,
    MiB,
    MultiFileRule,
    QuotaRule,
    SingleFileRule,
    decode_multipart_fields,
    normalize_content_type,
    validate_attachments,
    validate_fields,
)


def _rules(form_type: FormType):
    return default_registry().rules_for(form_type)


# ============================================================================
# FILE CLASSES
# ============================================================================

class TestFileClasses:
    """Tests for content type normalization and matching."""

    def test_jpg_alias_normalized(self):
        assert normalize_content_type("image/jpg") == "image/jpeg"

    def test_parameters_and_case_stripped(self):
        assert normalize_content_type("Application/PDF; charset=binary") == "application/pdf"

    def test_missing_content_type_is_empty(self):
        assert normalize_content_type(None) == ""

    def test_zip_variants_match(self):
        for content_type in ("application/zip", "application/x-zip-compressed"):
            assert ZIP.matches(make_file("a.zip", content_type))

    def test_extension_must_agree_with_class(self):
        assert not JPEG.matches(make_file("photo.png", "image/jpeg"))

    def test_file_without_extension_matches_on_type(self):
        assert PDF.matches(make_file("scan", "application/pdf"))


# ============================================================================
# SINGLE FILE RULE
# ============================================================================

class TestSingleFileRule:
    """Tests for single-file roles such as signatures."""

    rule = SingleFileRule(role="guide_signature", accept_class=JPEG, max_bytes=5 * MiB)

    def test_defaults_field_and_label_from_role(self):
        assert self.rule.field == "guideSignature"
        assert self.rule.label == "Guide Signature"

    def test_accepts_jpeg_within_limit(self):
        self.rule.check([make_jpeg(size=5 * MiB)])

    def test_rejects_oversized_signature(self):
        with pytest.raises(ValidationError) as exc:
            self.rule.check([make_jpeg("guide.jpg", size=6 * MiB)])
        assert exc.value.role == "guide_signature"
        assert "5MB" in exc.value.reason

    def test_rejects_wrong_type(self):
        with pytest.raises(ValidationError) as exc:
            self.rule.check([make_png("guide.png")])
        assert "JPEG" in exc.value.reason

    def test_rejects_missing_required_file(self):
        with pytest.raises(ValidationError, match="required"):
            self.rule.check([])

    def test_rejects_more_than_one_file(self):
        with pytest.raises(ValidationError, match="only one"):
            self.rule.check([make_jpeg("a.jpg"), make_jpeg("b.jpg")])

    def test_rejects_empty_file(self):
        with pytest.raises(ValidationError, match="empty"):
            self.rule.check([make_jpeg(size=0)])

    def test_optional_rule_accepts_nothing(self):
        rule = SingleFileRule(role="hod_signature", accept_class=JPEG, required=False)
        rule.check([])
        assert rule.accept([]) is None


# ============================================================================
# MULTI FILE RULE
# ============================================================================

class TestMultiFileRule:
    """Tests for bounded lists of one file class."""

    bills = MultiFileRule(role="bills", accept_class=PDF, max_count=5, min_count=1)

    def test_accepts_up_to_max_count(self):
        self.bills.check(make_pdfs(5))

    def test_rejects_above_max_count(self):
        with pytest.raises(ValidationError) as exc:
            self.bills.check(make_pdfs(6))
        assert exc.value.role == "bills"

    def test_enforces_min_count(self):
        with pytest.raises(ValidationError, match="required"):
            self.bills.check([])

    def test_accept_keeps_list_shape(self):
        files = make_pdfs(2)
        assert self.bills.accept(files) == files
        assert MultiFileRule(role="zips", accept_class=ZIP, max_count=2).accept([]) == []


# ============================================================================
# QUOTA RULE
# ============================================================================

class TestQuotaRule:
    """Tests for the 'up to five PDFs or one ZIP' policy."""

    rule = QuotaRule(role="uploaded_files")

    def test_nothing_is_accepted_when_optional(self):
        self.rule.check([])

    def test_five_pdfs_accepted(self):
        self.rule.check(make_pdfs(5))

    def test_six_pdfs_rejected_naming_role(self):
        with pytest.raises(ValidationError) as exc:
            self.rule.check(make_pdfs(6))
        assert exc.value.role == "uploaded_files"

    def test_single_zip_accepted(self):
        self.rule.check([make_zip(size=20 * MiB)])

    def test_zip_over_ceiling_rejected(self):
        with pytest.raises(ValidationError, match="25MB"):
            self.rule.check([make_zip(size=26 * MiB)])

    def test_pdf_over_ceiling_rejected(self):
        with pytest.raises(ValidationError, match="5MB"):
            self.rule.check([make_pdf(size=6 * MiB)])

    def test_zip_mixed_with_pdf_rejected(self):
        with pytest.raises(ValidationError, match="on its own"):
            self.rule.check([make_pdf("a.pdf"), make_zip("b.zip")])

    def test_two_zips_rejected(self):
        with pytest.raises(ValidationError):
            self.rule.check([make_zip("a.zip"), make_zip("b.zip")])

    def test_outcome_independent_of_order(self):
        files = [make_pdf("a.pdf", size=6 * MiB), make_zip("b.zip"), make_pdf("c.pdf")]
        reasons = set()
        for permutation in itertools.permutations(files):
            with pytest.raises(ValidationError) as exc:
                self.rule.check(list(permutation))
            reasons.add(exc.value.reason)
        assert len(reasons) == 1


# ============================================================================
# VALIDATE ATTACHMENTS
# ============================================================================

class TestValidateAttachments:
    """Tests for applying a variant's full rule set."""

    def test_accepted_map_has_every_role(self):
        accepted = validate_attachments(
            _rules(FormType.UG2),
            {
                "groupLeaderSignature": [make_jpeg("leader.jpg")],
                "guideSignature": [make_jpeg("guide.jpg")],
            },
        )
        assert set(accepted) == {"group_leader_signature", "guide_signature", "uploaded_files"}
        assert accepted["uploaded_files"] == []

    def test_ug2_six_pdfs_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_attachments(
                _rules(FormType.UG2),
                {
                    "groupLeaderSignature": [make_jpeg()],
                    "guideSignature": [make_jpeg()],
                    "uploadedFiles": make_pdfs(6),
                },
            )
        assert exc.value.role == "uploaded_files"

    def test_trailing_brackets_in_field_name_tolerated(self):
        accepted = validate_attachments(
            _rules(FormType.UG2),
            {
                "groupLeaderSignature": [make_jpeg()],
                "guideSignature": [make_jpeg()],
                "uploadedFiles[]": make_pdfs(2),
            },
        )
        assert len(accepted["uploaded_files"]) == 2

    def test_unexpected_field_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_attachments(
                _rules(FormType.UG2),
                {
                    "groupLeaderSignature": [make_jpeg()],
                    "guideSignature": [make_jpeg()],
                    "resume": [make_pdf()],
                },
            )
        assert exc.value.role == "resume"

    def test_first_violation_in_declaration_order(self):
        with pytest.raises(ValidationError) as exc:
            validate_attachments(_rules(FormType.UG2), {"uploadedFiles": make_pdfs(6)})
        assert exc.value.role == "group_leader_signature"

    def test_r1_requires_proof_document_or_pdfs(self):
        files = {
            "studentSignature": [make_jpeg()],
            "guideSignature": [make_jpeg()],
            "hodSignature": [make_jpeg()],
        }
        with pytest.raises(ValidationError) as exc:
            validate_attachments(_rules(FormType.R1), files)
        assert exc.value.role == "proof_document|pdfs"

        accepted = validate_attachments(_rules(FormType.R1), {**files, "pdfs": make_pdfs(2)})
        assert accepted["proof_document"] is None
        assert len(accepted["pdfs"]) == 2

    def test_r1_accepts_ten_megabyte_pdfs(self):
        accepted = validate_attachments(
            _rules(FormType.R1),
            {
                "proofDocument": [make_pdf(size=9 * MiB)],
                "studentSignature": [make_jpeg()],
                "guideSignature": [make_jpeg()],
                "hodSignature": [make_jpeg()],
            },
        )
        assert accepted["proof_document"].size == 9 * MiB

    def test_any_of_rule_label(self):
        rule = AnyOfRule(("proof_document", "pdfs"))
        assert rule.label == "Proof Document or Pdfs"


# ============================================================================
# VALIDATE FIELDS
# ============================================================================

class TestValidateFields:
    """Tests for scalar field validation through the variant models."""

    def test_indexed_keys_collected_in_order(self):
        decoded = decode_multipart_fields({"authors[1]": "B", "authors[0]": "A"})
        assert decoded["authors"] == ["A", "B"]

    def test_json_values_decoded(self):
        decoded = decode_multipart_fields({"students": '[{"name": "A"}]', "title": "[draft"})
        assert decoded["students"] == [{"name": "A"}]
        assert decoded["title"] == "[draft"

    def test_valid_fields_stored_snake_case(self):
        definition = default_registry().get(FormType.UG3B)
        data = validate_fields(definition.fields_model, make_fields(FormType.UG3B))
        assert data["project_title"] == "Edge Inference on Microcontrollers"
        assert data["authors"] == ["Asha Patel", "Dr. Rao"]
        assert data["bank_details"]["bank_name"] == "State Bank of India"
        assert data["conference_date"] == "2026-09-12"

    def test_missing_required_field_names_it(self):
        definition = default_registry().get(FormType.UG2)
        with pytest.raises(ValidationError) as exc:
            validate_fields(definition.fields_model, make_fields(FormType.UG2, projectTitle=None))
        assert exc.value.role in ("projectTitle", "project_title")

    def test_blank_required_field_rejected(self):
        definition = default_registry().get(FormType.UG2)
        with pytest.raises(ValidationError):
            validate_fields(definition.fields_model, make_fields(FormType.UG2, projectTitle="   "))

    def test_pg2b_requires_exactly_four_authors(self):
        definition = default_registry().get(FormType.PG2B)
        with pytest.raises(ValidationError) as exc:
            validate_fields(
                definition.fields_model,
                make_fields(FormType.PG2B, authors='["A", "B", "C"]'),
            )
        assert exc.value.role == "authors"

    def test_ug2_finance_details_required_when_funded(self):
        definition = default_registry().get(FormType.UG2)
        with pytest.raises(ValidationError, match="finance details"):
            validate_fields(
                definition.fields_model, make_fields(FormType.UG2, receivedFinance="true")
            )

    def test_previous_claim_requires_details(self):
        definition = default_registry().get(FormType.PG1)
        with pytest.raises(ValidationError, match="previous claim"):
            validate_fields(
                definition.fields_model, make_fields(FormType.PG1, previousClaim="Yes")
            )

    def test_pg1_date_range_checked(self):
        definition = default_registry().get(FormType.PG1)
        with pytest.raises(ValidationError, match="date to"):
            validate_fields(
                definition.fields_model, make_fields(FormType.PG1, dateTo="2026-07-01")
            )

    def test_r1_claim_needs_bank_details(self):
        definition = default_registry().get(FormType.R1)
        with pytest.raises(ValidationError, match="bank details"):
            validate_fields(definition.fields_model, make_fields(FormType.R1, bankDetails=None))
