"""
Integration Tests for SubmissionService

Runs the full submit / read / review flow over the in-memory stores:
- every form variant accepts its canonical submission
- rejected submissions store nothing
- reads search every variant, status lists are newest first per variant
- reviewer decisions follow the allowed status transitions

Usage:
    cd backend && pytest tests/test_submission_service.py -v
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from factories import (
    MemoryRecordStore,
    make_fields,
    make_files,
    make_jpeg,
    make_pdfs,
    make_record_stores,
)
from formportal.errors import (
    InvalidStatusTransition,
    InvalidSubmissionId,
    UnknownFormType,
    ValidationError,
)
from formportal.forms import FormType
from formportal.services.attachment_validator import MiB
from formportal.services.submission_service import SubmissionService

BASE_TIME = datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)


# ============================================================================
# SUBMIT
# ============================================================================

class TestSubmit:
    """Tests for SubmissionService.submit."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("form_type", list(FormType))
    async def test_every_variant_accepts_a_complete_submission(
        self, service, record_stores, blob_store, form_type
    ):
        record_id = await service.submit(
            form_type, make_fields(form_type), make_files(form_type)
        )

        record = await record_stores[form_type].find_by_id(record_id)
        assert record["status"] == "pending"
        expected = sum(len(files) for files in make_files(form_type).values())
        assert len(blob_store.blobs) == expected

    @pytest.mark.asyncio
    async def test_pg2b_view_lists_every_attachment(self, service):
        files = make_files(FormType.PG2B, additionalDocuments=make_pdfs(2, prefix="extra"))
        record_id = await service.submit("pg2b", make_fields(FormType.PG2B), files)

        view = await service.get_one(record_id)

        assert view.status == "pending"
        assert view.form_type == "PG2B"
        assert view.name == "Ravi Kumar"
        assert view.topic == "Federated Learning for Clinics"
        descriptors = [
            view.attachments["paper_copy"],
            view.attachments["group_leader_signature"],
            view.attachments["guide_signature"],
            *view.attachments["additional_documents"],
        ]
        assert len(descriptors) == 5
        assert all(d is not None for d in descriptors)
        assert [d.name for d in view.attachments["additional_documents"]] == [
            "extra0.pdf",
            "extra1.pdf",
        ]

    @pytest.mark.asyncio
    async def test_oversized_signature_stores_nothing(self, service, blob_store, record_stores):
        files = make_files(FormType.UG2, guideSignature=[make_jpeg("guide.jpg", size=6 * MiB)])

        with pytest.raises(ValidationError) as exc:
            await service.submit(FormType.UG2, make_fields(FormType.UG2), files)

        assert exc.value.role == "guide_signature"
        assert blob_store.put_calls == []
        assert record_stores[FormType.UG2].records == {}

    @pytest.mark.asyncio
    async def test_invalid_fields_checked_before_files(self, service, blob_store):
        with pytest.raises(ValidationError):
            await service.submit(
                FormType.UG3A, make_fields(FormType.UG3A, bankDetails="{}"), {}
            )
        assert blob_store.put_calls == []

    @pytest.mark.asyncio
    async def test_stored_fields_are_snake_case(self, service, record_stores):
        record_id = await service.submit(
            FormType.UG2, make_fields(FormType.UG2), make_files(FormType.UG2)
        )
        record = await record_stores[FormType.UG2].find_by_id(record_id)
        assert record["project_title"] == "Smart Irrigation"
        assert record["received_finance"] is False
        assert record["students"][0]["name"] == "Asha Patel"
        assert "projectTitle" not in record

    @pytest.mark.asyncio
    async def test_unknown_variant(self, service):
        with pytest.raises(UnknownFormType):
            await service.submit("UG7", {}, {})


# ============================================================================
# READS
# ============================================================================

class TestReads:
    """Tests for get_one and list_pending."""

    @pytest.mark.asyncio
    async def test_get_one_finds_record_in_any_variant(self, service, record_stores):
        record_id = record_stores[FormType.R1].seed(
            {"paper_title": "Thermal Fatigue", "student_name": "Meera Iyer"}
        )

        view = await service.get_one(str(record_id))

        assert view.form_type == "R1"
        assert view.topic == "Thermal Fatigue"

    @pytest.mark.asyncio
    async def test_get_one_unknown_id_is_none(self, service):
        assert await service.get_one(uuid.uuid4()) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad", ["", "123", "not-a-uuid"])
    async def test_get_one_malformed_id(self, service, bad):
        with pytest.raises(InvalidSubmissionId):
            await service.get_one(bad)

    @pytest.mark.asyncio
    async def test_list_pending_newest_first_within_variant(self, service, record_stores):
        ug2 = record_stores[FormType.UG2]
        older = ug2.seed({"project_title": "Older"}, created_at=BASE_TIME)
        newer = ug2.seed({"project_title": "Newer"}, created_at=BASE_TIME + timedelta(hours=1))
        ug2.seed({"project_title": "Done", "status": "approved"}, created_at=BASE_TIME)
        pg1 = record_stores[FormType.PG1].seed(
            {"sttp_title": "Signal Processing", "status": "Pending"}
        )

        views = await service.list_pending()

        ids = [v.id for v in views]
        assert set(ids) == {str(older), str(newer), str(pg1)}
        ug2_ids = [v.id for v in views if v.form_type == "UG2"]
        assert ug2_ids == [str(newer), str(older)]

    @pytest.mark.asyncio
    async def test_list_pending_empty(self, service):
        assert await service.list_pending() == []

    @pytest.mark.asyncio
    async def test_list_pending_failure_propagates(self, registry, blob_store):
        class BrokenStore(MemoryRecordStore):
            async def find(self, status=None, newest_first=True):
                raise RuntimeError("connection reset")

        service = SubmissionService(
            registry, blob_store, make_record_stores(PG2A=BrokenStore())
        )
        with pytest.raises(RuntimeError, match="connection reset"):
            await service.list_pending()

    @pytest.mark.asyncio
    async def test_list_by_status_per_decision(self, service, record_stores):
        approved = record_stores[FormType.UG3B].seed({"status": "approved"})
        rejected = record_stores[FormType.R1].seed({"status": "Rejected"})
        record_stores[FormType.PG1].seed({})

        assert [v.id for v in await service.list_by_status("approved")] == [str(approved)]
        assert [v.id for v in await service.list_by_status("REJECTED")] == [str(rejected)]
        assert len(await service.list_pending()) == 1

    @pytest.mark.asyncio
    async def test_list_by_applicant_spans_variants_and_statuses(self, service, record_stores):
        ug1 = record_stores[FormType.UG1].seed(
            {"svv_net_id": "asha.p@svv.edu.in", "status": "approved"}, created_at=BASE_TIME
        )
        ug2_old = record_stores[FormType.UG2].seed(
            {"svv_net_id": "asha.p@svv.edu.in"}, created_at=BASE_TIME
        )
        ug2_new = record_stores[FormType.UG2].seed(
            {"svv_net_id": "asha.p@svv.edu.in", "status": "rejected"},
            created_at=BASE_TIME + timedelta(days=1),
        )
        record_stores[FormType.UG2].seed({"svv_net_id": "ravi.k@svv.edu.in"})
        record_stores[FormType.PG1].seed({"student_name": "Asha Patel"})

        views = await service.list_by_applicant("asha.p@svv.edu.in")

        assert {v.id for v in views} == {str(ug1), str(ug2_old), str(ug2_new)}
        ug2_ids = [v.id for v in views if v.form_type == "UG2"]
        assert ug2_ids == [str(ug2_new), str(ug2_old)]
        assert await service.list_by_applicant("nobody@svv.edu.in") == []


# ============================================================================
# REVIEW
# ============================================================================

class TestReview:
    """Tests for reviewer status decisions."""

    @pytest.mark.asyncio
    async def test_approve_pending_submission(self, service, record_stores):
        record_id = record_stores[FormType.UG3A].seed({"project_title": "Robotics"})

        view = await service.review(record_id, "Approved", remarks="Budget verified")

        assert view.status == "approved"
        assert view.form_data["review_remarks"] == "Budget verified"
        stored = await record_stores[FormType.UG3A].find_by_id(record_id)
        assert stored["status"] == "approved"

    @pytest.mark.asyncio
    async def test_decided_submission_cannot_change(self, service, record_stores):
        record_id = record_stores[FormType.UG1].seed({"status": "rejected"})

        with pytest.raises(InvalidStatusTransition) as exc:
            await service.review(record_id, "approved")
        assert exc.value.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_decision_rejected(self, service, record_stores):
        record_id = record_stores[FormType.UG1].seed({})
        with pytest.raises(InvalidStatusTransition):
            await service.review(record_id, "archived")

    @pytest.mark.asyncio
    async def test_review_unknown_id_is_none(self, service):
        assert await service.review(uuid.uuid4(), "approved") is None

    @pytest.mark.asyncio
    async def test_concurrent_decisions_only_one_wins(self, registry, blob_store):
        class SlowReadStore(MemoryRecordStore):
            async def find_by_id(self, record_id):
                record = await super().find_by_id(record_id)
                await asyncio.sleep(0)
                return record

        store = SlowReadStore()
        service = SubmissionService(registry, blob_store, make_record_stores(PG2B=store))
        record_id = store.seed({"project_title": "Federated Learning"})

        results = await asyncio.gather(
            service.review(record_id, "approved"),
            service.review(record_id, "rejected"),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, InvalidStatusTransition)]
        winners = [r for r in results if not isinstance(r, BaseException)]
        assert len(failures) == 1
        assert len(winners) == 1
        assert store.records[record_id]["status"] == winners[0].status
