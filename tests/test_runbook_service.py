"""Tests for runbook verification tracking."""

import uuid
from datetime import timedelta

import pytest

pytestmark = pytest.mark.unit

from docstor.exceptions import NotFoundError, ValidationError
from docstor.models.base import utcnow
from docstor.services.runbook_service import RunbookEntry, _as_utc


def _runbook(document_service, seed, path, owner=None):
    return document_service.create_document(
        tenant_id=seed.tenant_a,
        path=path,
        title=path.split("/")[-1],
        created_by=seed.editor,
        body="1. do the thing\n",
        doc_type="runbook",
        owner_user_id=owner,
    )


@pytest.fixture
def runbook(document_service, seed):
    return _runbook(document_service, seed, "runbooks/backup")


class TestEnsureStatus:
    """Tests for status initialization."""

    def test_creates_row_with_default_interval(self, runbook_service, seed, runbook):
        status = runbook_service.ensure_status(seed.tenant_a, runbook.id)
        assert status.document_id == runbook.id
        assert status.verification_interval_days == 90
        assert status.last_verified_at is None
        assert status.next_due_at is None

    def test_custom_interval(self, runbook_service, seed, runbook):
        status = runbook_service.ensure_status(seed.tenant_a, runbook.id, interval_days=7)
        assert status.verification_interval_days == 7

    def test_idempotent(self, runbook_service, seed, runbook):
        """A second call keeps the existing row and its interval."""
        runbook_service.ensure_status(seed.tenant_a, runbook.id, interval_days=14)
        again = runbook_service.ensure_status(seed.tenant_a, runbook.id, interval_days=30)
        assert again.verification_interval_days == 14

    def test_rejects_plain_document(self, runbook_service, seed, sample_document):
        with pytest.raises(ValidationError):
            runbook_service.ensure_status(seed.tenant_a, sample_document.id)

    def test_other_tenant(self, runbook_service, seed, runbook):
        with pytest.raises(NotFoundError):
            runbook_service.ensure_status(seed.tenant_b, runbook.id)

    def test_get_status_without_row(self, runbook_service, seed, runbook):
        with pytest.raises(NotFoundError):
            runbook_service.get_status(seed.tenant_a, runbook.id)


class TestVerify:
    """Tests for verify and update_interval."""

    def test_verify_sets_next_due(self, runbook_service, seed, runbook):
        runbook_service.ensure_status(seed.tenant_a, runbook.id, interval_days=30)
        before = utcnow()
        status = runbook_service.verify(seed.tenant_a, runbook.id, seed.reader)

        assert status.last_verified_by_user_id == seed.reader
        last = _as_utc(status.last_verified_at)
        assert last >= before - timedelta(seconds=1)
        assert _as_utc(status.next_due_at) - last == timedelta(days=30)

    def test_verify_without_status_uses_default(self, runbook_service, seed, runbook):
        status = runbook_service.verify(seed.tenant_a, runbook.id, seed.editor)
        assert status.verification_interval_days == 90
        assert _as_utc(status.next_due_at) - _as_utc(status.last_verified_at) == timedelta(days=90)

    def test_update_interval_recomputes_due_date(self, runbook_service, seed, runbook):
        runbook_service.verify(seed.tenant_a, runbook.id, seed.editor)
        status = runbook_service.update_interval(seed.tenant_a, runbook.id, 10)
        assert status.verification_interval_days == 10
        assert _as_utc(status.next_due_at) - _as_utc(status.last_verified_at) == timedelta(days=10)

    def test_update_interval_before_first_verification(self, runbook_service, seed, runbook):
        runbook_service.ensure_status(seed.tenant_a, runbook.id)
        status = runbook_service.update_interval(seed.tenant_a, runbook.id, 10)
        assert status.verification_interval_days == 10
        assert status.next_due_at is None

    @pytest.mark.parametrize("interval", [0, -5, "7", True])
    def test_update_interval_rejects_bad_values(self, runbook_service, seed, runbook, interval):
        runbook_service.ensure_status(seed.tenant_a, runbook.id)
        with pytest.raises(ValidationError):
            runbook_service.update_interval(seed.tenant_a, runbook.id, interval)

    def test_verify_plain_document(self, runbook_service, seed, sample_document):
        with pytest.raises(ValidationError):
            runbook_service.verify(seed.tenant_a, sample_document.id, seed.editor)

    def test_verify_missing_document(self, runbook_service, seed):
        with pytest.raises(NotFoundError):
            runbook_service.verify(seed.tenant_a, uuid.uuid4(), seed.editor)


class TestListRunbooks:
    """Tests for the runbook listings."""

    @pytest.fixture
    def runbooks(self, document_service, runbook_service, seed):
        """Three runbooks: overdue, verified and current, and unowned and never verified."""
        overdue = _runbook(document_service, seed, "runbooks/overdue", owner=seed.editor)
        fresh = _runbook(document_service, seed, "runbooks/fresh", owner=seed.admin)
        unowned = _runbook(document_service, seed, "runbooks/unowned")

        runbook_service.verify(seed.tenant_a, fresh.id, seed.admin)
        status = runbook_service.verify(seed.tenant_a, overdue.id, seed.editor)
        status.next_due_at = utcnow() - timedelta(days=1)
        runbook_service.session.commit()
        runbook_service.ensure_status(seed.tenant_a, unowned.id)
        return {"overdue": overdue.id, "fresh": fresh.id, "unowned": unowned.id}

    def test_all(self, runbook_service, seed, runbooks, sample_document):
        entries = runbook_service.list_runbooks(seed.tenant_a)
        assert {e.document.id for e in entries} == set(runbooks.values())
        assert all(isinstance(e, RunbookEntry) for e in entries)

    def test_overdue(self, runbook_service, seed, runbooks):
        entries = runbook_service.list_runbooks(seed.tenant_a, "overdue")
        assert [e.document.id for e in entries] == [runbooks["overdue"]]
        assert entries[0].is_overdue()

    def test_unowned(self, runbook_service, seed, runbooks):
        entries = runbook_service.list_runbooks(seed.tenant_a, "unowned")
        assert [e.document.id for e in entries] == [runbooks["unowned"]]
        assert not entries[0].is_overdue()

    def test_recent(self, runbook_service, seed, runbooks):
        entries = runbook_service.list_runbooks(seed.tenant_a, "recent")
        assert {e.document.id for e in entries} == {runbooks["overdue"], runbooks["fresh"]}

    def test_other_tenant_sees_nothing(self, runbook_service, seed, runbooks):
        assert runbook_service.list_runbooks(seed.tenant_b) == []

    def test_unknown_filter(self, runbook_service, seed):
        with pytest.raises(ValidationError):
            runbook_service.list_runbooks(seed.tenant_a, "stale")

    def test_never_tracked_runbook_is_listed(self, runbook_service, seed, runbook):
        entries = runbook_service.list_runbooks(seed.tenant_a)
        assert [e.document.id for e in entries] == [runbook.id]
        assert entries[0].status is None
