"""End-to-end integration tests for Docstor workflows."""

import pytest

pytestmark = pytest.mark.integration

from sqlalchemy import func, select

from docstor.exceptions import ConflictError, NotFoundError
from docstor.models.document import Revision
from docstor.models.runbook import RunbookStatus
from docstor.services.checklist_service import ChecklistService
from docstor.services.document_service import DocumentService
from docstor.services.runbook_service import RunbookService
from docstor.services.template_service import TemplateService


class TestDocumentWorkflow:
    """Test complete document editing workflows."""

    def test_edit_diff_revert(self, temp_db, seed):
        """Create, edit twice, diff the edits, then revert to the first body."""
        with temp_db.session() as session:
            service = DocumentService(session)

            doc = service.create_document(
                tenant_id=seed.tenant_a,
                path="network/dns",
                title="DNS",
                created_by=seed.editor,
                body="ns1\nns2\n",
                client_id=seed.client_a,
            )
            first = doc.current_revision_id

            doc = service.update_document(
                seed.tenant_a, doc.id, "ns1\nns2\nns3\n", "add ns3", first, seed.editor
            )
            second = doc.current_revision_id
            doc = service.update_document(
                seed.tenant_a, doc.id, "ns1\nns3\n", "retire ns2", second, seed.admin
            )
            third = doc.current_revision_id

            diff = service.diff_revisions(seed.tenant_a, second, third)
            assert (diff.additions, diff.deletions) == (0, 1)

            doc = service.revert_document(seed.tenant_a, doc.id, first, seed.admin)
            assert doc.current_revision.body_markdown == "ns1\nns2\n"
            assert doc.current_revision.base_revision_id == third

            history = service.list_revisions(seed.tenant_a, doc.id)
            assert len(history) == 4
            assert service.count_revisions(seed.tenant_a, doc.id) == 4

            # Every past revision is still intact
            bodies = {r.id: r.body_markdown for r in history}
            assert bodies[second] == "ns1\nns2\nns3\n"
            assert bodies[third] == "ns1\nns3\n"

    def test_stale_editor_loses(self, temp_db, seed):
        """Two editors start from the same revision; only the first save lands."""
        with temp_db.session() as session:
            doc = DocumentService(session).create_document(
                tenant_id=seed.tenant_a, path="shared", title="Shared", created_by=seed.admin, body="v0"
            )
            doc_id, base = doc.id, doc.current_revision_id

        with temp_db.session() as session:
            DocumentService(session).update_document(seed.tenant_a, doc_id, "alice", None, base, seed.editor)

        with temp_db.session() as session:
            service = DocumentService(session)
            with pytest.raises(ConflictError) as exc_info:
                service.update_document(seed.tenant_a, doc_id, "bob", None, base, seed.admin)
            assert exc_info.value.base_revision_id == base
            assert service.get_document(seed.tenant_a, doc_id).current_revision.body_markdown == "alice"
            assert service.count_revisions(seed.tenant_a, doc_id) == 2

    def test_delete_document_cascades(self, temp_db, seed):
        """Revisions and runbook status go with the document."""
        with temp_db.session() as session:
            documents = DocumentService(session)
            runbooks = RunbookService(session)

            doc = documents.create_document(
                tenant_id=seed.tenant_a,
                path="runbooks/patching",
                title="Patching",
                created_by=seed.editor,
                body="apt upgrade\n",
                doc_type="runbook",
            )
            documents.update_document(
                seed.tenant_a, doc.id, "apt full-upgrade\n", None, doc.current_revision_id, seed.editor
            )
            runbooks.verify(seed.tenant_a, doc.id, seed.editor)
            doc_id = doc.id

            documents.delete_document(seed.tenant_a, doc_id)

            with pytest.raises(NotFoundError):
                documents.get_document(seed.tenant_a, doc_id)
            revisions = session.scalar(
                select(func.count(Revision.id)).where(Revision.document_id == doc_id)
            )
            statuses = session.scalar(
                select(func.count()).select_from(RunbookStatus).where(RunbookStatus.document_id == doc_id)
            )
            assert revisions == 0
            assert statuses == 0


class TestTenantIsolation:
    """Nothing crosses tenant boundaries."""

    def test_same_path_in_two_tenants(self, temp_db, seed):
        with temp_db.session() as session:
            service = DocumentService(session)
            a = service.create_document(
                tenant_id=seed.tenant_a, path="wiki/home", title="A home", created_by=seed.editor
            )
            b = service.create_document(
                tenant_id=seed.tenant_b, path="wiki/home", title="B home", created_by=seed.member_b
            )
            assert a.id != b.id
            assert service.get_document_by_path(seed.tenant_a, "wiki/home").title == "A home"
            assert service.get_document_by_path(seed.tenant_b, "wiki/home").title == "B home"

            with pytest.raises(NotFoundError):
                service.get_revision(seed.tenant_b, a.current_revision_id)
            with pytest.raises(NotFoundError):
                service.update_document(
                    seed.tenant_b, a.id, "hijack", None, a.current_revision_id, seed.member_b
                )

    def test_checklists_and_templates_are_scoped(self, temp_db, seed):
        with temp_db.session() as session:
            checklists = ChecklistService(session)
            templates = TemplateService(session)

            checklist = checklists.create_checklist(
                tenant_id=seed.tenant_a, name="Offboarding", created_by=seed.editor, items=["Revoke"]
            )
            instance = checklists.start_instance(seed.tenant_a, checklist.id, seed.editor)
            template = templates.create_template(
                tenant_id=seed.tenant_a, name="Page", created_by=seed.editor
            )

            assert checklists.list_checklists(seed.tenant_b) == []
            assert checklists.list_instances(seed.tenant_b) == []
            assert templates.list_templates(seed.tenant_b) == []
            with pytest.raises(NotFoundError):
                checklists.get_instance(seed.tenant_b, instance.id)
            with pytest.raises(NotFoundError):
                templates.get_template(seed.tenant_b, template.id)


class TestRunbookWorkflow:
    """Template to runbook to verification."""

    def test_template_runbook_verification(self, temp_db, seed):
        with temp_db.session() as session:
            templates = TemplateService(session)
            runbooks = RunbookService(session)
            checklists = ChecklistService(session)

            template = templates.create_template(
                tenant_id=seed.tenant_a,
                name="Failover",
                created_by=seed.admin,
                body="1. promote replica\n",
                template_type="runbook",
            )
            doc = templates.create_document_from_template(
                tenant_id=seed.tenant_a,
                template_id=template.id,
                path="runbooks/db-failover",
                title="DB failover",
                created_by=seed.editor,
                owner_user_id=seed.editor,
            )
            runbooks.ensure_status(seed.tenant_a, doc.id, interval_days=30)

            drill = checklists.create_checklist(
                tenant_id=seed.tenant_a,
                name="Failover drill",
                created_by=seed.editor,
                items=["Announce", "Promote", "Verify"],
            )
            run = checklists.start_instance(
                seed.tenant_a, drill.id, seed.editor, linked_document_id=doc.id
            )
            for item in drill.items:
                checklists.toggle_item(seed.tenant_a, run.id, item.id, seed.editor)
            assert checklists.get_instance(seed.tenant_a, run.id).status == "completed"

            status = runbooks.verify(seed.tenant_a, doc.id, seed.editor)
            assert status.verification_interval_days == 30

            recent = runbooks.list_runbooks(seed.tenant_a, "recent")
            assert [e.document.id for e in recent] == [doc.id]
            assert runbooks.list_runbooks(seed.tenant_a, "overdue") == []
            assert runbooks.list_runbooks(seed.tenant_a, "unowned") == []
            assert [
                i.id for i in checklists.list_instances_for_document(seed.tenant_a, doc.id)
            ] == [run.id]
