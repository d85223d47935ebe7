"""Tests for document and revision operations."""

import uuid
from datetime import datetime, timezone

import pytest

pytestmark = pytest.mark.unit

from sqlalchemy import func, select

from docstor.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    PathConflictError,
    ValidationError,
)
from docstor.models.document import Document, Revision
from docstor.services.diff import LineType
from docstor.services.document_service import DocumentService, revert_message


class TestCreateDocument:
    """Tests for document creation."""

    def test_create_document_basic(self, document_service, seed):
        """A new document gets one revision and points at it."""
        doc = document_service.create_document(
            tenant_id=seed.tenant_a,
            path="guides/onboarding",
            title="Onboarding",
            created_by=seed.editor,
            body="# Welcome",
        )
        assert doc.id is not None
        assert doc.path == "guides/onboarding"
        assert doc.doc_type == "doc"
        assert doc.sensitivity == "public-internal"
        assert doc.meta == {}
        assert doc.current_revision_id is not None

        revision = doc.current_revision
        assert revision.body_markdown == "# Welcome"
        assert revision.base_revision_id is None
        assert revision.created_by == seed.editor
        assert document_service.count_revisions(seed.tenant_a, doc.id) == 1

    def test_path_is_normalized(self, document_service, seed):
        """Surrounding slashes are removed and the path is lowercased."""
        doc = document_service.create_document(
            tenant_id=seed.tenant_a,
            path="/Secret/Playbook/",
            title="Playbook",
            created_by=seed.editor,
        )
        assert doc.path == "secret/playbook"

    def test_duplicate_path_in_same_tenant(self, document_service, seed):
        """The same normalized path cannot be used twice in one tenant."""
        document_service.create_document(
            tenant_id=seed.tenant_a, path="Secret/Playbook", title="One", created_by=seed.editor
        )
        with pytest.raises(PathConflictError) as exc_info:
            document_service.create_document(
                tenant_id=seed.tenant_a, path="secret/playbook", title="Two", created_by=seed.editor
            )
        assert exc_info.value.path == "secret/playbook"

    def test_same_path_in_other_tenant(self, document_service, seed):
        """Paths are only unique within a tenant."""
        document_service.create_document(
            tenant_id=seed.tenant_a, path="Secret/Playbook", title="One", created_by=seed.editor
        )
        other = document_service.create_document(
            tenant_id=seed.tenant_b, path="Secret/Playbook", title="Two", created_by=seed.member_b
        )
        assert other.path == "secret/playbook"
        assert other.tenant_id == seed.tenant_b

    def test_create_with_client_owner_and_metadata(self, document_service, seed):
        """Client and owner display info resolve through the document."""
        doc = document_service.create_document(
            tenant_id=seed.tenant_a,
            path="clients/initech/network",
            title="Initech network",
            created_by=seed.editor,
            doc_type="runbook",
            sensitivity="restricted",
            owner_user_id=seed.editor,
            client_id=seed.client_a,
            metadata={"vlan": 20},
        )
        assert doc.doc_type == "runbook"
        assert doc.sensitivity == "restricted"
        assert doc.client.code == "INIT"
        assert doc.owner.email == "editor@acme.test"
        assert doc.meta == {"vlan": 20}

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"title": ""}, "title"),
            ({"title": "   "}, "title"),
            ({"title": "x" * 501}, "title"),
            ({"path": "///"}, "path"),
            ({"path": ""}, "path"),
            ({"doc_type": "wiki"}, "doc_type"),
            ({"sensitivity": "secret"}, "sensitivity"),
            ({"metadata": ["not", "a", "dict"]}, "metadata"),
        ],
    )
    def test_validation(self, document_service, seed, kwargs, field):
        """Invalid input is rejected before anything is written."""
        args = {
            "tenant_id": seed.tenant_a,
            "path": "valid/path",
            "title": "Valid",
            "created_by": seed.editor,
        }
        args.update(kwargs)
        with pytest.raises(ValidationError) as exc_info:
            document_service.create_document(**args)
        assert exc_info.value.field == field
        assert document_service.list_documents(seed.tenant_a) == []

    def test_invalid_tenant_id(self, document_service, seed):
        with pytest.raises(ValidationError):
            document_service.create_document(
                tenant_id="not-a-uuid", path="a", title="A", created_by=seed.editor
            )

    def test_accepts_string_ids(self, document_service, seed):
        """Identifiers may be passed in their string form."""
        doc = document_service.create_document(
            tenant_id=str(seed.tenant_a), path="a", title="A", created_by=str(seed.editor)
        )
        assert doc.tenant_id == seed.tenant_a


    def test_failed_create_leaves_nothing_behind(self, document_service, seed, monkeypatch):
        """A failure after the document row is inserted rolls the whole create back."""

        def fail(revision):
            raise RuntimeError("disk full")

        monkeypatch.setattr(document_service.revision_repo, "create", fail)
        with pytest.raises(DatabaseError):
            document_service.create_document(
                tenant_id=seed.tenant_a,
                path="half/written",
                title="Half written",
                created_by=seed.editor,
                body="never stored",
            )

        remaining = document_service.session.scalar(
            select(func.count(Document.id)).where(Document.path == "half/written")
        )
        assert remaining == 0
        with pytest.raises(NotFoundError):
            document_service.get_document_by_path(seed.tenant_a, "half/written")


class TestGetDocument:
    """Tests for document lookup."""

    def test_get_by_id(self, document_service, seed, sample_document):
        doc = document_service.get_document(seed.tenant_a, sample_document.id)
        assert doc.title == "Firewall"
        assert doc.current_revision.body_markdown == "line one\nline two\n"

    def test_get_by_path_normalizes(self, document_service, seed, sample_document):
        """Lookups by path use the same normalization as creation."""
        doc = document_service.get_document_by_path(seed.tenant_a, "/Network/Firewall/")
        assert doc.id == sample_document.id

    def test_other_tenant_sees_not_found(self, document_service, seed, sample_document):
        """Another tenant's document is indistinguishable from a missing one."""
        with pytest.raises(NotFoundError) as foreign:
            document_service.get_document(seed.tenant_b, sample_document.id)
        with pytest.raises(NotFoundError) as missing:
            document_service.get_document(seed.tenant_b, uuid.uuid4())
        assert type(foreign.value) is type(missing.value)
        assert foreign.value.resource_type == missing.value.resource_type == "Document"

    def test_get_by_path_other_tenant(self, document_service, seed, sample_document):
        with pytest.raises(NotFoundError):
            document_service.get_document_by_path(seed.tenant_b, "network/firewall")


class TestListDocuments:
    """Tests for listing documents."""

    def test_most_recently_updated_first(self, document_service, seed):
        """Saving a revision moves a document to the top."""
        first = document_service.create_document(
            tenant_id=seed.tenant_a, path="first", title="First", created_by=seed.editor
        )
        second = document_service.create_document(
            tenant_id=seed.tenant_a, path="second", title="Second", created_by=seed.editor
        )
        assert [d.id for d in document_service.list_documents(seed.tenant_a)] == [second.id, first.id]

        document_service.update_document(
            tenant_id=seed.tenant_a,
            document_id=first.id,
            body="changed",
            message=None,
            base_revision_id=first.current_revision_id,
            updated_by=seed.editor,
        )
        assert [d.id for d in document_service.list_documents(seed.tenant_a)] == [first.id, second.id]

    def test_filters(self, document_service, seed):
        """Client and type filters combine."""
        document_service.create_document(
            tenant_id=seed.tenant_a, path="plain", title="Plain", created_by=seed.editor
        )
        runbook = document_service.create_document(
            tenant_id=seed.tenant_a,
            path="client-runbook",
            title="Client runbook",
            created_by=seed.editor,
            doc_type="runbook",
            client_id=seed.client_a,
        )
        document_service.create_document(
            tenant_id=seed.tenant_a,
            path="client-doc",
            title="Client doc",
            created_by=seed.editor,
            client_id=seed.client_a,
        )
        assert len(document_service.list_documents(seed.tenant_a, client_id=seed.client_a)) == 2
        assert len(document_service.list_documents(seed.tenant_a, doc_type="runbook")) == 1
        both = document_service.list_documents(seed.tenant_a, client_id=seed.client_a, doc_type="runbook")
        assert [d.id for d in both] == [runbook.id]

    def test_tenant_scoped(self, document_service, seed, sample_document):
        assert document_service.list_documents(seed.tenant_b) == []


class TestUpdateDocument:
    """Tests for saving revisions with conflict detection."""

    def test_update_appends_revision(self, document_service, seed, sample_document):
        base = sample_document.current_revision_id
        doc = document_service.update_document(
            tenant_id=seed.tenant_a,
            document_id=sample_document.id,
            body="line one\nline 2\n",
            message="fix numbering",
            base_revision_id=base,
            updated_by=seed.admin,
        )
        assert doc.current_revision_id != base
        revision = doc.current_revision
        assert revision.body_markdown == "line one\nline 2\n"
        assert revision.base_revision_id == base
        assert revision.message == "fix numbering"
        assert revision.created_by == seed.admin
        assert document_service.count_revisions(seed.tenant_a, doc.id) == 2

    def test_history_is_append_only(self, document_service, seed, sample_document):
        """Earlier revisions keep their bodies and the count only grows."""
        first = sample_document.current_revision_id
        counts = [document_service.count_revisions(seed.tenant_a, sample_document.id)]
        base = first
        for body in ("v2", "v3", "v4"):
            doc = document_service.update_document(
                tenant_id=seed.tenant_a,
                document_id=sample_document.id,
                body=body,
                message=None,
                base_revision_id=base,
                updated_by=seed.editor,
            )
            base = doc.current_revision_id
            counts.append(document_service.count_revisions(seed.tenant_a, sample_document.id))

        assert counts == [1, 2, 3, 4]
        assert document_service.get_revision(seed.tenant_a, first).body_markdown == "line one\nline two\n"

    def test_stale_base_is_rejected(self, document_service, seed, sample_document):
        """A second edit based on the same revision conflicts and changes nothing."""
        base = sample_document.current_revision_id
        winner = document_service.update_document(
            tenant_id=seed.tenant_a,
            document_id=sample_document.id,
            body="winner",
            message=None,
            base_revision_id=base,
            updated_by=seed.editor,
        )
        winning_revision = winner.current_revision_id

        with pytest.raises(ConflictError) as exc_info:
            document_service.update_document(
                tenant_id=seed.tenant_a,
                document_id=sample_document.id,
                body="loser",
                message=None,
                base_revision_id=base,
                updated_by=seed.admin,
            )
        assert exc_info.value.base_revision_id == base
        assert exc_info.value.current_revision_id == winning_revision

        doc = document_service.get_document(seed.tenant_a, sample_document.id)
        assert doc.current_revision_id == winning_revision
        assert doc.current_revision.body_markdown == "winner"
        assert document_service.count_revisions(seed.tenant_a, doc.id) == 2

    def test_racing_sessions_exactly_one_wins(self, temp_db, seed):
        """Two editors holding the same base in separate sessions: one succeeds, one conflicts."""
        with temp_db.session() as setup:
            doc = DocumentService(setup).create_document(
                tenant_id=seed.tenant_a, path="race", title="Race", created_by=seed.editor, body="v1"
            )
            doc_id, base = doc.id, doc.current_revision_id

        with temp_db.session() as first, temp_db.session() as second:
            alice = DocumentService(first)
            bob = DocumentService(second)
            # Both load the document before either saves
            assert alice.get_document(seed.tenant_a, doc_id).current_revision_id == base
            assert bob.get_document(seed.tenant_a, doc_id).current_revision_id == base

            outcomes = []
            for service, body in ((alice, "alice"), (bob, "bob")):
                try:
                    service.update_document(
                        tenant_id=seed.tenant_a,
                        document_id=doc_id,
                        body=body,
                        message=None,
                        base_revision_id=base,
                        updated_by=seed.editor,
                    )
                    outcomes.append("ok")
                except ConflictError:
                    outcomes.append("conflict")

        assert sorted(outcomes) == ["conflict", "ok"]
        with temp_db.session() as check:
            service = DocumentService(check)
            assert service.count_revisions(seed.tenant_a, doc_id) == 2
            assert service.get_document(seed.tenant_a, doc_id).current_revision.body_markdown == "alice"

    def test_compare_and_swap_requires_expected_revision(self, document_service, seed, sample_document):
        """The pointer swap refuses to move when the expected revision is not current."""
        swapped = document_service.document_repo.swap_current_revision(
            seed.tenant_a,
            sample_document.id,
            uuid.uuid4(),
            uuid.uuid4(),
            datetime.now(),
        )
        assert swapped is False
        document_service.session.rollback()

    def test_failed_pointer_swap_rolls_back_revision(self, document_service, seed, sample_document, monkeypatch):
        """When the pointer cannot be moved, the inserted revision is discarded too."""
        base = sample_document.current_revision_id

        def fail(*args, **kwargs):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(document_service.document_repo, "swap_current_revision", fail)
        with pytest.raises(DatabaseError):
            document_service.update_document(
                tenant_id=seed.tenant_a,
                document_id=sample_document.id,
                body="lost edit",
                message=None,
                base_revision_id=base,
                updated_by=seed.editor,
            )

        assert document_service.count_revisions(seed.tenant_a, sample_document.id) == 1
        assert document_service.get_document(seed.tenant_a, sample_document.id).current_revision_id == base

    def test_update_other_tenant(self, document_service, seed, sample_document):
        with pytest.raises(NotFoundError):
            document_service.update_document(
                tenant_id=seed.tenant_b,
                document_id=sample_document.id,
                body="x",
                message=None,
                base_revision_id=sample_document.current_revision_id,
                updated_by=seed.member_b,
            )


class TestRevertDocument:
    """Tests for reverting to an earlier revision."""

    def test_revert_creates_new_revision(self, document_service, seed, sample_document):
        """R3 copies R1's body, is distinct from R1 and R2, and both stay unchanged."""
        r1 = sample_document.current_revision_id
        r2 = document_service.update_document(
            tenant_id=seed.tenant_a,
            document_id=sample_document.id,
            body="rewritten",
            message="rewrite",
            base_revision_id=r1,
            updated_by=seed.editor,
        ).current_revision_id

        doc = document_service.revert_document(
            tenant_id=seed.tenant_a,
            document_id=sample_document.id,
            target_revision_id=r1,
            reverted_by=seed.admin,
        )
        r3 = doc.current_revision_id
        assert r3 not in (r1, r2)

        revision = document_service.get_revision(seed.tenant_a, r3)
        original = document_service.get_revision(seed.tenant_a, r1)
        assert revision.body_markdown == original.body_markdown == "line one\nline two\n"
        assert revision.base_revision_id == r2
        assert revision.created_by == seed.admin
        assert revision.message.startswith("Reverted to revision from ")
        assert document_service.get_revision(seed.tenant_a, r2).body_markdown == "rewritten"
        assert document_service.count_revisions(seed.tenant_a, sample_document.id) == 3

    def test_revert_to_revision_of_other_document(self, document_service, seed, sample_document):
        """A revision from another document is not a valid target."""
        other = document_service.create_document(
            tenant_id=seed.tenant_a, path="other", title="Other", created_by=seed.editor
        )
        with pytest.raises(NotFoundError):
            document_service.revert_document(
                tenant_id=seed.tenant_a,
                document_id=sample_document.id,
                target_revision_id=other.current_revision_id,
                reverted_by=seed.editor,
            )
        assert document_service.count_revisions(seed.tenant_a, sample_document.id) == 1

    def test_revert_message_format(self):
        assert revert_message(datetime(2006, 1, 2, 15, 4)) == (
            "Reverted to revision from Jan 2, 2006 3:04 PM"
        )
        assert revert_message(datetime(2024, 11, 30, 0, 5)) == (
            "Reverted to revision from Nov 30, 2024 12:05 AM"
        )


class TestRenameDocument:
    """Tests for renaming."""

    def test_rename_changes_path_and_title_only(self, document_service, seed, sample_document):
        revision = sample_document.current_revision_id
        doc = document_service.rename_document(
            tenant_id=seed.tenant_a,
            document_id=sample_document.id,
            new_path="/Network/Edge-Firewall",
            new_title="Edge firewall",
            renamed_by=seed.editor,
        )
        assert doc.path == "network/edge-firewall"
        assert doc.title == "Edge firewall"
        assert doc.current_revision_id == revision
        assert document_service.count_revisions(seed.tenant_a, doc.id) == 1

    def test_rename_to_own_path(self, document_service, seed, sample_document):
        """Keeping the current path is not a conflict."""
        doc = document_service.rename_document(
            tenant_id=seed.tenant_a,
            document_id=sample_document.id,
            new_path="network/firewall",
            new_title="Firewall rules",
            renamed_by=seed.editor,
        )
        assert doc.title == "Firewall rules"

    def test_rename_to_taken_path(self, document_service, seed, sample_document):
        document_service.create_document(
            tenant_id=seed.tenant_a, path="taken", title="Taken", created_by=seed.editor
        )
        with pytest.raises(PathConflictError):
            document_service.rename_document(
                tenant_id=seed.tenant_a,
                document_id=sample_document.id,
                new_path="Taken",
                new_title="Firewall",
                renamed_by=seed.editor,
            )
        assert document_service.get_document(seed.tenant_a, sample_document.id).path == "network/firewall"


class TestDeleteDocument:
    """Tests for deletion."""

    def test_delete_removes_revisions(self, document_service, seed, sample_document):
        revision_id = sample_document.current_revision_id
        document_service.delete_document(seed.tenant_a, sample_document.id)

        with pytest.raises(NotFoundError):
            document_service.get_document(seed.tenant_a, sample_document.id)
        with pytest.raises(NotFoundError):
            document_service.get_revision(seed.tenant_a, revision_id)

    def test_delete_other_tenant(self, document_service, seed, sample_document):
        """Deleting across tenants fails and leaves the document in place."""
        with pytest.raises(NotFoundError):
            document_service.delete_document(seed.tenant_b, sample_document.id)
        assert document_service.get_document(seed.tenant_a, sample_document.id)


class TestRevisions:
    """Tests for revision listing and diffs."""

    def test_list_revisions_newest_first(self, document_service, seed, sample_document):
        first = sample_document.current_revision_id
        second = document_service.update_document(
            tenant_id=seed.tenant_a,
            document_id=sample_document.id,
            body="second",
            message=None,
            base_revision_id=first,
            updated_by=seed.editor,
        ).current_revision_id

        revisions = document_service.list_revisions(seed.tenant_a, sample_document.id)
        assert [r.id for r in revisions] == [second, first]

    def test_list_revisions_same_timestamp_is_deterministic(self, document_service, seed, sample_document):
        """Revisions sharing a created_at are ordered by id, newest timestamp still first."""
        stamp = datetime(2099, 1, 1, tzinfo=timezone.utc)
        ids = [uuid.uuid4() for _ in range(3)]
        document_service.session.add_all(
            [
                Revision(
                    id=revision_id,
                    tenant_id=seed.tenant_a,
                    document_id=sample_document.id,
                    body_markdown="same instant",
                    created_by=seed.editor,
                    created_at=stamp,
                )
                for revision_id in ids
            ]
        )
        document_service.session.commit()

        first = [r.id for r in document_service.list_revisions(seed.tenant_a, sample_document.id)]
        again = [r.id for r in document_service.list_revisions(seed.tenant_a, sample_document.id)]
        assert first == again
        assert first[:3] == sorted(ids, reverse=True)
        assert first[3] == sample_document.current_revision_id

    def test_list_revisions_other_tenant(self, document_service, seed, sample_document):
        with pytest.raises(NotFoundError):
            document_service.list_revisions(seed.tenant_b, sample_document.id)

    def test_get_revision_other_tenant(self, document_service, seed, sample_document):
        with pytest.raises(NotFoundError):
            document_service.get_revision(seed.tenant_b, sample_document.current_revision_id)

    def test_diff_revisions(self, document_service, seed, sample_document):
        old = sample_document.current_revision_id
        new = document_service.update_document(
            tenant_id=seed.tenant_a,
            document_id=sample_document.id,
            body="line one\nline two\nline three\n",
            message=None,
            base_revision_id=old,
            updated_by=seed.editor,
        ).current_revision_id

        diff = document_service.diff_revisions(seed.tenant_a, old, new)
        assert diff.additions == 1
        assert diff.deletions == 0
        inserted = [line for line in diff.lines if line.type == LineType.INSERT]
        assert inserted[0].content == "line three"

    def test_diff_same_revision_is_identical(self, document_service, seed, sample_document):
        rev = sample_document.current_revision_id
        assert document_service.diff_revisions(seed.tenant_a, rev, rev).is_identical


class TestSearchDocuments:
    """Tests for full-text search on the portable backend."""

    @pytest.fixture
    def corpus(self, document_service, seed):
        document_service.create_document(
            tenant_id=seed.tenant_a,
            path="ops/backup-policy",
            title="Backup policy",
            created_by=seed.editor,
            body="Nightly snapshots are kept for thirty days.",
        )
        document_service.create_document(
            tenant_id=seed.tenant_a,
            path="misc/notes",
            title="Misc",
            created_by=seed.editor,
            body="Remember the backup tapes. Offsite backup on Fridays.",
        )
        document_service.create_document(
            tenant_id=seed.tenant_a,
            path="printers",
            title="Printers",
            created_by=seed.editor,
            body="Replace toner quarterly.",
            doc_type="runbook",
        )
        document_service.create_document(
            tenant_id=seed.tenant_b,
            path="backup",
            title="Backup at Globex",
            created_by=seed.member_b,
            body="backup",
        )

    def test_matches_are_ranked_and_highlighted(self, document_service, seed, corpus):
        results = document_service.search_documents(seed.tenant_a, "backup")
        assert [r.document.title for r in results] == ["Backup policy", "Misc"]
        assert results[0].rank > results[1].rank
        assert "<mark>backup</mark>" in results[1].headline

    def test_search_is_tenant_scoped(self, document_service, seed, corpus):
        results = document_service.search_documents(seed.tenant_b, "backup")
        assert [r.document.title for r in results] == ["Backup at Globex"]

    def test_blank_query(self, document_service, seed, corpus):
        assert document_service.search_documents(seed.tenant_a, "   ") == []

    def test_filters(self, document_service, seed, corpus):
        results = document_service.search_documents(seed.tenant_a, "toner", doc_type="runbook")
        assert [r.document.title for r in results] == ["Printers"]
        assert document_service.search_documents(seed.tenant_a, "toner", doc_type="doc") == []

    def test_limit(self, document_service, seed, corpus):
        assert len(document_service.search_documents(seed.tenant_a, "backup", limit=1)) == 1

    def test_searches_current_revision_only(self, document_service, seed, sample_document):
        """Text that only exists in an older revision no longer matches."""
        document_service.update_document(
            tenant_id=seed.tenant_a,
            document_id=sample_document.id,
            body="completely different",
            message=None,
            base_revision_id=sample_document.current_revision_id,
            updated_by=seed.editor,
        )
        assert document_service.search_documents(seed.tenant_a, "line") == []
        assert len(document_service.search_documents(seed.tenant_a, "different")) == 1

    def test_like_wildcards_are_literal(self, document_service, seed, corpus):
        assert document_service.search_documents(seed.tenant_a, "%") == []
