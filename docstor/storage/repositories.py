"""Repository pattern implementation for data access layer.

Every repository method that reads or writes tenant-owned rows takes the
tenant id as a required argument and builds its statement through
``scoped_select`` (or an equivalent ``tenant_id ==`` predicate for UPDATE and
DELETE), so an unscoped lookup cannot be expressed through this module.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session

from docstor.models.checklist import (
    Checklist,
    ChecklistInstance,
    ChecklistInstanceItem,
    ChecklistItem,
)
from docstor.models.document import DocType, Document, Revision
from docstor.models.runbook import RunbookStatus
from docstor.models.template import Template
from docstor.models.tenant import Membership
from docstor.storage import text_search


def scoped_select(model: Any, tenant_id: uuid.UUID):
    """SELECT over ``model`` restricted to one tenant.

    Raises:
        ValueError: If no tenant is given or the model has no tenant column.
    """
    if tenant_id is None:
        raise ValueError(f"{model.__name__} lookups require a tenant_id")
    if not hasattr(model, "tenant_id"):
        raise ValueError(f"{model.__name__} has no tenant_id column")
    return select(model).where(model.tenant_id == tenant_id)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class DocumentRepository:
    """Repository for document operations."""

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    def create(self, document: Document) -> Document:
        """Create a new document."""
        self.session.add(document)
        self.session.flush()
        return document

    def get_by_id(self, tenant_id: uuid.UUID, document_id: uuid.UUID) -> Optional[Document]:
        """Get document by ID within a tenant."""
        stmt = scoped_select(Document, tenant_id).where(Document.id == document_id)
        return self.session.scalar(stmt)

    def get_by_path(self, tenant_id: uuid.UUID, path: str) -> Optional[Document]:
        """Get document by normalized path within a tenant."""
        stmt = scoped_select(Document, tenant_id).where(Document.path == path)
        return self.session.scalar(stmt)

    def get_for_update(self, tenant_id: uuid.UUID, document_id: uuid.UUID) -> Optional[Document]:
        """Load and row-lock a document, refreshing any cached copy."""
        stmt = (
            scoped_select(Document, tenant_id)
            .where(Document.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.scalar(stmt)

    def path_exists(
        self, tenant_id: uuid.UUID, path: str, exclude_id: uuid.UUID | None = None
    ) -> bool:
        """Check whether a path is taken in the tenant, optionally ignoring one document."""
        stmt = select(func.count(Document.id)).where(
            Document.tenant_id == tenant_id, Document.path == path
        )
        if exclude_id is not None:
            stmt = stmt.where(Document.id != exclude_id)
        return (self.session.scalar(stmt) or 0) > 0

    def list(
        self,
        tenant_id: uuid.UUID,
        client_id: uuid.UUID | None = None,
        doc_type: str | None = None,
    ) -> list[Document]:
        """List documents, most recently updated first. Filters are ANDed."""
        stmt = scoped_select(Document, tenant_id)
        if client_id is not None:
            stmt = stmt.where(Document.client_id == client_id)
        if doc_type is not None:
            stmt = stmt.where(Document.doc_type == doc_type)
        stmt = stmt.order_by(Document.updated_at.desc())
        return list(self.session.scalars(stmt))

    def swap_current_revision(
        self,
        tenant_id: uuid.UUID,
        document_id: uuid.UUID,
        expected_revision_id: uuid.UUID | None,
        new_revision_id: uuid.UUID,
        updated_at: datetime,
    ) -> bool:
        """Repoint the document only if its current revision is still ``expected_revision_id``.

        Returns:
            True if exactly one row was updated
        """
        stmt = (
            update(Document)
            .where(
                Document.tenant_id == tenant_id,
                Document.id == document_id,
                Document.current_revision_id == expected_revision_id,
            )
            .values(current_revision_id=new_revision_id, updated_at=updated_at)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def update(self, document: Document) -> Document:
        """Flush pending attribute changes on a loaded document."""
        self.session.flush()
        return document

    def delete(self, tenant_id: uuid.UUID, document_id: uuid.UUID) -> bool:
        """Delete a document; revisions and runbook status go with it via ON DELETE CASCADE."""
        stmt = (
            delete(Document)
            .where(Document.tenant_id == tenant_id, Document.id == document_id)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount > 0

    def search(
        self,
        tenant_id: uuid.UUID,
        query: str,
        limit: int,
        client_id: uuid.UUID | None = None,
        doc_type: str | None = None,
        owner_user_id: uuid.UUID | None = None,
        use_postgresql: bool = False,
    ) -> list[tuple[Document, float, str]]:
        """
        Full-text search over title, path and current revision body.

        Uses PostgreSQL tsvector/tsquery ranking and ts_headline when available.
        Falls back to LIKE matching plus Python ranking elsewhere.

        Returns:
            (document, rank, headline) tuples ordered by rank then recency
        """
        conditions = [Document.tenant_id == tenant_id]
        if client_id is not None:
            conditions.append(Document.client_id == client_id)
        if doc_type is not None:
            conditions.append(Document.doc_type == doc_type)
        if owner_user_id is not None:
            conditions.append(Document.owner_user_id == owner_user_id)

        body = func.coalesce(Revision.body_markdown, "")

        if use_postgresql:
            tsquery = func.plainto_tsquery("english", query)
            search_vector = (
                func.setweight(func.to_tsvector("english", Document.title), "A")
                .op("||")(func.setweight(func.to_tsvector("english", Document.path), "B"))
                .op("||")(func.setweight(func.to_tsvector("english", body), "C"))
            )
            relevance = func.ts_rank(search_vector, tsquery)
            snippet = func.ts_headline(
                "english",
                body,
                tsquery,
                f"StartSel={text_search.HIGHLIGHT_START}, StopSel={text_search.HIGHLIGHT_STOP}, "
                "MaxWords=35, MinWords=15, MaxFragments=2",
            )
            stmt = (
                select(Document, relevance.label("rank"), snippet.label("headline"))
                .outerjoin(
                    Revision,
                    and_(
                        Revision.id == Document.current_revision_id,
                        Revision.tenant_id == Document.tenant_id,
                    ),
                )
                .where(and_(*conditions), search_vector.op("@@")(tsquery))
                .order_by(relevance.desc(), Document.updated_at.desc())
                .limit(limit)
            )
            return [(doc, float(rank), headline or "") for doc, rank, headline in self.session.execute(stmt)]

        # SQLite fallback: every term must appear in at least one field
        terms = text_search.query_terms(query)
        if not terms:
            return []
        for term in terms:
            pattern = _like_pattern(term)
            conditions.append(
                or_(
                    Document.title.ilike(pattern, escape="\\"),
                    Document.path.ilike(pattern, escape="\\"),
                    body.ilike(pattern, escape="\\"),
                )
            )

        stmt = (
            select(Document, body.label("body"))
            .outerjoin(
                Revision,
                and_(
                    Revision.id == Document.current_revision_id,
                    Revision.tenant_id == Document.tenant_id,
                ),
            )
            .where(and_(*conditions))
        )
        scored = [
            (
                doc,
                text_search.rank(terms, doc.title, doc.path, body_text),
                text_search.headline(body_text, terms),
            )
            for doc, body_text in self.session.execute(stmt)
        ]
        scored.sort(key=lambda row: (row[1], row[0].updated_at), reverse=True)
        return scored[:limit]


class RevisionRepository:
    """Repository for revision operations. Revisions are insert-only."""

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    def create(self, revision: Revision) -> Revision:
        """Create a new revision."""
        self.session.add(revision)
        self.session.flush()
        return revision

    def get_by_id(self, tenant_id: uuid.UUID, revision_id: uuid.UUID) -> Optional[Revision]:
        """Get revision by ID within a tenant."""
        stmt = scoped_select(Revision, tenant_id).where(Revision.id == revision_id)
        return self.session.scalar(stmt)

    def list_by_document(self, tenant_id: uuid.UUID, document_id: uuid.UUID) -> list[Revision]:
        """All revisions of a document, newest first; ties on created_at fall back to id."""
        stmt = (
            scoped_select(Revision, tenant_id)
            .where(Revision.document_id == document_id)
            .order_by(Revision.created_at.desc(), Revision.id.desc())
        )
        return list(self.session.scalars(stmt))

    def count_by_document(self, tenant_id: uuid.UUID, document_id: uuid.UUID) -> int:
        """Count revisions of a document."""
        stmt = select(func.count(Revision.id)).where(
            Revision.tenant_id == tenant_id, Revision.document_id == document_id
        )
        return self.session.scalar(stmt) or 0


class MembershipRepository:
    """Read access to tenant memberships, used to resolve the acting role."""

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    def create(self, membership: Membership) -> Membership:
        """Create a new membership."""
        self.session.add(membership)
        self.session.flush()
        return membership

    def get(self, tenant_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Membership]:
        """Get a user's membership in a tenant."""
        stmt = scoped_select(Membership, tenant_id).where(Membership.user_id == user_id)
        return self.session.scalar(stmt)

    def get_role(self, tenant_id: uuid.UUID, user_id: uuid.UUID) -> Optional[str]:
        """Get a user's role in a tenant, or None when they are not a member."""
        membership = self.get(tenant_id, user_id)
        return membership.role if membership is not None else None


class ChecklistRepository:
    """Repository for checklist definitions, instances and instance items."""

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    # Definitions

    def create(self, checklist: Checklist) -> Checklist:
        """Create a new checklist."""
        self.session.add(checklist)
        self.session.flush()
        return checklist

    def add_item(self, item: ChecklistItem) -> ChecklistItem:
        """Add an item to a checklist."""
        self.session.add(item)
        self.session.flush()
        return item

    def get_by_id(self, tenant_id: uuid.UUID, checklist_id: uuid.UUID) -> Optional[Checklist]:
        """Get checklist by ID within a tenant."""
        stmt = scoped_select(Checklist, tenant_id).where(Checklist.id == checklist_id)
        return self.session.scalar(stmt)

    def list(self, tenant_id: uuid.UUID) -> list[Checklist]:
        """List checklists by name."""
        stmt = scoped_select(Checklist, tenant_id).order_by(Checklist.name.asc())
        return list(self.session.scalars(stmt))

    def list_items(self, tenant_id: uuid.UUID, checklist_id: uuid.UUID) -> list[ChecklistItem]:
        """Items of a checklist in position order."""
        stmt = (
            scoped_select(ChecklistItem, tenant_id)
            .where(ChecklistItem.checklist_id == checklist_id)
            .order_by(ChecklistItem.position.asc())
        )
        return list(self.session.scalars(stmt))

    def delete_items(self, tenant_id: uuid.UUID, checklist_id: uuid.UUID) -> None:
        """Remove every item of a checklist."""
        self.session.execute(
            delete(ChecklistItem)
            .where(ChecklistItem.tenant_id == tenant_id, ChecklistItem.checklist_id == checklist_id)
            .execution_options(synchronize_session=False)
        )

    def count_instances(self, tenant_id: uuid.UUID, checklist_id: uuid.UUID) -> int:
        """Count instances started from a checklist."""
        stmt = select(func.count(ChecklistInstance.id)).where(
            ChecklistInstance.tenant_id == tenant_id,
            ChecklistInstance.checklist_id == checklist_id,
        )
        return self.session.scalar(stmt) or 0

    def delete(self, tenant_id: uuid.UUID, checklist_id: uuid.UUID) -> bool:
        """Delete a checklist together with its items and instances."""
        result = self.session.execute(
            delete(Checklist)
            .where(Checklist.tenant_id == tenant_id, Checklist.id == checklist_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    # Instances

    def create_instance(self, instance: ChecklistInstance) -> ChecklistInstance:
        """Create a new checklist instance."""
        self.session.add(instance)
        self.session.flush()
        return instance

    def add_instance_item(self, instance_item: ChecklistInstanceItem) -> ChecklistInstanceItem:
        """Add a tracked item to an instance."""
        self.session.add(instance_item)
        self.session.flush()
        return instance_item

    def get_instance(
        self, tenant_id: uuid.UUID, instance_id: uuid.UUID
    ) -> Optional[ChecklistInstance]:
        """Get instance by ID within a tenant."""
        stmt = scoped_select(ChecklistInstance, tenant_id).where(ChecklistInstance.id == instance_id)
        return self.session.scalar(stmt)

    def get_instance_for_update(
        self, tenant_id: uuid.UUID, instance_id: uuid.UUID
    ) -> Optional[ChecklistInstance]:
        """Load and row-lock an instance, refreshing any cached copy."""
        stmt = (
            scoped_select(ChecklistInstance, tenant_id)
            .where(ChecklistInstance.id == instance_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.scalar(stmt)

    def list_instances(
        self,
        tenant_id: uuid.UUID,
        status: str | None = None,
        linked_document_id: uuid.UUID | None = None,
    ) -> list[ChecklistInstance]:
        """List instances, newest first."""
        stmt = scoped_select(ChecklistInstance, tenant_id)
        if status is not None:
            stmt = stmt.where(ChecklistInstance.status == status)
        if linked_document_id is not None:
            stmt = stmt.where(
                ChecklistInstance.linked_type == "document",
                ChecklistInstance.linked_id == linked_document_id,
            )
        stmt = stmt.order_by(ChecklistInstance.created_at.desc())
        return list(self.session.scalars(stmt))

    def list_instance_items(
        self, tenant_id: uuid.UUID, instance_id: uuid.UUID
    ) -> list[ChecklistInstanceItem]:
        """Tracked items of an instance in checklist position order."""
        stmt = (
            scoped_select(ChecklistInstanceItem, tenant_id)
            .join(ChecklistItem, ChecklistItem.id == ChecklistInstanceItem.item_id)
            .where(ChecklistInstanceItem.instance_id == instance_id)
            .order_by(ChecklistItem.position.asc())
            .execution_options(populate_existing=True)
        )
        return list(self.session.scalars(stmt))

    def get_instance_item(
        self, tenant_id: uuid.UUID, instance_id: uuid.UUID, item_id: uuid.UUID
    ) -> Optional[ChecklistInstanceItem]:
        """Tracked state of one checklist item inside one instance."""
        stmt = scoped_select(ChecklistInstanceItem, tenant_id).where(
            ChecklistInstanceItem.instance_id == instance_id,
            ChecklistInstanceItem.item_id == item_id,
        )
        return self.session.scalar(stmt)

    def count_instance_items(
        self, tenant_id: uuid.UUID, instance_id: uuid.UUID, done: bool | None = None
    ) -> int:
        """Count an instance's items, optionally only those with the given ``done`` flag."""
        stmt = select(func.count(ChecklistInstanceItem.id)).where(
            ChecklistInstanceItem.tenant_id == tenant_id,
            ChecklistInstanceItem.instance_id == instance_id,
        )
        if done is not None:
            stmt = stmt.where(ChecklistInstanceItem.done.is_(done))
        return self.session.scalar(stmt) or 0

    def delete_instance(self, tenant_id: uuid.UUID, instance_id: uuid.UUID) -> bool:
        """Delete an instance and its tracked items."""
        result = self.session.execute(
            delete(ChecklistInstance)
            .where(ChecklistInstance.tenant_id == tenant_id, ChecklistInstance.id == instance_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


class TemplateRepository:
    """Repository for template operations."""

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    def create(self, template: Template) -> Template:
        """Create a new template."""
        self.session.add(template)
        self.session.flush()
        return template

    def get_by_id(self, tenant_id: uuid.UUID, template_id: uuid.UUID) -> Optional[Template]:
        """Get template by ID within a tenant."""
        stmt = scoped_select(Template, tenant_id).where(Template.id == template_id)
        return self.session.scalar(stmt)

    def list(self, tenant_id: uuid.UUID, template_type: str | None = None) -> list[Template]:
        """List templates by name."""
        stmt = scoped_select(Template, tenant_id)
        if template_type is not None:
            stmt = stmt.where(Template.template_type == template_type)
        stmt = stmt.order_by(Template.name.asc())
        return list(self.session.scalars(stmt))

    def update(self, template: Template) -> Template:
        """Flush pending attribute changes on a loaded template."""
        self.session.flush()
        return template

    def delete(self, tenant_id: uuid.UUID, template_id: uuid.UUID) -> bool:
        """Delete a template."""
        result = self.session.execute(
            delete(Template)
            .where(Template.tenant_id == tenant_id, Template.id == template_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0


class RunbookRepository:
    """Repository for runbook verification status."""

    # Number of rows returned by the "recent" listing
    RECENT_LIMIT = 20

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    def create(self, status: RunbookStatus) -> RunbookStatus:
        """Create a verification status row."""
        self.session.add(status)
        self.session.flush()
        return status

    def get(self, tenant_id: uuid.UUID, document_id: uuid.UUID) -> Optional[RunbookStatus]:
        """Get the status row for a runbook document."""
        stmt = scoped_select(RunbookStatus, tenant_id).where(
            RunbookStatus.document_id == document_id
        )
        return self.session.scalar(stmt)

    def update(self, status: RunbookStatus) -> RunbookStatus:
        """Flush pending attribute changes on a loaded status row."""
        self.session.flush()
        return status

    def list_runbooks(
        self, tenant_id: uuid.UUID, filter_name: str, now: datetime
    ) -> list[tuple[Document, Optional[RunbookStatus]]]:
        """
        List runbook documents with their verification status.

        Args:
            tenant_id: Tenant scope
            filter_name: One of "all", "overdue", "unowned", "recent"
            now: Reference time for the overdue comparison

        Returns:
            (document, status) pairs; status is None when never initialized
        """
        stmt = (
            select(Document, RunbookStatus)
            .outerjoin(
                RunbookStatus,
                and_(
                    RunbookStatus.document_id == Document.id,
                    RunbookStatus.tenant_id == Document.tenant_id,
                ),
            )
            .where(Document.tenant_id == tenant_id, Document.doc_type == DocType.RUNBOOK.value)
        )

        if filter_name == "overdue":
            stmt = stmt.where(
                RunbookStatus.next_due_at.is_not(None), RunbookStatus.next_due_at < now
            ).order_by(RunbookStatus.next_due_at.asc())
        elif filter_name == "unowned":
            stmt = stmt.where(Document.owner_user_id.is_(None)).order_by(Document.updated_at.desc())
        elif filter_name == "recent":
            stmt = (
                stmt.where(RunbookStatus.last_verified_at.is_not(None))
                .order_by(RunbookStatus.last_verified_at.desc())
                .limit(self.RECENT_LIMIT)
            )
        else:
            stmt = stmt.order_by(Document.updated_at.desc())

        return [(doc, status) for doc, status in self.session.execute(stmt)]
