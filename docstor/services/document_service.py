"""Document service layer: revisions, optimistic concurrency, search and diffs."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docstor.config import Settings, get_settings
from docstor.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    PathConflictError,
    ValidationError,
)
from docstor.models.base import utcnow
from docstor.models.document import Document, Revision
from docstor.services.diff import DiffResult, compute_diff
from docstor.services.document.validation import DocumentValidator
from docstor.services.validation import validate_id, validate_optional_id
from docstor.storage.repositories import DocumentRepository, RevisionRepository

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """A matching document with its relevance and a highlighted body snippet."""

    document: Document
    rank: float
    headline: str


def revert_message(reverted_from: datetime) -> str:
    """Commit message recorded on a revert, e.g. "Reverted to revision from Jan 2, 2006 3:04 PM"."""
    hour = reverted_from.hour % 12 or 12
    return (
        f"Reverted to revision from {reverted_from:%b} {reverted_from.day}, "
        f"{reverted_from.year} {hour}:{reverted_from:%M} {'AM' if reverted_from.hour < 12 else 'PM'}"
    )


class DocumentService:
    """Tenant-scoped document and revision operations.

    Revisions are append-only. Every edit names the revision it was based on;
    the edit is rejected with ConflictError if that revision is no longer the
    document's current one.
    """

    def __init__(self, session: Session, settings: Settings | None = None):
        """
        Initialize document service with database session.

        Args:
            session: SQLAlchemy database session
            settings: Optional settings override (defaults to get_settings())
        """
        self.session = session
        self.settings = settings or get_settings()
        self.document_repo = DocumentRepository(session)
        self.revision_repo = RevisionRepository(session)
        self.validator = DocumentValidator()

    def create_document(
        self,
        tenant_id: uuid.UUID | str,
        path: str,
        title: str,
        created_by: uuid.UUID | str,
        body: str = "",
        message: str | None = None,
        doc_type: str | None = None,
        sensitivity: str | None = None,
        owner_user_id: uuid.UUID | str | None = None,
        client_id: uuid.UUID | str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Document:
        """
        Create a document together with its initial revision.

        The document row, the revision row and the current-revision pointer are
        written in one transaction; on failure none of them is visible.

        Args:
            tenant_id: Owning tenant
            path: Document path, normalized to lowercase without surrounding slashes
            title: Document title (required, non-empty)
            created_by: Author of the initial revision
            body: Initial markdown body
            message: Optional commit message for the initial revision
            doc_type: "doc" (default) or "runbook"
            sensitivity: "public-internal" (default), "restricted" or "confidential"
            owner_user_id: Optional owning user
            client_id: Optional owning client
            metadata: Optional free-form metadata

        Returns:
            Created document with its current revision set

        Raises:
            ValidationError: If any input is invalid
            PathConflictError: If the normalized path already exists in the tenant
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        created_by = validate_id(created_by, "created_by")
        owner_user_id = validate_optional_id(owner_user_id, "owner_user_id")
        client_id = validate_optional_id(client_id, "client_id")
        normalized_path = self.validator.validate_path(path)
        self.validator.validate_title(title)
        self.validator.validate_body(body)
        doc_type = self.validator.validate_doc_type(doc_type)
        sensitivity = self.validator.validate_sensitivity(sensitivity)
        if metadata is not None:
            self.validator.validate_metadata(metadata)

        if self.document_repo.path_exists(tenant_id, normalized_path):
            raise self._path_conflict(tenant_id, normalized_path)

        try:
            now = utcnow()
            document = Document(
                tenant_id=tenant_id,
                client_id=client_id,
                path=normalized_path,
                title=title,
                doc_type=doc_type,
                sensitivity=sensitivity,
                owner_user_id=owner_user_id,
                meta=metadata or {},
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            self.document_repo.create(document)

            revision = Revision(
                tenant_id=tenant_id,
                document_id=document.id,
                body_markdown=body,
                created_by=created_by,
                created_at=now,
                message=message or None,
                base_revision_id=None,
            )
            self.revision_repo.create(revision)

            document.current_revision_id = revision.id
            self.document_repo.update(document)

            self.session.commit()
            logger.debug(
                "Created document %s at %s",
                document.id,
                normalized_path,
                extra={"tenant_id": tenant_id, "document_id": document.id},
            )
            return document

        except IntegrityError as e:
            self.session.rollback()
            if self.document_repo.path_exists(tenant_id, normalized_path):
                raise self._path_conflict(tenant_id, normalized_path) from e
            logger.exception("Integrity error creating document", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to create document: {str(e)}", e) from e
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to create document", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to create document: {str(e)}", e) from e

    def get_document(self, tenant_id: uuid.UUID | str, document_id: uuid.UUID | str) -> Document:
        """
        Get a document by ID with its current revision, client and owner resolvable.

        Raises:
            ValidationError: If an ID is malformed
            NotFoundError: If the document does not exist in this tenant
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")

        try:
            document = self.document_repo.get_by_id(tenant_id, document_id)
        except Exception as e:
            raise DatabaseError(f"Failed to get document: {str(e)}", e) from e

        if document is None:
            raise NotFoundError("Document", document_id)
        return document

    def get_document_by_path(self, tenant_id: uuid.UUID | str, path: str) -> Document:
        """
        Get a document by path. The path is normalized before lookup.

        Raises:
            ValidationError: If the path is empty
            NotFoundError: If no document has this path in this tenant
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        normalized_path = self.validator.validate_path(path)

        try:
            document = self.document_repo.get_by_path(tenant_id, normalized_path)
        except Exception as e:
            raise DatabaseError(f"Failed to get document: {str(e)}", e) from e

        if document is None:
            raise NotFoundError("Document", normalized_path)
        return document

    def list_documents(
        self,
        tenant_id: uuid.UUID | str,
        client_id: uuid.UUID | str | None = None,
        doc_type: str | None = None,
    ) -> list[Document]:
        """
        List a tenant's documents, most recently updated first.

        Args:
            tenant_id: Tenant scope
            client_id: Optional client filter
            doc_type: Optional document type filter (ANDed with client_id)

        Raises:
            ValidationError: If a filter is invalid
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        client_id = validate_optional_id(client_id, "client_id")
        if doc_type is not None:
            doc_type = self.validator.validate_doc_type(doc_type)

        try:
            return self.document_repo.list(tenant_id, client_id=client_id, doc_type=doc_type)
        except Exception as e:
            raise DatabaseError(f"Failed to list documents: {str(e)}", e) from e

    def update_document(
        self,
        tenant_id: uuid.UUID | str,
        document_id: uuid.UUID | str,
        body: str,
        message: str | None,
        base_revision_id: uuid.UUID | str,
        updated_by: uuid.UUID | str,
    ) -> Document:
        """
        Append a new revision if the caller's base revision is still current.

        Args:
            tenant_id: Tenant scope
            document_id: Document to edit
            body: New markdown body
            message: Optional commit message
            base_revision_id: The revision the editor loaded before making changes
            updated_by: Author of the new revision

        Returns:
            Updated document pointing at the new revision

        Raises:
            ValidationError: If inputs are invalid
            NotFoundError: If the document does not exist in this tenant
            ConflictError: If the document changed since base_revision_id
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")
        base_revision_id = validate_id(base_revision_id, "base_revision_id")
        updated_by = validate_id(updated_by, "updated_by")
        self.validator.validate_body(body)

        try:
            document = self.document_repo.get_for_update(tenant_id, document_id)
            if document is None:
                raise NotFoundError("Document", document_id)

            if document.current_revision_id != base_revision_id:
                logger.info(
                    "Edit conflict on document %s",
                    document_id,
                    extra={"tenant_id": tenant_id, "document_id": document_id, "event": "conflict"},
                )
                raise ConflictError(document_id, base_revision_id, document.current_revision_id)

            return self._append_revision(
                document,
                body=body,
                message=message,
                author=updated_by,
                base_revision_id=base_revision_id,
            )

        except (NotFoundError, ConflictError):
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to update document", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to update document: {str(e)}", e) from e

    def revert_document(
        self,
        tenant_id: uuid.UUID | str,
        document_id: uuid.UUID | str,
        target_revision_id: uuid.UUID | str,
        reverted_by: uuid.UUID | str,
    ) -> Document:
        """
        Restore an earlier body by appending a copy of it as a new revision.

        Nothing is deleted or rewound: the new revision's base is the revision it
        supersedes, and every prior revision stays retrievable.

        Raises:
            ValidationError: If an ID is malformed
            NotFoundError: If the document or target revision does not exist in
                           this tenant, or the revision belongs to another document
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")
        target_revision_id = validate_id(target_revision_id, "target_revision_id")
        reverted_by = validate_id(reverted_by, "reverted_by")

        try:
            target = self.revision_repo.get_by_id(tenant_id, target_revision_id)
            if target is None or target.document_id != document_id:
                raise NotFoundError("Revision", target_revision_id)

            document = self.document_repo.get_for_update(tenant_id, document_id)
            if document is None:
                raise NotFoundError("Document", document_id)

            current_revision_id = document.current_revision_id
            return self._append_revision(
                document,
                body=target.body_markdown,
                message=revert_message(target.created_at),
                author=reverted_by,
                base_revision_id=current_revision_id,
            )

        except (NotFoundError, ConflictError):
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to revert document", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to revert document: {str(e)}", e) from e

    def rename_document(
        self,
        tenant_id: uuid.UUID | str,
        document_id: uuid.UUID | str,
        new_path: str,
        new_title: str,
        renamed_by: uuid.UUID | str,
    ) -> Document:
        """
        Change a document's path and title. No revision is created.

        Raises:
            ValidationError: If the path or title is invalid
            NotFoundError: If the document does not exist in this tenant
            PathConflictError: If another document already uses the new path
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")
        renamed_by = validate_id(renamed_by, "renamed_by")
        normalized_path = self.validator.validate_path(new_path)
        self.validator.validate_title(new_title)

        try:
            document = self.document_repo.get_for_update(tenant_id, document_id)
            if document is None:
                raise NotFoundError("Document", document_id)

            if self.document_repo.path_exists(tenant_id, normalized_path, exclude_id=document_id):
                raise self._path_conflict(tenant_id, normalized_path)

            old_path = document.path
            document.path = normalized_path
            document.title = new_title
            self.document_repo.update(document)
            self.session.commit()
            logger.debug(
                "Renamed document %s from %s to %s by %s",
                document_id,
                old_path,
                normalized_path,
                renamed_by,
                extra={"tenant_id": tenant_id, "document_id": document_id},
            )
            return document

        except (NotFoundError, PathConflictError):
            self.session.rollback()
            raise
        except IntegrityError as e:
            self.session.rollback()
            raise self._path_conflict(tenant_id, normalized_path) from e
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to rename document", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to rename document: {str(e)}", e) from e

    def delete_document(self, tenant_id: uuid.UUID | str, document_id: uuid.UUID | str) -> None:
        """
        Hard-delete a document. Its revisions are removed by cascade.

        Raises:
            ValidationError: If an ID is malformed
            NotFoundError: If the document does not exist in this tenant
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")

        try:
            if not self.document_repo.delete(tenant_id, document_id):
                raise NotFoundError("Document", document_id)
            self.session.commit()
        except NotFoundError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to delete document", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to delete document: {str(e)}", e) from e

    def get_revision(self, tenant_id: uuid.UUID | str, revision_id: uuid.UUID | str) -> Revision:
        """
        Get a single revision.

        Raises:
            ValidationError: If an ID is malformed
            NotFoundError: If the revision does not exist in this tenant
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        revision_id = validate_id(revision_id, "revision_id")

        try:
            revision = self.revision_repo.get_by_id(tenant_id, revision_id)
        except Exception as e:
            raise DatabaseError(f"Failed to get revision: {str(e)}", e) from e

        if revision is None:
            raise NotFoundError("Revision", revision_id)
        return revision

    def list_revisions(
        self, tenant_id: uuid.UUID | str, document_id: uuid.UUID | str
    ) -> list[Revision]:
        """
        List a document's revisions, newest first.

        Raises:
            NotFoundError: If the document does not exist in this tenant
            DatabaseError: If database operation fails
        """
        document = self.get_document(tenant_id, document_id)
        try:
            return self.revision_repo.list_by_document(document.tenant_id, document.id)
        except Exception as e:
            raise DatabaseError(f"Failed to list revisions: {str(e)}", e) from e

    def count_revisions(self, tenant_id: uuid.UUID | str, document_id: uuid.UUID | str) -> int:
        """Number of revisions a document has accumulated."""
        document = self.get_document(tenant_id, document_id)
        try:
            return self.revision_repo.count_by_document(document.tenant_id, document.id)
        except Exception as e:
            raise DatabaseError(f"Failed to count revisions: {str(e)}", e) from e

    def diff_revisions(
        self,
        tenant_id: uuid.UUID | str,
        old_revision_id: uuid.UUID | str,
        new_revision_id: uuid.UUID | str,
    ) -> DiffResult:
        """
        Diff the bodies of two revisions of the same tenant.

        Raises:
            NotFoundError: If either revision does not exist in this tenant
        """
        old = self.get_revision(tenant_id, old_revision_id)
        new = self.get_revision(tenant_id, new_revision_id)
        return compute_diff(old.body_markdown, new.body_markdown)

    def search_documents(
        self,
        tenant_id: uuid.UUID | str,
        query: str,
        client_id: uuid.UUID | str | None = None,
        doc_type: str | None = None,
        owner_user_id: uuid.UUID | str | None = None,
        limit: int = 0,
    ) -> list[SearchResult]:
        """
        Full-text search within one tenant.

        Args:
            tenant_id: Tenant scope
            query: Free-text query; blank queries match nothing
            client_id: Optional client filter
            doc_type: Optional document type filter
            owner_user_id: Optional owner filter
            limit: Maximum results; <= 0 uses the configured default, larger
                   values are capped at the configured maximum

        Returns:
            Results ordered by rank, then most recently updated

        Raises:
            ValidationError: If a filter is invalid
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        client_id = validate_optional_id(client_id, "client_id")
        owner_user_id = validate_optional_id(owner_user_id, "owner_user_id")
        if doc_type is not None:
            doc_type = self.validator.validate_doc_type(doc_type)
        if not isinstance(query, str):
            raise ValidationError("Query must be a string", "query")
        if not query.strip():
            return []

        limit = self.settings.clamp_search_limit(limit)
        use_postgresql = self.session.get_bind().dialect.name == "postgresql"

        try:
            rows = self.document_repo.search(
                tenant_id,
                query.strip(),
                limit,
                client_id=client_id,
                doc_type=doc_type,
                owner_user_id=owner_user_id,
                use_postgresql=use_postgresql,
            )
        except Exception as e:
            raise DatabaseError(f"Failed to search documents: {str(e)}", e) from e

        return [SearchResult(document=doc, rank=rank, headline=headline) for doc, rank, headline in rows]

    def _append_revision(
        self,
        document: Document,
        body: str,
        message: str | None,
        author: uuid.UUID,
        base_revision_id: uuid.UUID | None,
    ) -> Document:
        """Insert a revision and compare-and-swap the document's pointer onto it, then commit.

        The caller holds the row lock from get_for_update; the swap re-checks the
        pointer so the write is rejected on backends without row locks too.
        """
        expected_revision_id = document.current_revision_id
        now = utcnow()
        revision = Revision(
            tenant_id=document.tenant_id,
            document_id=document.id,
            body_markdown=body,
            created_by=author,
            created_at=now,
            message=message or None,
            base_revision_id=base_revision_id,
        )
        self.revision_repo.create(revision)

        swapped = self.document_repo.swap_current_revision(
            document.tenant_id, document.id, expected_revision_id, revision.id, now
        )
        if not swapped:
            raise ConflictError(document.id, base_revision_id, None)

        self.session.commit()
        logger.debug(
            "Document %s now at revision %s",
            document.id,
            revision.id,
            extra={"tenant_id": document.tenant_id, "document_id": document.id},
        )
        return document

    def _path_conflict(self, tenant_id: uuid.UUID, path: str) -> PathConflictError:
        logger.info(
            "Path %s already in use",
            path,
            extra={"tenant_id": tenant_id, "event": "path_conflict"},
        )
        return PathConflictError(path)
