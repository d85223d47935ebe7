"""Custom exceptions for Docstor operations."""

from uuid import UUID


class DocstorError(Exception):
    """Base exception for Docstor errors."""

    pass


class ValidationError(DocstorError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(DocstorError):
    """Raised when an entity is absent or belongs to another tenant.

    The two cases produce the same message so that a caller cannot test for
    the existence of another tenant's data.
    """

    def __init__(self, resource_type: str, resource_id: UUID | str):
        message = f"{resource_type} '{resource_id}' not found"
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class PathConflictError(DocstorError):
    """Raised when a document path is already taken within the tenant."""

    def __init__(self, path: str):
        super().__init__(f"A document with path '{path}' already exists")
        self.path = path


class ConflictError(DocstorError):
    """Raised when an edit is based on a revision that is no longer current."""

    def __init__(
        self,
        document_id: UUID,
        base_revision_id: UUID | None,
        current_revision_id: UUID | None,
    ):
        super().__init__(
            f"Document '{document_id}' has been modified: edit is based on revision "
            f"'{base_revision_id}' but the current revision is '{current_revision_id}'"
        )
        self.document_id = document_id
        self.base_revision_id = base_revision_id
        self.current_revision_id = current_revision_id


class PermissionDeniedError(DocstorError):
    """Raised when the acting role may not perform an action."""

    def __init__(self, action: str):
        super().__init__(f"Permission denied: {action}")
        self.action = action


class DatabaseError(DocstorError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error
