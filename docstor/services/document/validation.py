"""Document validation logic."""

from typing import Any

from docstor.exceptions import ValidationError
from docstor.models.document import DocType, Sensitivity


def normalize_path(path: str) -> str:
    """Canonical form of a document path: no surrounding slashes, lowercase."""
    return path.strip().strip("/").lower()


class DocumentValidator:
    """Validates document data according to business rules."""

    # Validation constants
    TITLE_MIN_LENGTH = 1
    TITLE_MAX_LENGTH = 500
    PATH_MAX_LENGTH = 500

    DOC_TYPES = frozenset(t.value for t in DocType)
    SENSITIVITIES = frozenset(s.value for s in Sensitivity)

    @staticmethod
    def validate_title(title: str) -> None:
        """
        Validate document title.

        Raises:
            ValidationError: If title is invalid
        """
        if not isinstance(title, str):
            raise ValidationError("Title must be a string", "title")
        if not title or not title.strip():
            raise ValidationError("Title is required and cannot be empty", "title")
        if len(title) > DocumentValidator.TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Title must be at most {DocumentValidator.TITLE_MAX_LENGTH} characters", "title"
            )

    @staticmethod
    def validate_path(path: str) -> str:
        """
        Validate and normalize a document path.

        Returns:
            The normalized path

        Raises:
            ValidationError: If path is empty after normalization or too long
        """
        if not isinstance(path, str):
            raise ValidationError("Path must be a string", "path")
        normalized = normalize_path(path)
        if not normalized:
            raise ValidationError("Path is required and cannot be empty", "path")
        if len(normalized) > DocumentValidator.PATH_MAX_LENGTH:
            raise ValidationError(
                f"Path must be at most {DocumentValidator.PATH_MAX_LENGTH} characters", "path"
            )
        return normalized

    @staticmethod
    def validate_doc_type(doc_type: "DocType | str | None") -> str:
        """Validate a document type; empty means "doc"."""
        if isinstance(doc_type, DocType):
            return doc_type.value
        if not doc_type:
            return DocType.DOC.value
        if doc_type not in DocumentValidator.DOC_TYPES:
            raise ValidationError(
                f"Document type must be one of {sorted(DocumentValidator.DOC_TYPES)}", "doc_type"
            )
        return doc_type

    @staticmethod
    def validate_sensitivity(sensitivity: "Sensitivity | str | None") -> str:
        """Validate a sensitivity level; empty means "public-internal"."""
        if isinstance(sensitivity, Sensitivity):
            return sensitivity.value
        if not sensitivity:
            return Sensitivity.PUBLIC_INTERNAL.value
        if sensitivity not in DocumentValidator.SENSITIVITIES:
            raise ValidationError(
                f"Sensitivity must be one of {sorted(DocumentValidator.SENSITIVITIES)}",
                "sensitivity",
            )
        return sensitivity

    @staticmethod
    def validate_body(body: str) -> None:
        """Validate a markdown body."""
        if not isinstance(body, str):
            raise ValidationError("Body must be a string", "body")

    @staticmethod
    def validate_metadata(metadata: dict[str, Any]) -> None:
        """Validate metadata structure."""
        if not isinstance(metadata, dict):
            raise ValidationError("Metadata must be a dictionary", "metadata")
