"""Document service helpers."""

from docstor.services.document.validation import DocumentValidator, normalize_path

__all__ = ["DocumentValidator", "normalize_path"]
