"""Service layer for business logic and validation."""

from docstor.services.checklist_service import ChecklistService, derive_status
from docstor.services.diff import DiffLine, DiffResult, LineType, compute_diff
from docstor.services.document_service import DocumentService, SearchResult
from docstor.services.runbook_service import RunbookEntry, RunbookService
from docstor.services.template_service import TemplateService

__all__ = [
    "ChecklistService",
    "DiffLine",
    "DiffResult",
    "DocumentService",
    "LineType",
    "RunbookEntry",
    "RunbookService",
    "SearchResult",
    "TemplateService",
    "compute_diff",
    "derive_status",
]
