"""Storage layer for Docstor."""

from docstor.storage.database import Database
from docstor.storage.repositories import (
    ChecklistRepository,
    DocumentRepository,
    MembershipRepository,
    RevisionRepository,
    RunbookRepository,
    TemplateRepository,
)

__all__ = [
    "Database",
    "DocumentRepository",
    "RevisionRepository",
    "ChecklistRepository",
    "TemplateRepository",
    "RunbookRepository",
    "MembershipRepository",
]
