"""Database models for Docstor."""

from docstor.models.base import Base
from docstor.models.checklist import (
    Checklist,
    ChecklistInstance,
    ChecklistInstanceItem,
    ChecklistItem,
    InstanceStatus,
)
from docstor.models.document import DocType, Document, Revision, Sensitivity
from docstor.models.runbook import RunbookStatus
from docstor.models.template import Template
from docstor.models.tenant import Client, Membership, Tenant, User

__all__ = [
    "Base",
    "Tenant",
    "User",
    "Membership",
    "Client",
    "Document",
    "Revision",
    "DocType",
    "Sensitivity",
    "Checklist",
    "ChecklistItem",
    "ChecklistInstance",
    "ChecklistInstanceItem",
    "InstanceStatus",
    "Template",
    "RunbookStatus",
]
