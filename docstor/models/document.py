"""Document and revision models."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docstor.models.base import Base, TenantMixin, TimestampMixin, utcnow


class DocType(str, Enum):
    DOC = "doc"
    RUNBOOK = "runbook"


class Sensitivity(str, Enum):
    PUBLIC_INTERNAL = "public-internal"
    RESTRICTED = "restricted"
    CONFIDENTIAL = "confidential"


class Document(Base, TenantMixin, TimestampMixin):
    """A titled, path-addressed page whose body lives in its revisions."""

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("tenant_id", "path", name="uq_documents_tenant_path"),
        CheckConstraint("doc_type IN ('doc', 'runbook')", name="ck_documents_doc_type"),
        CheckConstraint(
            "sensitivity IN ('public-internal', 'restricted', 'confidential')",
            name="ck_documents_sensitivity",
        ),
        Index("ix_documents_tenant_updated", "tenant_id", "updated_at"),
        Index("ix_documents_tenant_client", "tenant_id", "client_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    doc_type: Mapped[str] = mapped_column(String(20), nullable=False, default=DocType.DOC.value)
    sensitivity: Mapped[str] = mapped_column(
        String(32), nullable=False, default=Sensitivity.PUBLIC_INTERNAL.value
    )
    owner_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    # Use 'meta' as Python attribute name to avoid SQLAlchemy reserved name conflict
    meta: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True, default=dict
    )
    # Null only inside the creating transaction; use_alter breaks the documents/revisions cycle
    current_revision_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey(
            "revisions.id",
            name="fk_documents_current_revision",
            use_alter=True,
            ondelete="SET NULL",
        ),
        nullable=True,
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )

    current_revision: Mapped[Optional["Revision"]] = relationship(
        "Revision", foreign_keys=[current_revision_id], viewonly=True
    )
    client: Mapped[Optional["Client"]] = relationship("Client", viewonly=True)
    owner: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[owner_user_id], viewonly=True
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id!r}, path={self.path!r}, title={self.title!r})>"


class Revision(Base, TenantMixin):
    """Immutable snapshot of a document body. Rows are never updated."""

    __tablename__ = "revisions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    body_markdown: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_revision_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("revisions.id", ondelete="SET NULL"), nullable=True
    )

    author: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[created_by], viewonly=True
    )

    def __repr__(self) -> str:
        return f"<Revision(id={self.id!r}, document_id={self.document_id!r})>"
