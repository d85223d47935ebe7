"""Runbook verification tracking."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docstor.models.base import Base, TenantMixin


class RunbookStatus(Base, TenantMixin):
    """Verification schedule for a single runbook document."""

    __tablename__ = "runbook_status"
    __table_args__ = (Index("ix_runbook_status_tenant_next_due", "tenant_id", "next_due_at"),)

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True
    )
    last_verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_verified_by_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    verification_interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    next_due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    last_verified_by: Mapped[Optional["User"]] = relationship("User", viewonly=True)

    def __repr__(self) -> str:
        return f"<RunbookStatus(document_id={self.document_id!r}, next_due_at={self.next_due_at!r})>"
