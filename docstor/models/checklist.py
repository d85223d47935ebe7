"""Checklist definitions and their runs."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docstor.models.base import Base, TenantMixin, utcnow


class InstanceStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Checklist(Base, TenantMixin):
    """A reusable, named, ordered list of steps."""

    __tablename__ = "checklists"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    items: Mapped[list["ChecklistItem"]] = relationship(
        "ChecklistItem",
        order_by="ChecklistItem.position",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Checklist(id={self.id!r}, name={self.name!r})>"


class ChecklistItem(Base, TenantMixin):
    """One step of a checklist definition."""

    __tablename__ = "checklist_items"
    __table_args__ = (Index("ix_checklist_items_checklist_position", "checklist_id", "position"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    checklist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("checklists.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    text: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<ChecklistItem(id={self.id!r}, position={self.position!r})>"


class ChecklistInstance(Base, TenantMixin):
    """One run of a checklist. ``status`` is derived from the items' ``done`` flags."""

    __tablename__ = "checklist_instances"
    __table_args__ = (
        CheckConstraint(
            "status IN ('in_progress', 'completed')", name="ck_checklist_instances_status"
        ),
        Index("ix_checklist_instances_tenant_status", "tenant_id", "status"),
        Index("ix_checklist_instances_linked", "linked_type", "linked_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    checklist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("checklists.id", ondelete="CASCADE"), nullable=False
    )
    linked_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # 'document'
    linked_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InstanceStatus.IN_PROGRESS.value
    )
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    checklist: Mapped["Checklist"] = relationship("Checklist", viewonly=True)

    def __repr__(self) -> str:
        return f"<ChecklistInstance(id={self.id!r}, status={self.status!r})>"


class ChecklistInstanceItem(Base, TenantMixin):
    """Completion state of one checklist item within one instance."""

    __tablename__ = "checklist_instance_items"
    __table_args__ = (
        UniqueConstraint("instance_id", "item_id", name="uq_checklist_instance_items_instance_item"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("checklist_instances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("checklist_items.id", ondelete="CASCADE"), nullable=False
    )
    done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    done_by_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    done_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    item: Mapped["ChecklistItem"] = relationship("ChecklistItem", viewonly=True)

    def __repr__(self) -> str:
        return f"<ChecklistInstanceItem(id={self.id!r}, done={self.done!r})>"
