"""Template model for reusable document starters."""

import uuid
from typing import Any, Optional

from sqlalchemy import JSON, CheckConstraint, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from docstor.models.base import Base, TenantMixin, TimestampMixin


class Template(Base, TenantMixin, TimestampMixin):
    """Seed content copied into a new document; never referenced afterward."""

    __tablename__ = "templates"
    __table_args__ = (
        CheckConstraint("template_type IN ('doc', 'runbook')", name="ck_templates_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    template_type: Mapped[str] = mapped_column(String(20), nullable=False, default="doc")
    body_markdown: Mapped[str] = mapped_column(Text, nullable=False, default="")
    default_meta: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "default_metadata", JSON, nullable=True, default=dict
    )
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)

    def __repr__(self) -> str:
        return f"<Template(id={self.id!r}, name={self.name!r})>"
