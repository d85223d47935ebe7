"""Initial schema: tenants, documents, revisions, templates, checklists, runbooks

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-10-18 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5c1e9a7d2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Detect database type
    bind = op.get_bind()
    is_postgresql = bind.dialect.name == "postgresql"
    is_sqlite = bind.dialect.name == "sqlite"

    # Use JSONB for PostgreSQL, JSON for SQLite
    if is_postgresql:
        metadata_type = postgresql.JSONB(astext_type=sa.Text())
    else:
        metadata_type = sa.JSON()

    # Use appropriate timestamp defaults
    if is_sqlite:
        now_default = sa.text("(datetime('now'))")
        timestamp_type = sa.DateTime()
    else:
        now_default = sa.text("now()")
        timestamp_type = sa.DateTime(timezone=True)

    def tenant_column() -> sa.Column:
        return sa.Column("tenant_id", sa.Uuid(), nullable=False)

    def tenant_fk() -> sa.ForeignKeyConstraint:
        return sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE")

    # Identity tables
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "memberships",
        sa.Column("id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
        tenant_fk(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "user_id", name="uq_memberships_tenant_user"),
        sa.CheckConstraint("role IN ('admin', 'editor', 'reader')", name="ck_memberships_role"),
    )
    op.create_index(op.f("ix_memberships_tenant_id"), "memberships", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_memberships_user_id"), "memberships", ["user_id"], unique=False)

    op.create_table(
        "clients",
        sa.Column("id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
        tenant_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "code", name="uq_clients_tenant_code"),
    )
    op.create_index(op.f("ix_clients_tenant_id"), "clients", ["tenant_id"], unique=False)

    # Documents and revisions reference each other. SQLite cannot add a
    # constraint after the fact, so there the pointer's FK is declared inline.
    document_constraints = [
        tenant_fk(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "path", name="uq_documents_tenant_path"),
        sa.CheckConstraint("doc_type IN ('doc', 'runbook')", name="ck_documents_doc_type"),
        sa.CheckConstraint(
            "sensitivity IN ('public-internal', 'restricted', 'confidential')",
            name="ck_documents_sensitivity",
        ),
    ]
    if is_sqlite:
        document_constraints.append(
            sa.ForeignKeyConstraint(
                ["current_revision_id"],
                ["revisions.id"],
                name="fk_documents_current_revision",
                ondelete="SET NULL",
            )
        )

    op.create_table(
        "documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("client_id", sa.Uuid(), nullable=True),
        sa.Column("path", sa.String(length=500), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("doc_type", sa.String(length=20), nullable=False),
        sa.Column("sensitivity", sa.String(length=32), nullable=False),
        sa.Column("owner_user_id", sa.Uuid(), nullable=True),
        sa.Column("metadata", metadata_type, nullable=True),
        sa.Column("current_revision_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
        sa.Column("updated_at", timestamp_type, server_default=now_default, nullable=False),
        *document_constraints,
    )
    op.create_index(op.f("ix_documents_tenant_id"), "documents", ["tenant_id"], unique=False)
    op.create_index("ix_documents_tenant_updated", "documents", ["tenant_id", "updated_at"], unique=False)
    op.create_index("ix_documents_tenant_client", "documents", ["tenant_id", "client_id"], unique=False)

    op.create_table(
        "revisions",
        sa.Column("id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("body_markdown", sa.Text(), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("base_revision_id", sa.Uuid(), nullable=True),
        tenant_fk(),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["base_revision_id"], ["revisions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_revisions_tenant_id"), "revisions", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_revisions_document_id"), "revisions", ["document_id"], unique=False)

    if not is_sqlite:
        op.create_foreign_key(
            "fk_documents_current_revision",
            "documents",
            "revisions",
            ["current_revision_id"],
            ["id"],
            ondelete="SET NULL",
        )

    # Templates
    op.create_table(
        "templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("template_type", sa.String(length=20), nullable=False),
        sa.Column("body_markdown", sa.Text(), nullable=False),
        sa.Column("default_metadata", metadata_type, nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
        sa.Column("updated_at", timestamp_type, server_default=now_default, nullable=False),
        tenant_fk(),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("template_type IN ('doc', 'runbook')", name="ck_templates_type"),
    )
    op.create_index(op.f("ix_templates_tenant_id"), "templates", ["tenant_id"], unique=False)

    # Checklists
    op.create_table(
        "checklists",
        sa.Column("id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
        tenant_fk(),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_checklists_tenant_id"), "checklists", ["tenant_id"], unique=False)

    op.create_table(
        "checklist_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("checklist_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        tenant_fk(),
        sa.ForeignKeyConstraint(["checklist_id"], ["checklists.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_checklist_items_tenant_id"), "checklist_items", ["tenant_id"], unique=False)
    op.create_index(
        "ix_checklist_items_checklist_position", "checklist_items", ["checklist_id", "position"], unique=False
    )

    op.create_table(
        "checklist_instances",
        sa.Column("id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("checklist_id", sa.Uuid(), nullable=False),
        sa.Column("linked_type", sa.String(length=50), nullable=True),
        sa.Column("linked_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("created_at", timestamp_type, server_default=now_default, nullable=False),
        sa.Column("completed_at", timestamp_type, nullable=True),
        tenant_fk(),
        sa.ForeignKeyConstraint(["checklist_id"], ["checklists.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('in_progress', 'completed')", name="ck_checklist_instances_status"
        ),
    )
    op.create_index(op.f("ix_checklist_instances_tenant_id"), "checklist_instances", ["tenant_id"], unique=False)
    op.create_index(
        "ix_checklist_instances_tenant_status", "checklist_instances", ["tenant_id", "status"], unique=False
    )
    op.create_index(
        "ix_checklist_instances_linked", "checklist_instances", ["linked_type", "linked_id"], unique=False
    )

    op.create_table(
        "checklist_instance_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("instance_id", sa.Uuid(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("done", sa.Boolean(), nullable=False),
        sa.Column("done_by_user_id", sa.Uuid(), nullable=True),
        sa.Column("done_at", timestamp_type, nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        tenant_fk(),
        sa.ForeignKeyConstraint(["instance_id"], ["checklist_instances.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["item_id"], ["checklist_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["done_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("instance_id", "item_id", name="uq_checklist_instance_items_instance_item"),
    )
    op.create_index(
        op.f("ix_checklist_instance_items_tenant_id"), "checklist_instance_items", ["tenant_id"], unique=False
    )
    op.create_index(
        op.f("ix_checklist_instance_items_instance_id"), "checklist_instance_items", ["instance_id"], unique=False
    )

    # Runbook verification
    op.create_table(
        "runbook_status",
        sa.Column("document_id", sa.Uuid(), nullable=False),
        tenant_column(),
        sa.Column("last_verified_at", timestamp_type, nullable=True),
        sa.Column("last_verified_by_user_id", sa.Uuid(), nullable=True),
        sa.Column("verification_interval_days", sa.Integer(), nullable=False),
        sa.Column("next_due_at", timestamp_type, nullable=True),
        tenant_fk(),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["last_verified_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("document_id"),
    )
    op.create_index(op.f("ix_runbook_status_tenant_id"), "runbook_status", ["tenant_id"], unique=False)
    op.create_index(
        "ix_runbook_status_tenant_next_due", "runbook_status", ["tenant_id", "next_due_at"], unique=False
    )

    # Full-text search index for PostgreSQL only
    if is_postgresql:
        op.execute("""
            CREATE INDEX revisions_search_idx ON revisions
            USING gin(to_tsvector('english', body_markdown))
        """)
        op.execute("""
            CREATE INDEX documents_search_idx ON documents
            USING gin(to_tsvector('english', title || ' ' || path))
        """)


def downgrade() -> None:
    bind = op.get_bind()
    is_postgresql = bind.dialect.name == "postgresql"
    is_sqlite = bind.dialect.name == "sqlite"

    if is_postgresql:
        op.execute("DROP INDEX IF EXISTS documents_search_idx")
        op.execute("DROP INDEX IF EXISTS revisions_search_idx")

    op.drop_table("runbook_status")
    op.drop_table("checklist_instance_items")
    op.drop_table("checklist_instances")
    op.drop_table("checklist_items")
    op.drop_table("checklists")
    op.drop_table("templates")
    if not is_sqlite:
        op.drop_constraint("fk_documents_current_revision", "documents", type_="foreignkey")
    op.drop_table("revisions")
    op.drop_table("documents")
    op.drop_table("clients")
    op.drop_table("memberships")
    op.drop_table("users")
    op.drop_table("tenants")
