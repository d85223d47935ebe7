"""Shared pytest fixtures and test utilities for Docstor tests."""

import os
import tempfile
import uuid
from dataclasses import dataclass
from typing import Generator

import pytest

from docstor.models.tenant import Client, Membership, Tenant, User
from docstor.services.checklist_service import ChecklistService
from docstor.services.document_service import DocumentService
from docstor.services.runbook_service import RunbookService
from docstor.services.template_service import TemplateService
from docstor.storage.database import Database


@dataclass(frozen=True)
class Seed:
    """Identifiers of the tenants, users and client created for every test."""

    tenant_a: uuid.UUID
    tenant_b: uuid.UUID
    admin: uuid.UUID
    editor: uuid.UUID
    reader: uuid.UUID
    outsider: uuid.UUID
    member_b: uuid.UUID
    client_a: uuid.UUID


@pytest.fixture(scope="function")
def temp_db() -> Generator[Database, None, None]:
    """
    Create a temporary SQLite database for testing.

    Yields:
        Database instance with tables created
    """
    # Create temporary database file
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    database = Database(f"sqlite:///{db_path}")
    database.create_tables()

    yield database

    # Cleanup
    database.drop_tables()
    database.dispose()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def seed(temp_db) -> Seed:
    """
    Two tenants. Tenant A has an admin, an editor and a reader plus one client;
    tenant B has a single admin. The outsider belongs to no tenant.
    """
    ids = Seed(*(uuid.uuid4() for _ in range(8)))
    with temp_db.session() as session:
        session.add_all(
            [
                Tenant(id=ids.tenant_a, name="Acme IT"),
                Tenant(id=ids.tenant_b, name="Globex Ops"),
                User(id=ids.admin, email="admin@acme.test", name="Ada Admin"),
                User(id=ids.editor, email="editor@acme.test", name="Eddie Editor"),
                User(id=ids.reader, email="reader@acme.test", name="Rita Reader"),
                User(id=ids.outsider, email="outsider@example.test", name="Oscar Outsider"),
                User(id=ids.member_b, email="admin@globex.test", name="Gina Globex"),
            ]
        )
        session.flush()
        session.add_all(
            [
                Membership(tenant_id=ids.tenant_a, user_id=ids.admin, role="admin"),
                Membership(tenant_id=ids.tenant_a, user_id=ids.editor, role="editor"),
                Membership(tenant_id=ids.tenant_a, user_id=ids.reader, role="reader"),
                Membership(tenant_id=ids.tenant_b, user_id=ids.member_b, role="admin"),
                Client(id=ids.client_a, tenant_id=ids.tenant_a, name="Initech", code="INIT"),
            ]
        )
    return ids


@pytest.fixture
def db_session(temp_db):
    """Get a database session from temp_db."""
    with temp_db.session() as session:
        yield session


@pytest.fixture
def document_service(temp_db, seed):
    """Create a document service instance."""
    with temp_db.session() as session:
        yield DocumentService(session)


@pytest.fixture
def checklist_service(temp_db, seed):
    """Create a checklist service instance."""
    with temp_db.session() as session:
        yield ChecklistService(session)


@pytest.fixture
def template_service(temp_db, seed):
    """Create a template service instance."""
    with temp_db.session() as session:
        yield TemplateService(session)


@pytest.fixture
def runbook_service(temp_db, seed):
    """Create a runbook service instance."""
    with temp_db.session() as session:
        yield RunbookService(session)


@pytest.fixture
def sample_document(document_service, seed):
    """A document in tenant A with one revision."""
    return document_service.create_document(
        tenant_id=seed.tenant_a,
        path="network/firewall",
        title="Firewall",
        created_by=seed.editor,
        body="line one\nline two\n",
        message="initial import",
    )
