"""Template service: reusable starting content for new documents."""

import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session

from docstor.config import Settings
from docstor.exceptions import DatabaseError, NotFoundError, ValidationError
from docstor.models.base import utcnow
from docstor.models.document import DocType, Document
from docstor.models.template import Template
from docstor.services.document.validation import DocumentValidator
from docstor.services.document_service import DocumentService
from docstor.services.validation import validate_id
from docstor.storage.repositories import TemplateRepository

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255


class TemplateService:
    """Service for template CRUD and template-based document creation.

    A template is only read when a document is created from it; later edits
    to the template do not reach documents already created.
    """

    def __init__(self, session: Session, settings: Settings | None = None):
        self.session = session
        self.template_repo = TemplateRepository(session)
        self.document_service = DocumentService(session, settings)
        self.validator = DocumentValidator()

    def create_template(
        self,
        tenant_id: uuid.UUID | str,
        name: str,
        created_by: uuid.UUID | str,
        body: str = "",
        template_type: str | None = None,
        default_metadata: dict[str, Any] | None = None,
    ) -> Template:
        """
        Create a template.

        Args:
            tenant_id: Owning tenant
            name: Template name (required)
            created_by: Creating user
            body: Markdown body copied into new documents
            template_type: "doc" (default) or "runbook"
            default_metadata: Metadata copied into new documents

        Raises:
            ValidationError: If any input is invalid
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        created_by = validate_id(created_by, "created_by")
        self._validate_name(name)
        self.validator.validate_body(body)
        template_type = self.validator.validate_doc_type(template_type)
        if default_metadata is not None:
            self.validator.validate_metadata(default_metadata)

        try:
            now = utcnow()
            template = Template(
                tenant_id=tenant_id,
                name=name.strip(),
                template_type=template_type,
                body_markdown=body,
                default_meta=default_metadata or {},
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            self.template_repo.create(template)
            self.session.commit()
            return template
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to create template", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to create template: {str(e)}", e) from e

    def get_template(self, tenant_id: uuid.UUID | str, template_id: uuid.UUID | str) -> Template:
        tenant_id = validate_id(tenant_id, "tenant_id")
        template_id = validate_id(template_id, "template_id")

        try:
            template = self.template_repo.get_by_id(tenant_id, template_id)
        except Exception as e:
            raise DatabaseError(f"Failed to get template: {str(e)}", e) from e

        if template is None:
            raise NotFoundError("Template", template_id)
        return template

    def list_templates(
        self, tenant_id: uuid.UUID | str, template_type: str | None = None
    ) -> list[Template]:
        """List templates by name, optionally only those of one type."""
        tenant_id = validate_id(tenant_id, "tenant_id")
        if template_type:
            template_type = self.validator.validate_doc_type(template_type)
        else:
            template_type = None

        try:
            return self.template_repo.list(tenant_id, template_type=template_type)
        except Exception as e:
            raise DatabaseError(f"Failed to list templates: {str(e)}", e) from e

    def update_template(
        self,
        tenant_id: uuid.UUID | str,
        template_id: uuid.UUID | str,
        name: str | None = None,
        body: str | None = None,
        template_type: str | None = None,
        default_metadata: dict[str, Any] | None = None,
    ) -> Template:
        """
        Update a template. Only provided fields change.

        Raises:
            ValidationError: If any input is invalid
            NotFoundError: If the template does not exist in this tenant
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        template_id = validate_id(template_id, "template_id")
        if name is not None:
            self._validate_name(name)
        if body is not None:
            self.validator.validate_body(body)
        if template_type is not None:
            template_type = self.validator.validate_doc_type(template_type)
        if default_metadata is not None:
            self.validator.validate_metadata(default_metadata)

        try:
            template = self.template_repo.get_by_id(tenant_id, template_id)
            if template is None:
                raise NotFoundError("Template", template_id)

            if name is not None:
                template.name = name.strip()
            if body is not None:
                template.body_markdown = body
            if template_type is not None:
                template.template_type = template_type
            if default_metadata is not None:
                template.default_meta = default_metadata
            template.updated_at = utcnow()

            self.template_repo.update(template)
            self.session.commit()
            return template

        except NotFoundError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to update template", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to update template: {str(e)}", e) from e

    def delete_template(self, tenant_id: uuid.UUID | str, template_id: uuid.UUID | str) -> None:
        tenant_id = validate_id(tenant_id, "tenant_id")
        template_id = validate_id(template_id, "template_id")

        try:
            if not self.template_repo.delete(tenant_id, template_id):
                raise NotFoundError("Template", template_id)
            self.session.commit()
        except NotFoundError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to delete template: {str(e)}", e) from e

    def create_document_from_template(
        self,
        tenant_id: uuid.UUID | str,
        template_id: uuid.UUID | str,
        path: str,
        title: str,
        created_by: uuid.UUID | str,
        sensitivity: str | None = None,
        owner_user_id: uuid.UUID | str | None = None,
        client_id: uuid.UUID | str | None = None,
        message: str | None = None,
    ) -> Document:
        """
        Create a document seeded with a template's body, type and default metadata.

        Goes through DocumentService.create_document, so path normalization,
        path conflicts and the initial revision behave exactly as for any
        other new document.

        Raises:
            NotFoundError: If the template does not exist in this tenant
            PathConflictError: If the path is already taken
        """
        template = self.get_template(tenant_id, template_id)
        return self.document_service.create_document(
            tenant_id=template.tenant_id,
            path=path,
            title=title,
            created_by=created_by,
            body=template.body_markdown,
            message=message or f"Created from template {template.name}",
            doc_type=template.template_type or DocType.DOC.value,
            sensitivity=sensitivity,
            owner_user_id=owner_user_id,
            client_id=client_id,
            metadata=dict(template.default_meta or {}),
        )

    @staticmethod
    def _validate_name(name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Template name is required and cannot be empty", "name")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(f"Template name must be at most {NAME_MAX_LENGTH} characters", "name")
