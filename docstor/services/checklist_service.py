"""Checklist service: reusable definitions and the runs started from them."""

import logging
import uuid
from typing import Iterable

from sqlalchemy.orm import Session

from docstor.exceptions import DatabaseError, NotFoundError, ValidationError
from docstor.models.base import utcnow
from docstor.models.checklist import (
    Checklist,
    ChecklistInstance,
    ChecklistInstanceItem,
    ChecklistItem,
    InstanceStatus,
)
from docstor.services.validation import validate_id, validate_optional_id
from docstor.storage.repositories import ChecklistRepository, DocumentRepository

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255
LINKED_TYPE_DOCUMENT = "document"


def derive_status(done_flags: Iterable[bool]) -> str:
    """Instance status implied by its items: completed iff there are items and all are done."""
    flags = list(done_flags)
    if flags and all(flags):
        return InstanceStatus.COMPLETED.value
    return InstanceStatus.IN_PROGRESS.value


class ChecklistService:
    """Service for checklist definitions and instance state transitions."""

    def __init__(self, session: Session):
        """
        Initialize checklist service with database session.

        Args:
            session: SQLAlchemy database session
        """
        self.session = session
        self.checklist_repo = ChecklistRepository(session)
        self.document_repo = DocumentRepository(session)

    # Definitions

    def create_checklist(
        self,
        tenant_id: uuid.UUID | str,
        name: str,
        created_by: uuid.UUID | str,
        items: list[str],
        description: str | None = None,
    ) -> Checklist:
        """
        Create a checklist with its ordered items.

        Args:
            tenant_id: Owning tenant
            name: Checklist name (required)
            created_by: Creating user
            items: Item texts in display order
            description: Optional description

        Raises:
            ValidationError: If name or items are invalid
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        created_by = validate_id(created_by, "created_by")
        self._validate_name(name)
        items = self._validate_items(items)

        try:
            checklist = Checklist(
                tenant_id=tenant_id,
                name=name.strip(),
                description=description or None,
                created_by=created_by,
            )
            self.checklist_repo.create(checklist)
            self._insert_items(tenant_id, checklist.id, items)
            self.session.commit()
            return checklist
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to create checklist", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to create checklist: {str(e)}", e) from e

    def get_checklist(self, tenant_id: uuid.UUID | str, checklist_id: uuid.UUID | str) -> Checklist:
        """Get a checklist; its ``items`` are ordered by position."""
        tenant_id = validate_id(tenant_id, "tenant_id")
        checklist_id = validate_id(checklist_id, "checklist_id")

        try:
            checklist = self.checklist_repo.get_by_id(tenant_id, checklist_id)
        except Exception as e:
            raise DatabaseError(f"Failed to get checklist: {str(e)}", e) from e

        if checklist is None:
            raise NotFoundError("Checklist", checklist_id)
        return checklist

    def list_checklists(self, tenant_id: uuid.UUID | str) -> list[Checklist]:
        """List a tenant's checklists by name."""
        tenant_id = validate_id(tenant_id, "tenant_id")
        try:
            return self.checklist_repo.list(tenant_id)
        except Exception as e:
            raise DatabaseError(f"Failed to list checklists: {str(e)}", e) from e

    def list_items(self, tenant_id: uuid.UUID | str, checklist_id: uuid.UUID | str) -> list[ChecklistItem]:
        checklist = self.get_checklist(tenant_id, checklist_id)
        return self.checklist_repo.list_items(checklist.tenant_id, checklist.id)

    def update_checklist(
        self,
        tenant_id: uuid.UUID | str,
        checklist_id: uuid.UUID | str,
        name: str,
        description: str | None = None,
        items: list[str] | None = None,
    ) -> Checklist:
        """
        Update a checklist's name and description, and replace its items.

        Items are only replaced while no instance has been started from the
        checklist; once runs exist their items are kept as they are.

        Raises:
            ValidationError: If name or items are invalid
            NotFoundError: If the checklist does not exist in this tenant
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        checklist_id = validate_id(checklist_id, "checklist_id")
        self._validate_name(name)
        if items is not None:
            items = self._validate_items(items)

        try:
            checklist = self.checklist_repo.get_by_id(tenant_id, checklist_id)
            if checklist is None:
                raise NotFoundError("Checklist", checklist_id)

            checklist.name = name.strip()
            checklist.description = description or None
            self.session.flush()

            if items is not None:
                if self.checklist_repo.count_instances(tenant_id, checklist_id) == 0:
                    self.checklist_repo.delete_items(tenant_id, checklist_id)
                    self._insert_items(tenant_id, checklist_id, items)
                else:
                    logger.info(
                        "Checklist %s has instances; items left unchanged",
                        checklist_id,
                        extra={"tenant_id": tenant_id},
                    )

            self.session.commit()
            return checklist

        except NotFoundError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to update checklist", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to update checklist: {str(e)}", e) from e

    def delete_checklist(self, tenant_id: uuid.UUID | str, checklist_id: uuid.UUID | str) -> None:
        """Delete a checklist along with its items and every instance."""
        tenant_id = validate_id(tenant_id, "tenant_id")
        checklist_id = validate_id(checklist_id, "checklist_id")

        try:
            if not self.checklist_repo.delete(tenant_id, checklist_id):
                raise NotFoundError("Checklist", checklist_id)
            self.session.commit()
        except NotFoundError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to delete checklist: {str(e)}", e) from e

    # Instances

    def start_instance(
        self,
        tenant_id: uuid.UUID | str,
        checklist_id: uuid.UUID | str,
        created_by: uuid.UUID | str,
        linked_document_id: uuid.UUID | str | None = None,
    ) -> ChecklistInstance:
        """
        Start a run of a checklist with every item not done.

        Args:
            tenant_id: Tenant scope
            checklist_id: Checklist to run
            created_by: User starting the run
            linked_document_id: Optional document the run is attached to

        Raises:
            NotFoundError: If the checklist or linked document does not exist in this tenant
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        checklist_id = validate_id(checklist_id, "checklist_id")
        created_by = validate_id(created_by, "created_by")
        linked_document_id = validate_optional_id(linked_document_id, "linked_document_id")

        try:
            checklist = self.checklist_repo.get_by_id(tenant_id, checklist_id)
            if checklist is None:
                raise NotFoundError("Checklist", checklist_id)
            if linked_document_id is not None:
                if self.document_repo.get_by_id(tenant_id, linked_document_id) is None:
                    raise NotFoundError("Document", linked_document_id)

            instance = ChecklistInstance(
                tenant_id=tenant_id,
                checklist_id=checklist_id,
                linked_type=LINKED_TYPE_DOCUMENT if linked_document_id else None,
                linked_id=linked_document_id,
                status=InstanceStatus.IN_PROGRESS.value,
                created_by=created_by,
                created_at=utcnow(),
            )
            self.checklist_repo.create_instance(instance)

            for item in self.checklist_repo.list_items(tenant_id, checklist_id):
                self.checklist_repo.add_instance_item(
                    ChecklistInstanceItem(
                        tenant_id=tenant_id,
                        instance_id=instance.id,
                        item_id=item.id,
                        done=False,
                    )
                )

            self.session.commit()
            logger.debug(
                "Started checklist instance %s",
                instance.id,
                extra={"tenant_id": tenant_id, "instance_id": instance.id},
            )
            return instance

        except NotFoundError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to start checklist instance", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to start checklist instance: {str(e)}", e) from e

    def toggle_item(
        self,
        tenant_id: uuid.UUID | str,
        instance_id: uuid.UUID | str,
        item_id: uuid.UUID | str,
        actor_id: uuid.UUID | str,
    ) -> ChecklistInstanceItem:
        """
        Flip one item of a run and recompute the run's status.

        Checking an item records who did it and when; unchecking clears both.
        The run becomes ``completed`` when every item is done and returns to
        ``in_progress`` as soon as one is unchecked again.

        Args:
            tenant_id: Tenant scope
            instance_id: Checklist instance
            item_id: Checklist item (the definition item, not the instance row)
            actor_id: User toggling the item

        Returns:
            The updated instance item

        Raises:
            NotFoundError: If the instance is not in this tenant or the item is not part of it
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        instance_id = validate_id(instance_id, "instance_id")
        item_id = validate_id(item_id, "item_id")
        actor_id = validate_id(actor_id, "actor_id")

        try:
            instance = self.checklist_repo.get_instance_for_update(tenant_id, instance_id)
            if instance is None:
                raise NotFoundError("ChecklistInstance", instance_id)

            instance_item = self.checklist_repo.get_instance_item(tenant_id, instance_id, item_id)
            if instance_item is None:
                raise NotFoundError("ChecklistItem", item_id)

            now = utcnow()
            instance_item.done = not instance_item.done
            if instance_item.done:
                instance_item.done_by_user_id = actor_id
                instance_item.done_at = now
            else:
                instance_item.done_by_user_id = None
                instance_item.done_at = None
            self.session.flush()

            status = derive_status(
                i.done for i in self.checklist_repo.list_instance_items(tenant_id, instance_id)
            )
            if status != instance.status:
                instance.status = status
                instance.completed_at = now if status == InstanceStatus.COMPLETED.value else None
                self.session.flush()
                logger.debug(
                    "Checklist instance %s is now %s",
                    instance_id,
                    status,
                    extra={"tenant_id": tenant_id, "instance_id": instance_id},
                )

            self.session.commit()
            return instance_item

        except NotFoundError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to toggle checklist item", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to toggle checklist item: {str(e)}", e) from e

    def get_instance(
        self, tenant_id: uuid.UUID | str, instance_id: uuid.UUID | str
    ) -> ChecklistInstance:
        tenant_id = validate_id(tenant_id, "tenant_id")
        instance_id = validate_id(instance_id, "instance_id")

        try:
            instance = self.checklist_repo.get_instance(tenant_id, instance_id)
        except Exception as e:
            raise DatabaseError(f"Failed to get checklist instance: {str(e)}", e) from e

        if instance is None:
            raise NotFoundError("ChecklistInstance", instance_id)
        return instance

    def list_instance_items(
        self, tenant_id: uuid.UUID | str, instance_id: uuid.UUID | str
    ) -> list[ChecklistInstanceItem]:
        """Items of a run in checklist order."""
        instance = self.get_instance(tenant_id, instance_id)
        return self.checklist_repo.list_instance_items(instance.tenant_id, instance.id)

    def list_instances(
        self, tenant_id: uuid.UUID | str, status: str | None = None
    ) -> list[ChecklistInstance]:
        """List runs, newest first, optionally filtered by status."""
        tenant_id = validate_id(tenant_id, "tenant_id")
        if status:
            valid = {s.value for s in InstanceStatus}
            if status not in valid:
                raise ValidationError(f"Status must be one of {sorted(valid)}", "status")
        else:
            status = None

        try:
            return self.checklist_repo.list_instances(tenant_id, status=status)
        except Exception as e:
            raise DatabaseError(f"Failed to list checklist instances: {str(e)}", e) from e

    def list_instances_for_document(
        self, tenant_id: uuid.UUID | str, document_id: uuid.UUID | str
    ) -> list[ChecklistInstance]:
        """Runs attached to one document, newest first."""
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")
        try:
            return self.checklist_repo.list_instances(tenant_id, linked_document_id=document_id)
        except Exception as e:
            raise DatabaseError(f"Failed to list checklist instances: {str(e)}", e) from e

    def delete_instance(self, tenant_id: uuid.UUID | str, instance_id: uuid.UUID | str) -> None:
        tenant_id = validate_id(tenant_id, "tenant_id")
        instance_id = validate_id(instance_id, "instance_id")

        try:
            if not self.checklist_repo.delete_instance(tenant_id, instance_id):
                raise NotFoundError("ChecklistInstance", instance_id)
            self.session.commit()
        except NotFoundError:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to delete checklist instance: {str(e)}", e) from e

    def _insert_items(self, tenant_id: uuid.UUID, checklist_id: uuid.UUID, items: list[str]) -> None:
        for position, text in enumerate(items):
            self.checklist_repo.add_item(
                ChecklistItem(
                    tenant_id=tenant_id,
                    checklist_id=checklist_id,
                    position=position,
                    text=text,
                )
            )

    @staticmethod
    def _validate_name(name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Checklist name is required and cannot be empty", "name")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(
                f"Checklist name must be at most {NAME_MAX_LENGTH} characters", "name"
            )

    @staticmethod
    def _validate_items(items: list[str]) -> list[str]:
        """Strip item texts and drop blank ones."""
        if not isinstance(items, list):
            raise ValidationError("Items must be a list of strings", "items")
        cleaned = []
        for text in items:
            if not isinstance(text, str):
                raise ValidationError("Items must be a list of strings", "items")
            if text.strip():
                cleaned.append(text.strip())
        return cleaned
