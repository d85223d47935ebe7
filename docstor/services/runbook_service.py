"""Runbook verification service: interval tracking and due dates."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from docstor.config import Settings, get_settings
from docstor.exceptions import DatabaseError, NotFoundError, ValidationError
from docstor.models.base import utcnow
from docstor.models.document import DocType, Document
from docstor.models.runbook import RunbookStatus
from docstor.services.validation import validate_id
from docstor.storage.repositories import DocumentRepository, RunbookRepository

logger = logging.getLogger(__name__)

RUNBOOK_FILTERS = ("all", "overdue", "unowned", "recent")


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class RunbookEntry:
    """A runbook document with its verification status (None until first tracked)."""

    document: Document
    status: Optional[RunbookStatus]

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.status is None or self.status.next_due_at is None:
            return False
        return _as_utc(self.status.next_due_at) < (now or utcnow())


class RunbookService:
    """Service for runbook verification tracking."""

    def __init__(self, session: Session, settings: Settings | None = None):
        """
        Initialize runbook service with database session.

        Args:
            session: SQLAlchemy database session
            settings: Optional settings override (defaults to get_settings())
        """
        self.session = session
        self.settings = settings or get_settings()
        self.runbook_repo = RunbookRepository(session)
        self.document_repo = DocumentRepository(session)

    def ensure_status(
        self,
        tenant_id: uuid.UUID | str,
        document_id: uuid.UUID | str,
        interval_days: int | None = None,
    ) -> RunbookStatus:
        """
        Create the verification status row for a runbook if it does not exist yet.

        Calling it again leaves an existing row untouched.

        Args:
            tenant_id: Tenant scope
            document_id: Runbook document
            interval_days: Verification interval; None or <= 0 uses the configured default

        Raises:
            NotFoundError: If the document does not exist in this tenant
            ValidationError: If the document is not a runbook
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")
        if not interval_days or interval_days <= 0:
            interval_days = self.settings.runbook_default_interval_days

        try:
            self._get_runbook(tenant_id, document_id)
            status = self.runbook_repo.get(tenant_id, document_id)
            if status is None:
                status = self.runbook_repo.create(
                    RunbookStatus(
                        tenant_id=tenant_id,
                        document_id=document_id,
                        verification_interval_days=interval_days,
                    )
                )
                self.session.commit()
            return status

        except (NotFoundError, ValidationError):
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to ensure runbook status", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to ensure runbook status: {str(e)}", e) from e

    def get_status(
        self, tenant_id: uuid.UUID | str, document_id: uuid.UUID | str
    ) -> RunbookStatus:
        """
        Get the verification status of a runbook.

        Raises:
            NotFoundError: If the document or its status row does not exist
            ValidationError: If the document is not a runbook
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")

        self._get_runbook(tenant_id, document_id)
        try:
            status = self.runbook_repo.get(tenant_id, document_id)
        except Exception as e:
            raise DatabaseError(f"Failed to get runbook status: {str(e)}", e) from e

        if status is None:
            raise NotFoundError("RunbookStatus", document_id)
        return status

    def update_interval(
        self,
        tenant_id: uuid.UUID | str,
        document_id: uuid.UUID | str,
        interval_days: int,
    ) -> RunbookStatus:
        """
        Change the verification interval and recompute the due date.

        The due date is derived from the last verification; a runbook that has
        never been verified keeps no due date.

        Raises:
            ValidationError: If interval_days is not positive or the document is not a runbook
            NotFoundError: If the document or its status row does not exist
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")
        if not isinstance(interval_days, int) or isinstance(interval_days, bool) or interval_days <= 0:
            raise ValidationError("interval_days must be a positive integer", "interval_days")

        try:
            self._get_runbook(tenant_id, document_id)
            status = self.runbook_repo.get(tenant_id, document_id)
            if status is None:
                raise NotFoundError("RunbookStatus", document_id)

            status.verification_interval_days = interval_days
            if status.last_verified_at is not None:
                status.next_due_at = _as_utc(status.last_verified_at) + timedelta(days=interval_days)
            else:
                status.next_due_at = None
            self.runbook_repo.update(status)
            self.session.commit()
            return status

        except (NotFoundError, ValidationError):
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to update runbook interval", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to update runbook interval: {str(e)}", e) from e

    def verify(
        self,
        tenant_id: uuid.UUID | str,
        document_id: uuid.UUID | str,
        verified_by: uuid.UUID | str,
    ) -> RunbookStatus:
        """
        Record that a runbook was verified now.

        Sets the next due date to now plus the verification interval. A runbook
        without a status row gets one with the default interval first.

        Raises:
            NotFoundError: If the document does not exist in this tenant
            ValidationError: If the document is not a runbook
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        document_id = validate_id(document_id, "document_id")
        verified_by = validate_id(verified_by, "verified_by")

        try:
            self._get_runbook(tenant_id, document_id)
            status = self.runbook_repo.get(tenant_id, document_id)
            if status is None:
                status = self.runbook_repo.create(
                    RunbookStatus(
                        tenant_id=tenant_id,
                        document_id=document_id,
                        verification_interval_days=self.settings.runbook_default_interval_days,
                    )
                )

            now = utcnow()
            status.last_verified_at = now
            status.last_verified_by_user_id = verified_by
            status.next_due_at = now + timedelta(days=status.verification_interval_days)
            self.runbook_repo.update(status)
            self.session.commit()
            logger.debug(
                "Verified runbook %s",
                document_id,
                extra={"tenant_id": tenant_id, "document_id": document_id},
            )
            return status

        except (NotFoundError, ValidationError):
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception("Failed to verify runbook", extra={"tenant_id": tenant_id})
            raise DatabaseError(f"Failed to verify runbook: {str(e)}", e) from e

    def list_runbooks(self, tenant_id: uuid.UUID | str, filter_name: str = "all") -> list[RunbookEntry]:
        """
        List runbooks with their verification status.

        Args:
            tenant_id: Tenant scope
            filter_name: "all", "overdue" (past due date), "unowned" (no owner)
                         or "recent" (latest verified)

        Raises:
            ValidationError: If filter_name is not recognized
            DatabaseError: If database operation fails
        """
        tenant_id = validate_id(tenant_id, "tenant_id")
        filter_name = filter_name or "all"
        if filter_name not in RUNBOOK_FILTERS:
            raise ValidationError(f"Filter must be one of {list(RUNBOOK_FILTERS)}", "filter")

        try:
            rows = self.runbook_repo.list_runbooks(tenant_id, filter_name, utcnow())
        except Exception as e:
            raise DatabaseError(f"Failed to list runbooks: {str(e)}", e) from e
        return [RunbookEntry(document=doc, status=status) for doc, status in rows]

    def _get_runbook(self, tenant_id: uuid.UUID, document_id: uuid.UUID) -> Document:
        document = self.document_repo.get_by_id(tenant_id, document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        if document.doc_type != DocType.RUNBOOK.value:
            raise ValidationError("Document is not a runbook", "document_id")
        return document
