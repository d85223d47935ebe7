"""MCP tool handlers for executing tool operations.

Every tool call names the tenant and the acting user. The handler resolves the
user's membership role in that tenant before touching any data: no membership
is denied outright, mutations need an editor, deletion needs an admin, and a
document whose sensitivity the role may not see is reported as not found.
"""

import json
import logging
import uuid
from typing import Any

from mcp import McpError
from mcp.types import ErrorData, TextContent
from sqlalchemy.orm import Session

from docstor.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    PathConflictError,
    PermissionDeniedError,
    ValidationError,
)
from docstor.mcp.serializers import (
    serialize_diff,
    serialize_document,
    serialize_instance_item,
    serialize_model,
    serialize_revision,
    serialize_user,
    serialize_value,
)
from docstor.models.document import DocType, Document
from docstor.services.access import can_access_sensitivity, is_admin, is_editor, is_reader
from docstor.services.checklist_service import LINKED_TYPE_DOCUMENT, ChecklistService
from docstor.services.document_service import DocumentService
from docstor.services.runbook_service import RunbookService
from docstor.services.template_service import TemplateService
from docstor.services.validation import validate_id
from docstor.storage.repositories import DocumentRepository, MembershipRepository

logger = logging.getLogger(__name__)

# JSON-RPC error codes
INVALID_PARAMS = -32602
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603
NOT_FOUND = -32001
PATH_CONFLICT = -32002
REVISION_CONFLICT = -32003
PERMISSION_DENIED = -32004


def _text(result: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2))]


def _require(arguments: dict[str, Any], key: str) -> Any:
    if key not in arguments or arguments[key] is None:
        raise ValidationError(f"{key} is required", key)
    return arguments[key]


def _resolve_member(session: Session, arguments: dict[str, Any]) -> tuple[uuid.UUID, uuid.UUID, str]:
    """Return (tenant_id, user_id, role) for the caller, or deny if they are not a member."""
    tenant_id = validate_id(arguments.get("tenant_id"), "tenant_id")
    user_id = validate_id(arguments.get("user_id"), "user_id")
    role = MembershipRepository(session).get_role(tenant_id, user_id)
    if not is_reader(role):
        raise PermissionDeniedError("not a member of this tenant")
    return tenant_id, user_id, role


def _require_editor(role: str, action: str) -> None:
    if not is_editor(role):
        raise PermissionDeniedError(f"{action} requires the editor role")


def _require_admin(role: str, action: str) -> None:
    if not is_admin(role):
        raise PermissionDeniedError(f"{action} requires the admin role")


def _check_visible(role: str, document: Document) -> Document:
    if not can_access_sensitivity(role, document.sensitivity):
        raise NotFoundError("Document", document.id)
    return document


def _visible_document(session: Session, role: str, tenant_id: uuid.UUID, document_id: Any) -> Document:
    document = DocumentService(session).get_document(tenant_id, document_id)
    return _check_visible(role, document)


# Document handlers
async def handle_create_document(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle create_document tool."""
    with db.session() as session:
        tenant_id, user_id, role = _resolve_member(session, arguments)
        _require_editor(role, "create_document")
        doc = DocumentService(session).create_document(
            tenant_id=tenant_id,
            path=_require(arguments, "path"),
            title=_require(arguments, "title"),
            created_by=user_id,
            body=arguments.get("body", ""),
            message=arguments.get("message"),
            doc_type=arguments.get("doc_type"),
            sensitivity=arguments.get("sensitivity"),
            owner_user_id=arguments.get("owner_user_id"),
            client_id=arguments.get("client_id"),
            metadata=arguments.get("metadata"),
        )
        if doc.doc_type == DocType.RUNBOOK.value:
            RunbookService(session).ensure_status(tenant_id, doc.id)
        return _text(serialize_document(doc))


async def handle_get_document(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle get_document tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        doc = _visible_document(session, role, tenant_id, _require(arguments, "document_id"))
        return _text(serialize_document(doc))


async def handle_get_document_by_path(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle get_document_by_path tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        doc = DocumentService(session).get_document_by_path(tenant_id, _require(arguments, "path"))
        _check_visible(role, doc)
        return _text(serialize_document(doc))


async def handle_list_documents(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle list_documents tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        docs = DocumentService(session).list_documents(
            tenant_id,
            client_id=arguments.get("client_id"),
            doc_type=arguments.get("doc_type"),
        )
        result = {
            "documents": [
                serialize_document(doc, include_body=False)
                for doc in docs
                if can_access_sensitivity(role, doc.sensitivity)
            ]
        }
        return _text(result)


async def handle_update_document(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle update_document tool."""
    with db.session() as session:
        tenant_id, user_id, role = _resolve_member(session, arguments)
        _require_editor(role, "update_document")
        document_id = _require(arguments, "document_id")
        _visible_document(session, role, tenant_id, document_id)
        doc = DocumentService(session).update_document(
            tenant_id=tenant_id,
            document_id=document_id,
            body=_require(arguments, "body"),
            message=arguments.get("message"),
            base_revision_id=_require(arguments, "base_revision_id"),
            updated_by=user_id,
        )
        return _text(serialize_document(doc))


async def handle_revert_document(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle revert_document tool."""
    with db.session() as session:
        tenant_id, user_id, role = _resolve_member(session, arguments)
        _require_editor(role, "revert_document")
        document_id = _require(arguments, "document_id")
        _visible_document(session, role, tenant_id, document_id)
        doc = DocumentService(session).revert_document(
            tenant_id=tenant_id,
            document_id=document_id,
            target_revision_id=_require(arguments, "target_revision_id"),
            reverted_by=user_id,
        )
        return _text(serialize_document(doc))


async def handle_rename_document(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle rename_document tool."""
    with db.session() as session:
        tenant_id, user_id, role = _resolve_member(session, arguments)
        _require_editor(role, "rename_document")
        document_id = _require(arguments, "document_id")
        current = _visible_document(session, role, tenant_id, document_id)
        doc = DocumentService(session).rename_document(
            tenant_id=tenant_id,
            document_id=document_id,
            new_path=arguments.get("path") or current.path,
            new_title=arguments.get("title") or current.title,
            renamed_by=user_id,
        )
        return _text(serialize_document(doc, include_body=False))


async def handle_delete_document(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle delete_document tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        _require_admin(role, "delete_document")
        document_id = _require(arguments, "document_id")
        DocumentService(session).delete_document(tenant_id, document_id)
        return _text({"deleted": True, "document_id": str(document_id)})


# Revision handlers
async def handle_list_revisions(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle list_revisions tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        doc = _visible_document(session, role, tenant_id, _require(arguments, "document_id"))
        revisions = DocumentService(session).list_revisions(tenant_id, doc.id)
        result = {
            "document_id": str(doc.id),
            "current_revision_id": str(doc.current_revision_id),
            "revisions": [serialize_revision(r) for r in revisions],
        }
        return _text(result)


async def handle_get_revision(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle get_revision tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        revision_id = _require(arguments, "revision_id")
        revision = DocumentService(session).get_revision(tenant_id, revision_id)
        try:
            _visible_document(session, role, tenant_id, revision.document_id)
        except NotFoundError:
            raise NotFoundError("Revision", revision_id) from None
        return _text(serialize_revision(revision))


async def handle_diff_revisions(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle diff_revisions tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        service = DocumentService(session)
        for key in ("old_revision_id", "new_revision_id"):
            revision = service.get_revision(tenant_id, _require(arguments, key))
            try:
                _visible_document(session, role, tenant_id, revision.document_id)
            except NotFoundError:
                raise NotFoundError("Revision", revision.id) from None
        diff = service.diff_revisions(
            tenant_id, arguments["old_revision_id"], arguments["new_revision_id"]
        )
        return _text(serialize_diff(diff))


async def handle_search_documents(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle search_documents tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        results = DocumentService(session).search_documents(
            tenant_id,
            _require(arguments, "query"),
            client_id=arguments.get("client_id"),
            doc_type=arguments.get("doc_type"),
            owner_user_id=arguments.get("owner_user_id"),
            limit=arguments.get("limit", 0),
        )
        result = {
            "results": [
                {
                    "document": serialize_document(r.document, include_body=False),
                    "rank": r.rank,
                    "headline": r.headline,
                }
                for r in results
                if can_access_sensitivity(role, r.document.sensitivity)
            ]
        }
        return _text(result)


# Checklist handlers
async def handle_create_checklist(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle create_checklist tool."""
    with db.session() as session:
        tenant_id, user_id, role = _resolve_member(session, arguments)
        _require_editor(role, "create_checklist")
        checklist = ChecklistService(session).create_checklist(
            tenant_id=tenant_id,
            name=_require(arguments, "name"),
            created_by=user_id,
            items=arguments.get("items", []),
            description=arguments.get("description"),
        )
        result = serialize_model(checklist)
        result["items"] = [serialize_model(item) for item in checklist.items]
        return _text(result)


async def handle_list_checklists(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle list_checklists tool."""
    with db.session() as session:
        tenant_id, _, _ = _resolve_member(session, arguments)
        checklists = ChecklistService(session).list_checklists(tenant_id)
        result = {
            "checklists": [
                dict(serialize_model(c), item_count=len(c.items)) for c in checklists
            ]
        }
        return _text(result)


async def handle_start_checklist(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle start_checklist tool."""
    with db.session() as session:
        tenant_id, user_id, role = _resolve_member(session, arguments)
        _require_editor(role, "start_checklist")
        linked_document_id = arguments.get("linked_document_id")
        if linked_document_id:
            _visible_document(session, role, tenant_id, linked_document_id)
        service = ChecklistService(session)
        instance = service.start_instance(
            tenant_id=tenant_id,
            checklist_id=_require(arguments, "checklist_id"),
            created_by=user_id,
            linked_document_id=linked_document_id,
        )
        return _text(_serialize_instance(service, instance))


async def handle_toggle_checklist_item(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle toggle_checklist_item tool."""
    with db.session() as session:
        tenant_id, user_id, role = _resolve_member(session, arguments)
        _require_editor(role, "toggle_checklist_item")
        service = ChecklistService(session)
        instance_item = service.toggle_item(
            tenant_id=tenant_id,
            instance_id=_require(arguments, "instance_id"),
            item_id=_require(arguments, "item_id"),
            actor_id=user_id,
        )
        instance = service.get_instance(tenant_id, instance_item.instance_id)
        result = serialize_instance_item(instance_item)
        result["instance_status"] = instance.status
        return _text(result)


async def handle_get_checklist_instance(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle get_checklist_instance tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        service = ChecklistService(session)
        instance = service.get_instance(tenant_id, _require(arguments, "instance_id"))
        _check_linked_visible(session, role, instance)
        return _text(_serialize_instance(service, instance))


def _check_linked_visible(session: Session, role: str, instance: Any) -> None:
    """A run attached to a document the role may not see is itself not found."""
    if instance.linked_type != LINKED_TYPE_DOCUMENT or instance.linked_id is None:
        return
    document = DocumentRepository(session).get_by_id(instance.tenant_id, instance.linked_id)
    if document is not None and not can_access_sensitivity(role, document.sensitivity):
        raise NotFoundError("ChecklistInstance", instance.id)


def _serialize_instance(service: ChecklistService, instance: Any) -> dict[str, Any]:
    result = serialize_model(instance)
    result["checklist_name"] = instance.checklist.name
    items = service.list_instance_items(instance.tenant_id, instance.id)
    result["items"] = [serialize_instance_item(i) for i in items]
    result["done_count"] = sum(1 for i in items if i.done)
    result["total_count"] = len(items)
    return result


# Template handlers
async def handle_list_templates(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle list_templates tool."""
    with db.session() as session:
        tenant_id, _, _ = _resolve_member(session, arguments)
        templates = TemplateService(session).list_templates(
            tenant_id, template_type=arguments.get("template_type")
        )
        return _text({"templates": [serialize_model(t) for t in templates]})


async def handle_create_document_from_template(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle create_document_from_template tool."""
    with db.session() as session:
        tenant_id, user_id, role = _resolve_member(session, arguments)
        _require_editor(role, "create_document_from_template")
        doc = TemplateService(session).create_document_from_template(
            tenant_id=tenant_id,
            template_id=_require(arguments, "template_id"),
            path=_require(arguments, "path"),
            title=_require(arguments, "title"),
            created_by=user_id,
            sensitivity=arguments.get("sensitivity"),
            owner_user_id=arguments.get("owner_user_id"),
            client_id=arguments.get("client_id"),
        )
        if doc.doc_type == DocType.RUNBOOK.value:
            RunbookService(session).ensure_status(tenant_id, doc.id)
        return _text(serialize_document(doc))


# Runbook handlers
async def handle_verify_runbook(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle verify_runbook tool."""
    with db.session() as session:
        tenant_id, user_id, role = _resolve_member(session, arguments)
        _require_editor(role, "verify_runbook")
        document_id = _require(arguments, "document_id")
        _visible_document(session, role, tenant_id, document_id)
        status = RunbookService(session).verify(tenant_id, document_id, user_id)
        result = serialize_model(status)
        result["last_verified_by"] = serialize_user(status.last_verified_by)
        return _text(result)


async def handle_list_runbooks(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle list_runbooks tool."""
    with db.session() as session:
        tenant_id, _, role = _resolve_member(session, arguments)
        entries = RunbookService(session).list_runbooks(tenant_id, arguments.get("filter", "all"))
        result = {
            "runbooks": [
                {
                    "document": serialize_document(e.document, include_body=False),
                    "status": serialize_model(e.status) if e.status is not None else None,
                    "is_overdue": e.is_overdue(),
                }
                for e in entries
                if can_access_sensitivity(role, e.document.sensitivity)
            ]
        }
        return _text(result)


# Tool handler registry
TOOL_HANDLERS = {
    "create_document": handle_create_document,
    "get_document": handle_get_document,
    "get_document_by_path": handle_get_document_by_path,
    "list_documents": handle_list_documents,
    "update_document": handle_update_document,
    "revert_document": handle_revert_document,
    "rename_document": handle_rename_document,
    "delete_document": handle_delete_document,
    "list_revisions": handle_list_revisions,
    "get_revision": handle_get_revision,
    "diff_revisions": handle_diff_revisions,
    "search_documents": handle_search_documents,
    "create_checklist": handle_create_checklist,
    "list_checklists": handle_list_checklists,
    "start_checklist": handle_start_checklist,
    "toggle_checklist_item": handle_toggle_checklist_item,
    "get_checklist_instance": handle_get_checklist_instance,
    "list_templates": handle_list_templates,
    "create_document_from_template": handle_create_document_from_template,
    "verify_runbook": handle_verify_runbook,
    "list_runbooks": handle_list_runbooks,
}


async def call_tool_handler(tool_name: str, arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """
    Call the appropriate tool handler.

    Args:
        tool_name: Name of the tool to call
        arguments: Tool arguments
        db: Database instance

    Returns:
        List of TextContent with tool execution result

    Raises:
        McpError: If tool name is unknown or handler raises an error
    """
    if tool_name not in TOOL_HANDLERS:
        raise McpError(
            ErrorData(
                code=METHOD_NOT_FOUND,
                message=f"Unknown tool: {tool_name}",
            )
        )

    handler = TOOL_HANDLERS[tool_name]
    logger.debug("Calling tool %s", tool_name, extra={"tool": tool_name})

    try:
        return await handler(arguments, db)
    except McpError:
        # Re-raise MCP errors as-is
        raise
    except ValidationError as e:
        raise McpError(
            ErrorData(
                code=INVALID_PARAMS,
                message=f"Validation error: {str(e)}",
                data={"field": e.field} if e.field else None,
            )
        )
    except NotFoundError as e:
        raise McpError(ErrorData(code=NOT_FOUND, message=str(e)))
    except PathConflictError as e:
        raise McpError(ErrorData(code=PATH_CONFLICT, message=str(e), data={"path": e.path}))
    except ConflictError as e:
        raise McpError(
            ErrorData(
                code=REVISION_CONFLICT,
                message=str(e),
                data=serialize_value(
                    {
                        "document_id": e.document_id,
                        "base_revision_id": e.base_revision_id,
                        "current_revision_id": e.current_revision_id,
                    }
                ),
            )
        )
    except PermissionDeniedError as e:
        raise McpError(ErrorData(code=PERMISSION_DENIED, message=str(e)))
    except DatabaseError as e:
        raise McpError(
            ErrorData(
                code=INTERNAL_ERROR,
                message=f"Database error: {str(e)}",
            )
        )
    except Exception as e:
        logger.exception("Unexpected error in tool %s", tool_name, extra={"tool": tool_name})
        raise McpError(
            ErrorData(
                code=INTERNAL_ERROR,
                message=f"Internal error: {str(e)}",
            )
        )
