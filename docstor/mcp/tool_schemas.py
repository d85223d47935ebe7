"""MCP tool schema definitions."""

from typing import Any

# Every tool acts on behalf of one member of one tenant
_CALLER_PROPERTIES = {
    "tenant_id": {"type": "string", "description": "Tenant ID"},
    "user_id": {"type": "string", "description": "Acting user ID"},
}
_CALLER_REQUIRED = ["tenant_id", "user_id"]

_DOC_TYPE = {"type": "string", "enum": ["doc", "runbook"], "description": "Document type (default: doc)"}
_SENSITIVITY = {
    "type": "string",
    "enum": ["public-internal", "restricted", "confidential"],
    "description": "Sensitivity level (default: public-internal)",
}


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "inputSchema": {
            "type": "object",
            "properties": {**_CALLER_PROPERTIES, **properties},
            "required": _CALLER_REQUIRED + required,
        },
    }


def get_tool_schemas() -> dict[str, dict[str, Any]]:
    """Get all MCP tool schemas."""
    tools = [
        _tool(
            "create_document",
            "Create a document with its initial revision. Paths are normalized to lowercase without surrounding slashes",
            {
                "path": {"type": "string", "description": "Document path, unique within the tenant"},
                "title": {"type": "string", "description": "Document title"},
                "body": {"type": "string", "description": "Initial markdown body"},
                "message": {"type": "string", "description": "Optional commit message"},
                "doc_type": _DOC_TYPE,
                "sensitivity": _SENSITIVITY,
                "owner_user_id": {"type": "string", "description": "Optional owning user ID"},
                "client_id": {"type": "string", "description": "Optional client ID"},
                "metadata": {"type": "object", "description": "Optional document metadata"},
            },
            ["path", "title"],
        ),
        _tool(
            "get_document",
            "Retrieve a document by ID with its current revision",
            {"document_id": {"type": "string", "description": "Document ID"}},
            ["document_id"],
        ),
        _tool(
            "get_document_by_path",
            "Retrieve a document by path with its current revision",
            {"path": {"type": "string", "description": "Document path"}},
            ["path"],
        ),
        _tool(
            "list_documents",
            "List documents, most recently updated first",
            {
                "client_id": {"type": "string", "description": "Optional client filter"},
                "doc_type": _DOC_TYPE,
            },
            [],
        ),
        _tool(
            "update_document",
            "Save a new revision. Fails with a revision conflict if base_revision_id is no longer current",
            {
                "document_id": {"type": "string", "description": "Document ID"},
                "body": {"type": "string", "description": "New markdown body"},
                "message": {"type": "string", "description": "Optional commit message"},
                "base_revision_id": {
                    "type": "string",
                    "description": "Revision the edit was based on",
                },
            },
            ["document_id", "body", "base_revision_id"],
        ),
        _tool(
            "revert_document",
            "Restore an earlier revision's body as a new revision",
            {
                "document_id": {"type": "string", "description": "Document ID"},
                "target_revision_id": {"type": "string", "description": "Revision to restore"},
            },
            ["document_id", "target_revision_id"],
        ),
        _tool(
            "rename_document",
            "Change a document's path and/or title without creating a revision",
            {
                "document_id": {"type": "string", "description": "Document ID"},
                "path": {"type": "string", "description": "New path (default: unchanged)"},
                "title": {"type": "string", "description": "New title (default: unchanged)"},
            },
            ["document_id"],
        ),
        _tool(
            "delete_document",
            "Delete a document and its revision history (admin only)",
            {"document_id": {"type": "string", "description": "Document ID"}},
            ["document_id"],
        ),
        _tool(
            "list_revisions",
            "List a document's revisions, newest first",
            {"document_id": {"type": "string", "description": "Document ID"}},
            ["document_id"],
        ),
        _tool(
            "get_revision",
            "Retrieve a single revision",
            {"revision_id": {"type": "string", "description": "Revision ID"}},
            ["revision_id"],
        ),
        _tool(
            "diff_revisions",
            "Line diff between two revisions",
            {
                "old_revision_id": {"type": "string", "description": "Older revision ID"},
                "new_revision_id": {"type": "string", "description": "Newer revision ID"},
            },
            ["old_revision_id", "new_revision_id"],
        ),
        _tool(
            "search_documents",
            "Full-text search over titles, paths and current bodies",
            {
                "query": {"type": "string", "description": "Search query"},
                "client_id": {"type": "string", "description": "Optional client filter"},
                "doc_type": _DOC_TYPE,
                "owner_user_id": {"type": "string", "description": "Optional owner filter"},
                "limit": {
                    "type": "integer",
                    "description": "Maximum results (default: 50, max: 100)",
                },
            },
            ["query"],
        ),
        _tool(
            "create_checklist",
            "Create a checklist with ordered items",
            {
                "name": {"type": "string", "description": "Checklist name"},
                "description": {"type": "string", "description": "Optional description"},
                "items": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Item texts in order",
                },
            },
            ["name"],
        ),
        _tool("list_checklists", "List checklists by name", {}, []),
        _tool(
            "start_checklist",
            "Start a run of a checklist, optionally linked to a document",
            {
                "checklist_id": {"type": "string", "description": "Checklist ID"},
                "linked_document_id": {"type": "string", "description": "Optional document ID"},
            },
            ["checklist_id"],
        ),
        _tool(
            "toggle_checklist_item",
            "Check or uncheck an item of a checklist run; the run completes when every item is done",
            {
                "instance_id": {"type": "string", "description": "Checklist instance ID"},
                "item_id": {"type": "string", "description": "Checklist item ID"},
            },
            ["instance_id", "item_id"],
        ),
        _tool(
            "get_checklist_instance",
            "Retrieve a checklist run with its items",
            {"instance_id": {"type": "string", "description": "Checklist instance ID"}},
            ["instance_id"],
        ),
        _tool(
            "list_templates",
            "List templates by name",
            {"template_type": _DOC_TYPE},
            [],
        ),
        _tool(
            "create_document_from_template",
            "Create a document seeded from a template",
            {
                "template_id": {"type": "string", "description": "Template ID"},
                "path": {"type": "string", "description": "Document path"},
                "title": {"type": "string", "description": "Document title"},
                "sensitivity": _SENSITIVITY,
                "owner_user_id": {"type": "string", "description": "Optional owning user ID"},
                "client_id": {"type": "string", "description": "Optional client ID"},
            },
            ["template_id", "path", "title"],
        ),
        _tool(
            "verify_runbook",
            "Mark a runbook as verified now and schedule the next verification",
            {"document_id": {"type": "string", "description": "Runbook document ID"}},
            ["document_id"],
        ),
        _tool(
            "list_runbooks",
            "List runbooks with verification status",
            {
                "filter": {
                    "type": "string",
                    "enum": ["all", "overdue", "unowned", "recent"],
                    "description": "Which runbooks to list (default: all)",
                },
            },
            [],
        ),
    ]
    return {tool["name"]: tool for tool in tools}
