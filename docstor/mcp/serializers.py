"""Model serialization for MCP responses."""

import dataclasses
import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import inspect as sa_inspect

from docstor.models.checklist import ChecklistInstanceItem
from docstor.models.document import Document, Revision
from docstor.models.tenant import Client, User
from docstor.services.diff import DiffResult


def serialize_value(value: Any) -> Any:
    """Convert a scalar or container into something json.dumps accepts."""
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: serialize_value(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if hasattr(value, "__table__"):
        return serialize_model(value)
    return value


def serialize_model(obj: Any) -> dict[str, Any]:
    """
    Serialize a SQLAlchemy model's column attributes to a dictionary.

    Columns are read through the mapper, so expired attributes are loaded
    rather than skipped. Relationships are not followed.

    Args:
        obj: SQLAlchemy model instance

    Returns:
        Dictionary representation of the model
    """
    result = {}
    for attr in sa_inspect(obj).mapper.column_attrs:
        # Map 'meta' attributes back to their column names ('metadata', 'default_metadata')
        output_key = attr.columns[0].name if attr.key.endswith("meta") else attr.key
        result[output_key] = serialize_value(getattr(obj, attr.key))
    return result


def serialize_user(user: User | None) -> dict[str, Any] | None:
    if user is None:
        return None
    return {"id": str(user.id), "name": user.name, "email": user.email}


def serialize_client(client: Client | None) -> dict[str, Any] | None:
    if client is None:
        return None
    return {"id": str(client.id), "name": client.name, "code": client.code}


def serialize_document(document: Document, include_body: bool = True) -> dict[str, Any]:
    """Document with its current revision and display info for client and owner."""
    result = serialize_model(document)
    result["client"] = serialize_client(document.client)
    result["owner"] = serialize_user(document.owner)
    if include_body:
        revision = document.current_revision
        result["current_revision"] = serialize_revision(revision) if revision is not None else None
    return result


def serialize_revision(revision: Revision) -> dict[str, Any]:
    result = serialize_model(revision)
    result["author"] = serialize_user(revision.author)
    return result


def serialize_instance_item(instance_item: ChecklistInstanceItem) -> dict[str, Any]:
    """Instance item flattened with the position and text of the checklist item it tracks."""
    result = serialize_model(instance_item)
    result["position"] = instance_item.item.position
    result["text"] = instance_item.item.text
    return result


def serialize_diff(diff: DiffResult) -> dict[str, Any]:
    return {
        "additions": diff.additions,
        "deletions": diff.deletions,
        "is_identical": diff.is_identical,
        "lines": serialize_value(diff.lines),
        "hunks": [
            {"kind": hunk.kind, "lines": serialize_value(hunk.lines)} for hunk in diff.hunks()
        ],
    }
