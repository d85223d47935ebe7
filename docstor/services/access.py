"""Access control decisions for tenant members.

Pure functions with no I/O. Callers resolve the acting user's membership role
in the target tenant first and pass it in; ``None`` means "not a member".
Every unknown input is denied.
"""

from enum import Enum

from docstor.models.document import Sensitivity


class Role(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    READER = "reader"


ROLES = frozenset(role.value for role in Role)

_EDITOR_ROLES = frozenset({Role.ADMIN.value, Role.EDITOR.value})
_PRIVILEGED_SENSITIVITIES = frozenset(
    {Sensitivity.RESTRICTED.value, Sensitivity.CONFIDENTIAL.value}
)


def _role_value(role: "Role | str | None") -> str | None:
    if isinstance(role, Role):
        return role.value
    return role


def can_access_sensitivity(role: "Role | str | None", sensitivity: "Sensitivity | str | None") -> bool:
    """Whether ``role`` may see a document classified as ``sensitivity``.

    - public-internal: every member
    - empty / unset: every member (legacy rows written before classification)
    - restricted, confidential: admin and editor only
    - anything else: nobody
    """
    role = _role_value(role)
    if role not in ROLES:
        return False

    if isinstance(sensitivity, Sensitivity):
        sensitivity = sensitivity.value

    if sensitivity is None or sensitivity == "":
        return True
    if sensitivity == Sensitivity.PUBLIC_INTERNAL.value:
        return True
    if sensitivity in _PRIVILEGED_SENSITIVITIES:
        return role in _EDITOR_ROLES
    return False


def is_admin(role: "Role | str | None") -> bool:
    """True only for admin."""
    return _role_value(role) == Role.ADMIN.value


def is_editor(role: "Role | str | None") -> bool:
    """True for admin or editor."""
    return _role_value(role) in _EDITOR_ROLES


def is_reader(role: "Role | str | None") -> bool:
    """True for any recognized membership role."""
    return _role_value(role) in ROLES
