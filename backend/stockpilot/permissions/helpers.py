# Overview: Utility functions for permission lookups and validation.

from .definitions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permission_definition(code):
    """Get full definition for a permission code."""
    for perm in PERMISSION_DEFINITIONS:
        if perm[0] == code:
            return {
                "code": perm[0],
                "name": perm[1],
                "description": perm[2],
                "category": perm[3],
            }
    return None


def get_role_permissions(role: str) -> frozenset:
    """Permission codes granted to a role (empty for unknown roles)."""
    return DEFAULT_ROLE_PERMISSIONS.get(role, frozenset())


def role_has_permission(role: str, code: str) -> bool:
    return code in get_role_permissions(role)
