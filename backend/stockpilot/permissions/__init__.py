# Overview: Permission system package.
# Roles are fixed (owner, employee); permissions are static per role.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    CATALOG_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    SALES_PERMISSIONS,
    FINANCE_PERMISSIONS,
    INSIGHT_PERMISSIONS,
    TEAM_PERMISSIONS,
    DEFAULT_ROLE_PERMISSIONS,
)
from .helpers import (
    get_all_permission_codes,
    get_permission_definition,
    get_role_permissions,
    role_has_permission,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "CATALOG_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "SALES_PERMISSIONS",
    "FINANCE_PERMISSIONS",
    "INSIGHT_PERMISSIONS",
    "TEAM_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_permission_definition",
    "get_role_permissions",
    "role_has_permission",
]
