# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "View the product catalog",
        PermissionCategory.CATALOG,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit, and delete products",
        PermissionCategory.CATALOG,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels and stock history",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Restock or reduce stock (creates ledger entries)",
        PermissionCategory.INVENTORY,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "CREATE_SALE",
        "Create Sale",
        "Check out a cart at the point of sale",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_SALES",
        "View Sales",
        "View sales history",
        PermissionCategory.SALES,
    ),
]


# -- FINANCE --

FINANCE_PERMISSIONS = [
    (
        "VIEW_TRANSACTIONS",
        "View Transactions",
        "View income and expense entries",
        PermissionCategory.FINANCE,
    ),
    (
        "CREATE_TRANSACTION",
        "Create Transaction",
        "Record manual income and expense entries",
        PermissionCategory.FINANCE,
    ),
    (
        "VIEW_FINANCIALS",
        "View Financials",
        "See revenue, expense, profit and inventory value figures",
        PermissionCategory.FINANCE,
    ),
]


# -- INSIGHTS --

INSIGHT_PERMISSIONS = [
    (
        "VIEW_DASHBOARD",
        "View Dashboard",
        "View the dashboard sales trend and recent sales",
        PermissionCategory.INSIGHTS,
    ),
    (
        "USE_ASSISTANT",
        "Use AI Assistant",
        "Chat with the AI business assistant",
        PermissionCategory.INSIGHTS,
    ),
]


# -- TEAM --

TEAM_PERMISSIONS = [
    (
        "MANAGE_TEAM",
        "Manage Team",
        "Invite employees and remove pending invitations",
        PermissionCategory.TEAM,
    ),
]


# Combined list of all permissions
PERMISSION_DEFINITIONS = (
    CATALOG_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + SALES_PERMISSIONS
    + FINANCE_PERMISSIONS
    + INSIGHT_PERMISSIONS
    + TEAM_PERMISSIONS
)


# Owners hold every permission; employees run the shop floor but do not see
# financial figures (dashboard KPIs, the transaction log, the assistant's
# money lines) and cannot record transactions or manage the team.
EMPLOYEE_PERMISSIONS = frozenset({
    "VIEW_PRODUCTS",
    "MANAGE_PRODUCTS",
    "VIEW_INVENTORY",
    "ADJUST_INVENTORY",
    "CREATE_SALE",
    "VIEW_SALES",
    "VIEW_DASHBOARD",
    "USE_ASSISTANT",
})

DEFAULT_ROLE_PERMISSIONS = {
    "owner": frozenset(perm[0] for perm in PERMISSION_DEFINITIONS),
    "employee": EMPLOYEE_PERMISSIONS,
}
