# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    CATALOG = "CATALOG"
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    FINANCE = "FINANCE"
    INSIGHTS = "INSIGHTS"
    TEAM = "TEAM"
