# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for grouping and display on the users screen."""
    DASHBOARD = "DASHBOARD"
    SALES = "SALES"
    PURCHASES = "PURCHASES"
    STOCK = "STOCK"
    DOCUMENTS = "DOCUMENTS"
    PAYMENTS = "PAYMENTS"
    ADMINISTRATION = "ADMINISTRATION"
    REPORTS = "REPORTS"


CATEGORY_ORDER = (
    PermissionCategory.DASHBOARD,
    PermissionCategory.SALES,
    PermissionCategory.PURCHASES,
    PermissionCategory.STOCK,
    PermissionCategory.DOCUMENTS,
    PermissionCategory.PAYMENTS,
    PermissionCategory.ADMINISTRATION,
    PermissionCategory.REPORTS,
)
