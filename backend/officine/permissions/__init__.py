# Overview: Permission system package.

from .categories import CATEGORY_ORDER, PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    DASHBOARD_PERMISSIONS,
    SALES_PERMISSIONS,
    PURCHASE_PERMISSIONS,
    STOCK_PERMISSIONS,
    DOCUMENT_PERMISSIONS,
    PAYMENT_PERMISSIONS,
    ADMINISTRATION_PERMISSIONS,
    REPORT_PERMISSIONS,
)
from .roles import (
    DEFAULT_ROLE_PERMISSIONS,
    OWNER_ONLY_PERMISSIONS,
    ROLES,
    ROLE_DOCTEUR,
    ROLE_VENDEUSE,
)
from .helpers import catalogue, describe_tag, is_known_tag, tags_in_category

__all__ = [
    "CATEGORY_ORDER",
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "DASHBOARD_PERMISSIONS",
    "SALES_PERMISSIONS",
    "PURCHASE_PERMISSIONS",
    "STOCK_PERMISSIONS",
    "DOCUMENT_PERMISSIONS",
    "PAYMENT_PERMISSIONS",
    "ADMINISTRATION_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "OWNER_ONLY_PERMISSIONS",
    "ROLES",
    "ROLE_DOCTEUR",
    "ROLE_VENDEUSE",
    "catalogue",
    "describe_tag",
    "is_known_tag",
    "tags_in_category",
]
