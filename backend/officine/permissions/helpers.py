# Overview: Lookups over the permission table for guards and the catalogue screen.

from .categories import CATEGORY_ORDER
from .definitions import PERMISSION_DEFINITIONS

_BY_CODE = {perm[0]: perm for perm in PERMISSION_DEFINITIONS}


def is_known_tag(code):
    return code in _BY_CODE


def tags_in_category(category):
    return [code for code, _name, _desc, cat in PERMISSION_DEFINITIONS if cat == category]


def describe_tag(code):
    """Catalogue entry for a tag, None for an unknown one."""
    perm = _BY_CODE.get(code)
    if perm is None:
        return None
    code, name, description, category = perm
    return {"code": code, "label": name, "description": description, "category": category}


def catalogue(granted_to):
    """
    Every tag grouped by category in screen order.

    ``granted_to(code)`` returns the roles holding the tag; the owner
    column is filled by the caller.
    """
    return {
        category: [dict(describe_tag(code), roles=granted_to(code)) for code in tags_in_category(category)]
        for category in CATEGORY_ORDER
    }
