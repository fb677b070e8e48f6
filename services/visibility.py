"""
Role Visibility Gate
====================
Single source of truth for which navigation sections and items a role may
reach, and which records it may see inside them.

Every caller (sidebar, views, data access) asks this module instead of
branching on role names. Unknown or missing roles get no access.

Codes:
    section           e.g. "admin"
    section.item      e.g. "admin.roles"
"""

import logging
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from models.enums import Role
from models.errors import UnknownRoleError

logger = logging.getLogger(__name__)


# =============================================================================
# NAVIGATION TABLE (Locked)
# (section, label, [(item, label, path)])
# =============================================================================

NAV_SECTIONS = [
    ("overview", "Overview", [
        ("dashboard", "Dashboard", "/"),
    ]),
    ("sales", "Sales", [
        ("customers", "Customers", "/sales/customers/"),
        ("leads", "Leads", "/sales/leads/"),
        ("pipeline", "Pipeline", "/sales/pipeline/"),
        ("deals", "Deals", "/sales/deals/"),
        ("contracts", "Contracts", "/sales/contracts/"),
        ("tasks", "Tasks", "/sales/tasks/"),
    ]),
    ("marketing", "Marketing", [
        ("campaigns", "Campaigns", "/marketing/campaigns/"),
        ("templates", "Templates", "/marketing/templates/"),
    ]),
    ("support", "Support", [
        ("tickets", "Tickets", "/support/tickets/"),
    ]),
    ("admin", "Administration", [
        ("users", "Users", "/admin/users/"),
        ("departments", "Departments", "/admin/departments/"),
        ("roles", "Roles", "/admin/roles/"),
        ("shareConfig", "Share Config", "/admin/shareConfig/"),
        ("products", "Products", "/admin/products/"),
    ]),
]

SECTION_CODES = tuple(code for code, _, _ in NAV_SECTIONS)


# =============================================================================
# VISIBILITY POLICY (Locked)
# role -> (allowed sections, denied items)
# =============================================================================

_ALL_SECTIONS = frozenset(SECTION_CODES)

VISIBILITY_POLICY: Dict[Role, Tuple[FrozenSet[str], FrozenSet[str]]] = {
    Role.ADMIN: (_ALL_SECTIONS, frozenset()),
    Role.MANAGER: (_ALL_SECTIONS, frozenset({"admin.roles", "admin.shareConfig"})),
    Role.SALE: (_ALL_SECTIONS - {"admin"}, frozenset()),
    Role.SUPPORT: (frozenset({"overview", "support"}), frozenset()),
}


def _build_capabilities() -> Dict[Tuple[Role, str], bool]:
    """Flatten the policy into one (role, code) -> allowed lookup."""
    matrix = {}
    for role in Role:
        sections, denied_items = VISIBILITY_POLICY.get(role, (frozenset(), frozenset()))
        for section, _, items in NAV_SECTIONS:
            section_allowed = section in sections
            matrix[(role, section)] = section_allowed
            for item, _, _ in items:
                code = f"{section}.{item}"
                matrix[(role, code)] = section_allowed and code not in denied_items
    return matrix


CAPABILITIES = _build_capabilities()


# =============================================================================
# ROLE RESOLUTION
# =============================================================================

def resolve_role(raw: Any) -> Optional[Role]:
    """
    Map a raw role value to Role. Case-insensitive for strings.

    Returns None for missing or unrecognized values; every gate function
    treats None as no access.
    """
    if raw is None:
        return None
    if isinstance(raw, Role):
        return raw
    try:
        return Role(str(raw).strip().upper())
    except ValueError:
        logger.warning(f"Unknown role {raw!r}; denying access")
        return None


def require_role(raw: Any) -> Role:
    """
    Strict variant of resolve_role.

    Raises:
        UnknownRoleError: If the value is not an enumerated role
    """
    role = resolve_role(raw)
    if role is None:
        raise UnknownRoleError(f"Unknown role: {raw!r}")
    return role


# =============================================================================
# GATE
# =============================================================================

def can_access(role: Any, code: str) -> bool:
    """True if the role may reach a section or section.item code."""
    resolved = resolve_role(role)
    if resolved is None:
        return False
    return CAPABILITIES.get((resolved, code), False)


def sections_for(role: Any) -> FrozenSet[str]:
    """Section codes the role may navigate to."""
    return frozenset(s for s in SECTION_CODES if can_access(role, s))


def items_for(role: Any, section: str) -> List[str]:
    """Item codes (without section prefix) the role may reach, in menu order."""
    for code, _, items in NAV_SECTIONS:
        if code == section:
            return [item for item, _, _ in items if can_access(role, f"{section}.{item}")]
    return []


def navigation_for(role: Any) -> List[Dict[str, Any]]:
    """
    Menu structure for the role. Sections left without items are dropped.

    Returns:
        [{'code', 'label', 'items': [{'code', 'label', 'path'}]}]
    """
    menu = []
    for section, label, items in NAV_SECTIONS:
        if not can_access(role, section):
            continue
        visible = [
            {'code': item, 'label': item_label, 'path': path}
            for item, item_label, path in items
            if can_access(role, f"{section}.{item}")
        ]
        if visible:
            menu.append({'code': section, 'label': label, 'items': visible})
    return menu


def find_item(section: str, item: str) -> Optional[Dict[str, str]]:
    """Navigation entry for a section/item pair, or None if not in the table."""
    for code, section_label, items in NAV_SECTIONS:
        if code != section:
            continue
        for item_code, label, path in items:
            if item_code == item:
                return {
                    'section': code,
                    'section_label': section_label,
                    'code': item_code,
                    'label': label,
                    'path': path,
                }
    return None


def _visible(record: Any) -> bool:
    return True


def _hidden(record: Any) -> bool:
    return False


def record_scope_for(role: Any) -> Callable[[Any], bool]:
    """
    Record-level predicate for a role.

    Known roles see every record within their permitted sections (no owner
    scoping). Unknown roles see nothing.
    """
    if resolve_role(role) is None:
        return _hidden
    return _visible
