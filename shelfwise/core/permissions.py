"""Role Permissions - which caller roles may perform which core actions.

Invariants:
    - require_permission raises UnauthorizedError when no role is supplied
    - require_permission raises ForbiddenError when the role lacks the permission
    - Unknown role strings are treated as lacking every permission

Design Decisions:
    - Caller identity is issued upstream (auth gateway); this table only decides
      whether a known role may act
"""

from shelfwise.core.domain_types import Permission, Role
from shelfwise.core.errors import ForbiddenError, UnauthorizedError


_STAFF = frozenset({Role.ADMIN, Role.ASST_ADMIN, Role.ICT, Role.LIBRARIAN})
_MANAGEMENT = frozenset({Role.ADMIN, Role.ASST_ADMIN, Role.ICT})

PERMISSIONS: dict[Permission, frozenset[Role]] = {
    # Circulation
    Permission.BOOK_CHECKOUT: _STAFF,
    Permission.BOOK_CHECKIN: _STAFF,
    Permission.BOOK_RENEW: _STAFF,
    Permission.CIRCULATION_VIEW: _STAFF,

    # Attendance
    Permission.ATTENDANCE_MARK: _STAFF,
    Permission.ATTENDANCE_VIEW: _STAFF,

    # Review Workflow (patrons may submit their own summaries)
    Permission.SUMMARY_SUBMIT: _STAFF | {Role.PATRON},
    Permission.SUMMARY_REVIEW: _STAFF,
    Permission.SUMMARY_STAFF_CREATE: _STAFF,
    Permission.SUMMARY_VIEW: _STAFF | {Role.PATRON},

    # Analytics
    Permission.ANALYTICS_VIEW: _STAFF,
    Permission.ANALYTICS_RECOMPUTE: _MANAGEMENT,
    Permission.DASHBOARD_VIEW: _STAFF,
}


def parse_role(raw: str | None) -> Role | None:
    """Map a header value to a Role. Returns None for missing or unknown values."""
    if not raw:
        return None
    try:
        return Role(raw.strip().lower())
    except ValueError:
        return None


def has_permission(role: Role | None, permission: Permission) -> bool:
    if role is None:
        return False
    return role in PERMISSIONS.get(permission, frozenset())


def require_permission(raw_role: str | None, permission: Permission) -> Role:
    """Return the parsed role or raise Unauthorized/Forbidden."""
    if not raw_role:
        raise UnauthorizedError()
    role = parse_role(raw_role)
    if not has_permission(role, permission):
        raise ForbiddenError(raw_role, permission.value)
    return role


def role_permissions(role: Role) -> list[Permission]:
    """All permissions granted to a role, in declaration order."""
    return [p for p, roles in PERMISSIONS.items() if role in roles]
