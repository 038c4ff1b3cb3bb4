"""Request Dependencies - caller identity and role checks for routes.

Invariants:
    - Identity comes from X-Actor-Id / X-Actor-Role, set by the upstream auth gateway
    - Missing identity -> UnauthorizedError (401); role without the permission
      -> ForbiddenError (403); both raised before the route body runs
"""

from dataclasses import dataclass

from fastapi import Header

from shelfwise.core.domain_types import Permission, Role
from shelfwise.core.errors import UnauthorizedError
from shelfwise.core.permissions import require_permission


@dataclass(frozen=True)
class Actor:
    actor_id: str
    role: Role

    @property
    def is_patron(self) -> bool:
        return self.role is Role.PATRON


def require_actor(permission: Permission):
    """Build a FastAPI dependency that admits only roles holding `permission`."""

    async def dependency(
        x_actor_id: str | None = Header(None),
        x_actor_role: str | None = Header(None),
    ) -> Actor:
        if not x_actor_id or not x_actor_id.strip():
            raise UnauthorizedError()
        role = require_permission(x_actor_role, permission)
        return Actor(actor_id=x_actor_id.strip(), role=role)

    return dependency
