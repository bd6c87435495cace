from typing import Any, Iterable, Union

from sqlmodel import Session, select

from permitted.core.cache import PermissionCache
from permitted.core.refs import RoleLike, as_role_refs
from permitted.core.tenancy import ensure_principal
from permitted.database.models import Role, RoleUser, User
from permitted.services.role_service import RoleService
from permitted.utils.logger import get_logger

logger = get_logger(__name__)


class UserRoleService:
    """Assigns roles to principals. Each change forgets the principal's cached permissions."""

    def __init__(self, session: Session, roles: RoleService, cache: PermissionCache):
        self.session = session
        self.roles = roles
        self.cache = cache

    def _changed(self, principal: Any) -> None:
        if isinstance(principal, User) and principal in self.session:
            self.session.expire(principal, ["roles"])
        self.cache.invalidate_principal(principal.id)

    def assign_role(self, principal: Any, roles: Union[RoleLike, Iterable[RoleLike]]) -> list[Role]:
        """Attach roles; any unknown role aborts the call before anything is written."""
        ensure_principal(principal)
        wanted = self.roles.find_all_or_fail(as_role_refs(roles))
        held = {r.id for r in self.roles.roles_for_user(principal.id)}
        added = [role for role in wanted if role.id not in held]
        for role in added:
            self.session.add(RoleUser(role_id=role.id, user_id=principal.id))
        self.session.commit()
        if added:
            logger.info(f"[Users] Assigned {[r.name for r in added]} to user {principal.id}")
        self._changed(principal)
        return wanted

    def remove_role(self, principal: Any, roles: Union[RoleLike, Iterable[RoleLike]]) -> None:
        """Detach roles; unknown roles are skipped."""
        ensure_principal(principal)
        found = [self.roles.find(ref) for ref in as_role_refs(roles)]
        role_ids = [role.id for role in found if role is not None]
        if role_ids:
            self._detach(principal.id, role_ids)
            self.session.commit()
            logger.info(f"[Users] Removed {len(role_ids)} roles from user {principal.id}")
        self._changed(principal)

    def sync_roles(self, principal: Any, roles: Iterable[RoleLike]) -> list[Role]:
        """Make the principal hold exactly ``roles`` among the roles visible in scope."""
        ensure_principal(principal)
        wanted = self.roles.find_all_or_fail(as_role_refs(list(roles)))
        wanted_ids = {role.id for role in wanted}
        held_ids = {role.id for role in self.roles.roles_for_user(principal.id)}

        stale = list(held_ids - wanted_ids)
        if stale:
            self._detach(principal.id, stale)
        for role_id in wanted_ids - held_ids:
            self.session.add(RoleUser(role_id=role_id, user_id=principal.id))
        self.session.commit()
        logger.info(f"[Users] Synced user {principal.id} to roles {[r.name for r in wanted]}")
        self._changed(principal)
        return wanted

    def _detach(self, user_id: str, role_ids: list[str]) -> None:
        rows = self.session.exec(
            select(RoleUser).where(RoleUser.user_id == user_id, RoleUser.role_id.in_(role_ids))
        ).all()
        for row in rows:
            self.session.delete(row)
