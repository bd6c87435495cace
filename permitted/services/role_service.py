from datetime import datetime
from typing import Iterable, Optional, Union

from sqlmodel import Session, select

from permitted.config.settings import PermittedSettings
from permitted.core.cache import PermissionCache
from permitted.core.exceptions import RoleDoesNotExist
from permitted.core.refs import (
    PermissionLike,
    RefKind,
    RoleLike,
    as_permission_refs,
    as_role_ref,
)
from permitted.core.tenancy import TenantScope
from permitted.database.models import Permission, Role, RolePermission, RoleUser
from permitted.utils.logger import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "display_name", "description")


class RoleService:
    """
    Role persistence and role -> permission grants.

    Every role read goes through ``self.scope``; roles created here are
    stamped with the acting principal's tenant.
    """

    def __init__(
        self,
        session: Session,
        settings: PermittedSettings,
        scope: TenantScope,
        cache: PermissionCache,
        permissions=None,
    ):
        self.session = session
        self.settings = settings
        self.scope = scope
        self.cache = cache
        self._permissions = permissions

    @property
    def permissions(self):
        if self._permissions is None:
            from permitted.services.permission_service import PermissionService

            self._permissions = PermissionService(
                self.session, self.settings, self.cache, self.scope, roles=self
            )
        return self._permissions

    def unscoped(self) -> "RoleService":
        """Same service with a cross-tenant view; for admin tooling only."""
        return RoleService(self.session, self.settings, self.scope.unscoped(), self.cache)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _select(self):
        return self.scope.apply(select(Role))

    def all(self) -> list[Role]:
        return list(self.session.exec(self._select().order_by(Role.name)).all())

    def find_by_name(self, name: str, guard_name: Optional[str] = None) -> Optional[Role]:
        guard_name = guard_name or self.settings.default_guard
        statement = self._select().where(Role.name == name, Role.guard_name == guard_name)
        return self.session.exec(statement).first()

    def find_by_id(self, role_id: str) -> Optional[Role]:
        return self.session.exec(self._select().where(Role.id == role_id)).first()

    def find(self, role: RoleLike) -> Optional[Role]:
        ref = as_role_ref(role)
        if ref.kind == RefKind.NAME:
            return self.find_by_name(ref.value)
        if ref.kind == RefKind.ID:
            return self.find_by_id(ref.value)
        return ref.value if self.scope.permits(ref.value) else None

    def find_or_fail(self, role: RoleLike) -> Role:
        found = self.find(role)
        if found is None:
            raise RoleDoesNotExist(as_role_ref(role))
        return found

    def find_all_or_fail(self, roles: Iterable[RoleLike]) -> list[Role]:
        """Resolve every reference before anything is written."""
        resolved = {}
        for role in roles:
            found = self.find_or_fail(role)
            resolved[found.id] = found
        return list(resolved.values())

    def find_or_create(self, name: str, guard_name: Optional[str] = None) -> Role:
        guard_name = guard_name or self.settings.default_guard
        role = self.find_by_name(name, guard_name)
        if role is None:
            role = self.create(name, guard_name=guard_name)
        return role

    def roles_for_user(self, user_id: str) -> list[Role]:
        statement = (
            self._select()
            .join(RoleUser, RoleUser.role_id == Role.id)
            .where(RoleUser.user_id == user_id)
        )
        return list(self.session.exec(statement).all())

    def user_ids_for_roles(self, role_ids: Iterable[str]) -> list[str]:
        role_ids = list(role_ids)
        if not role_ids:
            return []
        statement = select(RoleUser.user_id).where(RoleUser.role_id.in_(role_ids)).distinct()
        return list(self.session.exec(statement).all())

    def users_with_role(self, role: RoleLike) -> list[str]:
        return self.user_ids_for_roles([self.find_or_fail(role).id])

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create(
        self,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        guard_name: Optional[str] = None,
    ) -> Role:
        role = Role(
            name=name,
            display_name=display_name,
            description=description,
            guard_name=guard_name or self.settings.default_guard,
        )
        self.scope.stamp(role)
        self.session.add(role)
        self.session.commit()
        self.session.refresh(role)
        logger.info(f"[Roles] Created role {role.name!r} (tenant={role.tenant_id}, sub_tenant={role.sub_tenant_id})")
        return role

    def create_many(self, roles: Iterable[Union[str, dict]], guard_name: Optional[str] = None) -> list[Role]:
        created = []
        for role in roles:
            attributes = {"name": role} if isinstance(role, str) else dict(role)
            attributes.setdefault("guard_name", guard_name)
            created.append(self.create(**attributes))
        return created

    def update(self, role: RoleLike, **fields) -> Role:
        role = self.find_or_fail(role)
        for key, value in fields.items():
            if key not in UPDATABLE_FIELDS:
                raise ValueError(f"Role field {key!r} cannot be updated")
            setattr(role, key, value)
        role.updated_at = datetime.utcnow()
        self.session.add(role)
        self.session.commit()
        self.session.refresh(role)
        self._invalidate([role.id])
        return role

    def delete(self, role: RoleLike) -> None:
        role = self.find_or_fail(role)
        role_id, role_name = role.id, role.name
        # Captured before the pivot rows disappear
        affected = self.user_ids_for_roles([role_id])
        self.session.delete(role)
        self.session.commit()
        logger.info(f"[Roles] Deleted role {role_name!r}, detached from {len(affected)} users")
        self.cache.invalidate_roles(lambda: affected)

    # ------------------------------------------------------------------
    # Role -> permission grants
    # ------------------------------------------------------------------
    def permissions_of(self, role: RoleLike) -> list[Permission]:
        role = self.find_or_fail(role)
        statement = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role.id)
            .order_by(Permission.name)
        )
        return list(self.session.exec(statement).all())

    def has_permission_to(self, role: RoleLike, permission: PermissionLike) -> bool:
        """Exact-name check against one role's grants; no wildcards."""
        role = self.find(role)
        if role is None:
            return False
        name = self.permissions.resolve_name(permission)
        if name is None:
            return False
        return any(p.name == name for p in self.permissions_of(role))

    def give_permission_to(self, role: RoleLike, *permissions: PermissionLike) -> Role:
        role = self.find_or_fail(role)
        wanted = self.permissions.find_all_or_fail(as_permission_refs(list(permissions)))
        existing = {p.id for p in self.permissions_of(role)}
        for permission in wanted:
            if permission.id not in existing:
                self.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
        self.session.commit()
        self.session.refresh(role)
        logger.info(f"[Roles] Granted {[p.name for p in wanted]} to role {role.name!r}")
        self._invalidate([role.id])
        return role

    def revoke_permission_to(self, role: RoleLike, *permissions: PermissionLike) -> Role:
        role = self.find_or_fail(role)
        # Unknown permissions are skipped, matching detach semantics
        found = [self.permissions.find(ref) for ref in as_permission_refs(list(permissions))]
        ids = [p.id for p in found if p is not None]
        if ids:
            rows = self.session.exec(
                select(RolePermission).where(
                    RolePermission.role_id == role.id,
                    RolePermission.permission_id.in_(ids),
                )
            ).all()
            for row in rows:
                self.session.delete(row)
            self.session.commit()
            self.session.refresh(role)
            logger.info(f"[Roles] Revoked {len(rows)} permissions from role {role.name!r}")
        self._invalidate([role.id])
        return role

    def sync_permissions(self, role: RoleLike, permissions: Iterable[PermissionLike]) -> Role:
        role = self.find_or_fail(role)
        wanted = {p.id for p in self.permissions.find_all_or_fail(as_permission_refs(list(permissions)))}
        rows = self.session.exec(select(RolePermission).where(RolePermission.role_id == role.id)).all()
        current = set()
        for row in rows:
            if row.permission_id in wanted:
                current.add(row.permission_id)
            else:
                self.session.delete(row)
        for permission_id in wanted - current:
            self.session.add(RolePermission(role_id=role.id, permission_id=permission_id))
        self.session.commit()
        self.session.refresh(role)
        self._invalidate([role.id])
        return role

    def _invalidate(self, role_ids: list[str]) -> None:
        self.cache.invalidate_roles(lambda: self.user_ids_for_roles(role_ids))
