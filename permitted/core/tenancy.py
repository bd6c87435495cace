"""
Tenant scoping for role queries.

Every statement that reads roles is passed through ``TenantScope.apply`` and
every new role through ``TenantScope.stamp``. The scope is built per request
from the acting principal; nothing here reads ambient state.
"""
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from sqlalchemy import false

from permitted.config.settings import PermittedSettings
from permitted.core.exceptions import MissingCapabilityError, TenantResolutionError
from permitted.database.models import Role
from permitted.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class Principal(Protocol):
    """Anything with a stable identity key can be authorized."""

    id: Any


@runtime_checkable
class TenantAware(Protocol):
    def get_tenant_id(self) -> Optional[str]:
        ...


@runtime_checkable
class SubTenantAware(Protocol):
    def get_sub_tenant_id(self) -> Optional[str]:
        ...


def ensure_principal(principal: Any) -> None:
    """Raise if ``principal`` cannot be used for role/permission checks."""
    if not isinstance(principal, Principal) or principal.id is None:
        raise MissingCapabilityError(principal, "a stable 'id'")


@dataclass(frozen=True)
class TenantContext:
    tenant_id: Optional[str]
    sub_tenant_id: Optional[str] = None


class TenantScope:
    """Restricts role statements to the acting principal's tenant."""

    def __init__(self, settings: PermittedSettings, principal: Any = None, bypass: bool = False):
        self.settings = settings
        self.principal = principal
        self.bypassed = bypass
        self.context: Optional[TenantContext] = self._resolve_context() if self.active else None

    @property
    def active(self) -> bool:
        return (
            self.settings.tenant_scoping_active
            and self.principal is not None
            and not self.bypassed
        )

    def _resolve_context(self) -> TenantContext:
        if not isinstance(self.principal, TenantAware):
            raise MissingCapabilityError(self.principal, "get_tenant_id()")
        tenant_id = self.principal.get_tenant_id()

        sub_tenant_id = None
        if self.settings.sub_tenant_enabled:
            if not isinstance(self.principal, SubTenantAware):
                raise MissingCapabilityError(self.principal, "get_sub_tenant_id()")
            sub_tenant_id = self.principal.get_sub_tenant_id()

        return TenantContext(tenant_id=tenant_id, sub_tenant_id=sub_tenant_id)

    def unscoped(self) -> "TenantScope":
        """Cross-tenant view for administrative tooling. Use per query."""
        logger.info(f"[Tenancy] Scope bypassed for principal {getattr(self.principal, 'id', None)}")
        return TenantScope(self.settings, self.principal, bypass=True)

    def apply(self, statement):
        """Add tenant (and sub-tenant) predicates to a statement over Role."""
        if not self.active:
            return statement

        ctx = self.context
        if ctx.tenant_id is None:
            if self.settings.tenant_fail_closed:
                logger.error(
                    f"[Tenancy] Principal {self.principal.id} has no tenant id; "
                    f"role query returns nothing"
                )
                return statement.where(false())
            logger.warning(
                f"[Tenancy] Principal {self.principal.id} has no tenant id; "
                f"role query is NOT tenant scoped"
            )
        else:
            statement = statement.where(Role.tenant_id == ctx.tenant_id)

        if self.settings.sub_tenant_enabled:
            if ctx.sub_tenant_id is not None:
                statement = statement.where(Role.sub_tenant_id == ctx.sub_tenant_id)
            elif self.settings.tenant_fail_closed:
                # Tenant-level principals only see tenant-level roles
                statement = statement.where(Role.sub_tenant_id.is_(None))

        return statement

    def permits(self, role: Role) -> bool:
        """Whether an already loaded role is visible under this scope."""
        if not self.active:
            return True

        ctx = self.context
        if ctx.tenant_id is None:
            if self.settings.tenant_fail_closed:
                return False
        elif role.tenant_id != ctx.tenant_id:
            return False

        if self.settings.sub_tenant_enabled:
            if ctx.sub_tenant_id is not None:
                return role.sub_tenant_id == ctx.sub_tenant_id
            if self.settings.tenant_fail_closed:
                return role.sub_tenant_id is None
        return True

    def stamp(self, role: Role) -> Role:
        """Set a new role's tenant columns from the acting principal."""
        if not self.active:
            return role

        ctx = self.context
        if ctx.tenant_id is None and self.settings.tenant_fail_closed:
            raise TenantResolutionError(
                f"Cannot create role {role.name!r}: principal {self.principal.id} has no tenant id"
            )

        role.tenant_id = ctx.tenant_id
        if self.settings.sub_tenant_enabled:
            role.sub_tenant_id = ctx.sub_tenant_id
        return role
