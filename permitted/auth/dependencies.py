from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from permitted.auth.token import extract_claims
from permitted.config.settings import PermittedSettings, get_settings
from permitted.core.cache import CacheStore, get_cache_store
from permitted.core.exceptions import MissingCapabilityError
from permitted.core.permissions import Permissions
from permitted.database.connection import get_session
from permitted.database.models import User
from permitted.services import Permitted
from permitted.utils.logger import get_logger

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


def get_token_from_request(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Extract token from Authorization header or cookie."""
    if credentials:
        return credentials.credentials

    token = request.cookies.get("access_token")
    if token:
        return token

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(get_token_from_request),
    session: Session = Depends(get_session),
) -> User:
    """Get current authenticated user from token."""
    claims = extract_claims(token)
    user = session.get(User, claims.user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if claims.tenant_id and claims.tenant_id != user.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token tenant does not match user",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


def get_permitted_settings() -> PermittedSettings:
    return get_settings()


def get_permission_cache_store() -> CacheStore:
    return get_cache_store()


def get_permitted(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    settings: PermittedSettings = Depends(get_permitted_settings),
    cache_store: CacheStore = Depends(get_permission_cache_store),
) -> Permitted:
    """Services scoped to the current user's tenant."""
    try:
        return Permitted(session, principal=user, settings=settings, cache_store=cache_store)
    except MissingCapabilityError as e:
        logger.error(f"[Auth] {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def _split(requirement) -> list[str]:
    # "a|b" means any of a, b
    value = requirement.value if isinstance(requirement, Permissions) else str(requirement)
    return [item.strip() for item in value.split("|") if item.strip()]


class _Guard:
    """Base dependency: run a boolean check, 403 on False."""

    def __init__(self, requirement):
        self.required = _split(requirement)

    def check(self, permitted: Permitted, user: User) -> bool:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    def __call__(
        self,
        user: User = Depends(get_current_user),
        permitted: Permitted = Depends(get_permitted),
    ) -> User:
        try:
            allowed = self.check(permitted, user)
        except MissingCapabilityError as e:
            logger.error(f"[Auth] {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

        if not allowed:
            logger.info(f"[Auth] Denied user {user.id}: {self.describe()}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {self.describe()}",
            )
        return user


class PermissionChecker(_Guard):
    """Dependency class for checking user permissions."""

    def check(self, permitted, user):
        return permitted.authorizer.has_any_permission(user, self.required)

    def describe(self):
        return f"one of permissions {self.required} required"


class RoleChecker(_Guard):
    def check(self, permitted, user):
        return permitted.authorizer.has_any_role(user, self.required)

    def describe(self):
        return f"one of roles {self.required} required"


class RoleOrPermissionChecker(_Guard):
    def check(self, permitted, user):
        return any(permitted.authorizer.has_role_or_permission(user, item) for item in self.required)

    def describe(self):
        return f"one of roles or permissions {self.required} required"


class ModuleAccessChecker(_Guard):
    def check(self, permitted, user):
        return any(permitted.authorizer.has_module_access(user, module) for module in self.required)

    def describe(self):
        return f"access to module {self.required} required"


def require_permission(permission: Permissions | str):
    """Factory function to create permission dependency."""
    return PermissionChecker(permission)


def require_role(role: str):
    return RoleChecker(role)


def require_role_or_permission(role_or_permission: str):
    return RoleOrPermissionChecker(role_or_permission)


def require_module_access(module: str):
    return ModuleAccessChecker(module)
