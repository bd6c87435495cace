import os
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", 8000))
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./permitted.db")
DB_ECHO = _env_bool("DB_ECHO", False)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 10))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 5))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:8000").split(",")
    if origin.strip()
]

# Principal resolver (bearer tokens issued by the embedding application)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Multi-tenancy
# Modes: "none", "single_database" (tenant columns), "multi_database" (one store per tenant)
MULTI_TENANCY_ENABLED = _env_bool("PERMITTED_MULTI_TENANCY", False)
TENANCY_MODE = os.getenv("PERMITTED_TENANCY_MODE", "single_database")
TENANT_FOREIGN_KEY = os.getenv("PERMITTED_TENANT_KEY", "tenant_id")
SUB_TENANT_ENABLED = _env_bool("PERMITTED_SUB_TENANT_ENABLED", False)
SUB_TENANT_FOREIGN_KEY = os.getenv("PERMITTED_SUB_TENANT_KEY", "sub_tenant_id")
# When the principal has no tenant id: True -> empty results, False -> unscoped query
TENANT_FAIL_CLOSED = _env_bool("PERMITTED_TENANT_FAIL_CLOSED", True)

# Module system (optional grouping of permissions)
MODULES_ENABLED = _env_bool("PERMITTED_MODULES_ENABLED", False)
SUB_MODULES_ENABLED = _env_bool("PERMITTED_SUB_MODULES_ENABLED", False)
REQUIRE_MODULE = _env_bool("PERMITTED_REQUIRE_MODULE", False)

# Super admin
SUPER_ADMIN_ENABLED = _env_bool("PERMITTED_SUPER_ADMIN_ENABLED", True)
SUPER_ADMIN_ROLE = os.getenv("PERMITTED_SUPER_ADMIN_ROLE", "super admin")
SUPER_ADMIN_GATE = os.getenv("PERMITTED_SUPER_ADMIN_GATE") or None

# Cache
CACHE_ENABLED = _env_bool("PERMITTED_CACHE_ENABLED", True)
CACHE_EXPIRATION = int(os.getenv("PERMITTED_CACHE_EXPIRATION", 3600))  # seconds
CACHE_KEY_PREFIX = os.getenv("PERMITTED_CACHE_PREFIX", "permitted")
CACHE_INVALIDATION = os.getenv("PERMITTED_CACHE_INVALIDATION", "tag")  # "tag" or "principal"
REDIS_URL = os.getenv("PERMITTED_REDIS_URL")  # Optional: shared store across workers

# Wildcards ("users.*" grants "users.create", "users.posts.edit", ...)
WILDCARDS_ENABLED = _env_bool("PERMITTED_WILDCARDS_ENABLED", False)

# Guard assigned to roles/permissions created without one
DEFAULT_GUARD = os.getenv("PERMITTED_DEFAULT_GUARD", "web")

# Table names
TABLE_NAMES = {
    "users": os.getenv("PERMITTED_TABLE_USERS", "users"),
    "roles": os.getenv("PERMITTED_TABLE_ROLES", "roles"),
    "permissions": os.getenv("PERMITTED_TABLE_PERMISSIONS", "permissions"),
    "modules": os.getenv("PERMITTED_TABLE_MODULES", "modules"),
    "sub_modules": os.getenv("PERMITTED_TABLE_SUB_MODULES", "sub_modules"),
    "role_user": os.getenv("PERMITTED_TABLE_ROLE_USER", "role_user"),
    "permission_role": os.getenv("PERMITTED_TABLE_PERMISSION_ROLE", "permission_role"),
}

# Pivot column names
COLUMN_NAMES = {
    "role_pivot_key": os.getenv("PERMITTED_COLUMN_ROLE_PIVOT_KEY", "role_id"),
    "permission_pivot_key": os.getenv("PERMITTED_COLUMN_PERMISSION_PIVOT_KEY", "permission_id"),
    "user_pivot_key": os.getenv("PERMITTED_COLUMN_USER_PIVOT_KEY", "user_id"),
}


@dataclass
class PermittedSettings:
    """Runtime flags consulted by the authorization services."""

    multi_tenancy_enabled: bool = MULTI_TENANCY_ENABLED
    tenancy_mode: str = TENANCY_MODE
    tenant_foreign_key: str = TENANT_FOREIGN_KEY
    sub_tenant_enabled: bool = SUB_TENANT_ENABLED
    sub_tenant_foreign_key: str = SUB_TENANT_FOREIGN_KEY
    tenant_fail_closed: bool = TENANT_FAIL_CLOSED

    modules_enabled: bool = MODULES_ENABLED
    sub_modules_enabled: bool = SUB_MODULES_ENABLED
    require_module: bool = REQUIRE_MODULE

    super_admin_enabled: bool = SUPER_ADMIN_ENABLED
    super_admin_role_name: str = SUPER_ADMIN_ROLE
    super_admin_gate: Optional[str] = SUPER_ADMIN_GATE
    super_admin_callback: Optional[Callable[[Any], bool]] = None

    cache_enabled: bool = CACHE_ENABLED
    cache_ttl: int = CACHE_EXPIRATION
    cache_key_prefix: str = CACHE_KEY_PREFIX
    cache_invalidation: str = CACHE_INVALIDATION

    wildcards_enabled: bool = WILDCARDS_ENABLED
    default_guard: str = DEFAULT_GUARD

    table_names: dict = field(default_factory=lambda: dict(TABLE_NAMES))

    @property
    def tenant_scoping_active(self) -> bool:
        """Roles carry tenant columns that must be filtered on."""
        return self.multi_tenancy_enabled and self.tenancy_mode == "single_database"


_settings: Optional[PermittedSettings] = None


def get_settings() -> PermittedSettings:
    global _settings
    if _settings is None:
        _settings = PermittedSettings()
    return _settings
