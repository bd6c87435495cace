from permitted.config.settings import PermittedSettings, get_settings
from permitted.core.exceptions import (
    FeatureDisabled,
    InvalidSubModule,
    MissingCapabilityError,
    ModuleDoesNotExist,
    NotFoundError,
    PermissionDoesNotExist,
    PermissionModuleRequired,
    PermittedError,
    RoleDoesNotExist,
    SubModuleDoesNotExist,
    TenantResolutionError,
)
from permitted.core.gates import gates
from permitted.core.refs import ModuleRef, PermissionRef, RoleRef
from permitted.services import Authorizer, Permitted

__version__ = "1.0.0"

__all__ = [
    "Authorizer",
    "Permitted",
    "PermittedSettings",
    "get_settings",
    "gates",
    "RoleRef",
    "PermissionRef",
    "ModuleRef",
    "PermittedError",
    "NotFoundError",
    "RoleDoesNotExist",
    "PermissionDoesNotExist",
    "ModuleDoesNotExist",
    "SubModuleDoesNotExist",
    "MissingCapabilityError",
    "TenantResolutionError",
    "PermissionModuleRequired",
    "InvalidSubModule",
    "FeatureDisabled",
]
