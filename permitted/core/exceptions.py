"""
Errors raised by the authorization core.

Denials are never exceptions: checks return False. These are reserved for
lookups that must succeed and for integration mistakes.
"""
from typing import Any


class PermittedError(Exception):
    """Base class for every error raised by the package."""


class NotFoundError(PermittedError):
    entity = "Entity"

    def __init__(self, reference: Any):
        self.reference = reference
        super().__init__(f"{self.entity} not found: {reference}")


class RoleDoesNotExist(NotFoundError):
    entity = "Role"


class PermissionDoesNotExist(NotFoundError):
    entity = "Permission"


class ModuleDoesNotExist(NotFoundError):
    entity = "Module"


class SubModuleDoesNotExist(NotFoundError):
    entity = "SubModule"


class MissingCapabilityError(PermittedError):
    """The object used as a principal lacks the required accessors."""

    def __init__(self, principal: Any, capability: str):
        self.principal = principal
        self.capability = capability
        super().__init__(
            f"{type(principal).__name__} does not implement {capability}; "
            f"it cannot be used as a principal"
        )


class TenantResolutionError(PermittedError):
    """Tenancy is enabled but the acting principal has no tenant id."""


class PermissionModuleRequired(PermittedError):
    """Permissions must belong to a module when require_module is on."""


class InvalidSubModule(PermittedError):
    """A permission's sub-module belongs to a different module."""


class FeatureDisabled(PermittedError):
    """An optional feature (modules, sub-modules) is switched off."""
