from datetime import datetime
from typing import Optional

from sqlmodel import Session, select

from permitted.config.settings import PermittedSettings
from permitted.core.exceptions import FeatureDisabled, ModuleDoesNotExist, SubModuleDoesNotExist
from permitted.core.refs import ModuleLike, PermissionLike, RefKind, as_module_ref
from permitted.database.models import Module, Permission, SubModule
from permitted.utils.logger import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "display_name", "description", "icon", "order")


class ModuleService:
    """Module -> SubModule -> Permission grouping used for coarse access checks."""

    def __init__(self, session: Session, settings: PermittedSettings, permissions=None):
        self.session = session
        self.settings = settings
        self.permissions = permissions

    def _require_modules(self) -> None:
        if not self.settings.modules_enabled:
            raise FeatureDisabled("The module system is disabled")

    def _require_sub_modules(self) -> None:
        self._require_modules()
        if not self.settings.sub_modules_enabled:
            raise FeatureDisabled("Sub-modules are disabled")

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------
    def all_modules(self) -> list[Module]:
        return list(self.session.exec(select(Module).order_by(Module.order, Module.name)).all())

    def find_module(self, module: ModuleLike) -> Optional[Module]:
        ref = as_module_ref(module)
        if ref.kind == RefKind.NAME:
            return self.session.exec(select(Module).where(Module.name == ref.value)).first()
        if ref.kind == RefKind.ID:
            return self.session.get(Module, ref.value)
        return ref.value

    def find_module_or_fail(self, module: ModuleLike) -> Module:
        found = self.find_module(module)
        if found is None:
            raise ModuleDoesNotExist(as_module_ref(module))
        return found

    def create_module(
        self,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        icon: Optional[str] = None,
        order: int = 0,
    ) -> Module:
        self._require_modules()
        module = Module(name=name, display_name=display_name, description=description, icon=icon, order=order)
        self.session.add(module)
        self.session.commit()
        self.session.refresh(module)
        logger.info(f"[Modules] Created module {module.name!r}")
        return module

    def update_module(self, module: ModuleLike, **fields) -> Module:
        module = self.find_module_or_fail(module)
        self._apply(module, fields)
        return module

    def delete_module(self, module: ModuleLike) -> None:
        """Sub-modules go with it; its permissions lose their module linkage."""
        module = self.find_module_or_fail(module)
        name = module.name
        self.session.delete(module)
        self.session.commit()
        logger.info(f"[Modules] Deleted module {name!r}")

    # ------------------------------------------------------------------
    # Sub-modules
    # ------------------------------------------------------------------
    def create_sub_module(
        self,
        module: ModuleLike,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        icon: Optional[str] = None,
        order: int = 0,
    ) -> SubModule:
        self._require_sub_modules()
        module = self.find_module_or_fail(module)
        sub_module = SubModule(
            module_id=module.id,
            name=name,
            display_name=display_name,
            description=description,
            icon=icon,
            order=order,
        )
        self.session.add(sub_module)
        self.session.commit()
        self.session.refresh(sub_module)
        logger.info(f"[Modules] Created sub-module {module.name!r} -> {sub_module.name!r}")
        return sub_module

    def find_sub_module(self, module: ModuleLike, name: str) -> Optional[SubModule]:
        module = self.find_module(module)
        if module is None:
            return None
        statement = select(SubModule).where(SubModule.module_id == module.id, SubModule.name == name)
        return self.session.exec(statement).first()

    def find_sub_module_or_fail(self, module: ModuleLike, name: str) -> SubModule:
        found = self.find_sub_module(module, name)
        if found is None:
            raise SubModuleDoesNotExist(f"{as_module_ref(module)}/{name}")
        return found

    def update_sub_module(self, sub_module: SubModule, **fields) -> SubModule:
        self._apply(sub_module, fields)
        return sub_module

    def delete_sub_module(self, sub_module: SubModule) -> None:
        self.session.delete(sub_module)
        self.session.commit()

    # ------------------------------------------------------------------
    # Permissions under a module
    # ------------------------------------------------------------------
    def get_all_permissions(self, module: ModuleLike) -> list[Permission]:
        """The module's own permissions plus every sub-module's."""
        module = self.find_module_or_fail(module)
        sub_module_ids = select(SubModule.id).where(SubModule.module_id == module.id)
        statement = select(Permission).where(
            (Permission.module_id == module.id) | (Permission.sub_module_id.in_(sub_module_ids))
        )
        return list(self.session.exec(statement.order_by(Permission.name)).all())

    def attach_permission(
        self,
        permission: PermissionLike,
        module: ModuleLike,
        sub_module: Optional[str] = None,
    ) -> Permission:
        permission = self.permissions.find_or_fail(permission)
        module = self.find_module_or_fail(module)
        sub = self.find_sub_module_or_fail(module, sub_module) if sub_module else None
        permission.module_id, permission.sub_module_id = self.permissions.check_module_linkage(module, sub)
        permission.updated_at = datetime.utcnow()
        self.session.add(permission)
        self.session.commit()
        self.session.refresh(permission)
        return permission

    def _apply(self, entity, fields: dict) -> None:
        for key, value in fields.items():
            if key not in UPDATABLE_FIELDS:
                raise ValueError(f"Field {key!r} cannot be updated")
            setattr(entity, key, value)
        entity.updated_at = datetime.utcnow()
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
