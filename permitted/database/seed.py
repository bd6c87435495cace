"""
Database seeding for the admin-API permission catalog and the super admin role.
Run this after database tables are created. Safe to run repeatedly.
"""
from typing import Optional

from sqlmodel import Session

from permitted.config.settings import PermittedSettings, get_settings
from permitted.core.permissions import PERMISSION_DEFINITIONS
from permitted.database.connection import get_db_session
from permitted.services import Permitted
from permitted.utils.logger import get_logger

logger = get_logger(__name__)

ADMIN_MODULE = "administration"


def seed_database(session: Optional[Session] = None, settings: Optional[PermittedSettings] = None) -> None:
    """Seed catalog permissions and the super admin role (no tenant)."""
    settings = settings or get_settings()
    if session is None:
        with get_db_session() as own_session:
            return seed_database(own_session, settings)

    # Seeding runs without a principal, so nothing is tenant scoped or stamped
    permitted = Permitted(session, principal=None, settings=settings)

    # File the catalog under its own module when the module system is on
    module = None
    if settings.modules_enabled:
        module = permitted.modules.find_module(ADMIN_MODULE) or permitted.create_module(
            ADMIN_MODULE, display_name="Administration", icon="shield"
        )

    names = []
    for perm_data in PERMISSION_DEFINITIONS:
        permission = permitted.permissions.find_by_name(perm_data["name"])
        if permission is None:
            permission = permitted.permissions.create(**perm_data, module=module)
        names.append(permission.name)

    if settings.super_admin_enabled:
        role = permitted.roles.find_or_create(settings.super_admin_role_name)
        permitted.roles.give_permission_to(role, names)

    logger.info(f"[Seed] Seeded {len(names)} permissions")


if __name__ == "__main__":
    from permitted.database.connection import create_db_and_tables

    create_db_and_tables()
    seed_database()
