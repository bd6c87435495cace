import os

# Role uniqueness includes the tenant columns only when tenancy is on at import time
os.environ.setdefault("PERMITTED_MULTI_TENANCY", "true")
os.environ.setdefault("PERMITTED_SUB_TENANT_ENABLED", "true")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from permitted.config.settings import PermittedSettings
from permitted.core.cache import MemoryCacheStore
from permitted.core.gates import GateRegistry
from permitted.database.connection import create_db_and_tables
from permitted.database.models import User
from permitted.services import Permitted


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def cache_store():
    return MemoryCacheStore()


@pytest.fixture
def gate_registry():
    return GateRegistry()


@pytest.fixture
def make_settings():
    """Settings with every optional feature off unless asked for."""

    def factory(**overrides) -> PermittedSettings:
        values = dict(
            multi_tenancy_enabled=False,
            tenancy_mode="single_database",
            sub_tenant_enabled=False,
            tenant_fail_closed=True,
            modules_enabled=False,
            sub_modules_enabled=False,
            require_module=False,
            super_admin_enabled=True,
            super_admin_role_name="super admin",
            super_admin_gate=None,
            cache_enabled=True,
            cache_ttl=3600,
            cache_key_prefix="permitted",
            cache_invalidation="tag",
            wildcards_enabled=False,
            default_guard="web",
        )
        values.update(overrides)
        return PermittedSettings(**values)

    return factory


@pytest.fixture
def make_permitted(session, make_settings, cache_store, gate_registry):
    def factory(principal=None, store=None, **overrides) -> Permitted:
        return Permitted(
            session,
            principal=principal,
            settings=make_settings(**overrides),
            cache_store=store if store is not None else cache_store,
            gates=gate_registry,
        )

    return factory


@pytest.fixture
def make_user(session):
    def factory(tenant_id=None, sub_tenant_id=None, **fields) -> User:
        user = User(tenant_id=tenant_id, sub_tenant_id=sub_tenant_id, **fields)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return factory
