"""
Shared fixtures.

Every test gets its own SQLite file database. A file, not :memory:,
because dependency counts run on worker threads that each open their own
pooled connection.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import timedelta

import pytest
from sqlalchemy import select, update

from tenantcore.database import create_db_engine, create_session_factory, init_db
from tenantcore.models import MemberRole, Organization, OrganizationMembership, Role
from tenantcore.models.base import new_id, utcnow
from tenantcore.services.authorization import PermissionEvaluator, RoleService, create_default_roles, seed_permissions
from tenantcore.services.dependencies import DependencyResolver
from tenantcore.services.gateway import DataAccessGateway
from tenantcore.services.storage import Storage
from tenantcore.services.tenancy import TenantContextResolver


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'tenantcore.db'}", pool_size=5, max_overflow=10)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def storage(session_factory):
    return Storage(session_factory, dependency_resolver=DependencyResolver(session_factory, max_workers=4))


@pytest.fixture
def resolver(session_factory):
    return TenantContextResolver(session_factory)


@pytest.fixture
def evaluator(session_factory):
    return PermissionEvaluator(session_factory)


@pytest.fixture
def role_service(session_factory):
    return RoleService(session_factory)


@pytest.fixture
def gateway(storage, resolver, evaluator):
    return DataAccessGateway(storage, resolver, evaluator)


@pytest.fixture
def seeded(session_factory):
    with session_factory() as session, session.begin():
        seed_permissions(session)


@pytest.fixture
def make_org(session_factory):
    """Create an organization; optionally with the four default roles."""
    def _make(name="Acme", default_roles=False):
        org_id = new_id()
        now = utcnow()
        with session_factory() as session, session.begin():
            session.add(Organization(id=org_id, name=name, slug=f"{name.lower()}-{org_id[:8]}", created_at=now, updated_at=now))
            session.flush()
            if default_roles:
                create_default_roles(session, org_id)
        return org_id
    return _make


@pytest.fixture
def org_a(make_org):
    return make_org("Alpha")


@pytest.fixture
def org_b(make_org):
    return make_org("Beta")


@pytest.fixture
def add_member(session_factory):
    def _add(organization_id, user_id, member_role=MemberRole.MEMBER, created_at=None):
        with session_factory() as session, session.begin():
            session.add(OrganizationMembership(
                id=new_id(),
                organization_id=organization_id,
                user_id=user_id,
                member_role=member_role,
                created_at=created_at or utcnow(),
            ))
    return _add


@pytest.fixture
def role_id(session_factory):
    """Id of a role by name within an organization."""
    def _lookup(organization_id, name):
        with session_factory() as session:
            return session.execute(
                select(Role.id).where(Role.organization_id == organization_id, Role.name == name)
            ).scalar_one()
    return _lookup


@pytest.fixture
def backdate(session_factory):
    def _backdate(model, entity_id, days):
        with session_factory() as session, session.begin():
            session.execute(
                update(model).where(model.id == entity_id).values(created_at=utcnow() - timedelta(days=days))
            )
    return _backdate
