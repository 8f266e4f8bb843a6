"""Tenant context resolution and first-login bootstrap."""
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from tenantcore.core.exceptions import OrganizationNotFoundError
from tenantcore.core.permissions import ADMIN_ROLE
from tenantcore.models import MemberRole, Organization, OrganizationMembership, User
from tenantcore.models.base import utcnow
from tenantcore.services.tenancy import DEFAULT_ORGANIZATION_NAME, RequestContext

USER_ID = "3f9a1c2e-0000-4000-8000-000000000001"


def _count(session_factory, model):
    with session_factory() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


class TestBootstrap:

    def test_first_resolve_creates_organization(self, resolver, role_service, session_factory):
        organization_id = resolver.resolve(USER_ID)

        organizations = resolver.list_memberships(USER_ID)
        assert [org.id for org in organizations] == [organization_id]
        assert organizations[0].name == DEFAULT_ORGANIZATION_NAME
        assert organizations[0].slug == "org-3f9a1c2e"

        with session_factory() as session:
            membership = session.execute(select(OrganizationMembership)).scalar_one()
        assert membership.member_role == MemberRole.OWNER

        assert {role.name for role in role_service.list_roles(organization_id)} == {
            "Admin", "Manager", "Team Member", "Client"
        }
        assert [role.name for role in role_service.list_user_roles(organization_id, USER_ID)] == [ADMIN_ROLE]

    def test_bootstrapped_user_is_admin(self, resolver, evaluator):
        organization_id = resolver.resolve(USER_ID)
        assert evaluator.authorize(USER_ID, organization_id, "roles", "delete")
        assert evaluator.authorize(USER_ID, organization_id, "clients", "export")

    def test_second_resolve_reuses_organization(self, resolver, session_factory):
        first = resolver.resolve(USER_ID)
        second = resolver.resolve(USER_ID)

        assert first == second
        assert _count(session_factory, Organization) == 1

    def test_slug_collision_gets_suffix(self, resolver):
        first = resolver.resolve("abcdefgh-1111")
        second = resolver.resolve("abcdefgh-2222")

        assert first != second
        slugs = {org.slug for org in resolver.list_memberships("abcdefgh-2222")}
        (slug,) = slugs
        assert slug.startswith("org-abcdefgh-")
        assert slug != "org-abcdefgh"

    def test_empty_user_id_is_rejected(self, resolver):
        with pytest.raises(ValueError):
            resolver.resolve("")


class TestResolution:

    def test_oldest_membership_wins(self, resolver, make_org, add_member):
        older = make_org("Older")
        newer = make_org("Newer")
        add_member(newer, "carol", created_at=utcnow())
        add_member(older, "carol", created_at=utcnow() - timedelta(days=10))

        assert resolver.resolve("carol") == older
        assert [org.id for org in resolver.list_memberships("carol")] == [older, newer]

    def test_explicit_organization_must_be_a_membership(self, resolver, make_org, add_member):
        mine = make_org("Mine")
        theirs = make_org("Theirs")
        add_member(mine, "carol")

        assert resolver.resolve("carol", mine) == mine
        with pytest.raises(OrganizationNotFoundError):
            resolver.resolve("carol", theirs)

    def test_explicit_organization_for_new_user_does_not_bootstrap(self, resolver, make_org, session_factory):
        theirs = make_org("Theirs")

        with pytest.raises(OrganizationNotFoundError):
            resolver.resolve("newcomer", theirs)
        assert _count(session_factory, OrganizationMembership) == 0

    def test_context_for(self, resolver, make_org, add_member):
        org = make_org("Mine")
        add_member(org, "carol")

        context = resolver.context_for("carol")
        assert context == RequestContext(user_id="carol", organization_id=org)
        assert resolver.get_organization(context).name == "Mine"


def test_ensure_user_inserts_then_updates(resolver, session_factory):
    resolver.ensure_user("dave", email="dave@example.com", first_name="Dave")
    resolver.ensure_user("dave", last_name="Jones", first_name=None)

    with session_factory() as session:
        user = session.get(User, "dave")
    assert (user.email, user.first_name, user.last_name) == ("dave@example.com", "Dave", "Jones")
