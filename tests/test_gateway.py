"""Resolve -> authorize -> storage, end to end without HTTP."""
import pytest

from tenantcore.core.exceptions import DependencyConflictError, EntityNotFoundError, PermissionDenied
from tenantcore.core.permissions import CLIENT_ROLE, TEAM_MEMBER_ROLE


@pytest.fixture
def owner_context(gateway):
    return gateway.context_for("owner-user")


@pytest.fixture
def member_context(gateway, role_service, role_id, add_member, owner_context):
    """A second user in the owner's organization holding only Team Member."""
    org = owner_context.organization_id
    add_member(org, "member-user")
    role_service.assign_role(org, "member-user", role_id(org, TEAM_MEMBER_ROLE))
    return gateway.context_for("member-user")


def test_owner_can_do_everything(gateway, owner_context):
    client = gateway.create(owner_context, "clients", {"name": "Acme"})
    assert client.organization_id == owner_context.organization_id

    gateway.update(owner_context, "clients", client.id, {"industry": "Tech"})
    assert gateway.list(owner_context, "clients").total == 1
    assert gateway.stats(owner_context, "clients").breakdowns["industry"] == {"Tech": 1}
    assert gateway.check_dependencies(owner_context, "clients", client.id).has_dependencies is False

    gateway.delete(owner_context, "clients", client.id)
    with pytest.raises(EntityNotFoundError):
        gateway.get(owner_context, "clients", client.id)


def test_team_member_cannot_delete(gateway, owner_context, member_context):
    assert member_context.organization_id == owner_context.organization_id

    client = gateway.create(member_context, "clients", {"name": "Acme"})
    gateway.update(member_context, "clients", client.id, {"city": "Austin"})

    with pytest.raises(PermissionDenied):
        gateway.delete(member_context, "clients", client.id)
    assert gateway.get(owner_context, "clients", client.id).city == "Austin"


def test_denied_before_touching_data(gateway, role_service, role_id, add_member, owner_context):
    org = owner_context.organization_id
    add_member(org, "portal-user")
    role_service.assign_role(org, "portal-user", role_id(org, CLIENT_ROLE))
    portal = gateway.context_for("portal-user")

    with pytest.raises(PermissionDenied):
        gateway.list(portal, "clients")
    with pytest.raises(PermissionDenied):
        gateway.create(portal, "clients", {"name": "Nope"})
    # Denied even for ids that don't exist: permission comes first
    with pytest.raises(PermissionDenied):
        gateway.get(portal, "clients", "missing")

    assert gateway.list(owner_context, "clients").total == 0
    assert gateway.list(portal, "invoices").total == 0


def test_member_without_roles_is_denied(gateway, add_member, owner_context):
    add_member(owner_context.organization_id, "no-roles")
    context = gateway.context_for("no-roles")

    with pytest.raises(PermissionDenied):
        gateway.stats(context, "clients")


def test_other_tenant_sees_nothing(gateway, owner_context):
    client = gateway.create(owner_context, "clients", {"name": "Acme"})
    stranger = gateway.context_for("stranger")

    assert stranger.organization_id != owner_context.organization_id
    with pytest.raises(EntityNotFoundError):
        gateway.get(stranger, "clients", client.id)
    assert gateway.list(stranger, "clients").total == 0


def test_conflict_propagates(gateway, owner_context):
    client = gateway.create(owner_context, "clients", {"name": "Acme"})
    gateway.create(owner_context, "deals", {"name": "Deal", "client_company_id": client.id})

    with pytest.raises(DependencyConflictError) as exc_info:
        gateway.delete(owner_context, "clients", client.id)
    assert exc_info.value.dependencies["deals"] == 1


def test_create_records_actor(gateway, owner_context):
    deal = gateway.create(owner_context, "deals", {"name": "Deal"})
    assert deal.owner_id == "owner-user"

    events = gateway.activity(owner_context, "deals", deal.id)
    assert [event.actor_id for event in events] == ["owner-user"]
