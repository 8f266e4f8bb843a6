"""HTTP adapter: status mapping, auth and the organization header."""
import pytest
from fastapi.testclient import TestClient

from tenantcore.api.deps import get_db_session_factory
from tenantcore.core.permissions import CLIENT_ROLE
from tenantcore.core.security import create_access_token
from tenantcore.main import app


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_db_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user_id, organization_id=None):
    headers = {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}
    if organization_id:
        headers["X-Organization-ID"] = organization_id
    return headers


@pytest.fixture
def owner(client):
    """Headers for a user whose organization is bootstrapped on first request."""
    headers = auth("owner-user")
    response = client.get("/api/v1/organizations/current", headers=headers)
    assert response.status_code == 200
    return headers


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "ok"


def test_request_id_is_echoed_or_generated(client):
    assert client.get("/health", headers={"X-Request-ID": "abc123"}).headers["X-Request-ID"] == "abc123"
    assert client.get("/health").headers["X-Request-ID"]


class TestAuthentication:

    def test_missing_token(self, client):
        response = client.get("/api/v1/records/clients")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client):
        response = client.get("/api/v1/records/clients", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestOrganizations:

    def test_current_bootstraps_and_lists_permissions(self, client):
        response = client.get("/api/v1/organizations/current", headers=auth("new-user-1"))

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "new-user-1"
        assert body["organization"]["slug"] == "org-new-user"
        assert "clients:view" in body["permissions"]
        assert "roles:delete" in body["permissions"]

    def test_current_syncs_profile_claims(self, client):
        def headers(**claims):
            return {"Authorization": f"Bearer {create_access_token({'sub': 'profile-user', **claims})}"}

        first = client.get("/api/v1/organizations/current", headers=headers(email="pat@example.com", first_name="Pat"))
        assert first.json()["user"] == {
            "id": "profile-user",
            "email": "pat@example.com",
            "first_name": "Pat",
            "last_name": None,
            "profile_image_url": None,
        }

        # Missing claims keep what is stored
        second = client.get("/api/v1/organizations/current", headers=headers(last_name="Lee"))
        user = second.json()["user"]
        assert (user["email"], user["first_name"], user["last_name"]) == ("pat@example.com", "Pat", "Lee")

    def test_list_organizations(self, client, owner):
        response = client.get("/api/v1/organizations", headers=owner)
        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_foreign_organization_header_is_404(self, client, owner, make_org):
        foreign = make_org("Foreign")
        response = client.get("/api/v1/records/clients", headers={**owner, "X-Organization-ID": foreign})
        assert response.status_code == 404


class TestRecords:

    def test_crud_round(self, client, owner):
        created = client.post(
            "/api/v1/records/clients",
            json={"name": "Acme", "industry": "Tech", "organization_id": "someone-else"},
            headers=owner,
        )
        assert created.status_code == 201
        record = created.json()
        current = client.get("/api/v1/organizations/current", headers=owner).json()
        assert record["organization_id"] == current["organization"]["id"]

        fetched = client.get(f"/api/v1/records/clients/{record['id']}", headers=owner)
        assert fetched.json()["name"] == "Acme"

        patched = client.patch(f"/api/v1/records/clients/{record['id']}", json={"city": "Austin"}, headers=owner)
        assert patched.status_code == 200
        assert patched.json()["city"] == "Austin"
        assert patched.json()["industry"] == "Tech"

        deleted = client.delete(f"/api/v1/records/clients/{record['id']}", headers=owner)
        assert deleted.status_code == 204
        assert client.get(f"/api/v1/records/clients/{record['id']}", headers=owner).status_code == 404

    def test_list_with_filters_and_pagination(self, client, owner):
        for i in range(5):
            client.post("/api/v1/records/clients", json={"name": f"C{i}", "industry": "Tech" if i % 2 else "Retail"}, headers=owner)

        response = client.get("/api/v1/records/clients", params={"industry": "Retail", "limit": 2}, headers=owner)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["limit"] == 2
        assert body["total_pages"] == 2
        assert body["has_next"] is True
        assert len(body["items"]) == 2

    def test_boolean_filter(self, client, owner):
        client.post("/api/v1/records/contacts", json={"first_name": "A", "last_name": "B", "is_primary": True}, headers=owner)
        client.post("/api/v1/records/contacts", json={"first_name": "C", "last_name": "D"}, headers=owner)

        response = client.get("/api/v1/records/contacts", params={"is_primary": "true"}, headers=owner)
        assert [item["first_name"] for item in response.json()["items"]] == ["A"]

    def test_undeclared_filter_is_400(self, client, owner):
        response = client.get("/api/v1/records/clients", params={"notes": "x"}, headers=owner)
        assert response.status_code == 400

    def test_unknown_entity_type_is_400(self, client, owner):
        assert client.get("/api/v1/records/spaceships", headers=owner).status_code == 400

    def test_invalid_payload_is_422(self, client, owner):
        response = client.post("/api/v1/records/deals", json={"name": "Deal", "stage": "bogus"}, headers=owner)
        assert response.status_code == 422

    def test_delete_conflict_reports_dependencies(self, client, owner):
        acme = client.post("/api/v1/records/clients", json={"name": "Acme"}, headers=owner).json()
        for i in range(3):
            client.post(
                "/api/v1/records/contacts",
                json={"first_name": f"C{i}", "last_name": "Doe", "client_company_id": acme["id"]},
                headers=owner,
            )

        dependencies = client.get(f"/api/v1/records/clients/{acme['id']}/dependencies", headers=owner).json()
        assert dependencies["has_dependencies"] is True
        assert dependencies["counts"]["contacts"] == 3
        assert dependencies["counts"]["deals"] == 0

        response = client.delete(f"/api/v1/records/clients/{acme['id']}", headers=owner)
        assert response.status_code == 409
        assert response.json()["dependencies"]["contacts"] == 3
        assert client.get(f"/api/v1/records/clients/{acme['id']}", headers=owner).status_code == 200

    def test_stats(self, client, owner):
        client.post("/api/v1/records/clients", json={"name": "A", "industry": "Tech"}, headers=owner)
        client.post("/api/v1/records/clients", json={"name": "B"}, headers=owner)

        response = client.get("/api/v1/records/clients/stats", headers=owner)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["recently_added"] == 2
        assert body["breakdowns"]["industry"] == {"Tech": 1}

    def test_activity(self, client, owner):
        acme = client.post("/api/v1/records/clients", json={"name": "Acme"}, headers=owner).json()
        client.patch(f"/api/v1/records/clients/{acme['id']}", json={"city": "Austin"}, headers=owner)

        response = client.get(f"/api/v1/records/clients/{acme['id']}/activity", headers=owner)
        assert response.status_code == 200
        assert sorted(event["type"] for event in response.json()) == ["created", "updated"]

    def test_reference_to_other_tenant_is_404(self, client, owner):
        engagement = client.post("/api/v1/records/engagements", json={"name": "Retainer"}, headers=owner).json()
        stranger = auth("stranger-user")

        response = client.post(
            "/api/v1/records/projects",
            json={"name": "Hijack", "engagement_id": engagement["id"]},
            headers=stranger,
        )
        assert response.status_code == 404
        assert client.get("/api/v1/records/projects", headers=stranger).json()["total"] == 0

    def test_other_tenant_gets_404(self, client, owner):
        acme = client.post("/api/v1/records/clients", json={"name": "Acme"}, headers=owner).json()
        stranger = auth("stranger-user")

        assert client.get(f"/api/v1/records/clients/{acme['id']}", headers=stranger).status_code == 404
        assert client.delete(f"/api/v1/records/clients/{acme['id']}", headers=stranger).status_code == 404
        assert client.get("/api/v1/records/clients", headers=stranger).json()["total"] == 0


class TestRoles:

    def test_list_roles_and_permissions(self, client, owner):
        roles = client.get("/api/v1/roles", headers=owner)
        assert roles.status_code == 200
        assert {role["name"] for role in roles.json()} == {"Admin", "Manager", "Team Member", "Client"}

        permissions = client.get("/api/v1/permissions", headers=owner)
        assert permissions.status_code == 200
        dashboard = [p["permission_type"] for p in permissions.json() if p["feature_area"] == "dashboard"]
        assert dashboard == ["view"]

    def test_create_update_delete_role(self, client, owner):
        created = client.post(
            "/api/v1/roles",
            json={"name": "Auditor", "permissions": [{"feature_area": "clients", "action": "view"}]},
            headers=owner,
        )
        assert created.status_code == 201
        role = created.json()
        assert role["is_default"] is False
        assert role["permissions"] == [{"feature_area": "clients", "action": "view"}]

        updated = client.put(
            f"/api/v1/roles/{role['id']}",
            json={"permissions": [{"feature_area": "deals", "action": "edit"}]},
            headers=owner,
        )
        assert updated.json()["permissions"] == [{"feature_area": "deals", "action": "edit"}]

        assert client.delete(f"/api/v1/roles/{role['id']}", headers=owner).status_code == 204

    def test_unknown_permission_is_rejected(self, client, owner):
        response = client.post(
            "/api/v1/roles",
            json={"name": "Bad", "permissions": [{"feature_area": "dashboard", "action": "delete"}]},
            headers=owner,
        )
        assert response.status_code == 400

    def test_default_role_delete_is_409(self, client, owner):
        admin = next(r for r in client.get("/api/v1/roles", headers=owner).json() if r["name"] == "Admin")
        assert client.delete(f"/api/v1/roles/{admin['id']}", headers=owner).status_code == 409

    def test_assign_and_revoke(self, client, owner, add_member):
        org_id = client.get("/api/v1/organizations/current", headers=owner).json()["organization"]["id"]
        add_member(org_id, "portal-user")
        portal = auth("portal-user")

        # A member with no roles can't even list clients
        assert client.get("/api/v1/records/clients", headers=portal).status_code == 403

        client_role = next(r for r in client.get("/api/v1/roles", headers=owner).json() if r["name"] == CLIENT_ROLE)
        assigned = client.post("/api/v1/users/portal-user/roles", json={"role_id": client_role["id"]}, headers=owner)
        assert assigned.status_code == 201
        assert assigned.json()["assigned_by_id"] == "owner-user"

        assert client.get("/api/v1/records/invoices", headers=portal).status_code == 200
        assert client.get("/api/v1/records/clients", headers=portal).status_code == 403
        assert client.get("/api/v1/roles", headers=portal).status_code == 403

        roles = client.get("/api/v1/users/portal-user/roles", headers=owner).json()
        assert [r["name"] for r in roles] == [CLIENT_ROLE]

        revoked = client.delete(f"/api/v1/users/portal-user/roles/{client_role['id']}", headers=owner)
        assert revoked.status_code == 204
        assert client.delete(f"/api/v1/users/portal-user/roles/{client_role['id']}", headers=owner).status_code == 404

    def test_foreign_role_assignment_is_404(self, client, owner):
        other = auth("other-owner")
        other_roles = client.get("/api/v1/roles", headers=other).json()
        foreign_admin = next(r for r in other_roles if r["name"] == "Admin")

        response = client.post("/api/v1/users/someone/roles", json={"role_id": foreign_admin["id"]}, headers=owner)
        assert response.status_code == 404
