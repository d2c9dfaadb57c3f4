# Overview: Pytest coverage for owner-only user management.

import pytest

from officine.models import SecurityEvent, SessionToken
from officine.permissions import ROLE_DOCTEUR
from officine.services import auth_service, purchase_service, session_service, user_service
from officine.services.auth_service import AccountBlockedError
from officine.services.policy_service import BLOCK_MESSAGE_DELETED, BLOCK_MESSAGE_LOCKED, PermissionDeniedError
from officine.services.tenant_service import TenantAccessError
from officine.validation import ValidationError

PASSWORD = "secret123"


def _active_sessions(db_session, user_id):
    return db_session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).count()


class TestUserService:

    def test_list_excludes_deleted_by_default(self, tenant_a, ident):
        owner = ident(tenant_a.owner)
        user_service.soft_delete(owner, tenant_a.vendeuse.id)

        emails = [u.email for u in user_service.list_users(owner)]
        assert emails[0] == tenant_a.owner.email
        assert tenant_a.vendeuse.email not in emails
        assert len(user_service.list_users(owner, include_deleted=True)) == 3

    def test_lock_revokes_sessions(self, db_session, tenant_a, ident):
        session_service.create_session(tenant_a.vendeuse.id)
        session_service.create_session(tenant_a.vendeuse.id)

        user = user_service.set_locked(ident(tenant_a.owner), tenant_a.vendeuse.id, True)

        assert user.is_locked
        assert user.locked_by_user_id == tenant_a.owner.id
        assert _active_sessions(db_session, tenant_a.vendeuse.id) == 0
        with pytest.raises(AccountBlockedError) as exc:
            auth_service.authenticate(tenant_a.vendeuse.email, PASSWORD)
        assert str(exc.value) == BLOCK_MESSAGE_LOCKED

    def test_unlock_restores_login(self, tenant_a, ident):
        owner = ident(tenant_a.owner)
        user_service.set_locked(owner, tenant_a.vendeuse.id, True)
        user = user_service.set_locked(owner, tenant_a.vendeuse.id, False)

        assert not user.is_locked
        assert user.locked_at is None
        assert auth_service.authenticate(tenant_a.vendeuse.email, PASSWORD).id == user.id

    def test_soft_delete_keeps_row(self, db_session, tenant_a, ident):
        session_service.create_session(tenant_a.docteur.id)
        user = user_service.soft_delete(ident(tenant_a.owner), tenant_a.docteur.id)

        assert user.is_deleted
        assert user.deleted_by_user_id == tenant_a.owner.id
        assert _active_sessions(db_session, tenant_a.docteur.id) == 0
        with pytest.raises(AccountBlockedError) as exc:
            auth_service.authenticate(tenant_a.docteur.email, PASSWORD)
        assert str(exc.value) == BLOCK_MESSAGE_DELETED

    def test_change_role(self, tenant_a, ident):
        user = user_service.change_role(ident(tenant_a.owner), tenant_a.vendeuse.id, ROLE_DOCTEUR)
        assert user.role == ROLE_DOCTEUR

    def test_grant_custom_permissions(self, tenant_a, ident):
        user = user_service.set_custom_permissions(
            ident(tenant_a.owner), tenant_a.vendeuse.id, ["voir_achats", "voir_achats"]
        )
        assert user.custom_permissions == ["voir_achats"]

        vendeuse = ident(tenant_a.vendeuse)
        assert vendeuse.custom_permissions == frozenset({"voir_achats"})
        assert purchase_service.list_purchases(vendeuse) == []

    def test_owner_only_tag_cannot_be_granted(self, tenant_a, ident):
        with pytest.raises(ValidationError):
            user_service.set_custom_permissions(ident(tenant_a.owner), tenant_a.vendeuse.id, ["gerer_societe"])
        assert ident(tenant_a.vendeuse).custom_permissions == frozenset()

    def test_only_the_owner_grants_and_never_to_self(self, tenant_a, ident):
        with pytest.raises(PermissionDeniedError):
            user_service.set_custom_permissions(ident(tenant_a.docteur), tenant_a.vendeuse.id, ["voir_achats"])
        with pytest.raises(PermissionDeniedError):
            user_service.set_custom_permissions(ident(tenant_a.owner), tenant_a.owner.id, ["voir_achats"])

    def test_owner_account_is_protected(self, db_session, tenant_a, ident):
        with pytest.raises(PermissionDeniedError):
            user_service.soft_delete(ident(tenant_a.owner), tenant_a.owner.id)
        assert not tenant_a.owner.is_deleted
        assert db_session.query(SecurityEvent).filter_by(event_type="OWNER_PROTECTION_DENIED").count() == 1

    def test_foreign_user_is_not_found(self, tenant_a, tenant_b, ident):
        with pytest.raises(TenantAccessError):
            user_service.set_locked(ident(tenant_a.owner), tenant_b.vendeuse.id, True)

    def test_deactivate(self, db_session, tenant_a, ident):
        session_service.create_session(tenant_a.vendeuse.id)
        user = user_service.set_active(ident(tenant_a.owner), tenant_a.vendeuse.id, False)

        assert user.is_active is False
        assert _active_sessions(db_session, tenant_a.vendeuse.id) == 0


class TestUserRoutes:

    def test_owner_lists_members(self, client, login, tenant_a):
        response = client.get("/api/users", headers=login(tenant_a.owner))
        assert response.status_code == 200
        assert response.get_json()["count"] == 3

    def test_docteur_is_forbidden(self, client, login, tenant_a):
        response = client.get("/api/users", headers=login(tenant_a.docteur))
        assert response.status_code == 403
        assert response.get_json()["required_permission"] == "gerer_utilisateurs"

    def test_lock_cuts_the_current_token(self, client, login, tenant_a):
        vendeuse_headers = login(tenant_a.vendeuse)
        owner_headers = login(tenant_a.owner)

        response = client.post(f"/api/users/{tenant_a.vendeuse.id}/lock", headers=owner_headers)
        assert response.status_code == 200
        assert response.get_json()["is_locked"] is True

        assert client.get("/api/auth/me", headers=vendeuse_headers).status_code == 401

    def test_blocked_account_with_live_token_gets_403(self, db_session, client, login, tenant_a):
        headers = login(tenant_a.vendeuse)
        tenant_a.vendeuse.is_locked = True
        db_session.commit()

        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 403
        assert response.get_json()["message"] == BLOCK_MESSAGE_LOCKED
        assert db_session.query(SecurityEvent).filter_by(event_type="ACCOUNT_BLOCKED").count() == 1

    def test_change_role_route(self, client, login, tenant_a):
        response = client.put(
            f"/api/users/{tenant_a.vendeuse.id}/role",
            json={"role": ROLE_DOCTEUR},
            headers=login(tenant_a.owner),
        )
        assert response.status_code == 200
        assert response.get_json()["role"] == ROLE_DOCTEUR

    def test_delete_owner_is_refused(self, client, login, tenant_a):
        response = client.delete(f"/api/users/{tenant_a.owner.id}", headers=login(tenant_a.owner))
        assert response.status_code == 403

    def test_granted_tag_opens_the_route(self, client, login, tenant_a):
        vendeuse_headers = login(tenant_a.vendeuse)
        assert client.get("/api/purchases", headers=vendeuse_headers).status_code == 403

        response = client.put(
            f"/api/users/{tenant_a.vendeuse.id}/permissions",
            json={"permissions": ["voir_achats"]},
            headers=login(tenant_a.owner),
        )
        assert response.status_code == 200
        assert response.get_json()["custom_permissions"] == ["voir_achats"]

        assert client.get("/api/purchases", headers=vendeuse_headers).status_code == 200
        me = client.get("/api/auth/me", headers=vendeuse_headers).get_json()
        assert "voir_achats" in me["permissions"]
        assert me["identity"]["custom_permissions"] == ["voir_achats"]
