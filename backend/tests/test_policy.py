# Overview: Pytest coverage for the permission table and the owner-protection rules.

"""
Authorization Tests

- Role table: docteur holds every non-owner tag, vendeuse a fixed subset
- Owner-only tags come from is_owner, never from a role
- Custom tags extend a member's role defaults, never with owner-only tags
- Unknown role or unknown tag is denied
- Owner protection: nobody modifies the owner, nobody modifies themselves
- Denials raise PermissionDeniedError and leave a SecurityEvent
"""

from dataclasses import replace

import pytest

from officine.models import SecurityEvent
from officine.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    OWNER_ONLY_PERMISSIONS,
    PERMISSION_DEFINITIONS,
    ROLE_DOCTEUR,
    ROLE_VENDEUSE,
)
from officine.services import policy_service, user_service
from officine.services.policy_service import (
    BLOCK_MESSAGE_DELETED,
    BLOCK_MESSAGE_INACTIVE,
    BLOCK_MESSAGE_LOCKED,
    PermissionDeniedError,
    block_message,
    can,
    clean_custom_permissions,
    can_access_app,
    can_change_user_role,
    can_manage_users,
    can_modify_user,
    permissions_for,
)
from officine.services.session_service import Identity
from officine.validation import ValidationError


ALL_TAGS = [perm[0] for perm in PERMISSION_DEFINITIONS]


class TestRoleTable:

    def test_docteur_has_every_non_owner_tag(self):
        for tag in ALL_TAGS:
            assert can(ROLE_DOCTEUR, tag) is (tag not in OWNER_ONLY_PERMISSIONS)

    def test_vendeuse_subset(self):
        assert can(ROLE_VENDEUSE, "ajouter_vente")
        assert can(ROLE_VENDEUSE, "voir_stock")
        assert can(ROLE_VENDEUSE, "imprimer_documents")
        assert not can(ROLE_VENDEUSE, "supprimer_vente")
        assert not can(ROLE_VENDEUSE, "voir_achats")
        assert not can(ROLE_VENDEUSE, "supprimer_achat")
        assert not can(ROLE_VENDEUSE, "parametres")
        assert not can(ROLE_VENDEUSE, "gerer_invitations")

    def test_vendeuse_is_strict_subset_of_docteur(self):
        assert set(DEFAULT_ROLE_PERMISSIONS[ROLE_VENDEUSE]) < set(DEFAULT_ROLE_PERMISSIONS[ROLE_DOCTEUR])

    def test_owner_only_tags_need_is_owner(self):
        assert not can(ROLE_DOCTEUR, "gerer_utilisateurs")
        assert can(ROLE_DOCTEUR, "gerer_utilisateurs", is_owner=True)
        assert can(ROLE_DOCTEUR, "gerer_societe", is_owner=True)

    def test_unknown_role_or_tag_is_denied(self):
        assert not can("admin", "voir_ventes")
        assert not can(None, "voir_ventes")
        assert not can(ROLE_DOCTEUR, "launch_missiles")
        assert not can("admin", "gerer_utilisateurs", is_owner=True)

    def test_manage_users_depends_on_owner_flag_only(self):
        assert can_manage_users(ROLE_VENDEUSE, True)
        assert not can_manage_users(ROLE_DOCTEUR, False)


class TestCustomPermissions:

    def test_custom_tags_extend_role_defaults(self):
        assert not can(ROLE_VENDEUSE, "voir_achats")
        assert can(ROLE_VENDEUSE, "voir_achats", custom={"voir_achats"})
        assert permissions_for(ROLE_VENDEUSE, custom=["voir_achats"]) == (
            set(DEFAULT_ROLE_PERMISSIONS[ROLE_VENDEUSE]) | {"voir_achats"}
        )

    def test_owner_only_and_unknown_tags_are_ignored(self):
        perms = permissions_for(ROLE_VENDEUSE, custom=["gerer_utilisateurs", "launch_missiles"])
        assert perms == set(DEFAULT_ROLE_PERMISSIONS[ROLE_VENDEUSE])
        assert not can(ROLE_VENDEUSE, "gerer_societe", custom=["gerer_societe"])

    def test_custom_tags_need_a_known_role(self):
        assert not can("admin", "voir_achats", custom=["voir_achats"])
        assert not can(None, "voir_achats", custom=["voir_achats"])

    def test_clean_sorts_and_deduplicates(self):
        assert clean_custom_permissions(["voir_achats", "ajouter_achat", "voir_achats"]) == [
            "ajouter_achat",
            "voir_achats",
        ]
        assert clean_custom_permissions([]) == []

    @pytest.mark.parametrize("tags", [["gerer_societe"], ["inconnu"], "voir_achats", [3], None])
    def test_clean_rejects_non_grantable(self, tags):
        with pytest.raises(ValidationError):
            clean_custom_permissions(tags)

    def test_require_uses_identity_custom_tags(self, tenant_a, ident):
        vendeuse = ident(tenant_a.vendeuse)
        with pytest.raises(PermissionDeniedError):
            policy_service.require(vendeuse, "voir_achats")

        policy_service.require(replace(vendeuse, custom_permissions=frozenset({"voir_achats"})), "voir_achats")


class TestOwnerProtection:

    def test_owner_can_modify_plain_member(self):
        assert can_modify_user(True, 1, 2, False)

    def test_nobody_modifies_the_owner(self):
        assert not can_modify_user(True, 1, 2, True)

    def test_nobody_modifies_themselves(self):
        assert not can_modify_user(True, 1, 1, False)

    def test_non_owner_cannot_modify(self):
        assert not can_modify_user(False, 1, 2, False)

    def test_role_change_requires_known_role(self):
        assert can_change_user_role(True, 1, 2, False, ROLE_VENDEUSE)
        assert not can_change_user_role(True, 1, 2, False, "pharmacien-chef")
        assert not can_change_user_role(True, 1, 2, True, ROLE_VENDEUSE)
        assert not can_change_user_role(False, 1, 2, False, ROLE_DOCTEUR)


class TestAccountState:

    def test_can_access_app(self):
        assert can_access_app(ROLE_VENDEUSE, True, False, False)
        assert not can_access_app(ROLE_VENDEUSE, False, False, False)
        assert not can_access_app(ROLE_VENDEUSE, True, True, False)
        assert not can_access_app(ROLE_VENDEUSE, True, False, True)

    def test_block_message_priority(self):
        assert block_message(True, False, False) is None
        assert block_message(False, True, True) == BLOCK_MESSAGE_DELETED
        assert block_message(True, True, False) == BLOCK_MESSAGE_LOCKED
        assert block_message(False, False, False) == BLOCK_MESSAGE_INACTIVE


class TestRequire:

    def test_require_passes_for_granted_tag(self, tenant_a, ident):
        policy_service.require(ident(tenant_a.vendeuse), "ajouter_vente")

    def test_require_denial_logs_security_event(self, db_session, tenant_a, ident):
        identity = ident(tenant_a.vendeuse)
        with pytest.raises(PermissionDeniedError) as exc:
            policy_service.require(identity, "supprimer_achat")

        assert exc.value.permission == "supprimer_achat"
        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == tenant_a.vendeuse.id
        assert event.societe_id == tenant_a.societe.id
        assert event.action == "supprimer_achat"

    def test_anonymous_is_denied(self, db_session):
        with pytest.raises(PermissionDeniedError):
            policy_service.require(Identity.anonymous(), "voir_dashboard")

    def test_locked_identity_is_denied(self, tenant_a, ident):
        locked = replace(ident(tenant_a.docteur), is_locked=True)
        with pytest.raises(PermissionDeniedError):
            policy_service.require(locked, "voir_ventes")


class TestUserManagementGuard:

    def test_docteur_cannot_lock_anyone(self, tenant_a, ident):
        with pytest.raises(PermissionDeniedError):
            user_service.set_locked(ident(tenant_a.docteur), tenant_a.vendeuse.id, True)

    def test_owner_cannot_lock_self(self, db_session, tenant_a, ident):
        with pytest.raises(PermissionDeniedError):
            user_service.set_locked(ident(tenant_a.owner), tenant_a.owner.id, True)

        event = db_session.query(SecurityEvent).filter_by(event_type="OWNER_PROTECTION_DENIED").one()
        assert event.action == "LOCK"

    def test_owner_cannot_set_unknown_role(self, tenant_a, ident):
        with pytest.raises(PermissionDeniedError):
            user_service.change_role(ident(tenant_a.owner), tenant_a.vendeuse.id, "superviseur")
