# Overview: Pytest coverage for registration, login, sessions and identity resolution.

from datetime import timedelta

import pytest

from officine.models import SecurityEvent, SessionToken, User
from officine.permissions import ROLE_DOCTEUR
from officine.services import auth_service, session_service
from officine.services.auth_service import AccountBlockedError, AuthenticationError, PasswordValidationError
from officine.services.policy_service import BLOCK_MESSAGE_LOCKED
from officine.time_utils import utcnow
from officine.validation import ConflictError, ValidationError

PASSWORD = "secret123"


class TestRegistration:

    def test_register_without_invitation_awaits_societe(self, db_session):
        user = auth_service.register("  Nadia@Example.MA ", PASSWORD, confirmation=PASSWORD)

        assert user.email == "nadia@example.ma"
        assert user.societe_id is None
        assert user.password_hash != PASSWORD
        identity = session_service.Identity.from_user(user)
        assert identity.is_authenticated
        assert identity.awaiting_societe

    def test_password_rules(self, db_session):
        with pytest.raises(PasswordValidationError):
            auth_service.register("a@example.ma", "12345", confirmation="12345")
        with pytest.raises(PasswordValidationError):
            auth_service.register("a@example.ma", PASSWORD, confirmation="different")
        assert db_session.query(User).count() == 0

    def test_invalid_email(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.register("not-an-email", PASSWORD)

    def test_duplicate_email(self, tenant_a):
        with pytest.raises(ConflictError):
            auth_service.register("OWNER@atlas.ma", PASSWORD)

    def test_register_with_societe_makes_owner_docteur(self, db_session):
        user = auth_service.register_with_societe(
            "owner@nouvelle.ma", PASSWORD, societe_name="Pharmacie Nouvelle", confirmation=PASSWORD
        )
        assert user.is_owner is True
        assert user.role == ROLE_DOCTEUR
        assert user.societe.name == "Pharmacie Nouvelle"
        assert user.societe.owner_user_id == user.id
        assert len(user.societe.invitation_code) == 6
        assert user.societe.settings is not None


class TestLogin:

    def test_login_returns_token(self, tenant_a):
        user, token = auth_service.login(tenant_a.vendeuse.email, PASSWORD)
        assert user.id == tenant_a.vendeuse.id
        assert user.last_login_at is not None

        context = session_service.validate_session(token)
        assert context.identity.user_id == user.id
        assert context.identity.societe_id == tenant_a.societe.id

    def test_bad_password_logs_failure(self, db_session, tenant_a):
        with pytest.raises(AuthenticationError):
            auth_service.authenticate(tenant_a.vendeuse.email, "wrong-password")
        assert db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").count() == 1

    def test_unknown_email(self, db_session):
        with pytest.raises(AuthenticationError):
            auth_service.authenticate("ghost@example.ma", PASSWORD)

    def test_locked_user_cannot_log_in(self, db_session, tenant_a):
        tenant_a.vendeuse.is_locked = True
        db_session.commit()

        with pytest.raises(AccountBlockedError) as exc:
            auth_service.authenticate(tenant_a.vendeuse.email, PASSWORD)
        assert str(exc.value) == BLOCK_MESSAGE_LOCKED


class TestSessions:

    def test_token_is_stored_hashed(self, db_session, tenant_a):
        session, token = session_service.create_session(tenant_a.docteur.id)
        assert session.token_hash == session_service.hash_token(token)
        assert token not in session.token_hash

    def test_user_without_societe_can_hold_session(self, lone_user):
        _, token = session_service.create_session(lone_user.id)
        context = session_service.validate_session(token)
        assert context.identity.awaiting_societe

    def test_revoked_token_is_invalid(self, tenant_a):
        _, token = session_service.create_session(tenant_a.docteur.id)
        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_absolute_timeout(self, db_session, tenant_a):
        session, token = session_service.create_session(tenant_a.docteur.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_idle_timeout_revokes(self, db_session, tenant_a):
        session, token = session_service.create_session(tenant_a.docteur.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token) is None
        db_session.refresh(session)
        assert session.is_revoked
        assert session.revoked_reason == "Idle timeout"

    def test_revoke_all_user_sessions(self, tenant_a):
        session_service.create_session(tenant_a.docteur.id)
        session_service.create_session(tenant_a.docteur.id)
        assert session_service.revoke_all_user_sessions(tenant_a.docteur.id) == 2

    def test_cleanup_expired_sessions(self, db_session, tenant_a):
        session, _ = session_service.create_session(tenant_a.docteur.id)
        session.is_revoked = True
        session.created_at = utcnow() - timedelta(days=40)
        db_session.commit()

        assert session_service.cleanup_expired_sessions(older_than_days=30) == 1
        assert db_session.query(SessionToken).count() == 0


class TestResolveIdentity:

    def test_missing_user_is_anonymous(self, db_session):
        identity = session_service.resolve_identity(12345)
        assert not identity.is_authenticated
        assert identity.societe_id is None

    def test_email_mismatch_is_anonymous(self, tenant_a):
        identity = session_service.resolve_identity(tenant_a.docteur.id, "someone@else.ma")
        assert not identity.is_authenticated

    def test_resolves_role_and_tenant(self, tenant_a):
        identity = session_service.resolve_identity(tenant_a.owner.id, tenant_a.owner.email)
        assert identity.role == ROLE_DOCTEUR
        assert identity.is_owner
        assert identity.societe_id == tenant_a.societe.id
