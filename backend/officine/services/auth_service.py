# Overview: Registration, password hashing and authentication.

"""
Authentication Service

Every action must be attributable. Passwords are hashed with bcrypt;
emails are unique across the whole application (a user belongs to at most
one societe).

Registration paths:
- plain registration: the user awaits a societe (join code or invitation)
- registration with an invitation code: bound to the invitation's societe
- registration with a new societe: the user becomes its owner

SECURITY NOTES:
- Passwords hashed with bcrypt (BCRYPT_ROUNDS, default 12)
- Minimum 6 characters, confirmation must match
- Login refuses deleted, locked and deactivated accounts with their message
- Failed logins are recorded as security events
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from .invitation_service import redeem_invitation
from .policy_service import PermissionDeniedError, block_message, can_access_app, log_security_event
from .session_service import create_session
from .societe_service import create_societe


MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthenticationError(Exception):
    """Bad credentials. Deliberately vague."""

    def __init__(self, message: str = "Email ou mot de passe incorrect"):
        super().__init__(message)


class AccountBlockedError(PermissionDeniedError):
    """Valid credentials on a deleted, locked or deactivated account."""


class PasswordValidationError(ValidationError):
    pass


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Adresse email invalide !")
    return email


def validate_password(password: str | None, confirmation: str | None = None) -> None:
    """
    Requirements:
    - At least 6 characters
    - Equal to confirmation when one is given
    """
    password = password or ""
    if confirmation is not None and password != confirmation:
        raise PasswordValidationError("Les mots de passe ne correspondent pas !")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères !"
        )


def hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    email: str,
    password: str,
    *,
    display_name: str | None = None,
    societe_id: int | None = None,
    role: str | None = None,
    is_owner: bool = False,
    confirmation: str | None = None,
    commit: bool = True,
) -> User:
    """
    Create a user with a bcrypt hash.

    Raises ValidationError on bad email/password and ConflictError when
    the email is taken.
    """
    email = normalize_email(email)
    validate_password(password, confirmation)

    if db.session.query(User.id).filter_by(email=email).first() is not None:
        raise ConflictError("Cette adresse email est déjà utilisée !")

    user = User(
        email=email,
        display_name=(display_name or "").strip() or email.split("@")[0],
        password_hash=hash_password(password),
        societe_id=societe_id,
        role=role,
        is_owner=is_owner,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()

    if commit:
        db.session.commit()
    return user


def register(
    email: str,
    password: str,
    *,
    confirmation: str | None = None,
    display_name: str | None = None,
    invitation_code: str | None = None,
) -> User:
    """
    Plain registration, optionally redeeming an invitation code.

    User creation and invitation redemption commit together: a refused
    invitation leaves no account behind.
    """
    try:
        user = create_user(
            email,
            password,
            display_name=display_name,
            confirmation=confirmation,
            commit=False,
        )
        if invitation_code:
            redeem_invitation(user, invitation_code)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("User %s registered (societe=%s)", user.id, user.societe_id)
    return user


def register_with_societe(
    email: str,
    password: str,
    *,
    societe_name: str,
    confirmation: str | None = None,
    display_name: str | None = None,
    address: str | None = None,
    phone: str | None = None,
) -> User:
    """Registration of a new pharmacy: the user becomes owner and docteur."""
    try:
        user = create_user(
            email,
            password,
            display_name=display_name,
            confirmation=confirmation,
            commit=False,
        )
        create_societe(user, name=societe_name, address=address, phone=phone, email=user.email, commit=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return user


def authenticate(email: str | None, password: str | None) -> User:
    """
    Check credentials and account state.

    Raises AuthenticationError on bad credentials and AccountBlockedError
    (carrying the user-visible block message) on blocked accounts.
    Updates last_login_at on success.
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter_by(email=email).first() if email else None

    if user is None or not verify_password(password or "", user.password_hash):
        log_security_event(
            user_id=user.id if user else None,
            event_type="LOGIN_FAILED",
            success=False,
            action="LOGIN",
            reason=f"Bad credentials for {email or '<empty>'}",
            societe_id=user.societe_id if user else None,
        )
        raise AuthenticationError()

    if not can_access_app(user.role, user.is_active, user.is_locked, user.is_deleted):
        message = block_message(user.is_active, user.is_locked, user.is_deleted)
        log_security_event(
            user_id=user.id,
            event_type="ACCOUNT_BLOCKED",
            success=False,
            action="LOGIN",
            reason=message,
            societe_id=user.societe_id,
        )
        raise AccountBlockedError(message)

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def login(
    email: str | None,
    password: str | None,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[User, str]:
    """authenticate() then open a session. Returns (user, plaintext_token)."""
    user = authenticate(email, password)
    _, token = create_session(user.id, user_agent=user_agent, ip_address=ip_address)
    return user, token
