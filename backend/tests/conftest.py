"""
Pytest fixtures for the officine backend tests.

Provides the test database, two tenants (each with an owner docteur, a
plain docteur and a vendeuse), identity helpers and a login helper for
HTTP tests.
"""

from types import SimpleNamespace

import pytest
from sqlalchemy import text

from officine import create_app
from officine.extensions import db
from officine.permissions import ROLE_DOCTEUR, ROLE_VENDEUSE
from officine.services.auth_service import create_user
from officine.services.session_service import Identity
from officine.services.societe_service import create_societe


PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before each test."""
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    db.session.rollback()


def _make_tenant(name: str, slug: str) -> SimpleNamespace:
    owner = create_user(f"owner@{slug}.ma", PASSWORD, display_name=f"Owner {slug}", commit=False)
    societe = create_societe(owner, name=name)
    docteur = create_user(
        f"docteur@{slug}.ma", PASSWORD, display_name=f"Docteur {slug}", societe_id=societe.id, role=ROLE_DOCTEUR
    )
    vendeuse = create_user(
        f"vendeuse@{slug}.ma", PASSWORD, display_name=f"Vendeuse {slug}", societe_id=societe.id, role=ROLE_VENDEUSE
    )
    return SimpleNamespace(societe=societe, owner=owner, docteur=docteur, vendeuse=vendeuse)


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Societe A with owner, docteur and vendeuse."""
    return _make_tenant("Pharmacie Atlas", "atlas")


@pytest.fixture(scope='function')
def strict_tenant_a(tenant_a):
    """Tenant A with SQLite foreign key enforcement on for the test."""
    db.session.commit()
    db.session.execute(text("PRAGMA foreign_keys=ON"))

    yield tenant_a

    db.session.rollback()
    db.session.execute(text("PRAGMA foreign_keys=OFF"))
    db.session.commit()


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Societe B with owner, docteur and vendeuse."""
    return _make_tenant("Pharmacie Bahia", "bahia")


@pytest.fixture(scope='function')
def lone_user(db_session):
    """Registered user awaiting a societe."""
    return create_user("lone@example.ma", PASSWORD, display_name="Lone")


@pytest.fixture
def ident():
    """Identity of a user, reloaded from the database."""
    def _ident(user):
        db.session.refresh(user)
        return Identity.from_user(user)
    return _ident


@pytest.fixture
def login(client):
    """Log a user in through the API and return Authorization headers."""
    def _login(user_or_email, password: str = PASSWORD) -> dict:
        email = getattr(user_or_email, "email", user_or_email)
        response = client.post('/api/auth/login', json={'email': email, 'password': password})
        assert response.status_code == 200, response.get_json()
        return {'Authorization': f"Bearer {response.get_json()['token']}"}
    return _login
