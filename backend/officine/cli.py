# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/officine/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Societe management:
# - python -m flask societes list
# - python -m flask societes create --name "Pharmacie Atlas" --owner-email owner@atlas.ma --password "secret1"
#   Create the owner account (docteur) together with its societe.
#
# User inspection:
# - python -m flask users list [--societe-id 1]
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
# - python -m flask maintenance cleanup-security-events --retention-days 90
# - python -m flask maintenance purge-invitations --older-than-days 30

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Societe, User
from .services import auth_service, maintenance_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('societes')
def societes_group():
    """Societe (tenant) management commands."""


@societes_group.command('list')
@with_appcontext
def list_societes():
    """List all societes."""
    societes = db.session.query(Societe).order_by(Societe.id).all()

    if not societes:
        click.echo("No societes found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<35} {'Code':<8} {'Owner':<8} {'Users'}")
    click.echo("="*80)

    for societe in societes:
        user_count = db.session.query(User).filter_by(societe_id=societe.id, is_deleted=False).count()
        click.echo(
            f"{societe.id:<5} {societe.name[:35]:<35} {societe.invitation_code or '-':<8} "
            f"{societe.owner_user_id or '-':<8} {user_count}"
        )

    click.echo("="*80 + "\n")


@societes_group.command('create')
@click.option('--name', required=True, help='Societe name')
@click.option('--owner-email', required=True, help='Email of the owner account')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--display-name', default=None, help='Owner display name')
@with_appcontext
def create_societe_cli(name, owner_email, password, display_name):
    """Create an owner account (docteur) and its societe."""
    try:
        user = auth_service.register_with_societe(
            owner_email,
            password,
            societe_name=name,
            display_name=display_name,
        )
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    societe = user.societe
    click.echo(
        f"PASS Created societe: {societe.name} (ID: {societe.id}, Code: {societe.invitation_code}) "
        f"owned by {user.email}"
    )


@click.group('users')
def users_group():
    """User inspection commands."""


@users_group.command('list')
@click.option('--societe-id', type=int, help='Filter by societe ID')
@click.option('--include-deleted', is_flag=True, help='Include soft-deleted users')
@with_appcontext
def list_users(societe_id, include_deleted):
    """List users with role and account state."""
    query = db.session.query(User)

    if societe_id:
        query = query.filter_by(societe_id=societe_id)
    if not include_deleted:
        query = query.filter_by(is_deleted=False)

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Soc':<5} {'Email':<35} {'Role':<10} {'Owner':<6} {'State'}")
    click.echo("="*100)

    for user in users:
        if user.is_deleted:
            state = "deleted"
        elif user.is_locked:
            state = "locked"
        elif not user.is_active:
            state = "inactive"
        else:
            state = "active"
        owner_str = "Yes" if user.is_owner else "No"

        click.echo(
            f"{user.id:<5} {user.societe_id or '-':<5} {user.email:<35} {user.role or '-':<10} {owner_str:<6} {state}"
        )

    click.echo("="*100 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked sessions."""
    deleted = maintenance_service.cleanup_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions older than {older_than_days} days.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


@maintenance_group.command('purge-invitations')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def purge_invitations_cli(older_than_days):
    """Delete pending invitations long past their expiry."""
    deleted = maintenance_service.purge_expired_invitations(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} expired invitations.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(societes_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
