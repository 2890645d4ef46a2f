# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to storefront (PowerShell: $env:FLASK_APP="storefront").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin and delivery worker.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role CUSTOMER]
#   List users with role, balance and active status.
# - python -m flask users create --username shop42 --password "Password123!" --role CUSTOMER
#   Create a user (prompts if options are omitted).
#
# Cache:
# - python -m flask cache clear
#   Drop every cached catalogue and dashboard entry.

import click
from flask.cli import with_appcontext

from .extensions import db, cache
from .errors import ServiceError
from .models import User
from .models.auth import VALID_ROLES, ROLE_ADMIN, ROLE_WORKER
from .services.auth_service import create_user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and default accounts.

    Creates (if missing):
    - admin  / Password123!  (ADMIN)
    - driver / Password123!  (WORKER)

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing storefront...")

    db.create_all()
    click.echo("PASS Tables created")

    default_password = "Password123!"
    default_users = [
        ("admin", ROLE_ADMIN, "Administrator"),
        ("driver", ROLE_WORKER, "Delivery Worker"),
    ]

    for username, role, name in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username, default_password, role=role, name=name)
            click.echo(f"PASS Created user: {username} with role '{role}'")
        except ServiceError as e:
            click.echo(f"FAIL Failed to create user '{username}': {e.message}")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo("   admin  / Password123!")
    click.echo("   driver / Password123!")


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
    cache.clear()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(VALID_ROLES), prompt=True, help='Role')
@click.option('--phone', default=None, help='Phone number (optional, unique)')
@click.option('--shop-name', default=None, help='Shop name (customers)')
@with_appcontext
def create_user_cli(username, password, role, phone, shop_name):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    profile = {"shop_name": shop_name} if shop_name else {}
    try:
        user = create_user(username, password, role=role, phone=phone, **profile)
    except ServiceError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {username} (ID: {user.id}) with role '{role}'")


@users_group.command('list')
@click.option('--role', type=click.Choice(VALID_ROLES), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List users with their role, balance and active status."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Balance':>12} {'Active':<8} {'Shop'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.username:<20} {user.role:<10} {user.balance:>12} "
            f"{active_str:<8} {user.shop_name or ''}"
        )

    click.echo("="*80 + "\n")


@click.group('cache')
def cache_group():
    """Read cache maintenance."""


@cache_group.command('clear')
@with_appcontext
def clear_cache():
    cache.clear()
    click.echo("PASS Cache cleared")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(cache_group)
