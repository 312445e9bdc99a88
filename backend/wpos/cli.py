# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/wpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--outlet "Main Workshop"] [--timezone Asia/Jakarta]
#   Idempotent bootstrap: creates the first outlet and an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Outlets and users:
# - python -m flask outlets list
# - python -m flask users create --name "Admin" --email admin@wpos.local --password "..."
# - python -m flask users list [--outlet-id 1]
#
# Installments:
# - python -m flask installments mark-overdue
#   Flip PENDING payments past their due date to LATE (schedule this daily).
# - python -m flask installments overdue
#   List outstanding payments past their due date.

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import Outlet, User
from .services import installment_service, outlet_service, user_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--outlet', 'outlet_name', default='Main Workshop', help='Name of the first outlet')
@click.option('--timezone', 'tz_name', default=None, help='IANA zone for the outlet (defaults to OUTLET_DEFAULT_TIMEZONE)')
@click.option('--admin-email', default='admin@wpos.local', help='Email of the bootstrap admin user')
@click.option('--admin-password', default='Password123!', help='Password of the bootstrap admin user')
@with_appcontext
def init_system(outlet_name, tz_name, admin_email, admin_password):
    """
    Initialize the workshop: first outlet and an admin user.

    Safe to re-run; existing rows are reused.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing workshop POS...")
    db.create_all()

    outlet = Outlet.live().order_by(Outlet.id.asc()).first()
    if outlet is None:
        patch = {"name": outlet_name}
        if tz_name:
            patch["timezone"] = tz_name
        try:
            outlet = outlet_service.create_outlet(patch)
        except DomainError as exc:
            raise click.ClickException(exc.message)
        click.echo(f"PASS Created outlet: {outlet.name} (ID: {outlet.id}, TZ: {outlet.timezone})")
    else:
        click.echo(f"PASS Using existing outlet: {outlet.name} (ID: {outlet.id})")

    admin = User.live().filter(User.email == admin_email.strip().lower()).first()
    if admin is None:
        admin = user_service.create_user(
            {"name": "Administrator", "email": admin_email, "outlet_id": outlet.id},
            password=admin_password,
        )
        click.echo(f"PASS Created admin user: {admin.email} (ID: {admin.id})")
    else:
        click.echo(f"PASS Using existing admin user: {admin.email} (ID: {admin.id})")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('outlets')
def outlets_group():
    """Outlet inspection commands."""


@outlets_group.command('list')
@with_appcontext
def list_outlets_cli():
    outlets = outlet_service.list_outlets()
    if not outlets:
        click.echo("No outlets found.")
        return
    click.echo(f"{'ID':<5} {'Name':<30} {'Timezone':<24} {'Status'}")
    for outlet in outlets:
        click.echo(f"{outlet.id:<5} {outlet.name:<30} {outlet.timezone or '':<24} {outlet.status}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--outlet-id', type=int, help='Outlet the user works at')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(outlet_id, name, email, password):
    """Create a staff user; the password is hashed with bcrypt."""
    try:
        user = user_service.create_user(
            {"name": name, "email": email, "outlet_id": outlet_id},
            password=password,
        )
    except DomainError as exc:
        raise click.ClickException(exc.message)
    click.echo(f"PASS Created user: {user.name} ({user.email}), ID {user.id}")


@users_group.command('list')
@click.option('--outlet-id', type=int, help='Filter by outlet ID')
@with_appcontext
def list_users_cli(outlet_id):
    """List users with their outlet and active flag."""
    users = user_service.list_users(outlet_id=outlet_id)
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Outlet':<8} {'Name':<25} {'Email':<30} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        outlet = user.outlet_id if user.outlet_id is not None else "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {outlet!s:<8} {user.name:<25} {user.email:<30} {active_str}")
    click.echo("=" * 80 + "\n")


@click.group('installments')
def installments_group():
    """Installment maintenance commands."""


@installments_group.command('mark-overdue')
@with_appcontext
def mark_overdue_cli():
    """Flip PENDING installment payments past their due date to LATE."""
    changed = installment_service.mark_overdue()
    click.echo(f"PASS Marked {changed} payment(s) LATE")


@installments_group.command('overdue')
@with_appcontext
def list_overdue_cli():
    payments = installment_service.overdue_payments()
    if not payments:
        click.echo("No overdue payments.")
        return
    click.echo(f"{'ID':<6} {'Plan':<6} {'#':<4} {'Due':<12} {'Amount':>14} {'Status'}")
    for p in payments:
        click.echo(
            f"{p.id:<6} {p.installment_id:<6} {p.payment_number:<4} {p.due_date.isoformat():<12} "
            f"{p.due_amount!s:>14} {p.payment_status}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(outlets_group)
    app.cli.add_command(users_group)
    app.cli.add_command(installments_group)
