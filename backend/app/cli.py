# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "app:create_app" (PowerShell: $env:FLASK_APP="app:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Admin accounts:
# - python -m flask admins list
#   List dashboard admins.
# - python -m flask admins create --email owner@example.com --password "at-least-10-chars"
#   Create an admin (prompts if options are omitted). Works even after setup is closed.
#
# Proposal inspection:
# - python -m flask proposals list --limit 20
#   Newest proposals with status, payment status and open count.
# - python -m flask proposals show <proposal_id>
#   Full record (never counts as a client open).
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired or revoked admin sessions older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import AdminUser
from .services import auth_service, lifecycle_service, maintenance_service
from .services.package_service import tier_label
from .validation import ConflictError, NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask admins create' to add an admin.")


@click.group('admins')
def admins_group():
    """Dashboard admin accounts."""


@admins_group.command('list')
@with_appcontext
def list_admins():
    """List all admins."""
    admins = db.session.query(AdminUser).order_by(AdminUser.id).all()
    if not admins:
        click.echo("No admins found. Use 'flask admins create' or POST /api/admin/setup.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Email':<40} {'Last login'}")
    click.echo("=" * 80)
    for admin in admins:
        last_login = admin.last_login_at.isoformat() if admin.last_login_at else "never"
        click.echo(f"{admin.id:<5} {admin.email:<40} {last_login}")
    click.echo("=" * 80 + "\n")


@admins_group.command('create')
@click.option('--email', prompt=True, help='Admin email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password (min 10 chars)')
@with_appcontext
def create_admin_cli(email, password):
    """Create a dashboard admin."""
    try:
        admin = auth_service.create_admin(email, password)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created admin {admin.email} (ID: {admin.id})")


@click.group('proposals')
def proposals_group():
    """Proposal inspection commands."""


@proposals_group.command('list')
@click.option('--limit', type=int, default=20, show_default=True)
@click.option('--offset', type=int, default=0, show_default=True)
@with_appcontext
def list_proposals_cli(limit, offset):
    """List proposals, newest first."""
    page = lifecycle_service.list_proposals(limit, offset)
    if not page.proposals:
        click.echo("No proposals found.")
        return

    click.echo("\n" + "=" * 110)
    click.echo(f"{'ID':<14} {'Company':<30} {'Package':<15} {'Status':<8} {'Payment':<8} {'Opens':<6} {'Created'}")
    click.echo("=" * 110)
    for p in page.proposals:
        created = p.created_at.strftime("%Y-%m-%d %H:%M") if p.created_at else ""
        click.echo(
            f"{p.id:<14} {p.company[:30]:<30} {tier_label(p.tier):<15} "
            f"{p.status:<8} {p.payment_status:<8} {p.open_count:<6} {created}"
        )
    click.echo("=" * 110)
    click.echo(f"Showing {len(page.proposals)} of {page.total}\n")


@proposals_group.command('show')
@click.argument('proposal_id')
@with_appcontext
def show_proposal_cli(proposal_id):
    """Show one proposal without recording an open."""
    try:
        proposal = lifecycle_service.view_proposal(proposal_id, track_open=False)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    data = proposal.to_dict()
    data.pop("signature_data", None)
    for key, value in data.items():
        click.echo(f"{key:<20} {value}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Cleanup dead admin sessions.

    Default retention: 30 days past expiry or revocation.
    """
    deleted = maintenance_service.cleanup_admin_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} admin sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(admins_group)
    app.cli.add_command(proposals_group)
    app.cli.add_command(maintenance_group)
