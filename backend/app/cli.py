# Overview: Flask CLI command groups for bootstrap, staff setup, and the sync outbox.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--seed]
#   Create all tables. --seed also adds a default outlet, an owner account
#   and the stock purchase expense type.
#
# Outlets:
# - python -m flask outlets list
# - python -m flask outlets create --name "Outlet Kemang" --code KMG [--timezone Asia/Jakarta]
#
# Staff:
# - python -m flask staff list
# - python -m flask staff create --name "Sari" --username sari --role CASHIER --outlet-id 1 [--shift-start 08:00 --shift-end 16:00]
#   Prompts for the password.
#
# Remote sync outbox:
# - python -m flask sync status
#   Count outbox entries per status and list recent failures.
# - python -m flask sync dispatch
#   Push PENDING entries to REMOTE_SYNC_URL now.
# - python -m flask sync retry-failed
#   Move FAILED entries back to PENDING, then dispatch.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Outlet, Staff
from .models.staff import ROLES, ROLE_OWNER
from .services import outlet_service, purchase_service, sync_service
from .services.auth_service import create_staff, PasswordValidationError
from .services.concurrency import commit_with_retry


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--seed', is_flag=True, help='Add a default outlet, owner account and expense type')
@click.option('--password', default='owner123', show_default=True, help='Password for the seeded owner')
@with_appcontext
def init_system(seed, password):
    """
    Create the database schema.

    Idempotent: existing tables and rows are left alone.

    SECURITY: Change the seeded owner password immediately in production!
    """
    click.echo("START Initializing database...")
    db.create_all()
    click.echo("PASS Tables created")

    if not seed:
        return

    outlet = db.session.query(Outlet).first()
    if not outlet:
        outlet = outlet_service.create_outlet("Main Outlet", code="MAIN")
        click.echo(f"PASS Created default outlet: {outlet.name} (ID: {outlet.id})")
    else:
        click.echo(f"PASS Using existing outlet: {outlet.name} (ID: {outlet.id})")

    if not db.session.query(Staff).filter_by(role=ROLE_OWNER).first():
        owner = create_staff("Owner", "owner", password, ROLE_OWNER, [outlet.id])
        click.echo(f"PASS Created owner account: {owner.username}")

    if not purchase_service.list_expense_types():
        for name in (purchase_service.STOCK_PURCHASE_CATEGORY, "OPERASIONAL", "LAIN-LAIN"):
            purchase_service.create_expense_type(name)
        click.echo("PASS Created default expense types")

    commit_with_retry()
    click.echo("\nDONE System initialized")


@click.group('outlets')
def outlets_group():
    """Outlet management commands."""


@outlets_group.command('list')
@with_appcontext
def list_outlets_cli():
    outlets = outlet_service.list_outlets(active_only=False)
    if not outlets:
        click.echo("No outlets found")
        return
    for outlet in outlets:
        status = "ACTIVE" if outlet.is_active else "INACTIVE"
        tz = outlet.timezone or "(default)"
        click.echo(f"{outlet.id:>4}  {outlet.name:<30} {outlet.code or '-':<8} {tz:<20} {status}")


@outlets_group.command('create')
@click.option('--name', required=True, help='Outlet name (unique)')
@click.option('--code', help='Short code')
@click.option('--address', help='Street address')
@click.option('--timezone', help='IANA timezone, defaults to BUSINESS_TIMEZONE')
@with_appcontext
def create_outlet_cli(name, code, address, timezone):
    try:
        outlet = outlet_service.create_outlet(name, code=code, address=address, timezone=timezone)
        commit_with_retry()
        click.echo(f"PASS Created outlet: {outlet.name} (ID: {outlet.id})")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")


@click.group('staff')
def staff_group():
    """Staff account commands."""


@staff_group.command('list')
@with_appcontext
def list_staff_cli():
    staff = db.session.query(Staff).order_by(Staff.username.asc()).all()
    if not staff:
        click.echo("No staff found")
        return
    for member in staff:
        outlets = ",".join(str(o) for o in member.outlet_ids) or "-"
        status = "ACTIVE" if member.is_active else "INACTIVE"
        click.echo(f"{member.id:>4}  {member.username:<20} {member.role:<8} outlets={outlets:<12} {status}")


@staff_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--username', prompt=True, help='Login username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES, case_sensitive=False), prompt=True, help='Role')
@click.option('--outlet-id', 'outlet_ids', type=int, multiple=True, help='Assigned outlet (repeatable)')
@click.option('--shift-start', help='Scheduled shift start, HH:MM')
@click.option('--shift-end', help='Scheduled shift end, HH:MM')
@with_appcontext
def create_staff_cli(name, username, password, role, outlet_ids, shift_start, shift_end):
    """
    Create a staff account.

    Owners act in every outlet; other roles only in their assigned outlets.
    """
    try:
        staff = create_staff(
            name,
            username,
            password,
            role,
            list(outlet_ids),
            shift_start_time=shift_start,
            shift_end_time=shift_end,
        )
        commit_with_retry()
        click.echo(f"PASS Created staff: {staff.username} ({staff.role})")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL Password validation failed: {e}")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create staff: {e}")


@click.group('sync')
def sync_group():
    """Remote sync outbox commands."""


@sync_group.command('status')
@with_appcontext
def sync_status_cli():
    counts = sync_service.status_counts()
    click.echo("Outbox:")
    for status, count in counts.items():
        click.echo(f"  {status:<8} {count}")

    failed = sync_service.list_failed(limit=10)
    if failed:
        click.echo("\nRecent failures:")
        for entry in failed:
            click.echo(f"  #{entry.id} {entry.entity_type}:{entry.entity_id} attempts={entry.attempts} {entry.last_error}")


@sync_group.command('dispatch')
@with_appcontext
def sync_dispatch_cli():
    result = sync_service.dispatch_pending()
    if result["skipped"]:
        click.echo(f"SKIP REMOTE_SYNC_URL not set, {result['skipped']} entries left PENDING")
        return
    click.echo(f"PASS Sent {result['sent']}, failed {result['failed']}")


@sync_group.command('retry-failed')
@with_appcontext
def sync_retry_cli():
    requeued = sync_service.retry_failed()
    click.echo(f"PASS Re-queued {requeued} failed entries")
    result = sync_service.dispatch_pending()
    if result["skipped"]:
        click.echo(f"SKIP REMOTE_SYNC_URL not set, {result['skipped']} entries left PENDING")
        return
    click.echo(f"PASS Sent {result['sent']}, failed {result['failed']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(outlets_group)
    app.cli.add_command(staff_group)
    app.cli.add_command(sync_group)
