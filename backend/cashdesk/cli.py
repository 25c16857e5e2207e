# Overview: Flask CLI command groups for bootstrap, inspection, and reporting.

# backend/cashdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to cashdesk (PowerShell: $env:FLASK_APP="cashdesk").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Branch bootstrap (the catalog is normally owned by branch configuration):
# - python -m flask branches create --name "Centro" --code CEN --timezone America/Argentina/Cordoba
# - python -m flask branches list
#
# Register inspection/bootstrap:
# - python -m flask registers create --branch-id 1 --name "Caja 1" --kind sales --order 1
# - python -m flask registers list --branch-id 1 [--all]
# - python -m flask registers deactivate 3
#
# Shift inspection:
# - python -m flask shifts list --register-id 1 [--status open] [--limit 20]
#
# Reporting:
# - python -m flask reports cashier 42 [--branch-id 1]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, CashRegister, REGISTER_KINDS, SHIFT_STATUSES
from .services import reconciliation_service, register_service, shift_service
from .validation import NotFoundError, format_amount


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (idempotent)."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including closed shifts and discrepancy history.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('branches')
def branches_group():
    """Branch bootstrap commands."""


@branches_group.command('create')
@click.option('--name', required=True, help='Branch name')
@click.option('--code', help='Short code (unique)')
@click.option('--timezone', 'tz_name', help='IANA timezone (defaults to DEFAULT_TIMEZONE)')
@with_appcontext
def create_branch_cli(name, code, tz_name):
    """Create a branch."""
    try:
        branch = register_service.create_branch(name=name, code=code, timezone=tz_name)
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created branch: {branch.name} (ID {branch.id})")


@branches_group.command('list')
@with_appcontext
def list_branches_cli():
    """List branches."""
    branches = db.session.query(Branch).order_by(Branch.id).all()
    if not branches:
        click.echo("No branches found.")
        return

    click.echo(f"{'ID':<5} {'Code':<8} {'Name':<30} {'Timezone'}")
    for branch in branches:
        click.echo(f"{branch.id:<5} {branch.code or '-':<8} {branch.name:<30} {register_service.branch_timezone(branch)}")


@click.group('registers')
def registers_group():
    """Register inspection and bootstrap commands."""


@registers_group.command('create')
@click.option('--branch-id', type=int, required=True, help='Branch ID')
@click.option('--name', required=True, help='Register name')
@click.option('--kind', type=click.Choice(REGISTER_KINDS), default='sales', show_default=True)
@click.option('--order', 'display_order', type=int, default=0, show_default=True, help='Display order')
@with_appcontext
def create_register_cli(branch_id, name, kind, display_order):
    """
    Create a register.

    Example:
        flask registers create --branch-id 1 --name "Caja de Alivio" --kind relief --order 2
    """
    try:
        register = register_service.create_register(
            branch_id=branch_id,
            name=name,
            kind=kind,
            display_order=display_order,
        )
    except (ValueError, NotFoundError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created register: {register.name} ({register.kind})")
    click.echo(f"   Branch ID: {register.branch_id}")
    click.echo(f"   Register ID: {register.id}")


@registers_group.command('list')
@click.option('--branch-id', type=int, help='Filter by branch ID')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive registers too')
@with_appcontext
def list_registers_cli(branch_id, show_all):
    """
    List registers with their shift status.

    Example:
        flask registers list --branch-id 1 --all
    """
    query = db.session.query(CashRegister)

    if branch_id:
        query = query.filter_by(branch_id=branch_id)

    if not show_all:
        query = query.filter_by(is_active=True)

    registers = query.order_by(CashRegister.branch_id, CashRegister.display_order, CashRegister.id).all()

    if not registers:
        click.echo("No registers found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Branch':<8} {'Name':<25} {'Kind':<8} {'Active':<8} {'Status'}")
    click.echo("="*80)

    for register in registers:
        open_shift = shift_service.get_open_shift(register.id)
        status = f"OPEN (shift {open_shift.id})" if open_shift else "CLOSED"
        active_str = "Yes" if register.is_active else "No"
        click.echo(f"{register.id:<5} {register.branch_id:<8} {register.name:<25} {register.kind:<8} {active_str:<8} {status}")

    click.echo("="*80 + "\n")


@registers_group.command('deactivate')
@click.argument('register_id', type=int)
@with_appcontext
def deactivate_register_cli(register_id):
    """Deactivate a register (refused while it has an open shift)."""
    try:
        register = register_service.deactivate_register(register_id)
    except (ValueError, NotFoundError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Register {register.id} deactivated.")


@click.group('shifts')
def shifts_group():
    """Shift inspection commands."""


@shifts_group.command('list')
@click.option('--register-id', type=int, required=True, help='Register ID')
@click.option('--status', type=click.Choice(SHIFT_STATUSES), help='Filter by status')
@click.option('--limit', type=click.IntRange(1, 200), default=20, show_default=True, help='Max shifts to show')
@with_appcontext
def list_shifts_cli(register_id, status, limit):
    """
    List shifts of a register, newest first.

    Example:
        flask shifts list --register-id 1 --status closed
    """
    try:
        shifts = shift_service.list_shifts(register_id, status=status, limit=limit)
    except (ValueError, NotFoundError) as e:
        raise click.ClickException(str(e))

    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Status':<8} {'Opened by':<10} {'Opened':<20} {'Opening':>12} {'Counted':>12} {'Discrepancy':>12}")
    click.echo("="*100)

    for shift in shifts:
        counted = format_amount(shift.counted_amount) or "-"
        discrepancy = format_amount(shift.discrepancy) or "-"
        click.echo(
            f"{shift.id:<5} {shift.status:<8} {shift.opened_by:<10} {str(shift.opened_at)[:19]:<20} "
            f"{format_amount(shift.opening_amount):>12} {counted:>12} {discrepancy:>12}"
        )

    click.echo("="*100 + "\n")


@click.group('reports')
def reports_group():
    """Discrepancy reporting commands."""


@reports_group.command('cashier')
@click.argument('user_id', type=int)
@click.option('--branch-id', type=int, help='Restrict to one branch')
@with_appcontext
def cashier_report_cli(user_id, branch_id):
    """Print the precision card of a cashier."""
    try:
        stats = reconciliation_service.get_cashier_statistics(user_id, branch_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    click.echo(f"Cashier {user_id}")
    click.echo(f"   Shifts closed:      {stats['total_shifts']}")
    click.echo(f"   Perfect shifts:     {stats['perfect_shifts']}")
    click.echo(f"   Precision:          {stats['precision_pct']}%")
    click.echo(f"   This month:         {format_amount(stats['discrepancy_this_month'])}")
    click.echo(f"   Total discrepancy:  {format_amount(stats['discrepancy_total'])}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(registers_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(reports_group)
