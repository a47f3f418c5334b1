# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/cashdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates the default admin and employee accounts.
# - python -m flask system reset-state --yes
#   DEV/TEST only: delete every cached state blob.
#
# Employees:
# - python -m flask users list
# - python -m flask users create --code E002 --name "Ana" --password "1234" --role employee
# - python -m flask users deactivate E002
#
# Catalog / offers:
# - python -m flask products list [--all]
# - python -m flask products low-stock [--threshold 5]
# - python -m flask offers list [--active]
#
# Sessions:
# - python -m flask sessions check-idle
#   Run the idle check once (schedule it, e.g. every minute).
#
# Reports:
# - python -m flask reports daily [--date 2026-10-18]

import click
from datetime import date
from flask import current_app
from flask.cli import with_appcontext

from .models import OFFER_TYPE_NXM, ROLE_ADMIN, ROLE_EMPLOYEE
from .services import reporting_service
from .services.auth_service import PasswordValidationError, UserDirectoryError
from .services.state_service import StateStore


def _terminal():
    return current_app.extensions["cashdesk"]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--password', default='1234', show_default=True, help='Password for the default accounts')
@with_appcontext
def init_system(password):
    """
    Create the default accounts if they do not exist yet.

    Creates:
    - ADMIN (admin role)
    - E001  (employee role)

    SECURITY: Change passwords immediately in production!
    """
    terminal = _terminal()
    click.echo("START Initializing cash desk...")

    default_users = [
        ("ADMIN", "Administrator", ROLE_ADMIN),
        ("E001", "Employee 1", ROLE_EMPLOYEE),
    ]
    existing = {u.code for u in terminal.users.list_users()}
    for code, name, role in default_users:
        if code in existing:
            click.echo(f"WARN  User '{code}' already exists, skipping...")
            continue
        try:
            terminal.users.create_user(code=code, name=name, password=password, role=role)
            click.echo(f"PASS Created user: {code} with role '{role}'")
        except (PasswordValidationError, UserDirectoryError) as e:
            click.echo(f"FAIL Failed to create user '{code}': {e}")

    terminal.save()
    click.echo(f"DONE Terminal {terminal.terminal_id} initialized")


@system_group.command('reset-state')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_state(yes):
    """DEV/TEST only: delete every cached state blob."""
    if not yes:
        click.confirm("This deletes all cached terminal state. Continue?", abort=True)
    deleted = StateStore().clear()
    click.echo(f"PASS Deleted {deleted} state blob(s)")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """Employee account commands."""


@users_group.command('create')
@click.option('--code', prompt=True, help='Employee code used at login')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([ROLE_EMPLOYEE, ROLE_ADMIN]), default=ROLE_EMPLOYEE, show_default=True, help='Role')
@with_appcontext
def create_user_cli(code, name, password, role):
    terminal = _terminal()
    try:
        user = terminal.users.create_user(code=code, name=name, password=password, role=role)
    except (PasswordValidationError, UserDirectoryError) as e:
        raise click.ClickException(str(e))
    terminal.save()
    click.echo(f"PASS Created user: {user.code} ({user.name}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    users = _terminal().users.list_users()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.code:<10} {user.name:<24} {user.role:<9} {status}")


@users_group.command('deactivate')
@click.argument('code')
@with_appcontext
def deactivate_user(code):
    terminal = _terminal()
    match = next((u for u in terminal.users.list_users() if u.code == code), None)
    if match is None:
        raise click.ClickException(f"User '{code}' not found")
    terminal.users.deactivate_user(match.id)
    terminal.save()
    click.echo(f"PASS Deactivated user: {code}")


# =============================================================================
# CATALOG / OFFERS
# =============================================================================

@click.group('products')
def products_group():
    """Catalog inspection commands."""


@products_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated products')
@with_appcontext
def list_products(include_inactive):
    products = _terminal().catalog.all(include_inactive=include_inactive)
    for p in products:
        flag = "" if p.is_active else " (inactive)"
        click.echo(f"{p.code:<12} {p.description:<32} {p.sale_price:>10} stock={p.stock}{flag}")
    click.echo(f"{len(products)} product(s)")


@products_group.command('low-stock')
@click.option('--threshold', type=int, default=None, help='Stock at or below this level is reported')
@with_appcontext
def low_stock(threshold):
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    products = _terminal().catalog.low_stock(threshold)
    for p in products:
        click.echo(f"{p.code:<12} {p.description:<32} stock={p.stock}")
    click.echo(f"{len(products)} product(s) at or below {threshold}")


@click.group('offers')
def offers_group():
    """Promotional offer commands."""


@offers_group.command('list')
@click.option('--active', 'active_only', is_flag=True, help='Only offers active now')
@with_appcontext
def list_offers(active_only):
    registry = _terminal().offers
    offers = registry.active_offers() if active_only else registry.all()
    for o in offers:
        if o.type == OFFER_TYPE_NXM:
            rule = f"{o.buy_quantity}x{o.pay_quantity}"
        else:
            rule = f"buy {o.buy_quantity} get {o.free_quantity} of {o.free_product_id}"
        click.echo(f"{o.name:<28} {o.type:<4} {rule:<32} {o.start_date:%Y-%m-%d}..{o.end_date:%Y-%m-%d}")
    click.echo(f"{len(offers)} offer(s)")


# =============================================================================
# SESSIONS / REPORTS
# =============================================================================

@click.group('sessions')
def sessions_group():
    """Terminal session commands."""


@sessions_group.command('check-idle')
@with_appcontext
def check_idle():
    """Run the idle check once and persist the result."""
    terminal = _terminal()
    notice = terminal.check_idle()
    terminal.save()
    if notice is None:
        click.echo(f"OK {terminal.auth.seconds_left()}s left before idle logout")
    else:
        click.echo(f"LOGOUT {notice.employee_id} at {notice.terminal_id}: {notice.message}")


@click.group('reports')
def reports_group():
    """Sales report commands."""


@reports_group.command('daily')
@click.option('--date', 'day', default=None, help='Day as YYYY-MM-DD (defaults to today)')
@with_appcontext
def daily_report(day):
    terminal = _terminal()
    try:
        target = date.fromisoformat(day) if day else terminal.clock().date()
    except ValueError:
        raise click.BadParameter("date must be YYYY-MM-DD", param_hint="--date")
    summary = reporting_service.daily_summary(terminal.ledger, target)
    click.echo(f"Date:       {summary['date']}")
    click.echo(f"Sales:      {summary['sale_count']}")
    click.echo(f"Items sold: {summary['items_sold']}")
    click.echo(f"Revenue:    {summary['revenue']}")
    click.echo(f"Refunded:   {summary['refunded']} ({summary['refund_count']} refund(s))")
    for row in summary["top_products"]:
        click.echo(f"  {row['code']:<12} {row['quantity']:>5}  {row['revenue']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(offers_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(reports_group)
