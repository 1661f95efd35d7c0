# Overview: Flask CLI command groups for bootstrap and ledger maintenance.

# backend/ledgerpos/cli.py
# Commands Legend (run from the repository root):
# Prereqs:
# - Activate your virtualenv and `pip install -e .`
# - Set FLASK_APP to ledgerpos (PowerShell: $env:FLASK_APP="ledgerpos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger maintenance:
# - python -m flask ledger reconcile [--customers/--no-customers] [--suppliers/--no-suppliers] [--dry-run]
#   Rebuild every cached party balance from source rows and report drift.
# - python -m flask ledger show customer 12
#   Print the running-balance ledger for one customer (or supplier).

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import LedgerPosError
from .extensions import db
from .services.balance_service import BalanceReconciler
from .services.concurrency import TransactionManager
from .services.money import format_money


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready")


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

    click.echo("PASS Database reset complete")


@click.group('ledger')
def ledger_group():
    """Customer/supplier ledger inspection and balance repair."""


def _reconciler() -> BalanceReconciler:
    return BalanceReconciler(
        db.session,
        same_date_order=current_app.config["LEDGER_SAME_DATE_ORDER"],
        currency=current_app.config["CURRENCY_CODE"],
    )


@ledger_group.command('reconcile')
@click.option('--customers/--no-customers', default=True, help='Include customers')
@click.option('--suppliers/--no-suppliers', default=True, help='Include suppliers')
@click.option('--dry-run', is_flag=True, help='Report drift without writing balances')
@with_appcontext
def reconcile(customers, suppliers, dry_run):
    """Rebuild cached balances from sales, purchases and payments."""
    currency = current_app.config["CURRENCY_CODE"]
    reconciler = _reconciler()

    if dry_run:
        results = reconciler.reconcile_all(customers=customers, suppliers=suppliers)
        db.session.rollback()
    else:
        with TransactionManager(db.session).atomic():
            results = reconciler.reconcile_all(customers=customers, suppliers=suppliers)

    drifted = [r for r in results if r.changed]
    for r in drifted:
        click.echo(
            f"DRIFT {r.entity} #{r.entity_id}: "
            f"{format_money(r.previous_cents, currency)} -> {format_money(r.balance_cents, currency)}"
        )

    verb = "would be corrected" if dry_run else "corrected"
    click.echo(f"PASS Checked {len(results)} balances, {len(drifted)} {verb}")


@ledger_group.command('show')
@click.argument('entity', type=click.Choice(['customer', 'supplier']))
@click.argument('entity_id', type=int)
@with_appcontext
def show(entity, entity_id):
    """Print the running-balance ledger for a customer or supplier."""
    currency = current_app.config["CURRENCY_CODE"]
    reconciler = _reconciler()

    try:
        if entity == 'customer':
            ledger = reconciler.customer_ledger(entity_id)
        else:
            ledger = reconciler.supplier_ledger(entity_id)
    except LedgerPosError as e:
        raise click.ClickException(e.message)

    click.echo(f"{entity.capitalize()} #{entity_id}: {ledger.entity.get('name')}")
    click.echo("-" * 100)
    click.echo(f"{'Date':<22}{'Description':<44}{'Debit':>11}{'Credit':>11}{'Balance':>12}")
    click.echo("-" * 100)
    for entry in ledger.entries:
        date = entry.date.strftime('%Y-%m-%d %H:%M') if entry.date else ''
        click.echo(
            f"{date:<22}{entry.description[:42]:<44}"
            f"{entry.debit_cents / 100:>11,.2f}{entry.credit_cents / 100:>11,.2f}"
            f"{entry.running_balance_cents / 100:>12,.2f}"
        )
    click.echo("-" * 100)
    click.echo(
        f"Debits {format_money(ledger.total_debits_cents, currency)}  "
        f"Credits {format_money(ledger.total_credits_cents, currency)}  "
        f"Balance {format_money(ledger.balance_cents, currency)}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
