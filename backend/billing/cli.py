# Overview: Flask CLI command groups for bootstrap and the seller payment console.

# backend/billing/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-admin --username admin --password "Password123"
#   Create or overwrite the console admin login.
#
# Seller payments (state kept in PAYMENT_STATE_PATH, never on the server):
# - python -m flask payments list [--supplier Acme] [--start 2026-01-01] [--end 2026-01-31]
#   Seller expense groups with paid/balance figures (reconciles stored totals first).
# - python -m flask payments record "Acme Traders" B-104 250.00 --notes "cheque 118"
#   Record a payment against a supplier batch.
# - python -m flask payments history "Acme Traders" B-104
#   List recorded payments for a batch.
# - python -m flask payments unpaid "Acme Traders" B-104 --yes
#   Drop all payment records for a batch (irreversible).

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .validation import ValidationError, NotFoundError
from .services import stock_service
from .services.credential_service import save_admin
from .services.payment_tracker import (
    PaymentBalanceTracker,
    JsonFilePaymentStore,
    PaymentError,
    batch_key,
)
from .time_utils import parse_range_bound


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Database tables created.")


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


@system_group.command('seed-admin')
@click.option('--username', prompt=True, help='Admin username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--contact', default=None, help='Contact number')
@with_appcontext
def seed_admin(username, password, contact):
    """Create or overwrite the admin login."""
    try:
        admin, created = save_admin(username=username, contact_number=contact, password=password)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        raise click.Abort()

    verb = "Created" if created else "Updated"
    click.echo(f"PASS {verb} admin '{admin.username}' (id={admin.id})")


@click.group('payments')
def payments_group():
    """Seller batch payment tracking (client-side state)."""


def _tracker() -> PaymentBalanceTracker:
    try:
        return PaymentBalanceTracker(JsonFilePaymentStore(current_app.config["PAYMENT_STATE_PATH"]))
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        raise click.Abort()


def _reconciled_tracker(**filters):
    tracker = _tracker()
    groups = stock_service.get_seller_expenses(**filters)
    changed = tracker.reconcile(groups)
    for key in changed:
        click.echo(f"WARN Stored total for {key} changed; balance recalculated")
    return tracker, groups


@payments_group.command('list')
@click.option('--supplier', default=None, help='Filter by supplier name (partial match)')
@click.option('--start', default=None, help='Start date (inclusive), ISO-8601')
@click.option('--end', default=None, help='End date (inclusive), ISO-8601')
@with_appcontext
def list_payments(supplier, start, end):
    """List seller expense groups with payment status."""
    try:
        start_dt = parse_range_bound(start)
        end_dt = parse_range_bound(end, end=True)
    except ValueError:
        click.echo("FAIL --start/--end must be ISO-8601 dates")
        raise click.Abort()

    tracker, groups = _reconciled_tracker(start=start_dt, end=end_dt, supplier_name=supplier)
    if not groups:
        click.echo("No seller expenses found.")
        return

    click.echo(f"\n{'Supplier':<24} {'Batch':<12} {'Total':>12} {'Paid':>12} {'Balance':>12}  Status")
    click.echo("-" * 86)
    for group in groups:
        key = batch_key(group["supplierName"], group["batchNumber"])
        status = tracker.get_status(key)
        total = tracker.known_total(key)
        paid = status.paid_amount if status else 0
        balance = status.balance_amount if status else total
        label = "PAID" if status and status.is_paid else "PENDING"
        click.echo(
            f"{group['supplierName'][:24]:<24} {group['batchNumber'][:12]:<12} "
            f"{total:>12.2f} {paid:>12.2f} {balance:>12.2f}  {label}"
        )
    click.echo(f"\nTotal: {len(groups)} batches")


@payments_group.command('record')
@click.argument('supplier')
@click.argument('batch')
@click.argument('amount')
@click.option('--notes', default="", help='Payment notes')
@with_appcontext
def record_payment(supplier, batch, amount, notes):
    """Record a payment against SUPPLIER's BATCH."""
    tracker, _ = _reconciled_tracker(supplier_name=supplier)
    key = batch_key(supplier, batch)
    try:
        status = tracker.record_payment(key, amount, notes)
    except PaymentError as e:
        click.echo(f"FAIL {e}")
        raise click.Abort()
    except NotFoundError as e:
        click.echo(f"FAIL {e}")
        raise click.Abort()

    click.echo(
        f"PASS Recorded {amount} for {key}: paid {status.paid_amount:.2f}, "
        f"balance {status.balance_amount:.2f}"
    )
    if status.is_paid:
        click.echo(f"PASS {key} is fully paid")


@payments_group.command('history')
@click.argument('supplier')
@click.argument('batch')
@with_appcontext
def payment_history(supplier, batch):
    """List recorded payments for SUPPLIER's BATCH."""
    key = batch_key(supplier, batch)
    records = _tracker().get_history(key)
    if not records:
        click.echo(f"No payments recorded for {key}.")
        return
    for record in records:
        notes = f"  {record.notes}" if record.notes else ""
        click.echo(f"{record.date}  {record.amount:>12.2f}{notes}")


@payments_group.command('unpaid')
@click.argument('supplier')
@click.argument('batch')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def mark_unpaid(supplier, batch, yes):
    """Drop all payment records for SUPPLIER's BATCH."""
    key = batch_key(supplier, batch)
    if not yes:
        click.confirm(f"WARN This permanently removes all payments for {key}. Continue?", abort=True)

    if _tracker().mark_unpaid(key):
        click.echo(f"PASS Cleared payment records for {key}")
    else:
        click.echo(f"WARN No payment records stored for {key}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(payments_group)
