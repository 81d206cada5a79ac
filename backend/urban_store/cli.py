# Overview: Flask CLI command groups for bootstrap and reminder batches.

# backend/urban_store/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Load a small demo catalog and two customers into an empty database.
#
# Reminders (invoked by the external scheduler):
# - python -m flask reminders eligible --kind debt
#   List customers a batch of that kind would contact now.
# - python -m flask reminders send-debt
#   Weekly debt reminder batch.
# - python -m flask reminders send-scheduled
#   Daily due-date reminder batch.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Product
from .services import dispatch_service, reminder_service
from .services.messaging import build_sender, format_money


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' for demo data.")


DEMO_PRODUCTS = [
    {"sku": "URB-CAM-001", "name": "Basic Urban Tee", "category": "T-Shirts",
     "sizes": ["S", "M", "L", "XL"], "price_cents": 29900, "cost_cents": 15000, "stock": 25},
    {"sku": "URB-JEA-001", "name": "Slim Fit Jeans", "category": "Pants",
     "sizes": ["28", "30", "32", "34", "36"], "price_cents": 69900, "cost_cents": 35000, "stock": 15},
    {"sku": "URB-SUD-001", "name": "Hooded Sweatshirt", "category": "Sweatshirts",
     "sizes": ["S", "M", "L", "XL"], "price_cents": 54900, "cost_cents": 28000, "stock": 18},
    {"sku": "URB-GOR-001", "name": "Urban Logo Cap", "category": "Accessories",
     "sizes": ["One size"], "price_cents": 19900, "cost_cents": 8000, "stock": 30},
    {"sku": "URB-CHA-001", "name": "Bomber Jacket", "category": "Jackets",
     "sizes": ["S", "M", "L", "XL"], "price_cents": 89900, "cost_cents": 45000, "stock": 4},
]

DEMO_CUSTOMERS = [
    {"name": "Maria Lopez", "whatsapp_number": "+52 55 1234 5678", "notes": "Pays on Fridays"},
    {"name": "Carlos Ruiz", "whatsapp_number": "+52 33 8765 4321"},
]


@system_group.command('seed')
@with_appcontext
def seed():
    """Insert demo products and customers (skipped if any product exists)."""
    if db.session.query(Product.id).first() is not None:
        click.echo("SKIP  Products already present; seed not applied.")
        return

    for data in DEMO_PRODUCTS:
        db.session.add(Product(**data))
    for data in DEMO_CUSTOMERS:
        db.session.add(Customer(balance_cents=0, payment_reminder_sent=False, **data))
    db.session.commit()

    click.echo(f"PASS Seeded {len(DEMO_PRODUCTS)} products and {len(DEMO_CUSTOMERS)} customers.")


@click.group('reminders')
def reminders_group():
    """WhatsApp reminder batches."""


@reminders_group.command('eligible')
@click.option('--kind', type=click.Choice(['debt', 'scheduled'], case_sensitive=False), default='debt')
@with_appcontext
def eligible(kind):
    """List customers that the next batch would contact."""
    customers = reminder_service.candidates_for(
        db.session, kind, interval_days=current_app.config["REMINDER_INTERVAL_DAYS"]
    )

    if not customers:
        click.echo("No eligible customers.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'WhatsApp':<20} {'Balance':>14}")
    click.echo("=" * 80)
    for c in customers:
        click.echo(f"{c.id:<5} {c.name:<30} {c.whatsapp_number:<20} {format_money(c.balance_cents):>14}")
    click.echo("=" * 80 + "\n")


def _echo_summary(summary):
    click.echo(
        f"DONE  {summary.kind}: {summary.sent} sent, {summary.failed} failed, "
        f"{summary.skipped} skipped ({summary.processed} processed)"
    )


@reminders_group.command('send-debt')
@with_appcontext
def send_debt():
    """Send debt reminders to every eligible customer."""
    config = current_app.config
    summary = dispatch_service.dispatch_debt_reminders(
        db.session,
        build_sender(config),
        interval_days=config["REMINDER_INTERVAL_DAYS"],
        delay_seconds=config["NOTIFICATION_DELAY_SECONDS"],
        store_name=config["STORE_NAME"],
    )
    _echo_summary(summary)


@reminders_group.command('send-scheduled')
@with_appcontext
def send_scheduled():
    """Send due-date reminders to every eligible customer."""
    config = current_app.config
    summary = dispatch_service.dispatch_scheduled_reminders(
        db.session,
        build_sender(config),
        delay_seconds=config["NOTIFICATION_DELAY_SECONDS"],
        store_name=config["STORE_NAME"],
    )
    _echo_summary(summary)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(reminders_group)
