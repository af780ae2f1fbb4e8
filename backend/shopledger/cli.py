# Overview: Flask CLI command groups for bootstrap, store setup and ledger audits.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to shopledger (PowerShell: $env:FLASK_APP="shopledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: tables, default chart of accounts, Uncategorized
#   category, default payment methods and a default tax rate.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stores:
# - python -m flask stores list
# - python -m flask stores create --name "Main Store" --address "1 High St"
#
# Stock ledger:
# - python -m flask inventory audit [--product-id <id>]
#   Compare every product's stock with the sum of its history entries.
#   Exits non-zero when any product is out of balance.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import accounting_service, inventory_service, payment_method_service, products_service, store_service
from .services import tax_rate_service
from .services.errors import NotFoundError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize shopledger: schema and reference data.

    Creates (only what is missing):
    - all tables
    - default chart of accounts (1000 Cash ... 7000 Interest Expense)
    - the Uncategorized category
    - payment methods: Cash, Card, Store Credit
    - default tax rate (Standard Tax, 8%) when no rate exists
    """
    click.echo("START Initializing shopledger...")

    db.create_all()
    click.echo("PASS Tables ready")

    added = accounting_service.seed_default_chart_of_accounts()
    if added:
        click.echo(f"PASS Seeded chart of accounts ({added} accounts)")
    else:
        click.echo("PASS Chart of accounts already present")

    category = products_service.ensure_uncategorized_category()
    click.echo(f"PASS Category ready: {category.name} (ID: {category.id})")

    added = payment_method_service.seed_default_payment_methods()
    click.echo(f"PASS Payment methods ready ({added} added)")

    tax_rate = tax_rate_service.seed_default_tax_rate()
    if tax_rate is not None:
        click.echo(f"PASS Seeded default tax rate: {tax_rate.name} ({tax_rate.rate:.2%})")
    else:
        click.echo("PASS Tax rates already present")

    click.echo("DONE System initialized.")


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


@click.group('stores')
def stores_group():
    """Store management commands."""


@stores_group.command('list')
@with_appcontext
def list_stores():
    """List all stores."""
    stores = store_service.list_stores()
    if not stores:
        click.echo("No stores found.")
        return
    for store in stores:
        click.echo(f"{store.id}  {store.name}  {store.address}")


@stores_group.command('create')
@click.option('--name', prompt=True, help='Store name')
@click.option('--address', default='', help='Street address')
@click.option('--phone', default=None, help='Phone number')
@click.option('--email', default=None, help='Contact email')
@with_appcontext
def create_store(name, address, phone, email):
    """Create a store."""
    store = store_service.create_store({"name": name, "address": address, "phone": phone, "email": email})
    click.echo(f"PASS Created store: {store.name} (ID: {store.id})")


@click.group('inventory')
def inventory_group():
    """Stock ledger inspection commands."""


@inventory_group.command('audit')
@click.option('--product-id', default=None, help='Audit a single product')
@with_appcontext
def audit_inventory(product_id):
    """
    Verify that each product's stock equals the sum of its history entries
    (and, for per-store products, that the aggregate equals the store map).
    """
    if product_id:
        try:
            results = [inventory_service.audit_product(product_id)]
        except NotFoundError as e:
            click.echo(f"FAIL {e}")
            raise SystemExit(1)
    else:
        results = inventory_service.audit_all()

    mismatches = 0
    for r in results:
        if r["consistent"]:
            continue
        mismatches += 1
        click.echo(
            f"FAIL {r['productName']} ({r['productId']}): stock={r['stock']} "
            f"ledger={r['ledgerTotal']} aggregate_ok={r['aggregateConsistent']}"
        )

    click.echo(f"Audited {len(results)} product(s), {mismatches} mismatch(es)")
    if mismatches:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(inventory_group)
