# Overview: Flask CLI command groups for bootstrap and shop management.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the factory (PowerShell: $env:FLASK_APP="shopledger:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (dev/test shortcut).
# - python -m flask db upgrade
#   Apply the Alembic revisions in migrations/versions (Flask-Migrate).
#
# Shop (tenant) management:
# - python -m flask shops list
#   List all shops with their active flag.
# - python -m flask shops create --name "Main Street"
#   Create a new shop.
# - python -m flask shops toggle --shop-id 2 --inactive
#   Activate or deactivate a shop. Shops are never deleted.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Shop, Product, Invoice


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create the ledger tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('shops')
def shops_group():
    """Shop (tenant) management commands."""


@shops_group.command('list')
@with_appcontext
def list_shops():
    """List all shops."""
    shops = db.session.query(Shop).order_by(Shop.id).all()

    if not shops:
        click.echo("No shops found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Active':<8} {'Products':<10} {'Invoices'}")
    click.echo("="*70)

    for shop in shops:
        product_count = db.session.query(Product).filter_by(shop_id=shop.id).count()
        invoice_count = db.session.query(Invoice).filter_by(shop_id=shop.id).count()
        active_str = "Yes" if shop.is_active else "No"

        click.echo(f"{shop.id:<5} {shop.name:<30} {active_str:<8} {product_count:<10} {invoice_count}")

    click.echo("="*70 + "\n")


@shops_group.command('create')
@click.option('--name', required=True, help='Shop name')
@with_appcontext
def create_shop_cli(name):
    """Create a new shop (tenant)."""
    existing = db.session.query(Shop).filter_by(name=name).first()
    if existing:
        click.echo(f"FAIL Shop '{name}' already exists (ID: {existing.id})")
        return

    shop = Shop(name=name, is_active=True)
    db.session.add(shop)
    db.session.commit()

    click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")


@shops_group.command('toggle')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@click.option('--active/--inactive', default=True, help='Target state')
@with_appcontext
def toggle_shop_cli(shop_id, active):
    """Activate or deactivate a shop."""
    shop = db.session.get(Shop, shop_id)
    if not shop:
        click.echo(f"FAIL Shop ID {shop_id} not found")
        return

    shop.is_active = active
    db.session.commit()

    click.echo(f"PASS Shop {shop.name} (ID: {shop.id}) is now {'active' if active else 'inactive'}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shops_group)
