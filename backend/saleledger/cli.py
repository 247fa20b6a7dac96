# Overview: Flask CLI command groups for bootstrap, tenants, and stock inspection.

# backend/saleledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to saleledger (PowerShell: $env:FLASK_APP="saleledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated databases).
#
# Tenant management (MULTI-TENANT):
# - python -m flask tenants list
#   List all tenants.
# - python -m flask tenants create --name "Acme Corp" --code "ACME"
#   Create a new tenant.
# - python -m flask tenants deactivate --tenant-id 1
#   Block all requests for a tenant.
#
# Stock inspection:
# - python -m flask stocks low --tenant-id 1
#   List active stocks at or below their minimum quantity.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Tenant, Stock, Sale
from .services import stock_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


# =============================================================================
# TENANTS
# =============================================================================

@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Stocks':<8} {'Sales'}")
    click.echo("="*72)

    for tenant in tenants:
        stock_count = db.session.query(Stock).filter_by(tenant_id=tenant.id).count()
        sale_count = db.session.query(Sale).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"

        click.echo(f"{tenant.id:<5} {tenant.name:<30} {tenant.code or '-':<15} {active_str:<8} {stock_count:<8} {sale_count}")

    click.echo("="*72 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_tenant_cli(name, code):
    """Create a new tenant."""
    existing = db.session.query(Tenant).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Tenant with code '{code}' already exists")
        return

    tenant = Tenant(name=name, code=code, is_active=True)
    db.session.add(tenant)
    db.session.commit()

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code})")


@tenants_group.command('deactivate')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def deactivate_tenant_cli(tenant_id):
    """Deactivate a tenant; its requests are rejected from then on."""
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        click.echo(f"FAIL Tenant ID {tenant_id} not found")
        return

    tenant.is_active = False
    db.session.commit()
    click.echo(f"PASS Deactivated tenant: {tenant.name} (ID: {tenant.id})")


# =============================================================================
# STOCKS
# =============================================================================

@click.group('stocks')
def stocks_group():
    """Stock inspection commands."""


@stocks_group.command('low')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def low_stock_cli(tenant_id):
    """List active stocks at or below their minimum quantity."""
    stocks = stock_service.get_low_stock(tenant_id)

    if not stocks:
        click.echo("No low stock items.")
        return

    click.echo(f"{'ID':<6} {'Code':<16} {'Name':<30} {'Qty':>12} {'Min':>12}")
    for stock in stocks:
        click.echo(
            f"{stock.id:<6} {stock.product_code:<16} {stock.product_name:<30} "
            f"{stock.quantity!s:>12} {stock.minimum_quantity!s:>12}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)  # Multi-tenant management
    app.cli.add_command(stocks_group)
