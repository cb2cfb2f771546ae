# Overview: Flask CLI command groups for bootstrap and user management.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system init-roles
#   Create default roles only (Admin, Manager, Cashier).
# - python -m flask system seed
#   Demo data: roles, admin/manager/cashier users, a customer, two products
#   with opening stock, and one completed sale. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email a@b.c --first-name A --last-name B --role Cashier --password "Password123"

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Product, Role, Sale, User
from .services import payment_service, receipt_service, sales_service, stock_ledger
from .services.access_policy import ALL_ROLES, actor_from_user
from .services.auth_service import create_default_roles, create_user, PasswordValidationError


DEFAULT_PASSWORD = "Password123"

DEMO_USERS = [
    ("John", "Doe", "admin@example.com", "Admin"),
    ("Mary", "Major", "manager@example.com", "Manager"),
    ("Jane", "Smith", "cashier@example.com", "Cashier"),
]

DEMO_PRODUCTS = [
    # sku, name, description, price_cents, opening stock
    ("ELEC-001", "Laptop", "High performance laptop", 150000, 10),
    ("CLO-001", "T-Shirt", "Cotton t-shirt", 2500, 50),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('init-roles')
@with_appcontext
def init_roles():
    """Create default roles (Admin, Manager, Cashier)."""
    roles = create_default_roles()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@system_group.command('seed')
@with_appcontext
def seed():
    """
    Seed demo data.

    Opening stock is booked through the stock ledger, and the demo sale
    reserves its items like any other sale.
    """
    db.create_all()
    create_default_roles()

    users = {}
    for first_name, last_name, email, role_name in DEMO_USERS:
        user = db.session.query(User).filter_by(email=email).first()
        if user:
            click.echo(f"WARN  User '{email}' already exists, skipping...")
        else:
            user = create_user(first_name, last_name, email, DEFAULT_PASSWORD, role_name)
            click.echo(f"PASS Created user: {email} with role '{role_name}'")
        users[role_name] = user

    admin = actor_from_user(users["Admin"])

    customer = db.session.query(Customer).filter_by(email="alice@example.com").first()
    if not customer:
        customer = Customer(
            first_name="Alice",
            last_name="Johnson",
            email="alice@example.com",
            phone_number="5551234567",
        )
        db.session.add(customer)
        db.session.commit()
        click.echo("PASS Created customer: alice@example.com")

    products = []
    for sku, name, description, price_cents, opening_stock in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(sku=sku).first()
        if not product:
            product = Product(sku=sku, name=name, description=description, price_cents=price_cents, stock_level=0)
            db.session.add(product)
            db.session.commit()
            stock_ledger.restock(product.id, opening_stock, admin, note="Opening stock")
            click.echo(f"PASS Created product: {sku} ({opening_stock} in stock)")
        products.append(product)

    if db.session.query(Sale).count() == 0:
        cashier = actor_from_user(users["Cashier"])
        sale = sales_service.create_sale(
            cashier,
            customer_id=customer.id,
            tax_cents=15000,
            payment_type="Cash",
            status="completed",
            items=[{"product_id": p.id, "quantity": 1} for p in products],
        )
        click.echo(f"PASS Created sale {sale.id} (total_cents={sale.total_cents})")
        payment_service.create_payment(sale.id, "CASH", sale.total_cents, cashier)
        receipt_service.create_receipt(sale.id, "Cash", cashier)
        click.echo(f"PASS Recorded payment and receipt for sale {sale.id}")

    current_app.logger.info("Demo data seeded")
    click.echo("\nDONE Seeded. Default password for all demo users: " + DEFAULT_PASSWORD)


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users():
    for user in db.session.query(User).order_by(User.id).all():
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.email:<32} {user.role_name or '-':<8} {status}")


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--first-name', prompt=True)
@click.option('--last-name', prompt=True)
@click.option('--role', 'role_name', type=click.Choice(ALL_ROLES), prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_user_command(email, first_name, last_name, role_name, password):
    """Create a user with the given role."""
    if not db.session.query(Role).filter_by(name=role_name).first():
        create_default_roles()
    try:
        user = create_user(first_name, last_name, email, password, role_name)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{role_name}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
