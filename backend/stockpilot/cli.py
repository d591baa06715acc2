# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockpilot/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Prefer `flask db upgrade` in production.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
#   List all organizations.
# - python -m flask orgs create --name "Corner Shop" --owner-email owner@shop.local --owner-name "Asha Rao"
#   Create an organization together with its owner account.
#
# User inspection/bootstrap:
# - python -m flask users list [--org-id 1]
#   List all profiles with role and active status.
# - python -m flask users create --org-id 1 --email staff@shop.local --full-name "Ravi" --role employee
#   Create a profile in an existing organization (prompts for the password).
#
# Permission inspection:
# - python -m flask perms list [--role employee]
#   List permission codes, optionally for one role.
#
# Ledger:
# - python -m flask ledger verify --org-id 1 [--product-id 7]
#   Replay stock ledgers and report products whose stock does not match.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, Product, Profile
from .models.auth import PROFILE_ROLES, ROLE_OWNER
from .permissions import get_all_permission_codes, get_permission_definition, get_role_permissions
from .services.auth_service import signup, PasswordValidationError
from .services.ledger_service import verify_product_ledger
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
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


@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id.asc()).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Timezone':<20} {'Products':<10} {'Users'}")
    click.echo("="*80)

    for org in orgs:
        product_count = db.session.query(Product).filter_by(org_id=org.id, is_active=True).count()
        user_count = db.session.query(Profile).filter_by(org_id=org.id).count()

        click.echo(f"{org.id:<5} {org.name:<30} {org.timezone:<20} {product_count:<10} {user_count}")

    click.echo("="*80 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--owner-email', prompt=True, help='Owner email address')
@click.option('--owner-name', prompt=True, help='Owner full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Owner password')
@click.option('--timezone', 'tz_name', default=None, help='IANA timezone for dashboards (default UTC)')
@with_appcontext
def create_org_cli(name, owner_email, owner_name, password, tz_name):
    """Create a new organization (tenant) and its owner."""
    try:
        owner = signup(
            email=owner_email,
            password=password,
            full_name=owner_name,
            role=ROLE_OWNER,
            organization_name=name,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except (ConflictError, ValidationError) as e:
        click.echo(f"FAIL {str(e)}")
        return

    org = owner.organization
    if tz_name:
        org.timezone = tz_name
        db.session.commit()

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id})")
    click.echo(f"     Owner: {owner.email} (ID: {owner.id})")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(PROFILE_ROLES)), default='employee', show_default=True, help='Role')
@with_appcontext
def create_user_cli(org_id, email, full_name, password, role):
    """
    Create a profile inside an existing organization.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    org = db.session.get(Organization, org_id)
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    try:
        if role == ROLE_OWNER:
            # signup() creates a new org for owners; attach this owner to the existing one instead
            profile = signup(
                email=email, password=password, full_name=full_name,
                role="employee", organization_id=org.id,
            )
            profile.role = ROLE_OWNER
            db.session.commit()
        else:
            profile = signup(
                email=email, password=password, full_name=full_name,
                role=role, organization_id=org.id,
            )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except (ConflictError, ValidationError) as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"PASS Created {profile.role}: {profile.email} (ID: {profile.id})")
    click.echo(f"     Organization: {org.name} (ID: {org.id})")


@users_group.command('list')
@click.option('--org-id', type=int, help='Filter by organization ID')
@with_appcontext
def list_users(org_id):
    """List all profiles with their roles."""
    query = db.session.query(Profile)

    if org_id:
        query = query.filter_by(org_id=org_id)

    profiles = query.order_by(Profile.id.asc()).all()

    if not profiles:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Org':<5} {'Email':<35} {'Name':<25} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for p in profiles:
        active_str = "Yes" if p.is_active else "No"
        click.echo(f"{p.id:<5} {p.org_id:<5} {p.email:<35} {p.full_name:<25} {active_str:<8} {p.role}")

    click.echo("="*90 + "\n")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', type=click.Choice(list(PROFILE_ROLES)), help='Only permissions granted to this role')
def list_permissions_cli(role):
    """List permission codes with their category."""
    codes = sorted(get_role_permissions(role)) if role else get_all_permission_codes()

    for code in codes:
        definition = get_permission_definition(code)
        category = definition["category"] if definition else "-"
        click.echo(f"{code:<22} {category}")


@click.group('ledger')
def ledger_group():
    """Inventory ledger checks."""


@ledger_group.command('verify')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--product-id', type=int, help='Check a single product')
@with_appcontext
def verify_ledger_cli(org_id, product_id):
    """
    Replay each product's ledger and compare with its stock.

    Exits with status 1 when any product is inconsistent.
    """
    if product_id:
        product_ids = [product_id]
    else:
        product_ids = [
            pid for (pid,) in db.session.query(Product.id)
            .filter_by(org_id=org_id)
            .order_by(Product.id.asc())
            .all()
        ]

    if not product_ids:
        click.echo("No products found.")
        return

    failures = 0
    for pid in product_ids:
        try:
            report = verify_product_ledger(org_id=org_id, product_id=pid)
        except LookupError as e:
            click.echo(f"FAIL Product {pid}: {str(e)}")
            failures += 1
            continue

        if report["consistent"]:
            click.echo(f"PASS Product {pid}: stock={report['product_stock']} entries={report['entry_count']}")
        else:
            failures += 1
            broken = ", ".join(str(i) for i in report["broken_entry_ids"]) or "-"
            click.echo(
                f"FAIL Product {pid}: stock={report['product_stock']} "
                f"ledger={report['ledger_stock']} broken entries: {broken}"
            )

    if failures:
        raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(ledger_group)
