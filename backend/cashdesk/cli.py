# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/cashdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent: permissions, default roles (admin, manager, cashier) and role grants.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stores and operators:
# - python -m flask stores create --name "Centro" --code "CTR"
# - python -m flask stores list [--all]
# - python -m flask operators create --username maria --name "Maria" --store-id 1 --role cashier
#
# Permissions:
# - python -m flask perms list [--role manager]
# - python -m flask perms show edit_cash_entries
# - python -m flask perms grant cashier edit_cash_entries
# - python -m flask perms revoke cashier edit_cash_entries
#
# Registers:
# - python -m flask registers current --store-id 1
#   Show the open session of a store, if any.
# - python -m flask registers summary --session-id 12
#   Print the reconciliation summary of a session.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Role, RolePermission, Permission
from .permissions import get_permission_definition, get_default_roles_for
from .services import permission_service, register_service, reconciliation_service
from .services.auth_service import create_operator, OperatorError
from .services.store_service import create_store, list_stores, StoreError
from .services.register_service import SessionNotFoundError


def _money(cents: int | None) -> str:
    if cents is None:
        return "-"
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create permissions, default roles and their grants. Safe to re-run."""
    click.echo("START Initializing permissions and roles...")
    result = permission_service.bootstrap_permissions()
    click.echo(f"PASS Created {result['permissions_created']} permissions")
    click.echo(f"PASS Created {result['roles_created']} roles")
    click.echo(f"PASS Created {result['grants_created']} role assignments")


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


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', required=True, help='Unique store code')
@with_appcontext
def create_store_cli(name, code):
    try:
        store = create_store(name, code)
    except StoreError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code})")


@stores_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive stores')
@with_appcontext
def list_stores_cli(include_inactive):
    stores = list_stores(active_only=not include_inactive)
    for store in stores:
        status = "" if store.is_active else "  (inactive)"
        click.echo(f"{store.id:>4}  {store.code:<8} {store.name}{status}")
    click.echo(f"\n Total: {len(stores)} stores")


@click.group('operators')
def operators_group():
    """Operator management commands."""


@operators_group.command('create')
@click.option('--username', required=True)
@click.option('--name', default=None, help='Display name (defaults to username)')
@click.option('--store-id', type=int, default=None, help='Home store (omit for all stores)')
@click.option('--role', 'roles', multiple=True, type=click.Choice(['admin', 'manager', 'cashier']))
@with_appcontext
def create_operator_cli(username, name, store_id, roles):
    try:
        user = create_operator(username, name or username, store_id=store_id, roles=roles)
    except (OperatorError, ValueError) as e:
        raise click.ClickException(str(e))
    role_names = permission_service.get_user_role_names(user.id)
    role_text = ', '.join(role_names) if role_names else 'no roles'
    click.echo(f"PASS Created operator: {user.username} (ID: {user.id}) with {role_text}")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name')
@with_appcontext
def list_permissions_cli(role):
    """List permissions, optionally only those of a role."""
    query = db.session.query(Permission)
    if role:
        role_obj = db.session.query(Role).filter_by(name=role).first()
        if not role_obj:
            raise click.ClickException(f"Role '{role}' not found")
        query = query.join(RolePermission, RolePermission.permission_id == Permission.id).filter(
            RolePermission.role_id == role_obj.id
        )

    perms = query.order_by(Permission.category, Permission.code).all()
    click.echo(f"{'Code':<26} {'Category':<10} {'Name'}")
    click.echo("-" * 70)
    for perm in perms:
        click.echo(f"{perm.code:<26} {perm.category:<10} {perm.name}")
    click.echo(f"\n Total: {len(perms)} permissions")


@perms_group.command('show')
@click.argument('permission_code')
def show_permission_cli(permission_code):
    """Describe a permission and the roles that get it by default."""
    definition = get_permission_definition(permission_code)
    if definition is None:
        raise click.ClickException(f"Unknown permission '{permission_code}'")
    click.echo(f"{definition['code']} ({definition['category']})")
    click.echo(f"  {definition['name']}: {definition['description']}")
    roles = get_default_roles_for(permission_code)
    click.echo(f"  Default roles: {', '.join(roles) if roles else 'none'}")


@perms_group.command('grant')
@click.argument('role_name')
@click.argument('permission_code')
@with_appcontext
def grant_permission_cli(role_name, permission_code):
    """Grant a permission to a role."""
    try:
        permission_service.grant_permission_to_role(role_name, permission_code)
        click.echo(f"PASS Granted '{permission_code}' to role '{role_name}'")
    except ValueError as e:
        raise click.ClickException(str(e))


@perms_group.command('revoke')
@click.argument('role_name')
@click.argument('permission_code')
@with_appcontext
def revoke_permission_cli(role_name, permission_code):
    """Revoke a permission from a role."""
    try:
        revoked = permission_service.revoke_permission_from_role(role_name, permission_code)
    except ValueError as e:
        raise click.ClickException(str(e))
    if revoked:
        click.echo(f"PASS Revoked '{permission_code}' from role '{role_name}'")
    else:
        click.echo(f"WARN  Permission '{permission_code}' was not granted to '{role_name}'")


@click.group('registers')
def registers_group():
    """Register session inspection commands."""


@registers_group.command('current')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def current_register_cli(store_id):
    session = register_service.get_current_session(store_id)
    if session is None:
        click.echo(f"Store {store_id} has no open register session")
        return
    click.echo(
        f"Session {session.id} OPEN since {session.opened_at.isoformat()}Z "
        f"(operator {session.operator_id}, opening {_money(session.opening_amount)})"
    )


@registers_group.command('summary')
@click.option('--session-id', type=int, required=True)
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
@with_appcontext
def summary_cli(session_id, as_json):
    try:
        session = register_service.get_session(session_id)
    except SessionNotFoundError as e:
        raise click.ClickException(str(e))

    summary = reconciliation_service.summarize(session)
    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return

    click.echo(f"Session {session.id} ({session.status})")
    click.echo(f"  Opening amount      {_money(summary.opening_amount):>12}")
    for name, channel in summary.channels.items():
        flag = "  FAILED" if channel.failed else ""
        click.echo(
            f"  {name:<10} sales    {_money(channel.total):>12}  cash {_money(channel.cash_total):>10}"
            f"  ({channel.count}){flag}"
        )
    click.echo(f"  Cash income         {_money(summary.cash_income_total):>12}")
    click.echo(f"  Cash expense        {_money(summary.cash_expense_total):>12}")
    click.echo(f"  Expected balance    {_money(summary.expected_balance):>12}")
    if summary.is_closed:
        click.echo(f"  Closing amount      {_money(summary.closing_amount):>12}")
        click.echo(f"  Difference          {_money(summary.difference):>12}")
    if summary.degraded:
        click.echo(f"WARN  Degraded: {', '.join(summary.failed_channels)} could not be read")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(operators_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(registers_group)
