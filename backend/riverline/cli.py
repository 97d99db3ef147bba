# backend/riverline/cli.py
# Commands (run from the backend directory):
# - flask --app riverline system init [--admin-password ...]
#   Create tables, store default settings (IGV 18%) and the admin user.
# - flask --app riverline system seed-demo
#   Demo catalog: ports, routes, vessels, schedules, a seller and an operator.
# - flask --app riverline users list [--role VENDEDOR]
# - flask --app riverline users create --username ... --email ... --password ... --role ...

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Setting
from .models.enums import Role, VesselStatus
from .services import auth_service, catalog_service, operator_service, settings_service
from .validation import ServiceError


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Administrator username')
@click.option('--admin-email', default='admin@riverline.local', help='Administrator email')
@click.option('--admin-password', default=DEFAULT_PASSWORD, help='Administrator password')
@click.option('--igv', default='18', help='IGV percentage stored on first init')
@with_appcontext
def init_system(admin_username, admin_email, admin_password, igv):
    """
    Idempotent bootstrap: tables, default settings and the administrator.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing Riverline...")

    db.create_all()
    click.echo("PASS Tables created")

    first_run = not db.session.query(Setting).filter_by(key=settings_service.TAX_RATE_KEY).first()
    created = settings_service.ensure_defaults()
    if first_run:
        settings_service.set_setting(settings_service.TAX_RATE_KEY, igv)
    click.echo(f"PASS Default settings stored ({created} new)")

    admin = db.session.query(User).filter_by(username=admin_username).first()
    if admin:
        click.echo(f"PASS Using existing administrator: {admin.username}")
    else:
        try:
            auth_service.create_user(
                username=admin_username,
                email=admin_email,
                password=admin_password,
                role=Role.ADMINISTRADOR,
                first_name="Admin",
            )
            click.echo(f"PASS Created administrator: {admin_username}")
        except ServiceError as e:
            click.echo(f"FAIL Could not create administrator: {e.message}")
            return

    click.echo("DONE System initialized")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Demo catalog for local development. Skips anything that already exists."""
    ports = {}
    for order, name in enumerate(["Puerto Masusa", "Puerto Henry", "Embarcadero Bellavista"]):
        try:
            ports[name] = catalog_service.create_port(name, sort_order=order)
        except ServiceError as e:
            click.echo(f"SKIP Port {name}: {e.message}")

    routes = {}
    for name, origin, destination, price in [
        ("Iquitos - Yurimaguas", "Iquitos", "Yurimaguas", 12000),
        ("Iquitos - Pucallpa", "Iquitos", "Pucallpa", 15000),
        ("Iquitos - Santa Rosa", "Iquitos", "Santa Rosa", 8000),
    ]:
        try:
            routes[name] = catalog_service.create_route(name, origin, destination, price)
        except ServiceError as e:
            click.echo(f"SKIP Route {name}: {e.message}")

    vessels = {}
    for name, capacity, vessel_type in [
        ("Eduardo VI", 150, "Lancha"),
        ("Gilmer IV", 120, "Lancha"),
        ("Rapido Amazonas", 40, "Deslizador"),
    ]:
        try:
            vessels[name] = catalog_service.create_vessel(name, capacity, vessel_type=vessel_type, status=VesselStatus.ACTIVA)
        except ServiceError as e:
            click.echo(f"SKIP Vessel {name}: {e.message}")

    for vessel_name, route_name, times, days in [
        ("Eduardo VI", "Iquitos - Yurimaguas", ["06:00", "14:00"], catalog_service.WEEKDAYS),
        ("Gilmer IV", "Iquitos - Pucallpa", ["08:00"], ["lunes", "miércoles", "viernes"]),
        ("Rapido Amazonas", "Iquitos - Santa Rosa", ["05:30"], catalog_service.WEEKDAYS),
    ]:
        if vessel_name in vessels and route_name in routes:
            try:
                catalog_service.create_schedule(vessels[vessel_name].id, routes[route_name].id, times, days)
            except ServiceError as e:
                click.echo(f"SKIP Schedule {vessel_name}/{route_name}: {e.message}")

    for username, role in [("vendedor", Role.VENDEDOR), ("operador", Role.OPERADOR_EMBARCACION)]:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"SKIP User {username}: already exists")
            continue
        user = auth_service.create_user(
            username=username,
            email=f"{username}@riverline.local",
            password=DEFAULT_PASSWORD,
            role=role,
        )
        if role == Role.OPERADOR_EMBARCACION and "Eduardo VI" in vessels:
            operator_service.assign_vessel(user.id, vessels["Eduardo VI"].id)
            operator_service.set_operator_status(user.id, "ACTIVO")

    click.echo(
        f"DONE Seeded {len(ports)} ports, {len(routes)} routes, {len(vessels)} vessels "
        f"(password for demo users: {DEFAULT_PASSWORD})"
    )


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in Role]), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    users = auth_service.list_users(role=Role(role) if role else None)
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        vessel = f" vessel={user.assigned_vessel_id}" if user.assigned_vessel_id else ""
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role.value:<22} {status}{vessel}")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in Role]), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a user. Password needs 8+ chars, uppercase, lowercase, digit and a
    special character.
    """
    try:
        user = auth_service.create_user(username=username, email=email, password=password, role=role)
        click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role.value}'")
    except auth_service.PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
