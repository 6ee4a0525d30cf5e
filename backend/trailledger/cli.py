# Overview: Flask CLI command groups for bootstrap, inspection, and demo data.

# backend/trailledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Bike registry:
# - python -m flask bikes seed --count 20
#   Register TL-001..TL-020 (existing codes are skipped).
# - python -m flask bikes list [--status MAINTENANCE]
#   List bikes with status.
#
# Rentals:
# - python -m flask rentals active
#   Print open rentals in dashboard order with live state.
# - python -m flask rentals seed-demo --operator-id staff-1 --operator-label "Front Desk"
#   Check out TL-001 three hours ago (overdue) and TL-002 one minute ago (buffer).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import bike_service, feed_service, rental_service, settings_service
from .services.rental_state import describe, sort_for_dashboard
from .time_utils import utcnow
from .validation import ConflictError, StateError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask bikes seed' to add bikes.")


# =============================================================================
# BIKES
# =============================================================================

@click.group('bikes')
def bikes_group():
    """Bike registry commands."""


@bikes_group.command('seed')
@click.option('--count', default=20, type=int, help='Number of bikes to register')
@with_appcontext
def seed_bikes_cli(count):
    """
    Register demo bikes TL-001..TL-NNN.

    Example:
        flask bikes seed
        flask bikes seed --count 40
    """
    try:
        created = bike_service.seed_bikes(count)
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Registered {len(created)} bikes ({count - len(created)} already existed)")


@bikes_group.command('list')
@click.option('--status', help='Filter by status (AVAILABLE, OUT, MAINTENANCE)')
@with_appcontext
def list_bikes_cli(status):
    """
    List all bikes.

    Example:
        flask bikes list
        flask bikes list --status MAINTENANCE
    """
    try:
        bikes = bike_service.list_bikes(status=status)
    except ValidationError as e:
        raise click.ClickException(str(e))

    if not bikes:
        click.echo("No bikes found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Code':<12} {'Label':<25} {'Model':<20} {'Status'}")
    click.echo("="*80)

    for bike in bikes:
        click.echo(f"{bike.id:<5} {bike.code:<12} {bike.label:<25} {bike.model or '-':<20} {bike.status}")

    click.echo(f"\nTotal: {len(bikes)} bikes")


# =============================================================================
# RENTALS
# =============================================================================

@click.group('rentals')
def rentals_group():
    """Rental inspection and demo data commands."""


@rentals_group.command('active')
@with_appcontext
def active_rentals_cli():
    """
    Print open rentals in dashboard order.

    Example:
        flask rentals active
    """
    now = utcnow()
    config = settings_service.get_park_config()
    rentals = sort_for_dashboard(feed_service.list_open_rentals(), config, now=now)

    if not rentals:
        click.echo("No open rentals.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Rental':<8} {'Bike':<12} {'State':<12} {'Overdue':<9} {'Left':<7} {'Operator'}")
    click.echo("="*80)

    for rental in rentals:
        row = describe(rental, config, now=now)
        click.echo(
            f"{rental.id:<8} {rental.bike_code:<12} {row['state']:<12} "
            f"{row['minutes_overdue']:<9} {row['remaining_minutes']:<7} "
            f"{rental.operator_label or rental.operator_id}"
        )


@rentals_group.command('seed-demo')
@click.option('--operator-id', default='demo', help='Operator recorded on the demo rentals')
@click.option('--operator-label', default='Demo Operator', help='Operator display name')
@with_appcontext
def seed_demo_cli(operator_id, operator_label):
    """
    Create one overdue and one buffer-state rental for dashboard demos.

    Example:
        flask rentals seed-demo
    """
    try:
        rentals = rental_service.seed_demo(operator_id, operator_label)
    except (ConflictError, StateError) as e:
        raise click.ClickException(f"{e} (check the demo bikes in first)")

    for rental in rentals:
        click.echo(f"PASS Rental {rental.id}: {rental.bike_code} started {rental.started_at.isoformat()}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(bikes_group)
    app.cli.add_command(rentals_group)
