# khidma/jobs/cli.py
"""
Flask CLI commands for the scheduled jobs.

    flask --app khidma.factory:create_app jobs reminders
    flask --app khidma.factory:create_app jobs reconcile-orders
"""
import json

import click
from flask import current_app
from flask.cli import AppGroup

from khidma.jobs.orders import reconcile_orphaned_orders
from khidma.jobs.reminders import run_subscription_reminders

jobs_cli = AppGroup('jobs', help="Scheduled marketplace jobs.")


@jobs_cli.command('reminders')
def reminders_command():
    """Notify providers whose subscription ends soon."""
    result = run_subscription_reminders()
    click.echo(json.dumps(result, ensure_ascii=False))


@jobs_cli.command('reconcile-orders')
@click.option('--ttl-minutes', type=int, default=None,
              help="Age after which a pending order is considered abandoned.")
def reconcile_command(ttl_minutes):
    """Close food orders whose checkout was never completed."""
    ttl = ttl_minutes or current_app.config.get('ORPHAN_ORDER_TTL_MINUTES', 60)
    count = reconcile_orphaned_orders(ttl_minutes=ttl)
    click.echo(f"reconciled {count} orders")
