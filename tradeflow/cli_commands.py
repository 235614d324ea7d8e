"""
Flask CLI commands.

Commands:
- flask init-db: create all tables
- flask issue-token: mint a bearer token for a user
"""

import click

from tradeflow import database
from tradeflow.middleware import ROLES, issue_token


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first')
    def init_db_command(drop):
        """Create the database schema."""
        if drop:
            click.confirm('This deletes all data. Continue?', abort=True)
            database.drop_all()
        database.create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('issue-token')
    @click.option('--user-id', type=int, required=True, help='User id from the identity service')
    @click.option('--tenant-id', type=int, required=True, help='Tenant id')
    @click.option('--role', type=click.Choice(ROLES), required=True)
    @click.option('--customer-id', type=int, default=None, help='Customer id (customer role only)')
    @click.option('--ttl-hours', type=int, default=None, help='Token lifetime (default TOKEN_TTL_HOURS)')
    def issue_token_command(user_id, tenant_id, role, customer_id, ttl_hours):
        """Print a signed bearer token."""
        if role == 'customer' and customer_id is None:
            raise click.UsageError('--customer-id is required for the customer role')
        token = issue_token(user_id, tenant_id, role, customer_id=customer_id, ttl_hours=ttl_hours)
        click.echo(token)
