"""
Flask CLI commands for bootstrapping admin accounts.

    flask shopdesk create-admin admin@example.com 'S3cret!'
    flask shopdesk set-admin-claim admin@example.com false
    flask shopdesk grant-role <uid>
    flask shopdesk prune-logs --days 30
"""

import click
from flask import current_app
from flask.cli import AppGroup

from .core.context import get_context
from .core.errors import ShopDeskError
from .core.logging_service import LoggingService

shopdesk_cli = AppGroup('shopdesk', help="ShopDesk admin commands.")


@shopdesk_cli.command('create-admin')
@click.argument('email')
@click.argument('password')
@click.option('--no-claim', is_flag=True, help="Create the account without the admin claim.")
def create_admin(email, password, no_claim):
    """Create an admin account."""
    try:
        principal = get_context().identity.create_account(
            email, password, claims={} if no_claim else {'admin': True}
        )
    except ShopDeskError as e:
        raise click.ClickException(e.message)
    click.echo(f"Created {principal.email} (uid {principal.uid})")


@shopdesk_cli.command('set-admin-claim')
@click.argument('email')
@click.argument('value', type=click.BOOL)
def set_admin_claim(email, value):
    """Grant or revoke the admin claim."""
    identity = get_context().identity
    principal = identity.find_by_email(email)
    if principal is None:
        raise click.ClickException(f"No account for {email}")
    claims = identity.get_claims(principal.uid, force_refresh=True)
    claims['admin'] = value
    identity.set_claims(principal.uid, claims)
    click.echo(f"admin={value} for {principal.email}")


@shopdesk_cli.command('grant-role')
@click.argument('uid')
@click.option('--revoke', is_flag=True, help="Remove the admin role instead.")
def grant_role(uid, revoke):
    """Write the roles/<uid> document used when ADMIN_ROLE_SOURCE=roles."""
    collection = current_app.config.get('ROLES_COLLECTION', 'roles')
    get_context().store.set(collection, uid, {'admin': not revoke, 'role': 'user' if revoke else 'admin'})
    click.echo(f"{'Revoked' if revoke else 'Granted'} admin role for {uid}")


@shopdesk_cli.command('prune-logs')
@click.option('--days', default=30, show_default=True, help="Keep entries newer than this.")
def prune_logs(days):
    """Delete persisted log entries older than --days."""
    deleted = LoggingService.cleanup_old_logs(days_to_keep=days)
    click.echo(f"Deleted {deleted} log entries")
