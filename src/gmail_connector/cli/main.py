"""Gmail Connector CLI interface."""

import sys

import click

from gmail_connector.auth.gate import AdministratorActionRequired, Authorized, MustAuthorize
from gmail_connector.errors import GmailConnectorError
from gmail_connector.lib.config import app_config, storage_config
from gmail_connector.lib.logger import get_logger, log_to_file
from gmail_connector.models.identity import InvocationContext
from gmail_connector.services.integration import MailboxIntegration

logger = get_logger(__name__)

SERVER_LOG_FILE = "gmail_connector.log"


def _integration(ctx: click.Context) -> MailboxIntegration:
    """Return the integration for this run (built from the environment on first use)."""
    integration = ctx.obj.get("integration")
    if integration is None:
        try:
            integration = MailboxIntegration.from_config(
                invocation=InvocationContext.administrator()
            )
        except ValueError as e:
            click.echo(f"✗ Configuration error: {e}", err=True)
            sys.exit(1)
        ctx.obj["integration"] = integration
    return integration


def _unwrap(integration: MailboxIntegration, outcome):
    """Return an Authorized value, or report the authorization outcome and exit."""
    if isinstance(outcome, Authorized):
        return outcome.value

    if isinstance(outcome, MustAuthorize):
        click.echo(f"✗ {outcome.message}", err=True)
        click.echo("Open this URL to authorize:", err=True)
        click.echo(f"  {integration.must_authorize_response(outcome)}", err=True)
    elif isinstance(outcome, AdministratorActionRequired):
        click.echo(f"✗ {outcome.message}", err=True)

    sys.exit(1)


@click.group()
@click.version_option(version="0.1.0", prog_name="gmail-connector")
@click.pass_context
def cli(ctx):
    """Gmail Connector - OAuth authorization and push-notification sync."""
    ctx.ensure_object(dict)


@cli.command("auth-url")
@click.option(
    "--account",
    default=None,
    help="Authorize an end-user account instead of the configured mailbox",
)
@click.pass_context
def auth_url(ctx, account):
    """Print the consent URL for the configured mailbox."""
    integration = _integration(ctx)

    try:
        if account:
            integration = integration.for_invocation(InvocationContext.end_user(account))
            identity_key = integration.gate.identity_key()
        else:
            identity_key = integration.gate.identity_key(as_admin=True)

        url = integration.must_authorize_response(MustAuthorize(identity_key=identity_key))

    except (GmailConnectorError, ValueError) as e:
        click.echo(f"✗ Error: {e}", err=True)
        sys.exit(1)

    click.echo("Open this URL to authorize the application:")
    click.echo(f"  {url}")


@cli.command()
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def revoke(ctx, yes):
    """Revoke and delete the stored credential."""
    integration = _integration(ctx)

    if not yes and not click.confirm(
        f"Revoke access for {integration.settings.mailbox}?"
    ):
        click.echo("Revocation cancelled.")
        return

    if integration.revoke():
        click.echo("✓ Credential revoked and removed")
    else:
        click.echo("No credential stored.")


@cli.command("test-connection")
@click.pass_context
def test_connection(ctx):
    """Verify the stored credential can reach the mailbox."""
    integration = _integration(ctx)

    try:
        profile = _unwrap(integration, integration.test_connection())
    except GmailConnectorError as e:
        click.echo(f"✗ Connection failed: {e}", err=True)
        sys.exit(1)

    click.echo("✓ Connection successful!")
    click.echo(f"  Mailbox: {profile.get('emailAddress')}")
    click.echo(f"  Messages: {profile.get('messagesTotal', 0)}")
    click.echo(f"  History ID: {profile.get('historyId')}")


@cli.command()
@click.option("--stop", is_flag=True, help="Stop the watch and clear the cursor")
@click.pass_context
def watch(ctx, stop):
    """Register (or renew) the push-notification watch."""
    integration = _integration(ctx)

    try:
        if stop:
            _unwrap(integration, integration.watch.stop())
            click.echo("✓ Watch stopped")
            return

        subscription = _unwrap(integration, integration.register_event_listener())

    except GmailConnectorError as e:
        click.echo(f"✗ Error: {e}", err=True)
        sys.exit(1)

    if subscription is None:
        click.echo("No topic configured (set GMAIL_TOPIC). Nothing to watch.")
        return

    click.echo("✓ Watch registered")
    click.echo(f"  Topic: {subscription.topic}")
    click.echo(f"  History ID: {subscription.history_id}")
    if subscription.expiration:
        click.echo(f"  Expires: {subscription.expiration.isoformat()}")


@cli.command()
@click.pass_context
def sync(ctx):
    """Print ids of messages received since the last sync."""
    integration = _integration(ctx)

    try:
        message_ids = _unwrap(integration, integration.new_messages())
    except GmailConnectorError as e:
        click.echo(f"✗ Sync failed: {e}", err=True)
        sys.exit(1)

    if not message_ids:
        click.echo("No new messages.")
        return

    click.echo(f"{len(message_ids)} new message(s):")
    for message_id in sorted(message_ids):
        click.echo(f"  {message_id}")


@cli.command()
@click.pass_context
def status(ctx):
    """Show authorization and watch status."""
    integration = _integration(ctx)
    info = integration.status()

    click.echo("Gmail Connector Status")
    click.echo("======================")
    click.echo(f"Mailbox: {info['mailbox']}")
    click.echo(f"Authorized: {'yes' if info['authorized'] else 'no'}")
    click.echo(f"Topic: {info['topic'] or '-'}")
    click.echo(f"Watch: {info['watch_state']}")
    click.echo(f"History ID: {info['history_id'] if info['history_id'] is not None else '-'}")
    click.echo(f"Pending authorization contexts: {info['pending_contexts']}")


@cli.command()
@click.option("--host", default=None, help=f"Bind address (default {app_config.host})")
@click.option("--port", type=int, default=None, help=f"Port (default {app_config.port})")
@click.pass_context
def serve(ctx, host, port):
    """Serve the OAuth callback and webhook endpoints."""
    import uvicorn

    from gmail_connector.api.app import create_app

    integration = _integration(ctx)
    app = create_app(integration)

    storage_config.ensure_directories()
    log_to_file(storage_config.log_dir / SERVER_LOG_FILE)

    click.echo(f"Serving on http://{host or app_config.host}:{port or app_config.port}")
    uvicorn.run(app, host=host or app_config.host, port=port or app_config.port)


if __name__ == "__main__":
    cli()
