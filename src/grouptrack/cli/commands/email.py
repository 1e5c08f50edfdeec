"""Outgoing email settings commands."""

from dataclasses import replace

import click
from grouptrack.cli.error_handling import handle_domain_error
from grouptrack.cli.session import current_user
from grouptrack.domain.airline import AirlineService
from grouptrack.domain.entities import UserRole


@click.group()
def email_group():
    """Configure the account reminders are sent from (administrators only)."""
    pass


@email_group.command("configure")
@click.option("--sender", help="Sender email address")
@click.option("--app-password", help="App password for the sender account")
@click.option("--sender-name", help="Display name on outgoing mail")
@click.option("--smtp-host", help="SMTP server")
@click.option("--smtp-port", type=int, help="SMTP port (587 uses STARTTLS, 465 uses SSL)")
@click.pass_context
def configure_email(
    ctx,
    sender: str | None,
    app_password: str | None,
    sender_name: str | None,
    smtp_host: str | None,
    smtp_port: int | None,
):
    """Update the sender account; options not given keep their value.

    Examples:
        grouptrack email configure --sender groups@example.com --app-password "abcd efgh ijkl mnop"
    """
    user = current_user(ctx, UserRole.ADMIN)
    service = AirlineService(ctx.obj["db"])
    settings = service.get_email_settings()

    updates = {
        "sender_address": sender.strip() if sender is not None else None,
        "app_password": app_password,
        "sender_name": sender_name,
        "smtp_host": smtp_host,
        "smtp_port": smtp_port,
    }
    updates = {name: value for name, value in updates.items() if value is not None}
    if not updates:
        click.echo("Nothing to change.")
        return

    try:
        service.save_email_settings(user, replace(settings, **updates))
        click.echo("Email settings saved.")
    except ValueError as e:
        handle_domain_error(ctx, e)


@email_group.command("show")
@click.pass_context
def show_email(ctx):
    """Show the sender account (the password is masked)."""
    current_user(ctx, UserRole.ADMIN)
    settings = AirlineService(ctx.obj["db"]).get_email_settings()
    click.echo(f"Sender:       {settings.sender_address or '-'}")
    click.echo(f"Sender name:  {settings.sender_name}")
    click.echo(f"App password: {'********' if settings.app_password else '-'}")
    click.echo(f"SMTP server:  {settings.smtp_host}:{settings.smtp_port}")


@email_group.command("test")
@click.option("--send-to", help="Also send a test message to this address")
@click.pass_context
def test_email(ctx, send_to: str | None):
    """Check that the mail server accepts the stored credentials."""
    current_user(ctx, UserRole.ADMIN)
    settings = AirlineService(ctx.obj["db"]).get_email_settings()
    mailer = ctx.obj["mailer_factory"](settings)

    result = mailer.verify()
    if result.success and send_to:
        result = mailer.send(
            send_to,
            "GroupTrack test message",
            "This is a test message from GroupTrack. Reminder emails are set up correctly.",
        )

    if not result.success:
        click.echo(f"Error: {result.message}", err=True)
        ctx.exit(1)
    click.echo(f"OK: {result.message}")


def register_commands(cli):
    """Register email commands with main CLI."""
    cli.add_command(email_group, name="email")
