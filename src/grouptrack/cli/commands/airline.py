"""Airline directory and configuration commands."""

import click
from grouptrack.cli.error_handling import handle_domain_error
from grouptrack.cli.session import current_user
from grouptrack.domain.access import AccessPolicy
from grouptrack.domain.airline import AirlineService
from grouptrack.domain.entities import Currency, UserRole


@click.group()
def airline_group():
    """Manage airlines and their reminder settings."""
    pass


@airline_group.command("add")
@click.argument("code", metavar="CODE")
@click.pass_context
def add_airline(ctx, code: str):
    """Add an airline to the directory.

    Examples:
        grouptrack airline add LY
    """
    user = current_user(ctx, UserRole.ADMIN)
    service = AirlineService(ctx.obj["db"])
    try:
        code = service.add_airline(user, code)
        click.echo(f"Added airline {code}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@airline_group.command("remove")
@click.argument("code", metavar="CODE")
@click.pass_context
def remove_airline(ctx, code: str):
    """Remove an airline that has no reservations."""
    user = current_user(ctx, UserRole.ADMIN)
    service = AirlineService(ctx.obj["db"])
    try:
        service.remove_airline(user, code)
        click.echo(f"Removed airline {code.upper()}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@airline_group.command("list")
@click.pass_context
def list_airlines(ctx):
    """List airlines you can access with their configuration."""
    user = current_user(ctx)
    service = AirlineService(ctx.obj["db"])
    configs = service.get_configs()
    visible = AccessPolicy.allowed_airlines(user, configs)

    shown = [configs[code] for code in service.list_airlines() if code in visible]
    if not shown:
        click.echo("No airlines found.")
        return

    click.echo(f"\n{'Code':5s} | {'Currency':8s} | {'Active rules':12s} | Recipient")
    click.echo("-" * 60)
    for config in shown:
        active = sum(1 for r in config.reminders if r.active)
        click.echo(
            f"{config.airline_code:5s} | {config.currency.value:8s} | "
            f"{active:>2d} of {len(config.reminders):<6d} | {config.recipient_email or '-'}"
        )


@airline_group.command("config")
@click.argument("code", metavar="CODE")
@click.option("--email", help="Address that receives reminder emails ('' to clear)")
@click.option("--currency", type=click.Choice([c.value for c in Currency], case_sensitive=False))
@click.pass_context
def configure_airline(ctx, code: str, email: str | None, currency: str | None):
    """Show or change an airline's reminder recipient and currency.

    Examples:
        grouptrack airline config ET
        grouptrack airline config ET --email groups@example.com --currency USD
    """
    if email is None and currency is None:
        user = current_user(ctx)
    else:
        user = current_user(ctx, UserRole.ADMIN)
    service = AirlineService(ctx.obj["db"])

    try:
        if email is not None or currency is not None:
            config = service.update_config(
                user, code, recipient_email=email, currency=Currency(currency.upper()) if currency else None
            )
            click.echo(f"Updated {config.airline_code}")
        else:
            config = service.get_config(code)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\nAirline:    {config.airline_code}")
    click.echo(f"Recipient:  {config.recipient_email or '-'}")
    click.echo(f"Currency:   {config.currency.value} ({config.currency.symbol})")
    click.echo("Reminder rules:")
    if not config.reminders:
        click.echo("  (none)")
    for rule in config.reminders:
        state = "active" if rule.active else "inactive"
        click.echo(f"  [{rule.id}] {rule.label}: {rule.days_before} days before departure ({state})")


@airline_group.command("rule-add")
@click.argument("code", metavar="CODE")
@click.argument("label")
@click.argument("days_before", type=int)
@click.option("--inactive", is_flag=True, help="Create the rule disabled")
@click.pass_context
def add_rule(ctx, code: str, label: str, days_before: int, inactive: bool):
    """Add an airline-wide reminder DAYS_BEFORE departure.

    Examples:
        grouptrack airline rule-add ET "Ticketing" 10
    """
    user = current_user(ctx, UserRole.ADMIN)
    service = AirlineService(ctx.obj["db"])
    try:
        rule = service.add_custom_reminder(user, code, label, days_before, active=not inactive)
        click.echo(f"Added rule '{rule.label}' (ID: {rule.id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@airline_group.command("rule-toggle")
@click.argument("code", metavar="CODE")
@click.argument("rule_id", metavar="RULE_ID")
@click.option("--on/--off", "active", required=True, help="Enable or disable the rule")
@click.pass_context
def toggle_rule(ctx, code: str, rule_id: str, active: bool):
    """Enable or disable an airline-wide reminder rule."""
    user = current_user(ctx, UserRole.ADMIN)
    service = AirlineService(ctx.obj["db"])
    try:
        rule = service.set_custom_reminder_active(user, code, rule_id, active)
        click.echo(f"Rule '{rule.label}' is now {'active' if rule.active else 'inactive'}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@airline_group.command("rule-remove")
@click.argument("code", metavar="CODE")
@click.argument("rule_id", metavar="RULE_ID")
@click.pass_context
def remove_rule(ctx, code: str, rule_id: str):
    """Delete an airline-wide reminder rule."""
    user = current_user(ctx, UserRole.ADMIN)
    service = AirlineService(ctx.obj["db"])
    try:
        service.remove_custom_reminder(user, code, rule_id)
        click.echo(f"Removed rule {rule_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register airline commands with main CLI."""
    cli.add_command(airline_group, name="airline")
