"""Reminder commands."""

import click
from grouptrack.cli.error_handling import handle_domain_error
from grouptrack.cli.session import current_user
from grouptrack.domain.airline import AirlineService
from grouptrack.domain.constants import DEFAULT_DISPATCH_HOUR, DEFAULT_DISPATCH_INTERVAL
from grouptrack.domain.dispatch import DispatchScheduler, PersistentSentStore, ReminderDispatcher
from grouptrack.domain.entities import UserRole
from grouptrack.domain.reminders import ReminderService


@click.group()
def reminders_group():
    """View and send reminders."""
    pass


@reminders_group.command("list")
@click.option("--overdue", is_flag=True, help="Only overdue reminders")
@click.option("--show-email", is_flag=True, help="Print the email body of each reminder")
@click.pass_context
def list_reminders(ctx, overdue: bool, show_email: bool):
    """List current reminders on your airlines, soonest first."""
    user = current_user(ctx)
    service = ReminderService(ctx.obj["db"], ctx.obj["clock"])
    try:
        reminders = service.reminders_for(user)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if overdue:
        reminders = [r for r in reminders if r.is_overdue]
    if not reminders:
        click.echo("No reminders.")
        return

    for r in reminders:
        flag = "OVERDUE" if r.is_overdue else "due"
        click.echo(f"{r.due_date.isoformat()} {flag:7s} {r.pnr:8s} {r.agency or '-':20s} {r.description}")
        if show_email:
            click.echo(click.style(r.email_template, dim=True))
            click.echo()


def _build_dispatcher(ctx, dispatch_hour: int) -> ReminderDispatcher:
    db = ctx.obj["db"]
    settings = AirlineService(db).get_email_settings()
    if not settings.is_configured:
        click.echo("Error: Email settings are not configured. Run 'grouptrack email configure' first.", err=True)
        ctx.exit(1)
    try:
        return ReminderDispatcher(
            db,
            ctx.obj["mailer_factory"](settings),
            sent_store=PersistentSentStore(db),
            clock=ctx.obj["clock"],
            dispatch_hour=dispatch_hour,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)


dispatch_hour_option = click.option(
    "--dispatch-hour",
    type=click.IntRange(0, 23),
    default=DEFAULT_DISPATCH_HOUR,
    show_default=True,
    envvar="GROUPTRACK_DISPATCH_HOUR",
    help="Hour of day (reference time zone) from which reminders are emailed",
)


@reminders_group.command("check")
@dispatch_hour_option
@click.pass_context
def check_reminders(ctx, dispatch_hour: int):
    """Send today's due reminders now (each at most once per day)."""
    current_user(ctx, UserRole.ADMIN)
    dispatcher = _build_dispatcher(ctx, dispatch_hour)
    report = DispatchScheduler(dispatcher).check_now()
    click.echo(report.summary())
    if report.aborted:
        ctx.exit(1)


@reminders_group.command("run")
@dispatch_hour_option
@click.option(
    "--interval",
    type=click.FloatRange(min=1),
    default=DEFAULT_DISPATCH_INTERVAL,
    show_default=True,
    envvar="GROUPTRACK_DISPATCH_INTERVAL",
    help="Seconds between dispatch checks",
)
@click.pass_context
def run_dispatcher(ctx, dispatch_hour: int, interval: float):
    """Keep checking and emailing reminders until interrupted."""
    current_user(ctx, UserRole.ADMIN)
    scheduler = DispatchScheduler(_build_dispatcher(ctx, dispatch_hour), interval=interval)
    click.echo(f"Dispatching reminders every {interval:g}s from {dispatch_hour:02d}:00. Press Ctrl+C to stop.")
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        scheduler.stop()
        click.echo("\nStopped.")


def register_commands(cli):
    """Register reminder commands with main CLI."""
    cli.add_command(reminders_group, name="reminders")
