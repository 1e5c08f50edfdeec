"""Audit log commands."""

import click
from grouptrack.cli.date_filters import resolve_cli_date_range
from grouptrack.cli.session import current_user
from grouptrack.domain.audit import AuditLogService
from grouptrack.domain.entities import AuditLogEntry, UserRole


def _format_value(value) -> str:
    if value is None or value == "":
        return "(empty)"
    return str(getattr(value, "value", value))


def _print_entry(entry: AuditLogEntry, timezone, verbose: bool) -> None:
    when = entry.timestamp.astimezone(timezone).strftime("%Y-%m-%d %H:%M") if entry.timestamp else "-"
    click.echo(f"{when} | {entry.action.value:6s} | {entry.username:12s} | {entry.entity_pnr:8s} | {entry.details}")
    if verbose:
        for change in entry.changes:
            click.echo(f"    {change.field}: {_format_value(change.old_value)} -> {_format_value(change.new_value)}")


@click.group()
def log_group():
    """Inspect the audit log (administrators only)."""
    pass


@log_group.command("list")
@click.option("--search", default="", help="Match username, PNR, details or action")
@click.option("--from", "start_date", help="First day (YYYY-MM-DD or relative like 'last week')")
@click.option("--to", "end_date", help="Last day")
@click.option("--this-week", is_flag=True, help="Entries from this week")
@click.option("--last-week", is_flag=True, help="Entries from last week")
@click.option("--this-month", is_flag=True, help="Entries from this month")
@click.option("--last-month", is_flag=True, help="Entries from last month")
@click.option("--this-year", is_flag=True, help="Entries from this year")
@click.option("--by-year", is_flag=True, help="Group entries under year headings")
@click.option("--verbose", "-v", is_flag=True, help="Show individual field changes")
@click.pass_context
def list_entries(
    ctx,
    search: str,
    start_date: str | None,
    end_date: str | None,
    this_week: bool,
    last_week: bool,
    this_month: bool,
    last_month: bool,
    this_year: bool,
    by_year: bool,
    verbose: bool,
):
    """List audit entries, newest first.

    Examples:
        grouptrack log list --search ABC123 -v
        grouptrack log list --last-month --by-year
    """
    current_user(ctx, UserRole.ADMIN)
    clock = ctx.obj["clock"]
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags={
            "this-week": this_week,
            "last-week": last_week,
            "this-month": this_month,
            "last-month": last_month,
            "this-year": this_year,
        },
        today=clock.today(),
    )

    service = AuditLogService(ctx.obj["db"])
    entries = service.search(search, start_date=start, end_date=end)
    if not entries:
        click.echo("No log entries found.")
        return

    if by_year:
        for year, group in service.group_by_year(entries):
            click.echo(f"\n{year}")
            click.echo("-" * 80)
            for entry in group:
                _print_entry(entry, clock.timezone, verbose)
    else:
        for entry in entries:
            _print_entry(entry, clock.timezone, verbose)


def register_commands(cli):
    """Register log commands with main CLI."""
    cli.add_command(log_group, name="log")
