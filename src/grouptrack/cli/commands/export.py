"""Export commands."""

import click
from grouptrack.cli.error_handling import handle_domain_error
from grouptrack.cli.session import current_user
from grouptrack.domain.entities import UserRole
from grouptrack.domain.reporting import ReportService


@click.group()
def export_group():
    """Export reservations."""
    pass


@export_group.command("csv")
@click.option(
    "--output",
    "-o",
    type=click.File("w"),
    default="-",
    help="File to write (defaults to stdout)",
)
@click.option("--airline", "airlines", multiple=True, help="Only this airline (repeatable)")
@click.pass_context
def export_csv(ctx, output, airlines: tuple[str, ...]):
    """Export reservations as CSV (administrators only).

    Examples:
        grouptrack export csv -o groups.csv
        grouptrack export csv --airline ET --airline UX > et_ux.csv
    """
    user = current_user(ctx, UserRole.ADMIN)
    service = ReportService(ctx.obj["db"], ctx.obj["clock"])
    try:
        count = service.export_csv(user, output, airlines=airlines or None)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Exported {count} reservation(s)", err=True)


def register_commands(cli):
    """Register export commands with main CLI."""
    cli.add_command(export_group, name="export")
