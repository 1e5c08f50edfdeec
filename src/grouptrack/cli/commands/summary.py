"""Dashboard summary command."""

import click
from grouptrack.cli.error_handling import handle_domain_error
from grouptrack.cli.session import current_user
from grouptrack.domain.entities import PNRStatus
from grouptrack.domain.reporting import ReportService


@click.command("summary")
@click.option("--airline", help="Only this airline")
@click.option("--status", help="Only this status")
@click.option("--agency", help="Only this agency")
@click.pass_context
def summary(ctx, airline: str | None, status: str | None, agency: str | None):
    """Show group, passenger and revenue totals."""
    user = current_user(ctx)
    service = ReportService(ctx.obj["db"], ctx.obj["clock"])

    try:
        records = service.filter_reservations(
            user,
            airline=airline,
            status=PNRStatus.parse(status) if status else None,
            agency=agency,
        )
        report = service.dashboard_summary(user, records)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\n{'Total groups':<24} {report.total_groups:>12}")
    click.echo(f"{'Total passengers':<24} {report.total_passengers:>12}")
    click.echo(f"{'Revenue (fare + taxes)':<24} {report.total_revenue:>12,.2f}")
    click.echo(f"{'Confirmed (OK)':<24} {report.confirmed_groups:>12}")
    click.echo(f"{'Pending (PD)':<24} {report.pending_groups:>12}")
    click.echo(f"{'Cancelled (XX)':<24} {report.cancelled_groups:>12}")

    if report.by_airline:
        click.echo("\nBy airline:")
        click.echo("-" * 40)
        for row in report.by_airline:
            click.echo(f"{row.airline:<6} {row.groups:>6} groups {row.passengers:>8} pax")


def register_commands(cli):
    """Register summary command with main CLI."""
    cli.add_command(summary)
