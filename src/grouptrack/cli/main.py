"""Main CLI entry point."""

import click
from grouptrack.database.factories import create_sqlite_database
from grouptrack.mail.smtp import SMTPMailer
from grouptrack.utils.clock import DEFAULT_TIMEZONE, Clock
from grouptrack.utils.logging_config import configure_logging

# Import and register all commands at module level
from grouptrack.cli.commands import (
    init_cmd,
    reservation,
    airline,
    user,
    reminders,
    log,
    export,
    summary,
    email,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides GROUPTRACK_DB_PATH environment variable)",
    envvar="GROUPTRACK_DB_PATH",
)
@click.option("--user", "username", envvar="GROUPTRACK_USER", help="Username to sign in as")
@click.option("--password", envvar="GROUPTRACK_PASSWORD", help="Password (prompted if omitted)")
@click.option(
    "--timezone",
    envvar="GROUPTRACK_TIMEZONE",
    default=DEFAULT_TIMEZONE,
    show_default=True,
    help="Reference time zone for calendar days and the dispatch hour",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging on stderr")
@click.pass_context
def cli(ctx, db_path: str | None, username: str | None, password: str | None, timezone: str, verbose: bool):
    """GroupTrack - Airline group reservation tracking.

    Track group bookings (PNRs) across airlines, keep an audit trail of every
    change and email date-driven reminders to each airline's contact.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        if "clock" not in ctx.obj:
            try:
                ctx.obj["clock"] = Clock(timezone)
            except ValueError as e:
                click.echo(f"Error: {e}", err=True)
                ctx.exit(1)
        ctx.obj.setdefault("mailer_factory", SMTPMailer)
        ctx.obj["username"] = username
        ctx.obj["password"] = password

        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db


# Register all commands
init_cmd.register_commands(cli)
reservation.register_commands(cli)
airline.register_commands(cli)
user.register_commands(cli)
reminders.register_commands(cli)
log.register_commands(cli)
export.register_commands(cli)
summary.register_commands(cli)
email.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
