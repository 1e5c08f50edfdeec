"""Initialize a new grouptrack database."""

import click
from grouptrack.domain.access import UserService
from grouptrack.domain.airline import AirlineService
from grouptrack.domain.constants import DEFAULT_AIRLINES


@click.command("init")
@click.option("--admin-user", default="admin", show_default=True, help="Username of the first administrator")
@click.option(
    "--admin-password",
    prompt="Administrator password",
    hide_input=True,
    confirmation_prompt=True,
    help="Password of the first administrator",
)
@click.pass_context
def init_database(ctx, admin_user: str, admin_password: str):
    """Seed the airline directory and create the first administrator.

    Existing data is never overwritten: airlines are seeded only when none
    are stored and the administrator is created only when no users exist.

    Examples:
        grouptrack init --admin-user admin
    """
    db = ctx.obj["db"]
    airline_service = AirlineService(db)
    user_service = UserService(db)

    if len(admin_password) < 4:
        click.echo("Error: Password must be at least 4 characters.", err=True)
        ctx.exit(1)

    try:
        if airline_service.seed_defaults():
            click.echo(f"Seeded airlines: {', '.join(DEFAULT_AIRLINES)}")
        else:
            click.echo("Airline directory already exists, leaving it unchanged.")

        admin = user_service.ensure_admin(admin_user, admin_password)
        if admin is not None:
            click.echo(f"Created administrator '{admin.username}'")
        else:
            click.echo("Users already exist, no administrator created.")
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


def register_commands(cli):
    """Register init command with main CLI."""
    cli.add_command(init_database)
