"""User account commands."""

import click
from grouptrack.cli.error_handling import handle_domain_error
from grouptrack.cli.session import current_user
from grouptrack.domain.access import UserService
from grouptrack.domain.entities import UserRole

ROLE_CHOICE = click.Choice([r.value for r in UserRole], case_sensitive=False)


@click.group()
def user_group():
    """Manage staff accounts (administrators only)."""
    pass


@user_group.command("create")
@click.argument("username")
@click.option("--password", "new_password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=ROLE_CHOICE, default="VIEWER", show_default=True)
@click.option("--name", "full_name", default="", help="Full name")
@click.option("--airline", "airlines", multiple=True, help="Airline the user may access (repeatable)")
@click.pass_context
def create_user(ctx, username: str, new_password: str, role: str, full_name: str, airlines: tuple[str, ...]):
    """Create a staff account.

    Examples:
        grouptrack user create dana --role EDITOR --airline ET --airline UX
    """
    acting = current_user(ctx, UserRole.ADMIN)
    service = UserService(ctx.obj["db"])
    try:
        user = service.create_user(
            acting, username, new_password, UserRole(role.upper()), full_name=full_name, allowed_airlines=airlines
        )
        click.echo(f"Created user '{user.username}' ({user.role.value})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@user_group.command("list")
@click.pass_context
def list_users(ctx):
    """List all accounts."""
    current_user(ctx, UserRole.ADMIN)
    users = UserService(ctx.obj["db"]).list_users()

    click.echo(f"\n{'Username':16s} | {'Role':6s} | {'Name':24s} | Airlines")
    click.echo("-" * 70)
    for user in users:
        airlines = "all" if user.role is UserRole.ADMIN else (", ".join(user.allowed_airlines) or "-")
        click.echo(f"{user.username:16s} | {user.role.value:6s} | {user.full_name:24s} | {airlines}")


@user_group.command("delete")
@click.argument("username")
@click.pass_context
def delete_user(ctx, username: str):
    """Delete an account."""
    acting = current_user(ctx, UserRole.ADMIN)
    try:
        UserService(ctx.obj["db"]).delete_user(acting, username)
        click.echo(f"Deleted user '{username}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


@user_group.command("role")
@click.argument("username")
@click.argument("role", type=ROLE_CHOICE)
@click.pass_context
def set_role(ctx, username: str, role: str):
    """Change an account's role."""
    acting = current_user(ctx, UserRole.ADMIN)
    try:
        user = UserService(ctx.obj["db"]).set_role(acting, username, UserRole(role.upper()))
        click.echo(f"'{user.username}' is now {user.role.value}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@user_group.command("grant")
@click.argument("username")
@click.argument("airline")
@click.pass_context
def grant_airline(ctx, username: str, airline: str):
    """Give an account access to an airline."""
    acting = current_user(ctx, UserRole.ADMIN)
    try:
        user = UserService(ctx.obj["db"]).grant_airline(acting, username, airline)
        click.echo(f"'{user.username}' airlines: {', '.join(user.allowed_airlines)}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@user_group.command("revoke")
@click.argument("username")
@click.argument("airline")
@click.pass_context
def revoke_airline(ctx, username: str, airline: str):
    """Remove an account's access to an airline."""
    acting = current_user(ctx, UserRole.ADMIN)
    try:
        user = UserService(ctx.obj["db"]).revoke_airline(acting, username, airline)
        click.echo(f"'{user.username}' airlines: {', '.join(user.allowed_airlines) or '-'}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@user_group.command("passwd")
@click.argument("username", required=False)
@click.option("--new-password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.pass_context
def change_password(ctx, username: str | None, new_password: str):
    """Change a password (your own unless USERNAME is given)."""
    acting = current_user(ctx)
    try:
        UserService(ctx.obj["db"]).change_password(acting, username or acting.username, new_password)
        click.echo("Password changed.")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register user commands with main CLI."""
    cli.add_command(user_group, name="user")
