"""Resolve the signed-in user for a command."""

from typing import Optional

import click

from grouptrack.domain.access import AccessPolicy, UserService
from grouptrack.domain.entities import UserAccount, UserRole
from grouptrack.cli.error_handling import handle_domain_error


def current_user(ctx: click.Context, role: Optional[UserRole] = None) -> UserAccount:
    """Authenticate the credentials given to the top-level command.

    Args:
        ctx: Click context
        role: Minimum role the command requires

    Returns:
        The authenticated account
    """
    username = ctx.obj.get("username")
    if not username:
        click.echo("Error: Sign in with --user (or GROUPTRACK_USER) to run this command.", err=True)
        ctx.exit(1)

    password = ctx.obj.get("password")
    if password is None:
        password = click.prompt("Password", hide_input=True)

    try:
        user = UserService(ctx.obj["db"]).authenticate(username, password)
        if role is not None:
            AccessPolicy.require_role(user, role)
    except ValueError as e:
        handle_domain_error(ctx, e)
    return user
