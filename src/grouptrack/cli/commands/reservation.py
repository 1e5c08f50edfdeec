"""Reservation (PNR) commands."""

from datetime import date

import click
from grouptrack.cli.date_filters import resolve_cli_date_range
from grouptrack.cli.error_handling import handle_domain_error
from grouptrack.cli.session import current_user
from grouptrack.domain.airline import AirlineService
from grouptrack.domain.entities import PNRStatus, ReservationRecord, UserRole
from grouptrack.domain.reservation import (
    DATE_FIELDS,
    EDITABLE_FIELDS,
    MONEY_FIELDS,
    ReservationService,
    compute_totals,
)
from grouptrack.utils.amount_parser import parse_amount
from grouptrack.utils.date_parser import parse_date
from grouptrack.utils.reservation_resolver import resolve_reservation

# (flag, field, help)
FIELD_OPTIONS = (
    ("--status", "status", "Status, e.g. 'PD Offer sent' or PD_OFFER_SENT"),
    ("--agency", "agency_name", "Agency name"),
    ("--agent", "agent_name", "Agent name"),
    ("--routing", "routing", "Routing, e.g. TLV-ADD-TLV"),
    ("--remarks", "remarks", "Free-text remarks"),
    ("--ret-date", "ret_date", "Return date"),
    ("--size", "size", "Number of passengers"),
    ("--fare", "fare", "Fare per passenger"),
    ("--taxes", "taxes", "Taxes per passenger"),
    ("--markup", "markup", "Markup per passenger"),
    ("--deposit-date", "deposit_date", "Deposit due date"),
    ("--deposit-days", "deposit_days_before", "Days before the deposit date to send the alert"),
    ("--full-payment-date", "full_payment_date", "Full payment due date"),
    ("--full-payment-days", "full_payment_days_before", "Days before full payment to send the alert"),
    ("--names-date", "names_date", "Names due date"),
    ("--names-days", "names_days_before", "Days before the names date to send the alert"),
)

_CLEAR_VALUES = ("", "-", "none")


def field_options(func):
    """Attach one option per commonly edited reservation field."""
    for flag, name, help_text in reversed(FIELD_OPTIONS):
        func = click.option(flag, name, help=help_text)(func)
    return click.option(
        "--set",
        "extra",
        multiple=True,
        metavar="FIELD=VALUE",
        help="Set any other field, e.g. --set depo_number=D123 (repeatable)",
    )(func)


def convert_field(name: str, raw: str, today: date):
    """Turn a command-line string into the value the service expects."""
    if name in DATE_FIELDS:
        if raw.strip().lower() in _CLEAR_VALUES:
            return None
        return parse_date(raw, today=today)
    if name in MONEY_FIELDS:
        return parse_amount(raw)
    return raw


def collect_changes(ctx, fields: dict, extra: tuple[str, ...]) -> dict:
    """Build a field->value mapping from the options that were given."""
    today = ctx.obj["clock"].today()
    raw_values = {name: value for name, value in fields.items() if value is not None}
    for item in extra:
        name, sep, value = item.partition("=")
        name = name.strip()
        if not sep or name not in EDITABLE_FIELDS:
            click.echo(f"Error: Invalid --set value '{item}'", err=True)
            ctx.exit(1)
        raw_values[name] = value

    changes = {}
    for name, raw in raw_values.items():
        try:
            changes[name] = convert_field(name, raw, today)
        except ValueError as e:
            click.echo(f"Error: Invalid value for {name}: {e}", err=True)
            ctx.exit(1)
    return changes


def _day(value) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


@click.group()
def reservation_group():
    """Manage group reservations."""
    pass


@reservation_group.command("add")
@click.option("--airline", required=True, help="Airline code")
@click.option("--pnr", required=True, help="Booking reference")
@click.option("--dep-date", required=True, help="Departure date (YYYY-MM-DD or relative like 'in 30 days')")
@field_options
@click.pass_context
def add_reservation(ctx, airline: str, pnr: str, dep_date: str, extra: tuple[str, ...], **fields):
    """Add a new group reservation.

    Examples:
        grouptrack reservation add --airline ET --pnr ABC123 --dep-date 2024-03-01 --agency "Sky Tours" --size 20
        grouptrack reservation add --airline A2 --pnr XYZ789 --dep-date "in 60 days" --status "PD Offer sent"
    """
    user = current_user(ctx, UserRole.EDITOR)
    service = ReservationService(ctx.obj["db"], ctx.obj["clock"])
    changes = collect_changes(ctx, {"dep_date": dep_date, **fields}, extra)
    airline = changes.pop("airline", airline)
    pnr = changes.pop("pnr", pnr)

    try:
        record = service.create_reservation(user, airline, pnr, **changes)
        click.echo(f"Created reservation {record.pnr} on {record.airline} (ID: {record.id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@reservation_group.command("edit")
@click.argument("reference", metavar="RESERVATION")
@click.option("--airline", help="Move to another airline")
@click.option("--pnr", help="Booking reference")
@click.option("--dep-date", help="Departure date")
@click.option("--expect-version", type=int, help="Reject the edit if the reservation changed since this version")
@field_options
@click.pass_context
def edit_reservation(
    ctx,
    reference: str,
    airline: str | None,
    pnr: str | None,
    dep_date: str | None,
    expect_version: int | None,
    extra: tuple[str, ...],
    **fields,
):
    """Edit a reservation.

    RESERVATION can be a reservation ID or a PNR. Use '-' to clear a date.

    Examples:
        grouptrack reservation edit ABC123 --status "PD Offer sent"
        grouptrack reservation edit ABC123 --size 18 --deposit-date 2024-02-01 --deposit-days 3
        grouptrack reservation edit 3f2a9c1b0d4e --set depo_number=D-7781
    """
    user = current_user(ctx, UserRole.EDITOR)
    service = ReservationService(ctx.obj["db"], ctx.obj["clock"])
    changes = collect_changes(ctx, {"airline": airline, "pnr": pnr, "dep_date": dep_date, **fields}, extra)
    if not changes:
        click.echo("Nothing to change.")
        return

    try:
        reservation_id = resolve_reservation(service, user, reference)
        before = service.get_reservation(user, reservation_id)
        record = service.update_reservation(user, reservation_id, changes, expected_version=expect_version)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if record.version == before.version:
        click.echo(f"No changes to {record.pnr}.")
    else:
        click.echo(f"Updated {record.pnr} (version {record.version})")


@reservation_group.command("delete")
@click.argument("reference", metavar="RESERVATION")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_reservation(ctx, reference: str, yes: bool):
    """Delete a reservation (administrators only).

    Examples:
        grouptrack reservation delete ABC123
    """
    user = current_user(ctx, UserRole.ADMIN)
    service = ReservationService(ctx.obj["db"], ctx.obj["clock"])

    try:
        reservation_id = resolve_reservation(service, user, reference)
    except ValueError as e:
        handle_domain_error(ctx, e)

    record = service.get_reservation(user, reservation_id)
    if not yes and not click.confirm(f"Are you sure you want to delete {record.pnr} ({record.agency_name})?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_reservation(user, reservation_id)
        click.echo(f"Deleted reservation {record.pnr}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@reservation_group.command("list")
@click.option("--airline", help="Only this airline")
@click.option("--status", help="Only this status")
@click.option("--agency", help="Only this agency")
@click.option("--search", help="Match PNR, agency or agent name")
@click.option("--from", "start_date", help="Earliest departure date")
@click.option("--to", "end_date", help="Latest departure date")
@click.option("--this-week", is_flag=True, help="Departures this week")
@click.option("--next-week", is_flag=True, help="Departures next week")
@click.option("--this-month", is_flag=True, help="Departures this month")
@click.option("--next-month", is_flag=True, help="Departures next month")
@click.pass_context
def list_reservations(
    ctx,
    airline: str | None,
    status: str | None,
    agency: str | None,
    search: str | None,
    start_date: str | None,
    end_date: str | None,
    this_week: bool,
    next_week: bool,
    this_month: bool,
    next_month: bool,
):
    """List reservations by departure date."""
    user = current_user(ctx)
    service = ReservationService(ctx.obj["db"], ctx.obj["clock"])
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags={
            "this-week": this_week,
            "next-week": next_week,
            "this-month": this_month,
            "next-month": next_month,
        },
        today=ctx.obj["clock"].today(),
    )

    try:
        status_filter = PNRStatus.parse(status) if status else None
        records = service.list_reservations(
            user,
            airline=airline,
            status=status_filter,
            agency=agency,
            search=search,
            start_date=start,
            end_date=end,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not records:
        click.echo("No reservations found.")
        return

    click.echo(f"\n{'ID':12s} | {'PNR':8s} | {'AL':3s} | {'Departure':10s} | {'PAX':>4s} | {'Status':28s} | Agency")
    click.echo("-" * 100)
    for r in records:
        click.echo(
            f"{r.id:12s} | {r.pnr:8s} | {r.airline:3s} | {_day(r.dep_date):10s} | "
            f"{r.size:4d} | {r.status.value:28s} | {r.agency_name}"
        )
    click.echo(f"\n{len(records)} reservation(s)")


def _print_record(record: ReservationRecord, currency_symbol: str, totals) -> None:
    click.echo(f"\nReservation {record.pnr} (ID: {record.id}, version {record.version})")
    click.echo("-" * 60)
    click.echo(f"Airline:        {record.airline}")
    click.echo(f"Status:         {record.status.value}")
    click.echo(f"Agency:         {record.agency_name or '-'}")
    click.echo(f"Agent:          {record.agent_name or '-'}")
    click.echo(f"Routing:        {record.routing or '-'}")
    click.echo(f"Departure:      {_day(record.dep_date)}")
    click.echo(f"Return:         {_day(record.ret_date)}")
    size = f"{record.size}"
    if record.original_size is not None and record.original_size != record.size:
        size += f" (originally {record.original_size})"
    click.echo(f"Passengers:     {size}")
    click.echo(f"Fare:           {currency_symbol}{record.fare}")
    click.echo(f"Taxes:          {currency_symbol}{record.taxes}")
    click.echo(f"Markup:         {currency_symbol}{record.markup}")
    click.echo(f"Per passenger:  {currency_symbol}{totals.per_passenger}")
    click.echo(f"Group total:    {currency_symbol}{totals.group_total}")
    if record.date_offer_sent:
        click.echo(f"Offer sent:     {record.date_offer_sent.strftime('%Y-%m-%d %H:%M')}")
    for pair in record.alert_pairs():
        click.echo(f"{pair.kind.label + ' alert:':16s}{_day(pair.alert_date)} ({pair.days_before} days before)")
    if record.remarks:
        click.echo(f"Remarks:        {record.remarks}")


@reservation_group.command("view")
@click.argument("reference", metavar="RESERVATION")
@click.pass_context
def view_reservation(ctx, reference: str):
    """Show one reservation with its totals."""
    user = current_user(ctx)
    db = ctx.obj["db"]
    service = ReservationService(db, ctx.obj["clock"])

    try:
        record = service.get_reservation(user, resolve_reservation(service, user, reference))
        config = AirlineService(db).get_config(record.airline)
    except ValueError as e:
        handle_domain_error(ctx, e)

    _print_record(record, config.currency.symbol, compute_totals(record, config))


def register_commands(cli):
    """Register reservation commands with main CLI."""
    cli.add_command(reservation_group, name="reservation")
