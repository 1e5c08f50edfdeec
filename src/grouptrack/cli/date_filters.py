"""CLI helpers for date range resolution."""

from datetime import date

import click

from grouptrack.utils.date_parser import get_date_range, parse_date


def _fail(ctx, message: str):
    click.echo(f"Error: {message}", err=True)
    ctx.exit(1)


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
    today: date | None = None,
) -> tuple[date | None, date | None]:
    """Resolve a (start, end) day range from period flags or --from/--to.

    Either bound may be None, meaning the range is open on that side.
    """
    flag_names = ", ".join(f"--{period}" for period in period_flags)
    chosen = [period for period, is_set in period_flags.items() if is_set]

    if len(chosen) > 1:
        _fail(ctx, f"Only one period option ({flag_names}) can be specified at a time.")
    if chosen:
        if start_date or end_date:
            _fail(ctx, f"Period options ({flag_names}) cannot be combined with --from or --to.")
        return get_date_range(chosen[0], today=today)

    bounds = []
    for label, raw in (("start", start_date), ("end", end_date)):
        if not raw:
            bounds.append(None)
            continue
        try:
            bounds.append(parse_date(raw, today=today))
        except ValueError as e:
            _fail(ctx, f"Invalid {label} date: {e}")
    return bounds[0], bounds[1]
