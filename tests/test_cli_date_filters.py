"""Tests for CLI date filter helper."""

from datetime import date

import click
import pytest

from grouptrack.cli.date_filters import resolve_cli_date_range

TODAY = date(2024, 1, 6)


def _ctx() -> click.Context:
    return click.Context(click.Command("test"))


def test_rejects_multiple_periods(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(
            _ctx(),
            start_date=None,
            end_date=None,
            period_flags={"this-month": True, "last-month": True},
            today=TODAY,
        )

    assert excinfo.value.exit_code == 1
    err = capsys.readouterr().err
    assert "Only one period option (--this-month, --last-month)" in err


def test_rejects_period_with_explicit_dates(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(
            _ctx(),
            start_date="2024-01-01",
            end_date=None,
            period_flags={"this-month": True},
            today=TODAY,
        )

    assert excinfo.value.exit_code == 1
    assert "cannot be combined with --from or --to" in capsys.readouterr().err


def test_period_range_uses_given_day():
    start, end = resolve_cli_date_range(
        _ctx(),
        start_date=None,
        end_date=None,
        period_flags={"this-month": False, "last-month": True},
        today=TODAY,
    )

    assert (start, end) == (date(2023, 12, 1), date(2023, 12, 31))


def test_explicit_dates_are_parsed_relative_to_today():
    start, end = resolve_cli_date_range(
        _ctx(),
        start_date="yesterday",
        end_date="2024-01-20",
        period_flags={},
        today=TODAY,
    )

    assert start == date(2024, 1, 5)
    assert end == date(2024, 1, 20)


def test_no_filters_means_open_range():
    start, end = resolve_cli_date_range(_ctx(), start_date=None, end_date=None, period_flags={}, today=TODAY)

    assert start is None
    assert end is None


def test_invalid_end_date(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(
            _ctx(),
            start_date=None,
            end_date="not-a-date",
            period_flags={},
            today=TODAY,
        )

    assert excinfo.value.exit_code == 1
    assert "Invalid end date" in capsys.readouterr().err
