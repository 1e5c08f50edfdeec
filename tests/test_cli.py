"""Integration tests for the grouptrack CLI."""

from datetime import date
from decimal import Decimal

import pytest

from grouptrack.cli.main import cli
from grouptrack.domain.constants import DEFAULT_AIRLINES
from grouptrack.domain.entities import EmailSettings, SendResult

from conftest import ADMIN_PASSWORD, EDITOR_PASSWORD, VIEWER_PASSWORD

PASSWORDS = {"admin": ADMIN_PASSWORD, "editor": EDITOR_PASSWORD, "viewer": VIEWER_PASSWORD}


@pytest.fixture
def run(cli_runner, temp_db, cli_obj, admin):
    """Invoke the CLI against temp_db, signed in as admin unless told otherwise."""

    def invoke(*args, user="admin", password=None, input=None):
        # Release the fixture session so the CLI's writes are read back fresh
        temp_db.disconnect()
        base = ["--db-path", temp_db.database_path]
        if user:
            base += ["--user", user, "--password", password or PASSWORDS[user]]
        result = cli_runner.invoke(cli, base + list(args), obj=cli_obj, input=input)
        if "db" in cli_obj:
            cli_obj["db"].disconnect()
        return result

    return invoke


@pytest.fixture
def booked(reservation_service, admin):
    """ET reservation with a deposit alert firing on 2024-01-06."""
    return reservation_service.create_reservation(
        admin,
        "ET",
        "ABC123",
        date(2024, 3, 1),
        agency_name="Sky Tours",
        size=20,
        fare=Decimal("100"),
        deposit_date=date(2024, 1, 9),
        deposit_days_before=3,
    )


class TestInit:
    def test_init_seeds_and_creates_admin(self, cli_runner, temp_db, cli_obj):
        args = ["--db-path", temp_db.database_path, "init", "--admin-user", "boss", "--admin-password", "pw1234"]

        result = cli_runner.invoke(cli, args, obj=cli_obj)
        assert result.exit_code == 0, result.output
        assert f"Seeded airlines: {', '.join(DEFAULT_AIRLINES)}" in result.output
        assert "Created administrator 'boss'" in result.output

        again = cli_runner.invoke(cli, args, obj=cli_obj)
        assert again.exit_code == 0
        assert "already exists, leaving it unchanged" in again.output
        assert "Users already exist" in again.output

    def test_init_rejects_short_password(self, cli_runner, temp_db, cli_obj):
        result = cli_runner.invoke(
            cli, ["--db-path", temp_db.database_path, "init", "--admin-password", "pw"], obj=cli_obj
        )
        assert result.exit_code == 1
        assert "at least 4 characters" in result.output


class TestSignIn:
    def test_user_required(self, run):
        result = run("reservation", "list", user=None)
        assert result.exit_code == 1
        assert "Sign in with --user" in result.output

    def test_wrong_password(self, run):
        result = run("reservation", "list", password="nope")
        assert result.exit_code == 1
        assert "Invalid username or password" in result.output

    def test_password_prompt(self, cli_runner, temp_db, cli_obj, admin):
        temp_db.disconnect()
        result = cli_runner.invoke(
            cli,
            ["--db-path", temp_db.database_path, "--user", "admin", "reservation", "list"],
            obj=cli_obj,
            input=f"{ADMIN_PASSWORD}\n",
        )
        assert result.exit_code == 0, result.output
        assert "No reservations found." in result.output

    def test_unknown_timezone(self, cli_runner, temp_db):
        result = cli_runner.invoke(
            cli, ["--db-path", temp_db.database_path, "--timezone", "Mars/Olympus", "reservation", "list"], obj={}
        )
        assert result.exit_code == 1
        assert "Unknown time zone" in result.output


class TestReservationCommands:
    def test_add_list_view(self, run):
        result = run(
            "reservation", "add",
            "--airline", "et",
            "--pnr", "abc123",
            "--dep-date", "2024-03-01",
            "--agency", "Sky Tours",
            "--size", "20",
            "--fare", "$100",
            "--taxes", "50",
            "--deposit-date", "2024-01-09",
            "--deposit-days", "3",
            "--set", "depo_number=D-7781",
        )
        assert result.exit_code == 0, result.output
        assert "Created reservation ABC123 on ET" in result.output

        listed = run("reservation", "list", "--airline", "ET")
        assert "ABC123" in listed.output
        assert "1 reservation(s)" in listed.output

        viewed = run("reservation", "view", "abc123")
        assert viewed.exit_code == 0, viewed.output
        assert "Per passenger:  $150" in viewed.output
        assert "Group total:    $3000" in viewed.output
        assert "2024-01-09 (3 days before)" in viewed.output

    def test_relative_departure_date(self, run, reservation_service, admin):
        result = run("reservation", "add", "--airline", "ET", "--pnr", "REL001", "--dep-date", "in 30 days")
        assert result.exit_code == 0, result.output
        assert reservation_service.find_by_pnr(admin, "REL001")[0].dep_date == date(2024, 2, 5)

    def test_edit_and_version_check(self, run, booked):
        result = run("reservation", "edit", "ABC123", "--status", "PD Offer sent", "--expect-version", "1")
        assert result.exit_code == 0, result.output
        assert "Updated ABC123 (version 2)" in result.output

        stale = run("reservation", "edit", "ABC123", "--remarks", "late", "--expect-version", "1")
        assert stale.exit_code == 1
        assert "modified by someone else" in stale.output

    def test_edit_without_effect(self, run, booked):
        assert "No changes to ABC123." in run("reservation", "edit", "ABC123", "--agency", "Sky Tours").output
        assert "Nothing to change." in run("reservation", "edit", "ABC123").output

    def test_edit_clears_date(self, run, booked, reservation_service, admin):
        result = run("reservation", "edit", booked.id, "--deposit-date", "-")
        assert result.exit_code == 0, result.output
        assert reservation_service.get_reservation(admin, booked.id).deposit_date is None

    @pytest.mark.parametrize(
        "args,message",
        [
            (("--set", "colour=blue"), "Invalid --set value"),
            (("--set", "version=9"), "Invalid --set value"),
            (("--fare", "abc"), "Invalid value for fare"),
            (("--ret-date", "someday"), "Invalid value for ret_date"),
            (("--size", "-3"), "size cannot be negative"),
        ],
    )
    def test_edit_rejects_bad_values(self, run, booked, args, message):
        result = run("reservation", "edit", "ABC123", *args)
        assert result.exit_code == 1
        assert message in result.output

    def test_viewer_cannot_add(self, run, viewer):
        result = run(
            "reservation", "add", "--airline", "ET", "--pnr", "V00001", "--dep-date", "2024-03-01", user="viewer"
        )
        assert result.exit_code == 1
        assert "requires the EDITOR role" in result.output

    def test_editor_cannot_see_other_airlines(self, run, editor, reservation_service, admin):
        reservation_service.create_reservation(admin, "A2", "A2GRP1", date(2024, 3, 1))

        assert "No reservations found." in run("reservation", "list", user="editor").output
        result = run("reservation", "view", "A2GRP1", user="editor")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_delete(self, run, booked, reservation_service, admin):
        cancelled = run("reservation", "delete", "ABC123", input="n\n")
        assert "Deletion cancelled." in cancelled.output
        assert reservation_service.get_reservation(admin, booked.id) is not None

        result = run("reservation", "delete", "ABC123", "--yes")
        assert result.exit_code == 0, result.output
        assert "Deleted reservation ABC123" in result.output

    def test_list_filters(self, run, booked):
        assert "ABC123" in run("reservation", "list", "--status", "pd_pnr_created").output
        assert "ABC123" in run("reservation", "list", "--from", "2024-02-01", "--to", "2024-03-31").output
        assert "No reservations found." in run("reservation", "list", "--this-month").output

        unknown = run("reservation", "list", "--status", "Booked")
        assert unknown.exit_code == 1
        assert "Unknown status" in unknown.output

        both = run("reservation", "list", "--this-week", "--next-week")
        assert both.exit_code == 1
        assert "Only one period option" in both.output


class TestAirlineAndUserCommands:
    def test_airline_config(self, run):
        result = run("airline", "config", "ET", "--email", "et@example.com", "--currency", "ils")
        assert result.exit_code == 0, result.output
        assert "Updated ET" in result.output
        assert "Currency:   ILS (₪)" in result.output

        shown = run("airline", "config", "ET")
        assert "Recipient:  et@example.com" in shown.output
        assert "Deposit Deadline: 66 days before departure (inactive)" in shown.output

    def test_viewer_sees_only_granted_airlines(self, run, viewer):
        result = run("airline", "list", user="viewer")
        assert result.exit_code == 0, result.output
        assert "ET    |" in result.output
        assert "UX    |" not in result.output

        denied = run("airline", "config", "ET", "--email", "x@example.com", user="viewer")
        assert denied.exit_code == 1
        assert "requires the ADMIN role" in denied.output

    def test_add_and_remove_airline(self, run, booked):
        assert "Added airline LY" in run("airline", "add", "ly").output
        assert "Removed airline LY" in run("airline", "remove", "LY").output

        blocked = run("airline", "remove", "ET")
        assert blocked.exit_code == 1
        assert "Please reassign or delete them first" in blocked.output

    def test_rules(self, run, airline_service):
        added = run("airline", "rule-add", "ET", "Ticketing", "10", "--inactive")
        assert added.exit_code == 0, added.output
        rule = airline_service.get_config("ET").reminders[-1]
        assert rule.active is False

        assert "is now active" in run("airline", "rule-toggle", "ET", rule.id, "--on").output
        assert f"Removed rule {rule.id}" in run("airline", "rule-remove", "ET", rule.id).output

    def test_user_management(self, run, user_service):
        created = run(
            "user", "create", "dana", "--password", "dana-pass", "--role", "editor", "--airline", "et"
        )
        assert created.exit_code == 0, created.output
        assert "Created user 'dana' (EDITOR)" in created.output

        assert "'dana' airlines: ET, UX" in run("user", "grant", "dana", "ux").output
        assert "'dana' airlines: UX" in run("user", "revoke", "dana", "ET").output
        assert "'dana' is now VIEWER" in run("user", "role", "dana", "viewer").output

        listed = run("user", "list")
        assert "dana" in listed.output
        assert "all" in listed.output

        assert "Deleted user 'dana'" in run("user", "delete", "dana").output
        assert user_service.get_user("dana") is None

    def test_last_admin_cannot_be_demoted(self, run):
        result = run("user", "role", "admin", "viewer")
        assert result.exit_code == 1
        assert "last administrator" in result.output

    def test_change_own_password(self, run, editor, user_service):
        result = run("user", "passwd", "--new-password", "fresh-pass", user="editor")
        assert result.exit_code == 0, result.output
        assert user_service.authenticate("editor", "fresh-pass").id == editor.id


class TestReminderCommands:
    def test_list(self, run, booked):
        result = run("reminders", "list", "--show-email")
        assert result.exit_code == 0, result.output
        assert "2024-01-09 due" in result.output
        assert "Deposit due (ET)" in result.output
        assert "is due on 09 Jan 2024" in result.output

        assert "No reminders." in run("reminders", "list", "--overdue").output

    def test_list_respects_visibility(self, run, booked, user_service, admin):
        user_service.create_user(admin, "ux-only", "ux-pass", allowed_airlines=["UX"])
        result = run("reminders", "list", user="ux-only", password="ux-pass")
        assert "No reminders." in result.output

    def test_check_requires_email_settings(self, run, booked):
        result = run("reminders", "check")
        assert result.exit_code == 1
        assert "Email settings are not configured" in result.output

    def test_check_sends_once(self, run, booked, email_settings, airline_service, admin, mailer):
        airline_service.update_config(admin, "ET", recipient_email="et@example.com")

        first = run("reminders", "check")
        assert first.exit_code == 0, first.output
        assert "Sent 1, failed 0" in first.output

        second = run("reminders", "check")
        assert "Sent 0, failed 0, already sent 1" in second.output
        assert [to for to, _, _ in mailer.sent] == ["et@example.com"]

    def test_check_before_dispatch_hour(self, run, booked, email_settings, mailer):
        result = run("reminders", "check", "--dispatch-hour", "11")
        assert "before the dispatch hour" in result.output
        assert mailer.sent == []

    def test_check_is_admin_only(self, run, booked, editor):
        result = run("reminders", "check", user="editor")
        assert result.exit_code == 1
        assert "requires the ADMIN role" in result.output


class TestReportingCommands:
    def test_log(self, run, booked, reservation_service, admin):
        reservation_service.update_reservation(admin, booked.id, {"fare": Decimal("150")})

        result = run("log", "list", "--search", "abc123", "-v")
        assert result.exit_code == 0, result.output
        assert "UPDATE" in result.output
        assert "CREATE" in result.output
        assert "    fare: 100 -> 150" in result.output

        grouped = run("log", "list", "--by-year")
        assert "\n2024\n" in grouped.output

        assert "No log entries found." in run("log", "list", "--last-month").output

    def test_log_is_admin_only(self, run, editor):
        result = run("log", "list", user="editor")
        assert result.exit_code == 1

    def test_export(self, run, booked, tmp_path):
        target = tmp_path / "groups.csv"

        result = run("export", "csv", "-o", str(target))

        assert result.exit_code == 0, result.output
        assert "Exported 1 reservation(s)" in result.output
        lines = target.read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("Date Created,Airline,PNR,Agency Name")
        assert lines[1].startswith("06/01/2024,ET,ABC123,Sky Tours")

    def test_summary(self, run, booked):
        result = run("summary")
        assert result.exit_code == 0, result.output
        assert "Total groups" in result.output
        assert "2,000.00" in result.output
        assert "1 groups" in result.output
        assert "20 pax" in result.output


class TestEmailCommands:
    def test_configure_show_and_test(self, run, mailer):
        result = run("email", "configure", "--sender", "groups@example.com", "--app-password", "secret")
        assert result.exit_code == 0, result.output
        assert "Email settings saved." in result.output

        shown = run("email", "show")
        assert "Sender:       groups@example.com" in shown.output
        assert "********" in shown.output
        assert "secret" not in shown.output

        tested = run("email", "test", "--send-to", "me@example.com")
        assert tested.exit_code == 0, tested.output
        assert "OK: Sent to me@example.com" in tested.output
        assert mailer.verified

    def test_configure_nothing(self, run):
        assert "Nothing to change." in run("email", "configure").output

    def test_invalid_sender(self, run):
        result = run("email", "configure", "--sender", "not-an-address")
        assert result.exit_code == 1
        assert "Invalid email address" in result.output

    def test_test_reports_failure(self, run, temp_db, airline_service, admin, cli_obj):
        airline_service.save_email_settings(admin, EmailSettings(sender_address="g@example.com", app_password="x"))

        class BrokenMailer:
            def verify(self):
                return SendResult(False, "Authentication failed")

        cli_obj["mailer_factory"] = lambda settings: BrokenMailer()
        result = run("email", "test")
        assert result.exit_code == 1
        assert "Error: Authentication failed" in result.output
