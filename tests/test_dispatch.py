"""Tests for scheduled reminder dispatch."""

import threading
from datetime import date, datetime, timedelta

import pytest

from grouptrack.database import keys
from grouptrack.database.base import StorageResult
from grouptrack.database.sqlalchemy_db import SQLAlchemyDatabase
from grouptrack.domain.dispatch import (
    DispatchReport,
    DispatchScheduler,
    InMemorySentStore,
    PersistentSentStore,
    ReminderDispatcher,
    reminder_instance_id,
)
from grouptrack.domain.errors import StorageError
from grouptrack.utils.clock import FixedClock

from conftest import FakeMailer

ET_RECIPIENT = "et-groups@example.com"


@pytest.fixture
def due_reservation(reservation_service, airline_service, admin):
    """ET reservation whose deposit alert triggers on 2024-01-06."""
    airline_service.update_config(admin, "ET", recipient_email=ET_RECIPIENT)
    return reservation_service.create_reservation(
        admin,
        "ET",
        "ABC123",
        date(2024, 3, 1),
        agency_name="Sky Tours",
        deposit_date=date(2024, 1, 9),
        deposit_days_before=3,
    )


def make_dispatcher(db, mailer, when=datetime(2024, 1, 6, 9, 0), **kwargs):
    return ReminderDispatcher(db, mailer, clock=FixedClock(when), **kwargs)


class FlakyDatabase(SQLAlchemyDatabase):
    """Database whose reads of one key fail."""

    def __init__(self, database_url, failing_key):
        super().__init__(database_url)
        self.failing_key = failing_key

    def get(self, key):
        if key == self.failing_key:
            return StorageResult.failed(key, OSError("disk unavailable"))
        return super().get(key)


class FailingWriteDatabase(SQLAlchemyDatabase):
    """Database whose first write of one key fails."""

    def __init__(self, database_url, failing_key):
        super().__init__(database_url)
        self.failing_key = failing_key
        self.failures_left = 1

    def set(self, key, value):
        if key == self.failing_key and self.failures_left:
            self.failures_left -= 1
            raise StorageError("disk full")
        super().set(key, value)


def test_reminder_instance_id_is_deterministic():
    first = reminder_instance_id("ABC123", "Deposit due (ET)", date(2024, 1, 6))
    assert first == reminder_instance_id("ABC123", "Deposit due (ET)", date(2024, 1, 6))
    assert first != reminder_instance_id("ABC123", "Deposit due (ET)", date(2024, 1, 7))
    assert first != reminder_instance_id("ABC124", "Deposit due (ET)", date(2024, 1, 6))


def test_nothing_sent_before_dispatch_hour(temp_db, due_reservation, mailer):
    dispatcher = make_dispatcher(temp_db, mailer, when=datetime(2024, 1, 6, 8, 59))

    report = dispatcher.tick()

    assert report.before_dispatch_hour is True
    assert mailer.attempts == []


def test_sends_once_per_day(temp_db, due_reservation, mailer):
    dispatcher = make_dispatcher(temp_db, mailer)

    first = dispatcher.tick()
    second = dispatcher.tick()

    assert first.sent == 1
    assert second.sent == 0
    assert second.skipped_already_sent == 1
    assert len(mailer.sent) == 1
    to, subject, body = mailer.sent[0]
    assert to == ET_RECIPIENT
    assert subject == "Reminder: Deposit due (ET) - PNR ABC123"
    assert "Sky Tours" in body


def test_custom_dispatch_hour(temp_db, due_reservation, mailer):
    dispatcher = make_dispatcher(temp_db, mailer, when=datetime(2024, 1, 6, 7, 0), dispatch_hour=7)
    assert dispatcher.tick().sent == 1


def test_invalid_dispatch_hour(temp_db, mailer):
    with pytest.raises(ValueError):
        make_dispatcher(temp_db, mailer, dispatch_hour=24)


def test_failed_send_is_retried(temp_db, due_reservation):
    failing = FakeMailer(fail_for={ET_RECIPIENT})
    dispatcher = make_dispatcher(temp_db, failing)

    report = dispatcher.tick()
    assert report.failed == 1
    assert report.sent == 0
    assert dispatcher.sent_store.was_sent(
        reminder_instance_id("ABC123", "Deposit due (ET)", date(2024, 1, 6)), date(2024, 1, 6)
    ) is False

    dispatcher.mailer = FakeMailer()
    report = dispatcher.tick()
    assert report.sent == 1


def test_send_exception_is_contained(temp_db, due_reservation, caplog):
    dispatcher = make_dispatcher(temp_db, FakeMailer(raise_for={ET_RECIPIENT}))

    with caplog.at_level("ERROR", logger="grouptrack"):
        report = dispatcher.tick()

    assert report.failed == 1
    assert "connection to" in caplog.text
    assert dispatcher.sent_store.was_sent(
        reminder_instance_id("ABC123", "Deposit due (ET)", date(2024, 1, 6)), date(2024, 1, 6)
    ) is False


def test_missing_recipient_is_skipped(temp_db, reservation_service, admin, mailer):
    reservation_service.create_reservation(
        admin, "UX", "UX0001", date(2024, 3, 1), deposit_date=date(2024, 1, 6), deposit_days_before=0
    )
    dispatcher = make_dispatcher(temp_db, mailer)

    report = dispatcher.tick()

    assert report.uncontactable == 1
    assert mailer.attempts == []


def test_dispatch_covers_all_airlines(temp_db, due_reservation, reservation_service, airline_service, admin, mailer):
    airline_service.update_config(admin, "A2", recipient_email="a2@example.com")
    reservation_service.create_reservation(
        admin, "A2", "A2GRP1", date(2024, 3, 1), deposit_date=date(2024, 1, 6), deposit_days_before=0
    )

    make_dispatcher(temp_db, mailer).tick()

    assert sorted(to for to, _, _ in mailer.sent) == ["a2@example.com", ET_RECIPIENT]


def test_restart_does_not_resend(temp_db, due_reservation, mailer):
    make_dispatcher(temp_db, mailer).tick()

    restarted = make_dispatcher(temp_db, mailer, when=datetime(2024, 1, 6, 15, 0))
    report = restarted.tick()

    assert report.sent == 0
    assert report.skipped_already_sent == 1
    assert len(mailer.sent) == 1


def test_standing_reminder_is_sent_again_next_day(temp_db, reservation_service, airline_service, admin, mailer):
    airline_service.update_config(admin, "ET", recipient_email=ET_RECIPIENT)
    offer_clock = FixedClock(datetime(2024, 1, 1, 12, 0))
    reservation_service.clock = offer_clock
    reservation_service.create_reservation(admin, "ET", "ABC123", date(2024, 3, 1), status="PD Offer sent")

    clock = FixedClock(datetime(2024, 1, 9, 9, 30))
    dispatcher = ReminderDispatcher(temp_db, mailer, clock=clock)
    assert dispatcher.tick().sent == 1
    assert dispatcher.tick().sent == 0

    clock.advance(timedelta(days=1))
    assert dispatcher.tick().sent == 1
    assert len(mailer.sent) == 2


def test_old_sent_entries_are_purged(temp_db, due_reservation, mailer):
    temp_db.set(keys.SENT_REMINDERS, {"2024-01-01": ["OLD|x|2024-01-01"], "2024-01-04": ["RECENT|x|2024-01-04"]})

    make_dispatcher(temp_db, mailer).tick()

    stored = temp_db.get(keys.SENT_REMINDERS).unwrap()
    assert "2024-01-01" not in stored
    assert "2024-01-04" in stored
    assert stored["2024-01-06"] == ["ABC123|Deposit due (ET)|2024-01-06"]


def test_purge_runs_before_dispatch_hour(temp_db, mailer):
    temp_db.set(keys.SENT_REMINDERS, {"2023-12-01": ["OLD|x|2023-12-01"]})

    make_dispatcher(temp_db, mailer, when=datetime(2024, 1, 6, 3, 0)).tick()

    assert temp_db.get(keys.SENT_REMINDERS).unwrap() == {}


def test_overlapping_tick_is_skipped(temp_db, due_reservation):
    nested_reports = []

    class ReentrantMailer(FakeMailer):
        def send(self, to, subject, body):
            nested_reports.append(dispatcher.tick())
            return super().send(to, subject, body)

    dispatcher = make_dispatcher(temp_db, ReentrantMailer())
    report = dispatcher.tick()

    assert report.sent == 1
    assert len(nested_reports) == 1
    assert nested_reports[0].in_flight is True
    assert nested_reports[0].sent == 0


def test_storage_failure_aborts_tick(temp_db, due_reservation, mailer, caplog):
    flaky = FlakyDatabase(f"sqlite:///{temp_db.database_path}", keys.RESERVATIONS)
    dispatcher = make_dispatcher(flaky, mailer)

    with caplog.at_level("ERROR", logger="grouptrack"):
        report = dispatcher.tick()

    assert report.aborted is True
    assert mailer.attempts == []
    assert "Aborting dispatch tick" in caplog.text

    # The next tick on healthy storage retries
    assert make_dispatcher(temp_db, mailer).tick().sent == 1
    flaky.disconnect()


@pytest.mark.parametrize("failure", ["fail_for", "raise_for"])
def test_one_recipient_failure_does_not_block_others(
    temp_db, due_reservation, reservation_service, airline_service, admin, failure
):
    airline_service.update_config(admin, "A2", recipient_email="a2@example.com")
    reservation_service.create_reservation(
        admin, "A2", "A2GRP1", date(2024, 3, 1), deposit_date=date(2024, 1, 6), deposit_days_before=0
    )
    mailer = FakeMailer(**{failure: {ET_RECIPIENT}})

    report = make_dispatcher(temp_db, mailer).tick()

    assert report.sent == 1
    assert report.failed == 1
    assert [to for to, _, _ in mailer.sent] == ["a2@example.com"]
    assert temp_db.get(keys.SENT_REMINDERS).unwrap() == {"2024-01-06": ["A2GRP1|Deposit due (A2)|2024-01-06"]}


def test_failed_sent_record_write_does_not_resend(temp_db, reservation_service, airline_service, admin, mailer, caplog):
    airline_service.update_config(admin, "ET", recipient_email=ET_RECIPIENT)
    for pnr in ("AAA111", "BBB222"):
        reservation_service.create_reservation(
            admin, "ET", pnr, date(2024, 3, 1), deposit_date=date(2024, 1, 6), deposit_days_before=0
        )
    failing = FailingWriteDatabase(f"sqlite:///{temp_db.database_path}", keys.SENT_REMINDERS)
    dispatcher = make_dispatcher(failing, mailer)

    with caplog.at_level("ERROR", logger="grouptrack"):
        first = dispatcher.tick()
    second = dispatcher.tick()

    assert first.sent == 2
    assert first.aborted is False
    assert "could not record" in caplog.text
    assert second.sent == 0
    assert second.skipped_already_sent == 2
    assert len(mailer.sent) == 2

    # The later successful write carries the unrecorded mark too
    assert failing.get(keys.SENT_REMINDERS).unwrap() == {
        "2024-01-06": ["AAA111|Deposit due (ET)|2024-01-06", "BBB222|Deposit due (ET)|2024-01-06"]
    }
    failing.disconnect()


@pytest.mark.parametrize("stored", [["ABC123|Deposit due (ET)|2024-01-06"], {"2024-01-06": 5}, "oops"])
def test_malformed_sent_record_is_ignored(temp_db, due_reservation, mailer, stored, caplog):
    temp_db.set(keys.SENT_REMINDERS, stored)

    with caplog.at_level("WARNING", logger="grouptrack"):
        report = make_dispatcher(temp_db, mailer).tick()

    assert report.sent == 1
    assert "malformed sent-reminder" in caplog.text


def test_in_memory_store():
    store = InMemorySentStore()
    day = date(2024, 1, 6)

    store.mark_sent("a", day)
    assert store.was_sent("a", day)
    assert not store.was_sent("a", day + timedelta(days=1))

    store.purge_older_than(3, day + timedelta(days=4))
    assert not store.was_sent("a", day)


def test_persistent_store_drops_malformed_days(temp_db):
    temp_db.set(keys.SENT_REMINDERS, {"not-a-day": ["x"], "2024-01-06": ["y"]})
    store = PersistentSentStore(temp_db)

    store.refresh()
    store.purge_older_than(3, date(2024, 1, 6))

    assert temp_db.get(keys.SENT_REMINDERS).unwrap() == {"2024-01-06": ["y"]}


def test_report_summary():
    assert "already running" in DispatchReport(in_flight=True).summary()
    assert "before the dispatch hour" in DispatchReport(before_dispatch_hour=True).summary()
    assert DispatchReport(sent=2, failed=1).summary().startswith("Sent 2, failed 1")


class CountingDispatcher:
    def __init__(self):
        self.ticks = 0
        self.ticked = threading.Event()

    def tick(self):
        self.ticks += 1
        self.ticked.set()
        return DispatchReport()


def test_scheduler_start_and_stop():
    dispatcher = CountingDispatcher()
    scheduler = DispatchScheduler(dispatcher, interval=0.01)

    scheduler.start()
    assert dispatcher.ticked.wait(timeout=5)
    assert scheduler.running
    with pytest.raises(RuntimeError):
        scheduler.start()

    scheduler.stop(timeout=5)
    assert not scheduler.running
    ticks = dispatcher.ticks
    assert ticks >= 1


def test_scheduler_check_now_ticks_once():
    dispatcher = CountingDispatcher()
    scheduler = DispatchScheduler(dispatcher, interval=60)

    scheduler.check_now()

    assert dispatcher.ticks == 1
    assert not scheduler.running


def test_scheduler_rejects_bad_interval():
    with pytest.raises(ValueError):
        DispatchScheduler(CountingDispatcher(), interval=0)
