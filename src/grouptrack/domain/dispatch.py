"""Scheduled reminder dispatch with at-most-once-per-day delivery."""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Sequence

from grouptrack.database import keys
from grouptrack.database.base import Database
from grouptrack.domain.airline import AirlineService
from grouptrack.domain.constants import (
    DEFAULT_DISPATCH_HOUR,
    DEFAULT_DISPATCH_INTERVAL,
    SENT_RETENTION_DAYS,
)
from grouptrack.domain.errors import StorageError
from grouptrack.domain.reminders import DEFAULT_RULES, ReminderRule, derive_reminders
from grouptrack.domain.reservation import ReservationService
from grouptrack.mail.base import Mailer
from grouptrack.utils.clock import Clock

logger = logging.getLogger(__name__)


def reminder_instance_id(pnr: str, description: str, day: date) -> str:
    """Identity of one reminder on one calendar day."""
    return f"{pnr}|{description}|{day.isoformat()}"


class SentReminderStore(ABC):
    """Record of reminder instances already delivered, keyed by day."""

    def refresh(self) -> None:
        """Reload state from backing storage, if any."""

    @abstractmethod
    def was_sent(self, instance_id: str, day: date) -> bool:
        pass

    @abstractmethod
    def mark_sent(self, instance_id: str, day: date) -> None:
        pass

    @abstractmethod
    def purge_older_than(self, days: int, today: date) -> None:
        """Forget days more than ``days`` before ``today``."""
        pass


class InMemorySentStore(SentReminderStore):
    """Process-local store; a restart forgets what was sent."""

    def __init__(self):
        self._sent: dict[date, set[str]] = {}

    def was_sent(self, instance_id: str, day: date) -> bool:
        return instance_id in self._sent.get(day, set())

    def mark_sent(self, instance_id: str, day: date) -> None:
        self._sent.setdefault(day, set()).add(instance_id)

    def purge_older_than(self, days: int, today: date) -> None:
        cutoff = today - timedelta(days=days)
        self._sent = {day: ids for day, ids in self._sent.items() if day >= cutoff}


class PersistentSentStore(SentReminderStore):
    """Store kept in the gateway so a restart recovers the day's record.

    Stored as ``{"YYYY-MM-DD": [instance ids]}``. Marks whose write failed
    are kept in memory and merged into every reload until a write succeeds.
    """

    def __init__(self, db: Database):
        self.db = db
        self._sent: dict[str, set[str]] = {}
        self._unsaved: dict[str, set[str]] = {}

    def refresh(self) -> None:
        stored = self.db.get(keys.SENT_REMINDERS).unwrap(default={})
        if not isinstance(stored, dict):
            logger.warning("Ignoring malformed sent-reminder record of type %s", type(stored).__name__)
            stored = {}

        sent = {}
        for day, ids in stored.items():
            if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
                logger.warning("Dropping malformed sent-reminder entry for '%s'", day)
                continue
            sent[day] = set(ids)
        for day, ids in self._unsaved.items():
            sent.setdefault(day, set()).update(ids)
        self._sent = sent

    def _save(self) -> None:
        self.db.set(keys.SENT_REMINDERS, {day: sorted(ids) for day, ids in self._sent.items()})
        self._unsaved = {}

    def was_sent(self, instance_id: str, day: date) -> bool:
        return instance_id in self._sent.get(day.isoformat(), set())

    def mark_sent(self, instance_id: str, day: date) -> None:
        self._sent.setdefault(day.isoformat(), set()).add(instance_id)
        self._unsaved.setdefault(day.isoformat(), set()).add(instance_id)
        self._save()

    def purge_older_than(self, days: int, today: date) -> None:
        cutoff = today - timedelta(days=days)
        kept = {}
        for day, ids in self._sent.items():
            try:
                if date.fromisoformat(day) < cutoff:
                    continue
            except ValueError:
                logger.warning("Dropping malformed sent-reminder day '%s'", day)
                continue
            kept[day] = ids
        self._unsaved = {day: ids for day, ids in self._unsaved.items() if day in kept}
        if kept != self._sent:
            self._sent = kept
            self._save()


@dataclass
class DispatchReport:
    """What one dispatch tick did."""

    sent: int = 0
    failed: int = 0
    skipped_already_sent: int = 0
    uncontactable: int = 0
    in_flight: bool = False
    before_dispatch_hour: bool = False
    aborted: bool = False

    def summary(self) -> str:
        if self.in_flight:
            return "Skipped: a dispatch is already running"
        if self.aborted:
            return "Aborted: storage unavailable"
        if self.before_dispatch_hour:
            return "Nothing sent: before the dispatch hour"
        return (
            f"Sent {self.sent}, failed {self.failed}, "
            f"already sent {self.skipped_already_sent}, no recipient {self.uncontactable}"
        )


class ReminderDispatcher:
    """Sends due reminders to each airline's recipient once per day."""

    def __init__(
        self,
        db: Database,
        mailer: Mailer,
        sent_store: Optional[SentReminderStore] = None,
        clock: Optional[Clock] = None,
        dispatch_hour: int = DEFAULT_DISPATCH_HOUR,
        rules: Sequence[ReminderRule] = DEFAULT_RULES,
    ):
        """Initialize dispatcher.

        Args:
            db: Database instance
            mailer: Mail transport
            sent_store: Delivery record (defaults to a persistent store on db)
            clock: Reference-zone clock deciding day and hour
            dispatch_hour: Hour of day (0-23) from which reminders are sent
            rules: Reminder rules to evaluate
        """
        if not 0 <= dispatch_hour <= 23:
            raise ValueError(f"Dispatch hour must be between 0 and 23, got {dispatch_hour}")
        self.db = db
        self.mailer = mailer
        self.sent_store = sent_store or PersistentSentStore(db)
        self.clock = clock or Clock()
        self.dispatch_hour = dispatch_hour
        self.rules = rules
        self.reservation_service = ReservationService(db, self.clock)
        self.airline_service = AirlineService(db)
        self._in_flight = threading.Lock()

    def tick(self) -> DispatchReport:
        """Run one dispatch pass; an overlapping call returns immediately."""
        if not self._in_flight.acquire(blocking=False):
            logger.debug("Dispatch already in progress, skipping tick")
            return DispatchReport(in_flight=True)
        try:
            return self._dispatch()
        finally:
            self._in_flight.release()

    def _dispatch(self) -> DispatchReport:
        report = DispatchReport()
        now = self.clock.now()
        today = now.date()
        try:
            self.sent_store.refresh()
            self.sent_store.purge_older_than(SENT_RETENTION_DAYS, today)
            if now.hour < self.dispatch_hour:
                report.before_dispatch_hour = True
                return report

            configs = self.airline_service.get_configs()
            reminders = derive_reminders(
                self.reservation_service.load_all(),
                configs,
                today,
                visible_airlines=None,
                rules=self.rules,
                timezone=self.clock.timezone,
            )

            for reminder in reminders:
                instance_id = reminder_instance_id(reminder.pnr, reminder.description, today)
                if self.sent_store.was_sent(instance_id, today):
                    report.skipped_already_sent += 1
                    continue

                config = configs.get(reminder.airline)
                recipient = config.recipient_email if config else ""
                if not recipient:
                    logger.debug("No recipient for airline %s, skipping %s", reminder.airline, instance_id)
                    report.uncontactable += 1
                    continue

                try:
                    result = self.mailer.send(recipient, reminder.subject, reminder.email_template)
                except Exception:
                    logger.exception("Error sending %s to %s", instance_id, recipient)
                    report.failed += 1
                    continue

                if result.success:
                    report.sent += 1
                    logger.info("Sent reminder %s to %s", instance_id, recipient)
                    try:
                        self.sent_store.mark_sent(instance_id, today)
                    except StorageError as e:
                        logger.error("Sent %s but could not record it: %s", instance_id, e)
                else:
                    report.failed += 1
                    logger.warning("Failed to send %s to %s: %s", instance_id, recipient, result.message)
        except StorageError as e:
            logger.error("Aborting dispatch tick: %s", e)
            report.aborted = True
        return report


class DispatchScheduler:
    """Runs a dispatcher periodically on one owned worker thread."""

    def __init__(self, dispatcher: ReminderDispatcher, interval: float = DEFAULT_DISPATCH_INTERVAL):
        if interval <= 0:
            raise ValueError("Dispatch interval must be positive")
        self.dispatcher = dispatcher
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_forever(self) -> None:
        """Tick every ``interval`` seconds until ``stop`` is called."""
        logger.info("Reminder dispatch started (every %ss)", self.interval)
        while not self._stop_event.is_set():
            try:
                self.dispatcher.tick()
            except Exception:
                logger.exception("Unexpected error in dispatch tick")
            self._stop_event.wait(self.interval)
        logger.info("Reminder dispatch stopped")

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Dispatch scheduler is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_forever, name="grouptrack-dispatch", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def check_now(self) -> DispatchReport:
        """Manual tick, sharing the dispatcher's in-flight guard."""
        return self.dispatcher.tick()
