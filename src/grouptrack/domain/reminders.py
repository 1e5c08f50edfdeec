"""Reminder derivation.

Reminders are derived fresh from reservations and airline configs and are
never stored. ``derive_reminders`` is a pure function of its inputs; each
rule is an independent plugin and a rule that fails on one reservation is
skipped for that reservation only.
"""

import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Collection, Iterable, Mapping, Optional, Sequence

from grouptrack.database.base import Database
from grouptrack.domain.access import AccessPolicy
from grouptrack.domain.airline import AirlineService
from grouptrack.domain.constants import OFFER_FOLLOWUP_DAYS, REMINDER_LOOKAHEAD_DAYS
from grouptrack.domain.entities import (
    AirlineConfig,
    AlertKind,
    PNRStatus,
    Reminder,
    ReminderType,
    ReservationRecord,
    UserAccount,
)
from grouptrack.domain.reservation import ReservationService
from grouptrack.utils.clock import Clock

logger = logging.getLogger(__name__)


def format_day(value: date) -> str:
    """Render a date the way staff read it, e.g. 08 Jan 2024."""
    return value.strftime("%d %b %Y")


def offer_followup_template(record: ReservationRecord) -> str:
    return f"Dear Team,\n\nPlease check agent reply or cancel PNR. Group: {record.pnr}"


def alert_template(record: ReservationRecord, label: str, due: date) -> str:
    return (
        f"Dear Team,\n\n{label} for group {record.pnr} ({record.agency_name or 'no agency'}) "
        f"is due on {format_day(due)}.\nPlease follow up with the agency."
    )


def custom_template(record: ReservationRecord, config: AirlineConfig, label: str, due: date) -> str:
    return (
        f"Dear {config.recipient_email or 'Team'},\n\n"
        f"Reminder for {label} regarding PNR {record.pnr} ({format_day(due)})."
    )


def _local_date(value: datetime | date, timezone: Optional[tzinfo]) -> date:
    if isinstance(value, datetime):
        if timezone is not None and value.tzinfo is not None:
            value = value.astimezone(timezone)
        return value.date()
    return value


class ReminderRule:
    """A rule that turns one reservation into zero or more reminders."""

    def evaluate(
        self,
        record: ReservationRecord,
        config: Optional[AirlineConfig],
        today: date,
        timezone: Optional[tzinfo] = None,
    ) -> list[Reminder]:
        raise NotImplementedError


class OfferFollowUpRule(ReminderRule):
    """Chase the agent once an offer has gone unanswered for a week.

    Re-fires on every evaluation until the status changes.
    """

    def evaluate(self, record, config, today, timezone=None):
        if record.status is not PNRStatus.PD_OFFER_SENT or record.date_offer_sent is None:
            return []
        follow_up = _local_date(record.date_offer_sent, timezone) + timedelta(days=OFFER_FOLLOWUP_DAYS)
        if follow_up > today + timedelta(days=REMINDER_LOOKAHEAD_DAYS):
            return []
        return [
            Reminder(
                type=ReminderType.OFFER_FOLLOWUP,
                due_date=follow_up,
                pnr=record.pnr,
                agency=record.agency_name,
                description="Follow up on agent reply",
                is_overdue=follow_up < today,
                email_template=offer_followup_template(record),
                airline=record.airline,
                reservation_id=record.id,
            )
        ]


class AlertPairRule(ReminderRule):
    """Single-day pulse on ``alert date - days before`` for one alert pair."""

    def __init__(self, kind: AlertKind):
        self.kind = kind

    def evaluate(self, record, config, today, timezone=None):
        for pair in record.alert_pairs():
            if pair.kind is not self.kind:
                continue
            if pair.alert_date - timedelta(days=pair.days_before) != today:
                return []
            return [
                Reminder(
                    type=ReminderType(self.kind.value),
                    due_date=pair.alert_date,
                    pnr=record.pnr,
                    agency=record.agency_name,
                    description=f"{self.kind.label} due ({record.airline})",
                    is_overdue=False,
                    email_template=alert_template(record, self.kind.label, pair.alert_date),
                    airline=record.airline,
                    reservation_id=record.id,
                )
            ]
        return []


class AirlineCustomRule(ReminderRule):
    """Legacy airline-wide rules measured back from the departure date."""

    def evaluate(self, record, config, today, timezone=None):
        if config is None or record.dep_date is None:
            return []
        if record.status is PNRStatus.OK_ISSUED or record.status.is_cancelled:
            return []

        horizon = today + timedelta(days=REMINDER_LOOKAHEAD_DAYS)
        reminders = []
        for rule in config.reminders:
            if not (rule.active and rule.label and rule.days_before > 0):
                continue
            trigger = record.dep_date - timedelta(days=rule.days_before)
            if trigger > horizon:
                continue
            reminders.append(
                Reminder(
                    type=ReminderType.AIRLINE_CUSTOM,
                    due_date=trigger,
                    pnr=record.pnr,
                    agency=record.agency_name,
                    description=f"{rule.label} ({record.airline})",
                    is_overdue=trigger < today,
                    email_template=custom_template(record, config, rule.label, trigger),
                    airline=record.airline,
                    reservation_id=record.id,
                )
            )
        return reminders


DEFAULT_RULES: tuple[ReminderRule, ...] = (
    OfferFollowUpRule(),
    AlertPairRule(AlertKind.DEPOSIT),
    AlertPairRule(AlertKind.FULL_PAYMENT),
    AlertPairRule(AlertKind.NAMES),
    AirlineCustomRule(),
)


def derive_reminders(
    reservations: Iterable[ReservationRecord],
    configs: Mapping[str, AirlineConfig],
    today: date,
    visible_airlines: Optional[Collection[str]] = None,
    rules: Sequence[ReminderRule] = DEFAULT_RULES,
    timezone: Optional[tzinfo] = None,
) -> list[Reminder]:
    """Derive every currently relevant reminder.

    Args:
        reservations: Reservations to evaluate (not modified)
        configs: Airline configs keyed by airline code
        today: Calendar day in the reference time zone
        visible_airlines: Airlines the caller may see; None means all
        rules: Rule plugins to evaluate
        timezone: Zone used to turn stored timestamps into calendar days

    Returns:
        Reminders in reservation order, then rule order
    """
    reminders: list[Reminder] = []
    for record in reservations:
        if visible_airlines is not None and record.airline not in visible_airlines:
            continue
        config = configs.get(record.airline)
        for rule in rules:
            try:
                reminders.extend(rule.evaluate(record, config, today, timezone))
            except (ValueError, TypeError, OverflowError) as e:
                logger.warning(
                    "Skipping %s for reservation %s (%s): %s",
                    type(rule).__name__,
                    record.id,
                    record.pnr,
                    e,
                )
    return reminders


def sort_for_display(reminders: Iterable[Reminder]) -> list[Reminder]:
    """Order reminders by ascending due date."""
    return sorted(reminders, key=lambda r: r.due_date)


class ReminderService:
    """Loads reservations and configs and derives reminders for a caller."""

    def __init__(self, db: Database, clock: Optional[Clock] = None, rules: Sequence[ReminderRule] = DEFAULT_RULES):
        self.db = db
        self.clock = clock or Clock()
        self.rules = rules
        self.reservation_service = ReservationService(db, self.clock)
        self.airline_service = AirlineService(db)

    def derive(self, visible_airlines: Optional[Collection[str]] = None) -> list[Reminder]:
        """Derive reminders over all stored data for today in the reference zone."""
        return derive_reminders(
            self.reservation_service.load_all(),
            self.airline_service.get_configs(),
            self.clock.today(),
            visible_airlines=visible_airlines,
            rules=self.rules,
            timezone=self.clock.timezone,
        )

    def reminders_for(self, user: UserAccount) -> list[Reminder]:
        """Reminders on the user's visible airlines, soonest first."""
        visible = AccessPolicy.allowed_airlines(user, self.airline_service.list_airlines())
        return sort_for_display(self.derive(visible_airlines=visible))
