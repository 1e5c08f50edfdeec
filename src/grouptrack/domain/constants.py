"""Seed data and fixed business constants."""

from grouptrack.domain.entities import AirlineConfig, Currency, CustomReminder

DEFAULT_AIRLINES: tuple[str, ...] = ("ET", "UX", "BT", "A2", "GQ", "HM", "PG")

# Days after the offer is sent before the agent must be chased
OFFER_FOLLOWUP_DAYS = 7

# Reminders with a standing window are shown this many days ahead
REMINDER_LOOKAHEAD_DAYS = 2

DEFAULT_DISPATCH_HOUR = 9
DEFAULT_DISPATCH_INTERVAL = 60
SENT_RETENTION_DAYS = 3


def default_custom_reminders() -> tuple[CustomReminder, ...]:
    """Legacy airline-wide rules, created inactive."""
    return (
        CustomReminder(id="1", label="Deposit Deadline", days_before=66, active=False),
        CustomReminder(id="2", label="Full Payment", days_before=36, active=False),
        CustomReminder(id="3", label="Names Request", days_before=18, active=False),
    )


def default_airline_config(code: str) -> AirlineConfig:
    """Configuration given to a newly added airline."""
    return AirlineConfig(
        airline_code=code,
        recipient_email="",
        currency=Currency.EUR if code == "A2" else Currency.USD,
        reminders=default_custom_reminders(),
    )
