"""Domain model entities for grouptrack.

These are pure data classes representing business concepts, independent of
how they are serialized into the key-value store.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class PNRStatus(str, Enum):
    """Reservation lifecycle status.

    The three-letter prefix gives the status family: PD (pending),
    OK (confirmed) and XX (cancelled or declined).
    """

    PD_PNR_CREATED = "PD PNR Created"
    PD_PROP_SENT = "PD Prop Sent"
    PD_UNCONFIRMED = "PD Unconfirmed"
    PD_OFFER_SENT = "PD Offer sent"
    XX_DECLINED = "XX Declined"
    XX_CANCELLED_HDQ = "XX Cancelled HDQ"
    XX_CANCELLED_AG = "XX Canceled by AG"
    XX_CANCELLED_AIRLINE = "XX Canceled by airline"
    OK_CONFIRMED = "OK Confirmed"
    OK_CONTRACT_SENT = "OK Contract Sent"
    OK_CONTRACT_SIGNED = "OK Contract Signed"
    OK_COMM_REMINDER = "OK Sent first comm reminder"
    OK_COMMITTED = "OK Committed"
    XX_CANCELLED_AFTER_CONTRACT = "XX Cancelled After Contract"
    DEPO_REMINDER_SENT = "Depo Reminder Sent"
    DEPO_INVOICE_SENT = "Depo Invoice Sent"
    OK_DEPOSIT_PAID = "OK Deposit Paid"
    FULL_PAY_REMINDER_SENT = "Full Pay Reminder Sent"
    FULL_PAY_INVOICE_SENT = "Full Pay Invoice Sent"
    TICKETING_INSTRUCTIONS = "Ticketing Instructions"
    FULL_PAY_EMD = "Full Pay BY EMD"
    OK_ISSUED = "OK Issued"
    DEPO_REFUND_RQST = "Depo Refund Rqst"
    DEPO_REFUND_APPV = "Depo Refund Appv"
    REFUND_INVOL = "Refund SC/INVOL"

    @property
    def family(self) -> Optional[str]:
        """Return 'PD', 'OK' or 'XX', or None for bookkeeping statuses."""
        prefix = self.value[:2]
        return prefix if prefix in ("PD", "OK", "XX") else None

    @property
    def is_pending(self) -> bool:
        return self.family == "PD"

    @property
    def is_confirmed(self) -> bool:
        return self.family == "OK"

    @property
    def is_cancelled(self) -> bool:
        return self.family == "XX"

    @classmethod
    def parse(cls, value: str) -> "PNRStatus":
        """Look up a status by value or member name, case-insensitively."""
        needle = value.strip().lower()
        for status in cls:
            if status.value.lower() == needle or status.name.lower() == needle:
                return status
        raise ValueError(f"Unknown status: '{value}'")


class UserRole(str, Enum):
    """Privilege tier, ordered VIEWER < EDITOR < ADMIN."""

    VIEWER = "VIEWER"
    EDITOR = "EDITOR"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        return ["VIEWER", "EDITOR", "ADMIN"].index(self.value)


class LogAction(str, Enum):
    """Audit log action."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Currency(str, Enum):
    """Currencies an airline can be billed in."""

    USD = "USD"
    EUR = "EUR"
    ILS = "ILS"
    GBP = "GBP"

    @property
    def symbol(self) -> str:
        return {"USD": "$", "EUR": "€", "ILS": "₪", "GBP": "£"}[self.value]


class AlertKind(str, Enum):
    """The three per-reservation alert pairs."""

    DEPOSIT = "DEPOSIT"
    FULL_PAYMENT = "FULL_PAYMENT"
    NAMES = "NAMES"

    @property
    def label(self) -> str:
        return {
            "DEPOSIT": "Deposit",
            "FULL_PAYMENT": "Full Payment",
            "NAMES": "Names",
        }[self.value]

    @property
    def field_prefix(self) -> str:
        return {
            "DEPOSIT": "deposit",
            "FULL_PAYMENT": "full_payment",
            "NAMES": "names",
        }[self.value]


class ReminderType(str, Enum):
    """Kind of derived reminder."""

    OFFER_FOLLOWUP = "OFFER_FOLLOWUP"
    DEPOSIT = "DEPOSIT"
    FULL_PAYMENT = "FULL_PAYMENT"
    NAMES = "NAMES"
    AIRLINE_CUSTOM = "AIRLINE_CUSTOM"


@dataclass(frozen=True)
class AlertPair:
    """A (date, days-before) alert attached to a reservation."""

    kind: AlertKind
    alert_date: date
    days_before: int


@dataclass(frozen=True)
class ReservationRecord:
    """One group booking, identified by an opaque id."""

    id: str
    pnr: str
    airline: str
    status: PNRStatus
    dep_date: date
    date_created: datetime
    agency_name: str = ""
    agent_name: str = ""
    routing: str = ""
    remarks: str = ""
    ret_date: Optional[date] = None
    size: int = 0
    original_size: Optional[int] = None
    fare: Decimal = Decimal("0")
    taxes: Decimal = Decimal("0")
    markup: Decimal = Decimal("0")
    date_offer_sent: Optional[datetime] = None
    deposit_date: Optional[date] = None
    deposit_days_before: Optional[int] = None
    full_payment_date: Optional[date] = None
    full_payment_days_before: Optional[int] = None
    names_date: Optional[date] = None
    names_days_before: Optional[int] = None
    record_by_agent: str = ""
    date_sent_to_airline: Optional[date] = None
    opening_fee_receipt: str = ""
    depo_number: str = ""
    full_payment_emd: str = ""
    flown_passengers: int = 0
    total_paid_per_ticket: Decimal = Decimal("0")
    version: int = 1

    def alert_pairs(self) -> list[AlertPair]:
        """Return the alert pairs that have both a date and a days-before."""
        pairs = []
        for kind in AlertKind:
            alert_date = getattr(self, f"{kind.field_prefix}_date")
            days_before = getattr(self, f"{kind.field_prefix}_days_before")
            if alert_date is not None and days_before is not None:
                pairs.append(AlertPair(kind=kind, alert_date=alert_date, days_before=days_before))
        return pairs


@dataclass(frozen=True)
class CustomReminder:
    """Airline-wide reminder rule evaluated against departure dates."""

    id: str
    label: str
    days_before: int
    active: bool = False


@dataclass(frozen=True)
class AirlineConfig:
    """Per-airline notification and billing configuration."""

    airline_code: str
    recipient_email: str = ""
    currency: Currency = Currency.USD
    reminders: tuple[CustomReminder, ...] = ()


@dataclass(frozen=True)
class Reminder:
    """A derived, never-persisted reminder."""

    type: ReminderType
    due_date: date
    pnr: str
    agency: str
    description: str
    is_overdue: bool
    email_template: str
    airline: str = ""
    reservation_id: str = ""

    @property
    def subject(self) -> str:
        return f"Reminder: {self.description} - PNR {self.pnr}"


@dataclass(frozen=True)
class UserAccount:
    """Staff account with a role and the airlines it may work on."""

    id: str
    username: str
    password_hash: str
    role: UserRole
    full_name: str = ""
    allowed_airlines: tuple[str, ...] = ()


@dataclass(frozen=True)
class FieldChange:
    """A single field difference recorded by an UPDATE audit entry."""

    field: str
    old_value: object
    new_value: object


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only audit record."""

    id: str
    timestamp: datetime
    user_id: str
    username: str
    action: LogAction
    entity_id: str
    entity_pnr: str
    details: str
    changes: tuple[FieldChange, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class EmailSettings:
    """Outgoing mail account used for automated reminders."""

    sender_address: str = ""
    app_password: str = ""
    sender_name: str = "GroupTrack System"
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587

    @property
    def is_configured(self) -> bool:
        return bool(self.sender_address and self.app_password)


@dataclass(frozen=True)
class SendResult:
    """Outcome of a mail dispatch attempt."""

    success: bool
    message: str = ""


@dataclass(frozen=True)
class ReservationTotals:
    """Financial totals for one reservation."""

    per_passenger: Decimal
    group_total: Decimal
    revenue: Decimal
    markup_total: Decimal
    currency: Currency
