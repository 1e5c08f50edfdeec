"""Tests for domain entities."""

import pytest
from dataclasses import FrozenInstanceError
from datetime import date, datetime, UTC

from grouptrack.domain.entities import (
    AlertKind,
    AlertPair,
    Currency,
    EmailSettings,
    PNRStatus,
    Reminder,
    ReminderType,
    ReservationRecord,
    UserRole,
)


class TestPNRStatus:
    """Tests for the status lifecycle enum."""

    @pytest.mark.parametrize(
        "status,family",
        [
            (PNRStatus.PD_OFFER_SENT, "PD"),
            (PNRStatus.OK_ISSUED, "OK"),
            (PNRStatus.XX_CANCELLED_AG, "XX"),
            (PNRStatus.DEPO_INVOICE_SENT, None),
            (PNRStatus.FULL_PAY_EMD, None),
        ],
    )
    def test_family(self, status, family):
        assert status.family == family

    def test_family_predicates(self):
        assert PNRStatus.PD_PNR_CREATED.is_pending
        assert PNRStatus.OK_CONFIRMED.is_confirmed
        assert PNRStatus.XX_DECLINED.is_cancelled
        assert not PNRStatus.TICKETING_INSTRUCTIONS.is_pending

    def test_parse_by_value_or_name(self):
        assert PNRStatus.parse("ok confirmed") is PNRStatus.OK_CONFIRMED
        assert PNRStatus.parse(" PD_OFFER_SENT ") is PNRStatus.PD_OFFER_SENT
        with pytest.raises(ValueError, match="Unknown status"):
            PNRStatus.parse("Booked")


def test_role_ranks():
    assert UserRole.VIEWER.rank < UserRole.EDITOR.rank < UserRole.ADMIN.rank


def test_currency_symbols():
    assert [c.symbol for c in Currency] == ["$", "€", "₪", "£"]


def test_alert_kind_fields():
    assert [k.field_prefix for k in AlertKind] == ["deposit", "full_payment", "names"]
    assert AlertKind.FULL_PAYMENT.label == "Full Payment"


class TestReservationRecord:
    """Tests for ReservationRecord."""

    def make(self, **kwargs):
        return ReservationRecord(
            id="r1",
            pnr="ABC123",
            airline="ET",
            status=PNRStatus.PD_PNR_CREATED,
            dep_date=date(2024, 3, 1),
            date_created=datetime(2024, 1, 1, tzinfo=UTC),
            **kwargs,
        )

    def test_defaults(self):
        record = self.make()
        assert record.version == 1
        assert record.size == 0
        assert record.original_size is None
        assert record.alert_pairs() == []

    def test_immutability(self):
        record = self.make()
        with pytest.raises(FrozenInstanceError):
            record.pnr = "OTHER1"

    def test_alert_pairs_need_both_halves(self):
        record = self.make(
            deposit_date=date(2024, 1, 20),
            deposit_days_before=3,
            full_payment_date=date(2024, 2, 1),
            names_days_before=5,
        )
        assert record.alert_pairs() == [AlertPair(AlertKind.DEPOSIT, date(2024, 1, 20), 3)]

    def test_zero_days_before_counts(self):
        record = self.make(names_date=date(2024, 2, 1), names_days_before=0)
        assert record.alert_pairs() == [AlertPair(AlertKind.NAMES, date(2024, 2, 1), 0)]


def test_reminder_subject():
    reminder = Reminder(
        type=ReminderType.DEPOSIT,
        due_date=date(2024, 1, 6),
        pnr="ABC123",
        agency="Sky Tours",
        description="Deposit due (ET)",
        is_overdue=False,
        email_template="",
    )
    assert reminder.subject == "Reminder: Deposit due (ET) - PNR ABC123"


def test_email_settings_configured():
    assert not EmailSettings().is_configured
    assert not EmailSettings(sender_address="a@example.com").is_configured
    assert EmailSettings(sender_address="a@example.com", app_password="pw").is_configured
