"""Dashboard statistics and spreadsheet export."""

import csv
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, TextIO

from grouptrack.database.base import Database
from grouptrack.domain.access import AccessPolicy
from grouptrack.domain.entities import (
    AirlineConfig,
    Currency,
    PNRStatus,
    ReservationRecord,
    UserAccount,
    UserRole,
)
from grouptrack.domain.reservation import ReservationService, compute_totals
from grouptrack.utils.clock import Clock

EXPORT_COLUMNS = (
    "Date Created",
    "Airline",
    "PNR",
    "Agency Name",
    "Agent Name",
    "Dep. Date",
    "Ret. Date",
    "Routing",
    "PAX Size",
    "Status",
    "Fare",
    "Taxes",
    "Markup",
    "Total Per Pax",
    "Remarks",
)


@dataclass(frozen=True)
class AirlineCount:
    airline: str
    groups: int
    passengers: int


@dataclass(frozen=True)
class DashboardSummary:
    """Headline numbers over a set of reservations."""

    total_groups: int
    total_passengers: int
    total_revenue: Decimal
    confirmed_groups: int
    pending_groups: int
    cancelled_groups: int
    by_airline: tuple[AirlineCount, ...] = field(default_factory=tuple)


def _format_day(value: Optional[date | datetime], timezone=None) -> str:
    if value is None:
        return "-"
    if isinstance(value, datetime):
        if timezone is not None and value.tzinfo is not None:
            value = value.astimezone(timezone)
        value = value.date()
    return value.strftime("%d/%m/%Y")


def _money(amount: Decimal, currency: Currency) -> str:
    return f"{currency.symbol}{amount}"


class ReportService:
    """Read-only views over the reservations a user can see."""

    def __init__(self, db: Database, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or Clock()
        self.reservation_service = ReservationService(db, self.clock)
        self.airline_service = self.reservation_service.airline_service

    def filter_reservations(
        self,
        user: UserAccount,
        airline: Optional[str] = None,
        status: Optional[PNRStatus] = None,
        agency: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[ReservationRecord]:
        """Visible reservations matching the filters, in departure order."""
        return self.reservation_service.list_reservations(
            user, airline=airline, status=status, agency=agency, search=search
        )

    def dashboard_summary(self, user: UserAccount, records: Optional[Iterable[ReservationRecord]] = None) -> DashboardSummary:
        """Summarize the given records, or everything the user can see.

        Revenue is ``(fare + taxes) * size`` and excludes markup.
        """
        records = list(records) if records is not None else self.filter_reservations(user)
        visible = sorted(AccessPolicy.allowed_airlines(user, self.airline_service.list_airlines()))

        by_airline = [
            AirlineCount(
                airline=code,
                groups=sum(1 for r in records if r.airline == code),
                passengers=sum(r.size for r in records if r.airline == code),
            )
            for code in visible
        ]
        by_airline.sort(key=lambda c: (-c.groups, c.airline))

        return DashboardSummary(
            total_groups=len(records),
            total_passengers=sum(r.size for r in records),
            total_revenue=sum((compute_totals(r).revenue for r in records), Decimal("0")),
            confirmed_groups=sum(1 for r in records if r.status.is_confirmed),
            pending_groups=sum(1 for r in records if r.status.is_pending),
            cancelled_groups=sum(1 for r in records if r.status.is_cancelled),
            by_airline=tuple(by_airline),
        )

    def export_csv(self, user: UserAccount, stream: TextIO, airlines: Optional[Iterable[str]] = None) -> int:
        """Write visible reservations as CSV (ADMIN only).

        Args:
            user: Acting user
            stream: Text stream to write to
            airlines: Restrict to these airline codes

        Returns:
            Number of data rows written
        """
        AccessPolicy.require_role(user, UserRole.ADMIN)
        wanted = {a.strip().upper() for a in airlines} if airlines else None
        records = [
            r for r in self.filter_reservations(user) if wanted is None or r.airline in wanted
        ]
        configs: dict[str, AirlineConfig] = self.airline_service.get_configs()
        timezone = self.clock.timezone

        writer = csv.writer(stream)
        writer.writerow(EXPORT_COLUMNS)
        for r in records:
            config = configs.get(r.airline)
            currency = config.currency if config else Currency.USD
            totals = compute_totals(r, config)
            writer.writerow(
                [
                    _format_day(r.date_created, timezone),
                    r.airline,
                    r.pnr,
                    r.agency_name,
                    r.agent_name,
                    _format_day(r.dep_date),
                    _format_day(r.ret_date),
                    r.routing,
                    r.size,
                    r.status.value,
                    _money(r.fare, currency),
                    _money(r.taxes, currency),
                    _money(r.markup, currency),
                    _money(totals.per_passenger, currency),
                    r.remarks,
                ]
            )
        return len(records)
