"""Reservation (PNR) domain service."""

import logging
import uuid
from dataclasses import fields, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from grouptrack.database import keys
from grouptrack.database.base import Database
from grouptrack.database.mappers import reservation_to_domain, reservation_to_json
from grouptrack.domain.access import AccessPolicy
from grouptrack.domain.airline import AirlineService
from grouptrack.domain.audit import AuditLogService, diff_records
from grouptrack.domain.entities import (
    AirlineConfig,
    Currency,
    LogAction,
    PNRStatus,
    ReservationRecord,
    ReservationTotals,
    UserAccount,
    UserRole,
)
from grouptrack.domain.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    reservation_not_found,
    stale_version,
)
from grouptrack.utils.clock import Clock

logger = logging.getLogger(__name__)

# Fields maintained by the service itself
SYSTEM_FIELDS = frozenset({"id", "date_created", "date_offer_sent", "original_size", "version"})
EDITABLE_FIELDS = frozenset(f.name for f in fields(ReservationRecord)) - SYSTEM_FIELDS

MONEY_FIELDS = ("fare", "taxes", "markup", "total_paid_per_ticket")
_COUNT_FIELDS = ("size", "flown_passengers")
_DAYS_FIELDS = ("deposit_days_before", "full_payment_days_before", "names_days_before")
DATE_FIELDS = ("dep_date", "ret_date", "deposit_date", "full_payment_date", "names_date", "date_sent_to_airline")
_TEXT_FIELDS = (
    "agency_name",
    "agent_name",
    "routing",
    "remarks",
    "record_by_agent",
    "opening_fee_receipt",
    "depo_number",
    "full_payment_emd",
)


def compute_totals(record: ReservationRecord, config: Optional[AirlineConfig] = None) -> ReservationTotals:
    """Per-passenger and whole-group amounts for a reservation."""
    per_passenger = record.fare + record.taxes + record.markup
    size = Decimal(record.size or 0)
    return ReservationTotals(
        per_passenger=per_passenger,
        group_total=per_passenger * size,
        revenue=(record.fare + record.taxes) * size,
        markup_total=record.markup * size,
        currency=config.currency if config else Currency.USD,
    )


class ReservationService:
    """Service for creating, editing and querying reservations."""

    def __init__(self, db: Database, clock: Optional[Clock] = None):
        """Initialize reservation service.

        Args:
            db: Database instance
            clock: Source of timestamps (defaults to the reference-zone clock)
        """
        self.db = db
        self.clock = clock or Clock()
        self.airline_service = AirlineService(db)
        self.audit_service = AuditLogService(db)

    def _load(self) -> list[ReservationRecord]:
        return [reservation_to_domain(r) for r in self.db.get(keys.RESERVATIONS).unwrap(default=[])]

    def _save(self, records: list[ReservationRecord]) -> None:
        self.db.set(keys.RESERVATIONS, [reservation_to_json(r) for r in records])

    def load_all(self) -> list[ReservationRecord]:
        """Every stored reservation, without visibility filtering."""
        return self._load()

    def _visible_airlines(self, user: UserAccount) -> set[str]:
        return AccessPolicy.allowed_airlines(user, self.airline_service.list_airlines())

    def _check_airline(self, user: UserAccount, airline: Any) -> str:
        if not isinstance(airline, str) or not airline.strip():
            raise ValidationError("Airline is required")
        code = self.airline_service.require_airline(airline)
        if code not in self._visible_airlines(user):
            raise PermissionDeniedError(f"You do not have access to airline {code}")
        return code

    def _clean(self, values: dict[str, Any]) -> dict[str, Any]:
        """Validate and coerce user-supplied field values."""
        unknown = set(values) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown reservation field(s): {', '.join(sorted(unknown))}")

        cleaned: dict[str, Any] = {}
        for name, value in values.items():
            if name == "pnr":
                value = (value or "").strip().upper()
                if not value:
                    raise ValidationError("PNR is required")
            elif name == "status":
                if not isinstance(value, PNRStatus):
                    try:
                        value = PNRStatus.parse(str(value))
                    except ValueError as e:
                        raise ValidationError(str(e))
            elif name in MONEY_FIELDS:
                try:
                    value = Decimal(str(value if value not in (None, "") else 0))
                except InvalidOperation:
                    raise ValidationError(f"Invalid amount for {name}: '{value}'")
                if not value.is_finite() or value < 0:
                    raise ValidationError(f"{name} must be a non-negative amount")
            elif name in _COUNT_FIELDS:
                value = self._non_negative_int(name, value, default=0)
            elif name in _DAYS_FIELDS:
                value = None if value in (None, "") else self._non_negative_int(name, value)
            elif name in DATE_FIELDS:
                if value in (None, ""):
                    if name == "dep_date":
                        raise ValidationError("Departure date is required")
                    value = None
                elif isinstance(value, datetime):
                    value = value.date()
                elif not isinstance(value, date):
                    raise ValidationError(f"{name} must be a date")
            elif name in _TEXT_FIELDS:
                value = "" if value is None else str(value)
            cleaned[name] = value
        return cleaned

    @staticmethod
    def _non_negative_int(name: str, value: Any, default: Optional[int] = None) -> int:
        if value in (None, ""):
            return default
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be a whole number")
        if number < 0:
            raise ValidationError(f"{name} cannot be negative")
        return number

    def create_reservation(
        self,
        user: UserAccount,
        airline: str,
        pnr: str,
        dep_date: date,
        status: PNRStatus = PNRStatus.PD_PNR_CREATED,
        **details: Any,
    ) -> ReservationRecord:
        """Create a reservation.

        Args:
            user: Acting user (EDITOR or ADMIN)
            airline: Airline code from the directory
            pnr: Booking reference
            dep_date: Departure date
            status: Initial lifecycle status
            **details: Any other editable ReservationRecord field

        Returns:
            The stored reservation

        Raises:
            PermissionDeniedError: If the user may not create or lacks the airline
            ValidationError: If a field is invalid
        """
        AccessPolicy.require_role(user, UserRole.EDITOR)
        airline = self._check_airline(user, airline)
        values = self._clean({"pnr": pnr, "dep_date": dep_date, "status": status, **details})

        now = self.clock.now()
        record = ReservationRecord(
            id=uuid.uuid4().hex[:12],
            airline=airline,
            date_created=now,
            **values,
        )
        if record.status is PNRStatus.PD_OFFER_SENT:
            record = replace(record, date_offer_sent=now)

        records = self._load()
        records.insert(0, record)
        self._save(records)
        self.audit_service.record(
            user,
            LogAction.CREATE,
            record.id,
            record.pnr,
            f"Created new group for {record.agency_name}",
            timestamp=now,
        )
        logger.info("Created reservation %s (%s)", record.id, record.pnr)
        return record

    def update_reservation(
        self,
        user: UserAccount,
        reservation_id: str,
        changes: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> ReservationRecord:
        """Apply field changes to a reservation.

        The first change of ``size`` preserves the previous value in
        ``original_size``; the first move into the offer-sent status stamps
        ``date_offer_sent``.

        Args:
            user: Acting user (EDITOR or ADMIN)
            reservation_id: Reservation ID
            changes: Mapping of field name to new value
            expected_version: Version the edit was based on; a mismatch is rejected

        Returns:
            The updated reservation (unchanged if nothing differed)

        Raises:
            NotFoundError: If the reservation does not exist or is not visible
            ConflictError: If expected_version is stale
            ValidationError: If a field is unknown or invalid
        """
        AccessPolicy.require_role(user, UserRole.EDITOR)
        records = self._load()
        visible = self._visible_airlines(user)
        current = next((r for r in records if r.id == reservation_id and r.airline in visible), None)
        if current is None:
            raise NotFoundError(reservation_not_found(reservation_id))
        if expected_version is not None and expected_version != current.version:
            raise ConflictError(stale_version(reservation_id, expected_version, current.version))

        changes = dict(changes)
        if "airline" in changes:
            changes["airline"] = self._check_airline(user, changes["airline"])
        updated = replace(current, **self._clean(changes))

        if updated.size != current.size and current.original_size is None:
            updated = replace(updated, original_size=current.size)
        if (
            updated.status is PNRStatus.PD_OFFER_SENT
            and current.status is not PNRStatus.PD_OFFER_SENT
            and current.date_offer_sent is None
        ):
            updated = replace(updated, date_offer_sent=self.clock.now())

        field_changes = diff_records(current, updated)
        if not field_changes:
            return current

        updated = replace(updated, version=current.version + 1)
        self._save([updated if r.id == current.id else r for r in records])
        self.audit_service.record(
            user,
            LogAction.UPDATE,
            updated.id,
            updated.pnr,
            "Updated group information",
            field_changes,
            timestamp=self.clock.now(),
        )
        return updated

    def delete_reservation(self, user: UserAccount, reservation_id: str) -> ReservationRecord:
        """Hard-delete a reservation (ADMIN only)."""
        AccessPolicy.require_role(user, UserRole.ADMIN)
        records = self._load()
        target = next((r for r in records if r.id == reservation_id), None)
        if target is None:
            raise NotFoundError(reservation_not_found(reservation_id))
        self._save([r for r in records if r.id != reservation_id])
        self.audit_service.record(
            user,
            LogAction.DELETE,
            target.id,
            target.pnr,
            f"Deleted group for {target.agency_name}",
            timestamp=self.clock.now(),
        )
        logger.info("Deleted reservation %s (%s)", target.id, target.pnr)
        return target

    def get_reservation(self, user: UserAccount, reservation_id: str) -> Optional[ReservationRecord]:
        """Get a visible reservation by ID."""
        visible = self._visible_airlines(user)
        for record in self._load():
            if record.id == reservation_id and record.airline in visible:
                return record
        return None

    def find_by_pnr(self, user: UserAccount, pnr: str) -> list[ReservationRecord]:
        """Visible reservations with the given PNR (case-insensitive)."""
        pnr = pnr.strip().upper()
        visible = self._visible_airlines(user)
        return [r for r in self._load() if r.pnr.upper() == pnr and r.airline in visible]

    def list_reservations(
        self,
        user: UserAccount,
        airline: Optional[str] = None,
        status: Optional[PNRStatus] = None,
        agency: Optional[str] = None,
        search: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[ReservationRecord]:
        """List visible reservations with optional filters, by departure date.

        Args:
            user: Acting user
            airline: Only this airline
            status: Only this status
            agency: Only this agency name (exact match)
            search: Substring matched against PNR, agency and agent names
            start_date: Earliest departure date
            end_date: Latest departure date
        """
        visible = self._visible_airlines(user)
        term = (search or "").strip().lower()
        results = []
        for r in self._load():
            if r.airline not in visible:
                continue
            if airline and r.airline != airline.upper():
                continue
            if status is not None and r.status is not status:
                continue
            if agency and r.agency_name != agency:
                continue
            if term and not any(term in (text or "").lower() for text in (r.pnr, r.agency_name, r.agent_name)):
                continue
            if start_date is not None and (r.dep_date is None or r.dep_date < start_date):
                continue
            if end_date is not None and (r.dep_date is None or r.dep_date > end_date):
                continue
            results.append(r)
        return sorted(results, key=lambda r: (r.dep_date is None, r.dep_date or date.min))

    def list_agencies(self, user: UserAccount) -> list[str]:
        """Distinct agency names on visible reservations."""
        return sorted({r.agency_name for r in self.list_reservations(user) if r.agency_name})
