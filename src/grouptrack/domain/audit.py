"""Audit log service and record diffing."""

import uuid
from dataclasses import fields
from datetime import date, datetime, UTC
from decimal import Decimal
from enum import Enum
from itertools import groupby
from typing import Optional

from grouptrack.database import keys
from grouptrack.database.base import Database
from grouptrack.database.mappers import audit_entry_to_domain, audit_entry_to_json
from grouptrack.domain.entities import (
    AuditLogEntry,
    FieldChange,
    LogAction,
    ReservationRecord,
    UserAccount,
)

# Metadata fields that are maintained by the system, not edited by users
UNDIFFED_FIELDS = frozenset({"id", "date_created", "date_offer_sent", "original_size", "version"})


def normalize_value(value: object) -> str:
    """Normalize a field value for change detection.

    None and empty string are equivalent, strings are trimmed and numbers
    compare by value (100 == 100.00).
    """
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value).strip()
    if isinstance(value, Decimal):
        if value == 0:
            return "0"
        return format(value.normalize(), "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def diff_records(before: ReservationRecord, after: ReservationRecord) -> list[FieldChange]:
    """List user-visible field changes between two versions of a reservation."""
    changes = []
    for f in fields(ReservationRecord):
        if f.name in UNDIFFED_FIELDS:
            continue
        old_value = getattr(before, f.name)
        new_value = getattr(after, f.name)
        if normalize_value(old_value) != normalize_value(new_value):
            changes.append(FieldChange(field=f.name, old_value=old_value, new_value=new_value))
    return changes


class AuditLogService:
    """Service for the append-only audit log."""

    def __init__(self, db: Database):
        """Initialize audit log service.

        Args:
            db: Database instance
        """
        self.db = db

    def list_entries(self) -> list[AuditLogEntry]:
        """All entries, newest first."""
        return [audit_entry_to_domain(e) for e in self.db.get(keys.AUDIT_LOG).unwrap(default=[])]

    def record(
        self,
        user: UserAccount,
        action: LogAction,
        entity_id: str,
        entity_pnr: str,
        details: str,
        changes: Optional[list[FieldChange]] = None,
        timestamp: Optional[datetime] = None,
    ) -> AuditLogEntry:
        """Append an entry to the log."""
        entry = AuditLogEntry(
            id=uuid.uuid4().hex[:12],
            timestamp=timestamp or datetime.now(UTC),
            user_id=user.id,
            username=user.username,
            action=action,
            entity_id=entity_id,
            entity_pnr=entity_pnr,
            details=details,
            changes=tuple(changes or ()),
        )
        stored = self.db.get(keys.AUDIT_LOG).unwrap(default=[])
        self.db.set(keys.AUDIT_LOG, [audit_entry_to_json(entry)] + list(stored))
        return entry

    def search(
        self,
        term: str = "",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[AuditLogEntry]:
        """Filter entries by keyword (username, PNR, details, action) and date range.

        Both ends of the date range are inclusive whole days.
        """
        term = term.strip().lower()
        results = []
        for entry in self.list_entries():
            if term and not any(
                term in text.lower()
                for text in (entry.username, entry.entity_pnr, entry.details, entry.action.value)
            ):
                continue
            entry_day = entry.timestamp.date() if entry.timestamp else None
            if start_date is not None and (entry_day is None or entry_day < start_date):
                continue
            if end_date is not None and (entry_day is None or entry_day > end_date):
                continue
            results.append(entry)
        return results

    @staticmethod
    def group_by_year(entries: list[AuditLogEntry]) -> list[tuple[int, list[AuditLogEntry]]]:
        """Group entries by year, most recent year first."""
        dated = sorted((e for e in entries if e.timestamp), key=lambda e: e.timestamp, reverse=True)
        return [(year, list(group)) for year, group in groupby(dated, key=lambda e: e.timestamp.year)]
