"""Mapper functions to convert between domain entities and stored JSON.

Stored records use camelCase keys. Reading is lenient: a malformed date or
number is logged and treated as absent so that one bad record never blocks
loading the rest of a collection.
"""

import logging
from datetime import date, datetime, UTC
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from dateutil import parser as date_parser

from grouptrack.domain import entities as domain

logger = logging.getLogger(__name__)


def _parse_date(value: Any, field: str, record_id: str = "") -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.isoparse(str(value)).date()
    except (ValueError, OverflowError):
        logger.warning("Ignoring malformed %s '%s' on record %s", field, value, record_id)
        return None


def _parse_datetime(value: Any, field: str, record_id: str = "") -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, OverflowError):
        logger.warning("Ignoring malformed %s '%s' on record %s", field, value, record_id)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_int(value: Any, field: str, record_id: str = "") -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed %s '%s' on record %s", field, value, record_id)
        return None


def _parse_decimal(value: Any, field: str, record_id: str = "") -> Decimal:
    if value in (None, ""):
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        logger.warning("Ignoring malformed %s '%s' on record %s", field, value, record_id)
        return Decimal("0")


def _date_to_json(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _decimal_to_json(value: Decimal) -> str:
    return str(value)


def to_json_value(value: Any) -> Any:
    """Convert a domain value into something json.dumps accepts."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def reservation_to_domain(data: dict[str, Any]) -> domain.ReservationRecord:
    """Convert a stored reservation dict to a ReservationRecord."""
    record_id = str(data.get("id", ""))
    status_raw = data.get("status") or domain.PNRStatus.PD_PNR_CREATED.value
    try:
        status = domain.PNRStatus(status_raw)
    except ValueError:
        logger.warning("Unknown status '%s' on record %s", status_raw, record_id)
        status = domain.PNRStatus.PD_PNR_CREATED

    return domain.ReservationRecord(
        id=record_id,
        pnr=str(data.get("pnr") or ""),
        airline=str(data.get("airline") or ""),
        status=status,
        dep_date=_parse_date(data.get("depDate"), "depDate", record_id),
        date_created=_parse_datetime(data.get("dateCreated"), "dateCreated", record_id),
        agency_name=data.get("agencyName") or "",
        agent_name=data.get("agentName") or "",
        routing=data.get("routing") or "",
        remarks=data.get("remarks") or "",
        ret_date=_parse_date(data.get("retDate"), "retDate", record_id),
        size=_parse_int(data.get("size"), "size", record_id) or 0,
        original_size=_parse_int(data.get("originalSize"), "originalSize", record_id),
        fare=_parse_decimal(data.get("fare"), "fare", record_id),
        taxes=_parse_decimal(data.get("taxes"), "taxes", record_id),
        markup=_parse_decimal(data.get("markup"), "markup", record_id),
        date_offer_sent=_parse_datetime(data.get("dateOfferSent"), "dateOfferSent", record_id),
        deposit_date=_parse_date(data.get("depositDate"), "depositDate", record_id),
        deposit_days_before=_parse_int(data.get("depositDaysBefore"), "depositDaysBefore", record_id),
        full_payment_date=_parse_date(data.get("fullPaymentDate"), "fullPaymentDate", record_id),
        full_payment_days_before=_parse_int(
            data.get("fullPaymentDaysBefore"), "fullPaymentDaysBefore", record_id
        ),
        names_date=_parse_date(data.get("namesDate"), "namesDate", record_id),
        names_days_before=_parse_int(data.get("namesDaysBefore"), "namesDaysBefore", record_id),
        record_by_agent=data.get("recordByAgent") or "",
        date_sent_to_airline=_parse_date(data.get("dateSentToAirline"), "dateSentToAirline", record_id),
        opening_fee_receipt=data.get("openingFeeReceipt") or "",
        depo_number=data.get("depoNumber") or "",
        full_payment_emd=data.get("fPaymentEmd") or "",
        flown_passengers=_parse_int(data.get("flownPassengers"), "flownPassengers", record_id) or 0,
        total_paid_per_ticket=_parse_decimal(
            data.get("totalPaidPerTicket"), "totalPaidPerTicket", record_id
        ),
        version=_parse_int(data.get("version"), "version", record_id) or 1,
    )


def reservation_to_json(record: domain.ReservationRecord) -> dict[str, Any]:
    """Convert a ReservationRecord to its stored dict."""
    return {
        "id": record.id,
        "pnr": record.pnr,
        "airline": record.airline,
        "status": record.status.value,
        "depDate": _date_to_json(record.dep_date),
        "dateCreated": record.date_created.isoformat() if record.date_created else None,
        "agencyName": record.agency_name,
        "agentName": record.agent_name,
        "routing": record.routing,
        "remarks": record.remarks,
        "retDate": _date_to_json(record.ret_date),
        "size": record.size,
        "originalSize": record.original_size,
        "fare": _decimal_to_json(record.fare),
        "taxes": _decimal_to_json(record.taxes),
        "markup": _decimal_to_json(record.markup),
        "dateOfferSent": record.date_offer_sent.isoformat() if record.date_offer_sent else None,
        "depositDate": _date_to_json(record.deposit_date),
        "depositDaysBefore": record.deposit_days_before,
        "fullPaymentDate": _date_to_json(record.full_payment_date),
        "fullPaymentDaysBefore": record.full_payment_days_before,
        "namesDate": _date_to_json(record.names_date),
        "namesDaysBefore": record.names_days_before,
        "recordByAgent": record.record_by_agent,
        "dateSentToAirline": _date_to_json(record.date_sent_to_airline),
        "openingFeeReceipt": record.opening_fee_receipt,
        "depoNumber": record.depo_number,
        "fPaymentEmd": record.full_payment_emd,
        "flownPassengers": record.flown_passengers,
        "totalPaidPerTicket": _decimal_to_json(record.total_paid_per_ticket),
        "version": record.version,
    }


def custom_reminder_to_domain(data: dict[str, Any]) -> domain.CustomReminder:
    """Convert a stored custom reminder rule to its entity."""
    return domain.CustomReminder(
        id=str(data.get("id", "")),
        label=data.get("label") or "",
        days_before=_parse_int(data.get("daysBefore"), "daysBefore") or 0,
        active=bool(data.get("active", False)),
    )


def airline_config_to_domain(data: dict[str, Any]) -> domain.AirlineConfig:
    """Convert a stored airline configuration to its entity."""
    currency_raw = data.get("currency") or domain.Currency.USD.value
    try:
        currency = domain.Currency(currency_raw)
    except ValueError:
        logger.warning("Unknown currency '%s' for airline %s", currency_raw, data.get("airlineCode"))
        currency = domain.Currency.USD
    return domain.AirlineConfig(
        airline_code=data.get("airlineCode") or "",
        recipient_email=data.get("recipientEmail") or "",
        currency=currency,
        reminders=tuple(custom_reminder_to_domain(r) for r in data.get("reminders") or []),
    )


def airline_config_to_json(config: domain.AirlineConfig) -> dict[str, Any]:
    """Convert an AirlineConfig to its stored dict."""
    return {
        "airlineCode": config.airline_code,
        "recipientEmail": config.recipient_email,
        "currency": config.currency.value,
        "reminders": [
            {"id": r.id, "label": r.label, "daysBefore": r.days_before, "active": r.active}
            for r in config.reminders
        ],
    }


def user_to_domain(data: dict[str, Any]) -> domain.UserAccount:
    """Convert a stored user to a UserAccount."""
    return domain.UserAccount(
        id=str(data.get("id", "")),
        username=data.get("username") or "",
        password_hash=data.get("passwordHash") or "",
        role=domain.UserRole(str(data.get("role") or "VIEWER").upper()),
        full_name=data.get("fullName") or "",
        allowed_airlines=tuple(data.get("allowedAirlines") or ()),
    )


def user_to_json(user: domain.UserAccount) -> dict[str, Any]:
    """Convert a UserAccount to its stored dict."""
    return {
        "id": user.id,
        "username": user.username,
        "passwordHash": user.password_hash,
        "role": user.role.value,
        "fullName": user.full_name,
        "allowedAirlines": list(user.allowed_airlines),
    }


def audit_entry_to_domain(data: dict[str, Any]) -> domain.AuditLogEntry:
    """Convert a stored audit entry to an AuditLogEntry."""
    entry_id = str(data.get("id", ""))
    return domain.AuditLogEntry(
        id=entry_id,
        timestamp=_parse_datetime(data.get("timestamp"), "timestamp", entry_id),
        user_id=data.get("userId") or "",
        username=data.get("username") or "",
        action=domain.LogAction(data.get("action")),
        entity_id=data.get("entityId") or "",
        entity_pnr=data.get("entityPNR") or "",
        details=data.get("details") or "",
        changes=tuple(
            domain.FieldChange(field=c.get("field"), old_value=c.get("oldValue"), new_value=c.get("newValue"))
            for c in data.get("changes") or []
        ),
    )


def audit_entry_to_json(entry: domain.AuditLogEntry) -> dict[str, Any]:
    """Convert an AuditLogEntry to its stored dict."""
    data = {
        "id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "userId": entry.user_id,
        "username": entry.username,
        "action": entry.action.value,
        "entityId": entry.entity_id,
        "entityPNR": entry.entity_pnr,
        "details": entry.details,
    }
    if entry.changes:
        data["changes"] = [
            {
                "field": c.field,
                "oldValue": to_json_value(c.old_value),
                "newValue": to_json_value(c.new_value),
            }
            for c in entry.changes
        ]
    return data


def email_settings_to_domain(data: dict[str, Any]) -> domain.EmailSettings:
    """Convert stored email settings to their entity."""
    defaults = domain.EmailSettings()
    return domain.EmailSettings(
        sender_address=data.get("senderAddress") or "",
        app_password=data.get("appPassword") or "",
        sender_name=data.get("senderName") or defaults.sender_name,
        smtp_host=data.get("smtpHost") or defaults.smtp_host,
        smtp_port=_parse_int(data.get("smtpPort"), "smtpPort") or defaults.smtp_port,
    )


def email_settings_to_json(settings: domain.EmailSettings) -> dict[str, Any]:
    """Convert EmailSettings to its stored dict."""
    return {
        "senderAddress": settings.sender_address,
        "appPassword": settings.app_password,
        "senderName": settings.sender_name,
        "smtpHost": settings.smtp_host,
        "smtpPort": settings.smtp_port,
    }
