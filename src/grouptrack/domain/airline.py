"""Airline directory and per-airline configuration service."""

import logging
import re
import uuid
from dataclasses import replace
from typing import Optional

from grouptrack.database import keys
from grouptrack.database.base import Database
from grouptrack.database.mappers import (
    airline_config_to_domain,
    airline_config_to_json,
    email_settings_to_domain,
    email_settings_to_json,
    reservation_to_domain,
)
from grouptrack.domain.access import AccessPolicy
from grouptrack.domain.constants import DEFAULT_AIRLINES, default_airline_config
from grouptrack.domain.entities import (
    AirlineConfig,
    Currency,
    CustomReminder,
    EmailSettings,
    UserAccount,
    UserRole,
)
from grouptrack.domain.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
    airline_delete_blocked,
    airline_not_found,
)

logger = logging.getLogger(__name__)

_AIRLINE_CODE = re.compile(r"^[A-Z0-9]{2,3}$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AirlineService:
    """Service for the airline directory, airline configs and mail settings."""

    def __init__(self, db: Database):
        """Initialize airline service.

        Args:
            db: Database instance
        """
        self.db = db

    # Directory
    def list_airlines(self) -> list[str]:
        """List airline codes, falling back to the default directory if none is stored."""
        return list(self.db.get(keys.AIRLINES).unwrap(default=list(DEFAULT_AIRLINES)))

    def seed_defaults(self) -> bool:
        """Write the default directory and configs if nothing is stored yet.

        Returns:
            True if defaults were written
        """
        result = self.db.get(keys.AIRLINES)
        if result.is_found:
            return False
        # Raises on a failed read so defaults never replace stored data
        result.unwrap()
        self.db.set(keys.AIRLINES, list(DEFAULT_AIRLINES))
        configs = self._load_configs()
        for code in DEFAULT_AIRLINES:
            configs.setdefault(code, default_airline_config(code))
        self._save_configs(configs)
        return True

    def add_airline(self, acting_user: UserAccount, code: str) -> str:
        """Add an airline code to the directory with a default configuration.

        Raises:
            ValidationError: If the code is malformed
            ConflictError: If the code already exists
        """
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        code = code.strip().upper()
        if not _AIRLINE_CODE.match(code):
            raise ValidationError(f"Invalid airline code '{code}' (expected 2-3 letters or digits)")

        airlines = self.list_airlines()
        if code in airlines:
            raise ConflictError(f"Airline {code} already exists")
        airlines.append(code)
        self.db.set(keys.AIRLINES, airlines)

        configs = self._load_configs()
        configs.setdefault(code, default_airline_config(code))
        self._save_configs(configs)
        return code

    def remove_airline(self, acting_user: UserAccount, code: str) -> None:
        """Remove an airline that no reservation references."""
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        code = code.strip().upper()
        airlines = self.list_airlines()
        if code not in airlines:
            raise NotFoundError(airline_not_found(code))

        reservations = [reservation_to_domain(r) for r in self.db.get(keys.RESERVATIONS).unwrap(default=[])]
        count = sum(1 for r in reservations if r.airline == code)
        if count:
            raise DependencyError(airline_delete_blocked(code, count))

        self.db.set(keys.AIRLINES, [a for a in airlines if a != code])
        configs = self._load_configs()
        configs.pop(code, None)
        self._save_configs(configs)

    def require_airline(self, code: str) -> str:
        """Return the normalized code, raising NotFoundError if unknown."""
        code = code.strip().upper()
        if code not in self.list_airlines():
            raise NotFoundError(airline_not_found(code))
        return code

    # Configuration
    def _load_configs(self) -> dict[str, AirlineConfig]:
        stored = self.db.get(keys.AIRLINE_CONFIGS).unwrap(default={})
        return {code: airline_config_to_domain(data) for code, data in stored.items()}

    def _save_configs(self, configs: dict[str, AirlineConfig]) -> None:
        self.db.set(keys.AIRLINE_CONFIGS, {code: airline_config_to_json(c) for code, c in configs.items()})

    def get_configs(self) -> dict[str, AirlineConfig]:
        """Configs for every airline in the directory, defaults filled in."""
        stored = self._load_configs()
        return {code: stored.get(code) or default_airline_config(code) for code in self.list_airlines()}

    def get_config(self, code: str) -> AirlineConfig:
        code = self.require_airline(code)
        return self.get_configs()[code]

    def update_config(
        self,
        acting_user: UserAccount,
        code: str,
        recipient_email: Optional[str] = None,
        currency: Optional[Currency] = None,
    ) -> AirlineConfig:
        """Update the reminder recipient and/or billing currency of an airline."""
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        config = self.get_config(code)
        if recipient_email is not None:
            recipient_email = recipient_email.strip()
            if recipient_email and not _EMAIL.match(recipient_email):
                raise ValidationError(f"Invalid email address '{recipient_email}'")
            config = replace(config, recipient_email=recipient_email)
        if currency is not None:
            config = replace(config, currency=currency)
        return self._store_config(config)

    def _store_config(self, config: AirlineConfig) -> AirlineConfig:
        configs = self.get_configs()
        configs[config.airline_code] = config
        self._save_configs(configs)
        return config

    def add_custom_reminder(
        self, acting_user: UserAccount, code: str, label: str, days_before: int, active: bool = True
    ) -> CustomReminder:
        """Attach an airline-wide reminder rule."""
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        if not label.strip():
            raise ValidationError("Reminder label cannot be empty")
        if days_before <= 0:
            raise ValidationError("Days before must be a positive number")
        config = self.get_config(code)
        rule = CustomReminder(id=uuid.uuid4().hex[:8], label=label.strip(), days_before=days_before, active=active)
        self._store_config(replace(config, reminders=config.reminders + (rule,)))
        return rule

    def set_custom_reminder_active(
        self, acting_user: UserAccount, code: str, reminder_id: str, active: bool
    ) -> CustomReminder:
        """Enable or disable an airline-wide reminder rule."""
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        config = self.get_config(code)
        updated = None
        rules = []
        for rule in config.reminders:
            if rule.id == reminder_id:
                rule = replace(rule, active=active)
                updated = rule
            rules.append(rule)
        if updated is None:
            raise NotFoundError(f"Reminder rule {reminder_id} not found for airline {config.airline_code}")
        self._store_config(replace(config, reminders=tuple(rules)))
        return updated

    def remove_custom_reminder(self, acting_user: UserAccount, code: str, reminder_id: str) -> None:
        """Delete an airline-wide reminder rule."""
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        config = self.get_config(code)
        rules = tuple(r for r in config.reminders if r.id != reminder_id)
        if len(rules) == len(config.reminders):
            raise NotFoundError(f"Reminder rule {reminder_id} not found for airline {config.airline_code}")
        self._store_config(replace(config, reminders=rules))

    # Mail settings
    def get_email_settings(self) -> EmailSettings:
        stored = self.db.get(keys.EMAIL_SETTINGS).unwrap(default=None)
        if stored is None:
            return EmailSettings()
        return email_settings_to_domain(stored)

    def save_email_settings(self, acting_user: UserAccount, settings: EmailSettings) -> None:
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        if settings.sender_address and not _EMAIL.match(settings.sender_address):
            raise ValidationError(f"Invalid email address '{settings.sender_address}'")
        self.db.set(keys.EMAIL_SETTINGS, email_settings_to_json(settings))
