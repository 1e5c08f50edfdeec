#!/usr/bin/env python3
"""Migration script to turn airline-wide reminder rules into alert pairs.

Airline-wide rules ("Deposit Deadline 66 days before departure") are
replaced by per-reservation alert pairs. For every ACTIVE rule whose label
names a deposit, full payment or names deadline:

- each reservation on that airline without that alert pair gets one with
  alert date = departure date and days before = the rule's days
- the rule is then deactivated

Reservations that already carry the pair keep their own values. Running the
script again changes nothing because converted rules are inactive.

Usage:
    python migrations/migrate_custom_reminders_to_alert_pairs.py [--db-path PATH] [--dry-run]
"""

import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

# Add src to path so we can import grouptrack modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from grouptrack.database import keys
from grouptrack.database.base import Database
from grouptrack.database.factories import create_sqlite_database
from grouptrack.database.mappers import (
    airline_config_to_domain,
    airline_config_to_json,
    reservation_to_domain,
    reservation_to_json,
)
from grouptrack.domain.entities import AlertKind, CustomReminder


def alert_kind_for(rule: CustomReminder) -> Optional[AlertKind]:
    """Map a rule label to the alert pair it stands for.

    Args:
        rule: Airline-wide reminder rule

    Returns:
        The matching AlertKind, or None for labels with no counterpart
    """
    label = rule.label.lower()
    if "deposit" in label or "depo" in label:
        return AlertKind.DEPOSIT
    if "full pay" in label:
        return AlertKind.FULL_PAYMENT
    if "name" in label:
        return AlertKind.NAMES
    return None


def convert_rules(db: Database, dry_run: bool = False) -> dict[str, int]:
    """Convert active airline-wide rules into per-reservation alert pairs.

    Args:
        db: Connected database
        dry_run: Report what would change without writing

    Returns:
        Counts of converted rules and updated reservations
    """
    configs = {
        code: airline_config_to_domain(data)
        for code, data in db.get(keys.AIRLINE_CONFIGS).unwrap(default={}).items()
    }
    records = [reservation_to_domain(r) for r in db.get(keys.RESERVATIONS).unwrap(default=[])]

    # airline -> [(rule, kind)]
    convertible: dict[str, list[tuple[CustomReminder, AlertKind]]] = {}
    for code, config in configs.items():
        for rule in config.reminders:
            kind = alert_kind_for(rule)
            if rule.active and rule.days_before > 0 and kind is not None:
                convertible.setdefault(code, []).append((rule, kind))

    updated_records = []
    changed = 0
    for record in records:
        values = {}
        if record.dep_date is not None:
            for rule, kind in convertible.get(record.airline, []):
                date_field = f"{kind.field_prefix}_date"
                days_field = f"{kind.field_prefix}_days_before"
                if getattr(record, date_field) is None and getattr(record, days_field) is None and date_field not in values:
                    values[date_field] = record.dep_date
                    values[days_field] = rule.days_before
        if values:
            record = replace(record, version=record.version + 1, **values)
            changed += 1
            print(f"  {record.pnr} ({record.airline}): added {', '.join(sorted(values))}")
        updated_records.append(record)

    converted_rules = 0
    for code, pairs in convertible.items():
        converted_ids = {rule.id for rule, _ in pairs}
        config = configs[code]
        configs[code] = replace(
            config,
            reminders=tuple(replace(r, active=False) if r.id in converted_ids else r for r in config.reminders),
        )
        converted_rules += len(converted_ids)
        print(f"  {code}: deactivated {len(converted_ids)} rule(s)")

    if not dry_run and (changed or converted_rules):
        db.set(keys.RESERVATIONS, [reservation_to_json(r) for r in updated_records])
        db.set(keys.AIRLINE_CONFIGS, {code: airline_config_to_json(c) for code, c in configs.items()})

    return {"rules": converted_rules, "reservations": changed}


def migrate_database(database_path: str | None = None, dry_run: bool = False) -> None:
    """Run the conversion against a database file.

    Args:
        database_path: Path to database file. If None, uses default location.
        dry_run: Report what would change without writing
    """
    db = create_sqlite_database(database_path=database_path)
    db.connect()
    db.initialize_schema()

    try:
        print("Starting migration: airline-wide reminder rules -> alert pairs...")
        counts = convert_rules(db, dry_run=dry_run)
        if not counts["rules"]:
            print("Migration already applied: no active deposit, full payment or names rules")
            return
        prefix = "Would convert" if dry_run else "Converted"
        print(f"{prefix} {counts['rules']} rule(s), updating {counts['reservations']} reservation(s)")
        print("Migration completed successfully!")
    finally:
        db.disconnect()


def main():
    """Main entry point for migration script."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Convert airline-wide reminder rules into per-reservation alert pairs"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="Path to database file (overrides GROUPTRACK_DB_PATH environment variable)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Show changes without writing them")
    args = parser.parse_args()

    try:
        migrate_database(database_path=args.db_path, dry_run=args.dry_run)
        return 0
    except Exception as e:
        print(f"\nMigration failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
