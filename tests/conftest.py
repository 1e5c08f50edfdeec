"""Shared pytest fixtures for grouptrack tests."""

import logging
import os
import tempfile
from datetime import datetime

import pytest

from grouptrack.database.factories import create_sqlite_database
from grouptrack.domain.access import UserService
from grouptrack.domain.airline import AirlineService
from grouptrack.domain.audit import AuditLogService
from grouptrack.domain.entities import EmailSettings, SendResult, UserRole
from grouptrack.domain.reservation import ReservationService
from grouptrack.mail.base import Mailer
from grouptrack.utils.clock import FixedClock

ADMIN_PASSWORD = "admin-pass"
EDITOR_PASSWORD = "editor-pass"
VIEWER_PASSWORD = "viewer-pass"


class FakeMailer(Mailer):
    """Records messages instead of sending them."""

    def __init__(self, fail_for=(), raise_for=()):
        self.sent = []
        self.attempts = []
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)
        self.verified = False

    def send(self, to, subject, body):
        self.attempts.append((to, subject, body))
        if to in self.raise_for:
            raise ConnectionError(f"connection to {to} dropped")
        if to in self.fail_for:
            return SendResult(False, "rejected")
        self.sent.append((to, subject, body))
        return SendResult(True, f"Sent to {to}")

    def verify(self):
        self.verified = True
        return SendResult(True, "Connected to fake")


@pytest.fixture(autouse=True)
def reset_grouptrack_logging():
    """Drop handlers bound to streams that a CLI run has since closed."""
    yield
    logger = logging.getLogger("grouptrack")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    """Clock frozen at 2024-01-06 10:00 in the reference zone."""
    return FixedClock(datetime(2024, 1, 6, 10, 0))


@pytest.fixture
def airline_service(temp_db):
    """Create an AirlineService with seeded default airlines."""
    service = AirlineService(temp_db)
    service.seed_defaults()
    return service


@pytest.fixture
def user_service(temp_db):
    """Create a UserService with a cheap bcrypt cost."""
    return UserService(temp_db, hash_rounds=4)


@pytest.fixture
def admin(user_service, airline_service):
    """The bootstrap administrator."""
    return user_service.ensure_admin("admin", ADMIN_PASSWORD)


@pytest.fixture
def editor(user_service, admin):
    """An editor restricted to ET and UX."""
    return user_service.create_user(
        admin, "editor", EDITOR_PASSWORD, UserRole.EDITOR, full_name="Eddie Tor", allowed_airlines=["ET", "UX"]
    )


@pytest.fixture
def viewer(user_service, admin):
    """A viewer restricted to ET."""
    return user_service.create_user(admin, "viewer", VIEWER_PASSWORD, UserRole.VIEWER, allowed_airlines=["ET"])


@pytest.fixture
def reservation_service(temp_db, airline_service, clock):
    """Create a ReservationService on the fixed clock."""
    return ReservationService(temp_db, clock)


@pytest.fixture
def audit_service(temp_db):
    """Create an AuditLogService with a temporary database."""
    return AuditLogService(temp_db)


@pytest.fixture
def mailer():
    """A mailer that records messages."""
    return FakeMailer()


@pytest.fixture
def email_settings(temp_db, airline_service, admin):
    """Store a configured sender account."""
    settings = EmailSettings(sender_address="groups@example.com", app_password="secret")
    airline_service.save_email_settings(admin, settings)
    return settings


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def cli_obj(clock, mailer):
    """Context object injecting the fixed clock and fake mailer into the CLI."""
    return {"clock": clock, "mailer_factory": lambda settings: mailer}
