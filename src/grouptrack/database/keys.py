"""Storage keys of the named JSON blobs."""

RESERVATIONS = "reservations"
AUDIT_LOG = "audit_log"
AIRLINES = "airlines"
AIRLINE_CONFIGS = "airline_configs"
USERS = "users"
EMAIL_SETTINGS = "email_settings"
SENT_REMINDERS = "sent_reminders"
