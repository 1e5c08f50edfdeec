"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as a stale version stamp or a duplicate name."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class PermissionDeniedError(DomainError):
    """The acting user lacks the role or airline access for an operation."""


class AuthenticationError(DomainError):
    """Username or password did not match a stored account."""


class StorageError(DomainError):
    """The persistence gateway failed to read or write a key.

    Raised instead of falling back to defaults so that a transient failure
    never overwrites stored data.
    """


def reservation_not_found(reservation_id: str) -> str:
    """Return message for missing reservation."""
    return f"Reservation {reservation_id} not found"


def airline_not_found(code: str) -> str:
    """Return message for an airline missing from the directory."""
    return f"Airline '{code}' not found"


def user_not_found(username: str) -> str:
    """Return message for missing user account."""
    return f"User '{username}' not found"


def stale_version(reservation_id: str, expected: int, actual: int) -> str:
    """Return message when an edit was based on an outdated record."""
    return (
        f"Reservation {reservation_id} was modified by someone else "
        f"(expected version {expected}, found {actual}). Reload and try again."
    )


def airline_delete_blocked(code: str, reservation_count: int) -> str:
    """Return message when an airline still has reservations."""
    return (
        f"Cannot remove airline {code}: it has {reservation_count} "
        f"reservation{'s' if reservation_count != 1 else ''}. "
        "Please reassign or delete them first."
    )


def role_required(role: str) -> str:
    """Return message for an operation above the caller's role."""
    return f"This action requires the {role} role"
