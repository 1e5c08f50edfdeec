"""Utility for resolving a PNR or reservation ID to a reservation ID."""

from grouptrack.domain.entities import UserAccount
from grouptrack.domain.errors import ConflictError, NotFoundError
from grouptrack.domain.reservation import ReservationService


def resolve_reservation(service: ReservationService, user: UserAccount, reference: str) -> str:
    """Resolve a reservation ID or PNR to a reservation ID.

    PNRs are not guaranteed unique, so a PNR shared by several visible
    reservations must be disambiguated by ID.

    Args:
        service: ReservationService instance
        user: Acting user (only visible reservations are considered)
        reference: Reservation ID or PNR

    Returns:
        Reservation ID

    Raises:
        NotFoundError: If nothing matches
        ConflictError: If the PNR matches more than one reservation
    """
    reference = reference.strip()
    record = service.get_reservation(user, reference)
    if record is not None:
        return record.id

    matches = service.find_by_pnr(user, reference)
    if not matches:
        raise NotFoundError(f"Reservation '{reference}' not found")
    if len(matches) > 1:
        ids = ", ".join(m.id for m in matches)
        raise ConflictError(f"PNR '{reference.upper()}' matches several reservations ({ids}); use the ID")
    return matches[0].id
