"""Abstract mail transport."""

from abc import ABC, abstractmethod

from grouptrack.domain.entities import SendResult


class Mailer(ABC):
    """Outbound mail collaborator used by reminder dispatch."""

    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> SendResult:
        """Send one plain-text message.

        Returns:
            SendResult; transport failures are reported, not raised
        """
        pass

    @abstractmethod
    def verify(self) -> SendResult:
        """Check that the transport accepts our credentials."""
        pass
