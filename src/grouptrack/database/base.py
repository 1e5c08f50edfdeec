"""Abstract key-value database interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from grouptrack.domain.errors import StorageError


class StorageStatus(Enum):
    """Outcome of a read from the gateway."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class StorageResult:
    """Tagged result of ``Database.get``.

    A read failure is kept distinct from an absent key; ``unwrap`` only
    substitutes the default for NOT_FOUND.
    """

    key: str
    status: StorageStatus
    data: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def found(cls, key: str, data: Any) -> "StorageResult":
        return cls(key=key, status=StorageStatus.FOUND, data=data)

    @classmethod
    def not_found(cls, key: str) -> "StorageResult":
        return cls(key=key, status=StorageStatus.NOT_FOUND)

    @classmethod
    def failed(cls, key: str, error: BaseException) -> "StorageResult":
        return cls(key=key, status=StorageStatus.ERROR, error=error)

    @property
    def is_found(self) -> bool:
        return self.status is StorageStatus.FOUND

    @property
    def is_error(self) -> bool:
        return self.status is StorageStatus.ERROR

    def unwrap(self, default: Any = None) -> Any:
        """Return stored data, or ``default`` when the key is absent.

        Raises:
            StorageError: If the read failed
        """
        if self.status is StorageStatus.FOUND:
            return self.data
        if self.status is StorageStatus.NOT_FOUND:
            return default
        raise StorageError(f"Failed to read '{self.key}': {self.error}") from self.error


class Database(ABC):
    """Abstract database interface for grouptrack."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def get(self, key: str) -> StorageResult:
        """Read the JSON value stored under key."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under key.

        Raises:
            StorageError: If the write failed
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""
        pass

    @abstractmethod
    def list_keys(self) -> list[str]:
        """List all stored keys."""
        pass
