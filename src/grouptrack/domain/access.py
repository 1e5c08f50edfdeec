"""User accounts, authentication and the airline visibility boundary."""

import logging
import uuid
from dataclasses import replace
from typing import Iterable, Optional

import bcrypt

from grouptrack.database import keys
from grouptrack.database.base import Database
from grouptrack.database.mappers import user_to_domain, user_to_json
from grouptrack.domain.entities import UserAccount, UserRole
from grouptrack.domain.errors import (
    AuthenticationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    role_required,
    user_not_found,
)

logger = logging.getLogger(__name__)


class AccessPolicy:
    """Role and airline checks shared by every service."""

    @staticmethod
    def is_admin(user: UserAccount) -> bool:
        return user.role is UserRole.ADMIN

    @staticmethod
    def allowed_airlines(user: UserAccount, directory: Iterable[str]) -> set[str]:
        """Airlines the user may see; admins implicitly see the whole directory."""
        directory = set(directory)
        if AccessPolicy.is_admin(user):
            return directory
        return set(user.allowed_airlines) & directory

    @staticmethod
    def can_view(user: UserAccount, airline: str, directory: Iterable[str]) -> bool:
        return airline in AccessPolicy.allowed_airlines(user, directory)

    @staticmethod
    def require_role(user: UserAccount, role: UserRole) -> None:
        """Raise PermissionDeniedError unless user holds at least role."""
        if user.role.rank < role.rank:
            raise PermissionDeniedError(role_required(role.value))


def hash_password(password: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of password."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check password against a stored bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False


class UserService:
    """Service for managing staff accounts."""

    def __init__(self, db: Database, hash_rounds: int = 12):
        """Initialize user service.

        Args:
            db: Database instance
            hash_rounds: bcrypt cost factor for new password hashes
        """
        self.db = db
        self.hash_rounds = hash_rounds

    def _load(self) -> list[UserAccount]:
        return [user_to_domain(u) for u in self.db.get(keys.USERS).unwrap(default=[])]

    def _save(self, users: list[UserAccount]) -> None:
        self.db.set(keys.USERS, [user_to_json(u) for u in users])

    def list_users(self) -> list[UserAccount]:
        """List all users ordered by username."""
        return sorted(self._load(), key=lambda u: u.username.lower())

    def get_user(self, username: str) -> Optional[UserAccount]:
        """Get a user by username (case-insensitive)."""
        for user in self._load():
            if user.username.lower() == username.lower():
                return user
        return None

    def _require_user(self, username: str) -> UserAccount:
        user = self.get_user(username)
        if user is None:
            raise NotFoundError(user_not_found(username))
        return user

    def authenticate(self, username: str, password: str) -> UserAccount:
        """Return the account matching username and password.

        Raises:
            AuthenticationError: If no account matches
        """
        user = self.get_user(username or "")
        if user is None or not verify_password(password or "", user.password_hash):
            logger.info("Failed login for '%s'", username)
            raise AuthenticationError("Invalid username or password")
        return user

    def ensure_admin(self, username: str, password: str, airlines: Iterable[str] = ()) -> Optional[UserAccount]:
        """Create the first administrator if no users exist.

        Returns:
            The new admin, or None if users already exist
        """
        if self._load():
            return None
        admin = UserAccount(
            id=str(uuid.uuid4()),
            username=username,
            password_hash=hash_password(password, self.hash_rounds),
            role=UserRole.ADMIN,
            full_name="System Administrator",
            allowed_airlines=tuple(airlines),
        )
        self._save([admin])
        logger.info("Created initial administrator '%s'", username)
        return admin

    def create_user(
        self,
        acting_user: UserAccount,
        username: str,
        password: str,
        role: UserRole = UserRole.VIEWER,
        full_name: str = "",
        allowed_airlines: Iterable[str] = (),
    ) -> UserAccount:
        """Create a user account.

        Raises:
            PermissionDeniedError: If acting_user is not an admin
            ValidationError: If username or password is empty
            ConflictError: If the username is taken
        """
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        username = username.strip()
        if not username or not password:
            raise ValidationError("Username and password are required")

        users = self._load()
        if any(u.username.lower() == username.lower() for u in users):
            raise ConflictError(f"User '{username}' already exists")

        user = UserAccount(
            id=str(uuid.uuid4()),
            username=username,
            password_hash=hash_password(password, self.hash_rounds),
            role=role,
            full_name=full_name,
            allowed_airlines=tuple(dict.fromkeys(a.upper() for a in allowed_airlines)),
        )
        users.append(user)
        self._save(users)
        return user

    def _replace_user(self, updated: UserAccount) -> UserAccount:
        users = [updated if u.id == updated.id else u for u in self._load()]
        self._save(users)
        return updated

    def delete_user(self, acting_user: UserAccount, username: str) -> None:
        """Delete a user. Admins cannot delete themselves or the last admin."""
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        target = self._require_user(username)
        if target.id == acting_user.id:
            raise DependencyError("You cannot delete your own account")

        users = self._load()
        if target.role is UserRole.ADMIN and sum(1 for u in users if u.role is UserRole.ADMIN) <= 1:
            raise DependencyError("Cannot delete the last administrator")
        self._save([u for u in users if u.id != target.id])

    def set_role(self, acting_user: UserAccount, username: str, role: UserRole) -> UserAccount:
        """Change a user's role."""
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        target = self._require_user(username)
        if target.role is UserRole.ADMIN and role is not UserRole.ADMIN:
            admins = [u for u in self._load() if u.role is UserRole.ADMIN]
            if len(admins) <= 1:
                raise DependencyError("Cannot demote the last administrator")
        return self._replace_user(replace(target, role=role))

    def grant_airline(self, acting_user: UserAccount, username: str, airline: str) -> UserAccount:
        """Add an airline to a user's allowed set."""
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        target = self._require_user(username)
        airline = airline.upper()
        if airline in target.allowed_airlines:
            return target
        return self._replace_user(replace(target, allowed_airlines=target.allowed_airlines + (airline,)))

    def revoke_airline(self, acting_user: UserAccount, username: str, airline: str) -> UserAccount:
        """Remove an airline from a user's allowed set."""
        AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        target = self._require_user(username)
        airline = airline.upper()
        remaining = tuple(a for a in target.allowed_airlines if a != airline)
        return self._replace_user(replace(target, allowed_airlines=remaining))

    def change_password(self, acting_user: UserAccount, username: str, new_password: str) -> None:
        """Set a new password. Users may change their own; admins anyone's."""
        target = self._require_user(username)
        if target.id != acting_user.id:
            AccessPolicy.require_role(acting_user, UserRole.ADMIN)
        if not new_password:
            raise ValidationError("Password cannot be empty")
        self._replace_user(replace(target, password_hash=hash_password(new_password, self.hash_rounds)))
