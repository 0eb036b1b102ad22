"""Authentication - API key generation and validation.

Handles API key creation, hashing, and validation. Never stores plaintext keys.
The hashed key doubles as the user id under which all day entries are stored.
"""

import hashlib
import logging
import secrets
from contextvars import ContextVar
from typing import Protocol

from ..core.errors import LifeLogError
from ..core.models import User, UserGoals


logger = logging.getLogger(__name__)

# API key prefix for identification
API_KEY_PREFIX = "lfl_"

# Authenticated user for the current request (set by the auth middleware)
current_user_id: ContextVar[str | None] = ContextVar("current_user_id", default=None)


class NotAuthenticatedError(LifeLogError):
    """No valid API key accompanied the request."""


class UserRepository(Protocol):
    async def get_user(self, user_id: str) -> User | None: ...

    async def save_user(self, user_id: str, user: User) -> User: ...


def generate_api_key() -> str:
    """Generate a cryptographically secure API key.

    Returns:
        API key in format: lfl_<random_chars>
    """
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


def hash_api_key(api_key: str) -> str:
    """Hash an API key to create a user_id.

    SHA256, truncated to 32 hex chars so it fits a Firestore document ID.

    Args:
        api_key: The plaintext API key

    Returns:
        32-character hash to use as user_id
    """
    return hashlib.sha256(api_key.encode()).hexdigest()[:32]


def validate_api_key_format(api_key: str | None) -> bool:
    """Check if API key has valid format."""
    if not api_key or not api_key.startswith(API_KEY_PREFIX):
        return False
    # prefix + at least some random chars
    return len(api_key) >= 40


def get_user_id() -> str:
    """Get current authenticated user ID.

    Raises:
        NotAuthenticatedError: If no user is authenticated
    """
    user_id = current_user_id.get()
    if user_id is None:
        raise NotAuthenticatedError("No authenticated user. Ensure API key is provided.")
    return user_id


class AuthClient:
    """User registration, API key validation and profile updates."""

    def __init__(self, users: UserRepository) -> None:
        """Initialize auth client.

        Args:
            users: Where user records are kept (Firestore or in-memory store)
        """
        self._users = users

    async def register_user(
        self,
        email: str,
        name: str | None = None,
        weight_kg: float | None = None,
        goals: UserGoals | None = None,
    ) -> tuple[str, str]:
        """Register a new user and generate their API key.

        Returns:
            Tuple of (api_key, user_id) - api_key is only returned once!
        """
        logger.info("Registering new user: %s", email)

        api_key = generate_api_key()
        user_id = hash_api_key(api_key)
        user = User(
            email=email.lower(),
            name=name,
            api_key_hash=user_id,
            weight_kg=weight_kg,
            goals=goals or UserGoals(),
        )
        await self._users.save_user(user_id, user)

        logger.info("User registered successfully: %s", user_id[:8])
        return api_key, user_id

    async def validate_api_key(self, api_key: str) -> str | None:
        """Validate an API key and return the user_id if valid.

        Lookup failures count as invalid.
        """
        if not validate_api_key_format(api_key):
            logger.warning("Invalid API key format")
            return None

        user_id = hash_api_key(api_key)
        if await self.user_exists(user_id):
            logger.debug("API key validated for user: %s", user_id[:8])
            return user_id
        logger.warning("API key not found in database")
        return None

    async def get_user(self, user_id: str) -> User | None:
        return await self._users.get_user(user_id)

    async def user_exists(self, user_id: str) -> bool:
        try:
            return await self._users.get_user(user_id) is not None
        except LifeLogError as e:
            logger.error("Error checking user %s: %s", user_id[:8], str(e))
            return False

    async def update_profile(
        self,
        user_id: str,
        goals: UserGoals | None = None,
        weight_kg: float | None = None,
    ) -> User | None:
        """Update goals and/or body weight. Returns None for unknown users."""
        user = await self._users.get_user(user_id)
        if user is None:
            return None

        updates: dict = {}
        if goals is not None:
            updates["goals"] = goals
        if weight_kg is not None:
            updates["weight_kg"] = weight_kg
        if not updates:
            return user

        user = User.model_validate({**user.model_dump(), **updates})
        await self._users.save_user(user_id, user)
        logger.info("Updated profile for user: %s", user_id[:8])
        return user
