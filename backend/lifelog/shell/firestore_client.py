"""Firestore Client - Persistence for day entries.

This module handles all database I/O for the three tracking domains.
All I/O is contained here; business logic is in the core module.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterator

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from ..core.errors import DuplicateKeyError, StorageUnavailableError
from ..core.models import DAY_MODELS, DayEntry, Domain, User


logger = logging.getLogger(__name__)

COLLECTIONS: dict[Domain, str] = {
    Domain.FOOD: "food_logs",
    Domain.WORKOUT: "workout_logs",
    Domain.STUDY: "study_logs",
}


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Translate Google API errors into core storage errors."""
    try:
        yield
    except google_exceptions.AlreadyExists as e:
        raise DuplicateKeyError(str(e)) from e
    except google_exceptions.GoogleAPIError as e:
        logger.error("Firestore %s failed: %s", operation, str(e))
        raise StorageUnavailableError(f"Storage {operation} failed") from e


class LifeLogFirestoreClient:
    """User and day entry store backed by Firestore.

    Document structure per user:
        users/{user_id}: { email, name, api_key_hash, weight_kg, goals }
        users/{user_id}/
            food_logs/{YYYY-MM-DD}: { log_date, breakfast: {...}, ..., total_day_calories }
            workout_logs/{YYYY-MM-DD}: { log_date, exercises: [...], ... }
            study_logs/{YYYY-MM-DD}: { log_date, sessions: [...], ... }

    The date is the document id, so Firestore itself keeps (user, date)
    unique per domain: `create()` on an existing id fails with AlreadyExists.
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.AsyncClient | None = None

    @property
    def client(self) -> firestore.AsyncClient:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.AsyncClient(**kwargs)
        return self._client

    def _user_ref(self, user_id: str) -> firestore.AsyncDocumentReference:
        """Get reference to user document."""
        return self.client.collection("users").document(user_id)

    def _logs_ref(self, domain: Domain, user_id: str) -> firestore.AsyncCollectionReference:
        return self._user_ref(user_id).collection(COLLECTIONS[domain])

    def _day_ref(self, domain: Domain, user_id: str, log_date: date) -> firestore.AsyncDocumentReference:
        """Get reference to a day entry document."""
        return self._logs_ref(domain, user_id).document(log_date.isoformat())

    @staticmethod
    def _to_document(entry: DayEntry) -> dict[str, Any]:
        # Firestore has no date type; ISO strings keep range queries ordered
        return entry.model_dump(mode="json")

    @staticmethod
    def _from_document(domain: Domain, data: dict[str, Any]) -> DayEntry:
        return DAY_MODELS[domain].model_validate(data)

    # ==================== User Operations ====================

    async def get_user(self, user_id: str) -> User | None:
        """Fetch a user record.

        Args:
            user_id: The user's ID (hashed API key)

        Returns:
            User if found, None otherwise
        """
        logger.debug("Fetching user: %s", user_id[:8])
        with _storage_errors("get_user"):
            doc = await self._user_ref(user_id).get()
        if not doc.exists:
            return None
        return User.model_validate(doc.to_dict())

    async def save_user(self, user_id: str, user: User) -> User:
        logger.info("Saving user: %s", user_id[:8])
        with _storage_errors("save_user"):
            await self._user_ref(user_id).set(user.model_dump(mode="json"))
        return user

    # ==================== Day Entry Operations ====================

    async def find_one(self, domain: Domain, user_id: str, log_date: date) -> DayEntry | None:
        """Fetch one day entry.

        Args:
            domain: Tracking domain
            user_id: The user's ID
            log_date: Calendar day

        Returns:
            The entry if found, None otherwise
        """
        logger.debug("Fetching %s log for %s on %s", domain.value, user_id[:8], log_date)
        with _storage_errors("find_one"):
            doc = await self._day_ref(domain, user_id, log_date).get()
        if not doc.exists:
            return None
        return self._from_document(domain, doc.to_dict())

    async def create(self, entry: DayEntry) -> DayEntry:
        """Create a day entry.

        Raises:
            DuplicateKeyError: If a document for the same day exists
        """
        logger.info("Creating %s log for %s on %s", entry.domain.value, entry.user_id[:8], entry.log_date)
        with _storage_errors("create"):
            await self._day_ref(entry.domain, entry.user_id, entry.log_date).create(self._to_document(entry))
        return entry

    async def save(self, entry: DayEntry) -> DayEntry:
        """Overwrite a day entry with its current state."""
        logger.info("Saving %s log for %s on %s", entry.domain.value, entry.user_id[:8], entry.log_date)
        with _storage_errors("save"):
            await self._day_ref(entry.domain, entry.user_id, entry.log_date).set(self._to_document(entry))
        return entry

    async def find_range(self, domain: Domain, user_id: str, start: date, end: date) -> list[DayEntry]:
        """Fetch day entries for a date range.

        Args:
            domain: Tracking domain
            user_id: The user's ID
            start: Start of range (inclusive)
            end: End of range (inclusive)

        Returns:
            Entries found, ordered by date (may be empty)
        """
        logger.debug(
            "Fetching %s logs for %s from %s to %s", domain.value, user_id[:8], start, end
        )
        query = (
            self._logs_ref(domain, user_id)
            .where("log_date", ">=", start.isoformat())
            .where("log_date", "<=", end.isoformat())
            .order_by("log_date")
        )

        entries: list[DayEntry] = []
        with _storage_errors("find_range"):
            async for doc in query.stream():
                entries.append(self._from_document(domain, doc.to_dict()))

        logger.debug("Found %d logs in range", len(entries))
        return entries

    async def delete(self, domain: Domain, user_id: str, log_date: date) -> bool:
        """Delete one day entry.

        Returns:
            True if a document was deleted, False if none existed
        """
        ref = self._day_ref(domain, user_id, log_date)
        with _storage_errors("delete"):
            doc = await ref.get()
            if not doc.exists:
                return False
            await ref.delete()
        return True

    async def delete_before(self, domain: Domain, user_id: str, cutoff: date) -> int:
        """Delete all day entries dated before `cutoff`.

        Returns:
            Number of documents deleted
        """
        query = self._logs_ref(domain, user_id).where("log_date", "<", cutoff.isoformat())
        deleted = 0
        with _storage_errors("delete_before"):
            async for doc in query.stream():
                await doc.reference.delete()
                deleted += 1
        return deleted
