"""Upsert Coordinator - Find-or-create, merge, recompute, persist.

The coordinator is the only write path for day entries. It owns the merge
policy (append vs replace) and always runs the aggregator right before the
store is called, so persisted totals match the persisted sub-records.

The coordinator does no I/O of its own; it awaits the injected store.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Optional, Protocol, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .aggregator import recompute
from .errors import (
    DuplicateKeyError,
    EntryValidationError,
    RecordNotFoundError,
    StorageUnavailableError,
    WriteConflictError,
)
from .models import DAY_MODELS, RECORD_MODELS, DayEntry, Domain, FoodDay, MealSlot


logger = logging.getLogger(__name__)

T = TypeVar("T")

DateInput = Union[date, datetime, str, None]


class MergeMode(str, Enum):
    """How incoming sub-records combine with the stored list.

    APPEND adds to the existing list (used by "add one item" actions).
    REPLACE swaps the list wholesale (used by "set the whole day" actions).
    """

    APPEND = "append"
    REPLACE = "replace"


class DayEntryStore(Protocol):
    """Persistence contract for day entries.

    Implementations must enforce uniqueness of (domain, user_id, log_date).
    """

    async def find_one(self, domain: Domain, user_id: str, log_date: date) -> Optional[DayEntry]: ...

    async def create(self, entry: DayEntry) -> DayEntry:
        """Insert a new entry. Raises DuplicateKeyError if the key exists."""
        ...

    async def save(self, entry: DayEntry) -> DayEntry: ...

    async def find_range(self, domain: Domain, user_id: str, start: date, end: date) -> list[DayEntry]: ...

    async def delete(self, domain: Domain, user_id: str, log_date: date) -> bool: ...

    async def delete_before(self, domain: Domain, user_id: str, cutoff: date) -> int: ...


@dataclass
class DayUpdate:
    """An incoming partial update for one day.

    Attributes:
        log_date: Target day; time of day is ignored
        records: Sub-records to merge (food items, exercises or sessions).
            None leaves the stored list untouched; an empty list with
            REPLACE clears it.
        slot: Meal slot, required when food records are given
        fields: Scalar fields to set directly (notes, water_intake, ...)
        mode: Merge policy for `records`
    """

    log_date: DateInput
    records: Optional[Sequence[BaseModel]] = None
    slot: Optional[MealSlot] = None
    fields: dict[str, Any] = field(default_factory=dict)
    mode: MergeMode = MergeMode.APPEND


def normalize_date(value: DateInput) -> date:
    """Reduce a date, datetime or ISO string to its calendar day.

    The calendar day is taken as written; time of day and offset are dropped.

    Raises:
        EntryValidationError: If the value is missing or unparseable
    """
    if value is None or value == "":
        raise EntryValidationError("date is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            raise EntryValidationError(f"Invalid date: {value!r}. Use YYYY-MM-DD.") from None
    raise EntryValidationError(f"Invalid date type: {type(value).__name__}")


class KeyedLocks:
    """One asyncio.Lock per key, dropped again once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class UpsertCoordinator:
    """Write path for day entries of all three domains.

    Writes to the same (domain, user, date) key are serialized inside this
    process. Concurrent creation from other processes is resolved by the
    store's uniqueness constraint: a DuplicateKeyError triggers a re-fetch
    and a second merge against the winner's document.
    """

    def __init__(
        self,
        store: DayEntryStore,
        *,
        storage_timeout: Optional[float] = 5.0,
        max_attempts: int = 3,
        serialize_writes: bool = True,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Day entry persistence
            storage_timeout: Seconds before a store call counts as failed (None disables)
            max_attempts: Find-or-create attempts before giving up on a contended key
            serialize_writes: Hold a per-key lock for the whole read-merge-write
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.storage_timeout = storage_timeout
        self.max_attempts = max_attempts
        self.serialize_writes = serialize_writes
        self._locks = KeyedLocks()

    # ==================== Store access ====================

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            if self.storage_timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, self.storage_timeout)
        except asyncio.TimeoutError:
            logger.error("Store %s timed out after %.1fs", operation, self.storage_timeout)
            raise StorageUnavailableError(f"Storage {operation} timed out") from None

    @asynccontextmanager
    async def _guard(self, domain: Domain, user_id: str, log_date: date) -> AsyncIterator[None]:
        if not self.serialize_writes:
            yield
            return
        async with self._locks.hold((domain, user_id, log_date)):
            yield

    async def get_day(self, domain: Domain, user_id: str, log_date: DateInput) -> Optional[DayEntry]:
        day = normalize_date(log_date)
        return await self._call("find_one", self.store.find_one(Domain(domain), user_id, day))

    async def get_range(self, domain: Domain, user_id: str, start: DateInput, end: DateInput) -> list[DayEntry]:
        """Day entries with start <= log_date <= end, ordered by date."""
        return await self._call(
            "find_range",
            self.store.find_range(Domain(domain), user_id, normalize_date(start), normalize_date(end)),
        )

    # ==================== Writes ====================

    async def upsert(self, domain: Domain, user_id: str, update: DayUpdate) -> DayEntry:
        """Merge `update` into the day entry for (user_id, update.log_date).

        Creates the entry when it does not exist yet.

        Raises:
            EntryValidationError: Bad date, records or fields. Nothing is written.
            WriteConflictError: The key stayed contended for every attempt
            StorageUnavailableError: The store failed or timed out
        """
        domain = Domain(domain)
        log_date = normalize_date(update.log_date)
        self._check_update(domain, update)

        def mutate(entry: DayEntry) -> None:
            self._merge(entry, update)

        return await self.apply(domain, user_id, log_date, mutate, create_missing=True)

    async def remove_record(
        self,
        domain: Domain,
        user_id: str,
        log_date: DateInput,
        record_id: str,
        slot: Optional[MealSlot] = None,
    ) -> DayEntry:
        """Remove one sub-record by id and recompute the day.

        Raises:
            RecordNotFoundError: If the day or the record does not exist
        """
        domain = Domain(domain)
        if domain is Domain.FOOD and slot is None:
            raise EntryValidationError("meal slot is required to remove a food item")

        def mutate(entry: DayEntry) -> None:
            records = self._record_list(entry, slot)
            kept = [r for r in records if getattr(r, "id", None) != record_id]
            if len(kept) == len(records):
                raise RecordNotFoundError(f"Record not found: {record_id}")
            self._set_record_list(entry, slot, kept)

        return await self.apply(domain, user_id, normalize_date(log_date), mutate, create_missing=False)

    async def delete_day(self, domain: Domain, user_id: str, log_date: DateInput) -> bool:
        domain = Domain(domain)
        day = normalize_date(log_date)
        async with self._guard(domain, user_id, day):
            deleted = await self._call("delete", self.store.delete(domain, user_id, day))
        logger.info("Deleted %s day %s for %s: %s", domain.value, day, user_id[:8], deleted)
        return deleted

    async def delete_before(self, domain: Domain, user_id: str, cutoff: DateInput) -> int:
        """Delete every day entry strictly before `cutoff`."""
        domain = Domain(domain)
        day = normalize_date(cutoff)
        count = await self._call("delete_before", self.store.delete_before(domain, user_id, day))
        logger.info("Cleaned up %d %s days before %s for %s", count, domain.value, day, user_id[:8])
        return count

    async def apply(
        self,
        domain: Domain,
        user_id: str,
        log_date: date,
        mutate: Callable[[DayEntry], None],
        *,
        create_missing: bool,
    ) -> DayEntry:
        """Run the read-mutate-recompute-write cycle for one key.

        `mutate` may raise to abort; nothing is persisted in that case.
        """
        async with self._guard(domain, user_id, log_date):
            for attempt in range(1, self.max_attempts + 1):
                existing = await self._call("find_one", self.store.find_one(domain, user_id, log_date))

                if existing is None and not create_missing:
                    raise RecordNotFoundError(f"No {domain.value} entry for {log_date.isoformat()}")

                entry = existing if existing is not None else DAY_MODELS[domain].new(user_id, log_date)
                self._mutate(entry, mutate)
                recompute(entry)

                if existing is not None:
                    entry.updated_at = datetime.now(timezone.utc)
                    saved = await self._call("save", self.store.save(entry))
                    logger.info("Updated %s day %s for %s", domain.value, log_date, user_id[:8])
                    return saved

                try:
                    created = await self._call("create", self.store.create(entry))
                except DuplicateKeyError:
                    logger.warning(
                        "Concurrent create of %s day %s for %s (attempt %d/%d), re-fetching",
                        domain.value, log_date, user_id[:8], attempt, self.max_attempts,
                    )
                    continue
                logger.info("Created %s day %s for %s", domain.value, log_date, user_id[:8])
                return created

        raise WriteConflictError(
            f"Could not write {domain.value} entry for {log_date.isoformat()} after {self.max_attempts} attempts"
        )

    # ==================== Merge helpers ====================

    @staticmethod
    def _mutate(entry: DayEntry, mutate: Callable[[DayEntry], None]) -> None:
        try:
            mutate(entry)
        except ValidationError as e:
            raise EntryValidationError(str(e)) from e

    @staticmethod
    def _check_update(domain: Domain, update: DayUpdate) -> None:
        record_type = RECORD_MODELS[domain]
        for record in update.records or ():
            if not isinstance(record, record_type):
                raise EntryValidationError(
                    f"{domain.value} entries take {record_type.__name__} records, got {type(record).__name__}"
                )

        if domain is Domain.FOOD:
            if update.records is not None and update.slot is None:
                raise EntryValidationError("meal slot is required when logging food items")
        elif update.slot is not None:
            raise EntryValidationError(f"{domain.value} entries have no meal slots")

        unknown = set(update.fields) - DAY_MODELS[domain].scalar_fields
        if unknown:
            raise EntryValidationError(
                f"Cannot set {', '.join(sorted(unknown))} on a {domain.value} entry"
            )

    def _merge(self, entry: DayEntry, update: DayUpdate) -> None:
        if update.records is not None:
            # Copies, so recomputed fields never leak into the caller's objects
            records = [r.model_copy(deep=True) for r in update.records]
            if update.mode is MergeMode.APPEND:
                records = self._record_list(entry, update.slot) + records
            self._set_record_list(entry, update.slot, records)

        for name, value in update.fields.items():
            setattr(entry, name, value)

    @staticmethod
    def _record_list(entry: DayEntry, slot: Optional[MealSlot]) -> list:
        if isinstance(entry, FoodDay):
            return list(entry.meal(slot).items)
        return list(entry.records())

    @staticmethod
    def _set_record_list(entry: DayEntry, slot: Optional[MealSlot], records: list) -> None:
        if isinstance(entry, FoodDay):
            entry.meal(slot).items = records
        elif entry.domain is Domain.WORKOUT:
            entry.exercises = records
        else:
            entry.sessions = records
