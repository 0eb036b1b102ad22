"""In-memory Store - Day entry persistence without a database.

Used for local development (LIFELOG_STORAGE=memory) and tests. Entries are
copied on the way in and out, so callers never share state with the store,
the same as with a real document database.
"""

import asyncio
import logging
from datetime import date

from ..core.errors import DuplicateKeyError
from ..core.models import DayEntry, Domain, User


logger = logging.getLogger(__name__)

_Key = tuple[Domain, str, date]


class InMemoryStore:
    """Dict-backed store for users and day entries.

    Day entries are keyed by (domain, user_id, log_date).

    Attributes:
        latency: Seconds each call sleeps before touching the data. A positive
            value lets concurrent callers interleave between read and write.
    """

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self._entries: dict[_Key, DayEntry] = {}
        self._users: dict[str, User] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def _pause(self) -> None:
        await asyncio.sleep(self.latency)

    @staticmethod
    def _key(entry: DayEntry) -> _Key:
        return entry.domain, entry.user_id, entry.log_date

    async def find_one(self, domain: Domain, user_id: str, log_date: date) -> DayEntry | None:
        await self._pause()
        entry = self._entries.get((domain, user_id, log_date))
        return entry.model_copy(deep=True) if entry is not None else None

    async def create(self, entry: DayEntry) -> DayEntry:
        await self._pause()
        key = self._key(entry)
        if key in self._entries:
            raise DuplicateKeyError(f"{entry.domain.value} entry for {entry.log_date} already exists")
        self._entries[key] = entry.model_copy(deep=True)
        return entry

    async def save(self, entry: DayEntry) -> DayEntry:
        await self._pause()
        self._entries[self._key(entry)] = entry.model_copy(deep=True)
        return entry

    async def find_range(self, domain: Domain, user_id: str, start: date, end: date) -> list[DayEntry]:
        await self._pause()
        found = [
            e.model_copy(deep=True)
            for (d, u, day), e in self._entries.items()
            if d == domain and u == user_id and start <= day <= end
        ]
        return sorted(found, key=lambda e: e.log_date)

    async def delete(self, domain: Domain, user_id: str, log_date: date) -> bool:
        await self._pause()
        return self._entries.pop((domain, user_id, log_date), None) is not None

    async def delete_before(self, domain: Domain, user_id: str, cutoff: date) -> int:
        await self._pause()
        doomed = [k for k in self._entries if k[0] == domain and k[1] == user_id and k[2] < cutoff]
        for key in doomed:
            del self._entries[key]
        logger.debug("Removed %d %s entries before %s", len(doomed), domain.value, cutoff)
        return len(doomed)

    async def get_user(self, user_id: str) -> User | None:
        await self._pause()
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user is not None else None

    async def save_user(self, user_id: str, user: User) -> User:
        await self._pause()
        self._users[user_id] = user.model_copy(deep=True)
        return user
