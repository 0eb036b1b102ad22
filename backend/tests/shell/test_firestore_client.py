"""Tests for the Firestore client with a mocked AsyncClient."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from lifelog.core.errors import DuplicateKeyError, StorageUnavailableError
from lifelog.core.models import Domain, FoodDay, FoodItem, StudyDay, User
from lifelog.shell.firestore_client import COLLECTIONS, FirestoreConfig, LifeLogFirestoreClient


USER = "user1234abcd"
DAY = date(2024, 3, 11)


def snapshot(data=None):
    doc = MagicMock()
    doc.exists = data is not None
    doc.to_dict.return_value = data
    return doc


def stream_of(*docs):
    async def stream():
        for doc in docs:
            yield doc

    return stream


@pytest.fixture
def mock_client():
    return MagicMock()


@pytest.fixture
def db(mock_client):
    client = LifeLogFirestoreClient(FirestoreConfig(database="lifelog"))
    client._client = mock_client
    return client


@pytest.fixture
def day_ref(mock_client):
    """The document reference for any day entry."""
    ref = MagicMock()
    ref.get = AsyncMock(return_value=snapshot())
    ref.create = AsyncMock()
    ref.set = AsyncMock()
    ref.delete = AsyncMock()
    user_ref = mock_client.collection.return_value.document.return_value
    user_ref.collection.return_value.document.return_value = ref
    return ref


class TestDayEntries:
    """Tests for day entry operations."""

    @pytest.mark.asyncio
    async def test_document_path(self, db, mock_client, day_ref):
        """Entries live at users/{uid}/{domain}_logs/{date}."""
        await db.find_one(Domain.WORKOUT, USER, DAY)

        mock_client.collection.assert_called_with("users")
        mock_client.collection.return_value.document.assert_called_with(USER)
        user_ref = mock_client.collection.return_value.document.return_value
        user_ref.collection.assert_called_with(COLLECTIONS[Domain.WORKOUT])
        user_ref.collection.return_value.document.assert_called_with("2024-03-11")

    @pytest.mark.asyncio
    async def test_find_one_missing(self, db, day_ref):
        assert await db.find_one(Domain.FOOD, USER, DAY) is None

    @pytest.mark.asyncio
    async def test_find_one_parses_document(self, db, day_ref):
        stored = FoodDay.new(USER, DAY)
        stored.lunch.items = [FoodItem(name="Soup", calories=200)]
        day_ref.get.return_value = snapshot(stored.model_dump(mode="json"))

        found = await db.find_one(Domain.FOOD, USER, DAY)

        assert isinstance(found, FoodDay)
        assert found.log_date == DAY
        assert found.lunch.items[0].name == "Soup"

    @pytest.mark.asyncio
    async def test_create_stores_json(self, db, day_ref):
        entry = StudyDay.new(USER, DAY)

        await db.create(entry)

        data = day_ref.create.await_args.args[0]
        assert data["log_date"] == "2024-03-11"
        assert data["user_id"] == USER

    @pytest.mark.asyncio
    async def test_create_existing_is_duplicate(self, db, day_ref):
        day_ref.create.side_effect = google_exceptions.AlreadyExists("exists")
        with pytest.raises(DuplicateKeyError):
            await db.create(StudyDay.new(USER, DAY))

    @pytest.mark.asyncio
    async def test_api_error_is_storage_unavailable(self, db, day_ref):
        day_ref.set.side_effect = google_exceptions.ServiceUnavailable("down")
        with pytest.raises(StorageUnavailableError):
            await db.save(StudyDay.new(USER, DAY))

    @pytest.mark.asyncio
    async def test_find_range(self, db, mock_client):
        logs_ref = mock_client.collection.return_value.document.return_value.collection.return_value
        query = logs_ref.where.return_value.where.return_value.order_by.return_value
        query.stream = stream_of(
            snapshot(StudyDay.new(USER, date(2024, 3, 11)).model_dump(mode="json")),
            snapshot(StudyDay.new(USER, date(2024, 3, 12)).model_dump(mode="json")),
        )

        found = await db.find_range(Domain.STUDY, USER, date(2024, 3, 11), date(2024, 3, 17))

        assert [e.log_date for e in found] == [date(2024, 3, 11), date(2024, 3, 12)]
        logs_ref.where.assert_called_with("log_date", ">=", "2024-03-11")
        logs_ref.where.return_value.where.assert_called_with("log_date", "<=", "2024-03-17")

    @pytest.mark.asyncio
    async def test_delete(self, db, day_ref):
        assert await db.delete(Domain.FOOD, USER, DAY) is False
        day_ref.delete.assert_not_awaited()

        day_ref.get.return_value = snapshot(FoodDay.new(USER, DAY).model_dump(mode="json"))
        assert await db.delete(Domain.FOOD, USER, DAY) is True
        day_ref.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_before(self, db, mock_client):
        logs_ref = mock_client.collection.return_value.document.return_value.collection.return_value
        docs = [MagicMock(), MagicMock()]
        for doc in docs:
            doc.reference.delete = AsyncMock()
        logs_ref.where.return_value.stream = stream_of(*docs)

        deleted = await db.delete_before(Domain.FOOD, USER, DAY)

        assert deleted == 2
        logs_ref.where.assert_called_with("log_date", "<", "2024-03-11")
        for doc in docs:
            doc.reference.delete.assert_awaited_once()


class TestUsers:
    """Tests for user operations."""

    @pytest.mark.asyncio
    async def test_get_user_missing(self, db, mock_client):
        user_ref = mock_client.collection.return_value.document.return_value
        user_ref.get = AsyncMock(return_value=snapshot())
        assert await db.get_user(USER) is None

    @pytest.mark.asyncio
    async def test_save_and_get_user(self, db, mock_client):
        user_ref = mock_client.collection.return_value.document.return_value
        user_ref.set = AsyncMock()
        user = User(email="a@b.com", api_key_hash=USER, weight_kg=72)

        await db.save_user(USER, user)
        stored = user_ref.set.await_args.args[0]
        user_ref.get = AsyncMock(return_value=snapshot(stored))

        assert (await db.get_user(USER)).weight_kg == 72
