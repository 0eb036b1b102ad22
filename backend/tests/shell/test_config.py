"""Tests for environment configuration and service wiring."""

from lifelog.shell.config import AppConfig
from lifelog.shell.memory_store import InMemoryStore
from lifelog.shell.nutrition import EdamamProvider
from lifelog.shell.tracker import build_tracker


class TestAppConfig:
    """Tests for AppConfig.from_env."""

    def test_defaults(self):
        config = AppConfig.from_env({})
        assert config.storage_backend == "firestore"
        assert config.firestore.database == "lifelog"
        assert config.firestore.project_id is None
        assert config.storage_timeout == 5.0
        assert config.max_write_attempts == 3
        assert config.default_weight_kg == 70.0
        assert config.allowed_origins == ["http://localhost:5173"]

    def test_overrides(self):
        config = AppConfig.from_env({
            "LIFELOG_STORAGE": "Memory",
            "FIRESTORE_PROJECT": "my-project",
            "LIFELOG_STORAGE_TIMEOUT": "2.5",
            "LIFELOG_MAX_WRITE_ATTEMPTS": "5",
            "LIFELOG_DEFAULT_WEIGHT_KG": "82",
            "LIFELOG_ALLOWED_ORIGINS": "https://lifelog.app, http://localhost:3000 ,",
        })
        assert config.storage_backend == "memory"
        assert config.firestore.project_id == "my-project"
        assert config.storage_timeout == 2.5
        assert config.max_write_attempts == 5
        assert config.default_weight_kg == 82
        assert config.allowed_origins == ["https://lifelog.app", "http://localhost:3000"]

    def test_blank_credentials_are_none(self):
        config = AppConfig.from_env({"EDAMAM_APP_ID": "", "NUTRITIONIX_API_KEY": ""})
        assert config.edamam_app_id is None
        assert config.nutritionix_api_key is None


class TestBuildTracker:
    """Tests for build_tracker."""

    def test_memory_backend(self):
        config = AppConfig.from_env({
            "LIFELOG_STORAGE": "memory",
            "LIFELOG_MAX_WRITE_ATTEMPTS": "4",
            "EDAMAM_APP_ID": "id",
            "EDAMAM_APP_KEY": "key",
        })

        tracker, auth = build_tracker(config)

        assert isinstance(tracker.coordinator.store, InMemoryStore)
        assert tracker.users is tracker.coordinator.store
        assert tracker.coordinator.max_attempts == 4
        assert [type(p) for p in tracker.lookup.providers] == [EdamamProvider]
