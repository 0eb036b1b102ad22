"""Configuration - Settings read from the environment."""

import os
from dataclasses import dataclass, field
from typing import Mapping

from .firestore_client import FirestoreConfig


DEFAULT_ALLOWED_ORIGINS = ["http://localhost:5173"]


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    return float(raw) if raw else default


@dataclass
class AppConfig:
    """Runtime configuration for the tracker service.

    Attributes:
        firestore: Firestore project/database
        storage_backend: "firestore" or "memory"
        storage_timeout: Seconds allowed per store call
        lookup_timeout: Seconds allowed per nutrition provider call
        max_write_attempts: Find-or-create attempts for a contended day
        default_weight_kg: Body weight for MET estimates when the user has none
        edamam_app_id / edamam_app_key: Edamam credentials (optional)
        nutritionix_app_id / nutritionix_api_key: Nutritionix credentials (optional)
        allowed_origins: CORS origins for the web frontend
    """

    firestore: FirestoreConfig = field(default_factory=FirestoreConfig)
    storage_backend: str = "firestore"
    storage_timeout: float = 5.0
    lookup_timeout: float = 5.0
    max_write_attempts: int = 3
    default_weight_kg: float = 70.0
    edamam_app_id: str | None = None
    edamam_app_key: str | None = None
    nutritionix_app_id: str | None = None
    nutritionix_api_key: str | None = None
    allowed_origins: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "AppConfig":
        """Build configuration from environment variables."""
        env = os.environ if env is None else env
        origins = env.get("LIFELOG_ALLOWED_ORIGINS")

        return cls(
            firestore=FirestoreConfig(
                project_id=env.get("FIRESTORE_PROJECT") or None,
                database=env.get("FIRESTORE_DATABASE", "lifelog"),
            ),
            storage_backend=env.get("LIFELOG_STORAGE", "firestore").lower(),
            storage_timeout=_float(env, "LIFELOG_STORAGE_TIMEOUT", 5.0),
            lookup_timeout=_float(env, "LIFELOG_LOOKUP_TIMEOUT", 5.0),
            max_write_attempts=int(env.get("LIFELOG_MAX_WRITE_ATTEMPTS") or 3),
            default_weight_kg=_float(env, "LIFELOG_DEFAULT_WEIGHT_KG", 70.0),
            edamam_app_id=env.get("EDAMAM_APP_ID") or None,
            edamam_app_key=env.get("EDAMAM_APP_KEY") or None,
            nutritionix_app_id=env.get("NUTRITIONIX_APP_ID") or None,
            nutritionix_api_key=env.get("NUTRITIONIX_API_KEY") or None,
            allowed_origins=(
                [o.strip() for o in origins.split(",") if o.strip()]
                if origins
                else list(DEFAULT_ALLOWED_ORIGINS)
            ),
        )
