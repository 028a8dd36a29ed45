from __future__ import annotations

import os
from dataclasses import dataclass

from backend.app.services.dedupe import DuplicatePolicy


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _ratio(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class Settings:
    app_env: str
    persistence_enabled: bool
    persistence_db_path: str
    database_url: str
    auth_enabled: bool
    jwt_secret: str
    jwt_algorithm: str
    duplicate_inclusion_threshold: float
    duplicate_review_threshold: float
    duplicate_block_threshold: float

    def duplicate_policy(self) -> DuplicatePolicy:
        return DuplicatePolicy(
            inclusion_threshold=self.duplicate_inclusion_threshold,
            review_threshold=self.duplicate_review_threshold,
            block_threshold=self.duplicate_block_threshold,
        )


def load_settings() -> Settings:
    persistence_db_path = os.getenv("PERSISTENCE_DB_PATH", "data/family_tree.sqlite3").strip()
    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        database_url = f"sqlite:///{persistence_db_path.replace(chr(92), '/')}"
    return Settings(
        app_env=os.getenv("APP_ENV", "development"),
        persistence_enabled=_bool_env("PERSISTENCE_ENABLED", True),
        persistence_db_path=persistence_db_path,
        database_url=database_url,
        auth_enabled=_bool_env("AUTH_ENABLED", False),
        jwt_secret=os.getenv("JWT_SECRET", "dev-only-secret-change-in-prod").strip(),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256").strip(),
        duplicate_inclusion_threshold=_ratio(_float_env("DUPLICATE_INCLUSION_THRESHOLD", 0.3)),
        duplicate_review_threshold=_ratio(_float_env("DUPLICATE_REVIEW_THRESHOLD", 0.8)),
        duplicate_block_threshold=_ratio(_float_env("DUPLICATE_BLOCK_THRESHOLD", 0.9)),
    )
