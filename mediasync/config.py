"""Configuration loading for mediasync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class SessionConfig:
    user_id: str | None = None
    guest: bool = False


@dataclass
class CacheConfig:
    """Configuration for the durable local cache."""

    db_path: str = "~/.mediasync/cache.db"


@dataclass
class RemoteConfig:
    """Configuration for the remote document store.

    An empty base_url keeps documents in process memory, which is enough for
    a single offline session.
    """

    base_url: str = ""
    api_token: str | None = None
    timeout_seconds: float = 30.0


@dataclass
class MetadataConfig:
    """Configuration for the TMDB metadata client."""

    base_url: str = "https://api.themoviedb.org/3"
    api_key: str = ""
    language: str = "en-US"
    timeout_seconds: float = 30.0


@dataclass
class NotificationsConfig:
    max_age_days: int = 30
    max_count: int = 150


@dataclass
class SmartSyncConfig:
    """Configuration for the smart sync scheduler."""

    enabled: bool = True
    interval_minutes: int = 60
    movie_interval_days: float = 30
    ended_interval_days: float = 30
    min_interval_hours: float = 24
    request_delay_seconds: float = 1.0
    max_retries: int = 2
    retry_delay_seconds: float = 2.0


@dataclass
class Config:
    session: SessionConfig = field(default_factory=SessionConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    smart_sync: SmartSyncConfig = field(default_factory=SmartSyncConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with MEDIASYNC_ prefix."""
    return os.environ.get(f"MEDIASYNC_{key}", default)


def _is_true(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Session overrides
    if user_id := _get_env("USER_ID"):
        config.session.user_id = user_id
    if guest := _get_env("GUEST"):
        config.session.guest = _is_true(guest)

    # Cache overrides
    if db_path := _get_env("CACHE_DB_PATH"):
        config.cache.db_path = db_path

    # Remote overrides
    if base_url := _get_env("REMOTE_URL"):
        config.remote.base_url = base_url
    if token := _get_env("REMOTE_TOKEN"):
        config.remote.api_token = token

    # Metadata overrides
    if api_key := _get_env("TMDB_API_KEY"):
        config.metadata.api_key = api_key
    if tmdb_url := _get_env("TMDB_URL"):
        config.metadata.base_url = tmdb_url
    if language := _get_env("TMDB_LANGUAGE"):
        config.metadata.language = language

    # Smart sync overrides
    if enabled := _get_env("SMART_SYNC_ENABLED"):
        config.smart_sync.enabled = _is_true(enabled)
    if interval := _get_env("SMART_SYNC_INTERVAL"):
        config.smart_sync.interval_minutes = int(interval)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse session config
            if "session" in data:
                session_data = data["session"]
                config.session = SessionConfig(
                    user_id=session_data.get("user_id", config.session.user_id),
                    guest=session_data.get("guest", config.session.guest),
                )

            # Parse cache config
            if "cache" in data:
                config.cache = CacheConfig(
                    db_path=data["cache"].get("db_path", config.cache.db_path)
                )

            # Parse remote config
            if "remote" in data:
                remote_data = data["remote"]
                config.remote = RemoteConfig(
                    base_url=remote_data.get("base_url", config.remote.base_url),
                    api_token=remote_data.get("api_token"),
                    timeout_seconds=remote_data.get(
                        "timeout_seconds", config.remote.timeout_seconds
                    ),
                )

            # Parse metadata config
            if "metadata" in data:
                meta_data = data["metadata"]
                config.metadata = MetadataConfig(
                    base_url=meta_data.get("base_url", config.metadata.base_url),
                    api_key=meta_data.get("api_key", config.metadata.api_key),
                    language=meta_data.get("language", config.metadata.language),
                    timeout_seconds=meta_data.get(
                        "timeout_seconds", config.metadata.timeout_seconds
                    ),
                )

            # Parse notifications config
            if "notifications" in data:
                notif_data = data["notifications"]
                config.notifications = NotificationsConfig(
                    max_age_days=notif_data.get(
                        "max_age_days", config.notifications.max_age_days
                    ),
                    max_count=notif_data.get("max_count", config.notifications.max_count),
                )

            # Parse smart sync config
            if "smart_sync" in data:
                sync_data = data["smart_sync"]
                defaults = config.smart_sync
                config.smart_sync = SmartSyncConfig(
                    enabled=sync_data.get("enabled", defaults.enabled),
                    interval_minutes=sync_data.get(
                        "interval_minutes", defaults.interval_minutes
                    ),
                    movie_interval_days=sync_data.get(
                        "movie_interval_days", defaults.movie_interval_days
                    ),
                    ended_interval_days=sync_data.get(
                        "ended_interval_days", defaults.ended_interval_days
                    ),
                    min_interval_hours=sync_data.get(
                        "min_interval_hours", defaults.min_interval_hours
                    ),
                    request_delay_seconds=sync_data.get(
                        "request_delay_seconds", defaults.request_delay_seconds
                    ),
                    max_retries=sync_data.get("max_retries", defaults.max_retries),
                    retry_delay_seconds=sync_data.get(
                        "retry_delay_seconds", defaults.retry_delay_seconds
                    ),
                )

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config
