"""Configuration schema and default values for agentkb."""

import os
from dataclasses import asdict, dataclass, fields
from typing import Optional

from agentkb.core.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_MAX_POLLS,
    DEFAULT_NOTIFICATION_HISTORY,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROGRESS_STEP,
)

API_URL_ENV = "AGENTKB_API_URL"
API_TOKEN_ENV = "AGENTKB_API_TOKEN"


@dataclass
class ApiConfig:
    """Knowledge-base service connection."""

    base_url: str = DEFAULT_API_BASE_URL
    token: Optional[str] = None
    timeout: int = 30


@dataclass
class SyncConfig:
    """Server reconciliation settings."""

    # Mutations landing within this window collapse into one re-fetch
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS


@dataclass
class TrainingConfig:
    """Training job polling."""

    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    progress_step: int = DEFAULT_PROGRESS_STEP
    max_polls: int = DEFAULT_MAX_POLLS


@dataclass
class NotificationConfig:
    history_size: int = DEFAULT_NOTIFICATION_HISTORY


@dataclass
class AgentKBConfig:
    """Main configuration for agentkb."""

    api: ApiConfig
    sync: SyncConfig
    training: TrainingConfig
    notifications: NotificationConfig

    def to_dict(self) -> dict:
        """Convert config to dictionary for YAML serialization."""
        return {
            "api": asdict(self.api),
            "sync": asdict(self.sync),
            "training": asdict(self.training),
            "notifications": asdict(self.notifications),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AgentKBConfig":
        """Create config from dictionary (loaded from YAML)."""

        def _filter(cls_, data_):
            """Filter dict to only include known dataclass fields."""
            known = {f.name for f in fields(cls_)}
            return {k: v for k, v in (data_ or {}).items() if k in known}

        return cls(
            api=ApiConfig(**_filter(ApiConfig, data.get("api"))),
            sync=SyncConfig(**_filter(SyncConfig, data.get("sync"))),
            training=TrainingConfig(**_filter(TrainingConfig, data.get("training"))),
            notifications=NotificationConfig(
                **_filter(NotificationConfig, data.get("notifications"))
            ),
        )

    @classmethod
    def create_default(cls) -> "AgentKBConfig":
        return cls(
            api=ApiConfig(),
            sync=SyncConfig(),
            training=TrainingConfig(),
            notifications=NotificationConfig(),
        )

    def apply_env_overrides(self) -> "AgentKBConfig":
        """Let ``AGENTKB_API_URL`` / ``AGENTKB_API_TOKEN`` win over the file."""
        base_url = os.getenv(API_URL_ENV)
        if base_url:
            self.api.base_url = base_url
        token = os.getenv(API_TOKEN_ENV)
        if token:
            self.api.token = token
        return self
