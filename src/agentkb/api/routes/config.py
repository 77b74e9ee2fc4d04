"""Configuration endpoints."""

from fastapi import APIRouter

from agentkb.api.deps import ConfigServiceDep
from agentkb.api.schemas import (
    ApiConfigSchema,
    ConfigResponse,
    ConfigUpdateRequest,
    NotificationConfigSchema,
    SyncConfigSchema,
    TrainingConfigSchema,
)
from agentkb.app_utils.config_schema import AgentKBConfig

router = APIRouter()


def _config_to_response(config: AgentKBConfig) -> ConfigResponse:
    """Convert AgentKBConfig to response schema."""
    return ConfigResponse(
        api=ApiConfigSchema(
            base_url=config.api.base_url,
            timeout=config.api.timeout,
            has_token=bool(config.api.token),
        ),
        sync=SyncConfigSchema(debounce_seconds=config.sync.debounce_seconds),
        training=TrainingConfigSchema(
            poll_interval=config.training.poll_interval,
            progress_step=config.training.progress_step,
            max_polls=config.training.max_polls,
        ),
        notifications=NotificationConfigSchema(
            history_size=config.notifications.history_size
        ),
    )


@router.get("", response_model=ConfigResponse)
async def get_config(config_service: ConfigServiceDep) -> ConfigResponse:
    """Get current configuration."""
    return _config_to_response(config_service.load())


@router.patch("", response_model=ConfigResponse)
async def update_config(
    body: ConfigUpdateRequest, config_service: ConfigServiceDep
) -> ConfigResponse:
    """Update configuration values.

    Supports nested updates using prefixed keys:
    - api_*: Updates the service connection (e.g., api_base_url)
    - sync_*: Updates sync config (e.g., sync_debounce_seconds)
    - training_*: Updates training config (e.g., training_poll_interval)
    - notifications_*: Updates notifications (e.g., notifications_history_size)

    Open workspaces keep the configuration they were created with.
    """
    config = config_service.update(**body.updates)
    return _config_to_response(config)


@router.get("/defaults", response_model=ConfigResponse)
async def get_default_config() -> ConfigResponse:
    """Get default configuration values."""
    return _config_to_response(AgentKBConfig.create_default())
