"""Notification history endpoint for polling clients."""

from fastapi import APIRouter

from agentkb.api.deps import WorkspaceDep
from agentkb.api.schemas import NotificationListResponse, NotificationResponse

router = APIRouter()


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    workspace: WorkspaceDep, limit: int = 50
) -> NotificationListResponse:
    """Most recent notifications for the agent, oldest first."""
    history = workspace.notifier.history[-limit:] if limit > 0 else []
    return NotificationListResponse(
        notifications=[NotificationResponse(**n.to_dict()) for n in history]
    )
