"""Dependency injection for FastAPI routes.

Provides singleton services and one knowledge workspace per agent.
"""

from functools import lru_cache
from typing import Annotated, Dict

from fastapi import Depends, HTTPException

from agentkb.core.errors import KnowledgeServiceError
from agentkb.services import ConfigService, KnowledgeWorkspace, TaskRunner


@lru_cache
def get_config_service() -> ConfigService:
    """Get the singleton ConfigService instance."""
    return ConfigService()


# TaskRunner singleton - needs async start()/stop() lifecycle
_task_runner: TaskRunner | None = None


def get_task_runner() -> TaskRunner:
    """Get the singleton TaskRunner instance.

    Training jobs of every agent share its serial queue.
    """
    global _task_runner
    if _task_runner is None:
        _task_runner = TaskRunner()
    return _task_runner


# Workspaces are created on first use and closed on shutdown
_workspaces: Dict[str, KnowledgeWorkspace] = {}


async def get_workspace(agent_id: str) -> KnowledgeWorkspace:
    """Get the agent's workspace, loading its sources on first access."""
    workspace = _workspaces.get(agent_id)
    if workspace is None:
        config = get_config_service().load()
        workspace = KnowledgeWorkspace(agent_id, config, get_task_runner())
        _workspaces[agent_id] = workspace
    if not workspace.loaded:
        try:
            await workspace.load()
        except KnowledgeServiceError as e:
            raise HTTPException(status_code=502, detail=str(e))
    return workspace


async def close_workspaces() -> None:
    """Close every open workspace."""
    for workspace in list(_workspaces.values()):
        await workspace.close()
    _workspaces.clear()


ConfigServiceDep = Annotated[ConfigService, Depends(get_config_service)]
TaskRunnerDep = Annotated[TaskRunner, Depends(get_task_runner)]
WorkspaceDep = Annotated[KnowledgeWorkspace, Depends(get_workspace)]
