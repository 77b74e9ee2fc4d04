"""Per-agent wiring of the knowledge core."""

import logging
from typing import Optional

from agentkb.app_utils.config_schema import AgentKBConfig
from agentkb.services import notifier as messages
from agentkb.services.knowledge_client import KnowledgeClient
from agentkb.services.notifier import Notifier
from agentkb.services.registry import SourceRegistry
from agentkb.services.sync_service import SyncCoordinator
from agentkb.services.task_runner import TaskRunner
from agentkb.services.training_service import (
    ApiTrainingBackend,
    TrainingBackend,
    TrainingOrchestrator,
)

logger = logging.getLogger(__name__)


class KnowledgeWorkspace:
    """Registry, sync and training for one agent, sharing one notifier.

    The task runner is owned by the caller so that several workspaces can
    share its serial queue.
    """

    def __init__(
        self,
        agent_id: str,
        config: AgentKBConfig,
        runner: TaskRunner,
        client: Optional[KnowledgeClient] = None,
        backend: Optional[TrainingBackend] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.agent_id = agent_id
        self.config = config
        self.notifier = notifier or Notifier(config.notifications.history_size)
        self.client = client or KnowledgeClient(
            config.api.base_url, token=config.api.token, timeout=config.api.timeout
        )
        self.registry = SourceRegistry()
        self.sync = SyncCoordinator(
            agent_id,
            self.registry,
            self.client,
            self.notifier,
            debounce_seconds=config.sync.debounce_seconds,
        )
        self.training = TrainingOrchestrator(
            self.registry,
            backend
            or ApiTrainingBackend(
                self.client,
                agent_id,
                poll_interval=config.training.poll_interval,
                progress_step=config.training.progress_step,
                max_polls=config.training.max_polls,
            ),
            runner,
            self.notifier,
        )
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """Fetch the agent's sources once."""
        if self._loaded:
            return
        await self.sync.refresh()
        self._loaded = True
        logger.info(
            "Loaded %d knowledge sources for agent %s",
            len(self.registry),
            self.agent_id,
        )

    def remind_retraining(self) -> bool:
        """Emit the retraining reminder if the sources changed since training."""
        if not self.registry.needs_retraining:
            return False
        self.notifier.emit(messages.retraining_required_message())
        return True

    async def close(self) -> None:
        await self.sync.close()
        await self.training.close()
        await self.client.close()
        logger.info("Closed knowledge workspace for agent %s", self.agent_id)
