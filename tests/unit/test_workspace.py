"""Unit tests for KnowledgeWorkspace wiring."""

from unittest.mock import AsyncMock, Mock

import pytest

from agentkb.app_utils.config_schema import AgentKBConfig
from agentkb.core.source import TrainingStatus
from agentkb.core.tree import UrlNode
from agentkb.services.task_runner import TaskRunner
from agentkb.services.training_service import ApiTrainingBackend
from agentkb.services.workspace import KnowledgeWorkspace


@pytest.fixture
def client(make_source):
    client = Mock()
    client.list_knowledge_sources = AsyncMock(
        return_value=[
            make_source(
                1, children=(UrlNode(url="https://a.test", id=11, is_selected=True),)
            ),
            make_source(2),
        ]
    )
    client.close = AsyncMock()
    return client


@pytest.fixture
def backend():
    backend = Mock()
    backend.run = AsyncMock(return_value=None)
    backend.cancel = AsyncMock()
    return backend


@pytest.fixture
async def runner():
    r = TaskRunner()
    await r.start()
    yield r
    await r.stop()


@pytest.fixture
async def workspace(client, backend, runner):
    config = AgentKBConfig.create_default()
    config.sync.debounce_seconds = 0.01
    ws = KnowledgeWorkspace("agent-1", config, runner, client=client, backend=backend)
    yield ws
    await ws.close()


class TestKnowledgeWorkspace:
    """Tests for KnowledgeWorkspace."""

    @pytest.mark.asyncio
    async def test_load_fetches_once(self, workspace, client):
        assert not workspace.loaded
        await workspace.load()
        await workspace.load()

        assert workspace.loaded
        assert workspace.registry.ids() == [1, 2]
        client.list_knowledge_sources.assert_awaited_once_with("agent-1")

    @pytest.mark.asyncio
    async def test_load_does_not_flag_retraining(self, workspace):
        await workspace.load()
        assert not workspace.registry.needs_retraining
        assert workspace.remind_retraining() is False
        assert workspace.notifier.history == []

    @pytest.mark.asyncio
    async def test_remind_retraining_after_change(self, workspace, make_source):
        await workspace.load()
        workspace.registry.add(make_source(3))

        assert workspace.remind_retraining() is True
        assert workspace.notifier.history[-1].title == "Retraining required"

    @pytest.mark.asyncio
    async def test_training_shares_notifier(self, workspace, backend):
        await workspace.load()
        job_id = await workspace.training.train_source(1)
        await workspace.training.wait(job_id, timeout=2)

        assert workspace.registry.get(1).training_status == TrainingStatus.SUCCESS
        assert [n.title for n in workspace.notifier.history] == [
            "Training started",
            "Training complete",
        ]
        backend.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_closes_client(self, client, backend, runner):
        ws = KnowledgeWorkspace(
            "agent-1",
            AgentKBConfig.create_default(),
            runner,
            client=client,
            backend=backend,
        )
        await ws.close()
        client.close.assert_awaited_once()

    def test_default_backend_uses_training_config(self, client, runner):
        config = AgentKBConfig.create_default()
        config.training.poll_interval = 0.5
        ws = KnowledgeWorkspace("agent-1", config, runner, client=client)

        assert isinstance(ws.training.backend, ApiTrainingBackend)
        assert ws.training.backend.poll_interval == 0.5
        assert ws.notifier is ws.sync.notifier
