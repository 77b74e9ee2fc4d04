"""Fixtures for API integration tests.

The app is served in-process through httpx's ASGI transport. Each test gets
a fresh task runner and a pre-registered workspace for ``agent-1`` whose
service client and training backend are mocks.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from httpx import ASGITransport, AsyncClient

import agentkb.api.deps as deps_module
from agentkb.api.main import create_app
from agentkb.app_utils.config_schema import AgentKBConfig
from agentkb.services.workspace import KnowledgeWorkspace


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Reset the global TaskRunner and workspace cache between tests."""
    deps_module._task_runner = None
    deps_module._workspaces.clear()
    yield
    deps_module._task_runner = None
    deps_module._workspaces.clear()


@pytest.fixture
def app():
    """Create test application."""
    return create_app()


@pytest.fixture
async def client(app):
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
async def runner():
    """Start the singleton TaskRunner (lifespan does not run under ASGITransport)."""
    r = deps_module.get_task_runner()
    await r.start()
    yield r
    await r.stop()


@pytest.fixture
def kb_client(website_source, document_source):
    """Mocked knowledge-base service client."""
    kb = Mock()
    kb.list_knowledge_sources = AsyncMock(
        return_value=[website_source, document_source]
    )
    kb.remove_knowledge_sources = AsyncMock(return_value=None)
    kb.import_sources = AsyncMock(return_value=[])
    kb.close = AsyncMock()
    return kb


@pytest.fixture
def gate():
    """Released to let training jobs of the mocked backend finish."""
    event = asyncio.Event()
    event.set()
    return event


@pytest.fixture
def backend(gate):
    async def _run(source, leaf_ids, report):
        report(50)
        await gate.wait()

    backend = Mock()
    backend.run = AsyncMock(side_effect=_run)
    backend.cancel = AsyncMock()
    return backend


@pytest.fixture
async def workspace(runner, kb_client, backend):
    config = AgentKBConfig.create_default()
    config.sync.debounce_seconds = 60
    ws = KnowledgeWorkspace(
        "agent-1", config, runner, client=kb_client, backend=backend
    )
    deps_module._workspaces["agent-1"] = ws
    yield ws
    await ws.close()
