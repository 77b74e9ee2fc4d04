"""Integration tests for training API endpoints."""

import asyncio

import pytest

from agentkb.core.tree import UrlNode

AGENT = "/api/agents/agent-1"


async def _until(predicate, timeout: float = 2.0):
    """Poll until ``predicate()`` holds."""
    deadline = asyncio.get_event_loop().time() + timeout
    while not predicate():
        if asyncio.get_event_loop().time() > deadline:
            raise TimeoutError("condition not reached")
        await asyncio.sleep(0.01)


class TestTrainSource:
    """Tests for POST /sources/{id}/train."""

    @pytest.mark.asyncio
    async def test_train_source(self, client, workspace, backend):
        response = await client.post(f"{AGENT}/sources/10/train")

        assert response.status_code == 200
        data = response.json()
        assert data["source_id"] == 10
        assert data["training_status"] == "training"

        await workspace.training.wait(data["job_id"], timeout=2)
        source = (await client.get(f"{AGENT}/sources/10")).json()
        assert source["training_status"] == "success"
        assert source["progress"] == 100

        leaf_ids = backend.run.await_args.args[1]
        assert sorted(leaf_ids) == [3, 5]

    @pytest.mark.asyncio
    async def test_job_is_visible_as_task(self, client, workspace):
        job_id = (await client.post(f"{AGENT}/sources/20/train")).json()["job_id"]
        await workspace.training.wait(job_id, timeout=2)

        response = await client.get(f"/api/tasks/{job_id}")
        assert response.status_code == 200
        assert response.json()["task_type"] == "train_source"
        assert response.json()["metadata"]["source_id"] == 20

    @pytest.mark.asyncio
    async def test_unknown_source(self, client, workspace):
        response = await client.post(f"{AGENT}/sources/404/train")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_retrain_requires_selection(
        self, client, workspace, kb_client, make_source
    ):
        kb_client.list_knowledge_sources.return_value = [
            make_source(30, children=(UrlNode(url="https://c.test", id=31),))
        ]

        response = await client.post(
            f"{AGENT}/sources/30/train", params={"require_selection": True}
        )

        assert response.status_code == 422
        assert workspace.registry.get(30).training_status.value == "idle"
        notes = (await client.get(f"{AGENT}/notifications")).json()["notifications"]
        assert notes[-1]["title"] == "Nothing selected"

    @pytest.mark.asyncio
    async def test_second_request_returns_running_job(self, client, workspace, gate):
        gate.clear()
        first = (await client.post(f"{AGENT}/sources/10/train")).json()["job_id"]
        second = (await client.post(f"{AGENT}/sources/10/train")).json()["job_id"]
        assert first == second
        gate.set()
        await workspace.training.wait(first, timeout=2)


class TestTrainAll:
    """Tests for POST /train-all and GET /batches/{id}."""

    @pytest.mark.asyncio
    async def test_batch_progress(self, client, workspace, gate):
        gate.clear()
        response = await client.post(f"{AGENT}/train-all")

        assert response.status_code == 202
        batch = response.json()
        assert batch["total"] == 2
        assert batch["completed"] == 0
        assert batch["is_complete"] is False

        await _until(lambda: workspace.registry.get(10).progress == 50)
        listing = (await client.get(f"{AGENT}/sources")).json()
        assert listing["is_training_all"] is True
        mid = (await client.get(f"{AGENT}/batches/{batch['batch_id']}")).json()
        assert mid["progress"] == 25
        assert mid["current_text"] == "[1/2] Extracting 🌐 example.com..."
        assert mid["status_icon"] == "⚡"

        gate.set()
        await workspace.training.wait_batch(batch["batch_id"], timeout=2)
        done = (await client.get(f"{AGENT}/batches/{batch['batch_id']}")).json()
        assert done == {
            "batch_id": batch["batch_id"],
            "total": 2,
            "completed": 2,
            "failed": 0,
            "progress": 100,
            "is_complete": True,
            "current_text": "Processing [2/2]",
            "progress_bar": "[" + "█" * 20 + "] 100% complete",
            "status_icon": "✓",
            "phase_text": "🎉 Training completed successfully",
        }

    @pytest.mark.asyncio
    async def test_running_batch_is_reused(self, client, workspace, gate):
        gate.clear()
        first = (await client.post(f"{AGENT}/train-all")).json()["batch_id"]
        second = (await client.post(f"{AGENT}/train-all")).json()["batch_id"]
        assert first == second
        gate.set()
        await workspace.training.wait_batch(first, timeout=2)

    @pytest.mark.asyncio
    async def test_subset(self, client, workspace):
        response = await client.post(f"{AGENT}/train-all", json={"source_ids": [20]})
        assert response.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_defaults_to_training_selection(self, client, workspace):
        await client.post(f"{AGENT}/sources/20/training-selection")

        response = await client.post(f"{AGENT}/train-all")

        batch = response.json()
        assert batch["total"] == 1
        await workspace.training.wait_batch(batch["batch_id"], timeout=2)
        assert workspace.registry.get(10).training_status.value == "idle"

    @pytest.mark.asyncio
    async def test_empty_workspace(self, client, workspace, kb_client):
        kb_client.list_knowledge_sources.return_value = []

        response = await client.post(f"{AGENT}/train-all")

        assert response.status_code == 422
        assert "at least one knowledge source" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_member(self, client, workspace):
        response = await client.post(
            f"{AGENT}/train-all", json={"source_ids": [10, 404]}
        )
        assert response.status_code == 404
        assert workspace.registry.get(10).training_status.value == "idle"

    @pytest.mark.asyncio
    async def test_unknown_batch(self, client, workspace):
        response = await client.get(f"{AGENT}/batches/nope")
        assert response.status_code == 404


class TestCancel:
    """Tests for POST /sources/{id}/cancel."""

    @pytest.mark.asyncio
    async def test_cancel_running_job(self, client, workspace, backend, gate):
        gate.clear()
        await client.post(f"{AGENT}/sources/10/train")
        await _until(lambda: workspace.registry.get(10).progress == 50)

        response = await client.post(f"{AGENT}/sources/10/cancel")

        assert response.json() == {"source_id": 10, "cancelled": True}
        assert workspace.registry.get(10).training_status.value == "error"
        backend.cancel.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancel_idle_source(self, client, workspace):
        response = await client.post(f"{AGENT}/sources/20/cancel")
        assert response.json()["cancelled"] is False

    @pytest.mark.asyncio
    async def test_cancel_unknown_source(self, client, workspace):
        response = await client.post(f"{AGENT}/sources/404/cancel")
        assert response.status_code == 404
