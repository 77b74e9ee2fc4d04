"""Async client for the knowledge-base service.

Wraps the REST endpoints the knowledge core depends on: listing an agent's
sources, removing and importing sources, and starting, polling and cancelling
training. Payloads are converted to :class:`KnowledgeSource` objects here so
that nothing above this layer sees raw service dictionaries.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiohttp

from agentkb.core.errors import KnowledgeConnectionError, KnowledgeServiceError
from agentkb.core.source import KnowledgeSource, LeafId

logger = logging.getLogger(__name__)


@dataclass
class ImportSelection:
    """Sources chosen in the import dialog, with optional per-source URL picks."""

    source_ids: List[int]
    selected_urls: Dict[int, List[str]] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "knowledge_sources": list(self.source_ids),
            "selected_urls": {
                str(sid): list(urls) for sid, urls in self.selected_urls.items()
            },
        }


@dataclass
class TrainingTicket:
    """Acknowledgement returned when a training job is accepted."""

    task_id: Optional[str]
    message: str = ""


@dataclass
class TrainingStatusReport:
    """One answer from the training status endpoint."""

    status: str
    progress: Optional[int] = None
    message: str = ""
    phase: Optional[str] = None


def _unwrap(payload: Any) -> Any:
    """Strip a ``{"data": ...}`` envelope if present."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _error_message(payload: Any, status: int) -> str:
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            if payload.get(key):
                return str(payload[key])
    return f"Knowledge service returned HTTP {status}"


def parse_sources(payload: Any) -> List[KnowledgeSource]:
    """Extract the source list from any of the service's response shapes."""
    data = _unwrap(payload)
    while isinstance(data, dict) and "knowledge_sources" in data:
        data = data["knowledge_sources"]
    if isinstance(data, dict) and "results" in data:
        data = data["results"]
    if not isinstance(data, list):
        raise KnowledgeServiceError("Unexpected knowledge source payload")
    try:
        return [KnowledgeSource.from_dict(item) for item in data]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise KnowledgeServiceError(f"Malformed knowledge source payload: {e!r}") from e


class KnowledgeClient:
    """Thin aiohttp wrapper around the knowledge-base REST API.

    Pass an existing ``aiohttp.ClientSession`` to share a connection pool;
    otherwise the client opens one on first use and closes it in
    :meth:`close`.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: int = 30,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.token = token
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "KnowledgeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = self.base_url + path.lstrip("/")
        session = self._get_session()
        timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with session.request(
                method,
                url,
                headers=self._headers(),
                params=params,
                json=json,
                timeout=timeout_obj,
            ) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None
                if response.status >= 400:
                    message = _error_message(payload, response.status)
                    logger.warning("%s %s failed: %s", method, url, message)
                    raise KnowledgeServiceError(message, status=response.status)
                return payload
        except asyncio.TimeoutError:
            raise KnowledgeConnectionError(f"Timeout calling {url}")
        except aiohttp.ClientConnectionError as e:
            raise KnowledgeConnectionError(f"Cannot reach knowledge service: {e}")
        except aiohttp.ClientError as e:
            raise KnowledgeServiceError(f"Knowledge service request failed: {e}")

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    async def list_knowledge_sources(self, agent_id: str) -> List[KnowledgeSource]:
        payload = await self._request(
            "GET", "knowledgebase/", params={"agent_id": agent_id}
        )
        return parse_sources(payload)

    async def remove_knowledge_sources(
        self, agent_id: str, ids: Iterable[int]
    ) -> Optional[List[KnowledgeSource]]:
        """Delete sources. Returns the updated snapshot when the service sends one."""
        payload = await self._request(
            "POST",
            "knowledgesource/remove/",
            json={"agent_id": agent_id, "knowledge_source_ids": list(ids)},
        )
        try:
            return parse_sources(payload)
        except KnowledgeServiceError:
            return None

    async def import_sources(
        self, agent_id: str, selection: ImportSelection
    ) -> List[KnowledgeSource]:
        """Attach catalogue sources to an agent and return them."""
        payload = await self._request(
            "POST",
            "knowledgesource/import/",
            json={"agent_id": agent_id, **selection.to_payload()},
        )
        return parse_sources(payload)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    async def train_agent(
        self,
        agent_id: str,
        selected_leaf_ids: Sequence[LeafId],
        *,
        source_ids: Sequence[int] = (),
        selected_urls: Sequence[str] = (),
    ) -> TrainingTicket:
        payload = await self._request(
            "POST",
            "ai/train-agent/",
            json={
                "agent_id": agent_id,
                "knowledge_sources": list(source_ids),
                "selected_leaf_ids": list(selected_leaf_ids),
                "selected_urls": list(selected_urls),
            },
        )
        data = _unwrap(payload) or {}
        return TrainingTicket(
            task_id=data.get("task_id"), message=data.get("message") or ""
        )

    async def train_status(self, agent_id: str) -> TrainingStatusReport:
        payload = await self._request("POST", f"ai/train-status/{agent_id}/")
        data = _unwrap(payload) or {}
        progress = data.get("progress")
        try:
            progress = int(progress) if progress is not None else None
        except (TypeError, ValueError):
            progress = None
        return TrainingStatusReport(
            status=data.get("training_status") or "",
            progress=progress,
            message=data.get("message") or "",
            phase=data.get("phase"),
        )

    async def cancel_training(self, agent_id: str) -> None:
        await self._request("POST", "ai/cancel-training", json={"agent_id": agent_id})
