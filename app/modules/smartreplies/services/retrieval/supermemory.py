"""Supermemory search client (default memory backend).

Raises MemoryBackendNotConfigured when SUPERMEMORY_API_KEY is missing and
MemoryBackendHTTPError on non-2xx responses; the retriever turns both into
an empty result.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from app.modules.smartreplies.services.errors import (
    MemoryBackendHTTPError,
    MemoryBackendNotConfigured,
)
from app.modules.smartreplies.services.retrieval.memory_retriever import clamp_score
from app.modules.smartreplies.services.types import RetrievedMemory
from core.conf import settings

logger = logging.getLogger(__name__)


async def _post_json(
    session: aiohttp.ClientSession,
    url: str,
    payload: dict,
    headers: Dict[str, str],
) -> dict:
    async with session.post(url, json=payload, headers=headers) as resp:
        if resp.status >= 400:
            raise MemoryBackendHTTPError(resp.status, await resp.text())
        return await resp.json()


def _to_memory(item: Dict[str, Any]) -> Optional[RetrievedMemory]:
    content = (item.get("memory") or item.get("content") or "").strip()
    if not content:
        return None
    raw_meta = item.get("metadata") or {}
    metadata = {str(k): str(v) for k, v in raw_meta.items()} if isinstance(raw_meta, dict) else {}
    if item.get("id"):
        metadata.setdefault("id", str(item["id"]))
    return RetrievedMemory(
        content=content,
        similarity_score=clamp_score(item.get("similarity")),
        metadata=metadata,
    )


class SupermemorySearch:
    """POST /v4/search against the creator's memory container."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_secs: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.SUPERMEMORY_API_KEY
        self.base_url = (base_url or settings.SUPERMEMORY_BASE_URL).rstrip("/")
        self.timeout_secs = timeout_secs if timeout_secs is not None else settings.MEMORY_SEARCH_TIMEOUT_SECS

    async def search(
        self,
        query: str,
        limit: int,
        threshold: float,
        scope_tag: str,
    ) -> List[RetrievedMemory]:
        if not self.api_key:
            raise MemoryBackendNotConfigured("SUPERMEMORY_API_KEY is not set")

        payload = {
            "q": query,
            "limit": limit,
            "containerTag": scope_tag,
            "threshold": threshold,
            "rerank": True,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        timeout = aiohttp.ClientTimeout(total=self.timeout_secs)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            data = await _post_json(session, f"{self.base_url}/v4/search", payload, headers)

        memories = []
        for item in (data.get("results") or []):
            if not isinstance(item, dict):
                continue
            memory = _to_memory(item)
            if memory is not None:
                memories.append(memory)
        return memories
