"""Qdrant-backed memory search (alternative backend, MEMORY_BACKEND=qdrant).

Points are expected to carry a payload like
{"text": str, "scope_tag": str, "metadata": {...}}; indexing them is done elsewhere.
"""

from typing import Awaitable, Callable, List, Optional
import logging

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models as qmodels

from app.modules.smartreplies.services.errors import MemoryBackendNotConfigured
from app.modules.smartreplies.services.types import RetrievedMemory
from core.conf import settings

logger = logging.getLogger(__name__)

EmbedFn = Callable[[str], Awaitable[List[float]]]


def _extract_text(payload: dict) -> str:
    for k in ("text", "memory", "content"):
        v = payload.get(k)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return ""


class QdrantMemorySearch:
    def __init__(
        self,
        embed_fn: EmbedFn,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        collection: Optional[str] = None,
    ):
        self.embed = embed_fn
        self.url = url if url is not None else settings.QDRANT_URL
        self.api_key = api_key if api_key is not None else settings.QDRANT_API_KEY
        self.collection = collection or settings.QDRANT_MEMORY_COLLECTION
        self._client: Optional[AsyncQdrantClient] = None

    def _get_client(self) -> AsyncQdrantClient:
        """Lazy initialize the Qdrant client."""
        if not self.url:
            raise MemoryBackendNotConfigured("QDRANT_URL is not set")
        if self._client is None:
            self._client = AsyncQdrantClient(
                url=self.url,
                api_key=self.api_key or None,
                timeout=int(settings.MEMORY_SEARCH_TIMEOUT_SECS),
            )
        return self._client

    async def search(
        self,
        query: str,
        limit: int,
        threshold: float,
        scope_tag: str,
    ) -> List[RetrievedMemory]:
        client = self._get_client()
        vector = await self.embed(query)
        res = await client.query_points(
            collection_name=self.collection,
            query=vector,
            limit=limit,
            score_threshold=threshold,
            query_filter=qmodels.Filter(
                must=[qmodels.FieldCondition(key="scope_tag", match=qmodels.MatchValue(value=scope_tag))]
            ),
            with_payload=True,
        )

        memories = []
        for point in res.points:
            payload = point.payload or {}
            text = _extract_text(payload)
            if not text:
                continue
            meta = payload.get("metadata") or {}
            metadata = {str(k): str(v) for k, v in meta.items()} if isinstance(meta, dict) else {}
            metadata.setdefault("id", str(point.id))
            memories.append(RetrievedMemory(content=text, similarity_score=float(point.score), metadata=metadata))
        return memories
