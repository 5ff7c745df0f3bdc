"""Memory retrieval adapter: ranked past creator responses, never raises."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence

from app.modules.smartreplies.services.errors import (
    MemoryBackendHTTPError,
    MemoryBackendNotConfigured,
)
from app.modules.smartreplies.services.types import RetrievedMemory
from core.conf import settings
from core.utils.perf import elapsed_ms

logger = logging.getLogger(__name__)

Outcome = Literal["ok", "empty", "not_configured", "http_error", "timeout", "error"]

_BODY_PREVIEW_CHARS = 200


class MemorySearchBackend(Protocol):
    async def search(
        self, query: str, limit: int, threshold: float, scope_tag: str
    ) -> List[RetrievedMemory]: ...


@dataclass
class RetrievalTrace:
    outcome: Outcome
    latency_ms: int = 0
    status: Optional[int] = None
    detail: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class MemorySearchResult:
    memories: List[RetrievedMemory] = field(default_factory=list)
    trace: RetrievalTrace = field(default_factory=lambda: RetrievalTrace(outcome="empty"))


def clamp_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score):
        return 0.0
    return min(1.0, max(0.0, score))


def query_excerpt(text: str, max_chars: int) -> str:
    return (text or "").strip()[:max_chars].strip()


class MemoryRetriever:
    """Wraps a search backend; every failure becomes an empty, traced result."""

    def __init__(
        self,
        backend: MemorySearchBackend,
        *,
        limit: Optional[int] = None,
        relevance_floor: Optional[float] = None,
        max_query_chars: Optional[int] = None,
        scope_tag_template: Optional[str] = None,
        timeout_secs: Optional[float] = None,
    ):
        self.backend = backend
        self.limit = limit or settings.MEMORY_SEARCH_LIMIT
        self.relevance_floor = (
            relevance_floor if relevance_floor is not None else settings.MEMORY_RELEVANCE_FLOOR
        )
        self.max_query_chars = max_query_chars or settings.MEMORY_QUERY_MAX_CHARS
        self.scope_tag_template = scope_tag_template or settings.MEMORY_SCOPE_TAG_TEMPLATE
        self.timeout_secs = timeout_secs if timeout_secs is not None else settings.MEMORY_SEARCH_TIMEOUT_SECS

    def scope_tag(self, persona_key: str) -> str:
        return self.scope_tag_template.format(persona_key=persona_key)

    def _rank(self, raw: Sequence[RetrievedMemory]) -> List[RetrievedMemory]:
        ranked = []
        for m in raw or []:
            content = (m.content or "").strip()
            if not content:
                continue
            score = clamp_score(m.similarity_score)
            if score < self.relevance_floor:
                continue
            ranked.append(RetrievedMemory(content=m.content, similarity_score=score, metadata=dict(m.metadata or {})))
        ranked.sort(key=lambda m: m.similarity_score, reverse=True)
        return ranked[: self.limit]

    async def retrieve(self, message_text: str, persona_key: str, limit: Optional[int] = None) -> MemorySearchResult:
        query = query_excerpt(message_text, self.max_query_chars)
        if not query:
            logger.info("[memory] Empty query, skipping search")
            return MemorySearchResult()

        limit = min(limit or self.limit, self.limit)
        scope_tag = self.scope_tag(persona_key)
        logger.info(f"[memory] Searching scope={scope_tag} query_len={len(query)} limit={limit}")
        t0 = time.perf_counter()

        try:
            raw = await asyncio.wait_for(
                self.backend.search(query, limit, self.relevance_floor, scope_tag),
                timeout=self.timeout_secs,
            )
        except MemoryBackendNotConfigured as e:
            logger.warning(f"[memory] Search backend not configured: {e}")
            return MemorySearchResult(trace=RetrievalTrace("not_configured", elapsed_ms(t0), detail=str(e)))
        except MemoryBackendHTTPError as e:
            body = (e.body or "")[:_BODY_PREVIEW_CHARS]
            logger.warning(f"[memory] Search API error status={e.status} body={body!r}")
            return MemorySearchResult(trace=RetrievalTrace("http_error", elapsed_ms(t0), status=e.status, detail=body))
        except asyncio.TimeoutError:
            logger.warning(f"[memory] Search timed out after {self.timeout_secs}s")
            return MemorySearchResult(trace=RetrievalTrace("timeout", elapsed_ms(t0), detail=f"timeout after {self.timeout_secs}s"))
        except Exception as e:
            logger.error(f"[memory] Search failed: {e}", exc_info=True)
            return MemorySearchResult(trace=RetrievalTrace("error", elapsed_ms(t0), detail=f"{type(e).__name__}: {e}"))

        ranked = self._rank(raw)[:limit]
        trace = RetrievalTrace("ok" if ranked else "empty", elapsed_ms(t0))
        logger.info(
            f"[memory] Search completed results={len(ranked)} "
            f"best={ranked[0].similarity_score if ranked else None} latency_ms={trace.latency_ms}"
        )
        return MemorySearchResult(memories=ranked, trace=trace)
