"""
Core Configuration and Services
Service wiring for the smart reply backend
"""

import logging
from typing import Optional
from fastapi import FastAPI, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.conf import Settings, settings
from app.modules.smartreplies.services.adaptation import AdaptationGenerator
from app.modules.smartreplies.services.generator import FullGenerator
from app.modules.smartreplies.services.llm import CompletionClient
from app.modules.smartreplies.services.orchestrator import SmartReplyOrchestrator
from app.modules.smartreplies.services.reply_cache import ReplyCacheWriter
from app.modules.smartreplies.services.retrieval.memory_retriever import (
    MemoryRetriever,
    MemorySearchBackend,
)
from app.modules.smartreplies.services.retrieval.qdrant_memory import QdrantMemorySearch
from app.modules.smartreplies.services.retrieval.supermemory import SupermemorySearch
from app.modules.smartreplies.services.stores import (
    SqlHistoryStore,
    SqlPersonaStore,
    SqlReplyCacheStore,
)
from app.modules.smartreplies.services.tiering import Thresholds
from app.services.store.db import SessionLocal

logger = logging.getLogger(__name__)


def get_memory_backend(cfg: Settings, completion: CompletionClient) -> MemorySearchBackend:
    """Create the memory search backend selected by MEMORY_BACKEND."""
    if cfg.MEMORY_BACKEND == "qdrant":
        return QdrantMemorySearch(embed_fn=completion.embed)
    return SupermemorySearch()


def build_orchestrator(
    cfg: Settings = settings,
    completion: Optional[CompletionClient] = None,
    session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
) -> SmartReplyOrchestrator:
    completion = completion or CompletionClient()
    retriever = MemoryRetriever(get_memory_backend(cfg, completion))
    return SmartReplyOrchestrator(
        retriever=retriever,
        persona_store=SqlPersonaStore(session_factory),
        history_store=SqlHistoryStore(session_factory),
        adapter=AdaptationGenerator(completion),
        generator=FullGenerator(completion),
        cache_writer=ReplyCacheWriter(SqlReplyCacheStore(session_factory)),
        thresholds=Thresholds.from_settings(),
    )


def wire_services(app: FastAPI) -> None:
    """Wire all singleton services into app.state on startup."""
    logger.info("Wiring global services...")

    app.state.settings = settings
    app.state.llm_client = CompletionClient()
    app.state.orchestrator = build_orchestrator(settings, completion=app.state.llm_client)
    app.state.reply_cache_store = SqlReplyCacheStore(SessionLocal)

    logger.info(
        f"Service container wiring completed: memory_backend={settings.MEMORY_BACKEND} "
        f"model={settings.LLM_MODEL}"
    )


def get_orchestrator(request: Request) -> SmartReplyOrchestrator:
    return request.app.state.orchestrator


def get_memory_retriever(request: Request) -> MemoryRetriever:
    return request.app.state.orchestrator.retriever


def get_reply_cache_store(request: Request) -> SqlReplyCacheStore:
    return request.app.state.reply_cache_store
