"""Smart reply orchestration: retrieval -> tiering -> adaptation/generation -> caching."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from app.modules.smartreplies.services.adaptation import AdaptationGenerator
from app.modules.smartreplies.services.errors import (
    InvalidReplyRequest,
    PersonaNotFoundError,
    ReplyDeadlineExceeded,
    SmartReplyError,
)
from app.modules.smartreplies.services.generator import FullGenerator
from app.modules.smartreplies.services.reply_cache import ReplyCacheWriter
from app.modules.smartreplies.services.retrieval.memory_retriever import (
    MemoryRetriever,
    RetrievalTrace,
)
from app.modules.smartreplies.services.tiering import (
    Strategy,
    Thresholds,
    format_supplemental_context,
    select_strategy,
)
from app.modules.smartreplies.services.types import (
    REPLY_TYPE_SLOTS,
    ConversationTurn,
    PersonaProfile,
    ReplyDraftSet,
    ReplyRequest,
)
from core.conf import settings
from core.utils.perf import profile_stage

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    RECEIVED = "received"
    RETRIEVING = "retrieving"
    EXACT_REUSE = "exact_reuse"
    ADAPTING = "adapting"
    GENERATING = "generating"
    CACHING = "caching"
    COMPLETED = "completed"
    ERRORED = "errored"


@dataclass
class ReplyTrace:
    states: List[PipelineState] = field(default_factory=list)
    strategy: Optional[Strategy] = None
    best_score: Optional[float] = None
    retrieval: Optional[RetrievalTrace] = None
    cache_written: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "best_score": self.best_score,
            "retrieval": self.retrieval.as_dict() if self.retrieval else None,
            "states": [s.value for s in self.states],
            "cache_written": self.cache_written,
        }


@dataclass
class SmartReplyResult:
    drafts: ReplyDraftSet
    trace: ReplyTrace


class SmartReplyOrchestrator:
    """Drives one request through the pipeline; holds no per-request state."""

    def __init__(
        self,
        retriever: MemoryRetriever,
        persona_store,
        history_store,
        adapter: AdaptationGenerator,
        generator: FullGenerator,
        cache_writer: ReplyCacheWriter,
        thresholds: Optional[Thresholds] = None,
        deadline_secs: Optional[float] = None,
        default_persona_key: Optional[str] = None,
        history_max_turns: Optional[int] = None,
    ):
        self.retriever = retriever
        self.persona_store = persona_store
        self.history_store = history_store
        self.adapter = adapter
        self.generator = generator
        self.cache_writer = cache_writer
        self.thresholds = thresholds or Thresholds.from_settings()
        self.deadline_secs = deadline_secs if deadline_secs is not None else settings.SMART_REPLY_DEADLINE_SECS
        self.default_persona_key = default_persona_key or settings.DEFAULT_PERSONA_KEY
        self.history_max_turns = (
            history_max_turns if history_max_turns is not None else settings.HISTORY_MAX_TURNS
        )

    @staticmethod
    def _enter(trace: ReplyTrace, state: PipelineState) -> None:
        trace.states.append(state)
        logger.debug(f"[smart-replies] state={state.value}")

    @staticmethod
    def _validate(request: ReplyRequest) -> None:
        if not (request.conversation_id or "").strip() or not (request.message_text or "").strip():
            raise InvalidReplyRequest("conversationId and messageText are required")
        if request.reply_type is not None and request.reply_type not in REPLY_TYPE_SLOTS:
            raise InvalidReplyRequest(f"Unsupported replyType: {request.reply_type}")

    async def _load_persona(self, persona_key: str) -> PersonaProfile:
        try:
            persona = await self.persona_store.get_persona(persona_key)
        except Exception as e:
            logger.error(f"[smart-replies] Persona load failed for '{persona_key}': {e}", exc_info=True)
            raise PersonaNotFoundError(persona_key) from e
        if persona is None:
            raise PersonaNotFoundError(persona_key)
        logger.info(f"[smart-replies] Creator profile loaded: {persona_key}")
        return persona

    async def _load_history(self, conversation_id: str) -> List[ConversationTurn]:
        try:
            turns = await self.history_store.recent_turns(conversation_id, self.history_max_turns)
        except Exception as e:
            logger.warning(f"[smart-replies] History load failed (non-fatal): {e}")
            return []
        logger.info(f"[smart-replies] Retrieved {len(turns)} messages for context")
        return list(turns)

    async def _produce(self, request: ReplyRequest, persona_key: str, trace: ReplyTrace) -> ReplyDraftSet:
        self._enter(trace, PipelineState.RETRIEVING)
        found = await self.retriever.retrieve(request.message_text, persona_key)
        trace.retrieval = found.trace

        decision = select_strategy(found.memories, self.thresholds)
        trace.strategy = decision.strategy
        trace.best_score = decision.best_score
        logger.info(
            f"[smart-replies] Tier decision: strategy={decision.strategy} best_score={decision.best_score} "
            f"matches={len(found.memories)} retrieval={found.trace.outcome}"
        )

        if decision.strategy == "exact_reuse":
            self._enter(trace, PipelineState.EXACT_REUSE)
            return ReplyDraftSet.uniform(decision.best.content, request.reply_type)

        if decision.strategy == "adapt":
            self._enter(trace, PipelineState.ADAPTING)
            persona = await self._load_persona(persona_key)
            adapted = await self.adapter.adapt(decision.best.content, request.message_text, persona)
            return ReplyDraftSet.uniform(adapted, request.reply_type)

        self._enter(trace, PipelineState.GENERATING)
        persona = await self._load_persona(persona_key)
        history = await self._load_history(request.conversation_id)
        context = (
            format_supplemental_context(decision.context)
            if decision.strategy == "supplemental"
            else None
        )
        return await self.generator.generate(
            persona,
            history,
            request.message_text,
            reply_type=request.reply_type,
            supplemental_context=context,
        )

    @profile_stage("smart_replies", slow_after_ms=15_000)
    async def generate(self, request: ReplyRequest) -> SmartReplyResult:
        trace = ReplyTrace()
        self._enter(trace, PipelineState.RECEIVED)
        try:
            self._validate(request)
        except InvalidReplyRequest:
            self._enter(trace, PipelineState.ERRORED)
            raise

        persona_key = request.persona_key or self.default_persona_key
        logger.info(
            f"[smart-replies] Generating: conversation={request.conversation_id} "
            f"reply_type={request.reply_type or 'all'} preview={request.message_text[:50]!r}"
        )

        try:
            drafts = await asyncio.wait_for(
                self._produce(request, persona_key, trace),
                timeout=self.deadline_secs,
            )
        except asyncio.TimeoutError as e:
            self._enter(trace, PipelineState.ERRORED)
            logger.error(f"[smart-replies] Deadline of {self.deadline_secs}s exceeded")
            raise ReplyDeadlineExceeded(f"Smart reply generation exceeded {self.deadline_secs}s") from e
        except SmartReplyError as e:
            self._enter(trace, PipelineState.ERRORED)
            logger.error(f"[smart-replies] Failed: {type(e).__name__}: {e}")
            raise

        self._enter(trace, PipelineState.CACHING)
        trace.cache_written = await self.cache_writer.write(request.conversation_id, drafts)
        self._enter(trace, PipelineState.COMPLETED)
        return SmartReplyResult(drafts=drafts, trace=trace)
