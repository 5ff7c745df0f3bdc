from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone
import logging
import time

from app.modules.smartreplies.schema.replies import (
    CachedRepliesResponse,
    DraftSet,
    MemoryItem,
    MemorySearchRequest,
    MemorySearchResponse,
    SmartReplyRequest,
    SmartReplyResponse,
)
from app.modules.smartreplies.services.errors import (
    GenerationError,
    InvalidReplyRequest,
    PersonaNotFoundError,
    ReplyDeadlineExceeded,
)
from app.modules.smartreplies.services.orchestrator import SmartReplyOrchestrator
from app.modules.smartreplies.services.retrieval.memory_retriever import MemoryRetriever
from app.modules.smartreplies.services.stores import SqlReplyCacheStore
from app.modules.smartreplies.services.types import ReplyRequest
from core.conf import settings
from core.config import get_memory_retriever, get_orchestrator, get_reply_cache_store

logger = logging.getLogger(__name__)

v1 = APIRouter(prefix=f"{settings.FASTAPI_API_V1_PATH}/creator", tags=["Smart Replies"])


@v1.post("/smart-replies", response_model=SmartReplyResponse)
async def generate_smart_replies(
    req: SmartReplyRequest,
    orchestrator: SmartReplyOrchestrator = Depends(get_orchestrator),
) -> SmartReplyResponse:
    """Generate up to three reply drafts in the creator's voice."""
    start_time = time.time()
    request = ReplyRequest(
        conversation_id=(req.conversation_id or "").strip(),
        message_text=(req.message_text or "").strip(),
        reply_type=req.reply_type,
        persona_key=req.persona_key,
    )

    try:
        result = await orchestrator.generate(request)
    except InvalidReplyRequest as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersonaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ReplyDeadlineExceeded as e:
        raise HTTPException(status_code=504, detail=str(e))
    except GenerationError as e:
        raise HTTPException(status_code=500, detail="Smart reply generation failed") from e

    elapsed_ms = int((time.time() - start_time) * 1000)
    logger.info(
        f"Smart replies served in {elapsed_ms}ms: conversation={request.conversation_id} "
        f"strategy={result.trace.strategy}"
    )
    return SmartReplyResponse(
        drafts=DraftSet(**result.drafts.as_dict()),
        metadata=result.trace.as_dict(),
    )


@v1.post("/memories/search", response_model=MemorySearchResponse)
async def search_memories(
    req: MemorySearchRequest,
    retriever: MemoryRetriever = Depends(get_memory_retriever),
) -> MemorySearchResponse:
    """Search past creator responses; backend failures come back as an empty list."""
    found = await retriever.retrieve(req.query, req.persona_key or settings.DEFAULT_PERSONA_KEY, limit=req.limit)
    return MemorySearchResponse(
        memories=[
            MemoryItem(content=m.content, score=m.similarity_score, metadata=m.metadata)
            for m in found.memories
        ],
        trace=found.trace.as_dict(),
        searched_at=datetime.now(timezone.utc).isoformat(),
    )


@v1.get("/conversations/{conversation_id}/smart-replies", response_model=CachedRepliesResponse)
async def get_cached_replies(
    conversation_id: str,
    store: SqlReplyCacheStore = Depends(get_reply_cache_store),
) -> CachedRepliesResponse:
    """Return the drafts cached on the conversation's newest message."""
    try:
        cached = await store.read_latest(conversation_id)
    except Exception as e:
        logger.error(f"Reading cached replies failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to read cached replies") from e

    if cached is None:
        raise HTTPException(status_code=404, detail="No cached smart replies for this conversation")

    message_id, record = cached
    return CachedRepliesResponse(
        conversation_id=conversation_id,
        message_id=message_id,
        drafts=DraftSet(**record.drafts.as_dict()),
        generated_at=record.generated_at_millis,
    )
