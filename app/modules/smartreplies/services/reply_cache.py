import asyncio
import logging
import time
from typing import Optional

from app.modules.smartreplies.services.types import CacheRecord, ReplyDraftSet
from core.conf import settings

logger = logging.getLogger(__name__)


def now_millis() -> int:
    return int(time.time() * 1000)


class ReplyCacheWriter:
    """Best-effort: attaches drafts to the conversation's newest message; never raises."""

    def __init__(self, store, timeout_secs: Optional[float] = None):
        self.store = store
        self.timeout_secs = timeout_secs if timeout_secs is not None else settings.CACHE_WRITE_TIMEOUT_SECS

    async def _write(self, conversation_id: str, record: CacheRecord) -> bool:
        message_id = await self.store.latest_message_id(conversation_id)
        if not message_id:
            logger.info(f"[reply-cache] No messages in conversation {conversation_id}, nothing to cache")
            return False
        await self.store.write_record(conversation_id, message_id, record)
        logger.info(f"[reply-cache] Cached drafts on message {message_id} (conversation {conversation_id})")
        return True

    async def write(self, conversation_id: str, drafts: ReplyDraftSet) -> bool:
        record = CacheRecord(drafts=drafts, generated_at_millis=now_millis())
        try:
            return await asyncio.wait_for(self._write(conversation_id, record), timeout=self.timeout_secs)
        except Exception as e:
            logger.warning(f"[reply-cache] Cache write failed (non-fatal): {e}")
            return False
