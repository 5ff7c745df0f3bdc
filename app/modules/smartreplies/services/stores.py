"""SQL-backed collaborators: persona profiles, conversation history and the reply cache.

Each call opens its own session, so concurrent requests share nothing but the engine.
"""

from typing import List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.modules.smartreplies.services.types import (
    CacheRecord,
    ConversationTurn,
    PersonaProfile,
    ReplyDraftSet,
)
from app.services.store import repo

logger = logging.getLogger(__name__)


class SqlPersonaStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_persona(self, persona_key: str) -> Optional[PersonaProfile]:
        async with self.session_factory() as db:
            row = await repo.get_profile(db, persona_key)
        if row is None:
            return None
        return PersonaProfile(
            persona_key=row.persona_key,
            display_name=row.display_name,
            personality=row.personality,
            tone=row.tone,
            voice_examples=list(row.examples or []),
            avoid_list=list(row.avoid or []),
            signature=row.signature,
        )


class SqlHistoryStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def recent_turns(self, conversation_id: str, max_count: int) -> List[ConversationTurn]:
        if max_count <= 0:
            return []
        async with self.session_factory() as db:
            rows = await repo.last_messages(db, conversation_id, limit=max_count)
        return [
            ConversationTurn(
                sender_label=r.sender_name or "User",
                text=r.text,
                timestamp_millis=r.timestamp_ms,
            )
            for r in rows
        ]


class SqlReplyCacheStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def latest_message_id(self, conversation_id: str) -> Optional[str]:
        async with self.session_factory() as db:
            msg = await repo.latest_message(db, conversation_id)
        return msg.id if msg else None

    async def write_record(self, conversation_id: str, message_id: str, record: CacheRecord) -> None:
        async with self.session_factory() as db:
            await repo.put_reply_cache(
                db,
                message_id=message_id,
                conversation_id=conversation_id,
                short=record.drafts.short,
                medium=record.drafts.medium,
                detailed=record.drafts.detailed,
                generated_at_ms=record.generated_at_millis,
            )
            await db.commit()

    async def read_latest(self, conversation_id: str) -> Optional[tuple[str, CacheRecord]]:
        """Returns (message_id, record) for the newest cached message, if any."""
        async with self.session_factory() as db:
            row = await repo.latest_reply_cache(db, conversation_id)
        if row is None:
            return None
        drafts = ReplyDraftSet(short=row.short, medium=row.medium, detailed=row.detailed)
        return row.message_id, CacheRecord(drafts=drafts, generated_at_millis=row.generated_at_ms)
