from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from .models import ChatMessage, CreatorProfile, SmartReplyCache

async def get_profile(db: AsyncSession, persona_key: str) -> Optional[CreatorProfile]:
    return await db.get(CreatorProfile, persona_key)

async def last_messages(db: AsyncSession, conversation_id: str, limit: int = 20) -> List[ChatMessage]:
    q = select(ChatMessage).where(ChatMessage.conversation_id == conversation_id).order_by(ChatMessage.timestamp_ms.desc()).limit(limit)
    res = await db.execute(q)
    return list(reversed([r[0] for r in res.all()]))

async def latest_message(db: AsyncSession, conversation_id: str) -> Optional[ChatMessage]:
    rows = await last_messages(db, conversation_id, limit=1)
    return rows[0] if rows else None

def _upsert_stmt(db: AsyncSession, values: dict):
    """INSERT ... ON CONFLICT(message_id) DO UPDATE for the session's dialect."""
    dialect = db.bind.dialect.name
    if dialect == "sqlite":
        stmt = sqlite_insert(SmartReplyCache).values(**values)
    elif dialect == "postgresql":
        stmt = pg_insert(SmartReplyCache).values(**values)
    else:
        raise NotImplementedError(f"reply cache upsert not supported on {dialect}")
    return stmt.on_conflict_do_update(
        index_elements=[SmartReplyCache.message_id],
        set_={k: stmt.excluded[k] for k in values if k != "message_id"},
    )

async def put_reply_cache(
    db: AsyncSession,
    message_id: str,
    conversation_id: str,
    short: str,
    medium: str,
    detailed: str,
    generated_at_ms: int,
) -> None:
    # single atomic statement: concurrent writers overwrite each other, never conflict
    values = dict(
        message_id=message_id,
        conversation_id=conversation_id,
        short=short,
        medium=medium,
        detailed=detailed,
        generated_at_ms=generated_at_ms,
    )
    await db.execute(_upsert_stmt(db, values))

async def latest_reply_cache(db: AsyncSession, conversation_id: str) -> Optional[SmartReplyCache]:
    q = (
        select(SmartReplyCache)
        .join(ChatMessage, ChatMessage.id == SmartReplyCache.message_id)
        .where(SmartReplyCache.conversation_id == conversation_id)
        .order_by(ChatMessage.timestamp_ms.desc())
        .limit(1)
    )
    res = await db.execute(q)
    row = res.first()
    return row[0] if row else None
