from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy import JSON, BigInteger, String, Text, DateTime, ForeignKey
from datetime import datetime
from typing import List, Optional
import uuid

Base = declarative_base()

def _uuid() -> str:
    return str(uuid.uuid4())

class CreatorProfile(Base):
    __tablename__ = "creator_profiles"
    persona_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(128))
    personality: Mapped[str] = mapped_column(Text)
    tone: Mapped[str] = mapped_column(Text)
    examples: Mapped[List[str]] = mapped_column(JSON, default=list)
    avoid: Mapped[List[str]] = mapped_column(JSON, default=list)
    signature: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)

class Conversation(Base):
    __tablename__ = "conversations"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

class ChatMessage(Base):
    __tablename__ = "chat_messages"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    conversation_id: Mapped[str] = mapped_column(String(64), ForeignKey("conversations.id", ondelete="CASCADE"), index=True)
    sender_id: Mapped[str] = mapped_column(String(128))
    sender_name: Mapped[str] = mapped_column(String(128), default="User")
    text: Mapped[str] = mapped_column(Text)
    timestamp_ms: Mapped[int] = mapped_column(BigInteger, index=True)

class SmartReplyCache(Base):
    """One row per message; rewritten in full on every generation."""
    __tablename__ = "smart_reply_cache"
    message_id: Mapped[str] = mapped_column(String(64), ForeignKey("chat_messages.id", ondelete="CASCADE"), primary_key=True)
    conversation_id: Mapped[str] = mapped_column(String(64), index=True)
    short: Mapped[str] = mapped_column(Text, default="")
    medium: Mapped[str] = mapped_column(Text, default="")
    detailed: Mapped[str] = mapped_column(Text, default="")
    generated_at_ms: Mapped[int] = mapped_column(BigInteger)
