from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

ReplyType = Literal["short", "funny", "professional"]
DraftSlot = Literal["short", "medium", "detailed"]

# Single-draft requests fill exactly one slot of the draft set.
REPLY_TYPE_SLOTS: Dict[str, DraftSlot] = {
    "short": "short",
    "funny": "medium",
    "professional": "detailed",
}


@dataclass(frozen=True)
class ReplyRequest:
    conversation_id: str
    message_text: str
    reply_type: Optional[ReplyType] = None
    persona_key: Optional[str] = None


@dataclass(frozen=True)
class RetrievedMemory:
    content: str
    similarity_score: float
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PersonaProfile:
    persona_key: str
    display_name: str
    personality: str
    tone: str
    voice_examples: List[str] = field(default_factory=list)
    avoid_list: List[str] = field(default_factory=list)
    signature: Optional[str] = None


@dataclass(frozen=True)
class ConversationTurn:
    sender_label: str
    text: str
    timestamp_millis: int


@dataclass(frozen=True)
class ReplyDraftSet:
    short: str = ""
    medium: str = ""
    detailed: str = ""

    @classmethod
    def uniform(cls, text: str, reply_type: Optional[str] = None) -> "ReplyDraftSet":
        """Same text in every requested slot; only the mapped slot for single-type requests."""
        if reply_type is None:
            return cls(short=text, medium=text, detailed=text)
        return cls(**{REPLY_TYPE_SLOTS[reply_type]: text})

    def as_dict(self) -> Dict[str, str]:
        return {"short": self.short, "medium": self.medium, "detailed": self.detailed}


@dataclass(frozen=True)
class CacheRecord:
    drafts: ReplyDraftSet
    generated_at_millis: int
