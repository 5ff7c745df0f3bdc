from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional


class SmartReplyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional here so blank/missing values reach the 400 check instead of a 422
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    message_text: Optional[str] = Field(default=None, alias="messageText")
    reply_type: Optional[Literal["short", "funny", "professional"]] = Field(default=None, alias="replyType")
    persona_key: Optional[str] = Field(default=None, alias="personaKey")


class DraftSet(BaseModel):
    short: str = ""
    medium: str = ""
    detailed: str = ""


class SmartReplyResponse(BaseModel):
    drafts: DraftSet
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MemorySearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    limit: int = Field(default=3, ge=1, le=3)
    persona_key: Optional[str] = Field(default=None, alias="personaKey")


class MemoryItem(BaseModel):
    content: str
    score: float
    metadata: Dict[str, str] = Field(default_factory=dict)


class MemorySearchResponse(BaseModel):
    memories: List[MemoryItem] = Field(default_factory=list)
    trace: Dict[str, Any] = Field(default_factory=dict)
    searched_at: str = Field(serialization_alias="searchedAt")


class CachedRepliesResponse(BaseModel):
    conversation_id: str
    message_id: str
    drafts: DraftSet
    generated_at: int
