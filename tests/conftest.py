"""
Smart reply test fixtures.

In-process fakes for every external collaborator: memory search, completion
backend, persona store, history store and reply cache store.
"""

from __future__ import annotations

import json
from typing import Callable, Dict, List, Optional, Union

import pytest

from app.modules.smartreplies.services.adaptation import AdaptationGenerator
from app.modules.smartreplies.services.generator import FullGenerator
from app.modules.smartreplies.services.orchestrator import SmartReplyOrchestrator
from app.modules.smartreplies.services.reply_cache import ReplyCacheWriter
from app.modules.smartreplies.services.retrieval.memory_retriever import MemoryRetriever
from app.modules.smartreplies.services.tiering import Thresholds
from app.modules.smartreplies.services.types import (
    CacheRecord,
    ConversationTurn,
    PersonaProfile,
    RetrievedMemory,
)


class FakeMemoryBackend:
    def __init__(self, memories: Optional[List[RetrievedMemory]] = None, error: Optional[BaseException] = None):
        self.memories = list(memories or [])
        self.error = error
        self.calls: List[Dict] = []

    async def search(self, query, limit, threshold, scope_tag):
        self.calls.append({"query": query, "limit": limit, "threshold": threshold, "scope_tag": scope_tag})
        if self.error is not None:
            raise self.error
        return list(self.memories)


Reply = Union[str, BaseException, Callable[[Dict], str]]


class FakeCompletion:
    """Returns queued replies in order; the last one repeats."""

    def __init__(self, *replies: Reply):
        self.replies = list(replies) or [""]
        self.calls: List[Dict] = []

    async def complete(self, system_prompt, user_prompt, temperature, max_output_tokens=None, structured_output=False):
        call = {
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "temperature": temperature,
            "max_output_tokens": max_output_tokens,
            "structured_output": structured_output,
        }
        self.calls.append(call)
        reply = self.replies[min(len(self.calls) - 1, len(self.replies) - 1)]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(call)
        return reply


class FakePersonaStore:
    def __init__(self, persona: Optional[PersonaProfile] = None, error: Optional[BaseException] = None):
        self.persona = persona
        self.error = error
        self.calls: List[str] = []

    async def get_persona(self, persona_key):
        self.calls.append(persona_key)
        if self.error is not None:
            raise self.error
        if self.persona is None or self.persona.persona_key != persona_key:
            return None
        return self.persona


class FakeHistoryStore:
    def __init__(self, turns: Optional[List[ConversationTurn]] = None, error: Optional[BaseException] = None):
        self.turns = list(turns or [])
        self.error = error
        self.calls: List[Dict] = []

    async def recent_turns(self, conversation_id, max_count):
        self.calls.append({"conversation_id": conversation_id, "max_count": max_count})
        if self.error is not None:
            raise self.error
        return self.turns[-max_count:] if max_count else []


class FakeCacheStore:
    def __init__(self, latest_message: Optional[str] = "msg-1", error: Optional[BaseException] = None):
        self.latest_message = latest_message
        self.error = error
        self.writes: List[Dict] = []
        self.records: Dict[str, CacheRecord] = {}

    async def latest_message_id(self, conversation_id):
        return self.latest_message

    async def write_record(self, conversation_id, message_id, record):
        if self.error is not None:
            raise self.error
        self.writes.append({"conversation_id": conversation_id, "message_id": message_id, "record": record})
        self.records[message_id] = record


def drafts_json(short="Thanks!", medium="Thanks so much for reaching out. Love hearing from you!", detailed=None) -> str:
    detailed = detailed or (
        "Thanks so much for reaching out. I read every message. "
        "I really appreciate you taking the time. Keep creating and sharing. Talk soon!"
    )
    return json.dumps({"short": short, "medium": medium, "detailed": detailed})


@pytest.fixture
def persona():
    return PersonaProfile(
        persona_key="andrew",
        display_name="Andrew",
        personality="friendly music producer who streams beat-making sessions",
        tone="casual, upbeat, uses emoji sparingly",
        voice_examples=["yo thanks for tuning in 🔥", "appreciate you fr"],
        avoid_list=["corporate speak", "hashtags"],
        signature="- A",
    )


@pytest.fixture
def history():
    return [
        ConversationTurn(sender_label="Sam", text="hey Andrew!", timestamp_millis=1_000),
        ConversationTurn(sender_label="Andrew", text="yo Sam what's good", timestamp_millis=2_000),
    ]


@pytest.fixture
def build_orchestrator(persona, history):
    """Factory returning (orchestrator, fakes) with overridable collaborators."""

    def _build(
        memories=None,
        memory_error=None,
        completion=None,
        persona_store=None,
        history_store=None,
        cache_store=None,
        deadline_secs=5.0,
    ):
        backend = FakeMemoryBackend(memories, memory_error)
        completion = completion or FakeCompletion(drafts_json())
        persona_store = persona_store or FakePersonaStore(persona)
        history_store = history_store or FakeHistoryStore(history)
        cache_store = cache_store or FakeCacheStore()
        orchestrator = SmartReplyOrchestrator(
            retriever=MemoryRetriever(
                backend,
                limit=3,
                relevance_floor=0.5,
                max_query_chars=500,
                scope_tag_template="{persona_key}-response",
                timeout_secs=2.0,
            ),
            persona_store=persona_store,
            history_store=history_store,
            adapter=AdaptationGenerator(completion, temperature=0.2, max_tokens=300),
            generator=FullGenerator(completion, temperature=0.7, history_max_turns=20),
            cache_writer=ReplyCacheWriter(cache_store, timeout_secs=2.0),
            thresholds=Thresholds(exact=0.90, adapt=0.75, supplemental=0.60),
            deadline_secs=deadline_secs,
            default_persona_key="andrew",
            history_max_turns=20,
        )
        fakes = {
            "backend": backend,
            "completion": completion,
            "persona_store": persona_store,
            "history_store": history_store,
            "cache_store": cache_store,
        }
        return orchestrator, fakes

    return _build
