"""End-to-end pipeline tests for SmartReplyOrchestrator with in-process fakes."""

import asyncio
import json
import re

import pytest

from app.modules.smartreplies.services.errors import (
    GenerationError,
    InvalidReplyRequest,
    MemoryBackendHTTPError,
    PersonaNotFoundError,
    ReplyDeadlineExceeded,
)
from app.modules.smartreplies.services.orchestrator import PipelineState
from app.modules.smartreplies.services.types import ReplyRequest, RetrievedMemory

from conftest import FakeCacheStore, FakeCompletion, FakeHistoryStore, FakePersonaStore, drafts_json

STREAM_MEMORY = "I stream Mon–Fri at 7pm EST!"


def _emoji(text):
    return set(re.findall(r"[\U0001F300-\U0001FAFF☀-➿]", text))


def _sentences(text):
    return len([s for s in re.split(r"[.!?]+", text) if s.strip()])


def _longest_common_substring(a, b):
    best = 0
    prev = [0] * (len(b) + 1)
    for i in range(1, len(a) + 1):
        cur = [0] * (len(b) + 1)
        for j in range(1, len(b) + 1):
            if a[i - 1] == b[j - 1]:
                cur[j] = prev[j - 1] + 1
                best = max(best, cur[j])
        prev = cur
    return best


# ---------------------------------------------------------------------------
# Exact reuse
# ---------------------------------------------------------------------------


class TestExactReuse:
    @pytest.mark.asyncio
    async def test_scenario_a_all_slots_verbatim(self, build_orchestrator):
        orchestrator, fakes = build_orchestrator(memories=[RetrievedMemory(STREAM_MEMORY, 0.95)])
        result = await orchestrator.generate(ReplyRequest("conv-1", "What time do you stream?"))

        assert result.drafts.short == STREAM_MEMORY
        assert result.drafts.medium == STREAM_MEMORY
        assert result.drafts.detailed == STREAM_MEMORY
        assert fakes["completion"].calls == []
        assert fakes["persona_store"].calls == []
        assert result.trace.strategy == "exact_reuse"
        assert result.trace.states == [
            PipelineState.RECEIVED,
            PipelineState.RETRIEVING,
            PipelineState.EXACT_REUSE,
            PipelineState.CACHING,
            PipelineState.COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_single_type_only_fills_mapped_slot(self, build_orchestrator):
        orchestrator, _ = build_orchestrator(memories=[RetrievedMemory(STREAM_MEMORY, 0.97)])
        result = await orchestrator.generate(ReplyRequest("conv-1", "when do you stream", reply_type="funny"))

        assert result.drafts.as_dict() == {"short": "", "medium": STREAM_MEMORY, "detailed": ""}


# ---------------------------------------------------------------------------
# Adaptation
# ---------------------------------------------------------------------------


class TestAdaptation:
    @pytest.mark.asyncio
    async def test_adapted_reply_preserves_emoji_and_sentences(self, build_orchestrator):
        memory = "Thanks Sam!! 🔥 Streams are Mon-Fri at 7pm. See you there 🎧"
        adapted = "Thanks Jess!! 🔥 Streams are Mon-Fri at 7pm. See you there 🎧"
        unrelated = "Merch drops next week, stay tuned."
        orchestrator, fakes = build_orchestrator(
            memories=[RetrievedMemory(memory, 0.82)],
            completion=FakeCompletion(adapted),
        )
        result = await orchestrator.generate(ReplyRequest("conv-1", "Jess here, when do you stream?"))

        for text in result.drafts.as_dict().values():
            assert text == adapted
            assert _emoji(text) == _emoji(memory)
            assert abs(_sentences(text) - _sentences(memory)) <= 1
            assert text != unrelated
        assert result.trace.strategy == "adapt"
        assert PipelineState.ADAPTING in result.trace.states
        assert len(fakes["completion"].calls) == 1

    @pytest.mark.asyncio
    async def test_empty_adaptation_falls_back_to_memory(self, build_orchestrator):
        orchestrator, _ = build_orchestrator(
            memories=[RetrievedMemory("see you at 7 😊", 0.8)],
            completion=FakeCompletion(""),
        )
        result = await orchestrator.generate(ReplyRequest("conv-1", "stream time?", reply_type="short"))
        assert result.drafts.as_dict() == {"short": "see you at 7 😊", "medium": "", "detailed": ""}

    @pytest.mark.asyncio
    async def test_adaptation_requires_persona(self, build_orchestrator):
        orchestrator, fakes = build_orchestrator(
            memories=[RetrievedMemory("see you at 7", 0.8)],
            persona_store=FakePersonaStore(None),
        )
        with pytest.raises(PersonaNotFoundError):
            await orchestrator.generate(ReplyRequest("conv-1", "stream time?"))
        assert fakes["cache_store"].writes == []


# ---------------------------------------------------------------------------
# Supplemental and full generation
# ---------------------------------------------------------------------------


class TestGeneration:
    @pytest.mark.asyncio
    async def test_supplemental_context_includes_all_matches_over_threshold(self, build_orchestrator):
        memories = [
            RetrievedMemory("I use FL Studio for most beats.", 0.68),
            RetrievedMemory("My mic is a Shure SM7B.", 0.63),
            RetrievedMemory("Unrelated memory about merch.", 0.52),
        ]
        orchestrator, fakes = build_orchestrator(memories=memories)
        result = await orchestrator.generate(ReplyRequest("conv-1", "what gear do you use?"))

        system_prompt = fakes["completion"].calls[0]["system_prompt"]
        assert "1. I use FL Studio for most beats." in system_prompt
        assert "2. My mic is a Shure SM7B." in system_prompt
        assert "Unrelated memory about merch." not in system_prompt
        assert result.trace.strategy == "supplemental"

    @pytest.mark.asyncio
    async def test_weak_matches_never_reach_prompt_or_output(self, build_orchestrator):
        weak = "I usually reply to demo submissions within two weeks, thanks for waiting!"
        orchestrator, fakes = build_orchestrator(memories=[RetrievedMemory(weak, 0.55)])
        result = await orchestrator.generate(ReplyRequest("conv-1", "Can you review my demo?"))

        call = fakes["completion"].calls[0]
        assert weak not in call["system_prompt"] and weak not in call["user_prompt"]
        for text in result.drafts.as_dict().values():
            assert _longest_common_substring(text, weak) <= 20
        assert result.trace.strategy == "full"

    @pytest.mark.asyncio
    async def test_scenario_b_three_distinct_increasing_drafts(self, build_orchestrator):
        completion = FakeCompletion(
            json.dumps(
                {
                    "short": "Send it over!",
                    "medium": "Send it over! I'll give it a listen this week.",
                    "detailed": (
                        "Send it over! I'll give it a listen this week. I try to hear every demo. "
                        "I'll let you know what stands out. Keep making music!"
                    ),
                }
            )
        )
        orchestrator, fakes = build_orchestrator(memories=[], completion=completion)
        result = await orchestrator.generate(ReplyRequest("conv-1", "Can you review my demo?"))

        d = result.drafts
        assert len({d.short, d.medium, d.detailed}) == 3
        assert all([d.short, d.medium, d.detailed])
        assert len(d.short) < len(d.medium) < len(d.detailed)
        assert fakes["history_store"].calls == [{"conversation_id": "conv-1", "max_count": 20}]

    @pytest.mark.asyncio
    async def test_short_reply_type(self, build_orchestrator):
        orchestrator, _ = build_orchestrator(completion=FakeCompletion("Love it, send it!"))
        result = await orchestrator.generate(ReplyRequest("conv-1", "Can you review my demo?", reply_type="short"))

        assert result.drafts.short == "Love it, send it!"
        assert result.drafts.medium == ""
        assert result.drafts.detailed == ""

    @pytest.mark.asyncio
    async def test_retrieval_failure_falls_back_to_full_generation(self, build_orchestrator):
        orchestrator, _ = build_orchestrator(memory_error=MemoryBackendHTTPError(500, "boom"))
        result = await orchestrator.generate(ReplyRequest("conv-1", "Can you review my demo?"))

        assert all(result.drafts.as_dict().values())
        assert result.trace.strategy == "full"
        assert result.trace.retrieval.outcome == "http_error"

    @pytest.mark.asyncio
    async def test_history_failure_is_not_fatal(self, build_orchestrator):
        orchestrator, fakes = build_orchestrator(history_store=FakeHistoryStore(error=RuntimeError("db down")))
        result = await orchestrator.generate(ReplyRequest("conv-1", "hello"))

        assert all(result.drafts.as_dict().values())
        assert "(no earlier messages)" in fakes["completion"].calls[0]["system_prompt"]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "request_",
        [
            ReplyRequest("", "hello"),
            ReplyRequest("conv-1", ""),
            ReplyRequest("   ", "   "),
            ReplyRequest("conv-1", "hello", reply_type="sarcastic"),
        ],
    )
    async def test_invalid_request_makes_no_calls(self, build_orchestrator, request_):
        orchestrator, fakes = build_orchestrator()
        with pytest.raises(InvalidReplyRequest):
            await orchestrator.generate(request_)

        assert fakes["backend"].calls == []
        assert fakes["completion"].calls == []
        assert fakes["cache_store"].writes == []

    @pytest.mark.asyncio
    async def test_persona_missing_is_not_found_with_no_cache_write(self, build_orchestrator):
        orchestrator, fakes = build_orchestrator(persona_store=FakePersonaStore(None))
        with pytest.raises(PersonaNotFoundError):
            await orchestrator.generate(ReplyRequest("conv-1", "hello"))

        assert fakes["completion"].calls == []
        assert fakes["cache_store"].writes == []

    @pytest.mark.asyncio
    async def test_persona_store_error_is_not_found(self, build_orchestrator):
        orchestrator, fakes = build_orchestrator(persona_store=FakePersonaStore(error=RuntimeError("firestore down")))
        with pytest.raises(PersonaNotFoundError):
            await orchestrator.generate(ReplyRequest("conv-1", "hello"))
        assert fakes["cache_store"].writes == []

    @pytest.mark.asyncio
    async def test_persona_key_from_request_is_used(self, build_orchestrator):
        orchestrator, fakes = build_orchestrator()
        with pytest.raises(PersonaNotFoundError):
            await orchestrator.generate(ReplyRequest("conv-1", "hello", persona_key="someone-else"))

        assert fakes["persona_store"].calls == ["someone-else"]
        assert fakes["backend"].calls[0]["scope_tag"] == "someone-else-response"

    @pytest.mark.asyncio
    async def test_malformed_generation_is_fatal_with_no_drafts(self, build_orchestrator):
        orchestrator, fakes = build_orchestrator(completion=FakeCompletion("sure! here are replies"))
        with pytest.raises(GenerationError):
            await orchestrator.generate(ReplyRequest("conv-1", "hello"))
        assert fakes["cache_store"].writes == []

    @pytest.mark.asyncio
    async def test_deadline_applies_to_whole_pipeline(self, build_orchestrator):
        class SlowCompletion(FakeCompletion):
            async def complete(self, *args, **kwargs):
                await asyncio.sleep(5)
                return drafts_json()

        orchestrator, fakes = build_orchestrator(completion=SlowCompletion(), deadline_secs=0.05)
        with pytest.raises(ReplyDeadlineExceeded):
            await orchestrator.generate(ReplyRequest("conv-1", "hello"))
        assert fakes["cache_store"].writes == []


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    @pytest.mark.asyncio
    async def test_back_to_back_calls_last_write_wins(self, build_orchestrator):
        completion = FakeCompletion(
            drafts_json(short="first"),
            drafts_json(short="second"),
        )
        cache = FakeCacheStore(latest_message="msg-9")
        orchestrator, _ = build_orchestrator(completion=completion, cache_store=cache)

        await orchestrator.generate(ReplyRequest("conv-1", "hello"))
        second = await orchestrator.generate(ReplyRequest("conv-1", "hello"))

        assert len(cache.writes) == 2
        assert cache.records["msg-9"].drafts == second.drafts
        assert cache.records["msg-9"].drafts.short == "second"

    @pytest.mark.asyncio
    async def test_cache_failure_still_returns_drafts(self, build_orchestrator):
        orchestrator, _ = build_orchestrator(cache_store=FakeCacheStore(error=RuntimeError("write denied")))
        result = await orchestrator.generate(ReplyRequest("conv-1", "hello"))

        assert all(result.drafts.as_dict().values())
        assert result.trace.cache_written is False
        assert result.trace.states[-1] == PipelineState.COMPLETED

    @pytest.mark.asyncio
    async def test_no_messages_means_no_cache_write(self, build_orchestrator):
        cache = FakeCacheStore(latest_message=None)
        orchestrator, _ = build_orchestrator(cache_store=cache)
        result = await orchestrator.generate(ReplyRequest("conv-1", "hello"))

        assert cache.writes == []
        assert result.trace.cache_written is False


def test_zero_deadline_is_kept(build_orchestrator):
    orchestrator, _ = build_orchestrator(deadline_secs=0)
    assert orchestrator.deadline_secs == 0
