"""Fresh reply drafting from persona + conversation history.

Two modes:
- three drafts (short / medium / detailed) returned as one JSON object
- one draft for a requested archetype (short / funny / professional)
"""

import json
import logging
from typing import Optional, Sequence

from app.modules.smartreplies.services.errors import GenerationError
from app.modules.smartreplies.services.prompts import (
    build_single_draft_prompt,
    build_system_prompt,
    build_three_draft_prompt,
    render_history,
)
from app.modules.smartreplies.services.types import (
    ConversationTurn,
    PersonaProfile,
    ReplyDraftSet,
)
from core.conf import settings

logger = logging.getLogger(__name__)

DRAFT_KEYS = ("short", "medium", "detailed")


def parse_three_drafts(raw: str) -> ReplyDraftSet:
    """Strict parse of the structured response; any defect fails the whole set."""
    if not raw or not raw.strip():
        raise GenerationError("No response from completion backend")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise GenerationError("Malformed structured output from completion backend") from e
    if not isinstance(data, dict):
        raise GenerationError("Structured output is not a JSON object")

    drafts = {}
    for key in DRAFT_KEYS:
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            raise GenerationError(f"Structured output is missing a usable '{key}' draft")
        drafts[key] = value.strip()
    return ReplyDraftSet(**drafts)


class FullGenerator:
    def __init__(self, completion, temperature: Optional[float] = None, history_max_turns: Optional[int] = None):
        self.completion = completion
        self.temperature = temperature if temperature is not None else settings.GENERATION_TEMPERATURE
        self.history_max_turns = (
            history_max_turns if history_max_turns is not None else settings.HISTORY_MAX_TURNS
        )

    def _window(self, history: Sequence[ConversationTurn]) -> Sequence[ConversationTurn]:
        if self.history_max_turns <= 0:
            return []
        return list(history)[-self.history_max_turns:]

    async def _call(self, system_prompt: str, user_prompt: str, *, max_tokens: Optional[int] = None, structured: bool = False) -> str:
        try:
            return await self.completion.complete(
                system_prompt,
                user_prompt,
                temperature=self.temperature,
                max_output_tokens=max_tokens,
                structured_output=structured,
            )
        except Exception as e:
            logger.error(f"[generator] Completion backend failed: {e}", exc_info=True)
            raise GenerationError("Smart reply generation failed") from e

    async def generate(
        self,
        persona: PersonaProfile,
        history: Sequence[ConversationTurn],
        message_text: str,
        reply_type: Optional[str] = None,
        supplemental_context: Optional[str] = None,
    ) -> ReplyDraftSet:
        window = self._window(history)
        system_prompt = build_system_prompt(persona, render_history(window), supplemental_context)
        logger.info(
            f"[generator] mode={'single:' + reply_type if reply_type else 'three'} "
            f"history_turns={len(window)} supplemental={bool(supplemental_context)}"
        )

        if reply_type is None:
            raw = await self._call(system_prompt, build_three_draft_prompt(persona, message_text), structured=True)
            drafts = parse_three_drafts(raw)
            logger.info(
                f"[generator] Drafts generated: short={len(drafts.short)} "
                f"medium={len(drafts.medium)} detailed={len(drafts.detailed)}"
            )
            return drafts

        user_prompt, max_tokens = build_single_draft_prompt(persona, message_text, reply_type)
        text = (await self._call(system_prompt, user_prompt, max_tokens=max_tokens)).strip()
        if not text:
            raise GenerationError("No response from completion backend")
        return ReplyDraftSet.uniform(text, reply_type)
