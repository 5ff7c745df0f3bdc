import logging
from typing import Optional

from app.modules.smartreplies.services.errors import GenerationError
from app.modules.smartreplies.services.prompts import build_adaptation_prompts
from app.modules.smartreplies.services.types import PersonaProfile
from core.conf import settings

logger = logging.getLogger(__name__)


def _strip_wrapping_quotes(text: str, original: str) -> str:
    t = (text or "").strip()
    if len(t) >= 2 and t[0] == t[-1] == '"' and not original.strip().startswith('"'):
        return t[1:-1].strip()
    return t


class AdaptationGenerator:
    """Minimally rewrites a strongly matching past reply for a new fan message."""

    def __init__(self, completion, temperature: Optional[float] = None, max_tokens: Optional[int] = None):
        self.completion = completion
        self.temperature = temperature if temperature is not None else settings.ADAPTATION_TEMPERATURE
        self.max_tokens = max_tokens or settings.ADAPTATION_MAX_TOKENS

    async def adapt(self, memory_text: str, message_text: str, persona: PersonaProfile) -> str:
        system_prompt, user_prompt = build_adaptation_prompts(persona, memory_text, message_text)
        try:
            raw = await self.completion.complete(
                system_prompt,
                user_prompt,
                temperature=self.temperature,
                max_output_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error(f"[adaptation] Completion backend failed: {e}", exc_info=True)
            raise GenerationError("Reply adaptation failed") from e

        adapted = _strip_wrapping_quotes(raw, memory_text)
        if not adapted:
            logger.info("[adaptation] Empty completion, falling back to the original memory")
            return memory_text

        logger.info(f"[adaptation] Adapted memory: original_len={len(memory_text)} adapted_len={len(adapted)}")
        return adapted
