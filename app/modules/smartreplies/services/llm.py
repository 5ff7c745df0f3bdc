from typing import List, Dict, Any, Optional
import time
import hashlib
import logging
from openai import AsyncOpenAI, BadRequestError
from core.conf import settings
from core.utils.perf import profile_stage

logger = logging.getLogger(__name__)


def _ekey(model: str, text: str) -> str:
    h = hashlib.blake2b(text.encode("utf-8"), digest_size=16).hexdigest()
    return f"{model}:{h}"


class CompletionClient:
    """
    Prompt-in / text-out wrapper over Chat Completions, plus query embeddings
    for the vector memory backend. The AsyncOpenAI client is built on first use.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        embedding_model: Optional[str] = None,
        embed_cache_ttl_s: float = 300.0,
        embed_cache_max: int = 512,
    ):
        self._client = client
        self.model = model or settings.LLM_MODEL
        self.embedding_model = embedding_model or settings.EMBEDDING_MODEL
        self._embed_cache: dict[str, tuple[float, list[float]]] = {}
        self._embed_ttl = embed_cache_ttl_s
        self._embed_max = embed_cache_max

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT_SECS,
                max_retries=settings.OPENAI_MAX_RETRIES,
            )
        return self._client

    @profile_stage("llm_completion", slow_after_ms=10_000)
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_output_tokens: Optional[int] = None,
        structured_output: bool = False,
    ) -> str:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": (system_prompt or "").strip()},
            {"role": "user", "content": (user_prompt or "").strip()},
        ]
        params: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_output_tokens is not None:
            params["max_tokens"] = max_output_tokens
        if structured_output:
            params["response_format"] = {"type": "json_object"}

        logger.info(
            f"[LLM] Chat Completions: model={self.model}, temperature={temperature}, "
            f"max_tokens={max_output_tokens}, json={structured_output}"
        )

        client = self._get_client()
        try:
            response = await client.chat.completions.create(**params)
        except BadRequestError as e:
            # Some models only accept the default temperature; retry without it
            msg = str(e)
            if "temperature" in msg and "unsupported" in msg.lower():
                logger.warning("[LLM] Model rejected temperature, retrying without it")
                params.pop("temperature", None)
                response = await client.chat.completions.create(**params)
            else:
                raise

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    def _embed_cache_get(self, text: str) -> Optional[list[float]]:
        key = _ekey(self.embedding_model, text)
        item = self._embed_cache.get(key)
        if not item:
            return None
        ts, vec = item
        if time.time() - ts > self._embed_ttl:
            self._embed_cache.pop(key, None)
            return None
        return vec

    def _embed_cache_put(self, text: str, vec: list[float]) -> None:
        if len(self._embed_cache) >= self._embed_max:
            self._embed_cache.pop(next(iter(self._embed_cache)))
        self._embed_cache[_ekey(self.embedding_model, text)] = (time.time(), vec)

    @profile_stage("embedding", slow_after_ms=2_000)
    async def embed(self, text: str) -> list[float]:
        """Cached async embedding of a search query."""
        hit = self._embed_cache_get(text)
        if hit is not None:
            return hit
        res = await self._get_client().embeddings.create(model=self.embedding_model, input=text)
        vec = res.data[0].embedding
        self._embed_cache_put(text, vec)
        return vec
