"""Typed failures surfaced at the orchestrator boundary."""


class SmartReplyError(RuntimeError):
    """Base class for fatal smart-reply failures."""


class InvalidReplyRequest(SmartReplyError):
    """Raised when conversationId or messageText is missing."""


class PersonaNotFoundError(SmartReplyError):
    """Raised when the creator persona profile cannot be loaded."""

    def __init__(self, persona_key: str):
        super().__init__(f"Creator profile not found: {persona_key}")
        self.persona_key = persona_key


class GenerationError(SmartReplyError):
    """Raised when the completion backend fails or returns malformed structured output."""


class ReplyDeadlineExceeded(SmartReplyError):
    """Raised when the pipeline does not finish within its overall deadline."""


class MemoryBackendNotConfigured(RuntimeError):
    """Raised by a memory backend whose credentials or endpoint are absent."""


class MemoryBackendHTTPError(RuntimeError):
    """Raised by a memory backend on a non-2xx response."""

    def __init__(self, status: int, body: str):
        super().__init__(f"memory search returned HTTP {status}")
        self.status = status
        self.body = body
