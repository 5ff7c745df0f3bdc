# Prompt utilities for smart reply generation.

from .reply_prompts import (
    ARCHETYPES,
    build_adaptation_prompts,
    build_single_draft_prompt,
    build_system_prompt,
    build_three_draft_prompt,
    render_history,
)

__all__ = [
    "ARCHETYPES",
    "build_adaptation_prompts",
    "build_single_draft_prompt",
    "build_system_prompt",
    "build_three_draft_prompt",
    "render_history",
]
