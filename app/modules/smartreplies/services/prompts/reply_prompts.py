from textwrap import dedent
from typing import Dict, Optional, Sequence, Tuple

from app.modules.smartreplies.services.types import ConversationTurn, PersonaProfile

# Persona section of every generation prompt. Optional blocks are appended
# by build_system_prompt() so empty sections never leave blank headers.
PERSONA_PROMPT_TMPL = dedent("""
You are {NAME}, a {PERSONALITY}

Your tone: {TONE}

Example responses you've written:
{EXAMPLES}

Avoid: {AVOID}
""").strip()

SUPPLEMENTAL_CONTEXT_TMPL = dedent("""
Relevant past responses you've sent to similar messages (use them for facts
and voice, but write a fresh reply; do not copy them):
{CONTEXT}
""").strip()

THREE_DRAFT_USER_TMPL = dedent("""
The fan just sent: "{MESSAGE}"

Generate 3 reply options:
1. Short (1 sentence, quick acknowledgment)
2. Medium (2-3 sentences, friendly and helpful)
3. Detailed (4-5 sentences, comprehensive response)

Make each option sound authentic to {NAME}'s voice. Use conversation context to make replies relevant.

Respond with ONLY valid JSON in this exact format:
{{
  "short": "your short reply here",
  "medium": "your medium reply here",
  "detailed": "your detailed reply here"
}}
""").strip()

SINGLE_DRAFT_USER_TMPL = dedent("""
The fan just sent: "{MESSAGE}"

Write exactly ONE reply. {INSTRUCTION}

Make it sound authentic to {NAME}'s voice and use the conversation context to keep it relevant.
Respond with only the reply text, no quotes, labels or explanations.
""").strip()

# reply_type -> (instruction, max output tokens)
ARCHETYPES: Dict[str, Tuple[str, int]] = {
    "short": (
        "Keep it short: one sentence, a quick and warm acknowledgment.",
        80,
    ),
    "funny": (
        "Make it funny and playful: 1-3 sentences with light humor that still answers the fan.",
        160,
    ),
    "professional": (
        "Make it professional and detailed: 3-5 sentences, clear, helpful and courteous.",
        320,
    ),
}

ADAPTATION_SYSTEM_TMPL = dedent("""
You are {NAME}'s reply editor. You receive a reply {NAME} already sent to a
similar fan message and must adapt it to a new message.

Rules:
- Change as little as possible.
- Preserve tone, wording, punctuation, capitalization, emoji and structure exactly.
- Only adjust names, pronouns or a detail if it is strictly necessary for the new message.
- Never add new sentences, greetings, hashtags or sign-offs.
- If no change is needed, return the original reply unchanged.

{NAME}'s tone for reference: {TONE}
""").strip()

ADAPTATION_USER_TMPL = dedent("""
Original reply:
{MEMORY}

New fan message:
"{MESSAGE}"

Return ONLY the adapted reply text.
""").strip()


def render_history(turns: Sequence[ConversationTurn]) -> str:
    """Render turns as "speaker: text" lines, oldest first."""
    lines = []
    for t in turns:
        text = (t.text or "").strip()
        if not text:
            continue
        lines.append(f"{t.sender_label or 'User'}: {text}")
    return "\n".join(lines)


def build_system_prompt(
    persona: PersonaProfile,
    history_text: str,
    supplemental_context: Optional[str] = None,
) -> str:
    sections = [
        PERSONA_PROMPT_TMPL.format(
            NAME=persona.display_name,
            PERSONALITY=persona.personality,
            TONE=persona.tone,
            EXAMPLES="\n".join(persona.voice_examples) or "(none)",
            AVOID=", ".join(persona.avoid_list) or "(nothing specific)",
        )
    ]
    if persona.signature:
        sections.append(f"Sign-off you sometimes use: {persona.signature}")
    if supplemental_context:
        sections.append(SUPPLEMENTAL_CONTEXT_TMPL.format(CONTEXT=supplemental_context))
    sections.append(f"Recent conversation context:\n{history_text or '(no earlier messages)'}")
    return "\n\n".join(sections)


def build_three_draft_prompt(persona: PersonaProfile, message_text: str) -> str:
    return THREE_DRAFT_USER_TMPL.format(MESSAGE=message_text, NAME=persona.display_name)


def build_single_draft_prompt(persona: PersonaProfile, message_text: str, reply_type: str) -> Tuple[str, int]:
    """Returns (user_prompt, max_output_tokens) for one archetype."""
    instruction, max_tokens = ARCHETYPES[reply_type]
    prompt = SINGLE_DRAFT_USER_TMPL.format(
        MESSAGE=message_text,
        INSTRUCTION=instruction,
        NAME=persona.display_name,
    )
    return prompt, max_tokens


def build_adaptation_prompts(persona: PersonaProfile, memory_text: str, message_text: str) -> Tuple[str, str]:
    system = ADAPTATION_SYSTEM_TMPL.format(NAME=persona.display_name, TONE=persona.tone)
    user = ADAPTATION_USER_TMPL.format(MEMORY=memory_text, MESSAGE=message_text)
    return system, user
