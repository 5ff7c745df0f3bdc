"""
Reply strategy selection.

select_strategy() maps the best retrieval match onto one of four strategies:
- exact_reuse     best >= exact threshold, memory returned verbatim
- adapt           best >= adapt threshold, memory minimally rewritten
- supplemental    best >= supplemental threshold, matches injected as context
- full            anything weaker, persona + history only

Pure function over the ranked matches; no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence

from app.modules.smartreplies.services.types import RetrievedMemory
from core.conf import settings


Strategy = Literal["exact_reuse", "adapt", "supplemental", "full"]


@dataclass(frozen=True)
class Thresholds:
    exact: float = 0.90
    adapt: float = 0.75
    supplemental: float = 0.60

    @classmethod
    def from_settings(cls) -> "Thresholds":
        return cls(
            exact=settings.TIER_EXACT_THRESHOLD,
            adapt=settings.TIER_ADAPT_THRESHOLD,
            supplemental=settings.TIER_SUPPLEMENTAL_THRESHOLD,
        )


@dataclass(frozen=True)
class TierDecision:
    strategy: Strategy
    best: Optional[RetrievedMemory] = None
    context: List[RetrievedMemory] = field(default_factory=list)

    @property
    def best_score(self) -> Optional[float]:
        return self.best.similarity_score if self.best else None


def best_match(memories: Sequence[RetrievedMemory]) -> Optional[RetrievedMemory]:
    # max() keeps the first of equal scores, so backend rank breaks ties
    if not memories:
        return None
    return max(memories, key=lambda m: m.similarity_score)


def select_strategy(
    memories: Sequence[RetrievedMemory],
    thresholds: Optional[Thresholds] = None,
) -> TierDecision:
    t = thresholds or Thresholds.from_settings()
    best = best_match(memories)
    if best is None:
        return TierDecision(strategy="full")

    score = best.similarity_score
    if score >= t.exact:
        return TierDecision(strategy="exact_reuse", best=best)
    if score >= t.adapt:
        return TierDecision(strategy="adapt", best=best)
    if score >= t.supplemental:
        context = sorted(
            (m for m in memories if m.similarity_score >= t.supplemental),
            key=lambda m: m.similarity_score,
            reverse=True,
        )
        return TierDecision(strategy="supplemental", best=best, context=context)
    return TierDecision(strategy="full", best=best)


def format_supplemental_context(memories: Sequence[RetrievedMemory]) -> str:
    """Render matched past responses as a numbered grounding block."""
    texts = [m.content.strip() for m in memories if m.content.strip()]
    return "\n".join(f"{i}. {t}" for i, t in enumerate(texts, 1))
