"""Recommender - AI-generated recommendations with a rule-based fallback.

The AI result is used only when it is complete and valid; otherwise the
output is entirely rule-based. Never raises.
"""

import logging

from ..core.models import FootprintEntry, RecommendationDraft
from ..core.recommendations import (
    build_recommendation_prompt,
    parse_ai_recommendations,
    select_recommendations,
)
from ..core.summaries import category_totals
from .text_generator import TextGenerator


logger = logging.getLogger(__name__)

# Only the most recently created entries feed generation
GENERATION_ENTRY_LIMIT = 50


def generate_recommendations(
    entries: list[FootprintEntry],
    generator: TextGenerator | None = None,
) -> list[RecommendationDraft]:
    """Generate up to 3 recommendation drafts for a user's entries.

    Args:
        entries: The user's entries, newest first
        generator: Optional AI text generator

    Returns:
        AI drafts when the generator returns valid ones, rule-based drafts otherwise
    """
    totals = category_totals(entries)
    total_emission = sum(totals.values())

    if generator is not None:
        try:
            prompt = build_recommendation_prompt(totals, total_emission, entries)
            drafts = parse_ai_recommendations(generator.generate(prompt))
            logger.info("Generated %d AI recommendations", len(drafts))
            return drafts
        except Exception as e:
            logger.warning("AI recommendations unavailable, using rule-based fallback: %s", str(e))

    return select_recommendations(totals, total_emission)
