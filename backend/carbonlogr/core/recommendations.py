"""Recommendation Selection - Pure functions for picking reduction tips.

Rule-based selection from fixed templates, plus the prompt building and
response parsing used when an AI text generator is available.
All functions are pure: same input always produces same output, no side effects.
"""

import json
import math
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import ValidationError

from .models import (
    Category,
    Difficulty,
    FootprintEntry,
    Recommendation,
    RecommendationCategory,
    RecommendationDraft,
    RecommendationSource,
)


MAX_RECOMMENDATIONS = 3
GENERAL_IMPACT_FRACTION = 0.1
PROMPT_ACTIVITY_LIMIT = 10


@dataclass(frozen=True)
class RecommendationTemplate:
    """A canned recommendation whose impact scales with an emission total."""

    title: str
    description: str
    difficulty: Difficulty
    impact_fraction: float


CATEGORY_TEMPLATES: Mapping[Category, tuple[RecommendationTemplate, ...]] = MappingProxyType({
    Category.TRANSPORTATION: (
        RecommendationTemplate(
            title="Switch to Public Transit",
            description=(
                "Replace 2 car trips per week with public transportation. This can reduce your "
                "carbon footprint by approximately 20-30% for transportation emissions."
            ),
            difficulty=Difficulty.MEDIUM,
            impact_fraction=0.25,
        ),
        RecommendationTemplate(
            title="Carpool to Work",
            description=(
                "Share rides with colleagues or use carpooling apps. Carpooling with just one other "
                "person can cut your transportation emissions in half."
            ),
            difficulty=Difficulty.EASY,
            impact_fraction=0.30,
        ),
    ),
    Category.ENERGY: (
        RecommendationTemplate(
            title="Switch to LED Bulbs",
            description=(
                "Replace all household bulbs with LED alternatives. LED bulbs use 75% less energy "
                "and last 25 times longer than incandescent lighting."
            ),
            difficulty=Difficulty.EASY,
            impact_fraction=0.15,
        ),
        RecommendationTemplate(
            title="Adjust Thermostat Settings",
            description=(
                "Lower your thermostat by 2°C in winter and raise it by 2°C in summer. This simple "
                "change can reduce energy consumption by up to 10%."
            ),
            difficulty=Difficulty.EASY,
            impact_fraction=0.10,
        ),
    ),
    Category.FOOD: (
        RecommendationTemplate(
            title="Reduce Meat Consumption",
            description=(
                'Adopt "Meatless Mondays" or reduce meat consumption by 50%. Plant-based meals '
                "have significantly lower carbon footprints than meat-based meals."
            ),
            difficulty=Difficulty.MEDIUM,
            impact_fraction=0.30,
        ),
        RecommendationTemplate(
            title="Buy Local and Seasonal",
            description=(
                "Choose locally grown, seasonal produce to reduce transportation emissions from "
                "food imports."
            ),
            difficulty=Difficulty.EASY,
            impact_fraction=0.15,
        ),
    ),
    Category.SHOPPING: (
        RecommendationTemplate(
            title="Buy Second-hand Items",
            description=(
                "Purchase used items instead of new ones. Second-hand shopping reduces demand for "
                "new production and associated emissions."
            ),
            difficulty=Difficulty.EASY,
            impact_fraction=0.40,
        ),
        RecommendationTemplate(
            title="Choose Sustainable Brands",
            description=(
                "Support companies with strong environmental practices and sustainable "
                "manufacturing processes."
            ),
            difficulty=Difficulty.MEDIUM,
            impact_fraction=0.20,
        ),
    ),
    Category.WASTE: (
        RecommendationTemplate(
            title="Start Composting",
            description=(
                "Compost food scraps and yard waste to reduce methane emissions from landfills "
                "and create nutrient-rich soil."
            ),
            difficulty=Difficulty.MEDIUM,
            impact_fraction=0.50,
        ),
        RecommendationTemplate(
            title="Reduce Single-use Plastics",
            description=(
                "Use reusable bags, containers, and water bottles to minimize plastic waste and "
                "associated production emissions."
            ),
            difficulty=Difficulty.EASY,
            impact_fraction=0.25,
        ),
    ),
})

GENERAL_TEMPLATE = RecommendationTemplate(
    title="Track Your Progress",
    description=(
        "Continue monitoring your carbon footprint regularly. Awareness is the first step toward "
        "meaningful reduction. Set monthly goals to reduce your total emissions by 10%."
    ),
    difficulty=Difficulty.EASY,
    impact_fraction=GENERAL_IMPACT_FRACTION,
)


def _normalize_totals(category_totals: Mapping[Category | str, float]) -> dict[Category, float]:
    """Key totals by Category, dropping unknown keys."""
    normalized: dict[Category, float] = {}
    for key, total in category_totals.items():
        try:
            category = Category(key)
        except ValueError:
            continue
        normalized[category] = normalized.get(category, 0.0) + total
    return normalized


def highest_category(category_totals: Mapping[Category | str, float]) -> Category | None:
    """Category with the largest positive total.

    Ties go to the category declared first in Category.

    Args:
        category_totals: Summed emission per category

    Returns:
        The dominant Category, or None if nothing is positive
    """
    totals = _normalize_totals(category_totals)

    highest: Category | None = None
    highest_total = 0.0
    for category in Category:
        total = totals.get(category, 0.0)
        if total > highest_total:
            highest, highest_total = category, total
    return highest


def _draft(template: RecommendationTemplate, category: RecommendationCategory, base: float) -> RecommendationDraft:
    impact = base * template.impact_fraction
    # NaN and infinite totals count as no emissions
    if not math.isfinite(impact):
        impact = 0.0
    return RecommendationDraft(
        category=category,
        title=template.title,
        description=template.description,
        potential_impact=max(impact, 0.0),
        difficulty=template.difficulty,
        source=RecommendationSource.SYSTEM,
    )


def select_recommendations(
    category_totals: Mapping[Category | str, float],
    total_emission: float,
) -> list[RecommendationDraft]:
    """Pick rule-based recommendations for a user's emissions.

    Two templates for the dominant category (when it has any) followed by
    the general progress-tracking tip.

    Args:
        category_totals: Summed emission per category
        total_emission: Overall emission total

    Returns:
        At most 3 drafts; the last is always the general one
    """
    totals = _normalize_totals(category_totals)
    drafts: list[RecommendationDraft] = []

    highest = highest_category(totals)
    if highest is not None:
        for template in CATEGORY_TEMPLATES.get(highest, ())[:2]:
            drafts.append(_draft(template, RecommendationCategory(highest.value), totals[highest]))

    drafts.append(_draft(GENERAL_TEMPLATE, RecommendationCategory.GENERAL, total_emission))

    return drafts[:MAX_RECOMMENDATIONS]


def to_recommendation(draft: RecommendationDraft, owner_id: str) -> Recommendation:
    """Turn a draft into a storable recommendation for its owner."""
    return Recommendation(owner_id=owner_id, **draft.model_dump())


# ==================== AI Path ====================


def build_recommendation_prompt(
    category_totals: Mapping[Category | str, float],
    total_emission: float,
    recent_entries: list[FootprintEntry],
) -> str:
    """Build the text-completion prompt asking for recommendations in JSON.

    Args:
        category_totals: Summed emission per category
        total_emission: Overall emission total
        recent_entries: Newest entries first; only the first few are listed

    Returns:
        Prompt text
    """
    totals = _normalize_totals(category_totals)
    highest = highest_category(totals)

    category_lines = "\n".join(
        f"- {category.value}: {total:.2f} kg CO2e" for category, total in totals.items()
    )
    activity_lines = "\n".join(
        f"- {entry.activity} ({entry.category.value}): {entry.carbon_emission:.2f} kg CO2e"
        for entry in recent_entries[:PROMPT_ACTIVITY_LIMIT]
    )

    return f"""Based on the following carbon footprint data for a user, provide {MAX_RECOMMENDATIONS} specific, actionable recommendations to reduce their carbon footprint. Focus especially on the category with highest emissions: {highest.value if highest else "none"}.

Total Carbon Footprint: {total_emission:.2f} kg CO2e

Emissions by Category:
{category_lines or "- No data"}

Recent Activities:
{activity_lines or "- No recent activities"}

Provide {MAX_RECOMMENDATIONS} recommendations in the following JSON format:
[{{
  "category": "one of: transportation, energy, food, shopping, waste, general",
  "title": "short recommendation title",
  "description": "detailed explanation of the recommendation",
  "potentialImpact": numeric estimate of kg CO2e savings,
  "difficulty": "easy", "medium", or "hard"
}}]
"""


_JSON_ARRAY = re.compile(r"\[\s*\{.*\}\s*\]", re.DOTALL)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def parse_ai_recommendations(text: str) -> list[RecommendationDraft]:
    """Parse a text-completion response into recommendation drafts.

    Uses the first JSON array of objects found in the text, or the whole
    text. Items missing a required field or with an unknown category or
    difficulty are dropped.

    Args:
        text: Raw completion text

    Returns:
        Between 1 and 3 drafts with source "ai"

    Raises:
        ValueError: If the text holds no JSON array or no valid items
    """
    match = _JSON_ARRAY.search(text or "")
    raw = match.group(0) if match else text

    try:
        items = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError(f"Response is not valid JSON: {e}") from e

    if not isinstance(items, list):
        raise ValueError("Response is not a JSON array")

    drafts: list[RecommendationDraft] = []
    for item in items:
        if not isinstance(item, dict) or not _is_number(item.get("potentialImpact")):
            continue
        try:
            drafts.append(RecommendationDraft(
                category=item.get("category"),
                title=item.get("title"),
                description=item.get("description"),
                potential_impact=item["potentialImpact"],
                difficulty=item.get("difficulty"),
                source=RecommendationSource.AI,
            ))
        except ValidationError:
            continue

    if not drafts:
        raise ValueError("No valid recommendations in response")

    return drafts[:MAX_RECOMMENDATIONS]
