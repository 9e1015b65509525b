"""Unit tests for recommendation selection - pure functions, no mocks needed."""

import json

import pytest

from carbonlogr.core.models import (
    Category,
    FootprintEntry,
    RecommendationCategory,
    RecommendationSource,
)
from carbonlogr.core.recommendations import (
    CATEGORY_TEMPLATES,
    highest_category,
    select_recommendations,
    to_recommendation,
    build_recommendation_prompt,
    parse_ai_recommendations,
)


def ai_item(**overrides) -> dict:
    item = {
        "category": "transportation",
        "title": "Take the train",
        "description": "Use rail for trips under 500 km.",
        "potentialImpact": 12.5,
        "difficulty": "medium",
    }
    item.update(overrides)
    return item


class TestHighestCategory:
    """Tests for highest_category."""

    def test_empty(self):
        assert highest_category({}) is None

    def test_picks_largest(self):
        assert highest_category({"food": 5.0, "energy": 9.0, "waste": 1.0}) is Category.ENERGY

    def test_ties_use_category_order(self):
        """Energy is declared before food, so it wins a tie."""
        assert highest_category({"food": 5.0, "energy": 5.0}) is Category.ENERGY

    def test_all_zero(self):
        assert highest_category({"food": 0.0}) is None

    def test_unknown_keys_ignored(self):
        assert highest_category({"travel": 100.0, "food": 1.0}) is Category.FOOD


class TestSelectRecommendations:
    """Tests for select_recommendations."""

    def test_dominant_category_templates_and_general(self):
        drafts = select_recommendations({"transportation": 100.0, "food": 20.0}, 120.0)

        assert [d.title for d in drafts] == [
            "Switch to Public Transit",
            "Carpool to Work",
            "Track Your Progress",
        ]
        assert drafts[0].potential_impact == pytest.approx(25.0)
        assert drafts[1].potential_impact == pytest.approx(30.0)
        assert drafts[2].potential_impact == pytest.approx(12.0)

    @pytest.mark.parametrize("category", ["transportation", "energy", "food", "shopping", "waste"])
    def test_every_template_category(self, category):
        total = 50.0
        drafts = select_recommendations({category: total}, total)
        templates = CATEGORY_TEMPLATES[Category(category)]

        assert len(drafts) == 3
        for draft, template in zip(drafts[:2], templates):
            assert draft.category.value == category
            assert draft.title == template.title
            assert draft.difficulty is template.difficulty
            assert draft.potential_impact == pytest.approx(total * template.impact_fraction)

    def test_general_always_last(self):
        drafts = select_recommendations({"energy": 10.0}, 40.0)
        general = [d for d in drafts if d.category is RecommendationCategory.GENERAL]

        assert len(general) == 1
        assert drafts[-1] is general[0]
        assert general[0].potential_impact == 40.0 * 0.1

    def test_empty_totals_only_general(self):
        drafts = select_recommendations({}, 0.0)

        assert len(drafts) == 1
        assert drafts[0].category is RecommendationCategory.GENERAL
        assert drafts[0].potential_impact == 0.0

    @pytest.mark.parametrize("total", [float("nan"), float("inf")])
    def test_non_finite_total_gives_zero_impact(self, total):
        """Non-finite totals never raise; the impact counts as 0."""
        drafts = select_recommendations({"food": 1.0}, total)

        assert drafts[-1].category is RecommendationCategory.GENERAL
        assert drafts[-1].potential_impact == 0.0

    def test_other_category_has_no_templates(self):
        drafts = select_recommendations({"other": 80.0}, 80.0)

        assert len(drafts) == 1
        assert drafts[0].potential_impact == pytest.approx(8.0)

    def test_never_more_than_three(self):
        totals = {c.value: 10.0 for c in Category}
        assert len(select_recommendations(totals, 60.0)) <= 3

    def test_rule_based_source(self):
        drafts = select_recommendations({"waste": 4.0}, 4.0)
        assert all(d.source is RecommendationSource.SYSTEM for d in drafts)


class TestToRecommendation:
    def test_assigns_owner(self):
        draft = select_recommendations({}, 10.0)[0]
        rec = to_recommendation(draft, "user1")

        assert rec.owner_id == "user1"
        assert rec.title == draft.title
        assert rec.is_implemented is False


class TestBuildRecommendationPrompt:
    """Tests for build_recommendation_prompt."""

    def test_includes_totals_and_activities(self):
        entries = [
            FootprintEntry(owner_id="u", category="food", activity="Steak dinner", carbon_emission=8.1),
        ]
        prompt = build_recommendation_prompt({"food": 8.1, "energy": 2.0}, 10.1, entries)

        assert "Total Carbon Footprint: 10.10 kg CO2e" in prompt
        assert "- food: 8.10 kg CO2e" in prompt
        assert "- Steak dinner (food): 8.10 kg CO2e" in prompt
        assert "highest emissions: food" in prompt
        assert "potentialImpact" in prompt

    def test_limits_activities(self):
        entries = [
            FootprintEntry(owner_id="u", category="food", activity=f"Meal {i}", carbon_emission=1)
            for i in range(15)
        ]
        prompt = build_recommendation_prompt({"food": 15.0}, 15.0, entries)

        assert "Meal 9 " in prompt
        assert "Meal 10 " not in prompt

    def test_no_data(self):
        prompt = build_recommendation_prompt({}, 0.0, [])
        assert "No recent activities" in prompt


class TestParseAiRecommendations:
    """Tests for parse_ai_recommendations."""

    def test_plain_json(self):
        drafts = parse_ai_recommendations(json.dumps([ai_item()]))

        assert len(drafts) == 1
        assert drafts[0].potential_impact == 12.5
        assert drafts[0].source is RecommendationSource.AI

    def test_json_embedded_in_prose(self):
        text = "Here you go:\n```json\n" + json.dumps([ai_item(), ai_item(title="Bike")]) + "\n```\nGood luck!"
        drafts = parse_ai_recommendations(text)

        assert [d.title for d in drafts] == ["Take the train", "Bike"]

    def test_caps_at_three(self):
        drafts = parse_ai_recommendations(json.dumps([ai_item(title=str(i)) for i in range(5)]))
        assert len(drafts) == 3

    def test_drops_invalid_items(self):
        items = [
            ai_item(difficulty="impossible"),
            ai_item(potentialImpact="lots"),
            ai_item(potentialImpact=True),
            ai_item(category="travel"),
            ai_item(title=""),
            {"title": "missing fields"},
            ai_item(title="Valid one"),
        ]
        drafts = parse_ai_recommendations(json.dumps(items))

        assert [d.title for d in drafts] == ["Valid one"]

    def test_no_valid_items_raises(self):
        with pytest.raises(ValueError):
            parse_ai_recommendations(json.dumps([ai_item(difficulty="?")]))

    def test_not_json_raises(self):
        with pytest.raises(ValueError):
            parse_ai_recommendations("Sorry, I can't help with that.")

    def test_object_instead_of_array_raises(self):
        with pytest.raises(ValueError):
            parse_ai_recommendations(json.dumps(ai_item()))

    def test_empty_text_raises(self):
        with pytest.raises(ValueError):
            parse_ai_recommendations("")
