"""MCP Server - Tool definitions for AI assistant integration.

Defines the MCP tools an assistant can invoke to log footprints, read
summaries and manage recommendations. Authentication happens in the HTTP
middleware; tools read the user from the request context.
"""

import logging
from datetime import datetime
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from ..core.estimator import build_footprint, estimate
from ..core.factors import factor_table
from ..core.models import (
    DEFAULT_UNIT,
    FootprintInput,
    FootprintUpdate,
    ImplementationStatus,
    RecommendationUpdate,
)
from ..core.recommendations import to_recommendation
from ..core.summaries import summarize
from .clients import get_firestore_client, get_text_generator, get_user_id
from .firestore_client import StoreError
from .recommender import GENERATION_ENTRY_LIMIT, generate_recommendations


logger = logging.getLogger(__name__)

# Configure transport security for Cloud Run deployment
transport_security = TransportSecuritySettings(
    enable_dns_rebinding_protection=True,
    allowed_hosts=[
        "localhost:*",
        "127.0.0.1:*",
        "*.run.app:*",
        "*.run.app",
        "carbonlogr.app",
        "carbonlogr.app:*",
    ],
)

# Initialize FastMCP server with stateless HTTP for cloud deployments
mcp = FastMCP(
    "carbonlogr",
    instructions="""CarbonLogr - Personal carbon footprint tracker.

Use these tools to help users log activities, see where their emissions
come from, and get recommendations for reducing them.

When logging an activity, pass details (e.g. {"type": "car", "distance": 12})
and omit carbon_emission to have it estimated. Call estimate_emission first
if the user wants a preview. After logging, show the updated summary.""",
    stateless_http=True,
    transport_security=transport_security,
)


def _invalid(e: ValidationError) -> dict:
    return {"error": "Invalid input.", "details": [err["msg"] for err in e.errors()]}


def _parse_date(date_str: str | None) -> datetime | None:
    if date_str is None:
        return None
    return datetime.fromisoformat(date_str)


# ==================== Footprint Tools ====================


@mcp.tool()
def estimate_emission(category: str, details: dict[str, Any]) -> dict:
    """Estimate the carbon emission of an activity without logging it.

    Args:
        category: transportation, energy, food, shopping, waste or other
        details: Category-specific values, e.g. {"type": "car", "distance": 12},
            {"type": "electricity", "kwh": 250}, {"type": "meat", "quantity": 0.5},
            {"itemType": "clothing", "weight": 1}, {"wasteType": "plastic", "weight": 2}

    Returns:
        Estimated kg CO2e and the unit the quantity is measured in
    """
    table = factor_table(category)
    return {
        "category": category,
        "carbon_emission": estimate(category, details),
        "unit": DEFAULT_UNIT,
        "quantity_unit": table.unit if table else None,
    }


@mcp.tool()
def log_footprint(
    category: str,
    activity: str,
    details: dict[str, Any] | None = None,
    carbon_emission: float | None = None,
    date_str: str | None = None,
) -> dict:
    """Log a carbon footprint activity.

    Args:
        category: transportation, energy, food, shopping, waste or other
        activity: Short description (e.g., "Drove to work")
        details: Values used to estimate the emission when carbon_emission is omitted
        carbon_emission: Known emission in kg CO2e (optional)
        date_str: When it happened, ISO format (defaults to now)

    Returns:
        The created entry and the updated summary
    """
    user_id = get_user_id()
    db = get_firestore_client()

    try:
        data = FootprintInput(
            category=category,
            activity=activity,
            details=details or {},
            carbon_emission=carbon_emission,
            date=_parse_date(date_str),
            source="api",
        )
    except ValidationError as e:
        return _invalid(e)
    except ValueError:
        return {"error": "Invalid date format. Use ISO format, e.g. 2025-01-31."}

    entry = build_footprint(user_id, data)
    if not db.save_footprint(entry):
        return {"error": "Failed to log footprint. Please try again."}

    summary = summarize(db.list_footprints(user_id))
    return {
        "entry": entry.model_dump(mode="json"),
        "summary": summary.model_dump(mode="json"),
    }


@mcp.tool()
def update_footprint(
    footprint_id: str,
    category: str | None = None,
    activity: str | None = None,
    details: dict[str, Any] | None = None,
    carbon_emission: float | None = None,
) -> dict:
    """Update an existing footprint entry. Only provided fields are updated.

    New details without a carbon_emission re-estimate the emission.

    Args:
        footprint_id: The ID of the entry to update
        category: New category (optional)
        activity: New description (optional)
        details: New estimation details (optional)
        carbon_emission: New emission in kg CO2e (optional)

    Returns:
        The updated entry
    """
    user_id = get_user_id()

    fields = {
        "category": category,
        "activity": activity,
        "details": details,
        "carbon_emission": carbon_emission,
    }
    updates = {key: value for key, value in fields.items() if value is not None}
    if not updates:
        return {"error": "No updates provided."}

    try:
        changes = FootprintUpdate(**updates)
    except ValidationError as e:
        return _invalid(e)

    try:
        updated = get_firestore_client().update_footprint(user_id, footprint_id, changes)
    except StoreError as e:
        return {"error": str(e)}

    if updated is None:
        return {"error": "Update failed. Please try again."}
    return {"entry": updated.model_dump(mode="json")}


@mcp.tool()
def delete_footprint(footprint_id: str) -> dict:
    """Delete a footprint entry.

    Args:
        footprint_id: The ID of the entry to delete

    Returns:
        Confirmation
    """
    user_id = get_user_id()

    try:
        deleted = get_firestore_client().delete_footprint(user_id, footprint_id)
    except StoreError as e:
        return {"error": str(e)}

    if not deleted:
        return {"error": "Delete failed. Please try again."}
    return {"success": True, "id": footprint_id}


@mcp.tool()
def list_footprints(limit: int = 20) -> list[dict]:
    """List the user's footprint entries, newest first.

    Args:
        limit: Maximum number of entries to return

    Returns:
        List of entries
    """
    user_id = get_user_id()
    entries = get_firestore_client().list_footprints(user_id)

    return [
        {
            "id": e.id,
            "date": e.date.isoformat(),
            "category": e.category.value,
            "activity": e.activity,
            "carbon_emission": e.carbon_emission,
            "unit": e.unit,
        }
        for e in entries[:max(limit, 0)]
    ]


@mcp.tool()
def get_summary() -> dict:
    """Summarize the user's emissions.

    Returns:
        Total, per-category totals (largest first) and monthly totals
        for the last six months (oldest first)
    """
    user_id = get_user_id()
    entries = get_firestore_client().list_footprints(user_id)
    summary = summarize(entries)

    result = summary.model_dump(mode="json")
    if summary.by_category:
        top = summary.by_category[0]
        result["interpretation"] = (
            f"{top.category.value.capitalize()} is the largest source at "
            f"{top.total:.1f} of {summary.total:.1f} kg CO2e"
        )
    return result


# ==================== Recommendation Tools ====================


@mcp.tool()
def list_recommendations() -> list[dict]:
    """List the user's saved recommendations, newest first."""
    user_id = get_user_id()
    return [
        r.model_dump(mode="json", include={"id", "category", "title", "description",
                                           "potential_impact", "difficulty", "implementation_status"})
        for r in get_firestore_client().list_recommendations(user_id)
    ]


@mcp.tool(name="generate_recommendations")
async def generate_recommendations_for_user() -> dict:
    """Generate up to 3 new recommendations from the user's recent activity.

    Returns:
        The saved recommendations
    """
    user_id = get_user_id()
    db = get_firestore_client()

    entries = db.recent_footprints(user_id, GENERATION_ENTRY_LIMIT)
    if not entries:
        return {"error": "No footprint data available to generate recommendations."}

    # The AI call blocks on the network
    drafts = await run_in_threadpool(generate_recommendations, entries, get_text_generator())
    saved = db.save_recommendations([to_recommendation(d, user_id) for d in drafts])
    if not saved:
        return {"error": "Failed to save recommendations. Please try again."}

    return {"recommendations": [r.model_dump(mode="json") for r in saved]}


@mcp.tool()
def set_recommendation_status(recommendation_id: str, status: str) -> dict:
    """Track progress on a recommendation.

    Args:
        recommendation_id: The ID of the recommendation
        status: not-started, in-progress or completed

    Returns:
        The updated recommendation
    """
    user_id = get_user_id()

    try:
        changes = RecommendationUpdate(implementation_status=ImplementationStatus(status))
    except ValueError:
        return {"error": "Status must be one of: not-started, in-progress, completed."}

    try:
        updated = get_firestore_client().update_recommendation(user_id, recommendation_id, changes)
    except StoreError as e:
        return {"error": str(e)}

    if updated is None:
        return {"error": "Update failed. Please try again."}
    return {"recommendation": updated.model_dump(mode="json")}
