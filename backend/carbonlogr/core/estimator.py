"""Emission Estimator - Pure functions turning activity details into kg CO2e.

All functions are pure: same input always produces same output, no side effects.
Nothing here raises; unknown input contributes 0.
"""

import math
from typing import Any, Mapping

from .factors import factor_table
from .models import Category, FootprintInput, FootprintEntry, FootprintUpdate, DEFAULT_UNIT, utcnow


def parse_quantity(value: Any) -> float:
    """Read a numeric quantity from a details value.

    Numbers and numeric strings are accepted. Booleans, NaN, infinities,
    integers too large for a float and anything unparseable count as 0.

    Args:
        value: Raw value from the details mapping

    Returns:
        The quantity as a float (may be negative)
    """
    if isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, (int, float)):
            quantity = float(value)
        elif isinstance(value, str):
            quantity = float(value.strip())
        else:
            return 0.0
    except (ValueError, OverflowError):
        return 0.0

    if not math.isfinite(quantity):
        return 0.0
    return quantity


def estimate(category: Category | str, details: Mapping[str, Any] | None) -> float:
    """Estimate the emission of an activity.

    emission = quantity x factor(category, sub-type), floored at 0.

    Args:
        category: Footprint category (unknown values yield 0)
        details: Category-specific attributes, e.g. {"type": "car", "distance": 12}

    Returns:
        Non-negative, finite kg CO2e (0 when the product overflows)
    """
    table = factor_table(category)
    if table is None or not details:
        return 0.0

    factor = table.factor_for(details.get(table.type_key))
    quantity = parse_quantity(details.get(table.quantity_key))

    emission = quantity * factor
    if not math.isfinite(emission):
        return 0.0
    return max(emission, 0.0)


def build_footprint(owner_id: str, data: FootprintInput) -> FootprintEntry:
    """Create a footprint entry from user input, estimating when needed.

    Args:
        owner_id: ID of the authenticated caller
        data: Validated create payload

    Returns:
        New FootprintEntry ready to persist
    """
    carbon_emission = data.carbon_emission
    if carbon_emission is None:
        carbon_emission = estimate(data.category, data.details)

    now = utcnow()
    return FootprintEntry(
        owner_id=owner_id,
        category=data.category,
        activity=data.activity,
        date=data.date or now,
        carbon_emission=carbon_emission,
        unit=data.unit or DEFAULT_UNIT,
        details=data.details,
        source=data.source,
        created_at=now,
        updated_at=now,
    )


def apply_footprint_update(entry: FootprintEntry, changes: FootprintUpdate) -> FootprintEntry:
    """Merge a partial update into an entry.

    The emission is re-estimated from the merged category and details when
    the update supplies details without an emission, or clears the emission
    explicitly. id, owner_id and created_at never change.

    Args:
        entry: The stored entry
        changes: Partial update from the owner

    Returns:
        New FootprintEntry with the changes applied
    """
    updates = changes.model_dump(exclude_unset=True)

    reestimate = "carbon_emission" in updates and updates["carbon_emission"] is None
    if "details" in updates and "carbon_emission" not in updates:
        reestimate = True
    # Explicit nulls mean "unset" for every other field
    updates = {key: value for key, value in updates.items() if value is not None}

    data = entry.model_dump()
    data.update(updates)
    if reestimate:
        data["carbon_emission"] = estimate(data["category"], data["details"])
    data["updated_at"] = utcnow()

    return FootprintEntry(**data)
