"""Emission Factor Tables - kg CO2e per unit of activity.

Static, read-only data. Each category maps the sub-type found in an entry's
details to a per-unit factor. The "other" category has no table.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .models import Category


@dataclass(frozen=True)
class FactorTable:
    """Factors for one category and the detail keys they are read from.

    Attributes:
        type_key: Details key holding the sub-type label (e.g. "type")
        quantity_key: Details key holding the amount (e.g. "distance")
        unit: Unit of the quantity (km, kWh, kg)
        factors: Sub-type label -> kg CO2e per unit
    """

    type_key: str
    quantity_key: str
    unit: str
    factors: Mapping[str, float]

    def factor_for(self, sub_type: object) -> float:
        """Factor for a sub-type, 0 when the label is unknown."""
        if not isinstance(sub_type, str):
            return 0.0
        return self.factors.get(sub_type, 0.0)


TRANSPORTATION_FACTORS = FactorTable(
    type_key="type",
    quantity_key="distance",
    unit="km",
    factors=MappingProxyType({
        "car": 0.170,
        "bus": 0.100,
        "train": 0.035,
        "flight": 0.246,
        "bike": 0.021,  # motorbike
        "cycle": 0.0,
        "walk": 0.0,
    }),
)

ENERGY_FACTORS = FactorTable(
    type_key="type",
    quantity_key="kwh",
    unit="kWh",
    factors=MappingProxyType({
        "electricity": 0.394,
        "natural_gas": 0.202,
        "heating_oil": 0.268,
        "propane": 0.227,
    }),
)

FOOD_FACTORS = FactorTable(
    type_key="type",
    quantity_key="quantity",
    unit="kg",
    factors=MappingProxyType({
        "meat": 27.0,
        "dairy": 3.2,
        "vegetable": 0.5,
        "fruit": 0.7,
        "grain": 1.4,
        "processed": 3.1,
    }),
)

SHOPPING_FACTORS = FactorTable(
    type_key="itemType",
    quantity_key="weight",
    unit="kg",
    factors=MappingProxyType({
        "electronics": 18.7,
        "clothing": 12.5,
        "furniture": 3.2,
        "books": 1.5,
        "groceries": 2.1,
        "other": 3.5,
    }),
)

WASTE_FACTORS = FactorTable(
    type_key="wasteType",
    quantity_key="weight",
    unit="kg",
    factors=MappingProxyType({
        "plastic": 3.1,
        "paper": 1.1,
        "organic": 0.85,
        "electronic": 9.2,
        "hazardous": 4.5,
        "other": 2.0,
    }),
)

EMISSION_FACTORS: Mapping[Category, FactorTable] = MappingProxyType({
    Category.TRANSPORTATION: TRANSPORTATION_FACTORS,
    Category.ENERGY: ENERGY_FACTORS,
    Category.FOOD: FOOD_FACTORS,
    Category.SHOPPING: SHOPPING_FACTORS,
    Category.WASTE: WASTE_FACTORS,
})


def factor_table(category: Category | str) -> FactorTable | None:
    """Look up the factor table for a category.

    Args:
        category: Category enum member or its string value

    Returns:
        FactorTable, or None for "other" and unrecognized categories
    """
    try:
        return EMISSION_FACTORS.get(Category(category))
    except ValueError:
        return None


def list_factors() -> dict[str, dict]:
    """All factor tables as plain data, keyed by category value."""
    return {
        category.value: {
            "type_key": table.type_key,
            "quantity_key": table.quantity_key,
            "unit": table.unit,
            "factors": dict(table.factors),
        }
        for category, table in EMISSION_FACTORS.items()
    }
