"""Core Data Models - Pydantic models for type safety.

All models are value objects with no behavior beyond validation.
Timestamps are stored as naive UTC datetimes.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
import uuid


DEFAULT_UNIT = "kg CO2e"


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Category(str, Enum):
    """Footprint categories. Declaration order is the tie-break order."""

    TRANSPORTATION = "transportation"
    ENERGY = "energy"
    FOOD = "food"
    SHOPPING = "shopping"
    WASTE = "waste"
    OTHER = "other"


class RecommendationCategory(str, Enum):
    TRANSPORTATION = "transportation"
    ENERGY = "energy"
    FOOD = "food"
    SHOPPING = "shopping"
    WASTE = "waste"
    GENERAL = "general"


class FootprintSource(str, Enum):
    MANUAL = "manual"
    API = "api"
    AI_ESTIMATED = "ai-estimated"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class RecommendationSource(str, Enum):
    AI = "ai"
    SYSTEM = "system"
    COMMUNITY = "community"


class ImplementationStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class _TimestampsMixin(BaseModel):
    """Normalizes every datetime field to naive UTC."""

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return to_naive_utc(value)
        return value


# ==================== Footprints ====================


class FootprintEntry(_TimestampsMixin):
    """A single logged activity with its carbon-equivalent emission."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str = Field(min_length=1, description="ID of the owning user")
    category: Category
    activity: str = Field(min_length=1, description="What the user did")
    date: datetime = Field(default_factory=utcnow, description="When the activity happened")
    carbon_emission: float = Field(ge=0, allow_inf_nan=False, description="kg CO2e")
    unit: str = Field(default=DEFAULT_UNIT)
    details: dict[str, Any] = Field(default_factory=dict, description="Estimator input")
    source: FootprintSource = FootprintSource.MANUAL
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class FootprintInput(_TimestampsMixin):
    """Payload for creating a footprint entry."""

    category: Category
    activity: str = Field(min_length=1)
    date: Optional[datetime] = None
    carbon_emission: Optional[float] = Field(
        default=None, ge=0, allow_inf_nan=False, description="Estimated from details when omitted"
    )
    unit: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    source: FootprintSource = FootprintSource.MANUAL


class FootprintUpdate(_TimestampsMixin):
    """Partial update for a footprint entry. Only set fields are applied."""

    category: Optional[Category] = None
    activity: Optional[str] = Field(default=None, min_length=1)
    date: Optional[datetime] = None
    carbon_emission: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    unit: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    source: Optional[FootprintSource] = None


class EstimateRequest(BaseModel):
    """Emission preview request; category is free-form so misses yield 0."""

    category: str
    details: dict[str, Any] = Field(default_factory=dict)


class CategoryTotal(BaseModel):
    category: Category
    total: float


class MonthTotal(BaseModel):
    year_month: str = Field(description="YYYY-MM")
    total: float


class FootprintSummary(BaseModel):
    """Aggregated emissions for a set of entries."""

    total: float = 0.0
    by_category: list[CategoryTotal] = Field(default_factory=list)
    by_month: list[MonthTotal] = Field(default_factory=list)


# ==================== Recommendations ====================


class RecommendationDraft(BaseModel):
    """An unpersisted recommendation produced by the selector or the AI path."""

    category: RecommendationCategory
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    potential_impact: float = Field(default=0.0, ge=0, allow_inf_nan=False, description="Estimated kg CO2e saved")
    difficulty: Difficulty = Difficulty.MEDIUM
    source: RecommendationSource = RecommendationSource.SYSTEM


class Recommendation(_TimestampsMixin):
    """A recommendation stored for a user."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str = Field(min_length=1)
    category: RecommendationCategory
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    potential_impact: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    difficulty: Difficulty = Difficulty.MEDIUM
    implementation_status: ImplementationStatus = ImplementationStatus.NOT_STARTED
    is_implemented: bool = False
    source: RecommendationSource = RecommendationSource.SYSTEM
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _sync_implemented_flag(self) -> "Recommendation":
        self.is_implemented = self.implementation_status == ImplementationStatus.COMPLETED
        return self


class RecommendationInput(BaseModel):
    """Payload for a user-submitted recommendation."""

    category: RecommendationCategory
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    potential_impact: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    difficulty: Difficulty = Difficulty.MEDIUM
    source: RecommendationSource = RecommendationSource.SYSTEM


class RecommendationUpdate(BaseModel):
    """Partial update for a recommendation."""

    category: Optional[RecommendationCategory] = None
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    potential_impact: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    difficulty: Optional[Difficulty] = None
    implementation_status: Optional[ImplementationStatus] = None
    is_implemented: Optional[bool] = None


# ==================== Users ====================


class User(_TimestampsMixin):
    """User record stored in Firestore."""

    email: str
    name: Optional[str] = None
    api_key_hash: str = Field(description="SHA256 hash of API key - never store plaintext")
    location: Optional[str] = None
    household_size: Optional[int] = Field(default=None, ge=1)
    carbon_goal: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False, description="Monthly target in kg CO2e")
    created_at: datetime = Field(default_factory=utcnow)


class ProfileUpdate(BaseModel):
    """Editable profile fields."""

    name: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = None
    household_size: Optional[int] = Field(default=None, ge=1)
    carbon_goal: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
