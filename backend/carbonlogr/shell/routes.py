"""HTTP API - JSON routes for footprints, recommendations and profiles.

Every route here requires an authenticated user (see AuthMiddleware in main).
Store and validation errors are mapped to status codes in one place.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..core.estimator import build_footprint, estimate
from ..core.factors import factor_table, list_factors
from ..core.models import (
    DEFAULT_UNIT,
    EstimateRequest,
    FootprintInput,
    FootprintUpdate,
    ProfileUpdate,
    Recommendation,
    RecommendationInput,
    RecommendationUpdate,
)
from ..core.recommendations import to_recommendation
from ..core.summaries import summarize
from .clients import current_user_id, get_auth_client, get_firestore_client, get_text_generator
from .firestore_client import NotAuthorizedError, RecordNotFoundError
from .recommender import GENERATION_ENTRY_LIMIT, generate_recommendations


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
Handler = Callable[[Request, str], Awaitable[JSONResponse]]


class BadRequestError(Exception):
    """The request body is malformed or fails validation."""

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


def _error(message: str, status_code: int, details: list[str] | None = None) -> JSONResponse:
    body: dict[str, Any] = {"error": message}
    if details:
        body["details"] = details
    return JSONResponse(body, status_code=status_code)


def _validation_details(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
        for err in error.errors()
    ]


async def _parse_body(request: Request, model: type[ModelT]) -> ModelT:
    """Decode the JSON body and validate it against a model.

    Raises:
        BadRequestError: If the body is not a JSON object or fails validation
    """
    try:
        body = await request.json()
    except ValueError as e:
        raise BadRequestError("Request body must be valid JSON") from e

    if not isinstance(body, dict):
        raise BadRequestError("Request body must be a JSON object")

    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise BadRequestError("Please provide all required fields", _validation_details(e)) from e


def authenticated(handler: Handler) -> Callable[[Request], Awaitable[JSONResponse]]:
    """Require a user and translate domain errors into responses."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> JSONResponse:
        user_id = current_user_id.get()
        if user_id is None:
            return _error("Not authorized, missing or invalid API key", 401)

        try:
            return await handler(request, user_id)
        except BadRequestError as e:
            return _error(e.message, 400, e.details)
        except RecordNotFoundError as e:
            return _error(str(e), 404)
        except NotAuthorizedError as e:
            return _error(str(e), 403)

    return wrapper


# ==================== Footprints ====================


@authenticated
async def list_footprints(request: Request, user_id: str) -> JSONResponse:
    entries = get_firestore_client().list_footprints(user_id)
    return JSONResponse([e.model_dump(mode="json") for e in entries])


@authenticated
async def create_footprint(request: Request, user_id: str) -> JSONResponse:
    """Log an entry; the emission is estimated when not supplied."""
    data = await _parse_body(request, FootprintInput)
    entry = build_footprint(user_id, data)

    if not get_firestore_client().save_footprint(entry):
        return _error("Failed to save footprint. Please try again.", 500)

    return JSONResponse(entry.model_dump(mode="json"), status_code=201)


@authenticated
async def update_footprint(request: Request, user_id: str) -> JSONResponse:
    changes = await _parse_body(request, FootprintUpdate)
    footprint_id = request.path_params["footprint_id"]

    updated = get_firestore_client().update_footprint(user_id, footprint_id, changes)
    if updated is None:
        return _error("Failed to update footprint. Please try again.", 500)

    return JSONResponse(updated.model_dump(mode="json"))


@authenticated
async def delete_footprint(request: Request, user_id: str) -> JSONResponse:
    footprint_id = request.path_params["footprint_id"]

    if not get_firestore_client().delete_footprint(user_id, footprint_id):
        return _error("Failed to delete footprint. Please try again.", 500)

    return JSONResponse({"id": footprint_id})


@authenticated
async def footprint_summary(request: Request, user_id: str) -> JSONResponse:
    """Totals overall, by category and by month for the caller's entries."""
    entries = get_firestore_client().list_footprints(user_id)
    return JSONResponse(summarize(entries).model_dump(mode="json"))


@authenticated
async def estimate_footprint(request: Request, user_id: str) -> JSONResponse:
    """Preview the emission for some activity details without saving."""
    data = await _parse_body(request, EstimateRequest)
    table = factor_table(data.category)

    return JSONResponse({
        "category": data.category,
        "carbon_emission": estimate(data.category, data.details),
        "unit": DEFAULT_UNIT,
        "quantity_unit": table.unit if table else None,
    })


@authenticated
async def emission_factors(request: Request, user_id: str) -> JSONResponse:
    return JSONResponse(list_factors())


# ==================== Recommendations ====================


@authenticated
async def list_recommendations(request: Request, user_id: str) -> JSONResponse:
    recommendations = get_firestore_client().list_recommendations(user_id)
    return JSONResponse([r.model_dump(mode="json") for r in recommendations])


@authenticated
async def create_recommendation(request: Request, user_id: str) -> JSONResponse:
    data = await _parse_body(request, RecommendationInput)
    recommendation = Recommendation(owner_id=user_id, **data.model_dump())

    if not get_firestore_client().save_recommendation(recommendation):
        return _error("Failed to save recommendation. Please try again.", 500)

    return JSONResponse(recommendation.model_dump(mode="json"), status_code=201)


@authenticated
async def generate(request: Request, user_id: str) -> JSONResponse:
    """Generate and store recommendations from the caller's recent entries.

    Uses the AI text generator when configured; falls back to rules.
    """
    db = get_firestore_client()

    entries = db.recent_footprints(user_id, GENERATION_ENTRY_LIMIT)
    if not entries:
        return _error("No footprint data available to generate recommendations", 400)

    # The AI call blocks on the network
    drafts = await run_in_threadpool(generate_recommendations, entries, get_text_generator())
    recommendations = [to_recommendation(draft, user_id) for draft in drafts]

    saved = db.save_recommendations(recommendations)
    if not saved:
        return _error("Failed to save recommendations. Please try again.", 500)

    return JSONResponse([r.model_dump(mode="json") for r in saved], status_code=201)


@authenticated
async def update_recommendation(request: Request, user_id: str) -> JSONResponse:
    changes = await _parse_body(request, RecommendationUpdate)
    recommendation_id = request.path_params["recommendation_id"]

    updated = get_firestore_client().update_recommendation(user_id, recommendation_id, changes)
    if updated is None:
        return _error("Failed to update recommendation. Please try again.", 500)

    return JSONResponse(updated.model_dump(mode="json"))


@authenticated
async def delete_recommendation(request: Request, user_id: str) -> JSONResponse:
    recommendation_id = request.path_params["recommendation_id"]

    if not get_firestore_client().delete_recommendation(user_id, recommendation_id):
        return _error("Failed to delete recommendation. Please try again.", 500)

    return JSONResponse({"id": recommendation_id})


# ==================== Profile ====================


def _profile(user) -> dict:
    return user.model_dump(mode="json", exclude={"api_key_hash"})


@authenticated
async def get_profile(request: Request, user_id: str) -> JSONResponse:
    user = get_auth_client().get_user(user_id)
    if user is None:
        return _error("User not found", 404)
    return JSONResponse(_profile(user))


@authenticated
async def update_profile(request: Request, user_id: str) -> JSONResponse:
    changes = await _parse_body(request, ProfileUpdate)

    user = get_auth_client().update_profile(user_id, changes)
    if user is None:
        return _error("User not found", 404)
    return JSONResponse(_profile(user))


def api_routes() -> list[Route]:
    """All authenticated API routes, mounted under /api."""
    return [
        Route("/api/footprints", list_footprints, methods=["GET"]),
        Route("/api/footprints", create_footprint, methods=["POST"]),
        Route("/api/footprints/summary", footprint_summary, methods=["GET"]),
        Route("/api/footprints/estimate", estimate_footprint, methods=["POST"]),
        Route("/api/footprints/{footprint_id}", update_footprint, methods=["PUT"]),
        Route("/api/footprints/{footprint_id}", delete_footprint, methods=["DELETE"]),
        Route("/api/factors", emission_factors, methods=["GET"]),
        Route("/api/recommendations", list_recommendations, methods=["GET"]),
        Route("/api/recommendations", create_recommendation, methods=["POST"]),
        Route("/api/recommendations/generate", generate, methods=["POST"]),
        Route("/api/recommendations/{recommendation_id}", update_recommendation, methods=["PUT"]),
        Route("/api/recommendations/{recommendation_id}", delete_recommendation, methods=["DELETE"]),
        Route("/api/users/me", get_profile, methods=["GET"]),
        Route("/api/users/me", update_profile, methods=["PUT"]),
    ]
