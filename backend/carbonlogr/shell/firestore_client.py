"""Firestore Client - Persistence for footprints and recommendations.

This module handles all database I/O for footprint tracking.
All I/O is contained here; business logic is in the core module.
"""

import logging
from dataclasses import dataclass
from typing import Any

from google.cloud import firestore

from ..core.estimator import apply_footprint_update
from ..core.models import (
    FootprintEntry,
    FootprintUpdate,
    ImplementationStatus,
    Recommendation,
    RecommendationUpdate,
    utcnow,
)


logger = logging.getLogger(__name__)

FOOTPRINTS = "footprints"
RECOMMENDATIONS = "recommendations"


class StoreError(Exception):
    """Base class for record store failures the caller should report."""


class RecordNotFoundError(StoreError):
    """The requested record does not exist."""


class NotAuthorizedError(StoreError):
    """The caller does not own the record."""


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


class FootprintFirestoreClient:
    """Client for persisting footprints and recommendations to Firestore.

    Document structure:
        users/{user_id}: { email, name, api_key_hash, ... }
        footprints/{id}: { owner_id, category, activity, carbon_emission, ... }
        recommendations/{id}: { owner_id, category, title, ... }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _footprint_ref(self, footprint_id: str) -> firestore.DocumentReference:
        return self.client.collection(FOOTPRINTS).document(footprint_id)

    def _recommendation_ref(self, recommendation_id: str) -> firestore.DocumentReference:
        return self.client.collection(RECOMMENDATIONS).document(recommendation_id)

    def _owned_document(self, ref: firestore.DocumentReference, owner_id: str, kind: str) -> dict:
        """Read a document and check it belongs to owner_id.

        Must run immediately before the mutating write.

        Raises:
            RecordNotFoundError: If the document does not exist
            NotAuthorizedError: If another user owns it
        """
        doc = ref.get()
        if not doc.exists:
            logger.warning("%s not found: %s", kind, ref.id)
            raise RecordNotFoundError(f"{kind} not found")

        data = doc.to_dict()
        if data.get("owner_id") != owner_id:
            logger.warning("User %s denied access to %s %s", owner_id[:8], kind, ref.id)
            raise NotAuthorizedError("User not authorized")
        return data

    def _owned_stream(self, collection: str, owner_id: str):
        return self.client.collection(collection).where("owner_id", "==", owner_id).stream()

    # ==================== Footprint Operations ====================

    def list_footprints(self, owner_id: str) -> list[FootprintEntry]:
        """Fetch all of a user's footprint entries.

        Args:
            owner_id: The user's ID

        Returns:
            Entries sorted by activity date, newest first (may be empty)
        """
        logger.debug("Fetching footprints for user: %s", owner_id[:8])
        try:
            # Sorted in memory to avoid a composite index on owner_id + date
            entries = [FootprintEntry(**doc.to_dict()) for doc in self._owned_stream(FOOTPRINTS, owner_id)]
            entries.sort(key=lambda e: e.date, reverse=True)
            logger.debug("Found %d footprints", len(entries))
            return entries
        except Exception as e:
            logger.error("Failed to fetch footprints: %s", str(e))
            return []

    def recent_footprints(self, owner_id: str, limit: int) -> list[FootprintEntry]:
        """Fetch a user's most recently created entries.

        Args:
            owner_id: The user's ID
            limit: Maximum number of entries

        Returns:
            Entries sorted by creation time, newest first
        """
        entries = self.list_footprints(owner_id)
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    def get_footprint(self, footprint_id: str) -> FootprintEntry | None:
        """Fetch a single footprint entry.

        Args:
            footprint_id: ID of the entry

        Returns:
            FootprintEntry if found, None otherwise
        """
        try:
            doc = self._footprint_ref(footprint_id).get()
            if not doc.exists:
                return None
            return FootprintEntry(**doc.to_dict())
        except Exception as e:
            logger.error("Failed to fetch footprint: %s", str(e))
            return None

    def save_footprint(self, entry: FootprintEntry) -> bool:
        """Create or overwrite a footprint entry.

        Args:
            entry: The entry to save

        Returns:
            True if successful
        """
        logger.info("Saving footprint %s for %s", entry.id[:8], entry.owner_id[:8])
        try:
            self._footprint_ref(entry.id).set(entry.model_dump())
            return True
        except Exception as e:
            logger.error("Failed to save footprint: %s", str(e))
            return False

    def update_footprint(
        self, owner_id: str, footprint_id: str, changes: FootprintUpdate
    ) -> FootprintEntry | None:
        """Apply a partial update to an entry the caller owns.

        Args:
            owner_id: The caller's ID
            footprint_id: ID of the entry to update
            changes: Fields to update

        Returns:
            Updated entry if saved, None if the write failed

        Raises:
            RecordNotFoundError: If the entry does not exist
            NotAuthorizedError: If the caller does not own it
        """
        ref = self._footprint_ref(footprint_id)
        current = FootprintEntry(**self._owned_document(ref, owner_id, "Footprint"))
        updated = apply_footprint_update(current, changes)

        if self.save_footprint(updated):
            return updated
        return None

    def delete_footprint(self, owner_id: str, footprint_id: str) -> bool:
        """Delete an entry the caller owns.

        Args:
            owner_id: The caller's ID
            footprint_id: ID of the entry to delete

        Returns:
            True if deleted, False if the write failed

        Raises:
            RecordNotFoundError: If the entry does not exist
            NotAuthorizedError: If the caller does not own it
        """
        ref = self._footprint_ref(footprint_id)
        self._owned_document(ref, owner_id, "Footprint")

        logger.info("Deleting footprint %s for %s", footprint_id[:8], owner_id[:8])
        try:
            ref.delete()
            return True
        except Exception as e:
            logger.error("Failed to delete footprint: %s", str(e))
            return False

    # ==================== Recommendation Operations ====================

    def list_recommendations(self, owner_id: str) -> list[Recommendation]:
        """Fetch all of a user's recommendations, newest first.

        Args:
            owner_id: The user's ID

        Returns:
            List of recommendations (may be empty)
        """
        logger.debug("Fetching recommendations for user: %s", owner_id[:8])
        try:
            recommendations = [
                Recommendation(**doc.to_dict()) for doc in self._owned_stream(RECOMMENDATIONS, owner_id)
            ]
            recommendations.sort(key=lambda r: r.created_at, reverse=True)
            return recommendations
        except Exception as e:
            logger.error("Failed to fetch recommendations: %s", str(e))
            return []

    def save_recommendation(self, recommendation: Recommendation) -> bool:
        """Create or overwrite a recommendation.

        Args:
            recommendation: The recommendation to save

        Returns:
            True if successful
        """
        logger.info("Saving recommendation %s for %s", recommendation.id[:8], recommendation.owner_id[:8])
        try:
            self._recommendation_ref(recommendation.id).set(recommendation.model_dump())
            return True
        except Exception as e:
            logger.error("Failed to save recommendation: %s", str(e))
            return False

    def save_recommendations(self, recommendations: list[Recommendation]) -> list[Recommendation]:
        """Save several recommendations in one batch.

        Args:
            recommendations: Recommendations to save

        Returns:
            The saved recommendations, or an empty list if the batch failed
        """
        try:
            batch = self.client.batch()
            for recommendation in recommendations:
                batch.set(self._recommendation_ref(recommendation.id), recommendation.model_dump())
            batch.commit()
            logger.info("Saved %d recommendations", len(recommendations))
            return recommendations
        except Exception as e:
            logger.error("Failed to save recommendations: %s", str(e))
            return []

    def update_recommendation(
        self, owner_id: str, recommendation_id: str, changes: RecommendationUpdate
    ) -> Recommendation | None:
        """Apply a partial update to a recommendation the caller owns.

        Setting is_implemented without a status maps to completed/not-started.

        Args:
            owner_id: The caller's ID
            recommendation_id: ID of the recommendation
            changes: Fields to update

        Returns:
            Updated recommendation if saved, None if the write failed

        Raises:
            RecordNotFoundError: If the recommendation does not exist
            NotAuthorizedError: If the caller does not own it
        """
        ref = self._recommendation_ref(recommendation_id)
        data = self._owned_document(ref, owner_id, "Recommendation")

        updates = changes.model_dump(exclude_unset=True, exclude_none=True)
        implemented = updates.pop("is_implemented", None)
        if implemented is not None and "implementation_status" not in updates:
            updates["implementation_status"] = (
                ImplementationStatus.COMPLETED if implemented else ImplementationStatus.NOT_STARTED
            )

        data.update(updates)
        data["updated_at"] = utcnow()
        updated = Recommendation(**data)

        if self.save_recommendation(updated):
            return updated
        return None

    def delete_recommendation(self, owner_id: str, recommendation_id: str) -> bool:
        """Delete a recommendation the caller owns.

        Raises:
            RecordNotFoundError: If the recommendation does not exist
            NotAuthorizedError: If the caller does not own it
        """
        ref = self._recommendation_ref(recommendation_id)
        self._owned_document(ref, owner_id, "Recommendation")

        logger.info("Deleting recommendation %s for %s", recommendation_id[:8], owner_id[:8])
        try:
            ref.delete()
            return True
        except Exception as e:
            logger.error("Failed to delete recommendation: %s", str(e))
            return False
