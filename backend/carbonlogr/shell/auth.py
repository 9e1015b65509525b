"""Authentication - API key issuance, validation and user profiles.

Handles API key creation, hashing, and validation. Never stores plaintext keys.
"""

import hashlib
import logging
import secrets

from google.cloud import firestore

from ..core.models import ProfileUpdate, User, utcnow


logger = logging.getLogger(__name__)

# API key prefix for identification
API_KEY_PREFIX = "clr_"
API_KEY_MIN_LENGTH = 40


def generate_api_key() -> str:
    """Generate a cryptographically secure API key.

    Returns:
        API key in format: clr_<random_chars>
    """
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


def hash_api_key(api_key: str) -> str:
    """Hash an API key to create a user_id.

    SHA256, truncated to 32 hex chars for a Firestore document ID.
    """
    return hashlib.sha256(api_key.encode()).hexdigest()[:32]


def validate_api_key_format(api_key: str | None) -> bool:
    """Check if an API key has the expected prefix and length."""
    if not api_key:
        return False
    return api_key.startswith(API_KEY_PREFIX) and len(api_key) >= API_KEY_MIN_LENGTH


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an "Authorization: Bearer <token>" header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthClient:
    """Client for API key authentication and profile operations.

    Users live in the top-level "users" collection keyed by hashed API key.
    """

    def __init__(self, db: firestore.Client) -> None:
        """Initialize auth client.

        Args:
            db: Firestore client instance
        """
        self._db = db

    def _get_user_ref(self, user_id: str) -> firestore.DocumentReference:
        return self._db.collection("users").document(user_id)

    def register_user(self, email: str, name: str | None = None) -> tuple[str, str]:
        """Register a new user and generate their API key.

        Args:
            email: User's email address
            name: Optional display name

        Returns:
            Tuple of (api_key, user_id) - api_key is only returned once!
        """
        api_key = generate_api_key()
        user_id = hash_api_key(api_key)

        user = User(email=email, name=name, api_key_hash=user_id, created_at=utcnow())
        self._get_user_ref(user_id).set(user.model_dump())

        logger.info("User registered: %s", user_id[:8])
        return api_key, user_id

    def authenticate(self, authorization: str | None) -> str | None:
        """Resolve an Authorization header to a user_id.

        Args:
            authorization: Raw header value

        Returns:
            user_id of an existing user, None otherwise
        """
        api_key = bearer_token(authorization)
        if api_key is None or not validate_api_key_format(api_key):
            return None

        user_id = hash_api_key(api_key)
        if not self.user_exists(user_id):
            logger.warning("Unknown API key presented")
            return None
        return user_id

    def validate_api_key(self, api_key: str) -> str | None:
        """Validate an API key and return the user_id if valid."""
        if not validate_api_key_format(api_key):
            logger.warning("Invalid API key format")
            return None

        user_id = hash_api_key(api_key)
        return user_id if self.user_exists(user_id) else None

    def get_user(self, user_id: str) -> User | None:
        """Get user by ID, or None if missing or unreadable."""
        try:
            user_doc = self._get_user_ref(user_id).get()
            if user_doc.exists:
                return User(**user_doc.to_dict())
            return None
        except Exception as e:
            logger.error("Error fetching user: %s", str(e))
            return None

    def update_profile(self, user_id: str, changes: ProfileUpdate) -> User | None:
        """Update a user's editable profile fields.

        Args:
            user_id: The user's ID
            changes: Fields to change; unset fields are kept

        Returns:
            Updated User, or None if the user is missing or the write failed
        """
        user = self.get_user(user_id)
        if user is None:
            return None

        updates = changes.model_dump(exclude_unset=True, exclude_none=True)
        if not updates:
            return user
        updated = user.model_copy(update=updates)

        try:
            self._get_user_ref(user_id).update(updates)
        except Exception as e:
            logger.error("Failed to update profile: %s", str(e))
            return None

        logger.info("Profile updated for user: %s", user_id[:8])
        return updated

    def user_exists(self, user_id: str) -> bool:
        try:
            return self._get_user_ref(user_id).get().exists
        except Exception as e:
            logger.error("Error checking user: %s", str(e))
            return False
