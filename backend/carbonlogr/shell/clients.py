"""Shared Clients - Lazily created singletons and the request's user.

Route handlers and MCP tools get their collaborators from here so tests
can swap them out.
"""

from contextvars import ContextVar

from .auth import AuthClient
from .config import AppConfig
from .firestore_client import FootprintFirestoreClient
from .text_generator import HttpTextGenerator, TextGenerator, UnavailableTextGenerator


# Context variable to store current user_id per request
current_user_id: ContextVar[str | None] = ContextVar("current_user_id", default=None)

# Lazy-initialized clients
_config: AppConfig | None = None
_firestore_client: FootprintFirestoreClient | None = None
_auth_client: AuthClient | None = None
_text_generator: TextGenerator | None = None


class NotAuthenticatedError(Exception):
    """No authenticated user for this request."""


def get_config() -> AppConfig:
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def get_firestore_client() -> FootprintFirestoreClient:
    """Get or create Firestore client."""
    global _firestore_client
    if _firestore_client is None:
        _firestore_client = FootprintFirestoreClient(get_config().firestore_config())
    return _firestore_client


def get_auth_client() -> AuthClient:
    """Get or create Auth client."""
    global _auth_client
    if _auth_client is None:
        _auth_client = AuthClient(get_firestore_client().client)
    return _auth_client


def get_text_generator() -> TextGenerator:
    """Get or create the AI text generator.

    Without AI_ENDPOINT this is a generator that always fails, which
    sends recommendation generation down the rule-based path.
    """
    global _text_generator
    if _text_generator is None:
        generator_config = get_config().text_generator_config()
        if generator_config is None:
            _text_generator = UnavailableTextGenerator()
        else:
            _text_generator = HttpTextGenerator(generator_config)
    return _text_generator


def get_user_id() -> str:
    """Get current authenticated user ID.

    Raises:
        NotAuthenticatedError: If no user is authenticated
    """
    user_id = current_user_id.get()
    if user_id is None:
        raise NotAuthenticatedError("No authenticated user. Ensure API key is provided.")
    return user_id
