"""Configuration - Settings read from environment variables.

Cloud Run injects configuration through the environment; nothing here
touches the network.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping

from .firestore_client import FirestoreConfig
from .text_generator import TextGeneratorConfig


DEFAULT_CORS_ORIGINS = ("https://carbonlogr.app", "http://localhost:5173")


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class AppConfig:
    """Service configuration.

    Attributes:
        host: Interface to bind
        port: Port to listen on
        log_level: Root logging level name
        base_url: Public URL, used in registration instructions
        firestore_project: GCP project ID (None for default)
        firestore_database: Firestore database name
        cors_origins: Origins allowed to call the API from a browser
        ai_endpoint: Chat-completions URL; None disables the AI path
        ai_api_key: Bearer token for the AI endpoint
        ai_model: Model name sent to the AI endpoint
        ai_timeout_seconds: Upper bound for one AI request
    """

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    base_url: str = "http://localhost:8080"
    firestore_project: str | None = None
    firestore_database: str = "carbonlogr"
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    ai_endpoint: str | None = None
    ai_api_key: str | None = None
    ai_model: str = "gpt-4.1-nano"
    ai_timeout_seconds: float = 15.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build configuration from environment variables.

        Args:
            environ: Variables to read (defaults to os.environ)

        Returns:
            AppConfig with defaults for anything unset
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        cors = env.get("CORS_ORIGINS")

        return cls(
            host=env.get("HOST", defaults.host),
            port=int(env.get("PORT", defaults.port)),
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
            base_url=env.get("BASE_URL", defaults.base_url).rstrip("/"),
            firestore_project=env.get("FIRESTORE_PROJECT") or None,
            firestore_database=env.get("FIRESTORE_DATABASE", defaults.firestore_database),
            cors_origins=_split_csv(cors) if cors else defaults.cors_origins,
            ai_endpoint=env.get("AI_ENDPOINT") or None,
            ai_api_key=env.get("AI_API_KEY") or None,
            ai_model=env.get("AI_MODEL", defaults.ai_model),
            ai_timeout_seconds=float(env.get("AI_TIMEOUT_SECONDS", defaults.ai_timeout_seconds)),
        )

    def firestore_config(self) -> FirestoreConfig:
        return FirestoreConfig(
            project_id=self.firestore_project,
            database=self.firestore_database,
        )

    def text_generator_config(self) -> TextGeneratorConfig | None:
        """Settings for the AI client, or None when no endpoint is configured."""
        if not self.ai_endpoint:
            return None
        return TextGeneratorConfig(
            endpoint=self.ai_endpoint,
            api_key=self.ai_api_key,
            model=self.ai_model,
            timeout_seconds=self.ai_timeout_seconds,
        )
