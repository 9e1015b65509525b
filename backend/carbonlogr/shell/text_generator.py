"""Text Generation - Client for a third-party AI text-completion service.

The service is treated as opaque: a prompt goes in, text comes out.
Every failure is raised as TextGenerationError so callers can fall back.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import requests


logger = logging.getLogger(__name__)


class TextGenerationError(Exception):
    """The text generator could not produce a completion."""


class TextGenerator(Protocol):
    """Anything that turns a prompt into completion text."""

    def generate(self, prompt: str) -> str:
        ...


class UnavailableTextGenerator:
    """Generator used when no AI service is configured. Always fails."""

    def generate(self, prompt: str) -> str:
        raise TextGenerationError("No text generation service configured")


@dataclass
class TextGeneratorConfig:
    """Configuration for the HTTP text generator.

    Attributes:
        endpoint: OpenAI-compatible chat completions URL
        api_key: Bearer token (None for unauthenticated endpoints)
        model: Model name to request
        timeout_seconds: Connect and read timeout for one request
    """

    endpoint: str
    api_key: str | None = None
    model: str = "gpt-4.1-nano"
    timeout_seconds: float = 15.0


class HttpTextGenerator:
    """Text generator backed by an OpenAI-compatible chat completions API."""

    def __init__(self, config: TextGeneratorConfig, session: requests.Session | None = None) -> None:
        """Initialize the client.

        Args:
            config: Endpoint, credentials and timeout
            session: Optional requests session (a new one is created otherwise)
        """
        self.config = config
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def generate(self, prompt: str) -> str:
        """Request a completion for a prompt.

        Args:
            prompt: The user prompt

        Returns:
            Completion text

        Raises:
            TextGenerationError: On network errors, timeouts, non-2xx
                responses or an unexpected response shape
        """
        payload = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
        }

        logger.debug("Requesting completion from %s", self.config.endpoint)
        try:
            response = self._session.post(
                self.config.endpoint,
                json=payload,
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as e:
            raise TextGenerationError(f"Text generation timed out after {self.config.timeout_seconds}s") from e
        except (requests.RequestException, ValueError) as e:
            raise TextGenerationError(f"Text generation request failed: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise TextGenerationError("Unexpected completion response shape") from e

        if not isinstance(content, str) or not content.strip():
            raise TextGenerationError("Empty completion")

        return content
