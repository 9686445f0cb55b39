"""Batch text embedding through LiteLLM.

Every embedding call in ingestion and search routes through an
:class:`Embedder`. The default model is a local Ollama model
(``ollama/nomic-embed-text``, 768 dimensions), so no API key is required;
hosted providers are supported by switching the LiteLLM model string, and
their API key presence is validated before the first call.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any, Protocol

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

DEFAULT_MODEL = "ollama/nomic-embed-text"
DEFAULT_DIMENSIONS = 768

# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
}


class EmbeddingError(RuntimeError):
    """Raised when the embedding capability fails or returns unusable vectors."""


class Embedder(Protocol):
    """Maps a batch of texts to fixed-dimension vectors, in input order."""

    dimensions: int

    def embed(self, texts: Sequence[str]) -> list[list[float]]: ...


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


class LiteLLMEmbedder:
    """Embed batches with ``litellm.embedding()``.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Expected vector length; every returned vector is checked.
        num_retries: Retries on transient errors (LiteLLM's exponential backoff).
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        num_retries: int = 3,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.num_retries = num_retries

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Return one embedding per text, in the same order.

        Raises:
            EnvironmentError: If the provider's API key is not set.
            EmbeddingError: If the call fails or the response does not hold
                exactly one vector of ``dimensions`` floats per text.
        """
        if not texts:
            return []
        validate_api_key(self.model)

        try:
            response = litellm.embedding(
                model=self.model,
                input=list(texts),
                num_retries=self.num_retries,
            )
        except Exception as exc:
            raise EmbeddingError(f"Embedding call to '{self.model}' failed: {exc}") from exc

        vectors = [list(_field(item, "embedding")) for item in response.data]
        check_vectors(vectors, len(texts), self.dimensions)
        return vectors


def check_vectors(vectors: Sequence[Sequence[float]], expected: int, dimensions: int) -> None:
    """Raise EmbeddingError unless there are *expected* vectors of *dimensions* floats."""
    if len(vectors) != expected:
        raise EmbeddingError(f"Expected {expected} embeddings, got {len(vectors)}.")
    for i, vector in enumerate(vectors):
        if len(vector) != dimensions:
            raise EmbeddingError(
                f"Embedding {i} has {len(vector)} dimensions, expected {dimensions}."
            )


def _field(item: Any, name: str) -> Any:
    # LiteLLM returns dicts for some providers and objects for others.
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name)
