"""Protocol for embedding backends."""

from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding backends.

    Allows swapping between local models (sentence-transformers),
    hosted APIs, or deterministic fakes in tests. Implementations raise
    when the backend is unavailable; the indexer retries with backoff.
    """

    @property
    def dimension(self) -> int:
        """Return the embedding dimension."""
        ...

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        ...

    def embed(self, texts: list[str]) -> np.ndarray:
        """Generate embeddings for a batch of texts.

        Returns: float array of shape (len(texts), dimension)
        """
        ...
