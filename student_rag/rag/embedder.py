"""
Embedding gateway for the retrieval pipeline.

Wraps a sentence-transformers model. When no model is configured and offline
embeddings are allowed, vectors come from a seeded linear congruential
generator keyed by the text, so the pipeline stays exercisable without any
model download. Once a model is configured its failures are surfaced, never
replaced by offline vectors.
"""

import logging
import threading

import anyio
import numpy as np
from sentence_transformers import SentenceTransformer

from ..core.config import Settings
from ..core.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

_LCG_MULTIPLIER = 1103515245
_LCG_INCREMENT = 12345
_LCG_MASK = 0x7FFFFFFF


def string_hash(text: str) -> int:
    """31-based rolling hash over UTF-16 code units, wrapped to a signed 32-bit int."""
    data = text.encode("utf-16-le")
    value = 0
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        value = (value * 31 + code) & 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def offline_embedding(text: str, dim: int) -> np.ndarray:
    """
    Deterministic pseudo-random vector for `text`, with components in [-1, 1].

    The seed mixes the text hash with the dimension, so the same text yields
    unrelated vectors under different dimensions. Semantically meaningless.
    """
    x = abs(string_hash(f"{dim}:{text}")) & _LCG_MASK
    values = np.empty(dim, dtype=np.float32)
    for i in range(dim):
        x = (x * _LCG_MULTIPLIER + _LCG_INCREMENT) & _LCG_MASK
        values[i] = (x / _LCG_MASK) * 2 - 1
    return values


class EmbeddingGateway:
    """Text to fixed-dimension vectors."""

    def __init__(
        self,
        model_name: str | None,
        dim: int = 768,
        allow_offline: bool = True,
        batch_size: int = 32,
    ):
        if not model_name and not allow_offline:
            raise ConfigurationError("No embedding model configured and offline embeddings are disabled.")
        self.model_name = model_name or None
        self.dim = dim
        self.allow_offline = allow_offline
        self.batch_size = batch_size
        self._model: SentenceTransformer | None = None
        self._model_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingGateway":
        return cls(
            model_name=settings.EMBEDDING_MODEL,
            dim=settings.EMBEDDING_DIM,
            allow_offline=settings.ALLOW_OFFLINE_EMBEDDINGS,
            batch_size=settings.EMBEDDING_BATCH_SIZE,
        )

    @property
    def is_offline(self) -> bool:
        return self.model_name is None

    def load_model(self) -> SentenceTransformer:
        """
        Load and cache the sentence-transformers model.

        Safe to call from several worker threads at once; the model is built
        a single time.

        Raises:
            ProviderError: If the model cannot be loaded
            ConfigurationError: If the model's dimension differs from the configured one
        """
        if self._model is not None:
            return self._model

        with self._model_lock:
            if self._model is None:
                logger.info(f"Loading embedding model: {self.model_name}")
                try:
                    model = SentenceTransformer(self.model_name)
                except Exception as e:
                    raise ProviderError(f"Could not load embedding model {self.model_name}: {e}") from e

                model_dim = model.get_sentence_embedding_dimension()
                if model_dim != self.dim:
                    raise ConfigurationError(
                        f"Embedding model {self.model_name} produces {model_dim}-dim vectors, expected {self.dim}."
                    )
                self._model = model
        return self._model

    def embed(self, text: str) -> np.ndarray:
        """Embed one text. Deterministic for identical input and configuration."""
        return self.embed_many([text])[0]

    def embed_many(self, texts: list[str]) -> np.ndarray:
        """
        Embed a list of texts in batches.

        Returns:
            Array of shape (len(texts), dim)
        """
        if not texts:
            return np.empty((0, self.dim), dtype=np.float32)

        if self.is_offline:
            return np.vstack([offline_embedding(text, self.dim) for text in texts])

        model = self.load_model()
        try:
            batches = [
                model.encode(texts[i : i + self.batch_size], convert_to_numpy=True)
                for i in range(0, len(texts), self.batch_size)
            ]
        except Exception as e:
            raise ProviderError(f"Embedding provider failed: {e}") from e

        result = np.vstack(batches)
        if result.shape != (len(texts), self.dim):
            raise ConfigurationError(f"Expected embeddings of shape {(len(texts), self.dim)}, got {result.shape}.")
        if np.isnan(result).any():
            raise ProviderError("Embeddings contain NaN values")
        return result

    async def aembed(self, text: str) -> np.ndarray:
        """Embed one text without blocking the event loop."""
        return await anyio.to_thread.run_sync(self.embed, text)

    async def aembed_many(self, texts: list[str]) -> np.ndarray:
        return await anyio.to_thread.run_sync(self.embed_many, texts)
