import numpy as np
import pytest

from student_rag.core.config import Settings
from student_rag.core.errors import ProviderError
from student_rag.rag.embedder import EmbeddingGateway
from student_rag.rag.store import InMemoryStore

DIM = 3
FAR_AWAY = [100.0, 100.0, 100.0]


class ScriptedEmbedder(EmbeddingGateway):
    """Embedder returning hand-picked vectors; unknown texts land far from everything."""

    def __init__(self, vectors=None, default=None, fail_on=()):
        super().__init__(model_name=None, dim=DIM, allow_offline=True)
        self.vectors = dict(vectors or {})
        self.default = default or FAR_AWAY
        self.fail_on = set(fail_on)
        self.calls = []

    def embed_many(self, texts):
        rows = []
        for text in texts:
            self.calls.append(text)
            if text in self.fail_on:
                raise ProviderError(f"embedding failed for {text!r}")
            rows.append(self.vectors.get(text, self.default))
        return np.asarray(rows, dtype=np.float32).reshape(len(texts), DIM)


@pytest.fixture
def settings():
    return Settings(
        STORE_BACKEND="memory",
        EMBEDDING_MODEL=None,
        EMBEDDING_DIM=DIM,
        LLM_MODEL=None,
    )


@pytest.fixture
def store():
    return InMemoryStore(dimension=DIM)


@pytest.fixture
def make_embedder():
    def _make(vectors=None, default=None, fail_on=()):
        return ScriptedEmbedder(vectors=vectors, default=default, fail_on=fail_on)

    return _make


@pytest.fixture
def embedder(make_embedder):
    return make_embedder()
